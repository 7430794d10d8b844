import json
import logging
import os
from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import fields
from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Union

from wdc.lib import error

"""
Connection settings for the client, and reading them from config
files.

A config file is JSON (or YAML, if pyyaml is installed) with one
section per server::

    {
      "default": {"inherits": "base", "webdav_root": "/remote.php/webdav"},
      "base": {"webdav_hostname": "https://dav.example.com",
               "webdav_username": "alice", "webdav_password": "secret"}
    }
"""

AUTH_TYPES = ("basic", "digest", "bearer")
FALSY = ("0", "false", "no", "off")


@dataclass(frozen=True)
class Configuration:
    """
    The settings a Client is created with.  It's never changed after
    construction, so the same object may be handed to any number of
    requests running in parallel.

    All values are strings, missing ones are empty strings.  Use
    :meth:`from_mapping` to build one from a dict with arbitrary keys.
    """

    webdav_hostname: str = ""
    webdav_root: str = ""
    webdav_username: str = ""
    webdav_password: str = ""
    proxy_hostname: str = ""
    proxy_username: str = ""
    proxy_password: str = ""
    cert_path: str = ""
    key_path: str = ""
    auth_type: str = ""
    timeout: str = ""
    ssl_verify_cert: str = ""

    def __post_init__(self) -> None:
        if self.auth_type and self.auth_type.lower() not in AUTH_TYPES:
            raise error.ConfigurationError(
                reason=f"auth_type should be one of {AUTH_TYPES}, got {self.auth_type}"
            )
        if self.timeout:
            try:
                float(self.timeout)
            except ValueError:
                raise error.ConfigurationError(
                    reason=f"timeout should be a number of seconds, got {self.timeout}"
                )

    @classmethod
    def keys(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None, **kwargs) -> "Configuration":
        """Unknown keys are ignored, None counts as missing"""
        options = dict(options or {})
        options.update(kwargs)
        known = cls.keys()
        return cls(
            **{
                k: str(v)
                for k, v in options.items()
                if k in known and v is not None
            }
        )

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)

    @property
    def scheme(self) -> str:
        if "://" in self.webdav_hostname:
            return self.webdav_hostname.split("://", 1)[0]
        return "http"

    @property
    def timeout_seconds(self) -> Optional[float]:
        return float(self.timeout) if self.timeout else None

    @property
    def verify(self) -> Union[bool, str]:
        if not self.ssl_verify_cert or self.ssl_verify_cert.lower() in ("1", "true", "yes", "on"):
            return True
        if self.ssl_verify_cert.lower() in FALSY:
            return False
        return self.ssl_verify_cert

    @property
    def cert(self) -> Union[None, str, Tuple[str, str]]:
        if self.cert_path and self.key_path:
            return (self.cert_path, self.key_path)
        return self.cert_path or None


def config_section(config, section="default"):
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    return ret


def read_config(fn, interactive_error=False):
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config/"
        for config_file in (
            f"{cfgdir}/wdc/config.json",
            f"{cfgdir}/wdc/config.yaml",
            "/etc/wdc/config.json",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    ## This can probably be refactored into fewer lines ...
    try:
        try:
            with open(fn, "rb") as config_file:
                return json.load(config_file)
        except json.decoder.JSONDecodeError:
            ## Late import, wrapped in try/except.  yaml is external module,
            ## and only installed with the "yaml" extra.
            try:
                import yaml

                try:
                    with open(fn, "rb") as config_file:
                        return yaml.load(config_file, yaml.SafeLoader)
                except yaml.YAMLError:
                    logging.error(
                        f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax."
                    )
            except ImportError:
                logging.error(
                    f"config file {fn} exists but is not valid json, and pyyaml is not installed."
                )

    except FileNotFoundError:
        ## File not found
        logging.info("no config file found")
    except ValueError:
        if interactive_error:
            logging.error(
                "error in config file.  Be aware that the interactive configuration will ignore and overwrite the current broken config file",
                exc_info=True,
            )
        else:
            logging.error("error in config file.  It will be ignored", exc_info=True)
    return {}
