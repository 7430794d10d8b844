#!/usr/bin/env python
import logging
import os
from dataclasses import dataclass
from enum import Enum
from enum import IntEnum
from typing import Optional
from typing import Union

from wdc import __version__

## Environmental variables prepended with "PYTHON_WDC" are used for debug purposes,
## environmental variables prepended with "WDC_" are for connection parameters
debug_dump_communication = os.environ.get("PYTHON_WDC_COMMDUMP", False)
## one of DEBUG_PDB, DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("PYTHON_WDC_DEBUGMODE")
if not debugmode:
    if "dev" in __version__:
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("wdc")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)


def weirdness(*reasons):
    from wdc.lib.debug import xmlstring

    reason = " : ".join([xmlstring(x) for x in reasons])
    log.warning(f"Deviation from expectations found: {reason}")
    if debugmode == "DEBUG_PDB":
        log.error(f"Dropping into debugger due to {reason}")
        import pdb

        pdb.set_trace()


class TransportStatus(IntEnum):
    """
    Outcome of the transport layer, before any HTTP status is looked
    at.  Anything but OK means no (complete) HTTP response was obtained.
    """

    OK = 0
    INVALID_URL = 1
    CONNECTION_ERROR = 2
    PROXY_ERROR = 3
    SSL_ERROR = 4
    TIMEOUT = 5
    TOO_MANY_REDIRECTS = 6
    READ_ERROR = 7
    WRITE_ERROR = 8
    RECEIVE_ERROR = 9
    ABORTED_BY_CALLBACK = 10
    UNKNOWN = 99


class ApplicationStatus(Enum):
    OK = "ok"
    ## the request object was used after its transport handle was released
    MISSING_HANDLE = "missing handle"


@dataclass(frozen=True)
class TransportError:
    """The transport failed before an HTTP response was obtained"""

    code: TransportStatus


@dataclass(frozen=True)
class HttpError:
    """A response outside of 2xx was received"""

    code: int


@dataclass(frozen=True)
class UnspecifiedError:
    """An internal precondition failed"""

    status: ApplicationStatus = ApplicationStatus.MISSING_HANDLE


Error = Union[TransportError, HttpError, UnspecifiedError]


def check_transport(status: TransportStatus) -> bool:
    return status == TransportStatus.OK


def check_http(code: int) -> bool:
    return 200 <= code < 300


def check_application(status: ApplicationStatus) -> bool:
    return status == ApplicationStatus.OK


@dataclass(frozen=True)
class RequestOutcome:
    """
    The three independent results of one executed request.  An
    outcome is created once per request and should be consumed right
    away through :func:`is_success` or :func:`classify`.
    """

    transport: TransportStatus = TransportStatus.OK
    http_status: int = 0
    application: ApplicationStatus = ApplicationStatus.OK

    def is_success(self) -> bool:
        return is_success(self)

    def to_error(self) -> Optional[Error]:
        return classify(self)


def is_success(outcome: RequestOutcome) -> bool:
    return (
        check_transport(outcome.transport)
        and check_http(outcome.http_status)
        and check_application(outcome.application)
    )


def classify(outcome: RequestOutcome) -> Optional[Error]:
    """
    Turns an outcome into at most one error.  The order of the checks
    matters: a transport failure is never reported as an HTTP failure,
    even if some status code was seen before the transfer broke off.
    """
    if not check_transport(outcome.transport):
        return TransportError(outcome.transport)
    if not check_application(outcome.application):
        return UnspecifiedError(outcome.application)
    if not check_http(outcome.http_status):
        return HttpError(outcome.http_status)
    return None


to_error = classify


def is_not_found(err: Optional[Error]) -> bool:
    return isinstance(err, HttpError) and err.code == 404


class DAVError(Exception):
    url: Optional[str] = None
    reason: str = "no reason"

    def __init__(self, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason

    def __str__(self) -> str:
        return "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )


class AuthorizationError(DAVError):
    """
    The configured credentials can't be turned into an auth object,
    i.e. bearer auth was requested but no token was given.
    """

    pass


class ConfigurationError(DAVError):
    pass
