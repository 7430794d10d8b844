#!/usr/bin/env python
import logging

__version__ = "1.0.0"

from .client import Client
from .client import get_client
from .config import Configuration
from .lib.error import HttpError
from .lib.error import RequestOutcome
from .lib.error import TransportError
from .lib.error import UnspecifiedError
from .lib.urn import RemotePath
from .protocol.types import Resource

# Silence notification of no default logging handler
log = logging.getLogger("wdc")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = [
    "__version__",
    "Client",
    "Configuration",
    "HttpError",
    "RemotePath",
    "RequestOutcome",
    "Resource",
    "TransportError",
    "UnspecifiedError",
    "get_client",
]
