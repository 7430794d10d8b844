#!/usr/bin/env python
"""
The ``RequestExecutor`` class wraps one outbound HTTP request made
with the requests library.  A WebDAV operation in ``wdc.client``
creates an executor, configures it option by option, executes it once
and throws it away.  End users should only need this module for custom
requests that the ``Client`` does not offer.

Every executor owns its own ``requests.Session``.  It's released by
``close()``, which the context manager guarantees on every exit path::

    with RequestExecutor(config) as request:
        request.configure(RequestOption.METHOD, "PROPFIND")
        request.configure(RequestOption.URL, url)
        outcome = request.execute()
"""
import logging
from enum import Enum
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterator
from typing import Optional
from typing import Union
from types import TracebackType
from urllib.parse import quote

import requests
from requests.auth import AuthBase
from requests.auth import HTTPBasicAuth
from requests.auth import HTTPDigestAuth
from requests.structures import CaseInsensitiveDict

from wdc.config import Configuration
from wdc.lib import error
from wdc.lib.error import ApplicationStatus
from wdc.lib.error import RequestOutcome
from wdc.lib.error import TransportStatus

log = logging.getLogger("wdc")

## Chunk size for streaming bodies in both directions
BUFFER_SIZE = 64 * 1024

ProgressCallback = Callable[[int, int, int, int], Optional[bool]]
BytesLike = (bytes, bytearray, memoryview)


class RequestOption(Enum):
    METHOD = "method"
    URL = "url"
    HEADERS = "headers"
    ## bytes-like object or a readable binary stream
    BODY_SOURCE = "body source"
    ## declared Content-Length of BODY_SOURCE
    UPLOAD_SIZE = "upload size"
    ## writable binary stream or a bytearray
    BODY_SINK = "body sink"
    ## progress(download_total, download_now, upload_total, upload_now)
    PROGRESS = "progress"


class HTTPBearerAuth(AuthBase):
    def __init__(self, token: str) -> None:
        self.token = token

    def __eq__(self, other: object) -> bool:
        return self.token == getattr(other, "token", None)

    def __ne__(self, other: object) -> bool:
        return not self == other

    def __call__(self, r):
        r.headers["Authorization"] = f"Bearer {self.token}"
        return r


def build_auth(config: Configuration) -> Optional[AuthBase]:
    """
    basic is used unless something else is configured.  For bearer
    auth the token is expected in webdav_password.
    """
    auth_type = (config.auth_type or "basic").lower()
    if auth_type == "bearer":
        if not config.webdav_password:
            raise error.AuthorizationError(
                reason="bearer auth configured, but no token given.  The bearer token should be configured as webdav_password"
            )
        return HTTPBearerAuth(config.webdav_password)
    if not config.webdav_username:
        return None
    if auth_type == "digest":
        return HTTPDigestAuth(config.webdav_username, config.webdav_password)
    ## I had problems with passwords with non-ascii letters in it ...
    return HTTPBasicAuth(
        config.webdav_username.encode("utf-8"), config.webdav_password.encode("utf-8")
    )


def build_proxy_url(config: Configuration) -> Optional[str]:
    if not config.proxy_hostname:
        return None
    _proxy = config.proxy_hostname
    # requests library expects the proxy url to have a scheme
    if "://" not in _proxy:
        _proxy = config.scheme + "://" + _proxy

    # add a port is one is not specified
    p = _proxy.split(":")
    if len(p) == 2:
        _proxy += ":8080"

    if config.proxy_username:
        scheme, rest = _proxy.split("://", 1)
        credentials = quote(config.proxy_username, safe="")
        if config.proxy_password:
            credentials += ":" + quote(config.proxy_password, safe="")
        _proxy = "%s://%s@%s" % (scheme, credentials, rest)
    return _proxy


def transport_status(exc: BaseException) -> TransportStatus:
    """Maps an exception from the requests library to a TransportStatus"""
    exceptions = requests.exceptions
    ## order matters, i.e. ProxyError and ConnectTimeout are ConnectionErrors
    if isinstance(exc, TransferAborted):
        return TransportStatus.ABORTED_BY_CALLBACK
    if isinstance(exc, exceptions.ProxyError):
        return TransportStatus.PROXY_ERROR
    if isinstance(exc, exceptions.SSLError):
        return TransportStatus.SSL_ERROR
    if isinstance(exc, exceptions.Timeout):
        return TransportStatus.TIMEOUT
    if isinstance(exc, exceptions.TooManyRedirects):
        return TransportStatus.TOO_MANY_REDIRECTS
    if isinstance(
        exc,
        (
            exceptions.InvalidURL,
            exceptions.MissingSchema,
            exceptions.InvalidSchema,
            exceptions.URLRequired,
        ),
    ):
        return TransportStatus.INVALID_URL
    if isinstance(exc, (exceptions.ChunkedEncodingError, exceptions.ContentDecodingError)):
        return TransportStatus.RECEIVE_ERROR
    if isinstance(exc, exceptions.ConnectionError):
        return TransportStatus.CONNECTION_ERROR
    ## RequestException is an OSError too
    if isinstance(exc, exceptions.RequestException):
        return TransportStatus.UNKNOWN
    if isinstance(exc, OSError):
        return TransportStatus.CONNECTION_ERROR
    return TransportStatus.UNKNOWN


class TransferAborted(Exception):
    """Raised inside a transfer when the progress callback asks to stop"""


class StreamError(Exception):
    """
    Raised inside a transfer when the caller's source or sink fails,
    i.e. it's closed or a text stream.  The status is noted in the
    transfer before raising.
    """


## what a broken or closed stream, or a text stream, raises
STREAM_ERRORS = (OSError, ValueError, TypeError)


class _Transfer:
    """
    Byte counters of one execute(), shared by the upload and download
    side.  If the failure came from our side of the transfer (the
    caller's stream, or the progress callback), it's noted here, since
    the requests library may wrap the original exception in a
    ConnectionError.
    """

    def __init__(self, progress: Optional[ProgressCallback]) -> None:
        self.progress = progress
        self.download_total = 0
        self.download_now = 0
        self.upload_total = 0
        self.upload_now = 0
        self.failure: Optional[TransportStatus] = None

    def report(self) -> None:
        if self.progress is None:
            return
        if self.progress(
            self.download_total, self.download_now, self.upload_total, self.upload_now
        ):
            self.failure = TransportStatus.ABORTED_BY_CALLBACK
            raise TransferAborted()


class _SourceReader:
    """
    File-like view of the request body.  A bytes-like source is read
    through a memoryview, so the caller's buffer is never copied as a
    whole.  With a known size, at most size bytes are handed out.
    """

    def __init__(
        self, source: Any, size: Optional[int], transfer: _Transfer, chunk_size: int
    ) -> None:
        self._view: Optional[memoryview] = None
        self._stream = None
        if isinstance(source, BytesLike):
            self._view = memoryview(source)
            if self._view.format != "B" or self._view.ndim != 1:
                self._view = self._view.cast("B")
        else:
            self._stream = source
        self._size = size
        self._pos = 0
        self._transfer = transfer
        self._chunk_size = chunk_size

    def __len__(self) -> int:
        return self._size or 0

    def read(self, amt: Optional[int] = -1) -> bytes:
        if amt is None or amt < 0:
            amt = self._chunk_size
        if self._size is not None:
            amt = min(amt, self._size - self._pos)
        if amt <= 0:
            return b""
        if self._view is not None:
            chunk = self._view[self._pos : self._pos + amt].tobytes()
        else:
            try:
                chunk = self._stream.read(amt)
                if not isinstance(chunk, BytesLike):
                    raise TypeError("expected bytes from the body source, got %s" % type(chunk).__name__)
            except STREAM_ERRORS as e:
                self._transfer.failure = TransportStatus.READ_ERROR
                raise StreamError(e) from e
        if chunk:
            self._pos += len(chunk)
            self._transfer.upload_now = self._pos
            self._transfer.report()
        return chunk

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(self._chunk_size)
            if not chunk:
                break
            yield chunk


class RequestExecutor:
    """
    One configured outbound HTTP request.

    The executor can be moved (see :meth:`move`) but not copied, as
    a copy would share the session with the original.  After close()
    or move(), configure() returns False and execute() reports
    ``ApplicationStatus.MISSING_HANDLE``.

    After execute(), ``status``, ``reason`` and ``headers`` describe
    the response, and ``content`` holds the response body unless it
    was streamed to a body sink.
    """

    buffer_size: int = BUFFER_SIZE

    def __init__(self, config: Optional[Configuration] = None) -> None:
        config = config or Configuration()
        self.handle: Optional[requests.Session] = requests.Session()
        self.handle.auth = build_auth(config)
        proxy = build_proxy_url(config)
        if proxy is not None:
            self.handle.proxies.update({"http": proxy, "https": proxy})
            log.debug("init - proxy: %s" % (config.proxy_hostname))
        self.handle.cert = config.cert
        self.handle.verify = config.verify
        self.timeout = config.timeout_seconds
        self._options: Dict[RequestOption, Any] = {}
        self._reset_response()

    def _reset_response(self) -> None:
        self.status: int = 0
        self.reason: str = ""
        self.headers: CaseInsensitiveDict = CaseInsensitiveDict()
        self.content: bytes = b""

    def __enter__(self) -> "RequestExecutor":
        return self

    def __exit__(
        self,
        exc_type: Optional[BaseException] = None,
        exc_value: Optional[BaseException] = None,
        traceback: Optional[TracebackType] = None,
    ) -> None:
        self.close()

    def __copy__(self):
        raise TypeError("a RequestExecutor can't be copied, use move()")

    def __deepcopy__(self, memo):
        raise TypeError("a RequestExecutor can't be copied, use move()")

    def close(self) -> None:
        """
        Releases the session.  Safe to call more than once.
        """
        if self.handle is not None:
            self.handle.close()
            self.handle = None

    def move(self) -> "RequestExecutor":
        """
        Returns a new executor taking over the session and the
        options.  This executor is left without a handle.
        """
        other = RequestExecutor.__new__(RequestExecutor)
        other.handle = self.handle
        other.timeout = self.timeout
        other._options = self._options
        other._reset_response()
        self.handle = None
        self._options = {}
        return other

    def configure(self, option: Union[RequestOption, str], value: Any) -> bool:
        """
        Sets one request parameter.  Never raises: returns False if
        the handle is gone, the option is unknown or the value is of
        the wrong kind.
        """
        if self.handle is None:
            return False
        try:
            option = RequestOption(option)
        except ValueError:
            log.debug("unknown request option %s" % (option,))
            return False
        if not _acceptable(option, value):
            log.debug("unacceptable value for %s: %r" % (option.name, value))
            return False
        self._options[option] = value
        return True

    def execute(self) -> RequestOutcome:
        """
        Performs the request, blocking until it's done or the transport
        fails.  This is the only method in the library doing network
        I/O.  The progress callback is only ever called from in here.
        """
        self._reset_response()
        if self.handle is None:
            log.warning("request executed after its transport handle was released")
            return RequestOutcome(application=ApplicationStatus.MISSING_HANDLE)

        method = self._options.get(RequestOption.METHOD, "GET")
        url = self._options.get(RequestOption.URL)
        headers = CaseInsensitiveDict(self._options.get(RequestOption.HEADERS) or {})
        transfer = _Transfer(self._options.get(RequestOption.PROGRESS))
        data = self._request_body(transfer)

        log.debug(
            "sending request - method={0}, url={1}, headers={2}".format(
                method, url, headers
            )
        )

        response = None
        try:
            response = self.handle.request(
                method,
                url,
                headers=headers,
                data=data,
                stream=True,
                timeout=self.timeout,
            )
            self.status = response.status_code
            ## incidents with a response without a reason has been observed
            self.reason = getattr(response, "reason", None) or ""
            self.headers = CaseInsensitiveDict(response.headers)
            log.debug("server responded with %i %s" % (self.status, self.reason))

            sink = None
            if error.check_http(self.status):
                sink = self._options.get(RequestOption.BODY_SINK)
            self._receive(response, sink, transfer)
        except (requests.RequestException, TransferAborted, StreamError, OSError) as e:
            status = transfer.failure or transport_status(e)
            log.debug(
                "%s %s failed in the transport layer: %s (%s)"
                % (method, url, status.name, e)
            )
            return RequestOutcome(transport=status, http_status=self.status)
        finally:
            if response is not None:
                response.close()

        return RequestOutcome(http_status=self.status)

    def _request_body(self, transfer: _Transfer):
        source = self._options.get(RequestOption.BODY_SOURCE)
        if source is None:
            return None
        size = self._options.get(RequestOption.UPLOAD_SIZE)
        if size is None and isinstance(source, BytesLike):
            size = memoryview(source).nbytes
        transfer.upload_total = size or 0
        if size == 0:
            return b""
        reader = _SourceReader(source, size, transfer, self.buffer_size)
        if size is None:
            ## unknown length, requests falls back to chunked transfer encoding
            return iter(reader)
        return reader

    def _receive(self, response, sink, transfer: _Transfer) -> None:
        try:
            transfer.download_total = int(response.headers.get("Content-Length") or 0)
        except ValueError:
            transfer.download_total = 0

        buffer = bytearray()
        for chunk in response.iter_content(chunk_size=self.buffer_size):
            if not chunk:
                continue
            if sink is None:
                buffer.extend(chunk)
            else:
                try:
                    if isinstance(sink, bytearray):
                        sink.extend(chunk)
                    else:
                        sink.write(chunk)
                except STREAM_ERRORS as e:
                    transfer.failure = TransportStatus.WRITE_ERROR
                    raise StreamError(e) from e
            transfer.download_now += len(chunk)
            transfer.report()
        self.content = bytes(buffer)


def _acceptable(option: RequestOption, value: Any) -> bool:
    if option in (RequestOption.METHOD, RequestOption.URL):
        return isinstance(value, str)
    if option == RequestOption.HEADERS:
        return value is None or hasattr(value, "items")
    if option == RequestOption.BODY_SOURCE:
        return value is None or isinstance(value, BytesLike) or hasattr(value, "read")
    if option == RequestOption.UPLOAD_SIZE:
        return value is None or (isinstance(value, int) and value >= 0)
    if option == RequestOption.BODY_SINK:
        return value is None or isinstance(value, bytearray) or hasattr(value, "write")
    if option == RequestOption.PROGRESS:
        return value is None or callable(value)
    return False
