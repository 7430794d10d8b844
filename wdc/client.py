#!/usr/bin/env python
import logging
import os
import sys
import threading
from concurrent.futures import Future
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Union

from lxml import etree
from requests.structures import CaseInsensitiveDict

from wdc import __version__
from wdc import config
from wdc.config import Configuration
from wdc.lib import error
from wdc.lib.error import RequestOutcome
from wdc.lib.python_utilities import to_normal_str
from wdc.lib.python_utilities import to_wire
from wdc.lib.urn import RemotePath
from wdc.protocol.types import Resource
from wdc.protocol.xml_builders import build_quota_body
from wdc.protocol.xml_parsers import parse_multistatus
from wdc.protocol.xml_parsers import parse_quota
from wdc.transport import BytesLike
from wdc.transport import build_auth
from wdc.transport import ProgressCallback
from wdc.transport import RequestExecutor
from wdc.transport import RequestOption

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

"""
The ``Client`` class offers the WebDAV operations: checking, listing,
downloading, uploading, moving, copying, creating and deleting remote
resources.  Each operation makes one or more requests through a fresh
``wdc.transport.RequestExecutor`` and reports the result as a boolean,
a ``Resource``, a list of them or a number.  None of the operations
raise on network or server failures.

Operations that need the resource to exist (or not) do a PROPFIND
before the actual request.  The two requests are not atomic, so a
concurrent change on the server in between will not be noticed.

``get_client`` will return a Client object, based either on parameters,
environmental variables or a configuration file.
"""

log = logging.getLogger("wdc")

CompletionCallback = Callable[[bool], Any]


class Client:
    """
    Client for a WebDAV server.

    The client is created from a mapping with the keys
    ``webdav_hostname``, ``webdav_root``, ``webdav_username``,
    ``webdav_password``, ``proxy_hostname``, ``proxy_username``,
    ``proxy_password``, ``cert_path``, ``key_path``, and optionally
    ``auth_type``, ``timeout`` and ``ssl_verify_cert``.  Other keys are
    ignored::

        client = Client({"webdav_hostname": "https://dav.example.com",
                         "webdav_root": "/remote.php/webdav",
                         "webdav_username": "alice",
                         "webdav_password": "secret"})
        for resource in client.list("/documents") or []:
            print(resource.href, resource.size)

    All remote paths are relative to ``webdav_root``.  The client holds
    no state between calls except for its immutable configuration and
    the worker pool of the async_* methods, so it may be shared
    between threads.
    """

    max_workers: Optional[int] = None

    def __init__(self, options: Optional[Mapping[str, Any]] = None, **kwargs) -> None:
        """
        Raises:
            ConfigurationError: on an unknown auth_type or a non-numeric timeout
            AuthorizationError: if bearer auth is configured without a token
        """
        self.config = Configuration.from_mapping(options, **kwargs)
        ## fail early rather than on every request
        build_auth(self.config)

        self.headers = CaseInsensitiveDict(
            {
                "User-Agent": "python-wdc/" + __version__,
                "Accept": "*/*",
            }
        )
        self.root = RemotePath(self.config.webdav_root, True)
        self._pool: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()
        log.debug(
            "webdav_hostname: %s, webdav_root: %s"
            % (self.config.webdav_hostname, self.root)
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: Optional[BaseException] = None,
        exc_value: Optional[BaseException] = None,
        traceback: Optional[TracebackType] = None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """
        Shuts down the worker pool of the async_* methods without
        waiting.  Transfers already running are not interrupted, queued
        ones are still run.
        """
        with self._pool_lock:
            if self._pool is not None:
                self._pool.shutdown(wait=False)
                self._pool = None

    def options(self) -> Dict[str, str]:
        return self.config.as_dict()

    def target(self, remote_resource: Union[str, RemotePath, None], directory: bool = False) -> RemotePath:
        """The path on the server for a path relative to webdav_root"""
        ret = self.root + remote_resource
        if directory:
            ret = RemotePath(ret, True)
        return ret

    def url(self, target: RemotePath) -> str:
        return self.config.webdav_hostname.rstrip("/") + target.quote()

    def request(
        self,
        method: str,
        remote_resource: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Union[bytes, str, None] = None,
    ) -> Tuple[RequestOutcome, bytes]:
        """
        Sends an arbitrary request to a path below webdav_root.  This
        is the building block for anything the other methods don't
        cover.

        Returns:
            the outcome (see wdc.lib.error.classify) and the response body
        """
        return self._perform(
            method, self.target(remote_resource), headers, to_wire(body)
        )

    def _perform(
        self,
        method: str,
        target: RemotePath,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        upload_size: Optional[int] = None,
        sink: Any = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Tuple[RequestOutcome, bytes]:
        combined_headers = self.headers.copy()
        combined_headers.update(headers or {})
        url = self.url(target)

        with RequestExecutor(self.config) as request:
            request.configure(RequestOption.METHOD, method)
            request.configure(RequestOption.URL, url)
            request.configure(RequestOption.HEADERS, combined_headers)
            if body is not None:
                request.configure(RequestOption.BODY_SOURCE, body)
                request.configure(RequestOption.UPLOAD_SIZE, upload_size)
            if sink is not None:
                request.configure(RequestOption.BODY_SINK, sink)
            if progress is not None:
                request.configure(RequestOption.PROGRESS, progress)

            outcome = request.execute()

            err = error.classify(outcome)
            if err is not None:
                log.info("%s %s failed: %s" % (method, target, err))
            if error.debug_dump_communication:
                self._dump_communication(method, url, combined_headers, body, request)
            return outcome, request.content

    def _dump_communication(self, method, url, headers, body, request) -> None:
        import datetime
        from tempfile import NamedTemporaryFile

        with NamedTemporaryFile(prefix="wdccomm", delete=False) as commlog:
            commlog.write(b"=" * 80 + b"\n")
            commlog.write(f"{datetime.datetime.now():%FT%H:%M:%S}".encode("utf-8"))
            commlog.write(b"\n====>\n")
            commlog.write(f"{method} {url}\n".encode("utf-8"))
            commlog.write(b"\n".join(to_wire(f"{x}: {headers[x]}") for x in headers))
            commlog.write(b"\n\n")
            if isinstance(body, BytesLike):
                commlog.write(bytes(body))
            elif body is not None:
                commlog.write(b"(streamed body)")
            commlog.write(b"\n<====\n")
            commlog.write(f"{request.status} {request.reason}\n".encode("utf-8"))
            commlog.write(
                b"\n".join(
                    to_wire(f"{x}: {request.headers[x]}") for x in request.headers
                )
            )
            commlog.write(b"\n\n")
            commlog.write(request.content)
            commlog.write(b"\n")

    def _parse(self, content: bytes) -> Optional[List[Resource]]:
        try:
            return parse_multistatus(content)
        except etree.XMLSyntaxError:
            error.weirdness(
                "Expected some valid XML from the server, but got this", to_normal_str(content)
            )
            return None

    def check(self, remote_resource: str) -> bool:
        """
        Does the resource exist?  Any failure, including a failure to
        reach the server, gives False.
        """
        outcome, _ = self._perform(
            "PROPFIND", self.target(remote_resource), {"Depth": "1"}
        )
        return outcome.is_success()

    def info(self, remote_resource: str) -> Optional[Resource]:
        """
        The properties of one resource.  None if the request fails or
        if the server answers, but not about the resource asked for.
        """
        target = self.target(remote_resource)
        outcome, content = self._perform("PROPFIND", target, {"Depth": "0"})
        if not outcome.is_success():
            return None
        resources = self._parse(content)
        if resources is None:
            return None

        wanted = target.without_trailing_separator()
        for resource in resources:
            if (resource.href.rstrip("/") or "/") == wanted:
                return resource
        log.debug("no response for %s among %s" % (wanted, [r.href for r in resources]))
        return None

    def is_directory(self, remote_resource: str) -> bool:
        resource = self.info(remote_resource)
        return resource is not None and resource.is_directory

    def list(self, remote_directory: str = "/") -> Optional[List[Resource]]:
        """
        The directory and its immediate children, in the order the
        server sent them.  None if the request fails.
        """
        target = self.target(remote_directory, directory=True)
        outcome, content = self._perform("PROPFIND", target, {"Depth": "1"})
        if not outcome.is_success():
            return None
        return self._parse(content)

    def free_size(self) -> int:
        """
        Available bytes according to the server (RFC 4331).  0 when the
        server can't tell, or the request fails.
        """
        outcome, content = self._perform(
            "PROPFIND",
            self.root,
            {"Depth": "0", "Content-Type": "text/xml"},
            build_quota_body(),
        )
        if not outcome.is_success():
            return 0
        return parse_quota(content)

    def mkdir(self, remote_directory: str, recursive: bool = False) -> bool:
        """
        Creates the directory.  An existing directory counts as
        success.  With recursive, missing parents are created first,
        top-down; if even the root is missing, False is returned.
        """
        if self.check(remote_directory):
            return True

        directory = RemotePath(remote_directory, True)
        if recursive:
            parent = directory.parent()
            if parent == directory:
                return False
            if not self.mkdir(parent.path, True):
                return False

        outcome, _ = self._perform(
            "MKCOL",
            self.target(remote_directory, directory=True),
            {"Connection": "Keep-Alive"},
        )
        return outcome.is_success()

    def _transfer(self, method: str, source: str, destination: str) -> bool:
        if not self.check(source):
            return False
        headers = {"Destination": self.target(destination).quote()}
        outcome, _ = self._perform(method, self.target(source), headers)
        return outcome.is_success()

    def move(self, remote_source: str, remote_destination: str) -> bool:
        return self._transfer("MOVE", remote_source, remote_destination)

    def copy(self, remote_source: str, remote_destination: str) -> bool:
        return self._transfer("COPY", remote_source, remote_destination)

    def delete(self, remote_resource: str) -> bool:
        """
        Deletes the resource.  A resource that doesn't exist is
        considered deleted already, so this returns True without
        sending any DELETE.
        """
        if not self.check(remote_resource):
            return True
        outcome, _ = self._perform(
            "DELETE", self.target(remote_resource), {"Connection": "Keep-Alive"}
        )
        return outcome.is_success()

    ## Downloads

    def download(
        self,
        remote_file: str,
        local_file: str,
        progress: Optional[ProgressCallback] = None,
    ) -> bool:
        return self._sync_download(remote_file, local_file, None, progress)

    def _sync_download(
        self,
        remote_file: str,
        local_file: str,
        callback: Optional[CompletionCallback],
        progress: Optional[ProgressCallback],
    ) -> bool:
        is_performed = False
        if self.check(remote_file):
            try:
                with open(local_file, "wb") as file_stream:
                    is_performed = self._get(remote_file, file_stream, progress)
            except OSError:
                log.error("can't write to %s" % local_file, exc_info=True)
        if callback is not None:
            callback(is_performed)
        return is_performed

    def download_to(
        self,
        remote_file: str,
        target: Any,
        progress: Optional[ProgressCallback] = None,
    ) -> bool:
        """
        Downloads into a writable binary stream, or appends to a
        bytearray.  Nothing is written unless the resource exists and
        the server answers with 2xx.
        """
        if not self.check(remote_file):
            return False
        return self._get(remote_file, target, progress)

    def download_bytes(
        self, remote_file: str, progress: Optional[ProgressCallback] = None
    ) -> Optional[bytes]:
        buffer = bytearray()
        if not self.download_to(remote_file, buffer, progress):
            return None
        return bytes(buffer)

    def _get(self, remote_file: str, sink: Any, progress: Optional[ProgressCallback]) -> bool:
        outcome, _ = self._perform(
            "GET", self.target(remote_file), sink=sink, progress=progress
        )
        return outcome.is_success()

    ## Uploads

    def upload(
        self,
        remote_file: str,
        local_file: str,
        progress: Optional[ProgressCallback] = None,
    ) -> bool:
        return self._sync_upload(remote_file, local_file, None, progress)

    def _sync_upload(
        self,
        remote_file: str,
        local_file: str,
        callback: Optional[CompletionCallback],
        progress: Optional[ProgressCallback],
    ) -> bool:
        is_performed = False
        if os.path.isfile(local_file):
            try:
                with open(local_file, "rb") as file_stream:
                    size = os.fstat(file_stream.fileno()).st_size
                    is_performed = self._put(remote_file, file_stream, size, progress)
            except OSError:
                log.error("can't read from %s" % local_file, exc_info=True)
        else:
            log.info("%s is not a file, nothing uploaded" % local_file)
        if callback is not None:
            callback(is_performed)
        return is_performed

    def upload_from(
        self,
        remote_file: str,
        source: Any,
        progress: Optional[ProgressCallback] = None,
    ) -> bool:
        """
        Uploads a bytes-like object, or a readable binary stream from
        its current position to the end.  The buffer is not copied and
        not referenced after the call returns.
        """
        if isinstance(source, BytesLike):
            size: Optional[int] = memoryview(source).nbytes
        else:
            size = stream_size(source)
        return self._put(remote_file, source, size, progress)

    def _put(
        self,
        remote_file: str,
        source: Any,
        size: Optional[int],
        progress: Optional[ProgressCallback],
    ) -> bool:
        outcome, _ = self._perform(
            "PUT",
            self.target(remote_file),
            body=source,
            upload_size=size,
            progress=progress,
        )
        return outcome.is_success()

    ## Asynchronous variants

    def _submit(self, fn, *args) -> "Future[bool]":
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="wdc"
                )
            return self._pool.submit(fn, *args)

    def async_download(
        self,
        remote_file: str,
        local_file: str,
        callback: Optional[CompletionCallback] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> "Future[bool]":
        """
        Runs download() on a worker thread.  callback is called with
        the result from that thread.  The returned future carries the
        same result.

        There is no way to stop a running transfer except through the
        progress callback, and no ordering between several async calls.
        """
        return self._submit(self._sync_download, remote_file, local_file, callback, progress)

    def async_upload(
        self,
        remote_file: str,
        local_file: str,
        callback: Optional[CompletionCallback] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> "Future[bool]":
        """Runs upload() on a worker thread, see async_download"""
        return self._submit(self._sync_upload, remote_file, local_file, callback, progress)


def stream_size(stream: Any) -> Optional[int]:
    """Bytes left in a seekable stream, None if it can't be told"""
    try:
        start = stream.tell()
        end = stream.seek(0, os.SEEK_END)
        stream.seek(start)
    except (AttributeError, OSError, ValueError):
        return None
    return end - start


def get_client(
    check_config_file: bool = True,
    config_file: Optional[str] = None,
    config_section: Optional[str] = None,
    environment: bool = True,
    **config_data,
) -> Optional[Client]:
    """
    This function will yield a Client object.  It will not try to
    connect.  It will read configuration from various sources,
    dependent on the parameters given, in this order:

    * Data from the parameters given
    * Environment variables prepended with `WDC_`, like `WDC_WEBDAV_HOSTNAME`, `WDC_WEBDAV_USERNAME`, `WDC_WEBDAV_PASSWORD`.
    * Environment variables `WDC_CONFIG_FILE` and `WDC_CONFIG_SECTION` will be honored if environment is set
    * Configuration file, see wdc.config
    """
    if config_data:
        return Client(config_data)

    if environment:
        conf = {}
        for key in Configuration.keys():
            value = os.environ.get("WDC_" + key.upper())
            if value:
                conf[key] = value
        if conf:
            return Client(conf)
        if not config_file:
            config_file = os.environ.get("WDC_CONFIG_FILE")
        if not config_section:
            config_section = os.environ.get("WDC_CONFIG_SECTION")

    if check_config_file:
        if not config_section:
            config_section = "default"

        cfg = config.read_config(config_file)
        if cfg:
            section = config.config_section(cfg, config_section)
            conn_params = {
                k: section[k] for k in section if k in Configuration.keys() and section[k]
            }
            if conn_params:
                return Client(conn_params)
    return None
