#!/usr/bin/env python
import sys
from typing import Callable
from typing import Optional
from typing import Tuple
from typing import Union
from urllib.parse import quote
from urllib.parse import unquote

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

SEPARATOR = "/"


class RemotePath:
    """
    A path on the WebDAV server, relative to the server host.  It's
    used internally in the library for building request URLs; all
    public methods of the client accept plain strings.

    The path is kept as a tuple of segments and a directory flag.
    Empty segments (from doubled or trailing separators) and "."
    segments are dropped, so that::

        RemotePath("/remote.php//webdav/", True) + "docs/a.txt"

    always renders as "/remote.php/webdav/docs/a.txt".  Directories
    render with exactly one trailing separator, files never have one.
    The root path renders as "/" no matter the flag.

    Nothing in this class raises on odd input; it's normalized instead.
    """

    def __init__(self, raw: Union[str, Self, None] = SEPARATOR, directory: bool = False) -> None:
        if isinstance(raw, RemotePath):
            self.segments: Tuple[str, ...] = raw.segments
            self.directory = directory or raw.directory
            return
        raw = raw or ""
        self.segments = tuple(s for s in raw.split(SEPARATOR) if s and s != ".")
        self.directory = directory or raw.endswith(SEPARATOR)

    @classmethod
    def objectify(cls, path: Union[Self, str, None]) -> "RemotePath":
        if isinstance(path, RemotePath):
            return path
        return RemotePath(path)

    @classmethod
    def decode(cls, encoded: str, directory: bool = False) -> "RemotePath":
        """The inverse of quote(), for paths taken from a log or an href"""
        path = RemotePath(encoded, directory)
        path.segments = tuple(unquote(s) for s in path.segments)
        return path

    def __add__(self, other: Union[Self, str, None]) -> "RemotePath":
        other = RemotePath.objectify(other)
        ret = RemotePath()
        ret.segments = self.segments + other.segments
        ## an empty relative part keeps pointing at the base
        ret.directory = other.directory if other.segments else self.directory
        return ret

    concat = __add__

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            other = RemotePath(other)
        if not isinstance(other, RemotePath):
            return NotImplemented
        return self.path == other.path

    def __ne__(self, other: object) -> bool:
        return not self == other

    def __hash__(self) -> int:
        return hash(self.path)

    def __str__(self) -> str:
        return self.path

    def __repr__(self) -> str:
        return "RemotePath(%s)" % self.path

    def is_root(self) -> bool:
        return not self.segments

    @property
    def name(self) -> str:
        return self.segments[-1] if self.segments else ""

    @property
    def path(self) -> str:
        return self._render(self.segments)

    def as_string(self) -> str:
        return self.path

    def _render(self, segments) -> str:
        if not segments:
            return SEPARATOR
        ret = SEPARATOR + SEPARATOR.join(segments)
        if self.directory:
            ret += SEPARATOR
        return ret

    def parent(self) -> "RemotePath":
        """
        The directory above this one.  At the root there is nowhere to
        go, so the root itself is returned; callers walking upwards
        compare with the previous value to know when to stop.
        """
        ret = RemotePath()
        ret.segments = self.segments[:-1]
        ret.directory = True
        return ret

    def quote(self, escape: Optional[Callable[..., str]] = None) -> str:
        """
        Percent-encoded path, safe for use in a request URL.  escape
        is called once per segment and must encode the separator too.
        """
        escape = escape or (lambda s: quote(s, safe=""))
        return self._render([escape(s) for s in self.segments])

    @property
    def encoded(self) -> str:
        return self.quote()

    def without_trailing_separator(self) -> str:
        return self.path.rstrip(SEPARATOR) or SEPARATOR
