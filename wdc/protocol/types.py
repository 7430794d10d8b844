"""
Result types of the WebDAV protocol layer.

These dataclasses hold what was parsed out of server responses,
independent of how the request was made.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from wdc.elements import dav


@dataclass(frozen=True)
class Resource:
    """
    One resource described in a PROPFIND multistatus response.

    Attributes:
        href: decoded path of the resource, as given by the server
        display_name: the displayname property
        size: getcontentlength, None if missing or not a number
        modified: getlastmodified, naive datetime (see wdc.lib.httpdate)
        created: creationdate, naive datetime
        type: local name of the resourcetype child, i.e. "collection"
        etag: getetag, quotes included as sent by the server
    """

    href: str
    display_name: Optional[str] = None
    size: Optional[int] = None
    modified: Optional[datetime] = None
    created: Optional[datetime] = None
    type: Optional[str] = None
    etag: Optional[str] = None

    @property
    def is_directory(self) -> bool:
        return self.type is not None and dav.Collection.localname() in self.type.lower()

    @property
    def name(self) -> str:
        return self.href.rstrip("/").rsplit("/", 1)[-1]

    def __str__(self) -> str:
        def _(value):
            return "(none)" if value is None else value

        return (
            "href: %s display_name: %s size: %s modified: %s created: %s type: %s etag: %s"
            % (
                self.href,
                _(self.display_name),
                _(self.size),
                _(self.modified),
                _(self.created),
                _(self.type),
                _(self.etag),
            )
        )
