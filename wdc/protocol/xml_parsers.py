"""
Pure functions for parsing WebDAV XML responses.

All functions in this module are pure - they take XML bytes in and return
structured data out, with no side effects or I/O.

Servers disagree on namespace prefixes ("D:", "d:", none at all) and
some even on the case of the tag names, so elements are matched on
their lower-cased local name only.
"""
import logging
from typing import Dict
from typing import List
from typing import Optional
from typing import Union
from urllib.parse import unquote
from urllib.parse import urlsplit

from lxml import etree
from lxml.etree import _Element

from .types import Resource
from wdc.elements import dav
from wdc.lib import error
from wdc.lib.httpdate import parse_http_date

log = logging.getLogger(__name__)


def parse_multistatus(body: bytes, huge_tree: bool = False) -> List[Resource]:
    """
    Parse a 207 Multi-Status response body into resources, in the
    order the server sent them.  Responses without an href are left
    out.

    Raises:
        XMLSyntaxError: If body is not valid XML
    """
    tree = _parse_xml(body, huge_tree=huge_tree)
    resources: List[Resource] = []
    for elem in _strip_to_multistatus(tree):
        if _localname(elem) != dav.Response.localname():
            continue
        resource = parse_resource(elem)
        if resource is not None:
            resources.append(resource)
    return resources


def parse_resource(node: _Element) -> Optional[Resource]:
    """
    Converts one DAV:response element into a Resource.

    Only a missing href makes the entry unusable.  Everything else
    that is missing or unparsable ends up as None in the Resource,
    so a single odd entry never spoils a directory listing.
    """
    href = _find(node, dav.Href.localname())
    if href is None or not href.text:
        error.weirdness("response without href", node)
        return None

    props = _collect_props(node)
    return Resource(
        href=_href_to_path(href.text),
        display_name=_text(props.get(dav.DisplayName.localname())),
        size=parse_content_length(_text(props.get(dav.GetContentLength.localname()))),
        modified=parse_http_date(_text(props.get(dav.GetLastModified.localname()))),
        created=parse_http_date(_text(props.get(dav.CreationDate.localname()))),
        type=_resource_type(props.get(dav.ResourceType.localname())),
        etag=_text(props.get(dav.GetEtag.localname())),
    )


def parse_quota(body: bytes, huge_tree: bool = False) -> int:
    """
    Available bytes according to the first response of a quota
    PROPFIND.  Anything unexpected, including a server not supporting
    RFC 4331 at all, gives 0.
    """
    try:
        tree = _parse_xml(body, huge_tree=huge_tree)
    except etree.XMLSyntaxError:
        log.debug("quota response is not XML", exc_info=True)
        return 0
    for elem in _strip_to_multistatus(tree):
        if _localname(elem) != dav.Response.localname():
            continue
        props = _collect_props(elem)
        value = parse_content_length(
            _text(props.get(dav.QuotaAvailableBytes.localname()))
        )
        if value is None or value < 0:
            return 0
        return value
    return 0


def parse_content_length(text: Optional[str]) -> Optional[int]:
    if text is None or "_" in text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


# Helper functions


def _parse_xml(body: bytes, huge_tree: bool = False) -> _Element:
    parser = etree.XMLParser(
        remove_blank_text=True, huge_tree=huge_tree, resolve_entities=False
    )
    return etree.fromstring(body, parser)


def _localname(elem: _Element) -> Optional[str]:
    ## comments and processing instructions have no string tag
    if not isinstance(elem.tag, str):
        return None
    return etree.QName(elem).localname.lower()


def _find(node: _Element, name: str) -> Optional[_Element]:
    for child in node:
        if _localname(child) == name:
            return child
    return None


def _findall(node: _Element, name: str) -> List[_Element]:
    return [child for child in node if _localname(child) == name]


def _text(elem: Optional[_Element]) -> Optional[str]:
    if elem is None:
        return None
    return (elem.text or "").strip()


def _strip_to_multistatus(tree: _Element) -> Union[_Element, List[_Element]]:
    """
    The general format is:
        <xml><multistatus>
            <response>...</response>
            <response>...</response>
        </multistatus></xml>

    But sometimes multistatus is wrapped in something else, or missing
    altogether.  Returns the element(s) containing responses.
    """
    for elem in tree.iter():
        if _localname(elem) == dav.MultiStatus.localname():
            return elem
    return [tree]


def _href_to_path(text: str) -> str:
    text = text.strip()
    # Fix for double-encoded URLs (e.g., Confluence)
    if "%2540" in text:
        text = text.replace("%2540", "%40")
    ## Some servers send absolute URLs, the caller expects paths
    parts = urlsplit(text)
    if parts.scheme and parts.netloc:
        text = parts.path or "/"
    return unquote(text)


def _status_ok(propstat: _Element) -> bool:
    """
    status is a string like "HTTP/1.1 404 Not Found".  Properties the
    server could not deliver come in a propstat with a non-2xx status.
    No status, or one we can't make sense of, is given the benefit of
    the doubt.
    """
    status = _text(_find(propstat, dav.Status.localname()))
    if not status:
        return True
    parts = status.split()
    if len(parts) < 2 or not parts[1].isdigit():
        error.weirdness("unexpected propstat status", status)
        return True
    return 200 <= int(parts[1]) < 300


def _collect_props(node: _Element) -> Dict[str, _Element]:
    """
    The properties may be delivered either in one propstat with
    multiple props or in multiple propstats.  The first occurrence of
    a property wins.
    """
    props: Dict[str, _Element] = {}
    for propstat in _findall(node, dav.PropStat.localname()):
        if not _status_ok(propstat):
            continue
        for prop in _findall(propstat, dav.Prop.localname()):
            for child in prop:
                name = _localname(child)
                if name and name not in props:
                    props[name] = child
    return props


def _resource_type(elem: Optional[_Element]) -> Optional[str]:
    if elem is None:
        return None
    for child in elem:
        if isinstance(child.tag, str):
            return etree.QName(child).localname
    return None
