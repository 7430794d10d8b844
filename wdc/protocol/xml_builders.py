"""
Pure functions for building WebDAV XML request bodies.

All functions in this module are pure - they take data in and return XML out,
with no side effects or I/O.
"""
from lxml import etree

from wdc.elements import dav


def build_quota_body() -> bytes:
    """
    PROPFIND body asking for the RFC 4331 quota properties.

    Returns:
        UTF-8 encoded XML bytes
    """
    prop = dav.Prop() + [dav.QuotaAvailableBytes(), dav.QuotaUsedBytes()]
    propfind = dav.Propfind() + prop
    return etree.tostring(propfind.xmlelement(), encoding="utf-8", xml_declaration=True)
