"""
Sans-I/O WebDAV protocol helpers.

- types: Result types (Resource)
- xml_builders: Pure functions to build XML request bodies
- xml_parsers: Pure functions to parse XML response bodies

Example usage:

    from wdc.protocol import build_quota_body, parse_quota

    body = build_quota_body()
    # ... send it with a PROPFIND, Depth: 0 ...
    available = parse_quota(response_body)
"""

from .types import Resource
from .xml_builders import build_quota_body
from .xml_parsers import parse_content_length
from .xml_parsers import parse_multistatus
from .xml_parsers import parse_quota
from .xml_parsers import parse_resource

__all__ = [
    "Resource",
    "build_quota_body",
    "parse_content_length",
    "parse_multistatus",
    "parse_quota",
    "parse_resource",
]
