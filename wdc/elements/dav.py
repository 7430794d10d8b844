#!/usr/bin/env python
from typing import ClassVar

from .base import BaseElement
from wdc.lib.namespace import ns


# Operations
class Propfind(BaseElement):
    tag: ClassVar[str] = ns("D", "propfind")


# Components / Data
class MultiStatus(BaseElement):
    tag: ClassVar[str] = ns("D", "multistatus")


class Response(BaseElement):
    tag: ClassVar[str] = ns("D", "response")


class Href(BaseElement):
    tag: ClassVar[str] = ns("D", "href")


class PropStat(BaseElement):
    tag: ClassVar[str] = ns("D", "propstat")


class Status(BaseElement):
    tag: ClassVar[str] = ns("D", "status")


class Prop(BaseElement):
    tag: ClassVar[str] = ns("D", "prop")


class Collection(BaseElement):
    tag: ClassVar[str] = ns("D", "collection")


# Properties
class CreationDate(BaseElement):
    tag: ClassVar[str] = ns("D", "creationdate")


class DisplayName(BaseElement):
    tag: ClassVar[str] = ns("D", "displayname")


class GetContentLength(BaseElement):
    tag: ClassVar[str] = ns("D", "getcontentlength")


class GetLastModified(BaseElement):
    tag: ClassVar[str] = ns("D", "getlastmodified")


class ResourceType(BaseElement):
    tag: ClassVar[str] = ns("D", "resourcetype")


class GetEtag(BaseElement):
    tag: ClassVar[str] = ns("D", "getetag")


# RFC 4331
class QuotaAvailableBytes(BaseElement):
    tag: ClassVar[str] = ns("D", "quota-available-bytes")


class QuotaUsedBytes(BaseElement):
    tag: ClassVar[str] = ns("D", "quota-used-bytes")
