"""Fetching and parsing of RSS documents."""

from __future__ import annotations

import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

__all__ = ["RSSItem", "RSSChannel", "RSSFeed", "parse_feed", "url_to_feed"]

_ITEM_FIELDS = {
    "title": "title",
    "link": "link",
    "description": "description",
    "pubDate": "pub_date",
}
_CHANNEL_FIELDS = {
    "title": "title",
    "link": "link",
    "description": "description",
    "language": "language",
}


@dataclass
class RSSItem:
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSChannel:
    title: str = ""
    link: str = ""
    description: str = ""
    language: str = ""
    items: list[RSSItem] = field(default_factory=list)


@dataclass
class RSSFeed:
    channel: RSSChannel = field(default_factory=RSSChannel)


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _direct_text(element: ET.Element) -> str:
    """Character data of the element itself, without that of nested elements."""
    return (element.text or "") + "".join(child.tail or "" for child in element)


def _parse_item(element: ET.Element) -> RSSItem:
    item = RSSItem()
    for child in element:
        attribute = _ITEM_FIELDS.get(_local_name(child.tag))
        if attribute is not None:
            setattr(item, attribute, _direct_text(child))
    return item


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document; element names match regardless of namespace.

    Raises ValueError when the document is not well-formed XML.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"invalid feed XML: {exc}") from exc

    feed = RSSFeed()
    channel = feed.channel
    for element in root:
        if _local_name(element.tag) != "channel":
            continue
        for child in element:
            name = _local_name(child.tag)
            if name == "item":
                channel.items.append(_parse_item(child))
            elif name in _CHANNEL_FIELDS:
                setattr(channel, _CHANNEL_FIELDS[name], _direct_text(child))
    return feed


def url_to_feed(url: str, timeout: float = 10.0) -> RSSFeed:
    """Download ``url`` and parse the body, whatever the response status."""
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            data = response.read()
    except urllib.error.HTTPError as exc:
        with exc:
            data = exc.read()
    return parse_feed(data)