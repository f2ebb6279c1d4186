"""
Sitemap assembler: plan -> XML bytes.

Renders ``<urlset>`` documents and the ``<sitemapindex>`` with
xml.etree.ElementTree. Optional elements are written only when the record
carries a value. Output is deterministic: the same records always give the
same bytes; the only date in an index is the one passed in with it.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Iterable

from sitemap_engines.chunking import SitemapIndex
from sitemap_ingestion.domain.types import UrlRecord

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
XML_DECLARATION = b'<?xml version="1.0" encoding="UTF-8"?>\n'


def format_priority(priority: float) -> str:
    """Two decimals at most, at least one: 0.8, 1.0, 0.85."""
    text = f"{priority:.2f}".rstrip("0")
    if text.endswith("."):
        text += "0"
    return text


def index_location(name: str, base_url: str | None) -> str:
    if not base_url:
        return name
    return f"{base_url.rstrip('/')}/{name}"


def _serialize(root: ET.Element) -> bytes:
    ET.indent(root, space="  ")
    return XML_DECLARATION + ET.tostring(root, encoding="utf-8", xml_declaration=False) + b"\n"


def render_urlset(records: Iterable[UrlRecord]) -> bytes:
    root = ET.Element("urlset")
    root.set("xmlns", SITEMAP_NS)
    for record in records:
        url = ET.SubElement(root, "url")
        ET.SubElement(url, "loc").text = record.loc
        if record.lastmod:
            ET.SubElement(url, "lastmod").text = record.lastmod
        if record.changefreq:
            ET.SubElement(url, "changefreq").text = record.changefreq
        if record.priority is not None:
            ET.SubElement(url, "priority").text = format_priority(record.priority)
    return _serialize(root)


def render_index(index: SitemapIndex, base_url: str | None = None) -> bytes:
    root = ET.Element("sitemapindex")
    root.set("xmlns", SITEMAP_NS)
    lastmod = index.lastmod.isoformat()
    for name in index.entries:
        sitemap = ET.SubElement(root, "sitemap")
        ET.SubElement(sitemap, "loc").text = index_location(name, base_url)
        ET.SubElement(sitemap, "lastmod").text = lastmod
    return _serialize(root)
