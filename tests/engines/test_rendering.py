"""Tests for the sitemap assembler (sitemap_engines.rendering)."""

import xml.etree.ElementTree as ET
from datetime import date

import pytest

from sitemap_engines.chunking import SitemapIndex
from sitemap_engines.rendering import (
    SITEMAP_NS,
    format_priority,
    index_location,
    render_index,
    render_urlset,
)
from sitemap_ingestion.domain.types import UrlRecord

NS = {"sm": SITEMAP_NS}


class TestRenderUrlset:
    def test_document(self):
        records = [
            UrlRecord("https://x.io/a?x=1&y=2", "sitemap", 1, lastmod="2024-01-01", changefreq="daily", priority=0.8),
            UrlRecord("https://x.io/b", "sitemap", 2),
        ]
        data = render_urlset(records)

        assert data.startswith(b'<?xml version="1.0" encoding="UTF-8"?>\n')
        assert b"&amp;" in data
        root = ET.fromstring(data)
        assert root.tag == f"{{{SITEMAP_NS}}}urlset"
        urls = root.findall("sm:url", NS)
        assert [u.findtext("sm:loc", namespaces=NS) for u in urls] == ["https://x.io/a?x=1&y=2", "https://x.io/b"]
        assert urls[0].findtext("sm:lastmod", namespaces=NS) == "2024-01-01"
        assert urls[0].findtext("sm:changefreq", namespaces=NS) == "daily"
        assert urls[0].findtext("sm:priority", namespaces=NS) == "0.8"
        assert urls[1].find("sm:lastmod", NS) is None
        assert urls[1].find("sm:priority", NS) is None

    def test_deterministic(self):
        records = [UrlRecord("https://x.io/a", "sitemap", 1)]
        assert render_urlset(records) == render_urlset(records)

    def test_empty(self):
        root = ET.fromstring(render_urlset([]))
        assert list(root) == []


class TestRenderIndex:
    def test_with_base_url(self):
        index = SitemapIndex(entries=("sitemap_1.xml", "sitemap_2.xml"), lastmod=date(2026, 2, 1))
        root = ET.fromstring(render_index(index, "https://x.io/"))
        entries = root.findall("sm:sitemap", NS)
        assert root.tag == f"{{{SITEMAP_NS}}}sitemapindex"
        assert [e.findtext("sm:loc", namespaces=NS) for e in entries] == [
            "https://x.io/sitemap_1.xml",
            "https://x.io/sitemap_2.xml",
        ]
        assert {e.findtext("sm:lastmod", namespaces=NS) for e in entries} == {"2026-02-01"}

    def test_without_base_url(self):
        assert index_location("sitemap_1.xml", None) == "sitemap_1.xml"


@pytest.mark.parametrize("value, expected", [(0.8, "0.8"), (1, "1.0"), (0.85, "0.85"), (0.0, "0.0"), (0.5, "0.5")])
def test_format_priority(value, expected):
    assert format_priority(value) == expected
