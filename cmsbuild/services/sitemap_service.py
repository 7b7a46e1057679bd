"""Sitemap and robots.txt generation."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cmsbuild.exceptions import ContentServiceError
from cmsbuild.models.content import prefix_path
from cmsbuild.services.datetime_service import build_date, format_sitemap_date
from cmsbuild.services.emitter import write_text
from cmsbuild.services.slug_service import is_error_page

if TYPE_CHECKING:
    from pathlib import Path

    from cmsbuild.config import Settings
    from cmsbuild.models.content import SiteLocale
    from cmsbuild.schemas.api import PageListItem
    from cmsbuild.services.content_client import ContentClient
    from cmsbuild.services.registry import Registry

logger = logging.getLogger(__name__)

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
XHTML_NS = "http://www.w3.org/1999/xhtml"
MAX_SITEMAP_URLS = 50_000
XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n'

LISTING_PRIORITY = 0.7
ENTRY_PRIORITY = 0.6


def default_page_priority(path: str) -> float:
    """1.0 for ``/``, 0.8 for top-level pages, 0.7 for deeper ones."""
    if path == "/":
        return 1.0
    if path.strip("/").count("/") == 0:
        return 0.8
    return 0.7


def format_priority(priority: float) -> str:
    return f"{priority:.1f}"


@dataclass
class SitemapEntry:
    path: str
    # Unprefixed path; alternates for every locale are derived from it.
    content_path: str
    last_mod: str
    change_freq: str
    priority: str


@dataclass
class SitemapData:
    """Collected sitemap URLs: fixed and listing pages, plus entries per collection."""

    site_url: str
    pages: list[SitemapEntry] = field(default_factory=list)
    collections: dict[str, list[SitemapEntry]] = field(default_factory=dict)
    locales: list[SiteLocale] = field(default_factory=list)

    @property
    def multi_locale(self) -> bool:
        return len(self.locales) > 1

    def total_urls(self) -> int:
        return len(self.pages) + sum(len(entries) for entries in self.collections.values())

    def _url_element(self, parent: ET.Element, entry: SitemapEntry) -> None:
        url = ET.SubElement(parent, "url")
        ET.SubElement(url, "loc").text = self.site_url + entry.path
        if entry.last_mod:
            ET.SubElement(url, "lastmod").text = entry.last_mod
        if entry.change_freq:
            ET.SubElement(url, "changefreq").text = entry.change_freq
        if entry.priority:
            ET.SubElement(url, "priority").text = entry.priority
        if not self.multi_locale:
            return
        for locale in self.locales:
            ET.SubElement(
                url,
                "xhtml:link",
                rel="alternate",
                hreflang=locale.code,
                href=self.site_url + prefix_path("/" + locale.code, entry.content_path),
            )
        # x-default points at the unprefixed (default locale) URL.
        ET.SubElement(
            url,
            "xhtml:link",
            rel="alternate",
            hreflang="x-default",
            href=self.site_url + entry.content_path,
        )

    def _write_url_set(self, path: Path, entries: list[SitemapEntry]) -> None:
        root = ET.Element("urlset", xmlns=SITEMAP_NS)
        if self.multi_locale:
            root.set("xmlns:xhtml", XHTML_NS)
        for entry in entries:
            self._url_element(root, entry)
        _write_xml(path, root)

    def write(self, out_dir: Path) -> list[str]:
        """Write ``sitemap.xml`` (and shards when needed); return the file names."""
        entries_by_collection = list(self.collections.items())
        if self.total_urls() <= MAX_SITEMAP_URLS and len(entries_by_collection) <= 1:
            all_entries = list(self.pages)
            for _, entries in entries_by_collection:
                all_entries.extend(entries)
            self._write_url_set(out_dir / "sitemap.xml", all_entries)
            return ["sitemap.xml"]

        # Every shard, the fixed-page one included, stays within the per-file limit.
        written: list[str] = []
        for key, entries in [("pages", self.pages), *entries_by_collection]:
            chunks = [
                entries[start : start + MAX_SITEMAP_URLS]
                for start in range(0, len(entries), MAX_SITEMAP_URLS)
            ]
            for number, chunk in enumerate(chunks, start=1):
                suffix = f"-{number}" if len(chunks) > 1 else ""
                filename = f"sitemap-{key}{suffix}.xml"
                self._write_url_set(out_dir / filename, chunk)
                written.append(filename)

        index = ET.Element("sitemapindex", xmlns=SITEMAP_NS)
        for filename in written:
            sitemap = ET.SubElement(index, "sitemap")
            ET.SubElement(sitemap, "loc").text = f"{self.site_url}/{filename}"
        _write_xml(out_dir / "sitemap.xml", index)
        return ["sitemap.xml", *written]


def _write_xml(path: Path, root: ET.Element) -> None:
    ET.indent(root, space="  ")
    write_text(path, XML_HEADER + ET.tostring(root, encoding="unicode") + "\n")


def _locale_paths(
    path: str, locales: list[SiteLocale], default_locale: str
) -> list[str]:
    """The published path of ``path`` per locale; unprefixed for the default."""
    if len(locales) <= 1:
        return [path]
    return [
        path if locale.code == default_locale else prefix_path("/" + locale.code, path)
        for locale in locales
    ]


def collect_sitemap_urls(
    registry: Registry,
    remote_pages: list[PageListItem],
    site_url: str,
    *,
    locales: list[SiteLocale] | None = None,
    default_locale: str = "",
    today: str | None = None,
) -> SitemapData:
    """Gather sitemap URLs, skipping error pages, no-sitemap pages and templates."""
    locales = list(locales or [])
    today = today or build_date()
    data = SitemapData(site_url=site_url.rstrip("/"), locales=locales)

    updated: dict[str, str] = {}
    for item in remote_pages:
        last_mod = format_sitemap_date(item.updated_at)
        if last_mod:
            updated[item.path] = last_mod

    def _entries(path: str, last_mod: str, change_freq: str, priority: str) -> list[SitemapEntry]:
        return [
            SitemapEntry(
                path=published,
                content_path=path,
                last_mod=last_mod,
                change_freq=change_freq,
                priority=priority,
            )
            for published in _locale_paths(path, locales, default_locale)
        ]

    for page_def in registry.pages:
        if page_def.no_sitemap or is_error_page(page_def.path):
            continue
        priority = page_def.sitemap_priority
        if priority is None:
            priority = default_page_priority(page_def.path)
        change_freq = page_def.sitemap_change_freq or (
            "daily" if page_def.path == "/" else "weekly"
        )
        data.pages.extend(
            _entries(
                page_def.path,
                updated.get(page_def.path, today),
                change_freq,
                format_priority(priority),
            )
        )

    for collection in registry.collections:
        if is_error_page(collection.base_path):
            continue
        data.pages.extend(
            _entries(collection.base_path, today, "weekly", format_priority(LISTING_PRIORITY))
        )

    for collection in registry.collections:
        prefix = collection.base_path + "/"
        entries: list[SitemapEntry] = []
        for item in remote_pages:
            if not item.path.startswith(prefix) or item.path == collection.template_url:
                continue
            entries.extend(
                _entries(
                    item.path,
                    updated.get(item.path, today),
                    "weekly",
                    format_priority(ENTRY_PRIORITY),
                )
            )
        if entries:
            data.collections.setdefault(collection.key, []).extend(entries)

    return data


def write_robots_txt(out_dir: Path, site_url: str) -> None:
    content = f"User-agent: *\nAllow: /\n\nSitemap: {site_url.rstrip('/')}/sitemap.xml\n"
    write_text(out_dir / "robots.txt", content)


async def resolve_site_url(settings: Settings, client: ContentClient) -> str:
    """Return the configured site URL, else the service's domain with a scheme.

    Empty when neither is available, which disables sitemap generation.
    """
    if settings.site_url:
        return settings.site_url
    try:
        info = await client.get_site_info()
    except ContentServiceError as exc:
        logger.info("Skipping sitemap: site info unavailable (%s)", exc)
        return ""
    domain = info.domain or ""
    if not domain:
        return ""
    if not domain.startswith(("http://", "https://")):
        domain = "https://" + domain
    return domain
