"""Write rendered pages, fragments, templates and the route manifest to disk."""

from __future__ import annotations

import dataclasses
import json
import logging
from typing import TYPE_CHECKING

import minify_html

from cmsbuild.exceptions import BuildError
from cmsbuild.models.content import ABSENT, PageContent, prefix_path, with_locale_prefix
from cmsbuild.services.composer import (
    render_fragment,
    render_page,
    route_metadata,
    strip_cms_attributes,
)
from cmsbuild.services.planner import FetchResult
from cmsbuild.services.slug_service import (
    path_slug,
    path_to_file,
    path_to_fragment_file,
    path_to_template_file,
)

if TYPE_CHECKING:
    from pathlib import Path

    from cmsbuild.models.content import SiteLocale
    from cmsbuild.services.registry import Registry

logger = logging.getLogger(__name__)

ROUTE_MANIFEST_FILE = "_routes.json"


def minify_document(html: str) -> str:
    """Minify HTML with its inline CSS and JS; return the input unchanged on failure."""
    try:
        return minify_html.minify(html, minify_js=True, minify_css=True)
    except Exception:
        logger.warning("Minification failed, writing unminified output", exc_info=True)
        return html


def write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path``, creating parent directories."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise BuildError(f"Cannot write {path}: {exc}", path=str(path)) from exc


def build_listings(results: list[FetchResult]) -> dict[str, list[PageContent]]:
    """Group collection-entry pages by collection key, in fetch order."""
    listings: dict[str, list[PageContent]] = {}
    for result in results:
        if result.job.collection_key:
            listings.setdefault(result.job.collection_key, []).append(result.page)
    return listings


def localize_results(
    results: list[FetchResult],
    prefix: str,
    locales: list[SiteLocale],
    default_locale: str,
) -> list[FetchResult]:
    """Return copies of ``results`` addressed under locale ``prefix``.

    An empty ``prefix`` keeps the unprefixed paths, which is how the default
    locale is additionally published at the site root.
    """
    localized: list[FetchResult] = []
    for result in results:
        page = result.page
        localized_page = dataclasses.replace(
            page,
            content_path=page.path,
            path=prefix_path(prefix, page.path) if prefix else page.path,
            locales=list(locales),
            default_locale=default_locale,
            locale_prefix=prefix,
            subcollections=with_locale_prefix(page.subcollections, prefix),
        )
        localized.append(FetchResult(job=result.job, page=localized_page))
    return localized


class Emitter:
    """Writes build artifacts for one output directory."""

    def __init__(self, registry: Registry, out_dir: Path, *, minify: bool = False) -> None:
        self.registry = registry
        self.out_dir = out_dir
        self.minify = minify

    def _production(self, html: str) -> str:
        html = strip_cms_attributes(html)
        if self.minify:
            html = minify_document(html)
        return html

    def write_results(self, results: list[FetchResult]) -> None:
        """Attach listings and the layout manifest, then write every page."""
        listings = build_listings(results)
        manifest = self.registry.layout_manifest()
        for result in results:
            page = dataclasses.replace(result.page, layout_manifest=manifest)
            if not result.job.collection_key and not result.job.is_template and listings:
                page.listings = listings
            self.write_page(page)

    def write_page(self, page: PageContent) -> None:
        """Write the production HTML and, with layouts, every fragment.

        A page whose render fails is skipped; the failure is already logged.
        """
        html = render_page(self.registry, page)
        if html is None:
            return
        write_text(path_to_file(self.out_dir, page.path), self._production(html))
        if self.registry.has_layouts():
            self.write_fragments(page)

    def write_fragments(self, page: PageContent) -> None:
        """Write ``_{layout_id}.html`` for each layout in the page's chain."""
        chain = self.registry.layout_chain(page.effective_content_path)
        if not chain:
            return
        prefix = route_metadata(page)
        for layout in chain:
            fragment = render_fragment(self.registry, page, layout.id)
            if not fragment:
                continue
            write_text(
                path_to_fragment_file(self.out_dir, page.path, layout.id),
                prefix + self._production(fragment),
            )

    def write_template_files(self, locale: str) -> None:
        """Render authoring templates with no CMS data, attributes intact."""
        paths = [page_def.path for page_def in self.registry.pages]
        paths += [collection.base_path for collection in self.registry.collections]
        paths += [collection.template_url for collection in self.registry.collections]
        for path in paths:
            page = PageContent(
                path=path, slug=path_slug(path), locale=locale, subcollections=ABSENT
            )
            html = render_page(self.registry, page)
            if not html:
                continue
            write_text(path_to_template_file(self.out_dir, path), html)

    def write_route_manifest(self) -> None:
        """Write ``_routes.json`` mapping layout prefixes to ids."""
        data = json.dumps({"layouts": self.registry.layout_manifest()})
        write_text(self.out_dir / ROUTE_MANIFEST_FILE, data)
