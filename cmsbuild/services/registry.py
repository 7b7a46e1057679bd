"""Registry of page, collection, layout and email-template descriptors."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from markupsafe import Markup

from cmsbuild.schemas.sync import EmailVariable
from cmsbuild.services.slug_service import collection_key, title_from_path

if TYPE_CHECKING:
    from cmsbuild.models.content import PageContent

logger = logging.getLogger(__name__)

RenderFunc = Callable[["PageContent"], str]
LayoutFunc = Callable[["PageContent", Markup], str]

TEMPLATE_SEGMENT = "_template"


@dataclass
class PageDef:
    path: str
    title: str
    render: RenderFunc
    no_sitemap: bool = False
    sitemap_priority: float | None = None
    sitemap_change_freq: str = ""


PageOption = Callable[[PageDef], None]


def _no_sitemap(page: PageDef) -> None:
    page.no_sitemap = True


NO_SITEMAP: PageOption = _no_sitemap


def priority(value: float) -> PageOption:
    """Override the page's sitemap priority."""

    def _apply(page: PageDef) -> None:
        page.sitemap_priority = value

    return _apply


def change_freq(value: str) -> PageOption:
    """Override the page's sitemap change frequency."""

    def _apply(page: PageDef) -> None:
        page.sitemap_change_freq = value

    return _apply


@dataclass
class CollectionDef:
    base_path: str
    key: str
    label: str
    listing: RenderFunc
    entry: RenderFunc
    template_url: str


@dataclass
class EmailTemplateDef:
    key: str
    label: str
    subject: str
    html: str
    variables: list[EmailVariable] = field(default_factory=list)


@dataclass
class LayoutDef:
    path_prefix: str
    id: str
    wrap: LayoutFunc

    def matches(self, content_path: str) -> bool:
        return (
            self.path_prefix == "/"
            or content_path == self.path_prefix
            or content_path.startswith(self.path_prefix + "/")
        )


class RouteType(StrEnum):
    PAGE = "page"
    LISTING = "listing"
    ENTRY = "entry"


@dataclass
class ScannedRoute:
    """A route discovered outside the registry, e.g. from template files."""

    file_path: str
    url_pattern: str
    route_type: RouteType


class RegistryFrozenError(RuntimeError):
    """Raised when registering after a build has started."""


class Registry:
    """Ordered descriptor lists plus layout-chain and component resolution."""

    def __init__(self) -> None:
        self.pages: list[PageDef] = []
        self.collections: list[CollectionDef] = []
        self.email_templates: list[EmailTemplateDef] = []
        self.layouts: list[LayoutDef] = []
        self._frozen = False

    def freeze(self) -> None:
        self._frozen = True

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RegistryFrozenError("Registrations are not allowed once a build has started")

    def add_page(
        self,
        path: str,
        render: RenderFunc,
        *options: PageOption,
        title: str | None = None,
    ) -> PageDef:
        self._check_mutable()
        if title is None:
            title = title_from_path(path)
        page = PageDef(path=path, title=title, render=render)
        for option in options:
            option(page)
        self.pages.append(page)
        return page

    def add_collection(
        self, base_path: str, label: str, listing: RenderFunc, entry: RenderFunc
    ) -> CollectionDef:
        self._check_mutable()
        collection = CollectionDef(
            base_path=base_path,
            key=collection_key(base_path),
            label=label,
            listing=listing,
            entry=entry,
            template_url=f"{base_path}/{TEMPLATE_SEGMENT}",
        )
        self.collections.append(collection)
        return collection

    def add_email_template(
        self,
        key: str,
        label: str,
        subject: str,
        html: str,
        variables: list[EmailVariable] | None = None,
    ) -> EmailTemplateDef:
        self._check_mutable()
        template = EmailTemplateDef(
            key=key, label=label, subject=subject, html=html, variables=list(variables or [])
        )
        self.email_templates.append(template)
        return template

    def add_layout(self, path_prefix: str, layout_id: str, wrap: LayoutFunc) -> LayoutDef:
        self._check_mutable()
        layout = LayoutDef(path_prefix=path_prefix, id=layout_id, wrap=wrap)
        self.layouts.append(layout)
        return layout

    def has_layouts(self) -> bool:
        return bool(self.layouts)

    def layout_manifest(self) -> dict[str, str]:
        """Map each layout's path prefix to its id, for the SPA router."""
        return {layout.path_prefix: layout.id for layout in self.layouts}

    def layout_chain(self, content_path: str) -> list[LayoutDef]:
        """Return the layouts that apply to ``content_path``, outermost first.

        Ties in prefix length keep registration order.
        """
        chain = [layout for layout in self.layouts if layout.matches(content_path)]
        return sorted(chain, key=lambda layout: len(layout.path_prefix))

    def find_render(self, page: PageContent) -> RenderFunc | None:
        """Return the render function registered for the page's content path."""
        match_path = page.effective_content_path

        for page_def in self.pages:
            if page_def.path == match_path:
                return page_def.render

        for collection in self.collections:
            if match_path == collection.template_url:
                return collection.entry
            if match_path == collection.base_path:
                return collection.listing
            if match_path.startswith(collection.base_path + "/"):
                return collection.entry

        return None

    def resolve_component(self, page: PageContent) -> str | None:
        """Render the page's own component (without layouts); None if unregistered."""
        render = self.find_render(page)
        if render is None:
            return None
        return render(page)

    def validate_routes(self, routes: list[ScannedRoute]) -> list[str]:
        """Compare discovered routes with registrations, in both directions."""
        warnings: list[str] = []
        matched_pages: set[str] = set()
        matched_collections: set[str] = set()

        for route in routes:
            if route.route_type is RouteType.PAGE:
                page_def = next((p for p in self.pages if p.path == route.url_pattern), None)
                if page_def is None:
                    warnings.append(
                        f"route {route.url_pattern} ({route.file_path}) has no page registration"
                    )
                else:
                    matched_pages.add(page_def.path)
            elif route.route_type is RouteType.LISTING:
                collection = next(
                    (c for c in self.collections if c.base_path == route.url_pattern), None
                )
                if collection is None:
                    warnings.append(
                        f"listing {route.url_pattern} ({route.file_path}) "
                        "has no collection registration"
                    )
                else:
                    matched_collections.add(collection.base_path)
            else:
                collection = next(
                    (
                        c
                        for c in self.collections
                        if route.url_pattern.startswith(c.base_path + "/")
                    ),
                    None,
                )
                if collection is None:
                    warnings.append(
                        f"entry {route.url_pattern} ({route.file_path}) "
                        "has no collection registration"
                    )
                else:
                    matched_collections.add(collection.base_path)

        for page_def in self.pages:
            if page_def.path not in matched_pages:
                warnings.append(f"page {page_def.path!r} has no matching route file")
        for collection in self.collections:
            if collection.base_path not in matched_collections:
                warnings.append(f"collection {collection.base_path!r} has no matching route file")

        for warning in warnings:
            logger.warning("Route mismatch: %s", warning)
        return warnings
