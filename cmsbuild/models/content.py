"""Runtime content values handed to render functions."""

from __future__ import annotations

import dataclasses
import json
import math
from dataclasses import dataclass, field
from typing import Any

from markupsafe import Markup

from cmsbuild.models.media import ImageProcessor, ImageValue


@dataclass(frozen=True)
class SEOData:
    """SEO metadata for a page."""

    meta_title: str = ""
    meta_description: str = ""
    og_image_url: str = ""


@dataclass(frozen=True)
class SiteLocale:
    """A locale configured on the content service."""

    code: str
    label: str = ""
    is_default: bool = False


@dataclass(frozen=True)
class URLValue:
    """A CMS URL field: ``{href, text, title, target}``."""

    href: str = ""
    text: str = ""
    title: str = ""
    target: str = ""


@dataclass(frozen=True)
class CurrencyValue:
    amount: float = 0.0


class Absent:
    """Subcollection tag for content that never came from the CMS.

    Template and schema-discovery renders carry this tag so
    ``subcollection_or`` yields one placeholder entry.
    """

    _instance: Absent | None = None

    def __new__(cls) -> Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"


@dataclass(frozen=True)
class Present:
    """Subcollection tag for fetched content; ``entries`` may be empty."""

    entries: dict[str, list[EntryContent]] = field(default_factory=dict)


ABSENT = Absent()


def field_text(fields: dict[str, Any] | None, key: str) -> str:
    """Stringify a raw field value. Integral floats lose their ``.0``."""
    if not fields:
        return ""
    value = fields.get(key)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value == int(value):
            return str(int(value))
        return repr(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def field_number(fields: dict[str, Any] | None, key: str) -> float:
    if not fields:
        return 0.0
    value = fields.get(key)
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def field_url(fields: dict[str, Any] | None, key: str) -> URLValue:
    if not fields:
        return URLValue()
    value = fields.get(key)
    if isinstance(value, dict):

        def _str(name: str) -> str:
            item = value.get(name)
            return item if isinstance(item, str) else ""

        return URLValue(
            href=_str("href"),
            text=_str("text"),
            title=_str("title"),
            target=_str("target") or "_self",
        )
    if isinstance(value, str):
        # Legacy format: a plain string is the href.
        return URLValue(href=value)
    return URLValue()


def field_image(fields: dict[str, Any] | None, key: str) -> ImageValue:
    if not fields:
        return ImageValue()
    value = fields.get(key)
    if isinstance(value, dict):
        url = value.get("url")
        alt = value.get("alt")
        return ImageValue(
            url=url if isinstance(url, str) else "",
            alt=alt if isinstance(alt, str) else "",
        )
    if isinstance(value, str):
        return ImageValue(url=value)
    return ImageValue()


def prefix_path(prefix: str, path: str) -> str:
    """Prepend a locale prefix to a URL path: ``/`` -> ``/en``, ``/a`` -> ``/en/a``."""
    if path == "/":
        return prefix
    return prefix + path


def prefix_internal_url(prefix: str, href: str) -> str:
    """Locale-prefix ``href`` when it is a site-internal absolute path.

    External URLs, protocol-relative URLs and already-prefixed paths are
    returned unchanged.
    """
    if not prefix or not href.startswith("/") or href.startswith("//"):
        return href
    if href == prefix or href.startswith(prefix + "/"):
        return href
    return prefix_path(prefix, href)


def empty_entry() -> EntryContent:
    return EntryContent(fields={}, subcollections=ABSENT)


class FieldAccessors:
    """Typed accessors shared by pages and subcollection entries."""

    fields: dict[str, Any] | None
    subcollections: Absent | Present
    image_processor: ImageProcessor | None
    locale_prefix: str

    def text(self, key: str) -> str:
        return field_text(self.fields, key)

    def text_or(self, key: str, fallback: str) -> str:
        return field_text(self.fields, key) or fallback

    def rich_text(self, key: str) -> Markup:
        return Markup(field_text(self.fields, key))

    def rich_text_or(self, key: str, fallback: str) -> Markup:
        return Markup(field_text(self.fields, key) or fallback)

    def image(self, key: str) -> ImageValue:
        img = field_image(self.fields, key)
        if self.image_processor is not None:
            img = self.image_processor(img)
        return img

    def image_or(self, key: str, fallback: ImageValue) -> ImageValue:
        img = field_image(self.fields, key)
        if not img.url:
            return fallback
        if self.image_processor is not None:
            img = self.image_processor(img)
        return img

    def video(self, key: str) -> str:
        return field_text(self.fields, key)

    def url(self, key: str) -> str:
        return prefix_internal_url(self.locale_prefix, field_url(self.fields, key).href)

    def url_or(self, key: str, fallback: str) -> str:
        href = field_url(self.fields, key).href or fallback
        return prefix_internal_url(self.locale_prefix, href)

    def url_value_or(self, key: str, fallback_href: str, fallback_text: str) -> URLValue:
        """Return the full URL value, filling in fallbacks for missing parts."""
        value = field_url(self.fields, key)
        return dataclasses.replace(
            value,
            href=prefix_internal_url(self.locale_prefix, value.href or fallback_href),
            text=value.text or fallback_text,
            target=value.target or "_self",
        )

    def number(self, key: str) -> float:
        return field_number(self.fields, key)

    def number_or(self, key: str, fallback: float) -> float:
        """Return the number, or ``fallback`` only when the key is missing."""
        if not self.fields or key not in self.fields:
            return fallback
        return field_number(self.fields, key)

    def currency(self, key: str) -> CurrencyValue:
        return CurrencyValue(amount=field_number(self.fields, key))

    def subcollection(self, key: str) -> list[EntryContent]:
        if isinstance(self.subcollections, Absent):
            return []
        return self.subcollections.entries.get(key, [])

    def subcollection_or(self, key: str) -> list[EntryContent]:
        """Return entries, or a single empty entry when there is no CMS data.

        Template renders (``ABSENT``) always get one placeholder entry so
        authoring markup for the entry is present. Fetched content returns
        the actual list, which may be empty.
        """
        if isinstance(self.subcollections, Absent):
            return [empty_entry()]
        return self.subcollections.entries.get(key, [])


@dataclass
class EntryContent(FieldAccessors):
    """A single subcollection entry."""

    fields: dict[str, Any] | None = field(default_factory=dict)
    subcollections: Absent | Present = ABSENT
    image_processor: ImageProcessor | None = field(default=None, repr=False)
    locale_prefix: str = ""


@dataclass
class PageContent(FieldAccessors):
    """Resolved content for one page, as passed to render and layout functions."""

    path: str
    slug: str = ""
    locale: str = ""
    fields: dict[str, Any] | None = None
    subcollections: Absent | Present = ABSENT
    seo: SEOData | None = None

    # Locale addressing. ``content_path`` is empty outside multi-locale builds.
    content_path: str = ""
    locale_prefix: str = ""
    locales: list[SiteLocale] = field(default_factory=list)
    default_locale: str = ""

    # Build-time accessories.
    listings: dict[str, list[PageContent]] = field(default_factory=dict, repr=False)
    layout_manifest: dict[str, str] = field(default_factory=dict, repr=False)
    image_processor: ImageProcessor | None = field(default=None, repr=False)

    @property
    def effective_content_path(self) -> str:
        """Unprefixed path used for registry and layout lookups."""
        return self.content_path or self.path

    def listing(self, key: str) -> list[PageContent]:
        """Return the collection entries attached to this page during the build."""
        return self.listings.get(key, [])

    def seo_data(self) -> SEOData:
        return self.seo if self.seo is not None else SEOData()

    def has_layouts(self) -> bool:
        return bool(self.layout_manifest)

    def is_default_locale(self) -> bool:
        return not self.default_locale or self.locale == self.default_locale

    def localized_path(self, path: str) -> str:
        """Prefix an internal path with this page's locale prefix."""
        return prefix_internal_url(self.locale_prefix, path)

    def prefixed_alternate_path(self, code: str) -> str:
        """Return this page's path in locale ``code`` (unprefixed for the default)."""
        if code == self.default_locale:
            return self.effective_content_path
        return prefix_path("/" + code, self.effective_content_path)


def with_locale_prefix(subcollections: Absent | Present, prefix: str) -> Absent | Present:
    """Return a copy of ``subcollections`` whose entries carry ``prefix``."""
    if isinstance(subcollections, Absent):
        return subcollections
    return Present(
        entries={
            key: [
                dataclasses.replace(
                    entry,
                    locale_prefix=prefix,
                    subcollections=with_locale_prefix(entry.subcollections, prefix),
                )
                for entry in entries
            ]
            for key, entries in subcollections.entries.items()
        }
    )


def attach_image_processor(subcollections: Absent | Present, processor: ImageProcessor) -> None:
    """Set ``processor`` on every entry, recursively."""
    if isinstance(subcollections, Absent):
        return
    for entries in subcollections.entries.values():
        for entry in entries:
            entry.image_processor = processor
            attach_image_processor(entry.subcollections, processor)


@dataclass
class EmailTemplateContent:
    """Published email template content."""

    key: str
    label: str = ""
    subject: str = ""
    fields: dict[str, Any] = field(default_factory=dict)

    def text(self, key: str) -> str:
        return field_text(self.fields, key)
