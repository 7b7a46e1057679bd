"""Layout composition, SPA fragments and CMS-attribute stripping."""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

from markupsafe import Markup

if TYPE_CHECKING:
    from cmsbuild.models.content import PageContent
    from cmsbuild.services.registry import Registry

logger = logging.getLogger(__name__)

# data-cms-field="title", data-cms-entry (valueless), ... but never the
# runtime form hooks data-cms-form and data-cms-form-field.
_CMS_ATTR_RE = re.compile(r'\s+data-cms-(?!form(?:-field)?(?![\w-]))[\w-]+(?:="[^"]*")?')
# <meta name="cms-template" content="homepage"/>
_CMS_META_RE = re.compile(r'\s*<meta\s+name="cms-[^"]*"\s+content="[^"]*"\s*/?>')


def strip_cms_attributes(html: str) -> str:
    """Remove authoring ``data-cms-*`` attributes and ``cms-*`` meta tags.

    Applied until nothing changes, so the result is stable under reapplication.
    """
    while True:
        stripped = _CMS_META_RE.sub("", _CMS_ATTR_RE.sub("", html))
        if stripped == html:
            return stripped
        html = stripped


def compose_with_layouts(registry: Registry, page: PageContent, content: str) -> str:
    """Wrap ``content`` in the page's full layout chain, innermost first."""
    result = content
    for layout in reversed(registry.layout_chain(page.effective_content_path)):
        result = str(layout.wrap(page, Markup(result)))
    return result


def compose_fragment(registry: Registry, page: PageContent, content: str, layout_id: str) -> str:
    """Return what fills the slot of layout ``layout_id``.

    That is every layout nested inside it, wrapped around ``content``.
    Unknown ids yield the bare content.
    """
    chain = registry.layout_chain(page.effective_content_path)
    target = next((i for i, layout in enumerate(chain) if layout.id == layout_id), None)
    if target is None:
        return content
    result = content
    for layout in reversed(chain[target + 1 :]):
        result = str(layout.wrap(page, Markup(result)))
    return result


def _render_component(registry: Registry, page: PageContent) -> str | None:
    try:
        component = registry.resolve_component(page)
    except Exception:
        logger.warning("Rendering %s failed", page.path, exc_info=True)
        return None
    return None if component is None else str(component)


def render_page(registry: Registry, page: PageContent) -> str | None:
    """Render a page with its layouts; None when unregistered or on error."""
    content = _render_component(registry, page)
    if content is None:
        return None
    if not registry.has_layouts():
        return content
    try:
        return compose_with_layouts(registry, page, content)
    except Exception:
        logger.warning("Layout for %s failed", page.path, exc_info=True)
        return None


def render_fragment(registry: Registry, page: PageContent, layout_id: str) -> str | None:
    """Render the slot contents of one layout; None when unregistered or on error."""
    content = _render_component(registry, page)
    if content is None:
        return None
    try:
        return compose_fragment(registry, page, content, layout_id)
    except Exception:
        logger.warning("Fragment %s for %s failed", layout_id, page.path, exc_info=True)
        return None


def route_metadata(page: PageContent) -> str:
    """Return the ``<!--route:{...}-->`` line that prefixes every fragment."""
    title = page.seo_data().meta_title or page.slug
    meta = json.dumps({"t": title}, separators=(",", ":"), ensure_ascii=False)
    # A literal "-->" in the title must not close the comment early.
    for char, escaped in (("&", "\\u0026"), ("<", "\\u003c"), (">", "\\u003e")):
        meta = meta.replace(char, escaped)
    return "<!--route:" + meta + "-->\n"
