"""Tests for the SPA router bootstrap script."""

from __future__ import annotations

import json
import re

from cmsbuild.components.router import ROUTER_JS, router_script
from cmsbuild.models.content import PageContent, SiteLocale

_CONFIG_RE = re.compile(r'<script id="__cms_router" type="application/json">(.*?)</script>')


def _config(html: str) -> dict[str, object]:
    match = _CONFIG_RE.search(html)
    assert match is not None
    return json.loads(match.group(1))


class TestRouterScript:
    def test_empty_without_layouts(self) -> None:
        assert router_script(PageContent(path="/")) == ""

    def test_single_locale_config(self) -> None:
        page = PageContent(path="/", layout_manifest={"/": "root", "/blog": "blog"})

        html = str(router_script(page))

        assert _config(html) == {"layouts": {"/": "root", "/blog": "blog"}, "localePrefix": ""}
        assert html.endswith('<script type="module">' + ROUTER_JS + "</script>")

    def test_multi_locale_config(self) -> None:
        page = PageContent(
            path="/nl/about",
            content_path="/about",
            locale="nl",
            locale_prefix="/nl",
            locales=[SiteLocale("en", "English", True), SiteLocale("nl", "Nederlands")],
            default_locale="en",
            layout_manifest={"/": "root"},
        )

        config = _config(str(router_script(page)))

        assert config == {
            "layouts": {"/": "root"},
            "localePrefix": "/nl",
            "locales": ["en", "nl"],
            "defaultLocale": "en",
        }

    def test_layout_ids_cannot_close_the_script_tag(self) -> None:
        page = PageContent(path="/", layout_manifest={"/": "</script><b>"})

        html = str(router_script(page))

        assert "</script><b>" not in html
        assert "\\u003c/script\\u003e" in html
        assert _config(html)["layouts"] == {"/": "</script><b>"}

    def test_router_reads_its_own_config(self) -> None:
        assert 'getElementById("__cms_router")' in ROUTER_JS
        assert "cms:navigate" in ROUTER_JS
