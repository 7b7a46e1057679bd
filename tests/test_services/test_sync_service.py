"""Tests for the schema-sync payload and its upload."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx
import pytest
from markupsafe import Markup

from cmsbuild.config import Settings
from cmsbuild.exceptions import BuildError, SyncError
from cmsbuild.models.content import PageContent
from cmsbuild.schemas.sync import EmailVariable, SyncPage, SyncPayload
from cmsbuild.services.registry import Registry
from cmsbuild.services.sync_service import build_sync_payload, post_sync, write_sync_json
from tests.conftest import API_KEY, FakeContentService

if TYPE_CHECKING:
    from pathlib import Path


def _home(page: PageContent) -> str:
    items = "".join(
        f'<li data-cms-entry><span data-cms-field="name">{entry.text("name")}</span></li>'
        for entry in page.subcollection_or("features")
    )
    return f'<h1 data-cms-field="title">{page.text("title")}</h1><ul>{items}</ul>'


def _listing(page: PageContent) -> str:
    return '<section data-cms-list="blog"></section>'


def _entry(page: PageContent) -> str:
    return f'<article><h1 data-cms-field="title">{page.text("title")}</h1></article>'


def _layout(page: PageContent, content: Markup) -> str:
    return Markup("<main data-cms-layout>{}</main>").format(content)


def _registry() -> Registry:
    registry = Registry()
    registry.add_page("/", _home)
    registry.add_page("/contact-us", lambda page: "")
    registry.add_collection("/blog", "Blog posts", _listing, _entry)
    registry.add_email_template(
        "welcome",
        "Welcome",
        "Hi {{name}}",
        "<p>Hello {{name}}</p>",
        [EmailVariable(key="name", sample_value="Ada")],
    )
    return registry


class TestBuildSyncPayload:
    def test_pages_then_listings(self) -> None:
        payload = build_sync_payload(_registry(), "en")

        assert [(p.path, p.title) for p in payload.pages] == [
            ("/", "Home"),
            ("/contact-us", "Contact Us"),
            ("/blog", "Blog"),
        ]

    def test_templates_render_one_placeholder_entry(self) -> None:
        payload = build_sync_payload(_registry(), "en")

        home = payload.pages[0].html
        assert home.count("data-cms-entry") == 1
        assert 'data-cms-field="name"' in home
        assert 'data-cms-field="title"' in home

    def test_collections(self) -> None:
        payload = build_sync_payload(_registry(), "en")

        [collection] = payload.collections
        assert collection.key == "blog"
        assert collection.label == "Blog posts"
        assert collection.template_url == "/blog/_template"
        assert collection.base_path == "/blog/:blog"
        assert collection.html.startswith("<article>")

    def test_layouts_wrap_rendered_pages(self) -> None:
        registry = _registry()
        registry.add_layout("/", "root", _layout)

        payload = build_sync_payload(registry, "en")

        assert payload.pages[0].html.startswith("<main data-cms-layout>")
        assert payload.collections[0].html.startswith("<main data-cms-layout>")

    def test_failing_render_leaves_html_empty(self) -> None:
        def broken(page: PageContent) -> str:
            raise RuntimeError("boom")

        registry = Registry()
        registry.add_page("/broken", broken)

        payload = build_sync_payload(registry, "en")

        assert payload.pages == [SyncPage(path="/broken", title="Broken", html="")]

    def test_email_templates(self) -> None:
        payload = build_sync_payload(_registry(), "en")

        [template] = payload.email_templates
        assert template.subject == "Hi {{name}}"
        assert template.variables[0].sample_value == "Ada"


class TestToJsonDict:
    def test_empty_parts_are_omitted(self) -> None:
        payload = SyncPayload(pages=[SyncPage(path="/", html="")])
        assert payload.to_json_dict() == {"pages": [{"path": "/"}]}

    def test_full_shape(self) -> None:
        data = build_sync_payload(_registry(), "en").to_json_dict()

        assert set(data) == {"pages", "collections", "email_templates"}
        assert data["pages"][1] == {"path": "/contact-us", "title": "Contact Us"}
        assert data["email_templates"][0] == {
            "key": "welcome",
            "label": "Welcome",
            "subject": "Hi {{name}}",
            "html": "<p>Hello {{name}}</p>",
            "variables": [{"key": "name", "sample_value": "Ada"}],
        }


class TestWriteSyncJson:
    def test_writes_indented_json(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "sync.json"
        payload = SyncPayload(pages=[SyncPage(path="/", title="Café")])

        write_sync_json(payload, target)

        text = target.read_text(encoding="utf-8")
        assert text.endswith("}\n")
        assert '\n  "pages"' in text
        assert "Café" in text
        assert json.loads(text) == {"pages": [{"path": "/", "title": "Café"}]}

    def test_unwritable_target_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(BuildError):
            write_sync_json(SyncPayload(), blocker / "sync.json")


class TestPostSync:
    def test_posts_payload(
        self, settings: Settings, content_service: FakeContentService
    ) -> None:
        payload = build_sync_payload(_registry(), "en")

        result = post_sync(settings, payload, transport=content_service.transport)

        assert result == {"status": "ok"}
        assert content_service.synced == [payload.to_json_dict()]
        request = content_service.requests[-1]
        assert request.url.path == "/api/v1/test-site/sync"
        assert request.headers["X-API-Key"] == API_KEY
        assert request.headers["Content-Type"] == "application/json"

    def test_posts_file_contents(
        self, tmp_path: Path, settings: Settings, content_service: FakeContentService
    ) -> None:
        path = tmp_path / "sync.json"
        path.write_text('{"pages": [{"path": "/"}]}', encoding="utf-8")

        post_sync(settings, path, transport=content_service.transport)

        assert content_service.synced == [{"pages": [{"path": "/"}]}]

    def test_missing_file_raises(self, tmp_path: Path, settings: Settings) -> None:
        with pytest.raises(SyncError, match="Cannot read sync file"):
            post_sync(settings, tmp_path / "absent.json")

    def test_error_status_raises_with_body(
        self, settings: Settings, content_service: FakeContentService
    ) -> None:
        content_service.sync_status = 422
        with pytest.raises(SyncError, match="422: schema rejected"):
            post_sync(settings, SyncPayload(), transport=content_service.transport)

    def test_wrong_key_is_rejected(
        self, settings: Settings, content_service: FakeContentService
    ) -> None:
        wrong = settings.model_copy(update={"api_key": "nope"})
        with pytest.raises(SyncError, match="401"):
            post_sync(wrong, SyncPayload(), transport=content_service.transport)

    def test_non_json_response_returns_none(self, settings: Settings) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="done"))
        assert post_sync(settings, SyncPayload(), transport=transport) is None

    def test_connection_error_raises(self, settings: Settings) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(SyncError, match="Sync request failed"):
            post_sync(settings, SyncPayload(), transport=httpx.MockTransport(refuse))
