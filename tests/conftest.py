"""Shared test fixtures for cmsbuild."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
import pytest

from cmsbuild.config import Settings

logger = logging.getLogger(__name__)

API_URL = "http://cms.test"
SITE_SLUG = "test-site"
API_KEY = "test-api-key"

# Smallest valid JPEG-ish payload; only the bytes on disk matter to the build.
JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg\xff\xd9"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "api_url": API_URL,
        "site_slug": SITE_SLUG,
        "api_key": API_KEY,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def field_values(fields: dict[str, Any]) -> list[dict[str, Any]]:
    return [{"key": key, "value": value} for key, value in fields.items()]


class FakeContentService:
    """In-memory content service served through ``httpx.MockTransport``.

    Pages are registered per locale; a page registered without a locale
    answers every locale. Unknown paths return 404, like the real service.
    """

    def __init__(self, slug: str = SITE_SLUG) -> None:
        self.prefix = f"/api/v1/{slug}"
        self.page_list: list[dict[str, Any]] = []
        self.pages: dict[tuple[str, str | None], dict[str, Any]] = {}
        self.seo: dict[tuple[str, str | None], dict[str, Any]] = {}
        self.locales: list[dict[str, Any]] | None = None
        self.site: dict[str, Any] | None = None
        self.fail_page_list = False
        self.synced: list[dict[str, Any]] = []
        self.sync_status = 200
        self.requests: list[httpx.Request] = []

    def add_page(
        self,
        path: str,
        fields: dict[str, Any] | None = None,
        *,
        locale: str | None = None,
        subcollections: list[dict[str, Any]] | None = None,
        updated_at: str | None = None,
        listed: bool = True,
    ) -> None:
        slug = path.strip("/").split("/")[-1] or "index"
        if listed and not any(item["path"] == path for item in self.page_list):
            item: dict[str, Any] = {"id": f"page-{len(self.page_list)}", "path": path, "slug": slug}
            if updated_at is not None:
                item["updated_at"] = updated_at
            self.page_list.append(item)
        self.pages[(path, locale)] = {
            "id": f"content-{path}",
            "path": path,
            "slug": slug,
            "fields": field_values(fields or {}),
            "subcollections": subcollections or [],
        }

    def add_seo(self, path: str, *, locale: str | None = None, **seo: str) -> None:
        self.seo[(path, locale)] = dict(seo)

    def set_locales(self, *codes: str, default: str = "en") -> None:
        self.locales = [
            {"locale": code, "label": code.upper(), "is_default": code == default}
            for code in codes
        ]

    def _lookup(
        self, table: dict[tuple[str, str | None], dict[str, Any]], path: str, locale: str | None
    ) -> dict[str, Any] | None:
        return table.get((path, locale)) or table.get((path, None))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("X-API-Key") != API_KEY:
            return httpx.Response(401, json={"detail": "unauthorized"})
        path = request.url.path
        if not path.startswith(self.prefix):
            return httpx.Response(404)
        resource = path[len(self.prefix) :]
        locale = request.url.params.get("locale")

        if resource == "/sync" and request.method == "POST":
            self.synced.append(json.loads(request.content))
            if self.sync_status >= 400:
                return httpx.Response(self.sync_status, text="schema rejected")
            return httpx.Response(self.sync_status, json={"status": "ok"})
        if resource == "/pages":
            if self.fail_page_list:
                return httpx.Response(500)
            return httpx.Response(200, json=self.page_list)
        if resource == "/locales":
            if self.locales is None:
                return httpx.Response(404)
            return httpx.Response(200, json=self.locales)
        if resource == "/site":
            if self.site is None:
                return httpx.Response(404)
            return httpx.Response(200, json=self.site)
        for name, table in (("/pages", self.pages), ("/seo", self.seo)):
            if resource.startswith(name + "/"):
                page_path = resource[len(name) :]
                if page_path == "//":
                    page_path = "/"
                found = self._lookup(table, page_path, locale)
                if found is None:
                    return httpx.Response(404, json={"detail": "not found"})
                return httpx.Response(200, json=found)
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeMediaHost:
    """Serves image bytes for any URL; listed formats answer 404."""

    def __init__(self, unsupported_formats: tuple[str, ...] = ("avif",)) -> None:
        self.unsupported_formats = unsupported_formats
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.params.get("format") in self.unsupported_formats:
            return httpx.Response(404)
        if request.url.path.endswith("/missing.jpg"):
            return httpx.Response(404)
        return httpx.Response(200, content=JPEG_BYTES, headers={"Content-Type": "image/jpeg"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def content_service() -> FakeContentService:
    return FakeContentService()


@pytest.fixture
def media_host() -> FakeMediaHost:
    return FakeMediaHost()
