"""Authenticated client for the content service's public API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from cmsbuild.exceptions import ContentServiceError
from cmsbuild.models.content import (
    EmailTemplateContent,
    EntryContent,
    PageContent,
    Present,
    SEOData,
    SiteLocale,
)
from cmsbuild.models.media import media_params
from cmsbuild.schemas.api import (
    EmailTemplateResponse,
    FieldValueResponse,
    LocaleResponse,
    MediaResponse,
    PageListItem,
    PageResponse,
    SEOResponse,
    SiteInfoResponse,
    SubcollectionResponse,
)

if TYPE_CHECKING:
    from cmsbuild.config import Settings

_M = TypeVar("_M", bound=BaseModel)

_PAGE_LIST = TypeAdapter(list[PageListItem])
_LOCALE_LIST = TypeAdapter(list[LocaleResponse])


def _resource_path(resource: str, page_path: str) -> str:
    """Build ``/pages/<path>``; the root page is addressed as ``/pages//``."""
    normalized = page_path if page_path.startswith("/") else "/" + page_path
    if normalized == "/":
        return f"/{resource}//"
    return f"/{resource}{normalized}"


def _resolve_fields(values: list[FieldValueResponse] | None) -> dict[str, Any]:
    return {value.key: value.value for value in values or []}


def resolve_subcollections(subcollections: list[SubcollectionResponse] | None) -> Present:
    """Convert API subcollections into a ``Present`` tag, even when empty."""
    result: dict[str, list[EntryContent]] = {}
    for subcollection in subcollections or []:
        result[subcollection.key] = [
            EntryContent(
                fields=_resolve_fields(entry.fields),
                subcollections=resolve_subcollections(entry.subcollections),
            )
            for entry in subcollection.entries or []
        ]
    return Present(entries=result)


class ContentClient:
    """Thin request/response wrapper around ``{api_url}/api/v1/{site_slug}``.

    No caching; every failure raises ``ContentServiceError``.
    """

    def __init__(
        self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.settings = settings
        self.locale = settings.default_locale()
        self.client = httpx.AsyncClient(
            base_url=settings.api_base(),
            headers={"X-API-Key": settings.api_key},
            timeout=settings.request_timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> ContentClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def _get(self, path: str, params: dict[str, str] | None = None) -> Any:
        try:
            response = await self.client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise ContentServiceError(f"Request to {path} failed: {exc}", path=path) from exc
        if response.status_code >= 400:
            raise ContentServiceError(
                f"Content service returned status {response.status_code} for {path}",
                path=path,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ContentServiceError(f"Invalid JSON from {path}", path=path) from exc

    async def _get_model(
        self, path: str, model: type[_M], params: dict[str, str] | None = None
    ) -> _M:
        data = await self._get(path, params)
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ContentServiceError(f"Unexpected response shape from {path}", path=path) from exc

    async def list_pages(self) -> list[PageListItem]:
        """Return every published page of the site."""
        data = await self._get("/pages")
        try:
            return _PAGE_LIST.validate_python(data)
        except ValidationError as exc:
            raise ContentServiceError(
                "Unexpected response shape from /pages", path="/pages"
            ) from exc

    async def list_locales(self) -> list[SiteLocale]:
        data = await self._get("/locales")
        try:
            items = _LOCALE_LIST.validate_python(data)
        except ValidationError as exc:
            raise ContentServiceError(
                "Unexpected response shape from /locales", path="/locales"
            ) from exc
        return [
            SiteLocale(code=item.locale, label=item.label, is_default=item.is_default)
            for item in items
        ]

    async def get_page(self, page_path: str, locale: str | None = None) -> PageContent:
        """Fetch a page's fields and subcollections in ``locale``."""
        locale = locale or self.locale
        response = await self._get_model(
            _resource_path("pages", page_path), PageResponse, {"locale": locale}
        )
        return PageContent(
            path=response.path,
            slug=response.slug,
            locale=locale,
            fields=_resolve_fields(response.fields),
            subcollections=resolve_subcollections(response.subcollections),
        )

    async def get_seo(self, page_path: str, locale: str | None = None) -> SEOData:
        response = await self._get_model(
            _resource_path("seo", page_path), SEOResponse, {"locale": locale or self.locale}
        )
        return SEOData(
            meta_title=response.meta_title or "",
            meta_description=response.meta_description or "",
            og_image_url=response.og_image_url or "",
        )

    async def get_site_info(self) -> SiteInfoResponse:
        return await self._get_model("/site", SiteInfoResponse)

    async def get_media_url(
        self,
        media_id: str,
        *,
        width: int = 0,
        height: int = 0,
        quality: int = 0,
        format: str = "",
    ) -> str:
        """Return a signed media URL with optional processing parameters."""
        path = f"/media/{media_id}"
        params = media_params(width=width, height=height, quality=quality, format=format)
        if params:
            path += "?" + "&".join(params)
        response = await self._get_model(path, MediaResponse)
        return response.url

    async def get_email_template(self, key: str, locale: str | None = None) -> EmailTemplateContent:
        response = await self._get_model(
            f"/emails/{key}", EmailTemplateResponse, {"locale": locale or self.locale}
        )
        return EmailTemplateContent(
            key=response.key,
            label=response.label,
            subject=response.subject,
            fields=_resolve_fields(response.fields),
        )
