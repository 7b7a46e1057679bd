"""Schema-sync payload: pre-rendered pages the content service parses for its schema."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from cmsbuild.exceptions import BuildError, SyncError
from cmsbuild.models.content import ABSENT, PageContent
from cmsbuild.schemas.sync import SyncCollection, SyncEmailTemplate, SyncPage, SyncPayload
from cmsbuild.services.composer import render_page
from cmsbuild.services.slug_service import path_slug, title_from_path

if TYPE_CHECKING:
    from pathlib import Path

    from cmsbuild.config import Settings
    from cmsbuild.services.registry import Registry

logger = logging.getLogger(__name__)


def _render_empty(registry: Registry, path: str, locale: str) -> str:
    # ABSENT subcollections make subcollection_or() yield one placeholder entry,
    # so loops over entries still render their data-cms-* markup.
    page = PageContent(path=path, slug=path_slug(path), locale=locale, subcollections=ABSENT)
    return render_page(registry, page) or ""


def build_sync_payload(registry: Registry, locale: str) -> SyncPayload:
    """Render every page, listing and collection template with no CMS data."""
    pages = [
        SyncPage(
            path=page_def.path,
            title=page_def.title,
            html=_render_empty(registry, page_def.path, locale),
        )
        for page_def in registry.pages
    ]
    pages += [
        SyncPage(
            path=collection.base_path,
            title=title_from_path(collection.base_path),
            html=_render_empty(registry, collection.base_path, locale),
        )
        for collection in registry.collections
    ]
    collections = [
        SyncCollection(
            key=collection.key,
            label=collection.label,
            template_url=collection.template_url,
            base_path=f"{collection.base_path}/:{collection.key}",
            html=_render_empty(registry, collection.template_url, locale),
        )
        for collection in registry.collections
    ]
    email_templates = [
        SyncEmailTemplate(
            key=template.key,
            label=template.label,
            subject=template.subject,
            html=template.html,
            variables=template.variables,
        )
        for template in registry.email_templates
    ]
    return SyncPayload(pages=pages, collections=collections, email_templates=email_templates)


def write_sync_json(payload: SyncPayload, path: Path) -> None:
    """Write the payload as indented JSON with a trailing newline."""
    data = json.dumps(payload.to_json_dict(), indent=2, ensure_ascii=False) + "\n"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(data, encoding="utf-8")
    except OSError as exc:
        raise BuildError(f"Cannot write sync file {path}: {exc}", path=str(path)) from exc
    logger.info("Wrote sync payload to %s", path)


def _load_body(payload: SyncPayload | Path) -> bytes:
    if isinstance(payload, SyncPayload):
        return json.dumps(payload.to_json_dict(), ensure_ascii=False).encode("utf-8")
    try:
        return payload.read_bytes()
    except OSError as exc:
        raise SyncError(f"Cannot read sync file {payload}: {exc}") from exc


def post_sync(
    settings: Settings,
    payload: SyncPayload | Path,
    *,
    transport: httpx.BaseTransport | None = None,
) -> dict[str, Any] | None:
    """POST a payload (or a previously written sync file) to ``/sync``.

    Returns the decoded JSON response, or None when the body is not JSON.
    """
    body = _load_body(payload)
    url = f"{settings.api_base()}/sync"
    headers = {"Content-Type": "application/json", "X-API-Key": settings.api_key}
    with httpx.Client(timeout=settings.request_timeout, transport=transport) as client:
        try:
            resp = client.post(url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            raise SyncError(f"Sync request failed: {exc}") from exc
    if resp.status_code >= 400:
        raise SyncError(f"Sync returned {resp.status_code}: {resp.text}")
    logger.info("Synced schema to %s", url)
    try:
        result: dict[str, Any] = resp.json()
    except ValueError:
        return None
    return result
