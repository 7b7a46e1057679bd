"""Turn the registry plus the published page list into fetch jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cmsbuild.services.slug_service import is_safe_url_path, path_slug

if TYPE_CHECKING:
    from cmsbuild.models.content import PageContent
    from cmsbuild.schemas.api import PageListItem
    from cmsbuild.services.registry import Registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchJob:
    path: str
    slug: str
    # Set for entries of a registered collection.
    collection_key: str = ""
    # The synthetic ``_template`` URL of a collection.
    is_template: bool = False


@dataclass
class FetchResult:
    job: FetchJob
    page: PageContent


def safe_remote_pages(remote_pages: list[PageListItem]) -> list[PageListItem]:
    """Drop listed pages whose paths could escape the output directory."""
    safe: list[PageListItem] = []
    for item in remote_pages:
        if is_safe_url_path(item.path):
            safe.append(item)
        else:
            logger.warning("Skipping unsafe page path %r", item.path)
    return safe


def plan_fetch_jobs(registry: Registry, remote_pages: list[PageListItem]) -> list[FetchJob]:
    """Return deduplicated fetch jobs in emission order.

    Collection entries come first so listings are complete before any
    listing page is emitted; then fixed pages, listing base paths and
    finally template URLs.
    """
    jobs: list[FetchJob] = []
    seen: set[str] = set()

    def _add(job: FetchJob) -> None:
        if job.path in seen:
            return
        seen.add(job.path)
        jobs.append(job)

    for collection in registry.collections:
        prefix = collection.base_path + "/"
        for item in remote_pages:
            if item.path.startswith(prefix) and item.path != collection.template_url:
                _add(FetchJob(path=item.path, slug=item.slug, collection_key=collection.key))

    for page_def in registry.pages:
        _add(FetchJob(path=page_def.path, slug=path_slug(page_def.path)))

    for collection in registry.collections:
        _add(FetchJob(path=collection.base_path, slug=path_slug(collection.base_path)))

    for collection in registry.collections:
        _add(
            FetchJob(
                path=collection.template_url,
                slug=path_slug(collection.template_url),
                is_template=True,
            )
        )

    return jobs
