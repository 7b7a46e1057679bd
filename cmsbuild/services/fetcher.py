"""Concurrent content + SEO fetching for one locale."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import TYPE_CHECKING

from cmsbuild.exceptions import ContentServiceError, MediaDownloadError
from cmsbuild.models.content import ABSENT, PageContent, attach_image_processor
from cmsbuild.services.planner import FetchJob, FetchResult

if TYPE_CHECKING:
    from cmsbuild.models.media import ImageProcessor
    from cmsbuild.services.content_client import ContentClient
    from cmsbuild.services.media_service import MediaDownloader

logger = logging.getLogger(__name__)

MAX_CONCURRENT_FETCHES = 10


async def fetch_page(
    client: ContentClient,
    job: FetchJob,
    locale: str,
    *,
    processor: ImageProcessor | None = None,
    downloader: MediaDownloader | None = None,
) -> PageContent:
    """Fetch content and SEO for one job; failures fall back to empty content."""
    try:
        page = await client.get_page(job.path, locale)
    except ContentServiceError as exc:
        # Template URLs are expected to 404.
        if not job.is_template:
            logger.warning("%s: no CMS content, using fallbacks (%s)", job.path, exc)
        page = PageContent(
            path=job.path,
            slug=job.slug,
            locale=locale,
            fields=None,
            subcollections=ABSENT,
            seo=None,
        )
    else:
        logger.info("%s: fetched CMS content", job.path)

    try:
        page.seo = await client.get_seo(job.path, locale)
    except ContentServiceError:
        logger.debug("%s: no SEO data", job.path)

    if processor is not None:
        page.image_processor = processor
        attach_image_processor(page.subcollections, processor)

    # Download the Open Graph image so og:image points at a local path.
    if downloader is not None and page.seo is not None and page.seo.og_image_url:
        try:
            local = await asyncio.to_thread(downloader.download, page.seo.og_image_url)
        except MediaDownloadError as exc:
            logger.debug("%s: OG image not downloaded (%s)", job.path, exc)
        else:
            page.seo = dataclasses.replace(page.seo, og_image_url=local)

    return page


async def fetch_all_for_locale(
    client: ContentClient,
    jobs: list[FetchJob],
    locale: str,
    *,
    processor: ImageProcessor | None = None,
    downloader: MediaDownloader | None = None,
    concurrency: int = MAX_CONCURRENT_FETCHES,
) -> list[FetchResult]:
    """Fetch every job with at most ``concurrency`` in flight.

    Results are index-aligned with ``jobs`` regardless of completion order.
    """
    semaphore = asyncio.Semaphore(concurrency)

    async def _run(job: FetchJob) -> FetchResult:
        async with semaphore:
            page = await fetch_page(
                client, job, locale, processor=processor, downloader=downloader
            )
        return FetchResult(job=job, page=page)

    return list(await asyncio.gather(*(_run(job) for job in jobs)))
