"""Site registration facade and the whole-site build pipeline."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from cmsbuild.config import BuildOptions, Settings
from cmsbuild.exceptions import ContentServiceError
from cmsbuild.services.content_client import ContentClient
from cmsbuild.services.emitter import Emitter, localize_results
from cmsbuild.services.fetcher import fetch_all_for_locale
from cmsbuild.services.media_service import MEDIA_WEB_PREFIX, MediaDownloader
from cmsbuild.services.planner import plan_fetch_jobs, safe_remote_pages
from cmsbuild.services.registry import Registry
from cmsbuild.services.sitemap_service import (
    collect_sitemap_urls,
    resolve_site_url,
    write_robots_txt,
)
from cmsbuild.services.sync_service import build_sync_payload, post_sync, write_sync_json

if TYPE_CHECKING:
    from pathlib import Path

    import httpx

    from cmsbuild.models.content import SiteLocale
    from cmsbuild.models.media import ImageProcessor
    from cmsbuild.schemas.api import PageListItem
    from cmsbuild.schemas.sync import EmailVariable, SyncPayload
    from cmsbuild.services.planner import FetchJob, FetchResult
    from cmsbuild.services.registry import (
        CollectionDef,
        EmailTemplateDef,
        LayoutDef,
        LayoutFunc,
        PageDef,
        PageOption,
        RenderFunc,
        ScannedRoute,
    )

logger = logging.getLogger(__name__)


class App:
    """A site: its settings plus the pages, collections and layouts registered on it.

    Register everything first, then call :meth:`build` (or :meth:`run_build`
    outside an event loop). Registration is rejected once a build has started.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings if settings is not None else Settings()
        self.registry = Registry()

    # -- registration -------------------------------------------------------

    def page(self, path: str, render: RenderFunc, *options: PageOption) -> PageDef:
        """Register a fixed page; the title is derived from the path."""
        return self.registry.add_page(path, render, *options)

    def page_title(
        self, path: str, title: str, render: RenderFunc, *options: PageOption
    ) -> PageDef:
        return self.registry.add_page(path, render, *options, title=title)

    def collection(
        self, base_path: str, label: str, listing: RenderFunc, entry: RenderFunc
    ) -> CollectionDef:
        """Register a listing at ``base_path`` and entries under ``base_path/``."""
        return self.registry.add_collection(base_path, label, listing, entry)

    def email_template(
        self,
        key: str,
        label: str,
        subject: str,
        html: str,
        variables: list[EmailVariable] | None = None,
    ) -> EmailTemplateDef:
        return self.registry.add_email_template(key, label, subject, html, variables)

    def layout(self, path_prefix: str, layout_id: str, wrap: LayoutFunc) -> LayoutDef:
        """Register a layout wrapping every page at or below ``path_prefix``."""
        return self.registry.add_layout(path_prefix, layout_id, wrap)

    def validate_routes(self, routes: list[ScannedRoute]) -> list[str]:
        return self.registry.validate_routes(routes)

    # -- schema sync --------------------------------------------------------

    def sync_payload(self) -> SyncPayload:
        return build_sync_payload(self.registry, self.settings.default_locale())

    def write_sync_json(self, path: Path) -> None:
        write_sync_json(self.sync_payload(), path)

    def post_sync(
        self, file: Path | None = None, *, transport: httpx.BaseTransport | None = None
    ) -> dict[str, Any] | None:
        """Upload ``file`` if given, else a freshly rendered payload."""
        payload: SyncPayload | Path = file if file is not None else self.sync_payload()
        return post_sync(self.settings, payload, transport=transport)

    # -- build --------------------------------------------------------------

    async def _fetch(
        self,
        client: ContentClient,
        jobs: list[FetchJob],
        locale: str,
        processor: ImageProcessor | None,
        downloader: MediaDownloader | None,
    ) -> list[FetchResult]:
        return await fetch_all_for_locale(
            client,
            jobs,
            locale,
            processor=processor,
            downloader=downloader,
            concurrency=self.settings.fetch_concurrency,
        )

    async def _list_pages(self, client: ContentClient) -> list[PageListItem]:
        try:
            pages = await client.list_pages()
        except ContentServiceError as exc:
            logger.warning("Cannot list published pages, building registered pages only: %s", exc)
            return []
        return safe_remote_pages(pages)

    async def _list_locales(self, client: ContentClient) -> list[SiteLocale]:
        try:
            return await client.list_locales()
        except ContentServiceError as exc:
            logger.info("Locales unavailable, building a single locale: %s", exc)
            return []

    async def build(
        self,
        options: BuildOptions | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        media_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Fetch all content and write the complete site to ``options.out_dir``.

        Content-service and media failures are logged and absorbed. Raises
        ``BuildError`` when an output file cannot be written.
        """
        options = options if options is not None else BuildOptions()
        self.registry.freeze()
        out_dir = options.out_dir
        emitter = Emitter(self.registry, out_dir, minify=options.minify)

        downloader: MediaDownloader | None = None
        processor: ImageProcessor | None = None
        if options.download_media:
            downloader = MediaDownloader(
                out_dir / "media",
                MEDIA_WEB_PREFIX,
                timeout=self.settings.media_timeout,
                transport=media_transport,
            )
            processor = downloader.process

        try:
            async with ContentClient(self.settings, transport=transport) as client:
                remote_pages = await self._list_pages(client)
                locales = await self._list_locales(client)
                multi_locale = len(locales) > 1
                jobs = plan_fetch_jobs(self.registry, remote_pages)

                default_locale = ""
                if multi_locale:
                    default_locale = next(
                        (locale.code for locale in locales if locale.is_default), ""
                    )
                    for locale in locales:
                        logger.info("Building locale %s (%s)", locale.code, locale.label)
                        results = await self._fetch(
                            client, jobs, locale.code, processor, downloader
                        )
                        prefixes = ["/" + locale.code]
                        # The default locale is also published at the site root.
                        if locale.is_default:
                            prefixes.append("")
                        for prefix in prefixes:
                            localized = localize_results(results, prefix, locales, default_locale)
                            # Rendering may download media synchronously.
                            await asyncio.to_thread(emitter.write_results, localized)
                else:
                    results = await self._fetch(
                        client, jobs, self.settings.default_locale(), processor, downloader
                    )
                    await asyncio.to_thread(emitter.write_results, results)

                emitter.write_template_files(self.settings.default_locale())
                if self.registry.has_layouts():
                    emitter.write_route_manifest()

                site_url = await resolve_site_url(self.settings, client)
                if site_url:
                    sitemap = collect_sitemap_urls(
                        self.registry,
                        remote_pages,
                        site_url,
                        locales=locales if multi_locale else None,
                        default_locale=default_locale,
                    )
                    files = sitemap.write(out_dir)
                    write_robots_txt(out_dir, site_url)
                    logger.info(
                        "Wrote %s and robots.txt (%d URLs)", ", ".join(files), sitemap.total_urls()
                    )
        finally:
            if downloader is not None:
                downloader.close()

        if options.sync_file is not None:
            self.write_sync_json(options.sync_file)

    def run_build(self, options: BuildOptions | None = None) -> None:
        """Synchronous wrapper around :meth:`build`."""
        asyncio.run(self.build(options))

    async def rebuild(self, options: BuildOptions | None = None) -> None:
        """Run the configured ``before_rebuild`` hook, then build the whole site."""
        if self.settings.before_rebuild is not None:
            self.settings.before_rebuild()
        await self.build(options)
