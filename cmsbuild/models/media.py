"""Image field values and their build-time resolution."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from cmsbuild.exceptions import MediaDownloadError

logger = logging.getLogger(__name__)

LQIP_PARAMS = "w=32&q=20"


class MediaFetcher(Protocol):
    """Anything that can turn a remote media URL into a local web path."""

    def download(self, remote_url: str) -> str:
        """Download ``remote_url`` and return the local path that serves it."""
        ...


class ResolvedMedia:
    """Thread-safe mapping of remote URL (with query) to local path or data URI.

    One instance is shared by every copy of an ``ImageValue`` so variants
    downloaded lazily at render time are visible to all of them.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, remote_url: str) -> str | None:
        with self._lock:
            return self._items.get(remote_url)

    def set(self, remote_url: str, local: str) -> None:
        with self._lock:
            self._items[remote_url] = local

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._items)

    def __contains__(self, remote_url: object) -> bool:
        with self._lock:
            return remote_url in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


def query_separator(url: str) -> str:
    """Return ``&`` if ``url`` already carries a query string, else ``?``."""
    return "&" if "?" in url else "?"


def media_params(
    *, width: int = 0, height: int = 0, quality: int = 0, format: str = ""
) -> list[str]:
    """Return the media-processing query parameters in their canonical order."""
    params: list[str] = []
    if width > 0:
        params.append(f"w={width}")
    if height > 0:
        params.append(f"h={height}")
    if quality > 0:
        params.append(f"q={quality}")
    if format:
        params.append(f"format={format}")
    return params


def build_media_url(
    base_url: str, *, width: int = 0, height: int = 0, quality: int = 0, format: str = ""
) -> str:
    """Append processing parameters to a media URL; unchanged when none are set."""
    params = media_params(width=width, height=height, quality=quality, format=format)
    if not params:
        return base_url
    return base_url + query_separator(base_url) + "&".join(params)


def build_lqip_url(base_url: str) -> str:
    """Return the low-quality placeholder variant URL (32px wide, quality 20)."""
    return base_url + query_separator(base_url) + LQIP_PARAMS


@dataclass(frozen=True)
class ImageValue:
    """A CMS image field value.

    Outside a media-downloading build ``resolved`` is ``None`` and every
    accessor returns remote URLs.
    """

    url: str = ""
    alt: str = ""
    resolved: ResolvedMedia | None = field(default=None, compare=False, repr=False)
    downloader: MediaFetcher | None = field(default=None, compare=False, repr=False)

    def _local(self, remote_url: str) -> str:
        if self.resolved is None:
            return remote_url
        local = self.resolved.get(remote_url)
        if local is not None:
            return local
        # Variant was not pre-downloaded (e.g. a custom width); fetch it now.
        if self.downloader is not None:
            try:
                local = self.downloader.download(remote_url)
            except MediaDownloadError:
                logger.debug("Lazy media download failed for %s", remote_url, exc_info=True)
                return remote_url
            self.resolved.set(remote_url, local)
            return local
        return remote_url

    def src(
        self, *, width: int = 0, height: int = 0, quality: int = 0, format: str = ""
    ) -> str:
        """Return the image URL with processing options, or its local path."""
        if not self.url:
            return ""
        remote = build_media_url(
            self.url, width=width, height=height, quality=quality, format=format
        )
        return self._local(remote)

    def src_set(self, *widths: int) -> str:
        """Return a responsive ``srcset`` value for ``widths``."""
        if not self.url or not widths:
            return ""
        sep = query_separator(self.url)
        return ", ".join(f"{self._local(f'{self.url}{sep}w={w}')} {w}w" for w in widths)

    def src_set_for(self, format: str, *widths: int) -> str:
        """Return a ``srcset`` value for one output format (``webp``, ``avif``)."""
        if not self.url or not format or not widths:
            return ""
        sep = query_separator(self.url)
        return ", ".join(
            f"{self._local(f'{self.url}{sep}w={w}&format={format}')} {w}w" for w in widths
        )

    def has_format(self, format: str) -> bool:
        """Report whether at least one variant in ``format`` was downloaded."""
        if self.resolved is None or not self.url or not format:
            return False
        suffix = f"&format={format}"
        return any(suffix in key for key in self.resolved.keys())

    def lqip(self) -> str:
        """Return the placeholder URL, or its inlined data URI during builds."""
        if not self.url:
            return ""
        remote = build_lqip_url(self.url)
        if self.resolved is not None:
            local = self.resolved.get(remote)
            if local is not None:
                return local
        return remote


ImageProcessor = Callable[[ImageValue], ImageValue]
