"""Download CMS media into the build output and rewrite image URLs."""

from __future__ import annotations

import base64
import hashlib
import logging
import mimetypes
import os
import posixpath
import threading
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

import httpx

from cmsbuild.exceptions import MediaDownloadError
from cmsbuild.models.media import (
    ImageValue,
    ResolvedMedia,
    build_lqip_url,
    query_separator,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

# Responsive widths downloaded for every image.
DEFAULT_SRCSET_WIDTHS = (400, 800, 1200, 1600)
# Format variants attempted per width; unsupported formats are skipped.
DEFAULT_FORMATS = ("avif", "webp")

MEDIA_WEB_PREFIX = "/media"

_VOLATILE_PARAMS = frozenset({"sig", "exp"})
_PREFERRED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".avif", ".gif", ".svg")

# Types the platform MIME table may not know about.
mimetypes.add_type("image/webp", ".webp")
mimetypes.add_type("image/avif", ".avif")
mimetypes.add_type("image/svg+xml", ".svg")


def stable_url(raw_url: str) -> str:
    """Drop volatile signing parameters (``sig``, ``exp``) and sort the query.

    Signed URLs whose signature rotates between builds map to the same
    string, and so to the same filename.
    """
    try:
        parts = urlsplit(raw_url)
    except ValueError:
        return raw_url
    query = parse_qs(parts.query, keep_blank_values=True)
    kept = [
        (key, value)
        for key in sorted(query)
        if key not in _VOLATILE_PARAMS
        for value in query[key]
    ]
    return urlunsplit(parts._replace(query=urlencode(kept)))


def hash_filename(raw_url: str) -> str:
    """Return the hex of the first 8 bytes of SHA-256 over the stable URL."""
    return hashlib.sha256(stable_url(raw_url).encode()).digest()[:8].hex()


def _media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip()


def extension_from_response(content_type: str, url: str) -> str:
    """Pick a file extension from the Content-Type header, then the URL path."""
    media_type = _media_type(content_type)
    if media_type:
        extensions = mimetypes.guess_all_extensions(media_type)
        if extensions:
            for ext in extensions:
                if ext in _PREFERRED_EXTENSIONS:
                    return ext
            return extensions[0]

    path = url.split("?", 1)[0]
    ext = posixpath.splitext(path)[1]
    if ext:
        return ext
    return ".jpg"


class MediaDownloader:
    """Downloads media to ``out_dir`` and serves them under ``web_prefix``.

    The cache is keyed by the original URL (query included) and may be shared
    by concurrent fetch workers. Two workers missing the same URL at once may
    both download it; the filename is content-stable so the later write wins.
    """

    def __init__(
        self,
        out_dir: Path,
        web_prefix: str = MEDIA_WEB_PREFIX,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.out_dir = out_dir
        self.web_prefix = web_prefix.rstrip("/")
        self.client = httpx.Client(timeout=timeout, follow_redirects=True, transport=transport)
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> MediaDownloader:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _cached(self, remote_url: str) -> str | None:
        with self._lock:
            return self._cache.get(remote_url)

    def _store(self, remote_url: str, local: str) -> None:
        with self._lock:
            self._cache[remote_url] = local

    def _fetch(self, remote_url: str) -> httpx.Response:
        try:
            response = self.client.get(remote_url)
        except httpx.HTTPError as exc:
            raise MediaDownloadError(
                f"Download of {remote_url} failed: {exc}", url=remote_url
            ) from exc
        if response.status_code >= 400:
            raise MediaDownloadError(
                f"Download of {remote_url} returned status {response.status_code}",
                url=remote_url,
            )
        return response

    def download(self, remote_url: str) -> str:
        """Save ``remote_url`` under ``out_dir`` and return its web path."""
        cached = self._cached(remote_url)
        if cached is not None:
            return cached

        response = self._fetch(remote_url)
        ext = extension_from_response(response.headers.get("content-type", ""), remote_url)
        filename = hash_filename(remote_url) + ext
        file_path = self.out_dir / filename
        try:
            self.out_dir.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(response.content)
            os.chmod(file_path, 0o644)
        except OSError as exc:
            raise MediaDownloadError(f"Cannot write {file_path}: {exc}", url=remote_url) from exc

        web_path = f"{self.web_prefix}/{filename}"
        self._store(remote_url, web_path)
        logger.debug("Downloaded %s -> %s", remote_url, web_path)
        return web_path

    def download_data_uri(self, remote_url: str) -> str:
        """Fetch ``remote_url`` and return it inlined as a base64 ``data:`` URI."""
        cached = self._cached(remote_url)
        if cached is not None:
            return cached

        response = self._fetch(remote_url)
        media_type = _media_type(response.headers.get("content-type", "")) or "image/jpeg"
        encoded = base64.b64encode(response.content).decode("ascii")
        data_uri = f"data:{media_type};base64,{encoded}"
        self._store(remote_url, data_uri)
        return data_uri

    def _try(self, resolved: dict[str, str], remote_url: str, *, inline: bool = False) -> None:
        try:
            if inline:
                resolved[remote_url] = self.download_data_uri(remote_url)
            else:
                resolved[remote_url] = self.download(remote_url)
        except MediaDownloadError as exc:
            logger.debug("Skipping media variant %s: %s", remote_url, exc)

    def process(self, image: ImageValue) -> ImageValue:
        """Download every standard variant of ``image`` and attach the results.

        Missing variants are skipped, so render code falls back to the remote
        URL or omits the ``<source>`` for that format.
        """
        if not image.url:
            return image

        resolved: dict[str, str] = {}
        self._try(resolved, image.url)
        self._try(resolved, build_lqip_url(image.url), inline=True)

        sep = query_separator(image.url)
        for width in DEFAULT_SRCSET_WIDTHS:
            self._try(resolved, f"{image.url}{sep}w={width}")
        for fmt in DEFAULT_FORMATS:
            for width in DEFAULT_SRCSET_WIDTHS:
                self._try(resolved, f"{image.url}{sep}w={width}&format={fmt}")

        return ImageValue(
            url=image.url,
            alt=image.alt,
            resolved=ResolvedMedia(resolved),
            downloader=self,
        )
