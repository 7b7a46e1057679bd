"""Tests for image values and their resolved variants."""

from __future__ import annotations

from cmsbuild.exceptions import MediaDownloadError
from cmsbuild.models.media import (
    ImageValue,
    ResolvedMedia,
    build_lqip_url,
    build_media_url,
)

REMOTE = "https://media.test/photo.jpg"


class _RecordingFetcher:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []

    def download(self, remote_url: str) -> str:
        self.calls.append(remote_url)
        if self.fail:
            raise MediaDownloadError("boom", url=remote_url)
        return f"/media/lazy-{len(self.calls)}.jpg"


class TestMediaURLs:
    def test_params_in_canonical_order(self) -> None:
        url = build_media_url(REMOTE, width=800, height=600, quality=75, format="webp")
        assert url == REMOTE + "?w=800&h=600&q=75&format=webp"

    def test_existing_query_uses_ampersand(self) -> None:
        assert build_media_url(REMOTE + "?sig=x", width=400) == REMOTE + "?sig=x&w=400"

    def test_no_params_keeps_url(self) -> None:
        assert build_media_url(REMOTE) == REMOTE

    def test_lqip_url(self) -> None:
        assert build_lqip_url(REMOTE) == REMOTE + "?w=32&q=20"


class TestImageValue:
    def test_remote_urls_without_resolution(self) -> None:
        image = ImageValue(url=REMOTE)
        assert image.src() == REMOTE
        assert image.src(width=400) == REMOTE + "?w=400"
        assert image.src_set(400, 800) == f"{REMOTE}?w=400 400w, {REMOTE}?w=800 800w"
        assert image.lqip() == REMOTE + "?w=32&q=20"
        assert not image.has_format("webp")

    def test_empty_url_yields_empty_strings(self) -> None:
        image = ImageValue()
        assert image.src() == ""
        assert image.src_set(400) == ""
        assert image.lqip() == ""

    def test_resolved_variants_are_used(self) -> None:
        resolved = ResolvedMedia(
            {
                REMOTE: "/media/full.jpg",
                REMOTE + "?w=400": "/media/400.jpg",
                REMOTE + "?w=400&format=webp": "/media/400.webp",
                REMOTE + "?w=32&q=20": "data:image/jpeg;base64,AAAA",
            }
        )
        image = ImageValue(url=REMOTE, resolved=resolved)
        assert image.src() == "/media/full.jpg"
        assert image.src_set(400) == "/media/400.jpg 400w"
        assert image.src_set_for("webp", 400) == "/media/400.webp 400w"
        assert image.lqip().startswith("data:image/jpeg;base64,")
        assert image.has_format("webp")
        assert not image.has_format("avif")

    def test_unresolved_variant_is_downloaded_lazily_and_shared(self) -> None:
        fetcher = _RecordingFetcher()
        resolved = ResolvedMedia({REMOTE: "/media/full.jpg"})
        image = ImageValue(url=REMOTE, resolved=resolved, downloader=fetcher)
        sibling = ImageValue(url=REMOTE, alt="copy", resolved=resolved, downloader=fetcher)

        assert image.src(width=1000) == "/media/lazy-1.jpg"
        assert sibling.src(width=1000) == "/media/lazy-1.jpg"
        assert fetcher.calls == [REMOTE + "?w=1000"]

    def test_failed_lazy_download_falls_back_to_remote(self) -> None:
        image = ImageValue(
            url=REMOTE, resolved=ResolvedMedia(), downloader=_RecordingFetcher(fail=True)
        )
        assert image.src(width=1000) == REMOTE + "?w=1000"

    def test_equality_ignores_resolution(self) -> None:
        assert ImageValue(url=REMOTE, resolved=ResolvedMedia()) == ImageValue(url=REMOTE)
