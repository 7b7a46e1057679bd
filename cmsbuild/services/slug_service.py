"""Path-derived slugs, titles and output-file locations."""

from __future__ import annotations

import posixpath
from pathlib import Path

from cmsbuild.exceptions import BuildError

ERROR_PAGE_NAMES = frozenset({"404", "500"})


def path_slug(path: str) -> str:
    """Return the last segment of a URL path; ``/`` yields ``index``."""
    trimmed = path.strip("/")
    if not trimmed:
        return "index"
    return trimmed.split("/")[-1]


def title_from_path(path: str) -> str:
    """Derive a human-readable title from a URL path.

    - ``/`` -> ``Home``
    - ``/contact-us`` -> ``Contact Us``
    - ``/blog/my-first-post`` -> ``My First Post``
    """
    trimmed = path.strip("/")
    if not trimmed:
        return "Home"
    last = trimmed.split("/")[-1]
    return " ".join(word[:1].upper() + word[1:] for word in last.split("-"))


def collection_key(base_path: str) -> str:
    """Return the first path segment after the leading slash."""
    return base_path.lstrip("/").split("/", 1)[0]


def is_error_page(path: str) -> bool:
    """True for paths whose last segment is an HTTP error code (404, 500)."""
    return posixpath.basename(path.rstrip("/")) in ERROR_PAGE_NAMES


def is_safe_url_path(path: str) -> bool:
    """True for absolute URL paths without ``.``/``..`` segments or backslashes."""
    if not path.startswith("/") or "\\" in path or "\x00" in path:
        return False
    return not any(segment in (".", "..") for segment in path.split("/"))


def _contained(out_dir: Path, target: Path, url_path: str) -> Path:
    """Return ``target``; raise ``BuildError`` when it resolves outside ``out_dir``."""
    if not target.resolve().is_relative_to(out_dir.resolve()):
        raise BuildError(f"Path traversal detected: {url_path}", path=str(target))
    return target


def _output_file(out_dir: Path, url_path: str, suffix: str) -> Path:
    trimmed = url_path.strip("/")
    if not trimmed:
        return out_dir / f"index{suffix}"
    # Error pages are flat files so static hosts serve them automatically.
    if posixpath.basename(trimmed) in ERROR_PAGE_NAMES:
        return _contained(out_dir, out_dir / f"{trimmed}{suffix}", url_path)
    return _contained(out_dir, out_dir / trimmed / f"index{suffix}", url_path)


def path_to_file(out_dir: Path, url_path: str) -> Path:
    """Map a URL path to its production HTML file.

    ``/`` -> ``index.html``, ``/about`` -> ``about/index.html``,
    ``/404`` -> ``404.html``.
    """
    return _output_file(out_dir, url_path, ".html")


def path_to_template_file(out_dir: Path, url_path: str) -> Path:
    """Map a URL path to its authoring template file (``*.template.html``)."""
    return _output_file(out_dir, url_path, ".template.html")


def path_to_fragment_file(out_dir: Path, url_path: str, layout_id: str) -> Path:
    """Map a URL path and layout id to ``{dir}/_{layout_id}.html``."""
    trimmed = url_path.strip("/")
    name = f"_{layout_id}.html"
    if not trimmed:
        return out_dir / name
    return _contained(out_dir, out_dir / trimmed / name, url_path)
