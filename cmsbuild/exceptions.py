"""Build-level exception types.

Convention:
- ``ContentServiceError`` and ``MediaDownloadError`` are *absorbed* by the
  build: the caller logs a warning and falls back to empty content or the
  remote URL.
- ``BuildError`` is fatal. It wraps the filesystem path that could not be
  created or written and aborts the build.
- ``SyncError`` is raised only by the schema-sync upload.
"""

from __future__ import annotations


class CMSBuildError(Exception):
    """Base class for all errors raised by cmsbuild."""


class ContentServiceError(CMSBuildError):
    """Raised when a content-service request fails or returns status >= 400."""

    def __init__(self, message: str, *, path: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.status_code = status_code


class MediaDownloadError(CMSBuildError):
    """Raised when a media asset cannot be downloaded or stored."""

    def __init__(self, message: str, *, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class BuildError(CMSBuildError):
    """Raised when an output artifact cannot be written to disk."""

    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class SyncError(CMSBuildError):
    """Raised when the schema-sync upload is rejected by the content service."""
