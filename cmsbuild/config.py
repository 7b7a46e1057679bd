"""Build configuration loaded from environment variables."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Site settings for talking to the content service."""

    model_config = SettingsConfigDict(
        env_prefix="CMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Content service
    api_url: str = "http://localhost:8080"
    site_slug: str = ""
    api_key: str = ""

    # Site
    locale: str = "en"
    site_url: str = ""

    # Network
    request_timeout: float = Field(default=30.0, gt=0)
    media_timeout: float = Field(default=30.0, gt=0)
    fetch_concurrency: int = Field(default=10, ge=1)

    # Invoked by App.rebuild() before a whole-site build; never read from env.
    before_rebuild: Callable[[], None] | None = Field(default=None, exclude=True)

    def api_base(self) -> str:
        """Return the site's API root: ``{api_url}/api/v1/{site_slug}``."""
        return f"{self.api_url.rstrip('/')}/api/v1/{self.site_slug}"

    def default_locale(self) -> str:
        """Return the configured locale, falling back to ``en`` when blank."""
        return self.locale or "en"


@dataclass
class BuildOptions:
    """Options for a single static build."""

    out_dir: Path = Path("dist")
    # When set, the schema-sync payload is also written here.
    sync_file: Path | None = None
    # Download media to {out_dir}/media and rewrite image URLs to local paths.
    download_media: bool = False
    minify: bool = False
