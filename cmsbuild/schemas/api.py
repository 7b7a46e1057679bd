"""Response schemas for the content service's public API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class PageListItem(BaseModel):
    """One published page from ``GET /pages``."""

    id: str = ""
    path: str
    slug: str = ""
    template_id: str | None = None
    updated_at: str | None = None


class FieldValueResponse(BaseModel):
    """A single field value; ``value`` is the raw decoded JSON."""

    key: str
    field_definition_id: str | None = None
    locale: str | None = None
    value: Any = None


class SubcollectionEntryResponse(BaseModel):
    id: str = ""
    fields: list[FieldValueResponse] = Field(default_factory=list)
    subcollections: list[SubcollectionResponse] | None = None


class SubcollectionResponse(BaseModel):
    subcollection_id: str = ""
    key: str
    entries: list[SubcollectionEntryResponse] | None = None


class PageResponse(BaseModel):
    """Page content from ``GET /pages/<path>``."""

    id: str = ""
    path: str
    slug: str = ""
    version_id: str | None = None
    version_number: int | None = None
    fields: list[FieldValueResponse] | None = None
    subcollections: list[SubcollectionResponse] | None = None


class SEOResponse(BaseModel):
    meta_title: str | None = None
    meta_description: str | None = None
    og_image_url: str | None = None


class LocaleResponse(BaseModel):
    locale: str
    label: str = ""
    is_default: bool = False


class SiteInfoResponse(BaseModel):
    name: str = ""
    slug: str = ""
    domain: str | None = None
    default_locale: str | None = None


class MediaResponse(BaseModel):
    url: str


class EmailTemplateResponse(BaseModel):
    key: str
    label: str = ""
    subject: str = ""
    variables: Any = None
    fields: list[FieldValueResponse] | None = None


SubcollectionEntryResponse.model_rebuild()
