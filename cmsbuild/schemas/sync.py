"""Schema-sync payload sent to ``POST /sync``."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class EmailVariable(BaseModel):
    """A template variable an email may reference."""

    key: str
    description: str = ""
    sample_value: str = ""


class SyncPage(BaseModel):
    path: str
    title: str = ""
    # Pre-rendered HTML the service parses for field and subcollection discovery.
    html: str = ""


class SyncCollection(BaseModel):
    key: str
    label: str
    template_url: str
    base_path: str
    html: str = ""


class SyncEmailTemplate(BaseModel):
    key: str
    label: str
    subject: str = ""
    html: str
    variables: list[EmailVariable] = Field(default_factory=list)


class SyncPayload(BaseModel):
    """Everything the content service needs to discover the site's schema."""

    pages: list[SyncPage] = Field(default_factory=list)
    collections: list[SyncCollection] = Field(default_factory=list)
    email_templates: list[SyncEmailTemplate] = Field(default_factory=list)

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize the way the service expects: empty optional parts omitted."""
        pages: list[dict[str, Any]] = []
        for page in self.pages:
            item: dict[str, Any] = {"path": page.path}
            if page.title:
                item["title"] = page.title
            if page.html:
                item["html"] = page.html
            pages.append(item)
        data: dict[str, Any] = {"pages": pages}

        if self.collections:
            collections: list[dict[str, Any]] = []
            for collection in self.collections:
                item = collection.model_dump()
                if not collection.html:
                    del item["html"]
                collections.append(item)
            data["collections"] = collections

        if self.email_templates:
            templates: list[dict[str, Any]] = []
            for template in self.email_templates:
                item = {"key": template.key, "label": template.label}
                if template.subject:
                    item["subject"] = template.subject
                item["html"] = template.html
                if template.variables:
                    item["variables"] = [
                        variable.model_dump(exclude_defaults=True)
                        for variable in template.variables
                    ]
                templates.append(item)
            data["email_templates"] = templates
        return data
