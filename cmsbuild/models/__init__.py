"""Content values passed to render functions."""

from cmsbuild.models.content import (
    ABSENT,
    Absent,
    CurrencyValue,
    EmailTemplateContent,
    EntryContent,
    PageContent,
    Present,
    SEOData,
    SiteLocale,
    URLValue,
)
from cmsbuild.models.media import ImageProcessor, ImageValue, ResolvedMedia

__all__ = [
    "ABSENT",
    "Absent",
    "CurrencyValue",
    "EmailTemplateContent",
    "EntryContent",
    "ImageProcessor",
    "ImageValue",
    "PageContent",
    "Present",
    "ResolvedMedia",
    "SEOData",
    "SiteLocale",
    "URLValue",
]
