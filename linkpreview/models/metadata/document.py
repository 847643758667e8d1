"""Page metadata as produced by a metadata source and persisted in the cache.

Every field is optional; a page without Open Graph tags or JSON-LD is the
normal case, not an error.  Unknown keys are kept (``extra="allow"``) so a
cache entry survives a read/write cycle unchanged.
"""

from __future__ import annotations

from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_MODEL_CONFIG = ConfigDict(frozen=True, extra="allow", populate_by_name=True)


class GeneralMetadata(BaseModel):
    """Plain HTML metadata: ``<title>``, ``meta[name=description]`` and friends."""

    model_config = _MODEL_CONFIG

    title: Optional[str] = None
    description: Optional[str] = None
    canonical: Optional[str] = None
    lang: Optional[str] = None


class OpenGraphImage(BaseModel):
    model_config = _MODEL_CONFIG

    url: Optional[str] = None
    secure_url: Optional[str] = None
    type: Optional[str] = None
    width: Union[str, int, None] = None
    height: Union[str, int, None] = None
    alt: Optional[str] = None


class OpenGraphMetadata(BaseModel):
    model_config = _MODEL_CONFIG

    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    url: Optional[str] = None
    site_name: Optional[str] = None
    image: Union[OpenGraphImage, list[OpenGraphImage], None] = None

    @field_validator("image", mode="before")
    @classmethod
    def _coerce_image(cls, value: object) -> object:
        if isinstance(value, str):
            return {"url": value}
        if isinstance(value, list):
            return [{"url": item} if isinstance(item, str) else item for item in value]
        return value


class Author(BaseModel):
    model_config = _MODEL_CONFIG

    name: Optional[str] = None


class StructuredData(BaseModel):
    """The JSON-LD object describing the page, reduced to what previews use."""

    model_config = _MODEL_CONFIG

    type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("@type", "type"),
        serialization_alias="@type",
    )
    headline: Optional[str] = None
    author: Union[Author, list[Author], None] = None

    @field_validator("author", mode="before")
    @classmethod
    def _coerce_author(cls, value: object) -> object:
        # JSON-LD allows a bare name, an object, or a list mixing both.
        if isinstance(value, str):
            return {"name": value}
        if isinstance(value, list):
            return [{"name": item} if isinstance(item, str) else item for item in value]
        return value


class MetadataDocument(BaseModel):
    """Immutable snapshot of a page's metadata, one per URL.

    Serialized with camelCase keys (``openGraph``, ``structuredData``) as
    indented JSON.  ``jsonLd`` is accepted as a synonym for
    ``structuredData`` when reading entries written by older builds.
    """

    model_config = _MODEL_CONFIG

    general: Optional[GeneralMetadata] = None
    open_graph: Optional[OpenGraphMetadata] = Field(default=None, alias="openGraph")
    structured_data: Optional[StructuredData] = Field(
        default=None,
        validation_alias=AliasChoices("structuredData", "structured_data", "jsonLd"),
        serialization_alias="structuredData",
    )

    def to_json(self) -> str:
        """Serialize as indented JSON with the camelCase cache keys."""
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, data: str | bytes) -> MetadataDocument:
        return cls.model_validate_json(data)
