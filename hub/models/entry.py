"""Entry models for hosted projects."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from gallery.types import Entry, GalleryView


class CreateEntryRequest(BaseModel):
    """What the client sends to create an entry."""

    model_config = {"extra": "forbid"}

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    code: str = Field(min_length=1)
    accent_color: str | None = Field(default=None, alias="accentColor")

    @field_validator("title", "description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class UpdateEntryRequest(BaseModel):
    """What the client sends to update an entry. All fields optional."""

    model_config = {"extra": "forbid"}

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=2000)
    code: str | None = Field(default=None, min_length=1)
    accent_color: str | None = Field(default=None, alias="accentColor")


class ReorderRequest(BaseModel):
    """Full order of entry ids, first to last."""

    model_config = {"extra": "forbid"}

    ids: list[str] = Field(min_length=1)


class EntryResponse(BaseModel):
    """What the API returns for one entry."""

    model_config = {"populate_by_name": True}

    id: str
    title: str
    description: str
    code: str
    accent_color: str = Field(alias="accentColor")
    order_index: int | None = Field(default=None, alias="orderIndex")
    author_ref: str | None = Field(default=None, alias="authorRef")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @classmethod
    def from_entry(cls, entry: Entry) -> EntryResponse:
        """Convert a core Entry to the public API response."""
        return cls(
            id=entry.id,
            title=entry.title,
            description=entry.description,
            code=entry.code,
            accent_color=entry.accent_color,
            order_index=entry.order_index,
            author_ref=entry.author_ref,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )


class GalleryResponse(BaseModel):
    """The gallery list as one caller sees it."""

    entries: list[EntryResponse]
    can_edit: bool
    filter: str = ""

    @classmethod
    def from_view(cls, view: GalleryView) -> GalleryResponse:
        return cls(
            entries=[EntryResponse.from_entry(e) for e in view.entries],
            can_edit=view.can_edit,
            filter=view.filter_text,
        )
