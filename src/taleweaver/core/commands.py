"""Validated authoring commands consumed by the narrative services."""

from __future__ import annotations

import re
from typing import Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationInfo,
    field_validator,
)

from taleweaver.domain.models import DEFAULT_COVER_COLOR, DEFAULT_GENRE, DEFAULT_STATUS

COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
SYNTHESIZED_TITLE_CHARS = 30
# SQLite INTEGER range; chapter numbers stay one below so a spawned child fits.
SQLITE_INT_MIN = -(2**63)
SQLITE_INT_MAX = 2**63 - 1
MAX_CHAPTER_NUMBER = SQLITE_INT_MAX - 1

# Body text keeps its indentation and trailing newlines.
BodyText = Annotated[str, StringConstraints(strip_whitespace=False)]


class CommandModel(BaseModel):
    """Base model config used by all commands."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, frozen=True)


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class StoryDraft(CommandModel):
    """Fields an author may set on a story."""

    title: str = Field(min_length=1, max_length=300)
    description: str = Field(default="", max_length=5000)
    cover_color: str = DEFAULT_COVER_COLOR
    cover_image: str | None = Field(default=None, max_length=2000)
    genre: str = Field(default=DEFAULT_GENRE, max_length=120)
    status: str = Field(default=DEFAULT_STATUS, max_length=120)

    @field_validator("cover_color", mode="before")
    @classmethod
    def _default_blank_color(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_COVER_COLOR
        return value

    @field_validator("cover_color")
    @classmethod
    def _validate_color(cls, value: str) -> str:
        if not COLOR_PATTERN.match(value):
            raise ValueError("Cover color must be a hex color such as #2d2d2d.")
        return value.lower()

    @field_validator("genre", "status", mode="before")
    @classmethod
    def _default_blank_labels(cls, value: object, info: ValidationInfo) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_GENRE if info.field_name == "genre" else DEFAULT_STATUS
        return value

    @field_validator("cover_image", mode="before")
    @classmethod
    def _blank_image_is_none(cls, value: str | None) -> str | None:
        return _optional_text(value)


class ChapterDraft(CommandModel):
    """Fields an author may set on a chapter."""

    chapter_number: int = Field(ge=0, le=MAX_CHAPTER_NUMBER)
    title: str = Field(min_length=1, max_length=300)
    content: BodyText = Field(min_length=1)
    is_ending: bool = False

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Chapter content must not be blank.")
        return value


class ChoiceDraft(CommandModel):
    """One choice added directly to a chapter."""

    choice_text: str = Field(min_length=1, max_length=500)
    next_chapter_id: str | None = None
    order_number: int = Field(default=0, ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)

    @field_validator("next_chapter_id", mode="before")
    @classmethod
    def _blank_link_is_dangling(cls, value: str | None) -> str | None:
        return _optional_text(value)


class ChoiceDraftEntry(CommandModel):
    """One row of the guided chapter form.

    Rows with blank ``text`` are skipped by the workflow; a non-blank
    ``next_content`` spawns a new destination chapter.
    """

    key: int = Field(ge=0, le=SQLITE_INT_MAX)
    text: str = Field(default="", max_length=500)
    next_content: BodyText = ""
    order: int | None = Field(default=None, ge=SQLITE_INT_MIN, le=SQLITE_INT_MAX)

    @property
    def is_blank(self) -> bool:
        return not self.text

    @property
    def spawns_chapter(self) -> bool:
        return bool(self.next_content.strip())

    @property
    def effective_order(self) -> int:
        return self.order if self.order is not None else self.key


class ChapterWithChoices(CommandModel):
    """A chapter plus all of its outgoing choices, submitted at once."""

    chapter_id: str | None = None
    chapter: ChapterDraft
    choices: tuple[ChoiceDraftEntry, ...] = ()
    originating_choice_id: str | None = None

    @field_validator("chapter_id", "originating_choice_id", mode="before")
    @classmethod
    def _blank_ids_are_absent(cls, value: str | None) -> str | None:
        return _optional_text(value)


def synthesized_chapter_title(parent_title: str, choice_text: str) -> str:
    """Title given to a chapter spawned inline from a choice."""
    return f"{parent_title} - {choice_text[:SYNTHESIZED_TITLE_CHARS]}..."
