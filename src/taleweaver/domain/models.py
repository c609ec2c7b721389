"""Core narrative records shared by the store, services, and views."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_COVER_COLOR = "#2d2d2d"
DEFAULT_GENRE = "Drama Real"
DEFAULT_STATUS = "Em andamento"


@dataclass(frozen=True)
class Story:
    """A branching narrative work that owns chapters."""

    story_id: str
    title: str
    description: str
    cover_color: str
    cover_image: str | None
    genre: str
    status: str
    created_at_utc: str
    updated_at_utc: str


@dataclass(frozen=True)
class StorySummary:
    """Catalog row: a story plus its derived chapter count."""

    story: Story
    chapter_count: int

    @property
    def story_id(self) -> str:
        return self.story.story_id


@dataclass(frozen=True)
class Chapter:
    """One narrative unit; an ending chapter is a terminal node."""

    chapter_id: str
    story_id: str
    chapter_number: int
    title: str
    content: str
    is_ending: bool
    created_at_utc: str


@dataclass(frozen=True)
class Choice:
    """A labeled edge from a chapter to an optional destination chapter."""

    choice_id: str
    chapter_id: str
    choice_text: str
    next_chapter_id: str | None
    order_number: int

    @property
    def is_dangling(self) -> bool:
        return self.next_chapter_id is None


@dataclass(frozen=True)
class ReadingProgress:
    """Pointer to the chapter a reader session is currently on."""

    session_id: str
    story_id: str
    current_chapter_id: str
    last_read_utc: str


@dataclass(frozen=True)
class AdminUser:
    """The administrator identity allowed to author stories."""

    user_id: str
    username: str
    password_hash: str
    created_at_utc: str


@dataclass(frozen=True)
class ChapterOutline:
    """A chapter together with its ordered outgoing choices."""

    chapter: Chapter
    choices: tuple[Choice, ...] = field(default_factory=tuple)
