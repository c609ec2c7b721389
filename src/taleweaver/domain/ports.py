"""Persistence port consumed by the narrative services."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from taleweaver.domain.models import (
    AdminUser,
    Chapter,
    Choice,
    ReadingProgress,
    Story,
    StorySummary,
)


class NarrativeStore(Protocol):
    """Document-style store for stories, chapters, choices, progress, and users."""

    def create_story(
        self,
        *,
        title: str,
        description: str,
        cover_color: str,
        cover_image: str | None,
        genre: str,
        status: str,
    ) -> Story:
        ...

    def get_story(self, *, story_id: str) -> Story | None:
        ...

    def update_story(
        self,
        *,
        story_id: str,
        title: str,
        description: str,
        cover_color: str,
        cover_image: str | None,
        genre: str,
        status: str,
    ) -> Story | None:
        ...

    def delete_story(self, *, story_id: str) -> bool:
        ...

    def list_story_summaries(self) -> list[StorySummary]:
        ...

    def create_chapter(
        self,
        *,
        story_id: str,
        chapter_number: int,
        title: str,
        content: str,
        is_ending: bool,
    ) -> Chapter:
        ...

    def get_chapter(self, *, chapter_id: str) -> Chapter | None:
        ...

    def update_chapter(
        self,
        *,
        chapter_id: str,
        chapter_number: int,
        title: str,
        content: str,
        is_ending: bool,
    ) -> Chapter | None:
        ...

    def find_chapters(
        self, *, story_id: str, descending: bool = False, limit: int | None = None
    ) -> list[Chapter]:
        ...

    def delete_chapter(self, *, chapter_id: str) -> bool:
        ...

    def delete_chapters(self, *, story_id: str) -> int:
        ...

    def create_choice(
        self,
        *,
        chapter_id: str,
        choice_text: str,
        next_chapter_id: str | None,
        order_number: int,
    ) -> Choice:
        ...

    def get_choice(self, *, choice_id: str) -> Choice | None:
        ...

    def set_choice_next_chapter(
        self, *, choice_id: str, next_chapter_id: str | None
    ) -> Choice | None:
        ...

    def find_choices(self, *, chapter_ids: Sequence[str]) -> list[Choice]:
        ...

    def delete_choice(self, *, choice_id: str) -> bool:
        ...

    def delete_choices(self, *, chapter_ids: Sequence[str]) -> int:
        ...

    def clear_next_chapter_references(self, *, chapter_id: str) -> int:
        ...

    def get_progress(self, *, session_id: str, story_id: str) -> ReadingProgress | None:
        ...

    def upsert_progress(
        self, *, session_id: str, story_id: str, current_chapter_id: str
    ) -> ReadingProgress:
        ...

    def delete_progress(self, *, session_id: str, story_id: str) -> bool:
        ...

    def delete_story_progress(self, *, story_id: str) -> int:
        ...

    def create_user(self, *, username: str, password_hash: str) -> AdminUser | None:
        ...

    def get_user_by_username(self, *, username: str) -> AdminUser | None:
        ...

    def set_user_password(self, *, username: str, password_hash: str) -> AdminUser | None:
        ...
