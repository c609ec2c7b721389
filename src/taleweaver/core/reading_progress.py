"""Per-session reading position within a story."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from taleweaver.core.errors import NoChaptersError, NotFoundError
from taleweaver.domain.models import Chapter, Choice, Story
from taleweaver.domain.ports import NarrativeStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReaderView:
    """Everything the reader page shows for one story."""

    story: Story
    chapter: Chapter
    choices: tuple[Choice, ...]


class ReadingProgressTracker:
    """Resolve and move a reader session's current chapter."""

    def __init__(self, store: NarrativeStore) -> None:
        self._store = store

    def resolve_current_chapter(self, session_id: str, story_id: str) -> Chapter:
        """Return the saved chapter, or the story's first chapter as fallback.

        A saved pointer to a deleted chapter is stale, not an error.
        """
        progress = self._store.get_progress(session_id=session_id, story_id=story_id)
        if progress is not None:
            chapter = self._store.get_chapter(chapter_id=progress.current_chapter_id)
            if chapter is not None:
                return chapter
            logger.info(
                "reader.stale_progress story_id=%s chapter_id=%s",
                story_id,
                progress.current_chapter_id,
            )
        first = self._store.find_chapters(story_id=story_id, limit=1)
        if not first:
            raise NoChaptersError(story_id)
        return first[0]

    def open_chapter(self, session_id: str, story_id: str) -> ReaderView:
        """Resolve the current chapter for display and record it as read."""
        story = self._store.get_story(story_id=story_id)
        if story is None:
            raise NotFoundError("Story", story_id)
        chapter = self.resolve_current_chapter(session_id, story_id)
        choices = self._store.find_choices(chapter_ids=[chapter.chapter_id])
        self._store.upsert_progress(
            session_id=session_id,
            story_id=story_id,
            current_chapter_id=chapter.chapter_id,
        )
        return ReaderView(story=story, chapter=chapter, choices=tuple(choices))

    def advance(self, session_id: str, story_id: str, next_chapter_id: str | None) -> bool:
        """Move the reader to ``next_chapter_id``; False when there is no target."""
        target = (next_chapter_id or "").strip()
        if not target:
            logger.info("reader.advance_skipped story_id=%s reason=empty_target", story_id)
            return False
        self._store.upsert_progress(
            session_id=session_id,
            story_id=story_id,
            current_chapter_id=target,
        )
        logger.info("reader.advance story_id=%s chapter_id=%s", story_id, target)
        return True

    def restart(self, session_id: str, story_id: str) -> None:
        removed = self._store.delete_progress(session_id=session_id, story_id=story_id)
        logger.info("reader.restart story_id=%s removed=%s", story_id, removed)
