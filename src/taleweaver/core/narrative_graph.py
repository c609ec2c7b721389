"""Chapter and choice operations over the story graph."""

from __future__ import annotations

import logging

from taleweaver.core.commands import ChapterDraft, ChoiceDraft
from taleweaver.core.errors import NotFoundError
from taleweaver.domain.models import Chapter, ChapterOutline, Choice
from taleweaver.domain.ports import NarrativeStore

logger = logging.getLogger(__name__)


class NarrativeGraph:
    """CRUD and ordering queries for chapters and the choices linking them.

    Multi-step deletes run as independent store calls with no rollback. An
    interruption part way leaves dangling choice links, which readers and
    authors already treat as a valid state.
    """

    def __init__(self, store: NarrativeStore) -> None:
        self._store = store

    def create_chapter(self, story_id: str, command: ChapterDraft) -> Chapter:
        if self._store.get_story(story_id=story_id) is None:
            raise NotFoundError("Story", story_id)
        chapter = self._store.create_chapter(
            story_id=story_id,
            chapter_number=command.chapter_number,
            title=command.title,
            content=command.content,
            is_ending=command.is_ending,
        )
        logger.info(
            "chapter.create story_id=%s chapter_id=%s number=%s",
            story_id,
            chapter.chapter_id,
            chapter.chapter_number,
        )
        return chapter

    def update_chapter(self, chapter_id: str, command: ChapterDraft) -> Chapter:
        chapter = self._store.update_chapter(
            chapter_id=chapter_id,
            chapter_number=command.chapter_number,
            title=command.title,
            content=command.content,
            is_ending=command.is_ending,
        )
        if chapter is None:
            raise NotFoundError("Chapter", chapter_id)
        logger.info("chapter.update chapter_id=%s", chapter_id)
        return chapter

    def get_chapter(self, chapter_id: str) -> Chapter | None:
        return self._store.get_chapter(chapter_id=chapter_id)

    def next_chapter_number(self, story_id: str) -> int:
        """Suggest the number for a new chapter: one past the highest in use.

        Advisory only; nothing stops an author from reusing a number.
        """
        latest = self._store.find_chapters(story_id=story_id, descending=True, limit=1)
        if not latest:
            return 1
        return latest[0].chapter_number + 1

    def list_chapters_ordered(self, story_id: str) -> list[Chapter]:
        return self._store.find_chapters(story_id=story_id)

    def list_chapters_with_choices(self, story_id: str) -> list[ChapterOutline]:
        """Every chapter of the story paired with its ordered choices."""
        chapters = self.list_chapters_ordered(story_id)
        choices = self._store.find_choices(
            chapter_ids=[chapter.chapter_id for chapter in chapters]
        )
        by_chapter: dict[str, list[Choice]] = {chapter.chapter_id: [] for chapter in chapters}
        for choice in choices:
            by_chapter[choice.chapter_id].append(choice)
        return [
            ChapterOutline(chapter=chapter, choices=tuple(by_chapter[chapter.chapter_id]))
            for chapter in chapters
        ]

    def delete_chapter(self, chapter_id: str) -> None:
        """Delete a chapter, its own choices, and unlink choices leading to it."""
        removed_choices = self._store.delete_choices(chapter_ids=[chapter_id])
        unlinked = self._store.clear_next_chapter_references(chapter_id=chapter_id)
        deleted = self._store.delete_chapter(chapter_id=chapter_id)
        logger.info(
            "chapter.delete chapter_id=%s deleted=%s removed_choices=%s unlinked_choices=%s",
            chapter_id,
            deleted,
            removed_choices,
            unlinked,
        )

    def list_choices_ordered(self, chapter_id: str) -> list[Choice]:
        return self._store.find_choices(chapter_ids=[chapter_id])

    def get_choice(self, choice_id: str) -> Choice | None:
        return self._store.get_choice(choice_id=choice_id)

    def add_choice(self, chapter_id: str, command: ChoiceDraft) -> Choice:
        if self._store.get_chapter(chapter_id=chapter_id) is None:
            raise NotFoundError("Chapter", chapter_id)
        choice = self._store.create_choice(
            chapter_id=chapter_id,
            choice_text=command.choice_text,
            next_chapter_id=command.next_chapter_id,
            order_number=command.order_number,
        )
        logger.info(
            "choice.create chapter_id=%s choice_id=%s next_chapter_id=%s",
            chapter_id,
            choice.choice_id,
            choice.next_chapter_id,
        )
        return choice

    def delete_choice(self, choice_id: str) -> None:
        deleted = self._store.delete_choice(choice_id=choice_id)
        logger.info("choice.delete choice_id=%s deleted=%s", choice_id, deleted)

    def delete_story_graph(self, story_id: str) -> None:
        """Remove every chapter, choice, and reading position of a story.

        The story row itself is left for the caller to delete last.
        """
        chapter_ids = [chapter.chapter_id for chapter in self.list_chapters_ordered(story_id)]
        removed_choices = self._store.delete_choices(chapter_ids=chapter_ids)
        removed_chapters = self._store.delete_chapters(story_id=story_id)
        removed_progress = self._store.delete_story_progress(story_id=story_id)
        logger.info(
            "story.graph_delete story_id=%s chapters=%s choices=%s progress=%s",
            story_id,
            removed_chapters,
            removed_choices,
            removed_progress,
        )
