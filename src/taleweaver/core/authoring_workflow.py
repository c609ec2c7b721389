"""Guided authoring: one chapter and all of its choices in a single submission."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from taleweaver.core.commands import (
    ChapterDraft,
    ChapterWithChoices,
    ChoiceDraftEntry,
    synthesized_chapter_title,
)
from taleweaver.core.errors import NotFoundError, PersistenceFailure
from taleweaver.core.narrative_graph import NarrativeGraph
from taleweaver.domain.models import Chapter, Choice, Story
from taleweaver.domain.ports import NarrativeStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChapterFormContext:
    """Data the chapter form needs before the author types anything."""

    story: Story
    next_number: int
    chapter: Chapter | None = None
    choices: tuple[Choice, ...] = ()
    originating_choice: Choice | None = None
    source_chapter: Chapter | None = None


class AuthoringWorkflow:
    """Create or edit a chapter together with its outgoing choices.

    Writes are sequential and are not rolled back on failure; a partially
    applied save leaves at worst dangling choices or an unlinked chapter.
    Two concurrent saves of the same chapter race and the last one wins.
    """

    def __init__(self, store: NarrativeStore, graph: NarrativeGraph) -> None:
        self._store = store
        self._graph = graph

    def prepare_chapter_form(
        self, story_id: str, originating_choice_id: str | None = None
    ) -> ChapterFormContext:
        story = self._require_story(story_id)
        next_number = self._graph.next_chapter_number(story_id)
        if originating_choice_id is None:
            return ChapterFormContext(story=story, next_number=next_number)
        choice = self._graph.get_choice(originating_choice_id)
        if choice is None:
            raise NotFoundError("Choice", originating_choice_id)
        return ChapterFormContext(
            story=story,
            next_number=next_number,
            originating_choice=choice,
            source_chapter=self._graph.get_chapter(choice.chapter_id),
        )

    def prepare_edit_form(self, story_id: str, chapter_id: str) -> ChapterFormContext:
        story = self._require_story(story_id)
        chapter = self._graph.get_chapter(chapter_id)
        if chapter is None:
            raise NotFoundError("Chapter", chapter_id)
        return ChapterFormContext(
            story=story,
            next_number=chapter.chapter_number,
            chapter=chapter,
            choices=tuple(self._graph.list_choices_ordered(chapter_id)),
        )

    def save_chapter(
        self, story_id: str, chapter_id: str | None, command: ChapterDraft
    ) -> Chapter:
        """Create or update a bare chapter without touching its choices."""
        if chapter_id:
            return self._graph.update_chapter(chapter_id, command)
        return self._graph.create_chapter(story_id, command)

    def save_chapter_with_choices(self, story_id: str, command: ChapterWithChoices) -> str:
        """Persist the chapter and its choices; return the chapter id."""
        try:
            return self._save(story_id, command)
        except PersistenceFailure:
            logger.exception(
                "authoring.save_failed story_id=%s chapter_id=%s", story_id, command.chapter_id
            )
            raise

    def _save(self, story_id: str, command: ChapterWithChoices) -> str:
        chapter = self.save_chapter(story_id, command.chapter_id, command.chapter)

        if command.originating_choice_id is not None:
            linked = self._store.set_choice_next_chapter(
                choice_id=command.originating_choice_id,
                next_chapter_id=chapter.chapter_id,
            )
            if linked is None:
                logger.warning(
                    "authoring.link_back_missing choice_id=%s chapter_id=%s",
                    command.originating_choice_id,
                    chapter.chapter_id,
                )
            else:
                logger.info(
                    "authoring.link_back choice_id=%s chapter_id=%s",
                    linked.choice_id,
                    chapter.chapter_id,
                )

        if chapter.is_ending or not command.choices:
            return chapter.chapter_id

        # Spawned continuations keep whatever choices the chapter already had.
        if command.originating_choice_id is None:
            self._store.delete_choices(chapter_ids=[chapter.chapter_id])

        created = 0
        spawned = 0
        for entry in command.choices:
            if entry.is_blank:
                continue
            next_chapter_id: str | None = None
            if entry.spawns_chapter:
                next_chapter_id = self._spawn_chapter(chapter, entry).chapter_id
                spawned += 1
            self._store.create_choice(
                chapter_id=chapter.chapter_id,
                choice_text=entry.text,
                next_chapter_id=next_chapter_id,
                order_number=entry.effective_order,
            )
            created += 1
        logger.info(
            "authoring.save story_id=%s chapter_id=%s choices=%s spawned_chapters=%s",
            story_id,
            chapter.chapter_id,
            created,
            spawned,
        )
        return chapter.chapter_id

    def _spawn_chapter(self, parent: Chapter, entry: ChoiceDraftEntry) -> Chapter:
        # Sibling spawns share one number; collisions are left for the author.
        return self._store.create_chapter(
            story_id=parent.story_id,
            chapter_number=parent.chapter_number + 1,
            title=synthesized_chapter_title(parent.title, entry.text),
            content=entry.next_content,
            is_ending=False,
        )

    def _require_story(self, story_id: str) -> Story:
        story = self._store.get_story(story_id=story_id)
        if story is None:
            raise NotFoundError("Story", story_id)
        return story
