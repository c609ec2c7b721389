"""Story records and the catalog listing."""

from __future__ import annotations

import logging

from taleweaver.core.commands import StoryDraft
from taleweaver.core.errors import NotFoundError
from taleweaver.core.narrative_graph import NarrativeGraph
from taleweaver.domain.models import Story, StorySummary
from taleweaver.domain.ports import NarrativeStore

logger = logging.getLogger(__name__)


class StoryCatalog:
    """List, create, update, and cascade-delete stories."""

    def __init__(self, store: NarrativeStore, graph: NarrativeGraph) -> None:
        self._store = store
        self._graph = graph

    def list_stories(self) -> list[StorySummary]:
        """All stories with chapter counts, newest first."""
        return self._store.list_story_summaries()

    def get_story(self, story_id: str) -> Story:
        story = self._store.get_story(story_id=story_id)
        if story is None:
            raise NotFoundError("Story", story_id)
        return story

    def create_story(self, command: StoryDraft) -> Story:
        story = self._store.create_story(
            title=command.title,
            description=command.description,
            cover_color=command.cover_color,
            cover_image=command.cover_image,
            genre=command.genre,
            status=command.status,
        )
        logger.info("story.create story_id=%s", story.story_id)
        return story

    def update_story(self, story_id: str, command: StoryDraft) -> Story:
        story = self._store.update_story(
            story_id=story_id,
            title=command.title,
            description=command.description,
            cover_color=command.cover_color,
            cover_image=command.cover_image,
            genre=command.genre,
            status=command.status,
        )
        if story is None:
            raise NotFoundError("Story", story_id)
        logger.info("story.update story_id=%s", story_id)
        return story

    def delete_story(self, story_id: str) -> bool:
        """Delete the story graph first, then the story row itself."""
        self._graph.delete_story_graph(story_id)
        deleted = self._store.delete_story(story_id=story_id)
        logger.info("story.delete story_id=%s deleted=%s", story_id, deleted)
        return deleted
