from __future__ import annotations

from pathlib import Path

import pytest

from taleweaver.adapters.sqlite_narrative_store import SQLiteNarrativeStore
from taleweaver.core.commands import ChapterDraft, ChoiceDraft, StoryDraft
from taleweaver.core.errors import NoChaptersError, NotFoundError
from taleweaver.core.narrative_graph import NarrativeGraph
from taleweaver.core.reading_progress import ReadingProgressTracker
from taleweaver.core.story_catalog import StoryCatalog


def _setup(tmp_path: Path) -> tuple[SQLiteNarrativeStore, NarrativeGraph, ReadingProgressTracker, str]:
    store = SQLiteNarrativeStore(db_path=tmp_path / "reader.db")
    graph = NarrativeGraph(store)
    story_id = StoryCatalog(store, graph).create_story(StoryDraft(title="Drama A")).story_id
    return store, graph, ReadingProgressTracker(store), story_id


def _chapter(graph: NarrativeGraph, story_id: str, number: int) -> str:
    draft = ChapterDraft(chapter_number=number, title=f"Chapter {number}", content=f"Text {number}")
    return graph.create_chapter(story_id, draft).chapter_id


def test_first_visit_starts_at_lowest_chapter_and_records_progress(tmp_path: Path) -> None:
    store, graph, tracker, story_id = _setup(tmp_path)
    _chapter(graph, story_id, 2)
    first = _chapter(graph, story_id, 1)
    graph.add_choice(first, ChoiceDraft(choice_text="Onward", order_number=1))

    view = tracker.open_chapter("session-1", story_id)

    assert view.story.story_id == story_id
    assert view.chapter.chapter_id == first
    assert [choice.choice_text for choice in view.choices] == ["Onward"]
    progress = store.get_progress(session_id="session-1", story_id=story_id)
    assert progress is not None
    assert progress.current_chapter_id == first


def test_advance_moves_reader_and_sessions_are_isolated(tmp_path: Path) -> None:
    _, graph, tracker, story_id = _setup(tmp_path)
    first = _chapter(graph, story_id, 1)
    second = _chapter(graph, story_id, 2)

    assert tracker.advance("session-1", story_id, second) is True

    assert tracker.open_chapter("session-1", story_id).chapter.chapter_id == second
    assert tracker.open_chapter("session-2", story_id).chapter.chapter_id == first


def test_advance_with_blank_target_is_a_noop(tmp_path: Path) -> None:
    store, graph, tracker, story_id = _setup(tmp_path)
    _chapter(graph, story_id, 1)

    assert tracker.advance("session-1", story_id, None) is False
    assert tracker.advance("session-1", story_id, "   ") is False
    assert store.get_progress(session_id="session-1", story_id=story_id) is None


def test_stale_progress_falls_back_to_first_chapter(tmp_path: Path) -> None:
    _, graph, tracker, story_id = _setup(tmp_path)
    first = _chapter(graph, story_id, 1)
    second = _chapter(graph, story_id, 2)
    tracker.advance("session-1", story_id, second)

    graph.delete_chapter(second)

    assert tracker.resolve_current_chapter("session-1", story_id).chapter_id == first


def test_restart_forgets_position(tmp_path: Path) -> None:
    _, graph, tracker, story_id = _setup(tmp_path)
    first = _chapter(graph, story_id, 1)
    second = _chapter(graph, story_id, 2)
    tracker.advance("session-1", story_id, second)

    tracker.restart("session-1", story_id)
    tracker.restart("session-1", story_id)

    assert tracker.resolve_current_chapter("session-1", story_id).chapter_id == first


def test_story_without_chapters_raises_no_chapters(tmp_path: Path) -> None:
    store, _, tracker, story_id = _setup(tmp_path)

    with pytest.raises(NoChaptersError):
        tracker.open_chapter("session-1", story_id)
    assert store.get_progress(session_id="session-1", story_id=story_id) is None


def test_unknown_story_is_not_found(tmp_path: Path) -> None:
    _, _, tracker, _ = _setup(tmp_path)

    with pytest.raises(NotFoundError) as excinfo:
        tracker.open_chapter("session-1", "missing")
    assert not isinstance(excinfo.value, NoChaptersError)
