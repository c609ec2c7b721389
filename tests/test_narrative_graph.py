from __future__ import annotations

from pathlib import Path

import pytest

from taleweaver.adapters.sqlite_narrative_store import SQLiteNarrativeStore
from taleweaver.core.commands import ChapterDraft, ChoiceDraft, StoryDraft
from taleweaver.core.errors import NotFoundError, PersistenceFailure
from taleweaver.core.narrative_graph import NarrativeGraph
from taleweaver.core.reading_progress import ReadingProgressTracker
from taleweaver.core.story_catalog import StoryCatalog


class _ChapterDeleteFails(SQLiteNarrativeStore):
    """Store that crashes on the last step of a chapter delete."""

    def delete_chapter(self, *, chapter_id: str) -> bool:
        raise PersistenceFailure("store went away")


def _graph(tmp_path: Path) -> tuple[SQLiteNarrativeStore, NarrativeGraph, str]:
    store = SQLiteNarrativeStore(db_path=tmp_path / "graph.db")
    graph = NarrativeGraph(store)
    story = StoryCatalog(store, graph).create_story(StoryDraft(title="Drama A"))
    return store, graph, story.story_id


def _chapter(graph: NarrativeGraph, story_id: str, number: int, title: str = "") -> str:
    draft = ChapterDraft(chapter_number=number, title=title or f"Chapter {number}", content="...")
    return graph.create_chapter(story_id, draft).chapter_id


def test_create_chapter_requires_existing_story(tmp_path: Path) -> None:
    _, graph, _ = _graph(tmp_path)
    with pytest.raises(NotFoundError) as excinfo:
        graph.create_chapter("missing", ChapterDraft(chapter_number=1, title="A", content="B"))
    assert excinfo.value.entity == "Story"


def test_next_chapter_number_is_one_past_highest(tmp_path: Path) -> None:
    _, graph, story_id = _graph(tmp_path)
    assert graph.next_chapter_number(story_id) == 1

    for number in (1, 2, 5):
        _chapter(graph, story_id, number)

    assert graph.next_chapter_number(story_id) == 6


def test_list_chapters_ordered_is_stable_for_equal_numbers(tmp_path: Path) -> None:
    _, graph, story_id = _graph(tmp_path)
    third = _chapter(graph, story_id, 3)
    first_dup = _chapter(graph, story_id, 1, "first one")
    second_dup = _chapter(graph, story_id, 1, "second one")

    ordered = graph.list_chapters_ordered(story_id)

    assert [chapter.chapter_id for chapter in ordered] == [first_dup, second_dup, third]
    assert [chapter.chapter_number for chapter in ordered] == [1, 1, 3]


def test_add_choice_defaults_and_requires_chapter(tmp_path: Path) -> None:
    _, graph, story_id = _graph(tmp_path)
    chapter_id = _chapter(graph, story_id, 1)

    choice = graph.add_choice(chapter_id, ChoiceDraft(choice_text="Go right"))

    assert choice.order_number == 0
    assert choice.is_dangling
    with pytest.raises(NotFoundError):
        graph.add_choice("missing", ChoiceDraft(choice_text="Nowhere"))


def test_list_choices_ordered_breaks_ties_by_insertion(tmp_path: Path) -> None:
    _, graph, story_id = _graph(tmp_path)
    chapter_id = _chapter(graph, story_id, 1)
    b = graph.add_choice(chapter_id, ChoiceDraft(choice_text="B", order_number=2))
    a1 = graph.add_choice(chapter_id, ChoiceDraft(choice_text="A1", order_number=1))
    a2 = graph.add_choice(chapter_id, ChoiceDraft(choice_text="A2", order_number=1))

    ordered = graph.list_choices_ordered(chapter_id)

    assert [choice.choice_id for choice in ordered] == [a1.choice_id, a2.choice_id, b.choice_id]


def test_delete_chapter_removes_own_choices_and_unlinks_inbound(tmp_path: Path) -> None:
    _, graph, story_id = _graph(tmp_path)
    one = _chapter(graph, story_id, 1)
    two = _chapter(graph, story_id, 2)
    three = _chapter(graph, story_id, 3)
    inbound = graph.add_choice(one, ChoiceDraft(choice_text="To two", next_chapter_id=two))
    unrelated = graph.add_choice(one, ChoiceDraft(choice_text="To three", next_chapter_id=three))
    graph.add_choice(two, ChoiceDraft(choice_text="Owned", next_chapter_id=three))

    graph.delete_chapter(two)

    assert graph.get_chapter(two) is None
    assert graph.list_choices_ordered(two) == []
    remaining = {choice.choice_id: choice for choice in graph.list_choices_ordered(one)}
    assert remaining[inbound.choice_id].next_chapter_id is None
    assert remaining[unrelated.choice_id].next_chapter_id == three


def test_interrupted_chapter_delete_degrades_to_dangling_links(tmp_path: Path) -> None:
    store = _ChapterDeleteFails(db_path=tmp_path / "graph.db")
    graph = NarrativeGraph(store)
    story_id = StoryCatalog(store, graph).create_story(StoryDraft(title="Drama A")).story_id
    one = _chapter(graph, story_id, 1)
    two = _chapter(graph, story_id, 2)
    other_story = StoryCatalog(store, graph).create_story(StoryDraft(title="Other")).story_id
    elsewhere = _chapter(graph, other_story, 1)
    inbound = graph.add_choice(one, ChoiceDraft(choice_text="To two", next_chapter_id=two))
    untouched = graph.add_choice(elsewhere, ChoiceDraft(choice_text="Stay", next_chapter_id=elsewhere))

    with pytest.raises(PersistenceFailure):
        graph.delete_chapter(two)

    # The chapter survives but nothing points at it any more.
    assert graph.get_chapter(two) is not None
    assert graph.list_choices_ordered(one)[0].choice_id == inbound.choice_id
    assert graph.list_choices_ordered(one)[0].next_chapter_id is None
    assert graph.list_choices_ordered(elsewhere)[0] == untouched
    tracker = ReadingProgressTracker(store)
    assert tracker.resolve_current_chapter("reader", story_id).chapter_id == one


def test_list_chapters_with_choices_groups_per_chapter(tmp_path: Path) -> None:
    _, graph, story_id = _graph(tmp_path)
    one = _chapter(graph, story_id, 1)
    two = _chapter(graph, story_id, 2)
    graph.add_choice(one, ChoiceDraft(choice_text="Second", order_number=2))
    graph.add_choice(one, ChoiceDraft(choice_text="First", order_number=1))

    outlines = graph.list_chapters_with_choices(story_id)

    assert [outline.chapter.chapter_id for outline in outlines] == [one, two]
    assert [choice.choice_text for choice in outlines[0].choices] == ["First", "Second"]
    assert outlines[1].choices == ()


def test_delete_story_graph_clears_chapters_choices_and_progress(tmp_path: Path) -> None:
    store, graph, story_id = _graph(tmp_path)
    one = _chapter(graph, story_id, 1)
    two = _chapter(graph, story_id, 2)
    graph.add_choice(one, ChoiceDraft(choice_text="A", next_chapter_id=two))
    graph.add_choice(one, ChoiceDraft(choice_text="B"))
    graph.add_choice(two, ChoiceDraft(choice_text="C"))
    store.upsert_progress(session_id="reader", story_id=story_id, current_chapter_id=two)

    graph.delete_story_graph(story_id)

    assert graph.list_chapters_ordered(story_id) == []
    assert store.find_choices(chapter_ids=[one, two]) == []
    assert store.get_progress(session_id="reader", story_id=story_id) is None
    assert store.get_story(story_id=story_id) is not None


class _ChapterSweepFails(SQLiteNarrativeStore):
    """Store that crashes when removing a story's chapters in bulk."""

    def delete_chapters(self, *, story_id: str) -> int:
        raise PersistenceFailure("store went away")


def test_interrupted_story_graph_delete_keeps_remaining_rows(tmp_path: Path) -> None:
    store = _ChapterSweepFails(db_path=tmp_path / "graph.db")
    graph = NarrativeGraph(store)
    story_id = StoryCatalog(store, graph).create_story(StoryDraft(title="Drama A")).story_id
    one = _chapter(graph, story_id, 1)
    two = _chapter(graph, story_id, 2)
    graph.add_choice(one, ChoiceDraft(choice_text="A", next_chapter_id=two))
    store.upsert_progress(session_id="reader", story_id=story_id, current_chapter_id=two)

    with pytest.raises(PersistenceFailure):
        StoryCatalog(store, graph).delete_story(story_id)

    # Choices went first; chapters, progress and the story row remain.
    assert store.find_choices(chapter_ids=[one, two]) == []
    assert [chapter.chapter_id for chapter in graph.list_chapters_ordered(story_id)] == [one, two]
    assert store.get_progress(session_id="reader", story_id=story_id) is not None
    assert store.get_story(story_id=story_id) is not None
