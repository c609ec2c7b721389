"""Domain records and ports for branching stories."""

from taleweaver.domain.models import (
    AdminUser,
    Chapter,
    ChapterOutline,
    Choice,
    ReadingProgress,
    Story,
    StorySummary,
)
from taleweaver.domain.ports import NarrativeStore

__all__ = [
    "AdminUser",
    "Chapter",
    "ChapterOutline",
    "Choice",
    "NarrativeStore",
    "ReadingProgress",
    "Story",
    "StorySummary",
]
