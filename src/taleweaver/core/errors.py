"""Error taxonomy for narrative operations."""

from __future__ import annotations


class NarrativeError(Exception):
    """Base class for all platform errors."""


class NotFoundError(NarrativeError):
    """A referenced story, chapter, or choice does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class NoChaptersError(NotFoundError):
    """The story exists but has no chapters to read yet."""

    def __init__(self, story_id: str) -> None:
        super().__init__("Chapter", story_id)
        self.story_id = story_id


class ValidationFailure(NarrativeError):
    """A submitted payload is missing a required field or is malformed."""

    def __init__(self, message: str, *, fields: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.fields = dict(fields or {})


class UnauthenticatedError(NarrativeError):
    """The request carries no administrator principal."""


class PersistenceFailure(NarrativeError):
    """The store was unreachable or rejected a write."""
