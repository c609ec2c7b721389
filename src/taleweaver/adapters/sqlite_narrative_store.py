"""SQLite-backed document store for stories, chapters, choices, and progress."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from taleweaver.core.errors import PersistenceFailure
from taleweaver.domain.models import (
    AdminUser,
    Chapter,
    Choice,
    ReadingProgress,
    Story,
    StorySummary,
)

_STORY_COLUMNS = (
    "story_id, title, description, cover_color, cover_image, genre, status, "
    "created_at_utc, updated_at_utc"
)
_CHAPTER_COLUMNS = (
    "chapter_id, story_id, chapter_number, title, content, is_ending, created_at_utc"
)
_CHOICE_COLUMNS = "choice_id, chapter_id, choice_text, next_chapter_id, order_number"


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


def _placeholders(values: Sequence[str]) -> str:
    return ", ".join("?" for _ in values)


class SQLiteNarrativeStore:
    """Persist and query narrative records from one SQLite database.

    Each method opens its own connection, so one store instance can be shared
    by concurrent request handlers. Insertion order is kept through SQLite's
    implicit ``rowid`` and used as the tiebreak for every ordered query.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            connection = sqlite3.connect(str(self._db_path))
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Could not open store at {self._db_path}: {exc}") from exc
        connection.row_factory = sqlite3.Row
        try:
            with connection:
                yield connection
        except (sqlite3.Error, OverflowError) as exc:
            raise PersistenceFailure(str(exc)) from exc
        finally:
            connection.close()

    def _initialize_schema(self) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    user_id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at_utc TEXT NOT NULL
                )
                """
            )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS stories (
                    story_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    cover_color TEXT NOT NULL,
                    cover_image TEXT,
                    genre TEXT NOT NULL,
                    status TEXT NOT NULL,
                    created_at_utc TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL
                )
                """
            )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS chapters (
                    chapter_id TEXT PRIMARY KEY,
                    story_id TEXT NOT NULL,
                    chapter_number INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    is_ending INTEGER NOT NULL DEFAULT 0,
                    created_at_utc TEXT NOT NULL,
                    FOREIGN KEY (story_id) REFERENCES stories(story_id)
                )
                """
            )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS choices (
                    choice_id TEXT PRIMARY KEY,
                    chapter_id TEXT NOT NULL,
                    choice_text TEXT NOT NULL,
                    next_chapter_id TEXT,
                    order_number INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY (chapter_id) REFERENCES chapters(chapter_id)
                )
                """
            )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS reading_progress (
                    session_id TEXT NOT NULL,
                    story_id TEXT NOT NULL,
                    current_chapter_id TEXT NOT NULL,
                    last_read_utc TEXT NOT NULL,
                    PRIMARY KEY (session_id, story_id)
                )
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_chapters_story_number
                ON chapters(story_id, chapter_number)
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_choices_chapter_order
                ON choices(chapter_id, order_number)
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_choices_next_chapter
                ON choices(next_chapter_id)
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_progress_story
                ON reading_progress(story_id)
                """
            )

    # Stories

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
        """Create and persist one story."""
        now = _utc_now()
        story_id = uuid4().hex
        with self._connect() as connection:
            connection.execute(
                f"""
                INSERT INTO stories ({_STORY_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (story_id, title, description, cover_color, cover_image, genre, status, now, now),
            )
        story = self.get_story(story_id=story_id)
        if story is None:
            raise PersistenceFailure("Created story could not be loaded.")
        return story

    def get_story(self, *, story_id: str) -> Story | None:
        """Load one story by id."""
        with self._connect() as connection:
            row = connection.execute(
                f"SELECT {_STORY_COLUMNS} FROM stories WHERE story_id = ?",
                (story_id,),
            ).fetchone()
        if row is None:
            return None
        return self._story_from_row(row)

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
        """Update story fields and bump ``updated_at_utc``."""
        now = _utc_now()
        with self._connect() as connection:
            cursor = connection.execute(
                """
                UPDATE stories
                SET title = ?, description = ?, cover_color = ?, cover_image = ?,
                    genre = ?, status = ?, updated_at_utc = ?
                WHERE story_id = ?
                """,
                (title, description, cover_color, cover_image, genre, status, now, story_id),
            )
            updated_rows = cursor.rowcount
        if updated_rows == 0:
            return None
        return self.get_story(story_id=story_id)

    def delete_story(self, *, story_id: str) -> bool:
        """Delete the story row only; graph cleanup is the caller's job."""
        with self._connect() as connection:
            cursor = connection.execute("DELETE FROM stories WHERE story_id = ?", (story_id,))
            return cursor.rowcount > 0

    def list_story_summaries(self) -> list[StorySummary]:
        """Join chapters onto stories and count them, newest story first."""
        with self._connect() as connection:
            rows = connection.execute(
                """
                SELECT s.story_id, s.title, s.description, s.cover_color, s.cover_image,
                       s.genre, s.status, s.created_at_utc, s.updated_at_utc,
                       COUNT(c.chapter_id) AS chapter_count
                FROM stories s
                LEFT JOIN chapters c ON c.story_id = s.story_id
                GROUP BY s.story_id
                ORDER BY s.created_at_utc DESC, s.rowid DESC
                """
            ).fetchall()
        return [
            StorySummary(story=self._story_from_row(row), chapter_count=int(row["chapter_count"]))
            for row in rows
        ]

    # Chapters

    def create_chapter(
        self,
        *,
        story_id: str,
        chapter_number: int,
        title: str,
        content: str,
        is_ending: bool,
    ) -> Chapter:
        """Create and persist one chapter."""
        chapter = Chapter(
            chapter_id=uuid4().hex,
            story_id=story_id,
            chapter_number=chapter_number,
            title=title,
            content=content,
            is_ending=is_ending,
            created_at_utc=_utc_now(),
        )
        with self._connect() as connection:
            connection.execute(
                f"""
                INSERT INTO chapters ({_CHAPTER_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    chapter.chapter_id,
                    chapter.story_id,
                    chapter.chapter_number,
                    chapter.title,
                    chapter.content,
                    int(chapter.is_ending),
                    chapter.created_at_utc,
                ),
            )
        return chapter

    def get_chapter(self, *, chapter_id: str) -> Chapter | None:
        """Load one chapter by id."""
        with self._connect() as connection:
            row = connection.execute(
                f"SELECT {_CHAPTER_COLUMNS} FROM chapters WHERE chapter_id = ?",
                (chapter_id,),
            ).fetchone()
        if row is None:
            return None
        return self._chapter_from_row(row)

    def update_chapter(
        self,
        *,
        chapter_id: str,
        chapter_number: int,
        title: str,
        content: str,
        is_ending: bool,
    ) -> Chapter | None:
        """Rewrite chapter fields; the owning story never changes."""
        with self._connect() as connection:
            cursor = connection.execute(
                """
                UPDATE chapters
                SET chapter_number = ?, title = ?, content = ?, is_ending = ?
                WHERE chapter_id = ?
                """,
                (chapter_number, title, content, int(is_ending), chapter_id),
            )
            updated_rows = cursor.rowcount
        if updated_rows == 0:
            return None
        return self.get_chapter(chapter_id=chapter_id)

    def find_chapters(
        self, *, story_id: str, descending: bool = False, limit: int | None = None
    ) -> list[Chapter]:
        """Return story chapters sorted by number, ties in insertion order."""
        direction = "DESC" if descending else "ASC"
        query = (
            f"SELECT {_CHAPTER_COLUMNS} FROM chapters WHERE story_id = ? "
            f"ORDER BY chapter_number {direction}, rowid {direction}"
        )
        params: tuple[object, ...] = (story_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (story_id, limit)
        with self._connect() as connection:
            rows = connection.execute(query, params).fetchall()
        return [self._chapter_from_row(row) for row in rows]

    def delete_chapter(self, *, chapter_id: str) -> bool:
        """Delete one chapter row."""
        with self._connect() as connection:
            cursor = connection.execute(
                "DELETE FROM chapters WHERE chapter_id = ?", (chapter_id,)
            )
            return cursor.rowcount > 0

    def delete_chapters(self, *, story_id: str) -> int:
        """Delete every chapter of one story."""
        with self._connect() as connection:
            cursor = connection.execute("DELETE FROM chapters WHERE story_id = ?", (story_id,))
            return cursor.rowcount

    # Choices

    def create_choice(
        self,
        *,
        chapter_id: str,
        choice_text: str,
        next_chapter_id: str | None,
        order_number: int,
    ) -> Choice:
        """Create and persist one choice."""
        choice = Choice(
            choice_id=uuid4().hex,
            chapter_id=chapter_id,
            choice_text=choice_text,
            next_chapter_id=next_chapter_id,
            order_number=order_number,
        )
        with self._connect() as connection:
            connection.execute(
                f"""
                INSERT INTO choices ({_CHOICE_COLUMNS})
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    choice.choice_id,
                    choice.chapter_id,
                    choice.choice_text,
                    choice.next_chapter_id,
                    choice.order_number,
                ),
            )
        return choice

    def get_choice(self, *, choice_id: str) -> Choice | None:
        """Load one choice by id."""
        with self._connect() as connection:
            row = connection.execute(
                f"SELECT {_CHOICE_COLUMNS} FROM choices WHERE choice_id = ?",
                (choice_id,),
            ).fetchone()
        if row is None:
            return None
        return self._choice_from_row(row)

    def set_choice_next_chapter(
        self, *, choice_id: str, next_chapter_id: str | None
    ) -> Choice | None:
        """Point a choice at a chapter, or clear the link with None."""
        with self._connect() as connection:
            cursor = connection.execute(
                "UPDATE choices SET next_chapter_id = ? WHERE choice_id = ?",
                (next_chapter_id, choice_id),
            )
            updated_rows = cursor.rowcount
        if updated_rows == 0:
            return None
        return self.get_choice(choice_id=choice_id)

    def find_choices(self, *, chapter_ids: Sequence[str]) -> list[Choice]:
        """Return choices owned by any of the chapters, in display order."""
        if not chapter_ids:
            return []
        with self._connect() as connection:
            rows = connection.execute(
                f"""
                SELECT {_CHOICE_COLUMNS} FROM choices
                WHERE chapter_id IN ({_placeholders(chapter_ids)})
                ORDER BY order_number ASC, rowid ASC
                """,
                tuple(chapter_ids),
            ).fetchall()
        return [self._choice_from_row(row) for row in rows]

    def delete_choice(self, *, choice_id: str) -> bool:
        """Delete one choice."""
        with self._connect() as connection:
            cursor = connection.execute("DELETE FROM choices WHERE choice_id = ?", (choice_id,))
            return cursor.rowcount > 0

    def delete_choices(self, *, chapter_ids: Sequence[str]) -> int:
        """Delete every choice owned by the given chapters."""
        if not chapter_ids:
            return 0
        with self._connect() as connection:
            cursor = connection.execute(
                f"DELETE FROM choices WHERE chapter_id IN ({_placeholders(chapter_ids)})",
                tuple(chapter_ids),
            )
            return cursor.rowcount

    def clear_next_chapter_references(self, *, chapter_id: str) -> int:
        """Turn every choice that leads to ``chapter_id`` into a dangling choice."""
        with self._connect() as connection:
            cursor = connection.execute(
                "UPDATE choices SET next_chapter_id = NULL WHERE next_chapter_id = ?",
                (chapter_id,),
            )
            return cursor.rowcount

    # Reading progress

    def get_progress(self, *, session_id: str, story_id: str) -> ReadingProgress | None:
        """Load the progress pointer for one reader session and story."""
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT session_id, story_id, current_chapter_id, last_read_utc
                FROM reading_progress
                WHERE session_id = ? AND story_id = ?
                """,
                (session_id, story_id),
            ).fetchone()
        if row is None:
            return None
        return self._progress_from_row(row)

    def upsert_progress(
        self, *, session_id: str, story_id: str, current_chapter_id: str
    ) -> ReadingProgress:
        """Insert or overwrite the progress pointer for (session, story)."""
        progress = ReadingProgress(
            session_id=session_id,
            story_id=story_id,
            current_chapter_id=current_chapter_id,
            last_read_utc=_utc_now(),
        )
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO reading_progress (session_id, story_id, current_chapter_id, last_read_utc)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(session_id, story_id) DO UPDATE SET
                    current_chapter_id = excluded.current_chapter_id,
                    last_read_utc = excluded.last_read_utc
                """,
                (
                    progress.session_id,
                    progress.story_id,
                    progress.current_chapter_id,
                    progress.last_read_utc,
                ),
            )
        return progress

    def delete_progress(self, *, session_id: str, story_id: str) -> bool:
        """Forget one reader session's position in a story."""
        with self._connect() as connection:
            cursor = connection.execute(
                "DELETE FROM reading_progress WHERE session_id = ? AND story_id = ?",
                (session_id, story_id),
            )
            return cursor.rowcount > 0

    def delete_story_progress(self, *, story_id: str) -> int:
        """Forget every reader's position in a story."""
        with self._connect() as connection:
            cursor = connection.execute(
                "DELETE FROM reading_progress WHERE story_id = ?", (story_id,)
            )
            return cursor.rowcount

    # Users

    def create_user(self, *, username: str, password_hash: str) -> AdminUser | None:
        """Create a user record; return None when the username is already taken."""
        user_id = uuid4().hex
        with self._connect() as connection:
            cursor = connection.execute(
                """
                INSERT OR IGNORE INTO users (user_id, username, password_hash, created_at_utc)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, username, password_hash, _utc_now()),
            )
            inserted_rows = cursor.rowcount
        if inserted_rows == 0:
            return None
        return self.get_user_by_username(username=username)

    def get_user_by_username(self, *, username: str) -> AdminUser | None:
        """Load one user by exact (case-sensitive) username."""
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT user_id, username, password_hash, created_at_utc
                FROM users
                WHERE username = ?
                """,
                (username,),
            ).fetchone()
        if row is None:
            return None
        return self._user_from_row(row)

    def set_user_password(self, *, username: str, password_hash: str) -> AdminUser | None:
        """Replace the stored password hash for one user."""
        with self._connect() as connection:
            cursor = connection.execute(
                "UPDATE users SET password_hash = ? WHERE username = ?",
                (password_hash, username),
            )
            updated_rows = cursor.rowcount
        if updated_rows == 0:
            return None
        return self.get_user_by_username(username=username)

    @staticmethod
    def _story_from_row(row: sqlite3.Row) -> Story:
        cover_image = row["cover_image"]
        return Story(
            story_id=str(row["story_id"]),
            title=str(row["title"]),
            description=str(row["description"]),
            cover_color=str(row["cover_color"]),
            cover_image=str(cover_image) if cover_image is not None else None,
            genre=str(row["genre"]),
            status=str(row["status"]),
            created_at_utc=str(row["created_at_utc"]),
            updated_at_utc=str(row["updated_at_utc"]),
        )

    @staticmethod
    def _chapter_from_row(row: sqlite3.Row) -> Chapter:
        return Chapter(
            chapter_id=str(row["chapter_id"]),
            story_id=str(row["story_id"]),
            chapter_number=int(row["chapter_number"]),
            title=str(row["title"]),
            content=str(row["content"]),
            is_ending=bool(row["is_ending"]),
            created_at_utc=str(row["created_at_utc"]),
        )

    @staticmethod
    def _choice_from_row(row: sqlite3.Row) -> Choice:
        next_chapter_id = row["next_chapter_id"]
        return Choice(
            choice_id=str(row["choice_id"]),
            chapter_id=str(row["chapter_id"]),
            choice_text=str(row["choice_text"]),
            next_chapter_id=str(next_chapter_id) if next_chapter_id is not None else None,
            order_number=int(row["order_number"]),
        )

    @staticmethod
    def _progress_from_row(row: sqlite3.Row) -> ReadingProgress:
        return ReadingProgress(
            session_id=str(row["session_id"]),
            story_id=str(row["story_id"]),
            current_chapter_id=str(row["current_chapter_id"]),
            last_read_utc=str(row["last_read_utc"]),
        )

    @staticmethod
    def _user_from_row(row: sqlite3.Row) -> AdminUser:
        return AdminUser(
            user_id=str(row["user_id"]),
            username=str(row["username"]),
            password_hash=str(row["password_hash"]),
            created_at_utc=str(row["created_at_utc"]),
        )
