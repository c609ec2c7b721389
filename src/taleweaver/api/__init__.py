"""HTTP surface: the FastAPI app factory and form parsing."""

from taleweaver.api.app import create_app
from taleweaver.api.forms import parse_chapter_with_choices, parse_command

__all__ = [
    "create_app",
    "parse_chapter_with_choices",
    "parse_command",
]
