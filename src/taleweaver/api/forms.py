"""Translate submitted HTML form fields into validated commands."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from taleweaver.core.commands import ChapterWithChoices
from taleweaver.core.errors import ValidationFailure

CHOICE_FIELD_PATTERN = re.compile(r"^choices\[(\d+)\]\[(text|next_content|order)\]$")
FALSE_CHECKBOX_VALUES = {"", "0", "false", "off", "no"}

CommandT = TypeVar("CommandT", bound=BaseModel)


def validation_failure(exc: ValidationError) -> ValidationFailure:
    """Flatten pydantic errors into one inline message plus per-field detail."""
    fields: dict[str, str] = {}
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "form"
        fields.setdefault(location, str(error.get("msg", "invalid value")))
    message = "; ".join(f"{field}: {detail}" for field, detail in fields.items())
    return ValidationFailure(message or "Invalid form submission.", fields=fields)


def parse_command(model: type[CommandT], payload: Mapping[str, Any]) -> CommandT:
    try:
        return model.model_validate(dict(payload))
    except ValidationError as exc:
        raise validation_failure(exc) from exc


def form_text(form: Mapping[str, Any], name: str) -> str:
    value = form.get(name)
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def checkbox_value(form: Mapping[str, Any], name: str) -> bool:
    return form_text(form, name).strip().lower() not in FALSE_CHECKBOX_VALUES


def _row_order(raw: str) -> int | None:
    """Parse a row order; blank or non-numeric input falls back to the row key."""
    try:
        return int(raw.strip())
    except ValueError:
        return None


def collect_choice_entries(form: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Group ``choices[<key>][<field>]`` fields into one dict per key, by key."""
    grouped: dict[int, dict[str, Any]] = {}
    for name in form.keys():
        match = CHOICE_FIELD_PATTERN.match(name)
        if match is None:
            continue
        key = int(match.group(1))
        entry = grouped.setdefault(key, {"key": key})
        value = form_text(form, name)
        if match.group(2) == "order":
            entry["order"] = _row_order(value)
        else:
            entry[match.group(2)] = value
    return [grouped[key] for key in sorted(grouped)]


def chapter_payload(form: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "chapter_number": form_text(form, "chapter_number").strip() or None,
        "title": form_text(form, "title"),
        "content": form_text(form, "content"),
        "is_ending": checkbox_value(form, "is_ending"),
    }


def parse_chapter_with_choices(form: Mapping[str, Any]) -> ChapterWithChoices:
    """Build the guided-authoring command from the chapter form."""
    return parse_command(
        ChapterWithChoices,
        {
            "chapter_id": form_text(form, "id"),
            "chapter": chapter_payload(form),
            "choices": collect_choice_entries(form),
            "originating_choice_id": form_text(form, "choiceId"),
        },
    )
