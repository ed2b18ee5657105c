"""Dynamic prompt construction for stage replies and extraction requests."""

import json
from typing import Any, Mapping, Sequence

from journey_engine.prompts.system_prompts import (
    CONTINUE_REPLY,
    DEFAULT_FINAL_MESSAGE,
    EXTRACTION_SYSTEM_PROMPT,
    GENERIC_FIELD_PROMPT,
)
from journey_engine.utils import humanize_field


class _BlankMissing(dict):
    """format_map mapping that renders unknown placeholders as empty text."""

    def __missing__(self, key: str) -> str:
        return ""


def _display(value: Any) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def format_field_list(names: Sequence[str]) -> str:
    """Join field names into readable English.

    Examples:
        >>> format_field_list(["symptom"])
        'symptom'
        >>> format_field_list(["symptom", "location", "patientRelation"])
        'symptom, location and patient relation'
    """
    words = [humanize_field(name) for name in names]
    if len(words) <= 1:
        return "".join(words)
    return ", ".join(words[:-1]) + " and " + words[-1]


def render_template(
    template: str,
    collected: Mapping[str, Any],
    missing: Sequence[str] = (),
) -> str:
    """Fill ``{field}`` and ``{missing_fields}`` placeholders in a stage template."""
    values = _BlankMissing({key: _display(value) for key, value in collected.items()})
    values["missing_fields"] = format_field_list(missing)
    return template.format_map(values).strip()


def build_missing_fields_prompt(
    template: str,
    collected: Mapping[str, Any],
    missing: Sequence[str],
) -> str:
    """Reply asking for the fields a stage still needs. Never empty."""
    rendered = render_template(template, collected, missing) if template else ""
    if rendered:
        return rendered
    if not missing:
        return CONTINUE_REPLY
    return render_template(GENERIC_FIELD_PROMPT, collected, missing)


def build_final_message(template: str, collected: Mapping[str, Any]) -> str:
    return render_template(template, collected) or DEFAULT_FINAL_MESSAGE


def build_extraction_messages(
    utterance: str,
    target_fields: Sequence[Any],
    history: Sequence[Any],
) -> list[dict[str, str]]:
    """Build chat messages for the LLM extractor.

    ``target_fields`` are FieldTarget objects, ``history`` is a list of Turns.
    """
    field_lines = []
    for target in target_fields:
        line = f"- {target.name} ({target.kind.value})"
        if target.description:
            line += f": {target.description}"
        if target.choices:
            line += f" Choices: {', '.join(target.choices)}."
        field_lines.append(line)

    transcript = "\n".join(f"{turn.role.value}: {turn.text}" for turn in history)
    user_content = "\n\n".join([
        "TARGET FIELDS:\n" + ("\n".join(field_lines) or "(none)"),
        "CONVERSATION HISTORY:\n" + (transcript or "(empty)"),
        "LATEST CUSTOMER MESSAGE:\n" + json.dumps(utterance, ensure_ascii=False),
    ])
    return [
        {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT.strip()},
        {"role": "user", "content": user_content},
    ]
