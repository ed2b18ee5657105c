"""Shared utilities used across the journey orchestrator."""

import re
import uuid
from datetime import datetime, timezone

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    """Generate an opaque, globally unique session identifier."""
    return uuid.uuid4().hex


def normalize_text(value: str) -> str:
    """Lowercase, collapse whitespace and trim surrounding punctuation.

    Examples:
        >>> normalize_text("  Yes,   I need ADMISSION! ")
        'yes, i need admission'
    """
    collapsed = " ".join(value.split()).lower()
    return collapsed.strip(" .,!?;:'\"")


def humanize_field(name: str) -> str:
    """Turn a field name into words suitable for a question.

    Examples:
        >>> humanize_field("patientRelation")
        'patient relation'
        >>> humanize_field("preferred_date")
        'preferred date'
    """
    spaced = _CAMEL_BOUNDARY.sub(" ", name).replace("_", " ")
    return " ".join(spaced.split()).lower()
