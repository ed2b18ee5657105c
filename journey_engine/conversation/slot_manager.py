"""
Collected-data bookkeeping for one session.

Extractor output is merged field by field: unknown fields are rejected,
empty or null values are dropped, everything else is normalized by the
field's declared kind and overwrites any previous value. Fields that are
not part of the merge are never touched.

Usage:
    manager = SlotManager(journey, session.collected_data)
    report = manager.merge({"symptom": "chest pain", "colour": "blue"})
    assert report.rejected == ["colour"]
    session.collected_data = manager.to_dict()
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from journey_engine.conversation.journey import JourneyDefinition
from journey_engine.exceptions import UnknownFieldRejected
from journey_engine.schemas.journey_schema import FieldKind, FieldSpec
from journey_engine.utils import humanize_field, normalize_text

logger = logging.getLogger(__name__)

NULL_MARKERS = {"null", "none", "n/a", "unknown"}
TRUE_WORDS = {"true", "yes", "y"}
FALSE_WORDS = {"false", "no", "n"}


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return not stripped or stripped.lower() in NULL_MARKERS
    if isinstance(value, (list, dict, tuple, set)):
        return not value
    return False


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = normalize_text(value)
        if word in TRUE_WORDS:
            return True
        if word in FALSE_WORDS:
            return False
    raise ValueError(f"{value!r} is not a yes/no value")


def _to_number(value: Any) -> Union[int, float]:
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not a number")
    if isinstance(value, (int, float)):
        return value
    cleaned = re.sub(r"[,\s]", "", str(value)).lstrip("₹$€£")
    try:
        return int(cleaned)
    except ValueError:
        return float(cleaned)


def _to_choice(value: Any, spec: FieldSpec) -> str:
    wanted = normalize_text(str(value))
    for choice, keywords in spec.choices.items():
        if wanted == normalize_text(choice):
            return choice
        if any(wanted == normalize_text(keyword) for keyword in keywords):
            return choice
    raise ValueError(f"{value!r} is not one of {list(spec.choices)}")


def normalize_value(value: Any, spec: FieldSpec) -> Any:
    """Coerce an extracted value to the field's kind.

    Raises:
        ValueError: If the value cannot represent that kind.
    """
    if spec.kind == FieldKind.BOOLEAN:
        return _to_boolean(value)
    if spec.kind == FieldKind.NUMBER:
        return _to_number(value)
    if spec.kind == FieldKind.CHOICE:
        return _to_choice(value, spec)
    if isinstance(value, str):
        return " ".join(value.split())
    return value


@dataclass
class MergeReport:
    """What happened to each field of one extraction."""
    accepted: dict[str, Any] = field(default_factory=dict)
    corrected: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)


class SlotManager:
    """
    Applies extractor output to a session's collected data.

    Works on its own copy of the data; callers write ``to_dict()`` back
    to the session only when the whole turn succeeds.
    """

    def __init__(self, journey: JourneyDefinition, collected: Optional[Mapping[str, Any]] = None) -> None:
        self._journey = journey
        self._values: dict[str, Any] = dict(collected or {})

    def set_slot(self, name: str, raw_value: Any) -> Any:
        """
        Validate, normalize and store one field.

        Returns:
            The normalized value now held for ``name``.

        Raises:
            UnknownFieldRejected: If the journey does not define the field.
            ValueError: If the value is empty or cannot represent the field's kind.
        """
        if not self._journey.is_known_field(name):
            raise UnknownFieldRejected(name, self._journey.intent)
        if _is_empty(raw_value):
            raise ValueError(f"no value given for {humanize_field(name)}")

        value = normalize_value(raw_value, self._journey.field_spec(name))
        self._values[name] = value
        logger.debug("Field '%s' set to %r", name, value)
        return value

    def merge(self, extracted: Mapping[str, Any]) -> MergeReport:
        """Merge extractor output, last extraction wins per field."""
        report = MergeReport()
        for name, raw_value in extracted.items():
            had_value = name in self._values
            previous = self._values.get(name)
            try:
                value = self.set_slot(name, raw_value)
            except UnknownFieldRejected as exc:
                logger.warning("%s; dropping it", exc)
                report.rejected.append(name)
                continue
            except ValueError as exc:
                logger.debug("Field '%s' dropped: %s", name, exc)
                report.dropped.append(name)
                continue
            report.accepted[name] = value
            if had_value and previous != value:
                report.corrected.append(name)
        return report

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)
