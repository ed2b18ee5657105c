"""
Journey definitions: the declarative stage graph for one intent.

A journey document is parsed and validated once at startup into an
immutable JourneyDefinition that any number of sessions can read
concurrently. Anything wrong with the document raises MalformedJourney,
so a broken journey refuses to load instead of failing mid-conversation.

Usage:
    registry = load_journeys("journeys/")
    journey = registry.get("HOSPITAL_LOCATOR")
    stage = journey.entry_stage
    next_id = stage.next_stage({"needsAdmission": True})
"""

import json
import logging
import re
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from journey_engine.exceptions import MalformedJourney, UnknownIntentError
from journey_engine.prompts.prompt_templates import render_template
from journey_engine.prompts.system_prompts import DEFAULT_FINAL_MESSAGE
from journey_engine.schemas.journey_schema import (
    TERMINAL_STAGE,
    FieldKind,
    FieldSpec,
    JourneyDocument,
    StageSpec,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Condition:
    """Guard evaluated against collected data."""
    field: str
    operator: str  # "equals" | "in" | "present"
    operand: Any

    def matches(self, data: Mapping[str, Any]) -> bool:
        if self.operator == "present":
            return (self.field in data) == bool(self.operand)
        if self.field not in data:
            return False
        value = data[self.field]
        if self.operator == "equals":
            return value == self.operand
        return value in self.operand


@dataclass(frozen=True)
class TransitionRule:
    """A single outgoing edge. Rules without a condition are defaults."""
    target: str
    condition: Optional[Condition] = None

    def applies(self, data: Mapping[str, Any]) -> bool:
        return self.condition is None or self.condition.matches(data)


@dataclass(frozen=True)
class Stage:
    """One node of the dialogue graph."""
    id: str
    required_fields: tuple[str, ...]
    prompt: str
    transitions: tuple[TransitionRule, ...]
    name: str = ""

    @property
    def targets(self) -> tuple[str, ...]:
        return tuple(rule.target for rule in self.transitions)

    def missing_fields(self, collected: Mapping[str, Any]) -> list[str]:
        return [name for name in self.required_fields if name not in collected]

    def is_complete(self, collected: Mapping[str, Any]) -> bool:
        return not self.missing_fields(collected)

    def next_stage(self, collected: Mapping[str, Any]) -> str:
        """Return the next stage id (or the terminal marker) for the collected data."""
        for rule in self.transitions:
            if rule.applies(collected):
                return rule.target
        # Loader guarantees a default rule; reaching here means the object was built by hand.
        raise MalformedJourney(f"stage '{self.id}' has no applicable transition")


@dataclass(frozen=True, eq=False)
class JourneyDefinition:
    """Validated, read-only stage graph for one intent."""
    intent: str
    entry_stage_id: str
    stages: Mapping[str, Stage]
    field_specs: Mapping[str, FieldSpec]
    final_message: str = DEFAULT_FINAL_MESSAGE
    description: str = ""
    fields: frozenset[str] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "stages", MappingProxyType(dict(self.stages)))
        object.__setattr__(self, "field_specs", MappingProxyType(dict(self.field_specs)))
        names = {name for stage in self.stages.values() for name in stage.required_fields}
        object.__setattr__(self, "fields", frozenset(names))

    @property
    def entry_stage(self) -> Stage:
        return self.stages[self.entry_stage_id]

    def stage(self, stage_id: Optional[str]) -> Stage:
        """Resolve a stage id, falling back to the entry stage when unset."""
        if stage_id is None:
            return self.entry_stage
        return self.stages[stage_id]

    def is_known_field(self, name: str) -> bool:
        return name in self.fields

    def field_spec(self, name: str) -> FieldSpec:
        return self.field_specs.get(name, _DEFAULT_FIELD_SPEC)


_DEFAULT_FIELD_SPEC = FieldSpec()


class JourneyRegistry:
    """Read-only lookup of loaded journeys by intent."""

    def __init__(self, journeys: Iterable[JourneyDefinition] = ()) -> None:
        self._journeys: dict[str, JourneyDefinition] = {}
        for journey in journeys:
            self.register(journey)

    def register(self, journey: JourneyDefinition) -> None:
        if journey.intent in self._journeys:
            raise MalformedJourney("intent is defined more than once", intent=journey.intent)
        self._journeys[journey.intent] = journey

    def get(self, intent: str) -> JourneyDefinition:
        """Raises:
            UnknownIntentError: If no journey is loaded for the intent.
        """
        try:
            return self._journeys[intent]
        except KeyError:
            raise UnknownIntentError(intent, self.intents()) from None

    def intents(self) -> list[str]:
        return sorted(self._journeys)

    def __contains__(self, intent: object) -> bool:
        return intent in self._journeys

    def __len__(self) -> int:
        return len(self._journeys)


# ------------------------------------------------------------------ #
# Loading and validation
# ------------------------------------------------------------------ #

def _check_template(template: str, label: str, intent: str, source: str) -> None:
    try:
        render_template(template, {})
    except (ValueError, KeyError, AttributeError, IndexError) as exc:
        raise MalformedJourney(f"{label} is not a valid template: {exc}", intent, source) from None


def _build_rules(spec: StageSpec, intent: str, source: str) -> tuple[TransitionRule, ...]:
    if isinstance(spec.transitions, str):
        return (TransitionRule(target=spec.transitions),)

    rules = []
    for item in spec.transitions:
        condition = None
        if item.when is not None:
            when = item.when
            if "present" in when.model_fields_set:
                condition = Condition(when.field, "present", bool(when.present))
            elif "one_of" in when.model_fields_set:
                condition = Condition(when.field, "in", tuple(when.one_of or ()))
            else:
                condition = Condition(when.field, "equals", when.equals)
        rules.append(TransitionRule(target=item.to, condition=condition))

    if not rules:
        raise MalformedJourney(f"stage '{spec.id}' has no transitions", intent, source)
    if all(rule.condition is not None for rule in rules):
        raise MalformedJourney(
            f"stage '{spec.id}' has no default transition (a rule without 'when')",
            intent, source,
        )
    return tuple(rules)


def _build_stage(spec: StageSpec, intent: str, source: str) -> Stage:
    if not spec.id.strip():
        raise MalformedJourney("stage id must not be empty", intent, source)
    if spec.id == TERMINAL_STAGE:
        raise MalformedJourney(f"'{TERMINAL_STAGE}' is reserved for the terminal marker", intent, source)

    seen: set[str] = set()
    for name in spec.required_fields:
        if not name.strip():
            raise MalformedJourney(f"stage '{spec.id}' has an empty required field name", intent, source)
        if name in seen:
            raise MalformedJourney(f"stage '{spec.id}' lists '{name}' twice", intent, source)
        seen.add(name)

    _check_template(spec.prompt, f"prompt of stage '{spec.id}'", intent, source)
    return Stage(
        id=spec.id,
        name=spec.name,
        required_fields=tuple(spec.required_fields),
        prompt=spec.prompt,
        transitions=_build_rules(spec, intent, source),
    )


def _check_field_specs(doc: JourneyDocument, fields: set[str], source: str) -> None:
    for name, spec in doc.field_specs.items():
        if name not in fields:
            raise MalformedJourney(
                f"field spec '{name}' is not required by any stage", doc.intent, source
            )
        if spec.kind == FieldKind.CHOICE and not spec.choices:
            raise MalformedJourney(f"choice field '{name}' declares no choices", doc.intent, source)
        for pattern in spec.patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise MalformedJourney(
                    f"pattern {pattern!r} for field '{name}' does not compile: {exc}",
                    doc.intent, source,
                ) from None


def _check_reachable(entry: str, stages: Mapping[str, Stage], intent: str, source: str) -> None:
    reached = {entry}
    queue = deque([entry])
    while queue:
        for target in stages[queue.popleft()].targets:
            if target != TERMINAL_STAGE and target not in reached:
                reached.add(target)
                queue.append(target)
    unreachable = [stage_id for stage_id in stages if stage_id not in reached]
    if unreachable:
        raise MalformedJourney(
            f"stages not reachable from '{entry}': {unreachable}", intent, source
        )


def load_journey(document: Mapping[str, Any], source: str = "") -> JourneyDefinition:
    """Parse and validate one journey document.

    Raises:
        MalformedJourney: On any schema or graph error.
    """
    try:
        doc = JourneyDocument.model_validate(document)
    except ValidationError as exc:
        intent = str(document.get("intent", "")) if isinstance(document, Mapping) else ""
        raise MalformedJourney(f"invalid document: {exc}", intent, source) from None

    intent = doc.intent
    if not intent.strip():
        raise MalformedJourney("intent must not be empty", source=source)
    if not doc.stages:
        raise MalformedJourney("journey declares no stages", intent, source)

    stages: dict[str, Stage] = {}
    for spec in doc.stages:
        if spec.id in stages:
            raise MalformedJourney(f"duplicate stage id '{spec.id}'", intent, source)
        stages[spec.id] = _build_stage(spec, intent, source)

    if doc.entry_stage_id not in stages:
        raise MalformedJourney(f"entry stage '{doc.entry_stage_id}' is not defined", intent, source)

    fields = {name for stage in stages.values() for name in stage.required_fields}
    for stage in stages.values():
        for rule in stage.transitions:
            if rule.target != TERMINAL_STAGE and rule.target not in stages:
                raise MalformedJourney(
                    f"stage '{stage.id}' transitions to undefined stage '{rule.target}'",
                    intent, source,
                )
            if rule.condition is not None and rule.condition.field not in fields:
                raise MalformedJourney(
                    f"stage '{stage.id}' has a condition on unknown field '{rule.condition.field}'",
                    intent, source,
                )

    _check_field_specs(doc, fields, source)
    _check_reachable(doc.entry_stage_id, stages, intent, source)

    final_message = doc.final_message or DEFAULT_FINAL_MESSAGE
    _check_template(final_message, "finalMessage", intent, source)

    journey = JourneyDefinition(
        intent=intent,
        entry_stage_id=doc.entry_stage_id,
        stages=stages,
        field_specs=doc.field_specs,
        final_message=final_message,
        description=doc.description,
    )
    logger.debug("Journey '%s' validated: %d stages, %d fields", intent, len(stages), len(journey.fields))
    return journey


def load_journey_file(path: Union[str, Path]) -> JourneyDefinition:
    """Load one journey document from a JSON file."""
    path = Path(path)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise MalformedJourney(f"cannot read journey document: {exc}", source=str(path)) from None
    if not isinstance(document, dict):
        raise MalformedJourney("journey document must be a JSON object", source=str(path))
    return load_journey(document, source=str(path))


def load_journeys(directory: Union[str, Path]) -> JourneyRegistry:
    """Load every ``*.json`` journey in a directory.

    Fails on the first malformed document so a broken journey stops startup.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise MalformedJourney(f"journey directory not found: {directory}")

    registry = JourneyRegistry()
    for path in sorted(directory.glob("*.json")):
        registry.register(load_journey_file(path))
        logger.info("Loaded journey from %s", path.name)

    logger.info("Loaded %d journey definitions: %s", len(registry), registry.intents())
    return registry
