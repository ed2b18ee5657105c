"""
Extractor contract and the offline keyword extractor.

The orchestrator only ever talks to an ``Extractor``: given the latest
utterance, the fields the current stage still needs and the history, it
returns field values and an optional reply. Extractors must fail loudly
with ExtractionUnavailable instead of returning an empty result on a
fault, so a broken NLU backend never looks like "customer said nothing".
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from journey_engine.exceptions import ExtractionUnavailable
from journey_engine.schemas.conversation_schema import Turn
from journey_engine.schemas.journey_schema import FieldKind, FieldSpec

if TYPE_CHECKING:
    from journey_engine.config import ExtractorConfig

logger = logging.getLogger(__name__)


class FieldTarget(BaseModel):
    """A field the extractor is asked to fill, with its hints."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    kind: FieldKind = FieldKind.TEXT
    choices: dict[str, list[str]] = Field(default_factory=dict)
    patterns: list[str] = Field(default_factory=list)

    @classmethod
    def from_spec(cls, name: str, spec: FieldSpec) -> "FieldTarget":
        return cls(
            name=name,
            description=spec.description,
            kind=spec.kind,
            choices=spec.choices,
            patterns=spec.patterns,
        )


class ExtractionRequest(BaseModel):
    utterance: str
    target_fields: list[FieldTarget] = Field(default_factory=list)
    history: list[Turn] = Field(default_factory=list)

    @property
    def target_names(self) -> list[str]:
        return [target.name for target in self.target_fields]


class ExtractionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    extracted_fields: dict[str, Any] = Field(default_factory=dict, alias="extractedFields")
    candidate_reply: str = Field(default="", alias="candidateReply")


class Extractor(ABC):
    """Converts free text into structured field values."""

    @abstractmethod
    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        """Raises:
            ExtractionUnavailable: On any upstream fault.
        """


async def extract_with_timeout(
    extractor: Extractor,
    request: ExtractionRequest,
    timeout_sec: float,
) -> ExtractionResult:
    """Run one extraction with a bounded, cancelling timeout.

    Every failure mode surfaces as ExtractionUnavailable.
    """
    try:
        result = await asyncio.wait_for(extractor.extract(request), timeout=timeout_sec)
    except ExtractionUnavailable:
        raise
    except asyncio.TimeoutError as exc:
        raise ExtractionUnavailable(f"extractor timed out after {timeout_sec}s") from exc
    except Exception as exc:
        raise ExtractionUnavailable(f"extractor failed: {type(exc).__name__}") from exc

    if not isinstance(result, ExtractionResult):
        raise ExtractionUnavailable(
            f"extractor returned {type(result).__name__}, expected ExtractionResult"
        )
    return result


# ------------------------------------------------------------------ #
# Keyword extractor
# ------------------------------------------------------------------ #

POSITIVE_KEYWORDS = [
    "yes", "yep", "yeah", "ok", "okay", "sure", "absolutely", "definitely",
    "of course", "fine", "alright", "sounds good", "go ahead", "please do",
    "confirmed", "correct", "right",
    "haan", "hanji", "bilkul", "theek hai", "thik hai", "sahi hai",
]

NEGATIVE_KEYWORDS = [
    "no", "nope", "nah", "not interested", "don't want", "do not want", "decline",
    "cancel", "not now", "maybe later", "not required", "no thanks", "no thank you",
    "never", "don't need", "do not need",
    "nahi", "nahi chahiye", "mat karo", "abhi nahi", "rehne do",
]

_POSITIVE_RE = re.compile(r"\b(" + "|".join(map(re.escape, POSITIVE_KEYWORDS)) + r")\b", re.I)
_NEGATIVE_RE = re.compile(r"\b(" + "|".join(map(re.escape, NEGATIVE_KEYWORDS)) + r")\b", re.I)

_LOCATION_RE = re.compile(r"\b(?:in|at|near|around)\s+([a-z][\w\s-]*)", re.I)
_LOCATION_STOP_WORDS = {"me", "my place", "here", "home", "my home", "my area", "the area"}
_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")
_TRAILING = " .,!?;:'\""
MAX_BARE_LOCATION_WORDS = 3


def is_positive_response(text: str) -> bool:
    return bool(text.strip()) and bool(_POSITIVE_RE.search(text))


def is_negative_response(text: str) -> bool:
    return bool(text.strip()) and bool(_NEGATIVE_RE.search(text))


def _keyword_match(keyword: str, text: str) -> bool:
    return re.search(r"\b" + re.escape(keyword) + r"\b", text, re.I) is not None


def _first_pattern_match(patterns: list[str], text: str) -> Optional[str]:
    for pattern in patterns:
        match = re.search(pattern, text, re.I)
        if match:
            captured = match.group(1) if match.groups() else match.group(0)
            captured = (captured or "").strip(_TRAILING)
            if captured:
                return captured
    return None


class KeywordExtractor(Extractor):
    """
    Rule-based extractor driven by field specs. No network, no model.

    Boolean fields use yes/no cues (a field's patterns count as extra
    "yes" cues), choice fields map keywords to a canonical choice,
    location fields look for "in/at/near X" or a short bare answer, and
    text fields use their patterns, falling back to the whole utterance
    when they are the only field being asked for.
    """

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        text = request.utterance.strip()
        extracted: dict[str, Any] = {}
        if not text:
            return ExtractionResult()

        sole_target = len(request.target_fields) == 1
        for target in request.target_fields:
            value = self._extract_field(target, text, sole_target)
            if value is not None:
                extracted[target.name] = value

        logger.debug("Keyword extraction for %s: %s", request.target_names, extracted)
        return ExtractionResult(extracted_fields=extracted)

    def _extract_field(self, target: FieldTarget, text: str, sole_target: bool) -> Any:
        if target.kind == FieldKind.BOOLEAN:
            return self._extract_boolean(target, text)
        if target.kind == FieldKind.CHOICE:
            return self._extract_choice(target, text)
        if target.kind == FieldKind.NUMBER:
            match = _NUMBER_RE.search(text)
            return match.group(0) if match else None
        if target.kind == FieldKind.LOCATION:
            return self._extract_location(target, text)

        captured = _first_pattern_match(target.patterns, text)
        if captured is not None:
            return captured
        if sole_target and not (is_positive_response(text) or is_negative_response(text)):
            return text.strip(_TRAILING)
        return None

    def _extract_boolean(self, target: FieldTarget, text: str) -> Optional[bool]:
        negative = is_negative_response(text)
        positive = is_positive_response(text)
        if positive != negative:
            return positive
        if not negative and _first_pattern_match(target.patterns, text) is not None:
            return True
        return None

    def _extract_choice(self, target: FieldTarget, text: str) -> Optional[str]:
        for choice, keywords in target.choices.items():
            if _keyword_match(choice, text) or any(_keyword_match(k, text) for k in keywords):
                return choice
        return None

    def _extract_location(self, target: FieldTarget, text: str) -> Optional[str]:
        captured = _first_pattern_match(target.patterns, text)
        if captured is not None:
            return captured

        for match in _LOCATION_RE.finditer(text):
            place = match.group(1).strip(_TRAILING)
            if place and place.lower() not in _LOCATION_STOP_WORDS:
                return place

        bare = text.strip(_TRAILING)
        if (
            bare
            and len(bare.split()) <= MAX_BARE_LOCATION_WORDS
            and not is_positive_response(bare)
            and not is_negative_response(bare)
            and not _NUMBER_RE.fullmatch(bare)
        ):
            return bare
        return None


def build_extractor(config: "ExtractorConfig") -> Extractor:
    """Create the extractor selected by ``EXTRACTOR_BACKEND``."""
    if config.backend == "llm":
        from journey_engine.conversation.llm_extractor import LLMExtractor

        return LLMExtractor(
            model=config.llm_model,
            temperature=config.llm_temperature,
            max_retries=config.max_retries,
            history_window=config.history_window,
        )
    return KeywordExtractor()
