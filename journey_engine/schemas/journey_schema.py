"""Declarative journey document schema (one document per intent)."""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

TERMINAL_STAGE = "end"


class FieldKind(str, Enum):
    """How a collected field is recognised and normalized."""
    TEXT = "text"
    BOOLEAN = "boolean"
    CHOICE = "choice"
    LOCATION = "location"
    NUMBER = "number"


class _DocumentModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class FieldSpec(_DocumentModel):
    """Extraction hints for one journey field."""
    description: str = ""
    kind: FieldKind = FieldKind.TEXT
    choices: dict[str, list[str]] = Field(default_factory=dict)
    patterns: list[str] = Field(default_factory=list)


class ConditionSpec(BaseModel):
    """Guard on a transition rule. Exactly one operator must be given."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    field: str
    equals: Optional[Any] = None
    one_of: Optional[list[Any]] = Field(default=None, alias="in")
    present: Optional[bool] = None

    @model_validator(mode="after")
    def _single_operator(self) -> "ConditionSpec":
        given = {"equals", "one_of", "present"} & self.model_fields_set
        if len(given) != 1:
            raise ValueError(
                f"condition on '{self.field}' needs exactly one of equals/in/present"
            )
        return self


class TransitionSpec(_DocumentModel):
    to: str
    when: Optional[ConditionSpec] = None


class StageSpec(_DocumentModel):
    id: str
    name: str = ""
    required_fields: list[str] = Field(default_factory=list, alias="requiredFields")
    prompt: str = ""
    transitions: Union[str, list[TransitionSpec]]


class JourneyDocument(_DocumentModel):
    """Top-level journey document as read from JSON."""
    intent: str
    description: str = ""
    entry_stage_id: str = Field(alias="entryStageId")
    stages: list[StageSpec]
    field_specs: dict[str, FieldSpec] = Field(default_factory=dict, alias="fields")
    final_message: Optional[str] = Field(default=None, alias="finalMessage")
