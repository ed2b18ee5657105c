"""Inbound query and outbound answer bodies (camelCase on the wire)."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from journey_engine.schemas.conversation_schema import SessionStatus, Turn, TurnResult


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class QueryOptions(_WireModel):
    """Advisory request options. Never change orchestration."""
    communication_mode: Optional[str] = Field(default=None, alias="communicationMode")


class QueryRequest(_WireModel):
    customer_id: str = Field(alias="customerId")
    intent: str
    query: str
    options: QueryOptions = Field(default_factory=QueryOptions)

    @field_validator("customer_id", "intent", "query")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class QueryResponse(_WireModel):
    answer: str
    conversation_id: str = Field(alias="conversationId")
    intent: str
    status: SessionStatus
    conversation_history: list[Turn] = Field(alias="conversationHistory")
    current_stage: Optional[str] = Field(alias="currentStage")
    collected_data: dict[str, Any] = Field(alias="collectedData")
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: TurnResult) -> "QueryResponse":
        return cls(
            answer=result.reply,
            conversation_id=result.session_id,
            intent=result.intent,
            status=result.status,
            conversation_history=result.history,
            current_stage=result.current_stage_id,
            collected_data=result.collected_data,
            error=result.error,
        )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
