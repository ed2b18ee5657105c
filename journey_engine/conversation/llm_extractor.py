"""
LLM-backed extractor using the OpenAI chat completions API in JSON mode.

The client's built-in retry handles rate limits and 5xx responses with
exponential backoff. Anything that still goes wrong (API errors, empty
or non-JSON output, a JSON shape other than an object) is raised as
ExtractionUnavailable; unknown field names are passed through untouched
and left to the SlotManager to reject.
"""

import json
import logging
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

from journey_engine.conversation.extraction import (
    ExtractionRequest,
    ExtractionResult,
    Extractor,
)
from journey_engine.exceptions import ExtractionUnavailable
from journey_engine.prompts.prompt_templates import build_extraction_messages

logger = logging.getLogger(__name__)


class LLMExtractor(Extractor):
    """Extractor that asks a chat model for a JSON object of field values."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        temperature: float = 0.0,
        max_retries: int = 3,
        history_window: int = 20,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._history_window = history_window
        self._max_retries = max_retries
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(max_retries=self._max_retries)
        return self._client

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        messages = build_extraction_messages(
            request.utterance,
            request.target_fields,
            request.history[-self._history_window:],
        )
        try:
            # Construction raises OpenAIError when no API key is configured.
            client = self._get_client()
            response = await client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=self._temperature,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            logger.warning("LLM extraction call failed: %s", exc)
            raise ExtractionUnavailable(f"LLM call failed: {type(exc).__name__}") from exc

        content = response.choices[0].message.content if response.choices else None
        return self._parse(content)

    def _parse(self, content: Optional[str]) -> ExtractionResult:
        if not content:
            raise ExtractionUnavailable("LLM returned an empty response")
        try:
            payload: Any = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ExtractionUnavailable("LLM returned non-JSON output") from exc
        if not isinstance(payload, dict):
            raise ExtractionUnavailable("LLM returned JSON that is not an object")

        fields = payload.get("extractedFields") or {}
        if not isinstance(fields, dict):
            raise ExtractionUnavailable("'extractedFields' is not an object")
        reply = payload.get("candidateReply") or ""
        if not isinstance(reply, str):
            reply = str(reply)

        logger.debug("LLM extracted %s", fields)
        return ExtractionResult(extracted_fields=fields, candidate_reply=reply.strip())
