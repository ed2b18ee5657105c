"""
Checks applied to an extractor's candidate reply before it is sent.

A candidate reply is only used when every check passes; otherwise the
orchestrator falls back to the stage's declared prompt. Three layers:
1. EmptinessGuardrail  - the reply must have content
2. LeakGuardrail       - no internal error details or model self-references
3. GapGuardrail        - while fields are missing, the reply must ask a question
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class GuardrailResult:
    """Outcome of a single guardrail check."""
    passed: bool
    violation_type: Optional[str] = None
    message: Optional[str] = None


class EmptinessGuardrail:
    MIN_REPLY_LENGTH = 2

    def check(self, reply: str) -> GuardrailResult:
        if len(reply.strip()) < self.MIN_REPLY_LENGTH:
            return GuardrailResult(
                passed=False,
                violation_type="empty_reply",
                message="Candidate reply is empty.",
            )
        return GuardrailResult(passed=True)


class LeakGuardrail:
    """Blocks replies exposing internals or breaking persona."""

    INTERNAL_MARKERS = [
        "traceback", "exception", "stack trace", "internal server error",
        "keyerror", "typeerror", "valueerror", "nonetype", "errno",
    ]

    SELF_REFERENCES = [
        "as an ai", "language model", "i am an ai", "i'm an ai", "json",
    ]

    def check(self, reply: str) -> GuardrailResult:
        lower = reply.lower()
        for marker in self.INTERNAL_MARKERS:
            if marker in lower:
                logger.warning("Candidate reply contains internal detail marker '%s'", marker)
                return GuardrailResult(
                    passed=False,
                    violation_type="internal_detail",
                    message=f"Reply mentions '{marker}'.",
                )
        for phrase in self.SELF_REFERENCES:
            if phrase in lower:
                return GuardrailResult(
                    passed=False,
                    violation_type="persona_break",
                    message=f"Reply contains '{phrase}'.",
                )
        return GuardrailResult(passed=True)


class GapGuardrail:
    """A reply addresses the gap when it asks the customer something."""

    def check(self, reply: str, missing: Sequence[str]) -> GuardrailResult:
        if missing and "?" not in reply:
            return GuardrailResult(
                passed=False,
                violation_type="gap_not_addressed",
                message=f"Reply does not ask for {list(missing)}.",
            )
        return GuardrailResult(passed=True)


class GuardrailPipeline:
    """Composes the reply checks."""

    def __init__(self) -> None:
        self.emptiness = EmptinessGuardrail()
        self.leak = LeakGuardrail()
        self.gap = GapGuardrail()

    def check_candidate_reply(self, reply: str, missing: Sequence[str]) -> list[GuardrailResult]:
        """Return the failed checks; an empty list means the reply can be sent."""
        emptiness = self.emptiness.check(reply)
        if not emptiness.passed:
            return [emptiness]
        results = [
            self.leak.check(reply),
            self.gap.check(reply, missing),
        ]
        return [r for r in results if not r.passed]
