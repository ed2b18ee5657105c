"""Error taxonomy for journey orchestration."""


class JourneyEngineError(Exception):
    """Base class for every error raised by the orchestration core."""


class MalformedJourney(JourneyEngineError):
    """A journey document failed validation. Fatal at startup."""

    def __init__(self, message: str, intent: str = "", source: str = "") -> None:
        self.intent = intent
        self.source = source
        prefix = f"{source}: " if source else ""
        label = f"journey '{intent}': " if intent else ""
        super().__init__(f"{prefix}{label}{message}")


class UnknownIntentError(JourneyEngineError, KeyError):
    """No journey is loaded for the requested intent."""

    def __init__(self, intent: str, available: list[str]) -> None:
        self.intent = intent
        self.available = available
        super().__init__(f"No journey loaded for intent '{intent}'. Available: {available}")

    def __str__(self) -> str:
        return self.args[0]


class SessionNotFound(JourneyEngineError, LookupError):
    """Direct lookup of a session id that is not stored."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class StaleSessionError(JourneyEngineError):
    """A put carried a version older than the stored one."""

    def __init__(self, session_id: str, expected: int, actual: int) -> None:
        self.session_id = session_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Stale write for session {session_id}: "
            f"based on version {actual}, stored version is {expected}"
        )


class ExtractionUnavailable(JourneyEngineError):
    """The extractor failed, timed out or returned unusable output."""


class UnknownFieldRejected(JourneyEngineError):
    """The extractor returned a field that is not part of the journey."""

    def __init__(self, field_name: str, intent: str) -> None:
        self.field_name = field_name
        self.intent = intent
        super().__init__(f"Field '{field_name}' is not defined by journey '{intent}'")
