"""Session-correlation logging context.

Every log line emitted while a turn is being processed carries the
session it belongs to, so one conversation can be followed across the
router, the store and the orchestrator.

Usage:
    from journey_engine.logging_context import get_session_logger, set_session_id

    set_session_id("0b6f...")
    logger = get_session_logger(__name__)
    logger.info("Processing turn")  # record.session_id == "0b6f..."
"""

import logging
from contextvars import ContextVar, Token

_session_id: ContextVar[str] = ContextVar("session_id", default="NO_SESSION")


def set_session_id(session_id: str) -> Token:
    """Set the correlation ID for the current async context."""
    return _session_id.set(session_id)


def reset_session_id(token: Token) -> None:
    """Restore the correlation ID that was active before ``set_session_id``."""
    _session_id.reset(token)


def get_session_id() -> str:
    """Retrieve the current correlation ID."""
    return _session_id.get()


class SessionIdFilter(logging.Filter):
    """Injects session_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def get_session_logger(name: str) -> logging.Logger:
    """Return a logger with the SessionIdFilter attached.

    The filter adds ``session_id`` to each record so formatters can
    include ``%(session_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, SessionIdFilter) for f in logger.filters):
        logger.addFilter(SessionIdFilter())
    return logger


def install_session_filter(handler: logging.Handler) -> None:
    """Stamp ``session_id`` on every record the handler emits.

    Records from plain ``logging.getLogger`` loggers reach the handler
    without the attribute; outside a turn they get ``NO_SESSION``.
    """
    if not any(isinstance(f, SessionIdFilter) for f in handler.filters):
        handler.addFilter(SessionIdFilter())
