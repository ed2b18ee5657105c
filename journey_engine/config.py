"""
Centralized configuration with environment variable overrides.

Extractor, journey-loading and session-routing settings live here.
Nothing in the orchestration core reads the environment directly.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from journey_engine.logging_context import install_session_filter

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_JOURNEYS_DIR = Path(__file__).resolve().parent.parent / "journeys"

EXTRACTOR_BACKENDS = ("keyword", "llm")
ORPHAN_POLICIES = ("abandon", "keep")

LOG_FORMAT = "%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag (true/false, yes/no, 1/0, on/off)."""
    raw = os.getenv(env_var, default)
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class ExtractorConfig:
    """Settings for the natural-language extraction collaborator."""

    backend: str = os.getenv("EXTRACTOR_BACKEND", "keyword")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.0")
    timeout_sec: float = _safe_float("EXTRACTOR_TIMEOUT", "10.0")
    max_retries: int = _safe_int("EXTRACTOR_MAX_RETRIES", "3")
    history_window: int = _safe_int("EXTRACTOR_HISTORY_WINDOW", "20")


@dataclass(frozen=True)
class JourneyConfig:
    """Where journey documents are loaded from at startup."""

    journeys_dir: str = os.getenv("JOURNEYS_DIR", str(DEFAULT_JOURNEYS_DIR))


@dataclass(frozen=True)
class SessionConfig:
    """Session routing policy."""

    orphan_policy: str = os.getenv("ORPHAN_POLICY", "abandon")
    restart_completed: bool = _safe_bool("RESTART_COMPLETED_SESSIONS", "true")
    default_channel: str = os.getenv("DEFAULT_CHANNEL", "WHATSAPP")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)
    journeys: JourneyConfig = field(default_factory=JourneyConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "journey-orchestrator")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.extractor.backend not in EXTRACTOR_BACKENDS:
        raise ValueError(
            f"EXTRACTOR_BACKEND must be one of {EXTRACTOR_BACKENDS}, "
            f"got {config.extractor.backend!r}"
        )
    if not 0.0 <= config.extractor.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.extractor.llm_temperature}"
        )
    if config.extractor.timeout_sec <= 0:
        raise ValueError(
            f"EXTRACTOR_TIMEOUT must be > 0, got {config.extractor.timeout_sec}"
        )
    if config.extractor.max_retries < 0:
        raise ValueError(
            f"EXTRACTOR_MAX_RETRIES must be >= 0, got {config.extractor.max_retries}"
        )
    if config.extractor.history_window < 1:
        raise ValueError(
            f"EXTRACTOR_HISTORY_WINDOW must be >= 1, got {config.extractor.history_window}"
        )
    if config.sessions.orphan_policy not in ORPHAN_POLICIES:
        raise ValueError(
            f"ORPHAN_POLICY must be one of {ORPHAN_POLICIES}, "
            f"got {config.sessions.orphan_policy!r}"
        )
    if not config.sessions.default_channel.strip():
        raise ValueError("DEFAULT_CHANNEL must not be empty")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        install_session_filter(handler)
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
