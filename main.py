"""
Journey orchestrator entry point.

Usage:
    Console demo:       python main.py console [--scenario NAME] [--intent INTENT]
    Validate journeys:  python main.py validate [DIR]
"""

import logging
import sys
from typing import Optional, Sequence

from journey_engine.config import settings
from journey_engine.exceptions import MalformedJourney

logger = logging.getLogger(__name__)


def _run_console_mode(argv: Sequence[str]) -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import main as console_main

    console_main(argv)


def _run_validate(directory: Optional[str] = None) -> int:
    """Load every journey document and report the first malformed one."""
    from journey_engine.conversation.journey import load_journeys

    directory = directory or settings.journeys.journeys_dir
    try:
        registry = load_journeys(directory)
    except MalformedJourney as exc:
        logger.error("Journey validation failed: %s", exc)
        print(f"INVALID: {exc}")
        return 1

    for intent in registry.intents():
        journey = registry.get(intent)
        print(f"OK: {intent} ({len(journey.stages)} stages, fields: {sorted(journey.fields)})")
    return 0


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else "console"
    if command == "console":
        _run_console_mode(sys.argv[2:])
    elif command == "validate":
        sys.exit(_run_validate(sys.argv[2] if len(sys.argv) > 2 else None))
    else:
        print(__doc__)
        sys.exit(2)
