"""
Offline console demo: runs journey conversations without any API keys.

Uses the real journey loader, session store, router and orchestrator
with the keyword extractor. No LLM, no network calls.

Usage:
    python console_demo.py
    python console_demo.py --intent HEALTH_CHECKUP
    python console_demo.py --scenario hospital
    python console_demo.py --scenario switch
"""

import argparse
import asyncio
from typing import Optional, Sequence

from journey_engine.config import settings
from journey_engine.conversation.admin import SessionAdmin
from journey_engine.conversation.extraction import KeywordExtractor
from journey_engine.conversation.journey import load_journeys
from journey_engine.conversation.orchestrator import JourneyOrchestrator
from journey_engine.exceptions import UnknownIntentError
from journey_engine.schemas.conversation_schema import SessionStatus, TurnResult

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEFAULT_INTENT = "HOSPITAL_LOCATOR"


class ConsoleSession:
    """Plays a customer's side of one or more journeys in the terminal."""

    # Pre-scripted scenarios for --scenario flag: (intent, utterance) pairs
    SCENARIOS: dict[str, list[tuple[str, str]]] = {
        "hospital": [
            ("HOSPITAL_LOCATOR", "I need to find a hospital near me"),
            ("HOSPITAL_LOCATOR", "Yes, I need admission"),
            ("HOSPITAL_LOCATOR", "I'm looking for myself"),
            ("HOSPITAL_LOCATOR", "I have chest pain"),
            ("HOSPITAL_LOCATOR", "Andheri"),
        ],
        "checkup": [
            ("HEALTH_CHECKUP", "I want a full body check-up"),
            ("HEALTH_CHECKUP", "3 of us"),
            ("HEALTH_CHECKUP", "in Pune"),
        ],
        "switch": [
            ("HOSPITAL_LOCATOR", "Yes, admission is needed"),
            ("HEALTH_CHECKUP", "Actually, I'd like a cardiac check-up instead"),
            ("HEALTH_CHECKUP", "Just 1"),
            ("HEALTH_CHECKUP", "near Bandra"),
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(
        self,
        customer_id: str = "console-customer",
        journeys_dir: Optional[str] = None,
    ) -> None:
        registry = load_journeys(journeys_dir or settings.journeys.journeys_dir)
        self.orchestrator = JourneyOrchestrator.from_config(
            registry, settings, extractor=KeywordExtractor()
        )
        self.admin = SessionAdmin(self.orchestrator.store)
        self.customer_id = customer_id
        self.intents = registry.intents()

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[Agent]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  JOURNEY ORCHESTRATOR - {title}{RESET}")
        print(f"{BOLD}  Journeys: {', '.join(self.intents)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def _report(self, result: TurnResult) -> None:
        self.agent_say(result.reply)
        stage = result.current_stage_id or "-"
        self.system_log(f"Stage: {stage} | Status: {result.status.value} | Data: {result.collected_data}")
        if result.error:
            self.system_log(f"{YELLOW}Degraded turn: {result.error}{RESET}")

    async def _summary(self) -> None:
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        for session in await self.admin.list_sessions(self.customer_id):
            trace = " -> ".join(visit.stage_id for visit in session.stage_history)
            print(f"{DIM}  {session.intent} [{session.status.value}] {trace}{RESET}")
        print(f"{DIM}  Session stats: {await self.admin.get_stats()}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def turn(self, intent: str, text: str) -> TurnResult:
        result = await self.orchestrator.process_turn(self.customer_id, intent, text)
        self._report(result)
        return result

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        for intent, text in steps:
            print(f"\n{BLUE}[Customer/{intent}] {RESET}{text}")
            await self.turn(intent, text)
        await self._summary()

    async def run(self, intent: str = DEFAULT_INTENT) -> None:
        self._banner("Console Demo")
        print(f"{DIM}  Type 'quit' to exit, ':intent NAME' to switch journeys{RESET}")

        while True:
            user_input = input(f"\n{BLUE}[Customer/{intent}] {RESET}").strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                break
            if user_input.startswith(":intent"):
                intent = user_input.split(maxsplit=1)[-1].strip().upper()
                self.system_log(f"Intent set to {intent}")
                continue
            if len(user_input) > self.MAX_INPUT_LENGTH:
                self.agent_say("That was quite long. Could you keep it brief for me?")
                continue

            try:
                result = await self.turn(intent, user_input)
            except UnknownIntentError as exc:
                print(f"{RED}{exc}{RESET}")
                continue
            if result.status == SessionStatus.COMPLETED:
                break

        await self._summary()


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    parser.add_argument("--intent", default=DEFAULT_INTENT, help="Journey for interactive mode")
    parser.add_argument("--journeys-dir", default=None, help="Directory of journey documents")
    args = parser.parse_args(argv)

    session = ConsoleSession(journeys_dir=args.journeys_dir)
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run(args.intent.upper()))


if __name__ == "__main__":
    main()
