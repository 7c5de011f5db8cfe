"""
Offline console demo: a USSD handset simulator.

Drives the real dispatcher, flows and in-memory stores exactly as the
gateway would, accumulating the ``*``-joined input history across round
trips. No gateway, no SMS provider and no payment gateway are contacted
(payments run in test mode).

Usage:
    python console_demo.py
    python console_demo.py --scenario register
    python console_demo.py --scenario paid
"""

import argparse
import uuid
from typing import Optional

from smarthealth.config import settings
from smarthealth.flows import handle_ussd
from smarthealth.repositories import doctors, sessions, transactions
from smarthealth.schemas.channel_schema import UssdResponse
from smarthealth.services import payments

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

# Completes the subscriber's pending test payment instead of sending input
PAY = "!pay"


class ConsoleSession:
    """Simulates one phone dialling the service code repeatedly."""

    def __init__(self, phone: str = "+254700000001") -> None:
        self.phone = phone
        self.session_id: Optional[str] = None
        self.inputs: list[str] = []
        doctors.seed_defaults()

    def screen(self, response: UssdResponse) -> None:
        colour = GREEN if response.kind.value == "CON" else YELLOW
        print(f"{colour}{BOLD}[{response.kind.value}]{RESET}")
        print(f"{colour}{response.text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def dial(self) -> UssdResponse:
        self.session_id = f"ATUid_{uuid.uuid4().hex[:12]}"
        self.inputs = []
        print(f"\n{BLUE}[Dial] {RESET}{settings.brand.ussd_code}")
        return self._send()

    def reply(self, value: str) -> UssdResponse:
        self.inputs.append(value)
        print(f"\n{BLUE}[Input] {RESET}{value}")
        return self._send()

    def _send(self) -> UssdResponse:
        text = "*".join(self.inputs)
        response = handle_ussd(self.session_id or "", settings.brand.ussd_code, self.phone, text)
        self.screen(response)
        if response.is_terminal:
            self.session_id = None
        return response

    def complete_payment(self) -> None:
        for payload in sessions.parked_payments().values():
            if payload.transaction_id and transactions.get(payload.transaction_id):
                result = payments.complete_test_payment(payload.transaction_id)
                self.system_log(f"Payment {result['transaction_id']} -> {result['status']}")
                return
        self.system_log("No pending payment to complete")

    # Each scenario is a list of dial-ins; each dial-in is a list of inputs
    SCENARIOS: dict[str, list[list[str]]] = {
        "register": [
            ["Jane Wanjiku", "1234"],
        ],
        "trial": [
            ["Jane Wanjiku", "1234"],
            ["1234", "1", "I have had a headache and fever for two days"],
        ],
        "paid": [
            ["Jane Wanjiku", "1234"],
            ["1234", "2", "1", "1"],
            [PAY],
            ["1234", "Persistent cough at night for over a week now"],
        ],
        "history": [
            ["Jane Wanjiku", "1234"],
            ["1234", "1", "Stomach pain after meals since last weekend"],
            ["1234", "3"],
        ],
    }

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        rounds = self.SCENARIOS.get(scenario)
        if not rounds:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {settings.brand.service_name.upper()} USSD - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  Phone: {self.phone}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        for inputs in rounds:
            if inputs == [PAY]:
                self.complete_payment()
                continue
            response = self.dial()
            for value in inputs:
                if response.is_terminal:
                    break
                response = self.reply(value)

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run(self) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {settings.brand.service_name.upper()} USSD - Console Demo{RESET}")
        print(f"{BOLD}  Phone: {self.phone}{RESET}")
        print(f"{BOLD}  Type 'quit' to exit, '{PAY}' to complete a pending payment{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        while True:
            if self.session_id is None:
                again = input(f"\n{DIM}Dial {settings.brand.ussd_code}? [Y/n] {RESET}").strip().lower()
                if again in ("n", "no", "quit", "q"):
                    return
                self.dial()
                continue

            user_input = input(f"\n{BLUE}[Input] {RESET}").strip()
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            if user_input == PAY:
                self.complete_payment()
                continue
            self.inputs.append(user_input)
            self._send()


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline USSD console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    parser.add_argument("--phone", default="+254700000001", help="Simulated handset number")
    args = parser.parse_args()

    session = ConsoleSession(phone=args.phone)
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()
