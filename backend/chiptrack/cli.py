"""Operator console and management commands.

Usage:
    python -m chiptrack.cli wizard [--session NAME] [--once]   # record a chip entry
    python -m chiptrack.cli init-db                           # create the wizard_state table
    python -m chiptrack.cli show-state [--session NAME]       # print the stored draft
    python -m chiptrack.cli clear-state [--session NAME]      # discard the stored draft

The ledger service itself runs under an ASGI server:
    uvicorn chiptrack.main:app --port 3000
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Callable

from chiptrack.config import Settings, settings
from chiptrack.database import init_models
from chiptrack.schemas.wizard import ChipType, WizardRecord, WizardStep
from chiptrack.services.controller import WizardController
from chiptrack.services.gateway import HttpSubmissionGateway
from chiptrack.services.state_store import build_state_store
from chiptrack.services.validation import (
    FIELD_BOX_NUMBER,
    FIELD_BULK_SILO,
    IdentityInput,
    WizardCatalog,
)

QUIT = "q"


class QuitWizard(Exception):
    """Operator asked to leave; the draft stays stored for next time."""


class ConsoleView:
    """Plain-text rendering of the wizard pages."""

    def __init__(self, out: Callable[[str], None] = print) -> None:
        self.out = out
        self.record = WizardRecord()
        self.chip_type: ChipType | None = None
        self.submit_enabled = True
        self.last_error: str | None = None

    def navigate(self, step: WizardStep) -> None:
        titles = {
            WizardStep.FORM: "Chip details",
            WizardStep.DESTINATION: "Chip destination",
            WizardStep.SUMMARY: "Summary",
        }
        if step in titles:
            self.out(f"\n== {titles[step]} ==")

    def show_chip_type(self, chip_type: ChipType | None) -> None:
        self.chip_type = chip_type

    def prefill(self, record: WizardRecord) -> None:
        self.record = record

    def show_error(self, field: str | None, message: str) -> None:
        self.last_error = message
        self.out(f"! {message}")

    def render_summary(self, record: WizardRecord, timestamp: str) -> None:
        self.record = record
        self.out(f"  Box number:   {record.box_number}")
        self.out(f"  Product:      {record.product}")
        self.out(f"  Net weight:   {record.net_weight}")
        self.out(f"  Destination:  {record.destination}")
        self.out(f"  Operator:     {record.operator_name}")
        self.out(f"  Date/time:    {timestamp}")

    def set_message(self, message: str) -> None:
        if message:
            self.out(message)

    def alert(self, message: str) -> None:
        self.out(f"*** {message} ***")

    def set_submit_enabled(self, enabled: bool) -> None:
        self.submit_enabled = enabled


class ConsoleWizard:
    """Drives a WizardController from line-based input."""

    def __init__(
        self,
        controller: WizardController,
        view: ConsoleView,
        prompt: Callable[[str], str] = input,
    ) -> None:
        self.controller = controller
        self.view = view
        self.prompt = prompt

    def ask(self, label: str, default: str | None = None) -> str:
        suffix = f" [{default}]" if default else ""
        answer = self.prompt(f"{label}{suffix}: ").strip()
        if answer.lower() == QUIT:
            raise QuitWizard()
        return answer or (default or "")

    def choose(self, label: str, options: tuple[str, ...], default: str | None = None) -> str:
        if not options:
            return self.ask(label, default)
        for index, option in enumerate(options, start=1):
            self.view.out(f"  {index}) {option}")
        answer = self.ask(label, default)
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        return answer

    async def run(self, once: bool = False) -> int:
        """Run until the operator quits (or after one save with ``once``)."""
        # Entering the summary lands on the furthest step the draft allows.
        await self.controller.enter(WizardStep.SUMMARY)
        try:
            while True:
                step = self.controller.step
                if step is WizardStep.FORM:
                    await self._form_page()
                elif step is WizardStep.DESTINATION:
                    await self._destination_page()
                elif step is WizardStep.SUMMARY:
                    saved = await self._summary_page()
                    if saved and once:
                        return 0
                else:
                    await self._wait_for_reset()
        except QuitWizard:
            self.controller.cancel_pending_reset()
            self.view.out("Draft kept. Bye.")
            return 0

    async def _form_page(self) -> None:
        controller = self.controller
        record = self.view.record
        catalog = controller.catalog

        chip_type = self.ask("Chip type (box/bulk/purchased)")
        if await controller.select_chip_type(chip_type.lower()) is None:
            await controller.submit_identity(IdentityInput(chip_type=chip_type))
            return

        raw = IdentityInput()
        if controller.chip_type is ChipType.BOX:
            raw.chip_box_number = controller.normalize_input(
                FIELD_BOX_NUMBER, self.ask("Box number", record.chip_box_number)
            )
        elif controller.chip_type is ChipType.BULK:
            raw.chip_bulk_silo = controller.normalize_input(
                FIELD_BULK_SILO, self.ask("Bulk/Silo", record.chip_bulk_silo)
            )
        else:
            raw.chip_purchased = self.choose(
                "Purchased chip", catalog.purchased_options, record.chip_purchased
            )
        raw.product = self.choose("Product", catalog.products, record.product)
        raw.net_weight = self.ask("Net weight", record.net_weight)
        raw.operator_name = self.ask("Operator name (first and last)", record.operator_name)

        await controller.submit_identity(raw)

    async def _destination_page(self) -> None:
        controller = self.controller
        destination = self.choose(
            "Chip destination", controller.catalog.destinations, controller.destination
        )
        if destination:
            controller.toggle_destination(destination)
        await controller.submit_destination()

    async def _summary_page(self) -> bool:
        action = self.ask("[s]ave, [b]ack", "s").lower()
        if action.startswith("b"):
            await self.controller.go_back()
            return False
        result = await self.controller.submit_final()
        if result is None or not result.ok:
            return False
        await self._wait_for_reset()
        return True

    async def _wait_for_reset(self) -> None:
        pending = self.controller.pending_reset
        if pending is not None:
            await pending
        elif self.controller.step is WizardStep.SUBMITTED:
            await self.controller.navigate(WizardStep.FORM)


# ── Commands ────────────────────────────────────────────────


async def run_wizard(app_settings: Settings, session: str | None, once: bool) -> int:
    if app_settings.state_backend == "sql":
        await init_models()
    view = ConsoleView()
    controller = WizardController(
        build_state_store(app_settings, session),
        HttpSubmissionGateway.from_settings(app_settings),
        view,
        catalog=WizardCatalog.from_settings(app_settings),
        redirect_delay=app_settings.redirect_delay_seconds,
    )
    return await ConsoleWizard(controller, view).run(once=once)


async def show_state(app_settings: Settings, session: str | None) -> int:
    record = await build_state_store(app_settings, session).load()
    print(json.dumps(json.loads(record.to_blob()), indent=2))
    return 0


async def clear_state(app_settings: Settings, session: str | None) -> int:
    await build_state_store(app_settings, session).clear()
    print("Wizard state cleared.")
    return 0


async def create_tables() -> int:
    await init_models()
    print("Tables created.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chiptrack", description="Chip consumption wizard and maintenance commands"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    wizard = sub.add_parser("wizard", help="Record chip entries interactively")
    wizard.add_argument("--session", help="Draft name (default: shared draft)")
    wizard.add_argument("--once", action="store_true", help="Exit after one successful save")

    sub.add_parser("init-db", help="Create the wizard_state table")

    for name, text in (("show-state", "Print the stored draft"), ("clear-state", "Discard the stored draft")):
        command = sub.add_parser(name, help=text)
        command.add_argument("--session", help="Draft name (default: shared draft)")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    if args.command == "wizard":
        return asyncio.run(run_wizard(settings, args.session, args.once))
    if args.command == "init-db":
        return asyncio.run(create_tables())
    if args.command == "show-state":
        return asyncio.run(show_state(settings, args.session))
    if args.command == "clear-state":
        return asyncio.run(clear_state(settings, args.session))
    return 2


if __name__ == "__main__":
    sys.exit(main())
