"""Operator console tests (scripted input, fake gateway)."""

import pytest

from chiptrack.cli import ConsoleView, ConsoleWizard, build_parser
from chiptrack.schemas.wizard import WizardStep
from chiptrack.services.controller import SAVED_ALERT, WizardController

from tests.conftest import FIXED_NOW


def scripted(*answers):
    queue = list(answers)
    prompts = []

    def prompt(text):
        prompts.append(text)
        return queue.pop(0)

    prompt.prompts = prompts
    return prompt


@pytest.fixture
def console(store, gateway, catalog):
    lines = []
    view = ConsoleView(out=lines.append)
    controller = WizardController(
        store, gateway, view, catalog=catalog, redirect_delay=0.01, clock=lambda: FIXED_NOW
    )
    return controller, view, lines


@pytest.mark.unit
@pytest.mark.asyncio
class TestConsoleWizard:

    async def test_full_entry(self, console, store, gateway):
        controller, view, lines = console
        prompt = scripted(
            "box", "A1-B2", "1", "12.5", "Jane   Doe",  # form (box number filtered while typing)
            "3",  # destination: Blender
            "",  # summary: default is save
        )

        assert await ConsoleWizard(controller, view, prompt).run(once=True) == 0

        assert len(gateway.calls) == 1
        assert gateway.calls[0].to_wire() == {
            "boxNumber": "A1B2",
            "product": "Resin-X",
            "netWeight": "12.5",
            "operatorName": "Jane Doe",
            "destination": "Blender",
        }
        assert f"*** {SAVED_ALERT} ***" in lines
        assert (await store.load()).is_empty
        assert controller.step is WizardStep.FORM

    async def test_validation_error_repeats_page(self, console, gateway):
        controller, view, lines = console
        prompt = scripted(
            "bulk", "North", "Resin-Y", "0", "Sam Smith",
            "q",
        )

        assert await ConsoleWizard(controller, view, prompt).run() == 0

        assert "! Net weight must be a positive number." in lines
        assert controller.step is WizardStep.FORM
        assert gateway.calls == []

    async def test_unknown_chip_type_reported(self, console):
        controller, view, lines = console
        prompt = scripted("crate", "q")

        await ConsoleWizard(controller, view, prompt).run()

        assert "! Please select what type of chip this is." in lines

    async def test_resumes_at_summary(self, console, store, complete_record):
        controller, view, lines = console
        await store.save(complete_record)
        prompt = scripted("b", "q")

        await ConsoleWizard(controller, view, prompt).run()

        assert "  Box number:   A1B2" in lines
        assert controller.step is WizardStep.DESTINATION
        assert await store.load() == complete_record

    async def test_quit_keeps_draft(self, console, store, identity_record):
        controller, view, lines = console
        await store.save(identity_record)

        await ConsoleWizard(controller, view, scripted("q")).run()

        assert "Draft kept. Bye." in lines
        assert await store.load() == identity_record


@pytest.mark.unit
class TestParser:

    def test_wizard_options(self):
        args = build_parser().parse_args(["wizard", "--session", "line2", "--once"])
        assert args.command == "wizard"
        assert args.session == "line2"
        assert args.once

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])
