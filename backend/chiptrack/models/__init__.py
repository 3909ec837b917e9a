"""Aggregate model imports so Base.metadata sees every table."""

from chiptrack.models.wizard_state import WizardState  # noqa: F401
