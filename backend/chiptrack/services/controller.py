"""Wizard controller: three pages plus a terminal "submitted" state.

Flow:
  form ──(valid)──► destination ──(valid)──► summary ──(saved)──► submitted
    ▲                                                                 │
    └──────────────── store cleared after the display delay ──────────┘

Design:
  - The store is the only holder of the draft.  Every action loads the full
    record, merges its result and saves the full record back.
  - Entering destination/summary runs an entry guard; a missing prerequisite
    redirects backwards without rendering.
  - The chip type and destination selections are explicit values on the
    controller, not something read back from the view.
  - Final save is guarded by an in-flight flag and by the pending reset, so
    repeated clicks never issue a second request.  Nothing protects a manual
    retry after a failure the server actually committed (no idempotency key).
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Protocol

from chiptrack.schemas.wizard import (
    ChipType,
    SubmissionPayload,
    WizardRecord,
    WizardStep,
)
from chiptrack.services.gateway import SubmissionGateway, SubmissionResult
from chiptrack.services.state_store import WizardStateStore
from chiptrack.services.validation import (
    FIELD_BOX_NUMBER,
    FIELD_BULK_SILO,
    IdentityInput,
    StepValidation,
    WizardCatalog,
    missing_prerequisite,
    parse_chip_type,
    sanitize_box_number,
    sanitize_bulk_silo,
    validate_destination_step,
    validate_identity_step,
)

logger = logging.getLogger("chiptrack.wizard")

SAVED_ALERT = "Saved to ledger."
FAILED_ALERT = "Save failed. Please try again."
RESET_FAILED_MESSAGE = (
    "Saved, but the draft could not be cleared. "
    "Start a new entry before saving again."
)


def format_timestamp(moment: datetime) -> str:
    """e.g. ``Mar 05, 2026, 03:07 PM``."""
    return moment.strftime("%b %d, %Y, %I:%M %p")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WizardView(Protocol):
    """Rendering side of the wizard (browser page, console, test double)."""

    def navigate(self, step: WizardStep) -> None: ...

    def show_chip_type(self, chip_type: ChipType | None) -> None: ...

    def prefill(self, record: WizardRecord) -> None: ...

    def show_error(self, field: str | None, message: str) -> None: ...

    def render_summary(self, record: WizardRecord, timestamp: str) -> None: ...

    def set_message(self, message: str) -> None: ...

    def alert(self, message: str) -> None: ...

    def set_submit_enabled(self, enabled: bool) -> None: ...


class WizardController:
    def __init__(
        self,
        store: WizardStateStore,
        gateway: SubmissionGateway,
        view: WizardView,
        *,
        catalog: WizardCatalog | None = None,
        redirect_delay: float = 3.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.view = view
        self.catalog = catalog or WizardCatalog()
        self.redirect_delay = redirect_delay
        self.clock = clock

        self.step: WizardStep | None = None
        self.chip_type: ChipType | None = None
        self.destination: str | None = None
        self.in_flight = False
        self._pending_reset: asyncio.Task | None = None

    # ── Navigation ───────────────────────────────────────────

    async def navigate(self, step: WizardStep) -> WizardStep:
        """Move to ``step`` and run its entry logic; returns the page landed on."""
        self.view.navigate(step)
        return await self.enter(step)

    async def enter(self, step: WizardStep) -> WizardStep:
        record = await self.store.load()

        redirect = missing_prerequisite(record, step)
        if redirect is not None:
            logger.debug("Entry to %s blocked, redirecting to %s", step.value, redirect.value)
            return await self.navigate(redirect)

        self.step = step
        if step is WizardStep.FORM:
            # Always start with no type chosen, even if one was stored.
            self.chip_type = None
            self.view.show_chip_type(None)
            self.view.prefill(record)
        elif step is WizardStep.DESTINATION:
            self.destination = record.destination
            self.view.prefill(record)
        elif step is WizardStep.SUMMARY:
            shown_at = record.saved_at or self.clock()
            self.view.render_summary(record, format_timestamp(shown_at))
            self.view.set_submit_enabled(not self.submit_locked)
        return step

    async def go_back(self) -> WizardStep:
        """Summary page "back" control."""
        return await self.navigate(WizardStep.DESTINATION)

    # ── Step 1 ───────────────────────────────────────────────

    async def select_chip_type(self, chip_type: str | ChipType) -> ChipType | None:
        """Pick the chip variant; the other variants' stored values are dropped.

        Switching to a different variant also drops the canonical box number
        and the destination, so the entry guards send the operator back
        through step 1.
        """
        selected = parse_chip_type(chip_type)
        if selected is None:
            return None

        self.chip_type = selected
        self.view.show_chip_type(selected)

        record = await self.store.load()
        switched = record.chip_type is not selected
        await self.store.save(
            record.merged(
                chip_type=selected,
                chip_box_number=record.chip_box_number if selected is ChipType.BOX else None,
                chip_bulk_silo=record.chip_bulk_silo if selected is ChipType.BULK else None,
                chip_purchased=record.chip_purchased if selected is ChipType.PURCHASED else None,
                # A new variant invalidates the identity and everything gated on it.
                box_number=None if switched else record.box_number,
                destination=None if switched else record.destination,
            )
        )
        return selected

    @staticmethod
    def normalize_input(field: str, value: str) -> str:
        """Keystroke filter for the free-text chip fields."""
        if field == FIELD_BOX_NUMBER:
            return sanitize_box_number(value)
        if field == FIELD_BULK_SILO:
            return sanitize_bulk_silo(value)
        return value

    async def submit_identity(self, raw: IdentityInput) -> StepValidation:
        self.view.set_message("")
        if raw.chip_type is None:
            raw = replace(raw, chip_type=self.chip_type)

        outcome = validate_identity_step(raw, self.catalog)
        if not outcome.ok:
            self.view.show_error(outcome.error.field, outcome.error.message)
            return outcome

        record = await self.store.load()
        await self.store.save(record.merged(**outcome.fields))
        await self.navigate(WizardStep.DESTINATION)
        return outcome

    # ── Step 2 ───────────────────────────────────────────────

    def toggle_destination(self, value: str, checked: bool = True) -> str | None:
        """Single-select: checking one option unchecks all others."""
        if checked:
            self.destination = value
        elif self.destination == value:
            self.destination = None
        return self.destination

    async def submit_destination(self) -> StepValidation:
        self.view.set_message("")
        selected = [self.destination] if self.destination else []
        outcome = validate_destination_step(selected, self.catalog)
        if not outcome.ok:
            self.view.show_error(outcome.error.field, outcome.error.message)
            return outcome

        record = await self.store.load()
        await self.store.save(record.merged(**outcome.fields))
        await self.navigate(WizardStep.SUMMARY)
        return outcome

    # ── Step 3 ───────────────────────────────────────────────

    @property
    def pending_reset(self) -> asyncio.Task | None:
        if self._pending_reset is not None and self._pending_reset.done():
            return None
        return self._pending_reset

    @property
    def submit_locked(self) -> bool:
        # SUBMITTED is only left through a fresh page entry, so a reset that
        # failed keeps the button disabled.
        return (
            self.in_flight
            or self.pending_reset is not None
            or self.step is WizardStep.SUBMITTED
        )

    async def submit_final(self) -> SubmissionResult | None:
        """Send the record to the ledger.  Returns None when the click is ignored."""
        if self.submit_locked:
            logger.debug("Final save ignored: a save is already in progress")
            return None

        self.in_flight = True
        self.view.set_submit_enabled(False)
        self.view.set_message("")
        unlock = True

        try:
            record = await self.store.load()
            if missing_prerequisite(record, WizardStep.SUMMARY) is not None:
                # Draft vanished underneath us; let the guard send the operator back.
                await self.enter(WizardStep.SUMMARY)
                return None

            try:
                result = await self.gateway.submit(SubmissionPayload.from_record(record))
            except Exception as exc:
                logger.exception("Ledger submission raised")
                result = SubmissionResult(ok=False, detail=str(exc))

            if not result.ok:
                self.view.alert(FAILED_ALERT)
                return result

            self.view.alert(SAVED_ALERT)
            unlock = False  # stays disabled until the reset lands on the form

            saved_at = self.clock()
            await self.store.save(record.merged(saved_at=saved_at))
            self.step = WizardStep.SUBMITTED
            self.view.render_summary(record.merged(saved_at=saved_at), format_timestamp(saved_at))
            self.view.set_message(
                f"Saved at {format_timestamp(saved_at)}. "
                f"Redirecting to the first page in {self.redirect_delay:g} seconds."
            )
            self._schedule_reset()
            return result
        finally:
            self.in_flight = False
            if unlock:
                self.view.set_submit_enabled(True)

    def _schedule_reset(self) -> None:
        # Only one pending reset may exist.
        self.cancel_pending_reset()
        self._pending_reset = asyncio.get_running_loop().create_task(self._reset_after_delay())

    def cancel_pending_reset(self) -> None:
        if self._pending_reset is not None and not self._pending_reset.done():
            self._pending_reset.cancel()
        self._pending_reset = None

    async def _reset_after_delay(self) -> None:
        await asyncio.sleep(self.redirect_delay)
        try:
            await self.store.clear()
        except Exception:
            logger.exception("Failed to clear the saved wizard record")
            self.view.set_message(RESET_FAILED_MESSAGE)
            return

        self.chip_type = None
        self.destination = None
        logger.info("Wizard record saved and cleared")
        try:
            await self.navigate(WizardStep.FORM)
        except Exception:
            logger.exception("Failed to return to the first page after saving")
