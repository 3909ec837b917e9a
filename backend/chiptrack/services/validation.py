"""Step validators for the chip tracking wizard.

Pure functions: each takes one step's raw input and returns a
``StepValidation`` holding either the normalized fields to merge into the
draft record or the single error to surface.  Rules run in a fixed order
and stop at the first failure, so the operator only ever sees one message.
Side effects (focus, messages, storage) belong to the caller.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from chiptrack.config import Settings, split_options
from chiptrack.schemas.wizard import ChipType, WizardRecord, WizardStep

BOX_NUMBER_RE = re.compile(r"[A-Za-z0-9]+")
NOT_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")
WEIGHT_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
DIGIT_RE = re.compile(r"[0-9]")

# Form controls an error can point at.
FIELD_CHIP_TYPE = "chipType"
FIELD_BOX_NUMBER = "chipBoxNumber"
FIELD_BULK_SILO = "chipBulkSilo"
FIELD_PURCHASED = "chipPurchased"
FIELD_PRODUCT = "product"
FIELD_NET_WEIGHT = "netWeight"
FIELD_OPERATOR = "operatorName"
FIELD_DESTINATION = "destination"

STEP1_FIELDS = ("box_number", "product", "net_weight", "operator_name")


# ── Data structures ────────────────────────────────────────────


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


@dataclass
class StepValidation:
    """Outcome of one step's validation.  Exactly one of fields/error is set."""
    fields: dict[str, object] = field(default_factory=dict)
    error: FieldError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def fail(cls, field_name: str, message: str) -> StepValidation:
        return cls(error=FieldError(field_name, message))


@dataclass(frozen=True)
class WizardCatalog:
    """Option sets offered by the select controls.

    An empty tuple means "any non-empty value"; the front-end is then the
    only thing constraining the choice.
    """
    products: tuple[str, ...] = ()
    destinations: tuple[str, ...] = ()
    purchased_options: tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings: Settings) -> WizardCatalog:
        return cls(
            products=tuple(split_options(settings.products)),
            destinations=tuple(split_options(settings.destinations)),
            purchased_options=tuple(split_options(settings.purchased_options)),
        )


@dataclass
class IdentityInput:
    """Raw values as typed/selected on the first page."""
    chip_type: str | ChipType | None = None
    chip_box_number: str = ""
    chip_bulk_silo: str = ""
    chip_purchased: str = ""
    product: str = ""
    net_weight: str = ""
    operator_name: str = ""


# ── Normalisation helpers ──────────────────────────────────────


def normalize_text(value: str | None) -> str:
    return value.strip() if value else ""


def normalize_name(value: str | None) -> str:
    """Trim and collapse internal whitespace runs to single spaces."""
    return " ".join((value or "").split())


def sanitize_box_number(value: str) -> str:
    """Drop anything that is not an ASCII letter or digit (applied while typing)."""
    return NOT_ALNUM_RE.sub("", value or "")


def sanitize_bulk_silo(value: str) -> str:
    """Drop digits (applied while typing)."""
    return DIGIT_RE.sub("", value or "")


def parse_chip_type(value: str | ChipType | None) -> ChipType | None:
    if isinstance(value, ChipType):
        return value
    try:
        return ChipType(value)
    except ValueError:
        return None


def parse_positive_weight(value: str) -> float | None:
    """Return the weight as a float if it is finite and > 0, else None."""
    if not isinstance(value, str) or not WEIGHT_RE.fullmatch(value):
        return None
    try:
        weight = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(weight) or weight <= 0:
        return None
    return weight


# ── Step 1: identity / product / weight / operator ────────────


def validate_identity_step(
    raw: IdentityInput, catalog: WizardCatalog | None = None
) -> StepValidation:
    catalog = catalog or WizardCatalog()

    chip_type = parse_chip_type(raw.chip_type)
    if chip_type is None:
        return StepValidation.fail(
            FIELD_CHIP_TYPE, "Please select what type of chip this is."
        )

    box_value = normalize_text(raw.chip_box_number)
    bulk_value = normalize_text(raw.chip_bulk_silo)
    purchased_value = normalize_text(raw.chip_purchased)

    if chip_type is ChipType.BOX:
        if not box_value:
            return StepValidation.fail(FIELD_BOX_NUMBER, "Please enter a box number.")
        if not BOX_NUMBER_RE.fullmatch(box_value):
            return StepValidation.fail(
                FIELD_BOX_NUMBER, "Box number must be alphanumeric only."
            )
        identity = box_value
    elif chip_type is ChipType.BULK:
        if not bulk_value:
            return StepValidation.fail(FIELD_BULK_SILO, "Please enter a bulk/silo value.")
        if DIGIT_RE.search(bulk_value):
            return StepValidation.fail(
                FIELD_BULK_SILO, "Bulk/Silo must not contain numbers."
            )
        identity = bulk_value
    else:
        if not purchased_value or (
            catalog.purchased_options and purchased_value not in catalog.purchased_options
        ):
            return StepValidation.fail(
                FIELD_PURCHASED, "Please select a purchased chip option."
            )
        identity = purchased_value

    product = normalize_text(raw.product)
    if not product or (catalog.products and product not in catalog.products):
        return StepValidation.fail(FIELD_PRODUCT, "Please select a product.")

    net_weight = normalize_text(raw.net_weight)
    if not net_weight:
        return StepValidation.fail(FIELD_NET_WEIGHT, "Please enter a net weight.")
    if parse_positive_weight(net_weight) is None:
        return StepValidation.fail(
            FIELD_NET_WEIGHT, "Net weight must be a positive number."
        )

    operator_name = normalize_name(raw.operator_name)
    if len(operator_name.split(" ")) < 2:
        return StepValidation.fail(FIELD_OPERATOR, "Please enter first and last name.")

    # Only the chosen variant keeps its raw value.
    return StepValidation(
        fields={
            "chip_type": chip_type,
            "chip_box_number": box_value if chip_type is ChipType.BOX else None,
            "chip_bulk_silo": bulk_value if chip_type is ChipType.BULK else None,
            "chip_purchased": purchased_value if chip_type is ChipType.PURCHASED else None,
            "box_number": identity,
            "product": product,
            "net_weight": net_weight,
            "operator_name": operator_name,
        }
    )


# ── Step 2: destination ────────────────────────────────────────


def validate_destination_step(
    selected: list[str] | tuple[str, ...] | set[str],
    catalog: WizardCatalog | None = None,
) -> StepValidation:
    catalog = catalog or WizardCatalog()
    choices = [normalize_text(value) for value in selected if normalize_text(value)]
    if len(choices) != 1:
        return StepValidation.fail(FIELD_DESTINATION, "Please select a chip destination.")
    destination = choices[0]
    if catalog.destinations and destination not in catalog.destinations:
        return StepValidation.fail(FIELD_DESTINATION, "Please select a chip destination.")
    return StepValidation(fields={"destination": destination})


# ── Entry preconditions ────────────────────────────────────────


def has_identity_fields(record: WizardRecord) -> bool:
    if record.chip_identity is None:
        return False
    return all(getattr(record, name) for name in STEP1_FIELDS)


def summary_ready(record: WizardRecord) -> bool:
    """True when the summary page may render (steps 1 and 2 both present)."""
    return has_identity_fields(record) and bool(record.destination)


def missing_prerequisite(record: WizardRecord, step: WizardStep) -> WizardStep | None:
    """Step an entry guard must redirect to before ``step`` may render, if any."""
    if step in (WizardStep.DESTINATION, WizardStep.SUMMARY):
        if not has_identity_fields(record):
            return WizardStep.FORM
    if step is WizardStep.SUMMARY and not record.destination:
        return WizardStep.DESTINATION
    return None
