"""Pydantic schemas for the chip tracking wizard.

The draft record is persisted as one JSON object using the camelCase keys
the operator front-end has always written (``chipType``, ``boxNumber``, …).
Every field is optional: a missing key means "not yet provided".
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChipType(str, Enum):
    BOX = "box"
    BULK = "bulk"
    PURCHASED = "purchased"


class WizardStep(str, Enum):
    """Page identifiers, in flow order."""
    FORM = "form"
    DESTINATION = "destination"
    SUMMARY = "summary"
    SUBMITTED = "submitted"


@dataclass(frozen=True)
class ChipIdentity:
    """Exactly one populated chip variant, tagged by its type."""
    kind: ChipType
    value: str


# ── Draft record ────────────────────────────────────────────

class WizardRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chip_type: ChipType | None = Field(default=None, alias="chipType")
    chip_box_number: str | None = Field(default=None, alias="chipBoxNumber")
    chip_bulk_silo: str | None = Field(default=None, alias="chipBulkSilo")
    chip_purchased: str | None = Field(default=None, alias="chipPurchased")
    # Canonical identity value, promoted from whichever variant was chosen.
    box_number: str | None = Field(default=None, alias="boxNumber")
    product: str | None = None
    net_weight: str | None = Field(default=None, alias="netWeight")
    operator_name: str | None = Field(default=None, alias="operatorName")
    destination: str | None = None
    saved_at: datetime | None = Field(default=None, alias="savedAt")

    @property
    def chip_identity(self) -> ChipIdentity | None:
        if self.chip_type is None:
            return None
        value = {
            ChipType.BOX: self.chip_box_number,
            ChipType.BULK: self.chip_bulk_silo,
            ChipType.PURCHASED: self.chip_purchased,
        }[self.chip_type]
        if not value:
            return None
        return ChipIdentity(kind=self.chip_type, value=value)

    @property
    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    def to_blob(self) -> str:
        """Serialize to the stored JSON text (absent fields are omitted)."""
        return json.dumps(
            self.model_dump(mode="json", by_alias=True, exclude_none=True),
            sort_keys=True,
        )

    def merged(self, **fields) -> "WizardRecord":
        """Return a new record with ``fields`` (snake_case names) applied."""
        return self.model_copy(update=fields)


# ── Submission ──────────────────────────────────────────────

class SubmissionPayload(BaseModel):
    """The five fields sent to the ledger on final save."""
    model_config = ConfigDict(populate_by_name=True)

    box_number: str = Field(alias="boxNumber")
    product: str
    net_weight: str = Field(alias="netWeight")
    operator_name: str = Field(alias="operatorName")
    destination: str

    @classmethod
    def from_record(cls, record: WizardRecord) -> "SubmissionPayload":
        return cls(
            box_number=record.box_number or "",
            product=record.product or "",
            net_weight=record.net_weight or "",
            operator_name=record.operator_name or "",
            destination=record.destination or "",
        )

    def to_wire(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)
