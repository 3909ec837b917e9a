"""Request/response schemas for the ledger append endpoint."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

REQUIRED_FIELDS = ("boxNumber", "product", "operatorName", "destination", "netWeight")


class SaveRequest(BaseModel):
    """Incoming row. Non-string values are treated as missing."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    box_number: str = Field(default="", alias="boxNumber")
    product: str = ""
    operator_name: str = Field(default="", alias="operatorName")
    destination: str = ""
    net_weight: str = Field(default="", alias="netWeight")

    @field_validator("*", mode="before")
    @classmethod
    def _trimmed_string(cls, value: Any) -> str:
        return value.strip() if isinstance(value, str) else ""

    def missing_fields(self) -> list[str]:
        values = self.model_dump(by_alias=True)
        return [name for name in REQUIRED_FIELDS if not values[name]]


class SaveResponse(BaseModel):
    success: bool = True
