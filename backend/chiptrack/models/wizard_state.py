"""Persisted wizard draft, one row per storage key.

The payload column holds the raw JSON text exactly as written, so a
damaged blob is still readable (and recognisably damaged) on load.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chiptrack.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WizardState(Base):
    __tablename__ = "wizard_state"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, default="{}")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
