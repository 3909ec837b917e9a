"""Consumption ledger: one workbook sheet, one row per saved record.

Header handling:
  - a new workbook or sheet gets the header row;
  - an empty sheet gets the header row;
  - an existing first row that does not start with the expected headers
    (case-insensitive, trimmed) is re-stamped in place.

Every append rewrites the workbook through a temporary file that replaces
the original only once fully written, so a failed append leaves the
previous file as it was.  Appends are serialized with an asyncio lock and
the blocking openpyxl work runs in a worker thread.
"""

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from chiptrack.config import Settings
from chiptrack.schemas.ledger import SaveRequest

logger = logging.getLogger("chiptrack.ledger")

HEADERS = [
    "Box Number",
    "Product",
    "Operator Name",
    "Chip Destination",
    "Date",
    "Time",
    "Net Weight",
]


@dataclass(frozen=True)
class LedgerRow:
    box_number: str
    product: str
    operator_name: str
    destination: str
    date: str
    time: str
    net_weight: str

    @classmethod
    def from_request(cls, body: SaveRequest, now: datetime) -> "LedgerRow":
        return cls(
            box_number=body.box_number,
            product=body.product,
            operator_name=body.operator_name,
            destination=body.destination,
            date=format_date(now),
            time=format_time(now),
            net_weight=body.net_weight,
        )

    def as_list(self) -> list[str]:
        return [
            self.box_number,
            self.product,
            self.operator_name,
            self.destination,
            self.date,
            self.time,
            self.net_weight,
        ]


def format_date(now: datetime) -> str:
    """US short date without zero padding, e.g. ``3/5/2026``."""
    return f"{now.month}/{now.day}/{now.year}"


def format_time(now: datetime) -> str:
    """Two-digit 12-hour clock, e.g. ``03:07 PM``."""
    return now.strftime("%I:%M %p")


def _normalize_header(value) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def headers_match(expected: list[str], actual: list) -> bool:
    if actual is None or len(actual) < len(expected):
        return False
    return all(
        _normalize_header(actual[index]) == _normalize_header(header)
        for index, header in enumerate(expected)
    )


def _sheet_is_empty(sheet: Worksheet) -> bool:
    return sheet.max_row == 1 and sheet.max_column == 1 and sheet.cell(1, 1).value is None


def _stamp_headers(sheet: Worksheet) -> None:
    for column, header in enumerate(HEADERS, start=1):
        sheet.cell(row=1, column=column, value=header)


class ExcelLedger:
    def __init__(self, path: str | Path, sheet_name: str = "Sheet1") -> None:
        self.path = Path(path)
        self.sheet_name = sheet_name
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExcelLedger":
        return cls(settings.ledger_path, settings.ledger_sheet)

    async def append(self, row: LedgerRow) -> None:
        async with self._lock:
            await asyncio.to_thread(self.append_sync, row)

    def append_sync(self, row: LedgerRow) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        workbook = self._load_workbook()
        sheet = self._get_or_create_sheet(workbook)
        sheet.append(row.as_list())
        self._write_atomically(workbook)
        logger.info("Appended ledger row for %s to %s", row.box_number, self.path)

    def read_rows(self) -> list[list]:
        """All rows of the ledger sheet including the header (empty if absent)."""
        if not self.path.exists():
            return []
        workbook = load_workbook(self.path, read_only=True)
        try:
            if self.sheet_name not in workbook.sheetnames:
                return []
            return [list(values) for values in workbook[self.sheet_name].iter_rows(values_only=True)]
        finally:
            workbook.close()

    def _load_workbook(self) -> Workbook:
        if self.path.exists():
            return load_workbook(self.path)
        workbook = Workbook()
        # Reuse the default sheet instead of leaving an empty "Sheet" behind.
        workbook.active.title = self.sheet_name
        return workbook

    def _get_or_create_sheet(self, workbook: Workbook) -> Worksheet:
        if self.sheet_name not in workbook.sheetnames:
            sheet = workbook.create_sheet(self.sheet_name)
            _stamp_headers(sheet)
            return sheet

        sheet = workbook[self.sheet_name]
        if _sheet_is_empty(sheet):
            _stamp_headers(sheet)
            return sheet

        header_row = [cell.value for cell in sheet[1]]
        if not headers_match(HEADERS, header_row):
            logger.warning("Ledger header row in %s did not match; re-stamping", self.path)
            _stamp_headers(sheet)
        return sheet

    def _write_atomically(self, workbook: Workbook) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.stem}-", suffix=self.path.suffix or ".xlsx"
        )
        os.close(fd)
        try:
            workbook.save(tmp_name)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
