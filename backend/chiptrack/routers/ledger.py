"""Ledger append endpoint.

  POST /save  → validate the five fields, append one row, return {"success": true}

A request either appends exactly one complete row or fails without
touching the workbook.  There is no idempotency key: a retried request
is a new row.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request

from chiptrack.middleware.exceptions import LedgerWriteError, MissingFieldsError
from chiptrack.schemas.ledger import SaveRequest, SaveResponse
from chiptrack.services.ledger import ExcelLedger, LedgerRow

logger = logging.getLogger("chiptrack.ledger")

router = APIRouter(tags=["ledger"])


def get_ledger(request: Request) -> ExcelLedger:
    return request.app.state.ledger


def get_clock(request: Request):
    return getattr(request.app.state, "clock", datetime.now)


@router.post("/save", response_model=SaveResponse)
async def save_row(
    body: SaveRequest,
    ledger: ExcelLedger = Depends(get_ledger),
    clock=Depends(get_clock),
):
    missing = body.missing_fields()
    if missing:
        raise MissingFieldsError(missing)

    row = LedgerRow.from_request(body, clock())
    try:
        await ledger.append(row)
    except Exception as exc:
        logger.exception("Failed to save data to ledger workbook %s", ledger.path)
        raise LedgerWriteError() from exc

    return SaveResponse(success=True)
