from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chiptrack.config import Settings, settings, split_options
from chiptrack.middleware.exceptions import register_exception_handlers
from chiptrack.routers import health, ledger
from chiptrack.services.ledger import ExcelLedger


def create_app(app_settings: Settings | None = None, ledger_store: ExcelLedger | None = None) -> FastAPI:
    app_settings = app_settings or settings

    app = FastAPI(
        title="chiptrack",
        description="Chip consumption ledger: accepts finalized wizard records and appends them to the workbook",
        version="0.1.0",
        debug=app_settings.debug,
    )
    app.state.ledger = ledger_store or ExcelLedger.from_settings(app_settings)

    # ── Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Middleware ───────────────────────────────────────────────
    # The operator page is served from a different origin than this API.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=split_options(app_settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ──────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(ledger.router)

    return app


app = create_app()
