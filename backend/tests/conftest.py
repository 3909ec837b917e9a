"""Pytest configuration and fixtures for chiptrack tests.

Provides stores on every backend, a recording view, a scriptable
submission gateway, a temporary ledger workbook and an API client.
"""

import asyncio
from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from chiptrack.config import Settings
from chiptrack.database import init_models
from chiptrack.main import create_app
from chiptrack.schemas.wizard import ChipType, SubmissionPayload, WizardRecord
from chiptrack.services.controller import WizardController
from chiptrack.services.gateway import SubmissionResult
from chiptrack.services.ledger import ExcelLedger
from chiptrack.services.state_store import (
    MemoryBlobBackend,
    SqlBlobBackend,
    WizardStateStore,
)
from chiptrack.services.validation import WizardCatalog

STORAGE_KEY = "productTrackingForm"
FIXED_NOW = datetime(2026, 3, 5, 15, 7, tzinfo=timezone.utc)


# ── Test doubles ─────────────────────────────────────────────

class RecordingView:
    """WizardView that remembers every call."""

    def __init__(self) -> None:
        self.events: list[tuple] = []
        self.pages: list = []
        self.errors: list[tuple] = []
        self.alerts: list[str] = []
        self.messages: list[str] = []
        self.submit_states: list[bool] = []
        self.chip_type = None
        self.prefilled: WizardRecord | None = None
        self.summary: tuple | None = None

    def navigate(self, step) -> None:
        self.pages.append(step)
        self.events.append(("navigate", step))

    def show_chip_type(self, chip_type) -> None:
        self.chip_type = chip_type
        self.events.append(("chip_type", chip_type))

    def prefill(self, record) -> None:
        self.prefilled = record
        self.events.append(("prefill", record))

    def show_error(self, field, message) -> None:
        self.errors.append((field, message))
        self.events.append(("error", field, message))

    def render_summary(self, record, timestamp) -> None:
        self.summary = (record, timestamp)
        self.events.append(("summary", record, timestamp))

    def set_message(self, message) -> None:
        self.messages.append(message)

    def alert(self, message) -> None:
        self.alerts.append(message)
        self.events.append(("alert", message))

    def set_submit_enabled(self, enabled) -> None:
        self.submit_states.append(enabled)

    @property
    def submit_enabled(self) -> bool:
        return self.submit_states[-1] if self.submit_states else True


class FakeGateway:
    """Returns queued results; optionally blocks until ``release()``."""

    def __init__(self, *results: SubmissionResult, block: bool = False) -> None:
        self.results = list(results) or [SubmissionResult(ok=True, status_code=200)]
        self.calls: list[SubmissionPayload] = []
        self._gate = asyncio.Event()
        if not block:
            self._gate.set()

    def release(self) -> None:
        self._gate.set()

    async def submit(self, payload: SubmissionPayload) -> SubmissionResult:
        self.calls.append(payload)
        await self._gate.wait()
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


# ── Stores ───────────────────────────────────────────────────

@pytest.fixture
def memory_backend() -> MemoryBlobBackend:
    return MemoryBlobBackend()


@pytest.fixture
def store(memory_backend) -> WizardStateStore:
    return WizardStateStore(memory_backend, STORAGE_KEY)


@pytest_asyncio.fixture
async def sql_session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(bind=engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def sql_store(sql_session_factory) -> WizardStateStore:
    return WizardStateStore(SqlBlobBackend(sql_session_factory), STORAGE_KEY)


@pytest_asyncio.fixture
async def redis_client():
    """Redis client on a scratch database; skips when no server is running."""
    import redis.asyncio as redis
    from redis.exceptions import ConnectionError as RedisConnectionError

    client = redis.from_url("redis://localhost:6379/15", decode_responses=True)
    try:
        await client.ping()
    except (RedisConnectionError, OSError):
        await client.aclose()
        pytest.skip("Redis server not available")

    yield client

    await client.flushdb()
    await client.aclose()


# ── Wizard ───────────────────────────────────────────────────

@pytest.fixture
def view() -> RecordingView:
    return RecordingView()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def catalog() -> WizardCatalog:
    return WizardCatalog(
        products=("Resin-X", "Resin-Y"),
        destinations=("Extruder 1", "Extruder 2", "Blender"),
        purchased_options=("Supplier A", "Supplier B"),
    )


@pytest.fixture
def controller(store, gateway, view, catalog) -> WizardController:
    return WizardController(
        store,
        gateway,
        view,
        catalog=catalog,
        redirect_delay=0.01,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def identity_record() -> WizardRecord:
    """Draft with step 1 complete."""
    return WizardRecord(
        chip_type=ChipType.BOX,
        chip_box_number="A1B2",
        box_number="A1B2",
        product="Resin-X",
        net_weight="12.5",
        operator_name="Jane Doe",
    )


@pytest.fixture
def complete_record(identity_record) -> WizardRecord:
    """Draft ready for the summary page."""
    return identity_record.merged(destination="Extruder 1")


# ── Ledger service ───────────────────────────────────────────

@pytest.fixture
def ledger(tmp_path) -> ExcelLedger:
    return ExcelLedger(tmp_path / "ledger" / "consumption-sheet.xlsx", "Sheet1")


@pytest.fixture
def app(ledger):
    application = create_app(Settings(allowed_origins="http://test"), ledger_store=ledger)
    application.state.clock = lambda: datetime(2026, 3, 5, 15, 7)
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as api:
        yield api


# ── Test Markers ─────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: API endpoint tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
