"""Whole-record persistence for the wizard draft.

The store keeps one JSON blob under one namespaced key.  Callers always
read-modify-write the full record: there is no partial update API and the
store holds no cached copy between calls, so the backend is the only place
current state lives.

Backends only move text around (get / set / delete).  Decoding happens
here so every backend degrades the same way: a missing, unparseable or
wrongly-typed blob loads as an empty record and never raises.
"""

import json
import logging
from typing import Protocol

import redis.asyncio as redis
from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chiptrack.config import Settings
from chiptrack.models.wizard_state import WizardState
from chiptrack.schemas.wizard import WizardRecord

logger = logging.getLogger("chiptrack.state")


class BlobBackend(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, payload: str) -> None: ...

    async def delete(self, key: str) -> None: ...


# ── Backends ────────────────────────────────────────────────

class MemoryBlobBackend:
    """Process-local backend; state lasts as long as the object."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._blobs: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._blobs.get(key)

    async def set(self, key: str, payload: str) -> None:
        self._blobs[key] = payload

    async def delete(self, key: str) -> None:
        self._blobs.pop(key, None)


class SqlBlobBackend:
    """Backend on the ``wizard_state`` table (one row per key)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(WizardState.payload).where(WizardState.key == key)
            )
            return result.scalar_one_or_none()

    async def set(self, key: str, payload: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(WizardState, key)
                if row is None:
                    session.add(WizardState(key=key, payload=payload))
                else:
                    row.payload = payload

    async def delete(self, key: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(WizardState).where(WizardState.key == key)
                )


class RedisBlobBackend:
    """Backend on a Redis string key, optionally expiring after ``ttl`` seconds."""

    def __init__(self, client: redis.Redis, ttl: int | None = None) -> None:
        self._client = client
        self._ttl = ttl or None

    async def get(self, key: str) -> str | None:
        value = await self._client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value

    async def set(self, key: str, payload: str) -> None:
        await self._client.set(key, payload, ex=self._ttl)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)


# ── Store ───────────────────────────────────────────────────

class WizardStateStore:
    def __init__(self, backend: BlobBackend, key: str) -> None:
        self.backend = backend
        self.key = key

    async def load(self) -> WizardRecord:
        """Return the stored record, or an empty one if there is none usable."""
        try:
            raw = await self.backend.get(self.key)
        except Exception:
            logger.warning("State backend read failed for %s", self.key, exc_info=True)
            return WizardRecord()
        if not raw:
            return WizardRecord()
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug("Discarding unparseable wizard state under %s", self.key)
            return WizardRecord()
        if not isinstance(data, dict):
            return WizardRecord()
        try:
            return WizardRecord.model_validate(data)
        except ValidationError:
            logger.debug("Discarding malformed wizard state under %s", self.key)
            return WizardRecord()

    async def save(self, record: WizardRecord) -> None:
        """Overwrite the stored record with ``record``."""
        await self.backend.set(self.key, record.to_blob())

    async def clear(self) -> None:
        await self.backend.delete(self.key)


def state_key(settings: Settings, session: str | None = None) -> str:
    """Namespaced key for one operator session."""
    if session:
        return f"{settings.storage_key}:{session}"
    return settings.storage_key


def build_state_store(settings: Settings, session: str | None = None) -> WizardStateStore:
    """Build a store on the backend named by ``settings.state_backend``."""
    key = state_key(settings, session)
    kind = settings.state_backend.lower()
    if kind == "memory":
        backend: BlobBackend = MemoryBlobBackend()
    elif kind == "redis":
        client = redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
        backend = RedisBlobBackend(client, ttl=settings.state_ttl_seconds)
    elif kind == "sql":
        from chiptrack.database import async_session
        backend = SqlBlobBackend(async_session)
    else:
        raise ValueError(f"Unknown state backend: {settings.state_backend!r}")
    return WizardStateStore(backend, key)
