"""Client side of the ledger append call.

The gateway sends one finalized record to ``POST {base}/save`` and reports
back a plain success/failure.  Callers treat every failure the same way,
so the result carries only what is useful for logging.
"""

import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlsplit

import httpx

from chiptrack.config import Settings
from chiptrack.schemas.wizard import SubmissionPayload

logger = logging.getLogger("chiptrack.gateway")


@dataclass(frozen=True)
class SubmissionResult:
    ok: bool
    status_code: int | None = None
    detail: str | None = None


class SubmissionGateway(Protocol):
    async def submit(self, payload: SubmissionPayload) -> SubmissionResult: ...


def resolve_api_base(override: str | None, origin: str | None, fallback_port: int = 3000) -> str:
    """Work out where the ledger service lives.

    An explicit override wins (trailing slashes dropped).  Otherwise use the
    host the front-end was served from on ``fallback_port``, keeping https
    only when the origin itself is https.
    """
    configured = (override or "").strip()
    if configured:
        return configured.rstrip("/")

    parts = urlsplit(origin or "")
    scheme = "https" if parts.scheme == "https" else "http"
    host = parts.hostname or "localhost"
    return f"{scheme}://{host}:{fallback_port}"


class HttpSubmissionGateway:
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpSubmissionGateway":
        base = resolve_api_base(settings.api_base, settings.page_origin, settings.api_fallback_port)
        return cls(base, timeout=settings.request_timeout_seconds)

    async def submit(self, payload: SubmissionPayload) -> SubmissionResult:
        url = f"{self.base_url}/save"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload.to_wire())
        except httpx.HTTPError as exc:
            logger.warning("Ledger save to %s failed: %s", url, exc)
            return SubmissionResult(ok=False, detail=str(exc))

        if not response.is_success:
            logger.warning("Ledger save to %s rejected with HTTP %s", url, response.status_code)
            return SubmissionResult(
                ok=False, status_code=response.status_code, detail=response.text[:200]
            )
        return SubmissionResult(ok=True, status_code=response.status_code)
