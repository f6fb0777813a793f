"""HTTP client for the Retell agent configuration API with retry logic and
timeout handling.

Retell API docs: https://docs.retellai.com/api-references
All requests require an API key passed as a Bearer token.

Reads are retried with exponential backoff on timeouts, connection errors
and 5xx responses.  Writes are sent exactly once: a deploy must issue a
single push, and its outcome decides whether the flow is committed.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

import httpx

from flow_deployer.config import REQUEST_TIMEOUT_SECONDS, RETELL_API_KEY, RETELL_BASE_URL
from flow_deployer.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0

_SERVICE = "retell"


class RetellAPIError(Exception):
    """Raised when a Retell API call fails (after retries, for reads)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class RetellClient:
    """Thin wrapper around the Retell configuration endpoints used by the
    deploy pipeline: read an agent, read its LLM, update either one.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
    ):
        self._api_key = api_key or RETELL_API_KEY
        self._base_url = base_url or RETELL_BASE_URL
        self._client = httpx.Client(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout or REQUEST_TIMEOUT_SECONDS,
        )

    # ── Internal helpers ─────────────────────────────────────────────

    def _send(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any] | None,
        *,
        decode: bool = True,
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON body.

        With ``decode=False`` any 2xx counts as success and the body is not read.
        """
        operation = f"{method} /{path.strip('/').split('/')[0]}"
        t0 = time.perf_counter()
        try:
            response = self._client.request(method, path, json=json_body)
        except httpx.HTTPError as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(_SERVICE, operation, type(exc).__name__, latency_ms=elapsed)
            raise

        elapsed = (time.perf_counter() - t0) * 1000
        if response.status_code >= 400:
            kind = "5xx" if response.status_code >= 500 else "4xx"
            metrics.record_failure(_SERVICE, operation, kind, latency_ms=elapsed)
            label = "Server" if kind == "5xx" else "Client"
            raise RetellAPIError(
                f"{label} error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        metrics.record_success(_SERVICE, operation, latency_ms=elapsed)
        if not decode or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise RetellAPIError(
                f"Invalid JSON in response to {operation}", status_code=response.status_code,
            ) from exc

    def _read(self, path: str) -> dict[str, Any]:
        """GET with exponential-backoff retries."""
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                return self._send("GET", path, None)

            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_error = exc
                logger.warning(
                    "Retell API attempt %d/%d failed (%s). Retrying in %.1fs…",
                    attempt,
                    MAX_RETRIES,
                    type(exc).__name__,
                    INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)),
                )
            except RetellAPIError as exc:
                if exc.status_code and exc.status_code >= 500:
                    last_error = exc
                    logger.warning(
                        "Retell API server error on attempt %d/%d. Retrying…",
                        attempt,
                        MAX_RETRIES,
                    )
                else:
                    raise  # 4xx errors are not retried

            backoff = INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1))
            time.sleep(backoff)

        raise RetellAPIError(
            f"Retell API request failed after {MAX_RETRIES} retries: {last_error}"
        )

    def _write(self, path: str, json_body: dict[str, Any]) -> dict[str, Any]:
        """PATCH exactly once.  Transport errors become ``RetellAPIError``.

        The success body is ignored; a 2xx is the acknowledgment.
        """
        try:
            return self._send("PATCH", path, json_body, decode=False)
        except httpx.HTTPError as exc:
            raise RetellAPIError(f"Retell API write failed: {type(exc).__name__}: {exc}") from exc

    # ── Public API methods ───────────────────────────────────────────

    def get_agent(self, agent_id: str) -> dict[str, Any]:
        """Fetch an agent record, including its ``response_engine``."""
        return self._read(f"/get-agent/{agent_id}")

    def get_llm(self, llm_id: str) -> dict[str, Any]:
        """Fetch a Retell LLM object, including its tool list."""
        return self._read(f"/get-retell-llm/{llm_id}")

    def update_llm(self, llm_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Patch a Retell LLM object (prompt and/or tools)."""
        return self._write(f"/update-retell-llm/{llm_id}", payload)

    def update_agent(self, agent_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Patch an agent record (used when the LLM config is inline)."""
        return self._write(f"/update-agent/{agent_id}", payload)

    def close(self) -> None:
        self._client.close()


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: RetellClient | None = None
_client_lock = threading.Lock()


def get_retell_client() -> RetellClient:
    """Return a module-level RetellClient singleton.

    Uses double-checked locking so that the lock is only acquired during
    the first initialisation, not on every subsequent call.
    """
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = RetellClient()
    return _client
