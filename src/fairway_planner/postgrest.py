"""Store backed by a PostgREST (Supabase) REST endpoint."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncIterator, List, Optional, Sequence, Tuple, Union

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from .config import Settings
from .errors import StoreError
from .store import OPERATORS, Filter, Row

LOGGER = structlog.get_logger(__name__)

RETURN_REPRESENTATION = "return=representation"


def encode_value(value: Any) -> str:
    """Render a filter operand the way PostgREST expects it in a query string."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _encode_list_item(value: Any) -> str:
    text = encode_value(value)
    if isinstance(value, str) and any(char in text for char in ',()" '):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def encode_filters(filters: Sequence[Filter]) -> List[Tuple[str, str]]:
    """Translate ``(column, op, value)`` triples into query parameters."""
    params: List[Tuple[str, str]] = []
    for column, op, value in filters:
        if op not in OPERATORS:
            raise StoreError(f"Unsupported filter operator: {op}")
        if op == "in":
            params.append((column, f"in.({','.join(_encode_list_item(v) for v in value)})"))
        elif op == "eq" and value is None:
            params.append((column, "is.null"))
        else:
            params.append((column, f"{op}.{encode_value(value)}"))
    return params


class PostgrestStore:
    """Async store over PostgREST's table endpoints.

    Reads retry transport errors; writes and errors returned by the server are
    raised straight away as :class:`StoreError`.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        read_attempts: int = 3,
        retry_wait: Optional[wait_base] = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._read_attempts = read_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=4)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "PostgrestStore":
        key = settings.store_key.get_secret_value() if settings.store_key else None
        return cls(settings.rest_endpoint, key, timeout=settings.request_timeout_seconds, **kwargs)

    async def __aenter__(self) -> "PostgrestStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
    ) -> List[Row]:
        params = [("select", "*"), *encode_filters(filters)]
        if order_by:
            params.append(("order", f"{order_by}.asc.nullsfirst"))

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                wait=self._retry_wait,
                stop=stop_after_attempt(self._read_attempts),
                before_sleep=_log_read_retry,
                reraise=True,
            ):
                with attempt:
                    return await self._request("GET", table, params=params)
        except httpx.TransportError as exc:
            LOGGER.error("store.request.failed", method="GET", table=table, error=str(exc))
            raise StoreError(str(exc) or exc.__class__.__name__) from exc
        raise StoreError(f"Reading {table} failed")  # pragma: no cover - reraise above

    async def insert(self, table: str, rows: Union[Row, Sequence[Row]]) -> List[Row]:
        payload = [rows] if isinstance(rows, dict) else list(rows)
        return await self._write("POST", table, json=payload, prefer=RETURN_REPRESENTATION)

    async def update(self, table: str, values: Row, filters: Sequence[Filter]) -> List[Row]:
        return await self._write(
            "PATCH", table, params=encode_filters(filters), json=values, prefer=RETURN_REPRESENTATION
        )

    async def delete(self, table: str, filters: Sequence[Filter]) -> List[Row]:
        return await self._write("DELETE", table, params=encode_filters(filters), prefer=RETURN_REPRESENTATION)

    async def upsert(self, table: str, row: Row, *, on_conflict: str) -> Row:
        rows = await self._write(
            "POST",
            table,
            params=[("on_conflict", on_conflict)],
            json=[row],
            prefer=f"resolution=merge-duplicates,{RETURN_REPRESENTATION}",
        )
        if not rows:
            raise StoreError(f"Upsert into {table} returned no row")
        return rows[0]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """PostgREST commits each request on its own; writes here are not grouped."""
        yield

    async def _write(self, method: str, table: str, *, prefer: str, **kwargs: Any) -> List[Row]:
        try:
            return await self._request(method, table, headers={"Prefer": prefer}, **kwargs)
        except httpx.TransportError as exc:
            LOGGER.error("store.request.failed", method=method, table=table, error=str(exc))
            raise StoreError(str(exc) or exc.__class__.__name__) from exc

    async def _request(self, method: str, table: str, **kwargs: Any) -> List[Row]:
        response = await self._client.request(method, table, **kwargs)
        if response.is_success:
            if not response.content:
                return []
            body = response.json()
            return body if isinstance(body, list) else [body]

        message = _error_message(response)
        LOGGER.error(
            "store.request.failed",
            method=method,
            table=table,
            status_code=response.status_code,
            error=message,
        )
        raise StoreError(message, status_code=response.status_code)


def _log_read_retry(retry_state) -> None:
    outcome = retry_state.outcome
    LOGGER.warning(
        "store.read_retry",
        attempt=retry_state.attempt_number,
        error=str(outcome.exception()) if outcome is not None else None,
    )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
