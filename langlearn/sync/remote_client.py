"""
Remote Store Client

HTTP client for the authoritative store (PostgREST-style REST tables plus
edge functions). Used by the sync engine to apply queued mutations and by
the adaptive engine to read history and write recommendations.

Usage:
    async with RemoteStoreClient(RemoteConfig(base_url=..., api_key=...)) as remote:
        await remote.apply_mutation(record)
        rows = await remote.select("quiz_responses", {"user_id": user_id}, limit=10)

Write operations raise RemoteStoreError so batch callers can isolate
failures per item. Read operations log and return an empty result.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel

from langlearn.core.models import MutationRecord

# collection -> (remote table, natural key used for insert-or-update)
MUTATION_TARGETS: dict[str, tuple[str, tuple[str, ...]]] = {
    "quiz_responses": ("quiz_responses", ("user_id", "content_id")),
    "user_progress": ("user_progress", ("user_id", "lesson_id")),
}


class RemoteConfig(BaseModel):
    """Connection settings for the authoritative store."""

    base_url: str = "http://localhost:54321"
    api_key: str | None = None
    timeout_seconds: float = 30.0
    health_endpoint: str = "/rest/v1/"

    # Endpoints
    rest_prefix: str = "/rest/v1"
    functions_prefix: str = "/functions/v1"


class RemoteStoreError(Exception):
    """A remote call was rejected or could not be delivered."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_transport_error(self) -> bool:
        return self.status_code is None


class RemoteStoreClient:
    """
    Async client for the authoritative store.

    Supports:
    - Insert-or-update keyed by natural identity (idempotent on retry)
    - Plain inserts (append semantics)
    - Filtered, ordered, limited reads
    - Edge function invocation
    """

    def __init__(
        self,
        config: RemoteConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> RemoteStoreClient:
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.config.api_key:
                headers["apikey"] = self.config.api_key
                headers["Authorization"] = f"Bearer {self.config.api_key}"

            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers=headers,
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Writes
    # =========================================================================

    async def upsert(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        on_conflict: Sequence[str],
    ) -> None:
        """
        Insert or update rows keyed by ``on_conflict``.

        Raises:
            RemoteStoreError: transport failure or non-2xx response
        """
        await self._write(
            table,
            rows,
            params={"on_conflict": ",".join(on_conflict)},
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> None:
        """
        Append rows.

        Raises:
            RemoteStoreError: transport failure or non-2xx response
        """
        await self._write(table, rows, params=None, prefer="return=minimal")

    async def apply_mutation(self, record: MutationRecord) -> None:
        """
        Apply one queued mutation as an insert-or-update.

        Raises:
            RemoteStoreError: unknown collection, transport failure or rejection
        """
        target = MUTATION_TARGETS.get(record.collection)
        if target is None:
            raise RemoteStoreError(f"No remote target for collection {record.collection}")
        table, natural_key = target
        await self.upsert(table, [record.payload], on_conflict=natural_key)
        logger.debug(f"Applied mutation {record.id} to {table}")

    async def _write(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        params: dict[str, str] | None,
        prefer: str,
    ) -> None:
        try:
            client = await self._ensure_client()
            response = await client.post(
                f"{self.config.rest_prefix}/{table}",
                json=[dict(row) for row in rows],
                params=params,
                headers={"Prefer": prefer},
            )
        except httpx.RequestError as e:
            raise RemoteStoreError(f"Connection error writing {table}: {e}") from e

        if response.status_code not in (200, 201, 204):
            raise RemoteStoreError(
                f"Write to {table} rejected: {self._error_detail(response)}",
                status_code=response.status_code,
            )

    # =========================================================================
    # Reads
    # =========================================================================

    async def select(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Read rows with equality filters.

        Args:
            table: Remote table
            filters: column -> value equality filters
            order_by: Column to order by
            descending: Order direction
            limit: Maximum rows

        Returns:
            List of row dictionaries (empty on failure)
        """
        params: dict[str, Any] = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{self._filter_value(value)}"
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = limit

        try:
            client = await self._ensure_client()
            response = await client.get(f"{self.config.rest_prefix}/{table}", params=params)
        except httpx.RequestError as e:
            logger.error(f"Connection error reading {table}: {e}")
            return []

        if response.status_code != 200:
            logger.warning(
                f"Failed to read {table}: {response.status_code} {self._error_detail(response)}"
            )
            return []

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"Non-JSON payload reading {table}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Unexpected payload reading {table}: {type(data).__name__}")
            return []
        rows = [row for row in data if isinstance(row, dict)]
        logger.debug(f"Fetched {len(rows)} rows from {table}")
        return rows

    async def select_one(
        self, table: str, filters: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        """First row matching the filters, or None."""
        rows = await self.select(table, filters, limit=1)
        return rows[0] if rows else None

    # =========================================================================
    # Functions
    # =========================================================================

    async def invoke_function(self, name: str, body: Mapping[str, Any]) -> dict[str, Any]:
        """
        Call an edge function.

        Raises:
            RemoteStoreError: transport failure, non-2xx or non-object response
        """
        try:
            client = await self._ensure_client()
            response = await client.post(
                f"{self.config.functions_prefix}/{name}", json=dict(body)
            )
        except httpx.RequestError as e:
            raise RemoteStoreError(f"Connection error calling {name}: {e}") from e

        if response.status_code not in (200, 201):
            raise RemoteStoreError(
                f"Function {name} failed: {self._error_detail(response)}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteStoreError(
                f"Function {name} returned a non-JSON body", status_code=response.status_code
            ) from e
        if not isinstance(data, dict):
            raise RemoteStoreError(
                f"Function {name} returned {type(data).__name__}, expected object",
                status_code=response.status_code,
            )
        return data

    # =========================================================================
    # Health Check
    # =========================================================================

    async def health_check(self) -> bool:
        """Check if the remote store is reachable."""
        try:
            client = await self._ensure_client()
            response = await client.get(self.config.health_endpoint, timeout=5.0)
            return response.status_code < 500
        except (httpx.RequestError, asyncio.TimeoutError):
            return False

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _filter_value(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or str(response.status_code)
        if isinstance(data, dict):
            return str(data.get("message") or data.get("error") or data.get("detail") or data)
        return str(data)
