"""
Async client for the Supabase REST (PostgREST) API.

Reads only. Transient faults (connection errors, timeouts, HTTP 429/5xx) are
retried with exponential backoff; anything still failing is raised as
StoreUnavailableError so callers can decide between degrading and surfacing.
"""
import asyncio
from typing import Any, Dict, List, Optional

import httpx

from pricing.core.errors import StoreUnavailableError
from pricing.utils.logger import get_logger

logger = get_logger("utils.supabase_client")

_FILTER_OPERATORS = ("eq", "neq", "gt", "lt", "gte", "lte", "like", "ilike", "in", "is", "not")
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class SupabaseClient:
    """
    Lightweight async client for the Supabase REST API.
    """
    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 10.0,
        retry_attempts: int = 3,
        retry_backoff: float = 0.1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not url or not key:
            logger.warning("SUPABASE_URL or SUPABASE key not set in environment.")

        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self.client = httpx.AsyncClient(
            base_url=url,
            headers=self.headers,
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def build_params(
        filters: Optional[Dict[str, Any]] = None,
        select: str = "*",
        limit: Optional[int] = None,
        order: Optional[str] = None,
        or_filters: Optional[List[str]] = None,
    ) -> List[tuple]:
        """
        Build PostgREST query params.

        Plain filter values become ``eq.<value>``; values already carrying an
        operator prefix (``gte.5``, ``is.null``) pass through. Each entry of
        `or_filters` is one ``or=(...)`` group; groups are ANDed together.
        """
        params = [("select", select)]
        for key, val in (filters or {}).items():
            if isinstance(val, bool):
                params.append((key, f"eq.{str(val).lower()}"))
            elif isinstance(val, str) and "." in val and val.split(".")[0] in _FILTER_OPERATORS:
                params.append((key, val))
            else:
                params.append((key, f"eq.{val}"))
        for group in or_filters or []:
            params.append(("or", f"({group})"))
        if limit:
            params.append(("limit", str(limit)))
        if order:
            params.append(("order", order))
        return params

    async def _request(self, source: str, method: str, path: str, **kwargs) -> Any:
        delay = self.retry_backoff
        for attempt in range(1, self.retry_attempts + 1):
            try:
                response = await self.client.request(method, path, **kwargs)
            except httpx.TransportError as e:
                error = StoreUnavailableError(source, type(e).__name__)
            else:
                if response.status_code < 400:
                    try:
                        return response.json()
                    except ValueError:
                        logger.error(f"Supabase returned a non-JSON body on {source}")
                        raise StoreUnavailableError(source, "invalid JSON body")
                error = StoreUnavailableError(source, f"HTTP {response.status_code}")
                if response.status_code not in _RETRYABLE_STATUS:
                    logger.error(f"Supabase request failed on {source}: {error.detail}")
                    raise error

            if attempt < self.retry_attempts:
                logger.warning(
                    f"Supabase request on {source} failed ({error.detail}), "
                    f"retry {attempt}/{self.retry_attempts - 1} in {delay:.2f}s"
                )
                await asyncio.sleep(delay)
                delay *= 2

        logger.error(f"Supabase request failed on {source} after {self.retry_attempts} attempts: {error.detail}")
        raise error

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        select: str = "*",
        limit: Optional[int] = None,
        order: Optional[str] = None,
        or_filters: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query a Supabase table.
        """
        params = self.build_params(filters, select=select, limit=limit, order=order, or_filters=or_filters)
        rows = await self._request(table, "GET", f"/rest/v1/{table}", params=params)
        return rows if isinstance(rows, list) else []

    async def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        """
        Call a Supabase RPC function.
        """
        return await self._request(function, "POST", f"/rest/v1/rpc/{function}", json=params)

    async def aclose(self) -> None:
        await self.client.aclose()
