"""Shared HTTP plumbing for external collaborator clients."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from butler_ledger.exceptions import DependencyUnavailableError

logger = logging.getLogger("butler.providers")


def _error_reason(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(data, dict):
        for key in ("message", "error", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {response.status_code}"


class HttpProvider:
    """
    Base class for JSON-over-HTTP collaborators.

    Every request carries a timeout. Timeouts, transport errors, non-2xx
    statuses and unparseable bodies all surface as
    DependencyUnavailableError so callers never charge for them.
    """

    dependency: str = "external API"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    def _unavailable(self, reason: str, status_code: Optional[int] = None) -> DependencyUnavailableError:
        return DependencyUnavailableError(self.dependency, reason, status_code=status_code)

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        return await client.request(method, url, timeout=self._timeout, **kwargs)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        kwargs: dict[str, Any] = {"json": json, "params": params, "headers": headers}
        try:
            if self._client is not None:
                response = await self._send(self._client, method, url, **kwargs)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._send(client, method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("%s %s timed out after %ss", method, url, self._timeout)
            raise self._unavailable("request timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise self._unavailable(str(exc) or exc.__class__.__name__) from exc

        if response.status_code >= 400:
            reason = _error_reason(response)
            logger.error("%s %s returned %s: %s", method, url, response.status_code, reason)
            raise self._unavailable(reason, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise self._unavailable("invalid JSON response") from exc
