"""HTTP client used by the command line."""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx


class APIError(Exception):
    """API error with status code, message and the decoded body."""

    def __init__(self, status_code: int, message: str, payload: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}
        super().__init__(f"[{status_code}] {message}")

    @property
    def is_payment_required(self) -> bool:
        return self.status_code == 402


class ButlerAPIClient:
    """Synchronous client for the Butler ledger API."""

    def __init__(
        self,
        base_url: str,
        api_prefix: str = "/api",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _handle_response(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = None
        if response.status_code >= 400:
            if isinstance(data, dict):
                message = data.get("message") or data.get("error") or "Unknown error"
            else:
                message = response.text or "Unknown error"
            raise APIError(response.status_code, message, data if isinstance(data, dict) else None)
        if not isinstance(data, dict):
            raise APIError(response.status_code, "Unexpected response body")
        return data

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = self.client.request(
                method, f"{self.api_prefix}{path}", params=params, json=json
            )
        except httpx.HTTPError as exc:
            raise APIError(0, f"Cannot reach {self.base_url}: {exc}") from exc
        return self._handle_response(response)

    def balance(self, account: Optional[str] = None) -> Dict[str, Any]:
        return self.request("GET", "/balance", params={"account": account} if account else None)

    def deposit(self, amount: str, account: Optional[str] = None, note: Optional[str] = None) -> Dict[str, Any]:
        return self.request("POST", "/deposit", json={"amount": amount, "account": account, "note": note})

    def charge(self, operation: str, params: Dict[str, Any], account: Optional[str] = None) -> Dict[str, Any]:
        return self.request("POST", f"/charges/{operation}", json={"account": account, "params": params})

    def request_quote(self, trip: Dict[str, Any], account: Optional[str] = None) -> Dict[str, Any]:
        return self.request("POST", "/delivery/quotes", json={"account": account, "trip": trip})

    def confirm_quote(self, quote_id: str) -> Dict[str, Any]:
        return self.request("POST", f"/delivery/quotes/{quote_id}/confirm")

    def entries(self, account: Optional[str] = None, limit: int = 20) -> Dict[str, Any]:
        params: Dict[str, Any] = {"limit": limit}
        if account:
            params["account"] = account
        return self.request("GET", "/ledger/entries", params=params)

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None
