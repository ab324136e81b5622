"""Outbound phone calls placed by a Vapi voice assistant."""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

from .base import HttpProvider

logger = logging.getLogger("butler.providers.calls")

ASSISTANT_NAME = "Butler"


class CallProvider(Protocol):
    async def place_call(
        self,
        phone_number: str,
        purpose: str,
        business_name: Optional[str] = None,
    ) -> dict[str, Any]:
        ...


def build_assistant(purpose: str, business_name: Optional[str]) -> dict[str, Any]:
    """Voice assistant definition sent with each outbound call."""
    target = business_name or "a business"
    task = purpose or "Ask about their hours and availability."
    return {
        "name": ASSISTANT_NAME,
        "voice": {"provider": "11labs", "voiceId": "21m00Tcm4TlvDq8ikWAM"},
        "model": {
            "provider": "openai",
            "model": "gpt-4",
            "messages": [
                {
                    "role": "system",
                    "content": (
                        f"You are {ASSISTANT_NAME}, an AI assistant making a call on behalf of a customer.\n"
                        f"You are calling {target}.\n\n"
                        f"Your task: {task}\n\n"
                        "Be polite, professional, and concise. Introduce yourself as calling on behalf "
                        "of a customer. If they ask questions you can't answer, politely say you'll have "
                        "your customer get back to them. Keep the call brief and focused on the task."
                    ),
                }
            ],
        },
        "firstMessage": (
            f"Hello, this is {ASSISTANT_NAME} calling on behalf of a customer. "
            f"{purpose or 'I was hoping to get some information.'}"
        ),
    }


class VapiCallProvider(HttpProvider):
    """Vapi ``POST /call/phone``.

    With ``forward_number`` set every call rings that number instead of the
    business (demo mode); the response still names the intended target.
    """

    dependency = "Vapi"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = "https://api.vapi.ai",
        forward_number: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url, timeout=timeout, client=client)
        self._api_key = api_key
        self._forward_number = forward_number

    async def place_call(
        self,
        phone_number: str,
        purpose: str,
        business_name: Optional[str] = None,
    ) -> dict[str, Any]:
        if not self._api_key:
            raise self._unavailable("API key not configured")

        demo_mode = bool(self._forward_number)
        dialed = self._forward_number if demo_mode else phone_number
        logger.info(
            "Calling %s (%s)%s",
            phone_number, business_name or "unknown business",
            f", forwarded to {dialed}" if demo_mode else "",
        )

        data = await self._request(
            "POST",
            "/call/phone",
            json={
                "customer": {"number": dialed, "name": "Customer"},
                "assistant": build_assistant(purpose, business_name),
            },
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        return {
            "callId": data.get("id"),
            "status": data.get("status"),
            "phoneNumber": phone_number,
            "businessName": business_name,
            "demoMode": demo_mode,
        }
