"""Menu image analysis with an OpenAI vision model."""
from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol

import openai
from openai import AsyncOpenAI

from butler_ledger.exceptions import DependencyUnavailableError

logger = logging.getLogger("butler.providers.vision")

SYSTEM_PROMPT = """You are a menu analysis expert. Extract all menu items with their prices from the image.

Return a JSON object with this exact structure:
{
  "restaurantName": "Name if visible, or null",
  "menuItems": [
    {
      "name": "Item name",
      "description": "Brief description if available",
      "price": 12.99,
      "category": "Appetizers/Entrees/Drinks/Desserts/etc"
    }
  ],
  "categories": ["list", "of", "categories", "found"],
  "currency": "USD",
  "notes": "Any special notes like happy hour prices, combo deals, etc"
}

Be thorough - extract EVERY item you can see with its price. If price is unclear, estimate based on context or mark as null."""

USER_PROMPT = "Please analyze this menu image and extract all items with their prices. Return valid JSON only."


class MenuVisionProvider(Protocol):
    async def analyze(self, image_url: str) -> dict[str, Any]:
        ...


def parse_menu(content: str) -> dict[str, Any]:
    """Normalize the model's JSON answer; unparseable answers are kept raw."""
    try:
        menu = json.loads(content)
    except json.JSONDecodeError:
        return {"raw": content, "parseError": True, "menuItems": [], "itemCount": 0}
    if not isinstance(menu, dict):
        return {"raw": content, "parseError": True, "menuItems": [], "itemCount": 0}
    items = menu.get("menuItems") or []
    return {
        "restaurantName": menu.get("restaurantName"),
        "menuItems": items,
        "categories": menu.get("categories") or [],
        "currency": menu.get("currency") or "USD",
        "notes": menu.get("notes"),
        "itemCount": len(items),
    }


class OpenAIMenuVisionProvider:
    """Chat-completions vision call returning a JSON object."""

    dependency = "OpenAI"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str = "gpt-4o",
        timeout: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._model = model
        self._client = client
        if self._client is None and api_key:
            self._client = AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def analyze(self, image_url: str) -> dict[str, Any]:
        if self._client is None:
            raise DependencyUnavailableError(self.dependency, "API key not configured")

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": USER_PROMPT},
                            {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
                        ],
                    },
                ],
                max_tokens=4096,
                response_format={"type": "json_object"},
            )
        except openai.APITimeoutError as exc:
            raise DependencyUnavailableError(self.dependency, "request timed out") from exc
        except openai.APIError as exc:
            logger.error("Menu analysis failed: %s", exc)
            status_code = getattr(exc, "status_code", None)
            raise DependencyUnavailableError(self.dependency, str(exc), status_code=status_code) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise DependencyUnavailableError(self.dependency, "no response from vision API")

        menu = parse_menu(content)
        logger.info("Found %s menu items", menu["itemCount"])
        return menu
