# services/learning_service/ai_gateway.py
"""Thin client for the OpenAI-compatible chat completions gateway."""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Upstream answered with a non-2xx status, or could not be reached (status 0)."""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(f"AI gateway error {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class GatewayNotConfigured(Exception):
    pass


class AIGateway:
    def __init__(self, url: str, api_key: Optional[str], model: str, timeout: float = 15.0):
        self.url = url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "AIGateway":
        return cls(
            url=config.get("AI_GATEWAY_URL"),
            api_key=config.get("AI_API_KEY"),
            model=config.get("AI_MODEL"),
            timeout=float(config.get("AI_TIMEOUT_SECONDS") or 15),
        )

    def chat(
        self,
        messages: List[Dict[str, str]],
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not self.api_key:
            raise GatewayNotConfigured("AI_API_KEY is not configured")

        payload: Dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            payload["tools"] = tools
        if tool_choice:
            payload["tool_choice"] = tool_choice

        try:
            response = requests.post(
                self.url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise GatewayError(0, str(e)) from e

        if not response.ok:
            logger.error("[ai/gateway] %s %s", response.status_code, response.text[:500])
            raise GatewayError(response.status_code, response.text[:500])
        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(502, f"invalid JSON from gateway: {e}") from e
