from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import logging
from typing import Any

import httpx

from app.core.config import Settings, get_settings
from app.core.exceptions import PushDeliveryError, UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushResult:
    ok: bool
    error: str | None = None
    provider_response: dict[str, Any] = field(default_factory=dict)


class PushGateway(ABC):
    """Send one message to one device. Retries are the caller's decision."""

    name: str

    @abstractmethod
    def send(self, push_handle: str, title: str, body: str, payload: dict[str, str]) -> PushResult:
        raise NotImplementedError

    def describe(self) -> dict[str, Any]:
        return {"provider": self.name, "configured": True}


class HttpPushGateway(PushGateway):
    """FCM-style HTTP endpoint: ``{"to", "notification": {...}, "data": {...}}``."""

    name = "http"

    def __init__(
        self,
        url: str,
        *,
        server_key: str | None = None,
        timeout_seconds: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._url = url
        self._server_key = server_key
        self._timeout = max(0.1, timeout_seconds)
        self._transport = transport

    def describe(self) -> dict[str, Any]:
        return {"provider": self.name, "configured": True, "url": self._url, "timeout_seconds": self._timeout}

    def send(self, push_handle: str, title: str, body: str, payload: dict[str, str]) -> PushResult:
        message = {
            "to": push_handle,
            "notification": {"title": title, "body": body},
            # Device data payloads only carry string values.
            "data": {key: str(value) for key, value in payload.items() if value is not None},
        }
        headers = {"Authorization": f"key={self._server_key}"} if self._server_key else {}
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(self._url, json=message, headers=headers)
        except httpx.TimeoutException as exc:
            raise PushDeliveryError("Push gateway timed out", details={"timeout_seconds": self._timeout}) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable("push gateway", f"push gateway is unavailable: {exc}") from exc

        if response.status_code >= 400:
            return PushResult(ok=False, error=f"status={response.status_code}")
        try:
            body_json = response.json()
        except ValueError:
            body_json = {}
        if not isinstance(body_json, dict):
            body_json = {"response": body_json}
        if body_json.get("failure"):
            results = body_json.get("results") or [{}]
            reason = results[0].get("error") if isinstance(results[0], dict) else None
            return PushResult(ok=False, error=reason or "rejected by push provider", provider_response=body_json)
        return PushResult(ok=True, provider_response=body_json)


class UnconfiguredPushGateway(PushGateway):
    name = "unconfigured"

    def describe(self) -> dict[str, Any]:
        return {"provider": self.name, "configured": False}

    def send(self, push_handle: str, title: str, body: str, payload: dict[str, str]) -> PushResult:
        logger.debug("Push gateway not configured; dropping push for handle %s", push_handle[:8])
        return PushResult(ok=False, error="push gateway is not configured")


def build_push_gateway(settings: Settings | None = None) -> PushGateway:
    settings = settings or get_settings()
    if not settings.push_gateway_url:
        return UnconfiguredPushGateway()
    return HttpPushGateway(
        settings.push_gateway_url,
        server_key=settings.push_server_key,
        timeout_seconds=settings.push_timeout_seconds,
    )
