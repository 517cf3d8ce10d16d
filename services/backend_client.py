from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from models.email_message import EmailMessage

LOGGER = logging.getLogger(__name__)


class BackendError(RuntimeError):
    """The inbox backend could not be reached or answered with an error."""


class InboxBackendClient:
    """Async client for the inbox backend's message and verification endpoints."""

    def __init__(self, base_url: str, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    async def __aenter__(self) -> "InboxBackendClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_latest_message(self, address: str) -> Optional[EmailMessage]:
        data = await self._fetch_json("POST", "/api/email/fetch-latest-email", json={"email": address})
        message = EmailMessage.from_response(data)
        if message is None:
            LOGGER.info("No messages found for %s", address)
        return message

    async def fetch_message_detail(self, message_id: str) -> Optional[EmailMessage]:
        data = await self._fetch_json("GET", f"/api/emails/{message_id}")
        return EmailMessage.from_response(data)

    async def trigger_verification(self, url: str, address: str, message_id: str) -> None:
        body = {"url": url, "email": address, "messageId": message_id}
        await self._send("POST", "/api/trigger-verify-click", json=body)
        LOGGER.info("Triggered verification for message %s", message_id)

    async def _fetch_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Return the decoded body, or ``None`` for 404 and empty responses."""

        response = await self._send(method, path, not_found_ok=True, **kwargs)
        if response is None or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(f"{method} {path} returned invalid JSON") from exc

    async def _send(self, method: str, path: str, not_found_ok: bool = False, **kwargs: Any) -> httpx.Response | None:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            LOGGER.error("%s %s failed: %s", method, path, exc)
            raise BackendError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 404 and not_found_ok:
            return None
        if response.is_error:
            LOGGER.error("%s %s returned HTTP %s", method, path, response.status_code)
            raise BackendError(f"{method} {path} returned HTTP {response.status_code}")
        return response
