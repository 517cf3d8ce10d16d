from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from models.email_message import EmailMessage
from models.sync_state import ConnectionState
from services.backend_client import BackendError, InboxBackendClient
from services.payload_parser import extract_content, get_headers
from services.status_sync import StatusSyncChannel
from services.verify_link import extract_verify_url

LOGGER = logging.getLogger(__name__)


class FetchResult(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class TriggerResult(str, Enum):
    TRIGGERED = "triggered"
    NO_MESSAGE = "no_message"
    NO_LINK = "no_link"
    FAILED = "failed"


@dataclass(slots=True)
class FetchOutcome:
    result: FetchResult
    message: Optional[EmailMessage] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.result is FetchResult.FOUND


@dataclass(slots=True)
class MessageSummary:
    id: str
    snippet: str


@dataclass(slots=True)
class MessageView:
    """Everything the shell needs to render the selected message."""

    id: str
    snippet: str
    headers: Dict[str, str] = field(default_factory=dict)
    text_content: str = ""
    html_content: str = ""
    verify_url: Optional[str] = None
    status: Optional[str] = None


class InboxPipeline:
    """Single owner of the selected message, the summaries and the status cache."""

    def __init__(self, backend: InboxBackendClient, channel: StatusSyncChannel):
        self._backend = backend
        self._channel = channel
        self.address: Optional[str] = None
        self.current: Optional[EmailMessage] = None
        self.summaries: List[MessageSummary] = []

    @property
    def statuses(self) -> Dict[str, str]:
        return self._channel.statuses.snapshot()

    @property
    def connection_state(self) -> ConnectionState:
        return self._channel.state

    async def inspect(self, address: str) -> FetchOutcome:
        """Fetch the latest message for ``address`` and subscribe to its pushes."""

        address = address.strip()
        # A new top-level fetch drops the previous mailbox's message whatever it returns.
        self.address = None
        self.current = None
        self.summaries = []
        try:
            message = await self._backend.fetch_latest_message(address)
        except BackendError as exc:
            LOGGER.error("Failed to fetch latest message for %s: %s", address, exc)
            return FetchOutcome(FetchResult.FAILED, error=str(exc))
        if message is None:
            return FetchOutcome(FetchResult.NOT_FOUND)

        self.address = address
        self.summaries = [MessageSummary(id=message.id, snippet=message.snippet)]
        self._accept(message)
        await self._channel.subscribe(address)
        return FetchOutcome(FetchResult.FOUND, message=message)

    async def select(self, message_id: str) -> FetchOutcome:
        try:
            message = await self._backend.fetch_message_detail(message_id)
        except BackendError as exc:
            LOGGER.error("Failed to fetch message %s: %s", message_id, exc)
            return FetchOutcome(FetchResult.FAILED, error=str(exc))
        if message is None:
            return FetchOutcome(FetchResult.NOT_FOUND)
        self._accept(message)
        return FetchOutcome(FetchResult.FOUND, message=message)

    def view(self) -> Optional[MessageView]:
        message = self.current
        if message is None:
            return None
        content = extract_content(message.payload)
        return MessageView(
            id=message.id,
            snippet=message.snippet,
            headers=get_headers(message.payload),
            text_content=content.text_content,
            html_content=content.html_content,
            verify_url=extract_verify_url(message),
            status=self._channel.statuses.get(message.id),
        )

    async def trigger_verification(self, url: str | None = None) -> TriggerResult:
        """Ask the backend to follow the verification link of the current message."""

        message = self.current
        if message is None or self.address is None:
            return TriggerResult.NO_MESSAGE
        url = url or extract_verify_url(message)
        if not url:
            LOGGER.info("Message %s has no verification link", message.id)
            return TriggerResult.NO_LINK
        try:
            await self._backend.trigger_verification(url, self.address, message.id)
        except BackendError as exc:
            LOGGER.error("Failed to trigger verification for %s: %s", message.id, exc)
            return TriggerResult.FAILED
        return TriggerResult.TRIGGERED

    async def close(self) -> None:
        await self._channel.close()
        await self._backend.aclose()

    def _accept(self, message: EmailMessage) -> None:
        self.current = message
        if message.verification_status is not None:
            self._channel.statuses.upsert(message.id, message.verification_status)
