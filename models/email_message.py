from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from models.message_part import MessagePart


@dataclass(slots=True)
class EmailMessage:
    """Message envelope as returned by the inbox backend."""

    id: str
    snippet: str = ""
    payload: MessagePart | None = None
    verification_status: str | None = None

    @classmethod
    def from_response(cls, data: Any) -> Optional["EmailMessage"]:
        """Return ``None`` when the response does not describe a message."""

        if not isinstance(data, Mapping):
            return None
        message_id = data.get("id")
        if not isinstance(message_id, str) or not message_id:
            return None
        status = data.get("verificationStatus")
        return cls(
            id=message_id,
            snippet=str(data.get("snippet") or ""),
            payload=MessagePart.from_payload(data.get("payload")),
            verification_status=status if isinstance(status, str) else None,
        )
