from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional

VERIFICATION_UPDATE = "verification_update"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class VerificationUpdate:
    """Push event announcing a new verification status for one message."""

    message_id: str
    status: str

    @classmethod
    def from_frame(cls, frame: str | bytes) -> Optional["VerificationUpdate"]:
        """Parse an inbound frame, returning ``None`` for anything malformed."""

        try:
            data = json.loads(frame)
        except (TypeError, ValueError):
            return None
        if not isinstance(data, dict) or data.get("type") != VERIFICATION_UPDATE:
            return None
        message_id = data.get("messageId")
        status = data.get("status")
        if not isinstance(message_id, str) or not message_id or not isinstance(status, str):
            return None
        return cls(message_id=message_id, status=status)


class VerificationStatusCache:
    """Cumulative message id -> status map; values are opaque server tokens."""

    def __init__(self, initial: Mapping[str, str] | None = None):
        self._statuses: Dict[str, str] = dict(initial or {})

    def upsert(self, message_id: str, status: str) -> None:
        self._statuses[message_id] = status

    def get(self, message_id: str) -> str | None:
        return self._statuses.get(message_id)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._statuses)
