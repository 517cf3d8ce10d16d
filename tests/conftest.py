from __future__ import annotations

import asyncio
import base64
import json
import quopri
from typing import Awaitable, Callable, Dict, List

import pytest

from services.status_sync import PushConnection, PushTransport


def encode_body(text: str) -> str:
    """Encode text the way the backend ships message bodies."""

    encoded = base64.urlsafe_b64encode(quopri.encodestring(text.encode("utf-8")))
    return encoded.decode("ascii").rstrip("=")


class FakeConnection(PushConnection):
    def __init__(self) -> None:
        self.sent: List[str] = []
        self.closed = False
        self.frames: asyncio.Queue = asyncio.Queue()

    async def send(self, frame: str) -> None:
        self.sent.append(frame)

    async def recv(self) -> str | bytes:
        item = await self.frames.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True

    def push(self, message: Dict) -> None:
        self.frames.put_nowait(json.dumps(message))


class FakeTransport(PushTransport):
    def __init__(self) -> None:
        self.connections: List[FakeConnection] = []
        self.fail = False

    async def connect(self) -> PushConnection:
        if self.fail:
            raise OSError("connection refused")
        connection = FakeConnection()
        self.connections.append(connection)
        return connection

    @property
    def open_connections(self) -> List[FakeConnection]:
        return [conn for conn in self.connections if not conn.closed]


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def encode() -> Callable[[str], str]:
    return encode_body


@pytest.fixture
def settle() -> Callable[[], Awaitable[None]]:
    """Let background reader tasks process whatever was pushed."""
    return _settle
