from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Optional

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from models.sync_state import ConnectionState, VerificationStatusCache, VerificationUpdate

LOGGER = logging.getLogger(__name__)


class PushConnection(ABC):
    """One live connection to the push server."""

    @abstractmethod
    async def send(self, frame: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def recv(self) -> str | bytes:
        """Return the next inbound frame; raise once the connection is gone."""
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        raise NotImplementedError


class PushTransport(ABC):
    """Factory for push connections."""

    @abstractmethod
    async def connect(self) -> PushConnection:
        raise NotImplementedError


class WebSocketConnection(PushConnection):
    def __init__(self, websocket):
        self._websocket = websocket

    async def send(self, frame: str) -> None:
        await self._websocket.send(frame)

    async def recv(self) -> str | bytes:
        return await self._websocket.recv()

    async def close(self) -> None:
        await self._websocket.close()


class WebSocketTransport(PushTransport):
    def __init__(self, url: str, open_timeout: float = 10.0):
        self._url = url
        self._open_timeout = open_timeout

    async def connect(self) -> PushConnection:
        websocket = await connect(self._url, open_timeout=self._open_timeout)
        return WebSocketConnection(websocket)


class Subscription:
    """Push subscription for a single mailbox address."""

    def __init__(self, address: str, transport: PushTransport):
        self.address = address
        self.state = ConnectionState.DISCONNECTED
        self._transport = transport
        self._connection: Optional[PushConnection] = None

    @property
    def is_live(self) -> bool:
        return self.state in (ConnectionState.CONNECTING, ConnectionState.OPEN)

    async def open(self) -> bool:
        self.state = ConnectionState.CONNECTING
        try:
            self._connection = await self._transport.connect()
            self.state = ConnectionState.OPEN
            await self._connection.send(json.dumps({"type": "subscribe", "email": self.address}))
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            LOGGER.warning("Push connection for %s failed: %s", self.address, exc)
            await self.close()
            return False
        LOGGER.info("Push connection open for %s", self.address)
        return True

    async def recv(self) -> str | bytes:
        if self._connection is None or self.state is not ConnectionState.OPEN:
            raise ConnectionError(f"Subscription for {self.address} is not open")
        return await self._connection.recv()

    async def close(self) -> None:
        connection, self._connection = self._connection, None
        self.state = ConnectionState.CLOSED
        if connection is None:
            return
        try:
            await connection.close()
        except (OSError, ConnectionClosed) as exc:
            LOGGER.debug("Error while closing push connection for %s: %s", self.address, exc)
        LOGGER.info("Push connection closed for %s", self.address)


class StatusSyncChannel:
    """Keeps verification statuses in step with server push events.

    Inbound frames are queued by the reader task and merged by ``drain`` in
    arrival order, so the merge logic can be fed synthetic frames directly.
    """

    def __init__(self, transport: PushTransport, statuses: VerificationStatusCache | None = None):
        self._transport = transport
        self.statuses = statuses if statuses is not None else VerificationStatusCache()
        self.subscription: Optional[Subscription] = None
        self._inbox: Deque[str | bytes] = deque()
        self._reader: Optional[asyncio.Task] = None

    @property
    def state(self) -> ConnectionState:
        if self.subscription is None:
            return ConnectionState.DISCONNECTED
        return self.subscription.state

    @property
    def address(self) -> str | None:
        return self.subscription.address if self.subscription else None

    async def subscribe(self, address: str) -> ConnectionState:
        await self.close()
        subscription = Subscription(address, self._transport)
        self.subscription = subscription
        if await subscription.open():
            self._reader = asyncio.create_task(self._read_frames(subscription))
        return subscription.state

    def feed(self, frame: str | bytes) -> None:
        self._inbox.append(frame)

    def drain(self) -> int:
        """Merge every queued frame; return how many updates were applied."""

        applied = 0
        while self._inbox:
            frame = self._inbox.popleft()
            update = VerificationUpdate.from_frame(frame)
            if update is None:
                LOGGER.debug("Dropping malformed push frame: %r", frame)
                continue
            self.statuses.upsert(update.message_id, update.status)
            LOGGER.info("Message %s verification status is now %s", update.message_id, update.status)
            applied += 1
        return applied

    async def close(self) -> None:
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if self.subscription is not None and self.subscription.is_live:
            await self.subscription.close()

    async def _read_frames(self, subscription: Subscription) -> None:
        while True:
            try:
                frame = await subscription.recv()
            except (OSError, ConnectionClosed) as exc:
                LOGGER.warning("Push connection for %s dropped: %s", subscription.address, exc)
                break
            self.feed(frame)
            self.drain()
        await subscription.close()
