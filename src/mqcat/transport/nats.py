"""NATS transport."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Set

import nats
import nats.errors

from .. import version
from ..frame import Frame
from ..table import format_table
from .base import (
    Headers,
    MessageQueue,
    PublishError,
    QueryError,
    RequestError,
    SubscriptionError,
    TransportConnectionError,
    TransportTimeout,
    request_timeout,
)
from .inbox import Inbox

log = logging.getLogger(__name__)


def _headers(headers: Headers, topic: str) -> Optional[Dict[str, str]]:
    # NATS headers are single valued from the client's point of view.
    if not headers:
        return None

    mapped: Dict[str, str] = {}
    for key, value in headers:
        if key in mapped:
            log.warning("header %r given more than once for %r, using the last value", key, topic)
        mapped[key] = value
    return mapped


def _frame(msg) -> Frame:
    frame = Frame(msg.subject, payload=bytes(msg.data))
    for key, value in (msg.headers or {}).items():
        frame.add_header(key, value)
    return frame


class NatsMQ(MessageQueue):
    """Core NATS publish/subscribe and request/reply."""

    default_address = "nats://localhost:4222"

    def __init__(self, client):
        self.client = client
        self._inboxes: Set[Inbox] = set()

    @classmethod
    async def connect(cls, address: Optional[str] = None) -> "NatsMQ":
        address = address or cls.default_address
        instance = None

        async def error_cb(exc):
            log.error("error: %s", exc)

        async def disconnected_cb():
            log.debug("disconnected from %s", address)

        async def reconnected_cb():
            log.debug("reconnected to %s", address)

        async def closed_cb():
            log.debug("connection to %s closed", address)
            if instance is None:
                return
            for inbox in list(instance._inboxes):
                inbox.fail(SubscriptionError("subscription closed"))

        log.debug("connecting to %s", address)
        try:
            client = await nats.connect(
                servers=[address],
                name=f"mqcat {version.version}",
                connect_timeout=2,
                max_reconnect_attempts=0,
                error_cb=error_cb,
                disconnected_cb=disconnected_cb,
                reconnected_cb=reconnected_cb,
                closed_cb=closed_cb,
            )
        except (nats.errors.Error, OSError) as exc:
            raise TransportConnectionError(f"failed to connect to {address}: {exc}") from exc

        log.debug("connected, client_id=%s", client.client_id)
        instance = cls(client)
        return instance

    async def info(self) -> str:
        client = self.client
        if not client.is_connected:
            raise QueryError("not connected")

        url = client.connected_url
        rows = [
            ("Server URL", url.geturl() if url is not None else ""),
            ("Server Version", str(client.connected_server_version)),
            ("Client ID", str(client.client_id)),
            ("Max Payload", str(client.max_payload)),
        ]
        return format_table(rows)

    async def publish(self, topic: str, headers: Headers, payload: bytes) -> None:
        if not topic:
            raise PublishError("subject is empty")

        try:
            await self.client.publish(topic, payload, headers=_headers(headers, topic))
            await self.client.flush()
        except nats.errors.Error as exc:
            raise PublishError(f"failed to publish: {exc}") from exc

    async def subscribe(self, topic: str):
        inbox = Inbox()

        async def deliver(msg):
            inbox.deliver(_frame(msg))

        try:
            subscription = await self.client.subscribe(topic, cb=deliver)
        except nats.errors.Error as exc:
            yield SubscriptionError(f"subscribe failed: {exc}")
            return

        log.debug("subscribed to %s", topic)
        self._inboxes.add(inbox)

        async def unsubscribe():
            try:
                await subscription.unsubscribe()
            except nats.errors.Error as exc:
                log.debug("unsubscribe from %s failed: %s", topic, exc)

        # A failed inbox unsubscribes at once; the stream waits for it.
        closing = []

        def on_close():
            log.debug("subscription to %s closed", topic)
            if not self.client.is_closed:
                closing.append(asyncio.ensure_future(unsubscribe()))

        inbox.on_close = on_close

        try:
            async for item in inbox:
                yield item
        finally:
            self._inboxes.discard(inbox)
            if closing:
                await closing[0]
            elif not self.client.is_closed:
                await unsubscribe()

    async def request(self, topic: str, headers: Headers, payload: bytes) -> Frame:
        if not topic:
            raise RequestError("subject is empty")

        try:
            msg = await self.client.request(
                topic, payload, timeout=request_timeout, headers=_headers(headers, topic)
            )
        except nats.errors.TimeoutError as exc:
            raise TransportTimeout(f"no reply from {topic!r} in {request_timeout:.2f} sec") from exc
        except nats.errors.NoRespondersError as exc:
            raise RequestError(f"no responders on {topic!r}") from exc
        except nats.errors.Error as exc:
            raise RequestError(f"failed to request: {exc}") from exc

        return _frame(msg)

    async def close(self) -> None:
        if self.client.is_closed:
            return
        try:
            await self.client.close()
        except nats.errors.Error as exc:
            log.debug("close failed: %s", exc)
