"""Centrifuge (centrifugal.dev) transport, JSON and protobuf encodings.

Publishing and RPC go through the client connection; subscriptions are
client-side subscriptions. Centrifuge publications carry no channel name and
no headers, only optional tags, which are reported as headers.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

from centrifuge import (
    CentrifugeError,
    Client,
    ClientEventHandler,
    ConnectedContext,
    ConnectingContext,
    DisconnectedContext,
    ErrorContext,
    PublicationContext,
    SubscribedContext,
    SubscribingContext,
    SubscriptionEventHandler,
    UnsubscribedContext,
)

from .. import version
from ..frame import Frame
from ..table import format_table
from .base import (
    Headers,
    MessageQueue,
    PublishError,
    RequestError,
    SubscriptionError,
    TransportConnectionError,
    TransportTimeout,
    request_timeout,
)
from .inbox import Inbox

log = logging.getLogger(__name__)

connect_timeout = 5.0


class _ClientEvents(ClientEventHandler):

    async def on_connecting(self, ctx: ConnectingContext) -> None:
        log.debug("connecting (code=%s, reason=%s)", ctx.code, ctx.reason)

    async def on_connected(self, ctx: ConnectedContext) -> None:
        log.debug("connected, client_id=%s, version=%s", ctx.client, ctx.version)

    async def on_disconnected(self, ctx: DisconnectedContext) -> None:
        log.debug("disconnected (code=%s, reason=%s)", ctx.code, ctx.reason)

    async def on_error(self, ctx: ErrorContext) -> None:
        log.error("error: %s", ctx.error)


class _SubscriptionEvents(SubscriptionEventHandler):

    def __init__(self, channel: str, inbox: Inbox, decode):
        self.channel = channel
        self.inbox = inbox
        self.decode = decode

    async def on_subscribing(self, ctx: SubscribingContext) -> None:
        log.debug("subscribing to %s (code=%s, reason=%s)", self.channel, ctx.code, ctx.reason)

    async def on_subscribed(self, ctx: SubscribedContext) -> None:
        log.debug("subscribed to %s", self.channel)

    async def on_unsubscribed(self, ctx: UnsubscribedContext) -> None:
        log.debug("unsubscribed from %s (code=%s, reason=%s)", self.channel, ctx.code, ctx.reason)
        self.inbox.fail(SubscriptionError(f"subscription failed: {ctx.code} {ctx.reason}"))

    async def on_publication(self, ctx: PublicationContext) -> None:
        # The channel is filled in by the consumer; publications omit it.
        frame = Frame("", payload=self.decode(ctx.pub.data))
        for key, value in (ctx.pub.tags or {}).items():
            frame.add_header(key, value)
        self.inbox.deliver(frame)


class _Centrifuge(MessageQueue):
    """Common implementation; subclasses pick the wire encoding."""

    use_protobuf = False

    def __init__(self, client: Client, address: str):
        self.client = client
        self.address = address

    # --- payload conversion, overridden for JSON ---
    def encode(self, payload: bytes) -> Any:
        return payload

    def decode(self, data: Any) -> bytes:
        return bytes(data)

    @classmethod
    async def connect(cls, address: Optional[str] = None) -> "_Centrifuge":
        address = address or cls.default_address
        client = Client(
            address,
            events=_ClientEvents(),
            use_protobuf=cls.use_protobuf,
            name=f"mqcat {version.version}",
        )

        try:
            await client.connect()
            await client.ready(timeout=connect_timeout)
        except (CentrifugeError, asyncio.TimeoutError, OSError) as exc:
            await client.disconnect()
            raise TransportConnectionError(f"failed to connect to {address}: {exc}") from exc

        return cls(client, address)

    async def info(self) -> str:
        rows = [
            ("Server URL", self.address),
            ("Encoding", "protobuf" if self.use_protobuf else "json"),
            ("State", str(self.client.state.value)),
        ]
        return format_table(rows)

    async def publish(self, topic: str, headers: Headers, payload: bytes) -> None:
        if headers:
            log.warning("setting headers is not supported by centrifuge")

        try:
            data = self.encode(payload)
        except ValueError as exc:
            raise PublishError(f"payload is not valid JSON: {exc}") from exc

        try:
            await self.client.publish(topic, data)
        except CentrifugeError as exc:
            raise PublishError(f"failed to publish: {exc}") from exc

    async def subscribe(self, topic: str):
        inbox = Inbox()
        events = _SubscriptionEvents(topic, inbox, self.decode)

        try:
            subscription = self.client.new_subscription(topic, events=events)
            await subscription.subscribe()
        except CentrifugeError as exc:
            yield SubscriptionError(f"subscription failed: {exc}")
            return

        try:
            async for item in inbox:
                yield item
        finally:
            try:
                await subscription.unsubscribe()
            except CentrifugeError as exc:
                log.debug("unsubscribe from %s failed: %s", topic, exc)

    async def request(self, topic: str, headers: Headers, payload: bytes) -> Frame:
        if headers:
            log.warning("setting headers is not supported by centrifuge")

        try:
            data = self.encode(payload)
        except ValueError as exc:
            raise RequestError(f"payload is not valid JSON: {exc}") from exc

        try:
            result = await self.client.rpc(topic, data, timeout=request_timeout)
        except asyncio.TimeoutError as exc:
            raise TransportTimeout(f"no reply from {topic!r} in {request_timeout:.2f} sec") from exc
        except CentrifugeError as exc:
            raise RequestError(f"failed to execute rpc: {exc}") from exc

        return Frame(topic, payload=self.decode(result.data))

    async def close(self) -> None:
        await self.client.disconnect()


class CentrifugeJSON(_Centrifuge):

    default_address = "ws://localhost:8000/connection/websocket?format=json"
    use_protobuf = False

    def encode(self, payload: bytes) -> Any:
        return json.loads(payload)

    def decode(self, data: Any) -> bytes:
        return json.dumps(data).encode()


class CentrifugeProtobuf(_Centrifuge):

    default_address = "ws://localhost:8000/connection/websocket?format=protobuf"
    use_protobuf = True
