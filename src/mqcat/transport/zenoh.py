"""Zenoh transport.

The zenoh session API is synchronous and delivers samples and replies on
its own threads; everything is marshalled back onto the event loop through
an :class:`~mqcat.transport.inbox.Inbox` or a future.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from typing import Optional

import zenoh

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

# Seconds to wait for at least one matching subscriber before publishing.
match_timeout = float(os.environ.get("MQCAT_MATCH_TIMEOUT", "5"))
match_interval = 0.05


def _encoding(headers: Headers) -> Optional[zenoh.Encoding]:
    encoding = None
    for key, value in headers:
        if key.lower() == "content-type":
            encoding = zenoh.Encoding(value)
        else:
            log.warning("unknown header: %s, zenoh only supports Content-Type", key)
    return encoding


def _frame(sample) -> Frame:
    frame = Frame(str(sample.key_expr), payload=sample.payload.to_bytes())
    if sample.encoding != zenoh.Encoding.ZENOH_BYTES:
        frame.add_header("Content-Type", str(sample.encoding))
    return frame


def _resolve(future: asyncio.Future, result) -> None:
    if not future.done():
        future.set_result(result)


class ZenohMQ(MessageQueue):
    """Zenoh put/subscribe and get/queryable."""

    default_address = None  # zenoh's own default configuration

    def __init__(self, session):
        self.session = session

    @classmethod
    async def connect(cls, address: Optional[str] = None) -> "ZenohMQ":
        config = zenoh.Config()
        if address:
            try:
                config.insert_json5("connect/endpoints", json.dumps([address]))
            except zenoh.ZError as exc:
                raise TransportConnectionError(f"invalid endpoint {address!r}: {exc}") from exc

        log.debug("opening session, endpoint=%s", address or "(default)")
        try:
            session = await asyncio.to_thread(zenoh.open, config)
        except zenoh.ZError as exc:
            raise TransportConnectionError(f"failed to open session: {exc}") from exc

        return cls(session)

    async def info(self) -> str:
        try:
            info = self.session.info
            rows = [("Client ID", str(info.zid()))]
            for router in info.routers_zid():
                rows.append(("Connected Router ID", str(router)))
            for peer in info.peers_zid():
                rows.append(("Connected Peer ID", str(peer)))
        except zenoh.ZError as exc:
            raise QueryError(f"session info failed: {exc}") from exc

        return format_table(rows)

    async def publish(self, topic: str, headers: Headers, payload: bytes) -> None:
        try:
            encoding = _encoding(headers)
            publisher = self.session.declare_publisher(topic, encoding=encoding)
        except zenoh.ZError as exc:
            raise PublishError(f"declare failed: {exc}") from exc

        try:
            deadline = time.monotonic() + match_timeout
            while not publisher.matching_status.matching:
                if time.monotonic() >= deadline:
                    raise PublishError("failed to find matching listeners")
                await asyncio.sleep(match_interval)
            log.debug("matching listener found for %s", topic)

            publisher.put(payload)
        except zenoh.ZError as exc:
            raise PublishError(f"failed to publish: {exc}") from exc
        finally:
            publisher.undeclare()

    async def subscribe(self, topic: str):
        inbox = Inbox()

        def on_sample(sample) -> None:
            inbox.deliver_threadsafe(_frame(sample))

        try:
            subscriber = self.session.declare_subscriber(topic, on_sample)
        except zenoh.ZError as exc:
            yield SubscriptionError(f"declare failed: {exc}")
            return

        log.debug("subscribed to %s", topic)
        inbox.on_close = subscriber.undeclare

        try:
            async for item in inbox:
                yield item
        finally:
            # A failed inbox has already undeclared the subscriber.
            if inbox.failure is None:
                subscriber.undeclare()

    async def request(self, topic: str, headers: Headers, payload: bytes) -> Frame:
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        # Only the first reply is used; the rest are ignored.
        def on_reply(reply) -> None:
            loop.call_soon_threadsafe(_resolve, future, reply)

        def on_done() -> None:
            loop.call_soon_threadsafe(_resolve, future, None)

        try:
            self.session.get(
                topic,
                zenoh.handlers.Callback(on_reply, on_done),
                target=zenoh.QueryTarget.BEST_MATCHING,
                payload=payload,
                encoding=_encoding(headers),
                timeout=request_timeout,
            )
        except zenoh.ZError as exc:
            raise RequestError(f"query failed: {exc}") from exc

        try:
            reply = await asyncio.wait_for(future, request_timeout)
        except asyncio.TimeoutError as exc:
            raise TransportTimeout(f"no reply from {topic!r} in {request_timeout:.2f} sec") from exc

        if reply is None:
            raise RequestError(f"no replies received from {topic!r}")

        if reply.ok is None:
            error = reply.err
            raise RequestError(f"result failed: {error.payload.to_string()}")

        return _frame(reply.ok)

    async def close(self) -> None:
        try:
            self.session.close()
        except zenoh.ZError as exc:
            log.debug("close failed: %s", exc)
