"""ZeroMQ publish/subscribe and request/response client."""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from typing import Optional
from urllib.parse import urlsplit

import zmq
import zmq.asyncio

from ...frame import Frame
from ...table import format_table
from ..base import (
    Headers,
    MessageQueue,
    PublishError,
    RequestError,
    SubscriptionError,
    TransportConnectionError,
    TransportTimeout,
    request_timeout,
)
from ..inbox import Inbox
from .framing import ERR, from_pub_frames, from_request_frames, pub_topic, to_pub_frames, to_request_frames

log = logging.getLogger(__name__)

# PUB/SUB subscriptions propagate asynchronously; give the forwarder a moment
# after connecting before the first message is sent.
settle = float(os.environ.get("MQCAT_ZMQ_SETTLE", "0.2"))
publish_linger = 1000


def _split(address: str):
    parts = urlsplit(address)
    if parts.scheme not in ("tcp", "zmq"):
        raise TransportConnectionError(f"unsupported zeromq address: {address!r}, expected tcp://host:port")

    try:
        port = parts.port
    except ValueError as exc:
        raise TransportConnectionError(f"invalid port in {address!r}") from exc

    if not parts.hostname or port is None:
        raise TransportConnectionError(f"unsupported zeromq address: {address!r}, expected tcp://host:port")

    return parts.hostname, port


async def _connect_and_wait(socket: zmq.asyncio.Socket, endpoint: str, timeout: float) -> bool:
    """Connect *socket* and wait until the TCP connection is established."""

    monitor = socket.get_monitor_socket(zmq.EVENT_CONNECTED)
    try:
        socket.connect(endpoint)
        events = await monitor.poll(timeout * 1000)
        return bool(events)
    finally:
        socket.disable_monitor()
        monitor.close(linger=0)


class ZeroMQ(MessageQueue):
    """PUB/SUB through a forwarder, DEALER requests to a ROUTER."""

    default_address = "tcp://localhost:5551"

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = int(port)
        self.context = zmq.asyncio.Context.instance()

        self._publisher: Optional[zmq.asyncio.Socket] = None
        self._dealer: Optional[zmq.asyncio.Socket] = None

    @property
    def publish_endpoint(self) -> str:
        return f"tcp://{self.host}:{self.port}"

    @property
    def subscribe_endpoint(self) -> str:
        return f"tcp://{self.host}:{self.port + 1}"

    @property
    def request_endpoint(self) -> str:
        return f"tcp://{self.host}:{self.port + 2}"

    @classmethod
    async def connect(cls, address: Optional[str] = None) -> "ZeroMQ":
        host, port = _split(address or cls.default_address)
        # Sockets connect lazily, per operation.
        return cls(host, port)

    async def info(self) -> str:
        rows = [
            ("Publish Endpoint", self.publish_endpoint),
            ("Subscribe Endpoint", self.subscribe_endpoint),
            ("Request Endpoint", self.request_endpoint),
            ("", ""),
            ("libzmq Version", zmq.zmq_version()),
            ("pyzmq Version", zmq.pyzmq_version()),
        ]
        return format_table(rows)

    async def _publisher_socket(self) -> zmq.asyncio.Socket:
        if self._publisher is not None:
            return self._publisher

        socket = self.context.socket(zmq.PUB)
        socket.setsockopt(zmq.LINGER, publish_linger)

        endpoint = self.publish_endpoint
        log.debug("connecting to %s", endpoint)
        if not await _connect_and_wait(socket, endpoint, request_timeout):
            socket.close(linger=0)
            raise PublishError(f"no forwarder listening at {endpoint}")

        await asyncio.sleep(settle)
        self._publisher = socket
        return socket

    async def publish(self, topic: str, headers: Headers, payload: bytes) -> None:
        if not topic:
            raise PublishError("topic is empty")

        socket = await self._publisher_socket()
        frame = Frame.from_pairs(topic, headers, payload)
        try:
            await socket.send_multipart(to_pub_frames(frame))
        except zmq.ZMQError as exc:
            raise PublishError(f"failed to publish: {exc}") from exc

    async def subscribe(self, topic: str):
        socket = self.context.socket(zmq.SUB)
        socket.setsockopt(zmq.LINGER, 0)

        # The receive high-water mark is the bounded buffer; libzmq drops
        # further messages while it is full.
        socket.setsockopt(zmq.RCVHWM, Inbox.capacity)
        socket.setsockopt(zmq.SUBSCRIBE, pub_topic(topic))
        socket.connect(self.subscribe_endpoint)
        log.debug("subscribed to %s at %s", topic, self.subscribe_endpoint)

        try:
            while True:
                try:
                    parts = await socket.recv_multipart()
                except zmq.ZMQError as exc:
                    yield SubscriptionError(f"recv failed: {exc}")
                    return

                try:
                    frame = from_pub_frames(parts)
                except ValueError as exc:
                    log.warning("dropping malformed message: %s", exc)
                    continue

                yield frame
        finally:
            socket.close()

    def _dealer_socket(self) -> zmq.asyncio.Socket:
        if self._dealer is None:
            socket = self.context.socket(zmq.DEALER)
            socket.setsockopt(zmq.LINGER, 0)
            # Only queue messages to completed connections, so that a send
            # with no service present waits instead of vanishing.
            socket.setsockopt(zmq.IMMEDIATE, 1)
            socket.connect(self.request_endpoint)
            self._dealer = socket
        return self._dealer

    async def request(self, topic: str, headers: Headers, payload: bytes) -> Frame:
        socket = self._dealer_socket()
        msg_id = uuid.uuid4().hex.encode()
        frames = to_request_frames(msg_id, Frame.from_pairs(topic, headers, payload))

        loop = asyncio.get_running_loop()
        deadline = loop.time() + request_timeout

        try:
            await asyncio.wait_for(socket.send_multipart(frames), request_timeout)
        except asyncio.TimeoutError as exc:
            raise TransportTimeout(f"no service at {self.request_endpoint}") from exc
        except zmq.ZMQError as exc:
            raise RequestError(f"failed to request: {exc}") from exc

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0 or not await socket.poll(remaining * 1000):
                raise TransportTimeout(f"no reply from {topic!r} in {request_timeout:.2f} sec")

            parts = await socket.recv_multipart()
            try:
                reply_id, msg_type, frame = from_request_frames(parts)
            except ValueError as exc:
                log.warning("dropping malformed reply: %s", exc)
                continue

            if reply_id != msg_id:
                log.debug("dropping stale reply %r", reply_id)
                continue

            if msg_type == ERR:
                reason = frame.payload.decode(errors="replace") if frame is not None else "protocol mismatch"
                raise RequestError(f"request failed: {reason}")

            return frame

    async def close(self) -> None:
        for socket in (self._publisher, self._dealer):
            if socket is not None:
                socket.close()
        self._publisher = None
        self._dealer = None
