"""Bounded hand-off between a backend's delivery callback and the consumer.

Backends that deliver messages by callback, often on a thread of their own,
push frames into an :class:`Inbox`; the dispatcher drains it as an async
iterator. The buffer never blocks the producer: when it is full the
subscription is failed, further frames are dropped, and the consumer sees a
terminal :class:`SubscriptionError` once it catches up.
"""

from __future__ import annotations

import asyncio
import collections
import logging
from typing import Callable, Deque, Optional, Union

from ..frame import Frame
from .base import SubscriptionError

log = logging.getLogger(__name__)


class Inbox:
    """Single-consumer frame buffer bound to the running event loop."""

    capacity = 64

    def __init__(self, capacity: Optional[int] = None, on_close: Optional[Callable[[], None]] = None):
        if capacity is not None:
            self.capacity = int(capacity)

        self.loop = asyncio.get_running_loop()
        self.on_close = on_close
        self.failure: Optional[SubscriptionError] = None
        self.dropped = 0

        self._frames: Deque[Frame] = collections.deque()
        self._ready = asyncio.Event()
        self._finished = False

    # --- producer side, event loop thread ---
    def deliver(self, frame: Frame) -> None:
        if self.failure is not None:
            self.dropped += 1
            return

        if len(self._frames) >= self.capacity:
            self.dropped += 1
            self.fail(SubscriptionError(
                f"slow consumer: more than {self.capacity} messages pending"
            ))
            return

        self._frames.append(frame)
        self._ready.set()

    def fail(self, error: SubscriptionError) -> None:
        if self.failure is not None:
            return

        log.debug("subscription failed: %s", error)
        self.failure = error
        self._ready.set()

        if self.on_close is not None:
            self.on_close()

    # --- producer side, any thread ---
    def deliver_threadsafe(self, frame: Frame) -> None:
        try:
            self.loop.call_soon_threadsafe(self.deliver, frame)
        except RuntimeError:
            # The loop is closed; the consumer is gone.
            pass

    def fail_threadsafe(self, error: SubscriptionError) -> None:
        try:
            self.loop.call_soon_threadsafe(self.fail, error)
        except RuntimeError:
            pass

    # --- consumer side ---
    def __aiter__(self) -> "Inbox":
        return self

    async def __anext__(self) -> Union[Frame, SubscriptionError]:
        while True:
            if self._frames:
                return self._frames.popleft()

            if self.failure is not None:
                if self._finished:
                    raise StopAsyncIteration
                self._finished = True
                return self.failure

            self._ready.clear()
            await self._ready.wait()
