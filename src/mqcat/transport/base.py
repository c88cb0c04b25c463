"""Transport interface.

This is the (small) contract that every backend adapter implements. The
dispatcher only ever talks to a :class:`MessageQueue`, never to a concrete
backend.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import AsyncIterator, ClassVar, Optional, Sequence, Tuple, Union

from ..frame import Frame


Headers = Sequence[Tuple[str, str]]

# Seconds to wait for a reply to request(), shared by every adapter.
request_timeout = float(os.environ.get("MQCAT_REQUEST_TIMEOUT", "5"))


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportConnectionError(TransportError):
    """The transport could not establish or maintain a connection."""


class QueryError(TransportError):
    """Session diagnostics could not be collected."""


class PublishError(TransportError):
    """The transport rejected a published message."""


class RequestError(TransportError):
    """A request did not produce a reply."""


class TransportTimeout(RequestError):
    """A request did not receive a timely response."""


class SubscriptionError(TransportError):
    """A subscription was torn down by the backend or the consumer."""


class MessageQueue(ABC):
    """Minimal contract for a publish/subscribe/request backend."""

    default_address: ClassVar[Optional[str]] = None

    @classmethod
    @abstractmethod
    async def connect(cls, address: Optional[str] = None) -> "MessageQueue":
        """Establish a session; *address* None selects the default endpoint."""

    @abstractmethod
    async def info(self) -> str:
        """Human readable diagnostics for the session."""

    @abstractmethod
    async def publish(self, topic: str, headers: Headers, payload: bytes) -> None:
        """Send one message."""

    @abstractmethod
    def subscribe(self, topic: str) -> AsyncIterator[Union[Frame, SubscriptionError]]:
        """Return an async iterator of received frames.

        The iterator ends after yielding a single :class:`SubscriptionError`
        when the subscription is torn down; errors are never raised from it.
        """

    @abstractmethod
    async def request(self, topic: str, headers: Headers, payload: bytes) -> Frame:
        """Send one message and wait for a single reply."""

    @abstractmethod
    async def close(self) -> None:
        """Tear down the underlying connection."""

    async def __aenter__(self) -> "MessageQueue":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
