"""ZMQ multipart framing for frames.

Request/Response (DEALER<->ROUTER)
    (optional routing prefix...), version, id, type, topic, headers_json, payload

Publish (PUB/SUB)
    topic_with_trailing_dot, version, headers_json, payload
"""

from __future__ import annotations

import json
from typing import Optional, Sequence, Tuple

from ...frame import Frame


PROTOCOL_VERSION = b"1"

REQ = b"REQ"
REP = b"REP"
ERR = b"ERR"


def encode_headers(frame: Frame) -> bytes:
    if not frame.headers:
        return b""
    return json.dumps(frame.headers, separators=(",", ":"), sort_keys=True).encode()


def decode_headers(frame: Frame, headers_bytes: bytes) -> None:
    if headers_bytes in (b"", None):
        return

    decoded = json.loads(headers_bytes)
    if not isinstance(decoded, dict):
        raise ValueError("invalid headers: expected a JSON object")

    for key, values in decoded.items():
        if isinstance(values, str):
            values = [values]
        elif not isinstance(values, list):
            raise ValueError(f"invalid value for header {key!r}")
        for value in values:
            frame.add_header(key, str(value))


def pub_topic(topic: str) -> bytes:
    """Subscription prefix for *topic*; empty means everything."""

    if not topic:
        return b""
    # trailing dot to prevent prefix matches
    return (topic + ".").encode()


def to_pub_frames(frame: Frame) -> Tuple[bytes, ...]:
    """Encode a frame for PUB/SUB sockets."""

    return (pub_topic(frame.topic), PROTOCOL_VERSION, encode_headers(frame), frame.payload)


def from_pub_frames(parts: Sequence[bytes]) -> Frame:
    if len(parts) < 4:
        raise ValueError("invalid PUB message")

    topic = parts[0].decode()
    if topic.endswith("."):
        topic = topic[:-1]

    their_version = parts[1]
    if their_version != PROTOCOL_VERSION:
        raise ValueError(
            f"message is protocol {their_version!r}, recipient expects {PROTOCOL_VERSION!r}"
        )

    frame = Frame(topic, payload=parts[3])
    decode_headers(frame, parts[2])
    return frame


def to_request_frames(msg_id: bytes, frame: Frame, msg_type: bytes = REQ) -> Tuple[bytes, ...]:
    """Encode a frame as DEALER request multipart frames."""

    return (
        PROTOCOL_VERSION,
        msg_id,
        msg_type,
        frame.topic.encode(),
        encode_headers(frame),
        frame.payload,
    )


def from_request_frames(parts: Sequence[bytes]) -> Tuple[bytes, bytes, Optional[Frame]]:
    """Decode DEALER/ROUTER parts into (id, type, frame).

    ROUTER sockets prepend an identity frame, which is skipped. A version
    mismatch is reported as an ERR with no frame.
    """

    if not parts:
        raise ValueError("empty message")

    # We expect either:
    #   [version, id, type, topic, headers, payload]
    # or
    #   [ident, version, id, type, topic, headers, payload]
    start = 0 if len(parts) == 6 else 1
    if len(parts) < start + 6:
        raise ValueError("truncated request message")

    msg_id = parts[start + 1]
    if parts[start] != PROTOCOL_VERSION:
        return msg_id, ERR, None

    msg_type = parts[start + 2]
    frame = Frame(parts[start + 3].decode(), payload=parts[start + 5])
    decode_headers(frame, parts[start + 4])
    return msg_id, msg_type, frame
