""" The :class:`Frame` is the one message representation shared by every
    transport: a topic, a multi-valued header mapping, and an opaque payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple


@dataclass
class Frame:
    """ A single message as published to, or received from, a transport.

        :ivar topic: The subject/channel/key expression of the message.
        :ivar headers: Header names mapped to an ordered list of values.
        :ivar payload: The message body, as bytes. No encoding is implied.
    """

    topic: str
    headers: Dict[str, List[str]] = field(default_factory=dict)
    payload: bytes = b''


    @classmethod
    def from_pairs(cls, topic: str, pairs: Iterable[Tuple[str, str]], payload: bytes = b'') -> 'Frame':
        frame = cls(topic, payload=payload)
        for key, value in pairs:
            frame.add_header(key, value)
        return frame


    def add_header(self, key: str, value: str) -> None:
        """ Append *value* to the list of values for *key*, preserving the
            order in which values arrive.
        """

        self.headers.setdefault(key, []).append(value)


    def header_pairs(self) -> List[Tuple[str, str]]:
        """ Flatten the headers back into (key, value) tuples, keys in
            lexicographic order.
        """

        pairs = list()
        for key in sorted(self.headers):
            for value in self.headers[key]:
                pairs.append((key, value))
        return pairs


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
