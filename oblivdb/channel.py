"""In-memory message channels between parties, and the output modes of oblivious transfers."""

from __future__ import annotations

import copy
import queue
from enum import Enum
from typing import Any, Optional, Tuple


class OutputType(Enum):
    """How a result is written into a destination row."""

    OVERWRITE = 0
    ADDITIVE = 1


class Channel:
    """One end of a bidirectional, ordered, message-based link.

    Sending never blocks; receiving waits up to ``timeout`` seconds
    (forever when ``timeout`` is None) and raises ``TimeoutError`` after that.
    Messages are copied on send, so later changes by the sender are not seen.
    """

    def __init__(
        self,
        outbox: "queue.Queue[Any]",
        inbox: "queue.Queue[Any]",
        timeout: Optional[float] = 30.0,
    ):
        self._outbox = outbox
        self._inbox = inbox
        self.timeout = timeout

    def send(self, obj: Any) -> None:
        self._outbox.put(copy.deepcopy(obj))

    def recv(self) -> Any:
        try:
            return self._inbox.get(timeout=self.timeout)
        except queue.Empty:
            raise TimeoutError("no message arrived on the channel") from None

    @property
    def pending(self) -> int:
        """Number of messages waiting to be received on this end."""
        return self._inbox.qsize()


def channel_pair() -> Tuple[Channel, Channel]:
    """Create two connected channel ends: what one sends, the other receives."""
    a_to_b: "queue.Queue[Any]" = queue.Queue()
    b_to_a: "queue.Queue[Any]" = queue.Queue()
    return Channel(a_to_b, b_to_a), Channel(b_to_a, a_to_b)