"""Connection protocol consumed by the engine, and the shared chat channel.

The engine never opens sockets itself. A network client that is already
connected and authenticated is handed in as a :class:`GameSession`; the
engine only sends commands, reads blocks and receives chat through it.

Chat is a single ordered stream in which every message is consumed once.
Several controllers read it (tick verification, sprint timing,
breakpoints), so all reads go through one :class:`ChatChannel` which
serializes ownership and makes draining an explicit step.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from flintmc.timeline import Position

logger = logging.getLogger(__name__)


@runtime_checkable
class GameSession(Protocol):
    """A connected control session on the server.

    Implementations signal network failures by raising
    :class:`~flintmc.errors.TransportError` (or :class:`OSError`).
    """

    def send_command(self, command: str) -> None:
        """Send an administrative command without the leading slash."""
        ...

    def get_block(self, pos: Position) -> str | None:
        """Return the server's rendering of the block at ``pos``, or None if unloaded."""
        ...

    def get_block_state_property(self, pos: Position, name: str) -> str | None:
        """Return one block state property at ``pos``, or None if unknown."""
        ...

    def recv_chat(self, timeout: float) -> tuple[str, str] | None:
        """Wait up to ``timeout`` seconds for a ``(sender, text)`` chat message."""
        ...


@dataclass(frozen=True)
class ChatMessage:
    """One message received on the chat channel."""
    sender: str
    text: str


class ChatChannel:
    """Ordered, consume-once view of a session's chat stream.

    Usage::

        chat = ChatChannel(session)
        with chat.owned_by("ticks"):
            chat.drain(0.01)
            session.send_command("time query gametime")
            msg = chat.receive(0.1)
    """

    def __init__(self, session: GameSession) -> None:
        self._session = session
        self._lock = threading.RLock()
        self._owner: str | None = None

    @property
    def owner(self) -> str | None:
        """Name of the controller currently reading, if any."""
        return self._owner

    @contextmanager
    def owned_by(self, owner: str) -> Iterator[ChatChannel]:
        """Hold the channel for ``owner`` for the duration of the block.

        Nested claims from the same thread are allowed; the outermost
        owner is restored on exit.
        """
        with self._lock:
            previous = self._owner
            self._owner = owner
            try:
                yield self
            finally:
                self._owner = previous

    def receive(self, timeout: float) -> ChatMessage | None:
        """Return the next message, or None if none arrives within ``timeout``."""
        raw = self._session.recv_chat(timeout)
        if raw is None:
            return None
        sender, text = raw
        logger.debug("chat [%s] <%s> %s", self._owner or "-", sender, text)
        return ChatMessage(sender=sender, text=text)

    def drain(self, timeout: float) -> int:
        """Discard every queued message; return how many were dropped.

        Stops at the first receive window of ``timeout`` seconds that
        yields nothing.
        """
        dropped = 0
        while self._session.recv_chat(timeout) is not None:
            dropped += 1
        if dropped:
            logger.debug("drained %d stale chat message(s) for %s", dropped, self._owner or "-")
        return dropped
