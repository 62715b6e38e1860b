"""Shared fakes for engine tests.

``FakeSession`` behaves like a small scripted server: it records every
command, answers ``time query gametime`` and ``tick sprint`` in chat,
applies ``setblock`` to an in-memory world, and releases scheduled
player chat once the fake clock reaches it. ``FakeClock`` makes every
sleep and chat wait instantaneous.
"""

from __future__ import annotations

import pytest

from flintmc.config import TimingConfig
from flintmc.errors import TransportError
from flintmc.executor import TestExecutor
from flintmc.session import ChatChannel
from flintmc.timeline import Position

SPRINT_REPLY = "Sprint completed with 20 ticks per second, or 50 ms per tick"


class FakeClock:
    """Clock whose sleeps only move a counter."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(seconds, 0.0)

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSession:
    """Scripted stand-in for a connected game session."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.commands: list[str] = []
        self.blocks: dict[Position, str] = {}
        self.scripted_reads: dict[Position, list[str | None]] = {}
        self.state_properties: dict[tuple[Position, str], str] = {}
        self.property_calls: list[tuple[Position, str]] = []
        self.get_block_calls: list[Position] = []
        self.gametime = 100
        self.step_lag = 0
        self.advance_on_step = True
        self.answer_gametime = True
        self.sprint_reply: str | None = SPRINT_REPLY
        self.apply_setblock = True
        self.fail_on: str | None = None
        self.closed = False
        self._pending_step: int | None = None
        self._chat: list[tuple[float, str, str]] = []

    # -- Scripting -------------------------------------------------------------

    def say(self, text: str, *, delay: float = 0.0, sender: str = "Steve") -> None:
        """Schedule a chat message ``delay`` seconds from now."""
        self._push(sender, text, self.clock.now + delay)

    def _push(self, sender: str, text: str, ready_at: float) -> None:
        self._chat.append((ready_at, sender, text))
        self._chat.sort(key=lambda m: m[0])

    def _pop_ready(self) -> tuple[str, str] | None:
        if self._chat and self._chat[0][0] <= self.clock.now:
            _, sender, text = self._chat.pop(0)
            return (sender, text)
        return None

    def count(self, command: str) -> int:
        return sum(1 for c in self.commands if c == command)

    # -- GameSession -----------------------------------------------------------

    def send_command(self, command: str) -> None:
        self.commands.append(command)
        if self.fail_on is not None and command.startswith(self.fail_on):
            raise TransportError(f"connection lost while sending {command!r}")

        if command.startswith("say "):
            self._push("Server", f"[Server] {command[4:]}", self.clock.now)
        elif command == "time query gametime":
            if self._pending_step is not None:
                self._pending_step -= 1
                if self._pending_step <= 0:
                    self.gametime += 1
                    self._pending_step = None
            if self.answer_gametime:
                self._push("Server", f"The time is {self.gametime}", self.clock.now)
        elif command == "tick step":
            if self.advance_on_step:
                if self.step_lag:
                    self._pending_step = self.step_lag
                else:
                    self.gametime += 1
        elif command.startswith("tick sprint "):
            self.gametime += int(command.split()[-1]) + 1
            if self.sprint_reply is not None:
                self._push("Server", self.sprint_reply, self.clock.now)
        elif command.startswith("setblock ") and self.apply_setblock:
            parts = command.split()
            pos = (int(parts[1]), int(parts[2]), int(parts[3]))
            self.blocks[pos] = parts[4]

    def get_block(self, pos: Position) -> str | None:
        self.get_block_calls.append(pos)
        reads = self.scripted_reads.get(pos)
        if reads:
            return reads.pop(0) if len(reads) > 1 else reads[0]
        return self.blocks.get(pos)

    def get_block_state_property(self, pos: Position, name: str) -> str | None:
        self.property_calls.append((pos, name))
        return self.state_properties.get((pos, name))

    def recv_chat(self, timeout: float) -> tuple[str, str] | None:
        msg = self._pop_ready()
        if msg is not None:
            return msg
        self.clock.advance(timeout)
        return self._pop_ready()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session(clock: FakeClock) -> FakeSession:
    return FakeSession(clock)


@pytest.fixture
def chat(session: FakeSession) -> ChatChannel:
    return ChatChannel(session)


@pytest.fixture
def config() -> TimingConfig:
    return TimingConfig()


@pytest.fixture
def executor(session: FakeSession, clock: FakeClock, config: TimingConfig) -> TestExecutor:
    return TestExecutor(session, config=config, clock=clock)
