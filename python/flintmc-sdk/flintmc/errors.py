"""Exception types raised by the FlintMC test engine.

Fatal errors (``TransportError``, ``TickTimeoutError``, ``RunCancelled``)
abort the current test. ``AssertionFailure`` and its subclasses are
recorded by the executor and the run continues with the next tick.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flintmc.timeline import Position


class FlintError(Exception):
    """Base class for all engine errors."""


class TransportError(FlintError):
    """Sending a command or reading state failed at the network layer."""


class TickTimeoutError(FlintError):
    """A tick advance or gametime query was not confirmed in time."""


class RunCancelled(FlintError):
    """The run was cancelled through its cancel token."""


class SpecError(ValueError):
    """A test file is malformed."""


def _format_pos(pos: Position) -> str:
    return f"[{pos[0]}, {pos[1]}, {pos[2]}]"


class AssertionFailure(FlintError):
    """Observed block state did not match the expectation after all retries.

    Attributes:
        tick: Tick at which the assertion ran.
        pos: Declared (un-offset) position of the check.
        expected: Expected block id or property value.
        actual: Raw observation, ``None`` when the block was not loaded.
    """

    def __init__(
        self,
        message: str,
        *,
        tick: int,
        pos: Position,
        expected: str,
        actual: str | None,
    ) -> None:
        super().__init__(message)
        self.tick = tick
        self.pos = pos
        self.expected = expected
        self.actual = actual


class BlockMismatch(AssertionFailure):
    """The block at a position is not the expected block."""

    def __init__(
        self,
        *,
        tick: int,
        pos: Position,
        expected: str,
        actual: str | None,
    ) -> None:
        super().__init__(
            f"Block at {_format_pos(pos)} is not {expected} (got {actual!r})",
            tick=tick,
            pos=pos,
            expected=expected,
            actual=actual,
        )


class PropertyMismatch(AssertionFailure):
    """A block state property does not have the expected value."""

    def __init__(
        self,
        *,
        tick: int,
        pos: Position,
        prop: str,
        expected: str,
        actual: str | None,
    ) -> None:
        super().__init__(
            f"Block at {_format_pos(pos)} property '{prop}' is not "
            f"'{expected}' (got {actual!r})",
            tick=tick,
            pos=pos,
            expected=expected,
            actual=actual,
        )
        self.prop = prop
