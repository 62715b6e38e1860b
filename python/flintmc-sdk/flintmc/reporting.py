"""Progress narration for test runs.

The executor reports what it does to an :class:`ExecutionObserver`. The
base class ignores everything, which keeps the engine silent in tests;
:class:`ConsoleReporter` prints the human-readable run log used by the
command-line runner.
"""

from __future__ import annotations

from typing import TextIO

from flintmc.errors import AssertionFailure
from flintmc.timeline import Position, TestResult, TestSpec


def _pos(pos: Position) -> str:
    return f"[{pos[0]}, {pos[1]}, {pos[2]}]"


class ExecutionObserver:
    """Receives run events from the executor. All hooks default to no-ops."""

    def test_started(self, spec: TestSpec, max_tick: int) -> None:
        pass

    def cleanup(self, spec: TestSpec, *, after: bool) -> None:
        pass

    def command_sent(self, tick: int, description: str) -> None:
        pass

    def block_set(self, tick: int, pos: Position, block: str) -> None:
        """A ``setblock`` was sent for the declared ``pos`` (``air`` for removals)."""

    def check_passed(self, tick: int, pos: Position, description: str) -> None:
        pass

    def block_confirmed(self, tick: int, pos: Position, block: str) -> None:
        """Every expectation of one assertion check held at ``pos``."""

    def assertion_failed(self, tick: int, error: AssertionFailure) -> None:
        pass

    def tick_advanced(self, tick: int, elapsed_ms: int, *, ticks: int = 1) -> None:
        pass

    def breakpoint_hit(self, tick: int, reason: str) -> None:
        pass

    def test_finished(self, result: TestResult) -> None:
        pass


class ConsoleReporter(ExecutionObserver):
    """Prints a per-tick run log."""

    def __init__(self, stream: TextIO | None = None, *, show_ticks: bool = False) -> None:
        self._stream = stream
        self.show_ticks = show_ticks

    def _print(self, text: str = "") -> None:
        print(text, file=self._stream)

    def test_started(self, spec: TestSpec, max_tick: int) -> None:
        self._print(f"\nRunning test: {spec.name}")
        if spec.description:
            self._print(f"  {spec.description}")
        self._print(f"  Timeline: {max_tick} ticks\n")

    def cleanup(self, spec: TestSpec, *, after: bool) -> None:
        if after:
            self._print("\n  -> Cleaning up test area...")
        else:
            self._print("  -> Cleaning test area...")

    def command_sent(self, tick: int, description: str) -> None:
        self._print(f"    -> Tick {tick}: {description}")

    def check_passed(self, tick: int, pos: Position, description: str) -> None:
        self._print(f"    ok Tick {tick}: assert block at {_pos(pos)} {description}")

    def assertion_failed(self, tick: int, error: AssertionFailure) -> None:
        self._print(f"    FAIL Tick {tick}: {error}")

    def tick_advanced(self, tick: int, elapsed_ms: int, *, ticks: int = 1) -> None:
        if not self.show_ticks:
            return
        if ticks == 1:
            self._print(f"    .. Stepped to tick {tick} in {elapsed_ms} ms")
        else:
            self._print(f"    .. Sprinted {ticks} ticks to tick {tick} ({elapsed_ms} ms)")

    def breakpoint_hit(self, tick: int, reason: str) -> None:
        self._print(f"\n|| BREAKPOINT: {reason}")
        self._print("  Waiting for in-game chat command: s = step, c = continue")

    def test_finished(self, result: TestResult) -> None:
        self._print()
        if result.success:
            self._print(f"  PASS Test passed: {result.passed} assertions")
        else:
            self._print(
                f"  FAIL Test failed: {result.passed} passed, {result.failed} failed"
            )
