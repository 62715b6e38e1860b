"""Timeline scheduler: runs one test against a live server.

The executor freezes the server clock, then walks every tick from 0 to
the test's last scheduled tick. At each tick it runs that tick's entries
in declaration order, then advances the clock by exactly one verified
tick (never after the last one). Assertion failures are recorded and the
run continues so that one failure does not hide later ones. Transport
errors and tick timeouts abort the test; the error gains a note naming
the test and tick, and the server is unfrozen and cleaned up unless the
connection itself failed.
"""

from __future__ import annotations

import logging
import threading
from typing import ClassVar

from flintmc.actions import ActionTranslator, fill_command
from flintmc.breakpoint import BreakpointController, BreakpointState
from flintmc.clock import Clock, SystemClock
from flintmc.config import TimingConfig
from flintmc.errors import AssertionFailure, FlintError, RunCancelled, TransportError
from flintmc.reporting import ExecutionObserver
from flintmc.session import ChatChannel, GameSession
from flintmc.ticks import TickController
from flintmc.timeline import (
    ORIGIN,
    Pause,
    Position,
    TestResult,
    TestSpec,
    TimelineEntry,
    offset_position,
)

logger = logging.getLogger(__name__)


class TestExecutor:
    """Runs :class:`TestSpec` timelines over a connected session.

    Usage::

        executor = TestExecutor(session, observer=ConsoleReporter())
        result = executor.run(TestSpec.load("tests/lever.json"))
        if not result.success:
            ...

    Args:
        session: Connected control session.
        config: Delays, timeouts and retry counts.
        observer: Receives narration events; silent by default.
        clock: Time source for every wait.
        cancel: When set, the run stops at the next tick boundary or
            breakpoint poll with :class:`RunCancelled`.
    """
    __test__: ClassVar[bool] = False

    def __init__(
        self,
        session: GameSession,
        config: TimingConfig | None = None,
        observer: ExecutionObserver | None = None,
        clock: Clock | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self.session = session
        self.config = config or TimingConfig()
        self.observer = observer or ExecutionObserver()
        self._clock = clock or SystemClock()
        self._cancel = cancel
        self.chat = ChatChannel(session)
        self.ticks = TickController(session, self.chat, self.config, self._clock)
        self.breakpoints = BreakpointController(session, self.chat, self.config, cancel)
        self.translator = ActionTranslator(session, self.config, self._clock, self.observer)

    # -- Run -----------------------------------------------------------------

    def run(self, spec: TestSpec, offset: Position = ORIGIN) -> TestResult:
        """Execute ``spec`` with every position shifted by ``offset``.

        Returns:
            The aggregated :class:`TestResult`.

        Raises:
            TransportError: If a command cannot be sent.
            TickTimeoutError: If a tick advance is never confirmed.
            RunCancelled: If the cancel token is set.

        Fatal errors carry a ``test 'name', tick N`` note.
        """
        start = self._clock.monotonic()
        max_tick = spec.max_tick
        self.observer.test_started(spec, max_tick)
        logger.info("Running test %s (%d ticks, offset %s)", spec.name, max_tick, offset)

        self._clear_area(spec, offset, after=False)

        self._command("tick freeze", self.config.command_delay_ms)

        buckets = spec.bucket_by_tick()
        passed = 0
        failed = 0
        failures: list[str] = []
        stepping = False

        tick = 0
        try:
            while tick <= max_tick:
                self._check_cancelled(tick)

                paused = False
                if stepping:
                    stepping = self._pause(tick, f"step at tick {tick}")
                    paused = True

                for entry in buckets.get(tick, []):
                    if isinstance(entry.action, Pause):
                        if not paused:
                            stepping = self._pause(tick, entry.action.reason or f"tick {tick}")
                            paused = True
                        continue
                    try:
                        if self.translator.execute(tick, entry, offset):
                            passed += 1
                    except AssertionFailure as exc:
                        failed += 1
                        failures.append(f"Tick {tick}: {exc}")
                        self.observer.assertion_failed(tick, exc)
                        logger.info("Assertion failed at tick %d: %s", tick, exc)

                if tick < max_tick:
                    tick = self._advance(tick, buckets, stepping)
                else:
                    tick += 1
        except (FlintError, OSError) as exc:
            if not isinstance(exc, RunCancelled):
                exc.add_note(f"test {spec.name!r}, tick {tick}")
            self._abort(spec, offset, exc)
            raise

        self._command("tick unfreeze", 0)

        self._clear_area(spec, offset, after=True)

        result = TestResult(
            test_name=spec.name,
            passed=passed,
            failed=failed,
            failures=tuple(failures),
        )
        self.observer.test_finished(result)

        elapsed_ms = (self._clock.monotonic() - start) * 1000.0
        logger.info(
            "Test complete: %s -- %d passed, %d failed in %.1fms",
            spec.name, passed, failed, elapsed_ms,
        )
        return result

    # -- Helpers -------------------------------------------------------------

    def _command(self, command: str, delay_ms: int) -> None:
        logger.debug("-> %s", command)
        self.session.send_command(command)
        if delay_ms:
            self._clock.sleep(delay_ms / 1000.0)

    def _clear_area(self, spec: TestSpec, offset: Position, *, after: bool) -> None:
        region = spec.cleanup
        if region is None:
            return
        self.observer.cleanup(spec, after=after)
        self._command(
            fill_command(
                offset_position(region.from_pos, offset),
                offset_position(region.to_pos, offset),
                "air",
            ),
            self.config.cleanup_delay_ms,
        )

    def _abort(self, spec: TestSpec, offset: Position, error: BaseException) -> None:
        """Unfreeze and clear after a fatal error, without masking ``error``.

        Nothing is sent when the connection itself failed.
        """
        if isinstance(error, (TransportError, OSError)):
            logger.warning("Connection failed; server left frozen: %s", error)
            return
        try:
            self._command("tick unfreeze", 0)
            self._clear_area(spec, offset, after=True)
        except (FlintError, OSError) as exc:
            logger.warning("Restore after %s failed: %s", type(error).__name__, exc)

    def _check_cancelled(self, tick: int) -> None:
        if self._cancel is not None and self._cancel.is_set():
            msg = f"Run cancelled at tick {tick}"
            raise RunCancelled(msg)

    def _pause(self, tick: int, reason: str) -> bool:
        """Hold at a breakpoint; return True if the operator chose to step."""
        self.observer.breakpoint_hit(tick, reason)
        return self.breakpoints.wait(reason) is BreakpointState.STEPPED

    def _advance(
        self,
        tick: int,
        buckets: dict[int, list[TimelineEntry]],
        stepping: bool,
    ) -> int:
        """Move the server clock forward; return the new tick."""
        if self.config.sprint_idle_ticks and not stepping:
            next_tick = min(t for t in buckets if t > tick)
            gap = next_tick - tick
            if gap > 1:
                elapsed_ms = self.ticks.sprint(gap)
                self.observer.tick_advanced(next_tick, elapsed_ms, ticks=gap)
                return next_tick

        elapsed_ms = self.ticks.step_one()
        self.observer.tick_advanced(tick + 1, elapsed_ms)
        return tick + 1
