"""Tick control: gametime queries, verified single steps and sprints.

The server acknowledges ``tick step`` without saying whether the tick
actually ran, so :meth:`TickController.step_one` proves the advance by
reading the gametime counter before and after. Sprinting is only a
pacing aid and degrades to a default delay instead of failing.
"""

from __future__ import annotations

import logging
import math
import re

from flintmc.clock import Clock, SystemClock
from flintmc.config import TimingConfig
from flintmc.errors import TickTimeoutError
from flintmc.session import ChatChannel, GameSession

logger = logging.getLogger(__name__)

GAMETIME_PREFIX = "The time is"
SPRINT_COMPLETED = "Sprint completed"

_GAMETIME_RE = re.compile(re.escape(GAMETIME_PREFIX) + r"\D*(\d+)")
# "Sprint completed with 20 ticks per second, or 50 ms per tick"
_SPRINT_MS_RE = re.compile(r"\bor\s+(\d+(?:\.\d+)?)\s*ms per tick")


def parse_gametime(message: str) -> int | None:
    """Extract the counter from a ``The time is <n>`` message."""
    m = _GAMETIME_RE.search(message)
    return int(m.group(1)) if m else None


def parse_sprint_ms(message: str) -> float | None:
    """Extract the ms-per-tick figure from a sprint completion message."""
    m = _SPRINT_MS_RE.search(message)
    return float(m.group(1)) if m else None


class TickController:
    """Advances a frozen server clock and verifies that it moved.

    Usage::

        ticks = TickController(session, chat)
        ticks.step_one()
        ticks.sprint(20)
    """

    def __init__(
        self,
        session: GameSession,
        chat: ChatChannel,
        config: TimingConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._chat = chat
        self.config = config or TimingConfig()
        self._clock = clock or SystemClock()

    @property
    def _drain_timeout(self) -> float:
        return self.config.chat_drain_timeout_ms / 1000.0

    @property
    def _poll_timeout(self) -> float:
        return self.config.chat_poll_timeout_ms / 1000.0

    def query_gametime(self) -> int:
        """Return the server's gametime counter.

        Raises:
            TickTimeoutError: If no parseable answer arrives in time.
        """
        with self._chat.owned_by("ticks"):
            self._chat.drain(self._drain_timeout)
            self._session.send_command("time query gametime")

            deadline = self._clock.monotonic() + self.config.gametime_query_timeout_s
            while self._clock.monotonic() < deadline:
                msg = self._chat.receive(self._poll_timeout)
                if msg is None or GAMETIME_PREFIX not in msg.text:
                    continue
                value = parse_gametime(msg.text)
                if value is not None:
                    return value
                logger.debug("Unparseable gametime reply: %r", msg.text)

        reason = "Failed to query game time: timeout waiting for response"
        raise TickTimeoutError(reason)

    def step_one(self) -> int:
        """Advance exactly one tick and wait until the counter moves.

        Returns the elapsed time in milliseconds.

        Raises:
            TickTimeoutError: If the counter does not increase in time.
        """
        with self._chat.owned_by("ticks"):
            before = self.query_gametime()
            start = self._clock.monotonic()
            self._session.send_command("tick step")

            poll_delay = self.config.tick_step_poll_ms / 1000.0
            while True:
                self._clock.sleep(poll_delay)
                after = self.query_gametime()
                if after > before:
                    elapsed_ms = int((self._clock.monotonic() - start) * 1000)
                    logger.debug(
                        "Stepped 1 tick (verified: %d -> %d) in %d ms",
                        before, after, elapsed_ms,
                    )
                    return elapsed_ms
                if self._clock.monotonic() - start >= self.config.tick_step_timeout_s:
                    msg = (
                        f"Tick step verification timeout: game time did not "
                        f"advance past {before} (last read {after})"
                    )
                    raise TickTimeoutError(msg)

    def sprint(self, ticks: int) -> int:
        """Run ``ticks`` ticks as one sprint.

        ``tick sprint N`` runs N+1 ticks on the server, so ``ticks - 1``
        is requested. Returns the total duration in milliseconds derived
        from the server's ms-per-tick figure, or ``min_retry_delay_ms``
        when the completion message is missing or unparseable.
        """
        if ticks < 1:
            msg = f"sprint needs at least 1 tick (got {ticks})"
            raise ValueError(msg)

        with self._chat.owned_by("ticks"):
            self._chat.drain(self._drain_timeout)
            self._session.send_command(f"tick sprint {ticks - 1}")

            deadline = self._clock.monotonic() + self.config.sprint_timeout_s
            while self._clock.monotonic() < deadline:
                msg = self._chat.receive(self._poll_timeout)
                if msg is None or SPRINT_COMPLETED not in msg.text:
                    continue
                ms = parse_sprint_ms(msg.text)
                if ms is None:
                    logger.warning(
                        "Sprint %d ticks completed (timing not parsed): %r",
                        ticks, msg.text,
                    )
                    return self.config.min_retry_delay_ms
                per_tick = math.ceil(ms)
                logger.debug("Sprint %d ticks completed in %d ms per tick", ticks, per_tick)
                return per_tick * ticks

        logger.warning("Sprint %d ticks (no completion message received)", ticks)
        return self.config.min_retry_delay_ms
