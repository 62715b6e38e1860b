"""Block probes and the retry loop that absorbs propagation latency.

A command sent to the server is not reflected in the client's view of
the world immediately, and the delay grows under load. A single read
right after a ``setblock`` is therefore flaky; :class:`RetryPoller`
re-reads a few times before letting the caller decide it failed.
"""

from __future__ import annotations

import logging
from typing import Callable

from flintmc.clock import Clock, SystemClock
from flintmc.matching import block_matches
from flintmc.session import GameSession
from flintmc.timeline import Position

logger = logging.getLogger(__name__)

DEFAULT_POLL_ATTEMPTS = 10
DEFAULT_POLL_DELAY_MS = 50


class StateProbe:
    """Reads one block from the session."""

    def __init__(self, session: GameSession) -> None:
        self._session = session

    def observe(self, pos: Position) -> str | None:
        """Return the raw rendering at ``pos``, None if the block is not loaded."""
        raw = self._session.get_block(pos)
        if raw is None:
            return None
        return raw.strip()

    def observe_property(self, pos: Position, name: str) -> str | None:
        """Return one block state property at ``pos``, None if unknown."""
        raw = self._session.get_block_state_property(pos, name)
        if raw is None:
            return None
        return raw.strip()

    @staticmethod
    def matches(observed: str | None, expected: str) -> bool:
        """Compare an observation with a declared block id."""
        return block_matches(observed, expected)


class RetryPoller:
    """Bounded, fixed-delay retry around a probe.

    Usage::

        poller = RetryPoller(max_attempts=10, delay_ms=50)
        seen = poller.poll_until(lambda: probe.observe(pos), "stone")
        if not StateProbe.matches(seen, "stone"):
            ...
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_POLL_ATTEMPTS,
        delay_ms: int = DEFAULT_POLL_DELAY_MS,
        clock: Clock | None = None,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be at least 1 (got {max_attempts})"
            raise ValueError(msg)
        self.max_attempts = max_attempts
        self.delay_ms = delay_ms
        self._clock = clock or SystemClock()

    def poll_until(
        self,
        probe: Callable[[], str | None],
        expected: str,
    ) -> str | None:
        """Probe until the observation matches ``expected``.

        Returns the first matching observation. If no attempt matches,
        returns the last observation instead of raising; the caller
        decides whether that constitutes a failure.
        """
        observed: str | None = None
        for attempt in range(1, self.max_attempts + 1):
            observed = probe()
            if block_matches(observed, expected):
                if attempt > 1:
                    logger.debug("%s matched on attempt %d", expected, attempt)
                return observed
            if attempt < self.max_attempts:
                self._clock.sleep(self.delay_ms / 1000.0)
        logger.debug(
            "%s not observed after %d attempts (last: %r)",
            expected, self.max_attempts, observed,
        )
        return observed
