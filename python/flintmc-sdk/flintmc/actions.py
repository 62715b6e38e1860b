"""Translation of timeline actions into server commands and block probes.

Placement variants become ``setblock``/``fill`` commands followed by a
short delay so the server starts processing before the next command.
Assertions poll each checked block until it matches or the retry budget
runs out, then verify any expected state properties against the same
raw rendering, falling back to a single property read from the session.
"""

from __future__ import annotations

import logging

from flintmc.clock import Clock, SystemClock
from flintmc.config import TimingConfig
from flintmc.errors import BlockMismatch, PropertyMismatch
from flintmc.matching import block_matches, property_matches, state_value_matches
from flintmc.probe import RetryPoller, StateProbe
from flintmc.reporting import ExecutionObserver
from flintmc.session import GameSession
from flintmc.timeline import (
    ORIGIN,
    Assert,
    Fill,
    Pause,
    Place,
    PlaceEach,
    Position,
    Remove,
    TimelineEntry,
    format_value,
    offset_position,
)

logger = logging.getLogger(__name__)


def _coords(pos: Position) -> str:
    return f"{pos[0]} {pos[1]} {pos[2]}"


def _pos(pos: Position) -> str:
    return f"[{pos[0]}, {pos[1]}, {pos[2]}]"


def setblock_command(pos: Position, block: str) -> str:
    """Build ``setblock x y z block``."""
    return f"setblock {_coords(pos)} {block}"


def fill_command(region_min: Position, region_max: Position, block: str) -> str:
    """Build ``fill x1 y1 z1 x2 y2 z2 block``."""
    return f"fill {_coords(region_min)} {_coords(region_max)} {block}"


class ActionTranslator:
    """Executes one timeline entry against the session.

    Usage::

        translator = ActionTranslator(session)
        was_assertion = translator.execute(tick, entry, offset=(100, 0, 100))
    """

    def __init__(
        self,
        session: GameSession,
        config: TimingConfig | None = None,
        clock: Clock | None = None,
        observer: ExecutionObserver | None = None,
    ) -> None:
        self._session = session
        self.config = config or TimingConfig()
        self._clock = clock or SystemClock()
        self._observer = observer or ExecutionObserver()
        self._probe = StateProbe(session)
        self._poller = RetryPoller(
            max_attempts=self.config.block_poll_attempts,
            delay_ms=self.config.block_poll_delay_ms,
            clock=self._clock,
        )

    def _send(self, command: str, delay_ms: int) -> None:
        logger.debug("-> %s", command)
        self._session.send_command(command)
        self._clock.sleep(delay_ms / 1000.0)

    def execute(
        self,
        tick: int,
        entry: TimelineEntry,
        offset: Position = ORIGIN,
    ) -> bool:
        """Run ``entry`` at ``tick``.

        Returns True if the entry was an assertion and every check passed,
        False for all other actions.

        Raises:
            BlockMismatch: If a checked block never matched.
            PropertyMismatch: If a checked block lacks an expected property value.
        """
        action = entry.action

        if isinstance(action, Place):
            block = action.block.to_command()
            self._send(
                setblock_command(offset_position(action.pos, offset), block),
                self.config.action_delay_ms,
            )
            self._observer.block_set(tick, action.pos, block)
            self._observer.command_sent(tick, f"place at {_pos(action.pos)} = {block}")
            return False

        if isinstance(action, PlaceEach):
            for placement in action.blocks:
                block = placement.block.to_command()
                self._send(
                    setblock_command(offset_position(placement.pos, offset), block),
                    self.config.place_each_delay_ms,
                )
                self._observer.block_set(tick, placement.pos, block)
                self._observer.command_sent(
                    tick, f"place at {_pos(placement.pos)} = {block}",
                )
            return False

        if isinstance(action, Fill):
            block = action.block.to_command()
            self._send(
                fill_command(
                    offset_position(action.region_min, offset),
                    offset_position(action.region_max, offset),
                    block,
                ),
                self.config.action_delay_ms,
            )
            self._observer.command_sent(
                tick,
                f"fill {_pos(action.region_min)} to {_pos(action.region_max)} = {block}",
            )
            return False

        if isinstance(action, Remove):
            self._send(
                setblock_command(offset_position(action.pos, offset), "air"),
                self.config.action_delay_ms,
            )
            self._observer.block_set(tick, action.pos, "air")
            self._observer.command_sent(tick, f"remove at {_pos(action.pos)}")
            return False

        if isinstance(action, Assert):
            self._run_assert(tick, action, offset)
            return True

        if isinstance(action, Pause):
            return False

        msg = f"Unsupported action: {action!r}"
        raise TypeError(msg)

    def _run_assert(self, tick: int, action: Assert, offset: Position) -> None:
        for check in action.checks:
            world_pos = offset_position(check.pos, offset)
            expected = check.block.id
            observed = self._poller.poll_until(
                lambda pos=world_pos: self._probe.observe(pos), expected,
            )
            if not block_matches(observed, expected):
                raise BlockMismatch(
                    tick=tick, pos=check.pos, expected=expected, actual=observed,
                )

            if not check.block.properties:
                self._observer.check_passed(tick, check.pos, f"is {expected}")
                self._observer.block_confirmed(tick, check.pos, check.block.to_command())
                continue

            for name, value in check.block.properties.items():
                if not property_matches(observed, name, value):
                    state = self._probe.observe_property(world_pos, name)
                    if not state_value_matches(state, value):
                        raise PropertyMismatch(
                            tick=tick,
                            pos=check.pos,
                            prop=name,
                            expected=format_value(value),
                            actual=state if state is not None else observed,
                        )
                self._observer.check_passed(
                    tick, check.pos, f"state {name} = {format_value(value)}",
                )
            self._observer.block_confirmed(tick, check.pos, check.block.to_command())
