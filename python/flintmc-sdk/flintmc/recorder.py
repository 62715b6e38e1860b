"""Recording timelines and turning them into test files.

A recorder collects block placements, removals and expected blocks as
they happen (for example while an operator builds a contraption in
game, or from an executed run through :class:`RecordingObserver`) and
emits an equivalent :class:`~flintmc.timeline.TestSpec`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from flintmc.reporting import ExecutionObserver
from flintmc.timeline import (
    Assert,
    BlockCheck,
    BlockSpec,
    CleanupRegion,
    Place,
    Position,
    Remove,
    TestSpec,
    TimelineEntry,
)

logger = logging.getLogger(__name__)


class RecordedActionType(Enum):
    """Kinds of recorded actions."""
    PLACE = "place"
    REMOVE = "remove"
    ASSERT = "assert"


@dataclass(frozen=True)
class RecordedAction:
    """A recorded action in the timeline."""
    type: RecordedActionType
    pos: Position
    block: str | None = None


def placed(pos: Position, block: str) -> RecordedAction:
    """Record a block placement."""
    return RecordedAction(type=RecordedActionType.PLACE, pos=pos, block=block)


def removed(pos: Position) -> RecordedAction:
    """Record a block removal."""
    return RecordedAction(type=RecordedActionType.REMOVE, pos=pos)


def expected(pos: Position, block: str) -> RecordedAction:
    """Record the block that should be at ``pos``."""
    return RecordedAction(type=RecordedActionType.ASSERT, pos=pos, block=block)


@dataclass
class TimelineStep:
    """All actions recorded at one tick."""
    tick: int
    actions: list[RecordedAction] = field(default_factory=list)


class TimelineRecorder:
    """Accumulates recorded actions tick by tick.

    Usage::

        recorder = TimelineRecorder()
        recorder.record(0, placed((0, 64, 0), "stone"))
        recorder.record(2, expected((0, 64, 0), "stone"))
        recorder.to_spec("stone stays").save("tests/stone.json")
    """

    def __init__(self) -> None:
        self._steps: list[TimelineStep] = []

    @property
    def steps(self) -> list[TimelineStep]:
        """Recorded steps in tick order."""
        return list(self._steps)

    def record(self, tick: int, action: RecordedAction) -> None:
        """Append ``action`` at ``tick``.

        Raises:
            ValueError: If ``tick`` is earlier than the last recorded tick.
        """
        if self._steps and tick < self._steps[-1].tick:
            msg = f"cannot record tick {tick} after tick {self._steps[-1].tick}"
            raise ValueError(msg)
        if not self._steps or self._steps[-1].tick != tick:
            self._steps.append(TimelineStep(tick=tick))
        self._steps[-1].actions.append(action)

    def clear(self) -> None:
        """Forget everything recorded so far."""
        self._steps.clear()

    def to_spec(
        self,
        name: str,
        description: str | None = None,
        cleanup: CleanupRegion | None = None,
    ) -> TestSpec:
        """Build a test whose timeline replays the recording.

        Ticks are rebased so the first recorded step runs at tick 0.
        Expected blocks of one step are merged into a single assertion.
        """
        base = self._steps[0].tick if self._steps else 0
        entries: list[TimelineEntry] = []
        for step in self._steps:
            tick = step.tick - base
            checks: list[BlockCheck] = []
            for action in step.actions:
                if action.type is RecordedActionType.PLACE:
                    entries.append(TimelineEntry(
                        tick=tick,
                        action=Place(pos=action.pos, block=BlockSpec.parse(action.block)),
                    ))
                elif action.type is RecordedActionType.REMOVE:
                    entries.append(TimelineEntry(tick=tick, action=Remove(pos=action.pos)))
                else:
                    checks.append(BlockCheck(pos=action.pos, block=BlockSpec.parse(action.block)))
            if checks:
                entries.append(TimelineEntry(tick=tick, action=Assert(checks=tuple(checks))))

        logger.info("Recorded test %s: %d entries", name, len(entries))
        return TestSpec(
            name=name,
            description=description,
            timeline=tuple(entries),
            cleanup=cleanup,
        )


class RecordingObserver(ExecutionObserver):
    """Captures an executed run into a :class:`TimelineRecorder`.

    Placements, removals and confirmed checks are recorded at their
    declared positions, so the recording of a run can be saved as a test
    that replays it::

        observer = RecordingObserver()
        TestExecutor(session, observer=observer).run(spec)
        observer.recorder.to_spec(f"{spec.name} (recorded)").save(path)
    """

    def __init__(self, recorder: TimelineRecorder | None = None) -> None:
        self.recorder = recorder or TimelineRecorder()

    def test_started(self, spec: TestSpec, max_tick: int) -> None:
        self.recorder.clear()

    def block_set(self, tick: int, pos: Position, block: str) -> None:
        if block == "air":
            self.recorder.record(tick, removed(pos))
        else:
            self.recorder.record(tick, placed(pos, block))

    def block_confirmed(self, tick: int, pos: Position, block: str) -> None:
        self.recorder.record(tick, expected(pos, block))
