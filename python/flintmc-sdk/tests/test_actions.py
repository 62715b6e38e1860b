"""Tests for flintmc.actions -- command translation and assertion checks."""

from __future__ import annotations

import pytest

from flintmc.actions import ActionTranslator, fill_command, setblock_command
from flintmc.errors import BlockMismatch, PropertyMismatch
from flintmc.reporting import ExecutionObserver
from flintmc.timeline import (
    Assert,
    BlockCheck,
    BlockSpec,
    Fill,
    Pause,
    Place,
    PlaceEach,
    Placement,
    Remove,
    TimelineEntry,
)


class _Recorder(ExecutionObserver):
    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []
        self.passed: list[tuple[int, tuple[int, int, int], str]] = []
        self.blocks: list[tuple[int, tuple[int, int, int], str]] = []
        self.confirmed: list[tuple[int, tuple[int, int, int], str]] = []

    def command_sent(self, tick: int, description: str) -> None:
        self.sent.append((tick, description))

    def check_passed(self, tick, pos, description: str) -> None:
        self.passed.append((tick, pos, description))

    def block_set(self, tick, pos, block: str) -> None:
        self.blocks.append((tick, pos, block))

    def block_confirmed(self, tick, pos, block: str) -> None:
        self.confirmed.append((tick, pos, block))


@pytest.fixture
def observer() -> _Recorder:
    return _Recorder()


@pytest.fixture
def translator(session, config, clock, observer) -> ActionTranslator:
    return ActionTranslator(session, config, clock, observer)


def _entry(action, tick: int = 0) -> TimelineEntry:
    return TimelineEntry(tick=tick, action=action)


class TestCommandBuilders:
    """Command text formatting."""

    def test_setblock(self) -> None:
        assert setblock_command((1, -2, 3), "stone") == "setblock 1 -2 3 stone"

    def test_fill(self) -> None:
        assert fill_command((0, 0, 0), (2, 1, 2), "air") == "fill 0 0 0 2 1 2 air"


class TestPlacement:
    """Placement variants send commands with offset applied."""

    def test_place_with_offset_and_state(self, translator, session, clock) -> None:
        block = BlockSpec("minecraft:lever", {"powered": True})
        result = translator.execute(0, _entry(Place((1, 64, 1), block)), offset=(100, 0, -10))
        assert result is False
        assert session.commands == ["setblock 101 64 -9 minecraft:lever[powered=true]"]
        assert clock.sleeps == [0.1]

    def test_place_each_uses_short_delay(self, translator, session, clock) -> None:
        action = PlaceEach(blocks=(
            Placement((0, 0, 0), BlockSpec("stone")),
            Placement((1, 0, 0), BlockSpec("dirt")),
            Placement((2, 0, 0), BlockSpec("sand")),
        ))
        translator.execute(0, _entry(action))
        assert session.commands == [
            "setblock 0 0 0 stone",
            "setblock 1 0 0 dirt",
            "setblock 2 0 0 sand",
        ]
        assert clock.sleeps == [0.01, 0.01, 0.01]

    def test_fill_offsets_both_corners(self, translator, session) -> None:
        action = Fill((0, 0, 0), (3, 1, 3), BlockSpec("glass"))
        translator.execute(0, _entry(action), offset=(10, 60, 10))
        assert session.commands == ["fill 10 60 10 13 61 13 glass"]

    def test_remove_places_air(self, translator, session) -> None:
        translator.execute(0, _entry(Remove((4, 5, 6))))
        assert session.commands == ["setblock 4 5 6 air"]

    def test_pause_sends_nothing(self, translator, session) -> None:
        assert translator.execute(0, _entry(Pause())) is False
        assert session.commands == []

    def test_observer_sees_declared_positions(self, translator, observer) -> None:
        translator.execute(2, _entry(Place((1, 2, 3), BlockSpec("stone"))), offset=(50, 50, 50))
        assert observer.sent == [(2, "place at [1, 2, 3] = stone")]

    def test_block_set_reports_placements_and_removals(self, translator, observer) -> None:
        translator.execute(0, _entry(Place((1, 2, 3), BlockSpec("stone"))), offset=(5, 5, 5))
        translator.execute(0, _entry(PlaceEach(blocks=(Placement((0, 0, 0), BlockSpec("dirt")),))))
        translator.execute(1, _entry(Remove((1, 2, 3)), 1))
        translator.execute(1, _entry(Fill((0, 0, 0), (1, 1, 1), BlockSpec("glass")), 1))
        assert observer.blocks == [
            (0, (1, 2, 3), "stone"),
            (0, (0, 0, 0), "dirt"),
            (1, (1, 2, 3), "air"),
        ]

    def test_block_confirmed_once_per_check(self, translator, session, observer) -> None:
        session.blocks[(0, 0, 0)] = "Lever { facing: North, powered: true }"
        session.blocks[(1, 0, 0)] = "Stone"
        action = Assert(checks=(
            BlockCheck((0, 0, 0), BlockSpec("lever", {"facing": "north", "powered": True})),
            BlockCheck((1, 0, 0), BlockSpec("stone")),
        ))
        translator.execute(2, _entry(action, 2))
        assert observer.confirmed == [
            (2, (0, 0, 0), "lever[facing=north,powered=true]"),
            (2, (1, 0, 0), "stone"),
        ]


class TestAssertions:
    """Polling checks against the expected blocks."""

    def test_match_returns_true(self, translator, session, observer) -> None:
        session.blocks[(0, 1, 0)] = "Stone"
        action = Assert(checks=(BlockCheck((0, 1, 0), BlockSpec("minecraft:stone")),))
        assert translator.execute(3, _entry(action, 3)) is True
        assert observer.passed == [(3, (0, 1, 0), "is minecraft:stone")]

    def test_reads_world_position_with_offset(self, translator, session) -> None:
        session.blocks[(100, 65, 100)] = "Stone"
        action = Assert(checks=(BlockCheck((0, 1, 0), BlockSpec("stone")),))
        assert translator.execute(0, _entry(action), offset=(100, 64, 100))
        assert session.get_block_calls == [(100, 65, 100)]

    def test_retries_until_block_appears(self, translator, session) -> None:
        session.scripted_reads[(0, 0, 0)] = [None, "Air", "OakPlanks"]
        action = Assert(checks=(BlockCheck((0, 0, 0), BlockSpec("oak_planks")),))
        assert translator.execute(0, _entry(action))
        assert len(session.get_block_calls) == 3

    def test_mismatch_after_all_attempts(self, translator, session, config) -> None:
        session.blocks[(5, 6, 7)] = "Air"
        action = Assert(checks=(BlockCheck((5, 6, 7), BlockSpec("stone")),))
        with pytest.raises(BlockMismatch) as exc_info:
            translator.execute(4, _entry(action, 4), offset=(1, 1, 1))
        exc = exc_info.value
        assert exc.tick == 4
        assert exc.pos == (5, 6, 7)
        assert exc.actual is None
        assert str(exc) == "Block at [5, 6, 7] is not stone (got None)"
        assert len(session.get_block_calls) == config.block_poll_attempts

    def test_mismatch_message_names_observed_value(self, translator, session) -> None:
        session.blocks[(0, 0, 0)] = "Air"
        action = Assert(checks=(BlockCheck((0, 0, 0), BlockSpec("stone")),))
        with pytest.raises(BlockMismatch, match=r"is not stone \(got 'Air'\)"):
            translator.execute(0, _entry(action))

    def test_property_match(self, translator, session, observer) -> None:
        session.blocks[(0, 0, 0)] = "Lever { facing: North, powered: true }"
        check = BlockCheck((0, 0, 0), BlockSpec("lever", {"powered": True}))
        assert translator.execute(1, _entry(Assert(checks=(check,)), 1))
        assert observer.passed == [(1, (0, 0, 0), "state powered = true")]

    def test_property_mismatch(self, translator, session) -> None:
        session.blocks[(0, 0, 0)] = "Lever { facing: North, powered: false }"
        check = BlockCheck((0, 0, 0), BlockSpec("lever", {"powered": True}))
        with pytest.raises(PropertyMismatch) as exc_info:
            translator.execute(1, _entry(Assert(checks=(check,)), 1))
        assert exc_info.value.prop == "powered"
        assert "property 'powered' is not 'true'" in str(exc_info.value)

    def test_property_read_from_session_when_rendering_lacks_it(self, translator, session) -> None:
        session.blocks[(10, 0, 10)] = "Lever"
        session.state_properties[((10, 0, 10), "powered")] = " true "
        check = BlockCheck((0, 0, 0), BlockSpec("lever", {"powered": True}))
        assert translator.execute(1, _entry(Assert(checks=(check,)), 1), offset=(10, 0, 10))
        assert session.property_calls == [((10, 0, 10), "powered")]

    def test_property_mismatch_reports_session_value(self, translator, session) -> None:
        session.blocks[(0, 0, 0)] = "Lever"
        session.state_properties[((0, 0, 0), "powered")] = "false"
        check = BlockCheck((0, 0, 0), BlockSpec("lever", {"powered": True}))
        with pytest.raises(PropertyMismatch) as exc_info:
            translator.execute(1, _entry(Assert(checks=(check,)), 1))
        assert exc_info.value.actual == "false"

    def test_rendering_match_skips_session_read(self, translator, session) -> None:
        session.blocks[(0, 0, 0)] = "Lever { powered: true }"
        check = BlockCheck((0, 0, 0), BlockSpec("lever", {"powered": True}))
        translator.execute(1, _entry(Assert(checks=(check,)), 1))
        assert session.property_calls == []

    def test_first_failing_check_stops_the_entry(self, translator, session) -> None:
        session.blocks[(0, 0, 0)] = "Air"
        session.blocks[(1, 0, 0)] = "Stone"
        action = Assert(checks=(
            BlockCheck((0, 0, 0), BlockSpec("stone")),
            BlockCheck((1, 0, 0), BlockSpec("stone")),
        ))
        with pytest.raises(BlockMismatch):
            translator.execute(0, _entry(action))
        assert (1, 0, 0) not in session.get_block_calls

    def test_unsupported_action(self, translator) -> None:
        with pytest.raises(TypeError, match="Unsupported action"):
            translator.execute(0, TimelineEntry(tick=0, action="explode"))  # type: ignore[arg-type]
