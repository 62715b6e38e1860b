"""Tests for flintmc.matching -- block id and property normalization."""

from __future__ import annotations

from flintmc.matching import (
    block_matches,
    normalize_block_id,
    normalize_observed,
    property_matches,
    property_patterns,
    state_value_matches,
)


class TestNormalization:
    """Equivalence classes of declared ids and observed renderings."""

    def test_declared_id_strips_namespace_case_and_underscores(self) -> None:
        assert normalize_block_id("minecraft:Oak_Planks") == "oakplanks"

    def test_declared_id_drops_state_suffix(self) -> None:
        assert normalize_block_id("minecraft:lever[powered=true]") == "lever"

    def test_observed_keeps_colons(self) -> None:
        """Renderings are not namespace-stripped."""
        assert normalize_observed("BlockState { name: Oak_Planks }") == "blockstate { name: oakplanks }"


class TestBlockMatches:
    """Bidirectional substring matching."""

    def test_camel_case_rendering_matches_snake_case_id(self) -> None:
        assert block_matches("OakPlanks", "oak_planks")

    def test_unrelated_block_does_not_match(self) -> None:
        assert not block_matches("stone", "oak_planks")

    def test_namespaced_expected_matches(self) -> None:
        assert block_matches("Stone", "minecraft:stone")

    def test_decorated_rendering_matches(self) -> None:
        """Prefixes and suffixes on the rendering are tolerated."""
        assert block_matches("BlockState { name: RedstoneWire, power: 15 }", "redstone_wire")

    def test_shorter_rendering_contained_in_expected_matches(self) -> None:
        assert block_matches("planks", "oak_planks")

    def test_accepted_false_positive(self) -> None:
        """A name that is a substring of an unrelated name matches (documented risk)."""
        assert block_matches("Air", "oak_stairs")

    def test_none_never_matches(self) -> None:
        assert not block_matches(None, "stone")

    def test_empty_never_matches(self) -> None:
        assert not block_matches("", "stone")
        assert not block_matches("Stone", "minecraft:")


class TestPropertyMatches:
    """Literal property patterns against a raw rendering."""

    def test_plain_pattern(self) -> None:
        assert property_matches("Lever { facing: North, powered: true }", "powered", True)

    def test_quoted_pattern(self) -> None:
        assert property_matches('Lever { facing: "north" }', "facing", "north")

    def test_underscore_numeric_pattern(self) -> None:
        assert property_matches("Water { level: _0 }", "level", 0)

    def test_case_folded(self) -> None:
        assert property_matches("Lever { Powered: TRUE }", "powered", "true")

    def test_wrong_value_fails(self) -> None:
        assert not property_matches("Lever { powered: false }", "powered", True)

    def test_missing_observation_fails(self) -> None:
        assert not property_matches(None, "powered", True)

    def test_patterns_render_json_values(self) -> None:
        assert property_patterns("powered", False) == (
            "powered: false",
            'powered: "false"',
            "powered: _false",
        )


class TestStateValueMatches:
    """A single property value read from the session."""

    def test_exact_value(self) -> None:
        assert state_value_matches("true", True)

    def test_contained_and_case_folded(self) -> None:
        assert state_value_matches("Direction::North", "north")

    def test_wrong_value_fails(self) -> None:
        assert not state_value_matches("false", True)

    def test_unknown_property_fails(self) -> None:
        assert not state_value_matches(None, True)
