"""Test definitions: timeline entries, action variants and test results.

A test file describes *what* should happen at each tick, not how the
engine talks to the server. The executor turns each
:class:`TimelineEntry` into server commands or block probes.

All types are JSON-serializable so recorded timelines can be written
back as test files.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import ClassVar, Self

from flintmc.errors import SpecError

logger = logging.getLogger(__name__)

Position = tuple[int, int, int]

ORIGIN: Position = (0, 0, 0)

# "minecraft:lever[facing=north,powered=true]"
_BLOCK_RE = re.compile(r"^\s*([^\[\]\s]+)\s*(?:\[(.*)\])?\s*$")


def offset_position(pos: Position, offset: Position) -> Position:
    """Translate a declared position into world space."""
    return (pos[0] + offset[0], pos[1] + offset[1], pos[2] + offset[2])


def format_value(value: object) -> str:
    """Render a property value the way commands and block states spell it."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _parse_pos(raw: object, where: str) -> Position:
    if (
        not isinstance(raw, (list, tuple))
        or len(raw) != 3
        or not all(isinstance(c, int) and not isinstance(c, bool) for c in raw)
    ):
        msg = f"{where}: position must be three integers (got {raw!r})"
        raise SpecError(msg)
    return (raw[0], raw[1], raw[2])


def _require(data: dict[str, object], key: str, where: str) -> object:
    if key not in data:
        msg = f"{where}: missing required field '{key}'"
        raise SpecError(msg)
    return data[key]


# ---------------------------------------------------------------------------
# BlockSpec
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BlockSpec:
    """A block id with optional state properties.

    ``properties`` maps a state name to its expected value; values keep
    their JSON type (``True``, ``3``, ``"north"``).
    """
    id: str
    properties: dict[str, object] = field(default_factory=dict)

    def to_command(self) -> str:
        """Render as a command argument, e.g. ``lever[powered=true]``."""
        if not self.properties:
            return self.id
        state = ",".join(f"{k}={format_value(v)}" for k, v in self.properties.items())
        return f"{self.id}[{state}]"

    def to_dict(self) -> object:
        """Serialize to the compact string form when there are no properties."""
        if not self.properties:
            return self.id
        return {"id": self.id, "properties": dict(self.properties)}

    @classmethod
    def parse(cls, raw: object, where: str = "block") -> Self:
        """Parse a block from a string (``id[k=v,...]``) or an object.

        Raises:
            SpecError: If the block is neither form or has an empty id.
        """
        if isinstance(raw, dict):
            block_id = str(_require(raw, "id", where)).strip()
            raw_props = raw.get("properties", {})
            if not isinstance(raw_props, dict):
                msg = f"{where}: properties must be an object (got {raw_props!r})"
                raise SpecError(msg)
            if not block_id:
                msg = f"{where}: block id is empty"
                raise SpecError(msg)
            return cls(id=block_id, properties=dict(raw_props))

        if isinstance(raw, str):
            m = _BLOCK_RE.match(raw)
            if m is None:
                msg = f"{where}: cannot parse block {raw!r}"
                raise SpecError(msg)
            properties: dict[str, object] = {}
            if m.group(2):
                for pair in m.group(2).split(","):
                    name, sep, value = pair.partition("=")
                    if not sep or not name.strip():
                        msg = f"{where}: malformed block state {pair!r} in {raw!r}"
                        raise SpecError(msg)
                    properties[name.strip()] = value.strip()
            return cls(id=m.group(1), properties=properties)

        msg = f"{where}: block must be a string or an object (got {raw!r})"
        raise SpecError(msg)


# ---------------------------------------------------------------------------
# Action variants
# ---------------------------------------------------------------------------

class ActionType(Enum):
    """The ``do`` tag of a timeline entry."""
    PLACE = "place"
    PLACE_EACH = "place_each"
    FILL = "fill"
    REMOVE = "remove"
    ASSERT = "assert"
    PAUSE = "pause"


@dataclass(frozen=True)
class Place:
    """Set one block."""
    kind: ClassVar[ActionType] = ActionType.PLACE
    pos: Position
    block: BlockSpec

    def to_dict(self) -> dict[str, object]:
        return {"pos": list(self.pos), "block": self.block.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, object], where: str) -> Self:
        return cls(
            pos=_parse_pos(_require(data, "pos", where), where),
            block=BlockSpec.parse(_require(data, "block", where), where),
        )


@dataclass(frozen=True)
class Placement:
    """One item of a :class:`PlaceEach`."""
    pos: Position
    block: BlockSpec


@dataclass(frozen=True)
class PlaceEach:
    """Set several blocks as a burst of commands."""
    kind: ClassVar[ActionType] = ActionType.PLACE_EACH
    blocks: tuple[Placement, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "blocks": [
                {"pos": list(p.pos), "block": p.block.to_dict()} for p in self.blocks
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object], where: str) -> Self:
        raw_blocks = _require(data, "blocks", where)
        if not isinstance(raw_blocks, list):
            msg = f"{where}: blocks must be a list"
            raise SpecError(msg)
        placements = []
        for i, item in enumerate(raw_blocks):
            item_where = f"{where} blocks[{i}]"
            if not isinstance(item, dict):
                msg = f"{item_where}: expected an object"
                raise SpecError(msg)
            placements.append(Placement(
                pos=_parse_pos(_require(item, "pos", item_where), item_where),
                block=BlockSpec.parse(_require(item, "block", item_where), item_where),
            ))
        return cls(blocks=tuple(placements))


@dataclass(frozen=True)
class Fill:
    """Fill the box between two corners with one block."""
    kind: ClassVar[ActionType] = ActionType.FILL
    region_min: Position
    region_max: Position
    block: BlockSpec

    def to_dict(self) -> dict[str, object]:
        return {
            "region": [list(self.region_min), list(self.region_max)],
            "with": self.block.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object], where: str) -> Self:
        region = _require(data, "region", where)
        if not isinstance(region, list) or len(region) != 2:
            msg = f"{where}: region must be a pair of positions"
            raise SpecError(msg)
        return cls(
            region_min=_parse_pos(region[0], where),
            region_max=_parse_pos(region[1], where),
            block=BlockSpec.parse(_require(data, "with", where), where),
        )


@dataclass(frozen=True)
class Remove:
    """Replace one block with air."""
    kind: ClassVar[ActionType] = ActionType.REMOVE
    pos: Position

    def to_dict(self) -> dict[str, object]:
        return {"pos": list(self.pos)}

    @classmethod
    def from_dict(cls, data: dict[str, object], where: str) -> Self:
        return cls(pos=_parse_pos(_require(data, "pos", where), where))


@dataclass(frozen=True)
class BlockCheck:
    """Expect ``block`` at ``pos``."""
    pos: Position
    block: BlockSpec


@dataclass(frozen=True)
class Assert:
    """Check one or more blocks against their expected state."""
    kind: ClassVar[ActionType] = ActionType.ASSERT
    checks: tuple[BlockCheck, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "checks": [
                {"pos": list(c.pos), "is": c.block.to_dict()} for c in self.checks
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object], where: str) -> Self:
        raw_checks = _require(data, "checks", where)
        if not isinstance(raw_checks, list):
            msg = f"{where}: checks must be a list"
            raise SpecError(msg)
        checks = []
        for i, item in enumerate(raw_checks):
            item_where = f"{where} checks[{i}]"
            if not isinstance(item, dict):
                msg = f"{item_where}: expected an object"
                raise SpecError(msg)
            checks.append(BlockCheck(
                pos=_parse_pos(_require(item, "pos", item_where), item_where),
                block=BlockSpec.parse(_require(item, "is", item_where), item_where),
            ))
        return cls(checks=tuple(checks))


@dataclass(frozen=True)
class Pause:
    """Stop at a breakpoint until the operator answers in chat."""
    kind: ClassVar[ActionType] = ActionType.PAUSE
    reason: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {"reason": self.reason} if self.reason else {}

    @classmethod
    def from_dict(cls, data: dict[str, object], where: str) -> Self:
        raw = data.get("reason")
        return cls(reason=str(raw) if raw is not None else None)


Action = Place | PlaceEach | Fill | Remove | Assert | Pause

_ACTION_TYPES: dict[ActionType, type] = {
    ActionType.PLACE: Place,
    ActionType.PLACE_EACH: PlaceEach,
    ActionType.FILL: Fill,
    ActionType.REMOVE: Remove,
    ActionType.ASSERT: Assert,
    ActionType.PAUSE: Pause,
}


# ---------------------------------------------------------------------------
# TimelineEntry / CleanupRegion / TestSpec
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TimelineEntry:
    """An action scheduled at a tick."""
    tick: int
    action: Action

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        result: dict[str, object] = {"at": self.tick, "do": self.action.kind.value}
        result.update(self.action.to_dict())
        return result

    @classmethod
    def from_dict(cls, data: dict[str, object], index: int = 0) -> Self:
        """Parse an entry; ``at`` and ``do`` may be spelled ``tick`` and ``action``."""
        where = f"timeline[{index}]"
        raw_tick = data.get("at", data.get("tick"))
        if not isinstance(raw_tick, int) or isinstance(raw_tick, bool) or raw_tick < 0:
            msg = f"{where}: tick must be a non-negative integer (got {raw_tick!r})"
            raise SpecError(msg)
        raw_kind = data.get("do", data.get("action"))
        try:
            kind = ActionType(str(raw_kind))
        except ValueError:
            msg = f"{where}: unknown action {raw_kind!r}"
            raise SpecError(msg) from None
        action = _ACTION_TYPES[kind].from_dict(data, where)
        return cls(tick=raw_tick, action=action)


@dataclass(frozen=True)
class CleanupRegion:
    """Box cleared to air before and after a test."""
    from_pos: Position
    to_pos: Position

    def to_dict(self) -> dict[str, object]:
        return {"from": list(self.from_pos), "to": list(self.to_pos)}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Self:
        return cls(
            from_pos=_parse_pos(_require(data, "from", "cleanup"), "cleanup"),
            to_pos=_parse_pos(_require(data, "to", "cleanup"), "cleanup"),
        )


@dataclass(frozen=True)
class TestSpec:
    """A complete test: name, timeline and optional cleanup region."""
    __test__: ClassVar[bool] = False

    name: str
    description: str | None = None
    timeline: tuple[TimelineEntry, ...] = ()
    cleanup: CleanupRegion | None = None

    @property
    def max_tick(self) -> int:
        """Largest scheduled tick, 0 for an empty timeline."""
        return max((e.tick for e in self.timeline), default=0)

    def bucket_by_tick(self) -> dict[int, list[TimelineEntry]]:
        """Group entries by tick, keeping declaration order within a tick."""
        buckets: dict[int, list[TimelineEntry]] = {}
        for entry in self.timeline:
            buckets.setdefault(entry.tick, []).append(entry)
        return buckets

    def validate(self) -> list[str]:
        """Check the test for suspicious but loadable content.

        Returns a list of warning strings. An empty list means no issues.
        """
        warnings: list[str] = []
        if not self.timeline:
            warnings.append(f"[{self.name}] Timeline is empty")
        if not any(isinstance(e.action, Assert) for e in self.timeline):
            warnings.append(f"[{self.name}] Timeline has no assertions")
        for i, entry in enumerate(self.timeline):
            action = entry.action
            if isinstance(action, PlaceEach) and not action.blocks:
                warnings.append(f"[{self.name}] timeline[{i}] place_each has no blocks")
            elif isinstance(action, Assert) and not action.checks:
                warnings.append(f"[{self.name}] timeline[{i}] assert has no checks")
            elif isinstance(action, Fill):
                lo, hi = action.region_min, action.region_max
                if any(a > b for a, b in zip(lo, hi)):
                    warnings.append(
                        f"[{self.name}] timeline[{i}] fill region is inverted: "
                        f"{list(lo)} > {list(hi)}"
                    )
        return warnings

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        result: dict[str, object] = {"name": self.name}
        if self.description is not None:
            result["description"] = self.description
        if self.cleanup is not None:
            result["cleanup"] = self.cleanup.to_dict()
        result["timeline"] = [e.to_dict() for e in self.timeline]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Self:
        """Deserialize from a plain dict.

        Raises:
            SpecError: If a required field is missing or malformed.
        """
        if not isinstance(data, dict):
            msg = "test file must contain a JSON object"
            raise SpecError(msg)
        name = str(_require(data, "name", "test"))
        raw_desc = data.get("description")
        raw_timeline = data.get("timeline", data.get("actions", []))
        if not isinstance(raw_timeline, list):
            msg = "timeline must be a list"
            raise SpecError(msg)
        entries = []
        for i, raw in enumerate(raw_timeline):
            if not isinstance(raw, dict):
                msg = f"timeline[{i}]: expected an object"
                raise SpecError(msg)
            entries.append(TimelineEntry.from_dict(raw, i))
        raw_cleanup = data.get("cleanup")
        cleanup: CleanupRegion | None = None
        if isinstance(raw_cleanup, dict):
            cleanup = CleanupRegion.from_dict(raw_cleanup)
        elif raw_cleanup is not None:
            msg = "cleanup must be an object with 'from' and 'to'"
            raise SpecError(msg)
        return cls(
            name=name,
            description=str(raw_desc) if raw_desc is not None else None,
            timeline=tuple(entries),
            cleanup=cleanup,
        )

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Deserialize from a JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as exc:
            raise SpecError(f"invalid test JSON: {exc}") from exc
        return cls.from_dict(data)

    def save(self, path: str | Path) -> None:
        """Save this test to a JSON file.

        Creates parent directories if they don't exist.
        """
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(self.to_json(), encoding="utf-8")

    @classmethod
    def load(cls, path: str | Path) -> Self:
        """Load a test from a JSON file.

        Raises FileNotFoundError if the file does not exist.
        """
        p = Path(path)
        if not p.exists():
            msg = f"Test file not found: {p}"
            raise FileNotFoundError(msg)
        spec = cls.from_json(p.read_text(encoding="utf-8"))
        for warning in spec.validate():
            logger.warning("Test validation: %s", warning)
        return spec


# ---------------------------------------------------------------------------
# TestResult
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestResult:
    """Outcome of one test run.

    Attributes:
        test_name: Name of the test that ran.
        passed: Number of assert entries whose checks all matched.
        failed: Number of assert entries that failed.
        failures: Failure messages, in the order they occurred.
    """
    __test__: ClassVar[bool] = False

    test_name: str
    passed: int
    failed: int
    failures: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        """True if no assertion failed."""
        return self.failed == 0

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        return {
            "test_name": self.test_name,
            "passed": self.passed,
            "failed": self.failed,
            "success": self.success,
            "failures": list(self.failures),
        }
