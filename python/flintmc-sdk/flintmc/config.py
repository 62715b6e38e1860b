"""Timing configuration for the test engine.

Every delay, timeout and retry count the engine uses lives in
:class:`TimingConfig`. The defaults are tuned for a local server; CI
machines under load may want longer poll windows, which can be supplied
as a JSON file (see :meth:`TimingConfig.load`).
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Self

logger = logging.getLogger(__name__)


def _coerce(key: str, kind: object, value: object) -> object:
    """Check ``value`` against the declared field type of ``key``."""
    if kind in ("bool", bool):
        if isinstance(value, bool):
            return value
    elif not isinstance(value, bool):
        if kind in ("float", float) and isinstance(value, (int, float)):
            return float(value)
        if kind in ("int", int):
            if isinstance(value, int):
                return value
            # 25.0 from a JSON writer is fine, 25.5 is not
            if isinstance(value, float) and value.is_integer():
                return int(value)
    msg = f"{key} must be {kind} (got {value!r})"
    raise ValueError(msg)


@dataclass(frozen=True)
class TimingConfig:
    """Delays (milliseconds), timeouts (seconds) and retry counts.

    Attributes:
        command_delay_ms: Pause after ``tick freeze`` before the first action.
        action_delay_ms: Pause after each place/fill/remove command.
        place_each_delay_ms: Pause between the commands of a ``place_each``.
        cleanup_delay_ms: Pause after clearing the cleanup region.
        block_poll_attempts: Probes per assertion check before giving up.
        block_poll_delay_ms: Pause between two probes of the same check.
        chat_drain_timeout_ms: Receive window used while draining stale chat.
        chat_poll_timeout_ms: Receive window of one chat poll.
        gametime_query_timeout_s: Bound on waiting for ``The time is``.
        tick_step_timeout_s: Bound on waiting for a single step to land.
        tick_step_poll_ms: Pause between gametime reads after a step.
        sprint_timeout_s: Bound on waiting for ``Sprint completed``.
        min_retry_delay_ms: Pacing value returned when sprint timing is unknown.
        sprint_idle_ticks: Skip runs of empty ticks with one sprint.
    """
    command_delay_ms: int = 100
    action_delay_ms: int = 100
    place_each_delay_ms: int = 10
    cleanup_delay_ms: int = 200
    block_poll_attempts: int = 10
    block_poll_delay_ms: int = 50
    chat_drain_timeout_ms: int = 10
    chat_poll_timeout_ms: int = 100
    gametime_query_timeout_s: float = 5.0
    tick_step_timeout_s: float = 5.0
    tick_step_poll_ms: int = 50
    sprint_timeout_s: float = 30.0
    min_retry_delay_ms: int = 200
    sprint_idle_ticks: bool = False

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool):
                continue
            if value < 0:
                msg = f"{f.name} must not be negative (got {value})"
                raise ValueError(msg)
        if self.block_poll_attempts < 1:
            msg = f"block_poll_attempts must be at least 1 (got {self.block_poll_attempts})"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Self:
        """Build a config from a dict, keeping defaults for missing keys.

        Raises:
            ValueError: On an unknown key or an invalid value.
        """
        if not isinstance(data, dict):
            msg = f"timing config must be a JSON object (got {type(data).__name__})"
            raise ValueError(msg)
        known = {f.name: f for f in fields(cls)}
        kwargs: dict[str, object] = {}
        for key, value in data.items():
            f = known.get(key)
            if f is None:
                msg = f"unknown timing option: {key!r}"
                raise ValueError(msg)
            kwargs[key] = _coerce(key, f.type, value)
        return cls(**kwargs)  # type: ignore[arg-type]

    @classmethod
    def load(cls, path: str | Path) -> Self:
        """Load a config from a JSON file.

        Raises FileNotFoundError if the file does not exist.
        """
        p = Path(path)
        if not p.exists():
            msg = f"Timing config file not found: {p}"
            raise FileNotFoundError(msg)
        data: dict[str, object] = json.loads(p.read_text(encoding="utf-8"))
        config = cls.from_dict(data)
        logger.debug("Loaded timing config from %s: %s", p, config)
        return config
