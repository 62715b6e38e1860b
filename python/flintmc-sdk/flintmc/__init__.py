"""FlintMC SDK -- tick-by-tick tests against a live Minecraft server.

Provides the test file format, the timeline executor, tick and
breakpoint control over the chat channel, and the suite runner.
"""

__version__ = "0.1.0"

# Re-export key types for convenience.
from flintmc.config import TimingConfig
from flintmc.errors import (
    AssertionFailure,
    BlockMismatch,
    FlintError,
    PropertyMismatch,
    RunCancelled,
    SpecError,
    TickTimeoutError,
    TransportError,
)
from flintmc.executor import TestExecutor
from flintmc.session import GameSession
from flintmc.timeline import TestResult, TestSpec

__all__ = [
    "AssertionFailure",
    "BlockMismatch",
    "FlintError",
    "GameSession",
    "PropertyMismatch",
    "RunCancelled",
    "SpecError",
    "TestExecutor",
    "TestResult",
    "TestSpec",
    "TickTimeoutError",
    "TimingConfig",
    "TransportError",
]
