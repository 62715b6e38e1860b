"""Suite runner: discover test files, run them, summarize.

Usage::

    from flintmc.runner import collect_test_files, run_test_files

    files = collect_test_files("tests/redstone", recursive=True)
    summary = run_test_files(executor, files)
    print(summary.summary())
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from flintmc.errors import FlintError, RunCancelled
from flintmc.executor import TestExecutor
from flintmc.timeline import ORIGIN, Position, TestResult, TestSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def collect_test_files(path: str | Path, recursive: bool = False) -> list[Path]:
    """Return the ``.json`` test files at ``path``, sorted.

    ``path`` may be a single file or a directory; subdirectories are only
    searched when ``recursive`` is set. A missing path yields an empty list.
    """
    p = Path(path)
    if p.is_file():
        return [p] if p.suffix == ".json" else []
    if not p.is_dir():
        return []
    pattern = "**/*.json" if recursive else "*.json"
    return sorted(f for f in p.glob(pattern) if f.is_file())


# ---------------------------------------------------------------------------
# SuiteSummary
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestError:
    """A test file that could not be loaded or whose run aborted."""
    __test__ = False

    path: str
    stage: str  # "load" or "run"
    message: str

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        return {"path": self.path, "stage": self.stage, "message": self.message}


@dataclass
class SuiteSummary:
    """Results of running a set of test files.

    Attributes:
        results: One result per test that ran to completion.
        errors: Tests that failed to load or aborted with a fatal error.
    """
    results: list[TestResult] = field(default_factory=list)
    errors: list[TestError] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.passed

    @property
    def all_passed(self) -> bool:
        """True if every test ran and passed."""
        return self.failed == 0 and not self.errors

    def summary(self) -> str:
        """Generate a human-readable summary of the suite run."""
        lines: list[str] = []
        lines.append("=" * 60)
        lines.append("Test Summary")
        lines.append("=" * 60)
        for r in self.results:
            status = "PASS" if r.success else "FAIL"
            lines.append(f"  [{status}] {r.test_name}")
        for e in self.errors:
            lines.append(f"  [ERROR] {e.path} ({e.stage}): {e.message}")
        lines.append("")
        lines.append(
            f"{len(self.results)} tests run: {self.passed} passed, {self.failed} failed"
            + (f", {len(self.errors)} errored" if self.errors else "")
        )
        return "\n".join(lines)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dict for JSON storage."""
        return {
            "results": [r.to_dict() for r in self.results],
            "errors": [e.to_dict() for e in self.errors],
            "passed": self.passed,
            "failed": self.failed,
            "all_passed": self.all_passed,
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def save(self, path: str | Path) -> None:
        """Save this summary to a JSON file."""
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(self.to_json(), encoding="utf-8")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def describe_error(exc: BaseException) -> str:
    """Render ``exc`` with any notes attached to it, e.g. the failing tick."""
    notes = getattr(exc, "__notes__", None)
    if not notes:
        return str(exc)
    return f"{exc} ({'; '.join(notes)})"


def run_test_files(
    executor: TestExecutor,
    files: list[Path],
    offset: Position = ORIGIN,
) -> SuiteSummary:
    """Load and run each file in order.

    A file that fails to load, or whose run aborts on a transport error
    or tick timeout, is recorded in ``errors`` and the next file runs.
    :class:`~flintmc.errors.RunCancelled` stops the whole suite.
    """
    summary = SuiteSummary()
    for path in files:
        try:
            spec = TestSpec.load(path)
        except (OSError, ValueError) as exc:
            logger.error("Failed to load test %s: %s", path, exc)
            summary.errors.append(TestError(path=str(path), stage="load", message=str(exc)))
            continue

        try:
            result = executor.run(spec, offset)
        except RunCancelled:
            raise
        except (FlintError, OSError) as exc:
            message = describe_error(exc)
            logger.error("Test execution failed: %s", message)
            summary.errors.append(TestError(path=str(path), stage="run", message=message))
            continue
        summary.results.append(result)

    logger.info(
        "Suite complete: %d passed, %d failed, %d errored",
        summary.passed, summary.failed, len(summary.errors),
    )
    return summary
