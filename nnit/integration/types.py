"""Data classes and exceptions for the integration harness."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Outcome(str, Enum):
    """Outcome of one scenario run."""

    PASS = "PASS"
    FAIL = "FAIL"
    ERROR = "ERROR"


# ---------------------------------------------------------------------------
# Result data classes
# ---------------------------------------------------------------------------

@dataclass
class ScenarioResult:
    """Result of running one ``@run_as_test`` method once."""

    test_class: str
    method: str
    status: Outcome
    duration: float = 0.0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == Outcome.PASS


@dataclass
class RunSummary:
    """All results of one runner invocation."""

    results: list[ScenarioResult] = field(default_factory=list)
    aborted: bool = False

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return len(self.results) - self.passed

    @property
    def ok(self) -> bool:
        """True when every scenario passed and the run was not aborted."""
        return not self.aborted and self.failed == 0


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class FailedTestException(AssertionError):
    """Raised by assertions; the scenario is reported as failed and the run continues."""


class ArtifactError(OSError):
    """Raised when a model artifact cannot be downloaded or extracted.

    Fatal: the runner aborts the remaining scenarios.
    """
