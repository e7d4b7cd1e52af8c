# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Step:
    """A single command (step) inside a CI job."""
    name: str
    run: str
    cwd: str | None = None


@dataclass
class Job:
    """
    A CI job: an execution context, ordered steps and dependencies.

    Gate jobs (`gate=True`) carry no steps; the runner evaluates them with
    the Aggregator over the results of their `needs`.
    """
    name: str
    steps: list[Step]

    # Names of jobs that must reach a terminal state before this one
    needs: list[str] = field(default_factory=list)

    # Execution context: container image reference, None runs on the host
    container: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)

    # Axis values this job was expanded from (empty for plain jobs)
    matrix: Dict[str, str] = field(default_factory=dict)

    gate: bool = False


class Outcome(str, Enum):
    """Terminal outcome of one job, spelled like `needs.<job>.result`."""

    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


# Higher is worse; used to merge conflicting reports for one job
_SEVERITY = {
    Outcome.SUCCESS: 0,
    Outcome.SKIPPED: 1,
    Outcome.CANCELLED: 2,
    Outcome.FAILURE: 3,
}


def outcome_from_result(value: str | Outcome) -> Outcome:
    """
    Map an orchestrator result string onto an Outcome.

    Anything unrecognised counts as cancelled, never as success.
    """
    if isinstance(value, Outcome):
        return value
    try:
        return Outcome(str(value).strip().lower())
    except ValueError:
        return Outcome.CANCELLED


def worst(a: Outcome, b: Outcome) -> Outcome:
    return a if _SEVERITY[a] >= _SEVERITY[b] else b


@dataclass(frozen=True)
class JobResult:
    """The terminal outcome of one Job in a given run."""
    job: str
    outcome: Outcome

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS


@dataclass(frozen=True)
class AggregateOutcome:
    """
    Single pass/fail decision derived from a full set of JobResults.

    `failed` holds prerequisites that reported Failure, `incomplete` the
    ones that were skipped, cancelled or never reported at all.
    """
    passed: bool
    reason: str
    failed: Tuple[str, ...] = ()
    incomplete: Tuple[str, ...] = ()
    error: Optional[Exception] = field(default=None, compare=False)

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    def raise_for_status(self) -> None:
        if self.error is not None:
            raise self.error
