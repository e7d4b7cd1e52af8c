# aggregate.py
# The fan-in gate: N prerequisite jobs in, one pass/fail decision out.
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Union

from .model import AggregateOutcome, JobResult, Outcome, outcome_from_result, worst


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class GateError(Exception):
    """
    Why a gate did not pass.

    Every subclass collapses into the same Fail decision; the distinction
    only feeds the log line.
    """
    jobs: List[str] = field(default_factory=list)
    message: str = ""

    def __str__(self) -> str:
        if self.jobs:
            return f"{self.message}: {', '.join(self.jobs)}"
        return self.message


@dataclass
class PrerequisiteFailure(GateError):
    message: str = "prerequisite job(s) failed"


@dataclass
class PrerequisiteIncomplete(GateError):
    message: str = "prerequisite job(s) did not succeed"


@dataclass
class ResultsUnavailable(PrerequisiteIncomplete):
    message: str = "prerequisite results could not be read"


ResultsInput = Union[Iterable[JobResult], Mapping[str, Union[JobResult, Outcome, str]]]


def _normalize(results: ResultsInput) -> dict[str, Outcome]:
    """
    Accept a list of JobResult or a name -> JobResult/Outcome/str mapping.

    A job reported more than once keeps its worst outcome. Unknown
    strings count as cancelled.
    """
    if isinstance(results, Mapping):
        pairs = [
            (name, value.outcome if isinstance(value, JobResult) else outcome_from_result(value))
            for name, value in results.items()
        ]
    else:
        pairs = [(r.job, r.outcome) for r in results]

    out: dict[str, Outcome] = {}
    for name, outcome in pairs:
        out[name] = worst(out[name], outcome) if name in out else outcome
    return out


# ----------------------------------------------------------------------
# Aggregator
# ----------------------------------------------------------------------

class AggregatorState(str, Enum):
    EVALUATING = "evaluating"
    DECIDED = "decided"


class Aggregator:
    """
    Fail-closed fold over the results of a declared set of prerequisites.

    The decision is taken once; later calls to `decide()` return it again.
    Results for jobs outside `required` are ignored, and a required job
    with no result counts as incomplete.
    """

    def __init__(self, required: Iterable[str], results: ResultsInput):
        self.required: tuple[str, ...] = tuple(dict.fromkeys(required))
        self._outcomes = _normalize(results)
        self.state = AggregatorState.EVALUATING
        self._decision: Optional[AggregateOutcome] = None

    def decide(self) -> AggregateOutcome:
        if self._decision is not None:
            return self._decision

        failed: list[str] = []
        incomplete: list[str] = []
        for name in self.required:
            outcome = self._outcomes.get(name)
            if outcome is Outcome.SUCCESS:
                continue
            if outcome is Outcome.FAILURE:
                failed.append(name)
            else:
                incomplete.append(name)

        error: Optional[GateError] = None
        if not self.required:
            error = PrerequisiteIncomplete(message="no prerequisite jobs declared")
        elif failed:
            error = PrerequisiteFailure(jobs=sorted(failed))
        elif incomplete:
            error = PrerequisiteIncomplete(jobs=sorted(incomplete))

        if error is None:
            reason = f"all {len(self.required)} prerequisite job(s) succeeded"
        else:
            reason = str(error)
            # Report incomplete jobs alongside failures
            if failed and incomplete:
                reason += f"; did not succeed: {', '.join(sorted(incomplete))}"

        self._decision = AggregateOutcome(
            passed=error is None,
            reason=reason,
            failed=tuple(sorted(failed)),
            incomplete=tuple(sorted(incomplete)),
            error=error,
        )
        self.state = AggregatorState.DECIDED
        return self._decision


def aggregate(required: Iterable[str], results: ResultsInput) -> AggregateOutcome:
    """Shortcut: Aggregator(required, results).decide()."""
    return Aggregator(required, results).decide()


def unavailable(reason: str) -> AggregateOutcome:
    """Decision for a gate whose prerequisite results could not be read."""
    error = ResultsUnavailable(message=f"prerequisite results could not be read ({reason})")
    return AggregateOutcome(passed=False, reason=str(error), error=error)
