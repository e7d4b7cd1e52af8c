import pytest

from cigate.aggregate import (
    Aggregator,
    AggregatorState,
    PrerequisiteFailure,
    PrerequisiteIncomplete,
    ResultsUnavailable,
    aggregate,
    unavailable,
)
from cigate.model import JobResult, Outcome

S, F, K, C = Outcome.SUCCESS, Outcome.FAILURE, Outcome.SKIPPED, Outcome.CANCELLED


def results(**outcomes):
    return [JobResult(job=name, outcome=o) for name, o in outcomes.items()]


def test_all_success_passes():
    decision = aggregate(["A", "B"], results(A=S, B=S))
    assert decision.passed
    assert decision.exit_code == 0
    assert decision.error is None
    assert "2 prerequisite" in decision.reason


def test_single_prerequisite_success_passes():
    assert aggregate(["geocoding"], results(geocoding=S)).passed


def test_any_failure_fails():
    decision = aggregate(["A", "B"], results(A=S, B=F))
    assert not decision.passed
    assert decision.exit_code == 1
    assert decision.failed == ("B",)
    assert isinstance(decision.error, PrerequisiteFailure)


@pytest.mark.parametrize("outcome", [K, C])
def test_skipped_or_cancelled_fails_closed(outcome):
    decision = aggregate(["A", "B"], results(A=S, B=outcome))
    assert not decision.passed
    assert decision.incomplete == ("B",)
    assert isinstance(decision.error, PrerequisiteIncomplete)
    assert not isinstance(decision.error, PrerequisiteFailure)


def test_no_results_recorded_fails():
    decision = aggregate(["A", "B"], [])
    assert not decision.passed
    assert decision.incomplete == ("A", "B")


def test_missing_prerequisite_result_fails():
    decision = aggregate(["A", "B"], results(A=S))
    assert not decision.passed
    assert decision.incomplete == ("B",)


def test_failure_takes_precedence_but_incomplete_is_reported():
    decision = aggregate(["A", "B", "C"], results(A=F, B=K))
    assert isinstance(decision.error, PrerequisiteFailure)
    assert decision.failed == ("A",)
    assert decision.incomplete == ("B", "C")
    assert "did not succeed: B, C" in decision.reason


def test_results_outside_required_are_ignored():
    decision = aggregate(["A"], results(A=S, other=F))
    assert decision.passed


def test_empty_required_set_fails():
    decision = aggregate([], results(A=S))
    assert not decision.passed
    assert isinstance(decision.error, PrerequisiteIncomplete)


def test_accepts_mapping_of_outcomes_and_strings():
    assert aggregate(["A", "B"], {"A": S, "B": "success"}).passed
    assert not aggregate(["A"], {"A": JobResult("A", F)}).passed


def test_decide_is_idempotent():
    agg = Aggregator(["A", "B"], results(A=S, B=K))
    assert agg.state is AggregatorState.EVALUATING
    first = agg.decide()
    assert agg.state is AggregatorState.DECIDED
    assert agg.decide() is first

    again = aggregate(["A", "B"], results(A=S, B=K))
    assert again == first


def test_inputs_are_not_mutated():
    inputs = {"A": S, "B": F}
    aggregate(["A", "B"], inputs)
    assert inputs == {"A": S, "B": F}


def test_raise_for_status():
    aggregate(["A"], results(A=S)).raise_for_status()
    with pytest.raises(PrerequisiteFailure):
        aggregate(["A"], results(A=F)).raise_for_status()


def test_unavailable_is_incomplete_and_fails():
    decision = unavailable("no context")
    assert not decision.passed
    assert isinstance(decision.error, ResultsUnavailable)
    assert isinstance(decision.error, PrerequisiteIncomplete)
    assert "no context" in decision.reason


def test_conflicting_reports_for_one_job_keep_the_worst():
    decision = aggregate(["A"], [JobResult("A", F), JobResult("A", S)])
    assert not decision.passed
    assert decision.failed == ("A",)

    decision = aggregate(["A"], [JobResult("A", S), JobResult("A", K)])
    assert not decision.passed
    assert decision.incomplete == ("A",)


def test_unknown_result_string_fails_closed():
    decision = aggregate(["A"], {"A": "neutral"})
    assert not decision.passed
    assert decision.incomplete == ("A",)
