import json

import pytest

from cigate.aggregate import ResultsUnavailable, aggregate
from cigate.context import outcome_from_result, parse_needs, read_gate_input
from cigate.model import Outcome
from cigate.settings import Settings, load_settings


def test_parse_github_needs_context():
    raw = json.dumps({
        "geocoding": {"result": "success", "outputs": {}},
        "lint": {"result": "failure", "outputs": {"x": "1"}},
    })
    assert parse_needs(raw) == {"geocoding": Outcome.SUCCESS, "lint": Outcome.FAILURE}


def test_parse_bare_result_strings():
    assert parse_needs('{"a": "skipped", "b": "cancelled"}') == {
        "a": Outcome.SKIPPED,
        "b": Outcome.CANCELLED,
    }


def test_unknown_result_is_never_success():
    assert outcome_from_result("neutral") is Outcome.CANCELLED
    assert outcome_from_result(" Success ") is Outcome.SUCCESS


@pytest.mark.parametrize("raw", ["not json", "[]", '{"a": {"outputs": {}}}', '{"a": 3}'])
def test_malformed_context_is_unavailable(raw):
    with pytest.raises(ResultsUnavailable):
        parse_needs(raw)


def test_required_defaults_to_context_keys():
    gi = read_gate_input(Settings(needs_json='{"a": "success", "b": "success"}'))
    assert gi.required == ["a", "b"]
    assert aggregate(gi.required, gi.results).passed


def test_declared_prerequisite_without_result_fails():
    settings = Settings(needs_json='{"a": "success"}', required=["a", "b"])
    gi = read_gate_input(settings)
    decision = aggregate(gi.required, gi.results)
    assert not decision.passed
    assert decision.incomplete == ("b",)


def test_reads_needs_file(tmp_path):
    path = tmp_path / "needs.json"
    path.write_text('{"a": {"result": "success"}}', encoding="utf-8")
    gi = read_gate_input(Settings(needs_file=str(path)))
    assert [r.outcome for r in gi.results] == [Outcome.SUCCESS]


def test_missing_needs_file_is_unavailable(tmp_path):
    with pytest.raises(ResultsUnavailable):
        read_gate_input(Settings(needs_file=str(tmp_path / "missing.json")))


def test_no_context_at_all_is_unavailable():
    with pytest.raises(ResultsUnavailable):
        read_gate_input(Settings())


def test_load_settings_from_environment():
    settings = load_settings({
        "CIGATE_NEEDS": "{}",
        "CIGATE_REQUIRED": " a, b ,,",
        "CIGATE_COMMIT_MESSAGE": "msg",
    })
    assert settings.needs_json == "{}"
    assert settings.required == ["a", "b"]
    assert settings.skip_marker == "[skip ci]"
    assert settings.commit_message == "msg"


def test_blank_required_means_unset():
    assert load_settings({"CIGATE_REQUIRED": "  "}).required is None


def test_repeated_job_in_context_is_unavailable():
    with pytest.raises(ResultsUnavailable):
        parse_needs('{"a": "failure", "a": "success"}')


def test_undecodable_needs_file_is_unavailable(tmp_path):
    path = tmp_path / "needs.json"
    path.write_bytes(b'{"a": "\xff"}')
    with pytest.raises(ResultsUnavailable):
        read_gate_input(Settings(needs_file=str(path)))
