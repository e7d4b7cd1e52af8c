import json

import pytest
import yaml
from click.testing import CliRunner

from cigate.cli import cli

CLEAN_ENV = {
    "CIGATE_NEEDS": None,
    "CIGATE_NEEDS_FILE": None,
    "CIGATE_REQUIRED": None,
    "CIGATE_SKIP_MARKER": None,
    "CIGATE_COMMIT_MESSAGE": None,
    "GITHUB_EVENT_PATH": None,
}

WORKFLOW = """\
from cigate import wf, job, gate, sh, needs_of

def workflow():
    legs = [job("a", sh("ok", "true")), job("b", sh("step", "{cmd}"))]
    return wf(legs, gate(needs=needs_of(legs)))
"""


@pytest.fixture()
def runner():
    return CliRunner()


def _result(runner, **env):
    return runner.invoke(cli, ["result"], env={**CLEAN_ENV, **env})


def test_result_passes_when_every_prerequisite_succeeded(runner):
    needs = json.dumps({"a": {"result": "success"}, "b": {"result": "success"}})
    res = _result(runner, CIGATE_NEEDS=needs)
    assert res.exit_code == 0
    assert "GATE PASS" in res.output


@pytest.mark.parametrize("outcome", ["failure", "skipped", "cancelled"])
def test_result_fails_on_any_non_success(runner, outcome):
    needs = json.dumps({"a": {"result": "success"}, "b": {"result": outcome}})
    res = _result(runner, CIGATE_NEEDS=needs)
    assert res.exit_code == 1
    assert "GATE FAIL" in res.output
    assert "b" in res.output


def test_result_fails_on_missing_declared_prerequisite(runner):
    res = _result(runner, CIGATE_NEEDS='{"a": "success"}', CIGATE_REQUIRED="a,b")
    assert res.exit_code == 1


def test_result_fails_closed_without_context(runner):
    res = _result(runner)
    assert res.exit_code == 1
    assert "could not be read" in res.output


def test_result_fails_closed_on_garbage(runner):
    assert _result(runner, CIGATE_NEEDS="{oops").exit_code == 1


def test_result_is_idempotent(runner):
    needs = '{"a": "success", "b": "skipped"}'
    first = _result(runner, CIGATE_NEEDS=needs)
    second = _result(runner, CIGATE_NEEDS=needs)
    assert first.exit_code == second.exit_code == 1
    assert first.output == second.output


def _write_workflow(tmp_path, cmd):
    (tmp_path / "cigate_workflow.py").write_text(WORKFLOW.format(cmd=cmd))


def test_run_exit_codes(runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    _write_workflow(tmp_path, "true")
    res = runner.invoke(cli, ["run", "--commit-message", "feat"], env=CLEAN_ENV)
    assert res.exit_code == 0, res.output
    assert "GATE PASS: ci result" in res.output

    _write_workflow(tmp_path, "exit 1")
    res = runner.invoke(cli, ["run", "--commit-message", "feat"], env=CLEAN_ENV)
    assert res.exit_code == 1
    assert "GATE FAIL: ci result" in res.output


def test_run_honours_skip_marker(runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    _write_workflow(tmp_path, "exit 1")
    res = runner.invoke(cli, ["run", "--commit-message", "typo [skip ci]"], env=CLEAN_ENV)
    assert res.exit_code == 0
    assert "Run skipped" in res.output


def test_run_without_workflow_file(runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    res = runner.invoke(cli, ["run"], env=CLEAN_ENV)
    assert res.exit_code == 1


def test_plan_and_export(runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    _write_workflow(tmp_path, "true")

    res = runner.invoke(cli, ["plan"], env=CLEAN_ENV)
    assert res.exit_code == 0
    assert "=== Stage 2 ===" in res.output
    assert "ci result (gate over 2 job(s))" in res.output

    out = tmp_path / ".github" / "workflows" / "test.yml"
    res = runner.invoke(cli, ["export", "-o", str(out)], env=CLEAN_ENV)
    assert res.exit_code == 0
    doc = yaml.safe_load(out.read_text())
    assert doc["jobs"]["ci-result"]["needs"] == ["a", "b"]


def test_result_fails_closed_on_undecodable_file(runner, tmp_path):
    path = tmp_path / "needs.json"
    path.write_bytes(b'{"a": "\xff"}')
    res = _result(runner, CIGATE_NEEDS_FILE=str(path))
    assert res.exit_code == 1
    assert res.exception is None or isinstance(res.exception, SystemExit)
    assert "GATE FAIL" in res.output


def test_debug_lists_prerequisite_results(runner):
    res = runner.invoke(
        cli,
        ["--debug", "result"],
        env={**CLEAN_ENV, "CIGATE_NEEDS": '{"a": "success", "b": "failure"}'},
    )
    assert res.exit_code == 1
    assert "[DEBUG] required: a, b" in res.output
    assert "[DEBUG] result: b=failure" in res.output


def test_export_gate_install_option(runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    _write_workflow(tmp_path, "true")
    res = runner.invoke(cli, ["export", "--gate-install", "cigate==0.1.0"], env=CLEAN_ENV)
    assert res.exit_code == 0
    steps = yaml.safe_load(res.output)["jobs"]["ci-result"]["steps"]
    assert steps[1]["run"] == "python -m pip install cigate==0.1.0"
