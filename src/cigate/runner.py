from __future__ import annotations

import os
import runpy
import subprocess
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .aggregate import aggregate
from .container import run_step as run_container_step
from .dag import build_dag, topo_levels
from .model import AggregateOutcome, Job, JobResult, Outcome, Step
from .settings import DEFAULT_SKIP_MARKER
from .trigger import should_run
from .ui.console import get_console


@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for clean CLI output
    without a full traceback.
    """
    kind: str
    job: str
    step: str | None
    message: str
    details: dict

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.job:
            lines.append(f"job={self.job}")
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


TOOL_HINTS = {
    "docker": "Install Docker and ensure the daemon is running.",
}


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> List[Job]:
    """
    Load a workflow from a python file path.

    The file must define either:
      - workflow() -> List[Job]
      - JOBS = [Job, ...]

    The job graph is validated (unique names, known needs, no cycles)
    before it is returned.
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise ValueError(f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"cigate_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    jobs = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        jobs = globals_dict["workflow"]()
    elif "JOBS" in globals_dict:
        jobs = globals_dict["JOBS"]

    if not isinstance(jobs, list) or not all(isinstance(j, Job) for j in jobs):
        raise TypeError(
            "Workflow must return/define a List[Job]. "
            "Define workflow() -> List[Job] or JOBS = [Job, ...]."
        )

    adj, indeg = build_dag(jobs)
    topo_levels(adj, indeg)
    return jobs


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class StepFailure(Exception):
    job: str
    step: str
    cmd: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _run_step(job: Job, step: Step, repo_root: Path) -> None:
    if job.container:
        proc = run_container_step(job, step, repo_root)
    else:
        cwd = (repo_root / (step.cwd or ".")).resolve()
        if not cwd.exists():
            raise FileNotFoundError(f"[{job.name}] step '{step.name}' cwd not found: {cwd}")

        env = os.environ.copy()
        env.update(job.env)

        proc = subprocess.run(
            step.run,
            shell=True,
            cwd=str(cwd),
            env=env,
            text=True,
            capture_output=True,   # so we can show output on failure
        )

    if proc.returncode != 0:
        raise StepFailure(
            job=job.name,
            step=step.name,
            cmd=step.run,
            exit_code=proc.returncode,
            stdout=proc.stdout[-4000:],
            stderr=proc.stderr[-4000:],
        )


def _run_job(job: Job, repo_root: Path, cancel: threading.Event) -> JobResult:
    """
    Run the steps of `job` in order and return its terminal result.

    The first failing step ends the job. Steps are not started once
    `cancel` is set.
    """
    console = get_console()
    console.print_job_start(job.name)

    for step in job.steps:
        if cancel.is_set():
            return JobResult(job=job.name, outcome=Outcome.CANCELLED)

        console.print_step(f"[{job.name}] {step.name}")
        try:
            _run_step(job, step, repo_root)
        except StepFailure as e:
            console.print_failure(step.name, e.stderr or e.stdout or str(e), exit_code=e.exit_code)
            return JobResult(job=job.name, outcome=Outcome.FAILURE)
        except (CIError, FileNotFoundError) as e:
            console.print_failure(step.name, str(e), hint=_hint_for(e))
            return JobResult(job=job.name, outcome=Outcome.FAILURE)

    return JobResult(job=job.name, outcome=Outcome.SUCCESS)


def _hint_for(exc: Exception) -> Optional[str]:
    if isinstance(exc, CIError):
        return exc.details.get("hint")
    return None


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

@dataclass
class RunReport:
    """Everything one pipeline run produced."""
    entered: bool = True
    cancelled: bool = False
    results: Dict[str, JobResult] = field(default_factory=dict)
    decisions: Dict[str, AggregateOutcome] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """
        Gates decide when present; without gates every job must succeed.
        A run that the trigger filter skipped is ok.
        """
        if not self.entered:
            return True
        if self.cancelled:
            return False
        if self.decisions:
            return all(d.passed for d in self.decisions.values())
        return all(r.ok for r in self.results.values())


def run_workflow(
    jobs: List[Job],
    *,
    repo_root: str | Path = ".",
    max_workers: int | None = None,
    commit_message: str | None = None,
    skip_marker: str = DEFAULT_SKIP_MARKER,
) -> RunReport:
    """
    Run `jobs` and evaluate their gates.

    A job is scheduled once all of its needs are terminal. Regular jobs
    whose needs did not all succeed are recorded as skipped; gate jobs
    always get evaluated. On interruption the remaining jobs are recorded
    as cancelled and no further gate is evaluated.
    """
    console = get_console()

    if not should_run(commit_message, skip_marker):
        console.print_info(f"Run skipped: commit message contains {skip_marker!r}")
        return RunReport(entered=False)

    repo_root_p = Path(repo_root).resolve()
    by_name = {j.name: j for j in jobs}
    adj, indeg = build_dag(jobs)
    topo_levels(adj, indeg)  # reject cycles before anything runs

    report = RunReport()
    ready: List[str] = sorted(name for name, deg in indeg.items() if deg == 0)
    cancel = threading.Event()
    in_flight: Dict[Future, str] = {}

    if max_workers is None:
        c = os.cpu_count() or 2
        max_workers = max(1, c - 1)

    def finish(result: JobResult) -> None:
        report.results[result.job] = result
        for nxt in sorted(adj[result.job]):
            indeg[nxt] -= 1
            if indeg[nxt] == 0:
                ready.append(nxt)

    pool = ThreadPoolExecutor(max_workers=max_workers)
    try:
        while ready or in_flight:
            while ready:
                name = ready.pop(0)
                j = by_name[name]

                if j.gate:
                    decision = aggregate(j.needs, report.results)
                    report.decisions[name] = decision
                    console.print_decision(name, decision)
                    outcome = Outcome.SUCCESS if decision.passed else Outcome.FAILURE
                    finish(JobResult(job=name, outcome=outcome))
                    continue

                blocked = [d for d in j.needs if not report.results[d].ok]
                if blocked:
                    console.print_job_skipped(name, f"needs did not succeed: {', '.join(blocked)}")
                    finish(JobResult(job=name, outcome=Outcome.SKIPPED))
                    continue

                fut = pool.submit(_run_job, j, repo_root_p, cancel)
                in_flight[fut] = name

            if not in_flight:
                break

            done, _pending = wait(list(in_flight), return_when=FIRST_COMPLETED)
            for fut in done:
                name = in_flight.pop(fut)
                try:
                    result = fut.result()
                except Exception as e:
                    console.print_failure(name, str(e), is_job=True)
                    result = JobResult(job=name, outcome=Outcome.FAILURE)
                finish(result)

    except KeyboardInterrupt:
        cancel.set()
        report.cancelled = True
        for name in by_name:
            if name not in report.results:
                report.results[name] = JobResult(job=name, outcome=Outcome.CANCELLED)
    finally:
        pool.shutdown(wait=True, cancel_futures=True)

    return report
