# export.py
# Render a cigate workflow as a GitHub Actions workflow file.
from __future__ import annotations

import re
from typing import Any, Dict, List

import yaml

from .model import Job
from .settings import DEFAULT_SKIP_MARKER

RUNS_ON = "ubuntu-latest"
CHECKOUT_ACTION = "actions/checkout@v4"
# The repository that declares the workflow also provides cigate
DEFAULT_GATE_INSTALL = "."


def job_id(name: str) -> str:
    """
    GitHub job ids allow only letters, digits, '-' and '_' and must not
    start with a digit or '-'.
    """
    slug = re.sub(r"[^a-z0-9_-]+", "-", name.lower()).strip("-")
    slug = re.sub(r"-{2,}", "-", slug)
    if not slug or not (slug[0].isalpha() or slug[0] == "_"):
        slug = f"job-{slug}" if slug else "job"
    return slug


def _assign_ids(jobs: List[Job]) -> Dict[str, str]:
    ids: Dict[str, str] = {}
    taken: set[str] = set()
    for j in jobs:
        base = job_id(j.name)
        candidate, n = base, 2
        while candidate in taken:
            candidate = f"{base}-{n}"
            n += 1
        taken.add(candidate)
        ids[j.name] = candidate
    return ids


def _skip_condition(marker: str) -> str:
    # Expression string literals escape a quote by doubling it
    literal = marker.replace("'", "''")
    return f"!contains(github.event.head_commit.message, '{literal}')"


def _regular_job(j: Job, ids: Dict[str, str], marker: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {"name": j.name, "runs-on": RUNS_ON}
    if j.needs:
        out["needs"] = [ids[n] for n in j.needs]
    if marker:
        out["if"] = _skip_condition(marker)
    if j.container:
        out["container"] = {"image": j.container}
    if j.env:
        out["env"] = dict(j.env)

    steps: List[Dict[str, Any]] = [{"name": "Checkout repository", "uses": CHECKOUT_ACTION}]
    for s in j.steps:
        step: Dict[str, Any] = {"name": s.name, "run": s.run}
        if s.cwd:
            step["working-directory"] = s.cwd
        steps.append(step)
    out["steps"] = steps
    return out


def _gate_job(j: Job, ids: Dict[str, str], marker: str, install: str) -> Dict[str, Any]:
    """
    The gate must run even when a prerequisite failed or was skipped, so
    it uses always() and lists its prerequisites in CIGATE_REQUIRED.

    `install` is the pip requirement for cigate, resolved against the
    checked-out repository.
    """
    needs = [ids[n] for n in j.needs]
    condition = "always()"
    if marker:
        condition = f"always() && {_skip_condition(marker)}"
    return {
        "name": j.name,
        "runs-on": RUNS_ON,
        "needs": needs,
        "if": condition,
        "steps": [
            {"name": "Checkout repository", "uses": CHECKOUT_ACTION},
            {"name": "Install cigate", "run": f"python -m pip install {install}"},
            {
                "name": "Aggregate prerequisite results",
                "run": "cigate result",
                "env": {
                    "CIGATE_NEEDS": "${{ toJSON(needs) }}",
                    "CIGATE_REQUIRED": ",".join(needs),
                },
            },
        ],
    }


def to_github_actions(
    jobs: List[Job],
    *,
    name: str = "Run tests",
    skip_marker: str = DEFAULT_SKIP_MARKER,
    gate_install: str = DEFAULT_GATE_INSTALL,
) -> Dict[str, Any]:
    """Build the workflow document as plain dicts, gates first."""
    ids = _assign_ids(jobs)
    ordered = [j for j in jobs if j.gate] + [j for j in jobs if not j.gate]

    gh_jobs: Dict[str, Any] = {}
    for j in ordered:
        if j.gate:
            gh_jobs[ids[j.name]] = _gate_job(j, ids, skip_marker, gate_install)
        else:
            gh_jobs[ids[j.name]] = _regular_job(j, ids, skip_marker)

    return {"name": name, "on": "push", "jobs": gh_jobs}


def dump_github_actions(jobs: List[Job], **kwargs: Any) -> str:
    return yaml.safe_dump(
        to_github_actions(jobs, **kwargs),
        sort_keys=False,
        default_flow_style=False,
        width=120,
    )
