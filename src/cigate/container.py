# container.py
from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List

from .model import Job, Step

CONTAINER_WORKDIR = "/workspace"


def check_docker_available() -> None:
    """Check if Docker is available, raise helpful error if not."""
    # Import here to avoid circular import
    from .runner import TOOL_HINTS, CIError

    try:
        subprocess.run(
            ["docker", "--version"],
            capture_output=True,
            check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        raise CIError(
            kind="docker_unavailable",
            job="",
            step=None,
            message="Docker is not available",
            details={"hint": TOOL_HINTS["docker"]},
        )


def docker_command(job: Job, step: Step, repo_root: Path) -> List[str]:
    """
    Build the `docker run` invocation for one step of a containerised job.

    The repository is mounted at /workspace and the step's cwd is resolved
    relative to it. Only the job's own env is forwarded, the host
    environment is not.
    """
    if not job.container:
        raise ValueError(f"Job '{job.name}' has no container image")

    cmd = ["docker", "run", "--rm"]
    cmd.extend(["-v", f"{repo_root.resolve()}:{CONTAINER_WORKDIR}"])

    step_cwd = (step.cwd or ".").strip("/") or "."
    container_cwd = CONTAINER_WORKDIR if step_cwd == "." else f"{CONTAINER_WORKDIR}/{step_cwd}"
    cmd.extend(["-w", container_cwd])

    for key, value in job.env.items():
        cmd.extend(["-e", f"{key}={value}"])

    cmd.append(job.container)
    cmd.extend(["sh", "-c", step.run])
    return cmd


def run_step(job: Job, step: Step, repo_root: Path) -> subprocess.CompletedProcess:
    """Run a step inside the job's container image."""
    check_docker_available()
    return subprocess.run(
        docker_command(job, step, repo_root),
        shell=False,
        text=True,
        capture_output=True,
    )
