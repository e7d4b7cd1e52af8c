# cigate_workflow.py
# Build and test the geocoding crate on two toolchain images with every
# feature combination, behind one "ci result" gate for the merge bot.
from __future__ import annotations

from cigate import Job, gate, job, matrix, matrix_job_name, needs_of, powerset, sh, wf

IMAGES = ["georust/geo-ci:rust-1.50", "georust/geo-ci:rust-1.51"]
FEATURES = ["async", "blocking"]


def _cargo_flags(features) -> str:
    if not features:
        return "--no-default-features"
    return f"--no-default-features --features {','.join(features)}"


def _geocoding(m) -> Job:
    flags = _cargo_flags(m["features"])
    return job(
        matrix_job_name("geocoding", m),
        sh("Build", f"cargo build {flags}"),
        sh("Test", f"cargo test {flags}"),
        container=m["container_image"],
        matrix=m,
    )


def workflow():
    legs = matrix(container_image=IMAGES, features=powerset(FEATURES)).jobs(_geocoding)
    return wf(
        legs,
        # Every other job must be listed here
        gate("ci result", needs=needs_of(legs)),
    )
