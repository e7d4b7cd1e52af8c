# src/cigate/dsl.py
from __future__ import annotations

from dataclasses import replace
from itertools import combinations, product
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .model import Job, Step


# ---------------------------------------------------------------------
# Step helper
# ---------------------------------------------------------------------

def sh(name: str, cmd: str, *, cwd: str | None = None) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, cwd=cwd)


# ---------------------------------------------------------------------
# Job helpers
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    needs: Optional[List[str]] = None,
    container: str | None = None,
    env: Optional[Dict[str, Any]] = None,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
    matrix: Optional[Dict[str, Any]] = None,
) -> Job:
    steps_final = list(steps)
    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    return Job(
        name=name,
        steps=steps_final,
        needs=list(needs or []),
        container=container,
        # force values to str for env compatibility
        env={k: str(v) for k, v in (env or {}).items()},
        matrix={k: _axis_label(v) for k, v in (matrix or {}).items()},
    )


def gate(name: str = "ci result", *, needs: Iterable[str]) -> Job:
    """
    Declare the aggregating job.

    It passes only if every job in `needs` succeeded. Wire it to every
    other job of the workflow, matrix legs included.
    """
    needs_list = list(needs)
    if not needs_list:
        raise ValueError(f"gate({name!r}) must depend on at least one job")
    return Job(name=name, steps=[], needs=needs_list, gate=True)


def needs_of(*jobs: Union[Job, Iterable[Job]]) -> List[str]:
    """Job names, in order, for wiring a gate to jobs or matrix output."""
    return [j.name for j in _flatten(jobs)]


# ---------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------

def _axis_label(value: Any) -> str:
    if isinstance(value, (tuple, list, frozenset, set)):
        return ",".join(str(v) for v in value)
    return str(value)


def matrix_job_name(base: str, combo: Dict[str, Any]) -> str:
    """
    Render `base (v1, v2)` the way hosted CI names matrix legs.

    An empty feature set renders as `none` so every leg stays distinct.
    """
    labels = [_axis_label(v) or "none" for v in combo.values()]
    if not labels:
        return base
    return f"{base} ({', '.join(labels)})"


class Matrix:
    """
    Cross-product matrix expander.

    Example:
        matrix(image=["rust:1.50", "rust:1.51"], features=powerset(["a", "b"])).jobs(
            lambda m: job(matrix_job_name("test", m), sh(...), container=m["image"], matrix=m)
        )
    """
    def __init__(self, axes: Dict[str, Iterable[Any]]):
        self.axes: Dict[str, List[Any]] = {k: list(v) for k, v in axes.items()}
        for key, values in self.axes.items():
            if not values:
                raise ValueError(f"matrix axis {key!r} has no values")

    def combinations(self) -> Iterator[Dict[str, Any]]:
        keys = list(self.axes)
        for values in product(*(self.axes[k] for k in keys)):
            yield dict(zip(keys, values))

    def __len__(self) -> int:
        n = 1
        for values in self.axes.values():
            n *= len(values)
        return n

    def jobs(self, builder: Callable[[Dict[str, Any]], Job]) -> List[Job]:
        return [builder(combo) for combo in self.combinations()]


def matrix(**axes: Iterable[Any]) -> Matrix:
    if not axes:
        raise ValueError("matrix() needs at least one axis")
    return Matrix(axes)


def powerset(features: Sequence[str]) -> List[Tuple[str, ...]]:
    """
    Every feature-flag combination, smallest first.

    powerset(["a", "b"]) -> [(), ("a",), ("b",), ("a", "b")]
    """
    unique = list(dict.fromkeys(features))
    out: List[Tuple[str, ...]] = []
    for size in range(len(unique) + 1):
        out.extend(combinations(unique, size))
    return out


# ---------------------------------------------------------------------
# Workflow helper (single-file story)
# ---------------------------------------------------------------------

def _flatten(items: Iterable[Any]) -> Iterator[Job]:
    for item in items:
        if isinstance(item, Job):
            yield item
        elif isinstance(item, (list, tuple)):
            yield from _flatten(item)
        else:
            raise TypeError(f"Expected Job or list of Job, got {type(item).__name__}")


def wf(*jobs: Union[Job, Iterable[Job]]) -> List[Job]:
    """
    Workflow definition helper.

    Matrix output can be passed directly, it is flattened:

        from cigate import wf, job, gate, sh, matrix

        def workflow():
            legs = matrix(image=[...]).jobs(lambda m: job(...))
            return wf(legs, gate(needs=needs_of(legs)))
    """
    return list(_flatten(jobs))
