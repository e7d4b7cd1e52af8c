# context.py
# Reads prerequisite results from the hosting orchestrator.
#
# The payload mirrors GitHub Actions' `needs` context, as produced by
# `${{ toJSON(needs) }}`:
#
#   {"geocoding": {"result": "success", "outputs": {}}}
#
# A bare `{"geocoding": "success"}` is accepted as well.
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from .aggregate import ResultsUnavailable
from .model import JobResult, Outcome, outcome_from_result
from .settings import Settings


class NeedsEntry(BaseModel):
    result: str
    outputs: Dict[str, Any] = Field(default_factory=dict)


class NeedsContext(BaseModel):
    jobs: Dict[str, Union[NeedsEntry, str]]


@dataclass(frozen=True)
class GateInput:
    """Prerequisite names plus whatever results the orchestrator reported."""
    required: List[str]
    results: List[JobResult]


def _unique_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in pairs:
        if key in out:
            raise ResultsUnavailable(message=f"needs context reports {key!r} more than once")
        out[key] = value
    return out


def parse_needs(raw: str) -> Dict[str, Outcome]:
    """Parse needs-context JSON into name -> Outcome. Raises ResultsUnavailable."""
    try:
        data = json.loads(raw, object_pairs_hook=_unique_keys)
    except json.JSONDecodeError as e:
        raise ResultsUnavailable(message=f"needs context is not valid JSON ({e.msg})") from e

    if not isinstance(data, dict):
        raise ResultsUnavailable(message="needs context must be a JSON object")

    try:
        ctx = NeedsContext(jobs=data)
    except ValidationError as e:
        raise ResultsUnavailable(message=f"needs context is malformed ({e.error_count()} error(s))") from e

    out: Dict[str, Outcome] = {}
    for name, entry in ctx.jobs.items():
        result = entry if isinstance(entry, str) else entry.result
        out[name] = outcome_from_result(result)
    return out


def _read_raw(settings: Settings) -> str:
    if settings.needs_json is not None:
        return settings.needs_json
    if settings.needs_file:
        path = Path(settings.needs_file)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ResultsUnavailable(message=f"cannot read {path}: {e.strerror}") from e
        except UnicodeDecodeError as e:
            raise ResultsUnavailable(message=f"{path} is not valid UTF-8") from e
    raise ResultsUnavailable(message="neither CIGATE_NEEDS nor CIGATE_NEEDS_FILE is set")


def read_gate_input(settings: Settings) -> GateInput:
    """
    Collect the declared prerequisites and their results.

    The declared set comes from CIGATE_REQUIRED when given, otherwise
    from the keys of the needs context (the orchestrator only injects
    declared needs).
    """
    outcomes = parse_needs(_read_raw(settings))
    required: Optional[List[str]] = settings.required
    if required is None:
        required = list(outcomes)

    results = [JobResult(job=name, outcome=o) for name, o in outcomes.items()]
    return GateInput(required=required, results=results)
