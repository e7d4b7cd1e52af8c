from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

DEFAULT_SKIP_MARKER = "[skip ci]"
DEFAULT_WORKFLOW = "cigate_workflow.py"


@dataclass(frozen=True)
class Settings:
    needs_json: Optional[str] = None
    needs_file: Optional[str] = None
    required: Optional[List[str]] = None
    skip_marker: str = DEFAULT_SKIP_MARKER
    commit_message: Optional[str] = None
    github_event_path: Optional[str] = None


def _split_names(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None or not raw.strip():
        return None
    return [n.strip() for n in raw.split(",") if n.strip()]


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Read configuration from the environment the orchestrator injects."""
    env = os.environ if environ is None else environ
    return Settings(
        needs_json=env.get("CIGATE_NEEDS"),
        needs_file=env.get("CIGATE_NEEDS_FILE"),
        required=_split_names(env.get("CIGATE_REQUIRED")),
        skip_marker=env.get("CIGATE_SKIP_MARKER") or DEFAULT_SKIP_MARKER,
        commit_message=env.get("CIGATE_COMMIT_MESSAGE"),
        github_event_path=env.get("GITHUB_EVENT_PATH"),
    )
