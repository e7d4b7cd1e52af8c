# trigger.py
# Run-level filter over the triggering commit, evaluated once before any job.
from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Optional

from .git_facts.git import head_commit_message as git_head_commit_message
from .settings import DEFAULT_SKIP_MARKER, Settings


def should_run(message: Optional[str], marker: str = DEFAULT_SKIP_MARKER) -> bool:
    """
    False iff `marker` appears in the commit message.

    An unknown message (None) does not suppress the run.
    """
    if message is None or not marker:
        return True
    return marker not in message


def _message_from_event(event_path: str) -> Optional[str]:
    try:
        payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    head = payload.get("head_commit") if isinstance(payload, dict) else None
    if isinstance(head, dict) and isinstance(head.get("message"), str):
        return head["message"]
    return None


def head_commit_message(settings: Settings, cwd: Optional[str] = None) -> Optional[str]:
    """
    Message of the commit that triggered the run.

    Lookup order: CIGATE_COMMIT_MESSAGE, the GitHub event payload, then
    `git log -1`. None when nothing is available.
    """
    if settings.commit_message is not None:
        return settings.commit_message

    if settings.github_event_path:
        message = _message_from_event(settings.github_event_path)
        if message is not None:
            return message

    try:
        return git_head_commit_message(cwd=cwd)
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None
