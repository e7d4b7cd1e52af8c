"""Console output formatting utilities for cigate."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from ..model import AggregateOutcome, Job, JobResult


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_run_started(self, repository: str, workflow: str, job_count: int) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Repository: {repository}")
        print(f"Workflow: {workflow}")
        print(f"Jobs: {job_count}")
        print()

    def print_job_start(self, name: str) -> None:
        print(f"\nJOB STARTED: {name}")

    def print_step(self, name: str) -> None:
        print(f"STEP: {name}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
        is_job: bool = False,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Job or step name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
            is_job: If True, print "JOB FAILED", otherwise "STEP FAILED"
        """
        prefix = "JOB FAILED" if is_job else "STEP FAILED"
        print(f"{prefix}: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if hint:
            print(f"Hint: {hint}")
        if self.debug:
            print(f"Error details: {reason}")
        else:
            # Last non-empty line only outside debug mode
            lines = [ln for ln in (reason or "").splitlines() if ln.strip()]
            print(f"Error: {lines[-1] if lines else 'Unknown error'}")

    def print_job_skipped(self, name: str, reason: str) -> None:
        print(f"\nJOB SKIPPED: {name}")
        print(f"Reason: {reason}")

    def print_decision(self, gate: str, decision: AggregateOutcome) -> None:
        """The one log line a gate owes its caller."""
        verdict = "PASS" if decision.passed else "FAIL"
        print(f"\nGATE {verdict}: {gate}")
        print(f"Reason: {decision.reason}")

    def print_plan(self, stages: List[List[str]], jobs: Dict[str, Job]) -> None:
        """Print expanded jobs grouped by stage."""
        for idx, stage in enumerate(stages, start=1):
            print(f"=== Stage {idx} ===")
            for name in stage:
                j = jobs[name]
                if j.gate:
                    print(f"  {name} (gate over {len(j.needs)} job(s))")
                else:
                    context = j.container or "host"
                    print(f"  {name} [{context}] {len(j.steps)} step(s)")

    def print_results(self, results: Dict[str, JobResult]) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for name, result in results.items():
            print(f"  {name}: {result.outcome.value.upper()}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """Print structured error message to stderr."""
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (initialized by the CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
