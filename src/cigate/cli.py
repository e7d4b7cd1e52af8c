from __future__ import annotations

import sys
from pathlib import Path

import click

from cigate.aggregate import Aggregator, GateError, unavailable
from cigate.context import read_gate_input
from cigate.dag import stages
from cigate.export import DEFAULT_GATE_INSTALL, dump_github_actions
from cigate.git_facts.git import get_remote_url
from cigate.runner import load_workflow, run_workflow
from cigate.settings import DEFAULT_WORKFLOW, load_settings
from cigate.trigger import head_commit_message
from cigate.ui.console import Console, get_console, set_console


def find_workflow_files() -> list[Path]:
    """
    Find all workflow files in the current directory.

    Returns:
        List of Path objects for workflow files
    """
    workflow_files = []
    current_dir = Path(".")

    default_workflow = current_dir / DEFAULT_WORKFLOW
    if default_workflow.exists():
        workflow_files.append(default_workflow)

    for path in current_dir.glob("*_workflow.py"):
        if path != default_workflow:
            workflow_files.append(path)

    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix != ".py":
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  cigate run --workflow my_workflow.py",
            )
            sys.exit(1)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                f"  {DEFAULT_WORKFLOW}",
                "  *_workflow.py",
            ],
            suggestion=f"Create a workflow file:\n  {DEFAULT_WORKFLOW}\n\nOr specify a workflow explicitly:\n  cigate run --workflow my_workflow.py",
        )
        sys.exit(1)

    # The default file wins over other *_workflow.py files
    default_workflow = Path(".") / DEFAULT_WORKFLOW
    if default_workflow in workflow_files:
        return default_workflow
    if len(workflow_files) == 1:
        return workflow_files[0]

    file_list = "\n".join(f"  {f}" for f in workflow_files)
    console.print_error(
        "Multiple workflow files found",
        "Found multiple workflow files. Please specify which one to use:",
        details=[file_list],
        suggestion=f"Specify a workflow explicitly:\n  cigate run --workflow {workflow_files[0]}",
    )
    sys.exit(1)


def _load_or_exit(ctx: click.Context, workflow_path: Path):
    console = get_console()
    try:
        return load_workflow(workflow_path)
    except (FileNotFoundError, ValueError, TypeError) as e:
        console.print_error(
            "Failed to load workflow",
            f"Could not load workflow from {workflow_path}",
            details=[str(e)],
        )
        if ctx.obj.get("debug", False):
            import traceback
            traceback.print_exc()
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """cigate: matrix CI jobs behind a single fail-closed status gate."""
    set_console(Console(debug=debug))
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
def result():
    """Aggregate prerequisite results from the orchestrator context.

    Exits 0 only if every prerequisite succeeded.
    """
    console = get_console()
    settings = load_settings()

    try:
        gate_input = read_gate_input(settings)
        console.print_debug(f"required: {', '.join(gate_input.required) or '(none)'}")
        for r in gate_input.results:
            console.print_debug(f"result: {r.job}={r.outcome.value}")
        decision = Aggregator(gate_input.required, gate_input.results).decide()
    except GateError as e:
        decision = unavailable(str(e))

    console.print_decision("ci result", decision)
    sys.exit(decision.exit_code)


@cli.command()
@click.option(
    "--workflow",
    default=None,
    help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)",
)
@click.option("--workers", default=None, type=int, help="Number of parallel workers")
@click.option(
    "--commit-message",
    default=None,
    help="Commit message for the trigger filter (defaults to the HEAD commit)",
)
@click.pass_context
def run(ctx, workflow, workers, commit_message):
    """Run a cigate workflow locally and evaluate its gates."""
    console = get_console()
    settings = load_settings()

    workflow_path = discover_workflow(workflow)
    jobs = _load_or_exit(ctx, workflow_path)

    try:
        repo_name = get_remote_url("origin").rstrip("/").split("/")[-1].replace(".git", "")
    except Exception:
        repo_name = Path(".").resolve().name

    if commit_message is None:
        commit_message = head_commit_message(settings)
    console.print_debug(f"commit message: {commit_message!r}")

    console.print_run_started(
        repository=repo_name,
        workflow=workflow_path.name,
        job_count=len(jobs),
    )

    try:
        report = run_workflow(
            jobs,
            repo_root=".",
            max_workers=workers,
            commit_message=commit_message,
            skip_marker=settings.skip_marker,
        )
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    if not report.entered:
        return

    console.print_results(report.results)

    if report.cancelled:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    if not report.ok:
        sys.exit(1)


@cli.command()
@click.option("--workflow", default=None, help="Workflow file path")
@click.pass_context
def plan(ctx, workflow):
    """Print the expanded jobs grouped by stage."""
    console = get_console()
    workflow_path = discover_workflow(workflow)
    jobs = _load_or_exit(ctx, workflow_path)
    console.print_plan(stages(jobs), {j.name: j for j in jobs})


@cli.command()
@click.option("--workflow", default=None, help="Workflow file path")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Write to file instead of stdout")
@click.option("--name", default="Run tests", show_default=True, help="Workflow name")
@click.option(
    "--gate-install",
    default=DEFAULT_GATE_INSTALL,
    show_default=True,
    help="pip requirement the gate job installs cigate from",
)
@click.pass_context
def export(ctx, workflow, output, name, gate_install):
    """Render the workflow as a GitHub Actions workflow file."""
    console = get_console()
    settings = load_settings()
    workflow_path = discover_workflow(workflow)
    jobs = _load_or_exit(ctx, workflow_path)

    text = dump_github_actions(
        jobs,
        name=name,
        skip_marker=settings.skip_marker,
        gate_install=gate_install,
    )
    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(text, encoding="utf-8")
        console.print_info(f"Wrote {output}")
    else:
        click.echo(text, nl=False)


if __name__ == "__main__":
    cli()
