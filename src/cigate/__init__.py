from .dsl import job, sh, gate, matrix, matrix_job_name, needs_of, powerset, wf, Matrix
from .aggregate import Aggregator, aggregate
from .runner import run_workflow, load_workflow
from .model import AggregateOutcome, Job, JobResult, Outcome, Step

__all__ = [
    "job", "sh", "gate", "matrix", "matrix_job_name", "needs_of", "powerset", "wf", "Matrix",
    "Aggregator", "aggregate", "run_workflow", "load_workflow",
    "AggregateOutcome", "Job", "JobResult", "Outcome", "Step",
]
