from controller.src.services.executor import execute_pipeline, run_steps
from controller.src.services.gate import verify_confirmation, CONFIRMATION_SENTINEL
from controller.src.services.pipelines import (
    RunContext,
    Step,
    Branch,
    select_branch,
    get_pipeline,
)
from controller.src.services.status_reporter import DatabaseReporter, LogReporter

__all__ = [
    "execute_pipeline",
    "run_steps",
    "verify_confirmation",
    "CONFIRMATION_SENTINEL",
    "RunContext",
    "Step",
    "Branch",
    "select_branch",
    "get_pipeline",
    "DatabaseReporter",
    "LogReporter",
]
