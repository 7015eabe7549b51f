"""
Pipeline executor - runs pipeline steps in order, stopping at the first failure.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Any, List, Optional

from controller.src.config import Settings, get_settings
from controller.src.errors import PipelineError
from controller.src.models.step import (
    PipelineJob,
    RunResult,
    StepResult,
    StepStatus,
)
from controller.src.services.pipelines import RunContext, Step, get_pipeline
from controller.src.services.status_reporter import DatabaseReporter, LogReporter
from controller.src.services.workspace import cleanup_workspace

logger = logging.getLogger(__name__)

def run_steps(ctx: RunContext, steps: List[Step], reporter=None) -> RunResult:
    """
    Execute steps in declared order.
    The first failing step fails the run; every later step is cancelled.
    """
    reporter = reporter or LogReporter()
    run_id = ctx.run_id
    results: List[StepResult] = []
    failure: Optional[Exception] = None
    failed_step: Optional[str] = None

    for i, step in enumerate(steps):
        if failure is not None:
            results.append(StepResult(step_order=i, name=step.name, status=StepStatus.CANCELLED))
            reporter.update_step_status(run_id, i, StepStatus.CANCELLED.value)
            continue

        if step.when is not None and not step.when(ctx):
            logger.info(f"Step {i} ({step.name}) skipped")
            results.append(StepResult(step_order=i, name=step.name, status=StepStatus.SKIPPED))
            reporter.update_step_status(run_id, i, StepStatus.SKIPPED.value)
            continue

        logger.info(f"Executing step {i}: {step.name}")
        started_at = datetime.utcnow()
        reporter.update_step_status(run_id, i, StepStatus.RUNNING.value, started_at=started_at)

        logs = None
        try:
            logs = step.run(ctx)
        except PipelineError as e:
            logger.error(f"Step {i} ({step.name}) failed: {e}")
            failure, failed_step = e, step.name
        except Exception as e:
            logger.exception(f"Step {i} ({step.name}) failed with exception")
            failure, failed_step = e, step.name

        finished_at = datetime.utcnow()

        if failure is not None:
            result = StepResult(
                step_order=i,
                name=step.name,
                status=StepStatus.FAILED,
                error=str(failure),
                started_at=started_at,
                finished_at=finished_at,
            )
            reporter.update_step_status(
                run_id, i, StepStatus.FAILED.value,
                error=str(failure),
                finished_at=finished_at,
            )
        else:
            result = StepResult(
                step_order=i,
                name=step.name,
                status=StepStatus.SUCCEEDED,
                logs=logs,
                started_at=started_at,
                finished_at=finished_at,
            )
            reporter.update_step_status(
                run_id, i, StepStatus.SUCCEEDED.value,
                logs=logs,
                finished_at=finished_at,
            )
            logger.info(f"Step {i} ({step.name}) succeeded")

        results.append(result)

    return RunResult(
        run_id=run_id,
        pipeline=ctx.pipeline,
        status=StepStatus.FAILED if failure is not None else StepStatus.SUCCEEDED,
        steps=results,
        failed_step=failed_step,
        error=str(failure) if failure is not None else None,
        error_type=type(failure).__name__ if failure is not None else None,
    )

async def execute_pipeline(
    job_data: Dict[str, Any],
    reporter=None,
    settings: Optional[Settings] = None,
) -> RunResult:
    """
    Execute a queued pipeline run.
    Steps block on external tools, so they run off the event loop.
    """
    reporter = reporter or DatabaseReporter()

    try:
        job = PipelineJob.from_queue(job_data)
    except ValueError as e:
        run_id = job_data.get("run_id")
        if run_id:
            reporter.update_run_status(run_id, StepStatus.FAILED.value, error=f"Invalid job: {e}")
        raise
    steps = get_pipeline(job.pipeline)

    ctx = RunContext(
        run_id=job.run_id,
        pipeline=job.pipeline,
        trigger=job.trigger,
        repo_info=job.repo_info,
        settings=settings or get_settings(),
    )

    logger.info(
        f"Starting {job.pipeline.value} run {job.run_id} "
        f"({job.trigger.kind.value}) with {len(steps)} steps"
    )

    reporter.create_steps(job.run_id, [s.name for s in steps])
    reporter.update_run_status(job.run_id, StepStatus.RUNNING.value, started_at=datetime.utcnow())

    try:
        result = await asyncio.to_thread(run_steps, ctx, steps, reporter)
    except Exception as e:
        logger.exception(f"Pipeline run {job.run_id} aborted")
        reporter.update_run_status(
            job.run_id,
            StepStatus.FAILED.value,
            error=f"Run aborted: {e}",
            finished_at=datetime.utcnow(),
        )
        raise
    finally:
        if ctx.cloned:
            cleanup_workspace(ctx.repo_path)

    reporter.update_run_status(
        job.run_id,
        result.status.value,
        error=result.error,
        finished_at=datetime.utcnow(),
    )

    logger.info(f"Pipeline run {job.run_id} finished with status: {result.status.value}")
    return result
