"""
TFPipeline Controller - Main entry point.
"""

import asyncio
import logging
import sys
import uuid
from datetime import datetime
from typing import Optional

import typer

from controller.src.config import get_settings
from controller.src.models.step import PipelineKind, TriggerKind
from controller.src.services.executor import execute_pipeline
from controller.src.services.status_reporter import LogReporter
from controller.src.worker import run_worker

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

app = typer.Typer(help="TFPipeline controller: runs Terraform deploy and destroy pipelines")

@app.command()
def worker() -> None:
    """Consume queued pipeline runs from Redis."""
    settings = get_settings()

    logger.info("Starting TFPipeline Controller")
    logger.info(f"Redis URL: {settings.redis_url}")
    logger.info(f"Default terraform version: {settings.terraform_version}")

    logger.info("Starting worker...")
    run_worker()

@app.command()
def run(
    pipeline: PipelineKind = typer.Argument(..., help="deploy or destroy"),
    trigger: TriggerKind = typer.Option(TriggerKind.MANUAL_DISPATCH, help="Triggering event kind"),
    path: Optional[str] = typer.Option(None, help="Existing checkout to run against"),
    clone_url: str = typer.Option("", help="Repository clone URL"),
    repo: str = typer.Option("", help="Repository full name (owner/name)"),
    branch: str = typer.Option("main", help="Branch to check out"),
    sha: str = typer.Option("", help="Commit SHA to check out"),
    pr_number: Optional[int] = typer.Option(None, help="Pull request number"),
    confirmation: Optional[str] = typer.Option(None, help="Destroy confirmation input"),
    actor: Optional[str] = typer.Option(None, help="User that triggered the run"),
) -> None:
    """Run a single pipeline and exit with its status code."""
    if pipeline == PipelineKind.DESTROY and confirmation is None:
        confirmation = "no"

    job = {
        "run_id": str(uuid.uuid4()),
        "pipeline": pipeline.value,
        "trigger": {
            "kind": trigger.value,
            "confirmation": confirmation,
            "pull_request_number": pr_number,
            "actor": actor,
        },
        "repo_info": {
            "repo_full_name": repo,
            "clone_url": clone_url,
            "branch": branch,
            "commit_sha": sha,
            "local_path": path,
        },
        "queued_at": datetime.utcnow().isoformat(),
    }

    try:
        result = asyncio.run(execute_pipeline(job, reporter=LogReporter()))
    except ValueError as e:
        logger.error(f"Invalid run request: {e}")
        raise typer.Exit(code=1)

    for step in result.steps:
        typer.echo(f"{step.step_order:>2} {step.name:<20} {step.status.value}")
        if step.error:
            typer.echo(f"   {step.error}")

    if result.succeeded:
        logger.info(f"{pipeline.value} pipeline succeeded")
    else:
        logger.error(f"{pipeline.value} pipeline failed at {result.failed_step}: {result.error}")

    raise typer.Exit(code=result.exit_code)

def main():
    """Main entry point."""
    app()

if __name__ == "__main__":
    main()
