"""
Pipeline run creation shared by webhooks and manual dispatch.
"""

import logging
from typing import Dict, Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.src.models.pipeline import Repository, PipelineRun
from api.src.services.queue import enqueue_pipeline_run

logger = logging.getLogger(__name__)

async def get_or_create_repository(db: AsyncSession, repo_info: Dict[str, Any]) -> Repository:
    repo_query = select(Repository).where(
        Repository.full_name == repo_info["repo_full_name"]
    )
    result = await db.execute(repo_query)
    repository = result.scalar_one_or_none()

    if not repository:
        repository = Repository(
            name=repo_info.get("repo_name") or repo_info["repo_full_name"].split("/")[-1],
            full_name=repo_info["repo_full_name"],
            clone_url=repo_info["clone_url"],
        )
        db.add(repository)
        await db.flush()

    return repository

async def create_pipeline_run(
    db: AsyncSession,
    repository: Repository,
    pipeline: str,
    trigger: Dict[str, Any],
    repo_info: Dict[str, Any],
) -> Dict[str, Any]:
    """Persist a queued run and push it onto the job queue."""
    pipeline_run = PipelineRun(
        repository_id=repository.id,
        commit_sha=repo_info.get("commit_sha") or "",
        branch=repo_info.get("branch") or "",
        pipeline=pipeline,
        trigger=trigger["kind"],
        pull_request_number=trigger.get("pull_request_number"),
        status="queued",
        triggered_by=trigger.get("actor"),
    )
    db.add(pipeline_run)
    await db.commit()

    await enqueue_pipeline_run(
        run_id=str(pipeline_run.id),
        pipeline=pipeline,
        trigger=trigger,
        # Registered repositories always clone from their stored URL
        repo_info={**repo_info, "clone_url": repository.clone_url},
    )

    logger.info(f"{pipeline} run {pipeline_run.id} ({trigger['kind']}) created and queued")

    return {
        "status": "queued",
        "run_id": str(pipeline_run.id),
        "pipeline": pipeline,
        "trigger": trigger["kind"],
    }
