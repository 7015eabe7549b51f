from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import List, Optional
from uuid import UUID

from api.src.db.database import get_db
from api.src.models.pipeline import PipelineRun, Repository
from api.src.models.run import DispatchRequest, PipelineRunResponse, RepositoryResponse
from api.src.services.queue import get_run_status
from api.src.services.runs import get_or_create_repository, create_pipeline_run

router = APIRouter(prefix="/pipelines", tags=["pipelines"])

@router.post("/dispatch", status_code=202)
async def dispatch_pipeline(
    request: DispatchRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Manually dispatch a deploy or destroy run.
    The destroy confirmation is checked by the run itself, so a wrong
    input shows up as a failed run.
    """
    query = select(Repository).where(Repository.full_name == request.repository_full_name)
    result = await db.execute(query)
    repository = result.scalar_one_or_none()

    if not repository and not request.clone_url:
        raise HTTPException(
            status_code=404,
            detail="Repository not registered, provide clone_url to register it",
        )

    repo_info = {
        "repo_full_name": request.repository_full_name,
        "clone_url": request.clone_url or repository.clone_url,
        "branch": request.branch,
        "commit_sha": request.commit_sha or "",
    }

    if not repository:
        repository = await get_or_create_repository(db, repo_info)

    return await create_pipeline_run(
        db,
        repository,
        pipeline=request.pipeline.value,
        trigger=request.trigger(),
        repo_info=repo_info,
    )

@router.get("/runs", response_model=List[PipelineRunResponse])
async def list_runs(
    limit: int = 20,
    offset: int = 0,
    status: Optional[str] = None,
    pipeline: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    """List all pipeline runs."""
    query = (
        select(PipelineRun)
        .options(selectinload(PipelineRun.steps))
        .order_by(PipelineRun.created_at.desc())
    )

    if status:
        query = query.where(PipelineRun.status == status)
    if pipeline:
        query = query.where(PipelineRun.pipeline == pipeline)

    query = query.limit(limit).offset(offset)

    result = await db.execute(query)
    runs = result.scalars().all()
    return runs

async def load_run(db: AsyncSession, run_id: UUID) -> PipelineRun:
    """Fetch a run with its steps or raise 404."""
    query = (
        select(PipelineRun)
        .options(selectinload(PipelineRun.steps))
        .where(PipelineRun.id == run_id)
    )
    result = await db.execute(query)
    run = result.scalar_one_or_none()

    if not run:
        raise HTTPException(status_code=404, detail="Pipeline run not found")

    return run

@router.get("/runs/{run_id}", response_model=PipelineRunResponse)
async def get_run(run_id: UUID, db: AsyncSession = Depends(get_db)):
    """Get a specific pipeline run."""
    return await load_run(db, run_id)

@router.get("/runs/{run_id}/status")
async def get_run_status_endpoint(run_id: UUID, db: AsyncSession = Depends(get_db)):
    """Get real-time status of a pipeline run."""
    run = await load_run(db, run_id)

    # Get live status from Redis
    redis_status = await get_run_status(str(run_id))

    return {
        "run_id": str(run_id),
        "pipeline": run.pipeline,
        "db_status": run.status,
        "live_status": redis_status,
        "error": run.error,
        "steps": [
            {
                "name": step.name,
                "status": step.status,
                "order": step.step_order,
            }
            for step in sorted(run.steps, key=lambda s: s.step_order)
        ]
    }

@router.get("/runs/{run_id}/logs")
async def get_run_logs(run_id: UUID, db: AsyncSession = Depends(get_db)):
    """Get logs for all steps in a pipeline run."""
    run = await load_run(db, run_id)
    steps = sorted(run.steps, key=lambda s: s.step_order)

    return {
        "run_id": str(run_id),
        "steps": [
            {
                "name": step.name,
                "status": step.status,
                "logs": step.logs,
                "error": step.error,
                "started_at": step.started_at,
                "finished_at": step.finished_at,
            }
            for step in steps
        ]
    }

@router.get("/repositories", response_model=List[RepositoryResponse])
async def list_repositories(db: AsyncSession = Depends(get_db)):
    """List all registered repositories."""
    query = select(Repository).order_by(Repository.created_at.desc())
    result = await db.execute(query)
    repos = result.scalars().all()
    return repos

@router.get("/stats")
async def get_pipeline_stats(db: AsyncSession = Depends(get_db)):
    """Get pipeline statistics."""
    from sqlalchemy import func

    # Count runs by pipeline and status
    status_query = (
        select(PipelineRun.pipeline, PipelineRun.status, func.count(PipelineRun.id))
        .group_by(PipelineRun.pipeline, PipelineRun.status)
    )
    result = await db.execute(status_query)
    runs = {}
    for pipeline, status, count in result.all():
        runs.setdefault(pipeline, {})[status] = count

    # Count total repositories
    repo_count_query = select(func.count(Repository.id))
    result = await db.execute(repo_count_query)
    repo_count = result.scalar()

    return {
        "repositories": repo_count,
        "runs": runs,
        "total_runs": sum(sum(counts.values()) for counts in runs.values()),
    }
