"""
Redis queue service for pipeline jobs.
"""

import redis.asyncio as redis
import json
from typing import Dict, Any, Optional
from datetime import datetime

from api.src.config import get_settings

settings = get_settings()

PIPELINE_QUEUE = "tfpipeline:jobs"
PIPELINE_STATUS = "tfpipeline:status"

async def get_redis_client() -> redis.Redis:
    """Get async Redis client."""
    return redis.from_url(settings.redis_url, decode_responses=True)

def build_job(
    run_id: str,
    pipeline: str,
    trigger: Dict[str, Any],
    repo_info: Dict[str, Any],
) -> Dict[str, Any]:
    """Queue message consumed by the controller."""
    return {
        "run_id": run_id,
        "pipeline": pipeline,
        "trigger": trigger,
        "repo_info": {
            "repo_full_name": repo_info.get("repo_full_name", ""),
            "clone_url": repo_info.get("clone_url", ""),
            "branch": repo_info.get("branch", ""),
            "commit_sha": repo_info.get("commit_sha", ""),
        },
        "queued_at": datetime.utcnow().isoformat(),
    }

async def enqueue_pipeline_run(
    run_id: str,
    pipeline: str,
    trigger: Dict[str, Any],
    repo_info: Dict[str, Any],
):
    """Add pipeline run to processing queue."""
    client = await get_redis_client()

    job = build_job(run_id, pipeline, trigger, repo_info)

    try:
        await client.lpush(PIPELINE_QUEUE, json.dumps(job))
        await client.hset(PIPELINE_STATUS, run_id, "queued")
    finally:
        await client.close()

async def get_run_status(run_id: str) -> Optional[str]:
    """Get pipeline run status from Redis."""
    client = await get_redis_client()

    try:
        return await client.hget(PIPELINE_STATUS, run_id)
    finally:
        await client.close()

async def get_queue_length() -> int:
    """Get number of jobs in queue."""
    client = await get_redis_client()

    try:
        return await client.llen(PIPELINE_QUEUE)
    finally:
        await client.close()
