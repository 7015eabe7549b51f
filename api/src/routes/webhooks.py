"""
GitHub webhook endpoints.
"""

from fastapi import APIRouter, Request, HTTPException, Header, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from api.src.db.database import get_db
from api.src.services.github import verify_signature, classify_event
from api.src.services.runs import get_or_create_repository, create_pipeline_run

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

async def process_event(
    event: str,
    payload: dict,
    db: AsyncSession,
):
    """Process a GitHub push or pull_request event and create a deploy run."""
    request = classify_event(event, payload)

    if request is None:
        return {"status": "skipped", "reason": f"Event '{event}' does not trigger a pipeline"}

    repo_info = request["repo_info"]
    if not repo_info["commit_sha"]:
        logger.warning("No commit SHA in webhook payload")
        return {"status": "skipped", "reason": "No commit SHA"}

    repository = await get_or_create_repository(db, repo_info)

    return await create_pipeline_run(
        db,
        repository,
        pipeline=request["pipeline"],
        trigger=request["trigger"],
        repo_info=repo_info,
    )

@router.post("/github")
async def github_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    x_hub_signature_256: Optional[str] = Header(None),
    x_github_event: Optional[str] = Header(None),
):
    """
    Receive GitHub webhook events.
    """
    # Get raw body for signature verification
    body = await request.body()

    # Verify signature; a missing header fails when a secret is configured
    if not verify_signature(body, x_hub_signature_256 or ""):
        raise HTTPException(status_code=401, detail="Invalid signature")

    # Parse JSON payload
    try:
        payload = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if x_github_event == "ping":
        return {"status": "pong", "message": "Webhook configured successfully"}

    if x_github_event in ("push", "pull_request"):
        return await process_event(x_github_event, payload, db)

    # Ignore other events
    return {
        "status": "ignored",
        "event": x_github_event,
        "message": f"Event type '{x_github_event}' not handled"
    }
