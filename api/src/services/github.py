"""
GitHub service for webhook validation and event classification.
"""

import hmac
import hashlib
from typing import Optional, Dict, Any

from api.src.config import get_settings
from api.src.models.run import PipelineKind, TriggerKind

settings = get_settings()

# pull_request actions that produce a new plan
PLAN_ACTIONS = {"opened", "synchronize", "reopened"}

def verify_signature(payload: bytes, signature: str) -> bool:
    """Verify GitHub webhook signature."""
    if not settings.github_webhook_secret:
        # Skip verification if no secret configured (development)
        return True

    expected = "sha256=" + hmac.new(
        settings.github_webhook_secret.encode(),
        payload,
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, signature)

def parse_webhook_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Extract relevant info from GitHub push webhook payload."""
    repo = payload.get("repository", {})
    head_commit = payload.get("head_commit") or {}

    # Get branch from ref (refs/heads/main -> main)
    ref = payload.get("ref", "")
    branch = ref.replace("refs/heads/", "") if ref.startswith("refs/heads/") else ref

    return {
        "repo_name": repo.get("name", ""),
        "repo_full_name": repo.get("full_name", ""),
        "clone_url": repo.get("clone_url", ""),
        "commit_sha": head_commit.get("id", payload.get("after", "")),
        "branch": branch,
        "commit_message": head_commit.get("message", ""),
        "pusher": payload.get("pusher", {}).get("name", ""),
    }

def parse_pull_request_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Extract relevant info from GitHub pull_request webhook payload."""
    repo = payload.get("repository", {})
    pull_request = payload.get("pull_request", {})
    head = pull_request.get("head", {})

    return {
        "repo_name": repo.get("name", ""),
        "repo_full_name": repo.get("full_name", ""),
        "clone_url": repo.get("clone_url", ""),
        "commit_sha": head.get("sha", ""),
        "branch": head.get("ref", ""),
        "action": payload.get("action", ""),
        "pull_request_number": pull_request.get("number", payload.get("number")),
        "pusher": payload.get("sender", {}).get("login", ""),
    }

def classify_event(
    event: Optional[str],
    payload: Dict[str, Any],
    main_branch: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Map a webhook event to a deploy run request.
    Returns None when the event does not trigger a pipeline.
    """
    main_branch = main_branch or settings.main_branch

    if event == "push":
        data = parse_webhook_payload(payload)
        if data["branch"] != main_branch or payload.get("deleted"):
            return None
        trigger = {
            "kind": TriggerKind.PUSH_TO_MAIN.value,
            "confirmation": None,
            "pull_request_number": None,
            "actor": data["pusher"],
        }
    elif event == "pull_request":
        data = parse_pull_request_payload(payload)
        if data["action"] not in PLAN_ACTIONS or data["pull_request_number"] is None:
            return None
        trigger = {
            "kind": TriggerKind.PULL_REQUEST.value,
            "confirmation": None,
            "pull_request_number": data["pull_request_number"],
            "actor": data["pusher"],
        }
    else:
        return None

    return {
        "pipeline": PipelineKind.DEPLOY.value,
        "trigger": trigger,
        "repo_info": data,
    }
