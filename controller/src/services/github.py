"""
GitHub service for publishing plans on pull requests.
"""

import logging
from typing import Optional

import httpx

from controller.src.config import get_settings
from controller.src.errors import CommentFailure

logger = logging.getLogger(__name__)
settings = get_settings()

# GitHub rejects comment bodies above 65536 characters
MAX_COMMENT_LENGTH = 65000
TRUNCATION_NOTICE = "\n... (plan truncated, see the run logs for the full output)"

def format_plan_comment(plan_text: str, actor: Optional[str] = None) -> str:
    """Render plan output as a collapsible Markdown comment."""
    header = "#### Terraform Plan\n\n<details><summary>Show Plan</summary>\n\n```terraform\n"
    footer = "\n```\n\n</details>\n"
    if actor:
        footer += f"\n*Triggered by: @{actor}*\n"

    budget = MAX_COMMENT_LENGTH - len(header) - len(footer)
    body = plan_text.strip()
    if len(body) > budget:
        body = body[:budget - len(TRUNCATION_NOTICE)] + TRUNCATION_NOTICE

    return header + body + footer

def post_plan_comment(
    repo_full_name: str,
    pull_request_number: int,
    plan_text: str,
    actor: Optional[str] = None,
    token: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> str:
    """
    Post the plan as a comment on the pull request.
    Returns the comment URL.
    """
    token = token or settings.github_token
    if not token:
        raise CommentFailure("GITHUB_TOKEN is not configured, cannot comment on pull request")

    url = f"{settings.github_api_url}/repos/{repo_full_name}/issues/{pull_request_number}/comments"
    headers = {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }

    owns_client = client is None
    client = client or httpx.Client(timeout=30)

    try:
        response = client.post(
            url,
            headers=headers,
            json={"body": format_plan_comment(plan_text, actor)},
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise CommentFailure(
            f"GitHub rejected plan comment ({e.response.status_code}): {e.response.text}"
        )
    except httpx.HTTPError as e:
        raise CommentFailure(f"Failed to post plan comment: {e}")
    finally:
        if owns_client:
            client.close()

    comment_url = response.json().get("html_url", "")
    logger.info(f"Posted plan comment on {repo_full_name}#{pull_request_number}")
    return comment_url
