"""
Repository checkout into a temporary workspace.
"""

import logging
import os
import shutil
import subprocess
import tempfile
from typing import Optional

from controller.src.config import get_settings
from controller.src.errors import CheckoutFailure

logger = logging.getLogger(__name__)
settings = get_settings()

def checkout_repository(
    clone_url: str,
    branch: str,
    commit_sha: Optional[str] = None,
    workspace_root: Optional[str] = None,
) -> str:
    """
    Clone repository to temporary directory.
    Returns path to cloned repo.
    """
    if not clone_url:
        raise CheckoutFailure("No clone URL for repository")

    workspace_root = workspace_root or settings.workspace_root
    os.makedirs(workspace_root, exist_ok=True)
    temp_dir = tempfile.mkdtemp(prefix="tfpipeline_", dir=workspace_root)
    repo_path = os.path.join(temp_dir, "repo")

    try:
        clone_cmd = ["git", "clone", "--depth", "1"]
        if branch:
            clone_cmd += ["--branch", branch]
        subprocess.run(
            clone_cmd + [clone_url, repo_path],
            check=True,
            capture_output=True,
            timeout=120
        )

        # Checkout specific commit if provided
        if commit_sha:
            subprocess.run(
                ["git", "fetch", "--depth", "1", "origin", commit_sha],
                cwd=repo_path,
                capture_output=True,
                timeout=60
            )
            subprocess.run(
                ["git", "checkout", commit_sha],
                cwd=repo_path,
                check=True,
                capture_output=True,
                timeout=30
            )

        logger.info(f"Checked out {clone_url}@{commit_sha or branch} to {repo_path}")
        return repo_path
    except subprocess.TimeoutExpired:
        cleanup_workspace(repo_path)
        raise CheckoutFailure("Repository clone timed out")
    except subprocess.CalledProcessError as e:
        cleanup_workspace(repo_path)
        raise CheckoutFailure(f"Failed to clone repository: {e.stderr.decode().strip()}")

def cleanup_workspace(repo_path: str):
    """Remove a cloned repository and its temp directory."""
    if not repo_path:
        return
    parent = os.path.dirname(repo_path)
    try:
        if os.path.exists(parent):
            shutil.rmtree(parent)
    except OSError as e:
        logger.warning(f"Failed to clean up workspace {parent}: {e}")
