"""Tests for webhook handling."""

import pytest
from api.src.services.github import (
    classify_event,
    parse_pull_request_payload,
    parse_webhook_payload,
    verify_signature,
)

def push_payload(ref="refs/heads/main", **extra):
    payload = {
        "ref": ref,
        "repository": {
            "name": "vpc",
            "full_name": "acme/vpc",
            "clone_url": "https://github.com/acme/vpc.git",
        },
        "head_commit": {
            "id": "abc123def456",
            "message": "Widen private subnets",
        },
        "pusher": {
            "name": "testuser",
        },
    }
    payload.update(extra)
    return payload

def pull_request_payload(action="opened"):
    return {
        "action": action,
        "number": 42,
        "repository": {
            "name": "vpc",
            "full_name": "acme/vpc",
            "clone_url": "https://github.com/acme/vpc.git",
        },
        "pull_request": {
            "number": 42,
            "head": {"ref": "feature/nat", "sha": "fedcba987654"},
        },
        "sender": {"login": "octocat"},
    }

def test_parse_push_payload():
    result = parse_webhook_payload(push_payload())

    assert result["repo_name"] == "vpc"
    assert result["repo_full_name"] == "acme/vpc"
    assert result["branch"] == "main"
    assert result["commit_sha"] == "abc123def456"
    assert result["pusher"] == "testuser"

def test_parse_payload_with_after():
    """Test fallback to 'after' field for commit SHA."""
    payload = push_payload(ref="refs/heads/feature", after="xyz789")
    payload["head_commit"] = None

    result = parse_webhook_payload(payload)
    assert result["commit_sha"] == "xyz789"
    assert result["branch"] == "feature"

def test_parse_pull_request_payload():
    result = parse_pull_request_payload(pull_request_payload())

    assert result["commit_sha"] == "fedcba987654"
    assert result["branch"] == "feature/nat"
    assert result["pull_request_number"] == 42
    assert result["pusher"] == "octocat"

def test_push_to_main_deploys():
    request = classify_event("push", push_payload(), main_branch="main")

    assert request["pipeline"] == "deploy"
    assert request["trigger"]["kind"] == "push_to_main"
    assert request["trigger"]["confirmation"] is None

def test_push_to_other_branch_ignored():
    assert classify_event("push", push_payload(ref="refs/heads/feature"), main_branch="main") is None

def test_branch_deletion_ignored():
    assert classify_event("push", push_payload(deleted=True), main_branch="main") is None

@pytest.mark.parametrize("action", ["opened", "synchronize", "reopened"])
def test_pull_request_plans(action):
    request = classify_event("pull_request", pull_request_payload(action))

    assert request["pipeline"] == "deploy"
    assert request["trigger"]["kind"] == "pull_request"
    assert request["trigger"]["pull_request_number"] == 42

@pytest.mark.parametrize("action", ["closed", "labeled", "edited"])
def test_pull_request_other_actions_ignored(action):
    assert classify_event("pull_request", pull_request_payload(action)) is None

def test_unknown_event_ignored():
    assert classify_event("issues", {}) is None

def test_verify_signature_without_secret():
    """When no secret is configured, verification should pass."""
    # This test assumes GITHUB_WEBHOOK_SECRET is not set
    result = verify_signature(b"payload", "sha256=anything")
    assert result is True

def test_verify_signature_with_secret(monkeypatch):
    import hashlib
    import hmac
    from api.src.services import github

    monkeypatch.setattr(github.settings, "github_webhook_secret", "s3cret")
    good = "sha256=" + hmac.new(b"s3cret", b"payload", hashlib.sha256).hexdigest()

    assert verify_signature(b"payload", good) is True
    assert verify_signature(b"payload", "sha256=forged") is False
