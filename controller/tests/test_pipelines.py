"""Tests for deploy/destroy pipelines and the step sequencer."""

import asyncio

import pytest

from controller.src.config import Settings
from controller.src.errors import PlanFailure
from controller.src.models.step import (
    PipelineKind,
    RepoInfo,
    StepStatus,
    TriggerEvent,
    TriggerKind,
)
from controller.src.services import pipelines
from controller.src.services.executor import execute_pipeline, run_steps
from controller.src.services.pipelines import (
    Branch,
    RunContext,
    Step,
    get_pipeline,
    select_branch,
)

DEPLOY_ORDER = [
    "checkout", "authenticate", "install-terraform", "format-check", "init",
    "validate", "plan", "publish-plan", "apply", "show-outputs",
]
DESTROY_ORDER = [
    "checkout", "confirm", "authenticate", "install-terraform", "init",
    "plan-destroy", "apply-destroy", "report",
]

PLAN_TEXT = "Plan: 3 to add, 0 to change, 0 to destroy."

class Recorder:
    def __init__(self):
        self.calls = []

class FakeTerraform:
    """Stands in for TerraformCLI and records every command."""

    recorder = None
    plan_error = None

    def __init__(self, binary, working_dir, env):
        self.recorder.calls.append(("terraform", binary, working_dir))

    def fmt_check(self):
        self.recorder.calls.append("fmt")
        return ""

    def init(self, backend_config=None):
        self.recorder.calls.append("init")
        return "Terraform has been successfully initialized!"

    def validate(self):
        self.recorder.calls.append("validate")
        return "Success! The configuration is valid."

    def plan(self, out=None, destroy=False, var_files=None):
        self.recorder.calls.append(("plan", out, destroy))
        if self.plan_error:
            raise self.plan_error
        return PLAN_TEXT

    def apply(self, plan_file=None, destroy=False):
        self.recorder.calls.append(("apply", plan_file))
        return "Apply complete! Resources: 3 added, 0 changed, 0 destroyed."

    def output(self):
        self.recorder.calls.append("output")
        return {"vpc_id": {"sensitive": False, "value": "vpc-123"}}

@pytest.fixture
def recorder(monkeypatch):
    rec = Recorder()

    def fake_auth(**kwargs):
        rec.calls.append("authenticate")
        return {"AWS_REGION": kwargs["region"], "AWS_ACCESS_KEY_ID": "AKIA123"}

    def fake_install(version, install_dir):
        rec.calls.append(("install", version))
        return "/opt/terraform"

    def fake_comment(repo, number, plan_text, actor=None, token=None):
        rec.calls.append(("comment", repo, number, plan_text))
        return f"https://github.com/{repo}/pull/{number}#issuecomment-1"

    def fake_checkout(*args, **kwargs):
        raise AssertionError("local checkout should not clone")

    FakeTerraform.recorder = rec
    FakeTerraform.plan_error = None
    monkeypatch.setattr(pipelines, "resolve_aws_environment", fake_auth)
    monkeypatch.setattr(pipelines, "install_terraform", fake_install)
    monkeypatch.setattr(pipelines, "post_plan_comment", fake_comment)
    monkeypatch.setattr(pipelines, "checkout_repository", fake_checkout)
    monkeypatch.setattr(pipelines, "TerraformCLI", FakeTerraform)
    return rec

@pytest.fixture
def repo(tmp_path):
    (tmp_path / "terraform").mkdir()
    return tmp_path

def make_context(repo, pipeline, trigger):
    return RunContext(
        run_id="3f2c9a10-0000-0000-0000-000000000000",
        pipeline=pipeline,
        trigger=trigger,
        repo_info=RepoInfo(repo_full_name="acme/vpc", local_path=str(repo)),
        settings=Settings(terraform_working_directory="terraform", github_token="ghp_test"),
    )

def run(repo, pipeline, trigger):
    ctx = make_context(repo, pipeline, trigger)
    return ctx, run_steps(ctx, get_pipeline(pipeline))

def statuses(result):
    return {s.name: s.status for s in result.steps}

def test_step_order_is_fixed():
    assert [s.name for s in get_pipeline(PipelineKind.DEPLOY)] == DEPLOY_ORDER
    assert [s.name for s in get_pipeline(PipelineKind.DESTROY)] == DESTROY_ORDER
    # Callers get a copy, the definitions cannot be reordered
    get_pipeline(PipelineKind.DEPLOY).reverse()
    assert [s.name for s in get_pipeline(PipelineKind.DEPLOY)] == DEPLOY_ORDER

def test_select_branch():
    pr = TriggerEvent(kind=TriggerKind.PULL_REQUEST, pull_request_number=1)
    assert select_branch(pr) == Branch.COMMENT
    assert select_branch(TriggerEvent(kind=TriggerKind.PUSH_TO_MAIN)) == Branch.APPLY
    assert select_branch(TriggerEvent(kind=TriggerKind.MANUAL_DISPATCH)) == Branch.APPLY

def test_push_to_main_applies_after_plan(recorder, repo):
    ctx, result = run(repo, PipelineKind.DEPLOY, TriggerEvent(kind=TriggerKind.PUSH_TO_MAIN))

    assert result.exit_code == 0
    assert result.executed() == [n for n in DEPLOY_ORDER if n != "publish-plan"]
    assert statuses(result)["publish-plan"] == StepStatus.SKIPPED

    plan_index = recorder.calls.index(("plan", "tfplan", False))
    apply_index = recorder.calls.index(("apply", "tfplan"))
    assert plan_index < apply_index
    assert ctx.outputs["vpc_id"]["value"] == "vpc-123"
    assert ("terraform", "/opt/terraform", str(repo / "terraform")) in recorder.calls

def test_manual_dispatch_deploy_applies(recorder, repo):
    _, result = run(repo, PipelineKind.DEPLOY, TriggerEvent(kind=TriggerKind.MANUAL_DISPATCH))

    assert result.succeeded
    assert ("apply", "tfplan") in recorder.calls

def test_pull_request_posts_plan_and_never_applies(recorder, repo):
    trigger = TriggerEvent(kind=TriggerKind.PULL_REQUEST, pull_request_number=7)
    ctx, result = run(repo, PipelineKind.DEPLOY, trigger)

    assert result.exit_code == 0
    assert ("comment", "acme/vpc", 7, PLAN_TEXT) in recorder.calls
    assert not any(isinstance(c, tuple) and c[0] == "apply" for c in recorder.calls)
    assert statuses(result)["apply"] == StepStatus.SKIPPED
    assert statuses(result)["show-outputs"] == StepStatus.SKIPPED
    assert ctx.comment_url.endswith("#issuecomment-1")

def test_plan_failure_stops_before_apply(recorder, repo):
    FakeTerraform.plan_error = PlanFailure("terraform plan exited with code 1: Error: invalid CIDR")
    _, result = run(repo, PipelineKind.DEPLOY, TriggerEvent(kind=TriggerKind.PUSH_TO_MAIN))

    assert result.exit_code == 1
    assert result.failed_step == "plan"
    assert result.error_type == "PlanFailure"
    assert "invalid CIDR" in result.error
    assert not any(isinstance(c, tuple) and c[0] == "apply" for c in recorder.calls)
    for name in ("publish-plan", "apply", "show-outputs"):
        assert statuses(result)[name] == StepStatus.CANCELLED

@pytest.mark.parametrize("confirmation", ["Destroy", "no", "destroy ", "", None])
def test_destroy_rejected_before_anything_is_touched(recorder, repo, confirmation):
    trigger = TriggerEvent(kind=TriggerKind.MANUAL_DISPATCH, confirmation=confirmation)
    _, result = run(repo, PipelineKind.DESTROY, trigger)

    assert result.exit_code == 1
    assert result.failed_step == "confirm"
    assert result.error_type == "ConfirmationMismatch"
    assert result.executed() == ["checkout", "confirm"]
    assert recorder.calls == []
    for name in DESTROY_ORDER[2:]:
        assert statuses(result)[name] == StepStatus.CANCELLED

def test_destroy_with_confirmation_runs_in_order(recorder, repo):
    trigger = TriggerEvent(kind=TriggerKind.MANUAL_DISPATCH, confirmation="destroy")
    _, result = run(repo, PipelineKind.DESTROY, trigger)

    assert result.exit_code == 0
    assert result.executed() == DESTROY_ORDER
    assert recorder.calls == [
        "authenticate",
        ("install", "1.6.6"),
        ("terraform", "/opt/terraform", str(repo / "terraform")),
        "init",
        ("plan", "tfplan-destroy", True),
        ("apply", "tfplan-destroy"),
    ]

def test_unexpected_exception_fails_run(repo):
    def explode(ctx):
        raise RuntimeError("disk full")

    steps = [
        Step("first", lambda ctx: "ok"),
        Step("second", explode),
        Step("third", lambda ctx: "never"),
    ]
    ctx = make_context(repo, PipelineKind.DEPLOY, TriggerEvent(kind=TriggerKind.PUSH_TO_MAIN))
    result = run_steps(ctx, steps)

    assert result.status == StepStatus.FAILED
    assert result.error_type == "RuntimeError"
    assert [s.status for s in result.steps] == [
        StepStatus.SUCCEEDED, StepStatus.FAILED, StepStatus.CANCELLED,
    ]
    assert result.steps[0].logs == "ok"

class FakeReporter:
    def __init__(self):
        self.events = []

    def create_steps(self, run_id, names):
        self.events.append(("steps", names))

    def update_run_status(self, run_id, status, error=None, started_at=None, finished_at=None):
        self.events.append(("run", status, error))

    def update_step_status(self, run_id, step_order, status, logs=None, error=None,
                           started_at=None, finished_at=None):
        self.events.append(("step", step_order, status))

def test_execute_pipeline_reports_status(recorder, repo):
    job = {
        "run_id": "3f2c9a10-0000-0000-0000-000000000000",
        "pipeline": "destroy",
        "trigger": {"kind": "manual_dispatch", "confirmation": "Destroy"},
        "repo_info": {"repo_full_name": "acme/vpc", "local_path": str(repo)},
    }
    reporter = FakeReporter()
    settings = Settings(terraform_working_directory="terraform")

    result = asyncio.run(execute_pipeline(job, reporter=reporter, settings=settings))

    assert result.exit_code == 1
    assert reporter.events[0] == ("steps", DESTROY_ORDER)
    assert reporter.events[1] == ("run", "running", None)
    assert reporter.events[-1][0:2] == ("run", "failed")
    assert "expected 'destroy'" in reporter.events[-1][2]
    assert ("step", 1, "failed") in reporter.events
    assert ("step", 2, "cancelled") in reporter.events
    assert repo.exists()

def test_invalid_job_marks_run_failed():
    job = {
        "run_id": "run-1",
        "pipeline": "destroy",
        "trigger": {"kind": "push_to_main"},
        "repo_info": {"repo_full_name": "acme/vpc"},
    }
    reporter = FakeReporter()

    with pytest.raises(ValueError):
        asyncio.run(execute_pipeline(job, reporter=reporter))

    assert reporter.events[0][0:2] == ("run", "failed")
    assert "Invalid job" in reporter.events[0][2]

class BrokenReporter(FakeReporter):
    def update_step_status(self, run_id, step_order, status, logs=None, error=None,
                           started_at=None, finished_at=None):
        if step_order == 2:
            raise RuntimeError("database unavailable")
        super().update_step_status(run_id, step_order, status)

def test_reporter_failure_marks_run_failed(recorder, repo):
    job = {
        "run_id": "3f2c9a10-0000-0000-0000-000000000000",
        "pipeline": "deploy",
        "trigger": {"kind": "push_to_main"},
        "repo_info": {"repo_full_name": "acme/vpc", "local_path": str(repo)},
    }
    reporter = BrokenReporter()
    settings = Settings(terraform_working_directory="terraform")

    with pytest.raises(RuntimeError, match="database unavailable"):
        asyncio.run(execute_pipeline(job, reporter=reporter, settings=settings))

    assert reporter.events[-1] == ("run", "failed", "Run aborted: database unavailable")

@pytest.fixture
def cloned(monkeypatch, tmp_path):
    """Checkout that creates a workspace directory the way a clone would."""
    workspace = tmp_path / "ws" / "tfpipeline_abc"

    def fake_checkout(clone_url, branch, commit_sha=None, workspace_root=None):
        repo_path = workspace / "repo"
        (repo_path / "terraform").mkdir(parents=True)
        return str(repo_path)

    monkeypatch.setattr(pipelines, "checkout_repository", fake_checkout)
    return workspace

def cloned_job(pipeline, trigger):
    return {
        "run_id": "3f2c9a10-0000-0000-0000-000000000000",
        "pipeline": pipeline,
        "trigger": trigger,
        "repo_info": {
            "repo_full_name": "acme/vpc",
            "clone_url": "https://github.com/acme/vpc.git",
            "branch": "main",
            "commit_sha": "abc123",
        },
    }

def test_cloned_workspace_removed_after_success(recorder, cloned):
    settings = Settings(terraform_working_directory="terraform")
    job = cloned_job("deploy", {"kind": "push_to_main"})

    result = asyncio.run(execute_pipeline(job, reporter=FakeReporter(), settings=settings))

    assert result.succeeded
    assert not cloned.exists()

def test_cloned_workspace_removed_after_failure(recorder, cloned):
    settings = Settings(terraform_working_directory="terraform")
    job = cloned_job("destroy", {"kind": "manual_dispatch", "confirmation": "Destroy"})

    result = asyncio.run(execute_pipeline(job, reporter=FakeReporter(), settings=settings))

    assert result.failed_step == "confirm"
    assert not cloned.exists()

def test_missing_region_fails_authenticate(repo):
    ctx = RunContext(
        run_id="3f2c9a10-0000-0000-0000-000000000000",
        pipeline=PipelineKind.DEPLOY,
        trigger=TriggerEvent(kind=TriggerKind.PUSH_TO_MAIN),
        repo_info=RepoInfo(repo_full_name="acme/vpc", local_path=str(repo)),
        settings=Settings(terraform_working_directory="terraform", aws_region=""),
    )

    result = run_steps(ctx, get_pipeline(PipelineKind.DEPLOY))

    assert result.failed_step == "authenticate"
    assert result.error_type == "CredentialFailure"
    assert "region" in result.error
    for name in DEPLOY_ORDER[2:]:
        assert statuses(result)[name] == StepStatus.CANCELLED
