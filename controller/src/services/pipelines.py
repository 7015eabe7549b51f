"""
Deploy and destroy pipeline definitions.

A pipeline is a fixed list of steps. Each step is a function of the run
context; a step with a `when` predicate is skipped when it returns False.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Any

from controller.src.config import Settings, get_settings
from controller.src.models.step import PipelineKind, RepoInfo, TriggerEvent
from controller.src.services.credentials import resolve_aws_environment
from controller.src.services.gate import verify_confirmation
from controller.src.services.github import post_plan_comment
from controller.src.services.installer import install_terraform
from controller.src.services.pipeline_config import load_pipeline_config, resolve_working_dir
from controller.src.services.terraform import (
    TerraformCLI,
    PLAN_FILE,
    DESTROY_PLAN_FILE,
    format_outputs,
)
from controller.src.services.workspace import checkout_repository

logger = logging.getLogger(__name__)

@dataclass
class RunContext:
    run_id: str
    pipeline: PipelineKind
    trigger: TriggerEvent
    repo_info: RepoInfo
    settings: Settings = field(default_factory=get_settings)
    repo_path: Optional[str] = None
    cloned: bool = False
    config: Dict[str, Any] = field(default_factory=dict)
    working_dir: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    terraform: Optional[TerraformCLI] = None
    plan_text: str = ""
    outputs: Dict[str, Any] = field(default_factory=dict)
    comment_url: Optional[str] = None

@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[RunContext], Optional[str]]
    when: Optional[Callable[[RunContext], bool]] = None

class Branch(str, Enum):
    COMMENT = "comment"
    APPLY = "apply"

def select_branch(trigger: TriggerEvent) -> Branch:
    """Pull requests only get their plan published; everything else applies."""
    if trigger.is_pull_request:
        return Branch.COMMENT
    return Branch.APPLY

def on_comment_branch(ctx: RunContext) -> bool:
    return select_branch(ctx.trigger) == Branch.COMMENT

def on_apply_branch(ctx: RunContext) -> bool:
    return select_branch(ctx.trigger) == Branch.APPLY

# Steps

def checkout(ctx: RunContext) -> str:
    info = ctx.repo_info
    if info.local_path:
        ctx.repo_path = info.local_path
    else:
        ctx.repo_path = checkout_repository(
            info.clone_url,
            info.branch,
            info.commit_sha or None,
            ctx.settings.workspace_root,
        )
        ctx.cloned = True

    defaults = {
        "working_directory": ctx.settings.terraform_working_directory,
        "terraform_version": ctx.settings.terraform_version,
        "aws_region": ctx.settings.aws_region,
    }
    ctx.config = load_pipeline_config(ctx.repo_path, defaults)
    ctx.working_dir = resolve_working_dir(ctx.repo_path, ctx.config)
    return f"Checked out {info.repo_full_name or ctx.repo_path}, working directory {ctx.config['working_directory']}"

def confirm(ctx: RunContext) -> str:
    verify_confirmation(ctx.trigger)
    return "Destroy confirmed"

def authenticate(ctx: RunContext) -> str:
    s = ctx.settings
    ctx.env.update(resolve_aws_environment(
        region=ctx.config.get("aws_region", s.aws_region),
        access_key_id=s.aws_access_key_id,
        secret_access_key=s.aws_secret_access_key,
        role_arn=s.aws_role_arn,
        web_identity_token_file=s.aws_web_identity_token_file,
        session_name=f"tfpipeline-{ctx.run_id[:8]}",
    ))
    return f"Authenticated to AWS in {ctx.env['AWS_REGION']}"

def install(ctx: RunContext) -> str:
    version = ctx.config.get("terraform_version", ctx.settings.terraform_version)
    binary = install_terraform(version, ctx.settings.terraform_install_dir)
    ctx.terraform = TerraformCLI(binary, ctx.working_dir, ctx.env)
    return f"Terraform {version} at {binary}"

def format_check(ctx: RunContext) -> str:
    return ctx.terraform.fmt_check()

def init(ctx: RunContext) -> str:
    return ctx.terraform.init(ctx.config.get("backend"))

def validate(ctx: RunContext) -> str:
    return ctx.terraform.validate()

def plan(ctx: RunContext) -> str:
    ctx.plan_text = ctx.terraform.plan(out=PLAN_FILE, var_files=ctx.config.get("var_files"))
    return ctx.plan_text

def publish_plan(ctx: RunContext) -> str:
    ctx.comment_url = post_plan_comment(
        ctx.repo_info.repo_full_name,
        ctx.trigger.pull_request_number,
        ctx.plan_text,
        actor=ctx.trigger.actor,
        token=ctx.settings.github_token,
    )
    return f"Plan published: {ctx.comment_url}"

def apply(ctx: RunContext) -> str:
    return ctx.terraform.apply(plan_file=PLAN_FILE)

def show_outputs(ctx: RunContext) -> str:
    ctx.outputs = ctx.terraform.output()
    rendered = format_outputs(ctx.outputs)
    logger.info(f"Terraform outputs:\n{rendered}")
    return rendered

def plan_destroy(ctx: RunContext) -> str:
    ctx.plan_text = ctx.terraform.plan(
        out=DESTROY_PLAN_FILE,
        destroy=True,
        var_files=ctx.config.get("var_files"),
    )
    return ctx.plan_text

def apply_destroy(ctx: RunContext) -> str:
    return ctx.terraform.apply(plan_file=DESTROY_PLAN_FILE, destroy=True)

def report_destroyed(ctx: RunContext) -> str:
    message = f"Infrastructure in {ctx.config.get('working_directory')} destroyed"
    logger.info(message)
    return message

DEPLOY_STEPS = [
    Step("checkout", checkout),
    Step("authenticate", authenticate),
    Step("install-terraform", install),
    Step("format-check", format_check),
    Step("init", init),
    Step("validate", validate),
    Step("plan", plan),
    Step("publish-plan", publish_plan, when=on_comment_branch),
    Step("apply", apply, when=on_apply_branch),
    Step("show-outputs", show_outputs, when=on_apply_branch),
]

DESTROY_STEPS = [
    Step("checkout", checkout),
    Step("confirm", confirm),
    Step("authenticate", authenticate),
    Step("install-terraform", install),
    Step("init", init),
    Step("plan-destroy", plan_destroy),
    Step("apply-destroy", apply_destroy),
    Step("report", report_destroyed),
]

PIPELINES: Dict[PipelineKind, List[Step]] = {
    PipelineKind.DEPLOY: DEPLOY_STEPS,
    PipelineKind.DESTROY: DESTROY_STEPS,
}

def get_pipeline(kind: PipelineKind) -> List[Step]:
    return list(PIPELINES[kind])
