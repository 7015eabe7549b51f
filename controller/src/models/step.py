"""
Step execution models.
"""

from pydantic import BaseModel, model_validator
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum

class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"

class PipelineKind(str, Enum):
    DEPLOY = "deploy"
    DESTROY = "destroy"

class TriggerKind(str, Enum):
    PUSH_TO_MAIN = "push_to_main"
    PULL_REQUEST = "pull_request"
    MANUAL_DISPATCH = "manual_dispatch"

class TriggerEvent(BaseModel):
    kind: TriggerKind
    confirmation: Optional[str] = None
    pull_request_number: Optional[int] = None
    actor: Optional[str] = None

    @model_validator(mode="after")
    def check_payload(self) -> "TriggerEvent":
        if self.confirmation is not None and self.kind != TriggerKind.MANUAL_DISPATCH:
            raise ValueError("confirmation is only accepted on manual dispatch")
        if self.kind == TriggerKind.PULL_REQUEST and self.pull_request_number is None:
            raise ValueError("pull_request trigger requires pull_request_number")
        return self

    @property
    def is_pull_request(self) -> bool:
        return self.kind == TriggerKind.PULL_REQUEST

class RepoInfo(BaseModel):
    repo_full_name: str = ""
    clone_url: str = ""
    branch: str = "main"
    commit_sha: str = ""
    # Use an existing checkout instead of cloning
    local_path: Optional[str] = None

class StepResult(BaseModel):
    step_order: int
    name: str
    status: StepStatus
    logs: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None

class RunResult(BaseModel):
    run_id: str
    pipeline: PipelineKind
    status: StepStatus
    steps: List[StepResult] = []
    failed_step: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.SUCCEEDED

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def executed(self) -> List[str]:
        """Names of the steps that actually ran, in order."""
        return [
            s.name for s in self.steps
            if s.status in (StepStatus.SUCCEEDED, StepStatus.FAILED)
        ]

class PipelineJob(BaseModel):
    run_id: str
    pipeline: PipelineKind
    trigger: TriggerEvent
    repo_info: RepoInfo
    queued_at: Optional[str] = None

    @model_validator(mode="after")
    def check_trigger(self) -> "PipelineJob":
        if self.pipeline == PipelineKind.DESTROY and self.trigger.kind != TriggerKind.MANUAL_DISPATCH:
            raise ValueError("destroy pipeline can only be triggered by manual dispatch")
        return self

    @classmethod
    def from_queue(cls, job_data: Dict[str, Any]) -> "PipelineJob":
        return cls.model_validate(job_data)
