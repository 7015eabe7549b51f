from pydantic import BaseModel, model_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum
from uuid import UUID

class PipelineKind(str, Enum):
    DEPLOY = "deploy"
    DESTROY = "destroy"

class TriggerKind(str, Enum):
    PUSH_TO_MAIN = "push_to_main"
    PULL_REQUEST = "pull_request"
    MANUAL_DISPATCH = "manual_dispatch"

class StepResponse(BaseModel):
    id: UUID
    name: str
    status: str
    step_order: int
    logs: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PipelineRunBase(BaseModel):
    commit_sha: str
    branch: str

class PipelineRunResponse(PipelineRunBase):
    id: UUID
    pipeline: PipelineKind
    trigger: TriggerKind
    pull_request_number: Optional[int] = None
    status: str
    triggered_by: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: datetime
    steps: List[StepResponse] = []

    class Config:
        from_attributes = True

class RepositoryResponse(BaseModel):
    id: UUID
    name: str
    full_name: str
    clone_url: str
    created_at: datetime

    class Config:
        from_attributes = True

class DispatchRequest(BaseModel):
    """Manual dispatch of a deploy or destroy run."""
    pipeline: PipelineKind
    repository_full_name: str
    clone_url: Optional[str] = None
    branch: str = "main"
    commit_sha: Optional[str] = None
    # Destroy only; checked by the run's confirmation gate
    confirmation: Optional[str] = None
    triggered_by: Optional[str] = None

    @model_validator(mode="after")
    def default_confirmation(self) -> "DispatchRequest":
        if self.pipeline == PipelineKind.DESTROY and self.confirmation is None:
            self.confirmation = "no"
        if self.pipeline == PipelineKind.DEPLOY and self.confirmation is not None:
            raise ValueError("confirmation is only accepted for the destroy pipeline")
        return self

    def trigger(self) -> dict:
        return {
            "kind": TriggerKind.MANUAL_DISPATCH.value,
            "confirmation": self.confirmation,
            "pull_request_number": None,
            "actor": self.triggered_by,
        }
