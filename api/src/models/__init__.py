from api.src.models.pipeline import Repository, PipelineRun, PipelineStep
from api.src.models.run import (
    PipelineKind,
    TriggerKind,
    DispatchRequest,
    PipelineRunResponse,
    StepResponse,
    RepositoryResponse
)

__all__ = [
    "Repository",
    "PipelineRun",
    "PipelineStep",
    "PipelineKind",
    "TriggerKind",
    "DispatchRequest",
    "PipelineRunResponse",
    "StepResponse",
    "RepositoryResponse"
]
