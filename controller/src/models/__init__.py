from controller.src.models.step import (
    StepStatus,
    PipelineKind,
    TriggerKind,
    TriggerEvent,
    RepoInfo,
    StepResult,
    RunResult,
    PipelineJob,
)

__all__ = [
    "StepStatus",
    "PipelineKind",
    "TriggerKind",
    "TriggerEvent",
    "RepoInfo",
    "StepResult",
    "RunResult",
    "PipelineJob",
]
