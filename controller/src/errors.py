"""
Pipeline error taxonomy.

Every error is fatal to the run: the step that raised it is marked failed
and the remaining steps are cancelled.
"""

class PipelineError(Exception):
    """Base class for failures that stop a pipeline run."""
    pass

class ConfirmationMismatch(PipelineError):
    """Destroy confirmation input did not match the sentinel."""
    pass

class CheckoutFailure(PipelineError):
    pass

class PipelineConfigError(PipelineError):
    """Raised when a repository's .tfpipeline.yml is invalid."""
    pass

class CredentialFailure(PipelineError):
    pass

class ToolInstallFailure(PipelineError):
    pass

class FormatViolation(PipelineError):
    pass

class InitFailure(PipelineError):
    pass

class ValidationFailure(PipelineError):
    pass

class PlanFailure(PipelineError):
    pass

class ApplyFailure(PipelineError):
    pass

class CommentFailure(PipelineError):
    """Plan could not be published to the pull request."""
    pass
