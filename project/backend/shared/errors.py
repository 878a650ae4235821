"""
Error taxonomy for the ad generation pipeline.

Every stage-terminal failure is a PipelineError subclass so the orchestrator
can freeze the job with a stage name and a human-readable message.
"""

from typing import Optional, Union
from uuid import UUID


class PipelineError(Exception):
    """Base error for all pipeline failures."""

    def __init__(
        self,
        message: str,
        job_id: Optional[Union[UUID, str]] = None,
        code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.job_id = job_id
        self.code = code

    def __str__(self) -> str:
        return self.message


class ConfigError(PipelineError):
    """Missing or invalid configuration."""


class ValidationError(PipelineError):
    """Bad caller input. Rejected before work starts and never retried."""


class RetryableError(PipelineError):
    """Transient failure; consumed by retry_with_backoff."""


class RateLimitError(RetryableError):
    """Upstream rate limit hit."""


class ProviderError(PipelineError):
    """Remote model reported failure or cancellation for a prediction."""

    def __init__(
        self,
        message: str,
        job_id: Optional[Union[UUID, str]] = None,
        code: Optional[str] = None,
        scene_number: Optional[int] = None,
        prediction_id: Optional[str] = None
    ):
        super().__init__(message, job_id=job_id, code=code or "PROVIDER_FAILED")
        self.scene_number = scene_number
        self.prediction_id = prediction_id


class GenerationTimeoutError(PipelineError):
    """Poll horizon exceeded before the prediction reached a terminal status."""

    def __init__(
        self,
        message: str,
        job_id: Optional[Union[UUID, str]] = None,
        attempts: int = 0,
        prediction_id: Optional[str] = None
    ):
        super().__init__(message, job_id=job_id, code="GENERATION_TIMEOUT")
        self.attempts = attempts
        self.prediction_id = prediction_id


class JobTimeoutError(PipelineError):
    """Job-level deadline expired."""

    def __init__(self, message: str, job_id: Optional[Union[UUID, str]] = None):
        super().__init__(message, job_id=job_id, code="JOB_TIMEOUT")


class JobCancelledError(PipelineError):
    """Work was cancelled while suspended (poll wait, download, subprocess)."""

    def __init__(self, message: str, job_id: Optional[Union[UUID, str]] = None):
        super().__init__(message, job_id=job_id, code="CANCELLED")


class CompositionError(PipelineError):
    """Local media tool exited non-zero. Carries the captured stderr."""

    def __init__(
        self,
        message: str,
        job_id: Optional[Union[UUID, str]] = None,
        stderr: Optional[str] = None
    ):
        super().__init__(message, job_id=job_id, code="COMPOSITION_FAILED")
        self.stderr = stderr or ""


class JobNotFoundError(PipelineError):
    """No job record exists for the given id."""

    def __init__(self, message: str, job_id: Optional[Union[UUID, str]] = None):
        super().__init__(message, job_id=job_id, code="JOB_NOT_FOUND")


class RegenerationConflictError(PipelineError):
    """Regeneration requested while a pipeline run owns the job."""

    def __init__(self, message: str, job_id: Optional[Union[UUID, str]] = None):
        super().__init__(message, job_id=job_id, code="REGENERATION_CONFLICT")
