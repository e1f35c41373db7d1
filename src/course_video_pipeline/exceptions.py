"""
Error taxonomy shared by every stage of the course video pipeline.
"""

from typing import Optional


class VideoPipelineError(Exception):
    """Base class for pipeline failures.

    ``job_id`` is filled in by the orchestrator when the error escapes a
    pipeline run, so the queue and the failure email can name the job.
    """

    def __init__(self, message: str, job_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.job_id = job_id

    def __str__(self) -> str:
        if self.job_id:
            return f"{self.job_id}. {self.message}"
        return self.message


class ValidationError(VideoPipelineError):
    """Malformed or empty input: no images, mismatched counts, too few clips."""


class RenderError(VideoPipelineError):
    """An encode or probe process failed, or a duration could not be read."""


class PersistenceError(VideoPipelineError):
    """The job history file could not be read or written."""


class NotificationError(VideoPipelineError):
    """An outbound email could not be delivered."""
