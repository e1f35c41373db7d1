"""
Course Video Pipeline

Turns archives of numbered slide images and narration tracks into a full
course video and a short preview, queued and rendered one job at a time.
"""

__version__ = "0.1.0"
__author__ = "PsiLab Technology"

from .models import (
    JobStatusEnum,
    ResolutionProfile,
    Submission,
    MediaSet,
    StatusEntry,
    PipelineResult,
    JobRecord,
    QueueSnapshot,
)

__all__ = [
    "JobStatusEnum",
    "ResolutionProfile",
    "Submission",
    "MediaSet",
    "StatusEntry",
    "PipelineResult",
    "JobRecord",
    "QueueSnapshot",
]
