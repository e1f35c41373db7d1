"""
Service modules for the course video pipeline.
"""

from .temp_store import TempArtifactStore
from .media_tools import MediaTools, MediaInfo
from .archive_ingestor import ArchiveIngestor, IngestResult
from .slide_renderer import SlideRenderer, SlideEncoding
from .transition_stitcher import TransitionStitcher
from .storage import S3Storage
from .notifier import EmailNotifier
from .job_history import JobHistoryLog
from .pipeline import VideoGenerationPipeline, ProgressCallback
from .job_queue import JobQueue

__all__ = [
    "TempArtifactStore",
    "MediaTools",
    "MediaInfo",
    "ArchiveIngestor",
    "IngestResult",
    "SlideRenderer",
    "SlideEncoding",
    "TransitionStitcher",
    "S3Storage",
    "EmailNotifier",
    "JobHistoryLog",
    "VideoGenerationPipeline",
    "ProgressCallback",
    "JobQueue",
]
