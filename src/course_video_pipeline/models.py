"""
Core data models for the course video pipeline.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Dict, Any


class JobStatusEnum(Enum):
    """Lifecycle of a submission inside the queue."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ResolutionProfile(Enum):
    """Output resolution presets."""
    HD_720 = "720p"
    FULL_HD_1080 = "1080p"

    @property
    def width(self) -> int:
        return 1280 if self is ResolutionProfile.HD_720 else 1920

    @property
    def height(self) -> int:
        return 720 if self is ResolutionProfile.HD_720 else 1080

    @property
    def scale(self) -> str:
        """Value for ffmpeg's scale filter."""
        return f"{self.width}:{self.height}"

    @property
    def is_low_res(self) -> bool:
        return self is ResolutionProfile.HD_720

    @classmethod
    def from_height(cls, height: int) -> 'ResolutionProfile':
        """Pick the preset a probed frame height belongs to."""
        return cls.HD_720 if 0 < height <= 720 else cls.FULL_HD_1080


# Status strings exposed to pollers
STATUS_WAITING = "Waiting..."
STATUS_STARTING = "Starting..."
STATUS_COMPLETE = "Complete."
STATUS_NOT_FOUND = "Not found"


@dataclass(frozen=True)
class Submission:
    """One uploaded archive plus its processing flags."""
    job_id: str
    name: str
    destination: str
    payload: bytes = field(repr=False)
    skip_upload: bool = False
    low_res: Optional[bool] = None  # None: detect from the intro asset
    suppress_notification: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.job_id:
            raise ValueError("Job ID cannot be empty")
        if not self.destination:
            raise ValueError("Destination address cannot be empty")

    def metadata(self) -> Dict[str, Any]:
        """Submission fields without the archive payload."""
        return {
            'job_id': self.job_id,
            'name': self.name,
            'destination': self.destination,
            'skip_upload': self.skip_upload,
            'low_res': self.low_res,
            'suppress_notification': self.suppress_notification,
            'created_at': self.created_at.isoformat(),
        }


@dataclass
class MediaSet:
    """Classified contents of one archive, paired index by index."""
    images: List[Path]
    audios: List[Path]
    image_names: List[str] = field(default_factory=list)
    audio_names: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.images)

    @property
    def slides(self) -> List[Tuple[Path, Path]]:
        """(image, audio) pairs in presentation order."""
        return list(zip(self.images, self.audios))


@dataclass
class StatusEntry:
    """One row of the status overview."""
    job_id: str
    name: str
    created_at: datetime
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.job_id,
            'name': self.name,
            'createdAt': self.created_at.isoformat(),
            'status': self.status,
        }


@dataclass
class PipelineResult:
    """Outcome of a successful pipeline run."""
    submission: Submission
    image_names: List[str]
    audio_names: List[str]
    output_full: Path
    output_short: Path
    full_video_path: str  # remote key
    short_video_path: str
    resolution: ResolutionProfile
    total_time: float  # seconds
    uploaded: bool = False
    slide_clips: List[Path] = field(default_factory=list)


@dataclass
class JobRecord:
    """History entry for a completed job."""
    job_id: str
    name: str
    destination: str
    created_at: datetime
    images: List[str]
    audios: List[str]
    full_video_path: str
    short_video_path: str
    total_time: float
    skip_upload: bool = False
    low_res: Optional[bool] = None
    suppress_notification: bool = False
    resolution: Optional[str] = None
    uploaded: bool = False

    @classmethod
    def from_result(cls, result: PipelineResult) -> 'JobRecord':
        """Build the history entry for a finished run."""
        submission = result.submission
        return cls(
            job_id=submission.job_id,
            name=submission.name,
            destination=submission.destination,
            created_at=submission.created_at,
            images=list(result.image_names),
            audios=list(result.audio_names),
            full_video_path=result.full_video_path,
            short_video_path=result.short_video_path,
            total_time=result.total_time,
            skip_upload=submission.skip_upload,
            low_res=submission.low_res,
            suppress_notification=submission.suppress_notification,
            resolution=result.resolution.value,
            uploaded=result.uploaded,
        )

    def is_expired(self, now: datetime, retention: timedelta) -> bool:
        """Check whether the record is past the retention window."""
        return now - self.created_at > retention

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data['created_at'] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JobRecord':
        """Create instance from dictionary.

        Timestamps carrying an offset are converted to naive local time so
        they compare with the rest of the queue's clock.

        Raises:
            ValueError: If ``data`` is not a mapping or has no usable timestamp
        """
        if not isinstance(data, dict):
            raise ValueError(f"History entry is not an object: {data!r}")
        data = data.copy()
        created_at = data.get('created_at')
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        if not isinstance(created_at, datetime):
            raise ValueError(f"History entry has no valid created_at: {created_at!r}")
        if created_at.tzinfo is not None:
            created_at = created_at.astimezone().replace(tzinfo=None)
        data['created_at'] = created_at
        known = cls.__dataclass_fields__.keys()
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass(frozen=True)
class QueueSnapshot:
    """Read-only view of the queue handed to status readers."""
    current: Optional[Submission]
    status: str
    pending: Tuple[Submission, ...]
    failures: Tuple[Tuple[Submission, str], ...]
    busy: bool

    def pending_ids(self) -> List[str]:
        return [submission.job_id for submission in self.pending]
