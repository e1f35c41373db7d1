"""
Pytest configuration and fixtures for the course video pipeline tests.
"""

import io
import threading
import time
import zipfile
import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional

from course_video_pipeline.config import Settings
from course_video_pipeline.exceptions import RenderError
from course_video_pipeline.models import PipelineResult, ResolutionProfile, Submission
from course_video_pipeline.services.media_tools import MediaInfo


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with temporary directories and intro assets."""
    settings = Settings(
        work_dir=temp_dir / "temp",
        output_dir=temp_dir / "output",
        logs_dir=temp_dir / "logs",
        history_file=temp_dir / "logs" / "generations.json",
        intro_path=temp_dir / "assets" / "intro.mp4",
        intro_path_720=temp_dir / "assets" / "intro720.mp4",
        aws_bucket_name=None,
        postmark_key=None,
        postmark_from=None,
        video_servers=[],
        log_level="DEBUG",
    )

    # Create directories
    settings.work_dir.mkdir(parents=True, exist_ok=True)
    settings.output_dir.mkdir(parents=True, exist_ok=True)
    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    settings.intro_path.parent.mkdir(parents=True, exist_ok=True)
    settings.intro_path.write_bytes(b"fake intro 1080")
    settings.intro_path_720.write_bytes(b"fake intro 720")

    return settings


def build_archive(entries: Dict[str, bytes]) -> bytes:
    """Zip ``entries`` in the given order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def make_archive() -> Callable[[Dict[str, bytes]], bytes]:
    """Factory for in-memory zip archives."""
    return build_archive


@pytest.fixture
def slide_archive() -> bytes:
    """Three numbered slides, stored out of order."""
    return build_archive({
        "3.png": b"image-3",
        "1.mp3": b"audio-1",
        "2.png": b"image-2",
        "1.png": b"image-1",
        "3.mp3": b"audio-3",
        "2.mp3": b"audio-2",
        "notes.txt": b"ignored",
    })


class FakeMediaTools:
    """Stand-in for MediaTools: records ffmpeg calls and writes their outputs.

    The output file of a call is its last argument, as with every command the
    pipeline builds. ``fail_on`` makes calls whose label contains the given
    text raise RenderError.
    """

    def __init__(
        self,
        video_duration: float = 5.0,
        audio_duration: float = 3.0,
        height: int = 1080,
        fail_on: Optional[str] = None,
    ):
        self.info = MediaInfo(
            duration=video_duration,
            video_duration=video_duration,
            audio_duration=audio_duration,
            width=1920 if height > 720 else 1280,
            height=height,
        )
        self.fail_on = fail_on
        self.calls: List[List[str]] = []
        self.labels: List[str] = []
        self.probed: List[Path] = []

    def run(self, args, label="ffmpeg"):
        self.calls.append(list(args))
        self.labels.append(label)
        if self.fail_on and self.fail_on in label:
            raise RenderError(f"{label}: ffmpeg exited with code 1: simulated failure")
        Path(args[-1]).write_bytes(b"encoded")
        return None

    def probe(self, path):
        path = Path(path)
        self.probed.append(path)
        if not path.exists():
            raise RenderError(f"File does not exist: {path}")
        return self.info

    def audio_duration(self, path):
        self.probe(path)
        return self.info.audio_duration


@pytest.fixture
def fake_tools() -> FakeMediaTools:
    return FakeMediaTools()


class FakeStorage:
    """Upload target that records keys and reports full progress."""

    def __init__(self, succeed: bool = True, bucket: str = "course-bucket", region: str = "eu-west-1"):
        self.succeed = succeed
        self.bucket = bucket
        self.region = region
        self.uploads: List[str] = []

    def upload(self, local_path, remote_key, on_progress=None):
        self.uploads.append(remote_key)
        if on_progress:
            on_progress(0)
            on_progress(100)
        return self.succeed

    def public_url(self, remote_key):
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{remote_key}"


class FakePipeline:
    """Pipeline double for queue tests.

    Records the order jobs ran in and the highest number of runs that were
    in flight at once. A job whose name is in ``failures`` raises the mapped
    exception. When ``gate`` is set, each run blocks until it is released.
    """

    def __init__(self, gate: Optional[threading.Event] = None, failures: Optional[Dict[str, Exception]] = None):
        self.storage = FakeStorage()
        self.gate = gate
        self.failures = failures or {}
        self.ran: List[str] = []
        self.running = 0
        self.max_running = 0
        self._lock = threading.Lock()

    def run(self, submission: Submission, progress_callback=None) -> PipelineResult:
        with self._lock:
            self.running += 1
            self.max_running = max(self.max_running, self.running)
            self.ran.append(submission.job_id)
        try:
            if progress_callback:
                progress_callback.on_status("Generation progress: 10%")
            if self.gate is not None:
                self.gate.wait(timeout=10)
            if submission.name in self.failures:
                raise self.failures[submission.name]
            return PipelineResult(
                submission=submission,
                image_names=["1.png"],
                audio_names=["1.mp3"],
                output_full=Path(f"{submission.name}_full.mp4"),
                output_short=Path(f"{submission.name}_short.mp4"),
                full_video_path=f"videos/{submission.name}_full.mp4",
                short_video_path=f"videos/{submission.name}_short.mp4",
                resolution=ResolutionProfile.FULL_HD_1080,
                total_time=1.5,
                uploaded=not submission.skip_upload,
            )
        finally:
            with self._lock:
                self.running -= 1


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()

