"""
Unit tests for data models, configuration and file helpers.
"""

import pytest
from datetime import datetime, timedelta
from pathlib import Path

from course_video_pipeline.exceptions import RenderError, VideoPipelineError
from course_video_pipeline.models import (
    JobRecord,
    PipelineResult,
    ResolutionProfile,
    StatusEntry,
    Submission,
)
from course_video_pipeline.utils.file_utils import escape_file_name, move_file, remove_files


class TestResolutionProfile:
    def test_dimensions(self):
        assert ResolutionProfile.HD_720.scale == "1280:720"
        assert ResolutionProfile.FULL_HD_1080.scale == "1920:1080"
        assert ResolutionProfile.HD_720.is_low_res
        assert not ResolutionProfile.FULL_HD_1080.is_low_res

    @pytest.mark.parametrize("height,expected", [
        (480, ResolutionProfile.HD_720),
        (720, ResolutionProfile.HD_720),
        (721, ResolutionProfile.FULL_HD_1080),
        (1080, ResolutionProfile.FULL_HD_1080),
        (0, ResolutionProfile.FULL_HD_1080),
    ])
    def test_from_height(self, height, expected):
        assert ResolutionProfile.from_height(height) is expected


class TestSubmission:
    def test_requires_id_and_destination(self):
        with pytest.raises(ValueError):
            Submission(job_id="", name="x", destination="t@example.com", payload=b"")
        with pytest.raises(ValueError):
            Submission(job_id="abc", name="x", destination="", payload=b"")

    def test_metadata_excludes_payload(self):
        submission = Submission(job_id="abc", name="x", destination="t@example.com", payload=b"zip")
        assert "payload" not in submission.metadata()
        assert "zip" not in repr(submission)


class TestJobRecord:
    def _result(self) -> PipelineResult:
        submission = Submission(
            job_id="abc", name="lesson", destination="t@example.com", payload=b"zip",
            low_res=True, created_at=datetime(2024, 5, 1, 9, 0, 0),
        )
        return PipelineResult(
            submission=submission,
            image_names=["1.png"],
            audio_names=["1.mp3"],
            output_full=Path("full.mp4"),
            output_short=Path("short.mp4"),
            full_video_path="videos/full.mp4",
            short_video_path="videos/short.mp4",
            resolution=ResolutionProfile.HD_720,
            total_time=12.5,
            uploaded=True,
        )

    def test_from_result(self):
        record = JobRecord.from_result(self._result())
        assert record.job_id == "abc"
        assert record.images == ["1.png"]
        assert record.resolution == "720p"
        assert record.uploaded is True
        assert record.low_res is True

    def test_dict_round_trip(self):
        record = JobRecord.from_result(self._result())
        data = record.to_dict()
        assert data["created_at"] == "2024-05-01T09:00:00"
        assert JobRecord.from_dict(data) == record

    def test_expiry_boundary(self):
        record = JobRecord.from_result(self._result())
        retention = timedelta(hours=72)
        assert not record.is_expired(record.created_at + retention, retention)
        assert record.is_expired(record.created_at + retention + timedelta(seconds=1), retention)


class TestStatusEntry:
    def test_to_dict(self):
        entry = StatusEntry("abc", "lesson", datetime(2024, 5, 1, 9, 0, 0), "Waiting...")
        assert entry.to_dict() == {
            "id": "abc",
            "name": "lesson",
            "createdAt": "2024-05-01T09:00:00",
            "status": "Waiting...",
        }


class TestExceptions:
    def test_job_id_prefix(self):
        error = RenderError("encode failed")
        assert str(error) == "encode failed"
        error.job_id = "abc"
        assert str(error) == "abc. encode failed"
        assert isinstance(error, VideoPipelineError)


class TestFileUtils:
    @pytest.mark.parametrize("raw,expected", [
        ("lesson 1.mp4", "lesson_1.mp4"),
        ("2024-05-01T09:30:00_full.mp4", "2024-05-01T09_30_00_full.mp4"),
        ('a<b>c"d|e?f*g.mp4', "a_b_c_d_e_f_g.mp4"),
        ("  padded  ", "padded"),
    ])
    def test_escape_file_name(self, raw, expected):
        assert escape_file_name(raw) == expected

    def test_escape_truncates(self):
        assert len(escape_file_name("x" * 300)) == 200

    def test_remove_files_skips_missing(self, temp_dir: Path):
        present = temp_dir / "present.bin"
        present.write_bytes(b"1")
        assert remove_files([present, temp_dir / "missing.bin"]) == []
        assert not present.exists()

    def test_move_file_creates_parent(self, temp_dir: Path):
        src = temp_dir / "src.mp4"
        src.write_bytes(b"v")
        dst = move_file(src, temp_dir / "nested" / "dst.mp4")
        assert dst.read_bytes() == b"v"
        assert not src.exists()

    def test_move_missing_file(self, temp_dir: Path):
        with pytest.raises(FileNotFoundError):
            move_file(temp_dir / "none.mp4", temp_dir / "dst.mp4")


class TestSettings:
    def test_defaults(self, test_settings):
        assert test_settings.slide_pause == 2.0
        assert test_settings.crossfade_duration == 1.0
        assert test_settings.history_retention_hours == 72
        assert test_settings.storage_key_prefix == "videos"

    def test_intro_for(self, test_settings):
        assert test_settings.intro_for(True) == test_settings.intro_path_720
        assert test_settings.intro_for(False) == test_settings.intro_path
