"""Thin wrapper around the ffmpeg and ffprobe executables.

The exit status of the process is the only success signal; stderr is kept
for error messages and debug logging.
"""

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..config import get_settings
from ..exceptions import RenderError
from ..logging_config import LoggerMixin

# Lines of stderr carried into error messages
STDERR_TAIL_LINES = 15


@dataclass
class MediaInfo:
    """Subset of ffprobe output the pipeline cares about."""

    duration: Optional[float]  # container duration, seconds
    video_duration: Optional[float] = None
    audio_duration: Optional[float] = None
    width: int = 0
    height: int = 0


class MediaTools(LoggerMixin):
    """Run ffmpeg/ffprobe with the configured binaries."""

    def __init__(self, settings=None):
        self.settings = settings or get_settings()
        self.ffmpeg_binary = self.settings.ffmpeg_binary
        self.ffprobe_binary = self.settings.ffprobe_binary
        self.log_level = self.settings.ffmpeg_log_level

    # ---------------------------
    # ffmpeg
    # ---------------------------

    def run(self, args: Sequence[str], label: str = "ffmpeg") -> subprocess.CompletedProcess:
        """Run ffmpeg with ``args`` (binary and log level are prepended).

        Raises:
            RenderError: If the process cannot be started or exits non-zero
        """
        command = [self.ffmpeg_binary, "-hide_banner", "-loglevel", self.log_level, *args]
        self.logger.debug("Spawning ffmpeg", label=label, command=" ".join(command))

        try:
            result = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise RenderError(f"{label}: could not start ffmpeg: {exc}") from exc

        if result.returncode != 0:
            stderr_tail = self._tail(result.stderr)
            self.logger.error(
                "ffmpeg failed",
                label=label,
                returncode=result.returncode,
                stderr=stderr_tail,
            )
            raise RenderError(f"{label}: ffmpeg exited with code {result.returncode}: {stderr_tail}")

        self.logger.debug("ffmpeg finished", label=label)
        return result

    # ---------------------------
    # ffprobe
    # ---------------------------

    def probe(self, path: Path) -> MediaInfo:
        """Read durations and frame size of a media file.

        Raises:
            RenderError: If the file is missing or ffprobe fails
        """
        path = Path(path)
        if not path.exists():
            raise RenderError(f"File does not exist: {path}")

        command = [
            self.ffprobe_binary,
            "-v", "error",
            "-show_format",
            "-show_streams",
            "-of", "json",
            str(path),
        ]

        try:
            result = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise RenderError(f"Could not start ffprobe: {exc}") from exc

        if result.returncode != 0:
            raise RenderError(f"ffprobe failed for {path.name}: {self._tail(result.stderr)}")

        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise RenderError(f"ffprobe returned invalid JSON for {path.name}") from exc

        return self._parse_probe(data)

    def audio_duration(self, path: Path) -> float:
        """Duration of the audio stream, falling back to the container."""
        info = self.probe(path)
        duration = info.audio_duration or info.duration
        if not duration or duration <= 0:
            raise RenderError(f"Error getting audio duration: {Path(path).name}")
        return duration

    # ---------------------------
    # Internal helpers
    # ---------------------------

    @staticmethod
    def _parse_probe(data: dict) -> MediaInfo:
        info = MediaInfo(duration=_to_float(data.get("format", {}).get("duration")))

        for stream in data.get("streams", []):
            codec_type = stream.get("codec_type")
            if codec_type == "video" and info.video_duration is None and not info.height:
                info.video_duration = _to_float(stream.get("duration"))
                info.width = int(stream.get("width") or 0)
                info.height = int(stream.get("height") or 0)
            elif codec_type == "audio" and info.audio_duration is None:
                info.audio_duration = _to_float(stream.get("duration"))

        return info

    @staticmethod
    def _tail(text: Optional[str]) -> str:
        lines: List[str] = (text or "").strip().splitlines()
        return "\n".join(lines[-STDERR_TAIL_LINES:])


def _to_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
