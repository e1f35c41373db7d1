"""Render one (image, narration) pair into a fixed-length video clip.

The still image is held for the narration length plus the inter-slide
pause, so the narration is always covered. The narration is re-encoded to
the fixed delivery profile with a gain boost.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..config import get_settings
from ..exceptions import RenderError
from ..logging_config import LoggerMixin
from ..models import ResolutionProfile
from .media_tools import MediaTools


@dataclass
class SlideEncoding:
    """Encoder parameters shared by every slide clip."""

    audio_codec: str = "aac"
    audio_bitrate: str = "317k"
    audio_sample_rate: int = 48000
    audio_channels: int = 2
    audio_volume: float = 2.4
    video_codec: str = "libx264"
    frame_rate: float = 23.98
    colorspace: str = "bt709"
    video_bitrate: str = "15705k"
    preset: str = "fast"
    profile: str = "high"
    level: str = "4.2"
    pixel_format: str = "yuv420p"

    def __post_init__(self):
        """Validate encoding parameters."""
        if self.audio_channels < 1:
            raise ValueError("Audio channels must be positive")
        if self.frame_rate <= 0:
            raise ValueError("Frame rate must be positive")
        if self.audio_volume <= 0:
            raise ValueError("Audio volume must be positive")

    @classmethod
    def from_settings(cls, settings) -> "SlideEncoding":
        return cls(
            audio_codec=settings.audio_codec,
            audio_bitrate=settings.audio_bitrate,
            audio_sample_rate=settings.audio_sample_rate,
            audio_channels=settings.audio_channels,
            audio_volume=settings.audio_volume,
            video_codec=settings.video_codec,
            frame_rate=settings.video_frame_rate,
            colorspace=settings.video_colorspace,
            video_bitrate=settings.video_bitrate,
            preset=settings.video_preset,
            profile=settings.video_profile,
            level=settings.video_level,
            pixel_format=settings.pixel_format,
        )

    def output_args(self, resolution: ResolutionProfile) -> List[str]:
        return [
            "-c:a", self.audio_codec,
            "-b:a", self.audio_bitrate,
            "-ar", str(self.audio_sample_rate),
            "-ac", str(self.audio_channels),
            "-filter:a", f"volume={self.audio_volume}",
            "-pix_fmt", self.pixel_format,
            "-c:v", self.video_codec,
            "-r", str(self.frame_rate),
            "-colorspace", self.colorspace,
            "-b:v", self.video_bitrate,
            "-vf", f"scale={resolution.scale}",
            "-preset", self.preset,
            "-profile:v", self.profile,
            "-level", self.level,
            "-movflags", "+faststart",
        ]


class SlideRenderer(LoggerMixin):
    """Encode slide clips with the configured profile."""

    def __init__(self, settings=None, tools: Optional[MediaTools] = None,
                 encoding: Optional[SlideEncoding] = None):
        self.settings = settings or get_settings()
        self.tools = tools or MediaTools(self.settings)
        self.encoding = encoding or SlideEncoding.from_settings(self.settings)
        self.pause = self.settings.slide_pause

    def slide_duration(self, audio_path: Path) -> float:
        """Narration length plus the pause that follows it.

        Raises:
            RenderError: If the narration length cannot be determined
        """
        return self.tools.audio_duration(audio_path) + self.pause

    def render(
        self,
        image_path: Path,
        audio_path: Path,
        output_path: Path,
        resolution: ResolutionProfile,
        duration: Optional[float] = None,
    ) -> Path:
        """Write a single clip to ``output_path``.

        Args:
            image_path: Still image shown for the whole clip
            audio_path: Narration for the slide
            output_path: Where the clip is written
            resolution: Output frame size preset
            duration: Clip length; derived from the narration when omitted

        Returns:
            ``output_path``

        Raises:
            RenderError: If the duration is unknown or ffmpeg fails
        """
        if duration is None:
            duration = self.slide_duration(audio_path)
        if duration <= 0:
            raise RenderError(f"Invalid slide duration {duration} for {Path(audio_path).name}")

        output_path = Path(output_path)
        args = [
            "-loop", "1",
            "-t", f"{duration:.3f}",
            "-i", str(image_path),
            "-i", str(audio_path),
            *self.encoding.output_args(resolution),
            "-y", str(output_path),
        ]
        self.tools.run(args, label=f"Slide {output_path.name}")

        if not output_path.exists():
            raise RenderError(f"Slide clip was not created: {output_path}")

        self.logger.debug(
            "Slide rendered",
            output=str(output_path),
            duration=f"{duration:.2f}s",
            resolution=resolution.value,
        )
        return output_path
