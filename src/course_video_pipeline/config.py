"""
Configuration management for the course video pipeline.
"""

from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Project paths
    work_dir: Path = Field(default_factory=lambda: Path("temp"), description="Shared directory for intermediates")
    output_dir: Path = Field(default_factory=lambda: Path("output"))
    logs_dir: Path = Field(default_factory=lambda: Path("logs"))
    history_file: Path = Field(default_factory=lambda: Path("logs") / "generations.json")

    # Media engine
    ffmpeg_binary: str = Field(default="ffmpeg")
    ffprobe_binary: str = Field(default="ffprobe")
    ffmpeg_log_level: str = Field(default="warning", description="Can be changed to verbose for debugging")

    # Branded intro assets
    intro_path: Path = Field(default_factory=lambda: Path("/var/www/ultra-assets/intro.mp4"))
    intro_path_720: Path = Field(default_factory=lambda: Path("/var/www/ultra-assets/intro720.mp4"))

    # Slide timing (seconds)
    slide_pause: float = Field(default=2.0, ge=0, description="Still image held after narration ends")
    crossfade_duration: float = Field(default=1.0, gt=0)
    intro_extra_duration: float = Field(default=1.0, ge=0, description="Outro beat appended to the intro")
    short_slide_count: int = Field(default=1, ge=1, description="Slides included in the short preview")

    # Slide encoding profile
    audio_codec: str = Field(default="aac")
    audio_bitrate: str = Field(default="317k")
    audio_sample_rate: int = Field(default=48000)
    audio_channels: int = Field(default=2)
    audio_volume: float = Field(default=2.4, description="Gain applied to narration")
    video_codec: str = Field(default="libx264")
    video_frame_rate: float = Field(default=23.98)
    video_colorspace: str = Field(default="bt709")
    video_bitrate: str = Field(default="15705k")
    video_preset: str = Field(default="fast")
    video_profile: str = Field(default="high")
    video_level: str = Field(default="4.2")
    pixel_format: str = Field(default="yuv420p")

    # Job history
    history_retention_hours: float = Field(default=72.0, gt=0)

    # Object storage
    aws_bucket_name: Optional[str] = Field(default=None)
    aws_region: str = Field(default="us-east-1")
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    storage_key_prefix: str = Field(default="videos")
    keep_outputs_after_upload: bool = Field(default=False)

    # Email notifications
    postmark_api_url: str = Field(default="https://api.postmarkapp.com/email")
    postmark_key: Optional[str] = Field(default=None)
    postmark_from: Optional[str] = Field(default=None)
    email_timeout: int = Field(default=30, description="Email request timeout in seconds")

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    video_servers: List[str] = Field(default_factory=list, description="Sibling render servers")

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")
    log_file_name: str = Field(default="video-generation.log")
    error_log_file_name: str = Field(default="video-generation-errors.log")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, description="Rotate log files at this size")
    log_backup_count: int = Field(default=5)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def intro_for(self, low_res: bool) -> Path:
        """Intro asset matching the requested resolution."""
        return self.intro_path_720 if low_res else self.intro_path


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def create_directories(current: Optional[Settings] = None) -> None:
    """Create necessary directories if they don't exist."""
    current = current or settings
    directories = [
        current.work_dir,
        current.output_dir,
        current.logs_dir,
        current.history_file.parent,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)
