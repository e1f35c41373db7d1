"""Upload finished videos to S3."""

import threading
from pathlib import Path
from typing import Callable, Optional

import boto3

from ..config import get_settings
from ..logging_config import LoggerMixin

# Receives an integer percentage
UploadProgress = Callable[[int], None]


class _PercentCallback:
    """Turn boto3's byte-count callbacks into whole percentages."""

    def __init__(self, total_bytes: int, on_progress: Optional[UploadProgress]):
        self._total = max(total_bytes, 1)
        self._seen = 0
        self._last = -1
        self._on_progress = on_progress
        self._lock = threading.Lock()

    def __call__(self, bytes_amount: int) -> None:
        with self._lock:
            self._seen += bytes_amount
            percent = min(100, int(round(self._seen * 100 / self._total)))
            if percent == self._last:
                return
            self._last = percent
        if self._on_progress:
            self._on_progress(percent)


class S3Storage(LoggerMixin):
    """Public-read uploads into the configured bucket."""

    def __init__(self, settings=None, client=None):
        self.settings = settings or get_settings()
        self.bucket = self.settings.aws_bucket_name
        self.region = self.settings.aws_region
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                aws_access_key_id=self.settings.aws_access_key_id,
                aws_secret_access_key=self.settings.aws_secret_access_key,
                region_name=self.region,
            )
        return self._client

    def upload(
        self,
        local_path: Path,
        remote_key: str,
        on_progress: Optional[UploadProgress] = None,
    ) -> bool:
        """Upload one file.

        Failures are logged and reported through the return value; they never
        raise, so a failed upload cannot fail an otherwise finished job.

        Returns:
            True if the object was written
        """
        local_path = Path(local_path)
        if not self.bucket:
            self.logger.warning("No bucket configured, upload skipped", key=remote_key)
            return False

        try:
            size = local_path.stat().st_size
            if on_progress:
                on_progress(0)
            self.client.upload_file(
                str(local_path),
                self.bucket,
                remote_key,
                ExtraArgs={"ACL": "public-read", "ContentType": "video/mp4"},
                Callback=_PercentCallback(size, on_progress),
            )
        except Exception as exc:
            self.logger.error(
                "Error uploading file",
                file=str(local_path),
                key=remote_key,
                error=str(exc),
            )
            return False

        self.logger.info("Upload completed successfully", key=remote_key, size_bytes=size)
        return True

    def public_url(self, remote_key: str) -> str:
        """URL of a public-read object."""
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{remote_key}"
