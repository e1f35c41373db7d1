"""Unpack an uploaded archive into ordered image and audio files.

Entries are ordered by the number their file name starts with ("1.jpg",
"2.mp3", "10.png" ...), never by their position in the archive, then split
into images and audios by extension. Slide *i* is image *i* + audio *i*.
"""

import io
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple

from ..exceptions import ValidationError
from ..logging_config import LoggerMixin
from ..models import MediaSet
from .temp_store import TempArtifactStore

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")
AUDIO_EXTENSIONS = (".mp3", ".wav", ".m4a")

_LEADING_NUMBER = re.compile(r"^(\d+)")


@dataclass
class IngestResult:
    """Classified media plus the temporary files written for it."""

    media: MediaSet
    temp_paths: List[Path] = field(default_factory=list)


def entry_sort_key(name: str) -> Tuple[int, int]:
    """Order by the leading number of the base name; unnumbered entries go last."""
    match = _LEADING_NUMBER.match(PurePosixPath(name).name)
    if match:
        return (0, int(match.group(1)))
    return (1, 0)


def classify(name: str) -> Optional[str]:
    """Return ``"image"``, ``"audio"`` or None for an entry name."""
    suffix = PurePosixPath(name.lower()).suffix
    if suffix in IMAGE_EXTENSIONS:
        return "image"
    if suffix in AUDIO_EXTENSIONS:
        return "audio"
    return None


def _is_ignored(info: zipfile.ZipInfo) -> bool:
    if info.is_dir():
        return True
    path = PurePosixPath(info.filename)
    if path.parts and path.parts[0] == "__MACOSX":
        return True
    return path.name.startswith(".")


class ArchiveIngestor(LoggerMixin):
    """Turn archive bytes into a validated MediaSet."""

    def inspect(self, payload: bytes) -> Tuple[int, int]:
        """Validate an archive without writing anything to disk.

        Returns:
            (image count, audio count)

        Raises:
            ValidationError: If the archive is unreadable or the counts are wrong
        """
        with self._open(payload) as archive:
            images, audios = self._classify_entries(archive)
        self.check_counts(len(images), len(audios))
        return len(images), len(audios)

    def ingest(self, payload: bytes, store: TempArtifactStore) -> IngestResult:
        """Write every image/audio entry to its own temporary file.

        Args:
            payload: Raw archive bytes
            store: Owner of the temporary files written here

        Raises:
            ValidationError: If the archive is unreadable or the counts are wrong
        """
        with self._open(payload) as archive:
            images, audios = self._classify_entries(archive)
            self.check_counts(len(images), len(audios))

            temp_paths: List[Path] = []
            image_paths = [self._extract(archive, info, store, temp_paths) for info in images]
            audio_paths = [self._extract(archive, info, store, temp_paths) for info in audios]

        media = MediaSet(
            images=image_paths,
            audios=audio_paths,
            image_names=[PurePosixPath(info.filename).name.lower() for info in images],
            audio_names=[PurePosixPath(info.filename).name.lower() for info in audios],
        )
        self.logger.info(
            "Archive extracted",
            images=len(image_paths),
            audios=len(audio_paths),
            temp_files=len(temp_paths),
        )
        return IngestResult(media=media, temp_paths=temp_paths)

    @staticmethod
    def check_counts(image_count: int, audio_count: int) -> None:
        """The only gate before any encoding work starts."""
        if image_count == 0:
            raise ValidationError("No images were provided in the archive")
        if image_count != audio_count:
            raise ValidationError(
                f"Images provided {image_count} items while audios {audio_count} in the archive"
            )

    # ---------------------------
    # Internal helpers
    # ---------------------------

    @staticmethod
    def _open(payload: bytes) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(io.BytesIO(payload))
        except zipfile.BadZipFile as exc:
            raise ValidationError(f"Invalid archive: {exc}") from exc

    @staticmethod
    def _classify_entries(
        archive: zipfile.ZipFile,
    ) -> Tuple[List[zipfile.ZipInfo], List[zipfile.ZipInfo]]:
        entries = [info for info in archive.infolist() if not _is_ignored(info)]
        entries.sort(key=lambda info: entry_sort_key(info.filename))

        images: List[zipfile.ZipInfo] = []
        audios: List[zipfile.ZipInfo] = []
        for info in entries:
            kind = classify(info.filename)
            if kind == "image":
                images.append(info)
            elif kind == "audio":
                audios.append(info)
        return images, audios

    @staticmethod
    def _extract(
        archive: zipfile.ZipFile,
        info: zipfile.ZipInfo,
        store: TempArtifactStore,
        temp_paths: List[Path],
    ) -> Path:
        suffix = PurePosixPath(info.filename.lower()).suffix
        path = store.allocate("entry", suffix=suffix)
        temp_paths.append(path)
        try:
            path.write_bytes(archive.read(info))
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
            raise ValidationError(f"Corrupt archive entry {info.filename}: {exc}") from exc
        return path
