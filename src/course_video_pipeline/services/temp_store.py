"""Scoped bookkeeping for intermediate files produced between pipeline stages."""

import uuid
from pathlib import Path
from typing import List, Optional, Union

from ..logging_config import LoggerMixin
from ..utils.file_utils import ensure_directory, remove_files


class TempArtifactStore(LoggerMixin):
    """Hand out intermediate paths inside the work directory and delete them later.

    Every path the store allocates or is told about is remembered until
    ``cleanup`` runs. A path that becomes a final output is ``release``-d so
    cleanup leaves it alone. Used as a context manager, cleanup happens on
    exit whether or not the block raised.
    """

    def __init__(self, work_dir: Union[str, Path], prefix: str = "run"):
        self.work_dir = ensure_directory(work_dir)
        self.prefix = prefix
        self._paths: List[Path] = []

    def __enter__(self) -> "TempArtifactStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    @property
    def paths(self) -> List[Path]:
        """Paths currently owned by the store, in allocation order."""
        return list(self._paths)

    def allocate(self, label: str, suffix: str = "") -> Path:
        """Reserve a fresh path in the work directory and track it."""
        name = f"{self.prefix}_{uuid.uuid4().hex[:8]}_{label}{suffix}"
        return self.track(self.work_dir / name)

    def track(self, path: Union[str, Path]) -> Path:
        """Take ownership of a path created elsewhere."""
        path = Path(path)
        if path not in self._paths:
            self._paths.append(path)
        return path

    def release(self, path: Union[str, Path]) -> Optional[Path]:
        """Stop tracking a path; it survives cleanup."""
        path = Path(path)
        if path in self._paths:
            self._paths.remove(path)
            return path
        return None

    def cleanup(self) -> List[Path]:
        """Delete every tracked path. Failures are logged, never raised.

        Returns:
            Paths that could not be removed
        """
        if not self._paths:
            return []
        failed = remove_files(self._paths)
        self.logger.info(
            "Temporary artifacts cleaned up",
            prefix=self.prefix,
            removed=len(self._paths) - len(failed),
            failed=len(failed),
        )
        self._paths = list(failed)
        return failed
