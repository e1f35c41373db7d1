"""Time-bounded log of completed jobs, kept as one JSON array on disk."""

import json
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional

from ..config import get_settings
from ..exceptions import PersistenceError
from ..logging_config import LoggerMixin
from ..models import JobRecord


class JobHistoryLog(LoggerMixin):
    """Newest-first history of finished jobs.

    Records older than the retention window are dropped whenever the file is
    rewritten and filtered out whenever it is read. Read and write problems
    are logged and swallowed: a broken history file must never turn a
    finished job into a failed one.
    """

    def __init__(self, settings=None, path: Optional[Path] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.settings = settings or get_settings()
        self.path = Path(path or self.settings.history_file)
        self.retention = timedelta(hours=self.settings.history_retention_hours)
        self._clock = clock
        self._lock = threading.Lock()

    def append(self, record: JobRecord) -> None:
        """Prepend ``record`` and rewrite the file without expired entries."""
        with self._lock:
            try:
                records = self._drop_expired(self._load())
                records.insert(0, record)
                self._save(records)
            except PersistenceError as exc:
                self.logger.error("Error writing log file", path=str(self.path), error=str(exc))
                return

        self.logger.info("Job recorded in history", job_id=record.job_id, records=len(records))

    def read(self) -> List[JobRecord]:
        """All unexpired records, newest first. Empty on any read problem."""
        with self._lock:
            try:
                return self._drop_expired(self._load())
            except PersistenceError as exc:
                self.logger.error("Error reading log file", path=str(self.path), error=str(exc))
                return []

    def find(self, job_id: str) -> Optional[JobRecord]:
        for record in self.read():
            if record.job_id == job_id:
                return record
        return None

    # ---------------------------
    # Internal: Persistence
    # ---------------------------

    def _drop_expired(self, records: List[JobRecord]) -> List[JobRecord]:
        now = self._clock()
        try:
            return [record for record in records if not record.is_expired(now, self.retention)]
        except TypeError as e:
            raise PersistenceError(f"Cannot compare history timestamps: {e}") from e

    def _load(self) -> List[JobRecord]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to load history {self.path}: {e}") from e
        if not isinstance(data, list):
            raise PersistenceError(f"Failed to load history {self.path}: not a JSON array")

        records = []
        for index, item in enumerate(data):
            try:
                records.append(JobRecord.from_dict(item))
            except (ValueError, KeyError, TypeError) as e:
                # Skip the entry; the next rewrite drops it from the file
                self.logger.warning("Skipping bad history entry", path=str(self.path),
                                    index=index, error=str(e))
        return records

    def _save(self, records: List[JobRecord]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump([record.to_dict() for record in records], f, indent=2, ensure_ascii=False)
            tmp_path.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to save history {self.path}: {e}") from e
