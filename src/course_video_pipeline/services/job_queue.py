"""FIFO admission and single-worker execution of video generation jobs.

Submissions are queued and drained by one background thread, so at most
one pipeline runs at any time and jobs start in admission order. The drain
thread is the only writer of the current job and its live status; readers
get immutable snapshots.
"""

from __future__ import annotations

import threading
import uuid
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import PurePosixPath
from typing import Deque, List, Optional, Tuple

from ..config import get_settings
from ..exceptions import VideoPipelineError
from ..logging_config import LoggerMixin, bind_job
from ..models import (
    STATUS_COMPLETE,
    STATUS_NOT_FOUND,
    STATUS_STARTING,
    STATUS_WAITING,
    JobRecord,
    JobStatusEnum,
    PipelineResult,
    QueueSnapshot,
    StatusEntry,
    Submission,
)
from .archive_ingestor import ArchiveIngestor
from .job_history import JobHistoryLog
from .notifier import (
    FAILURE_SUBJECT,
    EmailNotifier,
    build_failure_email,
    build_success_email,
    success_subject,
)
from .pipeline import ProgressCallback, VideoGenerationPipeline


def new_job_id() -> str:
    """Short random token: the first block of a UUID4."""
    return str(uuid.uuid4()).split("-")[0]


class _QueueProgress(ProgressCallback):
    """Route pipeline status lines into the queue's live status."""

    def __init__(self, queue: "JobQueue", job_id: str):
        self.queue = queue
        self.job_id = job_id

    def on_status(self, status: str) -> None:
        self.queue._set_status(self.job_id, status)


class JobQueue(LoggerMixin):
    """Single-consumer job queue in front of the video pipeline."""

    def __init__(
        self,
        settings=None,
        pipeline: Optional[VideoGenerationPipeline] = None,
        history: Optional[JobHistoryLog] = None,
        notifier: Optional[EmailNotifier] = None,
    ):
        self.settings = settings or get_settings()
        self.pipeline = pipeline or VideoGenerationPipeline(self.settings)
        self.history = history or JobHistoryLog(self.settings)
        self.notifier = notifier or EmailNotifier(self.settings)
        self.ingestor = ArchiveIngestor()
        self.failure_retention = timedelta(hours=self.settings.history_retention_hours)

        self._pending: Deque[Submission] = deque()
        self._failures: List[Tuple[Submission, str]] = []
        self._current: Optional[Submission] = None
        self._status = ""
        self._condition = threading.Condition()
        self._stopping = False
        self._worker: Optional[threading.Thread] = None

    # ---------------------------
    # Lifecycle
    # ---------------------------

    def start(self) -> None:
        """Start the drain thread (no-op when already running)."""
        with self._condition:
            if self._worker and self._worker.is_alive():
                return
            self._stopping = False
            self._worker = threading.Thread(target=self._drain, name="job-queue", daemon=True)
            self._worker.start()
        self.logger.info("Job queue started")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop after the current job; pending jobs stay queued."""
        with self._condition:
            self._stopping = True
            self._condition.notify_all()
            worker = self._worker
        if worker:
            worker.join(timeout)
        self.logger.info("Job queue stopped", pending=len(self._pending))

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is running or pending.

        Returns:
            False if the timeout expired first
        """
        with self._condition:
            return self._condition.wait_for(
                lambda: self._current is None and not self._pending,
                timeout=timeout,
            )

    # ---------------------------
    # Intake
    # ---------------------------

    def place_to_queue(
        self,
        archive: bytes,
        archive_name: str,
        destination: str,
        skip_upload: bool = False,
        low_res: Optional[bool] = None,
        suppress_notification: bool = False,
    ) -> str:
        """Admit one archive and return its job id.

        The archive is checked before it is queued, so a malformed upload is
        rejected right away instead of failing later in the worker.

        Raises:
            ValidationError: If the archive is unreadable or its contents are invalid
        """
        images, audios = self.ingestor.inspect(archive)

        submission = Submission(
            job_id=new_job_id(),
            name=PurePosixPath(archive_name).stem,
            destination=destination,
            payload=archive,
            skip_upload=skip_upload,
            low_res=low_res,
            suppress_notification=suppress_notification,
        )
        with self._condition:
            self._pending.append(submission)
            position = len(self._pending)
            self._condition.notify_all()

        self.logger.info(
            "Archive queued",
            job_id=submission.job_id,
            name=submission.name,
            images=images,
            audios=audios,
            position=position,
            skip_upload=skip_upload,
            low_res=low_res,
        )
        return submission.job_id

    # ---------------------------
    # Status
    # ---------------------------

    def is_busy(self) -> bool:
        with self._condition:
            return self._current is not None

    def snapshot(self) -> QueueSnapshot:
        with self._condition:
            self._prune_failures()
            return QueueSnapshot(
                current=self._current,
                status=self._status,
                pending=tuple(self._pending),
                failures=tuple(self._failures),
                busy=self._current is not None,
            )

    def get_status(self, job_id: str) -> str:
        """Live status, ``Waiting...``, the error, ``Complete.`` or ``Not found``."""
        snapshot = self.snapshot()
        if job_id and snapshot.current and snapshot.current.job_id == job_id:
            return snapshot.status
        if job_id in snapshot.pending_ids():
            return STATUS_WAITING
        for submission, status in snapshot.failures:
            if submission.job_id == job_id:
                return status
        if job_id and self.history.find(job_id):
            return STATUS_COMPLETE
        return STATUS_NOT_FOUND

    def get_state(self, job_id: str) -> Optional[JobStatusEnum]:
        """Lifecycle state of a job, or None if it is unknown."""
        snapshot = self.snapshot()
        if snapshot.current and snapshot.current.job_id == job_id:
            return JobStatusEnum.RUNNING
        if job_id in snapshot.pending_ids():
            return JobStatusEnum.PENDING
        if any(submission.job_id == job_id for submission, _ in snapshot.failures):
            return JobStatusEnum.FAILED
        if self.history.find(job_id):
            return JobStatusEnum.COMPLETED
        return None

    def get_status_all(self) -> List[StatusEntry]:
        """Current job first, then pending, failed and completed jobs."""
        snapshot = self.snapshot()
        current_id = snapshot.current.job_id if snapshot.current else None

        entries: List[StatusEntry] = []
        if snapshot.current:
            entries.append(self._entry(snapshot.current, snapshot.status))
        entries.extend(
            self._entry(submission, STATUS_WAITING)
            for submission in snapshot.pending
            if submission.job_id != current_id
        )
        entries.extend(
            self._entry(submission, status)
            for submission, status in snapshot.failures
            if submission.job_id != current_id
        )
        entries.extend(
            StatusEntry(record.job_id, record.name, record.created_at, STATUS_COMPLETE)
            for record in self.history.read()
            if record.job_id != current_id
        )
        return entries

    @staticmethod
    def _entry(submission: Submission, status: str) -> StatusEntry:
        return StatusEntry(submission.job_id, submission.name, submission.created_at, status)

    # ---------------------------
    # Worker
    # ---------------------------

    def _drain(self) -> None:
        while True:
            with self._condition:
                while not self._pending and not self._stopping:
                    self._condition.wait()
                if self._stopping:
                    return
                submission = self._pending.popleft()
                self._current = submission
                self._status = STATUS_STARTING

            try:
                with bind_job(submission.job_id):
                    self._process(submission)
            except Exception as e:
                # The worker outlives any single job
                self.logger.error("Unhandled error in job worker", job_id=submission.job_id, error=str(e))
            finally:
                with self._condition:
                    self._current = None
                    self._status = ""
                    self._condition.notify_all()

    def _process(self, submission: Submission) -> None:
        job_id = submission.job_id
        self.logger.info("Job started", job_id=job_id, name=submission.name)
        try:
            result = self.pipeline.run(submission, progress_callback=_QueueProgress(self, job_id))
        except Exception as e:
            message = e.message if isinstance(e, VideoPipelineError) else str(e)
            status = f"Error: {message}"
            self._set_status(job_id, status)
            with self._condition:
                self._failures.insert(0, (replace(submission, payload=b""), status))
            self.logger.error("Job failed", job_id=job_id, error=message)
            self._after_run(self._notify_failure, submission, e)
            return

        record = JobRecord.from_result(result)
        self._after_run(self.history.append, record)
        self.logger.info("Job completed", job_id=job_id, total_time=f"{result.total_time:.1f}s")
        self._after_run(self._notify_success, record, result)

    def _after_run(self, hook, *args) -> None:
        """Run a bookkeeping step; its failure never changes the job's outcome."""
        try:
            hook(*args)
        except Exception as e:
            self.logger.error("Post-run step failed", step=getattr(hook, "__name__", repr(hook)), error=str(e))

    def _set_status(self, job_id: str, status: str) -> None:
        with self._condition:
            if self._current is None or self._current.job_id != job_id:
                return
            self._status = status

    def _prune_failures(self) -> None:
        cutoff = datetime.now() - self.failure_retention
        self._failures = [item for item in self._failures if item[0].created_at >= cutoff]

    # ---------------------------
    # Notifications
    # ---------------------------

    def _notify_success(self, record: JobRecord, result: PipelineResult) -> None:
        if result.submission.suppress_notification:
            self.logger.info("Email notification suppressed", job_id=record.job_id)
            return
        storage = self.pipeline.storage
        full_url = storage.public_url(result.full_video_path) if result.uploaded else None
        short_url = storage.public_url(result.short_video_path) if result.uploaded else None
        self.notifier.send(
            build_success_email(record, full_url, short_url),
            result.submission.destination,
            success_subject(record.job_id),
        )

    def _notify_failure(self, submission: Submission, error: BaseException) -> None:
        if submission.suppress_notification:
            self.logger.info("Email notification suppressed", job_id=submission.job_id)
            return
        self.notifier.send(
            build_failure_email(submission, error),
            submission.destination,
            FAILURE_SUBJECT,
        )
