"""
Lifecycle of a single processing job.

States move ``pending -> processing -> completed | failed``.  While
processing, progress checkpoints only ever increase and each one is written
through immediately so observers see live progress.  Every state transition
appends exactly one audit :class:`~callscribe.models.LogEntry`; a failure
resets progress to 0 and records the error message.

Store writes are retried three times with a one second pause, since the
storage layer may be briefly unavailable.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from .job_store import JobStore
from .models import Analysis, AnalysisSource, Job, JobStatus, LogEntry, LogLevel
from .retry import PERSISTENCE_POLICY, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

_LOG_METHODS = {
    LogLevel.INFO: logger.info,
    LogLevel.WARNING: logger.warning,
    LogLevel.ERROR: logger.error,
}


class JobStateMachine:
    def __init__(
        self,
        job: Job,
        store: JobStore,
        *,
        persistence_policy: RetryPolicy = PERSISTENCE_POLICY,
        clock=time.monotonic,
    ) -> None:
        self.job = job
        self.store = store
        self._policy = persistence_policy
        self._clock = clock
        self._started_at: Optional[float] = None

    def _persist(self) -> None:
        call_with_retry(lambda: self.store.save(self.job), self._policy)

    def log(self, level: LogLevel, message: str) -> None:
        """Append an audit entry for the job and mirror it to the process log."""
        _LOG_METHODS[level]("[job %s] %s", self.job.id, message)
        entry = LogEntry(job_id=self.job.id, level=level, message=message)
        call_with_retry(lambda: self.store.append_log(entry), self._policy)

    def start(self, message: Optional[str] = None) -> None:
        if self.job.status is not JobStatus.PENDING:
            raise ValueError(f"Cannot start job {self.job.id} in status {self.job.status.value}")
        self._started_at = self._clock()
        self.job.status = JobStatus.PROCESSING
        self.job.progress = 0
        self.job.error = None
        self._persist()
        self.log(LogLevel.INFO, message or f"Starting transcription for {self.job.name}")

    def checkpoint(self, progress: int, message: Optional[str] = None) -> None:
        """Record a progress checkpoint; lower values than the current one are ignored."""
        if self.job.status is not JobStatus.PROCESSING:
            raise ValueError(f"Job {self.job.id} is not processing")
        if not 0 <= progress <= 100:
            raise ValueError(f"Progress out of range: {progress}")
        if progress > self.job.progress:
            self.job.progress = progress
            self._persist()
        if message:
            self.log(LogLevel.INFO, message)

    def complete(self, transcript: str, language: Optional[str] = None) -> None:
        if self.job.status is not JobStatus.PROCESSING:
            raise ValueError(f"Cannot complete job {self.job.id} in status {self.job.status.value}")
        self.job.status = JobStatus.COMPLETED
        self.job.transcript = transcript
        self.job.language = language
        self.job.progress = 100
        self.job.error = None
        if self._started_at is not None:
            self.job.processing_time_seconds = round(self._clock() - self._started_at, 3)
        try:
            self._persist()
        except Exception:
            # Not stored as completed; leave it failable.
            self.job.status = JobStatus.PROCESSING
            raise
        self.log(LogLevel.INFO, "Transcription completed successfully")

    def fail(self, error: str) -> None:
        """Move the job to ``failed``; valid from ``pending`` or ``processing``."""
        if self.job.status.terminal:
            raise ValueError(f"Job {self.job.id} already {self.job.status.value}")
        self.job.status = JobStatus.FAILED
        self.job.progress = 0
        self.job.error = error or "Unknown error occurred"
        self._persist()
        self.log(LogLevel.ERROR, self.job.error)

    def attach_analysis(self, analysis: Analysis, source: AnalysisSource) -> None:
        """Replace the analysis of a completed job."""
        if self.job.status is not JobStatus.COMPLETED:
            raise ValueError(f"Cannot attach analysis to job {self.job.id} in status {self.job.status.value}")
        self.job.analysis = analysis
        self.job.analysis_source = source
        self._persist()
