"""
Persistence of job records and their audit logs.

:class:`JobStore` describes what the pipeline needs from the storage layer.
Two implementations are provided:

* :class:`InMemoryJobStore` – a process-local store used by tests and the
  development server.
* :class:`GcsJobStore` – records live in a Cloud Storage bucket as
  ``<prefix><job id>/job.json`` with one object per log entry under
  ``<prefix><job id>/logs/`` so the audit trail stays append-only.

Writes from the pipeline go through :class:`callscribe.job_state.JobStateMachine`,
which retries them; the stores themselves do not retry.
"""

from __future__ import annotations

import json
import threading
from typing import Dict, List, Optional

from google.cloud import storage

from .models import Job, LogEntry


class JobNotFound(KeyError):
    pass


class JobStore:
    """Interface of the persistence collaborator."""

    def create(self, job: Job) -> None:
        raise NotImplementedError

    def get(self, job_id: str) -> Job:
        raise NotImplementedError

    def save(self, job: Job) -> None:
        """Overwrite the stored record of ``job`` with its current fields."""
        raise NotImplementedError

    def append_log(self, entry: LogEntry) -> None:
        raise NotImplementedError

    def logs(self, job_id: str) -> List[LogEntry]:
        raise NotImplementedError

    def check_duplicate(self, name: str) -> Optional[str]:
        """Return the id of an existing job for ``name``, if any."""
        raise NotImplementedError


class InMemoryJobStore(JobStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: Dict[str, dict] = {}
        self._logs: Dict[str, List[LogEntry]] = {}

    def create(self, job: Job) -> None:
        with self._lock:
            self._jobs[job.id] = job.to_dict()
            self._logs.setdefault(job.id, [])

    def get(self, job_id: str) -> Job:
        with self._lock:
            data = self._jobs.get(job_id)
        if data is None:
            raise JobNotFound(job_id)
        return Job.from_dict(data)

    def save(self, job: Job) -> None:
        with self._lock:
            if job.id not in self._jobs:
                raise JobNotFound(job.id)
            self._jobs[job.id] = job.to_dict()

    def append_log(self, entry: LogEntry) -> None:
        with self._lock:
            self._logs.setdefault(entry.job_id, []).append(entry)

    def logs(self, job_id: str) -> List[LogEntry]:
        with self._lock:
            return list(self._logs.get(job_id, []))

    def check_duplicate(self, name: str) -> Optional[str]:
        with self._lock:
            for job_id, data in self._jobs.items():
                if data["name"] == name:
                    return job_id
        return None


class GcsJobStore(JobStore):
    """Job store backed by a Cloud Storage bucket."""

    def __init__(self, bucket_name: str, prefix: str = "jobs/", client: Optional[storage.Client] = None) -> None:
        self._client = client or storage.Client()
        self._bucket = self._client.bucket(bucket_name)
        self._prefix = prefix
        self._seq = 0
        self._lock = threading.Lock()

    def _job_blob_name(self, job_id: str) -> str:
        return f"{self._prefix}{job_id}/job.json"

    def create(self, job: Job) -> None:
        self.save(job)

    def get(self, job_id: str) -> Job:
        blob = self._bucket.blob(self._job_blob_name(job_id))
        if not blob.exists():
            raise JobNotFound(job_id)
        return Job.from_dict(json.loads(blob.download_as_text()))

    def save(self, job: Job) -> None:
        blob = self._bucket.blob(self._job_blob_name(job.id))
        blob.upload_from_string(json.dumps(job.to_dict(), ensure_ascii=False), content_type="application/json")

    def append_log(self, entry: LogEntry) -> None:
        with self._lock:
            self._seq += 1
            seq = self._seq
        # Timestamp first so listing order is chronological.
        name = f"{self._prefix}{entry.job_id}/logs/{entry.created_at.strftime('%Y%m%dT%H%M%S%f')}-{seq:06d}.json"
        blob = self._bucket.blob(name)
        blob.upload_from_string(json.dumps(entry.to_dict(), ensure_ascii=False), content_type="application/json")

    def logs(self, job_id: str) -> List[LogEntry]:
        blobs = self._client.list_blobs(self._bucket, prefix=f"{self._prefix}{job_id}/logs/")
        ordered = sorted(blobs, key=lambda b: b.name)
        return [LogEntry.from_dict(json.loads(b.download_as_text())) for b in ordered]

    def check_duplicate(self, name: str) -> Optional[str]:
        for blob in self._client.list_blobs(self._bucket, prefix=self._prefix):
            if not blob.name.endswith("/job.json"):
                continue
            data = json.loads(blob.download_as_text())
            if data.get("name") == name:
                return data["id"]
        return None
