"""In-memory cache of recognition jobs with TTL cleanup.

WHY: Watson identifies asynchronous recognitions by an opaque job ID.
The server has to remember which uploaded file each job belongs to, the
latest status it saw, and the transcript text (which the user may edit
before downloading). An in-memory cache is enough for a single-instance
demo service with no persistence requirements.

HOW: Three components work together:
  JobStatus  — enum of Watson job states
  Job        — dataclass holding job metadata, results, and transcript
  JobStore   — thread-safe dict-based store with add/update/get/list/delete
               and TTL expiry

RULES:
- All store mutations are protected by threading.Lock for thread safety
- Job IDs are the IDs Watson assigned; the store never invents them
- TTL is measured from completed_at for terminal jobs and from
  updated_at for jobs nobody has polled in a while
- Default TTL is 1 hour (3600 seconds)
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Default time-to-live for cached jobs (seconds)
DEFAULT_TTL_SECONDS = 3600


class JobStatus(str, enum.Enum):
    """Watson recognition job states.

    HOW: Inherits from str so values serialize cleanly to JSON and compare
    equal to the raw strings Watson returns.

    RULES:
    - waiting: queued at Watson, not started
    - processing: Watson is recognizing the audio
    - completed: results are available
    - failed: unrecoverable error at Watson
    """

    WAITING = "waiting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_TERMINAL = (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class Job:
    """Cached state for a single recognition job.

    RULES:
    - id: Watson job ID, immutable after creation
    - filename: original uploaded filename (for display/download)
    - created/updated: Watson's ISO 8601 timestamps
    - created_at/updated_at/completed_at: local epoch timestamps
    - results: Watson results once completed, else None
    - transcription: speaker-labelled text; may be replaced by the user
    - edited: True once the user has replaced the transcription
    """

    id: str
    status: JobStatus
    filename: str
    created_at: float
    updated_at: float
    created: Optional[str] = None
    updated: Optional[str] = None
    url: Optional[str] = None
    completed_at: Optional[float] = None
    results: Optional[List[Dict[str, Any]]] = None
    transcription: str = ""
    edited: bool = False


class JobStore:
    """Thread-safe in-memory store for recognition jobs.

    RULES:
    - add_job() raises ValueError when max_jobs is reached
    - get_job() returns None for missing job IDs (no exceptions)
    - update_job() applies only non-None arguments
    - cleanup_expired() returns the number of removed jobs
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_jobs: int = 100,
    ) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_jobs = max_jobs

    def add_job(
        self,
        job_id: str,
        filename: str,
        status: str = JobStatus.WAITING.value,
        created: Optional[str] = None,
        url: Optional[str] = None,
    ) -> Job:
        """Cache a job Watson has just created.

        RULES:
        - Re-adding an existing ID replaces the cached entry
        - Raises ValueError when the store is full
        """
        with self._lock:
            if job_id not in self._jobs and len(self._jobs) >= self.max_jobs:
                raise ValueError(
                    "Maximum number of concurrent jobs ({}) reached".format(
                        self.max_jobs
                    )
                )

            now = time.time()
            job = Job(
                id=job_id,
                status=JobStatus(status),
                filename=filename,
                created_at=now,
                updated_at=now,
                created=created,
                url=url,
            )
            if job.status in _TERMINAL:
                job.completed_at = now
            self._jobs[job_id] = job

        logger.info("Cached job %s for file %s", job_id, filename)
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        """Retrieve a job by ID, or None if not found.

        RULES:
        - The returned Job object is the live instance (not a copy)
        """
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> List[Job]:
        """Return all jobs, oldest first."""
        with self._lock:
            return sorted(self._jobs.values(), key=lambda j: j.created_at)

    def update_job(
        self,
        job_id: str,
        status: Optional[str] = None,
        updated: Optional[str] = None,
        results: Optional[List[Dict[str, Any]]] = None,
        transcription: Optional[str] = None,
        edited: Optional[bool] = None,
    ) -> Optional[Job]:
        """Update a job's mutable fields.

        HOW: Acquires the lock, applies non-None updates, bumps updated_at.
        Sets completed_at the first time the job reaches a terminal state.

        RULES:
        - Returns the updated Job, or None if job_id not found
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None

            now = time.time()

            if status is not None:
                job.status = JobStatus(status)
            if updated is not None:
                job.updated = updated
            if results is not None:
                job.results = results
            if transcription is not None:
                job.transcription = transcription
            if edited is not None:
                job.edited = edited

            job.updated_at = now

            if job.status in _TERMINAL and job.completed_at is None:
                job.completed_at = now

            return job

    def delete_job(self, job_id: str) -> bool:
        """Remove a job; returns True if it was cached."""
        with self._lock:
            job = self._jobs.pop(job_id, None)

        if job is None:
            return False

        logger.info("Deleted job %s", job_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove all jobs that have exceeded their TTL.

        RULES:
        - Terminal jobs expire TTL seconds after completed_at
        - Other jobs expire TTL seconds after their last update
        - Returns the count of removed jobs
        """
        now = time.time()
        expired: List[Job] = []

        with self._lock:
            for job_id, job in list(self._jobs.items()):
                reference = job.completed_at if job.completed_at is not None else job.updated_at
                if now - reference > self._ttl_seconds:
                    expired.append(self._jobs.pop(job_id))

        for job in expired:
            logger.info("Expired job %s (%s)", job.id, job.status.value)

        return len(expired)
