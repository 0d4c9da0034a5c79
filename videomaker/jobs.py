"""
In-memory job queue.

Jobs are created by the API, advanced only by tick(), and never destroyed
(the list lives until the process restarts). At most one job is `running`;
tick() promotes the oldest queued job when nothing is running.
"""

import logging
import threading
from collections import Counter
from typing import Callable, Dict, List, Optional

from videomaker.errors import JobStateError
from videomaker.models import (
    CANCELED,
    DONE,
    FAILED,
    QUEUED,
    RUNNING,
    STATUSES,
    Job,
    utcnow,
)

log = logging.getLogger("videomaker.jobs")

MIN_PROMPT_LEN = 3
DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def clamp_limit(limit, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    try:
        n = int(limit)
    except (TypeError, ValueError):
        n = default
    if n == 0:
        n = default
    return max(1, min(maximum, n))


def stub_result() -> Dict:
    return {
        "message": "stub video generated (connect a video backend next)",
        "video_url": None,
        "finished_at": utcnow().isoformat(),
    }


class JobStore:
    def __init__(self, on_done: Optional[Callable[[Job], Dict]] = None):
        self._jobs: Dict[str, Job] = {}
        self._next_id = 1
        # Request handlers run in the threadpool while the ticker runs on the event loop
        self._lock = threading.RLock()
        # Builds the result payload when a job reaches 100%
        self.on_done = on_done or (lambda job: stub_result())

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create(self, prompt: str, title: Optional[str] = None, meta: Optional[Dict] = None) -> Job:
        prompt = (prompt or "").strip()
        if len(prompt) < MIN_PROMPT_LEN:
            raise ValueError("PROMPT_REQUIRED")
        with self._lock:
            job = Job(
                id=str(self._next_id),
                prompt=prompt,
                title=(title or "").strip() or None,
                meta=meta if isinstance(meta, dict) else {},
            )
            self._next_id += 1
            self._jobs[job.id] = job
        log.info("job %s queued", job.id)
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(str(job_id))

    def all(self) -> List[Job]:
        with self._lock:
            jobs = list(self._jobs.values())
        return sorted(jobs, key=lambda j: (j.created_at, int(j.id)), reverse=True)

    def list(self, limit=DEFAULT_LIMIT) -> List[Job]:
        return self.all()[: clamp_limit(limit)]

    def counts(self) -> Dict[str, int]:
        with self._lock:
            c = Counter(j.status for j in self._jobs.values())
        return {s: c.get(s, 0) for s in STATUSES}

    def running(self) -> Optional[Job]:
        with self._lock:
            for job in self._jobs.values():
                if job.status == RUNNING:
                    return job
        return None

    def cancel(self, job_id: str) -> Job:
        with self._lock:
            job = self._require(job_id)
            if job.is_terminal:
                raise JobStateError(f"job {job.id} is already {job.status}")
            job.status = CANCELED
            job.error = "canceled"
            job.touch()
        log.info("job %s canceled", job.id)
        return job

    def fail(self, job_id: str, error: str) -> Job:
        with self._lock:
            job = self._require(job_id)
            if job.is_terminal:
                raise JobStateError(f"job {job.id} is already {job.status}")
            self._fail(job, error)
        return job

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()
            self._next_id = 1

    def tick(self, step: int = 5) -> Optional[Job]:
        """Advance the single running job by `step`; returns the job touched, if any."""
        step = max(1, min(100, int(step)))
        with self._lock:
            job = self.running()
            if job is None:
                # dict preserves insertion order, i.e. creation order
                for candidate in self._jobs.values():
                    if candidate.status == QUEUED:
                        candidate.status = RUNNING
                        candidate.touch()
                        job = candidate
                        log.info("job %s running", job.id)
                        break
            if job is None:
                return None

            try:
                job.progress = min(100, job.progress + step)
                job.touch()
                if job.progress >= 100:
                    job.result = self.on_done(job)
                    job.status = DONE
                    job.touch()
                    log.info("job %s done", job.id)
            except Exception as e:
                log.exception("job %s failed while advancing", job.id)
                self._fail(job, str(e) or e.__class__.__name__)
            return job

    def _require(self, job_id: str) -> Job:
        job = self.get(job_id)
        if job is None:
            raise KeyError(job_id)
        return job

    def _fail(self, job: Job, error: str) -> None:
        job.status = FAILED
        job.error = error
        job.result = None
        job.touch()
        log.warning("job %s failed: %s", job.id, error)


store = JobStore()
