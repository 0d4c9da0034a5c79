import asyncio
import logging
from datetime import datetime
from typing import Optional

from videomaker.jobs import JobStore, store
from videomaker.models import utcnow
from videomaker.settings import settings

log = logging.getLogger("videomaker.scheduler")


class RuntimeState:
    def __init__(self):
        self.app = "ai-video-maker"
        self.version = "automation+api"
        self.started_at: datetime = utcnow()
        self.last_tick_at: Optional[datetime] = None
        self.tick_count = 0
        self.last_error: Optional[str] = None

    def uptime_seconds(self) -> int:
        return int((utcnow() - self.started_at).total_seconds())

    def as_dict(self) -> dict:
        return {
            "app": self.app,
            "version": self.version,
            "started_at": self.started_at.isoformat(),
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "tick_count": self.tick_count,
            "last_error": self.last_error,
        }


state = RuntimeState()


def run_tick(jobs: JobStore = store, runtime: RuntimeState = state, step: Optional[int] = None):
    """One scheduler pass. Never raises; errors land in runtime.last_error."""
    try:
        runtime.tick_count += 1
        runtime.last_tick_at = utcnow()
        job = jobs.tick(step if step is not None else settings.TICK_STEP)

        # keep logs light
        if runtime.tick_count == 1:
            log.info("automation started")
        if runtime.tick_count % 10 == 0:
            log.info("tick #%d ok", runtime.tick_count)
        return job
    except Exception as e:
        runtime.last_error = str(e) or e.__class__.__name__
        log.exception("tick error")
        return None


class Ticker:
    """Calls run_tick() every `interval` seconds on the running event loop."""

    def __init__(self, interval: float, jobs: JobStore = store, runtime: RuntimeState = state):
        self.interval = max(0.1, float(interval))
        self.jobs = jobs
        self.runtime = runtime
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        log.info("ticker started (every %.1fs)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("ticker stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            run_tick(self.jobs, self.runtime)
