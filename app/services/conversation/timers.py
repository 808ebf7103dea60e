from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)


class TimerKind(str, Enum):
    INACTIVITY = "inactivity"
    REMINDER = "reminder"


def timer_job_id(identity: str, kind: TimerKind) -> str:
    return f"{identity}:{kind.value}"


class SchedulerTimers:
    """Timers das sessões como jobs `date` do APScheduler, um por id."""

    def __init__(self, scheduler: BackgroundScheduler | None = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def schedule(self, job_id: str, delay_seconds: float, callback: Callable[..., Any], *args: Any) -> None:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=max(delay_seconds, 0))
        self.scheduler.add_job(
            callback,
            "date",
            run_date=run_date,
            args=list(args),
            id=job_id,
            replace_existing=True,
            misfire_grace_time=None,
        )
        logger.debug("timer_scheduled", extra={"job_id": job_id})

    def cancel(self, job_id: str) -> None:
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            # Já disparou ou nunca foi agendado.
            return
        logger.debug("timer_cancelled", extra={"job_id": job_id})
