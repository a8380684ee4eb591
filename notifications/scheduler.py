"""
Periodic scans that raise notifications for due conditions.

Each checker owns one interval job on an APScheduler ``AsyncIOScheduler``
held by the application lifespan. ``start`` replaces any existing job (a
restart), ``stop`` removes it; an in-flight scan always runs to completion.
Each scan runs in its own task, shielded from the job, so shutting the
scheduler down never cancels it; ``wait_idle`` awaits the one in flight.
Scans walk their matches one at a time and rely on dedupe keys, so
re-scanning the same due item refreshes its notification instead of adding
another.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from models.notification import NotificationContext
from constants import TaskStatus
from logging_config import get_logger

logger = get_logger("scheduler")


def end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999000)


def end_of_today(now: Optional[datetime] = None) -> datetime:
    return end_of_day(now or datetime.now(timezone.utc))


def end_of_tomorrow(now: Optional[datetime] = None) -> datetime:
    return end_of_day((now or datetime.now(timezone.utc)) + timedelta(days=1))


class PeriodicChecker:
    """One named interval job. Subclasses implement ``check``."""

    name = "checker"

    def __init__(self, scheduler: AsyncIOScheduler, interval: timedelta, initial_delay: timedelta):
        self._scheduler = scheduler
        self.interval = interval
        self.initial_delay = initial_delay
        self._scan: Optional[asyncio.Task] = None

    @property
    def job_id(self) -> str:
        return f"notifications:{self.name}"

    @property
    def running(self) -> bool:
        return self._scheduler.get_job(self.job_id) is not None

    def start(self) -> None:
        self._scheduler.add_job(
            self.run,
            trigger=IntervalTrigger(seconds=self.interval.total_seconds()),
            id=self.job_id,
            name=self.name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc) + self.initial_delay,
        )
        logger.info(f"[{self.name}] Started", extra={"data": {"interval_s": self.interval.total_seconds()}})

    def stop(self) -> None:
        try:
            self._scheduler.remove_job(self.job_id)
        except JobLookupError:
            return
        logger.info(f"[{self.name}] Stopped")

    async def run(self) -> int:
        """One scan. Failures are logged and the next tick runs as usual."""
        self._scan = asyncio.ensure_future(self._scan_once())
        return await asyncio.shield(self._scan)

    async def _scan_once(self) -> int:
        try:
            return await self.check()
        except Exception as exc:
            logger.error(f"[{self.name}] Scan failed: {exc}", exc_info=True)
            return 0

    async def wait_idle(self) -> None:
        """Block until the scan in flight, if any, has finished."""
        if self._scan is not None and not self._scan.done():
            await asyncio.wait({self._scan})

    async def check(self) -> int:
        raise NotImplementedError


class DeadlineChecker(PeriodicChecker):
    """Warns every assignee of a task due before the end of tomorrow."""

    name = "deadline-checker"

    def __init__(self, scheduler, service, tasks, interval=timedelta(hours=6), initial_delay=timedelta(seconds=10)):
        super().__init__(scheduler, interval, initial_delay)
        self._service = service
        self._tasks = tasks

    async def check(self) -> int:
        upcoming = await self._tasks.get_tasks_due_soon(end_of_tomorrow())

        notified = 0
        for task in upcoming:
            if not task.due_date or task.status == TaskStatus.COMPLETED:
                continue

            assignees = await self._tasks.get_task_assignees(task.id)
            context = NotificationContext(tenant_id=task.tenant_id)
            for assignee in assignees:
                created = await self._service.notify_task_deadline_approaching(
                    assignee.user_id, task.id, task.title, task.due_date, context
                )
                if created:
                    notified += 1

        logger.info(
            f"[{self.name}] Checked {len(upcoming)} tasks with upcoming deadlines",
            extra={"data": {"tasks": len(upcoming), "notified": notified}},
        )
        return notified


class FollowUpChecker(PeriodicChecker):
    """Reminds CRM owners of client follow-ups due today or overdue."""

    name = "followup-checker"

    def __init__(self, scheduler, service, follow_ups, interval=timedelta(hours=6), initial_delay=timedelta(seconds=15)):
        super().__init__(scheduler, interval, initial_delay)
        self._service = service
        self._follow_ups = follow_ups

    async def check(self) -> int:
        due = await self._follow_ups.get_due_follow_ups(end_of_today())

        notified = 0
        for row in due:
            context = NotificationContext(tenant_id=row.tenant_id)
            created = await self._service.notify_follow_up_due(
                row.owner_user_id, row.client_id, row.client_name, row.next_follow_up_at, context
            )
            if created:
                notified += 1

        logger.info(
            f"[{self.name}] Checked {len(due)} follow-ups, notified {notified} owners",
            extra={"data": {"follow_ups": len(due), "notified": notified}},
        )
        return notified
