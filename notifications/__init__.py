"""Tenant-scoped notification dispatch, delivery and periodic checks."""

from dataclasses import dataclass
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config import config
from database import (
    users_collection,
    notifications_collection,
    notification_prefs_collection,
    push_subscriptions_collection,
    tasks_collection,
    task_assignees_collection,
    client_crm_collection,
)
from notifications.realtime import ConnectionManager, RealtimeEmitter
from notifications.repository import NotificationRepository
from notifications.scheduler import DeadlineChecker, FollowUpChecker
from notifications.service import NotificationService
from notifications.sources import UserDirectory, TaskSource, FollowUpSource
from utils.background import BestEffortRunner


@dataclass
class NotificationStack:
    connections: ConnectionManager
    repository: NotificationRepository
    service: NotificationService
    deadline_checker: DeadlineChecker
    follow_up_checker: FollowUpChecker
    background: BestEffortRunner

    def start_checkers(self) -> None:
        self.deadline_checker.start()
        self.follow_up_checker.start()

    async def stop_checkers(self) -> None:
        """Remove both jobs, then let any scan already running finish."""
        self.deadline_checker.stop()
        self.follow_up_checker.stop()
        await self.deadline_checker.wait_idle()
        await self.follow_up_checker.wait_idle()


def build_notification_stack(scheduler: AsyncIOScheduler) -> NotificationStack:
    """Wire the Mongo-backed collaborators together. Nothing connects until first use."""
    connections = ConnectionManager()
    background = BestEffortRunner()
    repository = NotificationRepository(notifications_collection, notification_prefs_collection)
    emitter = RealtimeEmitter(connections, background, preferences=repository, subscriptions=push_subscriptions_collection)
    service = NotificationService(UserDirectory(users_collection), repository, emitter)

    interval = timedelta(hours=config.CHECK_INTERVAL_HOURS)
    deadline_checker = DeadlineChecker(
        scheduler, service, TaskSource(tasks_collection, task_assignees_collection),
        interval=interval,
        initial_delay=timedelta(seconds=config.DEADLINE_CHECK_DELAY_SECONDS),
    )
    follow_up_checker = FollowUpChecker(
        scheduler, service, FollowUpSource(client_crm_collection),
        interval=interval,
        initial_delay=timedelta(seconds=config.FOLLOWUP_CHECK_DELAY_SECONDS),
    )
    return NotificationStack(connections, repository, service, deadline_checker, follow_up_checker, background)
