"""
Notification dispatch: one coroutine per business event.

Every ``notify_*`` call runs the same pipeline: skip the excluded actor,
check the recipient belongs to the notification's tenant, check their
preferences, persist (deduplicating when the event carries a dedupe key) and
push the stored record to the recipient's live connections. The calls never
raise; a failure anywhere is logged and the caller carries on.
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from models.notification import NotificationModel, NotificationContext
from constants import (
    NotificationTypes,
    Severities,
    COMMENT_PREVIEW_LENGTH,
    MESSAGE_PREVIEW_LENGTH,
)
from notifications.guards import validate_user_tenant, should_notify_user
from utils.background import run_best_effort
from logging_config import get_logger

logger = get_logger("notification_service")


def truncate_preview(text: Optional[str], limit: int) -> str:
    """Cut ``text`` to ``limit`` characters and mark the cut with '...'."""
    text = text or ""
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def format_date(value: datetime) -> str:
    return value.strftime("%b %d, %Y")


def _task_href(task_id: str) -> str:
    return f"/tasks?taskId={task_id}"


class NotificationService:
    def __init__(self, users, repository, emitter):
        self._users = users
        self._repository = repository
        self._emitter = emitter

    async def _create_and_emit(
        self,
        user_id: str,
        type: str,
        title: str,
        message: Optional[str],
        payload: Dict[str, Any],
        context: NotificationContext,
        severity: str = Severities.INFO,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        href: Optional[str] = None,
        dedupe_key: Optional[str] = None,
    ) -> Optional[NotificationModel]:
        if context.exclude_user_id == user_id:
            return None

        if not await validate_user_tenant(self._users, user_id, context.tenant_id):
            logger.warning(
                f"Blocked notification to user {user_id} - tenant mismatch",
                extra={"data": {"user_id": user_id, "tenant_id": context.tenant_id, "type": type}},
            )
            return None

        if not await should_notify_user(self._repository, user_id, type):
            return None

        notification = NotificationModel(
            tenant_id=context.tenant_id,
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            payload=payload,
            severity=severity,
            entity_type=entity_type,
            entity_id=entity_id,
            href=href,
            dedupe_key=dedupe_key,
        )
        if dedupe_key:
            notification = await self._repository.create_or_dedupe(notification)
        else:
            notification = await self._repository.create(notification)

        await run_best_effort(self._emitter.emit(user_id, notification.to_event()), label=f"emit:{type}")
        logger.debug(
            "Notification delivered",
            extra={"data": {"id": notification.id, "user_id": user_id, "type": type, "dedupe_key": dedupe_key}},
        )
        return notification

    async def _dispatch(self, user_id: str, type: str, *args, **kwargs) -> Optional[NotificationModel]:
        return await run_best_effort(
            self._create_and_emit(user_id, type, *args, **kwargs),
            label=f"notify:{type}:{user_id}",
        )

    async def notify_many(
        self,
        user_ids: Iterable[str],
        notify: Callable[..., Awaitable[Optional[NotificationModel]]],
        *args,
        context: NotificationContext,
    ) -> int:
        """Run ``notify(user_id, *args, context)`` for each distinct user, one at a time."""
        sent = 0
        for user_id in dict.fromkeys(user_ids):
            if await notify(user_id, *args, context):
                sent += 1
        return sent

    # ─── Tasks ─────────────────────────────────────────────────────────────

    async def notify_task_assigned(self, assignee_id: str, task_id: str, task_title: str,
                                   assigner_name: str, project_name: str, context: NotificationContext):
        return await self._dispatch(
            assignee_id,
            NotificationTypes.TASK_ASSIGNED,
            f"New task assigned: {task_title}",
            f"{assigner_name} assigned you a task in {project_name}",
            {"taskId": task_id, "projectName": project_name},
            context,
            entity_type="task", entity_id=task_id, href=_task_href(task_id),
        )

    async def notify_task_completed(self, user_id: str, task_id: str, task_title: str,
                                    completed_by_name: str, context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.TASK_COMPLETED,
            f"Task completed: {task_title}",
            f"{completed_by_name} completed this task",
            {"taskId": task_id},
            context,
            entity_type="task", entity_id=task_id, href=_task_href(task_id),
        )

    async def notify_task_status_changed(self, user_id: str, task_id: str, task_title: str,
                                         new_status: str, changed_by_name: str, context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.TASK_STATUS_CHANGED,
            f"Status changed: {task_title}",
            f"{changed_by_name} changed status to {new_status}",
            {"taskId": task_id, "status": new_status},
            context,
            entity_type="task", entity_id=task_id, href=_task_href(task_id),
        )

    async def notify_task_deadline_approaching(self, user_id: str, task_id: str, task_title: str,
                                               due_date: datetime, context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.TASK_DEADLINE,
            f"Task due soon: {task_title}",
            f"This task is due on {format_date(due_date)}",
            {"taskId": task_id, "dueDate": due_date.isoformat()},
            context,
            severity=Severities.WARNING,
            entity_type="task", entity_id=task_id, href=_task_href(task_id),
            dedupe_key=f"deadline:{task_id}",
        )

    # ─── Comments ──────────────────────────────────────────────────────────

    async def notify_comment_added(self, user_id: str, task_id: str, task_title: str,
                                   commenter_name: str, comment_preview: str, context: NotificationContext):
        preview = truncate_preview(comment_preview, COMMENT_PREVIEW_LENGTH)
        return await self._dispatch(
            user_id,
            NotificationTypes.COMMENT_ADDED,
            f"New comment on: {task_title}",
            f"{commenter_name}: {preview}",
            {"taskId": task_id},
            context,
            entity_type="task", entity_id=task_id, href=_task_href(task_id),
        )

    async def notify_comment_mention(self, user_id: str, task_id: str, task_title: str,
                                     mentioner_name: str, comment_preview: str, context: NotificationContext):
        preview = truncate_preview(comment_preview, COMMENT_PREVIEW_LENGTH)
        return await self._dispatch(
            user_id,
            NotificationTypes.COMMENT_MENTION,
            f"{mentioner_name} mentioned you",
            f'In task "{task_title}": {preview}',
            {"taskId": task_id},
            context,
            severity=Severities.WARNING,
            entity_type="task", entity_id=task_id, href=_task_href(task_id),
        )

    # ─── Projects ──────────────────────────────────────────────────────────

    async def notify_project_member_added(self, user_id: str, project_id: str, project_name: str,
                                          added_by_name: str, context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.PROJECT_MEMBER_ADDED,
            f"Added to project: {project_name}",
            f"{added_by_name} added you to this project",
            {"projectId": project_id},
            context,
            entity_type="project", entity_id=project_id, href=f"/projects/{project_id}",
        )

    async def notify_project_update(self, user_id: str, project_id: str, project_name: str,
                                    update_description: str, context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.PROJECT_UPDATE,
            f"Project update: {project_name}",
            update_description,
            {"projectId": project_id},
            context,
            entity_type="project", entity_id=project_id, href=f"/projects/{project_id}",
        )

    # ─── CRM ───────────────────────────────────────────────────────────────

    async def notify_follow_up_due(self, user_id: str, client_id: str, client_name: str,
                                   follow_up_date: datetime, context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.CRM_FOLLOWUP_DUE,
            f"Follow-up due: {client_name}",
            f"Client follow-up is due on {format_date(follow_up_date)}",
            {"clientId": client_id, "followUpDate": follow_up_date.isoformat()},
            context,
            severity=Severities.WARNING,
            entity_type="client", entity_id=client_id, href=f"/clients/{client_id}",
            dedupe_key=f"followup:{client_id}",
        )

    # ─── Chat ──────────────────────────────────────────────────────────────

    async def notify_chat_message(self, user_id: str, channel_id: str, channel_name: str,
                                  sender_name: str, message_preview: str, context: NotificationContext):
        preview = truncate_preview(message_preview, MESSAGE_PREVIEW_LENGTH)
        return await self._dispatch(
            user_id,
            NotificationTypes.CHAT_MESSAGE,
            f"New message in #{channel_name}",
            f"{sender_name}: {preview}",
            {"channelId": channel_id},
            context,
            entity_type="channel", entity_id=channel_id, href=f"/chat?channel={channel_id}",
            dedupe_key=f"chat:{channel_id}",
        )

    async def notify_direct_message(self, user_id: str, sender_id: str, sender_name: str,
                                    message_preview: str, context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.CHAT_MESSAGE,
            f"New message from {sender_name}",
            truncate_preview(message_preview, MESSAGE_PREVIEW_LENGTH),
            {"senderId": sender_id},
            context,
            entity_type="dm", entity_id=sender_id, href=f"/chat?dm={sender_id}",
            dedupe_key=f"dm:{sender_id}",
        )

    async def notify_client_message(self, user_id: str, client_id: str, client_name: str,
                                    thread_id: str, message_preview: str, context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.CLIENT_MESSAGE,
            f"Client message from {client_name}",
            truncate_preview(message_preview, MESSAGE_PREVIEW_LENGTH),
            {"clientId": client_id, "threadId": thread_id},
            context,
            entity_type="client_thread", entity_id=thread_id,
            href=f"/clients/{client_id}/messages?thread={thread_id}",
            dedupe_key=f"client_msg:{thread_id}",
        )

    # ─── Support ───────────────────────────────────────────────────────────

    async def notify_support_ticket_created(self, user_id: str, ticket_id: str, ticket_title: str,
                                            submitted_by_name: str, context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.SUPPORT_TICKET,
            f"New support ticket: {ticket_title}",
            f"Submitted by {submitted_by_name}",
            {"ticketId": ticket_id},
            context,
            entity_type="support_ticket", entity_id=ticket_id, href=f"/support/tickets/{ticket_id}",
        )

    async def notify_support_ticket_updated(self, user_id: str, ticket_id: str, ticket_title: str,
                                            updated_by_name: str, update_description: str,
                                            context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.SUPPORT_TICKET,
            f"Ticket updated: {ticket_title}",
            f"{updated_by_name}: {update_description}",
            {"ticketId": ticket_id},
            context,
            entity_type="support_ticket", entity_id=ticket_id, href=f"/support/tickets/{ticket_id}",
            dedupe_key=f"ticket:{ticket_id}",
        )

    async def notify_support_ticket_assigned(self, user_id: str, ticket_id: str, ticket_title: str,
                                             assigned_by_name: str, context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.SUPPORT_TICKET,
            f"Ticket assigned to you: {ticket_title}",
            f"{assigned_by_name} assigned this ticket to you",
            {"ticketId": ticket_id},
            context,
            severity=Severities.WARNING,
            entity_type="support_ticket", entity_id=ticket_id, href=f"/support/tickets/{ticket_id}",
        )

    async def notify_work_order_created(self, user_id: str, work_order_id: str, work_order_title: str,
                                        created_by_name: str, context: NotificationContext):
        return await self._dispatch(
            user_id,
            NotificationTypes.WORK_ORDER,
            f"New work order: {work_order_title}",
            f"Created by {created_by_name}",
            {"workOrderId": work_order_id},
            context,
            entity_type="work_order", entity_id=work_order_id, href=f"/support/work-orders/{work_order_id}",
        )

    # ─── Approvals ─────────────────────────────────────────────────────────

    async def notify_approval_response(self, requested_by_user_id: str, approval_id: str, approval_title: str,
                                       status: str, responded_by_name: str, context: NotificationContext):
        approved = status == "approved"
        status_label = "Approved" if approved else "Changes Requested"
        verb = "approved" if approved else "requested changes on"
        return await self._dispatch(
            requested_by_user_id,
            NotificationTypes.APPROVAL_RESPONSE,
            f"Approval {status_label}: {approval_title}",
            f'{responded_by_name} {verb} "{approval_title}"',
            {"approvalId": approval_id, "status": status},
            context,
            entity_type="approval", entity_id=approval_id,
        )
