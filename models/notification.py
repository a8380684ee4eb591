from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Literal, Any, Dict, get_args
from datetime import datetime, timezone
import uuid

NotificationType = Literal[
    'task_deadline',
    'task_assigned',
    'task_completed',
    'comment_added',
    'comment_mention',
    'project_update',
    'project_member_added',
    'task_status_changed',
    'crm_followup_due',
    'approval_response',
    'chat_message',
    'client_message',
    'support_ticket',
    'work_order',
]

Severity = Literal['info', 'warning', 'urgent']

NOTIFICATION_TYPES = frozenset(get_args(NotificationType))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationModel(BaseModel):
    """In-app notification addressed to one user."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tenant_id: Optional[str] = None  # None = system scope
    user_id: str  # Who receives the notification
    type: NotificationType

    # Content
    title: str
    message: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    severity: Severity = 'info'

    # Link back to the source object
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    href: Optional[str] = None

    dedupe_key: Optional[str] = None

    # State
    is_dismissed: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_event(self) -> dict:
        """Realtime payload: every field JSON-ready, datetimes as ISO strings."""
        return self.model_dump(mode="json")


class NotificationContext(BaseModel):
    """Carried through every dispatch call."""
    tenant_id: Optional[str] = None
    exclude_user_id: Optional[str] = None  # Usually the actor, to avoid self-notification

    model_config = ConfigDict(frozen=True)


class NotificationPage(BaseModel):
    items: list[NotificationModel]
    next_cursor: Optional[str] = None
