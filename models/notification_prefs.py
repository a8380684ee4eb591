from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime, timezone


class NotificationPrefsModel(BaseModel):
    user_id: str
    tenant_id: Optional[str] = None

    # In-app notification toggles
    task_deadline: bool = True
    task_assigned: bool = True
    task_completed: bool = True
    comment_added: bool = True
    comment_mention: bool = True
    project_update: bool = True
    project_member_added: bool = True
    task_status_changed: bool = True
    chat_message: bool = True
    client_message: bool = True
    support_ticket: bool = True
    work_order: bool = True

    # Email notification toggle (stored only)
    email_enabled: bool = False

    # Web push fallback toggle
    push_enabled: bool = True

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(extra="ignore")


class NotificationPrefsUpdate(BaseModel):
    """PATCH body: only the toggles a user may change."""
    task_deadline: Optional[bool] = None
    task_assigned: Optional[bool] = None
    task_completed: Optional[bool] = None
    comment_added: Optional[bool] = None
    comment_mention: Optional[bool] = None
    project_update: Optional[bool] = None
    project_member_added: Optional[bool] = None
    task_status_changed: Optional[bool] = None
    chat_message: Optional[bool] = None
    client_message: Optional[bool] = None
    support_ticket: Optional[bool] = None
    work_order: Optional[bool] = None
    email_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


def preference_field(notification_type: str) -> Optional[str]:
    """
    Name of the preference toggle that can suppress ``notification_type``.
    Returns None for types that are always delivered.
    """
    match notification_type:
        case "task_deadline":
            return "task_deadline"
        case "task_assigned":
            return "task_assigned"
        case "task_completed":
            return "task_completed"
        case "comment_added":
            return "comment_added"
        case "comment_mention":
            return "comment_mention"
        case "project_update":
            return "project_update"
        case "project_member_added":
            return "project_member_added"
        case "task_status_changed":
            return "task_status_changed"
        case "chat_message":
            return "chat_message"
        case "client_message":
            return "client_message"
        case "support_ticket":
            return "support_ticket"
        case "work_order":
            return "work_order"
        case "crm_followup_due" | "approval_response":
            return None
        case _:
            raise ValueError(f"Unknown notification type: {notification_type}")
