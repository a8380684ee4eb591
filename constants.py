# Global Constants

class NotificationTypes:
    TASK_DEADLINE = "task_deadline"
    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"
    COMMENT_ADDED = "comment_added"
    COMMENT_MENTION = "comment_mention"
    PROJECT_UPDATE = "project_update"
    PROJECT_MEMBER_ADDED = "project_member_added"
    TASK_STATUS_CHANGED = "task_status_changed"
    CRM_FOLLOWUP_DUE = "crm_followup_due"
    APPROVAL_RESPONSE = "approval_response"
    CHAT_MESSAGE = "chat_message"
    CLIENT_MESSAGE = "client_message"
    SUPPORT_TICKET = "support_ticket"
    WORK_ORDER = "work_order"

class Severities:
    INFO = "info"
    WARNING = "warning"
    URGENT = "urgent"

class TaskStatus:
    COMPLETED = "completed"

# Message preview lengths
COMMENT_PREVIEW_LENGTH = 100
MESSAGE_PREVIEW_LENGTH = 80

# Realtime event name pushed over notification websockets
NOTIFICATION_EVENT = "notification:new"
