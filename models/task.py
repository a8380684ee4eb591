from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime, timezone
import uuid


class TaskModel(BaseModel):
    """The slice of a task the deadline checker reads."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tenant_id: Optional[str] = None
    title: str
    status: str = 'todo'
    is_personal: bool = False
    due_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TaskAssigneeModel(BaseModel):
    task_id: str
    user_id: str
    tenant_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")
