from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
import uuid

class UserModel(BaseModel):
    """
    The slice of a user record the service reads. Only ``id`` and ``tenant_id``
    decide delivery, so the rest stays loose: roles and profile fields are
    owned by the user service and may carry values this service never checks.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    email: Optional[str] = None
    name: Optional[str] = None
    tenant_id: Optional[str] = None  # None only for super users
    role: str = "member"
    status: str = "active"
    created_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore"
    )
