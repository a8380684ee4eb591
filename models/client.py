# models/client.py
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class ClientModel(BaseModel):
    id: str
    tenant_id: Optional[str] = None
    company_name: Optional[str] = None
    display_name: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    @property
    def label(self) -> str:
        return self.display_name or self.company_name or "Unknown Client"


class DueFollowUp(BaseModel):
    """A CRM row joined with its client's name, as the follow-up checker consumes it."""
    client_id: str
    tenant_id: Optional[str] = None
    owner_user_id: str
    next_follow_up_at: datetime
    client_name: str = "Unknown Client"
