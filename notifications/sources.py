"""Read-side lookups the dispatcher and the periodic checkers depend on."""

from datetime import datetime, timezone
from typing import List, Optional

from pymongo import ASCENDING

from models.user import UserModel
from models.task import TaskModel, TaskAssigneeModel
from models.client import ClientModel, DueFollowUp
from constants import TaskStatus


def _strip(doc: dict) -> dict:
    doc.pop("_id", None)
    return doc


class UserDirectory:
    def __init__(self, users):
        self._users = users

    async def get_user(self, user_id: str) -> Optional[UserModel]:
        doc = await self._users.find_one({"id": user_id})
        return UserModel(**_strip(doc)) if doc else None


class TaskSource:
    def __init__(self, tasks, assignees):
        self._tasks = tasks
        self._assignees = assignees

    async def get_tasks_due_soon(self, before: datetime) -> List[TaskModel]:
        """Shared (non-personal), unfinished tasks due between now and ``before``."""
        now = datetime.now(timezone.utc)
        docs = await self._tasks.find({
            "due_date": {"$gte": now, "$lte": before},
            "status": {"$ne": TaskStatus.COMPLETED},
            "is_personal": {"$ne": True},
        }).sort("due_date", ASCENDING).to_list(None)
        return [TaskModel(**_strip(doc)) for doc in docs]

    async def get_task_assignees(self, task_id: str) -> List[TaskAssigneeModel]:
        docs = await self._assignees.find({"task_id": task_id}).to_list(None)
        return [TaskAssigneeModel(**_strip(doc)) for doc in docs]


class FollowUpSource:
    def __init__(self, client_crm):
        self._client_crm = client_crm

    async def get_due_follow_ups(self, before: datetime) -> List[DueFollowUp]:
        """CRM rows with an owner whose next follow-up is at or before ``before``."""
        pipeline = [
            {"$match": {
                "next_follow_up_at": {"$ne": None, "$lte": before},
                "owner_user_id": {"$ne": None},
            }},
            # Inner join: rows whose client is gone are skipped
            {"$lookup": {
                "from": "clients",
                "localField": "client_id",
                "foreignField": "id",
                "as": "client",
            }},
            {"$unwind": "$client"},
            {"$project": {
                "_id": 0,
                "client_id": 1,
                "tenant_id": 1,
                "owner_user_id": 1,
                "next_follow_up_at": 1,
                "display_name": "$client.display_name",
                "company_name": "$client.company_name",
            }},
        ]
        rows = await self._client_crm.aggregate(pipeline).to_list(None)
        return [
            DueFollowUp(
                client_id=row["client_id"],
                tenant_id=row.get("tenant_id"),
                owner_user_id=row["owner_user_id"],
                next_follow_up_at=row["next_follow_up_at"],
                client_name=ClientModel(
                    id=row["client_id"],
                    display_name=row.get("display_name"),
                    company_name=row.get("company_name"),
                ).label,
            )
            for row in rows
        ]
