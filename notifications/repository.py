"""
Persistence for notifications and per-user notification preferences.

``create_or_dedupe`` is the only write that can touch an existing document:
it refreshes the live (undismissed) notification sharing the same user and
dedupe key, in one conditional upsert. The partial unique index created by
``database.ensure_indexes`` backs it against concurrent inserts.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo import ReturnDocument, DESCENDING
from pymongo.errors import DuplicateKeyError

from models.notification import NotificationModel, NotificationPage
from models.notification_prefs import NotificationPrefsModel
from logging_config import get_logger

logger = get_logger("notification_repository")

DEFAULT_PAGE_SIZE = 30
MAX_PAGE_SIZE = 100

# Fields a dedupe refresh overwrites on the live document
_REFRESHED_FIELDS = (
    "tenant_id", "type", "title", "message", "payload",
    "severity", "entity_type", "entity_id", "href",
)


def tenant_scope(tenant_id: Optional[str]) -> Dict[str, Any]:
    """A caller sees its own tenant's notifications plus system-scope ones."""
    if not tenant_id:
        return {}
    return {"$or": [{"tenant_id": tenant_id}, {"tenant_id": None}]}


def _to_model(doc: Optional[dict]) -> Optional[NotificationModel]:
    if not doc:
        return None
    doc.pop("_id", None)
    return NotificationModel(**doc)


_DECODED_OFFSET = re.compile(r"(:\d{2}(?:\.\d+)?) (\d{2}:\d{2})$")


def _format_cursor(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_cursor(cursor: str) -> datetime:
    # An unencoded "+00:00" arrives with the plus decoded to a space
    cursor = _DECODED_OFFSET.sub(r"\1+\2", cursor.strip())
    parsed = datetime.fromisoformat(cursor.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class NotificationRepository:
    def __init__(self, notifications, preferences):
        self._notifications = notifications
        self._preferences = preferences

    # ─── Writes used by the dispatcher ─────────────────────────────────────

    async def create(self, notification: NotificationModel) -> NotificationModel:
        await self._notifications.insert_one(notification.model_dump())
        return notification

    async def create_or_dedupe(self, notification: NotificationModel) -> NotificationModel:
        if not notification.dedupe_key:
            return await self.create(notification)

        now = datetime.now(timezone.utc)
        live_filter = {
            "user_id": notification.user_id,
            "dedupe_key": notification.dedupe_key,
            "is_dismissed": False,
        }
        refreshed = {field: getattr(notification, field) for field in _REFRESHED_FIELDS}
        refreshed.update({"created_at": now, "read_at": None})
        update = {"$set": refreshed, "$setOnInsert": {"id": notification.id}}

        try:
            doc = await self._notifications.find_one_and_update(
                live_filter, update, upsert=True, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            # Lost an insert race for the same key: the winner's document exists now
            logger.info(
                "Dedupe upsert raced, refreshing existing notification",
                extra={"data": {"user_id": notification.user_id, "dedupe_key": notification.dedupe_key}},
            )
            doc = await self._notifications.find_one_and_update(
                live_filter, {"$set": refreshed}, return_document=ReturnDocument.AFTER
            )
            if doc is None:
                raise
        return _to_model(doc)

    # ─── Reads and state changes used by the API ──────────────────────────

    async def list_for_user(
        self,
        user_id: str,
        tenant_id: Optional[str],
        unread_only: bool = False,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: Optional[str] = None,
        type_filter: Optional[str] = None,
    ) -> NotificationPage:
        """Newest first. ``cursor`` is the ISO ``created_at`` of the last item already seen."""
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        query: Dict[str, Any] = {"user_id": user_id, "is_dismissed": False, **tenant_scope(tenant_id)}
        if unread_only:
            query["read_at"] = None
        if type_filter:
            query["type"] = type_filter
        if cursor:
            query["created_at"] = {"$lt": _parse_cursor(cursor)}

        docs = await self._notifications.find(query).sort("created_at", DESCENDING).to_list(limit + 1)
        items = [_to_model(doc) for doc in docs[:limit]]
        next_cursor = _format_cursor(items[-1].created_at) if len(docs) > limit else None
        return NotificationPage(items=items, next_cursor=next_cursor)

    async def unread_count(self, user_id: str, tenant_id: Optional[str]) -> int:
        return await self._notifications.count_documents({
            "user_id": user_id,
            "read_at": None,
            "is_dismissed": False,
            **tenant_scope(tenant_id),
        })

    async def mark_read(self, notification_id: str, user_id: str, tenant_id: Optional[str]) -> Optional[NotificationModel]:
        doc = await self._notifications.find_one_and_update(
            {"id": notification_id, "user_id": user_id, **tenant_scope(tenant_id)},
            {"$set": {"read_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
        )
        return _to_model(doc)

    async def mark_all_read(self, user_id: str, tenant_id: Optional[str]) -> int:
        result = await self._notifications.update_many(
            {"user_id": user_id, "read_at": None, **tenant_scope(tenant_id)},
            {"$set": {"read_at": datetime.now(timezone.utc)}},
        )
        return result.modified_count

    async def dismiss(self, notification_id: str, user_id: str, tenant_id: Optional[str]) -> Optional[NotificationModel]:
        doc = await self._notifications.find_one_and_update(
            {"id": notification_id, "user_id": user_id, **tenant_scope(tenant_id)},
            {"$set": {"is_dismissed": True}},
            return_document=ReturnDocument.AFTER,
        )
        return _to_model(doc)

    async def dismiss_all(self, user_id: str, tenant_id: Optional[str]) -> int:
        result = await self._notifications.update_many(
            {"user_id": user_id, "is_dismissed": False, **tenant_scope(tenant_id)},
            {"$set": {"is_dismissed": True}},
        )
        return result.modified_count

    async def delete(self, notification_id: str, user_id: str, tenant_id: Optional[str]) -> bool:
        result = await self._notifications.delete_one(
            {"id": notification_id, "user_id": user_id, **tenant_scope(tenant_id)}
        )
        return result.deleted_count > 0

    # ─── Preferences ───────────────────────────────────────────────────────

    async def get_preferences(self, user_id: str) -> Optional[NotificationPrefsModel]:
        doc = await self._preferences.find_one({"user_id": user_id})
        if not doc:
            return None
        doc.pop("_id", None)
        return NotificationPrefsModel(**doc)

    async def upsert_preferences(self, user_id: str, tenant_id: Optional[str], changes: Dict[str, bool]) -> NotificationPrefsModel:
        now = datetime.now(timezone.utc)
        doc = await self._preferences.find_one_and_update(
            {"user_id": user_id},
            {
                "$set": {**changes, "updated_at": now},
                "$setOnInsert": {"tenant_id": tenant_id, "created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        doc.pop("_id", None)
        return NotificationPrefsModel(**doc)
