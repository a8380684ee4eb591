"""Query shapes sent to Motor, checked against mocked collections."""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from pymongo import ReturnDocument, DESCENDING
from pymongo.errors import DuplicateKeyError

from models.notification import NotificationModel
from notifications.repository import NotificationRepository, tenant_scope

pytestmark = pytest.mark.asyncio


def _cursor(docs):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


@pytest.fixture
def notifications():
    collection = MagicMock()
    collection.insert_one = AsyncMock()
    collection.find_one_and_update = AsyncMock()
    collection.count_documents = AsyncMock(return_value=0)
    collection.update_many = AsyncMock(return_value=MagicMock(modified_count=3))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=0))
    return collection


@pytest.fixture
def preferences():
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_update = AsyncMock()
    return collection


@pytest.fixture
def repo(notifications, preferences):
    return NotificationRepository(notifications, preferences)


def _deadline(user_id="member_1"):
    return NotificationModel(
        tenant_id="tenant_a",
        user_id=user_id,
        type="task_deadline",
        title="Task due soon: Ship",
        severity="warning",
        dedupe_key="deadline:t1",
    )


async def test_tenant_scope_includes_system_notifications():
    assert tenant_scope("tenant_a") == {"$or": [{"tenant_id": "tenant_a"}, {"tenant_id": None}]}
    assert tenant_scope(None) == {}


async def test_plain_create_inserts(repo, notifications):
    n = NotificationModel(user_id="member_1", type="task_assigned", title="New task assigned: Ship")
    assert await repo.create(n) is n
    inserted = notifications.insert_one.await_args.args[0]
    assert inserted["id"] == n.id
    assert "_id" not in inserted


async def test_dedupe_is_a_single_conditional_upsert(repo, notifications):
    n = _deadline()
    notifications.find_one_and_update.return_value = {"_id": "x", **n.model_dump()}

    stored = await repo.create_or_dedupe(n)

    assert stored.id == n.id
    call = notifications.find_one_and_update.await_args
    live_filter, update = call.args
    assert live_filter == {"user_id": "member_1", "dedupe_key": "deadline:t1", "is_dismissed": False}
    assert update["$setOnInsert"] == {"id": n.id}
    assert update["$set"]["read_at"] is None
    assert update["$set"]["title"] == "Task due soon: Ship"
    assert call.kwargs == {"upsert": True, "return_document": ReturnDocument.AFTER}


async def test_dedupe_race_retries_as_plain_update(repo, notifications):
    n = _deadline()
    winner = {**n.model_dump(), "id": "winner-id"}
    notifications.find_one_and_update.side_effect = [DuplicateKeyError("dup"), winner]

    stored = await repo.create_or_dedupe(n)

    assert stored.id == "winner-id"
    retry = notifications.find_one_and_update.await_args_list[1]
    assert "upsert" not in retry.kwargs
    assert "$setOnInsert" not in retry.args[1]


async def test_dedupe_race_with_vanished_winner_reraises(repo, notifications):
    notifications.find_one_and_update.side_effect = [DuplicateKeyError("dup"), None]
    with pytest.raises(DuplicateKeyError):
        await repo.create_or_dedupe(_deadline())


async def test_list_builds_scoped_query_and_cursor(repo, notifications):
    base = datetime(2026, 10, 17, 12, tzinfo=timezone.utc)
    docs = [
        _deadline().model_copy(update={"id": f"n{i}", "created_at": base - timedelta(minutes=i)}).model_dump()
        for i in range(3)
    ]
    notifications.find.return_value = _cursor(docs)

    page = await repo.list_for_user("member_1", "tenant_a", unread_only=True, limit=2,
                                    cursor="2026-10-17T13:00:00Z", type_filter="task_deadline")

    query = notifications.find.call_args.args[0]
    assert query["user_id"] == "member_1"
    assert query["is_dismissed"] is False
    assert query["read_at"] is None
    assert query["type"] == "task_deadline"
    assert query["$or"] == [{"tenant_id": "tenant_a"}, {"tenant_id": None}]
    assert query["created_at"] == {"$lt": datetime(2026, 10, 17, 13, tzinfo=timezone.utc)}
    notifications.find.return_value.sort.assert_called_once_with("created_at", DESCENDING)
    notifications.find.return_value.to_list.assert_awaited_once_with(3)

    assert [n.id for n in page.items] == ["n0", "n1"]
    assert page.next_cursor == "2026-10-17T11:59:00Z"


async def test_list_last_page_has_no_cursor(repo, notifications):
    notifications.find.return_value = _cursor([_deadline().model_dump()])
    page = await repo.list_for_user("member_1", "tenant_a")
    assert len(page.items) == 1
    assert page.next_cursor is None


async def test_list_clamps_limit(repo, notifications):
    notifications.find.return_value = _cursor([])
    await repo.list_for_user("member_1", "tenant_a", limit=5000)
    notifications.find.return_value.to_list.assert_awaited_once_with(101)


async def test_list_rejects_garbage_cursor(repo, notifications):
    notifications.find.return_value = _cursor([])
    with pytest.raises(ValueError):
        await repo.list_for_user("member_1", "tenant_a", cursor="yesterday-ish")


async def test_unread_count_filter(repo, notifications):
    notifications.count_documents.return_value = 4
    assert await repo.unread_count("member_1", "tenant_a") == 4
    assert notifications.count_documents.await_args.args[0] == {
        "user_id": "member_1",
        "read_at": None,
        "is_dismissed": False,
        "$or": [{"tenant_id": "tenant_a"}, {"tenant_id": None}],
    }


async def test_mark_read_missing_returns_none(repo, notifications):
    notifications.find_one_and_update.return_value = None
    assert await repo.mark_read("nope", "member_1", "tenant_a") is None
    filter_ = notifications.find_one_and_update.await_args.args[0]
    assert filter_["id"] == "nope" and filter_["user_id"] == "member_1"


async def test_bulk_updates_report_modified_count(repo, notifications):
    assert await repo.mark_all_read("member_1", "tenant_a") == 3
    assert await repo.dismiss_all("member_1", "tenant_a") == 3
    dismiss_filter = notifications.update_many.await_args.args[0]
    assert dismiss_filter["is_dismissed"] is False


async def test_delete_reports_whether_anything_was_removed(repo, notifications):
    assert await repo.delete("n1", "member_1", "tenant_a") is False


async def test_missing_preferences_are_none(repo):
    assert await repo.get_preferences("member_1") is None


async def test_upsert_preferences_sets_only_changes(repo, preferences):
    preferences.find_one_and_update.return_value = {
        "_id": "x", "user_id": "member_1", "tenant_id": "tenant_a", "chat_message": False,
    }
    prefs = await repo.upsert_preferences("member_1", "tenant_a", {"chat_message": False})

    assert prefs.chat_message is False
    assert prefs.task_assigned is True
    filter_, update = preferences.find_one_and_update.await_args.args
    assert filter_ == {"user_id": "member_1"}
    assert update["$set"]["chat_message"] is False
    assert "updated_at" in update["$set"]
    assert update["$setOnInsert"]["tenant_id"] == "tenant_a"
    assert preferences.find_one_and_update.await_args.kwargs["upsert"] is True


@pytest.mark.parametrize("cursor", [
    "2026-10-17T11:59:00Z",
    "2026-10-17T11:59:00+00:00",
    # "+" decoded to a space by a client that did not URL-encode the cursor
    "2026-10-17T11:59:00 00:00",
    "2026-10-17T11:59:00.250000 00:00",
])
async def test_cursor_forms_are_accepted(repo, notifications, cursor):
    notifications.find.return_value = _cursor([])
    await repo.list_for_user("member_1", "tenant_a", cursor=cursor)
    before = notifications.find.call_args.args[0]["created_at"]["$lt"]
    assert before.replace(microsecond=0) == datetime(2026, 10, 17, 11, 59, tzinfo=timezone.utc)
