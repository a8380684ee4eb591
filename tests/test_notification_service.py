import pytest
from datetime import datetime, timezone

from models.notification import NotificationContext
from notifications.service import truncate_preview

pytestmark = pytest.mark.asyncio

CTX = NotificationContext(tenant_id="tenant_a", exclude_user_id="owner_1")


async def test_task_assigned_persists_and_emits(service, repository, emitter):
    created = await service.notify_task_assigned("member_1", "t1", "Ship v2", "Olivia", "Apollo", CTX)

    assert created is not None
    stored = repository.for_user("member_1")
    assert len(stored) == 1
    n = stored[0]
    assert n.type == "task_assigned"
    assert n.title == "New task assigned: Ship v2"
    assert n.message == "Olivia assigned you a task in Apollo"
    assert n.tenant_id == "tenant_a"
    assert n.entity_type == "task" and n.entity_id == "t1"
    assert n.href == "/tasks?taskId=t1"
    assert n.dedupe_key is None

    assert len(emitter.events) == 1
    user_id, payload = emitter.events[0]
    assert user_id == "member_1"
    assert payload["id"] == n.id
    assert payload["title"] == n.title


async def test_actor_is_never_notified(service, repository, emitter):
    result = await service.notify_task_completed("owner_1", "t1", "Ship v2", "Olivia", CTX)
    assert result is None
    assert repository.notifications == []
    assert emitter.events == []


async def test_cross_tenant_recipient_blocked(service, repository, emitter, caplog):
    with caplog.at_level("WARNING"):
        result = await service.notify_task_assigned("outsider_1", "t1", "Ship v2", "Olivia", "Apollo", CTX)
    assert result is None
    assert repository.notifications == []
    assert emitter.events == []
    assert any("tenant mismatch" in r.getMessage() for r in caplog.records)


async def test_comment_mention_in_other_tenant_returns_quietly(service, repository):
    ctx = NotificationContext(tenant_id="tenant_a", exclude_user_id="member_1")
    await service.notify_comment_mention("outsider_1", "t9", "Budget", "Mason", "@oscar look", ctx)
    assert repository.notifications == []


async def test_system_scope_reaches_any_tenant(service, repository):
    ctx = NotificationContext(tenant_id=None)
    await service.notify_support_ticket_created("outsider_1", "tk1", "Login broken", "Sam", ctx)
    assert len(repository.for_user("outsider_1")) == 1
    assert repository.for_user("outsider_1")[0].tenant_id is None


async def test_disabled_preference_suppresses_every_time(service, repository, emitter):
    repository.set_preference("member_1", comment_added=False)
    for _ in range(3):
        await service.notify_comment_added("member_1", "t1", "Ship v2", "Olivia", "nice", CTX)
    assert repository.notifications == []
    assert emitter.events == []

    # Other types still flow
    await service.notify_comment_mention("member_1", "t1", "Ship v2", "Olivia", "@mason", CTX)
    assert len(repository.for_user("member_1")) == 1


async def test_preference_lookup_failure_still_delivers(service, repository):
    repository.fail_preferences = True
    created = await service.notify_task_status_changed("member_1", "t1", "Ship v2", "review", "Olivia", CTX)
    assert created is not None
    assert repository.for_user("member_1")[0].payload == {"taskId": "t1", "status": "review"}


async def test_tenant_lookup_failure_drops_notification(service, repository, users):
    users.fail = True
    await service.notify_project_update("member_1", "p1", "Apollo", "Scope changed", CTX)
    assert repository.notifications == []


async def test_write_failure_is_swallowed(service, repository, emitter, caplog):
    repository.fail_writes = True
    with caplog.at_level("ERROR"):
        result = await service.notify_work_order_created("member_1", "wo1", "Fix sink", "Olivia", CTX)
    assert result is None
    assert emitter.events == []
    assert any("notify:work_order" in r.getMessage() for r in caplog.records)


async def test_emit_failure_keeps_persisted_record(service, repository, emitter):
    emitter.fail = True
    created = await service.notify_project_member_added("member_1", "p1", "Apollo", "Olivia", CTX)
    assert created is not None
    assert len(repository.for_user("member_1")) == 1


async def test_same_dedupe_key_keeps_one_live_notification(service, repository):
    ctx = NotificationContext(tenant_id="tenant_a")
    await service.notify_chat_message("member_1", "c1", "general", "Olivia", "first", ctx)
    first = repository.for_user("member_1")[0]
    await service.notify_chat_message("member_1", "c1", "general", "Olivia", "second", ctx)

    live = repository.for_user("member_1")
    assert len(live) == 1
    assert live[0].id == first.id
    assert live[0].dedupe_key == "chat:c1"
    assert live[0].message == "Olivia: second"
    assert live[0].created_at >= first.created_at


async def test_dismissed_notification_is_not_reused(service, repository):
    ctx = NotificationContext(tenant_id="tenant_a")
    await service.notify_direct_message("member_1", "owner_1", "Olivia", "ping", ctx)
    first = repository.for_user("member_1")[0]
    await repository.dismiss(first.id, "member_1", "tenant_a")

    await service.notify_direct_message("member_1", "owner_1", "Olivia", "ping again", ctx)
    assert len(repository.for_user("member_1")) == 1
    assert len(repository.for_user("member_1", include_dismissed=True)) == 2


async def test_comment_preview_truncated_at_100(service, repository):
    long_text = "x" * 150
    await service.notify_comment_added("member_1", "t1", "Ship v2", "Olivia", long_text, CTX)
    assert repository.for_user("member_1")[0].message == "Olivia: " + "x" * 100 + "..."


async def test_chat_preview_truncated_at_80(service, repository):
    ctx = NotificationContext(tenant_id="tenant_a")
    await service.notify_client_message("member_1", "cl1", "Acme", "th1", "y" * 81, ctx)
    n = repository.for_user("member_1")[0]
    assert n.message == "y" * 80 + "..."
    assert n.href == "/clients/cl1/messages?thread=th1"
    assert n.dedupe_key == "client_msg:th1"


@pytest.mark.parametrize("length,limit", [(80, 80), (100, 100), (0, 80)])
async def test_preview_at_or_below_limit_unchanged(length, limit):
    text = "z" * length
    assert truncate_preview(text, limit) == text


async def test_deadline_notification_shape(service, repository):
    due = datetime(2026, 10, 18, 17, 0, tzinfo=timezone.utc)
    await service.notify_task_deadline_approaching("member_1", "t1", "Ship v2", due, NotificationContext(tenant_id="tenant_a"))
    n = repository.for_user("member_1")[0]
    assert n.type == "task_deadline"
    assert n.severity == "warning"
    assert n.dedupe_key == "deadline:t1"
    assert n.message == "This task is due on Oct 18, 2026"
    assert n.payload["dueDate"] == due.isoformat()


async def test_follow_up_is_unconditional(service, repository):
    repository.set_preference("owner_1", task_deadline=False)
    due = datetime(2026, 10, 17, tzinfo=timezone.utc)
    await service.notify_follow_up_due("owner_1", "cl1", "Acme", due, NotificationContext(tenant_id="tenant_a"))
    n = repository.for_user("owner_1")[0]
    assert n.type == "crm_followup_due"
    assert n.dedupe_key == "followup:cl1"
    assert n.href == "/clients/cl1"


@pytest.mark.parametrize("status,title,message", [
    ("approved", "Approval Approved: Logo", 'Olivia approved "Logo"'),
    ("changes_requested", "Approval Changes Requested: Logo", 'Olivia requested changes on "Logo"'),
])
async def test_approval_response_copy(service, repository, status, title, message):
    await service.notify_approval_response("member_1", "a1", "Logo", status, "Olivia", CTX)
    n = repository.for_user("member_1")[0]
    assert (n.title, n.message) == (title, message)
    assert n.href is None


async def test_support_ticket_variants(service, repository):
    await service.notify_support_ticket_assigned("member_1", "tk1", "Login", "Olivia", CTX)
    await service.notify_support_ticket_updated("member_1", "tk1", "Login", "Olivia", "Closed", CTX)
    await service.notify_support_ticket_updated("member_1", "tk1", "Login", "Olivia", "Reopened", CTX)

    stored = repository.for_user("member_1")
    assert len(stored) == 2
    assigned = [n for n in stored if n.dedupe_key is None][0]
    assert assigned.severity == "warning"
    updated = [n for n in stored if n.dedupe_key == "ticket:tk1"][0]
    assert updated.message == "Olivia: Reopened"


async def test_notify_many_fans_out_once_per_user(service, repository):
    sent = await service.notify_many(
        ["member_1", "member_2", "member_1", "owner_1", "outsider_1"],
        service.notify_task_completed,
        "t1", "Ship v2", "Olivia",
        context=CTX,
    )
    assert sent == 2
    assert {n.user_id for n in repository.notifications} == {"member_1", "member_2"}
