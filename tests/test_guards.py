import pytest

from notifications.guards import validate_user_tenant, should_notify_user
from constants import NotificationTypes

pytestmark = pytest.mark.asyncio


async def test_system_scope_always_permitted(users):
    assert await validate_user_tenant(users, "outsider_1", None) is True
    # Not even looked up
    users.fail = True
    assert await validate_user_tenant(users, "nobody", None) is True


async def test_same_tenant_permitted(users):
    assert await validate_user_tenant(users, "member_1", "tenant_a") is True


async def test_other_tenant_denied(users):
    assert await validate_user_tenant(users, "outsider_1", "tenant_a") is False


async def test_unknown_user_denied(users):
    assert await validate_user_tenant(users, "ghost", "tenant_a") is False


async def test_super_user_without_tenant_denied_for_tenant_scope(users):
    assert await validate_user_tenant(users, "super_1", "tenant_a") is False


async def test_tenant_lookup_failure_fails_closed(users):
    users.fail = True
    assert await validate_user_tenant(users, "member_1", "tenant_a") is False


async def test_preferences_missing_defaults_to_deliver(repository):
    assert await should_notify_user(repository, "member_1", NotificationTypes.TASK_ASSIGNED) is True


async def test_preference_explicitly_false_suppresses_only_that_type(repository):
    repository.set_preference("member_1", task_assigned=False)
    assert await should_notify_user(repository, "member_1", NotificationTypes.TASK_ASSIGNED) is False
    assert await should_notify_user(repository, "member_1", NotificationTypes.TASK_COMPLETED) is True


@pytest.mark.parametrize("notification_type", [
    NotificationTypes.CRM_FOLLOWUP_DUE,
    NotificationTypes.APPROVAL_RESPONSE,
])
async def test_types_without_preference_always_delivered(repository, notification_type):
    repository.set_preference("member_1", **{f: False for f in (
        "task_deadline", "task_assigned", "task_completed", "comment_added", "comment_mention",
        "project_update", "project_member_added", "task_status_changed", "chat_message",
        "client_message", "support_ticket", "work_order",
    )})
    assert await should_notify_user(repository, "member_1", notification_type) is True


async def test_preference_lookup_failure_fails_open(repository):
    repository.fail_preferences = True
    assert await should_notify_user(repository, "member_1", NotificationTypes.COMMENT_ADDED) is True
