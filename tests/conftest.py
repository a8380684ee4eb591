import pytest
from httpx import AsyncClient, ASGITransport
import os
from datetime import timedelta

# Set up test environment variables before anything else
os.environ["ENV"] = "testing"
os.environ["DB_NAME"] = f"workhub_test_{os.environ.get('PYTEST_XDIST_WORKER', 'master')}"
os.environ["SECRET_KEY"] = "test_secret_key_12345"
os.environ["SCHEDULERS_ENABLED"] = "false"

from main import app
from routes.deps import (
    create_access_token,
    get_notification_repository,
    get_push_subscriptions,
    get_user_directory,
)
from notifications.service import NotificationService

from fakes import InMemoryUsers, InMemoryNotificationRepository, RecordingEmitter

TENANT = "tenant_a"
OTHER_TENANT = "tenant_b"


@pytest.fixture
def users():
    directory = InMemoryUsers()
    directory.add("owner_1", TENANT, name="Olivia Owner")
    directory.add("member_1", TENANT, name="Mason Member")
    directory.add("member_2", TENANT, name="Mia Member")
    directory.add("outsider_1", OTHER_TENANT, name="Oscar Outsider")
    directory.add("super_1", None, name="Sam Super")
    return directory


@pytest.fixture
def repository():
    return InMemoryNotificationRepository()


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def service(users, repository, emitter):
    return NotificationService(users, repository, emitter)


@pytest.fixture
def push_subscriptions():
    from unittest.mock import AsyncMock, MagicMock
    collection = MagicMock()
    collection.update_one = AsyncMock()
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    return collection


@pytest.fixture
async def async_client(users, repository, push_subscriptions):
    app.dependency_overrides[get_user_directory] = lambda: users
    app.dependency_overrides[get_notification_repository] = lambda: repository
    app.dependency_overrides[get_push_subscriptions] = lambda: push_subscriptions
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers_for(user_id: str, tenant_id):
    token = create_access_token(
        data={"sub": user_id, "tenant_id": tenant_id},
        expires_delta=timedelta(minutes=60),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return _headers_for("member_1", TENANT)


@pytest.fixture
def outsider_headers():
    return _headers_for("outsider_1", OTHER_TENANT)
