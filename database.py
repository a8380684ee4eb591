from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from logging_config import get_logger
from config import config
import certifi

logger = get_logger("database")

uri = config.MONGO_URI
db_name = config.DB_NAME

if uri:
    logger.info(f"MongoDB connection string found: {uri[:20]}...")
elif config.ENV != "testing":
    logger.error("MONGO_URI not found in configuration!")

class DatabaseProxy:
    def __init__(self):
        self._client = None

    def initialize(self):
        if self._client is None:
            if config.ENV == "production":
                self._client = AsyncIOMotorClient(uri, tlsCAFile=certifi.where(), tz_aware=True)
            else:
                self._client = AsyncIOMotorClient(uri or "mongodb://localhost:27017/", tz_aware=True)
            logger.info(f"Mongo client initialized for DB: {db_name}")

    def reset(self):
        if self._client is not None:
            self._client.close()
            self._client = None

    def __getattr__(self, name):
        self.initialize()
        return getattr(self._client, name)

    def __getitem__(self, name):
        self.initialize()
        return self._client[name]


client = DatabaseProxy()

class AsyncCollectionProxy:
    """Resolves the Motor collection on first use, so importing this module never connects."""

    def __init__(self, name):
        self.name = name

    def _get_collection(self):
        return client[db_name][self.name]

    def __getattr__(self, attr):
        return getattr(self._get_collection(), attr)

    def __getitem__(self, key):
        return self._get_collection()[key]

users_collection = AsyncCollectionProxy("users")
notifications_collection = AsyncCollectionProxy("notifications")
notification_prefs_collection = AsyncCollectionProxy("notification_preferences")
push_subscriptions_collection = AsyncCollectionProxy("push_subscriptions")

# Read-only sources for the periodic checkers
tasks_collection = AsyncCollectionProxy("tasks")
task_assignees_collection = AsyncCollectionProxy("task_assignees")
clients_collection = AsyncCollectionProxy("clients")
client_crm_collection = AsyncCollectionProxy("client_crm")


async def ensure_indexes():
    """Create the indexes the notification paths rely on. Safe to run repeatedly."""
    # At most one live notification per (user, dedupe_key)
    await notifications_collection.create_index(
        [("user_id", ASCENDING), ("dedupe_key", ASCENDING)],
        name="live_dedupe_key",
        unique=True,
        partialFilterExpression={"is_dismissed": False, "dedupe_key": {"$type": "string"}},
    )
    # Listing and unread counts
    await notifications_collection.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    await notifications_collection.create_index([("user_id", ASCENDING), ("read_at", ASCENDING)])
    await notifications_collection.create_index([("id", ASCENDING)], unique=True)

    await notification_prefs_collection.create_index([("user_id", ASCENDING)], unique=True)
    await push_subscriptions_collection.create_index([("user_id", ASCENDING), ("endpoint", ASCENDING)], unique=True)

    # Scanner queries
    await tasks_collection.create_index([("due_date", ASCENDING), ("status", ASCENDING)])
    await task_assignees_collection.create_index([("task_id", ASCENDING)])
    await client_crm_collection.create_index([("next_follow_up_at", ASCENDING)])
    await clients_collection.create_index([("id", ASCENDING)])
    logger.info("Notification indexes ensured")
