import sys
import os
import asyncio

# Add parent directory to path to import database
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import timedelta
from database import users_collection
from routes.deps import create_access_token
from logging_config import setup_logging

setup_logging()


async def get_token(user_id=None):
    """Print a bearer token for the notification API and websocket (?token=)."""
    query = {"id": user_id} if user_id else {}
    user = await users_collection.find_one(query)
    if user:
        token = create_access_token(
            {"sub": user["id"], "tenant_id": user.get("tenant_id")},
            expires_delta=timedelta(hours=12),
        )
        print(f"TOKEN={token}")
        print(f"USER_ID={user['id']}")
        print(f"TENANT_ID={user.get('tenant_id')}")
    else:
        print("No users found")

if __name__ == "__main__":
    asyncio.run(get_token(sys.argv[1] if len(sys.argv) > 1 else None))
