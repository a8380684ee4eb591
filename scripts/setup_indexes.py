import sys
import os
import asyncio

# Add parent directory to path to import database
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import ensure_indexes, notifications_collection
from logging_config import setup_logging, get_logger

setup_logging()
logger = get_logger("setup_indexes")


async def create_indexes():
    print("🚀 Starting Index Creation...")
    await ensure_indexes()

    print("\n📦 Notifications Collection:")
    indexes = await notifications_collection.index_information()
    for name, spec in indexes.items():
        print(f"✅ {name}: {spec.get('key')}")

    print("\n✨ All indexes created successfully!")

if __name__ == "__main__":
    asyncio.run(create_indexes())
