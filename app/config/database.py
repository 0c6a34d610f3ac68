"""
Database configuration and connection management for MongoDB
"""
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING

load_dotenv()

logger = logging.getLogger(__name__)


class DatabaseConfig:
    """MongoDB database configuration"""

    def __init__(self):
        self.MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
        self.DATABASE_NAME = os.getenv("DATABASE_NAME", "plany_db")
        self.client: Optional[AsyncIOMotorClient] = None
        self.database = None

    async def connect_db(self):
        """Connect to MongoDB"""
        try:
            self.client = AsyncIOMotorClient(self.MONGO_URI)
            self.database = self.client[self.DATABASE_NAME]
            # Test connection
            await self.client.admin.command('ping')
            logger.info("✅ Connected to MongoDB: %s", self.DATABASE_NAME)
        except Exception as e:
            logger.error("❌ Error connecting to MongoDB: %s", e)
            raise

    async def close_db(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
            logger.info("✅ MongoDB connection closed")

    async def ensure_indexes(self):
        """Create the indexes the commission collections rely on"""
        events = self.get_collection(Collections.COMMISSION_EVENTS)
        await events.create_index(
            [("agency_id", ASCENDING), ("month", ASCENDING), ("year", ASCENDING), ("type", ASCENDING)]
        )
        await events.create_index([("created_at", DESCENDING)])

        state = self.get_collection(Collections.COMMISSION_STATE)
        await state.create_index("agency_id", unique=True)
        await state.create_index("blocked")

        bookings = self.get_collection(Collections.BOOKINGS)
        await bookings.create_index([("agency_id", ASCENDING), ("from_date", ASCENDING)])

        cars = self.get_collection(Collections.CARS)
        await cars.create_index([("agency_id", ASCENDING), ("available", ASCENDING)])

    def get_collection(self, collection_name: str):
        """Get a specific collection"""
        if self.database is None:
            raise Exception("Database not connected")
        return self.database[collection_name]

# Global database instance
db_config = DatabaseConfig()

# Collection names
class Collections:
    ADMINS = "admins"
    AGENCIES = "agencies"
    CARS = "cars"
    BOOKINGS = "bookings"

    # Commission ledger
    COMMISSION_EVENTS = "commission_events"
    COMMISSION_STATE = "commission_state"
    COMMISSION_SETTINGS = "commission_settings"
