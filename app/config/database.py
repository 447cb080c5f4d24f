"""
Database configuration and connection management for MongoDB
"""
import logging
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, GEOSPHERE
from typing import Optional
import os
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

class DatabaseConfig:
    """MongoDB database configuration"""

    def __init__(self):
        self.MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
        self.DATABASE_NAME = os.getenv("DATABASE_NAME", "logistics_hr_db")
        self.client: Optional[AsyncIOMotorClient] = None
        self.database = None

    async def connect_db(self):
        """Connect to MongoDB"""
        try:
            self.client = AsyncIOMotorClient(self.MONGO_URI)
            self.database = self.client[self.DATABASE_NAME]
            # Test connection
            await self.client.admin.command('ping')
            logger.info("Connected to MongoDB: %s", self.DATABASE_NAME)
        except Exception:
            logger.exception("Error connecting to MongoDB")
            raise

    async def close_db(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")

    def get_collection(self, collection_name: str):
        """Get a specific collection"""
        if self.database is None:
            raise Exception("Database not connected")
        return self.database[collection_name]

    async def ensure_indexes(self):
        """Create unique and geospatial indexes the services rely on"""
        for collection_name, keys, options in INDEXES:
            await self.get_collection(collection_name).create_index(keys, **options)
        logger.info("Ensured %d indexes", len(INDEXES))

# Global database instance
db_config = DatabaseConfig()

# Collection names
class Collections:
    # Organization
    BRANCHES = "branches"
    DIVISIONS = "divisions"
    POSITIONS = "positions"
    ORGANIZATIONAL_CHANGES = "organizational_changes"

    # People
    EMPLOYEES = "employees"
    EMPLOYEE_HISTORY = "employee_history"

    # Time management
    ATTENDANCE = "attendance"
    LEAVES = "leaves"
    LEAVE_BALANCES = "leave_balances"
    WORK_SCHEDULES = "work_schedules"
    EMPLOYEE_SCHEDULES = "employee_schedules"
    HOLIDAYS = "holidays"

    # Coverage
    SERVICE_AREAS = "service_areas"
    SERVICE_AREA_HISTORY = "service_area_history"
    SERVICE_AREA_ASSIGNMENTS = "branch_service_areas"
    SERVICE_AREA_PRICING = "service_area_pricing"


INDEXES = [
    (Collections.BRANCHES, [("code", ASCENDING)], {"unique": True}),
    (Collections.BRANCHES, [("path", ASCENDING)], {}),
    (Collections.DIVISIONS, [("code", ASCENDING)], {"unique": True}),
    (Collections.DIVISIONS, [("path", ASCENDING)], {}),
    (Collections.POSITIONS, [("code", ASCENDING)], {"unique": True}),
    (Collections.POSITIONS, [("division", ASCENDING)], {}),
    (Collections.EMPLOYEES, [("employee_id", ASCENDING)], {"unique": True}),
    (Collections.EMPLOYEE_HISTORY, [("employee", ASCENDING), ("timestamp", ASCENDING)], {}),
    (Collections.ATTENDANCE, [("employee", ASCENDING), ("date", ASCENDING)], {"unique": True}),
    (Collections.LEAVE_BALANCES, [("employee", ASCENDING), ("year", ASCENDING)], {"unique": True}),
    (Collections.WORK_SCHEDULES, [("code", ASCENDING)], {"unique": True}),
    (Collections.SERVICE_AREAS, [("code", ASCENDING)], {"unique": True}),
    (Collections.SERVICE_AREAS, [("geometry", GEOSPHERE)], {}),
    (Collections.SERVICE_AREAS, [("center", GEOSPHERE)], {}),
    (Collections.SERVICE_AREA_ASSIGNMENTS, [("branch", ASCENDING), ("service_area", ASCENDING)], {"unique": True}),
    (Collections.SERVICE_AREA_PRICING, [("service_area", ASCENDING), ("service_type", ASCENDING)], {"unique": True}),
]
