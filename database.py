"""
MongoDB connection and index setup.

`db` is None when DATABASE_URL / DATABASE_NAME are not configured; the request
boundary turns that into a 500 through `get_db`.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import settings
from errors import ApiError, ErrorKind

logger = logging.getLogger(__name__)

# Collection names
USERS = "users"
BRANDS = "brands"
PRODUCTS = "products"
ACCESSORIES = "accessories"
SPARE_PARTS = "spareparts"

client: Optional[MongoClient] = None
db: Optional[Database] = None

if settings.database_url and settings.database_name:
    client = MongoClient(settings.database_url, tz_aware=True)
    db = client[settings.database_name]


def get_db() -> Database:
    if db is None:
        raise ApiError(ErrorKind.INTERNAL, "Database not configured")
    return db


def utcnow() -> datetime:
    # Mongo stores milliseconds; truncate so written and re-read values agree
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def ensure_indexes(database: Database) -> None:
    """Create the unique indexes that back the uniqueness pre-checks."""
    database[USERS].create_index([("email", ASCENDING)], unique=True)
    database[BRANDS].create_index([("name", ASCENDING)], unique=True)
    database[PRODUCTS].create_index([("slug", ASCENDING)], unique=True)
    database[PRODUCTS].create_index([("brand", ASCENDING)])
    for name in (ACCESSORIES, SPARE_PARTS):
        database[name].create_index([("slug", ASCENDING)], unique=True)
        database[name].create_index([("sku", ASCENDING)], unique=True)
        database[name].create_index([("brand", ASCENDING)])
        database[name].create_index([("compatibleProductIds", ASCENDING)])
    logger.info("Indexes ensured on database %s", database.name)
