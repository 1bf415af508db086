import os
import threading

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import ConnectionFailure, ConfigurationError

from helpdesk_bot.logger import logger
from helpdesk_bot.constants import (
    MONGODB_DATABASE_NAME,
    MONGODB_SERVER_SELECTION_TIMEOUT_MS,
)

_db = None
_db_lock = threading.Lock()


def get_db():
    """
    Return the helpdesk database, connecting on first use.
    Indexes are created once per process.
    """
    global _db
    if _db is not None:
        return _db

    with _db_lock:
        if _db is not None:
            return _db
        try:
            mongo_url = os.environ.get("MONGO_URL")
            if not mongo_url:
                raise ValueError("MONGO_URL environment variable is not set")

            client = MongoClient(
                mongo_url,
                serverSelectionTimeoutMS=MONGODB_SERVER_SELECTION_TIMEOUT_MS,
                tz_aware=True,
            )
            # Test the connection
            client.admin.command("ping")
            db = client[MONGODB_DATABASE_NAME]
            _ensure_indexes(db)
            logger.info("MongoDB connection established successfully")
        except (ConnectionFailure, ConfigurationError, ValueError) as e:
            logger.critical("Failed to connect to MongoDB: %s", e)
            raise
        except Exception as e:
            logger.critical("Unexpected error connecting to MongoDB: %s", e)
            raise
        _db = db
        return _db


def _ensure_indexes(db) -> None:
    try:
        db["knowledge_base_articles"].create_index("article_id", unique=True)
        db["rate_limits"].create_index("rate_limit_key", unique=True)
        db["support_interactions"].create_index([("created_at", DESCENDING)])
        db["support_interactions"].create_index([("user_id", ASCENDING)])
        logger.debug("Collection indexes created/verified")
    except Exception as e:
        logger.warning("Could not create indexes: %s", e)


def get_articles_collection():
    return get_db()["knowledge_base_articles"]


def get_rate_limits_collection():
    return get_db()["rate_limits"]


def get_interactions_collection():
    return get_db()["support_interactions"]
