"""
MongoDB Connection Utility

MongoDB stores:
- User profiles (document id = identity-provider uid)
- Project postings
- Meetup requests

The store is consumed as read snapshots; nothing here subscribes to changes.
"""
import logging

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from collab.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=5000)
    return _client


def get_mongo_db() -> Database:
    """Get the application database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def get_collection(name: str) -> Collection:
    """
    Get a specific collection.
    Collections we use:
    - users: profiles keyed by uid
    - projects: project postings
    - meetups: meetup requests between a proposer and a project owner
    """
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except Exception as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "users": "users",
    "projects": "projects",
    "meetups": "meetups"
}


def init_mongo_indexes():
    """
    Create indexes for the feed and meetup queries.
    Call this once during app startup.
    """
    db = get_mongo_db()

    # Feed snapshot is read newest first; "my projects" filters by owner
    db[COLLECTIONS["projects"]].create_index([("createdAt", DESCENDING)])
    db[COLLECTIONS["projects"]].create_index("ownerId")

    # Meetups are listed for either side of the request
    db[COLLECTIONS["meetups"]].create_index([("proposerUid", ASCENDING), ("createdAt", DESCENDING)])
    db[COLLECTIONS["meetups"]].create_index([("recipientUid", ASCENDING), ("createdAt", DESCENDING)])

    logger.info("MongoDB indexes created successfully")
