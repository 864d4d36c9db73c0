"""
MongoDB access for the ticket scanner.

A single MongoClient is opened by connect() when the application starts and
released by close() on shutdown. Collection names follow the existing stored
data (users, events, tickettypes, orders, tickets).
"""

import logging
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger("scanner.db")

USERS = "users"
EVENTS = "events"
TICKET_TYPES = "tickettypes"
ORDERS = "orders"
TICKETS = "tickets"

client: Optional[MongoClient] = None
db: Optional[Database] = None


def connect(mongo_client: Optional[MongoClient] = None, name: Optional[str] = None) -> Optional[Database]:
    """Open the process-wide connection and make sure indexes exist.

    Leaves ``db`` as None when no database is configured.
    """
    global client, db

    name = name or config.DATABASE_NAME
    if mongo_client is None:
        if not (config.DATABASE_URL and name):
            logger.warning("DATABASE_URL/DATABASE_NAME not set; database unavailable")
            return None
        mongo_client = MongoClient(config.DATABASE_URL)

    client = mongo_client
    db = client[name]
    ensure_indexes(db)
    logger.info("Connected to database %s", name)
    return db


def close() -> None:
    global client, db
    if client is not None:
        client.close()
        logger.info("Database connection closed")
    client = None
    db = None


def ensure_indexes(database: Database) -> None:
    database[TICKETS].create_index([("ticketCode", ASCENDING)], unique=True)
    database[TICKETS].create_index([("ticketTypeId", ASCENDING), ("status", ASCENDING), ("updatedAt", DESCENDING)])
    database[TICKET_TYPES].create_index([("event", ASCENDING)])
    database[USERS].create_index([("email", ASCENDING)], unique=True)
    database[EVENTS].create_index([("startDate", ASCENDING)])


def oid_str(oid):
    return str(oid) if isinstance(oid, ObjectId) else oid


def to_object_id(value) -> ObjectId:
    """Coerce a string id to ObjectId; raises bson.errors.InvalidId on bad input."""
    if isinstance(value, ObjectId):
        return value
    return ObjectId(value)
