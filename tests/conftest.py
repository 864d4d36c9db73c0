from datetime import datetime

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import database
from database import EVENTS, ORDERS, TICKET_TYPES, TICKETS, USERS


@pytest.fixture
def db():
    """Fresh in-memory database with indexes in place."""
    client = mongomock.MongoClient()
    yield database.connect(client, name="scanner_test")
    database.close()


@pytest.fixture
def client(db):
    from main import app

    # No `with` block: the lifespan would try to open a real connection.
    return TestClient(app)


@pytest.fixture
def seed(db):
    """Two events, one buyer, and a handful of tickets for the first event."""
    user_id = db[USERS].insert_one({"name": "Jane Buyer", "email": "jane@example.com", "password": "hashed-pw", "role": "customer"}).inserted_id
    e1 = db[EVENTS].insert_one({"title": "Summer Fest", "startDate": datetime(2025, 7, 1, 18, 0)}).inserted_id
    e2 = db[EVENTS].insert_one({"title": "Winter Gala", "startDate": datetime(2025, 12, 1, 19, 0)}).inserted_id
    vip = db[TICKET_TYPES].insert_one({"event": e1, "name": "VIP", "price": 100, "quantityTotal": 10}).inserted_id
    ga = db[TICKET_TYPES].insert_one({"event": e2, "name": "General", "price": 20, "quantityTotal": 100}).inserted_id
    order_id = db[ORDERS].insert_one({
        "user": user_id,
        "event": e1,
        "totalAmount": 200,
        "status": "paid",
        "tickets": [{"ticketTypeId": vip, "quantity": 2, "price": 100}],
        "createdAt": datetime(2025, 6, 1, 9, 0),
    }).inserted_id

    return {
        "user": user_id,
        "e1": e1,
        "e2": e2,
        "vip": vip,
        "ga": ga,
        "order": order_id,
    }


@pytest.fixture
def make_ticket(db):
    def add_ticket(code, ticket_type_id, order_id=None, status="active", attendee_name=None, updated_at=None):
        doc = {
            "orderId": order_id or ObjectId(),
            "ticketTypeId": ticket_type_id,
            "ticketCode": code,
            "status": status,
            "createdAt": datetime(2025, 6, 1, 9, 0),
            "updatedAt": updated_at or datetime(2025, 6, 1, 9, 0),
        }
        if attendee_name is not None:
            doc["attendeeName"] = attendee_name
        return db[TICKETS].insert_one(doc).inserted_id

    return add_ticket
