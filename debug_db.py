"""
Database report: samples each collection and follows one checked-in ticket
through its Order to the buying User, flagging broken references.

Run with DATABASE_URL and DATABASE_NAME set:

    python debug_db.py
"""

import logging
import sys
from typing import List

from pydantic import ValidationError
from pymongo.database import Database

import database
from database import EVENTS, ORDERS, TICKET_TYPES, TICKETS, USERS
from schemas import Ticket, TicketStatus

logger = logging.getLogger("scanner.debug")

SAMPLE_SIZE = 5


def build_report(db: Database, sample_size: int = SAMPLE_SIZE) -> List[str]:
    lines = ["=== DATABASE REPORT ==="]

    events = list(db[EVENTS].find({}).limit(sample_size))
    lines.append(f"Events: {db[EVENTS].count_documents({})}")
    for e in events:
        lines.append(f"  - {e.get('title') or e.get('name')} ({e['_id']})")

    lines.append(f"Ticket types: {db[TICKET_TYPES].count_documents({})}")
    for tt in db[TICKET_TYPES].find({}).limit(sample_size):
        lines.append(f"  - {tt.get('name')} for event {tt.get('event')}")

    lines.append(f"Tickets: {db[TICKETS].count_documents({})}")
    for t in db[TICKETS].find({}).limit(sample_size):
        try:
            Ticket.model_validate(t)
            lines.append(f"  - {t.get('ticketCode')} [{t.get('status')}]")
        except ValidationError as e:
            lines.append(f"  - {t.get('ticketCode')} INVALID: {e.error_count()} error(s)")

    lines.append(f"Orders: {db[ORDERS].count_documents({})}")
    lines.append(f"Users: {db[USERS].count_documents({})}")
    for u in db[USERS].find({}).limit(sample_size):
        lines.append(f"  - {u.get('name')} ({u.get('email')})")

    lines.append("=== DETAILED TICKET CHECK ===")
    sample = db[TICKETS].find_one({"status": TicketStatus.CHECKED_IN.value})
    if not sample:
        lines.append("No checked-in tickets")
    else:
        lines.append(f"Ticket: {sample.get('ticketCode')}")
        lines.append(f"Attendee name: {sample.get('attendeeName') or 'NULL'}")
        lines.append(f"Order id: {sample.get('orderId') or 'NULL'}")
        if sample.get("orderId"):
            order = db[ORDERS].find_one({"_id": sample["orderId"]})
            if not order:
                lines.append(f"Order {sample['orderId']} NOT FOUND")
            else:
                user = db[USERS].find_one({"_id": order.get("user")})
                lines.append(f"Order found: {order['_id']}")
                lines.append(f"Order user: {user.get('name') if user else 'NULL'}")

    lines.append("=== END REPORT ===")
    return lines


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
    db = database.connect()
    if db is None:
        logger.error("Database not configured")
        return 1
    try:
        print("\n".join(build_report(db)))
    finally:
        database.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
