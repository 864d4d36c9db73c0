"""
Scanner operations: ticket verification, per-event check-in statistics and
the recent check-in activity log.

Every function takes the pymongo Database explicitly. Verification never
raises to the caller; statistics and log queries fail soft.
"""

import csv
import io
import logging
from datetime import datetime, timezone
from typing import List, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

import config
from database import EVENTS, ORDERS, TICKET_TYPES, TICKETS, USERS, oid_str, to_object_id
from schemas import (
    CheckInCounts,
    EventStats,
    EventSummary,
    ScanError,
    ScanResponse,
    TicketLogItem,
    TicketStatus,
)

logger = logging.getLogger("scanner")

UNKNOWN_GUEST = "Unknown Guest"
UNKNOWN_CUSTOMER = "Unknown Customer"

CSV_COLUMNS = [
    "Ticket ID",
    "Ticket Code",
    "Attendee Name",
    "Ticket Type",
    "Status",
    "Check-in Time",
    "Purchase Date",
    "Order ID",
    "Buyer Name",
    "Buyer Email",
]


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Render a stored datetime as UTC ISO-8601 with millisecond precision.

    Mongo hands back naive datetimes that are already UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _non_blank(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _ticket_type_ids(db: Database, event_id) -> List:
    return [tt["_id"] for tt in db[TICKET_TYPES].find({"event": to_object_id(event_id)}, {"_id": 1})]


def _count_check_ins(db: Database, type_ids: List) -> CheckInCounts:
    scope = {"ticketTypeId": {"$in": type_ids}}
    return CheckInCounts(
        checked_in=db[TICKETS].count_documents({**scope, "status": TicketStatus.CHECKED_IN.value}),
        total=db[TICKETS].count_documents(scope),
    )


# Event statistics


def get_scanner_events(db: Database) -> List[EventSummary]:
    """Soonest-starting events with their check-in counts.

    Counts are recomputed on every call; a busy deployment would want a
    materialized counter instead.
    """
    try:
        events = db[EVENTS].find({}).sort("startDate", ASCENDING).limit(config.SCANNER_EVENT_LIMIT)
        summaries = []
        for event in events:
            summaries.append(
                EventSummary(
                    id=oid_str(event["_id"]),
                    name=event.get("title") or event.get("name") or "Unnamed Event",
                    date=to_iso(event.get("startDate")) or "",
                    stats=_count_check_ins(db, _ticket_type_ids(db, event["_id"])),
                )
            )
        return summaries
    except Exception:
        logger.exception("Failed to fetch scanner events")
        return []


def get_event_stats(db: Database, event_id: str) -> EventStats:
    try:
        type_ids = _ticket_type_ids(db, event_id)
        counts = _count_check_ins(db, type_ids)
        last = db[TICKETS].find_one(
            {"ticketTypeId": {"$in": type_ids}, "status": TicketStatus.CHECKED_IN.value},
            {"updatedAt": 1},
            sort=[("updatedAt", DESCENDING)],
        )
        return EventStats(
            checked_in=counts.checked_in,
            total=counts.total,
            last_check_in=to_iso(last.get("updatedAt")) if last else None,
        )
    except Exception:
        logger.exception("Failed to fetch stats for event %s", event_id)
        return EventStats()


# Verification


def _already_used(ticket: dict) -> ScanResponse:
    # Documents written without timestamps fall back to createdAt, else no time.
    checked_at = to_iso(ticket.get("updatedAt") or ticket.get("createdAt"))
    if checked_at is None:
        return ScanResponse.fail(ScanError.ALREADY_USED)
    return ScanResponse.fail(ScanError.ALREADY_USED, checkInTime=checked_at)


def verify_ticket(db: Database, scanned_code: str, target_event_id: str, organizer_id: Optional[str] = None) -> ScanResponse:
    """Check a scanned code against ``target_event_id`` and check it in.

    Failures come back as ScanResponse(success=False); the only write is the
    conditional active -> checked_in update.
    """
    logger.debug("Verifying %r for event %s (organizer %s)", scanned_code, target_event_id, organizer_id)
    try:
        ticket = db[TICKETS].find_one({"ticketCode": scanned_code})
        if not ticket:
            logger.info("Scan rejected: %r not found", scanned_code)
            return ScanResponse.fail(ScanError.NOT_FOUND)

        ticket_type = db[TICKET_TYPES].find_one(
            {"_id": ticket.get("ticketTypeId")},
            {"event": 1, "name": 1, "accessRules": 1},
        )
        if not ticket_type:
            logger.warning("Ticket %s references missing ticket type %s", ticket["_id"], ticket.get("ticketTypeId"))
            return ScanResponse.fail(ScanError.NOT_FOUND)

        status = ticket.get("status", TicketStatus.ACTIVE.value)
        # Revoked wins over event scope: a revoked ticket is never WRONG_EVENT.
        if status == TicketStatus.REVOKED.value:
            logger.info("Scan rejected: %r is revoked", scanned_code)
            return ScanResponse.fail(ScanError.REVOKED)

        if oid_str(ticket_type.get("event")) != str(target_event_id):
            logger.info("Scan rejected: %r belongs to event %s", scanned_code, oid_str(ticket_type.get("event")))
            return ScanResponse.fail(ScanError.WRONG_EVENT)

        if status == TicketStatus.CHECKED_IN.value:
            logger.info("Scan rejected: %r already used", scanned_code)
            return _already_used(ticket)

        updated = db[TICKETS].find_one_and_update(
            {"_id": ticket["_id"], "status": TicketStatus.ACTIVE.value},
            {"$set": {"status": TicketStatus.CHECKED_IN.value, "updatedAt": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            # Lost the race against another scan (or an external revoke).
            current = db[TICKETS].find_one({"_id": ticket["_id"]}) or {}
            if current.get("status") == TicketStatus.CHECKED_IN.value:
                logger.info("Scan rejected: %r checked in concurrently", scanned_code)
                return _already_used(current)
            if current.get("status") == TicketStatus.REVOKED.value:
                return ScanResponse.fail(ScanError.REVOKED)
            return ScanResponse.fail(ScanError.NOT_FOUND)

        logger.info("Checked in ticket %s (%r)", updated["_id"], scanned_code)
        return ScanResponse.ok(
            name=_non_blank(updated.get("attendeeName")) or UNKNOWN_GUEST,
            type_name=ticket_type.get("name", ""),
            ticket_id=oid_str(updated["_id"]),
        )
    except Exception as e:
        logger.exception("Verify ticket error for %r", scanned_code)
        return ScanResponse.fail(ScanError.NOT_FOUND, error=str(e))


# Activity log


def _log_pipeline(type_ids: List) -> List[dict]:
    return [
        {"$match": {"ticketTypeId": {"$in": type_ids}, "status": TicketStatus.CHECKED_IN.value}},
        {"$sort": {"updatedAt": -1}},
        {"$limit": config.EVENT_LOG_LIMIT},
        {"$lookup": {"from": ORDERS, "localField": "orderId", "foreignField": "_id", "as": "order"}},
        {"$unwind": {"path": "$order", "preserveNullAndEmptyArrays": True}},
        {"$lookup": {"from": USERS, "localField": "order.user", "foreignField": "_id", "as": "buyer"}},
        {"$unwind": {"path": "$buyer", "preserveNullAndEmptyArrays": True}},
    ]


def _log_item(doc: dict, type_names: dict) -> TicketLogItem:
    # Missing order or user leaves "buyer" absent after the unwind.
    buyer = doc.get("buyer")
    if not isinstance(buyer, dict):
        logger.debug("Ticket %s: no buyer resolved for order %s", doc.get("ticketCode"), doc.get("orderId"))
        buyer = {}
    buyer_name = _non_blank(buyer.get("name"))
    buyer_email = _non_blank(buyer.get("email"))

    created = doc.get("createdAt")
    return TicketLogItem(
        id=oid_str(doc["_id"]),
        ticket_code=doc.get("ticketCode", ""),
        status=doc.get("status", TicketStatus.CHECKED_IN.value),
        attendee_name=_non_blank(doc.get("attendeeName")) or buyer_name or UNKNOWN_CUSTOMER,
        ticket_type=type_names.get(oid_str(doc.get("ticketTypeId")), "Unknown Type"),
        timestamp=to_iso(doc.get("updatedAt")) or to_iso(datetime.now(timezone.utc)),
        purchase_date=created.date().isoformat() if isinstance(created, datetime) else "Unknown",
        order_id=oid_str(doc["orderId"]) if doc.get("orderId") else "N/A",
        buyer_name=buyer_name,
        buyer_email=buyer_email,
    )


def get_event_logs(db: Database, event_id: str) -> List[TicketLogItem]:
    """Most recent check-ins for an event, newest first."""
    try:
        ticket_types = list(db[TICKET_TYPES].find({"event": to_object_id(event_id)}, {"_id": 1, "name": 1}))
        type_names = {oid_str(tt["_id"]): tt.get("name", "Unknown Type") for tt in ticket_types}
        docs = list(db[TICKETS].aggregate(_log_pipeline([tt["_id"] for tt in ticket_types])))
        logger.debug("Found %d checked-in tickets for event %s", len(docs), event_id)
        return [_log_item(doc, type_names) for doc in docs]
    except Exception:
        logger.exception("Failed to fetch logs for event %s", event_id)
        return []


def format_logs_csv(logs: List[TicketLogItem]) -> str:
    if not logs:
        return ""

    out = io.StringIO()
    out.write(",".join(CSV_COLUMNS) + "\n")
    writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for item in logs:
        writer.writerow([
            item.id,
            item.ticket_code,
            item.attendee_name,
            item.ticket_type,
            item.status.value,
            item.timestamp,
            item.purchase_date or "",
            item.order_id,
            item.buyer_name or "",
            item.buyer_email or "",
        ])
    return out.getvalue()[:-1]


def export_event_logs(db: Database, event_id: str) -> str:
    return format_logs_csv(get_event_logs(db, event_id))
