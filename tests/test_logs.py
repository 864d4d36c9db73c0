from datetime import datetime, timedelta

from bson import ObjectId

import scanner
from database import ORDERS, USERS


def test_logs_are_newest_first_and_capped(db, seed, make_ticket):
    base = datetime(2025, 7, 1, 18, 0)
    for i in range(60):
        make_ticket(f"T{i:03d}", seed["vip"], order_id=seed["order"], status="checked_in", updated_at=base + timedelta(minutes=i))

    logs = scanner.get_event_logs(db, str(seed["e1"]))

    assert len(logs) == 50
    assert logs[0].ticket_code == "T059"
    stamps = [item.timestamp for item in logs]
    assert stamps == sorted(stamps, reverse=True)
    assert len(set(stamps)) == len(stamps)


def test_logs_only_include_checked_in_tickets_for_event(db, seed, make_ticket):
    make_ticket("IN", seed["vip"], order_id=seed["order"], status="checked_in")
    make_ticket("ACTIVE", seed["vip"], order_id=seed["order"])
    make_ticket("REVOKED", seed["vip"], order_id=seed["order"], status="revoked")
    make_ticket("OTHER", seed["ga"], status="checked_in")

    logs = scanner.get_event_logs(db, str(seed["e1"]))

    assert [item.ticket_code for item in logs] == ["IN"]


def test_log_item_resolves_buyer_from_order(db, seed, make_ticket):
    ticket_id = make_ticket("IN", seed["vip"], order_id=seed["order"], status="checked_in", updated_at=datetime(2025, 7, 1, 18, 30))

    item = scanner.get_event_logs(db, str(seed["e1"]))[0]

    assert item.id == str(ticket_id)
    assert item.attendee_name == "Jane Buyer"
    assert item.buyer_name == "Jane Buyer"
    assert item.buyer_email == "jane@example.com"
    assert item.ticket_type == "VIP"
    assert item.order_id == str(seed["order"])
    assert item.timestamp == "2025-07-01T18:30:00.000Z"
    assert item.purchase_date == "2025-06-01"


def test_attendee_name_wins_over_buyer(db, seed, make_ticket):
    make_ticket("IN", seed["vip"], order_id=seed["order"], status="checked_in", attendee_name="  Bob  ")

    item = scanner.get_event_logs(db, str(seed["e1"]))[0]

    assert item.attendee_name == "Bob"
    assert item.buyer_name == "Jane Buyer"


def test_unresolved_buyer_degrades_to_unknown_customer(db, seed, make_ticket):
    orphan_order = db[ORDERS].insert_one({"user": ObjectId(), "event": seed["e1"], "totalAmount": 0}).inserted_id
    make_ticket("MISSING-ORDER", seed["vip"], status="checked_in", updated_at=datetime(2025, 7, 1, 18, 0))
    make_ticket("MISSING-USER", seed["vip"], order_id=orphan_order, status="checked_in", updated_at=datetime(2025, 7, 1, 18, 1))

    logs = scanner.get_event_logs(db, str(seed["e1"]))

    assert [item.attendee_name for item in logs] == ["Unknown Customer", "Unknown Customer"]
    assert all(item.buyer_email is None for item in logs)


def test_blank_buyer_name_is_ignored(db, seed, make_ticket):
    db[USERS].update_one({"_id": seed["user"]}, {"$set": {"name": "  "}})
    make_ticket("IN", seed["vip"], order_id=seed["order"], status="checked_in")

    item = scanner.get_event_logs(db, str(seed["e1"]))[0]

    assert item.attendee_name == "Unknown Customer"
    assert item.buyer_email == "jane@example.com"


def test_invalid_event_id_returns_empty_list(db, seed):
    assert scanner.get_event_logs(db, "not-an-object-id") == []


def test_export_is_empty_without_logs(db, seed):
    assert scanner.export_event_logs(db, str(seed["e1"])) == ""


def test_export_csv_layout(db, seed, make_ticket):
    ticket_id = make_ticket("IN", seed["vip"], order_id=seed["order"], status="checked_in", attendee_name='Bob "The Builder"', updated_at=datetime(2025, 7, 1, 18, 30))

    lines = scanner.export_event_logs(db, str(seed["e1"])).split("\n")

    assert lines[0] == "Ticket ID,Ticket Code,Attendee Name,Ticket Type,Status,Check-in Time,Purchase Date,Order ID,Buyer Name,Buyer Email"
    assert lines[1] == (
        f'"{ticket_id}","IN","Bob ""The Builder""","VIP","checked_in","2025-07-01T18:30:00.000Z",'
        f'"2025-06-01","{seed["order"]}","Jane Buyer","jane@example.com"'
    )
    assert len(lines) == 2
