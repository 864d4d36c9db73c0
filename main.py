import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field
from pymongo.database import Database

import config
import database
import scanner
from schemas import EventStats, EventSummary, ScanResponse, TicketLogItem

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("scanner.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    database.connect()
    yield
    database.close()


app = FastAPI(title="Ticket Scanner API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_db() -> Database:
    if database.db is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return database.db


@app.get("/")
def read_root():
    return {"message": "Ticket Scanner Backend Running"}


@app.get("/test")
def test_database():
    """Connection diagnostics for whoever is setting up a scanner station."""
    db = database.db
    if db is None:
        return {
            "status": "unconfigured",
            "database_name": None,
            "url_configured": bool(config.DATABASE_URL),
            "scanner_collections": {},
        }

    try:
        present = set(db.list_collection_names())
    except Exception as e:
        logger.warning("Database diagnostics failed: %s", e)
        return {
            "status": "error",
            "database_name": db.name,
            "url_configured": bool(config.DATABASE_URL),
            "error": str(e)[:80],
        }

    return {
        "status": "ok",
        "database_name": db.name,
        "url_configured": bool(config.DATABASE_URL),
        "scanner_collections": {
            name: name in present for name in (database.EVENTS, database.TICKET_TYPES, database.TICKETS, database.ORDERS, database.USERS)
        },
    }


# Schemas for requests
class VerifyIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(..., min_length=1)
    event_id: str = Field(..., alias="eventId")
    organizer_id: Optional[str] = Field(None, alias="organizerId")


# Endpoints
@app.get("/api/scanner/events", response_model=List[EventSummary])
def list_scanner_events(db: Database = Depends(get_db)):
    return scanner.get_scanner_events(db)


@app.post("/api/scanner/verify", response_model=ScanResponse, response_model_exclude_none=True)
def verify_ticket(payload: VerifyIn, db: Database = Depends(get_db)):
    return scanner.verify_ticket(db, payload.code, payload.event_id, payload.organizer_id)


@app.get("/api/scanner/events/{event_id}/logs", response_model=List[TicketLogItem])
def event_logs(event_id: str, db: Database = Depends(get_db)):
    return scanner.get_event_logs(db, event_id)


@app.get("/api/scanner/events/{event_id}/logs/export")
def export_event_logs(event_id: str, db: Database = Depends(get_db)):
    text = scanner.export_event_logs(db, event_id)
    return Response(
        content=text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="checkins-{event_id}.csv"'},
    )


@app.get("/api/scanner/events/{event_id}/stats", response_model=EventStats)
def event_stats(event_id: str, db: Database = Depends(get_db)):
    return scanner.get_event_stats(db, event_id)


# Expose schemas for admin viewer
@app.get("/schema")
def get_schema_definitions():
    try:
        from schemas import Event, Order, Ticket, TicketType, User
        return {
            "user": User.model_json_schema(),
            "event": Event.model_json_schema(),
            "tickettype": TicketType.model_json_schema(),
            "order": Order.model_json_schema(),
            "ticket": Ticket.model_json_schema(),
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
