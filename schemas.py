"""
Database Schemas for the Ticket Scanner

Each Pydantic model below describes a MongoDB collection. Field aliases are
the stored (camelCase) names; collection names are the lowercase plural of
the class name (e.g., TicketType -> "tickettypes").

Tickets carry a unique code encoded in their QR/barcode. The scanner only
ever changes a ticket's status (active -> checked_in) and its updatedAt.

The second half of the module holds the response shapes returned to the
scanning UI.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field


def _oid_to_str(v):
    return str(v) if isinstance(v, ObjectId) else v


PyObjectId = Annotated[str, BeforeValidator(_oid_to_str)]


class Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[PyObjectId] = Field(None, alias="_id")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class TicketStatus(str, Enum):
    ACTIVE = "active"
    CHECKED_IN = "checked_in"
    REVOKED = "revoked"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Otp(BaseModel):
    code: Optional[str] = None
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)


class User(Document):
    name: str = Field(..., max_length=60, description="Display name")
    email: EmailStr = Field(..., max_length=100, description="Unique login email")
    password: str = Field(..., min_length=6, description="Credential hash")
    role: Literal["customer", "admin"] = "customer"
    image: Optional[str] = None
    stripe_account_id: Optional[str] = Field(None, alias="stripeAccountId")
    otp: Optional[Otp] = None
    is_verified: bool = Field(False, alias="isVerified")


class Event(Document):
    title: str = Field(..., description="Event name")
    start_date: Optional[datetime] = Field(None, alias="startDate")
    organizer_id: Optional[PyObjectId] = Field(None, alias="organizerId")


class AccessRules(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    gates: str = "All Gates"
    entry_start_time: Optional[str] = Field(None, alias="entryStartTime")
    entry_end_time: Optional[str] = Field(None, alias="entryEndTime")
    age_restricted: bool = Field(False, alias="ageRestricted")
    id_required: bool = Field(False, alias="idRequired")


class DesignConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    background_color: str = Field("#1DB954", alias="backgroundColor")
    text_color: str = Field("#FFFFFF", alias="textColor")
    qr_style: Literal["square", "rounded", "dots"] = Field("square", alias="qrStyle")
    show_logo: bool = Field(True, alias="showLogo")


class TransferSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    allow_transfer: bool = Field(True, alias="allowTransfer")
    require_approval: bool = Field(False, alias="requireApproval")
    charge_fee: bool = Field(False, alias="chargeFee")
    fee_amount: float = Field(0, alias="feeAmount")


class TicketType(Document):
    event: PyObjectId = Field(..., description="Related event id")
    name: str = Field(..., description="Ticket name (e.g., VIP, General Admission)")
    price: float = Field(..., ge=0, description="Unit price")
    currency: str = "SZL"
    quantity_total: int = Field(..., ge=1, alias="quantityTotal")
    quantity_sold: int = Field(0, alias="quantitySold")
    description: Optional[str] = None
    ticket_design_url: Optional[str] = Field(None, alias="ticketDesignUrl")
    sale_start: Optional[datetime] = Field(None, alias="saleStart")
    sale_end: Optional[datetime] = Field(None, alias="saleEnd")
    limit_per_user: int = Field(10000, alias="limitPerUser")
    perks: List[str] = Field(default_factory=list)
    access_rules: AccessRules = Field(default_factory=AccessRules, alias="accessRules")
    design_config: DesignConfig = Field(default_factory=DesignConfig, alias="designConfig")
    transfer_settings: TransferSettings = Field(default_factory=TransferSettings, alias="transferSettings")


class OrderLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ticket_type_id: Optional[PyObjectId] = Field(None, alias="ticketTypeId")
    quantity: Optional[int] = None
    price: Optional[float] = None


class Order(Document):
    user: PyObjectId = Field(..., description="Buyer user id")
    event: PyObjectId = Field(..., description="Related event id")
    total_amount: float = Field(..., alias="totalAmount")
    currency: str = "SZL"
    status: OrderStatus = OrderStatus.PENDING
    payment_intent_id: Optional[str] = Field(None, alias="paymentIntentId")
    tickets: List[OrderLine] = Field(default_factory=list)


class Ticket(Document):
    order_id: PyObjectId = Field(..., alias="orderId")
    ticket_type_id: PyObjectId = Field(..., alias="ticketTypeId")
    ticket_code: str = Field(..., alias="ticketCode", description="Unique code encoded in QR for check-in")
    status: TicketStatus = TicketStatus.ACTIVE
    attendee_name: Optional[str] = Field(None, alias="attendeeName")


# Scanner responses


class ScanError(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    WRONG_EVENT = "WRONG_EVENT"
    ALREADY_USED = "ALREADY_USED"
    REVOKED = "REVOKED"


class ScannedTicket(BaseModel):
    name: str
    type: str
    id: str


class ScanResponse(BaseModel):
    success: bool
    ticket: Optional[ScannedTicket] = None
    error: Optional[ScanError] = None
    details: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, name: str, type_name: str, ticket_id: str) -> "ScanResponse":
        return cls(success=True, ticket=ScannedTicket(name=name, type=type_name, id=ticket_id))

    @classmethod
    def fail(cls, kind: ScanError, **details) -> "ScanResponse":
        return cls(success=False, error=kind, details=details or None)


class CheckInCounts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    checked_in: int = Field(0, alias="checkedIn")
    total: int = 0


class EventSummary(BaseModel):
    id: str
    name: str
    date: str
    stats: CheckInCounts


class EventStats(CheckInCounts):
    last_check_in: Optional[str] = Field(None, alias="lastCheckIn")


class TicketLogItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    ticket_code: str = Field(..., alias="ticketCode")
    status: TicketStatus
    attendee_name: str = Field(..., alias="attendeeName")
    ticket_type: str = Field(..., alias="ticketType")
    timestamp: str
    purchase_date: Optional[str] = Field(None, alias="purchaseDate")
    order_id: str = Field(..., alias="orderId")
    buyer_name: Optional[str] = Field(None, alias="buyerName")
    buyer_email: Optional[str] = Field(None, alias="buyerEmail")
