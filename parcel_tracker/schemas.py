"""Pydantic schemas for the Parcel Tracker.

This module defines the data validation schemas used throughout the system,
including parcels, payments, user profiles, lookup lists, AI extraction
results and the filter/summary objects shared by the UI and the API.

Firestore documents keep camelCase field names, so every document schema
uses a camelCase alias generator while Python code uses snake_case.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel


# Built-in destination states offered before any parcel has been entered
DEFAULT_STATES = (
    "DELHI",
    "LUDHIANA",
    "ULHASNAGAR",
    "BANGALORE",
    "AHMEDABAD",
    "KOLKATA",
    "MUMBAI",
    "RAYDURGA",
)


class ParcelStatus(str, Enum):
    """Payment status of a parcel."""

    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"


class PaymentMode(str, Enum):
    """How a parcel was paid for."""

    CASH = "cash"
    BANK = "bank"


class UserRole(str, Enum):
    """Access level of a signed-in user."""

    ADMIN = "admin"
    STAFF = "staff"


class LookupKind(str, Enum):
    """Flat name lists used to populate form selects."""

    PARTIES = "parties"
    TRANSPORTS = "transports"
    STATES = "states"


class SortOrder(str, Enum):
    """Sort options of the search view."""

    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    AMOUNT_DESC = "amount-desc"
    AMOUNT_ASC = "amount-asc"
    PAID_FIRST = "status-paid"
    PENDING_FIRST = "status-pending"


def compute_total(weight: Optional[float], rate: Optional[float]) -> Optional[float]:
    """Calculate the parcel total from weight and rate.

    Args:
        weight: Weight in kg.
        rate: Rate per kg.

    Returns:
        ``weight * rate`` rounded to 2 decimals, or None when either value
        is missing or zero (the caller keeps whatever total it already has).
    """
    if not weight or not rate:
        return None
    return round(float(weight) * float(rate), 2)


# ============================================================================
# Document Schemas
# ============================================================================


class FirestoreModel(BaseModel):
    """Base schema for documents stored in Firestore."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    id: Optional[str] = Field(default=None, exclude=True)

    def to_document(self) -> dict[str, Any]:
        """Serialize to a Firestore document (camelCase, no id)."""
        return self.model_dump(by_alias=True, exclude={"id"})

    @classmethod
    def from_document(cls, doc_id: Optional[str], data: dict[str, Any]):
        """Build a model from a Firestore document id and payload."""
        return cls.model_validate({**data, "id": doc_id})


class ParcelBase(FirestoreModel):
    """Fields captured by the entry form."""

    lr_number: str
    party_name: str
    transport: str = ""
    state: str
    weight: float = Field(default=0.0, ge=0)
    rate: float = Field(default=0.0, ge=0)
    total_amount: float = Field(default=0.0, ge=0)
    paid_amount: float = Field(default=0.0, ge=0)
    status: ParcelStatus = ParcelStatus.PENDING
    payment_mode: PaymentMode = PaymentMode.CASH
    weight_image_url: str = ""
    date: str = Field(default_factory=lambda: date.today().isoformat())

    @field_validator("lr_number", "party_name", "transport", mode="before")
    @classmethod
    def strip_text(cls, v):
        """Trim surrounding whitespace from text fields."""
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("state", mode="before")
    @classmethod
    def upper_state(cls, v):
        """States are stored upper case."""
        return str(v or "").strip().upper()

    @field_validator("weight", "rate", "total_amount", "paid_amount", mode="before")
    @classmethod
    def coerce_number(cls, v):
        """Empty form inputs count as zero."""
        if v is None or v == "":
            return 0.0
        return v

    def with_computed_total(self, always: bool = False):
        """Return a copy whose total is recomputed from weight and rate.

        New entries keep a typed total when weight or rate is zero. With
        ``always`` the total is ``weight * rate`` even when that is zero.
        """
        total = compute_total(self.weight, self.rate)
        if total is None and always:
            total = round(self.weight * self.rate, 2)
        if total is None:
            return self
        return self.model_copy(update={"total_amount": total})

    @property
    def balance(self) -> float:
        """Outstanding amount."""
        return round(self.total_amount - self.paid_amount, 2)


class ParcelCreate(ParcelBase):
    """Schema for creating a new parcel."""

    pass


class Parcel(ParcelBase):
    """Parcel schema with all attributes."""

    created_at: Optional[datetime] = None
    created_by: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def tolerate_status(cls, v):
        """Unknown or missing status values read back as pending."""
        try:
            return ParcelStatus(str(v or "pending").lower())
        except ValueError:
            return ParcelStatus.PENDING

    @field_validator("payment_mode", mode="before")
    @classmethod
    def tolerate_mode(cls, v):
        """Unknown or missing payment modes read back as cash."""
        try:
            return PaymentMode(str(v or "cash").lower())
        except ValueError:
            return PaymentMode.CASH

    @field_validator("lr_number", "party_name", "state", mode="before")
    @classmethod
    def stringify(cls, v):
        """Imported documents may hold numbers where strings are expected."""
        return "" if v is None else str(v).strip()


class PaymentBase(FirestoreModel):
    """Fields captured by the payment form."""

    transport_name: str
    payment_date: str = Field(default_factory=lambda: date.today().isoformat())
    from_date: str = ""
    to_date: str = ""
    amount: float = Field(default=0.0, ge=0)
    narration: str = ""
    signature_image_url: str = ""


class PaymentCreate(PaymentBase):
    """Schema for recording a new payment."""

    @field_validator("transport_name")
    @classmethod
    def transport_required(cls, v: str) -> str:
        """A payment must name its transporter."""
        if not v or not v.strip():
            raise ValueError("Please select a transport")
        return v.strip()

    @field_validator("payment_date", "from_date", "to_date", mode="before")
    @classmethod
    def iso_date(cls, v, info: ValidationInfo) -> str:
        """Dates are stored as YYYY-MM-DD; the period bounds may be left blank."""
        v = str(v or "").strip()
        if not v and info.field_name != "payment_date":
            return v
        try:
            return date.fromisoformat(v).isoformat()
        except ValueError:
            raise ValueError(f"Invalid date '{v}', expected YYYY-MM-DD") from None


class Payment(PaymentBase):
    """Payment schema with all attributes."""

    created_at: Optional[datetime] = None
    created_by: Optional[str] = None


class UserProfile(FirestoreModel):
    """Profile document of a signed-in user."""

    uid: str
    email: str = ""
    role: UserRole = UserRole.STAFF
    display_name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class LookupItem(BaseModel):
    """Entry of a lookup list (party, transport or state)."""

    id: Optional[str] = None
    name: str


# ============================================================================
# Extraction Schemas (for LLM-based receipt scanning)
# ============================================================================


class ExtractedParcelData(BaseModel):
    """Fields Gemini reads off a photographed LR or receipt."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    lr_number: Optional[str] = None
    party_name: Optional[str] = None
    weight: Optional[float] = None
    total_amount: Optional[float] = None
    date: Optional[str] = None

    @field_validator("lr_number", "party_name", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("weight", "total_amount", mode="before")
    @classmethod
    def parse_number(cls, v):
        """Accept numbers printed with units or thousands separators."""
        if v is None or isinstance(v, (int, float)):
            return v
        cleaned = "".join(ch for ch in str(v) if ch.isdigit() or ch == ".")
        try:
            return float(cleaned)
        except ValueError:
            return None

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, v):
        """Keep only dates in YYYY-MM-DD format."""
        if v is None:
            return None
        try:
            return datetime.strptime(str(v).strip(), "%Y-%m-%d").date().isoformat()
        except ValueError:
            return None

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


# ============================================================================
# Filters and Summaries
# ============================================================================


class ParcelFilters(BaseModel):
    """Client-side filters of the search view."""

    search_term: str = ""
    date_from: str = ""
    date_to: str = ""
    status: str = "all"
    state: str = "all"
    sort_by: SortOrder = SortOrder.DATE_DESC


class PaymentFilters(BaseModel):
    """Client-side filters of the payments view."""

    search_term: str = ""
    date_from: str = ""
    date_to: str = ""
    transport: str = "all"


class ParcelTotals(BaseModel):
    """Totals of the currently visible parcels."""

    count: int = 0
    total_weight: float = 0.0
    total_amount: float = 0.0
    total_paid: float = 0.0
    total_pending: float = 0.0


class LRSearchStats(BaseModel):
    """How many entries share the LR number being searched."""

    lr: str
    count: int
    is_exact: bool


class ImportResult(BaseModel):
    """Result of importing parcels from a file."""

    rows_read: int = 0
    imported: int = 0
    skipped: int = 0


class SyncResult(BaseModel):
    """Result of flushing the offline queue."""

    pending: int = 0
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    already_running: bool = False
