"""Domain models for the salon booking service.

Pydantic models are the unit of persistence: every snapshot stored under a
persistence key is a JSON array of ``model_dump(mode="json")`` records.
"""
import re
import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):(00|30)$")


class ServiceCategory(str, Enum):
    """Service catalog categories."""
    HAIR = "hair"
    NAILS = "nails"
    SKIN = "skin"
    SPA = "spa"


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    """Payment states (payment itself is simulated)."""
    PENDING = "pending"
    PAID = "paid"


class Service(BaseModel):
    """Bookable salon service."""
    id: str = Field(..., min_length=1, description="Service identifier")
    name: str = Field(..., min_length=1, max_length=100, description="Service name")
    description: str = Field(default="", max_length=500, description="Service description")
    price: float = Field(..., ge=0, description="Price in BRL")
    duration_minutes: int = Field(..., gt=0, le=480, description="Duration in minutes (1-480)")
    category: ServiceCategory = Field(..., description="Catalog category")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "1",
                "name": "Corte L'essence Signature",
                "description": "Corte personalizado com visagismo.",
                "price": 180,
                "duration_minutes": 60,
                "category": "hair"
            }
        }
    )


class Professional(BaseModel):
    """Salon professional that appointments are booked with."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    role: str = Field(default="", max_length=100)
    avatar: Optional[str] = None


class Appointment(BaseModel):
    """A booked (professional, date, time) slot for one service."""
    id: str
    service_id: str
    professional_id: str
    customer_name: str = Field(..., min_length=1)
    customer_phone: str = Field(..., min_length=1)
    date: datetime.date
    time: str = Field(..., description="Half-hour aligned slot, HH:MM")
    status: AppointmentStatus = AppointmentStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    created_at: int = Field(..., description="Creation instant, epoch milliseconds")

    @field_validator("time")
    @classmethod
    def validate_half_hour(cls, v: str) -> str:
        """Only HH:00 and HH:30 slots exist."""
        if not TIME_PATTERN.match(v):
            raise ValueError("time must be a half-hour slot in HH:MM format")
        return v

    def slot_key(self) -> tuple:
        return (self.professional_id, self.date, self.time)

    def holds_slot(self) -> bool:
        """Cancelled appointments release their slot."""
        return self.status != AppointmentStatus.CANCELLED


class User(BaseModel):
    """Registered admin account.

    The super-admin is never stored as a User; see ``auth.Principal``.
    """
    username: str = Field(..., min_length=1)
    password_hash: str
    name: str
    email: str
    cpf: str
    phone: str
    professional_id: Optional[str] = None


class TimeSlot(BaseModel):
    """One half-hour slot for a professional on a date."""
    time: str
    available: bool
