"""Pydantic models for API request/response validation."""
import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from salon_booking.models import (
    AppointmentStatus,
    Professional,
    Service,
    ServiceCategory,
    TimeSlot,
)


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: Optional[str] = Field(None, description="Error code")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Slot Unavailable",
                "detail": "Slot 2025-03-04 10:00 is no longer available",
                "code": "SLOT_UNAVAILABLE"
            }
        }
    )


# ---------------------------------------------------------------------------
# Catalog and availability
# ---------------------------------------------------------------------------

class CatalogResponse(BaseModel):
    services: List[Service]
    professionals: List[Professional]


class AvailableDatesResponse(BaseModel):
    dates: List[datetime.date]


class AvailabilityResponse(BaseModel):
    professional_id: str
    date: datetime.date
    slots: List[TimeSlot]


# ---------------------------------------------------------------------------
# Booking wizard
# ---------------------------------------------------------------------------

class ServiceSelection(BaseModel):
    service_id: str = Field(..., min_length=1)


class ProfessionalSelection(BaseModel):
    professional_id: str = Field(..., min_length=1)


class DateSelection(BaseModel):
    date: datetime.date


class TimeSelection(BaseModel):
    time: str = Field(..., examples=["10:00"])


class CustomerInfoRequest(BaseModel):
    name: str = Field(default="", max_length=100, examples=["Maria"])
    phone: str = Field(default="", max_length=30, examples=["(85) 99999-9999"])


class PaymentRequest(BaseModel):
    """Card fields. Not validated against any payment network."""
    card_number: str = Field(..., examples=["0000 0000 0000 0000"])
    expiry: str = Field(..., examples=["12/30"])
    cvv: str = Field(..., examples=["123"])


class WizardResponse(BaseModel):
    """Current wizard state."""
    wizard_id: str
    step: int
    step_title: str
    status: str
    service: Optional[Service] = None
    professional: Optional[Professional] = None
    date: Optional[datetime.date] = None
    time: Optional[str] = None
    customer_name: str = ""
    customer_phone: str = ""
    deposit_amount: float = 0.0
    remaining_amount: float = 0.0
    can_continue: bool = False
    error: Optional[str] = None
    appointment: Optional[Dict[str, Any]] = None
    message: Optional[str] = None


class SlotsResponse(BaseModel):
    date: datetime.date
    slots: List[TimeSlot]


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    username: str
    password: str


class PrincipalResponse(BaseModel):
    username: str
    name: str
    role: str
    email: str = ""
    cpf: str = ""
    phone: str = ""
    professional_id: Optional[str] = None


class LoginResponse(BaseModel):
    session_id: str
    user: PrincipalResponse


class RecoveryVerifyRequest(BaseModel):
    username: str
    cpf: str
    phone: str


class PasswordResetRequest(RecoveryVerifyRequest):
    password: str
    confirm_password: str


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    price: float = Field(..., ge=0)
    duration_minutes: int = Field(..., gt=0, le=480)
    category: ServiceCategory = ServiceCategory.HAIR


class UserCreate(BaseModel):
    """Admin registration form."""
    name: str = ""
    username: str = ""
    password: str = ""
    confirm_password: str = ""
    email: str = ""
    cpf: str = ""
    phone: str = ""
    professional_id: Optional[str] = None


class UserResponse(BaseModel):
    """Stored account without its credential."""
    username: str
    name: str
    email: str
    cpf: str
    phone: str
    professional_id: Optional[str] = None
    professional_name: Optional[str] = None


class DashboardResponse(BaseModel):
    effective_filter: str
    total_revenue: float
    total_appointments: int
    completion_rate: int
    revenue_by_day: List[Dict[str, Any]]
    service_popularity: List[Dict[str, Any]]


class PerformanceResponse(BaseModel):
    period: str
    professionals: List[Dict[str, Any]]


# ---------------------------------------------------------------------------
# Assistant
# ---------------------------------------------------------------------------

class ChatRequest(BaseModel):
    """Request schema for /api/v1/assistant/chat."""
    message: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Customer message (1-2000 characters)",
        examples=["Qual tratamento vocês indicam para pele oleosa?"]
    )


class ChatResponse(BaseModel):
    """Response schema for /api/v1/assistant/chat."""
    role: str = "model"
    response: str = Field(..., description="Assistant reply")
    timestamp: int = Field(..., description="Epoch milliseconds")
