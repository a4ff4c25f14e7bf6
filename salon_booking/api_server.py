"""FastAPI server for the salon booking service.

Features:
- Booking wizard endpoints (one wizard per customer booking)
- Admin endpoints scoped by the logged-in account
- Virtual concierge chat
- Global exception handling with a uniform ErrorResponse body
- Structured logging with request ids
- Background task dropping stale wizards
"""
import asyncio
import datetime
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salon_booking import analytics, config
from salon_booking.api.dependencies import (
    SalonContext,
    get_context,
    get_current_principal,
    get_session_id,
)
from salon_booking.api.models import (
    AppointmentStatusUpdate,
    AvailabilityResponse,
    AvailableDatesResponse,
    CatalogResponse,
    ChatRequest,
    ChatResponse,
    CustomerInfoRequest,
    DashboardResponse,
    DateSelection,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetRequest,
    PaymentRequest,
    PerformanceResponse,
    PrincipalResponse,
    ProfessionalSelection,
    RecoveryVerifyRequest,
    ServiceCreate,
    ServiceSelection,
    SlotsResponse,
    TimeSelection,
    UserCreate,
    UserResponse,
    WizardResponse,
)
from salon_booking.assistant import GREETING_MESSAGE
from salon_booking.auth import (
    AccountValidationError,
    IdentityMismatchError,
    InvalidCredentialsError,
    PermissionDeniedError,
    Principal,
    RegistrationForm,
)
from salon_booking.booking import (
    BOOKING_CONFIRMATION_MESSAGE,
    BookingValidationError,
    PaymentDetails,
    WizardNotFoundError,
    WizardStepError,
)
from salon_booking.input_sanitizer import InputSanitizer
from salon_booking.logging_config import (
    RequestIDMiddleware,
    get_logger,
    setup_structured_logging,
)
from salon_booking.models import Professional, Service, TimeSlot
from salon_booking.repositories import (
    DuplicateRecordError,
    RecordNotFoundError,
    SlotUnavailableError,
    now_millis,
)
from salon_booking.state import WizardStep

setup_structured_logging(config.LOG_LEVEL)
logger = get_logger(__name__)


async def cleanup_wizards_periodically():
    """Background task to drop stale wizards every 10 minutes."""
    while True:
        try:
            await asyncio.sleep(600)
            removed = get_context().wizards.cleanup_expired(max_age_minutes=60)
            logger.info("wizard_cleanup", removed=removed)
        except Exception as e:
            logger.error("wizard_cleanup_failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    logger.info("server_starting")
    get_context()

    cleanup_task = asyncio.create_task(cleanup_wizards_periodically())

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        logger.info("wizard_cleanup_cancelled")

    logger.info("server_stopping")


app = FastAPI(
    title="L'essence Studio Booking API",
    description="Salon booking, administration and virtual concierge",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Development
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestIDMiddleware)


def _error(status_code: int, error: str, detail: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, code=code).model_dump()
    )


# Global exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors consistently."""
    logger.warning("request_validation_error", errors=str(exc.errors()))
    return _error(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error", str(exc.errors()), "VALIDATION_ERROR"
    )


@app.exception_handler(BookingValidationError)
async def booking_validation_handler(request: Request, exc: BookingValidationError):
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid Selection", str(exc), "BOOKING_VALIDATION_ERROR")


@app.exception_handler(AccountValidationError)
async def account_validation_handler(request: Request, exc: AccountValidationError):
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid Account Data", str(exc), "ACCOUNT_VALIDATION_ERROR")


@app.exception_handler(WizardStepError)
async def wizard_step_handler(request: Request, exc: WizardStepError):
    return _error(status.HTTP_409_CONFLICT, "Wrong Booking Step", str(exc), "WIZARD_STEP_ERROR")


@app.exception_handler(SlotUnavailableError)
async def slot_unavailable_handler(request: Request, exc: SlotUnavailableError):
    return _error(status.HTTP_409_CONFLICT, "Slot Unavailable", str(exc), "SLOT_UNAVAILABLE")


@app.exception_handler(DuplicateRecordError)
async def duplicate_record_handler(request: Request, exc: DuplicateRecordError):
    return _error(status.HTTP_409_CONFLICT, "Already Exists", str(exc), "DUPLICATE_RECORD")


@app.exception_handler(WizardNotFoundError)
async def wizard_not_found_handler(request: Request, exc: WizardNotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, "Booking Not Found", str(exc), "WIZARD_NOT_FOUND")


@app.exception_handler(RecordNotFoundError)
async def record_not_found_handler(request: Request, exc: RecordNotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, "Not Found", str(exc), "NOT_FOUND")


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    return _error(status.HTTP_403_FORBIDDEN, "Forbidden", str(exc), "PERMISSION_DENIED")


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsError):
    return _error(status.HTTP_401_UNAUTHORIZED, "Login Failed", str(exc), "INVALID_CREDENTIALS")


@app.exception_handler(IdentityMismatchError)
async def identity_mismatch_handler(request: Request, exc: IdentityMismatchError):
    return _error(status.HTTP_401_UNAUTHORIZED, "Identity Not Confirmed", str(exc), "IDENTITY_MISMATCH")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.error("unexpected_error", error=str(exc), exc_info=True)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_ERROR"
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": "salon-booking-api",
        "version": "1.0.0"
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API info."""
    return {
        "message": f"{config.SALON['name']} Booking API",
        "slogan": config.SALON["slogan"],
        "docs": "/docs",
        "health": "/health"
    }


# ---------------------------------------------------------------------------
# Catalog and availability
# ---------------------------------------------------------------------------

@app.get("/api/v1/catalog", tags=["Catalog"], response_model=CatalogResponse)
async def get_catalog(ctx: SalonContext = Depends(get_context)):
    return CatalogResponse(services=ctx.services.list(), professionals=ctx.professionals.list())


@app.get("/api/v1/services", tags=["Catalog"], response_model=List[Service])
async def list_services(ctx: SalonContext = Depends(get_context)):
    return ctx.services.list()


@app.get("/api/v1/professionals", tags=["Catalog"], response_model=List[Professional])
async def list_professionals(ctx: SalonContext = Depends(get_context)):
    return ctx.professionals.list()


@app.get("/api/v1/availability/dates", tags=["Availability"], response_model=AvailableDatesResponse)
async def available_dates(ctx: SalonContext = Depends(get_context)):
    """Open dates in the booking window."""
    return AvailableDatesResponse(dates=ctx.slots.candidate_dates())


@app.get("/api/v1/availability", tags=["Availability"], response_model=AvailabilityResponse)
async def availability(
    professional_id: str = Query(..., min_length=1),
    date: datetime.date = Query(..., description="YYYY-MM-DD"),
    ctx: SalonContext = Depends(get_context)
):
    """Half-hour slots for one professional on one date."""
    slots: List[TimeSlot] = ctx.slots.generate_slots(
        date, professional_id, ctx.appointments.list()
    )
    return AvailabilityResponse(professional_id=professional_id, date=date, slots=slots)


# ---------------------------------------------------------------------------
# Booking wizard
# ---------------------------------------------------------------------------

def _wizard_response(wizard, message: str = None) -> WizardResponse:
    return WizardResponse(**wizard.snapshot(), message=message)


@app.post("/api/v1/bookings", tags=["Booking"], response_model=WizardResponse, status_code=201)
async def start_booking(ctx: SalonContext = Depends(get_context)):
    """Start a new booking wizard at step 1."""
    return _wizard_response(ctx.wizards.create())


@app.get("/api/v1/bookings/{wizard_id}", tags=["Booking"], response_model=WizardResponse)
async def get_booking(wizard_id: str, ctx: SalonContext = Depends(get_context)):
    return _wizard_response(ctx.wizards.get(wizard_id))


@app.get("/api/v1/bookings/{wizard_id}/dates", tags=["Booking"], response_model=AvailableDatesResponse)
async def booking_dates(wizard_id: str, ctx: SalonContext = Depends(get_context)):
    return AvailableDatesResponse(dates=ctx.wizards.get(wizard_id).available_dates())


@app.get("/api/v1/bookings/{wizard_id}/slots", tags=["Booking"], response_model=SlotsResponse)
async def booking_slots(wizard_id: str, ctx: SalonContext = Depends(get_context)):
    """Slots for the wizard's professional and date, recomputed on every call."""
    wizard = ctx.wizards.get(wizard_id)
    if wizard.date is None:
        raise BookingValidationError("Selecione uma data.")
    return SlotsResponse(date=wizard.date, slots=wizard.time_slots())


@app.post("/api/v1/bookings/{wizard_id}/service", tags=["Booking"], response_model=WizardResponse)
async def booking_select_service(
    wizard_id: str,
    body: ServiceSelection,
    ctx: SalonContext = Depends(get_context)
):
    wizard = ctx.wizards.get(wizard_id)
    wizard.select_service(body.service_id)
    return _wizard_response(wizard)


@app.post("/api/v1/bookings/{wizard_id}/professional", tags=["Booking"], response_model=WizardResponse)
async def booking_select_professional(
    wizard_id: str,
    body: ProfessionalSelection,
    ctx: SalonContext = Depends(get_context)
):
    wizard = ctx.wizards.get(wizard_id)
    wizard.select_professional(body.professional_id)
    return _wizard_response(wizard)


@app.post("/api/v1/bookings/{wizard_id}/date", tags=["Booking"], response_model=WizardResponse)
async def booking_select_date(
    wizard_id: str,
    body: DateSelection,
    ctx: SalonContext = Depends(get_context)
):
    wizard = ctx.wizards.get(wizard_id)
    wizard.select_date(body.date)
    return _wizard_response(wizard)


@app.post("/api/v1/bookings/{wizard_id}/time", tags=["Booking"], response_model=WizardResponse)
async def booking_select_time(
    wizard_id: str,
    body: TimeSelection,
    ctx: SalonContext = Depends(get_context)
):
    wizard = ctx.wizards.get(wizard_id)
    wizard.select_time(body.time)
    return _wizard_response(wizard)


@app.post("/api/v1/bookings/{wizard_id}/continue", tags=["Booking"], response_model=WizardResponse)
async def booking_continue(wizard_id: str, ctx: SalonContext = Depends(get_context)):
    """Advance from date/time or customer info once the step is complete."""
    wizard = ctx.wizards.get(wizard_id)
    if wizard.step == WizardStep.DATE_TIME:
        wizard.continue_to_customer_info()
    elif wizard.step == WizardStep.CUSTOMER_INFO:
        wizard.continue_to_payment()
    else:
        raise WizardStepError(f"Step {int(wizard.step)} advances by selection")
    return _wizard_response(wizard)


@app.post("/api/v1/bookings/{wizard_id}/customer", tags=["Booking"], response_model=WizardResponse)
async def booking_customer_info(
    wizard_id: str,
    body: CustomerInfoRequest,
    ctx: SalonContext = Depends(get_context)
):
    """Save customer name/phone and go to payment."""
    wizard = ctx.wizards.get(wizard_id)
    wizard.submit_customer_info(
        name=InputSanitizer.sanitize_message(body.name),
        phone=body.phone
    )
    return _wizard_response(wizard)


@app.post("/api/v1/bookings/{wizard_id}/payment", tags=["Booking"], response_model=WizardResponse)
async def booking_payment(
    wizard_id: str,
    body: PaymentRequest,
    ctx: SalonContext = Depends(get_context)
):
    """Simulated deposit payment. Completes the booking."""
    wizard = ctx.wizards.get(wizard_id)
    await wizard.submit_payment(
        PaymentDetails(card_number=body.card_number, expiry=body.expiry, cvv=body.cvv)
    )
    return _wizard_response(wizard, message=BOOKING_CONFIRMATION_MESSAGE)


@app.post("/api/v1/bookings/{wizard_id}/back", tags=["Booking"], response_model=WizardResponse)
async def booking_back(wizard_id: str, ctx: SalonContext = Depends(get_context)):
    wizard = ctx.wizards.get(wizard_id)
    wizard.go_back()
    return _wizard_response(wizard)


@app.delete("/api/v1/bookings/{wizard_id}", tags=["Booking"], response_model=MessageResponse)
async def cancel_booking(wizard_id: str, ctx: SalonContext = Depends(get_context)):
    """Cancel the wizard. Nothing is booked."""
    ctx.wizards.get(wizard_id).cancel()
    ctx.wizards.discard(wizard_id)
    return MessageResponse(message="Agendamento cancelado.")


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

@app.post("/api/v1/auth/login", tags=["Auth"], response_model=LoginResponse)
async def login(body: LoginRequest, ctx: SalonContext = Depends(get_context)):
    principal = ctx.access.authenticate(body.username, body.password)
    session_id = ctx.sessions.create_session(principal)
    return LoginResponse(session_id=session_id, user=PrincipalResponse(**principal.to_dict()))


@app.post("/api/v1/auth/logout", tags=["Auth"], response_model=MessageResponse)
async def logout(
    session_id: str = Depends(get_session_id),
    ctx: SalonContext = Depends(get_context)
):
    ctx.sessions.end_session(session_id)
    return MessageResponse(message="Sessão encerrada.")


@app.get("/api/v1/auth/me", tags=["Auth"], response_model=PrincipalResponse)
async def current_user(principal: Principal = Depends(get_current_principal)):
    return PrincipalResponse(**principal.to_dict())


@app.post("/api/v1/auth/recovery/verify", tags=["Auth"], response_model=MessageResponse)
async def recovery_verify(body: RecoveryVerifyRequest, ctx: SalonContext = Depends(get_context)):
    ctx.access.verify_identity(body.username, body.cpf, body.phone)
    return MessageResponse(message="Identidade confirmada. Defina sua nova senha.")


@app.post("/api/v1/auth/recovery/reset", tags=["Auth"], response_model=MessageResponse)
async def recovery_reset(body: PasswordResetRequest, ctx: SalonContext = Depends(get_context)):
    ctx.access.reset_password(
        body.username, body.cpf, body.phone, body.password, body.confirm_password
    )
    return MessageResponse(message="Senha redefinida com sucesso! Faça login.")


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

@app.get("/api/v1/admin/appointments", tags=["Admin"])
async def admin_appointments(
    professional_id: str = Query(analytics.ALL_PROFESSIONALS),
    principal: Principal = Depends(get_current_principal),
    ctx: SalonContext = Depends(get_context)
):
    """Scoped appointment list, newest first."""
    ctx.appointments.refresh()
    scope = ctx.access.effective_filter(principal, professional_id)
    scoped = analytics.scope_appointments(ctx.appointments.list(), scope)
    return {
        "effective_filter": scope,
        "appointments": analytics.appointment_rows(
            scoped, ctx.services.list(), ctx.professionals.list()
        ),
    }


@app.patch("/api/v1/admin/appointments/{appointment_id}", tags=["Admin"])
async def admin_update_appointment(
    appointment_id: str,
    body: AppointmentStatusUpdate,
    principal: Principal = Depends(get_current_principal),
    ctx: SalonContext = Depends(get_context)
):
    appointment = ctx.appointments.get(appointment_id)
    if appointment is None:
        raise RecordNotFoundError(f"Appointment {appointment_id} not found")
    if not ctx.access.can_access_appointment(principal, appointment):
        raise PermissionDeniedError("Agendamento de outro profissional.")
    updated = ctx.appointments.update_status(appointment_id, body.status)
    return updated.model_dump(mode="json")


@app.get("/api/v1/admin/dashboard", tags=["Admin"], response_model=DashboardResponse)
async def admin_dashboard(
    professional_id: str = Query(analytics.ALL_PROFESSIONALS),
    principal: Principal = Depends(get_current_principal),
    ctx: SalonContext = Depends(get_context)
):
    ctx.appointments.refresh()
    scope = ctx.access.effective_filter(principal, professional_id)
    scoped = analytics.scope_appointments(ctx.appointments.list(), scope)
    return DashboardResponse(
        effective_filter=scope,
        **analytics.dashboard_summary(scoped, ctx.services.list())
    )


@app.get("/api/v1/admin/performance", tags=["Admin"], response_model=PerformanceResponse)
async def admin_performance(
    period: analytics.ReportPeriod = Query(analytics.ReportPeriod.MONTH),
    principal: Principal = Depends(get_current_principal),
    ctx: SalonContext = Depends(get_context)
):
    ctx.appointments.refresh()
    professionals = ctx.access.scoped_professionals(principal, ctx.professionals.list())
    rows = analytics.professional_performance(
        ctx.appointments.list(), professionals, ctx.services.list(), period
    )
    return PerformanceResponse(period=period.value, professionals=rows)


@app.post("/api/v1/admin/services", tags=["Admin"], response_model=Service, status_code=201)
async def admin_add_service(
    body: ServiceCreate,
    principal: Principal = Depends(get_current_principal),
    ctx: SalonContext = Depends(get_context)
):
    ctx.access.require_super_admin(principal)
    return ctx.services.add(body.model_dump())


@app.put("/api/v1/admin/services/{service_id}", tags=["Admin"], response_model=Service)
async def admin_update_service(
    service_id: str,
    body: ServiceCreate,
    principal: Principal = Depends(get_current_principal),
    ctx: SalonContext = Depends(get_context)
):
    ctx.access.require_super_admin(principal)
    return ctx.services.update(Service(id=service_id, **body.model_dump()))


@app.delete("/api/v1/admin/services/{service_id}", tags=["Admin"], response_model=MessageResponse)
async def admin_delete_service(
    service_id: str,
    principal: Principal = Depends(get_current_principal),
    ctx: SalonContext = Depends(get_context)
):
    ctx.access.require_super_admin(principal)
    ctx.services.delete(service_id)
    return MessageResponse(message="Serviço removido.")


def _user_response(user, ctx: SalonContext) -> UserResponse:
    professional = ctx.professionals.get(user.professional_id) if user.professional_id else None
    return UserResponse(
        **user.model_dump(exclude={"password_hash"}),
        professional_name=professional.name if professional else None
    )


@app.get("/api/v1/admin/users", tags=["Admin"], response_model=List[UserResponse])
async def admin_list_users(
    principal: Principal = Depends(get_current_principal),
    ctx: SalonContext = Depends(get_context)
):
    return [_user_response(u, ctx) for u in ctx.access.list_accounts(principal)]


@app.post("/api/v1/admin/users", tags=["Admin"], response_model=UserResponse, status_code=201)
async def admin_register_user(
    body: UserCreate,
    principal: Principal = Depends(get_current_principal),
    ctx: SalonContext = Depends(get_context)
):
    user = ctx.access.register_account(principal, RegistrationForm(**body.model_dump()))
    return _user_response(user, ctx)


@app.delete("/api/v1/admin/users/{username}", tags=["Admin"], response_model=MessageResponse)
async def admin_delete_user(
    username: str,
    principal: Principal = Depends(get_current_principal),
    ctx: SalonContext = Depends(get_context)
):
    ctx.access.delete_account(principal, username)
    return MessageResponse(message=f"Acesso de {username} removido.")


# ---------------------------------------------------------------------------
# Assistant
# ---------------------------------------------------------------------------

@app.get("/api/v1/assistant/greeting", tags=["Assistant"], response_model=ChatResponse)
async def assistant_greeting():
    return ChatResponse(response=GREETING_MESSAGE, timestamp=now_millis())


@app.post("/api/v1/assistant/chat", tags=["Assistant"], response_model=ChatResponse)
async def assistant_chat(body: ChatRequest, ctx: SalonContext = Depends(get_context)):
    """Forward the customer question and the current menu to the assistant."""
    message = InputSanitizer.sanitize_message(body.message)
    reply = await ctx.assistant.asuggest(message, ctx.services.list())
    return ChatResponse(response=reply, timestamp=now_millis())
