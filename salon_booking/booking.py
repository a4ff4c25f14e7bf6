"""Booking wizard: service → professional → date/time → customer info → payment.

Each wizard instance collects one booking and emits at most one appointment.
Wizard state lives only in memory; the registry maps wizard ids to live
instances for the HTTP layer.
"""
import asyncio
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, UTC
from typing import Any, Callable, Dict, List, Optional

from salon_booking import config
from salon_booking.availability import SlotGenerator
from salon_booking.logging_config import get_logger
from salon_booking.models import (
    Appointment,
    AppointmentStatus,
    PaymentStatus,
    Professional,
    Service,
    TimeSlot,
)
from salon_booking.repositories import (
    AppointmentRepository,
    ProfessionalRepository,
    ServiceRepository,
    SlotUnavailableError,
    generate_id,
    now_millis,
)
from salon_booking.state import (
    STEP_TITLES,
    WizardStatus,
    WizardStep,
    validate_transition,
)

logger = get_logger(__name__)

BOOKING_CONFIRMATION_MESSAGE = (
    "Agendamento realizado com sucesso! Enviamos a confirmação para seu WhatsApp."
)


class WizardStepError(Exception):
    """Raised when an action is not allowed at the wizard's current step."""
    pass


class BookingValidationError(Exception):
    """Raised when a selection or form field is invalid. No state changes."""
    pass


class WizardNotFoundError(Exception):
    """Raised when a wizard id is unknown or expired."""
    pass


@dataclass
class PaymentDetails:
    """Card fields. Presentational only, never sent to a payment network."""
    card_number: str
    expiry: str
    cvv: str

    def is_complete(self) -> bool:
        return all(v.strip() for v in (self.card_number, self.expiry, self.cvv))


class BookingWizard:
    """
    Linear five-step booking state machine.

    Going back keeps later selections until they are changed. Forward moves
    require the current step's selection. Availability is recomputed from the
    appointment store every time it is needed.
    """

    def __init__(
        self,
        services: ServiceRepository,
        professionals: ProfessionalRepository,
        appointments: AppointmentRepository,
        slot_generator: Optional[SlotGenerator] = None,
        payment_delay: float = config.PAYMENT_DELAY_SECONDS,
        today: Callable[[], date] = date.today,
        on_complete: Optional[Callable[[Appointment], None]] = None
    ):
        self.id = f"wiz-{uuid.uuid4().hex[:12]}"
        self.created_at = datetime.now(UTC)

        self._services = services
        self._professionals = professionals
        self._appointments = appointments
        self._slots = slot_generator or SlotGenerator()
        self._payment_delay = payment_delay
        self._today = today
        self._on_complete = on_complete

        self.step = WizardStep.SERVICE
        self.status = WizardStatus.READY
        self.service: Optional[Service] = None
        self.professional: Optional[Professional] = None
        self.date: Optional[date] = None
        self.time: Optional[str] = None
        self.customer_name = ""
        self.customer_phone = ""
        self.appointment: Optional[Appointment] = None
        self.error: Optional[str] = None

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require(self, step: WizardStep) -> None:
        if self.status != WizardStatus.READY:
            raise WizardStepError(f"Wizard is {self.status.value}")
        if self.step != step:
            raise WizardStepError(
                f"Action belongs to step {step.value} ({STEP_TITLES[step]}), "
                f"wizard is at step {self.step.value}"
            )

    def _move(self, target: WizardStep) -> None:
        if not validate_transition(self.step, target):
            raise WizardStepError(
                f"Cannot move from step {self.step.value} to step {target.value}"
            )
        logger.debug("wizard_step", wizard_id=self.id, step_from=self.step.value, step_to=target.value)
        self.step = target
        self.error = None

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def deposit_amount(self) -> float:
        if self.service is None:
            return 0.0
        return round(self.service.price * config.DEPOSIT_RATE, 2)

    @property
    def remaining_amount(self) -> float:
        if self.service is None:
            return 0.0
        return round(self.service.price - self.deposit_amount, 2)

    def available_dates(self) -> List[date]:
        return self._slots.candidate_dates(self._today())

    def time_slots(self) -> List[TimeSlot]:
        """Fresh slots for the selected professional and date."""
        professional_id = self.professional.id if self.professional else None
        return self._slots.generate_slots(
            self.date, professional_id, self._appointments.list()
        )

    def _slot_free(self, time_label: str) -> bool:
        professional_id = self.professional.id if self.professional else None
        return self._slots.is_available(
            self.date, time_label, professional_id, self._appointments.list()
        )

    def can_continue(self) -> bool:
        """Whether the current step's required selection is complete."""
        if self.status != WizardStatus.READY:
            return False
        if self.step == WizardStep.SERVICE:
            return self.service is not None
        if self.step == WizardStep.PROFESSIONAL:
            return self.professional is not None
        if self.step == WizardStep.DATE_TIME:
            if self.date is None or not self.time:
                return False
            return self._slot_free(self.time)
        if self.step == WizardStep.CUSTOMER_INFO:
            return bool(self.customer_name.strip() and self.customer_phone.strip())
        return False

    # ------------------------------------------------------------------
    # Step 1-2: catalog selections
    # ------------------------------------------------------------------

    def select_service(self, service_id: str) -> Service:
        self._require(WizardStep.SERVICE)
        service = self._services.get(service_id)
        if service is None:
            raise BookingValidationError(f"Serviço {service_id} não encontrado.")
        self.service = service
        self._move(WizardStep.PROFESSIONAL)
        return service

    def select_professional(self, professional_id: str) -> Professional:
        self._require(WizardStep.PROFESSIONAL)
        professional = self._professionals.get(professional_id)
        if professional is None:
            raise BookingValidationError(f"Profissional {professional_id} não encontrado.")
        self.professional = professional
        self._move(WizardStep.DATE_TIME)
        return professional

    # ------------------------------------------------------------------
    # Step 3: date and time
    # ------------------------------------------------------------------

    def select_date(self, day: date) -> List[TimeSlot]:
        """Pick a date from the window. Clears any previously chosen time."""
        self._require(WizardStep.DATE_TIME)
        if day not in self.available_dates():
            raise BookingValidationError("Data indisponível para agendamento.")
        self.date = day
        self.time = None
        return self.time_slots()

    def select_time(self, time_label: str) -> None:
        self._require(WizardStep.DATE_TIME)
        if self.date is None:
            raise BookingValidationError("Selecione uma data antes do horário.")
        if not self._slot_free(time_label):
            raise BookingValidationError(f"Horário {time_label} indisponível.")
        self.time = time_label

    def continue_to_customer_info(self) -> None:
        self._require(WizardStep.DATE_TIME)
        if not self.can_continue():
            raise BookingValidationError("Selecione uma data e um horário disponíveis.")
        self._move(WizardStep.CUSTOMER_INFO)

    # ------------------------------------------------------------------
    # Step 4: customer info
    # ------------------------------------------------------------------

    def continue_to_payment(self) -> None:
        self._require(WizardStep.CUSTOMER_INFO)
        if not self.can_continue():
            raise BookingValidationError("Informe nome e telefone para continuar.")
        self._move(WizardStep.PAYMENT)

    def submit_customer_info(self, name: str, phone: str) -> None:
        """Save name and phone and go to payment. Rejected input leaves the wizard untouched."""
        self._require(WizardStep.CUSTOMER_INFO)
        if not (name or "").strip() or not (phone or "").strip():
            raise BookingValidationError("Informe nome e telefone para continuar.")
        self.customer_name = name
        self.customer_phone = phone
        self._move(WizardStep.PAYMENT)

    # ------------------------------------------------------------------
    # Step 5: payment
    # ------------------------------------------------------------------

    async def submit_payment(self, payment: PaymentDetails) -> Appointment:
        """
        Simulate payment and emit the confirmed appointment.

        The slot is not re-checked before the delay. The appointment store
        rejects the write if another booking took the slot meanwhile.

        Args:
            payment: Card fields (must be non-empty)

        Returns:
            The created appointment (confirmed, paid)

        Raises:
            BookingValidationError: Card fields missing
            SlotUnavailableError: Slot taken by a concurrent booking; the
                wizard returns to the date/time step with the time cleared
        """
        self._require(WizardStep.PAYMENT)
        if not payment.is_complete():
            raise BookingValidationError("Preencha os dados do cartão.")

        self.status = WizardStatus.PROCESSING
        logger.info("payment_processing", wizard_id=self.id, deposit=self.deposit_amount)
        await asyncio.sleep(self._payment_delay)

        appointment = Appointment(
            id=generate_id(),
            service_id=self.service.id,
            professional_id=self.professional.id,
            customer_name=self.customer_name.strip(),
            customer_phone=self.customer_phone.strip(),
            date=self.date,
            time=self.time,
            status=AppointmentStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            created_at=now_millis(),
        )

        try:
            self._appointments.add(appointment)
        except SlotUnavailableError:
            self.status = WizardStatus.READY
            self.step = WizardStep.DATE_TIME
            self.time = None
            self.error = "Este horário acabou de ser reservado. Escolha outro horário."
            raise

        self.status = WizardStatus.COMPLETED
        self.appointment = appointment
        logger.info("booking_completed", wizard_id=self.id, appointment_id=appointment.id)
        if self._on_complete is not None:
            self._on_complete(appointment)
        return appointment

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def go_back(self) -> WizardStep:
        if self.status != WizardStatus.READY:
            raise WizardStepError(f"Wizard is {self.status.value}")
        if self.step == WizardStep.SERVICE:
            raise WizardStepError("Already at the first step")
        self._move(WizardStep(self.step - 1))
        return self.step

    def cancel(self) -> None:
        """Discard all wizard state. Nothing is emitted."""
        if self.status == WizardStatus.COMPLETED:
            raise WizardStepError("Booking already completed")
        if self.status == WizardStatus.PROCESSING:
            raise WizardStepError("Payment is being processed")
        self.status = WizardStatus.CANCELLED
        self.service = None
        self.professional = None
        self.date = None
        self.time = None
        self.customer_name = ""
        self.customer_phone = ""
        self.error = None
        logger.info("booking_cancelled", wizard_id=self.id)

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view of the wizard for API responses."""
        return {
            "wizard_id": self.id,
            "step": int(self.step),
            "step_title": STEP_TITLES[self.step],
            "status": self.status.value,
            "service": self.service.model_dump(mode="json") if self.service else None,
            "professional": self.professional.model_dump(mode="json") if self.professional else None,
            "date": self.date.isoformat() if self.date else None,
            "time": self.time,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "deposit_amount": self.deposit_amount,
            "remaining_amount": self.remaining_amount,
            "can_continue": self.can_continue(),
            "error": self.error,
            "appointment": self.appointment.model_dump(mode="json") if self.appointment else None,
        }


class WizardRegistry:
    """
    In-process map of live wizards.

    Responsibilities:
    - Create wizards bound to the shared repositories
    - Look them up by id
    - Drop finished or stale wizards
    """

    def __init__(self, factory: Callable[[], BookingWizard]):
        self._factory = factory
        self._wizards: Dict[str, BookingWizard] = {}

    def create(self) -> BookingWizard:
        wizard = self._factory()
        self._wizards[wizard.id] = wizard
        logger.info("wizard_created", wizard_id=wizard.id)
        return wizard

    def get(self, wizard_id: str) -> BookingWizard:
        wizard = self._wizards.get(wizard_id)
        if wizard is None:
            raise WizardNotFoundError(f"Booking {wizard_id} not found")
        return wizard

    def discard(self, wizard_id: str) -> None:
        self._wizards.pop(wizard_id, None)

    def cleanup_expired(self, max_age_minutes: int = 60) -> int:
        """
        Drop wizards older than max_age_minutes that are not processing.

        Returns:
            Number of removed wizards
        """
        cutoff = datetime.now(UTC) - timedelta(minutes=max_age_minutes)
        expired = [
            wizard_id for wizard_id, wizard in self._wizards.items()
            if wizard.created_at < cutoff and wizard.status != WizardStatus.PROCESSING
        ]
        for wizard_id in expired:
            del self._wizards[wizard_id]
        return len(expired)

    def __len__(self) -> int:
        return len(self._wizards)
