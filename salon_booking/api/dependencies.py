"""FastAPI dependency injection functions."""
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from salon_booking import config
from salon_booking.assistant import ServiceAssistant
from salon_booking.auth import AccessControl, Principal
from salon_booking.availability import SlotGenerator
from salon_booking.booking import BookingWizard, WizardRegistry
from salon_booking.repositories import (
    AppointmentRepository,
    ProfessionalRepository,
    ServiceRepository,
    UserRepository,
)
from salon_booking.session_manager import SessionManager, SessionNotFoundError
from salon_booking.storage import KeyValueStore, create_store


@dataclass
class SalonContext:
    """Everything a request handler needs, sharing one persistence port."""
    store: KeyValueStore
    services: ServiceRepository
    professionals: ProfessionalRepository
    appointments: AppointmentRepository
    users: UserRepository
    access: AccessControl
    sessions: SessionManager
    slots: SlotGenerator
    wizards: WizardRegistry
    assistant: ServiceAssistant


def build_context(
    store: KeyValueStore,
    payment_delay: float = config.PAYMENT_DELAY_SECONDS,
    assistant: Optional[ServiceAssistant] = None
) -> SalonContext:
    """
    Wire repositories, access control and the wizard registry over one store.

    Args:
        store: Persistence port
        payment_delay: Simulated payment delay in seconds
        assistant: Assistant bridge (defaults to one built from configuration)
    """
    services = ServiceRepository(store)
    professionals = ProfessionalRepository(store)
    appointments = AppointmentRepository(store)
    users = UserRepository(store)
    slots = SlotGenerator()

    def new_wizard() -> BookingWizard:
        return BookingWizard(
            services=services,
            professionals=professionals,
            appointments=appointments,
            slot_generator=slots,
            payment_delay=payment_delay,
        )

    return SalonContext(
        store=store,
        services=services,
        professionals=professionals,
        appointments=appointments,
        users=users,
        access=AccessControl(users),
        sessions=SessionManager(store),
        slots=slots,
        wizards=WizardRegistry(new_wizard),
        assistant=assistant or ServiceAssistant(),
    )


@lru_cache(maxsize=1)
def get_context() -> SalonContext:
    """
    Get the application context (cached singleton).

    Pattern: Build repositories once, reuse across requests.
    """
    return build_context(create_store(config.STORAGE_URL))


async def get_session_id(
    x_session_id: Optional[str] = Header(None, description="Admin session id")
) -> str:
    if not x_session_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Session"}
        )
    return x_session_id


async def get_current_principal(
    session_id: str = Depends(get_session_id),
    ctx: SalonContext = Depends(get_context)
) -> Principal:
    """
    FastAPI dependency resolving the logged-in admin.

    Raises:
        HTTPException 401: If the session is missing, logged out or expired
    """
    try:
        return ctx.sessions.get_principal(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Session"}
        )
