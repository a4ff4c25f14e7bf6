"""Entity repositories over the persistence port.

Pattern: one repository per entity, each owning one snapshot key.
The in-memory list is loaded once, mutated, then written back whole.
"""
import threading
import time
import uuid
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel

from salon_booking import config
from salon_booking.logging_config import get_logger
from salon_booking.models import (
    Appointment,
    AppointmentStatus,
    Professional,
    Service,
    User,
)
from salon_booking.storage import KeyValueStore

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RecordNotFoundError(Exception):
    """Raised when a record id/username is not in the snapshot."""
    pass


class DuplicateRecordError(Exception):
    """Raised when a unique key is already taken."""
    pass


class SlotUnavailableError(Exception):
    """Raised when a (professional, date, time) slot is already held."""
    pass


def generate_id() -> str:
    """Short random id for new records."""
    return uuid.uuid4().hex[:9]


def now_millis() -> int:
    return int(time.time() * 1000)


class SnapshotRepository(Generic[ModelT]):
    """
    Base repository with snapshot-on-write semantics.

    Args:
        store: Persistence port
        key: Snapshot key for this entity
        model: Pydantic model class of the records
        seed: Records used when the key is absent
        persist_seed: Write the seed immediately when the key is absent
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        model: Type[ModelT],
        seed: Optional[List[Dict[str, Any]]] = None,
        persist_seed: bool = True
    ):
        self.store = store
        self.key = key
        self.model = model
        self._lock = threading.Lock()

        raw = store.get(key)
        if raw is None:
            self._items = [model.model_validate(item) for item in (seed or [])]
            if persist_seed:
                self._commit()
        else:
            self._items = [model.model_validate(item) for item in raw]

    def _read(self) -> List[ModelT]:
        raw = self.store.get(self.key) or []
        return [self.model.model_validate(item) for item in raw]

    def _commit(self) -> None:
        self.store.set(
            self.key,
            [item.model_dump(mode="json") for item in self._items]
        )

    def refresh(self) -> None:
        """Reload the snapshot from storage (picks up writes from other processes)."""
        with self._lock:
            self._items = self._read()

    def list(self) -> List[ModelT]:
        return list(self._items)


class ServiceRepository(SnapshotRepository[Service]):
    """Service catalog, seeded with the default menu."""

    def __init__(self, store: KeyValueStore):
        super().__init__(store, config.SERVICES_KEY, Service, seed=config.SERVICES)

    def get(self, service_id: str) -> Optional[Service]:
        return next((s for s in self._items if s.id == service_id), None)

    def add(self, data: Dict[str, Any]) -> Service:
        service = Service.model_validate({**data, "id": generate_id()})
        with self._lock:
            self._items = self._items + [service]
            self._commit()
        logger.info("service_added", service_id=service.id, name=service.name)
        return service

    def update(self, service: Service) -> Service:
        with self._lock:
            if self.get(service.id) is None:
                raise RecordNotFoundError(f"Service {service.id} not found")
            self._items = [service if s.id == service.id else s for s in self._items]
            self._commit()
        logger.info("service_updated", service_id=service.id)
        return service

    def delete(self, service_id: str) -> None:
        """Remove a service. Appointments that reference it are left as-is."""
        with self._lock:
            if self.get(service_id) is None:
                raise RecordNotFoundError(f"Service {service_id} not found")
            self._items = [s for s in self._items if s.id != service_id]
            self._commit()
        logger.info("service_deleted", service_id=service_id)


class ProfessionalRepository(SnapshotRepository[Professional]):
    """Salon professionals, seeded with the default team."""

    def __init__(self, store: KeyValueStore):
        super().__init__(
            store, config.PROFESSIONALS_KEY, Professional, seed=config.PROFESSIONALS
        )

    def get(self, professional_id: str) -> Optional[Professional]:
        return next((p for p in self._items if p.id == professional_id), None)


class AppointmentRepository(SnapshotRepository[Appointment]):
    """Appointments are appended by bookings and never deleted."""

    def __init__(self, store: KeyValueStore):
        super().__init__(store, config.APPOINTMENTS_KEY, Appointment)

    def get(self, appointment_id: str) -> Optional[Appointment]:
        return next((a for a in self._items if a.id == appointment_id), None)

    def add(self, appointment: Appointment) -> Appointment:
        """
        Persist a new appointment if its slot is still free (compare-and-set).

        Args:
            appointment: Appointment to store

        Returns:
            The stored appointment

        Raises:
            SlotUnavailableError: If a non-cancelled appointment already
                holds the same (professional, date, time)
        """
        with self._lock:
            self._items = self._read()
            if appointment.holds_slot() and any(
                a.holds_slot() and a.slot_key() == appointment.slot_key()
                for a in self._items
            ):
                logger.warning(
                    "slot_reservation_rejected",
                    professional_id=appointment.professional_id,
                    date=str(appointment.date),
                    time=appointment.time
                )
                raise SlotUnavailableError(
                    f"Slot {appointment.date} {appointment.time} is no longer available"
                )
            self._items = self._items + [appointment]
            self._commit()

        logger.info("appointment_created", appointment_id=appointment.id)
        return appointment

    def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        with self._lock:
            current = self.get(appointment_id)
            if current is None:
                raise RecordNotFoundError(f"Appointment {appointment_id} not found")
            updated = current.model_copy(update={"status": status})
            self._items = [updated if a.id == appointment_id else a for a in self._items]
            self._commit()
        logger.info("appointment_status_changed", appointment_id=appointment_id, status=status.value)
        return updated


class UserRepository(SnapshotRepository[User]):
    """Registered admin accounts. The key stays absent until the first registration."""

    def __init__(self, store: KeyValueStore):
        super().__init__(store, config.USERS_KEY, User, persist_seed=False)

    def get(self, username: str) -> Optional[User]:
        return next((u for u in self._items if u.username == username), None)

    def add(self, user: User) -> User:
        with self._lock:
            if self.get(user.username) is not None:
                raise DuplicateRecordError(f"User {user.username} already exists")
            self._items = self._items + [user]
            self._commit()
        logger.info("user_registered", username=user.username)
        return user

    def delete(self, username: str) -> None:
        with self._lock:
            if self.get(username) is None:
                raise RecordNotFoundError(f"User {username} not found")
            self._items = [u for u in self._items if u.username != username]
            self._commit()
        logger.info("user_deleted", username=username)

    def update_password(self, username: str, password_hash: str) -> User:
        with self._lock:
            current = self.get(username)
            if current is None:
                raise RecordNotFoundError(f"User {username} not found")
            updated = current.model_copy(update={"password_hash": password_hash})
            self._items = [updated if u.username == username else u for u in self._items]
            self._commit()
        logger.info("user_password_reset", username=username)
        return updated
