"""Shared test fixtures."""
import os
from datetime import date
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from salon_booking import config
from salon_booking.api.dependencies import build_context, get_context
from salon_booking.assistant import ServiceAssistant
from salon_booking.availability import SlotGenerator
from salon_booking.booking import BookingWizard
from salon_booking.models import Appointment, AppointmentStatus, PaymentStatus
from salon_booking.repositories import (
    AppointmentRepository,
    ProfessionalRepository,
    ServiceRepository,
    UserRepository,
)
from salon_booking.storage import InMemoryStore

# Monday. The next day (2025-03-04) is the first open weekday.
MONDAY = date(2025, 3, 3)
TUESDAY = date(2025, 3, 4)


@pytest.fixture(autouse=True)
def setup_env():
    """Set up environment variables for tests."""
    os.environ["OPENAI_API_KEY"] = "test-key"
    yield


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def services(store):
    return ServiceRepository(store)


@pytest.fixture
def professionals(store):
    return ProfessionalRepository(store)


@pytest.fixture
def appointments(store):
    return AppointmentRepository(store)


@pytest.fixture
def users(store):
    return UserRepository(store)


@pytest.fixture
def make_appointment():
    """Build an Appointment with sensible defaults."""
    counter = {"n": 0}

    def _create(**overrides) -> Appointment:
        counter["n"] += 1
        data = {
            "id": f"appt-{counter['n']}",
            "service_id": "1",
            "professional_id": "1",
            "customer_name": "Maria",
            "customer_phone": "(11) 99999-9999",
            "date": TUESDAY,
            "time": "10:00",
            "status": AppointmentStatus.CONFIRMED,
            "payment_status": PaymentStatus.PAID,
            "created_at": 1_700_000_000_000 + counter["n"],
        }
        data.update(overrides)
        return Appointment(**data)
    return _create


@pytest.fixture
def make_wizard(services, professionals, appointments):
    """Wizard factory with no payment delay and a fixed current date (Monday)."""
    def _create(**overrides) -> BookingWizard:
        kwargs = {
            "services": services,
            "professionals": professionals,
            "appointments": appointments,
            "slot_generator": SlotGenerator(),
            "payment_delay": 0,
            "today": lambda: MONDAY,
        }
        kwargs.update(overrides)
        return BookingWizard(**kwargs)
    return _create


@pytest.fixture
def mock_llm_response():
    """Create mock LLM response."""
    def _create(content):
        msg = Mock()
        msg.content = content
        return msg
    return _create


@pytest.fixture
def mock_llm(mock_llm_response):
    llm = Mock()
    llm.invoke.return_value = mock_llm_response("Recomendo a nossa Limpeza de Pele Profunda.")
    return llm


@pytest.fixture
def context(store, mock_llm):
    """Application context over an in-memory store, instant payment and a mocked model."""
    return build_context(
        store,
        payment_delay=0,
        assistant=ServiceAssistant(llm=mock_llm),
    )


@pytest.fixture
def client(context):
    """Create FastAPI test client bound to the in-memory context."""
    from salon_booking.api_server import app

    app.dependency_overrides[get_context] = lambda: context
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def super_headers(client):
    """Session header for the fixed super-admin."""
    response = client.post(
        "/api/v1/auth/login",
        json={
            "username": config.SUPER_ADMIN_USERNAME,
            "password": config.SUPER_ADMIN_PASSWORD,
        }
    )
    assert response.status_code == 200
    return {"X-Session-ID": response.json()["session_id"]}


@pytest.fixture
def registration_payload():
    return {
        "name": "Beatriz Lima",
        "username": "beatriz",
        "password": "segredo123",
        "confirm_password": "segredo123",
        "email": "beatriz@lessencestudio.com",
        "cpf": "12345678901",
        "phone": "85988887777",
        "professional_id": "2",
    }


@pytest.fixture
def professional_headers(client, super_headers, registration_payload):
    """Session header for a professional admin linked to Beatriz Lima (id 2)."""
    created = client.post("/api/v1/admin/users", json=registration_payload, headers=super_headers)
    assert created.status_code == 201
    response = client.post(
        "/api/v1/auth/login",
        json={"username": "beatriz", "password": "segredo123"}
    )
    assert response.status_code == 200
    return {"X-Session-ID": response.json()["session_id"]}
