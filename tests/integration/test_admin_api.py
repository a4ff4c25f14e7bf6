"""Test authentication and admin endpoints."""
from datetime import date

import pytest

from salon_booking.models import AppointmentStatus
from salon_booking.repositories import AppointmentRepository

pytestmark = pytest.mark.integration


@pytest.fixture
def seeded(context, make_appointment):
    """One appointment for Ana (1) and two for Beatriz (2)."""
    today = date.today()
    for professional_id, service_id, status in [
        ("1", "1", AppointmentStatus.CONFIRMED),
        ("2", "3", AppointmentStatus.CONFIRMED),
        ("2", "4", AppointmentStatus.CANCELLED),
    ]:
        context.appointments.add(make_appointment(
            professional_id=professional_id,
            service_id=service_id,
            status=status,
            date=today,
        ))
    return context


class TestAuth:

    def test_super_admin_login(self, client):
        response = client.post(
            "/api/v1/auth/login",
            json={"username": "Admin@Manu", "password": "Admin@Manu"}
        )

        assert response.status_code == 200
        assert response.json()["user"]["role"] == "super_admin"
        assert response.json()["session_id"]

    def test_wrong_password(self, client):
        response = client.post(
            "/api/v1/auth/login",
            json={"username": "Admin@Manu", "password": "nope"}
        )

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"

    def test_me_and_logout(self, client, super_headers):
        me = client.get("/api/v1/auth/me", headers=super_headers)
        assert me.status_code == 200
        assert me.json()["name"] == "Super Admin"

        assert client.post("/api/v1/auth/logout", headers=super_headers).status_code == 200
        assert client.get("/api/v1/auth/me", headers=super_headers).status_code == 401

    def test_admin_endpoints_require_session(self, client):
        assert client.get("/api/v1/admin/dashboard").status_code == 401
        assert client.get(
            "/api/v1/admin/dashboard", headers={"X-Session-ID": "bogus"}
        ).status_code == 401

    def test_professional_login(self, client, professional_headers):
        me = client.get("/api/v1/auth/me", headers=professional_headers).json()

        assert me["role"] == "professional"
        assert me["professional_id"] == "2"


class TestDashboard:

    def test_super_admin_sees_everything(self, client, super_headers, seeded):
        data = client.get("/api/v1/admin/dashboard", headers=super_headers).json()

        assert data["effective_filter"] == "all"
        assert data["total_appointments"] == 3
        # 180 + 65, cancelled pedicure excluded
        assert data["total_revenue"] == 245
        assert data["completion_rate"] == 67

    def test_super_admin_can_filter(self, client, super_headers, seeded):
        data = client.get(
            "/api/v1/admin/dashboard",
            params={"professional_id": "1"},
            headers=super_headers
        ).json()

        assert data["effective_filter"] == "1"
        assert data["total_appointments"] == 1
        assert data["total_revenue"] == 180

    def test_scoped_admin_filter_is_forced(self, client, professional_headers, seeded):
        data = client.get(
            "/api/v1/admin/dashboard",
            params={"professional_id": "1"},
            headers=professional_headers
        ).json()

        assert data["effective_filter"] == "2"
        assert data["total_appointments"] == 2
        assert data["total_revenue"] == 65

    def test_empty_dashboard(self, client, super_headers):
        data = client.get("/api/v1/admin/dashboard", headers=super_headers).json()

        assert data["completion_rate"] == 0
        assert data["revenue_by_day"] == []


class TestAppointments:

    def test_scoped_listing(self, client, professional_headers, seeded):
        data = client.get("/api/v1/admin/appointments", headers=professional_headers).json()

        assert data["effective_filter"] == "2"
        assert {a["professional_id"] for a in data["appointments"]} == {"2"}
        assert data["appointments"][0]["professional_name"] == "Beatriz Lima"

    def test_deleted_service_label(self, client, super_headers, seeded):
        client.delete("/api/v1/admin/services/1", headers=super_headers)

        rows = client.get("/api/v1/admin/appointments", headers=super_headers).json()["appointments"]

        assert "Removido" in {r["service_name"] for r in rows}

    def test_listing_shows_bookings_written_elsewhere(self, client, super_headers, context, make_appointment):
        client.get("/api/v1/admin/appointments", headers=super_headers)
        AppointmentRepository(context.store).add(make_appointment(id="external-1"))

        rows = client.get("/api/v1/admin/appointments", headers=super_headers).json()["appointments"]

        assert [r["id"] for r in rows] == ["external-1"]

    def test_status_update(self, client, super_headers, seeded):
        appointment = seeded.appointments.list()[0]

        response = client.patch(
            f"/api/v1/admin/appointments/{appointment.id}",
            json={"status": "completed"},
            headers=super_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert seeded.appointments.get(appointment.id).status == AppointmentStatus.COMPLETED

    def test_scoped_admin_cannot_touch_other_professional(self, client, professional_headers, seeded):
        anas = next(a for a in seeded.appointments.list() if a.professional_id == "1")

        response = client.patch(
            f"/api/v1/admin/appointments/{anas.id}",
            json={"status": "cancelled"},
            headers=professional_headers
        )

        assert response.status_code == 403

    def test_unknown_appointment(self, client, super_headers):
        response = client.patch(
            "/api/v1/admin/appointments/missing",
            json={"status": "cancelled"},
            headers=super_headers
        )

        assert response.status_code == 404

    def test_invalid_status(self, client, super_headers, seeded):
        appointment = seeded.appointments.list()[0]

        response = client.patch(
            f"/api/v1/admin/appointments/{appointment.id}",
            json={"status": "archived"},
            headers=super_headers
        )

        assert response.status_code == 422


class TestPerformance:

    def test_sorted_by_total(self, client, super_headers, seeded):
        data = client.get(
            "/api/v1/admin/performance",
            params={"period": "day"},
            headers=super_headers
        ).json()

        assert data["period"] == "day"
        assert [p["id"] for p in data["professionals"]][:2] == ["1", "2"]
        assert data["professionals"][0]["total"] == 180
        assert data["professionals"][1]["count"] == 1

    def test_scoped_admin_sees_only_self(self, client, professional_headers, seeded):
        data = client.get("/api/v1/admin/performance", headers=professional_headers).json()

        assert [p["id"] for p in data["professionals"]] == ["2"]


class TestServiceManagement:

    @pytest.fixture
    def new_service(self):
        return {
            "name": "Escova Modeladora",
            "description": "Escova com finalização.",
            "price": 90,
            "duration_minutes": 45,
            "category": "hair",
        }

    def test_add_update_delete(self, client, super_headers, new_service):
        created = client.post("/api/v1/admin/services", json=new_service, headers=super_headers)
        assert created.status_code == 201
        service_id = created.json()["id"]

        updated = client.put(
            f"/api/v1/admin/services/{service_id}",
            json={**new_service, "price": 95},
            headers=super_headers
        )
        assert updated.json()["price"] == 95

        assert client.delete(
            f"/api/v1/admin/services/{service_id}", headers=super_headers
        ).status_code == 200
        assert len(client.get("/api/v1/services").json()) == 6

    def test_scoped_admin_cannot_mutate_services(self, client, professional_headers, new_service):
        assert client.post(
            "/api/v1/admin/services", json=new_service, headers=professional_headers
        ).status_code == 403
        assert client.delete(
            "/api/v1/admin/services/1", headers=professional_headers
        ).status_code == 403
        assert len(client.get("/api/v1/services").json()) == 6

    def test_invalid_service(self, client, super_headers, new_service):
        response = client.post(
            "/api/v1/admin/services",
            json={**new_service, "price": -1},
            headers=super_headers
        )

        assert response.status_code == 422

    def test_delete_unknown_service(self, client, super_headers):
        assert client.delete(
            "/api/v1/admin/services/missing", headers=super_headers
        ).status_code == 404


class TestUserManagement:

    def test_register_and_list(self, client, super_headers, registration_payload):
        created = client.post("/api/v1/admin/users", json=registration_payload, headers=super_headers)

        assert created.status_code == 201
        body = created.json()
        assert body["cpf"] == "123.456.789-01"
        assert body["phone"] == "(85) 98888-7777"
        assert body["professional_name"] == "Beatriz Lima"
        assert "password_hash" not in body

        listing = client.get("/api/v1/admin/users", headers=super_headers).json()
        assert [u["username"] for u in listing] == ["beatriz"]

    def test_registration_validation(self, client, super_headers, registration_payload):
        response = client.post(
            "/api/v1/admin/users",
            json={**registration_payload, "confirm_password": "x"},
            headers=super_headers
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "As senhas não coincidem."

    def test_scoped_admin_cannot_manage_accounts(self, client, professional_headers, registration_payload):
        assert client.get("/api/v1/admin/users", headers=professional_headers).status_code == 403
        assert client.post(
            "/api/v1/admin/users",
            json={**registration_payload, "username": "other"},
            headers=professional_headers
        ).status_code == 403

    def test_delete_user(self, client, super_headers, professional_headers):
        response = client.delete("/api/v1/admin/users/beatriz", headers=super_headers)

        assert response.status_code == 200
        assert client.post(
            "/api/v1/auth/login",
            json={"username": "beatriz", "password": "segredo123"}
        ).status_code == 401


class TestRecovery:

    def test_verify_and_reset(self, client, professional_headers):
        identity = {"username": "beatriz", "cpf": "123.456.789-01", "phone": "85988887777"}

        assert client.post("/api/v1/auth/recovery/verify", json=identity).status_code == 200

        response = client.post(
            "/api/v1/auth/recovery/reset",
            json={**identity, "password": "nova123", "confirm_password": "nova123"}
        )
        assert response.status_code == 200

        login = client.post(
            "/api/v1/auth/login",
            json={"username": "beatriz", "password": "nova123"}
        )
        assert login.status_code == 200

    def test_mismatch_is_generic(self, client, professional_headers):
        response = client.post(
            "/api/v1/auth/recovery/verify",
            json={"username": "beatriz", "cpf": "00000000000", "phone": "85988887777"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == (
            "Dados não conferem com nenhum administrador cadastrado."
        )
