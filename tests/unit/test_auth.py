"""Test authentication, scope rules and account management."""
import pytest

from salon_booking.auth import (
    IDENTITY_MISMATCH_MESSAGE,
    MISSING_FIELDS_MESSAGE,
    PASSWORD_MISMATCH_MESSAGE,
    USER_EXISTS_MESSAGE,
    AccessControl,
    AccountValidationError,
    IdentityMismatchError,
    InvalidCredentialsError,
    PermissionDeniedError,
    Principal,
    RegistrationForm,
    Role,
    hash_password,
    verify_password,
)
from salon_booking.models import User

SUPER_USER = "Admin@Manu"
SUPER_PASS = "Admin@Manu"


@pytest.fixture
def access(users):
    return AccessControl(users, super_admin_username=SUPER_USER, super_admin_password=SUPER_PASS)


@pytest.fixture
def root():
    return Principal.super_admin(SUPER_USER)


@pytest.fixture
def form():
    return RegistrationForm(
        name="Ana Souza",
        username="ana",
        password="segredo123",
        confirm_password="segredo123",
        email="ana@lessencestudio.com",
        cpf="12345678901",
        phone="85999999999",
        professional_id="1",
    )


@pytest.fixture
def scoped(access, root, form):
    user = access.register_account(root, form)
    return Principal.from_user(user)


def test_hash_password_roundtrip():
    hashed = hash_password("segredo123")

    assert hashed != "segredo123"
    assert verify_password("segredo123", hashed)
    assert not verify_password("outra", hashed)


def test_verify_password_with_malformed_hash():
    assert verify_password("segredo123", "not-a-bcrypt-hash") is False


class TestLogin:

    def test_super_admin_login(self, access):
        principal = access.authenticate(SUPER_USER, SUPER_PASS)

        assert principal.is_super_admin
        assert principal.role == Role.SUPER_ADMIN
        assert access.effective_filter(principal) == "all"

    def test_super_admin_login_ignores_stored_accounts(self, access, users):
        # A stored row with the same username and a different password
        users.add(User(
            username=SUPER_USER, password_hash=hash_password("other"),
            name="Impostor", email="x@y.z", cpf="1", phone="2", professional_id="3"
        ))

        principal = access.authenticate(SUPER_USER, SUPER_PASS)

        assert principal.is_super_admin
        assert principal.professional_id is None

    def test_stored_account_login(self, access, scoped):
        principal = access.authenticate("ana", "segredo123")

        assert principal.role == Role.PROFESSIONAL
        assert principal.professional_id == "1"

    @pytest.mark.parametrize("username,password", [
        ("ana", "wrong"),
        ("nobody", "segredo123"),
        (SUPER_USER, "wrong"),
    ])
    def test_bad_credentials(self, access, scoped, username, password):
        with pytest.raises(InvalidCredentialsError):
            access.authenticate(username, password)


class TestScope:

    @pytest.mark.parametrize("requested", ["all", "2", "3", "", "1"])
    def test_scoped_account_filter_ignores_request(self, access, scoped, requested):
        assert access.effective_filter(scoped, requested) == "1"

    def test_super_admin_filter_follows_request(self, access, root):
        assert access.effective_filter(root, "3") == "3"
        assert access.effective_filter(root, "") == "all"

    def test_unlinked_account_falls_back_to_all(self, access):
        principal = Principal(username="old", name="Old", role=Role.PROFESSIONAL)

        assert access.effective_filter(principal, "2") == "all"

    def test_scoped_professionals(self, access, scoped, root, professionals):
        team = professionals.list()

        assert [p.id for p in access.scoped_professionals(scoped, team)] == ["1"]
        assert len(access.scoped_professionals(root, team)) == 4

    def test_can_access_appointment(self, access, scoped, root, make_appointment):
        own = make_appointment(professional_id="1")
        other = make_appointment(professional_id="2")

        assert access.can_access_appointment(scoped, own)
        assert not access.can_access_appointment(scoped, other)
        assert access.can_access_appointment(root, other)


class TestAccountManagement:

    def test_register_formats_and_hashes(self, access, root, form, users):
        user = access.register_account(root, form)

        assert user.cpf == "123.456.789-01"
        assert user.phone == "(85) 99999-9999"
        assert user.password_hash != "segredo123"
        assert users.get("ana") is not None

    def test_scoped_admin_cannot_register(self, access, scoped, form):
        form.username = "other"
        with pytest.raises(PermissionDeniedError):
            access.register_account(scoped, form)

    def test_scoped_admin_cannot_list_or_delete(self, access, scoped):
        with pytest.raises(PermissionDeniedError):
            access.list_accounts(scoped)
        with pytest.raises(PermissionDeniedError):
            access.delete_account(scoped, "ana")

    def test_missing_fields(self, access, root, form):
        form.email = "  "
        with pytest.raises(AccountValidationError, match=MISSING_FIELDS_MESSAGE):
            access.register_account(root, form)

    def test_missing_professional_link(self, access, root, form):
        form.professional_id = None
        with pytest.raises(AccountValidationError, match=MISSING_FIELDS_MESSAGE):
            access.register_account(root, form)

    def test_password_mismatch(self, access, root, form):
        form.confirm_password = "different"
        with pytest.raises(AccountValidationError, match=PASSWORD_MISMATCH_MESSAGE):
            access.register_account(root, form)

    def test_duplicate_username(self, access, root, form):
        access.register_account(root, form)
        with pytest.raises(AccountValidationError, match=USER_EXISTS_MESSAGE):
            access.register_account(root, form)

    def test_super_admin_username_is_reserved(self, access, root, form):
        form.username = SUPER_USER
        with pytest.raises(AccountValidationError, match=USER_EXISTS_MESSAGE):
            access.register_account(root, form)

    def test_failed_registration_writes_nothing(self, access, root, form, store):
        form.confirm_password = "different"
        with pytest.raises(AccountValidationError):
            access.register_account(root, form)

        assert store.get("lessence_users") is None

    def test_delete_account(self, access, root, scoped):
        access.delete_account(root, "ana")

        assert access.list_accounts(root) == []


class TestRecovery:

    def test_verify_identity_accepts_unformatted_input(self, access, scoped):
        user = access.verify_identity("ana", "123.456.789-01", "85999999999")

        assert user.username == "ana"

    @pytest.mark.parametrize("username,cpf,phone", [
        ("ana", "00000000000", "85999999999"),
        ("ana", "12345678901", "85911111111"),
        ("nobody", "12345678901", "85999999999"),
    ])
    def test_mismatch_gives_generic_message(self, access, scoped, username, cpf, phone):
        with pytest.raises(IdentityMismatchError) as exc_info:
            access.verify_identity(username, cpf, phone)

        assert str(exc_info.value) == IDENTITY_MISMATCH_MESSAGE

    def test_reset_password(self, access, scoped):
        access.reset_password("ana", "12345678901", "85999999999", "nova123", "nova123")

        assert access.authenticate("ana", "nova123").username == "ana"
        with pytest.raises(InvalidCredentialsError):
            access.authenticate("ana", "segredo123")

    def test_reset_password_mismatch(self, access, scoped):
        with pytest.raises(AccountValidationError, match=PASSWORD_MISMATCH_MESSAGE):
            access.reset_password("ana", "12345678901", "85999999999", "nova123", "outra")

    def test_reset_requires_identity(self, access, scoped):
        with pytest.raises(IdentityMismatchError):
            access.reset_password("ana", "00000000000", "85999999999", "nova123", "nova123")


def test_principal_dict_roundtrip(root):
    assert Principal.from_dict(root.to_dict()) == root
