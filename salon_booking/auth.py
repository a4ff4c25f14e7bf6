"""Admin authentication, scope resolution and account management.

Two roles:
- Super-admin: fixed credential pair from configuration, resolved before the
  account list is consulted, unrestricted scope.
- Professional admin: stored account, scope forced to its linked professional.

Stored account passwords are bcrypt-hashed.
"""
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import bcrypt

from salon_booking import config
from salon_booking.analytics import ALL_PROFESSIONALS
from salon_booking.input_sanitizer import InputSanitizer
from salon_booking.logging_config import get_logger
from salon_booking.models import Appointment, Professional, User
from salon_booking.repositories import UserRepository

logger = get_logger(__name__)

LOGIN_FAILED_MESSAGE = "Usuário ou senha incorretos."
MISSING_FIELDS_MESSAGE = "Preencha todos os campos e vincule um profissional."
PASSWORD_MISMATCH_MESSAGE = "As senhas não coincidem."
USER_EXISTS_MESSAGE = "Este usuário já existe."
IDENTITY_MISMATCH_MESSAGE = "Dados não conferem com nenhum administrador cadastrado."
SUPER_ADMIN_ONLY_MESSAGE = "Apenas o administrador principal pode realizar esta operação."


class InvalidCredentialsError(Exception):
    """Raised when a username/password pair does not match."""
    pass


class PermissionDeniedError(Exception):
    """Raised when a scoped admin attempts a super-admin operation."""
    pass


class AccountValidationError(Exception):
    """Raised when a registration or password form is invalid."""
    pass


class IdentityMismatchError(Exception):
    """Raised when recovery data matches no account. Carries no detail."""
    pass


class Role(str, Enum):
    """Admin roles."""
    SUPER_ADMIN = "super_admin"
    PROFESSIONAL = "professional"


def hash_password(password: str) -> str:
    """Hash password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against hash."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed hash in storage
        return False


@dataclass(frozen=True)
class Principal:
    """Authenticated admin identity (the session's current user snapshot)."""
    username: str
    name: str
    role: Role
    email: str = ""
    cpf: str = ""
    phone: str = ""
    professional_id: Optional[str] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    @classmethod
    def super_admin(cls, username: str) -> "Principal":
        return cls(
            username=username,
            role=Role.SUPER_ADMIN,
            **config.SUPER_ADMIN_PROFILE
        )

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(
            username=user.username,
            name=user.name,
            role=Role.PROFESSIONAL,
            email=user.email,
            cpf=user.cpf,
            phone=user.phone,
            professional_id=user.professional_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["role"] = self.role.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Principal":
        return cls(**{**data, "role": Role(data["role"])})


@dataclass
class RegistrationForm:
    """Fields of the admin registration form."""
    name: str
    username: str
    password: str
    confirm_password: str
    email: str
    cpf: str
    phone: str
    professional_id: Optional[str] = None


class AccessControl:
    """
    Resolves principals and enforces scope rules.

    Pattern: Super-admin bypass is checked first and kept out of the account
    repository, so it can never be confused with a stored account.
    """

    def __init__(
        self,
        users: UserRepository,
        super_admin_username: str = config.SUPER_ADMIN_USERNAME,
        super_admin_password: str = config.SUPER_ADMIN_PASSWORD
    ):
        self.users = users
        self._super_username = super_admin_username
        self._super_password = super_admin_password

    # ------------------------------------------------------------------
    # Login and scope
    # ------------------------------------------------------------------

    def authenticate(self, username: str, password: str) -> Principal:
        """
        Resolve a credential pair to a principal.

        Raises:
            InvalidCredentialsError: If the pair matches neither the
                super-admin nor a stored account
        """
        if username == self._super_username and password == self._super_password:
            logger.info("login_succeeded", role=Role.SUPER_ADMIN.value)
            return Principal.super_admin(username)

        user = self.users.get(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("login_failed", username=username)
            raise InvalidCredentialsError(LOGIN_FAILED_MESSAGE)

        logger.info("login_succeeded", role=Role.PROFESSIONAL.value, username=username)
        return Principal.from_user(user)

    def effective_filter(self, principal: Principal, requested: str = ALL_PROFESSIONALS) -> str:
        """
        Professional filter actually applied for a principal.

        Super-admin gets the requested filter. Anyone else always gets their
        linked professional, whatever was requested.
        """
        if principal.is_super_admin:
            return requested or ALL_PROFESSIONALS
        return principal.professional_id or ALL_PROFESSIONALS

    def scoped_professionals(
        self,
        principal: Principal,
        professionals: List[Professional]
    ) -> List[Professional]:
        if principal.is_super_admin:
            return list(professionals)
        return [p for p in professionals if p.id == principal.professional_id]

    def can_access_appointment(self, principal: Principal, appointment: Appointment) -> bool:
        scope = self.effective_filter(principal)
        return scope == ALL_PROFESSIONALS or appointment.professional_id == scope

    def require_super_admin(self, principal: Principal) -> None:
        if not principal.is_super_admin:
            logger.warning("permission_denied", username=principal.username)
            raise PermissionDeniedError(SUPER_ADMIN_ONLY_MESSAGE)

    # ------------------------------------------------------------------
    # Account management (super-admin only)
    # ------------------------------------------------------------------

    def register_account(self, principal: Principal, form: RegistrationForm) -> User:
        """
        Create a professional admin account.

        Raises:
            PermissionDeniedError: Caller is not the super-admin
            AccountValidationError: Missing fields, password mismatch or
                username already taken
        """
        self.require_super_admin(principal)

        required = (
            form.name, form.username, form.password, form.email,
            form.cpf, form.phone, form.professional_id
        )
        if not all(value and str(value).strip() for value in required):
            raise AccountValidationError(MISSING_FIELDS_MESSAGE)
        if form.password != form.confirm_password:
            raise AccountValidationError(PASSWORD_MISMATCH_MESSAGE)
        if form.username == self._super_username or self.users.get(form.username):
            raise AccountValidationError(USER_EXISTS_MESSAGE)

        user = User(
            username=form.username,
            password_hash=hash_password(form.password),
            name=form.name.strip(),
            email=form.email.strip(),
            cpf=InputSanitizer.format_cpf(form.cpf),
            phone=InputSanitizer.format_phone(form.phone),
            professional_id=form.professional_id,
        )
        return self.users.add(user)

    def list_accounts(self, principal: Principal) -> List[User]:
        self.require_super_admin(principal)
        return self.users.list()

    def delete_account(self, principal: Principal, username: str) -> None:
        self.require_super_admin(principal)
        self.users.delete(username)

    # ------------------------------------------------------------------
    # Credential recovery
    # ------------------------------------------------------------------

    def verify_identity(self, username: str, cpf: str, phone: str) -> User:
        """
        Match (username, cpf, phone) against stored accounts.

        Raises:
            IdentityMismatchError: Generic denial, no detail about which field failed
        """
        user = self.users.get(username)
        if (
            user is None
            or user.cpf != InputSanitizer.format_cpf(cpf)
            or user.phone != InputSanitizer.format_phone(phone)
        ):
            logger.warning("identity_verification_failed")
            raise IdentityMismatchError(IDENTITY_MISMATCH_MESSAGE)
        return user

    def reset_password(
        self,
        username: str,
        cpf: str,
        phone: str,
        password: str,
        confirm_password: str
    ) -> User:
        """Replace a stored credential after re-verifying identity."""
        user = self.verify_identity(username, cpf, phone)
        if not password:
            raise AccountValidationError(MISSING_FIELDS_MESSAGE)
        if password != confirm_password:
            raise AccountValidationError(PASSWORD_MISMATCH_MESSAGE)
        return self.users.update_password(user.username, hash_password(password))
