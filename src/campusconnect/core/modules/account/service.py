from uuid import UUID

import bcrypt
import structlog

from campusconnect.core.core import Service
from campusconnect.core.modules.account.models import Account, ProfileSnapshot
from campusconnect.core.modules.account.store import AccountStores
from campusconnect.core.modules.account.validators import (
    normalize_admin_code,
    normalize_email,
    normalize_student_id,
    validate_name,
    validate_password,
)
from campusconnect.core.modules.session.models import PrincipalKind
from campusconnect.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


class AccountService(Service):
    """Signup, credential checks and profile lookups for members and administrators."""

    def __init__(self, stores: AccountStores, admin_codes: list[str], student_ids: list[str]) -> None:
        super().__init__()
        self._stores = stores
        self._admin_codes = frozenset(normalize_admin_code(code) for code in admin_codes)
        self._student_ids = frozenset(student_id.strip().upper() for student_id in student_ids)

    async def create_account(
        self,
        kind: PrincipalKind,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        admin_code: str | None = None,
        student_id: str | None = None,
    ) -> Account:
        """Register an account with a bcrypt-hashed password.

        Members must present an allow-listed student ID and administrators an
        allow-listed admin code; each can be registered only once.
        """
        store = self._stores.for_kind(kind)
        email = normalize_email(email)
        validate_password(password, kind)
        first_name = validate_name(first_name, "First name", 3, 20)
        last_name = validate_name(last_name, "Last name", 2, 10)

        code = None
        member_student_id = None
        match kind:
            case PrincipalKind.ADMINISTRATOR:
                code = normalize_admin_code(admin_code or "")
                if code not in self._admin_codes:
                    raise ValidationError("Please enter a valid admin code.")
            case PrincipalKind.MEMBER:
                member_student_id = self._check_student_id(student_id)

        if await store.find_by_email(email) is not None:
            raise ConflictError("An account with this email already exists.")
        if code is not None and await store.find_by_admin_code(code) is not None:
            raise ConflictError("This admin code is already registered.")
        if member_student_id is not None and await store.find_by_student_id(member_student_id) is not None:
            raise ConflictError("This student ID is already registered.")

        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        account = Account(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            admin_code=code,
            student_id=member_student_id,
        )
        await store.insert(account)
        logger.info("account_created", kind=kind, account_id=account.id)
        return account

    async def authenticate(
        self, kind: PrincipalKind, email: str, password: str, student_id: str | None = None
    ) -> Account:
        """Return the account if the credentials match, else raise AuthenticationError.

        Members also have to repeat the student ID they registered with.
        """
        try:
            email = normalize_email(email)
        except ValidationError as exc:
            raise AuthenticationError from exc

        account = await self._stores.for_kind(kind).find_by_email(email)
        if account is None:
            raise AuthenticationError
        if not bcrypt.checkpw(password.encode("utf-8"), account.password_hash.encode("utf-8")):
            logger.info("sign_in_rejected", kind=kind, account_id=account.id, reason="password")
            raise AuthenticationError
        if kind is PrincipalKind.MEMBER and account.student_id != (student_id or "").strip().upper():
            logger.info("sign_in_rejected", kind=kind, account_id=account.id, reason="student_id")
            raise AuthenticationError
        return account

    async def get_account(self, kind: PrincipalKind, account_id: UUID) -> Account:
        account = await self._stores.for_kind(kind).get(account_id)
        if account is None:
            raise NotFoundError(f"Account '{account_id}' not found")
        return account

    async def get_profile(self, kind: PrincipalKind, account_id: UUID) -> ProfileSnapshot:
        return ProfileSnapshot.from_account(await self.get_account(kind, account_id))

    def _check_student_id(self, student_id: str | None) -> str:
        value = normalize_student_id(student_id or "")
        if value not in self._student_ids:
            raise ValidationError("Please enter a valid student ID.")
        return value
