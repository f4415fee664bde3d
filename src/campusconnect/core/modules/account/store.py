"""Account persistence, including the per-account session slot.

Each principal kind has its own collection. The session layer only touches
``find_session``, ``set_session`` and ``clear_session``; the rest serves
signup and sign-in.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, assert_never
from uuid import UUID

import structlog
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from campusconnect.core.modules.account.models import Account
from campusconnect.core.modules.session.models import PrincipalKind, SessionRecord
from campusconnect.errors import AuthErrorKind, ConflictError, SessionError
from campusconnect.utils import as_utc

logger = structlog.get_logger(__name__)

COLLECTION_NAMES = {
    PrincipalKind.MEMBER: "users",
    PrincipalKind.ADMINISTRATOR: "admins",
}


class AccountStore(Protocol):
    async def on_start(self) -> None: ...

    async def insert(self, account: Account) -> None: ...

    async def get(self, account_id: UUID) -> Account | None: ...

    async def find_by_email(self, email: str) -> Account | None: ...

    async def find_by_admin_code(self, admin_code: str) -> Account | None: ...

    async def find_by_student_id(self, student_id: str) -> Account | None: ...

    async def find_session(self, account_id: UUID) -> SessionRecord | None: ...

    async def set_session(self, account_id: UUID, session_id: str, expires_at: datetime) -> bool: ...

    async def clear_session(self, account_id: UUID, expected_session_id: str | None = None) -> bool: ...


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """Turn driver failures (including client-side timeouts) into DependencyFailure."""
    try:
        yield
    except DuplicateKeyError as exc:
        raise ConflictError("An account with these details already exists.") from exc
    except PyMongoError as exc:
        logger.warning("account_store_unavailable", operation=operation, error=str(exc))
        raise SessionError(AuthErrorKind.DEPENDENCY_FAILURE) from exc


class MongoAccountStore:
    """Account collection backed by MongoDB."""

    def __init__(self, collection: AsyncCollection[dict[str, Any]]) -> None:
        self._collection = collection

    async def on_start(self) -> None:
        """Create indexes on startup."""
        with translate_store_errors("create_index"):
            await self._collection.create_index([("email", 1)], unique=True)
            await self._collection.create_index([("admin_code", 1)], unique=True, sparse=True)
            await self._collection.create_index([("student_id", 1)], unique=True, sparse=True)

    async def insert(self, account: Account) -> None:
        document = account.to_mongo()
        for key in ("admin_code", "student_id"):
            if document[key] is None:
                del document[key]  # keep the sparse unique indexes usable
        with translate_store_errors("insert"):
            await self._collection.insert_one(document)

    async def get(self, account_id: UUID) -> Account | None:
        with translate_store_errors("get"):
            return Account.from_mongo(await self._collection.find_one({"_id": account_id}))

    async def find_by_email(self, email: str) -> Account | None:
        with translate_store_errors("find_by_email"):
            return Account.from_mongo(await self._collection.find_one({"email": email}))

    async def find_by_admin_code(self, admin_code: str) -> Account | None:
        with translate_store_errors("find_by_admin_code"):
            return Account.from_mongo(await self._collection.find_one({"admin_code": admin_code}))

    async def find_by_student_id(self, student_id: str) -> Account | None:
        with translate_store_errors("find_by_student_id"):
            return Account.from_mongo(await self._collection.find_one({"student_id": student_id}))

    async def find_session(self, account_id: UUID) -> SessionRecord | None:
        with translate_store_errors("find_session"):
            document = await self._collection.find_one(
                {"_id": account_id}, projection={"active_session_id": 1, "session_expires_at": 1}
            )
        if document is None or not document.get("active_session_id"):
            return None
        expires_at = document.get("session_expires_at")
        return SessionRecord(
            session_id=str(document["active_session_id"]),
            expires_at=as_utc(expires_at) if expires_at is not None else None,
        )

    async def set_session(self, account_id: UUID, session_id: str, expires_at: datetime) -> bool:
        # Both fields in one $set so readers never see a new id with an old expiry
        with translate_store_errors("set_session"):
            result = await self._collection.update_one(
                {"_id": account_id},
                {"$set": {"active_session_id": session_id, "session_expires_at": expires_at}},
            )
        return result.matched_count == 1

    async def clear_session(self, account_id: UUID, expected_session_id: str | None = None) -> bool:
        query: dict[str, Any] = {"_id": account_id}
        if expected_session_id is not None:
            query["active_session_id"] = expected_session_id
        with translate_store_errors("clear_session"):
            result = await self._collection.update_one(
                query, {"$set": {"active_session_id": None, "session_expires_at": None}}
            )
        return result.modified_count == 1


class MemoryAccountStore:
    """In-process account store for tests and local runs without MongoDB."""

    def __init__(self) -> None:
        self._accounts: dict[UUID, Account] = {}

    async def on_start(self) -> None:
        """Nothing to prepare."""

    async def insert(self, account: Account) -> None:
        if account.id in self._accounts or await self.find_by_email(account.email) is not None:
            raise ConflictError("An account with these details already exists.")
        if account.admin_code is not None and await self.find_by_admin_code(account.admin_code) is not None:
            raise ConflictError("An account with these details already exists.")
        if account.student_id is not None and await self.find_by_student_id(account.student_id) is not None:
            raise ConflictError("An account with these details already exists.")
        self._accounts[account.id] = account.model_copy()

    async def get(self, account_id: UUID) -> Account | None:
        account = self._accounts.get(account_id)
        return account.model_copy() if account is not None else None

    async def find_by_email(self, email: str) -> Account | None:
        account = next((a for a in self._accounts.values() if a.email == email), None)
        return account.model_copy() if account is not None else None

    async def find_by_admin_code(self, admin_code: str) -> Account | None:
        account = next((a for a in self._accounts.values() if a.admin_code == admin_code), None)
        return account.model_copy() if account is not None else None

    async def find_by_student_id(self, student_id: str) -> Account | None:
        account = next((a for a in self._accounts.values() if a.student_id == student_id), None)
        return account.model_copy() if account is not None else None

    async def find_session(self, account_id: UUID) -> SessionRecord | None:
        account = self._accounts.get(account_id)
        if account is None or account.active_session_id is None:
            return None
        return SessionRecord(session_id=account.active_session_id, expires_at=account.session_expires_at)

    async def set_session(self, account_id: UUID, session_id: str, expires_at: datetime) -> bool:
        account = self._accounts.get(account_id)
        if account is None:
            return False
        self._accounts[account_id] = account.model_copy(
            update={"active_session_id": session_id, "session_expires_at": expires_at}
        )
        return True

    async def clear_session(self, account_id: UUID, expected_session_id: str | None = None) -> bool:
        account = self._accounts.get(account_id)
        if account is None or account.active_session_id is None:
            return False
        if expected_session_id is not None and account.active_session_id != expected_session_id:
            return False
        self._accounts[account_id] = account.model_copy(
            update={"active_session_id": None, "session_expires_at": None}
        )
        return True


@dataclass(frozen=True)
class AccountStores:
    """One store per principal kind."""

    members: AccountStore
    administrators: AccountStore

    def for_kind(self, kind: PrincipalKind) -> AccountStore:
        match kind:
            case PrincipalKind.MEMBER:
                return self.members
            case PrincipalKind.ADMINISTRATOR:
                return self.administrators
            case _:
                assert_never(kind)

    def all(self) -> tuple[AccountStore, AccountStore]:
        return self.members, self.administrators

    @classmethod
    def in_memory(cls) -> "AccountStores":
        return cls(members=MemoryAccountStore(), administrators=MemoryAccountStore())

    @classmethod
    def from_database(cls, database: AsyncDatabase[dict[str, Any]]) -> "AccountStores":
        return cls(
            members=MongoAccountStore(database.get_collection(COLLECTION_NAMES[PrincipalKind.MEMBER])),
            administrators=MongoAccountStore(database.get_collection(COLLECTION_NAMES[PrincipalKind.ADMINISTRATOR])),
        )
