import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import TypeVar
from uuid import UUID, uuid4

import structlog

from campusconnect.core.core import Service
from campusconnect.core.modules.account.store import AccountStores
from campusconnect.core.modules.session.cache import VerificationCache
from campusconnect.core.modules.session.codec import TokenCodec
from campusconnect.core.modules.session.models import (
    CacheEntry,
    Identity,
    PrincipalKind,
    SessionRecord,
    SignInPolicy,
    SignInResult,
)
from campusconnect.errors import AuthErrorKind, NotFoundError, SessionError
from campusconnect.utils import now

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class SessionManager(Service):
    """Single active session per account on top of self-contained bearer tokens.

    A token is accepted only while the session id it embeds is the one stored
    on the account. Signing in again or signing out rewrites that slot, which
    revokes older tokens even though they are still correctly signed.
    """

    def __init__(
        self,
        stores: AccountStores,
        codec: TokenCodec,
        cache: VerificationCache,
        *,
        session_ttl: timedelta,
        store_timeout: float,
        clock: Callable[[], datetime] = now,
    ) -> None:
        super().__init__()
        self._stores = stores
        self._codec = codec
        self._cache = cache
        self._session_ttl = session_ttl
        self._store_timeout = store_timeout
        self._clock = clock

    @property
    def cache(self) -> VerificationCache:
        return self._cache

    async def sign_in(
        self, kind: PrincipalKind, account_id: UUID, policy: SignInPolicy = SignInPolicy.SUPERSEDE
    ) -> SignInResult:
        """Start a new session for the account, replacing any previous one."""
        at = self._clock()
        store = self._stores.for_kind(kind)

        current = await self._store_call(store.find_session(account_id))
        active = current is not None and not current.is_expired(at)
        if active and policy is SignInPolicy.REJECT_IF_ACTIVE:
            logger.info("session_rejected", kind=kind, account_id=account_id, reason="already_active")
            raise SessionError(AuthErrorKind.SESSION_ACTIVE)

        session_id = str(uuid4())
        expires_at = at + self._session_ttl
        if not await self._store_call(store.set_session(account_id, session_id, expires_at)):
            raise NotFoundError(f"Account '{account_id}' not found")

        self._cache.invalidate(account_id=account_id)
        if current is not None and active:
            logger.info("session_superseded", kind=kind, account_id=account_id, previous_session_id=current.session_id)
        logger.info("session_started", kind=kind, account_id=account_id, session_id=session_id)

        token = self._codec.sign(kind, account_id, session_id, at)
        return SignInResult(token=token, session_id=session_id, expires_at=expires_at, superseded=active)

    async def verify(self, token: str | None, expected_kind: PrincipalKind | None = None) -> Identity:
        """Return the identity behind ``token`` or raise SessionError."""
        if not token:
            raise SessionError(AuthErrorKind.UNAUTHENTICATED)

        at = self._clock()
        entry = self._cache.get(token, expected_kind, at)
        if entry is not None:
            return entry.to_identity()

        decoded = self._codec.decode(token, at)
        if expected_kind is not None and decoded.kind != expected_kind:
            raise SessionError(AuthErrorKind.ACCESS_DENIED)

        # A sign-in or sign-out may land while the store read is in flight
        generation = self._cache.generation
        record = await self.check_session(decoded.kind, decoded.account_id, decoded.session_id, at)

        self._cache.put(
            token,
            CacheEntry(
                kind=decoded.kind,
                account_id=decoded.account_id,
                session_id=decoded.session_id,
                session_expires_at=record.expires_at,
                cache_expires_at=at + self._cache.ttl,
            ),
            generation,
        )
        return Identity(kind=decoded.kind, account_id=decoded.account_id, session_id=decoded.session_id)

    async def try_verify(self, token: str | None, expected_kind: PrincipalKind | None = None) -> Identity | SessionError:
        """Like verify, but hands back the error so callers can ``match`` on it.

        DependencyFailure is still raised: it says nothing about the caller.
        """
        try:
            return await self.verify(token, expected_kind)
        except SessionError as exc:
            if exc.kind is AuthErrorKind.DEPENDENCY_FAILURE:
                raise
            return exc

    async def check_session(
        self, kind: PrincipalKind, account_id: UUID, session_id: str, at: datetime | None = None
    ) -> SessionRecord:
        """Check ``session_id`` against the stored slot, bypassing the cache."""
        at = at or self._clock()
        store = self._stores.for_kind(kind)

        record = await self._store_call(store.find_session(account_id))
        if record is None:
            self._cache.invalidate(account_id=account_id)
            raise SessionError(AuthErrorKind.SESSION_EXPIRED)

        if record.session_id != session_id:
            self._cache.invalidate(session_id=session_id)
            raise SessionError(AuthErrorKind.SESSION_MISMATCH)

        if record.is_expired(at):
            await self._store_call(store.clear_session(account_id, session_id))
            self._cache.invalidate(session_id=session_id)
            logger.info("session_ended", kind=kind, account_id=account_id, session_id=session_id, reason="expired")
            raise SessionError(AuthErrorKind.SESSION_EXPIRED)

        return record

    async def sign_out(self, kind: PrincipalKind, account_id: UUID, session_id: str | None = None) -> bool:
        """End the account's session. Signing out twice is not an error.

        With ``session_id`` the store is only cleared while that session is
        still the active one, so a stale sign-out cannot end a newer session.
        """
        store = self._stores.for_kind(kind)
        cleared = await self._store_call(store.clear_session(account_id, session_id))
        if session_id is not None:
            self._cache.invalidate(session_id=session_id)
        else:
            self._cache.invalidate(account_id=account_id)
        if cleared:
            logger.info("session_ended", kind=kind, account_id=account_id, session_id=session_id, reason="sign_out")
        return cleared

    async def _store_call(self, call: Awaitable[T]) -> T:
        try:
            async with asyncio.timeout(self._store_timeout):
                return await call
        except TimeoutError as exc:
            logger.warning("account_store_timeout", timeout=self._store_timeout)
            raise SessionError(AuthErrorKind.DEPENDENCY_FAILURE) from exc
