from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from pymongo import AsyncMongoClient

from campusconnect.config import Config
from campusconnect.utils import now

if TYPE_CHECKING:
    from campusconnect.core.modules.account.service import AccountService
    from campusconnect.core.modules.account.store import AccountStores
    from campusconnect.core.modules.realtime.bridge import RealtimeAuthBridge
    from campusconnect.core.modules.realtime.hub import ChannelHub
    from campusconnect.core.modules.session.service import SessionManager


class Service:
    """Base class for services managed by Core."""

    def __init__(self) -> None:
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry wiring the session layer from configuration."""

    account: AccountService
    session: SessionManager
    realtime: RealtimeAuthBridge
    hub: ChannelHub

    def __init__(self, config: Config, stores: AccountStores, clock: Callable[[], datetime]) -> None:
        """Build every service; order matters, later services depend on earlier ones."""
        from campusconnect.core.modules.account.service import AccountService  # noqa: PLC0415
        from campusconnect.core.modules.realtime.bridge import RealtimeAuthBridge  # noqa: PLC0415
        from campusconnect.core.modules.realtime.hub import ChannelHub  # noqa: PLC0415
        from campusconnect.core.modules.session.cache import VerificationCache  # noqa: PLC0415
        from campusconnect.core.modules.session.codec import TokenCodec  # noqa: PLC0415
        from campusconnect.core.modules.session.service import SessionManager  # noqa: PLC0415

        cache = VerificationCache(
            ttl=config.cache_ttl,
            prune_interval=timedelta(seconds=config.cache_prune_interval_seconds),
            clock=clock,
        )
        codec = TokenCodec(config.member_token_secret, config.admin_token_secret, ttl=config.session_ttl)

        self.account = AccountService(
            stores, admin_codes=config.admin_signup_codes, student_ids=config.student_ids
        )
        self.session = SessionManager(
            stores,
            codec,
            cache,
            session_ttl=config.session_ttl,
            store_timeout=config.store_timeout_seconds,
            clock=clock,
        )
        self.realtime = RealtimeAuthBridge(
            self.session,
            config.realtime_token_secret,
            ttl=timedelta(seconds=config.realtime_token_ttl_seconds),
            clock=clock,
        )
        self.hub = ChannelHub()
        self._services: list[Service] = [self.account, self.session, self.realtime, self.hub]

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start all services that have startup logic."""
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        """Stop all services that have cleanup logic."""
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, account stores, and all service instances."""

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]] | None
    stores: AccountStores
    services: Services

    def __init__(
        self,
        config: Config,
        stores: AccountStores | None = None,
        clock: Callable[[], datetime] = now,
    ) -> None:
        """Initialize core; without explicit stores, connect the MongoDB-backed ones."""
        self.config = config
        self.mongo_client = None
        if stores is None:
            from campusconnect.core.modules.account.store import AccountStores  # noqa: PLC0415

            self.mongo_client = AsyncMongoClient(
                config.database_url,
                uuidRepresentation="standard",
                tz_aware=True,
                timeoutMS=int(config.store_timeout_seconds * 1000),
            )
            database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])
            stores = AccountStores.from_database(database)
        self.stores = stores
        self.services = Services(config, stores, clock)
        self.services.set_core(self)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        """Prepare stores, then start services."""
        for store in self.stores.all():
            await store.on_start()
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Stop services and close the MongoDB connection on shutdown."""
        await self.services.stop_all()
        if self.mongo_client is not None:
            await self.mongo_client.aclose()
