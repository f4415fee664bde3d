"""Shared pytest fixtures."""

from datetime import UTC, datetime, timedelta

import bcrypt
import pytest

from campusconnect.config import Config
from campusconnect.core.core import Core
from campusconnect.core.modules.account.models import Account
from campusconnect.core.modules.account.store import AccountStore, AccountStores
from campusconnect.core.modules.session.models import PrincipalKind

MEMBER_PASSWORD = "correct-horse"
ADMIN_PASSWORD = "battery-staple"
ADMIN_CODES = ["CAMPUS-ADMIN-1", "CAMPUS-ADMIN-2"]
STUDENT_ID = "ST1"

# Low cost factor keeps the suite fast; checkpw reads the rounds from the hash
_FAST_SALT = bcrypt.gensalt(rounds=4)


class FakeClock:
    """Controllable clock injected wherever the code reads the time."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


def make_config(**overrides: object) -> Config:
    values: dict[str, object] = {
        "database_url": "mongodb://localhost:27017/campusconnect_test",
        "host": "127.0.0.1",
        "port": 3100,
        "debug": True,
        "member_token_secret": "member-secret-for-tests",
        "admin_token_secret": "admin-secret-for-tests",
        "realtime_token_secret": "realtime-secret-for-tests",
        "admin_signup_codes": ADMIN_CODES,
    }
    values.update(overrides)
    return Config(_env_file=None, **values)  # type: ignore[arg-type]


async def add_account(
    store: AccountStore,
    email: str,
    password: str = MEMBER_PASSWORD,
    first_name: str = "Amara",
    last_name: str = "Okafor",
    admin_code: str | None = None,
    student_id: str | None = None,
) -> Account:
    """Insert an account directly, skipping signup validation."""
    password_hash = bcrypt.hashpw(password.encode("utf-8"), _FAST_SALT).decode("utf-8")
    account = Account(
        email=email,
        password_hash=password_hash,
        first_name=first_name,
        last_name=last_name,
        admin_code=admin_code,
        student_id=student_id,
    )
    await store.insert(account)
    return account


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def stores():
    return AccountStores.in_memory()


@pytest.fixture
def core(config, stores, clock):
    return Core(config, stores, clock)


@pytest.fixture
def sessions(core):
    return core.services.session


@pytest.fixture
def bridge(core):
    return core.services.realtime


@pytest.fixture
async def member(stores):
    return await add_account(stores.for_kind(PrincipalKind.MEMBER), "amara@campus.edu", student_id=STUDENT_ID)


@pytest.fixture
async def admin(stores):
    return await add_account(
        stores.for_kind(PrincipalKind.ADMINISTRATOR),
        "dean@campus.edu",
        password=ADMIN_PASSWORD,
        first_name="Helen",
        last_name="Park",
        admin_code=ADMIN_CODES[0],
    )
