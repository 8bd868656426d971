"""Pytest fixtures for the onboarding backend."""

from collections.abc import AsyncIterator, Iterator
from pathlib import Path
from uuid import uuid4

from alembic import command
from alembic.config import Config
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from api.deps import get_db
from app import create_app
from core import BadRequestError, hash_password
from core.config import settings
from models import Account
from services import RateLimiter, set_rate_limiter
from services.auth import OAuthProfile, SqlAccountDirectory, TokenManager, set_oauth_verifier
from services.notifications import set_notification_dispatcher
from services.registration import RegistrationManager

settings.app_env = "test"
settings.bcrypt_rounds = 4
settings.google_client_id = "test-google-client"


def _run_alembic_migrations(database_url: str) -> None:
    """Apply Alembic migrations to the given database URL."""
    backend_dir = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(backend_dir / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(backend_dir / "alembic"))
    alembic_cfg.attributes["configure_logger"] = False

    original_database_url = settings.database_url
    try:
        settings.database_url = database_url
        command.upgrade(alembic_cfg, "head")
    finally:
        settings.database_url = original_database_url


@pytest.fixture(scope="session")
def test_database_url(tmp_path_factory) -> str:
    """Create and migrate a file-backed SQLite database for tests."""
    db_dir = tmp_path_factory.mktemp("sqlite")
    db_path = db_dir / "onboarding-test.db"
    database_url = f"sqlite+aiosqlite:///{db_path}"
    _run_alembic_migrations(database_url)
    return database_url


@pytest_asyncio.fixture(scope="session")
async def test_engine(test_database_url: str) -> AsyncIterator:
    """Create an async engine bound to the migrated SQLite test database."""
    engine = create_async_engine(
        test_database_url,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


@pytest.fixture(scope="session")
def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    """Return a session factory bound to the test engine."""
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture(scope="session")
def app(session_maker) -> Iterator[FastAPI]:
    """Create the FastAPI app with a test database dependency override."""
    application = create_app()

    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    yield application


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Return an HTTPX async client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture(autouse=True)
async def clean_database(session_maker) -> AsyncIterator[None]:
    """Clear tables before each test to guarantee isolation."""
    async with session_maker() as session:
        for table in reversed(SQLModel.metadata.sorted_tables):
            await session.execute(table.delete())
        await session.commit()
    yield


@pytest_asyncio.fixture()
async def db_session(session_maker) -> AsyncIterator[AsyncSession]:
    """Provide a raw database session to tests."""
    async with session_maker() as session:
        yield session


class _InMemoryRedis:
    def __init__(self) -> None:
        self.data: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        value = self.data.get(key, 0) + 1
        self.data[key] = value
        return value

    async def expire(self, key: str, ttl: int) -> None:  # pragma: no cover - noop
        return None


@pytest.fixture(autouse=True)
def _rate_limiter_stub() -> Iterator[None]:
    limiter = RateLimiter(_InMemoryRedis(), limit=1_000, window_seconds=60)
    set_rate_limiter(limiter)
    yield
    set_rate_limiter(None)


class RecordingDispatcher:
    """Captures outbound notifications instead of sending them."""

    def __init__(self) -> None:
        self.verifications: list[tuple[str, str, str]] = []
        self.welcomes: list[tuple[str, str]] = []
        self.password_resets: list[tuple[str, str]] = []
        self.fail = False

    def _maybe_fail(self) -> None:
        if self.fail:
            raise RuntimeError("mail transport unavailable")

    async def send_verification(
        self,
        email: str,
        verification_token: str,
        session_token: str,
    ) -> None:
        self._maybe_fail()
        self.verifications.append((email, verification_token, session_token))

    async def send_welcome(self, email: str, first_name: str) -> None:
        self._maybe_fail()
        self.welcomes.append((email, first_name))

    async def send_password_reset(self, email: str, reset_token: str) -> None:
        self._maybe_fail()
        self.password_resets.append((email, reset_token))


@pytest.fixture(autouse=True)
def dispatcher() -> Iterator[RecordingDispatcher]:
    recording = RecordingDispatcher()
    set_notification_dispatcher(recording)
    yield recording
    set_notification_dispatcher(None)


class FakeOAuthVerifier:
    """Maps ID tokens to canned provider profiles."""

    def __init__(self) -> None:
        self.profiles: dict[str, OAuthProfile] = {}

    def register(self, token: str, **overrides: str) -> OAuthProfile:
        fields = {
            "provider": "google",
            "subject": f"google-{token}",
            "email": f"{token}@gmail.com",
            "name": "Grace Hopper",
            "given_name": "Grace",
            "family_name": "Hopper",
        }
        fields.update(overrides)
        profile = OAuthProfile(**fields)
        self.profiles[token] = profile
        return profile

    async def verify(self, token: str) -> OAuthProfile:
        try:
            return self.profiles[token]
        except KeyError as exc:
            raise BadRequestError("Invalid Google token") from exc


@pytest.fixture(autouse=True)
def oauth_verifier() -> Iterator[FakeOAuthVerifier]:
    verifier = FakeOAuthVerifier()
    set_oauth_verifier(verifier)
    yield verifier
    set_oauth_verifier(None)


@pytest.fixture()
def token_manager(db_session: AsyncSession, dispatcher: RecordingDispatcher) -> TokenManager:
    return TokenManager(db_session, SqlAccountDirectory(db_session), dispatcher)


@pytest.fixture()
def registration_manager(
    db_session: AsyncSession,
    token_manager: TokenManager,
    dispatcher: RecordingDispatcher,
) -> RegistrationManager:
    return RegistrationManager(
        db_session,
        token_manager.directory,
        token_manager,
        dispatcher,
    )


DEFAULT_PASSWORD = "Secr3t!Pass"


@pytest.fixture()
def account_factory(session_maker):
    """Persist an account directly, bypassing the registration wizard."""

    async def _create(**overrides) -> Account:
        fields = {
            "email": f"merchant-{uuid4().hex[:8]}@example.com",
            "password_hash": hash_password(DEFAULT_PASSWORD),
            "first_name": "Ada",
            "last_name": "Lovelace",
            "shop_handle": f"shop-{uuid4().hex[:8]}",
            "business_name": "Analytical Engines",
            "business_description": "Mechanical computation on demand",
            "business_type": "services",
            "country": "GB",
            "region": "London",
            "sub_region": "Marylebone",
            "address": "12 Baker Street",
            "email_verified": True,
        }
        fields.update(overrides)
        async with session_maker() as session:
            account = Account(**fields)
            session.add(account)
            await session.commit()
            return account

    return _create
