import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("PAYMENT_PROVIDER_MODE", "mock")
os.environ.setdefault("LOGIN_THROTTLE_BACKEND", "memory")

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from fightbet.config import settings
from fightbet.core.deps import build_login_throttle
from fightbet.database import Base, get_db
from fightbet.main import app
from fightbet.models import User, UserRole, Wallet, Fighter, Fight, FightStatus
from fightbet.services.bet_engine import BetEngine
from fightbet.services.events import ConnectionManager, EventDispatcher
from fightbet.services.fights import FightService
from fightbet.services.notifications import NotificationService
from fightbet.services.transaction_log import TransactionLog
from fightbet.services.wallet_store import WalletStore

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_db():
    engine = create_async_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
    async def override_get_db():
        async with SessionLocal() as session:
            yield session
    app.dependency_overrides[get_db] = override_get_db
    app.state.login_throttle = build_login_throttle(settings)
    yield SessionLocal
    app.dependency_overrides.clear()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(test_db):
    async with test_db() as s:
        yield s


@pytest_asyncio.fixture
async def client(test_db):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def register_and_login(client, email: str, password: str = "password123", name: str = "Tester") -> dict:
    r = await client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
    assert r.status_code == 201, r.text
    r = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


async def make_user(session, email: str, balance: int = 0, role: UserRole = UserRole.user) -> User:
    user = User(email=email, name="Tester", password_hash="x", role=role)
    session.add(user)
    await session.flush()
    session.add(Wallet(user_id=user.id, balance=balance, bonus_balance=0, locked_balance=0))
    await session.commit()
    return user


async def set_balance(session_factory, user_id: int, balance: int) -> None:
    async with session_factory() as s:
        await s.execute(update(Wallet).where(Wallet.user_id == user_id).values(balance=balance))
        await s.commit()


async def promote(session_factory, email: str) -> None:
    async with session_factory() as s:
        await s.execute(update(User).where(User.email == email).values(role=UserRole.admin))
        await s.commit()


async def make_fight(session, odds_a="2.50", odds_b="1.60", status=FightStatus.SCHEDULED, starts_in=timedelta(days=1)) -> Fight:
    a = Fighter(name="Modou Lo")
    b = Fighter(name="Eumeu Sene")
    session.add_all([a, b])
    await session.flush()
    fight = Fight(
        title="Modou Lo vs Eumeu Sene",
        fighter_a_id=a.id,
        fighter_b_id=b.id,
        odds_a=Decimal(odds_a),
        odds_b=Decimal(odds_b),
        status=status,
        scheduled_at=datetime.now(timezone.utc) + starts_in,
    )
    session.add(fight)
    await session.commit()
    return fight


class Services:
    """Service graph around one session, wired the way core.deps wires it per request."""

    def __init__(self, session):
        self.events = EventDispatcher(ConnectionManager())
        self.wallets = WalletStore(session)
        self.ledger = TransactionLog(session, self.wallets)
        self.notifications = NotificationService(session, self.events)
        self.bets = BetEngine(session, self.ledger, self.notifications, self.events, settings)
        self.fights = FightService(session, self.bets, self.events)


@pytest_asyncio.fixture
async def services(session):
    return Services(session)
