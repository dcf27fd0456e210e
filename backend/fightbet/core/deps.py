"""Composition root: every service is built here from its collaborators.

Process-wide objects (socket registry, login throttle, payment provider) are
created once in main.create_app() and kept on app.state; everything else is
built per request around the request's database session.
"""
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fightbet.config import Settings, settings
from fightbet.core.redis import redis_client
from fightbet.core.security import decode_token
from fightbet.database import get_db
from fightbet.models.user import User, UserRole
from fightbet.services.bet_engine import BetEngine
from fightbet.services.cashier import Cashier
from fightbet.services.events import EventDispatcher
from fightbet.services.fights import FightService
from fightbet.services.login_throttle import LoginThrottle, MemoryAttemptStore, RedisAttemptStore
from fightbet.services.notifications import NotificationService
from fightbet.services.payments import PaymentProvider
from fightbet.services.transaction_log import TransactionLog
from fightbet.services.wallet_store import WalletStore

bearer_scheme = HTTPBearer(auto_error=False)


def build_login_throttle(cfg: Settings) -> LoginThrottle:
    if cfg.LOGIN_THROTTLE_BACKEND == "redis":
        store = RedisAttemptStore(redis_client())
    else:
        store = MemoryAttemptStore()
    return LoginThrottle(store, window_seconds=cfg.LOGIN_WINDOW_SECONDS, max_attempts=cfg.LOGIN_MAX_ATTEMPTS)


def get_settings() -> Settings:
    return settings


def client_ip(request: Request, trusted_hops: Optional[int] = None) -> str:
    """Address the login throttle keys on.

    X-Forwarded-For is read only when TRUSTED_PROXY_HOPS proxies sit in front,
    and then only the entry the outermost trusted proxy appended. Anything left
    of that is client-supplied.
    """
    hops = settings.TRUSTED_PROXY_HOPS if trusted_hops is None else trusted_hops
    peer = request.client.host if request.client else "unknown"
    if hops <= 0:
        return peer
    forwarded = [part.strip() for part in request.headers.get("x-forwarded-for", "").split(",") if part.strip()]
    if not forwarded:
        return peer
    return forwarded[max(0, len(forwarded) - hops)]


async def get_user_from_token(token: str, db: AsyncSession) -> Optional[User]:
    user_id = decode_token(token)
    if user_id is None:
        return None
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if creds is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Not authenticated")
    user = await get_user_from_token(creds.credentials, db)
    if user is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid or expired token")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Admin only")
    return user


def get_throttle(request: Request) -> LoginThrottle:
    return request.app.state.login_throttle


def get_events(request: Request) -> EventDispatcher:
    return EventDispatcher(request.app.state.connections)


def get_payment_provider(request: Request) -> PaymentProvider:
    return request.app.state.payment_provider


def get_wallet_store(db: AsyncSession = Depends(get_db)) -> WalletStore:
    return WalletStore(db)


def get_transaction_log(
    db: AsyncSession = Depends(get_db),
    wallets: WalletStore = Depends(get_wallet_store),
) -> TransactionLog:
    return TransactionLog(db, wallets)


def get_notifications(
    db: AsyncSession = Depends(get_db),
    events: EventDispatcher = Depends(get_events),
) -> NotificationService:
    return NotificationService(db, events)


def get_bet_engine(
    db: AsyncSession = Depends(get_db),
    ledger: TransactionLog = Depends(get_transaction_log),
    notifications: NotificationService = Depends(get_notifications),
    events: EventDispatcher = Depends(get_events),
    cfg: Settings = Depends(get_settings),
) -> BetEngine:
    return BetEngine(db, ledger, notifications, events, cfg)


def get_fight_service(
    db: AsyncSession = Depends(get_db),
    bets: BetEngine = Depends(get_bet_engine),
    events: EventDispatcher = Depends(get_events),
) -> FightService:
    return FightService(db, bets, events)


def get_cashier(
    db: AsyncSession = Depends(get_db),
    wallets: WalletStore = Depends(get_wallet_store),
    ledger: TransactionLog = Depends(get_transaction_log),
    provider: PaymentProvider = Depends(get_payment_provider),
    notifications: NotificationService = Depends(get_notifications),
    events: EventDispatcher = Depends(get_events),
) -> Cashier:
    return Cashier(db, wallets, ledger, provider, notifications, events)
