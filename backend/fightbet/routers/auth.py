from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from fightbet.database import get_db
from fightbet.core.deps import get_current_user, get_throttle, client_ip
from fightbet.core.errors import AuthenticationError, ConflictError, RateLimitError
from fightbet.models.user import User
from fightbet.models.wallet import Wallet
from fightbet.schemas.auth import RegisterRequest, LoginRequest, TokenResponse
from fightbet.core.security import hash_password, verify_password, create_access_token
from fightbet.services.login_throttle import LoginThrottle

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/register", status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    conditions = [User.email == body.email]
    if body.phone:
        conditions.append(User.phone == body.phone)
    existing = await db.scalar(select(User).where(or_(*conditions)))
    if existing:
        raise ConflictError("Email or phone already registered")
    user = User(email=body.email, phone=body.phone, name=body.name, password_hash=hash_password(body.password))
    db.add(user)
    try:
        await db.flush()
        db.add(Wallet(user_id=user.id, balance=0, bonus_balance=0, locked_balance=0))
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email or phone already registered")
    return {"message": "registered", "id": user.id}

@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    throttle: LoginThrottle = Depends(get_throttle),
):
    ip = client_ip(request)
    status_ = await throttle.attempt_status(ip)
    if status_ and status_["is_blocked"]:
        raise RateLimitError(
            "Too many failed login attempts, try again later",
            remaining=0, limit=throttle.max_attempts, reset_time=status_["reset_time"],
        )

    user = await db.scalar(select(User).where(User.email == body.email))
    if not user or not verify_password(body.password, user.password_hash):
        attempt = await throttle.record_failed_attempt(ip)
        if attempt.is_blocked:
            raise RateLimitError(
                "Too many failed login attempts, try again later",
                remaining=attempt.remaining, limit=throttle.max_attempts, reset_time=attempt.reset_time,
            )
        raise AuthenticationError("Invalid credentials", remaining_attempts=attempt.remaining)
    if not user.is_active:
        raise AuthenticationError("Account disabled")

    await throttle.clear_failed_attempts(ip)
    return TokenResponse(access_token=create_access_token(user.id))

@router.get("/me")
async def me(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    wallet = await db.scalar(select(Wallet).where(Wallet.user_id == user.id))
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "role": user.role.value,
        "is_active": user.is_active,
        "balance": wallet.balance if wallet else 0,
    }
