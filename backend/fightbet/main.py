import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fightbet.config import settings
from fightbet.core.deps import build_login_throttle
from fightbet.core.errors import AppError, RateLimitError
from fightbet.core.logging_config import configure_logging
from fightbet.core.redis import close_redis
from fightbet.routers import admin, auth, bets, fighters, fights, notifications, wallet, ws
from fightbet.services.events import ConnectionManager
from fightbet.services.payments import build_payment_provider

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = asyncio.create_task(app.state.login_throttle.run_sweeper(settings.LOGIN_SWEEP_INTERVAL_SECONDS))
    logger.info("FightBet API started")
    yield
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await close_redis()


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="FightBet API", lifespan=lifespan)
    # Built here rather than in the lifespan so that in-process test clients,
    # which never run the lifespan, still see them.
    app.state.connections = ConnectionManager()
    app.state.login_throttle = build_login_throttle(settings)
    app.state.payment_provider = build_payment_provider(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppError, app_error_handler)

    for module in (auth, wallet, fighters, fights, bets, notifications, admin, ws):
        app.include_router(module.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
