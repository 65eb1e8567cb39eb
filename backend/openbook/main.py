import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from openbook.config import settings
from openbook.core.errors import register_error_handlers
from openbook.core.redis import close_redis
from openbook.routers import admin, auth, deposit, invite, mining, notifications, prices, trade, wallet, withdraw
from openbook.services.mining import run_completion_sweep

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    scheduler.add_job(
        run_completion_sweep,
        "interval",
        seconds=settings.MINING_SWEEP_INTERVAL_SEC,
        id="mining_completion_sweep",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("scheduler started; mining sweep every %ss", settings.MINING_SWEEP_INTERVAL_SEC)
    yield
    scheduler.shutdown()
    await close_redis()

app = FastAPI(title="OpenBook API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth.router)
app.include_router(invite.router)
app.include_router(wallet.router)
app.include_router(mining.router)
app.include_router(deposit.router)
app.include_router(withdraw.router)
app.include_router(trade.router)
app.include_router(notifications.router)
app.include_router(prices.router)
app.include_router(admin.router)

@app.get("/health")
async def health():
    return {"ok": True, "status": "ok"}
