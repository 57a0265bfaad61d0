from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from api.routes import router
from contextlib import asynccontextmanager
import asyncio
import logging
import os
import time
import sentry_sdk

from logging_config import setup_logging
from engine.pipeline import Radar

setup_logging()
logger = logging.getLogger(__name__)


# Initialize Sentry if DSN is configured
_sentry_dsn = os.getenv("SENTRY_DSN", "")
if _sentry_dsn:
    sentry_sdk.init(
        dsn=_sentry_dsn,
        traces_sample_rate=0.1,
        environment=os.getenv("ENVIRONMENT", "production"),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Beta Radar starting")
    radar = Radar()
    app.state.radar = radar

    stop = asyncio.Event()
    task = asyncio.create_task(radar.run(stop))
    logger.info("Poll loop started (every %ds)", radar.poll_interval)

    yield

    stop.set()
    task.cancel()
    await radar.aclose()
    logger.info("Beta Radar shutting down")


app = FastAPI(
    title="Beta Radar",
    description="Narrative beta-play detection and alpha lifecycle tracking for Solana memecoins",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round(time.time() - start, 3)
    logger.info("request | %s %s | %s | %.3fs", request.method, request.url.path, response.status_code, duration)
    return response


app.include_router(router, prefix="/api")


@app.get("/health")
async def health(request: Request):
    radar = getattr(request.app.state, "radar", None)
    return {
        "status": "ok",
        "service": "beta-radar",
        "last_refresh": radar.last_refresh if radar else None,
        "poll_interval_seconds": radar.poll_interval if radar else None,
    }
