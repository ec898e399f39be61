"""
Pinboard API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present
  3. Initialise MinIO client & image bucket
  4. Expose Prometheus /metrics endpoint
"""
import logging

import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from pinboard.config import settings
from pinboard.database import init_db
from pinboard.telemetry import setup_tracing, instrument_app
from pinboard.clients.image_store import init_image_store
from pinboard.routers import pins, users

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Pinboard API (env=%s)", settings.environment)

    await init_db()
    init_image_store()              # sync — boto3 is not async

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")


app = FastAPI(
    title="Pinboard API",
    description="Image pins, comments and a follow graph behind cookie sessions.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS (the SPA sends the session cookie cross-origin) ──────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Origin", "Content-Type", "Authorization"],
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(users.router, prefix="/api/user", tags=["Users"])
app.include_router(pins.router, prefix="/api/pin", tags=["Pins"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}


def run() -> None:
    uvicorn.run("pinboard.main:app", host=settings.host, port=settings.port)
