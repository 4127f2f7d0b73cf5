from __future__ import annotations

import logging
from time import monotonic

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ztask.config import settings
from ztask.db import create_schema
from ztask.logging_setup import configure_logging
from ztask.metrics import runtime_metrics
from ztask.routers.history import router as history_router
from ztask.routers.invitations import router as invitations_router
from ztask.routers.notifications import router as notifications_router
from ztask.routers.system_status import router as system_status_router
from ztask.routers.user_data import router as user_data_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="z-task storage API", version="0.1.0")

app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)

app.include_router(user_data_router)
app.include_router(history_router)
app.include_router(invitations_router)
app.include_router(notifications_router)
app.include_router(system_status_router)


@app.middleware("http")
async def _request_metrics_middleware(request, call_next):
  start = monotonic()
  response = await call_next(request)
  elapsed_ms = (monotonic() - start) * 1000.0
  runtime_metrics.observe_request(response.status_code, elapsed_ms)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


@app.on_event("startup")
async def _startup() -> None:
  if not settings.app_secret or settings.app_secret.strip().lower() == "dev-secret-change-me":
    logger.warning("APP_SECRET is the development placeholder; API tokens are hashed with a public key")
  await create_schema()
  logger.info("storage API %s ready (%s)", settings.app_version, settings.database_url.split("://", 1)[0])
