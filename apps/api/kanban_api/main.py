from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.trustedhost import TrustedHostMiddleware

from kanban_api.config import settings
from kanban_api.db import SessionLocal
from kanban_api.errors import DomainError
from kanban_api.notifications.service import dispatch_due_soon_once
from kanban_api.routers.activities import router as activities_router
from kanban_api.routers.attachments import router as attachments_router
from kanban_api.routers.auth import router as auth_router
from kanban_api.routers.boards import router as boards_router
from kanban_api.routers.cards import router as cards_router
from kanban_api.routers.columns import router as columns_router
from kanban_api.routers.comments import router as comments_router
from kanban_api.routers.dashboard import router as dashboard_router
from kanban_api.routers.labels import router as labels_router
from kanban_api.routers.notifications import router as notifications_router
from kanban_api.routers.workspaces import router as workspaces_router
from kanban_api.routers.ws import router as ws_router

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
  title="Kanban API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(DomainError)
async def _domain_error_handler(_: Request, exc: DomainError) -> JSONResponse:
  return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(auth_router)
app.include_router(workspaces_router)
app.include_router(boards_router)
app.include_router(columns_router)
app.include_router(cards_router)
app.include_router(comments_router)
app.include_router(labels_router)
app.include_router(attachments_router)
app.include_router(activities_router)
app.include_router(notifications_router)
app.include_router(dashboard_router)
app.include_router(ws_router)


@app.middleware("http")
async def _security_headers_middleware(request, call_next):
  response = await call_next(request)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


_due_soon_loop_task: asyncio.Task | None = None


async def _due_soon_loop() -> None:
  while True:
    await asyncio.sleep(max(10, int(settings.due_soon_scan_interval_seconds)))
    async with SessionLocal() as db:
      try:
        await dispatch_due_soon_once(db)
      except Exception:
        # Keep the loop alive; the next sweep retries.
        logger.exception("due-soon sweep failed")
        await db.rollback()


@app.on_event("startup")
async def _startup() -> None:
  global _due_soon_loop_task
  if settings.is_test_db():
    return
  if settings.due_soon_scan_enabled and _due_soon_loop_task is None:
    _due_soon_loop_task = asyncio.create_task(_due_soon_loop())
