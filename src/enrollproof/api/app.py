"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from enrollproof.api.routes import admin, health, notice
from enrollproof.core.config import AppSettings
from enrollproof.core.exceptions import (
    CacheError,
    EmailSendError,
    EmployeeNotFound,
    EmployerNotFound,
    EnrollProofError,
    FileStoreError,
    InvalidRequest,
    MissingPortalLink,
    NoActivePlanYear,
    PlanYearNotFound,
    RecordStoreError,
    SenderNotConnected,
    SpreadsheetUnreadable,
    StorageWriteFailed,
    TokenRefreshError,
)
from enrollproof.core.logging import configure_logging
from enrollproof.core.protocols import ICacheBackend, IFileStore, IRecordStore
from enrollproof.persistence import create_persistence
from enrollproof.persistence.memory_backend import MemoryCacheBackend
from enrollproof.services.compliance.reconcile import ComplianceImportService
from enrollproof.services.compliance.send_reminders import ReminderSendService
from enrollproof.services.compliance.table import ComplianceTableService
from enrollproof.services.engagement.notice_actions import NoticeActionService
from enrollproof.services.notify.dispatcher import NotificationDispatcher
from enrollproof.services.roster.notice_send import NoticeSendService
from enrollproof.services.roster.roster_import import RosterImportService

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[EnrollProofError], int], ...] = (
    (EmployerNotFound, 404),
    (EmployeeNotFound, 404),
    (PlanYearNotFound, 404),
    (InvalidRequest, 400),
    (NoActivePlanYear, 400),
    (SpreadsheetUnreadable, 400),
    (MissingPortalLink, 400),
    (SenderNotConnected, 409),
    (TokenRefreshError, 502),
    (EmailSendError, 502),
    (StorageWriteFailed, 500),
    (RecordStoreError, 500),
    (CacheError, 500),
    (FileStoreError, 500),
)


def status_for(exc: EnrollProofError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


async def handle_enrollproof_error(request: Request, exc: EnrollProofError) -> JSONResponse:
    status = status_for(exc)
    body: dict[str, Any] = {"ok": False, "error": str(exc)}
    if isinstance(exc, StorageWriteFailed):
        body.update(stage=exc.stage, batch_index=exc.batch_index)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(body, status_code=status)


def wire_services(
    app: FastAPI,
    settings: AppSettings,
    store: IRecordStore,
    cache: ICacheBackend,
    file_store: IFileStore | None,
    http_client: httpx.Client | None = None,
) -> None:
    """Attach backends and services to ``app.state`` for the route dependencies."""
    dispatcher = NotificationDispatcher(settings=settings, store=store, cache=cache, http_client=http_client)
    table = ComplianceTableService(settings=settings, store=store)

    app.state.settings = settings
    app.state.store = store
    app.state.cache = cache
    app.state.file_store = file_store
    app.state.dispatcher = dispatcher
    app.state.compliance_import = ComplianceImportService(settings=settings, store=store)
    app.state.compliance_table = table
    app.state.reminders = ReminderSendService(settings=settings, store=store, dispatcher=dispatcher, table=table)
    app.state.roster_import = RosterImportService(settings=settings, store=store)
    app.state.notice_send = NoticeSendService(settings=settings, store=store, dispatcher=dispatcher)
    app.state.notice_actions = NoticeActionService(store=store)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize and tear down application resources."""
    overrides: dict[str, Any] = app.state.overrides
    settings = overrides.get("settings") or AppSettings()
    configure_logging(settings.log_level)

    if overrides.get("store") is not None:
        store = overrides["store"]
        cache = overrides.get("cache") or MemoryCacheBackend()
        file_store = overrides.get("file_store")
    else:
        store, cache, file_store = create_persistence(settings)

    wire_services(app, settings, store, cache, file_store, overrides.get("http_client"))
    logger.info("EnrollProof API started (environment=%s, store=%s)", settings.environment, settings.store.backend)
    yield
    app.state.dispatcher.close()


def create_app(
    settings: AppSettings | None = None,
    *,
    store: IRecordStore | None = None,
    cache: ICacheBackend | None = None,
    file_store: IFileStore | None = None,
    http_client: httpx.Client | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Backends passed here replace the ones ``create_persistence`` would build.
    """
    app = FastAPI(
        title="EnrollProof Benefits Enrollment and Compliance",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.overrides = {
        "settings": settings,
        "store": store,
        "cache": cache,
        "file_store": file_store,
        "http_client": http_client,
    }
    app.add_exception_handler(EnrollProofError, handle_enrollproof_error)
    app.include_router(health.router)
    app.include_router(admin.router, prefix="/admin")
    app.include_router(notice.router, prefix="/api")
    return app
