"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from enrollproof.api.deps import get_store
from enrollproof.core.exceptions import RecordStoreError
from enrollproof.core.protocols import IRecordStore
from enrollproof.persistence.tables import EMPLOYERS

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
def ready(store: IRecordStore = Depends(get_store)):
    try:
        store.get(EMPLOYERS, {"id": "__readiness_probe__"})
    except RecordStoreError as exc:
        return JSONResponse({"status": "unavailable", "error": str(exc)}, status_code=503)
    return {"status": "ready"}
