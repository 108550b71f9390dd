from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from formbuilder.utils import now_utc, to_js_iso

router = APIRouter()


@router.get("/api/health", tags=["system"])
async def health() -> JSONResponse:
    return JSONResponse({"status": "OK", "timestamp": to_js_iso(now_utc())})
