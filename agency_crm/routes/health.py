from fastapi import APIRouter
from fastapi.responses import JSONResponse

from agency_crm.auth.tokens import now_utc
from agency_crm.db import db_ping
from agency_crm.redis_client import redis_ping

router = APIRouter(tags=["health"])

@router.get("/health")
def health() -> dict:
    return {"status": "ok", "timestamp": now_utc().isoformat()}

# readiness check: db is required, redis only degrades realtime events
@router.get("/ready")
def ready():
    checks = {"db": db_ping(), "redis": redis_ping()}
    ok = checks["db"]

    body: dict = {"status": "ok" if ok else "unready", "checks": checks}
    if ok and not checks["redis"]:
        body["status"] = "degraded"

    return JSONResponse(status_code=200 if ok else 503, content=body)
