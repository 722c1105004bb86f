from __future__ import annotations

from enum import Enum

from fastapi import Request
from fastapi.responses import JSONResponse

# raised by domain code, mapped to JSON by crm_error_handler; never retried

def _label(value: object) -> str:
    return value.value if isinstance(value, Enum) else str(value)

class CrmError(Exception):
    status_code = 400
    detail = "bad_request"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.detail)
        self.message = message or self.detail

class CircularDependencyError(CrmError):
    status_code = 400
    detail = "circular_dependency"

    def __init__(self, task_id: object, depends_on_id: object):
        if task_id == depends_on_id:
            message = f"task {task_id} cannot depend on itself"
        else:
            message = f"task {task_id} cannot depend on {depends_on_id}: it would close a cycle"
        super().__init__(message)
        self.task_id = task_id
        self.depends_on_id = depends_on_id

class InvalidTransitionError(CrmError):
    status_code = 400
    detail = "invalid_transition"

    def __init__(self, current: object, requested: object, allowed: list | None = None):
        allowed = list(allowed or [])
        names = ", ".join(_label(a) for a in allowed) or "nothing (terminal state)"
        super().__init__(
            f"cannot transition from {_label(current)} to {_label(requested)}; allowed: {names}"
        )
        self.current = current
        self.requested = requested
        self.allowed = allowed

class InvalidRequestError(CrmError):
    status_code = 400
    detail = "invalid_request"

class InsufficientPermissionsError(CrmError):
    status_code = 403
    detail = "insufficient_permissions"

class NotFoundError(CrmError):
    status_code = 404
    detail = "not_found"

    def __init__(self, kind: str, resource_id: object = None):
        message = f"{kind} not found" if resource_id is None else f"{kind} {resource_id} not found"
        super().__init__(message)
        self.kind = kind
        self.resource_id = resource_id

class ConflictError(CrmError):
    status_code = 409
    detail = "conflict"

async def crm_error_handler(request: Request, exc: CrmError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.detail},
    )
