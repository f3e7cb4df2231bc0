from fastapi import APIRouter
from fastapi.responses import JSONResponse

from tareas_api.api.deps import ConnectionManagerDep
from tareas_api.core.health import liveness_check, readiness_check

router = APIRouter(prefix="/utils", tags=["utils"])


def _unavailable(message: str, failures: list[str]) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"success": False, "message": message, "data": failures},
    )


@router.get("/liveness/", response_model=None)
async def liveness() -> bool | JSONResponse:
    """Process probe. Never touches the task database."""
    ok, failures = liveness_check()
    return True if ok else _unavailable("Process unhealthy", failures)


@router.get("/health-check/", response_model=None)
async def health_check(manager: ConnectionManagerDep) -> bool | JSONResponse:
    """
    Readiness probe for load balancers.

    True while the connection manager holds a live handle that answers
    SELECT 1. Otherwise 503 with ``data`` naming the failed check, e.g.
    ``["database_connecting"]`` during a reconnect.
    """
    ok, failures = await readiness_check(manager)
    return True if ok else _unavailable("Service Unavailable", failures)
