from typing import Annotated

from fastapi import Depends, Request

from tareas_api.core.db import ConnectionManager


def get_connection_manager(request: Request) -> ConnectionManager:
    return request.app.state.db_manager


ConnectionManagerDep = Annotated[ConnectionManager, Depends(get_connection_manager)]


def require_connection(manager: ConnectionManagerDep) -> ConnectionManager:
    """
    Fail with 503 before any input parsing when there is no live connection.

    FastAPI resolves dependencies before path and body parameters, so a
    disconnected database is reported ahead of validation errors.
    """
    manager.require_connected()
    return manager


ConnectedManagerDep = Annotated[ConnectionManager, Depends(require_connection)]
