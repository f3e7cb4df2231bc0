"""
Health-check helpers for liveness and readiness probes.

Liveness: is the process alive and not deadlocked?  (cheap, no I/O)
Readiness: can it serve traffic?  (task database connected and answering)
"""

import logging

from tareas_api.core.db import ConnectionManager

logger = logging.getLogger(__name__)


def liveness_check() -> tuple[bool, list[str]]:
    """
    Lightweight liveness probe; just confirms the Python process is responsive.
    No I/O, no DB calls.  Return format matches readiness_check for consistency.
    """
    return (True, [])


async def readiness_check(manager: ConnectionManager) -> tuple[bool, list[str]]:
    """
    Check the task database through the connection manager.
    Returns (ok, list of failure messages).
    """
    failures: list[str] = []

    if not manager.is_connected:
        failures.append(f"database_{manager.state.value}")
    elif not await manager.check():
        logger.warning("Readiness: database ping failed")
        failures.append("database_ping")

    return (len(failures) == 0, failures)
