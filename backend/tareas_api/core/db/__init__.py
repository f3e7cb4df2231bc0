"""
Task database access: driver helpers, ping and the connection manager.
"""

from .connect import (
    DRIVER_ERRORS,
    connect,
    cursor_to_dicts,
    execute,
    is_fatal_error,
    set_statement_timeout,
)
from .health import ping
from .manager import (
    ConnectionManager,
    ConnectionState,
    backoff_delay,
    build_connection_manager,
)

__all__ = [
    "DRIVER_ERRORS",
    "connect",
    "execute",
    "cursor_to_dicts",
    "is_fatal_error",
    "set_statement_timeout",
    "ping",
    "ConnectionManager",
    "ConnectionState",
    "backoff_delay",
    "build_connection_manager",
]
