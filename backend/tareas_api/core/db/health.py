"""
Connection health check for the task database.
"""

from typing import Any

from .connect import execute


def ping(conn: Any) -> None:
    """Run SELECT 1; driver errors propagate so callers can classify them."""
    cur = execute(conn, "SELECT 1")
    try:
        cur.fetchone()
    finally:
        cur.close()
