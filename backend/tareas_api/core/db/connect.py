"""
DB-API helpers for the task database.

Uses pymysql (MySQL) or psycopg (PostgreSQL) based on product_type.
Also classifies driver errors into fatal (connection must be replaced) and
non-fatal ones.
"""

from typing import Any

import psycopg
import pymysql
from pymysql.constants import CLIENT

from tareas_api.core.config import settings
from tareas_api.models import ProductTypeEnum

# Exceptions a driver call may raise. Anything else is a programming error.
DRIVER_ERRORS: tuple[type[BaseException], ...] = (
    pymysql.MySQLError,
    psycopg.Error,
    OSError,
)

# MySQL client error codes that leave the connection unusable.
_MYSQL_FATAL_CODES = frozenset(
    {
        2003,  # CR_CONN_HOST_ERROR: connection refused
        2006,  # CR_SERVER_GONE_ERROR
        2013,  # CR_SERVER_LOST
        2055,  # CR_SERVER_LOST_EXTENDED
    }
)


def _get(datasource: Any, key: str) -> Any:
    """Get attribute or dict key from a settings object or dict."""
    if isinstance(datasource, dict):
        return datasource.get(key)
    return getattr(datasource, key, None)


def resolve_product_type(
    datasource: Any, product_type: ProductTypeEnum | None
) -> ProductTypeEnum:
    pt = product_type or _get(datasource, "product_type")
    if pt is None:
        raise ValueError("product_type is required (from datasource or argument)")
    if isinstance(pt, str):
        return ProductTypeEnum(pt)
    return pt


def connect(
    datasource: Any,
    *,
    product_type: ProductTypeEnum | None = None,
) -> Any:
    """
    Open a connection to the task database.

    - datasource: dict (see Settings.database_params) or object with
      host, port, database, username, password and product_type.
    - product_type: override when datasource has no product_type.
    """
    pt = resolve_product_type(datasource, product_type)
    host = _get(datasource, "host")
    database = _get(datasource, "database")
    username = _get(datasource, "username")
    password = _get(datasource, "password")
    default_port = 3306 if pt == ProductTypeEnum.MYSQL else 5432
    port = _get(datasource, "port") or default_port

    for name, val in [
        ("host", host),
        ("database", database),
        ("username", username),
    ]:
        if val is None:
            raise ValueError(f"datasource must provide {name}")
    password = password if password is not None else ""

    timeout = settings.DB_CONNECT_TIMEOUT

    if pt == ProductTypeEnum.MYSQL:
        return pymysql.connect(
            host=host,
            port=int(port),
            database=database,
            user=username,
            password=password,
            connect_timeout=timeout,
            # rowcount = matched rows, so an UPDATE that changes nothing is not "not found".
            client_flag=CLIENT.FOUND_ROWS,
        )
    if pt == ProductTypeEnum.POSTGRES:
        return psycopg.connect(
            host=host,
            port=int(port),
            dbname=database,
            user=username,
            password=password,
            connect_timeout=timeout,
        )
    raise ValueError(f"Unsupported product_type: {pt}")


def set_statement_timeout(
    conn: Any, product_type: ProductTypeEnum, timeout_sec: float | None
) -> None:
    """
    Apply a session-wide statement timeout (Postgres: statement_timeout,
    MySQL: max_execution_time). Called once per connection; None or 0 leaves
    the server default. The caller commits.
    """
    if not timeout_sec or timeout_sec <= 0:
        return
    timeout_ms = int(timeout_sec * 1000)
    cur = conn.cursor()
    try:
        if product_type == ProductTypeEnum.POSTGRES:
            cur.execute(f"SET statement_timeout = {timeout_ms}")
        elif product_type == ProductTypeEnum.MYSQL:
            cur.execute(f"SET SESSION max_execution_time = {timeout_ms}")
    finally:
        cur.close()


def execute(
    conn: Any,
    sql: str,
    params: dict | list | tuple | None = None,
) -> Any:
    """Execute SQL and return the cursor. Caller uses cursor_to_dicts(cursor) or cursor.rowcount."""
    cur = conn.cursor()
    if params is not None:
        cur.execute(sql, params)
    else:
        cur.execute(sql)
    return cur


def cursor_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor result to list of dicts. Works for both psycopg and pymysql."""
    desc = cursor.description
    if not desc:
        return []
    names = [d[0] for d in desc]
    return [dict(zip(names, row, strict=True)) for row in cursor.fetchall()]


def is_fatal_error(exc: BaseException) -> bool:
    """
    True when *exc* means the connection itself is broken.

    Fatal: lost connection / server gone away (protocol desync), connection
    refused, and driver errors raised on an already closed connection.
    """
    if isinstance(exc, (ConnectionRefusedError, ConnectionResetError, BrokenPipeError)):
        return True
    if isinstance(exc, pymysql.err.InterfaceError):
        return True
    if isinstance(exc, pymysql.err.OperationalError):
        code = exc.args[0] if exc.args else None
        return code in _MYSQL_FATAL_CODES
    if isinstance(exc, psycopg.InterfaceError):
        return True
    if isinstance(exc, psycopg.OperationalError):
        # Query-level operational errors (e.g. statement timeout) have a sqlstate;
        # connection-level failures do not.
        return getattr(exc, "sqlstate", None) is None
    return False
