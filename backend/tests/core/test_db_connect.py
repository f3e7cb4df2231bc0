"""Unit tests for core.db.connect and core.db.health: connect, execute, set_statement_timeout, cursor_to_dicts, is_fatal_error, ping."""

from unittest.mock import MagicMock, patch

import psycopg
import pymysql
import pytest
from pymysql.constants import CLIENT

from tareas_api.core.db import (
    connect,
    cursor_to_dicts,
    execute,
    is_fatal_error,
    ping,
    set_statement_timeout,
)
from tareas_api.models import ProductTypeEnum
from tests.utils.fake_db import FAKE_DATASOURCE, FakeDatabase

# --- connect ---


@patch("tareas_api.core.db.connect.pymysql.connect")
def test_connect_mysql_uses_found_rows(mock_connect: MagicMock) -> None:
    """rowcount must count matched rows, so FOUND_ROWS is always requested."""
    conn = connect(FAKE_DATASOURCE)
    assert conn is mock_connect.return_value
    kwargs = mock_connect.call_args.kwargs
    assert kwargs["host"] == "fake"
    assert kwargs["database"] == "lista_tareas_test"
    assert kwargs["user"] == "test"
    assert kwargs["client_flag"] & CLIENT.FOUND_ROWS


@patch("tareas_api.core.db.connect.psycopg.connect")
def test_connect_postgres(mock_connect: MagicMock) -> None:
    params = {**FAKE_DATASOURCE, "product_type": "postgres", "port": None}
    connect(params)
    kwargs = mock_connect.call_args.kwargs
    assert kwargs["dbname"] == "lista_tareas_test"
    assert kwargs["port"] == 5432


def test_connect_invalid_product_type() -> None:
    """connect() raises ValueError for unsupported product_type."""
    params = {**FAKE_DATASOURCE, "product_type": "oracle"}
    with pytest.raises(ValueError, match="oracle"):
        connect(params)


def test_connect_requires_host() -> None:
    params = {**FAKE_DATASOURCE, "host": None}
    with pytest.raises(ValueError, match="host"):
        connect(params)


# --- execute / cursor_to_dicts ---


@pytest.mark.parametrize(
    "product_type,expected",
    [
        (ProductTypeEnum.MYSQL, "SET SESSION max_execution_time = 5000"),
        (ProductTypeEnum.POSTGRES, "SET statement_timeout = 5000"),
    ],
)
def test_set_statement_timeout(product_type: ProductTypeEnum, expected: str) -> None:
    mock_conn = MagicMock()
    set_statement_timeout(mock_conn, product_type, 5)
    mock_conn.cursor.return_value.execute.assert_called_once_with(expected)
    mock_conn.cursor.return_value.close.assert_called_once()


@pytest.mark.parametrize("timeout", [None, 0])
def test_set_statement_timeout_disabled(timeout: float | None) -> None:
    mock_conn = MagicMock()
    set_statement_timeout(mock_conn, ProductTypeEnum.MYSQL, timeout)
    mock_conn.cursor.assert_not_called()


def test_execute_runs_statement_only() -> None:
    mock_conn = MagicMock()
    cur = execute(mock_conn, "SELECT 1", (1,))
    assert cur is mock_conn.cursor.return_value
    mock_conn.cursor.return_value.execute.assert_called_once_with("SELECT 1", (1,))


def test_cursor_to_dicts() -> None:
    cur = MagicMock()
    cur.description = [("id",), ("descripcion",)]
    cur.fetchall.return_value = [(1, "a"), (2, "b")]
    assert cursor_to_dicts(cur) == [
        {"id": 1, "descripcion": "a"},
        {"id": 2, "descripcion": "b"},
    ]


def test_cursor_to_dicts_without_result_set() -> None:
    cur = MagicMock()
    cur.description = None
    assert cursor_to_dicts(cur) == []


# --- is_fatal_error ---


@pytest.mark.parametrize(
    "exc,fatal",
    [
        (pymysql.err.OperationalError(2003, "Can't connect"), True),
        (pymysql.err.OperationalError(2006, "MySQL server has gone away"), True),
        (pymysql.err.OperationalError(2013, "Lost connection"), True),
        (pymysql.err.InterfaceError(0, ""), True),
        (ConnectionRefusedError(111, "Connection refused"), True),
        (ConnectionResetError(104, "Connection reset by peer"), True),
        (pymysql.err.OperationalError(1205, "Lock wait timeout exceeded"), False),
        (pymysql.err.ProgrammingError(1064, "syntax error"), False),
        (pymysql.err.IntegrityError(1062, "Duplicate entry"), False),
        (psycopg.InterfaceError("the connection is closed"), True),
        (psycopg.OperationalError("server closed the connection unexpectedly"), True),
        (psycopg.errors.QueryCanceled("canceling statement due to statement timeout"), False),
        (ValueError("nope"), False),
    ],
)
def test_is_fatal_error(exc: BaseException, fatal: bool) -> None:
    assert is_fatal_error(exc) is fatal


# --- ping ---


def test_ping_ok() -> None:
    fake_db = FakeDatabase()
    ping(fake_db.connect(FAKE_DATASOURCE))
    assert fake_db.statements == ["SELECT 1"]


def test_ping_propagates_driver_error() -> None:
    """Errors reach the caller so the connection manager can classify them."""
    conn = FakeDatabase().connect(FAKE_DATASOURCE)
    conn.close()
    with pytest.raises(pymysql.err.InterfaceError):
        ping(conn)
