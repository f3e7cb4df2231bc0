"""
Connection manager for the single task-database connection.

Owns the connection lifecycle: DISCONNECTED -> CONNECTING -> CONNECTED, back
to CONNECTING on a fatal error, and DISCONNECTED once retries are exhausted.
Handlers never touch the connection directly; they pass a callable to run(),
which executes it in a worker thread while holding the connection lock.
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable, Coroutine
from enum import Enum
from typing import Any, Literal, TypeVar

from tareas_api.core.config import settings
from tareas_api.core.exceptions import (
    ConnectionFailedError,
    FatalConnectionError,
    QueryTimeoutError,
    ServiceUnavailableError,
    StorageError,
)
from tareas_api.models import CREATE_TABLE_SQL

from .connect import (
    DRIVER_ERRORS,
    connect,
    execute,
    is_fatal_error,
    resolve_product_type,
    set_statement_timeout,
)
from .health import ping

_log = logging.getLogger(__name__)

T = TypeVar("T")

BackoffStrategy = Literal["exponential", "linear"]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def backoff_delay(
    retry_count: int, base_delay: float, strategy: BackoffStrategy = "exponential"
) -> float:
    """
    Delay before retry number *retry_count* (1-based).

    exponential: base * 2**retry_count; linear: base * retry_count.
    Both grow strictly with retry_count for a positive base.
    """
    if strategy == "linear":
        return base_delay * retry_count
    return base_delay * (2**retry_count)


class ConnectionManager:
    """Single-connection owner with reconnect-with-backoff."""

    def __init__(
        self,
        datasource: Any,
        *,
        max_retries: int = 10,
        base_delay: float = 1.0,
        backoff: BackoffStrategy = "exponential",
        query_timeout: float | None = None,
        ping_interval: float = 0,
        create_table: bool = False,
        on_connected: Callable[[Any], None] | None = None,
        on_failure: Callable[[ConnectionFailedError], None] | None = None,
        connect_fn: Callable[[Any], Any] = connect,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if base_delay <= 0:
            raise ValueError("base_delay must be > 0")
        self._datasource = datasource
        self.product_type = resolve_product_type(datasource, None)
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._backoff: BackoffStrategy = backoff
        self._query_timeout = query_timeout if query_timeout and query_timeout > 0 else None
        self._ping_interval = ping_interval
        self._create_table = create_table
        self._on_connected = on_connected
        self._on_failure = on_failure
        self._connect_fn = connect_fn
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._conn: Any = None
        self._retry_count = 0
        # Guards the handle: held by every query and by replacement.
        self._lock = threading.Lock()
        # One connection attempt in flight at a time.
        self._connect_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._monitor_task: asyncio.Task[Any] | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._conn is not None

    def require_connected(self) -> None:
        """Raise ServiceUnavailableError unless a live connection exists."""
        if not self.is_connected:
            raise ServiceUnavailableError()

    def backoff_delay(self, retry_count: int) -> float:
        return backoff_delay(retry_count, self._base_delay, self._backoff)

    # ------------------------------------------------------------------
    # Connecting
    # ------------------------------------------------------------------

    async def connect(self) -> Any:
        """
        Open the connection, retrying with backoff.

        Returns the live connection. Raises ConnectionFailedError after
        max_retries failed attempts; the manager is then DISCONNECTED until
        connect() is called again. Concurrent callers share one attempt.
        """
        async with self._connect_lock:
            if self.is_connected:
                return self._conn
            return await self._connect_with_retry()

    def start_connecting(self) -> asyncio.Task[Any]:
        """Run connect() in the background; close() cancels it."""
        return self._spawn(self._connect_quietly())

    async def _connect_with_retry(self) -> Any:
        self._state = ConnectionState.CONNECTING
        self._retry_count = 0
        while True:
            _log.info(
                "Connecting to %s database %s (attempt %d of %d)",
                self.product_type.value,
                self._describe_target(),
                self._retry_count + 1,
                self._max_retries,
            )
            try:
                conn = await asyncio.to_thread(self._open)
            except DRIVER_ERRORS as exc:
                self._retry_count += 1
                _log.error("Could not connect to the database: %s", exc)
                if self._retry_count >= self._max_retries:
                    raise self._give_up(exc) from exc
                delay = self.backoff_delay(self._retry_count)
                _log.info("Retrying database connection in %.1fs", delay)
                await self._sleep(delay)
                continue

            self._retry_count = 0
            self._state = ConnectionState.CONNECTED
            _log.info("Connected to the database")
            if self._on_connected is not None:
                self._on_connected(conn)
            return conn

    def _give_up(self, exc: BaseException) -> ConnectionFailedError:
        self._state = ConnectionState.DISCONNECTED
        _log.error(
            "Maximum number of database connection retries (%d) reached",
            self._max_retries,
        )
        err = ConnectionFailedError(details=str(exc))
        if self._on_failure is not None:
            self._on_failure(err)
        return err

    async def _connect_quietly(self) -> None:
        try:
            await self.connect()
        except ConnectionFailedError:
            # Already logged and reported through on_failure.
            return

    def _open(self) -> Any:
        """Close any previous connection, then open and install a new one."""
        with self._lock:
            self._discard_locked()
            conn = self._connect_fn(self._datasource)
            try:
                set_statement_timeout(conn, self.product_type, self._query_timeout)
                if self._create_table:
                    self._ensure_table(conn)
                conn.commit()
            except DRIVER_ERRORS:
                self._close_quiet(conn)
                raise
            self._conn = conn
            return conn

    def _ensure_table(self, conn: Any) -> None:
        cur = execute(conn, CREATE_TABLE_SQL[self.product_type])
        cur.close()

    def _describe_target(self) -> str:
        if isinstance(self._datasource, dict):
            return f"{self._datasource.get('database')}@{self._datasource.get('host')}"
        return repr(self._datasource)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def run(
        self, fn: Callable[[Any], T], *, error_message: str | None = None
    ) -> T:
        """
        Run ``fn(conn)`` in a worker thread and return its result.

        - ServiceUnavailableError when not connected (fn is not called).
        - QueryTimeoutError when the call exceeds query_timeout.
        - StorageError(error_message, details=driver message) on driver errors,
          after rolling back the open transaction. Fatal ones also trigger a
          reconnect and are chained as FatalConnectionError.
        """
        self.require_connected()
        call = asyncio.to_thread(self._call, fn)
        try:
            if self._query_timeout is not None:
                return await asyncio.wait_for(call, self._query_timeout)
            return await call
        except asyncio.TimeoutError as exc:
            _log.error("Database query timed out after %ss", self._query_timeout)
            raise QueryTimeoutError() from exc
        except DRIVER_ERRORS as exc:
            fatal = self.report_error(exc)
            raise StorageError(error_message, details=str(exc)) from (fatal or exc)

    def _call(self, fn: Callable[[Any], T]) -> T:
        with self._lock:
            conn = self._conn
            if conn is None or self._state is not ConnectionState.CONNECTED:
                raise ServiceUnavailableError()
            try:
                return fn(conn)
            except DRIVER_ERRORS:
                # A failed statement aborts the open transaction on Postgres.
                self._rollback_quiet(conn)
                raise

    # ------------------------------------------------------------------
    # Error monitor
    # ------------------------------------------------------------------

    def report_error(self, exc: BaseException) -> FatalConnectionError | None:
        """
        Feed a driver error observed on the live connection.

        Fatal errors move the manager to CONNECTING, close the stale handle and
        reconnect in the background with a fresh retry budget; the returned
        FatalConnectionError (caused by *exc*) lets callers chain it. Non-fatal
        errors are only logged and return None. Must be called from the event loop.
        """
        if not is_fatal_error(exc):
            _log.warning("Non-fatal database error: %s", exc)
            return None
        fatal = FatalConnectionError(details=str(exc))
        fatal.__cause__ = exc
        if self._state is not ConnectionState.CONNECTED:
            # Reconnect already under way.
            return fatal
        _log.error("Database connection lost (%s); reconnecting", exc)
        self._state = ConnectionState.CONNECTING
        self._spawn(self._reconnect())
        return fatal

    async def _reconnect(self) -> None:
        await asyncio.to_thread(self._discard)
        await self._connect_quietly()

    def start_monitor(self) -> asyncio.Task[Any] | None:
        """Ping the idle connection every ping_interval seconds. No-op when disabled."""
        if self._ping_interval <= 0 or self._monitor_task is not None:
            return None
        self._monitor_task = self._spawn(self._monitor())
        return self._monitor_task

    async def _monitor(self) -> None:
        while True:
            await asyncio.sleep(self._ping_interval)
            if not self.is_connected:
                continue
            try:
                await asyncio.to_thread(self._call, self._ping)
            except ServiceUnavailableError:
                continue
            except DRIVER_ERRORS as exc:
                self.report_error(exc)

    def _ping(self, conn: Any) -> None:
        ping(conn)
        conn.commit()

    async def check(self) -> bool:
        """True when connected and a SELECT 1 succeeds."""
        if not self.is_connected:
            return False
        try:
            await self.run(self._ping)
        except (ServiceUnavailableError, StorageError, QueryTimeoutError):
            return False
        return True

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel background work and close the connection."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._monitor_task = None
        await asyncio.to_thread(self._discard)
        self._state = ConnectionState.DISCONNECTED
        _log.info("Database connection closed")

    def _discard(self) -> None:
        with self._lock:
            self._discard_locked()

    def _discard_locked(self) -> None:
        if self._conn is not None:
            self._close_quiet(self._conn)
            self._conn = None

    @staticmethod
    def _rollback_quiet(conn: Any) -> None:
        try:
            conn.rollback()
        except DRIVER_ERRORS as exc:
            _log.debug("Ignoring error while rolling back: %s", exc)

    @staticmethod
    def _close_quiet(conn: Any) -> None:
        try:
            conn.close()
        except DRIVER_ERRORS as exc:
            _log.debug("Ignoring error while closing connection: %s", exc)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


def build_connection_manager(
    *,
    on_connected: Callable[[Any], None] | None = None,
    on_failure: Callable[[ConnectionFailedError], None] | None = None,
) -> ConnectionManager:
    """Return a ConnectionManager configured from settings."""
    return ConnectionManager(
        settings.database_params,
        max_retries=settings.DB_MAX_RETRIES,
        base_delay=settings.DB_RETRY_BASE_DELAY,
        backoff=settings.DB_RETRY_BACKOFF,
        query_timeout=settings.DB_QUERY_TIMEOUT,
        ping_interval=settings.DB_PING_INTERVAL,
        create_table=settings.DB_CREATE_TABLE,
        on_connected=on_connected,
        on_failure=on_failure,
    )
