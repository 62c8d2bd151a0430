import asyncio
import logging
import struct
import weakref
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import aiomysql
import pymysql
from pymysql.constants import COMMAND

from .configs import GatewayConfig
from .errors import DatabaseConnectionError, PoolExhausted

logger = logging.getLogger("mcp_server_mysql")

PoolFactory = Callable[..., Awaitable[Any]]

# enum_mysql_set_option: MYSQL_OPTION_MULTI_STATEMENTS_ON = 0, _OFF = 1
MULTI_STATEMENTS_OFF = 1


async def disable_multi_statements(conn: aiomysql.Connection) -> None:
    """
    Turn off multi-statement support on one physical connection.

    aiomysql always negotiates `CLIENT.MULTI_STATEMENTS` at handshake, so a
    single `execute` could run a `;`-separated batch such as
    `COMMIT; SET SESSION TRANSACTION READ WRITE; DELETE ...`. After
    `COM_SET_OPTION` the server answers a batch with a syntax error. The
    reply is an EOF (or OK) packet; an error packet raises.
    """
    await conn._execute_command(
        COMMAND.COM_SET_OPTION, struct.pack("<H", MULTI_STATEMENTS_OFF)
    )
    await conn._read_packet()


class ConnectionHandle:
    """An exclusive lease on one pooled MySQL connection."""

    def __init__(self, connection: aiomysql.Connection, pool: aiomysql.Pool):
        self.connection = connection
        self.released = False
        self._pool = pool

    def cursor(self) -> aiomysql.DictCursor:
        """Open a cursor that returns rows as column -> value mappings."""
        return self.connection.cursor(aiomysql.DictCursor)


class ConnectionPool:
    """
    Bounded pool of MySQL connections shared by every request handler.

    The driver pool is created on first use with `minsize=0`, so physical
    connections are only opened when an operation needs one and are then
    reused. Every physical connection has multi-statement support switched
    off before its first lease. Callers should lease connections through
    `connection()`, which guarantees the lease is returned on every exit
    path.
    """

    def __init__(
        self,
        config: GatewayConfig,
        pool_factory: Optional[PoolFactory] = None,
    ):
        self._config = config
        self._pool_factory = pool_factory or aiomysql.create_pool
        self._pool: Any = None
        self._lock = asyncio.Lock()
        self._outstanding = 0
        self._single_statement: "weakref.WeakSet[Any]" = weakref.WeakSet()

    @property
    def outstanding(self) -> int:
        """Number of leases currently held by in-flight operations."""
        return self._outstanding

    async def _get_pool(self) -> Any:
        async with self._lock:
            if self._pool is None:
                logger.info(f"🔌 Creating connection pool for {self._config.identity}")
                try:
                    self._pool = await self._pool_factory(
                        minsize=0,
                        maxsize=self._config.pool_size,
                        **self._config.connect_kwargs(),
                    )
                except (pymysql.err.MySQLError, OSError) as e:
                    logger.error(f"❌ Could not create connection pool: {e}")
                    raise DatabaseConnectionError(f"Could not connect to database: {e}") from e
            return self._pool

    async def acquire(self) -> ConnectionHandle:
        pool = await self._get_pool()
        conn = await self._wait_for_connection(pool)

        if conn not in self._single_statement:
            try:
                await disable_multi_statements(conn)
            except (pymysql.err.MySQLError, OSError) as e:
                logger.error(f"❌ Could not configure database connection: {e}")
                self._discard(pool, conn)
                raise DatabaseConnectionError(f"Could not configure connection: {e}") from e
            except asyncio.CancelledError:
                self._discard(pool, conn)
                raise
            self._single_statement.add(conn)

        self._outstanding += 1
        return ConnectionHandle(conn, pool)

    async def _wait_for_connection(self, pool: Any) -> aiomysql.Connection:
        """
        Take a connection from the driver pool within `acquire_timeout`.

        The driver's acquire runs as its own task. When the wait gives up,
        the task is cancelled and a connection it still obtains is handed
        straight back to the driver pool.
        """

        async def _acquire() -> aiomysql.Connection:
            return await pool.acquire()

        task = asyncio.ensure_future(_acquire())
        try:
            done, _ = await asyncio.wait({task}, timeout=self._config.acquire_timeout)
        except asyncio.CancelledError:
            self._abandon(pool, task)
            raise

        if not done:
            self._abandon(pool, task)
            logger.warning(
                f"No connection became free within {self._config.acquire_timeout}s "
                f"({self._outstanding} leases outstanding)"
            )
            raise PoolExhausted(
                f"Connection pool exhausted: no connection available after "
                f"{self._config.acquire_timeout} seconds"
            )

        try:
            return task.result()
        except (pymysql.err.MySQLError, OSError) as e:
            logger.error(f"❌ Could not open database connection: {e}")
            raise DatabaseConnectionError(f"Could not connect to database: {e}") from e

    @staticmethod
    def _abandon(pool: Any, task: "asyncio.Future[Any]") -> None:
        def _return_late_connection(finished: "asyncio.Future[Any]") -> None:
            if not finished.cancelled() and finished.exception() is None:
                logger.debug("Returning connection obtained after acquire timeout")
                pool.release(finished.result())

        task.cancel()
        task.add_done_callback(_return_late_connection)

    @staticmethod
    def _discard(pool: Any, conn: aiomysql.Connection) -> None:
        # The driver pool drops closed connections on release
        conn.close()
        pool.release(conn)

    def release(self, handle: ConnectionHandle) -> None:
        if handle.released:
            raise RuntimeError("Connection handle released twice")
        handle.released = True
        self._outstanding -= 1
        handle._pool.release(handle.connection)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[ConnectionHandle]:
        """Lease a connection for the duration of the `async with` block."""
        handle = await self.acquire()
        try:
            yield handle
        finally:
            self.release(handle)

    async def close(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        pool.close()
        await pool.wait_closed()
        logger.info("Connection pool closed")
