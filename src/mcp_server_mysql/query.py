import logging

import aiomysql
import pymysql

from .configs import DEFAULT_MAX_ROWS
from .errors import QueryError
from .models import QueryResult
from .pool import ConnectionHandle, ConnectionPool

logger = logging.getLogger("mcp_server_mysql")

# The session directive covers statements that implicitly commit (DDL),
# the transaction directive covers everything else.
READ_ONLY_SESSION_SQL = "SET SESSION TRANSACTION READ ONLY"
START_READ_ONLY_SQL = "START TRANSACTION READ ONLY"


def _error_message(error: Exception) -> str:
    """Extract the server message from a pymysql error `(code, message)`."""
    if isinstance(error, pymysql.err.MySQLError) and len(error.args) >= 2:
        return f"{error.args[1]} (MySQL error {error.args[0]})"
    return str(error)


class QueryGateway:
    """
    Runs caller-supplied SQL inside a read-only transaction.

    The statement text is not inspected. Read-only-ness is requested from
    the server, which rejects writes before anything can be committed.
    Rows are only returned after a successful commit; any failure rolls the
    transaction back and raises `QueryError`.
    """

    def __init__(self, pool: ConnectionPool, max_rows: int = DEFAULT_MAX_ROWS):
        self._pool = pool
        self._max_rows = max_rows

    async def execute(self, sql: str) -> QueryResult:
        async with self._pool.connection() as handle:
            try:
                async with handle.cursor() as cur:
                    await cur.execute(READ_ONLY_SESSION_SQL)
                    await cur.execute(START_READ_ONLY_SQL)
                    await cur.execute(sql)
                    result = await self._fetch(cur)
                await handle.connection.commit()
            except (pymysql.err.MySQLError, OSError) as e:
                logger.error(f"Query failed, rolling back: {e}")
                await self._rollback(handle)
                raise QueryError(_error_message(e)) from e

        if result.truncated:
            logger.warning(f"Query result limited to {self._max_rows:,} rows")
        return result

    async def _fetch(self, cur: aiomysql.DictCursor) -> QueryResult:
        if cur.description is None:
            return QueryResult(rows=[])

        if self._max_rows > 0:
            # One extra row tells us whether the result was cut off
            rows = list(await cur.fetchmany(self._max_rows + 1))
            truncated = len(rows) > self._max_rows
            return QueryResult(rows=rows[: self._max_rows], truncated=truncated)

        return QueryResult(rows=list(await cur.fetchall()))

    async def _rollback(self, handle: ConnectionHandle) -> None:
        try:
            await handle.connection.rollback()
        except (pymysql.err.MySQLError, OSError) as e:
            # The connection is discarded by the driver pool on release
            logger.warning(f"Rollback failed: {e}")
