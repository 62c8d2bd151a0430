import logging

import pymysql

from .errors import CatalogError
from .models import ColumnDescriptor, ResourceDescriptor, table_name_from_row
from .pool import ConnectionPool

logger = logging.getLogger("mcp_server_mysql")

LIST_TABLES_SQL = (
    "SELECT table_name AS table_name "
    "FROM information_schema.tables WHERE table_schema = %s"
)

DESCRIBE_TABLE_SQL = (
    "SELECT column_name AS column_name, data_type AS data_type, "
    "is_nullable AS is_nullable, column_key AS column_key "
    "FROM information_schema.columns WHERE table_name = %s AND table_schema = %s"
)


class CatalogService:
    """Read-only lookups against MySQL's information_schema."""

    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    async def _fetch(self, sql: str, args: tuple) -> list[dict]:
        async with self._pool.connection() as handle:
            try:
                async with handle.cursor() as cur:
                    await cur.execute(sql, args)
                    return list(await cur.fetchall())
            except pymysql.err.MySQLError as e:
                logger.error(f"Catalog query failed: {e}")
                raise CatalogError(f"Catalog query failed: {e}") from e

    async def list_tables(self, schema_name: str) -> list[ResourceDescriptor]:
        """
        List every table of `schema_name` as a schema resource.

        Order is whatever the catalog returns. An empty schema yields [].
        """
        rows = await self._fetch(LIST_TABLES_SQL, (schema_name,))
        return [ResourceDescriptor.for_table(table_name_from_row(row)) for row in rows]

    async def describe_table(self, schema_name: str, table_name: str) -> list[ColumnDescriptor]:
        """Columns of one table; an unknown table yields []."""
        rows = await self._fetch(DESCRIBE_TABLE_SQL, (table_name, schema_name))
        return [ColumnDescriptor.from_row(row) for row in rows]
