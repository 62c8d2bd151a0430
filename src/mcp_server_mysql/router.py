import logging
from typing import Any
from urllib.parse import unquote, urlsplit

from pydantic import ValidationError

from .catalog import CatalogService
from .configs import RESOURCE_SCHEME, SCHEMA_SUFFIX
from .errors import InvalidArguments, InvalidResourceURI, UnknownTool
from .models import ColumnDescriptor, QueryRequest, QueryResult, ResourceDescriptor, ToolDescriptor
from .query import QueryGateway
from .tools import QUERY_TOOL, TOOLS

logger = logging.getLogger("mcp_server_mysql")


def parse_resource_uri(uri: str) -> str:
    """
    Return the table name addressed by `mysql://{table}/schema`.

    Raises InvalidResourceURI for any other scheme or suffix.
    """
    parts = urlsplit(str(uri))
    if parts.scheme != RESOURCE_SCHEME:
        raise InvalidResourceURI(f"Unsupported URI scheme: {parts.scheme}")

    segments = parts.path.lstrip("/").split("/")
    if not parts.netloc or len(segments) != 1:
        raise InvalidResourceURI(f"Invalid resource URI: {uri}")
    if segments[0] != SCHEMA_SUFFIX:
        raise InvalidResourceURI(f"Invalid resource URI: {uri}")

    return unquote(parts.netloc)


class RequestRouter:
    """
    Dispatches the four MCP request kinds to the catalog or the query gateway.

    Holds no per-request state, so one router serves every transport.
    """

    def __init__(self, schema_name: str, catalog: CatalogService, gateway: QueryGateway):
        self.schema_name = schema_name
        self._catalog = catalog
        self._gateway = gateway

    async def list_resources(self) -> list[ResourceDescriptor]:
        logger.info("Listing table schema resources")
        return await self._catalog.list_tables(self.schema_name)

    async def read_resource(self, uri: str) -> list[ColumnDescriptor]:
        logger.info(f"Reading resource: {uri}")
        table_name = parse_resource_uri(uri)
        return await self._catalog.describe_table(self.schema_name, table_name)

    def list_tools(self) -> tuple[ToolDescriptor, ...]:
        logger.info("Listing tools")
        return TOOLS

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> QueryResult:
        logger.info(f"Calling tool: {name}")
        if name != QUERY_TOOL.name:
            raise UnknownTool(f"Unknown tool: {name}")

        try:
            request = QueryRequest.model_validate(arguments or {})
        except ValidationError as e:
            raise InvalidArguments(
                f"Invalid arguments for tool {name}: `sql` must be a string"
            ) from e

        return await self._gateway.execute(request.sql)
