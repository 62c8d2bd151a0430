import contextlib
import logging
from collections.abc import AsyncIterator, Iterable

import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from pydantic import AnyUrl
from starlette.applications import Starlette
from starlette.routing import Mount
from starlette.types import Receive, Scope, Send

from .catalog import CatalogService
from .configs import RESOURCE_MIME_TYPE, SERVER_NAME, SERVER_VERSION, GatewayConfig
from .instructions import get_instructions
from .models import to_json
from .pool import ConnectionPool, PoolFactory
from .query import QueryGateway
from .router import RequestRouter

logger = logging.getLogger("mcp_server_mysql")


def create_router(
    config: GatewayConfig, pool_factory: PoolFactory | None = None
) -> tuple[RequestRouter, ConnectionPool]:
    """Wire the pool, catalog and query gateway behind one router."""
    pool = ConnectionPool(config, pool_factory=pool_factory)
    router = RequestRouter(
        schema_name=config.database,
        catalog=CatalogService(pool),
        gateway=QueryGateway(pool, max_rows=config.max_rows),
    )
    return router, pool


def build_application(
    router: RequestRouter, instructions: str | None = None
) -> tuple[Server, InitializationOptions]:
    logger.info("Starting MySQL MCP Server")
    server = Server(SERVER_NAME, version=SERVER_VERSION, instructions=instructions)

    logger.info("Registering handlers")

    @server.list_resources()
    async def handle_list_resources() -> list[types.Resource]:
        """
        List one schema resource per table of the connected database.
        Each resource uses the mysql://{table}/schema URI.
        """
        descriptors = await router.list_resources()
        return [
            types.Resource(uri=AnyUrl(d.uri), name=d.name, mimeType=d.mimeType)
            for d in descriptors
        ]

    @server.read_resource()
    async def handle_read_resource(uri: AnyUrl) -> Iterable[ReadResourceContents]:
        """Return the columns of the table named in the URI as JSON."""
        columns = await router.read_resource(str(uri))
        text = to_json([c.model_dump() for c in columns])
        return [ReadResourceContents(content=text, mime_type=RESOURCE_MIME_TYPE)]

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """
        List available tools.
        Each tool specifies its arguments using JSON Schema validation.
        """
        return [
            types.Tool(name=t.name, description=t.description, inputSchema=t.inputSchema)
            for t in router.list_tools()
        ]

    @server.call_tool()
    async def handle_tool_call(name: str, arguments: dict | None) -> list[types.TextContent]:
        """
        Handle tool execution requests.
        Errors raised here are returned to the client as an error-flagged result.
        """
        try:
            result = await router.call_tool(name, arguments)
        except Exception as e:
            logger.error(f"Error executing tool {name}: {e}")
            raise

        content = [types.TextContent(type="text", text=to_json(result.rows))]
        if result.truncated:
            content.append(
                types.TextContent(
                    type="text",
                    text=f"Results limited to {len(result.rows):,} rows. Query returned more data.",
                )
            )
        return content

    initialization_options = InitializationOptions(
        server_name=SERVER_NAME,
        server_version=SERVER_VERSION,
        capabilities=server.get_capabilities(
            notification_options=NotificationOptions(),
            experimental_capabilities={},
        ),
        instructions=instructions,
    )

    return server, initialization_options


def create_mcp_server(
    config: GatewayConfig, pool_factory: PoolFactory | None = None
) -> tuple[Server, InitializationOptions, ConnectionPool]:
    router, pool = create_router(config, pool_factory=pool_factory)
    server, options = build_application(
        router, instructions=get_instructions(config.database, config.max_rows)
    )
    return server, options, pool


async def run_stdio(server: Server, options: InitializationOptions, pool: ConnectionPool) -> None:
    """Serve one client over stdin/stdout until it disconnects."""
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, options)
    finally:
        await pool.close()


def create_http_app(server: Server, pool: ConnectionPool) -> Starlette:
    """Expose the server over streamable HTTP at /mcp."""
    session_manager = StreamableHTTPSessionManager(
        app=server,
        json_response=True,
        stateless=True,
    )

    async def handle_streamable_http(scope: Scope, receive: Receive, send: Send) -> None:
        await session_manager.handle_request(scope, receive, send)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            try:
                yield
            finally:
                await pool.close()

    return Starlette(
        routes=[Mount("/mcp", app=handle_streamable_http)],
        lifespan=lifespan,
    )
