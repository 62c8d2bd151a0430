"""
Errors raised by the MySQL MCP server.

Connection and catalog errors surface as protocol errors; errors raised
while calling a tool are reported back inside an error-flagged tool result.
"""


class GatewayError(Exception):
    """Base class for every error the server raises on purpose."""


class InvalidConfiguration(GatewayError):
    """The connection string is missing or cannot be parsed."""


class DatabaseConnectionError(GatewayError):
    """A database connection could not be obtained."""


class PoolExhausted(DatabaseConnectionError):
    """No pooled connection became free within the acquire timeout."""


class CatalogError(GatewayError):
    """A catalog introspection query failed."""


class QueryError(GatewayError):
    """A statement failed or was rejected by the read-only transaction."""


class InvalidResourceURI(GatewayError):
    """A resource URI is not of the form mysql://{table}/schema."""


class UnknownTool(GatewayError):
    """The requested tool is not exposed by this server."""


class InvalidArguments(GatewayError):
    """A tool was called with missing or mistyped arguments."""
