"""
MCP Tools for the MySQL server.

Each tool is described in its own module and exported here.
"""

from .query import QUERY_TOOL

TOOLS = (QUERY_TOOL,)

__all__ = [
    "QUERY_TOOL",
    "TOOLS",
]
