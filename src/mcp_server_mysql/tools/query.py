"""
Query tool - Run a read-only SQL statement against the MySQL database.
"""

from ..models import ToolDescriptor

NAME = "query"

DESCRIPTION = "Run a read-only SQL query"

INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "sql": {
            "type": "string",
            "description": "A single SQL statement in the MySQL dialect",
        },
    },
    "required": ["sql"],
}

QUERY_TOOL = ToolDescriptor(name=NAME, description=DESCRIPTION, inputSchema=INPUT_SCHEMA)
