"""
Server instructions for the MySQL MCP Server.

These instructions are sent to the client during initialization
to provide context about how to use the server's capabilities.
"""

INSTRUCTIONS_BASE = """Explore and query a MySQL database with read-only SQL.

## Available Resources

- `mysql://{table}/schema`: Columns of one table (name, data type, nullability, key)
- List resources to discover every table of the connected database

## Available Tools

- `query`: Run one read-only SQL statement and get the rows back as JSON

## Read-Only Execution

Every statement runs inside a `READ ONLY` transaction. `INSERT`, `UPDATE`,
`DELETE` and DDL statements are rejected by the server and nothing is committed.
Send one statement per call; multiple statements separated by `;` are not supported.

## MySQL SQL Quick Reference

**Identifiers and Literals:**
- Use backticks (`` ` ``) for identifiers with spaces, reserved words or special characters
- Use single quotes (`'`) for string literals

**Schema Exploration:**
```sql
SHOW TABLES;
SHOW CREATE TABLE `orders`;
SELECT column_name, data_type FROM information_schema.columns WHERE table_name = 'orders';
```

**Limiting Results:**
- `SELECT * FROM orders ORDER BY id LIMIT 10 OFFSET 20;`
"""


def get_instructions(database: str, max_rows: int) -> str:
    """Build the instructions for one connected database."""
    lines = [INSTRUCTIONS_BASE, "## Connection", "", f"- Database: `{database}`"]
    if max_rows > 0:
        lines.append(f"- Results are limited to {max_rows:,} rows. Use LIMIT for specific row counts.")
    return "\n".join(lines) + "\n"
