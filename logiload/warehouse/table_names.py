"""
Table-name validation gate.

Every statement-building entry point passes the table name through here
before it can reach statement text. The rule is exclusion based: a name is
rejected if it is blank, contains statement or comment separators,
whitespace, quotes or slashes, or contains a data-changing SQL keyword
anywhere (case-insensitive).

The keyword rule is deliberately over-broad: legitimate names such as
"ORDERS_DROP_ARCHIVE" or "created_orders" are rejected too.
"""

import re

from logiload.core.errors import TableNameRejected

FORBIDDEN_SEQUENCES = (";", "--", "/*", "*/", "'", '"', "`", "\\", "/")
FORBIDDEN_KEYWORDS = ("DROP", "DELETE", "INSERT", "UPDATE", "ALTER", "CREATE")

_WHITESPACE = re.compile(r"\s")


def table_name_problem(table_name: str | None) -> str | None:
    """
    Describe why a table name fails the gate.

    Returns:
        None when the name is acceptable, otherwise a short reason
    """
    if table_name is None or not isinstance(table_name, str) or not table_name.strip():
        return "name is empty"

    for sequence in FORBIDDEN_SEQUENCES:
        if sequence in table_name:
            return f"contains forbidden sequence {sequence!r}"

    if _WHITESPACE.search(table_name):
        return "contains whitespace"

    upper = table_name.upper()
    for keyword in FORBIDDEN_KEYWORDS:
        if keyword in upper:
            return f"contains SQL keyword {keyword}"

    return None


def is_valid_table_name(table_name: str | None) -> bool:
    return table_name_problem(table_name) is None


def validate_table_name(table_name: str | None) -> str:
    """
    Pass a table name through the gate.

    Returns:
        The unchanged table name

    Raises:
        TableNameRejected: If the name fails the gate
    """
    problem = table_name_problem(table_name)
    if problem is not None:
        raise TableNameRejected(str(table_name), problem)
    return table_name
