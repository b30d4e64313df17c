"""Textual rewrites for SQL that BigQuery would otherwise reject.

These are plain pattern matches, not a parser: a ``DEFAULT`` or ``WHERE`` inside a
string literal or a comment is treated like any other.
"""

import logging
import re

logger = logging.getLogger(__name__)

DEFAULT_CLAUSE_PATTERN = re.compile(r"\sdefault\s+(\S+)", re.IGNORECASE)
UPDATE_PATTERN = re.compile(r"^update", re.IGNORECASE)
WHERE_PATTERN = re.compile(r" where ", re.IGNORECASE)

UNSAFE_UPDATE_GUARD = " where 1 = 1"


def _split_trailing_separators(token: str):
    """Split a default value from the ``,`` and unbalanced ``)`` glued to its end.

    ``'x',`` gives ``("'x'", ",")`` and ``(1))`` gives ``("(1)", ")")``.
    """
    end = len(token)
    while end > 0 and token[end - 1] in ",)":
        if token[end - 1] == ")" and token.count("(", 0, end) >= token.count(")", 0, end):
            break
        end -= 1
    return token[:end], token[end:]


def remove_default_clauses(sql: str) -> str:
    """Delete every ``DEFAULT <token>`` fragment, logging a warning for each one."""

    def _remove(match):
        logger.warning(
            "Default removed from below query as it's not supported on BigQuery:\n%s",
            sql,
        )
        return _split_trailing_separators(match.group(1))[1]

    return DEFAULT_CLAUSE_PATTERN.sub(_remove, sql)


def guard_unsafe_update(sql: str) -> str:
    """BigQuery requires UPDATE statements to include a WHERE clause"""
    if UPDATE_PATTERN.match(sql) and not WHERE_PATTERN.search(sql):
        logger.warning(
            "Appended '%s' to query since BigQuery requires UPDATE statements "
            "to include a WHERE clause",
            UNSAFE_UPDATE_GUARD.strip(),
        )
        return sql + UNSAFE_UPDATE_GUARD
    return sql


def adapt_statement(sql: str) -> str:
    return guard_unsafe_update(remove_default_clauses(sql))
