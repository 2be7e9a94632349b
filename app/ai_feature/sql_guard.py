import re
from typing import Iterable, Optional

from app.ai_feature.types import ValidationResult


# -----------------------------------------------------------------------------
# SQL GUARD
# Purpose: decide whether a model-proposed statement may reach the database.
# Textual checks only (no parsing): the privileged backend and the database's
# own grants remain the real authority.
# -----------------------------------------------------------------------------

ALLOWED_OPERATIONS = ("SELECT", "UPDATE", "INSERT")

BLOCKED_KEYWORDS = (
    "DROP",
    "DELETE",
    "TRUNCATE",
    "ALTER",
    "CREATE",
    "GRANT",
    "REVOKE",
    "EXEC",
    "EXECUTE PROCEDURE",
)

ALLOWED_TABLES = (
    "funded_deals",
    "reps",
    "lenders",
    "commission_payout_reps",
    "commission_payout_iso",
    "business_main",
)

BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
LINE_COMMENT_RE = re.compile(r"--[^\n]*")
TABLE_RE = re.compile(r"\b(?:FROM|JOIN|INTO|UPDATE)\s+(?:public\.)?(\w+)", re.IGNORECASE)
TRAILING_SEMICOLON_RE = re.compile(r";\s*$")

_KEYWORD_RES = [
    (keyword, re.compile(rf"\b{keyword}\b", re.IGNORECASE))
    for keyword in BLOCKED_KEYWORDS
]


def strip_comments(sql: str) -> str:
    """Replace block and line comments with a space."""
    cleaned = BLOCK_COMMENT_RE.sub(" ", sql)
    return LINE_COMMENT_RE.sub(" ", cleaned)


def _fail(error: str) -> ValidationResult:
    return ValidationResult(valid=False, error=error)


def validate_sql(
    sql: str, allowed_tables: Optional[Iterable[str]] = None
) -> ValidationResult:
    """
    Run the guard rules in order and report the first one that fails.

    Rules:
        1. comments are stripped before anything else looks at the text
        2. nothing may be left empty
        3. the statement must start with SELECT, UPDATE or INSERT
        4. no blocked keyword anywhere, as a whole word
        5. every table after FROM/JOIN/INTO/UPDATE must be allowed
        6. a single statement (one trailing semicolon is tolerated)

    Args:
        sql: Statement proposed by the model.
        allowed_tables: Optional override of ALLOWED_TABLES. An empty
            override allows no table at all.

    Returns:
        ValidationResult with `operation` on success or `error` on failure.

    Example:
        validate_sql("SELECT * FROM reps").operation  # "SELECT"
    """
    if allowed_tables is None:
        allowed_tables = ALLOWED_TABLES
    tables = tuple(t.lower() for t in allowed_tables)

    cleaned = strip_comments(sql or "")
    normalized = cleaned.strip().upper()

    if not normalized:
        return _fail("Empty query after removing comments")

    operation = next((op for op in ALLOWED_OPERATIONS if normalized.startswith(op)), None)
    if operation is None:
        return _fail(
            f"Only {', '.join(ALLOWED_OPERATIONS[:-1])}, and {ALLOWED_OPERATIONS[-1]} "
            "operations are allowed"
        )

    for keyword, pattern in _KEYWORD_RES:
        if pattern.search(cleaned):
            return _fail(f"Blocked keyword detected: {keyword}")

    for match in TABLE_RE.finditer(cleaned):
        table_name = match.group(1).lower()
        if table_name not in tables:
            return _fail(
                f"Table not allowed: {table_name}. Allowed tables: {', '.join(tables)}"
            )

    # Not quote-aware: a ';' inside a string literal is rejected too
    if ";" in TRAILING_SEMICOLON_RE.sub("", cleaned):
        return _fail("Multiple statements not allowed")

    return ValidationResult(valid=True, operation=operation)
