# Script-level entry points of the SQL front end: splitting a script into
# statements, parsing them, rendering them back to executable text, structural
# table removal and tokenisation. The reducers only talk to this module.

import logging
import re
from typing import Iterable, List, Optional, Sequence, Union

import sqlglot
from sqlglot.errors import SqlglotError

from .parsers import parse_statement
from .statement import CreateTableStatement, Statement, normalize_name

logger = logging.getLogger(__name__)

STATEMENT_TERMINATOR = ";"

_TRIGGER_START_RE = re.compile(r"^\s*CREATE\s+(?:(?:TEMP|TEMPORARY)\s+)?TRIGGER\b", re.IGNORECASE)
_QUOTED_RE = re.compile(r"'[^']*'|\"[^\"]*\"")
_BLOCK_KEYWORD_RE = re.compile(r"\b(BEGIN|CASE|END)\b", re.IGNORECASE)
_SELECT_KEYWORD_RE = re.compile(r"(?<![\w$])SELECT(?![\w$])", re.IGNORECASE)


def _inside_trigger_body(pending: str) -> bool:
    """True while `pending` is a CREATE TRIGGER whose BEGIN ... END block is still open."""
    if not _TRIGGER_START_RE.match(pending):
        return False
    depth = 0
    opened = False
    for m in _BLOCK_KEYWORD_RE.finditer(_QUOTED_RE.sub("''", pending)):
        if m.group(1).upper() == "END":
            depth -= 1
        else:
            depth += 1
            opened = opened or m.group(1).upper() == "BEGIN"
    return opened and depth > 0


def split_statements(script: str) -> List[str]:
    """
    Splits a script into statement strings.

    `--` comments are dropped up to the end of their line, newlines and
    carriage returns are replaced by spaces, runs of `;` count as one
    terminator, and empty statements are dropped. A `;` inside a quoted string
    or inside the BEGIN ... END body of a trigger does not terminate the
    statement.
    """
    statements = []
    current = []
    quote = None
    i = 0
    while i < len(script):
        ch = script[i]
        if ch in ("\r", "\n"):
            ch = " "
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
            current.append(ch)
        elif ch == "-" and script.startswith("--", i):
            end = script.find("\n", i)
            if end == -1:
                break
            # the newline itself still separates tokens
            i = end
            continue
        elif ch == STATEMENT_TERMINATOR:
            pending = "".join(current)
            if _inside_trigger_body(pending):
                current.append(ch)
            else:
                if pending.strip():
                    statements.append(pending.strip())
                current = []
        else:
            current.append(ch)
        i += 1

    if "".join(current).strip():
        statements.append("".join(current).strip())
    return statements


def parse_statements(statements: Iterable[str]) -> List[Statement]:
    return [parse_statement(s) for s in statements]


def render_statements(statements: Sequence[Union[str, Statement]]) -> str:
    """Joins statements with the terminator, ending with a trailing terminator."""
    parts = []
    for statement in statements:
        text = str(statement).strip().rstrip(STATEMENT_TERMINATOR).strip()
        if text:
            parts.append(text)
    if not parts:
        return ""
    return f"{STATEMENT_TERMINATOR} ".join(parts) + STATEMENT_TERMINATOR


def create_table_names(statements: Iterable[Statement]) -> List[str]:
    """Distinct names of the tables created by the script, in order of appearance."""
    names = []
    seen = set()
    for statement in statements:
        if isinstance(statement, CreateTableStatement) and normalize_name(statement.name) not in seen:
            seen.add(normalize_name(statement.name))
            names.append(statement.name)
    return names


def is_parseable(sql: str, dialect: Optional[str] = None) -> bool:
    try:
        sqlglot.parse_one(sql, read=dialect)
        return True
    except SqlglotError as e:
        logger.debug(f"sqlglot rejected '{sql}': {e}")
        return False


def remove_tables(tables: Iterable[str], statements: Sequence[Statement],
                  dialect: Optional[str] = None) -> List[Statement]:
    """
    Structurally removes every table in `tables` from `statements`.

    Statements that belong to a removed table disappear, SELECTs are rewritten
    to no longer reference it, and statements that end up empty are filtered
    out. A rewrite that no longer parses is discarded in favour of the
    unmodified statement.
    """
    tables = list(tables)
    result = []
    for statement in statements:
        current: Optional[Statement] = statement
        for table in tables:
            current = current.remove_table_references(table)
            if current is None:
                break
        if current is None:
            continue
        if current is not statement and not is_parseable(current.original, dialect):
            logger.debug(f"Rewrite of '{statement.original}' does not parse, keeping it unmodified")
            current = statement
        if current.original.strip():
            result.append(current)
    return result


def tokenize(statement: str) -> List[str]:
    """Whitespace tokens of a statement, with every parenthesis a token of its own."""
    return statement.replace("(", " ( ").replace(")", " ) ").split()


def count_tokens(text: str) -> int:
    return sum(len(tokenize(s)) for s in split_statements(text))


def extract_subqueries(sql: str) -> List[str]:
    """
    Returns the text of every SELECT in `sql`, outermost first.

    A SELECT nested in parentheses ends at the parenthesis that closes its
    group; a top-level SELECT ends at the next `;` or at the end of the text.
    Quoted strings and comments are skipped.
    """
    depth_at = [0] * len(sql)
    depth = 0
    quote = None
    in_line_comment = False
    in_block_comment = False
    selects = []
    i = 0
    while i < len(sql):
        ch = sql[i]
        nxt = sql[i + 1] if i + 1 < len(sql) else ""
        if in_line_comment:
            in_line_comment = ch != "\n"
        elif in_block_comment:
            if ch == "*" and nxt == "/":
                in_block_comment = False
                depth_at[i] = depth
                i += 1
        elif quote:
            if ch == quote:
                quote = None
        elif ch == "-" and nxt == "-":
            in_line_comment = True
        elif ch == "/" and nxt == "*":
            in_block_comment = True
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
        elif ch in "sS" and _SELECT_KEYWORD_RE.match(sql, i):
            selects.append((i, depth))
        depth_at[i] = depth
        i += 1

    found = []
    for start, start_depth in selects:
        end = len(sql)
        if start_depth > 0:
            for j in range(start + 1, len(sql)):
                if sql[j] == ")" and depth_at[j] == start_depth - 1:
                    end = j
                    break
        else:
            terminator = sql.find(STATEMENT_TERMINATOR, start)
            if terminator != -1:
                end = terminator
        found.append(sql[start:end].strip())
    return found
