# Best-effort, regular-expression based parsers for the statement kinds the
# table reducer understands. Anything that does not match is reported with a
# StatementParseError and ends up as an Unknown statement kept verbatim.
#
# Keyword matching runs on a "masked" copy of the text in which quoted strings
# and parenthesised groups are filled with MASK_FILL. The filler is neither
# whitespace nor a word character, so clause patterns cannot absorb a masked
# span and word boundaries around it still hold. The mask has the same length
# as the text, so match spans can be used to slice the original.

import logging
import re
from typing import Dict, List, Optional, Tuple

from .statement import (
    AlterTableStatement,
    Column,
    CreateIndexStatement,
    CreateTableStatement,
    CreateViewStatement,
    DeleteStatement,
    DropStatement,
    InsertStatement,
    SelectStatement,
    Statement,
    TableRef,
    TriggerStatement,
    UpdateStatement,
    WithClause,
)

logger = logging.getLogger(__name__)

MAX_NESTING_DEPTH = 32
MASK_FILL = "#"


class StatementParseError(ValueError):
    """Raised when a statement does not have the shape its parser expects."""


CREATE_TABLE_RE = re.compile(
    r"^\s*CREATE\s+(?:(?:TEMP|TEMPORARY)\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?(?P<name>[^\s(]+)\s*(?P<rest>.*)$",
    re.IGNORECASE | re.DOTALL)
INSERT_RE = re.compile(
    r"^\s*(?:INSERT(?:\s+OR\s+\w+)?|REPLACE)\s+INTO\s+(?P<table>[^\s(]+)\s*(?:\((?P<columns>[^)]*)\))?\s*(?P<rest>.*)$",
    re.IGNORECASE | re.DOTALL)
UPDATE_RE = re.compile(
    r"^\s*UPDATE\s+(?:OR\s+\w+\s+)?(?P<table>\S+)\s+SET\s+(?P<assignments>.+?)(?:\s+WHERE\s+(?P<where>.+))?$",
    re.IGNORECASE | re.DOTALL)
DELETE_RE = re.compile(
    r"^\s*DELETE\s+FROM\s+(?P<table>\S+)(?:\s+WHERE\s+(?P<where>.+))?$",
    re.IGNORECASE | re.DOTALL)
ALTER_TABLE_RE = re.compile(
    r"^\s*ALTER\s+TABLE\s+(?:IF\s+EXISTS\s+)?(?P<table>\S+)\s+(?P<action>.+)$",
    re.IGNORECASE | re.DOTALL)
DROP_RE = re.compile(
    r"^\s*DROP\s+(?P<object_type>TABLE|VIEW|INDEX|TRIGGER)\s+(?:IF\s+EXISTS\s+)?(?P<name>[^\s;]+)",
    re.IGNORECASE)
CREATE_INDEX_RE = re.compile(
    r"^\s*CREATE\s+(?:UNIQUE\s+)?INDEX\s+(?:IF\s+NOT\s+EXISTS\s+)?(?P<name>\S+)\s+ON\s+(?P<table>[^\s(]+)",
    re.IGNORECASE)
CREATE_VIEW_RE = re.compile(
    r"^\s*CREATE\s+(?:OR\s+REPLACE\s+)?(?:(?:TEMP|TEMPORARY)\s+)?VIEW\s+(?:IF\s+NOT\s+EXISTS\s+)?"
    r"(?P<name>[^\s(]+)(?:\s*\([^)]*\))?\s+AS\s+(?P<query>.+)$",
    re.IGNORECASE | re.DOTALL)
TRIGGER_RE = re.compile(
    r"^\s*CREATE\s+(?:(?:TEMP|TEMPORARY)\s+)?TRIGGER\s+(?:IF\s+NOT\s+EXISTS\s+)?(?P<name>\S+)\s+"
    r"(?:(?P<timing>BEFORE|AFTER|INSTEAD\s+OF)\s+)?(?P<event>DELETE|INSERT|UPDATE(?:\s+OF\s+.+?)?)\s+"
    r"ON\s+(?P<table>\S+).*?\bBEGIN\b(?P<body>.*)\bEND\s*$",
    re.IGNORECASE | re.DOTALL)
SELECT_RE = re.compile(
    r"^\s*SELECT\s+(?P<distinct>DISTINCT\s+)?(?P<columns>.+?)"
    r"(?:\s+FROM\s+(?P<tables>.+?))?"
    r"(?:\s+WHERE\s+(?P<where>.+?))?"
    r"(?:\s+GROUP\s+BY\s+(?P<group_by>.+?))?"
    r"(?:\s+HAVING\s+(?P<having>.+?))?"
    r"(?:\s+ORDER\s+BY\s+(?P<order_by>.+?))?"
    r"(?:\s+LIMIT\s+(?P<limit>.+?))?\s*$",
    re.IGNORECASE | re.DOTALL)
WITH_RE = re.compile(r"^\s*WITH\s+(?P<recursive>RECURSIVE\s+)?", re.IGNORECASE)
CTE_RE = re.compile(r'\s*(?P<name>(?:[A-Za-z_][\w$]*|"[^"]+")(?:\s*\([^)]*\))?)\s+AS\s*\(', re.IGNORECASE)
SUBQUERY_START_RE = re.compile(r"\(\s*(?:SELECT|WITH)\b", re.IGNORECASE)
SET_OPERATION_RE = re.compile(r"\b(?:UNION|INTERSECT|EXCEPT)\b", re.IGNORECASE)
JOIN_RE = re.compile(
    r"\s+((?:NATURAL\s+)?(?:(?:LEFT|RIGHT|FULL)(?:\s+OUTER)?\s+|INNER\s+|CROSS\s+)?JOIN)\s+",
    re.IGNORECASE)
JOIN_CONDITION_RE = re.compile(r"\s+(?=(?:ON|USING)\b)", re.IGNORECASE)
TABLE_REF_RE = re.compile(r"^(?P<name>\S+)(?:\s+(?:AS\s+)?(?P<alias>\S+))?$", re.IGNORECASE | re.DOTALL)


# --- Scanning helpers ---

def mask(text: str) -> str:
    """Fills quoted strings and parenthesised groups with MASK_FILL, keeping offsets."""
    out = []
    depth = 0
    quote = None
    for ch in text:
        if quote:
            out.append(MASK_FILL)
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
            out.append(MASK_FILL)
        elif ch == "(":
            depth += 1
            out.append(MASK_FILL)
        elif ch == ")":
            depth = max(depth - 1, 0)
            out.append(MASK_FILL)
        else:
            out.append(MASK_FILL if depth else ch)
    return "".join(out)


def find_matching_paren(text: str, open_index: int) -> Optional[int]:
    """Index of the `)` closing the `(` at `open_index`, ignoring quoted text."""
    depth = 0
    quote = None
    for i in range(open_index, len(text)):
        ch = text[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return None


def split_top_level(text: str, separator: str = ",") -> List[str]:
    masked = mask(text)
    parts = []
    start = 0
    for i, ch in enumerate(masked):
        if ch == separator:
            parts.append(text[start:i].strip())
            start = i + 1
    parts.append(text[start:].strip())
    return [p for p in parts if p]


def split_conjuncts(text: str) -> List[str]:
    """Splits a predicate on its top-level ANDs, leaving `BETWEEN x AND y` whole."""
    masked = mask(text)
    between = [m.start() for m in re.finditer(r"\bBETWEEN\b", masked, re.IGNORECASE)]
    parts = []
    start = 0
    for m in re.finditer(r"\s+AND\s+", masked, re.IGNORECASE):
        pending = [pos for pos in between if start <= pos < m.start()]
        if pending:
            between.remove(pending[0])
            continue
        parts.append(text[start:m.start()].strip())
        start = m.end()
    parts.append(text[start:].strip())
    return [p for p in parts if p]


def mask_subqueries(text: str, depth: int) -> Tuple[str, Dict[str, Statement]]:
    """Replaces each outermost parenthesised SELECT with a placeholder."""
    out = []
    subqueries: Dict[str, Statement] = {}
    quote = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "(" and SUBQUERY_START_RE.match(text, i):
            close = find_matching_paren(text, i)
            if close is None:
                out.append(text[i:])
                break
            placeholder = f"__SUBQUERY_{len(subqueries)}__"
            subqueries[placeholder] = _parse_nested(text[i + 1:close], depth + 1)
            out.append(f"({placeholder})")
            i = close + 1
            continue
        out.append(ch)
        i += 1
    return "".join(out), subqueries


def _parse_nested(text: str, depth: int) -> Statement:
    try:
        return parse_select_statement(text, depth)
    except StatementParseError as e:
        logger.debug(f"Keeping nested query verbatim: {e}")
        return Statement(original=text.strip())


def _strip_terminator(query: str) -> str:
    return query.strip().rstrip(";").strip()


# --- Statement parsers ---

def parse_create_table_statement(query: str) -> CreateTableStatement:
    text = _strip_terminator(query)
    m = CREATE_TABLE_RE.match(text)
    if not m:
        raise StatementParseError(f"Not a valid CREATE TABLE statement: {text}")

    columns = {}
    rest = m.group("rest").strip()
    if rest.startswith("("):
        close = find_matching_paren(rest, 0)
        if close is None:
            raise StatementParseError(f"Unbalanced column list in: {text}")
        for definition in split_top_level(rest[1:close]):
            name, _, column_type = definition.partition(" ")
            columns[name] = column_type.strip()

    return CreateTableStatement(original=text, name=m.group("name"), columns=columns)


def parse_insert_statement(query: str) -> InsertStatement:
    text = _strip_terminator(query)
    m = INSERT_RE.match(text)
    if not m:
        raise StatementParseError(f"Not a valid INSERT statement: {text}")

    columns = [c.strip() for c in (m.group("columns") or "").split(",") if c.strip()]
    rest = m.group("rest").strip()
    values: List[List[str]] = []
    source = None
    if re.match(r"VALUES\b", rest, re.IGNORECASE):
        for row in split_top_level(rest[len("VALUES"):]):
            if not (row.startswith("(") and row.endswith(")")):
                raise StatementParseError(f"Malformed VALUES row '{row}' in: {text}")
            values.append(split_top_level(row[1:-1]))
    elif re.match(r"(?:SELECT|WITH)\b", rest, re.IGNORECASE):
        source = rest
    elif not re.match(r"DEFAULT\s+VALUES\b", rest, re.IGNORECASE):
        raise StatementParseError(f"No VALUES clause found in INSERT statement: {text}")

    return InsertStatement(original=text, table=m.group("table"), columns=columns, values=values, source=source)


def parse_update_statement(query: str) -> UpdateStatement:
    text = _strip_terminator(query)
    masked = mask(text)
    m = UPDATE_RE.match(masked)
    if not m:
        raise StatementParseError(f"Not a valid UPDATE statement: {text}")
    where = text[m.start("where"):m.end("where")] if m.group("where") else None
    return UpdateStatement(
        original=text,
        table=text[m.start("table"):m.end("table")],
        assignments=text[m.start("assignments"):m.end("assignments")],
        where=where,
    )


def parse_delete_statement(query: str) -> DeleteStatement:
    text = _strip_terminator(query)
    m = DELETE_RE.match(mask(text))
    if not m:
        raise StatementParseError(f"Not a valid DELETE statement: {text}")
    where = text[m.start("where"):m.end("where")] if m.group("where") else None
    return DeleteStatement(original=text, table=text[m.start("table"):m.end("table")], where=where)


def parse_alter_table_statement(query: str) -> AlterTableStatement:
    text = _strip_terminator(query)
    m = ALTER_TABLE_RE.match(text)
    if not m:
        raise StatementParseError(f"Not a valid ALTER TABLE statement: {text}")
    return AlterTableStatement(original=text, table=m.group("table"), action=m.group("action"))


def parse_drop_statement(query: str) -> DropStatement:
    text = _strip_terminator(query)
    m = DROP_RE.match(text)
    if not m:
        raise StatementParseError(f"Not a valid DROP statement: {text}")
    return DropStatement(original=text, object_type=m.group("object_type").upper(), name=m.group("name"))


def parse_create_index_statement(query: str) -> CreateIndexStatement:
    text = _strip_terminator(query)
    m = CREATE_INDEX_RE.match(text)
    if not m:
        raise StatementParseError(f"Not a valid CREATE INDEX statement: {text}")
    return CreateIndexStatement(original=text, name=m.group("name"), table=m.group("table"))


def parse_trigger_statement(query: str) -> TriggerStatement:
    text = _strip_terminator(query)
    m = TRIGGER_RE.match(text)
    if not m:
        raise StatementParseError(f"Not a valid CREATE TRIGGER statement: {text}")
    body = [s.strip() for s in m.group("body").split(";") if s.strip()]
    return TriggerStatement(
        original=text,
        name=m.group("name"),
        timing=(m.group("timing") or "").upper(),
        event=m.group("event").upper(),
        table=m.group("table"),
        body=body,
    )


def parse_create_view_statement(query: str, depth: int = 0) -> CreateViewStatement:
    text = _strip_terminator(query)
    m = CREATE_VIEW_RE.match(text)
    if not m:
        raise StatementParseError(f"Not a valid CREATE VIEW statement: {text}")
    return CreateViewStatement(
        original=text,
        name=m.group("name"),
        header=text[:m.start("query")],
        query=_parse_nested(m.group("query"), depth + 1),
    )


def _parse_with_clauses(text: str, depth: int) -> Tuple[List[WithClause], bool, str]:
    m = WITH_RE.match(text)
    if not m:
        return [], False, text

    clauses = []
    pos = m.end()
    while True:
        cte = CTE_RE.match(text, pos)
        if not cte:
            raise StatementParseError(f"Malformed WITH clause in: {text}")
        open_index = cte.end() - 1
        close = find_matching_paren(text, open_index)
        if close is None:
            raise StatementParseError(f"Unbalanced WITH clause in: {text}")
        clauses.append(WithClause(cte.group("name").strip(), _parse_nested(text[open_index + 1:close], depth + 1)))
        pos = close + 1
        while pos < len(text) and text[pos].isspace():
            pos += 1
        if pos < len(text) and text[pos] == ",":
            pos += 1
            continue
        break

    return clauses, bool(m.group("recursive")), text[pos:].strip()


def _parse_table_refs(text: str) -> List[TableRef]:
    refs = []
    for item in split_top_level(text):
        # alternating relation / join keyword pieces, sliced from the original item
        pieces = []
        cursor = 0
        for m in JOIN_RE.finditer(mask(item)):
            pieces.append(item[cursor:m.start()])
            pieces.append(" ".join(m.group(1).upper().split()))
            cursor = m.end()
        pieces.append(item[cursor:])

        join = None
        for index, piece in enumerate(pieces):
            if index % 2 == 1:
                join = piece
                continue
            relation, condition = _split_join_condition(piece.strip())
            ref = TABLE_REF_RE.match(relation)
            if not ref:
                raise StatementParseError(f"Cannot parse table reference '{relation}'")
            refs.append(TableRef(name=ref.group("name"), alias=ref.group("alias"), join=join, condition=condition))
            join = None
    return refs


def _split_join_condition(text: str) -> Tuple[str, Optional[str]]:
    masked = mask(text)
    m = JOIN_CONDITION_RE.search(masked)
    if not m:
        return text, None
    return text[:m.start()].strip(), text[m.end():].strip()


def parse_select_statement(query: str, depth: int = 0) -> SelectStatement:
    if depth > MAX_NESTING_DEPTH:
        raise StatementParseError(f"Query nested deeper than {MAX_NESTING_DEPTH} levels")

    text = _strip_terminator(query)
    with_clauses, recursive, body = _parse_with_clauses(text, depth)
    body, subqueries = mask_subqueries(body, depth)

    masked = mask(body)
    if SET_OPERATION_RE.search(masked):
        raise StatementParseError(f"Set operations are not supported: {text}")
    m = SELECT_RE.match(masked)
    if not m:
        raise StatementParseError(f"Not a valid SELECT statement: {text}")

    def group(name: str) -> Optional[str]:
        if m.group(name) is None:
            return None
        return body[m.start(name):m.end(name)].strip()

    columns = []
    for item in split_top_level(group("columns")):
        qualified = re.match(r'^([A-Za-z_][\w$]*|"[^"]+")\.([A-Za-z_][\w$]*|"[^"]+"|\*)$', item)
        columns.append(Column(text=item, table=qualified.group(1) if qualified else None))

    tables = _parse_table_refs(group("tables")) if group("tables") else []

    return SelectStatement(
        original=text,
        with_clauses=with_clauses,
        recursive=recursive,
        distinct=m.group("distinct") is not None,
        columns=columns,
        tables=tables,
        where=split_conjuncts(group("where")) if group("where") else [],
        group_by=split_top_level(group("group_by")) if group("group_by") else [],
        having=split_conjuncts(group("having")) if group("having") else [],
        order_by=split_top_level(group("order_by")) if group("order_by") else [],
        limit=group("limit"),
        subqueries=subqueries,
    )


_DISPATCH = [
    (re.compile(r"^\s*CREATE\s+(?:(?:TEMP|TEMPORARY)\s+)?TRIGGER\b", re.IGNORECASE), parse_trigger_statement),
    (re.compile(r"^\s*CREATE\s+(?:OR\s+REPLACE\s+)?(?:(?:TEMP|TEMPORARY)\s+)?VIEW\b", re.IGNORECASE),
     parse_create_view_statement),
    (re.compile(r"^\s*CREATE\s+(?:UNIQUE\s+)?INDEX\b", re.IGNORECASE), parse_create_index_statement),
    (re.compile(r"^\s*CREATE\s+(?:(?:TEMP|TEMPORARY)\s+)?TABLE\b", re.IGNORECASE), parse_create_table_statement),
    (re.compile(r"^\s*(?:INSERT|REPLACE)\b", re.IGNORECASE), parse_insert_statement),
    (re.compile(r"^\s*(?:SELECT|WITH)\b", re.IGNORECASE), parse_select_statement),
    (re.compile(r"^\s*UPDATE\b", re.IGNORECASE), parse_update_statement),
    (re.compile(r"^\s*DELETE\b", re.IGNORECASE), parse_delete_statement),
    (re.compile(r"^\s*ALTER\s+TABLE\b", re.IGNORECASE), parse_alter_table_statement),
    (re.compile(r"^\s*DROP\b", re.IGNORECASE), parse_drop_statement),
]


def parse_statement(query: str) -> Statement:
    """Parses one statement, falling back to an Unknown statement on failure."""
    text = _strip_terminator(query)
    for pattern, parser in _DISPATCH:
        if pattern.match(text):
            try:
                return parser(text)
            except StatementParseError as e:
                logger.debug(f"Falling back to Unknown statement: {e}")
            break
    return Statement(original=text)
