# Structured representation of the statements of a SQL script.
#
# Every statement keeps the verbatim text it was parsed from in `original`.
# Removing a table never mutates a statement in place: it returns a new
# statement whose `original` is re-rendered from its fields, the unchanged
# statement itself, or None when the statement has to disappear.

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set


class StatementKind(Enum):
    CREATE_TABLE = "CreateTable"
    INSERT = "Insert"
    SELECT = "Select"
    CREATE_VIEW = "CreateView"
    TRIGGER = "Trigger"
    ALTER_TABLE = "AlterTable"
    UPDATE = "Update"
    DELETE = "Delete"
    DROP = "Drop"
    CREATE_INDEX = "CreateIndex"
    UNKNOWN = "Unknown"


_QUALIFIER_RE = re.compile(r'([A-Za-z_][\w$]*|"[^"]+")\s*\.\s*(?=[A-Za-z_"*])')


def normalize_name(name: str) -> str:
    """Identifier identity used for table matching: unquoted and case-folded."""
    return name.strip().strip('"`[]').lower()


def same_name(left: str, right: str) -> bool:
    return normalize_name(left) == normalize_name(right)


def mentions(text: str, name: str) -> bool:
    """True if `name` occurs in `text` as a whole identifier."""
    pattern = r'(?<![\w$])"?' + re.escape(name.strip('"`[]')) + r'"?(?![\w$])'
    return re.search(pattern, text, re.IGNORECASE) is not None


def qualifiers(text: str) -> Set[str]:
    """Returns the normalized `x` of every `x.column` reference in `text`."""
    return {normalize_name(m.group(1)) for m in _QUALIFIER_RE.finditer(text)}


def refers_to(text: str, names: Set[str]) -> bool:
    return bool(qualifiers(text) & names)


@dataclass
class Statement:
    """A statement the parser could not classify. It is always kept verbatim."""
    original: str

    kind = StatementKind.UNKNOWN

    def __str__(self) -> str:
        return self.original

    def get_tables(self) -> List[str]:
        return []

    def references(self, table: str) -> bool:
        return any(same_name(t, table) for t in self.get_tables())

    def remove_table_references(self, table: str) -> Optional["Statement"]:
        return self


@dataclass
class CreateTableStatement(Statement):
    name: str = ""
    columns: Dict[str, str] = field(default_factory=dict)

    kind = StatementKind.CREATE_TABLE

    def get_tables(self) -> List[str]:
        return [self.name]

    def remove_table_references(self, table: str) -> Optional[Statement]:
        return None if same_name(self.name, table) else self


@dataclass
class InsertStatement(Statement):
    table: str = ""
    columns: List[str] = field(default_factory=list)
    values: List[List[str]] = field(default_factory=list)
    source: Optional[str] = None

    kind = StatementKind.INSERT

    def get_tables(self) -> List[str]:
        return [self.table]

    def remove_table_references(self, table: str) -> Optional[Statement]:
        if same_name(self.table, table):
            return None
        # INSERT ... SELECT: the column list of the source cannot be patched up
        if self.source is not None and mentions(self.source, table):
            return None
        return self


@dataclass
class UpdateStatement(Statement):
    table: str = ""
    assignments: str = ""
    where: Optional[str] = None

    kind = StatementKind.UPDATE

    def get_tables(self) -> List[str]:
        return [self.table]

    def remove_table_references(self, table: str) -> Optional[Statement]:
        if same_name(self.table, table):
            return None
        if mentions(self.assignments, table) or (self.where and mentions(self.where, table)):
            return None
        return self


@dataclass
class DeleteStatement(Statement):
    table: str = ""
    where: Optional[str] = None

    kind = StatementKind.DELETE

    def get_tables(self) -> List[str]:
        return [self.table]

    def remove_table_references(self, table: str) -> Optional[Statement]:
        if same_name(self.table, table):
            return None
        if self.where and mentions(self.where, table):
            return None
        return self


@dataclass
class AlterTableStatement(Statement):
    table: str = ""
    action: str = ""

    kind = StatementKind.ALTER_TABLE

    def get_tables(self) -> List[str]:
        return [self.table]

    def remove_table_references(self, table: str) -> Optional[Statement]:
        if same_name(self.table, table) or mentions(self.action, table):
            return None
        return self


@dataclass
class DropStatement(Statement):
    object_type: str = "TABLE"
    name: str = ""

    kind = StatementKind.DROP

    def get_tables(self) -> List[str]:
        return [self.name]

    def remove_table_references(self, table: str) -> Optional[Statement]:
        return None if same_name(self.name, table) else self


@dataclass
class CreateIndexStatement(Statement):
    name: str = ""
    table: str = ""

    kind = StatementKind.CREATE_INDEX

    def get_tables(self) -> List[str]:
        return [self.table]

    def remove_table_references(self, table: str) -> Optional[Statement]:
        return None if same_name(self.table, table) else self


@dataclass
class TriggerStatement(Statement):
    name: str = ""
    timing: str = ""
    event: str = ""
    table: str = ""
    body: List[str] = field(default_factory=list)

    kind = StatementKind.TRIGGER

    def get_tables(self) -> List[str]:
        return [self.table]

    def remove_table_references(self, table: str) -> Optional[Statement]:
        if same_name(self.table, table):
            return None
        if any(mentions(stmt, table) for stmt in self.body):
            return None
        return self


@dataclass
class WithClause:
    name: str
    query: Statement


@dataclass
class Column:
    """One item of a SELECT list. `table` is set for plain `t.c` references."""
    text: str
    table: Optional[str] = None

    def __str__(self) -> str:
        return self.text


@dataclass
class TableRef:
    """One relation of a FROM clause, optionally attached with a JOIN."""
    name: str
    alias: Optional[str] = None
    join: Optional[str] = None
    condition: Optional[str] = None

    def names(self) -> Set[str]:
        found = {normalize_name(self.name)}
        if self.alias:
            found.add(normalize_name(self.alias))
        return found

    def render(self, first: bool) -> str:
        text = self.name if not self.alias else f"{self.name} {self.alias}"
        if first:
            return text
        if self.join:
            text = f" {self.join} {text}"
            if self.condition:
                text += f" {self.condition}"
            return text
        return f", {text}"


@dataclass
class SelectStatement(Statement):
    with_clauses: List[WithClause] = field(default_factory=list)
    recursive: bool = False
    distinct: bool = False
    columns: List[Column] = field(default_factory=list)
    tables: List[TableRef] = field(default_factory=list)
    where: List[str] = field(default_factory=list)
    group_by: List[str] = field(default_factory=list)
    having: List[str] = field(default_factory=list)
    order_by: List[str] = field(default_factory=list)
    limit: Optional[str] = None
    # placeholder -> nested statement, restored when rendering
    subqueries: Dict[str, Statement] = field(default_factory=dict)

    kind = StatementKind.SELECT

    @classmethod
    def trivial(cls) -> "SelectStatement":
        return cls(original="SELECT 1", columns=[Column("1")])

    @property
    def is_trivial(self) -> bool:
        return self.original == "SELECT 1"

    def get_tables(self) -> List[str]:
        found = [ref.name for ref in self.tables if not self.subqueries_in(ref.name)]
        for subquery in self.subqueries.values():
            found.extend(subquery.get_tables())
        for clause in self.with_clauses:
            found.extend(clause.query.get_tables())
        return found

    def subqueries_in(self, text: str) -> List[str]:
        return [placeholder for placeholder in self.subqueries if placeholder in text]

    def remove_table_references(self, table: str) -> Optional[Statement]:
        if not self.references(table):
            return self

        own = [ref for ref in self.tables if same_name(ref.name, table)]
        if own and len(own) == len(self.tables):
            return SelectStatement.trivial()

        removed: Set[str] = set()
        for ref in own:
            removed |= ref.names()

        kept_tables = []
        for ref in self.tables:
            if same_name(ref.name, table):
                continue
            if not kept_tables and ref.join:
                ref = replace(ref, join=None, condition=None)
            elif ref.condition and refers_to(ref.condition, removed):
                ref = replace(ref, join=None, condition=None)
            kept_tables.append(ref)

        columns = [c for c in self.columns if not refers_to(c.text, removed)]
        if not columns:
            columns = [Column("1")]

        subqueries = {}
        for placeholder, subquery in self.subqueries.items():
            rewritten = subquery.remove_table_references(table)
            subqueries[placeholder] = rewritten if rewritten is not None else SelectStatement.trivial()

        with_clauses = []
        for clause in self.with_clauses:
            rewritten = clause.query.remove_table_references(table)
            with_clauses.append(WithClause(clause.name, rewritten if rewritten is not None else SelectStatement.trivial()))

        result = replace(
            self,
            with_clauses=with_clauses,
            columns=columns,
            tables=kept_tables,
            where=_without(self.where, removed),
            group_by=_without(self.group_by, removed),
            having=_without(self.having, removed),
            order_by=_without(self.order_by, removed),
            subqueries=subqueries,
        )
        result.original = result.render()
        return result

    def render(self) -> str:
        parts = []
        if self.with_clauses:
            ctes = ", ".join(f"{c.name} AS ({c.query.original})" for c in self.with_clauses)
            parts.append(("WITH RECURSIVE " if self.recursive else "WITH ") + ctes)
        select = "SELECT DISTINCT " if self.distinct else "SELECT "
        parts.append(select + ", ".join(c.text for c in self.columns))
        if self.tables:
            parts.append("FROM " + "".join(ref.render(i == 0) for i, ref in enumerate(self.tables)))
        if self.where:
            parts.append("WHERE " + " AND ".join(self.where))
        if self.group_by:
            parts.append("GROUP BY " + ", ".join(self.group_by))
        if self.having:
            parts.append("HAVING " + " AND ".join(self.having))
        if self.order_by:
            parts.append("ORDER BY " + ", ".join(self.order_by))
        if self.limit:
            parts.append("LIMIT " + self.limit)

        text = " ".join(parts)
        for placeholder, subquery in self.subqueries.items():
            text = text.replace(placeholder, subquery.original)
        return text


@dataclass
class CreateViewStatement(Statement):
    name: str = ""
    header: str = ""
    query: Statement = field(default_factory=lambda: Statement(""))

    kind = StatementKind.CREATE_VIEW

    def get_tables(self) -> List[str]:
        return self.query.get_tables()

    def remove_table_references(self, table: str) -> Optional[Statement]:
        if same_name(self.name, table):
            return None
        if not self.query.references(table):
            return self
        query = self.query.remove_table_references(table)
        if query is None or (isinstance(query, SelectStatement) and query.is_trivial):
            return None
        return replace(self, query=query, original=f"{self.header}{query.original}")


def _without(terms: Iterable[str], removed: Set[str]) -> List[str]:
    return [term for term in terms if not refers_to(term, removed)]
