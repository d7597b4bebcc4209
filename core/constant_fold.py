# Constant folding pass built on sqlglot. Literal sub-expressions are evaluated
# bottom-up so that a reduced statement carries as little arithmetic noise as
# possible while keeping its meaning.

from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlglot import exp, parse_one
from sqlglot.errors import SqlglotError

from .transformer import Transform

FALSE_SELECT = "SELECT 1 WHERE FALSE"

_ARITHMETIC = {
    exp.Add: lambda a, b: a + b,
    exp.Sub: lambda a, b: a - b,
    exp.Mul: lambda a, b: a * b,
    exp.Div: lambda a, b: a / b,
}

_COMPARISONS = {
    exp.EQ: lambda a, b: a == b,
    exp.NEQ: lambda a, b: a != b,
    exp.GT: lambda a, b: a > b,
    exp.LT: lambda a, b: a < b,
    exp.GTE: lambda a, b: a >= b,
    exp.LTE: lambda a, b: a <= b,
}


def _number(node: exp.Expression) -> Optional[Decimal]:
    if isinstance(node, exp.Literal) and not node.is_string:
        try:
            return Decimal(node.this)
        except InvalidOperation:
            return None
    return None


def _boolean(node: exp.Expression) -> Optional[bool]:
    if isinstance(node, exp.Boolean):
        return bool(node.this)
    return None


def _number_literal(value: Decimal) -> exp.Expression:
    if value == value.to_integral_value():
        text = str(int(value))
    else:
        text = format(value.normalize(), "f")
    if text.startswith("-"):
        return exp.Neg(this=exp.Literal.number(text[1:]))
    return exp.Literal.number(text)


def _fold_node(node: exp.Expression) -> Optional[exp.Expression]:
    """Returns the folded replacement for `node`, or None if it cannot be folded."""
    if isinstance(node, exp.Paren):
        inner = node.this
        if isinstance(inner, (exp.Literal, exp.Boolean)):
            return inner.copy()
        return None

    if isinstance(node, exp.Neg):
        # -<literal> is already the folded form of a negative number
        if isinstance(node.this, exp.Literal):
            return None
        value = _operand(node.this)
        if value is None:
            return None
        return _number_literal(-value)

    if isinstance(node, exp.Not):
        if isinstance(node.this, exp.Not):
            return node.this.this.copy()
        value = _boolean(node.this)
        return exp.Boolean(this=not value) if value is not None else None

    left, right = node.args.get("this"), node.args.get("expression")
    if left is None or right is None:
        return None

    for kind, op in _ARITHMETIC.items():
        if type(node) is kind:
            a, b = _operand(left), _operand(right)
            if a is None or b is None:
                return None
            if kind is exp.Div and b == 0:
                return None
            return _number_literal(op(a, b))

    for kind, op in _COMPARISONS.items():
        if type(node) is kind:
            a, b = _operand(left), _operand(right)
            if a is not None and b is not None:
                return exp.Boolean(this=op(a, b))
            if kind in (exp.EQ, exp.NEQ):
                x, y = _boolean(left), _boolean(right)
                if x is not None and y is not None:
                    return exp.Boolean(this=op(x, y))
            return None

    if isinstance(node, (exp.And, exp.Or)):
        x, y = _boolean(left), _boolean(right)
        if x is None or y is None:
            return None
        return exp.Boolean(this=(x and y) if isinstance(node, exp.And) else (x or y))

    return None


def _operand(node: exp.Expression) -> Optional[Decimal]:
    """Numeric value of a literal, also seeing through a folded negative literal."""
    if isinstance(node, exp.Neg):
        value = _number(node.this)
        return -value if value is not None else None
    return _number(node)


class ConstantFold(Transform):
    """Evaluates constant arithmetic, comparisons and boolean logic."""

    name = "ConstantFold"

    def fold_statement(self, statement: exp.Expression) -> Optional[exp.Expression]:
        """
        Folds a parsed statement in place and returns its new root.

        Returns None when the statement is a SELECT whose WHERE clause folded to
        FALSE, i.e. a query that can never return a row.
        """
        root = statement
        # dfs yields parents before children, so the reversed order visits
        # every child before its parent
        for node in reversed(list(statement.dfs())):
            if node.parent is None and node is not root:
                # detached by an earlier replacement
                continue
            folded = _fold_node(node)
            if folded is None:
                continue
            if node is root:
                root = folded
            else:
                node.replace(folded)

        if isinstance(root, exp.Select):
            where = root.args.get("where")
            if where is not None and _boolean(where.this) is False:
                return None
        return root

    def apply(self, sql: str) -> str:
        try:
            statement = parse_one(sql, read=self.dialect)
        except SqlglotError as e:
            self.logger.debug(f"Leaving unparseable statement untouched: {e}")
            return sql
        if statement is None:
            return sql

        folded = self.fold_statement(statement)
        if folded is None:
            return FALSE_SELECT
        return folded.sql(dialect=self.dialect)
