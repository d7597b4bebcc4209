"""
SQL front end of the reducer: statement model, parsing and rewrite passes.
"""

from .statement import Statement, StatementKind
from .parser import (
    count_tokens,
    create_table_names,
    extract_subqueries,
    is_parseable,
    parse_statements,
    remove_tables,
    render_statements,
    split_statements,
    tokenize,
)
from .transformer import Transform, build_transforms, transform
from .constant_fold import ConstantFold

__all__ = [
    'Statement',
    'StatementKind',
    'split_statements',
    'parse_statements',
    'render_statements',
    'create_table_names',
    'remove_tables',
    'is_parseable',
    'tokenize',
    'count_tokens',
    'extract_subqueries',
    'Transform',
    'ConstantFold',
    'build_transforms',
    'transform',
]

# Transform registry, keyed by pass name as used in the configuration
TRANSFORM_REGISTRY = {
    'ConstantFold': ConstantFold,
}
