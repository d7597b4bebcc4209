"""
Reduction procedures: statement, table and token granularity delta debugging,
and the pipeline that chains them.
"""

from .delta_reducer import DeltaReducer, get_nabla, split_tests
from .table_reducer import TableReducer
from .token_reducer import TokenReducer, repair_parentheses
from .pipeline import ReductionError, ReductionPipeline, ReductionResult, StageStats

__all__ = [
    'DeltaReducer',
    'TableReducer',
    'TokenReducer',
    'ReductionPipeline',
    'ReductionResult',
    'ReductionError',
    'StageStats',
    'split_tests',
    'get_nabla',
    'repair_parentheses',
]
