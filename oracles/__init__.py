"""
Oracle implementations deciding whether a candidate script is interesting.
"""

from .base_oracle import (
    BaseOracle,
    OracleConfigurationError,
    OracleError,
    OracleOutputError,
    OracleTerminatedError,
    OracleTimeoutError,
    OracleUsageError,
)
from .script_oracle import ScriptOracle
from .predicate_oracle import PredicateOracle

__all__ = [
    'BaseOracle',
    'ScriptOracle',
    'PredicateOracle',
    'OracleError',
    'OracleUsageError',
    'OracleConfigurationError',
    'OracleTerminatedError',
    'OracleTimeoutError',
    'OracleOutputError',
]

# Oracle registry for easy access
ORACLE_REGISTRY = {
    'ScriptOracle': ScriptOracle,
    'PredicateOracle': PredicateOracle,
}
