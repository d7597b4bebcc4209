# Rewrite passes applied to reduced statements. Each pass rewrites a single
# statement and is applied in sequence to every statement of the script.

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence


class Transform(ABC):
    """Base class for all statement rewrite passes."""

    name = "Transform"

    def __init__(self, dialect: Optional[str] = None):
        self.dialect = dialect
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def apply(self, sql: str) -> str:
        """
        Rewrites one statement.

        Args:
            sql: The statement text, without a terminator

        Returns:
            The rewritten statement, or `sql` itself if nothing applies
        """
        pass

    def get_transform_name(self) -> str:
        return self.name


def transform(statements: Sequence[str], passes: Sequence[Transform]) -> List[str]:
    """Applies every pass, in order, to every statement."""
    result = list(statements)
    for rewrite in passes:
        result = [rewrite.apply(s) for s in result]
    return result


def build_transforms(names: Sequence[str], dialect: Optional[str] = None) -> List[Transform]:
    from . import TRANSFORM_REGISTRY as registry

    passes = []
    for name in names:
        if name not in registry:
            raise ValueError(f"Unknown transform pass '{name}'. Available: {', '.join(registry)}")
        passes.append(registry[name](dialect=dialect))
    return passes
