# In-process oracle around a Python callable. Used by library callers that can
# judge a candidate without spawning a process, and throughout the tests.

from typing import Callable, Optional

from .base_oracle import BaseOracle


class PredicateOracle(BaseOracle):
    """Judges candidates with a callable returning True for interesting text."""

    def __init__(self, predicate: Callable[[str], bool], query_path: Optional[str] = None):
        super().__init__(query_path)
        self.predicate = predicate
        self.history = []

    def _capture_baseline(self, original: str) -> str:
        return ""

    def _evaluate(self, candidate: str) -> bool:
        self.history.append(candidate)
        return bool(self.predicate(candidate))
