# This module contains the delta debugging core of the reducer: the classic
# ddmin search over an ordered sequence of opaque elements, followed by a
# one-at-a-time sweep that leaves the result 1-minimal.

import logging
from typing import Callable, List, Sequence, TypeVar, TYPE_CHECKING

from core.parser import render_statements

if TYPE_CHECKING:
    from oracles.base_oracle import BaseOracle

T = TypeVar('T')


def split_tests(data: Sequence[T], granularity: int) -> List[List[T]]:
    """
    Splits `data` into `granularity` contiguous parts.

    The first `len(data) % granularity` parts get one extra element, so every
    element lands in exactly one part and part sizes differ by at most one.
    """
    if granularity < 1:
        raise ValueError("granularity must be at least 1")
    size, extra = divmod(len(data), granularity)
    parts = []
    start = 0
    for i in range(granularity):
        end = start + size + (1 if i < extra else 0)
        parts.append(list(data[start:end]))
        start = end
    return parts


def get_nabla(data: Sequence[T], delta: Sequence[T]) -> List[T]:
    """
    Returns the multiset difference `data - delta`, keeping the order of `data`.

    Each element of `delta` cancels the earliest equal element of `data` that has
    not been cancelled yet.
    """
    pending = list(delta)
    nabla = []
    for item in data:
        if item in pending:
            pending.remove(item)
        else:
            nabla.append(item)
    return nabla


class DeltaReducer:
    """
    Reduces an ordered sequence with ddmin, consulting an oracle on the rendered
    form of every candidate.
    """
    def __init__(self, oracle: 'BaseOracle', render: Callable[[Sequence], str] = render_statements):
        self.oracle = oracle
        self.render = render
        self.logger = logging.getLogger(self.__class__.__name__)

    def _prepare(self, candidate: List) -> List:
        """Hook applied to every candidate before it is tested."""
        return candidate

    def _test(self, candidate: List) -> bool:
        return self.oracle.check(self.render(candidate))

    def reduce(self, data: Sequence, granularity: int = 2) -> List:
        """
        Performs the ddmin loop followed by the 1-minimal sweep.

        Args:
            data: The elements of the failing input, in order.
            granularity: Initial number of chunks.

        Returns:
            The smallest sequence found that is still interesting.
        """
        data = list(data)
        self.logger.debug(f"Starting ddmin on {len(data)} elements")

        while 2 <= granularity <= len(data):
            reduced = False
            for chunk in split_tests(data, granularity):
                delta = self._prepare(chunk)
                if len(delta) < len(data) and self._test(delta):
                    self.logger.info(f"Reduced to subset: {len(data)} -> {len(delta)} elements")
                    data = delta
                    reduced = True
                    break

                nabla = self._prepare(get_nabla(data, chunk))
                if len(nabla) < len(data) and self._test(nabla):
                    self.logger.info(f"Reduced to complement: {len(data)} -> {len(nabla)} elements")
                    data = nabla
                    granularity = max(granularity - 1, 2)
                    reduced = True
                    break

            if not reduced:
                granularity *= 2
                self.logger.debug(f"No chunk reduced the input, granularity is now {granularity}")

        return self.find_one_minimal(data)

    def find_one_minimal(self, data: Sequence) -> List:
        """
        Removes single elements until no removal keeps the input interesting.

        After every successful removal the sweep restarts from the first element,
        since a removal can make earlier elements removable.
        """
        data = list(data)
        i = 0
        while i < len(data):
            candidate = self._prepare(data[:i] + data[i + 1:])
            if len(candidate) < len(data) and self._test(candidate):
                self.logger.info(f"Removed element {i}: {len(data)} -> {len(candidate)} elements")
                data = candidate
                i = 0
            else:
                i += 1
        return data
