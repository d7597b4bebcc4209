# Defines the abstract base class for all interestingness oracles and the
# errors they raise. An oracle decides whether a candidate script still
# reproduces the behavior observed on the original script.

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional


class OracleError(Exception):
    """Base class for every oracle failure. Always fatal to a reduction."""
    stage = "oracle"


class OracleUsageError(OracleError):
    """The oracle was checked before being initialized, or initialized twice."""


class OracleConfigurationError(OracleError):
    """The test script could not be run or exited with an unexpected status."""


class OracleTerminatedError(OracleError):
    """The test process was terminated by a signal."""


class OracleTimeoutError(OracleError):
    """The test process did not finish within the configured timeout."""


class OracleOutputError(OracleError):
    """The test process produced output that is not valid UTF-8."""


class BaseOracle(ABC):
    """Base class for all oracles."""

    def __init__(self, query_path: Optional[str] = None):
        self.query_path = query_path
        self.baseline: Optional[str] = None
        self.checks = 0
        self.interesting = 0
        self._initialized = False
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self, original: str) -> str:
        """
        Runs the oracle once on the unreduced script to capture its baseline.

        Args:
            original: The full text of the original script

        Returns:
            The baseline output later candidates are compared against
        """
        if self._initialized:
            raise OracleUsageError(f"{self.get_oracle_name()} is already initialized")
        self.write_candidate(original)
        self.baseline = self._capture_baseline(original)
        self._initialized = True
        self.logger.debug(f"Captured baseline: {self.baseline!r}")
        return self.baseline

    def check(self, candidate: str) -> bool:
        """
        Checks whether a candidate still reproduces the original behavior.

        Overwrites the candidate file before evaluating it.
        """
        if not self._initialized:
            raise OracleUsageError(f"{self.get_oracle_name()}.check() called before init()")
        self.write_candidate(candidate)
        self.checks += 1
        result = self._evaluate(candidate)
        if result:
            self.interesting += 1
        self.logger.debug(f"Check #{self.checks}: {'interesting' if result else 'not interesting'}")
        return result

    def write_candidate(self, text: str):
        """Writes `text` to the candidate file, if the oracle has one."""
        if not self.query_path:
            return
        directory = os.path.dirname(self.query_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.query_path, 'w', encoding='utf-8') as f:
            f.write(text)

    @abstractmethod
    def _capture_baseline(self, original: str) -> str:
        pass

    @abstractmethod
    def _evaluate(self, candidate: str) -> bool:
        pass

    def get_oracle_name(self) -> str:
        """
        Get the name of this oracle.

        Returns:
            The oracle's name
        """
        return self.__class__.__name__

    def get_oracle_description(self) -> str:
        return f"{self.get_oracle_name()} - {self.__class__.__doc__ or 'No description available'}"
