# Oracle backed by an external test script. The script receives the candidate
# (its path, or the SQL text itself) and the baseline output, and signals with
# its exit status whether the candidate still reproduces the behavior.

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import psutil

from .base_oracle import (
    BaseOracle,
    OracleConfigurationError,
    OracleOutputError,
    OracleTerminatedError,
    OracleTimeoutError,
)

EXIT_NOT_REPRODUCED = 0
EXIT_REPRODUCED = 1

CANDIDATE_ARGUMENTS = ("path", "text")

logger = logging.getLogger(__name__)


@dataclass
class ProcessOutcome:
    """What the oracle needs to know about one finished test process."""
    returncode: int
    stdout: bytes
    stderr: bytes = b""


Runner = Callable[[List[str], Optional[float]], ProcessOutcome]


def kill_process_tree(pid: int):
    """Kills a process and every descendant it spawned."""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return
    processes = parent.children(recursive=True) + [parent]
    for proc in processes:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass
    _, alive = psutil.wait_procs(processes, timeout=5)
    for proc in alive:
        logger.warning(f"Process {proc.pid} survived SIGKILL")


def run_process(args: List[str], timeout: Optional[float] = None,
                kill_tree: bool = True) -> ProcessOutcome:
    """Runs one test process to completion and collects its output."""
    try:
        proc = subprocess.Popen(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except OSError as e:
        raise OracleConfigurationError(f"Cannot run test script '{args[0]}': {e}") from e

    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired as e:
        if kill_tree:
            kill_process_tree(proc.pid)
        else:
            proc.kill()
        proc.communicate()
        raise OracleTimeoutError(f"Test script '{args[0]}' did not finish within {timeout}s") from e
    return ProcessOutcome(returncode=proc.returncode, stdout=stdout, stderr=stderr)


class ScriptOracle(BaseOracle):
    """Delegates the interestingness verdict to an external test script."""

    def __init__(self, test_script: str, query_path: Optional[str] = None,
                 candidate_argument: str = "path", timeout: Optional[float] = None,
                 kill_tree: bool = True, runner: Optional[Runner] = None):
        super().__init__(query_path or os.path.join(os.getcwd(), "query.sql"))
        if candidate_argument not in CANDIDATE_ARGUMENTS:
            raise ValueError(f"candidate_argument must be one of {CANDIDATE_ARGUMENTS}")
        self.test_script = test_script
        self.candidate_argument = candidate_argument
        self.timeout = timeout
        self.kill_tree = kill_tree
        self.runner = runner or self._default_runner

    @classmethod
    def create(cls, original: str, test_script: str, **kwargs) -> 'ScriptOracle':
        """Builds an oracle and captures its baseline in one step."""
        oracle = cls(test_script, **kwargs)
        oracle.init(original)
        return oracle

    @classmethod
    def from_config(cls, oracle_config: Dict[str, Any], runner: Optional[Runner] = None) -> 'ScriptOracle':
        if not oracle_config.get('test_script'):
            raise OracleConfigurationError("No test script configured (use --test)")
        return cls(
            test_script=oracle_config['test_script'],
            query_path=oracle_config.get('query_path'),
            candidate_argument=oracle_config.get('candidate_argument', 'path'),
            timeout=oracle_config.get('timeout'),
            kill_tree=oracle_config.get('kill_process_tree', True),
            runner=runner,
        )

    def _default_runner(self, args: List[str], timeout: Optional[float]) -> ProcessOutcome:
        return run_process(args, timeout, kill_tree=self.kill_tree)

    def _arguments(self, candidate: str, baseline: str) -> List[str]:
        subject = self.query_path if self.candidate_argument == "path" else candidate
        return [self.test_script, subject, baseline]

    def _run(self, candidate: str, baseline: str) -> ProcessOutcome:
        outcome = self.runner(self._arguments(candidate, baseline), self.timeout)
        if outcome.returncode < 0:
            raise OracleTerminatedError(
                f"Test script '{self.test_script}' was terminated by signal {-outcome.returncode}"
            )
        return outcome

    def _capture_baseline(self, original: str) -> str:
        outcome = self._run(original, "")
        try:
            return outcome.stdout.decode('utf-8').strip()
        except UnicodeDecodeError as e:
            raise OracleOutputError(f"Baseline output of '{self.test_script}' is not valid UTF-8") from e

    def _evaluate(self, candidate: str) -> bool:
        outcome = self._run(candidate, self.baseline)
        if outcome.returncode == EXIT_REPRODUCED:
            return True
        if outcome.returncode == EXIT_NOT_REPRODUCED:
            return False
        stderr = outcome.stderr.decode('utf-8', errors='replace').strip()
        raise OracleConfigurationError(
            f"Test script '{self.test_script}' exited with status {outcome.returncode}, "
            f"expected {EXIT_NOT_REPRODUCED} or {EXIT_REPRODUCED}: {stderr}"
        )
