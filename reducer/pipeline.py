# The reduction pipeline: runs the statement, table, unnest, token and
# transform stages in sequence, each on the output of the previous one, and
# collects the statistics reported at the end of a run.

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from core.parser import (
    count_tokens,
    extract_subqueries,
    parse_statements,
    render_statements,
    split_statements,
    tokenize,
)
from core.statement import StatementKind
from core.transformer import build_transforms, transform
from oracles.base_oracle import BaseOracle, OracleError
from .delta_reducer import DeltaReducer
from .table_reducer import TableReducer
from .token_reducer import TokenReducer


class ReductionError(Exception):
    """A reduction aborted. `stage` names what failed: parse, oracle, io or verify."""

    def __init__(self, message: str, stage: str):
        super().__init__(message)
        self.stage = stage


@dataclass
class StageStats:
    name: str
    statements_before: int
    statements_after: int
    tokens_before: int
    tokens_after: int
    checks: int
    elapsed_ms: int
    accepted: bool = True


@dataclass
class ReductionResult:
    original_statements: int
    reduced_statements: int
    original_tokens: int
    reduced_tokens: int
    elapsed_ms: int
    text: str
    stages: List[StageStats] = field(default_factory=list)
    oracle_checks: int = 0
    oracle_interesting: int = 0
    removed_tables: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _tokens_of(statements: List[str]) -> int:
    return sum(len(tokenize(s)) for s in statements)


class ReductionPipeline:
    """
    Orchestrates every reduction stage over one script.

    The pipeline owns the oracle for the whole run: it is initialized here if the
    caller has not done so, and every stage receives it explicitly.
    """
    def __init__(self, oracle: BaseOracle, config: Optional[Dict[str, Any]] = None):
        self.oracle = oracle
        self.config = config or {}
        self.reduction = self.config.get('reduction', {})
        self.dialect = self.reduction.get('sql_dialect')
        self.removed_tables: List[str] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    def _enabled(self, key: str) -> bool:
        return self.reduction.get(key, True)

    def run(self, script_text: str) -> ReductionResult:
        """
        Reduces a script.

        Args:
            script_text: The full text of the failing script.

        Returns:
            The reduction statistics together with the final reduced text.

        Raises:
            ReductionError: if the oracle fails, the original script does not
                reproduce, or the candidate file cannot be written.
        """
        try:
            return self._run(script_text)
        except OracleError as e:
            self.logger.error(f"Oracle failure: {e}")
            raise ReductionError(str(e), stage=e.stage) from e
        except OSError as e:
            self.logger.error(f"I/O failure: {e}")
            raise ReductionError(str(e), stage="io") from e

    def _run(self, script_text: str) -> ReductionResult:
        start_time = time.time()
        statements = split_statements(script_text)
        original_text = render_statements(statements)
        original_statements = len(statements)
        original_tokens = count_tokens(original_text)
        self.logger.info(f"Loaded script with {original_statements} statements and {original_tokens} tokens")

        if not self.oracle.initialized:
            self.oracle.init(original_text)
        if self.reduction.get('verify_original', True) and not self.oracle.check(original_text):
            raise ReductionError("The original script is not interesting", stage="verify")

        stages: List[StageStats] = []
        self.removed_tables = []
        if statements:
            statements = self._stage("statements", self._reduce_statements, statements, stages,
                                     self._enabled('enable_statement_reduction'))
            statements = self._stage("tables", self._reduce_tables, statements, stages,
                                     self._enabled('enable_table_reduction'))

            if self.reduction.get('quick', False):
                self.logger.info("Quick mode: skipping unnest, token and transform stages")
            else:
                statements = self._stage("unnest", self._unnest_selects, statements, stages,
                                         self._enabled('enable_unnest'))
                statements = self._stage("tokens", self._reduce_tokens, statements, stages,
                                         self._enabled('enable_token_reduction'))
                statements = self._stage("transforms", self._apply_transforms, statements, stages,
                                         self._enabled('enable_transforms'))

        text = render_statements(statements)
        self.oracle.write_candidate(text)

        result = ReductionResult(
            original_statements=original_statements,
            reduced_statements=len(statements),
            original_tokens=original_tokens,
            reduced_tokens=count_tokens(text),
            elapsed_ms=int((time.time() - start_time) * 1000),
            text=text,
            stages=stages,
            oracle_checks=self.oracle.checks,
            oracle_interesting=self.oracle.interesting,
            removed_tables=list(self.removed_tables),
        )
        self.logger.info(
            f"Reduction finished: {result.original_statements} -> {result.reduced_statements} statements, "
            f"{result.original_tokens} -> {result.reduced_tokens} tokens in {result.elapsed_ms} ms"
        )
        return result

    def _stage(self, name: str, reducer: Callable[[List[str]], List[str]], statements: List[str],
               stages: List[StageStats], enabled: bool) -> List[str]:
        """Runs one stage and keeps its output only if it did not grow the script."""
        if not enabled:
            self.logger.info(f"Stage '{name}' is disabled")
            return statements

        self.logger.info(f"--- Stage: {name} ---")
        checks_before = self.oracle.checks
        stage_start = time.time()
        reduced = reducer(statements)

        tokens_before, tokens_after = _tokens_of(statements), _tokens_of(reduced)
        accepted = len(reduced) <= len(statements) and tokens_after <= tokens_before
        if not accepted:
            self.logger.warning(f"Stage '{name}' grew the script, keeping its input")
        stages.append(StageStats(
            name=name,
            statements_before=len(statements),
            statements_after=len(reduced) if accepted else len(statements),
            tokens_before=tokens_before,
            tokens_after=tokens_after if accepted else tokens_before,
            checks=self.oracle.checks - checks_before,
            elapsed_ms=int((time.time() - stage_start) * 1000),
            accepted=accepted,
        ))
        return reduced if accepted else statements

    def _reduce_statements(self, statements: List[str]) -> List[str]:
        granularity = self.reduction.get('initial_granularity', 2)
        return DeltaReducer(self.oracle).reduce(statements, granularity)

    def _reduce_tables(self, statements: List[str]) -> List[str]:
        parsed = parse_statements(statements)
        removed, reduced = TableReducer(self.oracle, self.dialect).reduce(parsed)
        if not removed:
            return statements
        self.removed_tables = removed
        self.logger.info(f"Removed tables: {', '.join(removed)}")
        return [s.original for s in reduced]

    def _unnest_selects(self, statements: List[str]) -> List[str]:
        """Tries to replace each SELECT with one of its nested queries, shortest first."""
        statements = list(statements)
        for index, statement in enumerate(parse_statements(statements)):
            if statement.kind != StatementKind.SELECT:
                continue
            nested = [q for q in extract_subqueries(statements[index]) if q != statements[index]]
            for query in sorted(dict.fromkeys(nested), key=len):
                candidate = statements[:index] + [query] + statements[index + 1:]
                if self.oracle.check(render_statements(candidate)):
                    self.logger.info(f"Statement {index} unnested to: {query}")
                    statements = candidate
                    break
        return statements

    def _reduce_tokens(self, statements: List[str]) -> List[str]:
        return TokenReducer(self.oracle).reduce_script(statements)

    def _apply_transforms(self, statements: List[str]) -> List[str]:
        passes = build_transforms(self.reduction.get('transform_passes', ['ConstantFold']), self.dialect)
        statements = list(statements)
        for index in range(len(statements)):
            rewritten = transform([statements[index]], passes)[0]
            if rewritten == statements[index] or len(tokenize(rewritten)) > len(tokenize(statements[index])):
                continue
            candidate = statements[:index] + [rewritten] + statements[index + 1:]
            if self.oracle.check(render_statements(candidate)):
                self.logger.info(f"Statement {index} rewritten to: {rewritten}")
                statements = candidate
        return statements
