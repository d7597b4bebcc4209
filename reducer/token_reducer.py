# Token-granularity reduction inside single statements. Runs the same ddmin
# search as the statement reducer over the tokens of one statement, splicing
# every candidate back into the whole script before asking the oracle.

from typing import List, Sequence, TYPE_CHECKING

from core.parser import render_statements, tokenize
from .delta_reducer import DeltaReducer

if TYPE_CHECKING:
    from oracles.base_oracle import BaseOracle


def repair_parentheses(tokens: Sequence[str]) -> List[str]:
    """
    Balances the parentheses of a token fragment.

    Every `)` without a matching `(` before it gets a synthetic `(` prepended,
    and every `(` left open gets a synthetic `)` appended. Balanced fragments
    are returned unchanged.
    """
    depth = 0
    unmatched_close = 0
    for token in tokens:
        if token == "(":
            depth += 1
        elif token == ")":
            if depth == 0:
                unmatched_close += 1
            else:
                depth -= 1
    return ["("] * unmatched_close + list(tokens) + [")"] * depth


class TokenReducer(DeltaReducer):
    """Bruteforces the tokens of each statement of a script, one statement at a time."""

    def __init__(self, oracle: 'BaseOracle'):
        super().__init__(oracle, render=self._render_spliced)
        self._script: List[str] = []
        self._index = 0

    def _prepare(self, candidate: List[str]) -> List[str]:
        return repair_parentheses(candidate)

    def _render_spliced(self, tokens: Sequence[str]) -> str:
        statements = list(self._script)
        statements[self._index] = " ".join(tokens)
        return render_statements(statements)

    def reduce_statement(self, script: Sequence[str], index: int) -> str:
        """
        Reduces the tokens of `script[index]`, validating against the whole script.

        Returns:
            The reduced statement text, or the original text if no token could
            be removed.
        """
        self._script = list(script)
        self._index = index
        tokens = tokenize(self._script[index])
        if len(tokens) < 2:
            return self._script[index]

        self.logger.debug(f"Reducing statement {index} ({len(tokens)} tokens)")
        reduced = self.reduce(tokens)
        if len(reduced) >= len(tokens):
            return self._script[index]
        self.logger.info(f"Statement {index}: {len(tokens)} -> {len(reduced)} tokens")
        return " ".join(reduced)

    def reduce_script(self, script: Sequence[str]) -> List[str]:
        """Reduces every statement in order, each result spliced in before the next starts."""
        statements = list(script)
        for index in range(len(statements)):
            statements[index] = self.reduce_statement(statements, index)
        return [s for s in statements if s.strip()]
