"""
Unit tests for reducer/token_reducer.py
"""

import pytest

from reducer.token_reducer import TokenReducer, repair_parentheses


def balanced(text):
    return text.count("(") == text.count(")")


# ================================
# repair_parentheses
# ================================

class TestRepairParentheses:

    def test_unclosed_group_gets_closed(self):
        assert repair_parentheses(["(", "a"]) == ["(", "a", ")"]

    def test_unopened_group_gets_opened(self):
        assert repair_parentheses(["a", ")"]) == ["(", "a", ")"]

    def test_balanced_fragment_is_unchanged(self):
        tokens = ["f", "(", "a", ")", "+", "(", "b", ")"]
        assert repair_parentheses(tokens) == tokens

    def test_close_before_open(self):
        assert repair_parentheses([")", "x", "("]) == ["(", ")", "x", "(", ")"]

    @pytest.mark.parametrize("tokens", [
        [")", ")", "a", "("],
        ["(", "(", "(", "1", ")"],
        [")", "(", ")", "("],
        [],
    ])
    def test_repaired_fragment_is_balanced(self, tokens):
        repaired = repair_parentheses(tokens)
        assert repaired.count("(") == repaired.count(")")


# ================================
# TokenReducer
# ================================

class TestTokenReducer:

    def test_reduces_tokens_of_one_statement(self, make_oracle):
        script = ["CREATE TABLE t (a INT)", "SELECT a + 1 FROM t WHERE a > 0"]
        oracle = make_oracle(lambda text: "SELECT" in text and "FROM t" in text)
        assert TokenReducer(oracle).reduce_statement(script, 1) == "SELECT FROM t"

    def test_other_statements_are_left_alone(self, make_oracle):
        script = ["CREATE TABLE t (a INT)", "SELECT a + 1 FROM t WHERE a > 0"]
        oracle = make_oracle(lambda text: "SELECT" in text and "FROM t" in text)
        TokenReducer(oracle).reduce_statement(script, 1)
        assert all(candidate.startswith("CREATE TABLE t (a INT);") for candidate in oracle.history)

    def test_unreduced_statement_keeps_its_original_text(self, make_oracle):
        script = ["SELECT count(a) FROM t"]
        # candidates are rendered from tokens, so "count(a)" never reappears
        oracle = make_oracle(lambda text: "count(a)" in text)
        assert TokenReducer(oracle).reduce_statement(script, 0) == "SELECT count(a) FROM t"

    def test_every_candidate_is_balanced(self, make_oracle):
        script = ["SELECT ((1 + 2) * (3 - x)) FROM t"]
        oracle = make_oracle(lambda text: "x" in text)
        reduced = TokenReducer(oracle).reduce_statement(script, 0)
        assert "x" in reduced
        assert all(balanced(candidate) for candidate in oracle.history)
        assert balanced(reduced)

    def test_reduce_script_handles_every_statement(self, make_oracle):
        script = ["CREATE TABLE t (a INT, b INT)", "INSERT INTO t VALUES (1, 2)"]
        oracle = make_oracle(lambda text: "TABLE t" in text and "INTO t" in text)
        assert TokenReducer(oracle).reduce_script(script) == ["TABLE t", "INTO t"]

    def test_single_token_statement(self, make_oracle):
        oracle = make_oracle(lambda text: True)
        assert TokenReducer(oracle).reduce_statement(["COMMIT"], 0) == "COMMIT"
        assert oracle.checks == 0
