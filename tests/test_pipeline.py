"""
End-to-end tests for reducer/pipeline.py
"""

import pytest

from oracles.base_oracle import OracleConfigurationError
from oracles.predicate_oracle import PredicateOracle
from reducer.pipeline import ReductionError, ReductionPipeline

SCRIPT = (
    "CREATE TABLE t (a INT);\n"
    "CREATE TABLE u (b INT);\n"
    "INSERT INTO t VALUES (1);\n"
    "INSERT INTO u VALUES (2);\n"
    "SELECT a FROM t WHERE a > 0;\n"
)


def only(**stages):
    """Reduction config with every optional stage switched off except the named ones."""
    reduction = {
        'enable_statement_reduction': True,
        'enable_table_reduction': True,
        'enable_unnest': False,
        'enable_token_reduction': False,
        'enable_transforms': False,
    }
    reduction.update(stages)
    return {'reduction': reduction}


# ================================
# Full runs
# ================================

class TestReductionPipeline:

    def test_reduces_to_a_single_statement(self):
        oracle = PredicateOracle(lambda text: "INSERT" in text)
        result = ReductionPipeline(oracle).run(SCRIPT)

        assert result.original_statements == 5
        assert result.reduced_statements == 1
        assert "INSERT" in result.text
        assert result.reduced_tokens < result.original_tokens
        assert oracle.check(result.text)

    def test_keeps_statements_the_predicate_needs(self):
        oracle = PredicateOracle(lambda text: "CREATE TABLE t" in text and "INSERT" in text)
        result = ReductionPipeline(oracle).run(SCRIPT)

        assert result.reduced_statements == 2
        assert "CREATE TABLE t" in result.text
        assert "CREATE TABLE u" not in result.text

    def test_insert_alone_reproduces(self):
        oracle = PredicateOracle(lambda text: "INSERT" in text)
        result = ReductionPipeline(oracle).run("CREATE TABLE F (p BOOLEAN); INSERT INTO F VALUES (((1+2)*3));")
        assert result.reduced_statements == 1
        assert "INSERT" in result.text
        assert "CREATE" not in result.text

    def test_insert_needs_its_table(self):
        oracle = PredicateOracle(lambda text: "CREATE TABLE F" in text and "INSERT" in text)
        result = ReductionPipeline(oracle).run("CREATE TABLE F (p BOOLEAN); INSERT INTO F VALUES (((1+2)*3));")
        assert result.reduced_statements == 2

    def test_oracle_counters_are_reported(self):
        oracle = PredicateOracle(lambda text: "INSERT" in text)
        result = ReductionPipeline(oracle).run(SCRIPT)
        assert result.oracle_checks == oracle.checks > 0
        assert 0 < result.oracle_interesting <= result.oracle_checks

    def test_stages_never_grow_the_script(self):
        oracle = PredicateOracle(lambda text: "SELECT" in text)
        result = ReductionPipeline(oracle).run(SCRIPT)

        assert [stage.name for stage in result.stages] == [
            "statements", "tables", "unnest", "tokens", "transforms"
        ]
        for stage in result.stages:
            assert stage.statements_after <= stage.statements_before
            assert stage.tokens_after <= stage.tokens_before

    def test_final_candidate_file_holds_the_result(self, tmp_path):
        query_path = tmp_path / "query.sql"
        oracle = PredicateOracle(lambda text: "INSERT" in text, query_path=str(query_path))
        result = ReductionPipeline(oracle).run(SCRIPT)
        assert query_path.read_text(encoding="utf-8") == result.text

    def test_empty_script(self):
        oracle = PredicateOracle(lambda text: True)
        result = ReductionPipeline(oracle).run("")
        assert result.text == ""
        assert result.original_statements == result.reduced_statements == 0
        assert result.stages == []

    def test_accepts_an_initialized_oracle(self, make_oracle):
        oracle = make_oracle(lambda text: "INSERT" in text, original=SCRIPT)
        result = ReductionPipeline(oracle).run(SCRIPT)
        assert result.reduced_statements == 1


# ================================
# Individual stages
# ================================

class TestStages:

    def test_quick_mode_runs_statement_and_table_stages(self):
        oracle = PredicateOracle(lambda text: "INSERT" in text)
        result = ReductionPipeline(oracle, {'reduction': {'quick': True}}).run(SCRIPT)
        assert [stage.name for stage in result.stages] == ["statements", "tables"]

    def test_removed_tables_are_recorded(self):
        script = "CREATE TABLE t (a INT); CREATE TABLE u (b INT); SELECT a FROM t, u;"
        oracle = PredicateOracle(lambda text: "SELECT a FROM t" in text)
        result = ReductionPipeline(oracle, only(enable_statement_reduction=False)).run(script)

        assert result.removed_tables == ["u"]
        assert "CREATE TABLE u" not in result.text

    def test_unnest_replaces_select_with_its_subquery(self):
        oracle = PredicateOracle(lambda text: "FROM t" in text)
        result = ReductionPipeline(oracle, only(enable_unnest=True)).run(
            "SELECT a FROM (SELECT a FROM t) AS s;"
        )
        assert result.text == "SELECT a FROM t;"

    def test_transforms_fold_constants(self):
        oracle = PredicateOracle(lambda text: "FROM t" in text)
        result = ReductionPipeline(oracle, only(enable_transforms=True)).run("SELECT 1 + 1 FROM t;")
        assert result.text == "SELECT 2 FROM t;"

    def test_transform_rejected_by_oracle_is_dropped(self):
        oracle = PredicateOracle(lambda text: "1 + 1" in text)
        result = ReductionPipeline(oracle, only(enable_transforms=True)).run("SELECT 1 + 1 FROM t;")
        assert result.text == "SELECT 1 + 1 FROM t;"


# ================================
# Failures
# ================================

class TestFailures:

    def test_uninteresting_original(self):
        oracle = PredicateOracle(lambda text: False)
        with pytest.raises(ReductionError) as excinfo:
            ReductionPipeline(oracle).run(SCRIPT)
        assert excinfo.value.stage == "verify"

    def test_verification_can_be_skipped(self):
        oracle = PredicateOracle(lambda text: False)
        result = ReductionPipeline(oracle, {'reduction': {'verify_original': False}}).run(SCRIPT)
        assert result.reduced_statements == result.original_statements

    def test_oracle_failure_aborts_the_reduction(self):
        def predicate(text):
            raise OracleConfigurationError("test script exited with status 2")

        with pytest.raises(ReductionError) as excinfo:
            ReductionPipeline(PredicateOracle(predicate)).run(SCRIPT)
        assert excinfo.value.stage == "oracle"
