"""
Unit tests for the rewrite passes in core/transformer.py and core/constant_fold.py
"""

import pytest

from core import TRANSFORM_REGISTRY
from core.constant_fold import FALSE_SELECT, ConstantFold
from core.transformer import build_transforms, transform


@pytest.fixture
def fold():
    return ConstantFold()


class TestConstantFold:

    @pytest.mark.parametrize("sql, expected", [
        ("SELECT 2 + 3 * (4 - 1)", "SELECT 11"),
        ("SELECT 7 / 2", "SELECT 3.5"),
        ("SELECT 1 - 3", "SELECT -2"),
        ("SELECT -(2 + 3)", "SELECT -5"),
        ("SELECT 2 > 1", "SELECT TRUE"),
        ("SELECT 1 = 2", "SELECT FALSE"),
        ("SELECT NOT TRUE", "SELECT FALSE"),
        ("SELECT NOT NOT FALSE", "SELECT FALSE"),
        ("SELECT TRUE AND FALSE", "SELECT FALSE"),
        ("SELECT TRUE OR FALSE", "SELECT TRUE"),
        ("SELECT a + 1 FROM t", "SELECT a + 1 FROM t"),
    ])
    def test_folds(self, fold, sql, expected):
        assert fold.apply(sql) == expected

    def test_division_by_zero_is_left_alone(self, fold):
        assert fold.apply("SELECT 1 / 0") == "SELECT 1 / 0"

    def test_nested_parentheses_in_values(self, fold):
        assert fold.apply("INSERT INTO F VALUES (((1+2)*3))") == "INSERT INTO F VALUES (9)"

    def test_where_folding_to_false(self, fold):
        assert fold.apply("SELECT a FROM t WHERE 1 > 2") == FALSE_SELECT

    def test_where_folding_to_true_is_kept(self, fold):
        assert fold.apply("SELECT a FROM t WHERE 2 > 1") == "SELECT a FROM t WHERE TRUE"

    def test_unparseable_input_is_returned_unchanged(self, fold):
        assert fold.apply("SELECT 1 +") == "SELECT 1 +"


class TestTransforms:

    def test_registry_contains_constant_fold(self):
        assert TRANSFORM_REGISTRY["ConstantFold"] is ConstantFold

    def test_build_transforms(self):
        passes = build_transforms(["ConstantFold"])
        assert len(passes) == 1
        assert passes[0].get_transform_name() == "ConstantFold"

    def test_unknown_pass_is_rejected(self):
        with pytest.raises(ValueError):
            build_transforms(["Inline"])

    def test_transform_applies_every_pass_to_every_statement(self):
        assert transform(["SELECT 1 + 1", "SELECT 2 * 3"], build_transforms(["ConstantFold"])) == [
            "SELECT 2",
            "SELECT 6",
        ]

    def test_no_passes(self):
        assert transform(["SELECT 1 + 1"], []) == ["SELECT 1 + 1"]
