"""
Unit tests for the ddmin core in reducer/delta_reducer.py
"""

import pytest

from oracles.base_oracle import OracleConfigurationError
from reducer.delta_reducer import DeltaReducer, get_nabla, split_tests

# ================================
# split_tests
# ================================

class TestSplitTests:

    def test_uneven_split_gives_extra_elements_to_first_parts(self):
        assert split_tests(list("abcde"), 3) == [["a", "b"], ["c", "d"], ["e"]]

    @pytest.mark.parametrize("n", [1, 2, 3, 4, 7, 10])
    def test_parts_reconstruct_input_and_differ_by_at_most_one(self, n):
        data = list(range(10))
        parts = split_tests(data, n)
        assert len(parts) == n
        assert [x for part in parts for x in part] == data
        sizes = [len(p) for p in parts]
        assert max(sizes) - min(sizes) <= 1

    def test_more_parts_than_elements_leaves_trailing_parts_empty(self):
        assert split_tests(["a", "b"], 3) == [["a"], ["b"], []]

    def test_zero_granularity_is_rejected(self):
        with pytest.raises(ValueError):
            split_tests([1, 2], 0)


# ================================
# get_nabla
# ================================

class TestGetNabla:

    def test_complement_of_prefix(self):
        assert get_nabla(list(range(1, 11)), list(range(1, 10))) == [10]

    def test_duplicates_are_removed_once_each(self):
        assert get_nabla([1, 2, 1, 3, 1], [1, 1]) == [2, 3, 1]

    def test_delta_plus_nabla_is_a_permutation_of_data(self):
        data = ["x", "y", "x", "z", "y"]
        delta = ["y", "x"]
        assert sorted(delta + get_nabla(data, delta)) == sorted(data)

    def test_unhashable_elements(self):
        assert get_nabla([[1], [2], [3]], [[2]]) == [[1], [3]]


# ================================
# DeltaReducer
# ================================

def statements(n):
    return [f"stmt_{i:02d}" for i in range(n)]


class TestDeltaReducer:

    def test_reduces_to_the_needed_statements(self, make_oracle):
        oracle = make_oracle(lambda text: "stmt_03" in text and "stmt_06" in text)
        result = DeltaReducer(oracle).reduce(statements(8))
        assert result == ["stmt_03", "stmt_06"]

    def test_keeps_relative_order(self, make_oracle):
        oracle = make_oracle(lambda text: "stmt_01" in text and "stmt_09" in text and "stmt_05" in text)
        result = DeltaReducer(oracle).reduce(statements(12))
        assert result == ["stmt_01", "stmt_05", "stmt_09"]

    def test_every_committed_candidate_was_interesting(self, make_oracle):
        predicate = lambda text: "stmt_02" in text
        oracle = make_oracle(predicate)
        result = DeltaReducer(oracle).reduce(statements(6))
        assert predicate(DeltaReducer(oracle).render(result))

    def test_sweep_is_a_fixed_point(self, make_oracle):
        oracle = make_oracle(lambda text: "stmt_04" in text and "stmt_07" in text)
        reducer = DeltaReducer(oracle)
        result = reducer.reduce(statements(9))
        assert reducer.find_one_minimal(result) == result

    def test_sweep_restarts_after_each_removal(self, make_oracle):
        # stmt_00 only becomes removable once stmt_01 is gone
        def predicate(text):
            return "stmt_02" in text and ("stmt_01" not in text or "stmt_00" in text)
        oracle = make_oracle(predicate)
        assert DeltaReducer(oracle).find_one_minimal(statements(3)) == ["stmt_02"]

    def test_empty_input_is_returned_unchanged(self, make_oracle):
        oracle = make_oracle(lambda text: True)
        assert DeltaReducer(oracle).reduce([]) == []
        assert oracle.checks == 0

    def test_single_needed_element_survives(self, make_oracle):
        oracle = make_oracle(lambda text: "only" in text)
        assert DeltaReducer(oracle).reduce(["only"]) == ["only"]

    def test_custom_render(self, make_oracle):
        oracle = make_oracle(lambda text: "7" in text.split(","))
        reducer = DeltaReducer(oracle, render=lambda data: ",".join(str(x) for x in data))
        assert reducer.reduce(list(range(10))) == [7]

    def test_oracle_errors_propagate(self, make_oracle):
        def broken(text):
            raise OracleConfigurationError("exit status 2")
        oracle = make_oracle(broken)
        with pytest.raises(OracleConfigurationError):
            DeltaReducer(oracle).reduce(statements(4))
