"""
Shared fixtures for the reducer tests.
"""

import os
import stat

import pytest

from oracles.predicate_oracle import PredicateOracle


@pytest.fixture
def make_oracle():
    """Builds an initialized PredicateOracle around a predicate."""
    def _make(predicate, original="", query_path=None):
        oracle = PredicateOracle(predicate, query_path=query_path)
        oracle.init(original)
        return oracle
    return _make


@pytest.fixture
def shell_script(tmp_path):
    """Writes an executable /bin/sh test script and returns its path."""
    def _write(body, name="check.sh"):
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)
    return _write


@pytest.fixture(autouse=True)
def clean_reducer_env(monkeypatch):
    """Keeps REDUCER_* variables of the calling shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("REDUCER_"):
            monkeypatch.delenv(name)
