"""
Command line tests for main.py
"""

import logging
import sys

import pytest

import main

SCRIPT = "CREATE TABLE t (a INT);\nINSERT INTO t VALUES (1);\nSELECT a FROM t;\n"


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    # main() installs handlers on the root logger
    logging.getLogger().handlers.clear()


def run(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["sql-reducer", *args])
    return main.main()


class TestMain:

    def test_reduces_a_script(self, workdir, monkeypatch, shell_script):
        (workdir / "crash.sql").write_text(SCRIPT)
        check = shell_script('grep -q INSERT "$1" && exit 1\nexit 0')

        assert run(monkeypatch, "--query", "crash.sql", "--test", check) == 0

        reduced = (workdir / "results" / "reduced.sql").read_text()
        assert "INSERT" in reduced
        assert "SELECT" not in reduced
        assert (workdir / "query.sql").read_text() == reduced
        assert (workdir / "results" / "stats.csv").exists()

    def test_uninteresting_script_fails(self, workdir, monkeypatch, shell_script):
        (workdir / "crash.sql").write_text(SCRIPT)
        assert run(monkeypatch, "--query", "crash.sql", "--test", shell_script("exit 0")) == 1

    def test_missing_query(self, workdir, monkeypatch, shell_script):
        assert run(monkeypatch, "--query", "missing.sql", "--test", shell_script("exit 1")) == 1

    def test_query_and_test_are_required(self, workdir, monkeypatch):
        with pytest.raises(SystemExit) as excinfo:
            run(monkeypatch, "--query", "crash.sql")
        assert excinfo.value.code == 2

    def test_inspect_parseable_script(self, workdir, monkeypatch):
        (workdir / "crash.sql").write_text(SCRIPT)
        assert run(monkeypatch, "--reduce", "crash.sql") == 0

    def test_inspect_unparseable_script(self, workdir, monkeypatch):
        (workdir / "broken.sql").write_text("SELECT (1;")
        assert run(monkeypatch, "--reduce", "broken.sql") == 1

    def test_inspect_missing_script(self, workdir, monkeypatch):
        assert run(monkeypatch, "--reduce", "missing.sql") == 1
