"""
Tests for the ``chain`` command line entry point.
"""
import json

import pytest
from loguru import logger

import chain


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # main() points loguru at the captured stderr of the finished test.
    logger.remove()


def test_no_subcommand_prints_help(capsys):
    assert chain.main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_parse_prints_canonical_form(capsys):
    assert chain.main(["parse", "/ns:a>>/ns:b   ||  /ns:c"]) == 0
    assert capsys.readouterr().out.strip() == "/ns:a >> /ns:b || /ns:c"


def test_parse_tree(capsys):
    assert chain.main(["parse", "--tree", "/ns:a >> /ns:b"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ["Chain:", "  Sequential (>>):", "    Command: /ns:a", "    Command: /ns:b"]


def test_parse_json(capsys):
    assert chain.main(["parse", "--json", "/ns:a || /ns:b"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["kind"] == "chain"
    assert data["root"]["kind"] == "parallel"
    assert [n["name"] for n in data["root"]["nodes"]] == ["a", "b"]


def test_parse_error_exits_2(capsys):
    assert chain.main(["parse", "/ns:a ?"]) == 2
    err = capsys.readouterr().err
    assert "[Error]" in err
    assert "':'" in err


def test_strict_flag(capsys):
    assert chain.main(["--strict", "parse", "!! /ns:a"]) == 2
    assert chain.main(["parse", "!! /ns:a"]) == 0


def test_plan(capsys):
    assert chain.main(["plan", "/ns:a >> /ns:b || /ns:c"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["stages"] == [["1:a"], ["2:b", "3:c"]]
    assert data["max_width"] == 2


def test_run_success(capsys):
    assert chain.main(["run", "/ns:a >> /ns:b"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["kind"] == "sequential"
    assert data["summary"] == {"total": 2, "successful": 2, "failed": 0}


def test_run_parallel_failure_exits_1(capsys):
    assert chain.main(["run", "/ns:a || /ns:b || /ns:c", "--fail", "b"]) == 1
    data = json.loads(capsys.readouterr().out)
    assert data["summary"] == {"total": 3, "successful": 2, "failed": 1}
    assert "simulated failure" in data["results"][1]["error"]


def test_run_abort_prints_partial_result(capsys):
    assert chain.main(["run", "/ns:a >> /ns:b >> /ns:c", "--fail", "b"]) == 1
    captured = capsys.readouterr()
    assert "Chain aborted at step 2" in captured.err
    data = json.loads(captured.out)
    assert data["success"] is False
    assert [r["step"] for r in data["results"]] == [1, 2]


def test_run_continue_on_error(capsys):
    assert chain.main(["run", "/ns:a >> /ns:b >> /ns:c", "--fail", "b", "--continue-on-error"]) == 1
    data = json.loads(capsys.readouterr().out)
    assert data["summary"] == {"total": 3, "successful": 2, "failed": 1}


def test_run_depth_limit(capsys):
    assert chain.main(["run", "/ns:a |> /ns:b |> /ns:c", "--max-depth", "2"]) == 1
    assert "Maximum chain depth exceeded" in capsys.readouterr().err


def test_namespace_option(capsys):
    assert chain.main(["--namespace", "dev", "parse", "/dev:a /qa:b"]) == 0
    captured = capsys.readouterr()
    assert captured.out.strip() == "/dev:a"
    assert "/qa:b" in captured.err
