# tests/test_cli.py
"""
Tests for the command line front-end.
"""

import json
import logging

import pytest

from triggerexpr.main import EXIT_ERROR, EXIT_INFRA, EXIT_OK, main


@pytest.fixture(autouse=True)
def _reset_cli_logging():
    """main() attaches a stderr handler; drop it so later tests start clean."""
    yield
    logger = logging.getLogger("triggerexpr")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


class TestTypesAndBindings:

    def test_types(self, capsys):
        assert main(["types"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "cdj-status" in out
        assert "inherits: device-update" in out

    def test_bindings_with_docs(self, capsys):
        assert main(["bindings", "beat"]) == EXIT_OK
        out = capsys.readouterr().out
        assert out.startswith("beat <- device-update:")
        assert "tempo-master?" in out
        assert "(.is-tempo-master status)" in out

    def test_bindings_names_only(self, capsys):
        assert main(["bindings", ":cdj-status", "--names-only"]) == EXIT_OK
        names = capsys.readouterr().out.split()
        assert names == sorted(names)
        assert "rekordbox-id" in names

    def test_unknown_type(self, capsys):
        assert main(["bindings", "sampler"]) == EXIT_INFRA


class TestCheck:

    def test_check_reports_bindings(self, capsys):
        code = main(["check", "(when playing? track-bpm)", "-t", "cdj-status"])
        assert code == EXIT_OK
        out = capsys.readouterr().out
        assert out.splitlines()[0] == "binds: playing?, track-bpm"
        assert "(fn [status locals globals]" in out

    def test_check_no_bindings(self, capsys):
        assert main(["check", "(+ 1 2)"]) == EXIT_OK
        assert "binds: (none)" in capsys.readouterr().out

    def test_check_compile_error(self, capsys):
        assert main(["check", "(when playing?"]) == EXIT_ERROR
        err = capsys.readouterr().err
        assert "EXPR-1003" in err
        assert "EOF while reading" in err

    def test_check_malformed_special_form(self, capsys):
        assert main(["check", "(when playing? (let [x] x))", "-t", "cdj-status"]) == EXIT_ERROR
        err = capsys.readouterr().err
        assert "EXPR-3001" in err
        assert ":1:16:" in err


class TestEval:

    def test_eval_against_event(self, capsys):
        event = json.dumps({"bpm": 12050, "pitch": 0x100000, "is-playing": True})
        code = main([
            "eval", "(when playing? (* track-bpm pitch-multiplier))",
            "-t", "cdj-status", "--event", event,
        ])
        assert code == EXIT_OK
        assert capsys.readouterr().out.strip() == "120.5"

    def test_eval_null_safe_without_event(self, capsys):
        code = main(["eval", "(and tempo-master? 1)", "-t", "beat", "--null-safe"])
        assert code == EXIT_OK
        assert capsys.readouterr().out.strip() == "nil"

    def test_eval_runtime_error(self, capsys):
        code = main(["eval", "(and tempo-master? 1)", "-t", "beat"])
        assert code == EXIT_ERROR
        assert "EXPR-5003" in capsys.readouterr().err

    def test_eval_with_globals_and_description(self, capsys):
        code = main([
            "eval", '(do (set-description! locals (fetch globals :greeting)) :done)',
            "--globals", '{"greeting": "hello"}',
        ])
        assert code == EXIT_OK
        out = capsys.readouterr().out.splitlines()
        assert out == [":done", "description: hello"]

    def test_eval_bad_json(self):
        assert main(["eval", "1", "--event", "{nope"]) == EXIT_INFRA

    def test_eval_json_must_be_object(self):
        assert main(["eval", "1", "--globals", "[1, 2]"]) == EXIT_INFRA


class TestTopLevel:

    def test_no_command(self, capsys):
        assert main([]) == EXIT_INFRA

    def test_version(self, capsys):
        assert main(["--version"]) == EXIT_OK
        assert "triggerexpr" in capsys.readouterr().out

    @pytest.mark.parametrize("argv", [["check"], ["eval"], ["bogus"]])
    def test_usage_errors(self, argv, capsys):
        assert main(argv) == EXIT_INFRA
