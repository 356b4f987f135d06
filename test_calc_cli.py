# test_calc_cli.py

import math
import os
import pytest
from prompt_toolkit.history import FileHistory, InMemoryHistory
from pydantic import ValidationError

import calc_cli
from calc_cli import (
    HELP_TEXT,
    REPL,
    CalculatorSettings,
    build_arg_parser,
    format_result,
    main,
    normalize_input,
    run_expressions,
)

# ---------------------------
# Formatting Tests
# ---------------------------

@pytest.mark.parametrize("value,expected", [
    (5.0, "5"),
    (-10.0, "-10"),
    (2.5, "2.5"),
    (0.1, "0.1"),
    (1e20, "100000000000000000000"),
    (math.inf, "inf"),
    (-math.inf, "-inf"),
    (math.nan, "nan"),
])
def test_format_result(value, expected):
    assert format_result(value) == expected


def test_normalize_input_strips_whitespace_and_lowercases():
    assert normalize_input("  SQRT( 4 )\t+ 1 ") == "sqrt(4)+1"
    assert normalize_input(" \t ") == ""

# ---------------------------
# Settings Tests
# ---------------------------

def test_settings_defaults():
    s = CalculatorSettings()
    assert s.prompt == ">> "
    assert s.log_level == "WARNING"
    assert s.history_file == os.path.expanduser("~/.exprcalc_history")


def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("EXPRCALC_PROMPT", "calc> ")
    monkeypatch.setenv("EXPRCALC_LOG_LEVEL", " debug ")
    monkeypatch.setenv("EXPRCALC_HISTORY_FILE", str(tmp_path / "h"))
    s = CalculatorSettings.from_env()
    assert s.prompt == "calc> "
    assert s.log_level == "DEBUG"
    assert s.history_file == str(tmp_path / "h")


def test_settings_overrides_win_over_env(monkeypatch):
    monkeypatch.setenv("EXPRCALC_LOG_LEVEL", "debug")
    s = CalculatorSettings.from_env(log_level="error", history_file=None)
    assert s.log_level == "ERROR"
    assert s.history_file is None


def test_settings_empty_history_file_disables_history(monkeypatch):
    monkeypatch.setenv("EXPRCALC_HISTORY_FILE", "")
    assert CalculatorSettings.from_env().history_file is None


def test_settings_expands_user_in_history_file():
    s = CalculatorSettings(history_file="~/calc_history")
    assert not s.history_file.startswith("~")


def test_settings_rejects_unknown_log_level():
    with pytest.raises(ValidationError):
        CalculatorSettings(log_level="chatty")

# ---------------------------
# REPL Tests
# ---------------------------

@pytest.mark.parametrize("line,expected", [
    ("2 + 3", "== 5"),
    ("SQRT(16)", "== 4"),
    ("10 / 4", "== 2.5"),
    ("pow(2, 10)", "== 1024"),
    ("1/0", "== inf"),
])
def test_evaluate_line_success(settings, line, expected):
    repl = REPL(settings)
    assert repl.evaluate_line(line) == (True, expected)


def test_evaluate_line_errors(settings):
    repl = REPL(settings)
    ok, out = repl.evaluate_line("(2 + 3")
    assert not ok
    assert out == "!! Syntax error: unclosed parenthesis at position 0."
    ok, out = repl.evaluate_line("2 @ 3")
    assert not ok
    assert out.startswith("!! Semantic error: unknown operator")


def test_evaluate_line_commands(settings):
    repl = REPL(settings)
    assert repl.evaluate_line(" HELP ") == (True, HELP_TEXT)
    with pytest.raises(EOFError):
        repl.evaluate_line("quit")
    with pytest.raises(EOFError):
        repl.evaluate_line(" Exit ")


def test_run_loop(settings, scripted_input, capsys):
    reader = scripted_input("", "   ", "help", "2*3", "fact(2.5)", "quit", "1+1")
    REPL(settings, read_line=reader).run()
    out = capsys.readouterr().out
    assert out.count(HELP_TEXT) == 2  # banner + help command
    assert "== 6" in out
    assert "!! Semantic error: integer expected" in out
    assert "== 2" not in out
    assert set(reader.prompts) == {">> "}


def test_run_loop_survives_interrupt_and_stops_at_eof(settings, scripted_input, capsys):
    reader = scripted_input(KeyboardInterrupt(), "1+1")
    REPL(settings, read_line=reader).run()
    out = capsys.readouterr().out
    assert "== 2" in out
    assert len(reader.prompts) == 3


def test_run_loop_uses_configured_prompt(tmp_path, scripted_input):
    reader = scripted_input("1")
    s = CalculatorSettings(prompt="calc> ", history_file=str(tmp_path / "h"))
    REPL(s, read_line=reader).run()
    assert reader.prompts[0] == "calc> "


def test_history_backend_follows_settings(tmp_path):
    repl = REPL(CalculatorSettings(history_file=str(tmp_path / "h")))
    assert isinstance(repl._create_history(), FileHistory)
    repl = REPL(CalculatorSettings(history_file=None))
    assert isinstance(repl._create_history(), InMemoryHistory)


def test_run_expressions_reports_failures(settings, capsys):
    repl = REPL(settings)
    assert run_expressions(repl, ["1+1", "2*2"]) == 0
    assert run_expressions(repl, ["1+1", "pow(2)", "3"]) == 1
    out = capsys.readouterr().out.splitlines()
    assert out == ["== 2", "== 4", "== 2", "!! Syntax error: second parameter expected for 'pow' at position 5.", "== 3"]


def test_run_expressions_stops_at_quit(settings, capsys):
    assert run_expressions(REPL(settings), ["1", "quit", "2"]) == 0
    assert capsys.readouterr().out.splitlines() == ["== 1"]

# ---------------------------
# Entry point Tests
# ---------------------------

def test_arg_parser():
    args = build_arg_parser().parse_args(["-e", "1", "--expression", "2", "--no-history"])
    assert args.expressions == ["1", "2"]
    assert args.no_history
    assert args.log_level is None


def test_main_with_expressions(capsys):
    assert main(["--no-history", "-e", "2+3", "-e", "sqrt(16)"]) == 0
    assert capsys.readouterr().out.splitlines() == ["== 5", "== 4"]


def test_main_with_failing_expression(capsys):
    assert main(["--no-history", "-e", "2@3"]) == 1
    assert "!! Semantic error" in capsys.readouterr().out


def test_main_rejects_bad_log_level(capsys):
    assert main(["--log-level", "chatty", "-e", "1"]) == 2
    assert "Invalid configuration" in capsys.readouterr().err


def test_main_starts_repl(monkeypatch, scripted_input, capsys):
    monkeypatch.setattr(REPL, "_create_reader", lambda self: scripted_input("1+2"))
    assert main(["--no-history"]) == 0
    out = capsys.readouterr().out
    assert HELP_TEXT in out
    assert "== 3" in out


def test_main_reads_env_settings(monkeypatch, scripted_input):
    seen = {}

    def fake_reader(self):
        seen["settings"] = self.settings
        return scripted_input()

    monkeypatch.setenv("EXPRCALC_PROMPT", "? ")
    monkeypatch.setattr(calc_cli.REPL, "_create_reader", fake_reader)
    assert main(["--no-history"]) == 0
    assert seen["settings"].prompt == "? "
    assert seen["settings"].history_file is None
