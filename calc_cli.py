# calc_cli.py

"""
Command-line front end for the expression evaluator.

Runs a read-eval-print loop on a prompt_toolkit session with persistent
history, or evaluates the expressions given with -e and exits. Input is
normalized (whitespace removed, lowercased) before it reaches calc_core.
Results print as "== value", errors as "!! message".

Settings come from EXPRCALC_* environment variables (a .env file is loaded
first) and can be overridden on the command line.
"""

from __future__ import annotations

import argparse
import logging
import math
import os
import sys
from typing import Any, Callable, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory, History, InMemoryHistory
from pydantic import BaseModel, Field, ValidationError, field_validator

from calc_core import FUNCTION_NAMES, CalculatorError, evaluate, strip_whitespace

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_LOG_LEVELS = ('CRITICAL', 'ERROR', 'WARNING', 'INFO', 'DEBUG')

# --------------------------
# Settings
# --------------------------

_ENV_VARS: Dict[str, str] = {
    'prompt': 'EXPRCALC_PROMPT',
    'history_file': 'EXPRCALC_HISTORY_FILE',
    'log_level': 'EXPRCALC_LOG_LEVEL',
}


class CalculatorSettings(BaseModel):
    """Runtime settings for the calculator front end."""
    prompt: str = ">> "
    history_file: Optional[str] = Field(
        default_factory=lambda: os.path.expanduser("~/.exprcalc_history"),
        description="Prompt history file; None keeps history in memory only",
    )
    log_level: str = "WARNING"

    @field_validator('log_level')
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level {v!r}; expected one of {', '.join(_LOG_LEVELS)}")
        return level

    @field_validator('history_file')
    @classmethod
    def expand_history_file(cls, v: Optional[str]) -> Optional[str]:
        # an empty value disables the history file
        if v is None or not v.strip():
            return None
        return os.path.expanduser(v.strip())

    @classmethod
    def from_env(cls, **overrides: Any) -> CalculatorSettings:
        """Build settings from EXPRCALC_* variables; ``overrides`` win."""
        values: Dict[str, Any] = {}
        for field, var in _ENV_VARS.items():
            raw = os.getenv(var)
            if raw is not None:
                values[field] = raw
        values.update(overrides)
        return cls(**values)

# --------------------------
# Formatting, help
# --------------------------

RESULT_PREFIX = "== "
ERROR_PREFIX = "!! "
QUIT_COMMANDS = ('quit', 'exit')
HELP_COMMAND = 'help'

HELP_TEXT = (
    "options: help, quit; available operators: + - * / % ( )\n"
    "functions: sqrt(x), lg(x), fact(int), pow(base,power), log(base,x)"
)


def normalize_input(line: str) -> str:
    """Drop all whitespace and lowercase, the form calc_core expects."""
    return strip_whitespace(line).lower()


def format_result(value: float) -> str:
    """Integral values print without a fractional part, the rest via str()."""
    if math.isfinite(value) and value.is_integer():
        return f"{value:.0f}"
    return str(value)

# --------------------------
# REPL
# --------------------------

class REPL:
    """Read-eval-print loop around calc_core.evaluate.

    ``read_line`` takes the prompt and returns one line, raising EOFError at
    end of input. When omitted a prompt_toolkit session is created on run().
    """

    def __init__(self, settings: Optional[CalculatorSettings] = None,
                 read_line: Optional[Callable[[str], str]] = None):
        self.settings = settings or CalculatorSettings()
        self._read_line = read_line

    def _create_history(self) -> History:
        if self.settings.history_file:
            return FileHistory(self.settings.history_file)
        return InMemoryHistory()

    def _create_reader(self) -> Callable[[str], str]:
        words = list(FUNCTION_NAMES) + [HELP_COMMAND, *QUIT_COMMANDS]
        session = PromptSession(
            history=self._create_history(),
            completer=WordCompleter(words, ignore_case=True),
        )
        return session.prompt

    def evaluate_line(self, line: str) -> Tuple[bool, str]:
        """Evaluate one line (command or expression). Returns (ok, output).

        Raises EOFError for the quit commands so the caller can stop.
        """
        text = normalize_input(line)
        if text in QUIT_COMMANDS:
            raise EOFError()
        if text == HELP_COMMAND:
            return True, HELP_TEXT
        try:
            value = evaluate(text)
        except CalculatorError as e:
            logger.debug(f"Rejected {line!r}: {e}")
            return False, f"{ERROR_PREFIX}{e}"
        return True, f"{RESULT_PREFIX}{format_result(value)}"

    def run(self) -> None:
        """Interactive loop: Ctrl-C drops the line, Ctrl-D or quit exits."""
        read_line = self._read_line or self._create_reader()
        print(HELP_TEXT)
        while True:
            try:
                line = read_line(self.settings.prompt)
            except KeyboardInterrupt:
                continue
            except EOFError:
                break
            if not normalize_input(line):
                continue
            try:
                _, out = self.evaluate_line(line)
            except EOFError:
                break
            print(out)


def run_expressions(repl: REPL, expressions: List[str]) -> int:
    """Evaluate each expression and print its output; 1 if any failed."""
    status = 0
    for expression in expressions:
        try:
            ok, out = repl.evaluate_line(expression)
        except EOFError:
            break
        print(out)
        if not ok:
            status = 1
    return status

# --------------------------
# Entry point
# --------------------------

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="exprcalc",
        description="Evaluate arithmetic expressions interactively or from the command line.",
    )
    parser.add_argument(
        "-e", "--expression",
        action="append",
        dest="expressions",
        metavar="EXPR",
        help="Evaluate EXPR and exit (may be repeated).",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Logging level (default: $EXPRCALC_LOG_LEVEL or WARNING).",
    )
    parser.add_argument(
        "--no-history",
        action="store_true",
        help="Keep prompt history in memory only.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_arg_parser().parse_args(argv)

    overrides: Dict[str, Any] = {}
    if args.log_level:
        overrides['log_level'] = args.log_level
    if args.no_history:
        overrides['history_file'] = None
    try:
        settings = CalculatorSettings.from_env(**overrides)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    logger.debug(f"Starting with {settings!r}")

    repl = REPL(settings)
    if args.expressions:
        return run_expressions(repl, args.expressions)
    repl.run()
    return 0


if __name__ == '__main__':
    sys.exit(main())
