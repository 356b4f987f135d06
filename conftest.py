import pytest

from calc_cli import CalculatorSettings


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    if report.when == "call":
        print(f"TEST: {item.name} - {'PASSED' if report.passed else 'FAILED'}")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # keep a developer's EXPRCALC_* settings out of the tests
    for var in ("EXPRCALC_PROMPT", "EXPRCALC_HISTORY_FILE", "EXPRCALC_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def settings(tmp_path):
    return CalculatorSettings(history_file=str(tmp_path / "history"))


@pytest.fixture
def scripted_input():
    """Build a read_line callable that replays lines, then raises EOFError."""
    def factory(*lines):
        remaining = list(lines)
        prompts = []

        def read_line(prompt):
            prompts.append(prompt)
            if not remaining:
                raise EOFError
            item = remaining.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item

        read_line.prompts = prompts
        return read_line
    return factory
