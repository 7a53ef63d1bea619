from __future__ import annotations

import sys
from typing import Generator
from unittest.mock import patch

import pytest
from rich.console import Console

from tombo.utils.console import (
    TOMBO_THEME,
    _get_console,
    _should_use_color,
    colorize_update_type,
    confirm,
    get_raw_console,
    print_error,
    print_markdown,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def reset_console() -> Generator[None, None, None]:
    """Drop the console singleton before and after each test."""
    reconfigure_console()
    yield
    reconfigure_console()


@pytest.fixture
def recording_console() -> Generator[Console, None, None]:
    """Swap in a recording console so output can be inspected."""
    console = Console(theme=TOMBO_THEME, record=True, width=120, no_color=True)
    with patch("tombo.utils.console._console", console):
        yield console


# ==============================================================================
# Console lifecycle
# ==============================================================================


@pytest.mark.unit
class TestConsoleLifecycle:
    def test_singleton(self) -> None:
        assert _get_console() is _get_console()
        assert get_raw_console() is _get_console()

    def test_reconfigure_creates_new_console(self) -> None:
        first = _get_console()
        reconfigure_console()
        assert _get_console() is not first

    def test_no_color_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NO_COLOR", "1")
        with patch.object(sys.stdout, "isatty", return_value=True):
            assert _should_use_color() is False

    def test_tty_enables_color(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("CI", raising=False)
        with patch.object(sys.stdout, "isatty", return_value=True):
            assert _should_use_color() is True

    def test_theme_styles(self) -> None:
        for name in ("success", "error", "warning", "info", "prerelease", "yanked"):
            assert name in TOMBO_THEME.styles


# ==============================================================================
# Messages
# ==============================================================================


@pytest.mark.unit
class TestMessages:
    """Tests for the status message helpers."""

    def test_prefixes(self, recording_console: Console) -> None:
        print_success("Updated requests")
        print_error("Package not found")
        print_warning("No manifests found")

        output = recording_console.export_text()
        assert "[OK] Updated requests" in output
        assert "[ERROR] Package not found" in output
        assert "[WARNING] No manifests found" in output

    def test_custom_prefix(self, recording_console: Console) -> None:
        print_success("done", prefix=">>")
        assert recording_console.export_text().strip() == ">> done"

    def test_markdown(self, recording_console: Console) -> None:
        print_markdown("# requests\n\nHTTP for Humans.")
        output = recording_console.export_text()

        assert "requests" in output
        assert "HTTP for Humans." in output
        assert "#" not in output


# ==============================================================================
# Tables
# ==============================================================================


@pytest.mark.unit
class TestPrintTable:
    def test_rows_and_title(self, recording_console: Console) -> None:
        print_table(
            [{"Package": "requests", "Latest": "2.32.3"}, {"Package": "rich", "Latest": "13.7.1"}],
            title="Dependency Scan",
        )
        output = recording_console.export_text()

        assert "Dependency Scan" in output
        assert "requests" in output and "13.7.1" in output

    def test_header_order_and_missing_cells(self, recording_console: Console) -> None:
        print_table([{"b": "2", "a": "1"}], headers=["a", "b", "c"])
        header = recording_console.export_text().splitlines()[1]
        assert header.index("a") < header.index("b") < header.index("c")

    def test_empty_data_prints_nothing(self, recording_console: Console) -> None:
        print_table([])
        assert recording_console.export_text() == ""


# ==============================================================================
# confirm / colorize_update_type
# ==============================================================================


@pytest.mark.unit
class TestConfirm:
    @pytest.mark.parametrize(
        "answer, default, expected",
        [
            ("y", False, True),
            ("YES", False, True),
            ("n", True, False),
            ("", True, True),
            ("", False, False),
            ("maybe", True, True),
        ],
    )
    def test_answers(self, recording_console: Console, answer: str, default: bool, expected: bool) -> None:
        with patch("builtins.input", return_value=answer):
            assert confirm("Apply?", default=default) is expected

    @pytest.mark.parametrize("error", [EOFError, KeyboardInterrupt])
    def test_interrupt_declines(self, recording_console: Console, error: type) -> None:
        with patch("builtins.input", side_effect=error):
            assert confirm("Apply?", default=True) is False

    def test_prompt_shows_default(self, recording_console: Console) -> None:
        with patch("builtins.input", return_value=""):
            confirm("Apply?", default=True)
        assert "Apply? [Y/n]:" in recording_console.export_text()

    def test_lowercase_prompt_is_not_markup(self, recording_console: Console) -> None:
        with patch("builtins.input", return_value=""):
            confirm("Apply?")
        assert "Apply? [y/N]:" in recording_console.export_text()


@pytest.mark.unit
class TestColorizeUpdateType:
    @pytest.mark.parametrize(
        "update_type, color",
        [("major", "red"), ("minor", "yellow"), ("patch", "green"), ("new", "cyan")],
    )
    def test_known_types(self, update_type: str, color: str) -> None:
        assert colorize_update_type(update_type) == f"[{color}]{update_type}[/{color}]"

    def test_unknown_type_unchanged(self) -> None:
        assert colorize_update_type("same") == "same"
