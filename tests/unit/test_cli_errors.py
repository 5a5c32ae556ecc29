"""Unit tests for cubench.cli.errors."""

from __future__ import annotations

import pytest
from pydantic import ValidationError
from rich.console import Console

from cubench.cli.errors import (
    EXIT_BENCHMARK_ERROR,
    EXIT_CONFIG_ERROR,
    EXIT_GENERAL_ERROR,
    CLIError,
    ConfigError,
    error_handler,
)
from cubench.config import CuBenchConfig
from cubench.exceptions import ExecutionFailure, SetupFailure


def _quiet_console() -> Console:
    return Console(stderr=True, force_terminal=False, width=120)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------


class TestCLIError:
    def test_default_exit_code(self) -> None:
        err = CLIError("something broke")
        assert err.message == "something broke"
        assert err.exit_code == EXIT_GENERAL_ERROR
        assert str(err) == "something broke"

    def test_config_error_exit_code(self) -> None:
        err = ConfigError("missing key")
        assert err.exit_code == EXIT_CONFIG_ERROR
        assert isinstance(err, CLIError)


# ---------------------------------------------------------------------------
# error_handler
# ---------------------------------------------------------------------------


class TestErrorHandler:
    def test_no_exception_passes_through(self) -> None:
        with error_handler(_quiet_console()):
            value = 1 + 1
        assert value == 2

    def test_cli_error_uses_its_exit_code(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            with error_handler(_quiet_console()):
                raise ConfigError("bad config")
        assert exc_info.value.code == EXIT_CONFIG_ERROR

    def test_validation_error_is_config_error(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            with error_handler(_quiet_console()):
                CuBenchConfig(sample_size=0)
        assert exc_info.value.code == EXIT_CONFIG_ERROR

    def test_validation_error_type(self) -> None:
        with pytest.raises(ValidationError):
            CuBenchConfig(progress_step_percent=101)

    @pytest.mark.parametrize(
        "error",
        [
            SetupFailure("faucet exhausted"),
            ExecutionFailure("rejected", phase="execute", iteration=3),
        ],
    )
    def test_benchmark_failures_exit_3(self, error: Exception) -> None:
        with pytest.raises(SystemExit) as exc_info:
            with error_handler(_quiet_console()):
                raise error
        assert exc_info.value.code == EXIT_BENCHMARK_ERROR

    def test_unexpected_error_is_general(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            with error_handler(_quiet_console()):
                raise RuntimeError("boom")
        assert exc_info.value.code == EXIT_GENERAL_ERROR

    def test_keyboard_interrupt_exit_130(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            with error_handler(_quiet_console()):
                raise KeyboardInterrupt
        assert exc_info.value.code == 130
