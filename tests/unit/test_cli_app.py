"""Unit tests for cubench.cli.app – the main Typer application."""

from __future__ import annotations

import importlib
from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from cubench.cli.app import app, load_subject
from cubench.cli.errors import CLIError
from cubench.models import BenchmarkDatabase
from cubench.subjects import SystemTransferBenchmark

runner = CliRunner()

FAILING_MODULE = '''
from cubench.engine import MemoryEngine
from cubench.subjects import SystemTransferBenchmark


class DryFaucet(SystemTransferBenchmark):
    name = "dry_faucet"

    def setup_environment(self):
        engine = MemoryEngine(faucet_lamports=1)
        engine.fund_account(self.sender.address, self.sender_balance)
        return engine
'''


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(importlib.import_module("cubench.cli.app"), "_stdout", Console(width=200))
    for name in ("CUBENCH_SAMPLE_SIZE", "CUBENCH_STATE_MODE", "CUBENCH_LOG_FILE"):
        monkeypatch.delenv(name, raising=False)


def _run(tmp_path: Path, *extra: str):
    return runner.invoke(
        app,
        [
            "run",
            "cubench.subjects:SystemTransferBenchmark",
            "--samples", "10",
            "--output", str(tmp_path / "out"),
            "--database", str(tmp_path / "db.json"),
            *extra,
        ],
    )


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


class TestGlobalOptions:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "cubench 0.1.0" in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("init", "run", "show", "estimate"):
            assert command in result.output

    def test_missing_config_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--config", str(tmp_path / "absent.toml"), "show", "db.json"])
        assert result.exit_code == 2

    def test_invalid_config_value(self, tmp_path: Path) -> None:
        config_file = tmp_path / "bad.toml"
        config_file.write_text("sample_size = 0\n")
        result = runner.invoke(app, ["--config", str(config_file), "show", "db.json"])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# load_subject
# ---------------------------------------------------------------------------


class TestLoadSubject:
    def test_class_is_instantiated(self) -> None:
        subject = load_subject("cubench.subjects:SystemTransferBenchmark")
        assert isinstance(subject, SystemTransferBenchmark)

    @pytest.mark.parametrize(
        "target",
        [
            "no-colon",
            "cubench.not_a_module:Thing",
            "cubench.subjects:Missing",
            "cubench.version:GENERATED_BY",
        ],
    )
    def test_invalid_targets(self, target: str) -> None:
        with pytest.raises(CLIError):
            load_subject(target)


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


class TestInitCommand:
    def test_writes_default_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / ".cubench" / "config.toml").exists()

    def test_written_config_drives_run(self, tmp_path: Path) -> None:
        assert runner.invoke(app, ["init", str(tmp_path)]).exit_code == 0
        config_file = tmp_path / ".cubench" / "config.toml"
        text = config_file.read_text().replace("sample_size = 100", "sample_size = 4")
        config_file.write_text(text)
        db = tmp_path / "db.json"
        result = runner.invoke(
            app, ["run", "cubench.subjects:SystemTransferBenchmark", "--database", str(db)]
        )
        assert result.exit_code == 0, result.output
        assert BenchmarkDatabase.load(db).get_estimate("system_transfer").sample_size == 4

    def test_second_init_refused(self, tmp_path: Path) -> None:
        assert runner.invoke(app, ["init"]).exit_code == 0
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 1

    def test_force_overwrites(self, tmp_path: Path) -> None:
        config_file = tmp_path / ".cubench" / "config.toml"
        assert runner.invoke(app, ["init"]).exit_code == 0
        config_file.write_text("")
        result = runner.invoke(app, ["init", "--force"])
        assert result.exit_code == 0, result.output
        assert "sample_size = 100" in config_file.read_text()

    def test_missing_directory(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init", str(tmp_path / "absent")])
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_writes_result_and_database(self, tmp_path: Path) -> None:
        result = _run(tmp_path)
        assert result.exit_code == 0, result.output
        assert (tmp_path / "out" / "system_transfer.json").exists()
        database = BenchmarkDatabase.load(tmp_path / "db.json")
        assert database.get_cu_estimate("system_transfer") == 150
        assert database.get_estimate("system_transfer").sample_size == 10

    def test_json_output(self, tmp_path: Path) -> None:
        result = _run(tmp_path, "--json")
        assert result.exit_code == 0, result.output
        assert '"system_transfer"' in result.output
        assert '"balanced": 150' in result.output

    def test_updates_existing_database(self, tmp_path: Path) -> None:
        assert _run(tmp_path).exit_code == 0
        result = runner.invoke(
            app,
            [
                "run",
                "cubench.subjects:AccountSetupBenchmark",
                "-n", "5",
                "--isolate",
                "--output", str(tmp_path / "out"),
                "--database", str(tmp_path / "db.json"),
            ],
        )
        assert result.exit_code == 0, result.output
        database = BenchmarkDatabase.load(tmp_path / "db.json")
        assert database.names() == ["account_setup", "system_transfer"]

    def test_bad_target_is_general_error(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["run", "not-a-target", "--database", str(tmp_path / "db.json")])
        assert result.exit_code == 1
        assert not (tmp_path / "db.json").exists()

    def test_benchmark_failure_exit_code(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "failing_bench.py").write_text(FAILING_MODULE)
        monkeypatch.syspath_prepend(str(tmp_path))
        result = runner.invoke(
            app,
            ["run", "failing_bench:DryFaucet", "-n", "5", "--database", str(tmp_path / "db.json")],
        )
        assert result.exit_code == 3
        assert not (tmp_path / "db.json").exists()

    def test_zero_samples_rejected(self, tmp_path: Path) -> None:
        result = _run(tmp_path, "--samples", "0")
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# show / estimate
# ---------------------------------------------------------------------------


class TestQueryCommands:
    def test_show(self, tmp_path: Path) -> None:
        assert _run(tmp_path).exit_code == 0
        result = runner.invoke(app, ["show", str(tmp_path / "db.json")])
        assert result.exit_code == 0
        assert "system_transfer" in result.output

    def test_show_missing_database(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["show", str(tmp_path / "absent.json")])
        assert result.exit_code == 1

    def test_show_empty_database(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.json"
        BenchmarkDatabase().save(path)
        result = runner.invoke(app, ["show", str(path)])
        assert result.exit_code == 0
        assert "No estimates recorded" in result.output

    def test_estimate_default_level(self, tmp_path: Path) -> None:
        assert _run(tmp_path).exit_code == 0
        result = runner.invoke(app, ["estimate", str(tmp_path / "db.json"), "system_transfer"])
        assert result.exit_code == 0
        assert result.output.strip() == "150"

    def test_estimate_level_and_multiplier(self, tmp_path: Path) -> None:
        assert _run(tmp_path).exit_code == 0
        db = str(tmp_path / "db.json")
        by_level = runner.invoke(app, ["estimate", db, "system_transfer", "--level", "unsafe_max"])
        scaled = runner.invoke(app, ["estimate", db, "system_transfer", "-m", "1.5"])
        assert by_level.output.strip() == "150"
        assert scaled.output.strip() == "225"

    def test_estimate_unknown_subject(self, tmp_path: Path) -> None:
        assert _run(tmp_path).exit_code == 0
        result = runner.invoke(app, ["estimate", str(tmp_path / "db.json"), "nope"])
        assert result.exit_code == 1
