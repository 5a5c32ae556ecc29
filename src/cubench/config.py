"""cubench configuration management.

Loads configuration from TOML files with environment variable overrides
(``CUBENCH_`` prefix).  Uses :mod:`tomllib` on Python 3.11+.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from cubench.harness import StateMode
from cubench.runner import RunnerConfig

# ---------------------------------------------------------------------------
# Default paths
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_DIR = ".cubench"
DEFAULT_CONFIG_FILE = "config.toml"
ENV_PREFIX = "CUBENCH_"

# ---------------------------------------------------------------------------
# Configuration model
# ---------------------------------------------------------------------------


class CuBenchConfig(BaseModel):
    """Benchmark configuration with sensible defaults.

    All fields can be overridden via environment variables with the
    ``CUBENCH_`` prefix.  For example ``CUBENCH_SAMPLE_SIZE=500``.
    """

    sample_size: int = Field(default=100, ge=1)
    state_mode: StateMode = StateMode.ACCUMULATE
    progress_step_percent: int = Field(default=10, ge=1, le=100)
    output_dir: Path = Path("cu-bench")
    database_file: Path = Path("cu-bench") / "cu_estimates.json"
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    model_config = {"extra": "ignore"}

    def runner_config(self) -> RunnerConfig:
        return RunnerConfig(
            samples=self.sample_size,
            state_mode=self.state_mode,
            progress_step_percent=self.progress_step_percent,
            output_dir=str(self.output_dir),
            database_file=str(self.database_file),
        )


# ---------------------------------------------------------------------------
# Loader helpers
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: dict) -> dict:
    """Apply CUBENCH_ environment variable overrides to *data*."""
    field_names = set(CuBenchConfig.model_fields.keys())
    for key, value in os.environ.items():
        if key.startswith(ENV_PREFIX):
            field = key[len(ENV_PREFIX):].lower()
            if field in field_names:
                data[field] = value
    return data


def load_config(config_path: Path | None = None, project_dir: Path | None = None) -> CuBenchConfig:
    """Load configuration from a TOML file with env-var overrides.

    Parameters
    ----------
    config_path:
        Explicit path to a TOML file.  When *None*, looks for
        ``<project_dir>/.cubench/config.toml``.
    project_dir:
        Project root directory.  Defaults to :func:`Path.cwd`.

    Returns
    -------
    CuBenchConfig
        Parsed and validated configuration.
    """
    project = project_dir or Path.cwd()
    path = config_path or (project / DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE)

    data: dict = {}
    if path.exists():
        with open(path, "rb") as fh:
            data = tomllib.load(fh)

    # Flatten nested TOML sections if present
    flat: dict = {}
    for k, v in data.items():
        if isinstance(v, dict):
            flat.update(v)
        else:
            flat[k] = v

    flat = _apply_env_overrides(flat)
    return CuBenchConfig(**flat)


def default_config_toml() -> str:
    """Return default configuration as a TOML string."""
    return """\
# cubench configuration

[sampling]
sample_size = 100
state_mode = "accumulate"
progress_step_percent = 10

[output]
output_dir = "cu-bench"
database_file = "cu-bench/cu_estimates.json"

[logging]
log_level = "INFO"
"""


def write_default_config(project_dir: Path | None = None, *, force: bool = False) -> Path:
    """Write :func:`default_config_toml` to ``<project_dir>/.cubench/config.toml``.

    Raises:
        FileNotFoundError: *project_dir* does not exist or is not a directory.
        FileExistsError: The file exists and *force* is not set.
    """
    project = (project_dir or Path.cwd()).resolve()
    if not project.is_dir():
        raise FileNotFoundError(f"Not a directory: {project}")
    path = project / DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE
    if path.exists() and not force:
        raise FileExistsError(f"Configuration already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(default_config_toml(), encoding="utf-8")
    return path
