"""cubench CLI – command-line interface built with Typer and Rich.

- :data:`app` – The main Typer application
- :func:`setup_logging` – Logging infrastructure
- :class:`RichProgressObserver` – Rich progress bar for sampling
- :class:`CLIError` – Structured error handling
"""

from cubench.cli.app import app, load_subject
from cubench.cli.errors import CLIError, ConfigError, error_handler
from cubench.cli.logging_setup import setup_logging
from cubench.cli.progress import RichProgressObserver

__all__ = [
    "CLIError",
    "ConfigError",
    "RichProgressObserver",
    "app",
    "error_handler",
    "load_subject",
    "setup_logging",
]
