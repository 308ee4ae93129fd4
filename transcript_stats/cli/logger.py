"""
CLI logging adapter - routes the package's stdlib loggers to the terminal.

Prints '[LEVEL] message' lines on stderr so command output (JSON on stdout)
stays machine-readable.
"""

from __future__ import annotations

import logging

import typer

PACKAGE_LOGGER = 'transcript_stats'


class CLILogHandler(logging.Handler):
    """
    Logging handler for CLI commands.

    Info messages only appear in verbose mode (the logger level filters them);
    warnings and errors always appear.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
        except Exception:
            self.handleError(record)
            return
        color = typer.colors.RED if record.levelno >= logging.ERROR else None
        typer.secho(f'[{record.levelname}] {message}', fg=color, err=True)


def configure_cli_logging(verbose: bool = False) -> logging.Logger:
    """
    Attach a single CLILogHandler to the package logger.

    Args:
        verbose: If True, show info messages. If False, only warnings/errors.

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, CLILogHandler):
            logger.removeHandler(handler)

    handler = CLILogHandler()
    handler.setFormatter(logging.Formatter('%(message)s'))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO if verbose else logging.WARNING)
    return logger
