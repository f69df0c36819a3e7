"""
CLI Error Handling
==================

Maps exceptions to diagnostics on stderr and process exit codes.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click

from smplc.lang.errors import CompileError, UnknownBackendError


class ExitCode(IntEnum):
    """Exit codes of the smplc command."""
    SUCCESS = 0
    COMPILE_ERROR = 1    # Any CompileError from the pipeline
    INVALID_ARGS = 2     # Unknown backend, missing, unreadable or non-UTF-8 inputs
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(error: Exception, verbose: bool = False) -> NoReturn:
    """
    Report error and exit with the matching exit code.

    Args:
        error: The exception that was raised
        verbose: If True, print the traceback of internal errors

    Raises:
        SystemExit: Always
    """
    if isinstance(error, UnknownBackendError):
        # Selecting a backend is an argument problem, not a source problem
        click.echo(str(error), err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, CompileError):
        # Compile errors already carry "file:line:col: error:" formatting
        click.echo(str(error), err=True)
        sys.exit(ExitCode.COMPILE_ERROR)

    elif isinstance(error, click.UsageError):
        click.echo(f"Error: {error.format_message()}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(
        error,
        (FileNotFoundError, PermissionError, IsADirectoryError, UnicodeDecodeError),
    ):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
