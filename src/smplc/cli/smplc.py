"""
smplc - smpl Compiler Command-Line Interface
============================================

This module implements the command-line interface for the smpl compiler.

Usage Examples
--------------
Compile one file to Rust:
    $ smplc main.smpl

Several modules, explicit backend and output:
    $ smplc -i geo.smpl -i main.smpl -b 0 -o out.rs

Print the canonical source of each parsed module:
    $ smplc --ast main.smpl

List the available backends:
    $ smplc --list-backends
"""

import logging
from pathlib import Path
from typing import Optional

import click

from smplc import __version__
from smplc.backends import available_backends, get_backend
from smplc.cli.errors import ExitCode, handle_cli_exception
from smplc.lang.compiler import CompilerOptions, SmplCompiler, read_source_file
from smplc.lang.printer import format_module

logger = logging.getLogger(__name__)

STDOUT = Path("-")


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


def default_output(inputs: list[Path], extension: str) -> Path:
    """First input's name with the backend's extension, never an input itself."""
    output = inputs[0].with_suffix(extension)
    if output in inputs:
        output = inputs[0].with_suffix(".out" + extension)
    return output


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "files",
    nargs=-1,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-i", "--input", "inputs",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="smpl source file (can be repeated)",
)
@click.option(
    "-b", "--backend",
    type=int,
    default=0,
    show_default=True,
    help="Backend id (see --list-backends)",
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, allow_dash=True, path_type=Path),
    help="Output file, '-' for stdout (default: first input + backend extension)",
)
@click.option(
    "--ast",
    is_flag=True,
    help="Print the canonical source of each parsed module and exit",
)
@click.option(
    "--list-backends",
    is_flag=True,
    help="List available backends and exit",
)
@click.option(
    "--no-prelude",
    is_flag=True,
    help="Compile without the builtin prelude (Option and its intrinsics)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="smplc")
def main(
    files: tuple[Path, ...],
    inputs: tuple[Path, ...],
    backend: int,
    output: Optional[Path],
    ast: bool,
    list_backends: bool,
    no_prelude: bool,
    verbose: bool,
) -> None:
    """
    Compile smpl source files to a target language.

    FILES are smpl sources; they may also be given with -i/--input.
    Every file is one module, and all of them are compiled together.

    \b
    Examples:
        smplc main.smpl                      # Outputs main.rs
        smplc -i geo.smpl -i main.smpl       # Two modules
        smplc main.smpl -b 1 -o -            # Canonical smpl to stdout
        smplc --list-backends
    """
    setup_logging(verbose)

    if list_backends:
        for info in available_backends():
            click.echo(f"{info.backend_id}  {info.name}")
        return

    sources = list(inputs) + list(files)

    try:
        if not sources:
            raise click.UsageError("no input files")

        options = CompilerOptions(backend=backend, include_prelude=not no_prelude)
        compiler = SmplCompiler(options)

        if ast:
            modules = compiler.parse_sources([read_source_file(p) for p in sources])
            click.echo("\n".join(format_module(m) for m in modules), nl=False)
            return

        info = get_backend(backend)
        if output is None:
            output = default_output(sources, info.extension)

        if verbose:
            click.echo(f"Compiling {', '.join(str(p) for p in sources)} with backend {backend} ({info.name})")

        result = compiler.compile_files(sources)

        if output == STDOUT:
            click.echo(result.output, nl=False)
            return

        output.write_text(result.output, encoding="utf-8")

        if verbose:
            click.echo(f"Tokenized: {result.token_count} tokens")
            click.echo(f"Modules: {', '.join(result.modules)}")
            click.echo(f"Wrote {len(result.output)} bytes to {output}")

        click.echo(f"Compiled {len(sources)} file(s) -> {output}")

    except Exception as e:
        handle_cli_exception(e, verbose)


if __name__ == "__main__":
    main()
