"""
smplc - Source-to-Source Compiler for smpl
==========================================

smpl is a small statically typed language with modules, structs, generic
functions with explicit type arguments, and opaque builtin types such as
`Option(type T)`. smplc checks a set of smpl files and lowers them to the
source text of a target language chosen by numeric backend id.

Main Components
---------------
- **lang**: lexer, parser, module graph and semantic analyzer
- **backends**: registry of code generators (0 = Rust, 1 = smpl)
- **cli**: the `smplc` command

Quick Start
-----------
    >>> from smplc import compile_smpl
    >>> rust = compile_smpl([
    ...     'struct Point { x: int, y: int }',
    ... ])

Or use the command-line tool:
    $ smplc -i geo.smpl -i main.smpl -b 0 -o out.rs
"""

__version__ = "0.3.0"

# =============================================================================
# Public API Exports
# =============================================================================

from smplc.errors import SmplcError, SourceLocation
from smplc.lang.errors import CompileError
from smplc.lang.compiler import (
    CompilerOptions,
    CompilerResult,
    SmplCompiler,
    SourceFile,
    compile_smpl,
)
from smplc.backends import available_backends, register_backend

__all__ = [
    "__version__",
    "SmplcError",
    "SourceLocation",
    "CompileError",
    "CompilerOptions",
    "CompilerResult",
    "SmplCompiler",
    "SourceFile",
    "compile_smpl",
    "available_backends",
    "register_backend",
]
