"""
smplc Error Root
================

This module defines the root of the smplc exception hierarchy and the
source location record shared by every stage of the compiler.

All exceptions raised by smplc inherit from SmplcError, allowing callers
to catch every compiler failure with a single except clause:

    try:
        compile_smpl([source])
    except SmplcError as e:
        print(f"Error: {e}")

The detailed compile-time hierarchy (lexing, parsing, module resolution,
semantic analysis, code generation) lives in smplc.lang.errors.
"""

from dataclasses import dataclass


# =============================================================================
# Base Exception Class
# =============================================================================

class SmplcError(Exception):
    """Base exception for all smplc errors."""
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in smpl source code for error reporting.

    Tokens, AST nodes and errors all carry one of these. The frozen
    design ensures locations cannot be accidentally modified once a
    token has been produced.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"
