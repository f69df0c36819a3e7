"""
smplc Command-Line Interface
============================

This package provides the `smplc` command, a Click-based front end to
SmplCompiler with consistent error reporting and exit codes.
"""

__all__ = ["smplc"]
