"""
smpl Language Front End
=======================

This package implements the front end of the smpl compiler: everything
between source text and the typed program a backend lowers.

Pipeline
--------
    Source → Lexer → Parser → Module Graph → Semantic Analyzer → Program

- lexer: maximal-munch tokenizer
- parser: recursive-descent parser producing one ModuleNode per file
- printer: canonical smpl text for any module AST
- module_graph: cross-file namespace built from `mod`/`use`
- checker: scoping, typing and generic instantiation
- compiler: the driver tying the stages to a backend

Language Summary
----------------
- Primitive types: int, float, bool, string
- Structs, with `init Name { field: value }` initializers
- Generic functions with explicit type arguments: `id(type int)(5)`
- Opaque builtin types and intrinsics (`Option`, `some`, `unwrap`, ...)
- Modules: `mod name;` and `use other;`, qualified paths `other::item`
"""

from smplc.lang.errors import (
    CompileError,
    SmplSyntaxError,
    LexError,
    ParseError,
    ModuleGraphError,
    SemanticError,
    BackendError,
)
from smplc.lang.lexer import Lexer, Token, TokenType
from smplc.lang.parser import Parser, parse_source
from smplc.lang.printer import SourcePrinter, format_module

__all__ = [
    "CompileError",
    "SmplSyntaxError",
    "LexError",
    "ParseError",
    "ModuleGraphError",
    "SemanticError",
    "BackendError",
    "Lexer",
    "Token",
    "TokenType",
    "Parser",
    "parse_source",
    "SourcePrinter",
    "format_module",
]
