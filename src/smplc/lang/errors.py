"""
smpl Compile Error Hierarchy
============================

This module defines every error the smpl front end and backends can
raise. All of them inherit from CompileError, which itself inherits
from the package-wide SmplcError.

Exception Hierarchy
-------------------
CompileError (base for all compile-time errors)
├── SmplSyntaxError - lexer and parser errors
│   ├── LexError - text that cannot be tokenized
│   │   ├── UnterminatedStringError - missing closing quote
│   │   └── InvalidCharacterError - unexpected character
│   └── ParseError - tokens that do not match the grammar
│       ├── UnexpectedTokenError - wrong token for the construct
│       └── MissingTokenError - required punctuation absent
├── ModuleGraphError - cross-file module resolution
│   ├── UnresolvedImportError - `use` of a module not in the file set
│   └── DuplicateModuleError - two files declare the same module
├── SemanticError - well-formed but ill-typed programs
│   ├── UndefinedSymbolError - name not found in any visible scope
│   │   └── AmbiguousReferenceError - name provided by two imports
│   ├── TypeMismatchError - expected vs. found type
│   ├── ArityMismatchError - argument / type-argument count
│   ├── DuplicateFieldError - field named twice
│   ├── MissingFieldError - struct-init omits a field
│   ├── UnknownFieldError - field not declared by the struct
│   ├── DuplicateDeclarationError - same name twice in one scope
│   ├── ControlFlowError - misplaced control flow
│   │   ├── MissingReturnError - a path falls off a typed function
│   │   └── LoopControlError - break/continue outside a loop
│   └── MultipleEntryPointsError - `main` defined by two modules
└── BackendError - code generation
    ├── UnknownBackendError - no generator registered for the id
    └── BackendLoweringError - construct the backend cannot express

Error Message Format
--------------------
    geometry.smpl:5:12: error: undefined symbol 'pointt'
        let p: Point = pointt;
                       ^
    hint: did you mean 'point'?
"""

from typing import Iterable, Optional

from smplc.errors import SmplcError, SourceLocation


# =============================================================================
# Base Compile Exception
# =============================================================================

class CompileError(SmplcError):
    """
    Base exception for all smpl compile errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred
        hint: A suggestion for fixing the error
        source_line: The actual source text at the error location
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error with location, source context, and hint."""
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


# =============================================================================
# Syntax Errors (Lexer and Parser)
# =============================================================================

class SmplSyntaxError(CompileError):
    """Source text that is not a sentence of the smpl grammar."""
    pass


class LexError(SmplSyntaxError):
    """
    Source text that cannot be split into tokens.

    Examples:
        - Unterminated block comment
        - Integer literal that does not fit in 64 bits
        - Unknown escape sequence in a string
    """
    pass


class UnterminatedStringError(LexError):
    """String literal not closed before the end of its line."""

    def __init__(
        self,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        super().__init__(
            "unterminated string literal",
            location=location,
            hint="add closing '\"' to complete the string",
            source_line=source_line,
        )


class InvalidCharacterError(LexError):
    """Character that cannot start any smpl token."""

    def __init__(
        self,
        char: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.char = char
        super().__init__(
            f"invalid character '{char}' (0x{ord(char):02X})",
            location=location,
            source_line=source_line,
        )


class ParseError(SmplSyntaxError):
    """Token stream that does not match the smpl grammar."""
    pass


class UnexpectedTokenError(ParseError):
    """
    Unexpected token during parsing.

    Raised when the parser encounters a token that doesn't start or
    continue the construct it is parsing.
    """

    def __init__(
        self,
        found: str,
        expected: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.found = found
        self.expected = expected

        hint = None
        if expected:
            hint = f"expected {expected}"

        super().__init__(
            f"unexpected token '{found}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class MissingTokenError(ParseError):
    """Required token (like ';' or ')') not found where expected."""

    def __init__(
        self,
        expected: str,
        found: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.expected = expected
        self.found = found
        message = f"expected {expected}"
        if found is not None:
            message += f", found '{found}'"
        super().__init__(message, location=location, source_line=source_line)


# =============================================================================
# Module Graph Errors
# =============================================================================

class ModuleGraphError(CompileError):
    """Failure to assemble the input files into one module namespace."""
    pass


class UnresolvedImportError(ModuleGraphError):
    """A `use` names a module that is not among the compiled files."""

    def __init__(
        self,
        module_name: str,
        importer: str,
        location: Optional[SourceLocation] = None,
        available: Optional[Iterable[str]] = None,
        reason: Optional[str] = None,
    ):
        self.module_name = module_name
        self.importer = importer
        names = sorted(available or [])
        hint = None
        if names:
            hint = "available modules: " + ", ".join(names)
        super().__init__(
            reason or f"module '{importer}' uses unknown module '{module_name}'",
            location=location,
            hint=hint,
        )


class DuplicateModuleError(ModuleGraphError):
    """Two input files declare the same module name."""

    def __init__(
        self,
        module_name: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
    ):
        self.module_name = module_name
        self.original_location = original_location
        hint = None
        if original_location:
            hint = f"module '{module_name}' was first declared at {original_location}"
        super().__init__(
            f"duplicate module '{module_name}'",
            location=location,
            hint=hint,
        )


# =============================================================================
# Semantic Errors (Resolution and Type Checking)
# =============================================================================

class SemanticError(CompileError):
    """
    Semantic error in smpl source code.

    Raised during analysis when the program parses but violates the
    language's scoping or typing rules.
    """
    pass


class UndefinedSymbolError(SemanticError):
    """
    Reference to a name that no visible scope declares.

    The analyzer passes similarly spelled names it could see, which are
    turned into a hint to help catch typos.
    """

    def __init__(
        self,
        name: str,
        location: Optional[SourceLocation] = None,
        similar: Optional[list[str]] = None,
        kind: str = "symbol",
    ):
        self.name = name
        self.similar = similar or []

        hint = None
        if self.similar:
            suggestions = ", ".join(f"'{s}'" for s in self.similar[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(f"undefined {kind} '{name}'", location=location, hint=hint)


class AmbiguousReferenceError(UndefinedSymbolError):
    """A bare name is exported by more than one `use`d module."""

    def __init__(
        self,
        name: str,
        modules: list[str],
        location: Optional[SourceLocation] = None,
    ):
        self.modules = modules
        CompileError.__init__(
            self,
            f"'{name}' is ambiguous",
            location=location,
            hint="qualify it as one of "
            + ", ".join(f"'{m}::{name}'" for m in modules),
        )
        self.name = name
        self.similar = []


class TypeMismatchError(SemanticError):
    """
    Expression whose type differs from what its context requires.

    Attributes:
        expected: Rendered expected type (or None for free-form errors)
        found: Rendered actual type
    """

    def __init__(
        self,
        message: str,
        expected: Optional[object] = None,
        found: Optional[object] = None,
        location: Optional[SourceLocation] = None,
    ):
        self.expected = None if expected is None else str(expected)
        self.found = None if found is None else str(found)

        hint = None
        if self.expected is not None and self.found is not None:
            hint = f"expected '{self.expected}', found '{self.found}'"

        super().__init__(message, location=location, hint=hint)


class ArityMismatchError(SemanticError):
    """Wrong number of arguments or type arguments."""

    def __init__(
        self,
        name: str,
        expected: int,
        actual: int,
        what: str = "argument",
        location: Optional[SourceLocation] = None,
    ):
        self.name = name
        self.expected = expected
        self.actual = actual
        self.what = what

        word = what if expected == 1 else f"{what}s"
        super().__init__(
            f"'{name}' expects {expected} {word}, got {actual}",
            location=location,
        )


class DuplicateFieldError(SemanticError):
    """Field named twice in a struct declaration or struct-init."""

    def __init__(
        self,
        struct_name: str,
        field_name: str,
        location: Optional[SourceLocation] = None,
    ):
        self.struct_name = struct_name
        self.field_name = field_name
        super().__init__(
            f"field '{field_name}' of '{struct_name}' given more than once",
            location=location,
        )


class MissingFieldError(SemanticError):
    """Struct-init that leaves declared fields out."""

    def __init__(
        self,
        struct_name: str,
        missing: list[str],
        location: Optional[SourceLocation] = None,
    ):
        self.struct_name = struct_name
        self.missing = missing
        names = ", ".join(f"'{m}'" for m in missing)
        word = "field" if len(missing) == 1 else "fields"
        super().__init__(
            f"missing {word} {names} in initializer of '{struct_name}'",
            location=location,
        )


class UnknownFieldError(SemanticError):
    """Field name the struct does not declare."""

    def __init__(
        self,
        struct_name: str,
        field_name: str,
        location: Optional[SourceLocation] = None,
        fields: Optional[list[str]] = None,
    ):
        self.struct_name = struct_name
        self.field_name = field_name
        hint = None
        if fields:
            hint = f"'{struct_name}' has fields: " + ", ".join(fields)
        super().__init__(
            f"struct '{struct_name}' has no field '{field_name}'",
            location=location,
            hint=hint,
        )


class DuplicateDeclarationError(SemanticError):
    """Two items, parameters or bindings with the same name in one scope."""

    def __init__(
        self,
        name: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        self.name = name
        self.original_location = original_location

        if hint is None and original_location:
            hint = f"'{name}' was first declared at {original_location}"

        super().__init__(f"redeclaration of '{name}'", location=location, hint=hint)


class ControlFlowError(SemanticError):
    """Statement placed where control cannot legally reach or leave."""
    pass


class MissingReturnError(ControlFlowError):
    """Function with a return type that can finish without returning."""

    def __init__(
        self,
        function_name: str,
        return_type: object,
        location: Optional[SourceLocation] = None,
    ):
        self.function_name = function_name
        super().__init__(
            f"function '{function_name}' may finish without returning a value",
            location=location,
            hint=f"add a 'return' of type '{return_type}' on every path",
        )


class LoopControlError(ControlFlowError):
    """`break` or `continue` outside of a `while` body."""

    def __init__(self, keyword: str, location: Optional[SourceLocation] = None):
        self.keyword = keyword
        super().__init__(f"'{keyword}' outside of a loop", location=location)


class MultipleEntryPointsError(SemanticError):
    """More than one module defines `fn main()`."""

    def __init__(
        self,
        modules: list[str],
        location: Optional[SourceLocation] = None,
    ):
        self.modules = modules
        super().__init__(
            "entry point 'main' defined in modules "
            + ", ".join(f"'{m}'" for m in modules),
            location=location,
        )


# =============================================================================
# Backend Errors
# =============================================================================

class BackendError(CompileError):
    """Failure in backend selection or code generation."""
    pass


class UnknownBackendError(BackendError):
    """No generator registered under the requested identifier."""

    def __init__(self, backend_id: object, available: Iterable[object] = ()):
        self.backend_id = backend_id
        ids = sorted(available)
        hint = None
        if ids:
            hint = "available backends: " + ", ".join(str(i) for i in ids)
        super().__init__(f"unknown backend {backend_id!r}", hint=hint)


class BackendLoweringError(BackendError):
    """Construct the selected backend cannot express in its target."""

    def __init__(
        self,
        backend: str,
        construct: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        self.backend = backend
        self.construct = construct
        super().__init__(
            f"{backend} backend cannot lower {construct}",
            location=location,
            hint=hint,
        )
