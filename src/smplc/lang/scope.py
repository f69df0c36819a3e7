"""
Lexical Scopes
==============

Local bindings (parameters and `let`s) live in a chain of Scope objects:
the function scope holds the parameters, the function body opens a
child scope, and every nested block opens another.

Rules:
- A name may be declared only once per scope.
- An inner scope may shadow an outer name; the outer binding is left
  untouched and becomes visible again when the inner scope closes.

Module-level names (functions, structs, opaque types, modules) are not
stored here. When the chain has no local of a given name, the analyzer
falls back to the module graph.
"""

from dataclasses import dataclass, field
from typing import Optional

from smplc.errors import SourceLocation
from smplc.lang.errors import DuplicateDeclarationError
from smplc.lang.types import SmplType


@dataclass(eq=False)
class LocalSymbol:
    """
    A parameter or `let` binding.

    Symbols compare by identity: two bindings that share a name and type
    are still different variables.

    Attributes:
        name: Binding name
        type: Declared type
        location: Where the binding was declared
        is_parameter: True for function parameters
    """
    name: str
    type: SmplType
    location: SourceLocation = field(repr=False)
    is_parameter: bool = False


class Scope:
    """
    One level of the lexical scope chain.

    Attributes:
        parent: Enclosing scope, None for a function scope
        kind: "function" or "block", for debugging
    """

    def __init__(self, parent: Optional["Scope"] = None, kind: str = "block"):
        self.parent = parent
        self.kind = kind
        self.symbols: dict[str, LocalSymbol] = {}

    def child(self, kind: str = "block") -> "Scope":
        return Scope(self, kind)

    def declare(self, symbol: LocalSymbol) -> LocalSymbol:
        """
        Add a binding to this scope.

        Raises:
            DuplicateDeclarationError: If this scope already declares the name
        """
        existing = self.symbols.get(symbol.name)
        if existing is not None:
            raise DuplicateDeclarationError(
                symbol.name,
                location=symbol.location,
                original_location=existing.location,
            )
        self.symbols[symbol.name] = symbol
        return symbol

    def lookup(self, name: str) -> Optional[LocalSymbol]:
        """Find the innermost visible binding of name."""
        scope = self
        while scope is not None:
            if name in scope.symbols:
                return scope.symbols[name]
            scope = scope.parent
        return None

    def visible_names(self) -> set[str]:
        names: set[str] = set()
        scope = self
        while scope is not None:
            names.update(scope.symbols)
            scope = scope.parent
        return names
