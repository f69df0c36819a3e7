"""
smpl Type System
================

This module implements the semantic types the analyzer assigns to
declarations and expressions, together with the registries the typed
program exposes to backends.

Supported Types
---------------
- int, float, bool, string: primitive value types
- unit: the result of functions declared without `->`
- Struct types: nominal, identified by (module, name)
- Opaque types: nominal type constructors with type arguments,
  e.g. `Option(type int)`
- Type parameters: the abstract `T` of a generic function
- Arrays: `[T; N]`
- Function types: `fn(A, B) -> R`
- References: `&T`, produced only by the `&` operator

Type Equality
-------------
All types are frozen dataclasses and compare structurally. Two struct
types are the same type exactly when they name the same struct in the
same module; a type parameter equals only itself (its owner function and
name), so `T` of one function never matches `T` of another or any
concrete type. The analyzer never coerces: "assignable" means "equal".

Generic Instantiation
---------------------
Instantiation is substitution. `FunctionSignature.instantiate()` maps
each declared type parameter to the caller's explicit type argument and
rewrites parameter and return types with `SmplType.substitute()`.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


# =============================================================================
# Type Classes
# =============================================================================

class SmplType:
    """Base class for all semantic types."""

    def substitute(self, mapping: dict["TypeParameter", "SmplType"]) -> "SmplType":
        """Replace type parameters according to mapping."""
        return self

    def is_numeric(self) -> bool:
        return self in (TYPE_INT, TYPE_FLOAT)

    def is_primitive(self) -> bool:
        return isinstance(self, PrimitiveType) and self != TYPE_UNIT


@dataclass(frozen=True)
class PrimitiveType(SmplType):
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class StructType(SmplType):
    """Nominal struct type; field types live in the StructInfo registry."""
    module: str
    name: str

    @property
    def qualified_name(self) -> str:
        return f"{self.module}::{self.name}"

    def __str__(self) -> str:
        return self.qualified_name


@dataclass(frozen=True)
class OpaqueType(SmplType):
    """Instance of an opaque type constructor, e.g. `Option(type int)`."""
    module: str
    name: str
    args: tuple[SmplType, ...] = ()

    @property
    def qualified_name(self) -> str:
        return f"{self.module}::{self.name}"

    def substitute(self, mapping):
        return OpaqueType(self.module, self.name, tuple(a.substitute(mapping) for a in self.args))

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}(type {', '.join(str(a) for a in self.args)})"


@dataclass(frozen=True)
class TypeParameter(SmplType):
    """
    Abstract type bound by a generic function.

    Attributes:
        owner: Qualified name of the declaring function
        name: The parameter name as written, e.g. "T"
    """
    owner: str
    name: str

    def substitute(self, mapping):
        return mapping.get(self, self)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ArrayType(SmplType):
    element: SmplType
    length: int

    def substitute(self, mapping):
        return ArrayType(self.element.substitute(mapping), self.length)

    def __str__(self) -> str:
        return f"[{self.element}; {self.length}]"


@dataclass(frozen=True)
class FunctionType(SmplType):
    params: tuple[SmplType, ...]
    return_type: SmplType

    def substitute(self, mapping):
        return FunctionType(
            tuple(p.substitute(mapping) for p in self.params),
            self.return_type.substitute(mapping),
        )

    def __str__(self) -> str:
        text = f"fn({', '.join(str(p) for p in self.params)})"
        if self.return_type != TYPE_UNIT:
            text += f" -> {self.return_type}"
        return text


@dataclass(frozen=True)
class ReferenceType(SmplType):
    target: SmplType

    def substitute(self, mapping):
        return ReferenceType(self.target.substitute(mapping))

    def __str__(self) -> str:
        return f"&{self.target}"


# =============================================================================
# Predefined Types
# =============================================================================

TYPE_INT = PrimitiveType("int")
TYPE_FLOAT = PrimitiveType("float")
TYPE_BOOL = PrimitiveType("bool")
TYPE_STRING = PrimitiveType("string")
TYPE_UNIT = PrimitiveType("unit")

# Names usable in type annotations
PRIMITIVE_TYPES: dict[str, PrimitiveType] = {
    "int": TYPE_INT,
    "float": TYPE_FLOAT,
    "bool": TYPE_BOOL,
    "string": TYPE_STRING,
}


# =============================================================================
# Registries
# =============================================================================

@dataclass
class StructInfo:
    """
    A checked struct declaration.

    Attributes:
        struct_type: The nominal type
        fields: Field name -> type, in declaration order
        declaration: The StructDeclaration node
    """
    struct_type: StructType
    fields: dict[str, SmplType] = field(default_factory=dict)
    declaration: Optional[Any] = field(default=None, compare=False)


@dataclass
class OpaqueInfo:
    """A registered opaque type constructor and its arity."""
    module: str
    name: str
    type_params: tuple[str, ...] = ()
    declaration: Optional[Any] = field(default=None, compare=False)

    @property
    def qualified_name(self) -> str:
        return f"{self.module}::{self.name}"


@dataclass
class FunctionSignature:
    """
    Resolved signature of a function or builtin function.

    Attributes:
        module: Declaring module
        name: Function name
        type_params: Abstract types bound by the function, in order
        params: (name, type) pairs in order
        return_type: TYPE_UNIT when the function declares none
        is_builtin: True for `builtin fn` intrinsics
        declaration: The declaring AST node
    """
    module: str
    name: str
    type_params: tuple[TypeParameter, ...] = ()
    params: tuple[tuple[str, SmplType], ...] = ()
    return_type: SmplType = TYPE_UNIT
    is_builtin: bool = False
    declaration: Optional[Any] = field(default=None, compare=False)

    @property
    def qualified_name(self) -> str:
        return f"{self.module}::{self.name}"

    @property
    def param_types(self) -> tuple[SmplType, ...]:
        return tuple(t for _, t in self.params)

    @property
    def is_generic(self) -> bool:
        return bool(self.type_params)

    def function_type(self) -> FunctionType:
        """Type of this function used as a value (non-generic only)."""
        return FunctionType(self.param_types, self.return_type)

    def instantiate(self, type_args: list[SmplType]) -> tuple[tuple[SmplType, ...], SmplType]:
        """
        Specialize parameter and return types for explicit type arguments.

        The caller has already checked that len(type_args) matches.
        """
        mapping = dict(zip(self.type_params, type_args))
        return (
            tuple(t.substitute(mapping) for t in self.param_types),
            self.return_type.substitute(mapping),
        )
