"""
smpl Abstract Syntax Tree (AST) Definitions
===========================================

This module defines the AST node types produced by the smpl parser.
One ModuleNode is built per source file; semantic analysis decorates
the tree in place and backends read it without changing its shape.

Node Hierarchy
--------------
ASTNode (base)
├── ModuleNode - root node of one source file
├── Items
│   ├── UseDeclaration - `use name;`
│   ├── StructDeclaration - struct with ordered fields
│   ├── OpaqueDeclaration - opaque builtin type constructor
│   ├── FunctionDeclaration - fn with a body
│   └── BuiltinFunctionDeclaration - trusted intrinsic, no body
├── Type annotations
│   ├── NamedTypeAnnotation - `int`, `geo::Point`, `Option(type T)`
│   ├── ArrayTypeAnnotation - `[T; N]`
│   └── FunctionTypeAnnotation - `fn(A, B) -> R`
├── Statements
│   ├── BlockStatement, LetStatement, AssignmentStatement
│   ├── IfStatement (IfBranch), WhileStatement
│   ├── ReturnStatement, BreakStatement, ContinueStatement
│   └── ExpressionStatement
└── Expressions
    ├── IntegerLiteral, FloatLiteral, BoolLiteral, StringLiteral
    ├── BindingExpression - name or `module::name`
    ├── FieldAccessExpression - `a.b.c`
    ├── CallExpression - `f(type T)(args)`
    ├── StructInitExpression (FieldInit) - `init Point { x: 1 }`
    ├── UnaryExpression, BinaryExpression
    └── ParenExpression - `( expr )`

Design Notes
------------
- Locations and analysis decorations are declared with compare=False,
  so equality between two trees is purely structural. Printing a module
  and parsing the result again gives an equal tree.
- Item, TypeAnnotation, Statement and Expression are closed sets; every
  consumer dispatches over all of their cases.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional

from smplc.errors import SourceLocation


# =============================================================================
# Paths
# =============================================================================

@dataclass(frozen=True)
class ModulePath:
    """
    A possibly qualified name such as `Point` or `geo::Point`.

    Attributes:
        segments: Name components, outermost module first
    """
    segments: tuple[str, ...]

    def __str__(self) -> str:
        return "::".join(self.segments)

    @property
    def name(self) -> str:
        """The final (item) segment."""
        return self.segments[-1]

    @property
    def is_qualified(self) -> bool:
        return len(self.segments) > 1

    @classmethod
    def of(cls, text: str) -> "ModulePath":
        """Build a path from its `a::b` spelling."""
        return cls(tuple(text.split("::")))


# =============================================================================
# AST Node Base Classes
# =============================================================================

@dataclass
class ASTNode:
    """
    Base class for all AST nodes.

    Attributes:
        location: Source location where this node starts
    """
    location: SourceLocation = field(compare=False)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}@{self.location.line}:{self.location.column}"


@dataclass
class Expression(ASTNode):
    """
    Base class for all expression nodes.

    Attributes:
        resolved_type: The checked type of this expression (set by the
            semantic analyzer)
    """
    resolved_type: Optional[Any] = field(default=None, compare=False)


@dataclass
class Statement(ASTNode):
    """Base class for all statement nodes."""
    pass


@dataclass
class Item(ASTNode):
    """Base class for top-level module items."""
    name: str = ""


@dataclass
class TypeAnnotation(ASTNode):
    """
    Base class for written type annotations.

    Attributes:
        resolved: The semantic type this annotation denotes (set by the
            semantic analyzer)
    """
    resolved: Optional[Any] = field(default=None, compare=False)


# =============================================================================
# Type Annotations
# =============================================================================

@dataclass
class NamedTypeAnnotation(TypeAnnotation):
    """
    A type named by path, with optional type arguments.

    Covers primitives (`int`), structs (`Point`, `geo::Point`), bound
    type parameters (`T`) and opaque types (`Option(type int)`).
    """
    path: ModulePath = None
    type_args: list[TypeAnnotation] = field(default_factory=list)


@dataclass
class ArrayTypeAnnotation(TypeAnnotation):
    """Fixed-length array type `[element; length]`."""
    element: TypeAnnotation = None
    length: int = 0


@dataclass
class FunctionTypeAnnotation(TypeAnnotation):
    """Function type `fn(A, B) -> R`; return_type None means unit."""
    params: list[TypeAnnotation] = field(default_factory=list)
    return_type: Optional[TypeAnnotation] = None


# =============================================================================
# Module and Item Nodes
# =============================================================================

@dataclass
class ModuleNode(ASTNode):
    """
    Root node for one source file.

    Attributes:
        name: Declared module name, or None when the file has no `mod`
        items: Top-level items in source order
        filename: File the module was parsed from
    """
    name: Optional[str] = None
    items: list[Item] = field(default_factory=list)
    filename: str = field(default="<input>", compare=False)

    @property
    def uses(self) -> list["UseDeclaration"]:
        return [item for item in self.items if isinstance(item, UseDeclaration)]


@dataclass
class UseDeclaration(Item):
    """`use name;` - make another module's items visible unqualified."""
    pass


@dataclass
class StructField(ASTNode):
    name: str = ""
    field_type: TypeAnnotation = None


@dataclass
class StructDeclaration(Item):
    """
    Struct type declaration.

    Attributes:
        fields: Ordered field list; order is preserved by every backend
    """
    fields: list[StructField] = field(default_factory=list)


@dataclass
class OpaqueDeclaration(Item):
    """`opaque Name(type T...);` - a type with no visible structure."""
    type_params: list[str] = field(default_factory=list)


@dataclass
class Parameter(ASTNode):
    name: str = ""
    param_type: TypeAnnotation = None


@dataclass
class CallableDeclaration(Item):
    """
    Shared shape of functions and builtin functions.

    Attributes:
        type_params: Generic type parameter names, e.g. ["T", "U"]
        parameters: Ordered value parameters
        return_type: Declared return type, None for unit
        signature: Resolved FunctionSignature (set by the analyzer)
    """
    type_params: list[str] = field(default_factory=list)
    parameters: list[Parameter] = field(default_factory=list)
    return_type: Optional[TypeAnnotation] = None
    signature: Optional[Any] = field(default=None, compare=False)

    @property
    def is_generic(self) -> bool:
        return bool(self.type_params)


@dataclass
class FunctionDeclaration(CallableDeclaration):
    """Function definition with a body."""
    body: "BlockStatement" = None


@dataclass
class BuiltinFunctionDeclaration(CallableDeclaration):
    """`builtin fn ...;` - an intrinsic whose contract the analyzer trusts."""
    pass


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass
class BlockStatement(Statement):
    """Braced statement list; opens a new lexical scope."""
    statements: list[Statement] = field(default_factory=list)


@dataclass
class LetStatement(Statement):
    """
    `let name: T = initializer;`

    Attributes:
        symbol: LocalSymbol introduced by this statement (set by the analyzer)
    """
    name: str = ""
    var_type: TypeAnnotation = None
    initializer: "Expression" = None
    symbol: Optional[Any] = field(default=None, compare=False)


@dataclass
class AssignmentStatement(Statement):
    """
    `target.f.g = value;`

    Attributes:
        target: Name of the local binding being assigned
        fields: Field chain below the binding (empty for a plain rebind)
        target_symbol: LocalSymbol of target (set by the analyzer)
    """
    target: str = ""
    fields: list[str] = field(default_factory=list)
    value: "Expression" = None
    target_symbol: Optional[Any] = field(default=None, compare=False)


@dataclass
class IfBranch(ASTNode):
    """One `if` or `elif` arm."""
    condition: "Expression" = None
    body: BlockStatement = None


@dataclass
class IfStatement(Statement):
    """
    if/elif/else chain.

    Attributes:
        branches: The `if` arm followed by each `elif` arm
        else_body: Optional `else` block
    """
    branches: list[IfBranch] = field(default_factory=list)
    else_body: Optional[BlockStatement] = None


@dataclass
class WhileStatement(Statement):
    condition: "Expression" = None
    body: BlockStatement = None


@dataclass
class ReturnStatement(Statement):
    value: Optional["Expression"] = None


@dataclass
class BreakStatement(Statement):
    pass


@dataclass
class ContinueStatement(Statement):
    pass


@dataclass
class ExpressionStatement(Statement):
    expression: "Expression" = None


# =============================================================================
# Operators
# =============================================================================

class BinaryOperator(Enum):
    """Binary operators, valued by their source spelling."""
    # Arithmetic
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"

    # Comparison
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS = "<"
    GREATER = ">"
    LESS_EQ = "<="
    GREATER_EQ = ">="

    # Logical
    LOGICAL_AND = "&&"
    LOGICAL_OR = "||"


class UnaryOperator(Enum):
    """Prefix operators, valued by their source spelling."""
    NEGATE = "-"
    LOGICAL_NOT = "!"
    REFERENCE = "&"
    DEREFERENCE = "*"


# Binding power of each binary tier, loosest first
BINARY_PRECEDENCE: dict[BinaryOperator, int] = {
    BinaryOperator.LOGICAL_AND: 1,
    BinaryOperator.LOGICAL_OR: 1,
    BinaryOperator.EQUAL: 2,
    BinaryOperator.NOT_EQUAL: 2,
    BinaryOperator.LESS: 3,
    BinaryOperator.GREATER: 3,
    BinaryOperator.LESS_EQ: 3,
    BinaryOperator.GREATER_EQ: 3,
    BinaryOperator.ADD: 4,
    BinaryOperator.SUBTRACT: 4,
    BinaryOperator.MULTIPLY: 5,
    BinaryOperator.DIVIDE: 5,
    BinaryOperator.MODULO: 5,
}


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass
class IntegerLiteral(Expression):
    value: int = 0


@dataclass
class FloatLiteral(Expression):
    value: float = 0.0


@dataclass
class BoolLiteral(Expression):
    value: bool = False


@dataclass
class StringLiteral(Expression):
    value: str = ""


@dataclass
class BindingExpression(Expression):
    """
    Reference to a named value: a local, a parameter, or a function.

    Attributes:
        path: `x` or `module::function`
        symbol: The resolved symbol (set by the analyzer)
    """
    path: ModulePath = None
    symbol: Optional[Any] = field(default=None, compare=False)


@dataclass
class FieldAccessExpression(Expression):
    """
    `root.f.g` - field chain read through a local binding.

    Attributes:
        root: Name of the binding the chain starts from
        fields: One or more field names
        root_symbol: LocalSymbol of root (set by the analyzer)
    """
    root: str = ""
    fields: list[str] = field(default_factory=list)
    root_symbol: Optional[Any] = field(default=None, compare=False)


@dataclass
class CallExpression(Expression):
    """
    Function call `callee(type A, B)(arg, ...)`.

    Attributes:
        callee: Path naming the function or a function-typed binding
        type_args: Explicit generic type arguments
        arguments: Value arguments in order
        target: Resolved callee symbol (set by the analyzer)
        instantiation: Resolved types of type_args (set by the analyzer)
    """
    callee: ModulePath = None
    type_args: list[TypeAnnotation] = field(default_factory=list)
    arguments: list["Expression"] = field(default_factory=list)
    target: Optional[Any] = field(default=None, compare=False)
    instantiation: list[Any] = field(default_factory=list, compare=False)


@dataclass
class FieldInit(ASTNode):
    """`name: value` inside a struct-init."""
    name: str = ""
    value: "Expression" = None


@dataclass
class StructInitExpression(Expression):
    """
    Struct construction `init Point { x: 1, y: 2 }`.

    Field initializers are kept as a list in source order so duplicates
    survive parsing and can be reported by the analyzer.
    """
    struct_path: ModulePath = None
    fields: list[FieldInit] = field(default_factory=list)


@dataclass
class UnaryExpression(Expression):
    operator: UnaryOperator = None
    operand: "Expression" = None


@dataclass
class BinaryExpression(Expression):
    operator: BinaryOperator = None
    left: "Expression" = None
    right: "Expression" = None


@dataclass
class ParenExpression(Expression):
    """Parenthesized expression, kept so printing reproduces the source."""
    expression: "Expression" = None


# =============================================================================
# AST Visitor Pattern
# =============================================================================

class ASTVisitor:
    """
    Base class for AST visitors.

    Dispatches to visit_<ClassName>; nodes without a handler fall back to
    generic_visit, which walks the node's structural children.

    Usage:
        class CallCounter(ASTVisitor):
            def __init__(self):
                self.calls = 0

            def visit_CallExpression(self, node):
                self.calls += 1
                self.generic_visit(node)
    """

    def visit(self, node: ASTNode) -> Any:
        method_name = f"visit_{node.__class__.__name__}"
        visitor = getattr(self, method_name, self.generic_visit)
        return visitor(node)

    def generic_visit(self, node: ASTNode) -> None:
        """Visit every child node held in a compared dataclass field."""
        for node_field in fields(node):
            if not node_field.compare:
                continue
            value = getattr(node, node_field.name)
            if isinstance(value, ASTNode):
                self.visit(value)
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, ASTNode):
                        self.visit(item)
