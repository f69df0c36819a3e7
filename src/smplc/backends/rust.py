"""
Rust Code Generator
===================

Backend 0. Lowers a typed smpl Program to a single Rust source file
(one crate root) that `rustc --edition 2021` accepts.

Lowering Rules
--------------
| smpl                         | Rust                                      |
|------------------------------|-------------------------------------------|
| `mod geo;`                   | `pub mod geo { use super::*; ... }`       |
| `struct P { x: int }`        | `#[derive(Debug, Clone, PartialEq)]`      |
|                              | `pub struct P { pub x: i64 }`             |
| `fn f(type T)(x: T) -> T`    | `pub fn f<T: Clone>(mut x: T) -> T`       |
| `let x: int = e;`            | `let mut x: i64 = e;`                     |
| `f(type int)(5)`             | `f::<i64>(5)`                             |
| `init P { x: 1 }`            | `P { x: 1 }`                              |
| `geo::P` (from module main)  | `super::geo::P`                           |
| `Option(type T)`             | `Option<T>`                               |
| `some(type T)(v)`            | `Some(v)`                                 |
| `none(type T)()`             | `None::<T>`                               |
| `is_some` / `is_none`        | `o.is_some()` / `o.is_none()`             |
| `unwrap` / `expect`          | `o.unwrap()` / `o.expect(&msg)`           |
| `unwrap_or` / `map`          | `o.unwrap_or(d)` / `o.map(f)`             |

Types: int is `i64`, float `f64`, bool `bool`, string `String`.

Value Semantics
---------------
smpl values are copied on every read. Reads of bindings and fields whose
Rust type is not Copy (strings, structs, Option, type parameters, arrays
of those) are lowered with `.clone()`, so Rust's move checker never sees
a use after move. `&e` borrows without cloning; `*e` of a non-Copy type
is `(*e).clone()`.

Unsupported Constructs
----------------------
BackendLoweringError is raised for opaque types other than the prelude's
Option, builtin functions other than the prelude intrinsics, builtin
functions used as values, structs that contain themselves by value,
names Rust cannot spell (`self`, `super`, `crate`, `Self`, `_`) and
names that would capture a Rust prelude name (`Option`, `Some`, ...).

Items of the current module are written bare, or as `self::name` inside a
function where a parameter, binding or type parameter shares the name.
"""

import logging
from typing import Optional

from smplc.errors import SourceLocation
from smplc.backends.registry import GeneratorOptions, register_backend
from smplc.lang.ast import (
    ModuleNode,
    StructDeclaration,
    FunctionDeclaration,
    OpaqueDeclaration,
    BuiltinFunctionDeclaration,
    Statement,
    BlockStatement,
    LetStatement,
    AssignmentStatement,
    IfStatement,
    WhileStatement,
    ReturnStatement,
    BreakStatement,
    ContinueStatement,
    ExpressionStatement,
    Expression,
    IntegerLiteral,
    FloatLiteral,
    BoolLiteral,
    StringLiteral,
    BindingExpression,
    FieldAccessExpression,
    CallExpression,
    StructInitExpression,
    UnaryExpression,
    BinaryExpression,
    ParenExpression,
    UnaryOperator,
)
from smplc.lang.checker import Program
from smplc.lang.errors import BackendLoweringError
from smplc.lang.printer import format_float
from smplc.lang.scope import LocalSymbol
from smplc.lang.types import (
    SmplType,
    PrimitiveType,
    StructType,
    OpaqueType,
    TypeParameter,
    ArrayType,
    FunctionType,
    ReferenceType,
    FunctionSignature,
    TYPE_UNIT,
)

logger = logging.getLogger(__name__)

BACKEND_NAME = "rust"

INDENT = "    "

PRIMITIVES = {
    "int": "i64",
    "float": "f64",
    "bool": "bool",
    "string": "String",
    "unit": "()",
}

COPY_PRIMITIVES = {"int", "float", "bool", "unit"}

RUST_KEYWORDS = frozenset({
    "as", "async", "await", "dyn", "enum", "extern", "for", "impl", "in",
    "loop", "match", "move", "mut", "pub", "ref", "static", "const",
    "trait", "unsafe", "where", "abstract", "become", "box", "do", "final",
    "macro", "override", "priv", "typeof", "unsized", "virtual", "yield",
    "try", "gen",
})

# Cannot be spelled as Rust identifiers at all, not even raw
UNSPELLABLE_NAMES = frozenset({"self", "Self", "super", "crate", "_"})

# Names the generated code relies on from the Rust prelude
RESERVED_NAMES = frozenset({
    "Option", "Some", "None", "String", "Clone", "PartialEq", "Debug",
    "i64", "f64",
})

# Prelude intrinsics lowered to methods on the first argument
OPTION_METHODS = {
    "is_some": "is_some",
    "is_none": "is_none",
    "unwrap": "unwrap",
    "expect": "expect",
    "unwrap_or": "unwrap_or",
    "map": "map",
}

ALLOWED_LINTS = (
    "dead_code",
    "unused_mut",
    "unused_variables",
    "unused_parens",
    "unused_imports",
    "unused_must_use",
    "non_snake_case",
    "non_camel_case_types",
    "unreachable_code",
)


def rust_ident(name: str) -> str:
    """Spell an smpl identifier as a Rust identifier."""
    if name in RUST_KEYWORDS:
        return f"r#{name}"
    return name


def rust_string(value: str) -> str:
    """Render value as a Rust string literal."""
    out = ['"']
    for ch in value:
        if ch == "\\":
            out.append("\\\\")
        elif ch == '"':
            out.append('\\"')
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\0":
            out.append("\\0")
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\u{{{ord(ch):x}}}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def is_copy(smpl_type: SmplType) -> bool:
    """True when the lowered Rust type implements Copy."""
    if isinstance(smpl_type, PrimitiveType):
        return smpl_type.name in COPY_PRIMITIVES
    if isinstance(smpl_type, (FunctionType, ReferenceType)):
        return True
    if isinstance(smpl_type, ArrayType):
        return is_copy(smpl_type.element)
    return False


@register_backend(0, BACKEND_NAME, extension=".rs")
class RustGenerator:
    """
    Generates one Rust crate root from a typed Program.

    Attributes:
        options: GeneratorOptions for this run
    """

    def __init__(self, options: Optional[GeneratorOptions] = None):
        self.options = options or GeneratorOptions()
        self._output: list[str] = []
        self._indent = 0
        self._program: Optional[Program] = None
        self._module = ""
        self._shadowed: set[str] = set()

    def generate(self, program: Program) -> str:
        """
        Generate Rust source for every user module of program.

        Raises:
            BackendLoweringError: On a construct Rust cannot express
        """
        self._output = []
        self._indent = 0
        self._program = program

        self._check_reserved_names()
        self._check_recursive_structs()

        self._emit("// Generated by smplc. Do not edit.")
        self._emit(f"#![allow({', '.join(ALLOWED_LINTS)})]")

        for module in program.modules:
            self._emit()
            self._generate_module(module)

        if program.entry_module is not None and self.options.emit_entry_point:
            self._emit()
            self._emit("fn main() {")
            self._emit(f"{INDENT}{rust_ident(program.entry_module)}::main();")
            self._emit("}")

        logger.debug(f"emitted {len(self._output)} lines of Rust")
        return "\n".join(self._output) + "\n"

    # =========================================================================
    # Output Methods
    # =========================================================================

    def _emit(self, line: str = "") -> None:
        if line:
            self._output.append(INDENT * self._indent + line)
        else:
            self._output.append("")

    # =========================================================================
    # Pre-generation Checks
    # =========================================================================

    def _check_reserved_names(self) -> None:
        """Reject names the Rust output could not spell or that would shadow its prelude."""
        for module in self._program.modules:
            self._check_name(self._program.module_name(module), "module", module.location)
            for item in module.items:
                self._check_name(item.name, "item", item.location)
                if isinstance(item, StructDeclaration):
                    # Fields have their own namespace
                    for struct_field in item.fields:
                        self._check_name(struct_field.name, "field", struct_field.location, prelude=False)
                if isinstance(item, (FunctionDeclaration, BuiltinFunctionDeclaration)):
                    for name in item.type_params:
                        self._check_name(name, "type parameter", item.location)
                    for param in item.parameters:
                        self._check_name(param.name, "parameter", param.location)
                if isinstance(item, FunctionDeclaration):
                    for stmt in _let_statements(item.body):
                        self._check_name(stmt.name, "binding", stmt.location)

    @staticmethod
    def _check_name(name: str, kind: str, location: SourceLocation, prelude: bool = True) -> None:
        if name in UNSPELLABLE_NAMES:
            raise BackendLoweringError(
                BACKEND_NAME,
                f"{kind} named '{name}'",
                location=location,
                hint=f"'{name}' cannot be a Rust identifier; rename it",
            )
        if prelude and name in RESERVED_NAMES:
            raise BackendLoweringError(
                BACKEND_NAME,
                f"{kind} named '{name}'",
                location=location,
                hint=f"'{name}' is reserved by the Rust prelude; rename it",
            )

    def _check_recursive_structs(self) -> None:
        """Reject structs that contain themselves by value (infinite size in Rust)."""
        structs = self._program.structs
        done: set[str] = set()

        def contained(smpl_type: SmplType) -> list[str]:
            if isinstance(smpl_type, StructType):
                return [smpl_type.qualified_name]
            if isinstance(smpl_type, ArrayType):
                return contained(smpl_type.element)
            if isinstance(smpl_type, OpaqueType):
                return [name for arg in smpl_type.args for name in contained(arg)]
            return []

        def visit(name: str, path: list[str]) -> None:
            if name in path:
                cycle = path[path.index(name):] + [name]
                declaration = structs[name].declaration
                raise BackendLoweringError(
                    BACKEND_NAME,
                    "recursive struct " + " -> ".join(cycle),
                    location=declaration.location if declaration else None,
                    hint="a struct cannot contain itself by value",
                )
            if name in done:
                return
            for field_type in structs[name].fields.values():
                for inner in contained(field_type):
                    visit(inner, path + [name])
            done.add(name)

        for name in structs:
            visit(name, [])

    # =========================================================================
    # Items
    # =========================================================================

    def _generate_module(self, module: ModuleNode) -> None:
        self._module = self._program.module_name(module)
        self._emit(f"pub mod {rust_ident(self._module)} {{")
        self._indent += 1
        self._emit("use super::*;")

        for item in module.items:
            if isinstance(item, StructDeclaration):
                self._emit()
                self._generate_struct(item)
            elif isinstance(item, FunctionDeclaration):
                self._emit()
                self._generate_function(item)
            elif isinstance(item, OpaqueDeclaration):
                raise BackendLoweringError(
                    BACKEND_NAME,
                    f"opaque type '{item.name}'",
                    location=item.location,
                    hint="only the prelude's Option has a Rust equivalent",
                )
            # `use` needs no code, and builtin declarations are lowered at call sites

        self._indent -= 1
        self._emit("}")

    def _generate_struct(self, decl: StructDeclaration) -> None:
        info = self._program.structs[f"{self._module}::{decl.name}"]
        self._emit("#[derive(Debug, Clone, PartialEq)]")
        if not info.fields:
            self._emit(f"pub struct {rust_ident(decl.name)} {{}}")
            return
        self._emit(f"pub struct {rust_ident(decl.name)} {{")
        for name, field_type in info.fields.items():
            self._emit(f"{INDENT}pub {rust_ident(name)}: {self._type(field_type, decl.location)},")
        self._emit("}")

    def _generate_function(self, decl: FunctionDeclaration) -> None:
        signature: FunctionSignature = decl.signature
        self._shadowed = {tp.name for tp in signature.type_params}
        self._shadowed.update(name for name, _ in signature.params)
        self._shadowed.update(stmt.name for stmt in _let_statements(decl.body))

        header = f"pub fn {rust_ident(decl.name)}"
        if signature.type_params:
            header += "<" + ", ".join(f"{rust_ident(tp.name)}: Clone" for tp in signature.type_params) + ">"
        params = ", ".join(
            f"mut {rust_ident(name)}: {self._type(param_type, decl.location)}"
            for name, param_type in signature.params
        )
        header += f"({params})"
        if signature.return_type != TYPE_UNIT:
            header += f" -> {self._type(signature.return_type, decl.location)}"

        self._emit(header + " {")
        self._generate_block_body(decl.body)
        self._emit("}")
        self._shadowed = set()

    # =========================================================================
    # Types
    # =========================================================================

    def _type(self, smpl_type: SmplType, location: Optional[SourceLocation] = None) -> str:
        """Render a semantic type as Rust type syntax."""
        if isinstance(smpl_type, PrimitiveType):
            return PRIMITIVES[smpl_type.name]
        if isinstance(smpl_type, StructType):
            return self._item_path(smpl_type.module, smpl_type.name)
        if isinstance(smpl_type, TypeParameter):
            return rust_ident(smpl_type.name)
        if isinstance(smpl_type, ArrayType):
            return f"[{self._type(smpl_type.element, location)}; {smpl_type.length}]"
        if isinstance(smpl_type, FunctionType):
            text = "fn(" + ", ".join(self._type(p, location) for p in smpl_type.params) + ")"
            if smpl_type.return_type != TYPE_UNIT:
                text += f" -> {self._type(smpl_type.return_type, location)}"
            return text
        if isinstance(smpl_type, ReferenceType):
            return f"&{self._type(smpl_type.target, location)}"
        if isinstance(smpl_type, OpaqueType):
            if smpl_type.module == self._program.prelude and smpl_type.name == "Option":
                return f"Option<{self._type(smpl_type.args[0], location)}>"
            raise BackendLoweringError(
                BACKEND_NAME,
                f"opaque type '{smpl_type}'",
                location=location,
                hint="only the prelude's Option has a Rust equivalent",
            )
        raise TypeError(f"unknown type {smpl_type!r}")

    def _item_path(self, module: str, name: str) -> str:
        if module == self._module:
            # A local or type parameter of the same name hides the bare item
            if name in self._shadowed:
                return f"self::{rust_ident(name)}"
            return rust_ident(name)
        return f"super::{rust_ident(module)}::{rust_ident(name)}"

    # =========================================================================
    # Statements
    # =========================================================================

    def _generate_block_body(self, block: BlockStatement) -> None:
        self._indent += 1
        for stmt in block.statements:
            self._generate_statement(stmt)
        self._indent -= 1

    def _generate_statement(self, stmt: Statement) -> None:
        if isinstance(stmt, LetStatement):
            var_type = self._type(stmt.var_type.resolved, stmt.location)
            value = self._expression(stmt.initializer)
            self._emit(f"let mut {rust_ident(stmt.name)}: {var_type} = {value};")
        elif isinstance(stmt, AssignmentStatement):
            target = ".".join(rust_ident(n) for n in [stmt.target] + stmt.fields)
            self._emit(f"{target} = {self._expression(stmt.value)};")
        elif isinstance(stmt, IfStatement):
            keyword = "if"
            for branch in stmt.branches:
                opener = f"{keyword} {self._condition(branch.condition)} {{"
                if keyword == "if":
                    self._emit(opener)
                else:
                    self._emit(f"}} {opener}")
                self._generate_block_body(branch.body)
                keyword = "else if"
            if stmt.else_body is not None:
                self._emit("} else {")
                self._generate_block_body(stmt.else_body)
            self._emit("}")
        elif isinstance(stmt, WhileStatement):
            self._emit(f"while {self._condition(stmt.condition)} {{")
            self._generate_block_body(stmt.body)
            self._emit("}")
        elif isinstance(stmt, ReturnStatement):
            if stmt.value is None:
                self._emit("return;")
            else:
                self._emit(f"return {self._expression(stmt.value)};")
        elif isinstance(stmt, BreakStatement):
            self._emit("break;")
        elif isinstance(stmt, ContinueStatement):
            self._emit("continue;")
        elif isinstance(stmt, BlockStatement):
            self._emit("{")
            self._generate_block_body(stmt)
            self._emit("}")
        elif isinstance(stmt, ExpressionStatement):
            self._emit(f"{self._expression(stmt.expression)};")
        else:
            raise TypeError(f"unknown statement {stmt!r}")

    def _condition(self, expr: Expression) -> str:
        # Rust rejects struct literals directly in `if`/`while` heads
        text = self._expression(expr)
        if _contains_struct_init(expr):
            return f"({text})"
        return text

    # =========================================================================
    # Expressions
    # =========================================================================

    def _expression(self, expr: Expression) -> str:
        if isinstance(expr, IntegerLiteral):
            if expr.value > 2**31 - 1:
                return f"{expr.value}i64"
            return str(expr.value)
        if isinstance(expr, FloatLiteral):
            return format_float(expr.value)
        if isinstance(expr, BoolLiteral):
            return "true" if expr.value else "false"
        if isinstance(expr, StringLiteral):
            return f"String::from({rust_string(expr.value)})"
        if isinstance(expr, ParenExpression):
            return f"({self._expression(expr.expression)})"
        if isinstance(expr, BindingExpression):
            return self._binding(expr)
        if isinstance(expr, FieldAccessExpression):
            text = ".".join(rust_ident(n) for n in [expr.root] + expr.fields)
            return self._read(text, expr.resolved_type)
        if isinstance(expr, CallExpression):
            return self._call(expr)
        if isinstance(expr, StructInitExpression):
            return self._struct_init(expr)
        if isinstance(expr, UnaryExpression):
            return self._unary(expr)
        if isinstance(expr, BinaryExpression):
            left = self._operand(expr.left)
            right = self._operand(expr.right)
            return f"{left} {expr.operator.value} {right}"
        raise TypeError(f"unknown expression {expr!r}")

    def _operand(self, expr: Expression) -> str:
        """Operand of an operator; nested operators are always parenthesized."""
        text = self._expression(expr)
        if isinstance(expr, BinaryExpression):
            return f"({text})"
        return text

    @staticmethod
    def _read(place: str, smpl_type: SmplType) -> str:
        if is_copy(smpl_type):
            return place
        return f"{place}.clone()"

    def _binding(self, expr: BindingExpression) -> str:
        symbol = expr.symbol
        if isinstance(symbol, LocalSymbol):
            return self._read(rust_ident(symbol.name), symbol.type)
        if symbol.is_builtin:
            raise BackendLoweringError(
                BACKEND_NAME,
                f"builtin function '{symbol.name}' used as a value",
                location=expr.location,
                hint="call it directly instead",
            )
        return self._item_path(symbol.module, symbol.name)

    def _unary(self, expr: UnaryExpression) -> str:
        operand = self._expression(expr.operand)
        if isinstance(expr.operand, BinaryExpression):
            operand = f"({operand})"
        if expr.operator == UnaryOperator.DEREFERENCE:
            if not is_copy(expr.resolved_type):
                return f"(*{operand}).clone()"
            return f"*{operand}"
        if expr.operator == UnaryOperator.REFERENCE:
            # Borrow the place itself, not a clone of it
            operand = self._place(expr.operand) or operand
        return f"{expr.operator.value}{operand}"

    @staticmethod
    def _place(expr: Expression) -> Optional[str]:
        if isinstance(expr, BindingExpression) and isinstance(expr.symbol, LocalSymbol):
            return rust_ident(expr.symbol.name)
        if isinstance(expr, FieldAccessExpression):
            return ".".join(rust_ident(n) for n in [expr.root] + expr.fields)
        return None

    def _struct_init(self, expr: StructInitExpression) -> str:
        struct_type: StructType = expr.resolved_type
        path = self._item_path(struct_type.module, struct_type.name)
        if not expr.fields:
            return f"{path} {{}}"
        fields = ", ".join(f"{rust_ident(f.name)}: {self._expression(f.value)}" for f in expr.fields)
        return f"{path} {{ {fields} }}"

    def _call(self, expr: CallExpression) -> str:
        target = expr.target
        arguments = [self._expression(arg) for arg in expr.arguments]

        if isinstance(target, LocalSymbol):
            return f"{rust_ident(target.name)}({', '.join(arguments)})"

        if target.is_builtin:
            return self._intrinsic(expr, target, arguments)

        callee = self._item_path(target.module, target.name)
        if expr.instantiation:
            type_args = ", ".join(self._type(t, expr.location) for t in expr.instantiation)
            callee += f"::<{type_args}>"
        return f"{callee}({', '.join(arguments)})"

    def _intrinsic(self, expr: CallExpression, signature: FunctionSignature, arguments: list[str]) -> str:
        if signature.module != self._program.prelude:
            raise BackendLoweringError(
                BACKEND_NAME,
                f"builtin function '{signature.qualified_name}'",
                location=expr.location,
                hint="only prelude intrinsics have a Rust lowering",
            )

        name = signature.name
        if name == "some":
            return f"Some({arguments[0]})"
        if name == "none":
            return f"None::<{self._type(expr.instantiation[0], expr.location)}>"
        if name in OPTION_METHODS:
            receiver = arguments[0]
            if isinstance(expr.arguments[0], (UnaryExpression, BinaryExpression)):
                receiver = f"({receiver})"
            rest = arguments[1:]
            if name == "expect":
                rest = [f"&{rest[0]}"]
            return f"{receiver}.{OPTION_METHODS[name]}({', '.join(rest)})"

        raise BackendLoweringError(
            BACKEND_NAME,
            f"builtin function '{name}'",
            location=expr.location,
        )


def _contains_struct_init(expr: Expression) -> bool:
    if isinstance(expr, StructInitExpression):
        return True
    if isinstance(expr, ParenExpression):
        return _contains_struct_init(expr.expression)
    if isinstance(expr, UnaryExpression):
        return _contains_struct_init(expr.operand)
    if isinstance(expr, BinaryExpression):
        return _contains_struct_init(expr.left) or _contains_struct_init(expr.right)
    if isinstance(expr, CallExpression):
        return any(_contains_struct_init(arg) for arg in expr.arguments)
    return False


def _let_statements(block: BlockStatement):
    """Every `let` of block and of the blocks nested in it."""
    for stmt in block.statements:
        if isinstance(stmt, LetStatement):
            yield stmt
        elif isinstance(stmt, BlockStatement):
            yield from _let_statements(stmt)
        elif isinstance(stmt, WhileStatement):
            yield from _let_statements(stmt.body)
        elif isinstance(stmt, IfStatement):
            for branch in stmt.branches:
                yield from _let_statements(branch.body)
            if stmt.else_body is not None:
                yield from _let_statements(stmt.else_body)
