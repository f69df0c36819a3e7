"""
smpl Source Printer
===================

Renders a ModuleNode back to canonical smpl source text.

The output is stable (four-space indentation, one item per paragraph,
struct-inits always written with `init`) and parses back to a tree equal
to the one printed. Parentheses come from ParenExpression nodes; for
trees built by hand the printer adds the ones operator precedence
requires.
"""

from decimal import Decimal

from smplc.lang.ast import (
    ASTVisitor,
    ModuleNode,
    UseDeclaration,
    StructDeclaration,
    OpaqueDeclaration,
    CallableDeclaration,
    FunctionDeclaration,
    BuiltinFunctionDeclaration,
    TypeAnnotation,
    NamedTypeAnnotation,
    ArrayTypeAnnotation,
    FunctionTypeAnnotation,
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
    BINARY_PRECEDENCE,
)

INDENT = "    "

# Binds tighter than every binary tier
UNARY_PRECEDENCE = max(BINARY_PRECEDENCE.values()) + 1

STRING_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\0": "\\0",
}


def quote_string(value: str) -> str:
    """Render a string value as an smpl string literal."""
    return '"' + "".join(STRING_ESCAPES.get(c, c) for c in value) + '"'


def format_float(value: float) -> str:
    """Render a float in `digits.digits` form, the only form the lexer reads."""
    text = format(Decimal(repr(value)), "f")
    if "." not in text:
        text += ".0"
    return text


class SourcePrinter(ASTVisitor):
    """
    Pretty printer producing smpl source.

    Usage:
        text = SourcePrinter().print(module)
    """

    def __init__(self):
        self.output: list[str] = []
        self.indent_level = 0

    def print(self, module: ModuleNode) -> str:
        self.output = []
        self.indent_level = 0
        self.visit(module)
        return "\n".join(self.output) + "\n"

    def _emit(self, text: str) -> None:
        self.output.append(f"{INDENT * self.indent_level}{text}" if text else "")

    # =========================================================================
    # Items
    # =========================================================================

    def visit_ModuleNode(self, node: ModuleNode):
        first = True
        if node.name is not None:
            self._emit(f"mod {node.name};")
            first = False
        for item in node.items:
            if not first:
                self._emit("")
            first = False
            self.visit(item)

    def visit_UseDeclaration(self, node: UseDeclaration):
        self._emit(f"use {node.name};")

    def visit_StructDeclaration(self, node: StructDeclaration):
        if not node.fields:
            self._emit(f"struct {node.name} {{}}")
            return
        self._emit(f"struct {node.name} {{")
        self.indent_level += 1
        for struct_field in node.fields:
            self._emit(f"{struct_field.name}: {self.type_text(struct_field.field_type)},")
        self.indent_level -= 1
        self._emit("}")

    def visit_OpaqueDeclaration(self, node: OpaqueDeclaration):
        self._emit(f"opaque {node.name}{self._type_params_text(node.type_params)};")

    def visit_FunctionDeclaration(self, node: FunctionDeclaration):
        self._emit(f"fn {self._header_text(node)} {{")
        self._block_body(node.body)
        self._emit("}")

    def visit_BuiltinFunctionDeclaration(self, node: BuiltinFunctionDeclaration):
        self._emit(f"builtin fn {self._header_text(node)};")

    def _header_text(self, node: CallableDeclaration) -> str:
        params = ", ".join(f"{p.name}: {self.type_text(p.param_type)}" for p in node.parameters)
        text = f"{node.name}{self._type_params_text(node.type_params)}({params})"
        if node.return_type is not None:
            text += f" -> {self.type_text(node.return_type)}"
        return text

    @staticmethod
    def _type_params_text(names: list[str]) -> str:
        if not names:
            return ""
        return "(type " + ", ".join(names) + ")"

    # =========================================================================
    # Types
    # =========================================================================

    def type_text(self, annotation: TypeAnnotation) -> str:
        if isinstance(annotation, NamedTypeAnnotation):
            text = str(annotation.path)
            if annotation.type_args:
                text += "(type " + ", ".join(self.type_text(a) for a in annotation.type_args) + ")"
            return text
        if isinstance(annotation, ArrayTypeAnnotation):
            return f"[{self.type_text(annotation.element)}; {annotation.length}]"
        if isinstance(annotation, FunctionTypeAnnotation):
            params = ", ".join(self.type_text(p) for p in annotation.params)
            text = f"fn({params})"
            if annotation.return_type is not None:
                text += f" -> {self.type_text(annotation.return_type)}"
            return text
        raise TypeError(f"unknown type annotation {annotation!r}")

    # =========================================================================
    # Statements
    # =========================================================================

    def _block_body(self, block: BlockStatement) -> None:
        self.indent_level += 1
        for statement in block.statements:
            self.visit(statement)
        self.indent_level -= 1

    def visit_BlockStatement(self, node: BlockStatement):
        self._emit("{")
        self._block_body(node)
        self._emit("}")

    def visit_LetStatement(self, node: LetStatement):
        self._emit(
            f"let {node.name}: {self.type_text(node.var_type)} = "
            f"{self.expression_text(node.initializer)};"
        )

    def visit_AssignmentStatement(self, node: AssignmentStatement):
        target = ".".join([node.target] + node.fields)
        self._emit(f"{target} = {self.expression_text(node.value)};")

    def visit_IfStatement(self, node: IfStatement):
        for index, branch in enumerate(node.branches):
            keyword = "if" if index == 0 else "} elif"
            self._emit(f"{keyword} {self.expression_text(branch.condition)} {{")
            self._block_body(branch.body)
        if node.else_body is not None:
            self._emit("} else {")
            self._block_body(node.else_body)
        self._emit("}")

    def visit_WhileStatement(self, node: WhileStatement):
        self._emit(f"while {self.expression_text(node.condition)} {{")
        self._block_body(node.body)
        self._emit("}")

    def visit_ReturnStatement(self, node: ReturnStatement):
        if node.value is None:
            self._emit("return;")
        else:
            self._emit(f"return {self.expression_text(node.value)};")

    def visit_BreakStatement(self, node: BreakStatement):
        self._emit("break;")

    def visit_ContinueStatement(self, node: ContinueStatement):
        self._emit("continue;")

    def visit_ExpressionStatement(self, node: ExpressionStatement):
        self._emit(f"{self.expression_text(node.expression)};")

    # =========================================================================
    # Expressions
    # =========================================================================

    def expression_text(self, expr: Expression, min_precedence: int = 0) -> str:
        """Render expr, parenthesizing it if it binds looser than min_precedence."""
        if isinstance(expr, BinaryExpression):
            precedence = BINARY_PRECEDENCE[expr.operator]
            left = self.expression_text(expr.left, precedence)
            right = self.expression_text(expr.right, precedence + 1)
            text = f"{left} {expr.operator.value} {right}"
            if precedence < min_precedence:
                return f"({text})"
            return text

        if isinstance(expr, UnaryExpression):
            operand = self.expression_text(expr.operand, UNARY_PRECEDENCE)
            separator = " " if operand.startswith(expr.operator.value) else ""
            return f"{expr.operator.value}{separator}{operand}"

        if isinstance(expr, ParenExpression):
            return f"({self.expression_text(expr.expression)})"
        if isinstance(expr, IntegerLiteral):
            return str(expr.value)
        if isinstance(expr, FloatLiteral):
            return format_float(expr.value)
        if isinstance(expr, BoolLiteral):
            return "true" if expr.value else "false"
        if isinstance(expr, StringLiteral):
            return quote_string(expr.value)
        if isinstance(expr, BindingExpression):
            return str(expr.path)
        if isinstance(expr, FieldAccessExpression):
            return ".".join([expr.root] + expr.fields)

        if isinstance(expr, CallExpression):
            text = str(expr.callee)
            if expr.type_args:
                text += "(type " + ", ".join(self.type_text(t) for t in expr.type_args) + ")"
            args = ", ".join(self.expression_text(a) for a in expr.arguments)
            return f"{text}({args})"

        if isinstance(expr, StructInitExpression):
            if not expr.fields:
                return f"init {expr.struct_path} {{}}"
            inits = ", ".join(f"{f.name}: {self.expression_text(f.value)}" for f in expr.fields)
            return f"init {expr.struct_path} {{ {inits} }}"

        raise TypeError(f"unknown expression {expr!r}")


def format_module(module: ModuleNode) -> str:
    """Render a module as canonical smpl source."""
    return SourcePrinter().print(module)
