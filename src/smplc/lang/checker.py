"""
smpl Semantic Analyzer
======================

This module checks a module graph and turns it into a typed Program.
Analysis is fail-fast: the first violation raises a SemanticError and
nothing else is reported.

Phases
------
1. Register every struct and opaque type of every module, by name only.
2. Resolve struct field types (structs may now refer to each other,
   across modules, in any order).
3. Resolve every function and builtin function signature.
4. Find the entry point (`fn main()`).
5. Check each function body against the registered signatures, so
   functions may call each other in any order and recursively.

Decoration
----------
Checking never restructures the AST. It fills in:

- Expression.resolved_type on every expression
- TypeAnnotation.resolved on every annotation
- CallableDeclaration.signature
- LetStatement.symbol, AssignmentStatement.target_symbol
- BindingExpression.symbol, FieldAccessExpression.root_symbol
- CallExpression.target and CallExpression.instantiation

Typing Rules
------------
- `let x: T = e` requires type(e) == T; x is not visible inside e.
- Assignment requires type(value) == declared type of the target.
- Arithmetic needs identical int or float operands and yields that type.
  Relational operators need identical numeric operands and yield bool.
  Equality needs identical primitive operands and yields bool.
  `&&`/`||` need bool.
- Calls to generic functions supply exactly one type argument per type
  parameter; parameter and return types are specialized by substitution
  before arguments are checked. There is no inference.
- Builtin functions are checked against their declared signature alone.

Usage
-----
>>> program = SemanticAnalyzer(graph).analyze()
>>> program.functions["main::main"].return_type
PrimitiveType(name='unit')
"""

import difflib
import logging
from dataclasses import dataclass, field
from typing import Optional

from smplc.errors import SourceLocation
from smplc.lang.ast import (
    Item,
    ModuleNode,
    StructDeclaration,
    OpaqueDeclaration,
    CallableDeclaration,
    FunctionDeclaration,
    BuiltinFunctionDeclaration,
    TypeAnnotation,
    NamedTypeAnnotation,
    ArrayTypeAnnotation,
    FunctionTypeAnnotation,
    ModulePath,
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
    BinaryOperator,
    UnaryOperator,
)
from smplc.lang.errors import (
    ArityMismatchError,
    DuplicateDeclarationError,
    DuplicateFieldError,
    LoopControlError,
    MissingFieldError,
    MissingReturnError,
    MultipleEntryPointsError,
    TypeMismatchError,
    UndefinedSymbolError,
    UnknownFieldError,
)
from smplc.lang.module_graph import ModuleGraph
from smplc.lang.scope import LocalSymbol, Scope
from smplc.lang.types import (
    SmplType,
    StructType,
    OpaqueType,
    TypeParameter,
    ArrayType,
    FunctionType,
    ReferenceType,
    StructInfo,
    OpaqueInfo,
    FunctionSignature,
    PRIMITIVE_TYPES,
    TYPE_INT,
    TYPE_FLOAT,
    TYPE_BOOL,
    TYPE_STRING,
    TYPE_UNIT,
)

logger = logging.getLogger(__name__)

ENTRY_POINT = "main"

ARITHMETIC_OPERATORS = {
    BinaryOperator.ADD,
    BinaryOperator.SUBTRACT,
    BinaryOperator.MULTIPLY,
    BinaryOperator.DIVIDE,
    BinaryOperator.MODULO,
}
RELATIONAL_OPERATORS = {
    BinaryOperator.LESS,
    BinaryOperator.GREATER,
    BinaryOperator.LESS_EQ,
    BinaryOperator.GREATER_EQ,
}
EQUALITY_OPERATORS = {BinaryOperator.EQUAL, BinaryOperator.NOT_EQUAL}
LOGICAL_OPERATORS = {BinaryOperator.LOGICAL_AND, BinaryOperator.LOGICAL_OR}


# =============================================================================
# Typed Program
# =============================================================================

@dataclass
class Program:
    """
    Result of semantic analysis; read-only input to every backend.

    Attributes:
        graph: The module graph the program was checked from
        modules: User ModuleNodes in input order (prelude excluded)
        structs: Qualified name -> StructInfo, in declaration order
        opaques: Qualified name -> OpaqueInfo
        functions: Qualified name -> FunctionSignature (builtins included)
        entry_module: Module declaring `fn main()`, if any
    """
    graph: ModuleGraph
    modules: list[ModuleNode] = field(default_factory=list)
    structs: dict[str, StructInfo] = field(default_factory=dict)
    opaques: dict[str, OpaqueInfo] = field(default_factory=dict)
    functions: dict[str, FunctionSignature] = field(default_factory=dict)
    entry_module: Optional[str] = None

    @property
    def prelude(self) -> Optional[str]:
        return self.graph.prelude

    def module_name(self, module: ModuleNode) -> str:
        for info in self.graph.modules.values():
            if info.node is module:
                return info.name
        raise KeyError(module.name)

    def struct(self, struct_type: StructType) -> StructInfo:
        return self.structs[struct_type.qualified_name]


# =============================================================================
# Semantic Analyzer
# =============================================================================

class SemanticAnalyzer:
    """
    Checks every module of a ModuleGraph and builds the typed Program.

    Attributes:
        graph: The module graph being analyzed
    """

    def __init__(self, graph: ModuleGraph):
        self.graph = graph
        self._structs: dict[str, StructInfo] = {}
        self._opaques: dict[str, OpaqueInfo] = {}
        self._functions: dict[str, FunctionSignature] = {}

        # Per-function checking state
        self._module: str = ""
        self._signature: Optional[FunctionSignature] = None
        self._type_params: dict[str, TypeParameter] = {}
        self._loop_depth = 0

    def analyze(self) -> Program:
        """
        Run every phase and return the typed program.

        Raises:
            SemanticError: On the first violation found
        """
        self._register_types()
        self._resolve_struct_fields()
        self._register_functions()
        entry_module = self._find_entry_point()

        checked = 0
        for info in self.graph.modules.values():
            for item in info.node.items:
                if isinstance(item, FunctionDeclaration):
                    self._check_function(info.name, item)
                    checked += 1
        logger.debug(f"checked {checked} function bodies")

        return Program(
            graph=self.graph,
            modules=[info.node for info in self.graph.user_modules],
            structs=self._structs,
            opaques=self._opaques,
            functions=self._functions,
            entry_module=entry_module,
        )

    # =========================================================================
    # Phase 1-3: Global Registration
    # =========================================================================

    def _register_types(self) -> None:
        for info in self.graph.modules.values():
            for item in info.node.items:
                if isinstance(item, StructDeclaration):
                    struct_type = StructType(info.name, item.name)
                    self._structs[struct_type.qualified_name] = StructInfo(
                        struct_type=struct_type,
                        declaration=item,
                    )
                elif isinstance(item, OpaqueDeclaration):
                    self._check_type_param_names(item.type_params, item.location)
                    opaque = OpaqueInfo(
                        module=info.name,
                        name=item.name,
                        type_params=tuple(item.type_params),
                        declaration=item,
                    )
                    self._opaques[opaque.qualified_name] = opaque
        logger.debug(f"registered {len(self._structs)} structs, {len(self._opaques)} opaque types")

    def _resolve_struct_fields(self) -> None:
        for struct in self._structs.values():
            declaration: StructDeclaration = struct.declaration
            self._module = struct.struct_type.module
            self._type_params = {}
            for struct_field in declaration.fields:
                if struct_field.name in struct.fields:
                    raise DuplicateFieldError(declaration.name, struct_field.name, struct_field.location)
                struct.fields[struct_field.name] = self._resolve_type(struct_field.field_type)

    def _register_functions(self) -> None:
        for info in self.graph.modules.values():
            self._module = info.name
            for item in info.node.items:
                if isinstance(item, CallableDeclaration):
                    signature = self._build_signature(info.name, item)
                    item.signature = signature
                    self._functions[signature.qualified_name] = signature
        logger.debug(f"registered {len(self._functions)} function signatures")

    def _build_signature(self, module: str, declaration: CallableDeclaration) -> FunctionSignature:
        owner = f"{module}::{declaration.name}"
        self._check_type_param_names(declaration.type_params, declaration.location)
        type_params = tuple(TypeParameter(owner, name) for name in declaration.type_params)
        self._type_params = {tp.name: tp for tp in type_params}

        params = []
        seen: dict[str, SourceLocation] = {}
        for param in declaration.parameters:
            if param.name in seen:
                raise DuplicateDeclarationError(
                    param.name,
                    location=param.location,
                    original_location=seen[param.name],
                )
            seen[param.name] = param.location
            params.append((param.name, self._resolve_type(param.param_type)))

        return_type = TYPE_UNIT
        if declaration.return_type is not None:
            return_type = self._resolve_type(declaration.return_type)

        return FunctionSignature(
            module=module,
            name=declaration.name,
            type_params=type_params,
            params=tuple(params),
            return_type=return_type,
            is_builtin=isinstance(declaration, BuiltinFunctionDeclaration),
            declaration=declaration,
        )

    @staticmethod
    def _check_type_param_names(names: list[str], location: SourceLocation) -> None:
        seen = set()
        for name in names:
            if name in PRIMITIVE_TYPES:
                raise DuplicateDeclarationError(
                    name,
                    location=location,
                    hint=f"'{name}' is a builtin type and cannot name a type parameter",
                )
            if name in seen:
                raise DuplicateDeclarationError(name, location=location)
            seen.add(name)

    def _find_entry_point(self) -> Optional[str]:
        """Locate `fn main()` among the user modules."""
        found: list[tuple[str, FunctionSignature]] = []
        for info in self.graph.user_modules:
            item = info.items.get(ENTRY_POINT)
            if isinstance(item, FunctionDeclaration):
                found.append((info.name, item.signature))

        if len(found) > 1:
            raise MultipleEntryPointsError(
                [module for module, _ in found],
                location=found[1][1].declaration.location,
            )
        if not found:
            return None

        module, signature = found[0]
        if signature.is_generic or signature.params or signature.return_type != TYPE_UNIT:
            raise TypeMismatchError(
                "entry point 'main' must take no parameters and return nothing",
                expected=FunctionType((), TYPE_UNIT),
                found=signature.function_type() if not signature.is_generic else "generic fn",
                location=signature.declaration.location,
            )
        logger.debug(f"entry point: {module}::{ENTRY_POINT}")
        return module

    # =========================================================================
    # Type Annotation Resolution
    # =========================================================================

    def _resolve_type(self, annotation: TypeAnnotation) -> SmplType:
        """Resolve an annotation in the current module and type-parameter context."""
        if isinstance(annotation, NamedTypeAnnotation):
            resolved = self._resolve_named_type(annotation)
        elif isinstance(annotation, ArrayTypeAnnotation):
            resolved = ArrayType(self._resolve_type(annotation.element), annotation.length)
        elif isinstance(annotation, FunctionTypeAnnotation):
            params = tuple(self._resolve_type(p) for p in annotation.params)
            return_type = TYPE_UNIT
            if annotation.return_type is not None:
                return_type = self._resolve_type(annotation.return_type)
            resolved = FunctionType(params, return_type)
        else:
            raise TypeError(f"unknown type annotation {annotation!r}")

        annotation.resolved = resolved
        return resolved

    def _resolve_named_type(self, annotation: NamedTypeAnnotation) -> SmplType:
        path = annotation.path
        location = annotation.location

        if not path.is_qualified:
            simple = PRIMITIVE_TYPES.get(path.name) or self._type_params.get(path.name)
            if simple is not None:
                self._expect_type_arg_count(path.name, 0, annotation)
                return simple

        resolved = self.graph.resolve_path(self._module, path, location)
        if resolved is None and not path.is_qualified and path.name in self.graph.modules:
            raise TypeMismatchError(f"'{path}' is a module, not a type", location=location)
        if resolved is None:
            candidates = list(PRIMITIVE_TYPES) + list(self._type_params)
            candidates += self.graph.visible_names(self._module)
            raise UndefinedSymbolError(
                str(path),
                location,
                similar=difflib.get_close_matches(path.name, candidates, n=3),
                kind="type",
            )

        module, item = resolved
        qualified = f"{module}::{item.name}"
        if isinstance(item, StructDeclaration):
            self._expect_type_arg_count(str(path), 0, annotation)
            return self._structs[qualified].struct_type
        if isinstance(item, OpaqueDeclaration):
            opaque = self._opaques[qualified]
            self._expect_type_arg_count(str(path), len(opaque.type_params), annotation)
            args = tuple(self._resolve_type(arg) for arg in annotation.type_args)
            return OpaqueType(module, item.name, args)

        raise TypeMismatchError(f"'{path}' is a {_describe_item(item)}, not a type", location=location)

    @staticmethod
    def _expect_type_arg_count(name: str, expected: int, annotation: NamedTypeAnnotation) -> None:
        if len(annotation.type_args) != expected:
            raise ArityMismatchError(
                name,
                expected,
                len(annotation.type_args),
                what="type argument",
                location=annotation.location,
            )

    # =========================================================================
    # Phase 5: Function Bodies
    # =========================================================================

    def _check_function(self, module: str, declaration: FunctionDeclaration) -> None:
        signature: FunctionSignature = declaration.signature
        self._module = module
        self._signature = signature
        self._type_params = {tp.name: tp for tp in signature.type_params}
        self._loop_depth = 0

        scope = Scope(kind="function")
        for param, (name, param_type) in zip(declaration.parameters, signature.params):
            scope.declare(LocalSymbol(name, param_type, param.location, is_parameter=True))

        returns = self._check_block(declaration.body, scope)
        if signature.return_type != TYPE_UNIT and not returns:
            raise MissingReturnError(declaration.name, signature.return_type, declaration.location)

    def _check_block(self, block: BlockStatement, parent: Scope) -> bool:
        """Check a block in a fresh child scope; True if every path returns."""
        scope = parent.child()
        returns = False
        for statement in block.statements:
            if self._check_statement(statement, scope):
                returns = True
        return returns

    def _check_statement(self, stmt: Statement, scope: Scope) -> bool:
        """Check one statement; True if it returns on every path."""
        if isinstance(stmt, LetStatement):
            declared = self._resolve_type(stmt.var_type)
            # The initializer is checked before the name is declared
            found = self._check_expression(stmt.initializer, scope)
            self._expect_type(
                declared,
                found,
                f"initializer of '{stmt.name}' has the wrong type",
                stmt.initializer.location,
            )
            stmt.symbol = scope.declare(LocalSymbol(stmt.name, declared, stmt.location))
            return False

        if isinstance(stmt, AssignmentStatement):
            symbol = self._lookup_local(stmt.target, scope, stmt.location)
            target_type = symbol.type
            for name in stmt.fields:
                target_type = self._field_type(target_type, name, stmt.location)
            found = self._check_expression(stmt.value, scope)
            target = ".".join([stmt.target] + stmt.fields)
            self._expect_type(target_type, found, f"cannot assign to '{target}'", stmt.value.location)
            stmt.target_symbol = symbol
            return False

        if isinstance(stmt, IfStatement):
            all_return = True
            for branch in stmt.branches:
                self._check_condition(branch.condition, scope)
                if not self._check_block(branch.body, scope):
                    all_return = False
            if stmt.else_body is None:
                return False
            else_returns = self._check_block(stmt.else_body, scope)
            return all_return and else_returns

        if isinstance(stmt, WhileStatement):
            self._check_condition(stmt.condition, scope)
            self._loop_depth += 1
            try:
                self._check_block(stmt.body, scope)
            finally:
                self._loop_depth -= 1
            return False

        if isinstance(stmt, ReturnStatement):
            self._check_return(stmt, scope)
            return True

        if isinstance(stmt, BreakStatement):
            if self._loop_depth == 0:
                raise LoopControlError("break", stmt.location)
            return False

        if isinstance(stmt, ContinueStatement):
            if self._loop_depth == 0:
                raise LoopControlError("continue", stmt.location)
            return False

        if isinstance(stmt, BlockStatement):
            return self._check_block(stmt, scope)

        if isinstance(stmt, ExpressionStatement):
            self._check_expression(stmt.expression, scope)
            return False

        raise TypeError(f"unknown statement {stmt!r}")

    def _check_condition(self, condition: Expression, scope: Scope) -> None:
        found = self._check_expression(condition, scope)
        self._expect_type(TYPE_BOOL, found, "condition must be a bool", condition.location)

    def _check_return(self, stmt: ReturnStatement, scope: Scope) -> None:
        signature = self._signature
        expected = signature.return_type

        if stmt.value is None:
            if expected != TYPE_UNIT:
                raise TypeMismatchError(
                    f"'return' without a value in function '{signature.name}'",
                    expected=expected,
                    found=TYPE_UNIT,
                    location=stmt.location,
                )
            return

        found = self._check_expression(stmt.value, scope)
        if expected == TYPE_UNIT:
            raise TypeMismatchError(
                f"function '{signature.name}' does not return a value",
                expected=TYPE_UNIT,
                found=found,
                location=stmt.value.location,
            )
        self._expect_type(
            expected,
            found,
            f"wrong return type in function '{signature.name}'",
            stmt.value.location,
        )

    # =========================================================================
    # Expressions
    # =========================================================================

    def _check_expression(self, expr: Expression, scope: Scope) -> SmplType:
        """Type-check expr bottom-up, record and return its type."""
        result = self._expression_type(expr, scope)
        expr.resolved_type = result
        return result

    def _expression_type(self, expr: Expression, scope: Scope) -> SmplType:
        if isinstance(expr, IntegerLiteral):
            return TYPE_INT
        if isinstance(expr, FloatLiteral):
            return TYPE_FLOAT
        if isinstance(expr, BoolLiteral):
            return TYPE_BOOL
        if isinstance(expr, StringLiteral):
            return TYPE_STRING
        if isinstance(expr, ParenExpression):
            return self._check_expression(expr.expression, scope)
        if isinstance(expr, BindingExpression):
            return self._check_binding(expr, scope)
        if isinstance(expr, FieldAccessExpression):
            symbol = self._lookup_local(expr.root, scope, expr.location)
            expr.root_symbol = symbol
            result = symbol.type
            for name in expr.fields:
                result = self._field_type(result, name, expr.location)
            return result
        if isinstance(expr, CallExpression):
            return self._check_call(expr, scope)
        if isinstance(expr, StructInitExpression):
            return self._check_struct_init(expr, scope)
        if isinstance(expr, UnaryExpression):
            return self._check_unary(expr, scope)
        if isinstance(expr, BinaryExpression):
            return self._check_binary(expr, scope)
        raise TypeError(f"unknown expression {expr!r}")

    def _check_binding(self, expr: BindingExpression, scope: Scope) -> SmplType:
        path = expr.path
        if not path.is_qualified:
            symbol = scope.lookup(path.name)
            if symbol is not None:
                expr.symbol = symbol
                return symbol.type

        module, item = self._resolve_value_item(path, scope, expr.location)
        if not isinstance(item, CallableDeclaration):
            raise TypeMismatchError(
                f"'{path}' is a {_describe_item(item)}, not a value",
                location=expr.location,
            )
        signature = self._functions[f"{module}::{item.name}"]
        if signature.is_generic:
            raise ArityMismatchError(
                str(path),
                len(signature.type_params),
                0,
                what="type argument",
                location=expr.location,
            )
        expr.symbol = signature
        return signature.function_type()

    def _check_call(self, expr: CallExpression, scope: Scope) -> SmplType:
        path = expr.callee
        name = str(path)

        local = scope.lookup(path.name) if not path.is_qualified else None
        if local is not None:
            if not isinstance(local.type, FunctionType):
                raise TypeMismatchError(
                    f"'{name}' is not a function",
                    found=local.type,
                    location=expr.location,
                )
            if expr.type_args:
                raise ArityMismatchError(name, 0, len(expr.type_args), what="type argument", location=expr.location)
            expr.target = local
            param_types, return_type = local.type.params, local.type.return_type
        else:
            module, item = self._resolve_value_item(path, scope, expr.location)
            if not isinstance(item, CallableDeclaration):
                hint_kind = _describe_item(item)
                message = f"'{name}' is a {hint_kind} and cannot be called"
                if isinstance(item, StructDeclaration):
                    message += f"; use 'init {name} {{ ... }}'"
                raise TypeMismatchError(message, location=expr.location)

            signature = self._functions[f"{module}::{item.name}"]
            if len(expr.type_args) != len(signature.type_params):
                raise ArityMismatchError(
                    name,
                    len(signature.type_params),
                    len(expr.type_args),
                    what="type argument",
                    location=expr.location,
                )
            type_args = [self._resolve_type(arg) for arg in expr.type_args]
            expr.target = signature
            expr.instantiation = type_args
            param_types, return_type = signature.instantiate(type_args)

        if len(expr.arguments) != len(param_types):
            raise ArityMismatchError(name, len(param_types), len(expr.arguments), location=expr.location)

        for index, (argument, expected) in enumerate(zip(expr.arguments, param_types), start=1):
            found = self._check_expression(argument, scope)
            self._expect_type(
                expected,
                found,
                f"argument {index} of '{name}' has the wrong type",
                argument.location,
            )
        return return_type

    def _check_struct_init(self, expr: StructInitExpression, scope: Scope) -> SmplType:
        path = expr.struct_path
        struct = self._resolve_struct(path, expr.location)
        struct_name = struct.struct_type.name

        given: set[str] = set()
        for init in expr.fields:
            if init.name in given:
                raise DuplicateFieldError(struct_name, init.name, init.location)
            if init.name not in struct.fields:
                raise UnknownFieldError(struct_name, init.name, init.location, list(struct.fields))
            given.add(init.name)
            found = self._check_expression(init.value, scope)
            self._expect_type(
                struct.fields[init.name],
                found,
                f"field '{init.name}' of '{struct_name}' has the wrong type",
                init.value.location,
            )

        missing = [name for name in struct.fields if name not in given]
        if missing:
            raise MissingFieldError(struct_name, missing, expr.location)
        return struct.struct_type

    def _check_unary(self, expr: UnaryExpression, scope: Scope) -> SmplType:
        operand = self._check_expression(expr.operand, scope)
        operator = expr.operator

        if operator == UnaryOperator.NEGATE:
            if not operand.is_numeric():
                raise TypeMismatchError("'-' needs a numeric operand", expected="int or float", found=operand, location=expr.location)
            return operand
        if operator == UnaryOperator.LOGICAL_NOT:
            self._expect_type(TYPE_BOOL, operand, "'!' needs a bool operand", expr.location)
            return TYPE_BOOL
        if operator == UnaryOperator.REFERENCE:
            return ReferenceType(operand)
        if operator == UnaryOperator.DEREFERENCE:
            if not isinstance(operand, ReferenceType):
                raise TypeMismatchError("'*' needs a reference operand", expected="&T", found=operand, location=expr.location)
            return operand.target
        raise TypeError(f"unknown unary operator {operator!r}")

    def _check_binary(self, expr: BinaryExpression, scope: Scope) -> SmplType:
        left = self._check_expression(expr.left, scope)
        right = self._check_expression(expr.right, scope)
        operator = expr.operator
        symbol = operator.value

        if operator in LOGICAL_OPERATORS:
            self._expect_type(TYPE_BOOL, left, f"'{symbol}' needs bool operands", expr.left.location)
            self._expect_type(TYPE_BOOL, right, f"'{symbol}' needs bool operands", expr.right.location)
            return TYPE_BOOL

        if operator in EQUALITY_OPERATORS:
            if not left.is_primitive():
                raise TypeMismatchError(
                    f"'{symbol}' can only compare int, float, bool or string values",
                    found=left,
                    location=expr.left.location,
                )
            self._expect_type(left, right, f"operands of '{symbol}' differ in type", expr.right.location)
            return TYPE_BOOL

        if not left.is_numeric():
            raise TypeMismatchError(
                f"'{symbol}' needs numeric operands",
                expected="int or float",
                found=left,
                location=expr.left.location,
            )
        self._expect_type(left, right, f"operands of '{symbol}' differ in type", expr.right.location)

        if operator in RELATIONAL_OPERATORS:
            return TYPE_BOOL
        if operator in ARITHMETIC_OPERATORS:
            return left
        raise TypeError(f"unknown binary operator {operator!r}")

    # =========================================================================
    # Lookup Helpers
    # =========================================================================

    def _lookup_local(self, name: str, scope: Scope, location: SourceLocation) -> LocalSymbol:
        """Find a local binding, with a precise error when name is something else."""
        symbol = scope.lookup(name)
        if symbol is not None:
            return symbol

        resolved = self.graph.resolve(self._module, name, location)
        if resolved is not None:
            raise TypeMismatchError(
                f"'{name}' is a {_describe_item(resolved[1])}, not a local binding",
                location=location,
            )
        if name in self.graph.modules:
            raise TypeMismatchError(f"'{name}' is a module, not a local binding", location=location)
        raise UndefinedSymbolError(
            name,
            location,
            similar=difflib.get_close_matches(name, sorted(scope.visible_names()), n=3),
        )

    def _resolve_value_item(self, path: ModulePath, scope: Scope, location: SourceLocation) -> tuple[str, Item]:
        resolved = self.graph.resolve_path(self._module, path, location)
        if resolved is None and not path.is_qualified and path.name in self.graph.modules:
            raise TypeMismatchError(f"'{path}' is a module, not a value", location=location)
        if resolved is None:
            candidates = sorted(scope.visible_names()) + self.graph.visible_names(self._module)
            raise UndefinedSymbolError(
                str(path),
                location,
                similar=difflib.get_close_matches(path.name, candidates, n=3),
            )
        return resolved

    def _resolve_struct(self, path: ModulePath, location: SourceLocation) -> StructInfo:
        if not path.is_qualified and (path.name in PRIMITIVE_TYPES or path.name in self._type_params):
            raise TypeMismatchError(f"'{path}' is not a struct", location=location)

        resolved = self.graph.resolve_path(self._module, path, location)
        if resolved is None:
            raise UndefinedSymbolError(
                str(path),
                location,
                similar=difflib.get_close_matches(path.name, self.graph.visible_names(self._module), n=3),
                kind="struct",
            )
        module, item = resolved
        if isinstance(item, OpaqueDeclaration):
            raise TypeMismatchError(
                f"cannot initialize opaque type '{path}'",
                location=location,
            )
        if not isinstance(item, StructDeclaration):
            raise TypeMismatchError(f"'{path}' is a {_describe_item(item)}, not a struct", location=location)
        return self._structs[f"{module}::{item.name}"]

    def _field_type(self, base: SmplType, name: str, location: SourceLocation) -> SmplType:
        if not isinstance(base, StructType):
            raise TypeMismatchError(
                f"cannot access field '{name}' of non-struct type '{base}'",
                location=location,
            )
        struct = self._structs[base.qualified_name]
        if name not in struct.fields:
            raise UnknownFieldError(base.name, name, location, list(struct.fields))
        return struct.fields[name]

    @staticmethod
    def _expect_type(expected: SmplType, found: SmplType, message: str, location: SourceLocation) -> None:
        if expected != found:
            raise TypeMismatchError(message, expected=expected, found=found, location=location)


def _describe_item(item: Item) -> str:
    if isinstance(item, StructDeclaration):
        return "struct"
    if isinstance(item, OpaqueDeclaration):
        return "opaque type"
    if isinstance(item, BuiltinFunctionDeclaration):
        return "builtin function"
    if isinstance(item, FunctionDeclaration):
        return "function"
    return "module item"


def analyze(graph: ModuleGraph) -> Program:
    """Convenience wrapper: check graph and return the typed Program."""
    return SemanticAnalyzer(graph).analyze()
