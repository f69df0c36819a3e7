"""
smpl Semantic Analyzer Test Suite
=================================

Tests for smplc.lang.checker: name resolution, scoping, type checking,
generics, the prelude intrinsics, control flow and AST decoration.
"""

import pytest

from smplc.lang.parser import parse_source
from smplc.lang.prelude import load_prelude
from smplc.lang.module_graph import build_module_graph
from smplc.lang.checker import SemanticAnalyzer, Program, analyze
from smplc.lang.types import (
    StructType,
    OpaqueType,
    FunctionType,
    FunctionSignature,
    TYPE_INT,
    TYPE_FLOAT,
    TYPE_BOOL,
    TYPE_STRING,
    TYPE_UNIT,
)
from smplc.lang.scope import LocalSymbol
from smplc.lang.errors import (
    SemanticError,
    UndefinedSymbolError,
    AmbiguousReferenceError,
    TypeMismatchError,
    ArityMismatchError,
    DuplicateFieldError,
    MissingFieldError,
    UnknownFieldError,
    DuplicateDeclarationError,
    MissingReturnError,
    LoopControlError,
    ControlFlowError,
    MultipleEntryPointsError,
)


POINT = "struct Point { x: int, y: int }"
GEO = """
mod geo;
struct Point { x: int, y: int }
fn origin() -> Point { return init Point { x: 0, y: 0 }; }
"""


def analyze_sources(*sources: str, prelude: bool = True) -> Program:
    """Parse, link and check sources, one module each."""
    modules = [parse_source(text, f"t{i}.smpl") for i, text in enumerate(sources)]
    graph = build_module_graph(modules, load_prelude() if prelude else None)
    return SemanticAnalyzer(graph).analyze()


def analyze_main(body: str, items: str = "", prelude: bool = True) -> Program:
    """Check `fn main() { body }` after the given items."""
    return analyze_sources(f"{items}\nfn main() {{ {body} }}", prelude=prelude)


def main_statements(program: Program):
    """Statements of the last function of the first module."""
    return program.modules[0].items[-1].body.statements


# =============================================================================
# End-to-End Scenarios
# =============================================================================

class TestScenarios:
    """The reference scenarios of the language."""

    def test_struct_init_binding(self):
        """A struct-init has the struct's type."""
        program = analyze_main("let p: Point = init Point { x: 5, y: 10 };", POINT)
        let = main_statements(program)[0]
        assert let.symbol.type == StructType("main", "Point")
        assert let.initializer.resolved_type == StructType("main", "Point")

    def test_option_intrinsics(self):
        """`unwrap(type int)(some(type int)(5))` is an int."""
        program = analyze_main("let v: int = unwrap(type int)(some(type int)(5));")
        call = main_statements(program)[0].initializer
        assert call.resolved_type == TYPE_INT
        assert call.target.is_builtin
        assert call.target.qualified_name == "prelude::unwrap"
        assert call.arguments[0].resolved_type == OpaqueType("prelude", "Option", (TYPE_INT,))

    def test_too_many_type_arguments(self):
        """Extra type arguments are an arity error."""
        with pytest.raises(ArityMismatchError) as exc_info:
            analyze_main(
                "let v: int = f(type int, string)(5);",
                "fn f(type T)(x: T) -> T { return x; }",
            )
        error = exc_info.value
        assert (error.expected, error.actual, error.what) == (1, 2, "type argument")
        assert "'f' expects 1 type argument, got 2" in str(error)

    def test_missing_field(self):
        """A struct-init must set every field."""
        with pytest.raises(MissingFieldError) as exc_info:
            analyze_main("let p: Point = init Point { x: 5 };", POINT)
        assert exc_info.value.missing == ["y"]
        assert "missing field 'y' in initializer of 'Point'" in str(exc_info.value)

    def test_self_referential_shadow(self):
        """`let a: int = a;` reads the outer parameter `a`."""
        program = analyze_sources("fn f(a: int) -> int { let a: int = a; return a; }")
        let, ret = program.modules[0].items[0].body.statements
        assert isinstance(let.initializer.symbol, LocalSymbol)
        assert let.initializer.symbol.is_parameter
        assert let.symbol is not let.initializer.symbol
        assert ret.value.symbol is let.symbol


# =============================================================================
# Scoping
# =============================================================================

class TestScoping:
    """Tests for local bindings and shadowing."""

    def test_undefined_binding(self):
        """An unknown name is an undefined symbol."""
        with pytest.raises(UndefinedSymbolError) as exc_info:
            analyze_main("let x: int = y;")
        assert exc_info.value.name == "y"
        assert "undefined symbol 'y'" in str(exc_info.value)

    def test_let_not_visible_in_own_initializer(self):
        """A `let` binding is not in scope in its own initializer."""
        with pytest.raises(UndefinedSymbolError):
            analyze_main("let x: int = x;")

    def test_duplicate_let_in_block(self):
        """Two `let`s of one name in a block collide."""
        with pytest.raises(DuplicateDeclarationError) as exc_info:
            analyze_main("let x: int = 1; let x: int = 2;")
        assert "first declared at" in exc_info.value.hint

    def test_inner_block_shadows(self):
        """An inner block's binding ends with the block."""
        program = analyze_main('let x: int = 1; { let x: string = "s"; } let y: int = x;')
        statements = main_statements(program)
        assert statements[2].initializer.symbol is statements[0].symbol

    def test_binding_out_of_scope(self):
        """Bindings of a finished block are gone."""
        with pytest.raises(UndefinedSymbolError):
            analyze_main("{ let inner: int = 1; } let y: int = inner;")

    def test_duplicate_parameter(self):
        """Parameter names must be unique."""
        with pytest.raises(DuplicateDeclarationError):
            analyze_sources("fn f(a: int, a: int) { }")

    def test_suggestions(self):
        """Undefined names come with close-match suggestions."""
        with pytest.raises(UndefinedSymbolError) as exc_info:
            analyze_main("let count: int = 1; let y: int = cout;")
        assert "count" in exc_info.value.similar
        assert "did you mean 'count'" in exc_info.value.hint

    def test_local_shadows_function(self):
        """A local binding hides an item of the same name."""
        program = analyze_main("let helper: int = 3; let y: int = helper;", "fn helper() { }")
        assert main_statements(program)[1].initializer.resolved_type == TYPE_INT


# =============================================================================
# Operators and Conditions
# =============================================================================

class TestOperators:
    """Tests for unary and binary operator typing."""

    @pytest.mark.parametrize("expr,expected", [
        ("1 + 2 * 3", TYPE_INT),
        ("1.5 / 2.0", TYPE_FLOAT),
        ("7 % 2", TYPE_INT),
        ("1 < 2", TYPE_BOOL),
        ('"a" == "b"', TYPE_BOOL),
        ("true != false", TYPE_BOOL),
        ("true && !false || false", TYPE_BOOL),
        ("-(1 + 2)", TYPE_INT),
        ("*&1.5", TYPE_FLOAT),
    ])
    def test_result_types(self, expr, expected):
        """Operators produce the expected result types."""
        program = analyze_main(f"{expr};")
        assert main_statements(program)[0].expression.resolved_type == expected

    @pytest.mark.parametrize("expr", [
        "1 + 2.0",
        '"a" + "b"',
        '"a" < "b"',
        "1 == 1.0",
        "true && 1",
        "!1",
        "-true",
        "*1",
    ])
    def test_rejected(self, expr):
        """Operand types that do not fit the operator are rejected."""
        with pytest.raises(TypeMismatchError):
            analyze_main(f"{expr};")

    def test_struct_equality_rejected(self):
        """Structs cannot be compared with `==`."""
        with pytest.raises(TypeMismatchError, match="can only compare"):
            analyze_main("let p: Point = init Point { x: 1, y: 2 }; p == p;", POINT)

    def test_mismatch_reports_types(self):
        """Mismatch errors carry the expected and found types."""
        with pytest.raises(TypeMismatchError) as exc_info:
            analyze_main("let x: int = 1.5;")
        error = exc_info.value
        assert (error.expected, error.found) == ("int", "float")
        assert "expected 'int', found 'float'" in error.hint

    def test_condition_must_be_bool(self):
        """An `if` condition must be a bool."""
        with pytest.raises(TypeMismatchError, match="condition must be a bool"):
            analyze_main("if 1 { }")

    def test_while_condition_must_be_bool(self):
        """A `while` condition must be a bool."""
        with pytest.raises(TypeMismatchError):
            analyze_main('while "yes" { }')

    def test_elif_condition_checked(self):
        """`elif` conditions are checked too."""
        with pytest.raises(TypeMismatchError):
            analyze_main("if true { } elif 0 { }")


# =============================================================================
# Control Flow
# =============================================================================

class TestControlFlow:
    """Tests for return coverage, return types and loop control."""

    def test_if_without_else_can_fall_through(self):
        """An `if` without `else` does not guarantee a return."""
        with pytest.raises(MissingReturnError) as exc_info:
            analyze_sources("fn f(x: int) -> int { if x > 0 { return 1; } }")
        assert exc_info.value.function_name == "f"

    def test_all_branches_return(self):
        """An if/elif/else returning on every branch is enough."""
        analyze_sources(
            "fn sign(x: int) -> int { if x > 0 { return 1; } elif x < 0 { return -1; } else { return 0; } }"
        )

    def test_while_does_not_guarantee_return(self):
        """A `while` body never counts as returning."""
        with pytest.raises(MissingReturnError):
            analyze_sources("fn f() -> int { while true { return 1; } }")

    def test_return_in_nested_block(self):
        """A return inside a nested block counts."""
        analyze_sources("fn f() -> int { { return 1; } }")

    def test_recursion(self):
        """Functions may call themselves."""
        analyze_sources("fn fact(n: int) -> int { if n <= 1 { return 1; } return n * fact(n - 1); }")

    def test_bare_return_in_valued_function(self):
        """A valued function needs `return` with a value."""
        with pytest.raises(TypeMismatchError, match="without a value"):
            analyze_sources("fn f() -> int { return; }")

    def test_value_in_unit_function(self):
        """A unit function cannot return a value."""
        with pytest.raises(TypeMismatchError, match="does not return a value"):
            analyze_sources("fn f() { return 1; }")

    def test_wrong_return_type(self):
        """The returned value must match the declared type."""
        with pytest.raises(TypeMismatchError, match="wrong return type"):
            analyze_sources('fn f() -> int { return "s"; }')

    @pytest.mark.parametrize("keyword", ["break", "continue"])
    def test_loop_control_outside_loop(self, keyword):
        """`break` and `continue` need an enclosing loop."""
        with pytest.raises(LoopControlError) as exc_info:
            analyze_main(f"{keyword};")
        assert exc_info.value.keyword == keyword
        assert isinstance(exc_info.value, ControlFlowError)

    def test_loop_control_inside_loop(self):
        """`break` and `continue` are fine inside a loop."""
        analyze_main("while true { if false { continue; } break; }")

    def test_loop_depth_restored(self):
        """Leaving a loop ends its loop context."""
        with pytest.raises(LoopControlError):
            analyze_main("while true { } break;")


# =============================================================================
# Structs and Fields
# =============================================================================

class TestStructs:
    """Tests for struct declarations, initializers and field access."""

    def test_field_access(self):
        """Field chains take the type of the last field."""
        program = analyze_main(
            "let l: Line = init Line { a: init Point { x: 1, y: 2 }, b: init Point { x: 3, y: 4 } }; l.b.y;",
            POINT + " struct Line { a: Point, b: Point }",
        )
        access = main_statements(program)[1].expression
        assert access.resolved_type == TYPE_INT
        assert access.root_symbol is main_statements(program)[0].symbol

    def test_unknown_field(self):
        """Unknown fields list the struct's fields."""
        with pytest.raises(UnknownFieldError) as exc_info:
            analyze_main("let p: Point = init Point { x: 1, y: 2 }; p.z;", POINT)
        assert exc_info.value.field_name == "z"
        assert exc_info.value.hint == "'Point' has fields: x, y"

    def test_field_of_non_struct(self):
        """Only structs have fields."""
        with pytest.raises(TypeMismatchError, match="non-struct"):
            analyze_main("let n: int = 1; n.x;")

    def test_field_assignment(self):
        """Fields can be assigned through a binding."""
        analyze_main("let p: Point = init Point { x: 1, y: 2 }; p.x = 5;", POINT)

    def test_field_assignment_type(self):
        """A field assignment must match the field's type."""
        with pytest.raises(TypeMismatchError, match="cannot assign to 'p.x'"):
            analyze_main('let p: Point = init Point { x: 1, y: 2 }; p.x = "s";', POINT)

    def test_duplicate_struct_field(self):
        """A struct cannot declare a field twice."""
        with pytest.raises(DuplicateFieldError):
            analyze_sources("struct P { x: int, x: int }")

    def test_duplicate_init_field(self):
        """A struct-init cannot set a field twice."""
        with pytest.raises(DuplicateFieldError):
            analyze_main("let p: Point = init Point { x: 1, x: 2, y: 3 };", POINT)

    def test_unknown_init_field(self):
        """A struct-init cannot set an unknown field."""
        with pytest.raises(UnknownFieldError):
            analyze_main("let p: Point = init Point { x: 1, y: 2, z: 3 };", POINT)

    def test_init_field_type(self):
        """A struct-init value must match its field's type."""
        with pytest.raises(TypeMismatchError, match="field 'x' of 'Point'"):
            analyze_main("let p: Point = init Point { x: 1.0, y: 2 };", POINT)

    def test_fields_in_any_order(self):
        """Struct-init fields may come in any order."""
        analyze_main("let p: Point = Point { y: 1, x: 2 };", POINT)

    def test_struct_refers_to_later_struct(self):
        """A struct may use a struct declared after it."""
        program = analyze_sources("struct A { b: B } struct B { x: int }")
        assert program.structs["main::A"].fields["b"] == StructType("main", "B")

    def test_init_opaque_rejected(self):
        """Opaque types cannot be initialized."""
        with pytest.raises(TypeMismatchError, match="cannot initialize opaque type"):
            analyze_main("init Option { };")

    def test_init_primitive_rejected(self):
        """Primitive types cannot be initialized."""
        with pytest.raises(TypeMismatchError, match="not a struct"):
            analyze_main("init int { };")

    def test_init_function_rejected(self):
        """A function name cannot be initialized."""
        with pytest.raises(TypeMismatchError, match="is a function, not a struct"):
            analyze_main("init helper { };", "fn helper() { }")

    def test_struct_as_value(self):
        """A struct name is not a value."""
        with pytest.raises(TypeMismatchError, match="'Point' is a struct, not a value"):
            analyze_main("let p: int = Point;", POINT)

    def test_struct_called(self):
        """A struct name cannot be called."""
        with pytest.raises(TypeMismatchError, match="cannot be called"):
            analyze_main("Point();", POINT)


# =============================================================================
# Functions and Generics
# =============================================================================

class TestFunctions:
    """Tests for calls, function values and generic instantiation."""

    ID = "fn id(type T)(x: T) -> T { return x; }"

    def test_generic_instantiation(self):
        """Type arguments substitute into the signature."""
        program = analyze_main('let s: string = id(type string)("a");', self.ID)
        call = main_statements(program)[0].initializer
        assert call.resolved_type == TYPE_STRING
        assert call.instantiation == [TYPE_STRING]
        assert isinstance(call.target, FunctionSignature)

    def test_generic_argument_checked_after_substitution(self):
        """Arguments are checked against the substituted types."""
        with pytest.raises(TypeMismatchError, match="argument 1 of 'id'"):
            analyze_main('let s: int = id(type int)("a");', self.ID)

    def test_missing_type_arguments(self):
        """A generic function needs its type arguments."""
        with pytest.raises(ArityMismatchError) as exc_info:
            analyze_main("let s: int = id(1);", self.ID)
        assert (exc_info.value.expected, exc_info.value.actual) == (1, 0)

    def test_type_parameter_is_abstract(self):
        """A type parameter is not any concrete type."""
        with pytest.raises(TypeMismatchError):
            analyze_sources("fn bad(type T)(x: T) -> int { return x; }")

    def test_type_parameters_of_different_functions_differ(self):
        """Each function owns its type parameters."""
        program = analyze_sources(
            "fn g(type T)(x: T) -> T { return x; } "
            "fn f(type T)(x: T) -> T { return g(type T)(x); }"
        )
        g_param = program.functions["main::g"].type_params[0]
        f_param = program.functions["main::f"].type_params[0]
        assert g_param != f_param
        assert program.modules[0].items[1].body.statements[0].value.resolved_type == f_param

    def test_generic_arithmetic_rejected(self):
        """Type parameters do not support arithmetic."""
        with pytest.raises(TypeMismatchError, match="numeric operands"):
            analyze_sources("fn f(type T)(x: T) -> T { return x + x; }")

    def test_type_parameter_named_like_primitive(self):
        """A type parameter cannot take a primitive's name."""
        with pytest.raises(DuplicateDeclarationError, match="redeclaration of 'int'"):
            analyze_sources("fn f(type int)(x: int) { }")

    def test_duplicate_type_parameter(self):
        """Type parameter names must be unique."""
        with pytest.raises(DuplicateDeclarationError):
            analyze_sources("fn f(type T, T)(x: T) { }")

    def test_argument_count(self):
        """The call must pass as many arguments as declared."""
        with pytest.raises(ArityMismatchError, match="'add' expects 2 arguments, got 1"):
            analyze_main("add(1);", "fn add(a: int, b: int) -> int { return a + b; }")

    def test_function_value(self):
        """Functions can be stored and called through bindings."""
        program = analyze_main(
            "let f: fn(int) -> int = inc; let y: int = f(1);",
            "fn inc(x: int) -> int { return x + 1; }",
        )
        let_f, let_y = main_statements(program)
        assert let_f.symbol.type == FunctionType((TYPE_INT,), TYPE_INT)
        assert let_y.initializer.target is let_f.symbol

    def test_generic_function_as_value(self):
        """A generic function cannot be used as a value."""
        with pytest.raises(ArityMismatchError):
            analyze_main("let f: fn(int) -> int = id;", self.ID)

    def test_type_arguments_on_function_value(self):
        """Function values take no type arguments."""
        with pytest.raises(ArityMismatchError):
            analyze_main(
                "let f: fn(int) -> int = inc; f(type int)(1);",
                "fn inc(x: int) -> int { return x; }",
            )

    def test_call_non_function_local(self):
        """Only function values can be called."""
        with pytest.raises(TypeMismatchError, match="'x' is not a function"):
            analyze_main("let x: int = 1; x();")

    def test_function_as_type(self):
        """A function name is not a type."""
        with pytest.raises(TypeMismatchError, match="is a function, not a type"):
            analyze_main("let x: helper = 1;", "fn helper() { }")

    def test_unknown_type(self):
        """Unknown types are reported with suggestions."""
        with pytest.raises(UndefinedSymbolError) as exc_info:
            analyze_main('let x: Strin = "s";')
        assert "undefined type 'Strin'" in str(exc_info.value)
        assert "string" in exc_info.value.similar

    def test_assign_to_function(self):
        """Only local bindings can be assigned."""
        with pytest.raises(TypeMismatchError, match="not a local binding"):
            analyze_main("helper = 1;", "fn helper() { }")

    def test_assignment_type(self):
        """An assignment must match the binding's type."""
        with pytest.raises(TypeMismatchError, match="cannot assign to 'x'"):
            analyze_main('let x: int = 1; x = "s";')


# =============================================================================
# Prelude Intrinsics
# =============================================================================

class TestPrelude:
    """Tests for Option and its builtin functions."""

    def test_intrinsics(self):
        """The prelude functions type-check with Option."""
        program = analyze_main(
            "let o: Option(type int) = some(type int)(1); "
            "let n: Option(type int) = none(type int)(); "
            "let a: bool = is_some(type int)(o) && is_none(type int)(n); "
            'let b: int = expect(type int)(o, "missing"); '
            "let c: int = unwrap_or(type int)(n, 0); "
            "let s: Option(type string) = map(type int, string)(o, show);",
            'fn show(x: int) -> string { return "n"; }',
        )
        statements = main_statements(program)
        assert statements[-1].symbol.type == OpaqueType("prelude", "Option", (TYPE_STRING,))

    def test_option_arity(self):
        """Option takes exactly one type argument."""
        with pytest.raises(ArityMismatchError) as exc_info:
            analyze_main("let o: Option(type int, int) = none(type int)();")
        assert exc_info.value.name == "Option"
        assert (exc_info.value.expected, exc_info.value.actual) == (1, 2)

    def test_option_requires_argument(self):
        """A bare `Option` is an arity error."""
        with pytest.raises(ArityMismatchError):
            analyze_main("let o: Option = none(type int)();")

    def test_option_types_differ(self):
        """Options of different element types are distinct."""
        with pytest.raises(TypeMismatchError):
            analyze_main("let o: Option(type string) = some(type int)(1);")

    def test_map_function_type_checked(self):
        """The function passed to `map` must fit."""
        with pytest.raises(TypeMismatchError, match="argument 2 of 'map'"):
            analyze_main(
                "let s: Option(type string) = map(type int, string)(some(type int)(1), show);",
                "fn show(x: float) -> string { return \"n\"; }",
            )

    def test_builtin_as_value(self):
        """Builtins are ordinary non-generic functions when used as values."""
        program = analyze_main(
            "let f: fn() = tick;",
            "builtin fn tick();",
        )
        assert main_statements(program)[0].initializer.resolved_type == FunctionType((), TYPE_UNIT)

    def test_without_prelude(self):
        """Without the prelude Option is undefined."""
        with pytest.raises(UndefinedSymbolError):
            analyze_main("let o: int = unwrap(type int)(some(type int)(1));", prelude=False)

    def test_user_function_shadows_prelude(self):
        """A user function shadows a prelude function."""
        program = analyze_main(
            "let v: int = some(3);",
            "fn some(x: int) -> int { return x; }",
        )
        assert main_statements(program)[0].initializer.target.module == "main"

    def test_user_opaque_type_checks(self):
        """User opaque types and builtins type-check."""
        analyze_main(
            "let h: Handle(type int) = open(type int)();",
            "opaque Handle(type T); builtin fn open(type T)() -> Handle(type T);",
        )


# =============================================================================
# Modules
# =============================================================================

class TestModules:
    """Tests for cross-module resolution during checking."""

    def test_use(self):
        """`use` makes another module's items visible."""
        program = analyze_sources(GEO, "mod app; use geo; fn main() { let p: Point = origin(); }")
        let = program.modules[1].items[-1].body.statements[0]
        assert let.symbol.type == StructType("geo", "Point")
        assert program.entry_module == "app"

    def test_qualified_without_use(self):
        """Qualified paths need no `use`."""
        analyze_sources(GEO, "mod app; fn main() { let p: geo::Point = geo::origin(); }")

    def test_unqualified_without_use(self):
        """Bare names of unused modules are undefined."""
        with pytest.raises(UndefinedSymbolError):
            analyze_sources(GEO, "mod app; fn main() { let p: geo::Point = origin(); }")

    def test_same_name_in_two_modules_differs(self):
        """Structs are identified by module and name."""
        with pytest.raises(TypeMismatchError):
            analyze_sources(GEO, "mod app; struct Point { x: int, y: int } fn main() { let p: Point = geo::origin(); }")

    def test_ambiguous(self):
        """Ambiguous bare names are rejected."""
        with pytest.raises(AmbiguousReferenceError):
            analyze_sources(
                GEO,
                "mod util; fn origin() -> int { return 0; }",
                "mod app; use geo; use util; fn main() { origin(); }",
            )

    def test_qualified_resolves_ambiguity(self):
        """Qualifying an ambiguous name resolves it."""
        analyze_sources(
            GEO,
            "mod util; fn origin() -> int { return 0; }",
            "mod app; use geo; use util; fn main() { let n: int = util::origin(); }",
        )

    def test_module_as_value(self):
        """A module name is not a value."""
        with pytest.raises(TypeMismatchError, match="'geo' is a module, not a value"):
            analyze_sources(GEO, "mod app; fn main() { let g: int = geo; }")

    def test_module_as_local(self):
        """A module name is not a local binding."""
        with pytest.raises(TypeMismatchError, match="is a module, not a local binding"):
            analyze_sources(GEO, "mod app; fn main() { geo.x; }")

    def test_module_as_type(self):
        """A module name is not a type."""
        with pytest.raises(TypeMismatchError, match="is a module, not a type"):
            analyze_sources(GEO, "mod app; fn f(g: geo) { }")

    def test_unknown_module_path(self):
        """A path through an unknown module is undefined."""
        with pytest.raises(UndefinedSymbolError, match="undefined module 'gfx'"):
            analyze_sources("fn main() { gfx::draw(); }")

    def test_cross_module_struct_fields(self):
        """Fields may use structs of other modules."""
        program = analyze_sources("mod a; use b; struct A { inner: B }", "mod b; struct B { x: int }")
        assert program.structs["a::A"].fields["inner"] == StructType("b", "B")


# =============================================================================
# Entry Point and Program
# =============================================================================

class TestProgram:
    """Tests for the entry point and the typed Program."""

    def test_no_entry_point(self):
        """A program without `main` has no entry module."""
        assert analyze_sources("fn helper() { }").entry_module is None

    def test_entry_point(self):
        """The module defining `main` is the entry module."""
        assert analyze_sources("fn main() { }").entry_module == "main"

    def test_multiple_entry_points(self):
        """Only one module may define `main`."""
        with pytest.raises(MultipleEntryPointsError) as exc_info:
            analyze_sources("mod a; fn main() { }", "mod b; fn main() { }")
        assert exc_info.value.modules == ["a", "b"]

    @pytest.mark.parametrize("source", [
        "fn main(x: int) { }",
        "fn main() -> int { return 0; }",
        "fn main(type T)() { }",
    ])
    def test_malformed_entry_point(self, source):
        """`main` takes no parameters or type parameters and returns nothing."""
        with pytest.raises(TypeMismatchError, match="entry point 'main'"):
            analyze_sources(source)

    def test_registries(self):
        """The program registers structs, opaque types and functions by qualified name."""
        program = analyze_sources(POINT + " fn main() { }")
        assert list(program.structs) == ["main::Point"]
        assert "prelude::Option" in program.opaques
        assert "prelude::unwrap" in program.functions
        assert program.functions["main::main"].return_type == TYPE_UNIT
        assert program.prelude == "prelude"
        assert program.module_name(program.modules[0]) == "main"
        assert program.struct(StructType("main", "Point")).fields == {"x": TYPE_INT, "y": TYPE_INT}

    def test_user_modules_only(self):
        """Program modules exclude the prelude."""
        program = analyze_sources(GEO, "mod app; fn main() { }")
        assert [m.name for m in program.modules] == ["geo", "app"]

    def test_annotations_decorated(self):
        """Annotations and declarations carry their resolved types."""
        program = analyze_main("let x: [float; 3] = make();", "fn make() -> [float; 3] { return make(); }")
        let = main_statements(program)[0]
        assert str(let.var_type.resolved) == "[float; 3]"
        assert program.modules[0].items[0].signature.qualified_name == "main::make"

    def test_analyze_function(self):
        """analyze() checks a prebuilt module graph."""
        graph = build_module_graph([parse_source("fn main() { }")], load_prelude())
        assert analyze(graph).entry_module == "main"

    def test_semantic_errors_share_base(self):
        """Semantic failures derive from SemanticError."""
        with pytest.raises(SemanticError):
            analyze_main("let x: int = true;")
