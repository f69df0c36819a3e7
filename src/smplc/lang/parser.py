"""
smpl Recursive Descent Parser
=============================

This module implements a recursive descent parser for smpl. It takes
the token stream of one file and builds exactly one ModuleNode, or
raises a ParseError naming the construct it expected and the token it
found.

Grammar (EBNF)
--------------
program         ::= module_decl? item* EOF
module_decl     ::= 'mod' IDENT ';'
item            ::= use_decl | fn_decl | struct_decl | opaque_decl | builtin_decl
use_decl        ::= 'use' IDENT ';'
struct_decl     ::= 'struct' IDENT '{' (field (',' field)* ','?)? '}'
opaque_decl     ::= 'opaque' IDENT type_params? ';'
fn_decl         ::= 'fn' IDENT type_params? '(' params? ')' ('->' type)? block
builtin_decl    ::= 'builtin' 'fn' IDENT type_params? '(' params? ')' ('->' type)? ';'
type_params     ::= '(' 'type' IDENT (',' IDENT)* ','? ')'
type            ::= path type_args? | '[' type ';' INT ']' | 'fn' '(' types? ')' ('->' type)?
type_args       ::= '(' 'type' type (',' type)* ','? ')'

block           ::= '{' statement* '}'
statement       ::= let_stmt | if_stmt | while_stmt | return_stmt
                  | 'break' ';' | 'continue' ';' | block
                  | access_path '=' expr ';' | expr ';'

Expression Precedence (lowest to highest)
-----------------------------------------
1. logical         && ||
2. equality        == !=
3. relational      < <= > >=
4. additive        + -
5. multiplicative  * / %
6. unary           - ! & *      (prefix, stackable: !!x, &*x)
7. leaf            literal, (expr), init S {..}, call, path, a.b.c

All binary tiers are left-associative.

Struct Literals in Conditions
-----------------------------
`Point { x: 1 }` is accepted as a struct-init without the `init`
keyword, except inside `if`/`elif`/`while` conditions where the `{`
belongs to the statement body. Parentheses lift the restriction.

Example Usage
-------------
>>> from smplc.lang.parser import parse_source
>>> module = parse_source('mod geo; struct Point { x: int, y: int }')
>>> module.name, [item.name for item in module.items]
('geo', ['Point'])
"""

import logging
from typing import Callable, Optional

from smplc.errors import SourceLocation
from smplc.lang.errors import MissingTokenError, ParseError, UnexpectedTokenError
from smplc.lang.lexer import Lexer, Token, TokenType
from smplc.lang.ast import (
    ModulePath,
    ModuleNode,
    Item,
    UseDeclaration,
    StructField,
    StructDeclaration,
    OpaqueDeclaration,
    Parameter,
    FunctionDeclaration,
    BuiltinFunctionDeclaration,
    TypeAnnotation,
    NamedTypeAnnotation,
    ArrayTypeAnnotation,
    FunctionTypeAnnotation,
    Statement,
    BlockStatement,
    LetStatement,
    AssignmentStatement,
    IfBranch,
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
    FieldInit,
    StructInitExpression,
    UnaryExpression,
    BinaryExpression,
    ParenExpression,
    BinaryOperator,
    UnaryOperator,
)

logger = logging.getLogger(__name__)


UNARY_OPERATORS: dict[TokenType, UnaryOperator] = {
    TokenType.MINUS: UnaryOperator.NEGATE,
    TokenType.NOT: UnaryOperator.LOGICAL_NOT,
    TokenType.AMPERSAND: UnaryOperator.REFERENCE,
    TokenType.STAR: UnaryOperator.DEREFERENCE,
}


# =============================================================================
# Parser Implementation
# =============================================================================

class Parser:
    """
    Parses the tokens of one smpl file into a ModuleNode.

    The parser is fail-fast: the first token that does not fit the
    grammar raises a ParseError and no partial tree is returned.

    Attributes:
        tokens: List of tokens to parse (ending with EOF)
        filename: Source filename for error reporting
        source_lines: Original source lines for error context
    """

    def __init__(
        self,
        tokens: list[Token],
        filename: str = "<input>",
        source_lines: Optional[list[str]] = None,
    ):
        self.tokens = tokens
        self.filename = filename
        self.source_lines = source_lines or []
        self._pos = 0

        # Set while parsing if/elif/while conditions
        self._no_struct_init = False

    def parse(self) -> ModuleNode:
        """
        Parse the token stream into a module.

        Returns:
            ModuleNode for this file

        Raises:
            ParseError: If the tokens do not form a valid module
        """
        location = self._peek().location
        name = None
        if self._match(TokenType.MOD):
            name = self._expect(TokenType.IDENTIFIER, "module name").value
            self._expect(TokenType.SEMICOLON, "';'")

        items = []
        while not self._at_end():
            items.append(self._parse_item())

        logger.debug(f"{self.filename}: parsed module {name or '<unnamed>'} with {len(items)} items")
        return ModuleNode(location=location, name=name, items=items, filename=self.filename)

    # =========================================================================
    # Token Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self, offset: int = 0) -> Token:
        pos = self._pos + offset
        if pos >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[pos]

    def _advance(self) -> Token:
        token = self._peek()
        if not self._at_end():
            self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        """Consume the current token if it is one of types."""
        if self._check(*types):
            return self._advance()
        return None

    def _expect(self, token_type: TokenType, description: str) -> Token:
        """
        Consume a token of the given type or fail.

        Raises:
            MissingTokenError: naming description and the token found
        """
        if self._check(token_type):
            return self._advance()

        current = self._peek()
        raise MissingTokenError(
            description,
            current.describe(),
            current.location,
            self._get_source_line(current.line),
        )

    def _unexpected(self, expected: str) -> UnexpectedTokenError:
        current = self._peek()
        return UnexpectedTokenError(
            current.describe(),
            expected=expected,
            location=current.location,
            source_line=self._get_source_line(current.line),
        )

    def _get_source_line(self, line: int) -> Optional[str]:
        if 0 < line <= len(self.source_lines):
            return self.source_lines[line - 1]
        return None

    def _parse_comma_list(
        self,
        element_parser: Callable[[], object],
        closer: TokenType,
    ) -> list:
        """
        Parse `elem (',' elem)* ','?` up to (not including) closer.

        An empty list is allowed.
        """
        elements = []
        while not self._check(closer):
            elements.append(element_parser())
            if not self._match(TokenType.COMMA):
                break
        return elements

    # =========================================================================
    # Items
    # =========================================================================

    def _parse_item(self) -> Item:
        token = self._peek()

        if token.type == TokenType.USE:
            self._advance()
            name = self._expect(TokenType.IDENTIFIER, "module name").value
            self._expect(TokenType.SEMICOLON, "';'")
            return UseDeclaration(location=token.location, name=name)
        if token.type == TokenType.STRUCT:
            return self._parse_struct()
        if token.type == TokenType.OPAQUE:
            return self._parse_opaque()
        if token.type == TokenType.FN:
            return self._parse_function()
        if token.type == TokenType.BUILTIN:
            return self._parse_builtin_function()

        raise self._unexpected("'use', 'fn', 'struct', 'opaque' or 'builtin'")

    def _parse_struct(self) -> StructDeclaration:
        location = self._advance().location
        name = self._expect(TokenType.IDENTIFIER, "struct name").value
        self._expect(TokenType.LBRACE, "'{'")
        fields = self._parse_comma_list(self._parse_struct_field, TokenType.RBRACE)
        self._expect(TokenType.RBRACE, "'}'")
        return StructDeclaration(location=location, name=name, fields=fields)

    def _parse_struct_field(self) -> StructField:
        token = self._expect(TokenType.IDENTIFIER, "field name")
        self._expect(TokenType.COLON, "':'")
        field_type = self._parse_type()
        return StructField(location=token.location, name=token.value, field_type=field_type)

    def _parse_opaque(self) -> OpaqueDeclaration:
        location = self._advance().location
        name = self._expect(TokenType.IDENTIFIER, "opaque type name").value
        type_params = self._parse_type_params()
        self._expect(TokenType.SEMICOLON, "';'")
        return OpaqueDeclaration(location=location, name=name, type_params=type_params)

    def _parse_function(self) -> FunctionDeclaration:
        location = self._advance().location
        name, type_params, parameters, return_type = self._parse_function_header()
        body = self._parse_block()
        return FunctionDeclaration(
            location=location,
            name=name,
            type_params=type_params,
            parameters=parameters,
            return_type=return_type,
            body=body,
        )

    def _parse_builtin_function(self) -> BuiltinFunctionDeclaration:
        location = self._advance().location
        self._expect(TokenType.FN, "'fn' after 'builtin'")
        name, type_params, parameters, return_type = self._parse_function_header()
        self._expect(TokenType.SEMICOLON, "';'")
        return BuiltinFunctionDeclaration(
            location=location,
            name=name,
            type_params=type_params,
            parameters=parameters,
            return_type=return_type,
        )

    def _parse_function_header(self):
        """Parse `name type_params? '(' params? ')' ('->' type)?`."""
        name = self._expect(TokenType.IDENTIFIER, "function name").value
        type_params = self._parse_type_params()

        self._expect(TokenType.LPAREN, "'('")
        parameters = self._parse_comma_list(self._parse_parameter, TokenType.RPAREN)
        self._expect(TokenType.RPAREN, "')'")

        return_type = None
        if self._match(TokenType.ARROW):
            return_type = self._parse_type()
        return name, type_params, parameters, return_type

    def _parse_type_params(self) -> list[str]:
        """Parse an optional `(type T, U)` list of generic parameter names."""
        if not (self._check(TokenType.LPAREN) and self._peek(1).type == TokenType.TYPE):
            return []
        self._advance()
        self._advance()

        def type_param() -> str:
            return self._expect(TokenType.IDENTIFIER, "type parameter name").value

        names = [type_param()]
        if self._match(TokenType.COMMA):
            names.extend(self._parse_comma_list(type_param, TokenType.RPAREN))
        self._expect(TokenType.RPAREN, "')'")
        return names

    def _parse_parameter(self) -> Parameter:
        token = self._expect(TokenType.IDENTIFIER, "parameter name")
        self._expect(TokenType.COLON, "':'")
        param_type = self._parse_type()
        return Parameter(location=token.location, name=token.value, param_type=param_type)

    # =========================================================================
    # Type Annotations
    # =========================================================================

    def _parse_type(self) -> TypeAnnotation:
        token = self._peek()

        if token.type == TokenType.LBRACKET:
            self._advance()
            element = self._parse_type()
            self._expect(TokenType.SEMICOLON, "';' in array type")
            length_token = self._expect(TokenType.INTEGER, "array length")
            if length_token.value <= 0:
                raise ParseError(
                    "array length must be greater than zero",
                    length_token.location,
                    source_line=self._get_source_line(length_token.line),
                )
            self._expect(TokenType.RBRACKET, "']'")
            return ArrayTypeAnnotation(
                location=token.location,
                element=element,
                length=length_token.value,
            )

        if token.type == TokenType.FN:
            self._advance()
            self._expect(TokenType.LPAREN, "'('")
            params = self._parse_comma_list(self._parse_type, TokenType.RPAREN)
            self._expect(TokenType.RPAREN, "')'")
            return_type = None
            if self._match(TokenType.ARROW):
                return_type = self._parse_type()
            return FunctionTypeAnnotation(
                location=token.location,
                params=params,
                return_type=return_type,
            )

        if token.type == TokenType.IDENTIFIER:
            path = self._parse_path()
            return NamedTypeAnnotation(
                location=token.location,
                path=path,
                type_args=self._parse_type_args(),
            )

        raise self._unexpected("type")

    def _parse_type_args(self) -> list[TypeAnnotation]:
        """Parse an optional `(type A, B)` list of type arguments."""
        if not (self._check(TokenType.LPAREN) and self._peek(1).type == TokenType.TYPE):
            return []
        self._advance()
        self._advance()
        args = [self._parse_type()]
        if self._match(TokenType.COMMA):
            args.extend(self._parse_comma_list(self._parse_type, TokenType.RPAREN))
        self._expect(TokenType.RPAREN, "')'")
        return args

    def _parse_path(self) -> ModulePath:
        segments = [self._expect(TokenType.IDENTIFIER, "name").value]
        while self._match(TokenType.COLON_COLON):
            segments.append(self._expect(TokenType.IDENTIFIER, "name after '::'").value)
        return ModulePath(tuple(segments))

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_block(self) -> BlockStatement:
        location = self._peek().location
        self._expect(TokenType.LBRACE, "'{'")

        statements = []
        while not self._check(TokenType.RBRACE) and not self._at_end():
            statements.append(self._parse_statement())

        self._expect(TokenType.RBRACE, "'}'")
        return BlockStatement(location=location, statements=statements)

    def _parse_statement(self) -> Statement:
        token = self._peek()

        if token.type == TokenType.LET:
            return self._parse_let_statement()
        if token.type == TokenType.IF:
            return self._parse_if_statement()
        if token.type == TokenType.WHILE:
            self._advance()
            condition = self._parse_condition()
            body = self._parse_block()
            return WhileStatement(location=token.location, condition=condition, body=body)
        if token.type == TokenType.RETURN:
            self._advance()
            value = None
            if not self._check(TokenType.SEMICOLON):
                value = self._parse_expression()
            self._expect(TokenType.SEMICOLON, "';'")
            return ReturnStatement(location=token.location, value=value)
        if token.type == TokenType.BREAK:
            self._advance()
            self._expect(TokenType.SEMICOLON, "';'")
            return BreakStatement(location=token.location)
        if token.type == TokenType.CONTINUE:
            self._advance()
            self._expect(TokenType.SEMICOLON, "';'")
            return ContinueStatement(location=token.location)
        if token.type == TokenType.LBRACE:
            return self._parse_block()

        return self._parse_expression_or_assignment()

    def _parse_let_statement(self) -> LetStatement:
        location = self._advance().location
        name = self._expect(TokenType.IDENTIFIER, "binding name").value
        self._expect(TokenType.COLON, "':' and a type")
        var_type = self._parse_type()
        self._expect(TokenType.ASSIGN, "'='")
        initializer = self._parse_expression()
        self._expect(TokenType.SEMICOLON, "';'")
        return LetStatement(
            location=location,
            name=name,
            var_type=var_type,
            initializer=initializer,
        )

    def _parse_if_statement(self) -> IfStatement:
        location = self._advance().location
        branches = [IfBranch(location=location, condition=self._parse_condition(), body=self._parse_block())]

        while self._check(TokenType.ELIF):
            elif_location = self._advance().location
            condition = self._parse_condition()
            branches.append(IfBranch(location=elif_location, condition=condition, body=self._parse_block()))

        else_body = None
        if self._match(TokenType.ELSE):
            else_body = self._parse_block()

        return IfStatement(location=location, branches=branches, else_body=else_body)

    def _parse_condition(self) -> Expression:
        saved = self._no_struct_init
        self._no_struct_init = True
        try:
            return self._parse_expression()
        finally:
            self._no_struct_init = saved

    def _parse_expression_or_assignment(self) -> Statement:
        """
        Parse `expr ';'` or `access_path '=' expr ';'`.

        The left side is parsed as an expression first; an `=` after it
        turns the statement into an assignment, which is only legal when
        that expression is a plain binding or a field chain.
        """
        start = self._peek()
        expression = self._parse_expression()

        if self._check(TokenType.ASSIGN):
            if isinstance(expression, BindingExpression) and not expression.path.is_qualified:
                target, fields = expression.path.name, []
            elif isinstance(expression, FieldAccessExpression):
                target, fields = expression.root, list(expression.fields)
            else:
                raise self._unexpected("';' (only a binding or field can be assigned)")
            self._advance()
            value = self._parse_expression()
            self._expect(TokenType.SEMICOLON, "';'")
            return AssignmentStatement(
                location=start.location,
                target=target,
                fields=fields,
                value=value,
            )

        self._expect(TokenType.SEMICOLON, "';'")
        return ExpressionStatement(location=start.location, expression=expression)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _parse_expression(self) -> Expression:
        return self._parse_binary(
            self._parse_equality,
            {
                TokenType.AND: BinaryOperator.LOGICAL_AND,
                TokenType.OR: BinaryOperator.LOGICAL_OR,
            },
        )

    def _parse_equality(self) -> Expression:
        return self._parse_binary(
            self._parse_relational,
            {
                TokenType.EQ: BinaryOperator.EQUAL,
                TokenType.NE: BinaryOperator.NOT_EQUAL,
            },
        )

    def _parse_relational(self) -> Expression:
        return self._parse_binary(
            self._parse_additive,
            {
                TokenType.LT: BinaryOperator.LESS,
                TokenType.LE: BinaryOperator.LESS_EQ,
                TokenType.GT: BinaryOperator.GREATER,
                TokenType.GE: BinaryOperator.GREATER_EQ,
            },
        )

    def _parse_additive(self) -> Expression:
        return self._parse_binary(
            self._parse_multiplicative,
            {
                TokenType.PLUS: BinaryOperator.ADD,
                TokenType.MINUS: BinaryOperator.SUBTRACT,
            },
        )

    def _parse_multiplicative(self) -> Expression:
        return self._parse_binary(
            self._parse_unary,
            {
                TokenType.STAR: BinaryOperator.MULTIPLY,
                TokenType.SLASH: BinaryOperator.DIVIDE,
                TokenType.PERCENT: BinaryOperator.MODULO,
            },
        )

    def _parse_binary(
        self,
        operand_parser: Callable[[], Expression],
        operators: dict[TokenType, BinaryOperator],
    ) -> Expression:
        """
        Generic left-associative binary expression parser.

        Args:
            operand_parser: Parser for the next tighter tier
            operators: Map of token types to binary operators
        """
        expr = operand_parser()

        while self._peek().type in operators:
            op_token = self._advance()
            right = operand_parser()
            expr = BinaryExpression(
                location=expr.location,
                operator=operators[op_token.type],
                left=expr,
                right=right,
            )

        return expr

    def _parse_unary(self) -> Expression:
        token = self._peek()
        if token.type in UNARY_OPERATORS:
            self._advance()
            operand = self._parse_unary()
            return UnaryExpression(
                location=token.location,
                operator=UNARY_OPERATORS[token.type],
                operand=operand,
            )
        if token.type == TokenType.AND:
            # `&&x` in prefix position is a reference to a reference
            self._advance()
            inner_location = SourceLocation(
                token.location.filename,
                token.location.line,
                token.location.column + 1,
            )
            inner = UnaryExpression(
                location=inner_location,
                operator=UnaryOperator.REFERENCE,
                operand=self._parse_unary(),
            )
            return UnaryExpression(
                location=token.location,
                operator=UnaryOperator.REFERENCE,
                operand=inner,
            )
        return self._parse_leaf()

    def _parse_leaf(self) -> Expression:
        token = self._peek()

        if token.type == TokenType.INTEGER:
            self._advance()
            return IntegerLiteral(location=token.location, value=token.value)
        if token.type == TokenType.FLOAT:
            self._advance()
            return FloatLiteral(location=token.location, value=token.value)
        if token.type == TokenType.STRING:
            self._advance()
            return StringLiteral(location=token.location, value=token.value)
        if token.type in (TokenType.TRUE, TokenType.FALSE):
            self._advance()
            return BoolLiteral(location=token.location, value=token.value)

        if token.type == TokenType.LPAREN:
            self._advance()
            inner = self._with_struct_init(self._parse_expression)
            self._expect(TokenType.RPAREN, "')'")
            return ParenExpression(location=token.location, expression=inner)

        if token.type == TokenType.INIT:
            self._advance()
            path = self._parse_path()
            return self._parse_struct_init(token.location, path)

        if token.type == TokenType.IDENTIFIER:
            return self._parse_path_expression()

        raise self._unexpected("expression")

    def _parse_path_expression(self) -> Expression:
        """Parse a call, bare struct-init, field chain or binding."""
        token = self._peek()
        path = self._parse_path()

        if self._check(TokenType.LPAREN):
            type_args = self._parse_type_args()
            self._expect(TokenType.LPAREN, "'(' and call arguments")
            arguments = self._with_struct_init(
                lambda: self._parse_comma_list(self._parse_expression, TokenType.RPAREN)
            )
            self._expect(TokenType.RPAREN, "')'")
            return CallExpression(
                location=token.location,
                callee=path,
                type_args=type_args,
                arguments=arguments,
            )

        if self._check(TokenType.LBRACE) and not self._no_struct_init:
            return self._parse_struct_init(token.location, path)

        if self._check(TokenType.DOT) and not path.is_qualified:
            fields = []
            while self._match(TokenType.DOT):
                fields.append(self._expect(TokenType.IDENTIFIER, "field name").value)
            return FieldAccessExpression(location=token.location, root=path.name, fields=fields)

        return BindingExpression(location=token.location, path=path)

    def _parse_struct_init(self, location: SourceLocation, path: ModulePath) -> StructInitExpression:
        self._expect(TokenType.LBRACE, "'{' to start struct fields")
        fields = self._with_struct_init(
            lambda: self._parse_comma_list(self._parse_field_init, TokenType.RBRACE)
        )
        self._expect(TokenType.RBRACE, "'}'")
        return StructInitExpression(location=location, struct_path=path, fields=fields)

    def _parse_field_init(self) -> FieldInit:
        token = self._expect(TokenType.IDENTIFIER, "field name")
        self._expect(TokenType.COLON, "':'")
        value = self._parse_expression()
        return FieldInit(location=token.location, name=token.value, value=value)

    def _with_struct_init(self, parse: Callable[[], object]):
        """Run parse with bare struct-init re-enabled (inside brackets)."""
        saved = self._no_struct_init
        self._no_struct_init = False
        try:
            return parse()
        finally:
            self._no_struct_init = saved


# =============================================================================
# Convenience Functions
# =============================================================================

def parse_source(source: str, filename: str = "<input>") -> ModuleNode:
    """
    Parse smpl source code into a ModuleNode.

    This is a convenience function that combines lexing and parsing.

    Raises:
        LexError: If the text cannot be tokenized
        ParseError: If the tokens do not form a module
    """
    tokens = list(Lexer(source, filename).tokenize())
    parser = Parser(tokens, filename, source.splitlines())
    return parser.parse()
