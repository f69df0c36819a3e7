"""
smpl Lexer (Tokenizer)
======================

This module converts smpl source text into a stream of tokens for the
parser.

Token Categories
----------------
- Keywords: mod, use, fn, struct, let, if, elif, else, while, return,
  break, continue, init, true, false, type, opaque, builtin
- Identifiers: module, item, field and binding names
- Literals: decimal integers, floats (1.5), strings ("double quoted")
- Operators: + - * / % == != < <= > >= && || ! & =
- Punctuation: ( ) { } [ ] ; , : :: . ->

Keywords and multi-character operators are recognized by maximal munch:
`letter` is an identifier, `let` is a keyword, and `::` is never read as
two colons. A `&&` token in prefix position is split by the parser into two
reference operators.

Comments
--------
- Single-line: // comment
- Multi-line: /* comment */

Escape Sequences
----------------
\\n (newline), \\r (return), \\t (tab), \\\\ (backslash),
\\" (double quote), \\0 (null)

Example Usage
-------------
>>> from smplc.lang.lexer import Lexer
>>> for token in Lexer('let x: int = 42;', "a.smpl").tokenize():
...     print(token)
Token(LET, 'let', 1:1)
Token(IDENTIFIER, 'x', 1:5)
Token(COLON, ':', 1:6)
Token(IDENTIFIER, 'int', 1:8)
Token(ASSIGN, '=', 1:12)
Token(INTEGER, 42, 1:14)
Token(SEMICOLON, ';', 1:16)
Token(EOF, 1:17)
"""

import logging
import math
import string
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional

from smplc.errors import SourceLocation
from smplc.lang.errors import (
    LexError,
    UnterminatedStringError,
    InvalidCharacterError,
)

logger = logging.getLogger(__name__)

# Largest value an smpl `int` can hold (signed 64-bit)
MAX_INTEGER = 2 ** 63 - 1


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types for the smpl language."""

    # === Structural Tokens ===
    EOF = auto()            # End of file

    # === Identifiers and Literals ===
    IDENTIFIER = auto()     # Names
    INTEGER = auto()        # 42
    FLOAT = auto()          # 4.2
    STRING = auto()         # "..."

    # === Keywords - Items ===
    MOD = auto()            # mod
    USE = auto()            # use
    FN = auto()             # fn
    STRUCT = auto()         # struct
    OPAQUE = auto()         # opaque
    BUILTIN = auto()        # builtin
    TYPE = auto()           # type

    # === Keywords - Statements ===
    LET = auto()            # let
    IF = auto()             # if
    ELIF = auto()           # elif
    ELSE = auto()           # else
    WHILE = auto()          # while
    RETURN = auto()         # return
    BREAK = auto()          # break
    CONTINUE = auto()       # continue

    # === Keywords - Expressions ===
    INIT = auto()           # init
    TRUE = auto()           # true
    FALSE = auto()          # false

    # === Arithmetic Operators ===
    PLUS = auto()           # +
    MINUS = auto()          # -
    STAR = auto()           # * (multiply or dereference)
    SLASH = auto()          # /
    PERCENT = auto()        # %

    # === Comparison Operators ===
    EQ = auto()             # ==
    NE = auto()             # !=
    LT = auto()             # <
    GT = auto()             # >
    LE = auto()             # <=
    GE = auto()             # >=

    # === Logical Operators ===
    AND = auto()            # &&
    OR = auto()             # ||
    NOT = auto()            # !
    AMPERSAND = auto()      # & (reference)

    # === Punctuation ===
    ASSIGN = auto()         # =
    ARROW = auto()          # ->
    LPAREN = auto()         # (
    RPAREN = auto()         # )
    LBRACE = auto()         # {
    RBRACE = auto()         # }
    LBRACKET = auto()       # [
    RBRACKET = auto()       # ]
    SEMICOLON = auto()      # ;
    COMMA = auto()          # ,
    COLON = auto()          # :
    COLON_COLON = auto()    # ::
    DOT = auto()            # .


# =============================================================================
# Keyword and Operator Tables
# =============================================================================

KEYWORDS: dict[str, TokenType] = {
    # Items
    "mod": TokenType.MOD,
    "use": TokenType.USE,
    "fn": TokenType.FN,
    "struct": TokenType.STRUCT,
    "opaque": TokenType.OPAQUE,
    "builtin": TokenType.BUILTIN,
    "type": TokenType.TYPE,

    # Statements
    "let": TokenType.LET,
    "if": TokenType.IF,
    "elif": TokenType.ELIF,
    "else": TokenType.ELSE,
    "while": TokenType.WHILE,
    "return": TokenType.RETURN,
    "break": TokenType.BREAK,
    "continue": TokenType.CONTINUE,

    # Expressions
    "init": TokenType.INIT,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
}

# Checked before SINGLE_CHAR_TOKENS so the longest operator wins
TWO_CHAR_TOKENS: dict[str, TokenType] = {
    "==": TokenType.EQ,
    "!=": TokenType.NE,
    "<=": TokenType.LE,
    ">=": TokenType.GE,
    "&&": TokenType.AND,
    "||": TokenType.OR,
    "::": TokenType.COLON_COLON,
    "->": TokenType.ARROW,
}

SINGLE_CHAR_TOKENS: dict[str, TokenType] = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "!": TokenType.NOT,
    "&": TokenType.AMPERSAND,
    "=": TokenType.ASSIGN,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ";": TokenType.SEMICOLON,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    ".": TokenType.DOT,
}


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    Represents a single token from smpl source code.

    Attributes:
        type: The TokenType classification
        value: Decoded value (int/float/str for literals, bool for
            true/false, the lexeme for everything else, None for EOF)
        lexeme: The exact source text of the token
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
    """
    type: TokenType
    value: str | int | float | bool | None
    lexeme: str
    line: int
    column: int
    filename: str

    def __repr__(self) -> str:
        """Format token for debugging output."""
        if self.value is None:
            return f"Token({self.type.name}, {self.line}:{self.column})"
        if isinstance(self.value, (int, float)) and not isinstance(self.value, bool):
            return f"Token({self.type.name}, {self.value}, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)

    def describe(self) -> str:
        """Human-readable form used in parse error messages."""
        if self.type == TokenType.EOF:
            return "end of file"
        return self.lexeme


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes smpl source code.

    The token stream is finite and restartable: every call to tokenize()
    starts again from the first character, so the same Lexer can feed
    several passes.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
    """

    IDENT_START = string.ascii_letters + "_"
    IDENT_CHARS = string.ascii_letters + string.digits + "_"

    ESCAPE_SEQUENCES = {
        "n": "\n",
        "r": "\r",
        "t": "\t",
        "\\": "\\",
        '"': '"',
        "0": "\0",
    }

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename
        self._reset()

    def _reset(self) -> None:
        self._pos = 0
        self._line = 1
        self._column = 1
        self._line_start_pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Yields:
            Token objects, always ending with a single EOF token

        Raises:
            LexError: If the text contains something that is not a token
        """
        self._reset()
        count = 0
        while True:
            self._skip_whitespace_and_comments()
            if self._at_end():
                break
            yield self._scan_token()
            count += 1

        logger.debug(f"{self.filename}: {count} tokens")
        yield self._make_token(TokenType.EOF, None, "", self._line, self._column)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Character at current position + offset, or "" past the end."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line/column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    # =========================================================================
    # Token Creation
    # =========================================================================

    def _make_token(
        self,
        token_type: TokenType,
        value: str | int | float | bool | None,
        lexeme: str,
        start_line: int,
        start_column: int,
    ) -> Token:
        return Token(
            type=token_type,
            value=value,
            lexeme=lexeme,
            line=start_line,
            column=start_column,
            filename=self.filename,
        )

    def _error(
        self,
        message: str,
        line: int,
        column: int,
        hint: Optional[str] = None,
    ) -> LexError:
        """Create a LexError at the given position with source context."""
        return LexError(
            message,
            SourceLocation(self.filename, line, column),
            hint=hint,
            source_line=self._get_current_line(),
        )

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace_and_comments(self) -> None:
        while not self._at_end():
            char = self._peek()

            if char in " \t\n\r":
                self._advance()
                continue

            if char == "/" and self._peek(1) == "/":
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
                continue

            if char == "/" and self._peek(1) == "*":
                self._skip_block_comment()
                continue

            break

    def _skip_block_comment(self) -> None:
        """
        Skip a multi-line comment (/* ... */).

        Raises:
            LexError: If the comment is not terminated
        """
        start_line = self._line
        start_column = self._column
        self._advance()
        self._advance()

        while not self._at_end():
            if self._peek() == "*" and self._peek(1) == "/":
                self._advance()
                self._advance()
                return
            self._advance()

        raise LexError(
            "unterminated multi-line comment",
            SourceLocation(self.filename, start_line, start_column),
            hint="add closing */ to terminate the comment",
        )

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        start_line = self._line
        start_column = self._column
        char = self._peek()

        if char in self.IDENT_START:
            return self._scan_identifier(start_line, start_column)

        if char in string.digits:
            return self._scan_number(start_line, start_column)

        if char == '"':
            return self._scan_string(start_line, start_column)

        return self._scan_operator(start_line, start_column)

    def _scan_identifier(self, start_line: int, start_column: int) -> Token:
        """
        Scan an identifier or keyword.

        The whole run of identifier characters is consumed before the
        keyword table is consulted, so `letter` never splits into `let`.
        """
        start = self._pos
        while self._peek() and self._peek() in self.IDENT_CHARS:
            self._advance()
        name = self.source[start:self._pos]

        token_type = KEYWORDS.get(name, TokenType.IDENTIFIER)
        value: str | bool = name
        if token_type == TokenType.TRUE:
            value = True
        elif token_type == TokenType.FALSE:
            value = False
        return self._make_token(token_type, value, name, start_line, start_column)

    def _scan_number(self, start_line: int, start_column: int) -> Token:
        """
        Scan an integer or float literal.

        A float needs digits on both sides of the dot; `1.x` is the
        integer 1 followed by a field access.
        """
        start = self._pos
        while self._peek() and self._peek() in string.digits:
            self._advance()

        if self._peek() == "." and self._peek(1) and self._peek(1) in string.digits:
            self._advance()
            while self._peek() and self._peek() in string.digits:
                self._advance()
            text = self.source[start:self._pos]
            value = float(text)
            if math.isinf(value):
                raise self._error(f"float literal {text} is out of range", start_line, start_column)
            return self._make_token(TokenType.FLOAT, value, text, start_line, start_column)

        text = self.source[start:self._pos]
        value = int(text)
        if value > MAX_INTEGER:
            raise self._error(
                f"integer literal {text} is out of range",
                start_line,
                start_column,
                hint=f"the largest int is {MAX_INTEGER}",
            )
        return self._make_token(TokenType.INTEGER, value, text, start_line, start_column)

    def _scan_string(self, start_line: int, start_column: int) -> Token:
        start = self._pos
        self._advance()  # opening "

        chars = []
        while not self._at_end():
            char = self._peek()

            if char == '"':
                self._advance()
                return self._make_token(
                    TokenType.STRING,
                    "".join(chars),
                    self.source[start:self._pos],
                    start_line,
                    start_column,
                )

            if char == "\n":
                break

            if char == "\\":
                escape_line = self._line
                escape_column = self._column
                self._advance()
                escaped = self._advance()
                if escaped not in self.ESCAPE_SEQUENCES:
                    raise self._error(
                        f"unknown escape sequence '\\{escaped}'",
                        escape_line,
                        escape_column,
                        hint="supported escapes: \\n \\r \\t \\\\ \\\" \\0",
                    )
                chars.append(self.ESCAPE_SEQUENCES[escaped])
            else:
                chars.append(self._advance())

        raise UnterminatedStringError(
            SourceLocation(self.filename, start_line, start_column),
            self._get_current_line(),
        )

    def _scan_operator(self, start_line: int, start_column: int) -> Token:
        pair = self._peek() + self._peek(1)
        if pair in TWO_CHAR_TOKENS:
            self._advance()
            self._advance()
            return self._make_token(TWO_CHAR_TOKENS[pair], pair, pair, start_line, start_column)

        char = self._peek()
        if char in SINGLE_CHAR_TOKENS:
            self._advance()
            return self._make_token(SINGLE_CHAR_TOKENS[char], char, char, start_line, start_column)

        raise InvalidCharacterError(
            char,
            SourceLocation(self.filename, start_line, start_column),
            self._get_current_line(),
        )

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def _get_current_line(self) -> str:
        """Get the current line of source text for error reporting."""
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end]


def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Tokenize source text into a list ending with EOF."""
    return list(Lexer(source, filename).tokenize())
