"""Token kinds and the token record produced by the lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenKind(Enum):
    """Every kind of token the lexer can produce."""

    # Literals
    INT = auto()
    STRING = auto()
    IDENTIFIER = auto()
    EOF_TOKEN = auto()

    # Keywords
    GLOBAL = auto()
    IF = auto()
    ELSE = auto()
    WHILE = auto()
    RETURN = auto()
    FUN = auto()
    TRUE = auto()
    FALSE = auto()
    NONE = auto()

    # Punctuation and delimiters
    LBRACE = auto()
    RBRACE = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LPAREN = auto()
    RPAREN = auto()
    COMMA = auto()
    COLON = auto()
    SEMICOLON = auto()
    DOT = auto()
    ASSIGN = auto()

    # Operators
    MULT = auto()
    DIV = auto()
    ADD = auto()
    SUB = auto()
    LT = auto()
    LE = auto()
    GE = auto()
    GT = auto()
    EQEQ = auto()
    BANG = auto()
    AMP = auto()
    BAR = auto()

    # Lexical error; the token text holds the message.
    ERROR = auto()


@dataclass(frozen=True)
class Token:
    """A lexed token with its 1-based start and end positions.

    The end column points one past the last character of the token.
    """

    kind: TokenKind
    text: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    @property
    def kind_name(self) -> str:
        """The name of the token's kind, e.g. ``"IDENTIFIER"``."""
        return self.kind.name

    @property
    def is_error(self) -> bool:
        """Whether this token reports a lexical error."""
        return self.kind is TokenKind.ERROR