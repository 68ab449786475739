"""Turns source text into a list of tokens."""

from __future__ import annotations

import string
from collections.abc import Iterator

from .tokens import Token, TokenKind

_KEYWORDS = {
    "if": TokenKind.IF,
    "fun": TokenKind.FUN,
    "true": TokenKind.TRUE,
    "else": TokenKind.ELSE,
    "None": TokenKind.NONE,
    "while": TokenKind.WHILE,
    "false": TokenKind.FALSE,
    "return": TokenKind.RETURN,
    "global": TokenKind.GLOBAL,
}

_SINGLE_CHAR = {
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    ",": TokenKind.COMMA,
    ":": TokenKind.COLON,
    ";": TokenKind.SEMICOLON,
    ".": TokenKind.DOT,
    "*": TokenKind.MULT,
    "/": TokenKind.DIV,
    "+": TokenKind.ADD,
    "-": TokenKind.SUB,
    "!": TokenKind.BANG,
    "&": TokenKind.AMP,
    "|": TokenKind.BAR,
}

# Characters that may be followed by '=' to form a two-character operator:
# (kind with '=', kind without).
_WITH_EQUALS = {
    "<": (TokenKind.LE, TokenKind.LT),
    ">": (TokenKind.GE, TokenKind.GT),
    "=": (TokenKind.EQEQ, TokenKind.ASSIGN),
}

_DIGITS = frozenset(string.digits)
_IDENT_START = frozenset(string.ascii_letters + "_")
_IDENT_CONTINUE = frozenset(string.ascii_letters + string.digits + "_")
_INLINE_SPACE = frozenset(" \t\f\v")
_VALID_ESCAPES = frozenset('"\\nt')


class Lexer:
    """Lexer over a complete source text.

    Lexical errors do not stop lexing: each one becomes an ERROR token whose
    text is the message, and lexing continues after it.
    """

    def __init__(self, source: str) -> None:
        self._source = source
        self._pos = 0
        self._line = 1
        self._col = 1

    def lex(self) -> list[Token]:
        """Lex the whole source and return its tokens (no EOF token)."""
        self._pos = 0
        self._line = 1
        self._col = 1
        return list(self._tokens())

    # -- internals -------------------------------------------------------

    def _peek(self, offset: int = 0) -> str:
        index = self._pos + offset
        return self._source[index] if index < len(self._source) else ""

    def _step(self, count: int = 1) -> None:
        self._pos += count
        self._col += count

    def _tokens(self) -> Iterator[Token]:
        while True:
            self._skip_ws_and_comments()
            if self._pos >= len(self._source):
                return
            start_line, start_col = self._line, self._col
            c = self._source[self._pos]

            if c == '"':
                yield self._lex_string(start_line, start_col)
            elif c in _DIGITS:
                yield self._lex_while(_DIGITS, start_line, start_col, TokenKind.INT)
            elif c in _IDENT_START:
                yield self._lex_identifier(start_line, start_col)
            elif c in _SINGLE_CHAR:
                self._step()
                yield self._make(_SINGLE_CHAR[c], c, start_line, start_col)
            elif c in _WITH_EQUALS:
                with_eq, without = _WITH_EQUALS[c]
                if self._peek(1) == "=":
                    self._step(2)
                    yield self._make(with_eq, c + "=", start_line, start_col)
                else:
                    self._step()
                    yield self._make(without, c, start_line, start_col)
            else:
                code = ord(c)
                if 32 <= code <= 126:
                    message = f"illegal character '{c}'"
                else:
                    message = f"illegal character 0x{code:X}"
                self._step()
                yield self._make(TokenKind.ERROR, message, start_line, start_col)

    def _make(self, kind: TokenKind, text: str, start_line: int, start_col: int) -> Token:
        return Token(kind, text, start_line, start_col, self._line, self._col)

    def _skip_ws_and_comments(self) -> None:
        source = self._source
        while True:
            while self._pos < len(source):
                c = source[self._pos]
                if c in _INLINE_SPACE:
                    self._step()
                elif c == "\n":
                    self._pos += 1
                    self._newline()
                elif c == "\r":
                    self._pos += 1
                    if self._peek() == "\n":
                        self._pos += 1
                    self._newline()
                else:
                    break

            if source.startswith("//", self._pos):
                self._step(2)
                while self._pos < len(source) and source[self._pos] not in "\r\n":
                    self._step()
                continue
            return

    def _newline(self) -> None:
        self._line += 1
        self._col = 1

    def _lex_while(
        self, allowed: frozenset[str], start_line: int, start_col: int, kind: TokenKind
    ) -> Token:
        start = self._pos
        while self._pos < len(self._source) and self._source[self._pos] in allowed:
            self._step()
        return self._make(kind, self._source[start:self._pos], start_line, start_col)

    def _lex_identifier(self, start_line: int, start_col: int) -> Token:
        token = self._lex_while(_IDENT_CONTINUE, start_line, start_col, TokenKind.IDENTIFIER)
        keyword = _KEYWORDS.get(token.text)
        if keyword is None:
            return token
        return self._make(keyword, token.text, start_line, start_col)

    def _lex_string(self, start_line: int, start_col: int) -> Token:
        unterminated = (
            f"Unterminated string literal starting at line {start_line}, column {start_col}"
        )
        self._step()  # opening quote
        parts = ['"']
        while self._pos < len(self._source):
            c = self._source[self._pos]
            if c in "\r\n":
                return self._make(TokenKind.ERROR, unterminated, start_line, start_col)
            if c == '"':
                self._step()
                parts.append('"')
                return self._make(TokenKind.STRING, "".join(parts), start_line, start_col)
            if c == "\\":
                self._step()
                if self._pos >= len(self._source):
                    return self._make(TokenKind.ERROR, unterminated, start_line, start_col)
                escaped = self._source[self._pos]
                if escaped not in _VALID_ESCAPES:
                    message = (
                        f"Invalid escape sequence '\\\"{escaped}' in string literal "
                        f"starting at line {start_line}, column {start_col}"
                    )
                    return self._make(TokenKind.ERROR, message, start_line, start_col)
                parts.append("\\" + escaped)
                self._step()
                continue
            parts.append(c)
            self._step()
        return self._make(TokenKind.ERROR, unterminated, start_line, start_col)


def tokenize(source: str) -> list[Token]:
    """Lex ``source`` and return its tokens."""
    return Lexer(source).lex()