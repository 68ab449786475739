"""Recursive-descent parser producing the syntax tree from tokens."""

from __future__ import annotations

from typing import NoReturn, Optional

from .ast import (
    Assignment,
    BinaryExpression,
    BinOp,
    Block,
    BooleanConstant,
    Call,
    CallStatement,
    Expression,
    FieldDereference,
    FunctionDeclaration,
    Global,
    IfStatement,
    IndexExpression,
    IntegerConstant,
    NoneConstant,
    Program,
    Record,
    Return,
    Statement,
    StringConstant,
    UnaryExpression,
    UnOp,
    Variable,
    WhileLoop,
)
from .lexer import tokenize
from .tokens import Token, TokenKind

_INT_MAX = 2**31 - 1

# Higher binds tighter.
_PRECEDENCE = {
    TokenKind.BAR: 1,
    TokenKind.AMP: 2,
    TokenKind.EQEQ: 4,
    TokenKind.LT: 4,
    TokenKind.LE: 4,
    TokenKind.GE: 4,
    TokenKind.GT: 4,
    TokenKind.ADD: 5,
    TokenKind.SUB: 5,
    TokenKind.MULT: 6,
    TokenKind.DIV: 6,
}

# '!' binds tighter than '&' and '|' but looser than comparisons.
_NOT_PRECEDENCE = 3

_BINARY_OPS = {
    TokenKind.ADD: BinOp.ADD,
    TokenKind.SUB: BinOp.SUB,
    TokenKind.MULT: BinOp.MUL,
    TokenKind.DIV: BinOp.DIV,
    TokenKind.LT: BinOp.LT,
    TokenKind.LE: BinOp.LTE,
    TokenKind.GE: BinOp.GTE,
    TokenKind.GT: BinOp.GT,
    TokenKind.EQEQ: BinOp.EQ,
    TokenKind.AMP: BinOp.AND,
    TokenKind.BAR: BinOp.OR,
}

_EOF = Token(TokenKind.EOF_TOKEN, "", 0, 0, 0, 0)

_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"'}


class ParseError(Exception):
    """A syntax error at a given token position."""

    def __init__(self, message: str, line: int, col: int) -> None:
        self.message = message
        self.line = line
        self.col = col
        super().__init__(f"Parser error at line {line}, col {col}: {message}")


def _decode_string_literal(literal: str) -> str:
    """Strip the surrounding quotes of a string token and resolve escapes."""
    if len(literal) < 2:
        return literal
    out: list[str] = []
    chars = iter(literal[1:-1])
    for c in chars:
        if c == "\\":
            nxt = next(chars, None)
            if nxt is None:
                break
            out.append(_ESCAPES.get(nxt, nxt))
        else:
            out.append(c)
    return "".join(out)


class Parser:
    """Parser over a token list; :meth:`parse` yields a :class:`Program`."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = list(tokens)
        self._current = 0

    def parse(self) -> Program:
        """Parse the whole token list into a program."""
        self._current = 0
        program = Program()
        while not self._is_eof():
            program.statements.append(self._statement())
        return program

    # -- token utilities -------------------------------------------------

    def _is_eof(self) -> bool:
        return (
            self._current >= len(self._tokens)
            or self._peek().kind is TokenKind.EOF_TOKEN
        )

    def _peek(self) -> Token:
        if self._current >= len(self._tokens):
            return _EOF
        return self._tokens[self._current]

    def _previous(self) -> Token:
        return self._tokens[self._current - 1]

    def _advance(self) -> None:
        if not self._is_eof():
            self._current += 1

    def _check(self, kind: TokenKind) -> bool:
        return not self._is_eof() and self._peek().kind is kind

    def _match(self, kind: TokenKind) -> bool:
        if self._check(kind):
            self._advance()
            return True
        return False

    def _expect(self, kind: TokenKind, message: str) -> Token:
        if not self._check(kind):
            self._error(message)
        token = self._peek()
        self._advance()
        return token

    def _error(self, message: str) -> NoReturn:
        token = self._peek()
        raise ParseError(message, token.start_line, token.start_col)

    # -- statements ------------------------------------------------------

    def _statement(self) -> Statement:
        if self._check(TokenKind.LBRACE):
            return self._block()
        if self._check(TokenKind.IF):
            return self._if_statement()
        if self._check(TokenKind.WHILE):
            return self._while_loop()
        if self._check(TokenKind.RETURN):
            return self._return_statement()
        if self._check(TokenKind.GLOBAL):
            return self._global_statement()

        if not self._check(TokenKind.IDENTIFIER):
            self._error("Expected a statement")

        target = self._location()

        if self._match(TokenKind.ASSIGN):
            value = self._expression()
            self._expect(TokenKind.SEMICOLON, "Expected ';' after assignment")
            return Assignment(target, value)

        if self._check(TokenKind.LPAREN):
            expr: Expression = target
            while self._check(TokenKind.LPAREN):
                expr = self._call_from_location(expr)
            self._expect(TokenKind.SEMICOLON, "Expected ';' after function call")
            assert isinstance(expr, Call)
            return CallStatement(expr)

        self._error("Expected assignment or function call statement")

    def _block(self) -> Block:
        self._expect(TokenKind.LBRACE, "Expected '{' to start block")
        block = Block()
        while not self._check(TokenKind.RBRACE) and not self._is_eof():
            block.statements.append(self._statement())
        self._expect(TokenKind.RBRACE, "Expected '}' to end block")
        return block

    def _if_statement(self) -> IfStatement:
        self._expect(TokenKind.IF, "Expected 'IF' to start an If statement")
        self._expect(TokenKind.LPAREN, "Expected opening paren, '(' after If")
        condition = self._expression()
        self._expect(
            TokenKind.RPAREN, "Expected closing paren for If statement condition"
        )
        then_block = self._block()
        else_block: Optional[Block] = None
        if self._match(TokenKind.ELSE):
            else_block = self._block()
        return IfStatement(condition, then_block, else_block)

    def _while_loop(self) -> WhileLoop:
        self._expect(TokenKind.WHILE, "Expected 'While' to start a WHILE loop")
        self._expect(TokenKind.LPAREN, "Expected opening paren '(' after While")
        condition = self._expression()
        self._expect(
            TokenKind.RPAREN, "Expected closing paren ')' after while condition"
        )
        return WhileLoop(condition, self._block())

    def _return_statement(self) -> Return:
        self._expect(TokenKind.RETURN, "Expected Return for a return statement")
        value = self._expression()
        self._expect(TokenKind.SEMICOLON, "Expected ';' after return")
        return Return(value)

    def _global_statement(self) -> Global:
        self._expect(TokenKind.GLOBAL, "Expected Global for a global statement")
        name = self._expect(TokenKind.IDENTIFIER, "Expected identifier after 'Global'")
        self._expect(TokenKind.SEMICOLON, "Expected ';' after global")
        return Global(name.text)

    # -- expressions -----------------------------------------------------

    def _expression(self) -> Expression:
        if self._match(TokenKind.FUN):
            return self._function_rest()
        if self._match(TokenKind.LBRACE):
            return self._record_rest()
        return self._binary(1)

    def _binary(self, min_prec: int) -> Expression:
        lhs = self._unary()
        while self._peek().kind in _BINARY_OPS:
            kind = self._peek().kind
            prec = _PRECEDENCE[kind]
            if prec < min_prec:
                break
            self._advance()
            rhs = self._binary(prec + 1)
            lhs = BinaryExpression(_BINARY_OPS[kind], lhs, rhs)
        return lhs

    def _unary(self) -> Expression:
        if self._match(TokenKind.SUB):
            return UnaryExpression(UnOp.NEG, self._unary())
        if self._match(TokenKind.BANG):
            return UnaryExpression(UnOp.NOT, self._binary(_NOT_PRECEDENCE))
        return self._postfix()

    def _postfix(self) -> Expression:
        expr = self._primary()
        while True:
            if self._match(TokenKind.LPAREN):
                if not isinstance(expr, (Variable, FieldDereference, IndexExpression)):
                    self._error(
                        "Callee must be a location (identifier, field, or index)"
                    )
                arguments = self._arguments()
                self._expect(TokenKind.RPAREN, "Expected ')' after arguments")
                expr = Call(expr, arguments)
            elif self._match(TokenKind.DOT):
                name = self._expect(
                    TokenKind.IDENTIFIER, "Expected field name after '.'"
                )
                expr = FieldDereference(expr, name.text)
            elif self._match(TokenKind.LBRACKET):
                index = self._expression()
                self._expect(TokenKind.RBRACKET, "Expected ']' after index expression")
                expr = IndexExpression(expr, index)
            else:
                return expr

    def _primary(self) -> Expression:
        if self._match(TokenKind.INT):
            return self._integer(self._previous())
        if self._match(TokenKind.STRING):
            return StringConstant(_decode_string_literal(self._previous().text))
        if self._match(TokenKind.TRUE):
            return BooleanConstant(True)
        if self._match(TokenKind.FALSE):
            return BooleanConstant(False)
        if self._match(TokenKind.NONE):
            return NoneConstant()
        if self._match(TokenKind.IDENTIFIER):
            return Variable(self._previous().text)
        if self._match(TokenKind.LPAREN):
            expr = self._expression()
            self._expect(
                TokenKind.RPAREN, "Expected closing paren, ')' after expression"
            )
            return expr
        if self._match(TokenKind.LBRACE):
            return self._record_rest()
        if self._match(TokenKind.FUN):
            return self._function_rest()
        self._error("Expected expression")

    @staticmethod
    def _integer(token: Token) -> IntegerConstant:
        value = int(token.text)
        if value > _INT_MAX:
            raise ParseError(
                "Integer literal out of range", token.start_line, token.start_col
            )
        return IntegerConstant(value)

    def _record_rest(self) -> Record:
        record = Record()
        while not self._check(TokenKind.RBRACE):
            key = self._expect(TokenKind.IDENTIFIER, "Expected field name")
            self._expect(TokenKind.COLON, "Expected ':' after field name")
            value = self._expression()
            self._expect(TokenKind.SEMICOLON, "Expected ';' after record field")
            record.fields.append((key.text, value))
        self._expect(TokenKind.RBRACE, "Expected '}' to close record")
        return record

    def _function_rest(self) -> FunctionDeclaration:
        self._expect(TokenKind.LPAREN, "Expected '(' after 'fun'")
        params: list[str] = []
        if not self._check(TokenKind.RPAREN):
            params.append(
                self._expect(TokenKind.IDENTIFIER, "Expected parameter name").text
            )
            while self._match(TokenKind.COMMA):
                if self._check(TokenKind.RPAREN):
                    break
                params.append(
                    self._expect(TokenKind.IDENTIFIER, "Expected parameter name").text
                )
        self._expect(TokenKind.RPAREN, "Expected ')' after parameters")
        body = self._block()
        return FunctionDeclaration(params, body)

    def _arguments(self) -> list[Expression]:
        arguments: list[Expression] = []
        if not self._check(TokenKind.RPAREN):
            arguments.append(self._expression())
            while self._match(TokenKind.COMMA):
                if self._check(TokenKind.RPAREN):
                    break
                arguments.append(self._expression())
        return arguments

    def _location(self) -> Expression:
        name = self._expect(TokenKind.IDENTIFIER, "Expected identifier for location")
        expr: Expression = Variable(name.text)
        while True:
            if self._match(TokenKind.DOT):
                field_name = self._expect(
                    TokenKind.IDENTIFIER, "Expected field name after '.'"
                )
                expr = FieldDereference(expr, field_name.text)
            elif self._match(TokenKind.LBRACKET):
                index = self._expression()
                self._expect(TokenKind.RBRACKET, "Expected ']' after index expression")
                expr = IndexExpression(expr, index)
            else:
                return expr

    def _call_from_location(self, callee: Expression) -> Call:
        self._expect(TokenKind.LPAREN, "Expected '(' after function name")
        arguments = self._arguments()
        self._expect(TokenKind.RPAREN, "Expected ')' after arguments")
        return Call(callee, arguments)


def parse(source: str) -> Program:
    """Lex and parse ``source`` into a program."""
    return Parser(tokenize(source)).parse()