"""Syntax tree nodes and the visitor that walks them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class SourceSpan:
    """A source range, 1-based, end column exclusive."""

    start_line: int
    start_col: int
    end_line: int
    end_col: int


class BinOp(Enum):
    """Binary operators, valued by their source symbol."""

    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    EQ = "=="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    AND = "&"
    OR = "|"


class UnOp(Enum):
    """Unary operators, valued by their source symbol."""

    NEG = "-"
    NOT = "!"


class Visitor:
    """Base visitor: ``visit(node)`` calls ``visit_<NodeClassName>(node)``."""

    def visit(self, node: Node) -> Any:
        method = getattr(self, f"visit_{type(node).__name__}", None)
        if method is None:
            raise TypeError(f"{type(self).__name__} cannot visit {type(node).__name__}")
        return method(node)


@dataclass
class Node:
    """Base of all syntax tree nodes."""

    span: Optional[SourceSpan] = field(default=None, kw_only=True, compare=False, repr=False)

    def accept(self, visitor: Visitor) -> Any:
        """Let ``visitor`` handle this node and return its result."""
        return visitor.visit(self)


@dataclass
class Statement(Node):
    """Base of statement nodes."""


@dataclass
class Expression(Node):
    """Base of expression nodes."""


@dataclass
class Program(Node):
    """The root of a parsed program."""

    statements: list[Statement] = field(default_factory=list)


@dataclass
class Block(Statement):
    statements: list[Statement] = field(default_factory=list)


@dataclass
class Assignment(Statement):
    target: Expression
    value: Expression


@dataclass
class IfStatement(Statement):
    condition: Expression
    then_block: Block
    else_block: Optional[Block] = None


@dataclass
class Return(Statement):
    value: Optional[Expression] = None


@dataclass
class Global(Statement):
    name: str


@dataclass
class CallStatement(Statement):
    call: Call


@dataclass
class WhileLoop(Statement):
    condition: Expression
    body: Block


@dataclass
class Variable(Expression):
    name: str


@dataclass
class BinaryExpression(Expression):
    op: BinOp
    left: Expression
    right: Expression


@dataclass
class UnaryExpression(Expression):
    op: UnOp
    operand: Expression


@dataclass
class FieldDereference(Expression):
    obj: Expression
    field_name: str


@dataclass
class IndexExpression(Expression):
    base: Expression
    index: Expression


@dataclass
class Call(Expression):
    callee: Expression
    arguments: list[Expression] = field(default_factory=list)


@dataclass
class FunctionDeclaration(Expression):
    args: list[str]
    body: Block
    name: str = ""


@dataclass
class Record(Expression):
    fields: list[tuple[str, Expression]] = field(default_factory=list)


@dataclass
class IntegerConstant(Expression):
    value: int


@dataclass
class StringConstant(Expression):
    value: str


@dataclass
class BooleanConstant(Expression):
    value: bool


@dataclass
class NoneConstant(Expression):
    pass