"""Control-flow graph structures for the intermediate representation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional


class IROp(Enum):
    """IR operations, valued by their display name."""

    LOAD_CONST = "LoadConst"
    LOAD_LOCAL = "LoadLocal"
    STORE_LOCAL = "StoreLocal"
    LOAD_GLOBAL = "LoadGlobal"
    STORE_GLOBAL = "StoreGlobal"
    ADD = "Add"
    SUB = "Sub"
    MUL = "Mul"
    DIV = "Div"
    CMP_EQ = "CmpEq"
    CMP_LT = "CmpLt"
    CMP_GT = "CmpGt"
    CMP_LE = "CmpLe"
    CMP_GE = "CmpGe"
    NEG = "Neg"
    NOT = "Not"
    LOAD_FIELD = "LoadField"
    STORE_FIELD = "StoreField"
    LOAD_INDEX = "LoadIndex"
    STORE_INDEX = "StoreIndex"
    CALL = "Call"
    POP = "Pop"
    DUP = "Dup"
    AND = "And"
    OR = "Or"
    COND_JUMP = "CondJump"
    JUMP = "Jump"
    RETURN = "Return"
    MAKE_RECORD = "MakeRecord"
    ALLOC_CLOSURE = "AllocClosure"


class OperandKind(Enum):
    """What an IR operand refers to."""

    VREG = auto()
    LOCAL = auto()
    NAME = auto()
    CONSTI = auto()
    CONSTS = auto()
    CONSTB = auto()
    NONE = auto()


@dataclass(frozen=True)
class IROperand:
    """An operand: ``i`` holds registers, slots, ints and bools; ``s`` names and strings."""

    kind: OperandKind = OperandKind.NONE
    i: int = 0
    s: str = ""

    @classmethod
    def vreg(cls, reg: int) -> IROperand:
        return cls(OperandKind.VREG, reg)

    @classmethod
    def local(cls, slot: int) -> IROperand:
        return cls(OperandKind.LOCAL, slot)

    @classmethod
    def name(cls, name: str) -> IROperand:
        return cls(OperandKind.NAME, 0, name)

    @classmethod
    def const_int(cls, value: int) -> IROperand:
        return cls(OperandKind.CONSTI, value)

    @classmethod
    def const_str(cls, value: str) -> IROperand:
        return cls(OperandKind.CONSTS, 0, value)

    @classmethod
    def const_bool(cls, value: bool) -> IROperand:
        return cls(OperandKind.CONSTB, int(bool(value)))

    @classmethod
    def none(cls) -> IROperand:
        return cls(OperandKind.NONE)


@dataclass
class IRInstr:
    """One IR instruction with its inputs and optional output register."""

    op: IROp
    inputs: list[IROperand] = field(default_factory=list)
    output: Optional[IROperand] = None


class TerminatorKind(Enum):
    """How a basic block ends."""

    JUMP = auto()
    COND_JUMP = auto()
    RETURN = auto()


@dataclass
class Terminator:
    """A block terminator; ``condition`` doubles as the returned register."""

    kind: TerminatorKind = TerminatorKind.JUMP
    target: int = -1
    condition: int = -1
    true_target: int = -1
    false_target: int = -1

    @property
    def is_open(self) -> bool:
        """Whether this is a jump that has not been given a target yet."""
        return self.kind is TerminatorKind.JUMP and self.target == -1


@dataclass
class BasicBlock:
    """A straight-line run of instructions ending in a terminator."""

    id: int
    code: list[IRInstr] = field(default_factory=list)
    term: Terminator = field(default_factory=Terminator)
    successors: list[int] = field(default_factory=list)
    predecessors: list[int] = field(default_factory=list)
    post_return: bool = False


@dataclass
class FunctionCFG:
    """The control-flow graph of one function and its nested functions."""

    params: list[str] = field(default_factory=list)
    locals: list[str] = field(default_factory=list)
    free_vars: list[str] = field(default_factory=list)
    by_ref_locals: list[str] = field(default_factory=list)
    names: list[str] = field(default_factory=list)
    entry: int = 0
    exit: int = -1
    blocks: list[BasicBlock] = field(default_factory=list)
    children: list[FunctionCFG] = field(default_factory=list)

    def add_block(self) -> BasicBlock:
        """Append a new empty block whose id is its position and return it."""
        block = BasicBlock(id=len(self.blocks))
        self.blocks.append(block)
        return block