"""Forward constant propagation over a function's control-flow graph."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional, Sequence

from .cfg import FunctionCFG, IROp, IROperand, OperandKind, TerminatorKind

_INT_MODULUS = 1 << 32
_INT_OFFSET = 1 << 31


def _wrap(n: int) -> int:
    """Wrap ``n`` into the signed 32-bit range."""
    return (n + _INT_OFFSET) % _INT_MODULUS - _INT_OFFSET


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


class CPKind(Enum):
    """Lattice positions: unreachable, a known constant, or varying."""

    BOTTOM = auto()
    CONST_INT = auto()
    CONST_BOOL = auto()
    CONST_STRING = auto()
    CONST_NONE = auto()
    TOP = auto()


@dataclass(frozen=True)
class CPValue:
    """A lattice value; ``value`` carries the constant for constant kinds."""

    kind: CPKind
    value: Any = None

    @classmethod
    def bottom(cls) -> CPValue:
        return cls(CPKind.BOTTOM)

    @classmethod
    def top(cls) -> CPValue:
        return cls(CPKind.TOP)

    @classmethod
    def none(cls) -> CPValue:
        return cls(CPKind.CONST_NONE)

    @classmethod
    def cint(cls, value: int) -> CPValue:
        return cls(CPKind.CONST_INT, int(value))

    @classmethod
    def cbool(cls, value: bool) -> CPValue:
        return cls(CPKind.CONST_BOOL, bool(value))

    @classmethod
    def cstr(cls, value: str) -> CPValue:
        return cls(CPKind.CONST_STRING, value)

    @property
    def is_constant(self) -> bool:
        return self.kind not in (CPKind.BOTTOM, CPKind.TOP)


def meet(a: CPValue, b: CPValue) -> CPValue:
    """Combine the values flowing in from two predecessors."""
    if a.kind is CPKind.BOTTOM:
        return b
    if b.kind is CPKind.BOTTOM:
        return a
    if a.kind is CPKind.TOP or b.kind is CPKind.TOP:
        return CPValue.top()
    if a == b:
        return a
    return CPValue.top()


def eval_unary(op: IROp, a: CPValue) -> CPValue:
    """Fold a unary operation on a lattice value."""
    if op is IROp.NEG and a.kind is CPKind.CONST_INT:
        return CPValue.cint(_wrap(-a.value))
    if op is IROp.NOT and a.kind is CPKind.CONST_BOOL:
        return CPValue.cbool(not a.value)
    return CPValue.top()


_INT_FOLDS = {
    IROp.ADD: lambda a, b: CPValue.cint(_wrap(a + b)),
    IROp.SUB: lambda a, b: CPValue.cint(_wrap(a - b)),
    IROp.MUL: lambda a, b: CPValue.cint(_wrap(a * b)),
    IROp.DIV: lambda a, b: (
        CPValue.cint(_wrap(_trunc_div(a, b))) if b != 0 else CPValue.top()
    ),
    IROp.CMP_EQ: lambda a, b: CPValue.cbool(a == b),
    IROp.CMP_LT: lambda a, b: CPValue.cbool(a < b),
    IROp.CMP_GT: lambda a, b: CPValue.cbool(a > b),
    IROp.CMP_LE: lambda a, b: CPValue.cbool(a <= b),
    IROp.CMP_GE: lambda a, b: CPValue.cbool(a >= b),
}

_BOOL_FOLDS = {
    IROp.AND: lambda a, b: CPValue.cbool(a and b),
    IROp.OR: lambda a, b: CPValue.cbool(a or b),
    IROp.CMP_EQ: lambda a, b: CPValue.cbool(a == b),
}


def eval_binary(op: IROp, a: CPValue, b: CPValue) -> CPValue:
    """Fold a binary operation on two lattice values."""
    if not (a.is_constant and b.is_constant):
        return CPValue.top()
    if a.kind is CPKind.CONST_INT and b.kind is CPKind.CONST_INT:
        fold = _INT_FOLDS.get(op)
        if fold is not None:
            return fold(a.value, b.value)
    if a.kind is CPKind.CONST_BOOL and b.kind is CPKind.CONST_BOOL:
        fold = _BOOL_FOLDS.get(op)
        if fold is not None:
            return fold(a.value, b.value)
    return CPValue.top()


_BINARY_OPS = frozenset(
    {
        IROp.ADD, IROp.SUB, IROp.MUL, IROp.DIV,
        IROp.CMP_EQ, IROp.CMP_LT, IROp.CMP_GT, IROp.CMP_LE, IROp.CMP_GE,
        IROp.AND, IROp.OR,
    }
)
_UNARY_OPS = frozenset({IROp.NEG, IROp.NOT})
_NO_DEFINITION = frozenset(
    {
        IROp.STORE_LOCAL, IROp.STORE_GLOBAL, IROp.STORE_FIELD, IROp.STORE_INDEX,
        IROp.POP, IROp.DUP, IROp.COND_JUMP, IROp.JUMP, IROp.RETURN,
    }
)

State = tuple[CPValue, ...]


def _is_vreg(operand: Optional[IROperand]) -> bool:
    return operand is not None and operand.kind is OperandKind.VREG


class ConstantPropagation:
    """Computes a constant per virtual register at each block boundary."""

    def __init__(self, fn: FunctionCFG) -> None:
        self.fn = fn
        self._in: list[State] = []
        self._out: list[State] = []

    def run(self) -> None:
        """Run the worklist analysis to a fixed point."""
        count = self._count_vregs()
        empty: State = (CPValue.bottom(),) * count
        self._in = [empty for _ in self.fn.blocks]
        self._out = [empty for _ in self.fn.blocks]
        if not self.fn.blocks:
            return

        worklist: deque[int] = deque([self.fn.entry])
        while worklist:
            bid = worklist.popleft()
            if not 0 <= bid < len(self.fn.blocks):
                continue
            state_in = self._join_predecessors(bid)
            state_out = self._transfer(bid, state_in)
            if state_out != self._out[bid]:
                self._in[bid] = state_in
                self._out[bid] = state_out
                worklist.extend(self.fn.blocks[bid].successors)

    def in_state(self, block_id: int) -> State:
        """Register values on entry to ``block_id``."""
        return self._in[block_id]

    def out_state(self, block_id: int) -> State:
        """Register values on exit from ``block_id``."""
        return self._out[block_id]

    def rewrite(self) -> None:
        """Turn conditional jumps on a constant boolean into plain jumps."""
        if not self._out:
            self.run()
        for bid, block in enumerate(self.fn.blocks):
            term = block.term
            if term.kind is not TerminatorKind.COND_JUMP:
                continue
            out = self._out[bid]
            if not 0 <= term.condition < len(out):
                continue
            cond = out[term.condition]
            if cond.kind is not CPKind.CONST_BOOL:
                continue
            target = term.true_target if cond.value else term.false_target
            term.kind = TerminatorKind.JUMP
            term.target = target
            term.true_target = -1
            term.false_target = -1
            block.successors = [target] if target >= 0 else []

    # -- internals -------------------------------------------------------

    def _count_vregs(self) -> int:
        highest = -1
        for block in self.fn.blocks:
            for instr in block.code:
                if _is_vreg(instr.output):
                    highest = max(highest, instr.output.i)
                for operand in instr.inputs:
                    if operand.kind is OperandKind.VREG:
                        highest = max(highest, operand.i)
        return highest + 1

    def _join_predecessors(self, bid: int) -> State:
        preds = self.fn.blocks[bid].predecessors
        if not preds:
            return self._in[bid]
        result = list(self._out[preds[0]])
        for pred in preds[1:]:
            other = self._out[pred]
            result = [meet(a, b) for a, b in zip(result, other)]
        return tuple(result)

    def _transfer(self, bid: int, state_in: Sequence[CPValue]) -> State:
        regs = list(state_in)

        def read(operand: IROperand) -> CPValue:
            kind = operand.kind
            if kind is OperandKind.VREG:
                if 0 <= operand.i < len(regs):
                    return regs[operand.i]
                return CPValue.top()
            if kind is OperandKind.CONSTI:
                return CPValue.cint(operand.i)
            if kind is OperandKind.CONSTB:
                return CPValue.cbool(operand.i != 0)
            if kind is OperandKind.CONSTS:
                return CPValue.cstr(operand.s)
            if kind is OperandKind.NONE:
                return CPValue.none()
            return CPValue.top()

        for instr in self.fn.blocks[bid].code:
            op, out = instr.op, instr.output
            if op is IROp.LOAD_CONST:
                if out is not None and len(instr.inputs) == 1:
                    regs[out.i] = read(instr.inputs[0])
            elif op in _BINARY_OPS:
                if _is_vreg(out):
                    if len(instr.inputs) == 2:
                        a, b = (read(x) for x in instr.inputs)
                        regs[out.i] = eval_binary(op, a, b)
                    else:
                        regs[out.i] = CPValue.top()
            elif op in _UNARY_OPS:
                if _is_vreg(out):
                    if len(instr.inputs) == 1:
                        regs[out.i] = eval_unary(op, read(instr.inputs[0]))
                    else:
                        regs[out.i] = CPValue.top()
            elif op in _NO_DEFINITION:
                continue
            elif _is_vreg(out):
                regs[out.i] = CPValue.top()
        return tuple(regs)