"""Human-readable dump of a function's control-flow graph."""

from __future__ import annotations

from typing import Iterable

from .cfg import BasicBlock, FunctionCFG, IROperand, OperandKind, Terminator, TerminatorKind


def _join_list(items: Iterable[object]) -> str:
    return "[" + ", ".join(str(item) for item in items) + "]"


def _operand(operand: IROperand) -> str:
    kind = operand.kind
    if kind is OperandKind.VREG:
        return f"v{operand.i}"
    if kind is OperandKind.LOCAL:
        return f"local#{operand.i}"
    if kind is OperandKind.NAME:
        return f"name({operand.s})"
    if kind is OperandKind.CONSTI:
        return f"const({operand.i})"
    if kind is OperandKind.CONSTS:
        return f'const("{operand.s}")'
    if kind is OperandKind.CONSTB:
        return f"const({'true' if operand.i else 'false'})"
    return "None"


def _terminator(term: Terminator, indent: int) -> str:
    if term.kind is TerminatorKind.JUMP:
        text = f"jump -> {term.target}"
    elif term.kind is TerminatorKind.COND_JUMP:
        text = f"cond v{term.condition} ? {term.true_target} : {term.false_target}"
    else:
        text = f"return v{term.condition}" if term.condition >= 0 else "return void"
    return f"{' ' * indent}terminator: {text}"


def _block_lines(block: BasicBlock, indent: int) -> list[str]:
    ind = " " * indent
    header = f"{ind}block #{block.id}"
    if block.post_return:
        header += " (post-return)"
    lines = [header]
    if block.predecessors:
        lines.append(f"{ind}  preds: {_join_list(block.predecessors)}")
    if block.successors:
        lines.append(f"{ind}  succs: {_join_list(block.successors)}")
    if not block.code:
        lines.append(f"{ind}  <no instructions>")
    for instr in block.code:
        line = f"{ind}  {instr.op.value}"
        if instr.inputs:
            line += " [" + ", ".join(_operand(x) for x in instr.inputs) + "]"
        if instr.output is not None:
            line += f" -> {_operand(instr.output)}"
        lines.append(line)
    lines.append(_terminator(block.term, indent + 2))
    return lines


def _cfg_lines(fn: FunctionCFG, indent: int) -> list[str]:
    ind = " " * indent
    lines = [f"{ind}FunctionCFG"]
    for label, values in (
        ("params", fn.params),
        ("locals", fn.locals),
        ("free_vars", fn.free_vars),
        ("byref_locals", fn.by_ref_locals),
        ("names", fn.names),
    ):
        lines.append(f"{ind}  {label}: {_join_list(values)}")
    lines.append(f"{ind}  entry: {fn.entry}")
    lines.append(f"{ind}  exit: {fn.exit}")
    lines.append(f"{ind}  blocks:")
    if not fn.blocks:
        lines.append(f"{ind}    <no blocks>")
    for block in fn.blocks:
        lines.extend(_block_lines(block, indent + 4))
    if fn.children:
        lines.append(f"{ind}  children:")
        for index, child in enumerate(fn.children):
            lines.append(f"{ind}    [{index}]")
            lines.extend(_cfg_lines(child, indent + 6))
    return lines


def format_cfg(fn: FunctionCFG, indent: int = 0) -> str:
    """Render ``fn`` and its nested functions, one item per line."""
    return "".join(line + "\n" for line in _cfg_lines(fn, indent))