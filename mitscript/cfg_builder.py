"""Lowers a syntax tree into per-function control-flow graphs of IR."""

from __future__ import annotations

from itertools import chain
from typing import Iterable, Optional

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
    StringConstant,
    UnaryExpression,
    UnOp,
    Variable,
    Visitor,
    WhileLoop,
)
from .cfg import (
    BasicBlock,
    FunctionCFG,
    IRInstr,
    IROp,
    IROperand,
    TerminatorKind,
)
from .interpreter import collect_globals, collect_vars

_BUILTINS = frozenset({"print", "input", "intcast"})

_BINARY_IR = {
    BinOp.ADD: IROp.ADD,
    BinOp.SUB: IROp.SUB,
    BinOp.MUL: IROp.MUL,
    BinOp.DIV: IROp.DIV,
    BinOp.EQ: IROp.CMP_EQ,
    BinOp.LT: IROp.CMP_LT,
    BinOp.GT: IROp.CMP_GT,
    BinOp.LTE: IROp.CMP_LE,
    BinOp.GTE: IROp.CMP_GE,
    BinOp.AND: IROp.AND,
    BinOp.OR: IROp.OR,
}


class CFGBuilder(Visitor):
    """Builds the CFG of one function; nested functions get their own builders.

    ``parent_locals`` holds the names local to enclosing functions, which a
    nested function captures as free variables; it is ``None`` at module level.
    """

    def __init__(
        self,
        cfg: Optional[FunctionCFG] = None,
        parent_locals: Optional[frozenset[str]] = None,
        module_scope: bool = False,
    ) -> None:
        self.cfg = cfg if cfg is not None else FunctionCFG()
        self.parent_locals = parent_locals
        self.is_module_scope = module_scope
        self.local_slots: dict[str, int] = {}
        self.func_globals: set[str] = set()
        self.captured_free_vars: set[str] = set()
        self._noted_names: set[str] = set()
        self._by_ref: set[str] = set()
        self._curr: Optional[BasicBlock] = None
        self._next_vreg = 0

    def build_module(self, program: Program) -> FunctionCFG:
        """Lower a whole program as the module-level function and return its CFG."""
        self.visit(program)
        return self.cfg

    # -- scope bookkeeping -----------------------------------------------

    def _note_name(self, name: str) -> None:
        if name and name not in self._noted_names:
            self._noted_names.add(name)
            self.cfg.names.append(name)

    def _in_parent_locals(self, name: str) -> bool:
        return self.parent_locals is not None and name in self.parent_locals

    def _is_global_reference(self, name: str) -> bool:
        if name in self.func_globals:
            return True
        if name in self.local_slots or self._in_parent_locals(name):
            return False
        return self.is_module_scope or name in _BUILTINS

    def _ensure_local(self, name: str) -> int:
        slot = self.local_slots.get(name)
        if slot is not None:
            return slot
        slot = len(self.cfg.params) + len(self.cfg.locals)
        self.cfg.locals.append(name)
        self.local_slots[name] = slot
        return slot

    def _ensure_by_ref(self, name: str) -> None:
        if name not in self._by_ref:
            self._by_ref.add(name)
            self.cfg.by_ref_locals.append(name)

    def _start_function(self, params: Iterable[str]) -> None:
        self.cfg.entry = 0
        self.cfg.params = list(params)
        self.local_slots = {}
        for index, param in enumerate(self.cfg.params):
            self.local_slots.setdefault(param, index)
        self._noted_names.clear()
        self._by_ref.clear()
        self._curr = self.cfg.add_block()

    # -- emission --------------------------------------------------------

    @property
    def _block(self) -> BasicBlock:
        assert self._curr is not None
        return self._curr

    def _new_vreg(self) -> int:
        reg = self._next_vreg
        self._next_vreg += 1
        return reg

    def _emit_valued(self, op: IROp, inputs: list[IROperand]) -> int:
        reg = self._new_vreg()
        self._block.code.append(IRInstr(op, inputs, IROperand.vreg(reg)))
        return reg

    def _emit(self, op: IROp, inputs: Optional[list[IROperand]] = None) -> None:
        self._block.code.append(IRInstr(op, inputs or [], None))

    @staticmethod
    def _end_with_jump(source: BasicBlock, target: BasicBlock) -> None:
        source.term.kind = TerminatorKind.JUMP
        source.term.target = target.id
        source.successors = [target.id]
        target.predecessors.append(source.id)

    def _end_with_cond(self, cond: int, if_true: BasicBlock, if_false: BasicBlock) -> None:
        block = self._block
        block.term.kind = TerminatorKind.COND_JUMP
        block.term.condition = cond
        block.term.true_target = if_true.id
        block.term.false_target = if_false.id
        block.successors = [if_true.id, if_false.id]
        if_true.predecessors.append(block.id)
        if_false.predecessors.append(block.id)

    def _end_with_return(self, value: Optional[int]) -> None:
        self._block.term.kind = TerminatorKind.RETURN
        self._block.term.condition = -1 if value is None else value

    def _has_open_terminator(self) -> bool:
        return any(
            not block.post_return and block.term.is_open for block in self.cfg.blocks
        )

    def _close_with_none_return(self) -> None:
        if self._has_open_terminator():
            reg = self._emit_valued(IROp.LOAD_CONST, [IROperand.none()])
            self._end_with_return(reg)

    def _eval(self, expr: Expression) -> int:
        return self.visit(expr)

    # -- statements ------------------------------------------------------

    def visit_Program(self, node: Program) -> None:
        self._start_function([])
        self.is_module_scope = True
        for statement in node.statements:
            self.visit(statement)
        self._close_with_none_return()
        self.cfg.exit = self._curr.id if self._curr is not None else 0

    def visit_Block(self, node: Block) -> None:
        for statement in node.statements:
            self.visit(statement)

    def visit_Assignment(self, node: Assignment) -> None:
        target = node.target

        if isinstance(target, FieldDereference):
            obj = self._eval(target.obj)
            rhs = self._eval(node.value)
            self._note_name(target.field_name)
            self._emit(
                IROp.STORE_FIELD,
                [IROperand.vreg(obj), IROperand.name(target.field_name), IROperand.vreg(rhs)],
            )
            return

        if isinstance(target, IndexExpression):
            base = self._eval(target.base)
            index = self._eval(target.index)
            rhs = self._eval(node.value)
            self._emit(
                IROp.STORE_INDEX,
                [IROperand.vreg(base), IROperand.vreg(index), IROperand.vreg(rhs)],
            )
            return

        if not isinstance(target, Variable):
            return

        name = target.name
        is_global = self.is_module_scope or name in self.func_globals
        if is_global:
            self._note_name(name)

        rhs = self._eval(node.value)

        if is_global:
            self._emit(IROp.STORE_GLOBAL, [IROperand.name(name), IROperand.vreg(rhs)])
        elif name in self.local_slots:
            self._ensure_by_ref(name)
            self._emit(
                IROp.STORE_LOCAL,
                [IROperand.local(self.local_slots[name]), IROperand.vreg(rhs)],
            )
        elif self._in_parent_locals(name):
            self.captured_free_vars.add(name)
            self._note_name(name)
            self._emit(IROp.DUP)
            self._emit(IROp.STORE_LOCAL, [IROperand.name(name), IROperand.vreg(rhs)])
        else:
            slot = self._ensure_local(name)
            self._ensure_by_ref(name)
            self._emit(IROp.STORE_LOCAL, [IROperand.local(slot), IROperand.vreg(rhs)])

    def visit_IfStatement(self, node: IfStatement) -> None:
        cond = self._eval(node.condition)

        then_block = self.cfg.add_block()
        else_block = self.cfg.add_block() if node.else_block is not None else None
        join_block = self.cfg.add_block()

        self._end_with_cond(cond, then_block, else_block or join_block)

        self._curr = then_block
        for statement in node.then_block.statements:
            self.visit(statement)
        if self._block.term.is_open:
            self._end_with_jump(self._block, join_block)

        if else_block is not None and node.else_block is not None:
            self._curr = else_block
            for statement in node.else_block.statements:
                self.visit(statement)
            else_returns = else_block.term.kind is TerminatorKind.RETURN
            if not else_returns and self._block.term.is_open:
                self._end_with_jump(self._block, join_block)

        self._curr = join_block

    def visit_WhileLoop(self, node: WhileLoop) -> None:
        head = self.cfg.add_block()
        body = self.cfg.add_block()
        exit_block = self.cfg.add_block()

        self._end_with_jump(self._block, head)

        self._curr = head
        cond = self._eval(node.condition)
        self._end_with_cond(cond, body, exit_block)

        self._curr = body
        for statement in node.body.statements:
            self.visit(statement)
        if self._block.term.is_open:
            self._end_with_jump(self._block, head)

        self._curr = exit_block

    def visit_Return(self, node: Return) -> None:
        value = self._eval(node.value) if node.value is not None else None
        returning = self._block
        self._end_with_return(value)
        self._curr = self.cfg.add_block()
        self._curr.post_return = True
        returning.successors.append(self._curr.id)
        self._curr.predecessors.append(returning.id)

    def visit_Global(self, node: Global) -> None:
        self.func_globals.add(node.name)
        self._note_name(node.name)

    def visit_CallStatement(self, node: CallStatement) -> None:
        self._eval(node.call)
        self._emit(IROp.POP)

    # -- expressions -----------------------------------------------------

    def visit_IntegerConstant(self, node: IntegerConstant) -> int:
        return self._emit_valued(IROp.LOAD_CONST, [IROperand.const_int(node.value)])

    def visit_NoneConstant(self, node: NoneConstant) -> int:
        return self._emit_valued(IROp.LOAD_CONST, [IROperand.none()])

    def visit_StringConstant(self, node: StringConstant) -> int:
        return self._emit_valued(IROp.LOAD_CONST, [IROperand.const_str(node.value)])

    def visit_BooleanConstant(self, node: BooleanConstant) -> int:
        return self._emit_valued(IROp.LOAD_CONST, [IROperand.const_bool(node.value)])

    def visit_Variable(self, node: Variable) -> int:
        name = node.name
        is_local_here = name in self.local_slots
        is_global = self._is_global_reference(name)

        if not is_global and not is_local_here and self._in_parent_locals(name):
            self.captured_free_vars.add(name)

        if is_global:
            self._note_name(name)
            return self._emit_valued(IROp.LOAD_GLOBAL, [IROperand.name(name)])
        if is_local_here:
            return self._emit_valued(
                IROp.LOAD_LOCAL, [IROperand.local(self.local_slots[name])]
            )
        self._note_name(name)
        return self._emit_valued(IROp.LOAD_LOCAL, [IROperand.name(name)])

    def visit_UnaryExpression(self, node: UnaryExpression) -> int:
        value = self._eval(node.operand)
        op = IROp.NEG if node.op is UnOp.NEG else IROp.NOT
        return self._emit_valued(op, [IROperand.vreg(value)])

    def visit_BinaryExpression(self, node: BinaryExpression) -> int:
        op = _BINARY_IR[node.op]
        lhs = self._eval(node.left)
        rhs = self._eval(node.right)
        return self._emit_valued(op, [IROperand.vreg(lhs), IROperand.vreg(rhs)])

    def visit_Record(self, node: Record) -> int:
        record = self._emit_valued(IROp.MAKE_RECORD, [])
        for key, expr in node.fields:
            self._emit(IROp.DUP)
            value = self._eval(expr)
            self._note_name(key)
            self._emit(
                IROp.STORE_FIELD,
                [IROperand.vreg(record), IROperand.name(key), IROperand.vreg(value)],
            )
        return record

    def visit_FieldDereference(self, node: FieldDereference) -> int:
        obj = self._eval(node.obj)
        self._note_name(node.field_name)
        return self._emit_valued(
            IROp.LOAD_FIELD, [IROperand.vreg(obj), IROperand.name(node.field_name)]
        )

    def visit_IndexExpression(self, node: IndexExpression) -> int:
        base = self._eval(node.base)
        index = self._eval(node.index)
        return self._emit_valued(
            IROp.LOAD_INDEX, [IROperand.vreg(base), IROperand.vreg(index)]
        )

    def visit_Call(self, node: Call) -> int:
        callee = self._eval(node.callee)
        inputs = [IROperand.vreg(callee)]
        inputs.extend(IROperand.vreg(self._eval(arg)) for arg in node.arguments)
        return self._emit_valued(IROp.CALL, inputs)

    def visit_FunctionDeclaration(self, node: FunctionDeclaration) -> int:
        visible = chain(
            self.local_slots,
            self._by_ref,
            self.captured_free_vars,
            self.parent_locals or (),
        )
        parent_locals = frozenset(n for n in visible if n not in self.func_globals)

        child = FunctionCFG()
        sub = CFGBuilder(child, parent_locals, module_scope=False)
        sub.func_globals.update(collect_globals(node.body))
        sub._start_function(node.args)

        new_locals = collect_vars(node.body) - sub.func_globals - set(node.args)
        for name in sorted(new_locals):
            sub._ensure_local(name)

        for statement in node.body.statements:
            sub.visit(statement)
        sub._close_with_none_return()

        child.free_vars = sorted(
            fv for fv in sub.captured_free_vars if fv not in sub.func_globals
        )

        for fv in child.free_vars:
            if fv in self.local_slots:
                self._ensure_by_ref(fv)

        if self.parent_locals is not None:
            self.captured_free_vars.update(
                fv for fv in child.free_vars if fv in self.parent_locals
            )

        child_index = len(self.cfg.children)
        self.cfg.children.append(child)

        inputs = [IROperand.name(fv) for fv in child.free_vars]
        inputs.append(IROperand.const_int(child_index))
        return self._emit_valued(IROp.ALLOC_CLOSURE, inputs)


def build_cfg(program: Program) -> FunctionCFG:
    """Build the module-level CFG (with nested function CFGs) for ``program``."""
    return CFGBuilder().build_module(program)