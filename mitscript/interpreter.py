"""Tree-walking interpreter that runs a parsed program directly."""

from __future__ import annotations

import re
import sys
from typing import Optional, TextIO

from .ast import (
    Assignment,
    BinaryExpression,
    Block,
    BooleanConstant,
    Call,
    CallStatement,
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
    Visitor,
    WhileLoop,
)
from .parser import parse
from .values import (
    BooleanValue,
    FunctionValue,
    IllegalCastError,
    IntegerValue,
    NativeFunctionValue,
    NoneValue,
    RecordValue,
    ScriptRuntimeError,
    StringValue,
    UninitializedVariableError,
    Value,
    binary_op,
    to_str,
)

_LEADING_INT = re.compile(r"[ \t\n\r\f\v]*([+-]?\d+)")


def _atoi(text: str) -> int:
    """Parse a leading decimal integer as C's ``atoi`` does; 0 if none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _walk(block: Block, globals_out: set[str], vars_out: set[str]) -> None:
    for statement in block.statements:
        _walk_statement(statement, globals_out, vars_out)


def _walk_statement(statement: Statement, globals_out: set[str], vars_out: set[str]) -> None:
    if isinstance(statement, IfStatement):
        _walk(statement.then_block, globals_out, vars_out)
        if statement.else_block is not None:
            _walk(statement.else_block, globals_out, vars_out)
    elif isinstance(statement, WhileLoop):
        _walk(statement.body, globals_out, vars_out)
    elif isinstance(statement, Block):
        _walk(statement, globals_out, vars_out)
    elif isinstance(statement, Global):
        globals_out.add(statement.name)
    elif isinstance(statement, Assignment) and isinstance(statement.target, Variable):
        vars_out.add(statement.target.name)


def collect_globals(block: Block) -> set[str]:
    """Names declared ``global`` anywhere in ``block`` (nested functions excluded)."""
    found: set[str] = set()
    _walk(block, found, set())
    return found


def collect_vars(block: Block) -> set[str]:
    """Names assigned as plain variables anywhere in ``block`` (nested functions excluded)."""
    found: set[str] = set()
    _walk(block, set(), found)
    return found


class StackFrame:
    """A variable scope linked to the frame it was created in."""

    def __init__(self, parent: Optional[StackFrame] = None) -> None:
        self.parent = parent
        self.global_frame: StackFrame = parent.global_frame if parent else self
        self.frame: dict[str, Value] = {}
        self.global_vars: set[str] = set()

    def set_global(self, name: str) -> None:
        """Declare ``name`` as global in this frame."""
        self.global_vars.add(name)
        if name in self.frame:
            self.global_frame.frame[name] = self.frame.pop(name)
        self.global_frame.frame.setdefault(name, NoneValue())

    def set_variable(self, name: str, value: Value) -> None:
        """Bind ``name`` in this frame, or in the global frame if declared global."""
        target = self.global_frame if name in self.global_vars else self
        target.frame[name] = value

    def lookup(self, name: str) -> Value:
        """Read ``name``, searching enclosing frames outward."""
        frame: Optional[StackFrame] = self
        while frame is not None:
            if name in frame.global_vars and frame.global_frame is not frame:
                frame = frame.global_frame
                continue
            if name in frame.frame:
                return frame.frame[name]
            frame = frame.parent
        raise UninitializedVariableError(f"Variable not found: {name}")


class _ReturnSignal(Exception):
    def __init__(self, value: Value) -> None:
        super().__init__()
        self.value = value


class Interpreter(Visitor):
    """Evaluates a program, reading ``input`` from stdin and printing to stdout."""

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.global_frame = StackFrame()
        self.stack: list[StackFrame] = [self.global_frame]
        self._install_builtins()

    def _install_builtins(self) -> None:
        def builtin_print(args: list[Value]) -> Value:
            self.stdout.write(to_str(args[0]) + "\n")
            return NoneValue()

        def builtin_input(args: list[Value]) -> Value:
            line = self.stdin.readline()
            if line.endswith("\n"):
                line = line[:-1]
            return StringValue(line)

        def builtin_intcast(args: list[Value]) -> Value:
            return IntegerValue(_atoi(to_str(args[0])))

        frame = self.global_frame.frame
        frame["print"] = NativeFunctionValue("print", 1, builtin_print)
        frame["input"] = NativeFunctionValue("input", 0, builtin_input)
        frame["intcast"] = NativeFunctionValue("intcast", 1, builtin_intcast)

    def run(self, program: Program) -> None:
        """Execute every statement of ``program``."""
        try:
            self.visit(program)
        except _ReturnSignal:
            raise ScriptRuntimeError("return outside function") from None

    def _eval(self, node) -> Value:
        return self.visit(node)

    # -- statements ------------------------------------------------------

    def visit_Program(self, node: Program) -> None:
        for statement in node.statements:
            self.visit(statement)

    def visit_Block(self, node: Block) -> None:
        for statement in node.statements:
            self.visit(statement)

    def visit_Assignment(self, node: Assignment) -> None:
        target = node.target
        if isinstance(target, Variable):
            value = self._eval(node.value)
            self.stack[-1].set_variable(target.name, value)
        elif isinstance(target, FieldDereference):
            record = self._eval(target.obj)
            if not isinstance(record, RecordValue):
                raise IllegalCastError("Expected Record Type for Field Dereference")
            record.set(target.field_name, self._eval(node.value))
        elif isinstance(target, IndexExpression):
            record = self._eval(target.base)
            index = self._eval(target.index)
            if not isinstance(record, RecordValue):
                raise IllegalCastError("Expected Record Type for Index Expression")
            record.set(to_str(index), self._eval(node.value))

    def visit_IfStatement(self, node: IfStatement) -> None:
        condition = self._eval(node.condition)
        if not isinstance(condition, BooleanValue):
            raise IllegalCastError("Condition should evaluate to a boolean")
        if condition.value:
            self.visit(node.then_block)
        elif node.else_block is not None:
            self.visit(node.else_block)

    def visit_WhileLoop(self, node: WhileLoop) -> None:
        while True:
            condition = self._eval(node.condition)
            if not isinstance(condition, BooleanValue):
                raise IllegalCastError("Condition must evaluate to a BooleanValue")
            if not condition.value:
                return
            self.visit(node.body)

    def visit_Return(self, node: Return) -> None:
        value = self._eval(node.value) if node.value is not None else NoneValue()
        if len(self.stack) <= 1:
            raise ScriptRuntimeError("return outside function")
        raise _ReturnSignal(value)

    def visit_Global(self, node: Global) -> None:
        self.stack[-1].set_global(node.name)

    def visit_CallStatement(self, node: CallStatement) -> None:
        self._eval(node.call)

    # -- expressions -----------------------------------------------------

    def visit_BinaryExpression(self, node: BinaryExpression) -> Value:
        left = self._eval(node.left)
        right = self._eval(node.right)
        return binary_op(node.op, left, right)

    def visit_UnaryExpression(self, node: UnaryExpression) -> Value:
        operand = self._eval(node.operand)
        if isinstance(operand, IntegerValue):
            if node.op is not UnOp.NEG:
                raise IllegalCastError("Only Negative operator works for integer types")
            return IntegerValue(-operand.value)
        if isinstance(operand, BooleanValue):
            if node.op is not UnOp.NOT:
                raise IllegalCastError("Only Not operator works for boolean types")
            return BooleanValue(not operand.value)
        raise IllegalCastError("Unary operators only apply to Ints and Bools")

    def visit_FieldDereference(self, node: FieldDereference) -> Value:
        record = self._eval(node.obj)
        if not isinstance(record, RecordValue):
            raise IllegalCastError("Expected Record Type for Field Dereference")
        return record.get(node.field_name)

    def visit_IndexExpression(self, node: IndexExpression) -> Value:
        record = self._eval(node.base)
        if not isinstance(record, RecordValue):
            raise IllegalCastError("Cannot index into non record type")
        return record.get(to_str(self._eval(node.index)))

    def visit_Call(self, node: Call) -> Value:
        function = self._eval(node.callee)
        if isinstance(function, NativeFunctionValue):
            args = [self._eval(arg) for arg in node.arguments]
            return function(args)
        if not isinstance(function, FunctionValue):
            raise IllegalCastError("Expected A function value for a function call")

        args = [self._eval(arg) for arg in node.arguments]
        if len(args) != len(function.args):
            raise ScriptRuntimeError("argument count mismatch")

        frame = StackFrame(function.defining_env)
        for name in collect_globals(function.body):
            frame.set_global(name)
        for name in collect_vars(function.body):
            if name not in frame.global_vars:
                frame.frame[name] = NoneValue()
        for name, value in zip(function.args, args):
            if name not in frame.global_vars:
                frame.frame[name] = value

        self.stack.append(frame)
        try:
            self.visit(function.body)
        except _ReturnSignal as signal:
            return signal.value
        finally:
            self.stack.pop()
        return NoneValue()

    def visit_FunctionDeclaration(self, node: FunctionDeclaration) -> Value:
        return FunctionValue(self.stack[-1], node.args, node.body)

    def visit_Record(self, node: Record) -> Value:
        fields: dict[str, Value] = {}
        for name, expr in node.fields:
            fields[name] = self._eval(expr)
        return RecordValue(fields)

    def visit_Variable(self, node: Variable) -> Value:
        return self.stack[-1].lookup(node.name)

    def visit_IntegerConstant(self, node: IntegerConstant) -> Value:
        return IntegerValue(node.value)

    def visit_StringConstant(self, node: StringConstant) -> Value:
        raw = node.value
        if len(raw) >= 2 and raw.startswith('"') and raw.endswith('"'):
            return StringValue(raw[1:-1])
        return StringValue(raw)

    def visit_BooleanConstant(self, node: BooleanConstant) -> Value:
        return BooleanValue(node.value)

    def visit_NoneConstant(self, node: NoneConstant) -> Value:
        return NoneValue()


def interpret(
    program: Program, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None
) -> None:
    """Run ``program`` with a fresh interpreter."""
    Interpreter(stdin, stdout).run(program)


def run_source(
    source: str, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None
) -> None:
    """Parse and run ``source``."""
    interpret(parse(source), stdin, stdout)