"""Runtime values, runtime errors and the binary operators on values."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Optional

from .ast import BinOp, Block

_INT_BITS = 32
_INT_MODULUS = 1 << _INT_BITS
_INT_OFFSET = 1 << (_INT_BITS - 1)


def _wrap_int(n: int) -> int:
    """Wrap ``n`` into the signed 32-bit range."""
    return (n + _INT_OFFSET) % _INT_MODULUS - _INT_OFFSET


def _trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


# -- errors ---------------------------------------------------------------


class MITScriptError(Exception):
    """Base of all errors raised while running a script."""

    kind = "RuntimeException"
    separator = " -- "

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"{self.kind}{self.separator}{message}")


class IllegalCastError(MITScriptError):
    """A value of the wrong type was used."""

    kind = "IllegalCastException"


class IllegalArithmeticError(MITScriptError):
    """An arithmetic operation is undefined, such as division by zero."""

    kind = "IllegalArithmeticException"


class UninitializedVariableError(MITScriptError):
    """A variable was read that has no binding."""

    kind = "UninitializedVariableException"
    separator = " - "


class ScriptRuntimeError(MITScriptError):
    """Any other runtime failure, such as a bad argument count."""

    kind = "RuntimeException"


# -- values ---------------------------------------------------------------


class Value:
    """Base of all runtime values; ``str()`` gives the value's text form."""

    __slots__ = ()

    def __str__(self) -> str:  # pragma: no cover - overridden everywhere
        raise NotImplementedError


class NoneValue(Value):
    """The single ``None`` value."""

    __slots__ = ()
    _instance: Optional[NoneValue] = None

    def __new__(cls) -> NoneValue:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __str__(self) -> str:
        return "None"

    def __repr__(self) -> str:
        return "NoneValue()"


class BooleanValue(Value):
    """A boolean; there is exactly one instance for each truth value."""

    __slots__ = ("_value",)
    _instances: dict[bool, BooleanValue] = {}

    def __new__(cls, value: bool) -> BooleanValue:
        key = bool(value)
        instance = cls._instances.get(key)
        if instance is None:
            instance = super().__new__(cls)
            instance._value = key
            cls._instances[key] = instance
        return instance

    @property
    def value(self) -> bool:
        """The truth value held."""
        return self._value

    def __str__(self) -> str:
        return "true" if self._value else "false"

    def __repr__(self) -> str:
        return f"BooleanValue({self._value})"


class IntegerValue(Value):
    """A signed 32-bit integer."""

    __slots__ = ("value",)

    def __init__(self, value: int) -> None:
        self.value = _wrap_int(value)

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"IntegerValue({self.value})"


class StringValue(Value):
    """A string."""

    __slots__ = ("value",)

    def __init__(self, value: str) -> None:
        self.value = value

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"StringValue({self.value!r})"


class RecordValue(Value):
    """A mutable record mapping field names to values; equal only to itself."""

    __slots__ = ("fields",)

    def __init__(self, fields: Optional[dict[str, Value]] = None) -> None:
        self.fields: dict[str, Value] = dict(fields or {})

    def get(self, key: str) -> Value:
        """Return the field ``key``, or ``None`` when it is absent."""
        return self.fields.get(key, NoneValue())

    def set(self, key: str, value: Value) -> None:
        """Set the field ``key`` to ``value``."""
        self.fields[key] = value

    def __str__(self) -> str:
        body = "".join(f"{key}:{value} " for key, value in sorted(self.fields.items(), key=lambda kv: kv[0]))
        return "{" + body + "}"

    def __repr__(self) -> str:
        return f"RecordValue({self.fields!r})"


class FunctionValue(Value):
    """A user-defined function closed over the frame it was defined in."""

    __slots__ = ("defining_env", "args", "body")

    def __init__(self, defining_env: Any, args: Sequence[str], body: Block) -> None:
        self.defining_env = defining_env
        self.args = list(args)
        self.body = body

    def __str__(self) -> str:
        return "FUNCTION"

    def __repr__(self) -> str:
        return f"FunctionValue(args={self.args!r})"


class NativeFunctionValue(Value):
    """A built-in function implemented in Python."""

    __slots__ = ("name", "arg_count", "impl")

    def __init__(
        self, name: str, arg_count: int, impl: Callable[[list[Value]], Value]
    ) -> None:
        self.name = name
        self.arg_count = arg_count
        self.impl = impl

    def __call__(self, args: Sequence[Value]) -> Value:
        """Call the built-in, checking the number of arguments first."""
        if len(args) != self.arg_count:
            raise ScriptRuntimeError(
                f"{self.name} expects {self.arg_count} args, got {len(args)}"
            )
        return self.impl(list(args))

    def __str__(self) -> str:
        return "FUNCTION"

    def __repr__(self) -> str:
        return f"NativeFunctionValue({self.name!r})"


def to_str(value: Value) -> str:
    """The text a value shows when printed or concatenated."""
    if isinstance(value, (StringValue, BooleanValue, IntegerValue, RecordValue)):
        return str(value)
    if isinstance(value, FunctionValue):
        return "FUNCTION"
    if isinstance(value, NoneValue):
        return "None"
    return "<unknown>"


# -- operators ------------------------------------------------------------


def _ints(op: BinOp, left: Value, right: Value) -> tuple[int, int]:
    if isinstance(left, IntegerValue) and isinstance(right, IntegerValue):
        return left.value, right.value
    raise IllegalCastError(f"operator '{op.value}' expects integers")


def _bools(op: BinOp, left: Value, right: Value) -> tuple[bool, bool]:
    if isinstance(left, BooleanValue) and isinstance(right, BooleanValue):
        return left.value, right.value
    raise IllegalCastError(f"operator '{op.value}' expects booleans")


def _add(left: Value, right: Value) -> Value:
    if isinstance(left, IntegerValue) and isinstance(right, IntegerValue):
        return IntegerValue(left.value + right.value)
    if isinstance(left, StringValue) or isinstance(right, StringValue):
        return StringValue(to_str(left) + to_str(right))
    raise IllegalCastError("operator '+' expects integers or strings")


def _equal(left: Value, right: Value) -> bool:
    for kind in (IntegerValue, StringValue):
        if isinstance(left, kind) and isinstance(right, kind):
            return left.value == right.value  # type: ignore[attr-defined]
    if isinstance(left, BooleanValue) and isinstance(right, BooleanValue):
        return left.value == right.value
    for kind in (RecordValue, FunctionValue, NativeFunctionValue):
        if isinstance(left, kind) and isinstance(right, kind):
            return left is right
    return isinstance(left, NoneValue) and isinstance(right, NoneValue)


def binary_op(op: BinOp, left: Value, right: Value) -> Value:
    """Apply the binary operator ``op`` to two values."""
    if op is BinOp.ADD:
        return _add(left, right)
    if op is BinOp.EQ:
        return BooleanValue(_equal(left, right))
    if op in (BinOp.AND, BinOp.OR):
        a, b = _bools(op, left, right)
        return BooleanValue(a and b if op is BinOp.AND else a or b)

    a, b = _ints(op, left, right)
    if op is BinOp.SUB:
        return IntegerValue(a - b)
    if op is BinOp.MUL:
        return IntegerValue(a * b)
    if op is BinOp.DIV:
        if b == 0:
            raise IllegalArithmeticError("divide by zero")
        return IntegerValue(_trunc_div(a, b))
    if op is BinOp.LT:
        return BooleanValue(a < b)
    if op is BinOp.LTE:
        return BooleanValue(a <= b)
    if op is BinOp.GT:
        return BooleanValue(a > b)
    if op is BinOp.GTE:
        return BooleanValue(a >= b)
    raise ScriptRuntimeError(f"unsupported operator '{op.value}'")