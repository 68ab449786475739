# mitscript

A small toolkit for MITScript, a dynamically typed scripting language with
32-bit integers, strings, booleans, `None`, records and first-class
functions.

The package contains:

- `mitscript.tokens` and `mitscript.lexer`: token kinds and a lexer
  (`Lexer`, `tokenize`) that turns source text into `Token` records.
  Lexical errors do not stop lexing; each becomes a token of kind
  `TokenKind.ERROR` whose text is the message.
- `mitscript.ast` and `mitscript.parser`: the syntax tree node classes, a
  `Visitor` base class, and a recursive-descent `Parser` (with the shortcut
  `parse(source)`) that returns a `Program`. Syntax errors raise
  `ParseError`.
- `mitscript.values` and `mitscript.interpreter`: runtime values, the
  binary operators on them (`binary_op`), and a tree-walking `Interpreter`
  with the built-ins `print`, `input` and `intcast`.
- `mitscript.cfg` and `mitscript.cfg_builder`: control-flow-graph data
  structures and `build_cfg`, which lowers a program to a `FunctionCFG` of
  basic blocks, with one nested graph for every `fun` expression.
- `mitscript.constprop`: forward constant propagation over a
  `FunctionCFG` (`ConstantPropagation`), plus the lattice helpers `meet`,
  `eval_unary` and `eval_binary`.
- `mitscript.cfg_printer`: `format_cfg`, a text dump of a control-flow graph.

It uses only the Python standard library and supports Python 3.10 and later.

## Running a program

```python
import io

from mitscript.interpreter import run_source

source = """
add = fun(a, b) { return a + b; };
p = { x: 1; y: 2; };
print("sum: " + add(p.x, p.y));
"""

out = io.StringIO()
run_source(source, io.StringIO(""), out)
print(out.getvalue(), end="")   # sum: 3
```

`run_source(source, stdin, stdout)` parses and runs source text;
`interpret(program, stdin, stdout)` runs an already parsed `Program`. When
the streams are `None`, `sys.stdin` and `sys.stdout` are used. `input()`
reads one line (without its newline) and `print(x)` writes the value's text
followed by a newline. `intcast(x)` reads a leading decimal integer from the
value's text and gives 0 when there is none.

Inside a function, every name assigned as a plain variable is local to that
call (and starts out as `None`) unless the function declares it `global`.
Reading a name searches the call's frame, then the frames the function was
defined in, outward to the global frame.

Errors in a running program are raised as subclasses of
`mitscript.values.MITScriptError`:

- `IllegalCastError`: a value of the wrong type, e.g. `1 - "a"` or a
  non-boolean `if` condition,
- `IllegalArithmeticError`: division by zero,
- `UninitializedVariableError`: reading a name with no binding,
- `ScriptRuntimeError`: a wrong number of arguments, or `return` outside a
  function.

## Working with the pieces

```python
from mitscript.lexer import tokenize
from mitscript.parser import parse

tokens = tokenize("x = 1 + 2 * 3;")
program = parse("x = 1 + 2 * 3;")
```

A `Visitor` subclass handles a node by defining `visit_<NodeClassName>`;
`visitor.visit(node)` (or `node.accept(visitor)`) dispatches to it.

## Control-flow graphs and constant propagation

```python
from mitscript.cfg_builder import build_cfg
from mitscript.cfg_printer import format_cfg
from mitscript.constprop import ConstantPropagation
from mitscript.parser import parse

program = parse("""
if (1 < 2) {
    print("yes");
} else {
    print("no");
}
""")

cfg = build_cfg(program)

analysis = ConstantPropagation(cfg)
analysis.run()
analysis.rewrite()   # branches on constant conditions become plain jumps

print(format_cfg(cfg, 0), end="")
```

A `FunctionCFG` records the function's parameters, locals, free variables,
by-reference locals, the global and field names it uses, its basic blocks
and its nested function graphs. `ConstantPropagation.in_state(block_id)` and
`out_state(block_id)` give the lattice value of every virtual register at a
block's entry and exit.

## What this package does not do

- There is no command-line program; everything is used from Python.
- Control-flow graphs are built, analysed and printed, but not lowered any
  further or executed. Programs run only through the tree-walking
  interpreter.