import pytest

from mitscript.cfg import IROp, IROperand, OperandKind, TerminatorKind
from mitscript.cfg_builder import CFGBuilder, build_cfg
from mitscript.parser import parse


def _build(source):
    return build_cfg(parse(source))


def _ops(block):
    return [instr.op for instr in block.code]


def _all_instrs(cfg):
    return [instr for block in cfg.blocks for instr in block.code]


def _check_edges(cfg):
    for position, block in enumerate(cfg.blocks):
        assert block.id == position
        for succ in block.successors:
            assert block.id in cfg.blocks[succ].predecessors
        for pred in block.predecessors:
            assert block.id in cfg.blocks[pred].successors


def test_module_assignment_is_global_store_with_implicit_return():
    cfg = _build("x = 1;")
    block = cfg.blocks[0]
    assert _ops(block) == [IROp.LOAD_CONST, IROp.STORE_GLOBAL, IROp.LOAD_CONST]
    assert block.code[0].inputs == [IROperand.const_int(1)]
    assert block.code[1].inputs[0] == IROperand.name("x")
    assert block.code[2].inputs == [IROperand.none()]
    assert block.term.kind is TerminatorKind.RETURN
    assert block.term.condition == block.code[2].output.i
    assert cfg.names == ["x"]
    assert cfg.entry == 0
    assert cfg.exit == block.id


def test_build_module_returns_given_cfg():
    builder = CFGBuilder()
    result = builder.build_module(parse("y = 2;"))
    assert result is builder.cfg
    assert result.names == ["y"]


def test_vregs_are_defined_once():
    cfg = _build("a = 1 + 2 * 3; b = a - 4; if (b < a) { c = 5; }")
    outputs = [i.output.i for i in _all_instrs(cfg) if i.output is not None]
    assert len(outputs) == len(set(outputs))
    assert all(i.output.kind is OperandKind.VREG for i in _all_instrs(cfg) if i.output)


def test_if_else_structure():
    cfg = _build("if (true) { x = 1; } else { x = 2; }")
    _check_edges(cfg)
    entry = cfg.blocks[0]
    assert entry.term.kind is TerminatorKind.COND_JUMP
    assert entry.successors == [entry.term.true_target, entry.term.false_target]
    then_block = cfg.blocks[entry.term.true_target]
    else_block = cfg.blocks[entry.term.false_target]
    assert then_block.term.kind is TerminatorKind.JUMP
    assert then_block.term.target == else_block.term.target
    assert cfg.exit == then_block.term.target


def test_if_without_else_falls_to_join():
    cfg = _build("if (true) { x = 1; }")
    _check_edges(cfg)
    entry = cfg.blocks[0]
    then_block = cfg.blocks[entry.term.true_target]
    assert then_block.term.target == entry.term.false_target
    assert cfg.exit == entry.term.false_target


def test_while_loop_back_edge():
    cfg = _build("i = 0; while (i < 3) { i = i + 1; }")
    _check_edges(cfg)
    entry = cfg.blocks[0]
    assert entry.term.kind is TerminatorKind.JUMP
    head = cfg.blocks[entry.term.target]
    assert head.term.kind is TerminatorKind.COND_JUMP
    assert IROp.CMP_LT in _ops(head)
    body = cfg.blocks[head.term.true_target]
    assert body.term.target == head.id
    assert cfg.exit == head.term.false_target


@pytest.mark.parametrize(
    "symbol, op",
    [
        ("+", IROp.ADD),
        ("-", IROp.SUB),
        ("*", IROp.MUL),
        ("/", IROp.DIV),
        ("==", IROp.CMP_EQ),
        ("<", IROp.CMP_LT),
        ("<=", IROp.CMP_LE),
        (">", IROp.CMP_GT),
        (">=", IROp.CMP_GE),
    ],
)
def test_binary_operators_map_to_ir(symbol, op):
    cfg = _build(f"x = 1 {symbol} 2;")
    instr = cfg.blocks[0].code[2]
    assert instr.op is op
    assert [o.kind for o in instr.inputs] == [OperandKind.VREG, OperandKind.VREG]


def test_boolean_and_unary_operators():
    cfg = _build("x = true & false; y = true | false; z = !true; w = -1;")
    ops = _ops(cfg.blocks[0])
    for op in (IROp.AND, IROp.OR, IROp.NOT, IROp.NEG):
        assert op in ops
    consts = [i.inputs[0] for i in cfg.blocks[0].code if i.op is IROp.LOAD_CONST]
    assert IROperand.const_bool(True) in consts
    assert IROperand.const_bool(False) in consts


def test_record_literal():
    cfg = _build("r = { a: 1; };")
    ops = _ops(cfg.blocks[0])
    assert ops[:4] == [IROp.MAKE_RECORD, IROp.DUP, IROp.LOAD_CONST, IROp.STORE_FIELD]
    store = cfg.blocks[0].code[3]
    record_reg = cfg.blocks[0].code[0].output
    assert store.inputs[0] == record_reg
    assert store.inputs[1] == IROperand.name("a")
    assert cfg.names == ["r", "a"]


def test_field_and_index_access():
    cfg = _build('r.a = 1; r[2] = 3; x = r.b; y = r["k"];')
    ops = _ops(cfg.blocks[0])
    for op in (IROp.STORE_FIELD, IROp.STORE_INDEX, IROp.LOAD_FIELD, IROp.LOAD_INDEX):
        assert op in ops
    loads = [i for i in cfg.blocks[0].code if i.op is IROp.LOAD_GLOBAL]
    assert all(i.inputs == [IROperand.name("r")] for i in loads)
    consts = [i.inputs[0] for i in cfg.blocks[0].code if i.op is IROp.LOAD_CONST]
    assert IROperand.const_str("k") in consts


def test_call_statement_pops_result():
    cfg = _build("print(1);")
    block = cfg.blocks[0]
    assert _ops(block)[:4] == [IROp.LOAD_GLOBAL, IROp.LOAD_CONST, IROp.CALL, IROp.POP]
    assert block.code[0].inputs == [IROperand.name("print")]
    call = block.code[2]
    assert call.inputs == [block.code[0].output, block.code[1].output]


def test_function_params_and_locals():
    cfg = _build("f = fun(a, b) { c = b; };")
    assert len(cfg.children) == 1
    child = cfg.children[0]
    assert child.params == ["a", "b"]
    assert child.locals == ["c"]
    assert child.by_ref_locals == ["c"]
    code = child.blocks[0].code
    assert code[0].op is IROp.LOAD_LOCAL
    assert code[0].inputs == [IROperand.local(1)]
    assert code[1].op is IROp.STORE_LOCAL
    assert code[1].inputs[0] == IROperand.local(2)
    closure = [i for i in cfg.blocks[0].code if i.op is IROp.ALLOC_CLOSURE]
    assert closure[0].inputs == [IROperand.const_int(0)]


def test_function_without_return_returns_none():
    cfg = _build("f = fun() { };")
    child = cfg.children[0]
    assert _ops(child.blocks[0]) == [IROp.LOAD_CONST]
    assert child.blocks[0].code[0].inputs == [IROperand.none()]
    assert child.blocks[0].term.kind is TerminatorKind.RETURN


def test_return_opens_post_return_block():
    cfg = _build("f = fun() { return 1; };")
    child = cfg.children[0]
    _check_edges(child)
    assert len(child.blocks) == 2
    first, after = child.blocks
    assert first.term.kind is TerminatorKind.RETURN
    assert first.term.condition == first.code[0].output.i
    assert after.post_return
    assert after.code == []
    assert after.predecessors == [first.id]


def test_closure_captures_parent_local():
    cfg = _build("f = fun() { x = 1; g = fun() { return x; }; return g; };")
    f = cfg.children[0]
    g = f.children[0]
    assert g.free_vars == ["x"]
    assert "x" in f.by_ref_locals
    assert sorted(f.locals) == ["g", "x"]
    load = g.blocks[0].code[0]
    assert load.op is IROp.LOAD_LOCAL
    assert load.inputs == [IROperand.name("x")]
    closure = [i for i in f.blocks[0].code if i.op is IROp.ALLOC_CLOSURE][0]
    assert closure.inputs == [IROperand.name("x"), IROperand.const_int(0)]


def test_free_variable_bubbles_through_intermediate_function():
    cfg = _build(
        "f = fun() { x = 1; g = fun() { h = fun() { return x; }; }; };"
    )
    g = cfg.children[0].children[0]
    h = g.children[0]
    assert h.free_vars == ["x"]
    assert g.free_vars == ["x"]


def test_assignment_in_child_makes_new_local():
    cfg = _build("f = fun() { x = 1; g = fun() { x = 2; }; };")
    g = cfg.children[0].children[0]
    assert g.locals == ["x"]
    assert g.free_vars == []


def test_global_declaration_in_function():
    cfg = _build("f = fun() { global y; y = 2; };")
    child = cfg.children[0]
    assert child.locals == []
    stores = [i for i in _all_instrs(child) if i.op is IROp.STORE_GLOBAL]
    assert stores[0].inputs[0] == IROperand.name("y")
    assert "y" in child.names


def test_builtin_in_function_is_global_load():
    cfg = _build("f = fun() { print(1); };")
    child = cfg.children[0]
    loads = [i for i in _all_instrs(child) if i.op is IROp.LOAD_GLOBAL]
    assert loads[0].inputs == [IROperand.name("print")]
    assert IROp.POP in _ops(child.blocks[0])
    assert child.free_vars == []