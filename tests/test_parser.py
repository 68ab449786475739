import pytest

from mitscript.ast import (
    Assignment,
    BinaryExpression,
    BinOp,
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
    StringConstant,
    UnaryExpression,
    UnOp,
    Variable,
    WhileLoop,
)
from mitscript.lexer import tokenize
from mitscript.parser import ParseError, Parser, parse


def _rhs(source):
    program = parse(source)
    assert len(program.statements) == 1
    return program.statements[0].value


def test_empty_program():
    assert parse("") == Program([])


def test_simple_assignment():
    assert parse("x = 1;") == Program([Assignment(Variable("x"), IntegerConstant(1))])


def test_parser_class_matches_parse_function():
    source = "x = 1 + 2; print(x);"
    assert Parser(tokenize(source)).parse() == parse(source)


def test_multiplication_binds_tighter_than_addition():
    expected = BinaryExpression(
        BinOp.ADD,
        IntegerConstant(1),
        BinaryExpression(BinOp.MUL, IntegerConstant(2), IntegerConstant(3)),
    )
    assert _rhs("x = 1 + 2 * 3;") == expected


def test_subtraction_is_left_associative():
    expected = BinaryExpression(
        BinOp.SUB,
        BinaryExpression(BinOp.SUB, IntegerConstant(1), IntegerConstant(2)),
        IntegerConstant(3),
    )
    assert _rhs("x = 1 - 2 - 3;") == expected


def test_parentheses_override_precedence():
    expected = BinaryExpression(
        BinOp.MUL,
        BinaryExpression(BinOp.ADD, IntegerConstant(1), IntegerConstant(2)),
        IntegerConstant(3),
    )
    assert _rhs("x = (1 + 2) * 3;") == expected


def test_logical_and_comparison_precedence():
    a, b, c, d = (Variable(n) for n in "abcd")
    expected = BinaryExpression(
        BinOp.OR,
        BinaryExpression(BinOp.AND, BinaryExpression(BinOp.LT, a, b), c),
        d,
    )
    assert _rhs("x = a < b & c | d;") == expected


def test_bang_binds_looser_than_equality():
    expected = UnaryExpression(
        UnOp.NOT, BinaryExpression(BinOp.EQ, Variable("a"), Variable("b"))
    )
    assert _rhs("x = !a == b;") == expected


def test_bang_binds_tighter_than_and():
    expected = BinaryExpression(
        BinOp.AND, UnaryExpression(UnOp.NOT, Variable("a")), Variable("b")
    )
    assert _rhs("x = !a & b;") == expected


def test_negation_binds_tighter_than_multiplication():
    expected = BinaryExpression(
        BinOp.MUL, UnaryExpression(UnOp.NEG, Variable("a")), Variable("b")
    )
    assert _rhs("x = -a * b;") == expected


def test_literals():
    assert _rhs("x = true;") == BooleanConstant(True)
    assert _rhs("x = false;") == BooleanConstant(False)
    assert _rhs("x = None;") == NoneConstant()


def test_string_literal_is_decoded():
    assert _rhs('x = "a\\nb\\t\\"q\\"";') == StringConstant('a\nb\t"q"')


def test_record_literal():
    expected = Record([("a", IntegerConstant(1)), ("b", StringConstant("s"))])
    assert _rhs('r = {a: 1; b: "s";};') == expected


def test_function_literal():
    expected = FunctionDeclaration(["a", "b"], Block([Return(Variable("a"))]))
    assert _rhs("f = fun(a, b) { return a; };") == expected


def test_function_trailing_comma_in_parameters():
    assert _rhs("f = fun(a,) { };") == FunctionDeclaration(["a"], Block([]))


def test_call_statement_with_trailing_comma():
    expected = CallStatement(Call(Variable("f"), [Variable("a"), Variable("b")]))
    assert parse("f(a, b,);").statements == [expected]


def test_chained_call_statement():
    expected = CallStatement(Call(Call(Variable("f"), []), []))
    assert parse("f()();").statements == [expected]


def test_chained_call_in_expression_is_rejected():
    with pytest.raises(ParseError, match="Callee must be a location"):
        parse("x = f()();")


def test_parenthesised_callee():
    assert _rhs("x = (f)(1);") == Call(Variable("f"), [IntegerConstant(1)])


def test_location_assignment_target():
    target = IndexExpression(FieldDereference(Variable("a"), "b"), Variable("c"))
    assert parse("a.b[c] = 1;").statements == [Assignment(target, IntegerConstant(1))]


def test_postfix_field_and_index_in_expression():
    expected = FieldDereference(IndexExpression(Variable("a"), IntegerConstant(0)), "f")
    assert _rhs("x = a[0].f;") == expected


def test_if_else_while_global_and_block():
    program = parse(
        "if (c) { x = 1; } else { x = 2; } while (c) { global g; } { y = 3; }"
    )
    assert program.statements == [
        IfStatement(
            Variable("c"),
            Block([Assignment(Variable("x"), IntegerConstant(1))]),
            Block([Assignment(Variable("x"), IntegerConstant(2))]),
        ),
        WhileLoop(Variable("c"), Block([Global("g")])),
        Block([Assignment(Variable("y"), IntegerConstant(3))]),
    ]


def test_if_without_else():
    stmt = parse("if (c) { }").statements[0]
    assert stmt == IfStatement(Variable("c"), Block([]), None)


def test_missing_semicolon_reports_end_of_input():
    with pytest.raises(ParseError) as info:
        parse("x = 1")
    assert info.value.message == "Expected ';' after assignment"
    assert (info.value.line, info.value.col) == (0, 0)


def test_statement_cannot_start_with_literal():
    with pytest.raises(ParseError) as info:
        parse("1 = x;")
    assert info.value.message == "Expected a statement"
    assert (info.value.line, info.value.col) == (1, 1)


def test_error_message_format():
    with pytest.raises(ParseError) as info:
        parse("1 = x;")
    assert str(info.value) == "Parser error at line 1, col 1: Expected a statement"


def test_return_requires_value():
    with pytest.raises(ParseError, match="Expected expression"):
        parse("f = fun() { return; };")


def test_lexer_error_token_fails_parse():
    with pytest.raises(ParseError):
        parse("x = 1 $ 2;")


def test_bare_location_is_not_a_statement():
    with pytest.raises(ParseError, match="Expected assignment or function call"):
        parse("x;")


def test_integer_literal_out_of_range():
    with pytest.raises(ParseError, match="out of range"):
        parse("x = 2147483648;")
    assert _rhs("x = 2147483647;") == IntegerConstant(2147483647)


def test_unclosed_block():
    with pytest.raises(ParseError, match="Expected '}' to end block"):
        parse("if (c) { x = 1;")