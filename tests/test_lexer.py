import pytest

from mitscript.lexer import Lexer, tokenize
from mitscript.tokens import TokenKind as K


def kinds(source):
    return [tok.kind for tok in tokenize(source)]


def test_empty_source_has_no_tokens():
    assert tokenize("") == []
    assert tokenize("   \t\n // only a comment") == []


def test_assignment_of_function():
    source = "f = fun(a, b) { return a <= b; };"
    assert kinds(source) == [
        K.IDENTIFIER, K.ASSIGN, K.FUN, K.LPAREN, K.IDENTIFIER, K.COMMA,
        K.IDENTIFIER, K.RPAREN, K.LBRACE, K.RETURN, K.IDENTIFIER, K.LE,
        K.IDENTIFIER, K.SEMICOLON, K.RBRACE, K.SEMICOLON,
    ]


@pytest.mark.parametrize(
    "word, kind",
    [
        ("if", K.IF), ("fun", K.FUN), ("true", K.TRUE), ("else", K.ELSE),
        ("None", K.NONE), ("while", K.WHILE), ("false", K.FALSE),
        ("return", K.RETURN), ("global", K.GLOBAL),
    ],
)
def test_keywords(word, kind):
    (tok,) = tokenize(word)
    assert tok.kind is kind
    assert tok.text == word


@pytest.mark.parametrize("word", ["iff", "none", "_while", "returns", "x1"])
def test_near_keywords_are_identifiers(word):
    (tok,) = tokenize(word)
    assert tok.kind is K.IDENTIFIER
    assert tok.text == word


def test_operators_one_and_two_chars():
    source = "< <= > >= = == ! & | + - * / . : [ ]"
    assert kinds(source) == [
        K.LT, K.LE, K.GT, K.GE, K.ASSIGN, K.EQEQ, K.BANG, K.AMP, K.BAR,
        K.ADD, K.SUB, K.MULT, K.DIV, K.DOT, K.COLON, K.LBRACKET, K.RBRACKET,
    ]


def test_number_followed_by_identifier_splits():
    toks = tokenize("123abc")
    assert [(t.kind, t.text) for t in toks] == [(K.INT, "123"), (K.IDENTIFIER, "abc")]


def test_string_keeps_quotes_and_escapes_raw():
    source = '"a\\nb\\t\\"c\\\\"'
    (tok,) = tokenize(source)
    assert tok.kind is K.STRING
    assert tok.text == source


@pytest.mark.parametrize(
    "source",
    [
        'x = "hello world" + 12;',
        "while (a >= b) { b = b * 3; }",
        "r.f[ idx ] = -y;",
        "print(input());",
    ],
)
def test_positions_slice_back_to_text(source):
    for tok in tokenize(source):
        assert tok.start_line == tok.end_line
        assert source[tok.start_col - 1:tok.end_col - 1] == tok.text


def test_line_counting_handles_lf_and_crlf():
    toks = tokenize("a\nb\r\nc\rd")
    assert [t.text for t in toks] == ["a", "b", "c", "d"]
    assert [t.start_line for t in toks] == [1, 2, 3, 4]
    assert all(t.start_col == 1 for t in toks)


def test_comment_runs_to_end_of_line():
    toks = tokenize("// x = 1;\ny")
    assert len(toks) == 1
    assert toks[0].text == "y"
    assert toks[0].start_line == 2


def test_single_slash_is_division():
    assert kinds("a / b") == [K.IDENTIFIER, K.DIV, K.IDENTIFIER]


def test_illegal_printable_character_becomes_error_and_lexing_continues():
    toks = tokenize("a $ b")
    assert [t.kind for t in toks] == [K.IDENTIFIER, K.ERROR, K.IDENTIFIER]
    assert toks[1].text == "illegal character '$'"
    assert toks[1].is_error


def test_illegal_control_character_reported_in_hex():
    (tok,) = tokenize("\x01")
    assert tok.kind is K.ERROR
    assert tok.text.startswith("illegal character 0x")
    assert tok.text.endswith(format(1, "X"))


def test_unterminated_string_at_newline():
    toks = tokenize('"abc\nx')
    assert [t.kind for t in toks] == [K.ERROR, K.IDENTIFIER]
    assert toks[0].text == "Unterminated string literal starting at line 1, column 1"
    assert toks[1].start_line == 2


def test_unterminated_string_at_end_of_input():
    (tok,) = tokenize('"abc')
    assert tok.kind is K.ERROR
    assert tok.text.startswith("Unterminated string literal")


def test_invalid_escape_reports_and_resumes_at_escaped_char():
    toks = tokenize('"a\\q"')
    assert [t.kind for t in toks] == [K.ERROR, K.IDENTIFIER, K.ERROR]
    assert "Invalid escape sequence" in toks[0].text
    assert toks[1].text == "q"


def test_lexer_can_be_run_twice_with_same_result():
    lexer = Lexer("x = 1; y = x;")
    first = lexer.lex()
    assert lexer.lex() == first
    assert first == tokenize("x = 1; y = x;")