import pytest

from tinyjs.tinyjs_lexer import (
    tokenize, Token, NUMBER, STRING, BOOLEAN, IDENT, KEYWORD, OP, NEWLINE, EOF,
)
from tinyjs.tinyjs_datatypes import LexError


def kinds_and_values(text):
    return [(t.kind, t.value) for t in tokenize(text) if t.kind != EOF]


NUMBER_CASES = [
    ("decimal", "42", 42.0),
    ("fraction", "3.25", 3.25),
    ("exponent", "1e-3", 0.001),
    ("exponent_upper", "2E2", 200.0),
    ("hex", "0xFF", 255.0),
    ("octal", "0o17", 15.0),
    ("binary", "0b101", 5.0),
]


@pytest.mark.parametrize("text, expected", [c[1:] for c in NUMBER_CASES], ids=[c[0] for c in NUMBER_CASES])
def test_number_literals(text, expected):
    assert kinds_and_values(text) == [(NUMBER, expected)]


def test_radix_prefix_without_digits_is_an_error():
    with pytest.raises(LexError):
        tokenize("0x")


def test_exponent_without_digits_is_not_consumed():
    assert kinds_and_values("1e") == [(NUMBER, 1.0), (IDENT, "e")]


STRING_CASES = [
    ("double", '"hello"', "hello"),
    ("single", "'hello'", "hello"),
    ("newline_escape", r'"a\nb"', "a\nb"),
    ("tab_escape", r"'a\tb'", "a\tb"),
    ("quote_escape", r'"say \"hi\""', 'say "hi"'),
    ("hex_escape", r'"\x41"', "A"),
    ("unicode_escape", r'"\u00e9"', "\u00e9"),
    ("unknown_escape", r'"\q"', "q"),
]


@pytest.mark.parametrize("text, expected", [c[1:] for c in STRING_CASES], ids=[c[0] for c in STRING_CASES])
def test_string_literals(text, expected):
    assert kinds_and_values(text) == [(STRING, expected)]


@pytest.mark.parametrize("text", ['"abc', "'abc", '"abc\\'])
def test_unterminated_strings_raise(text):
    with pytest.raises(LexError):
        tokenize(text)


def test_bad_hex_escape_raises():
    with pytest.raises(LexError):
        tokenize(r'"\xZZ"')


def test_keywords_identifiers_and_booleans():
    assert kinds_and_values("let foo = true") == [
        (KEYWORD, "let"), (IDENT, "foo"), (OP, "="), (BOOLEAN, True),
    ]
    assert kinds_and_values("false null typeof") == [
        (BOOLEAN, False), (KEYWORD, "null"), (KEYWORD, "typeof"),
    ]


def test_identifiers_accept_underscore_and_dollar():
    assert kinds_and_values("_a $b c_1") == [(IDENT, "_a"), (IDENT, "$b"), (IDENT, "c_1")]


def test_longest_operator_wins():
    assert kinds_and_values("a >>>= b") == [(IDENT, "a"), (OP, ">>>="), (IDENT, "b")]
    assert kinds_and_values("a===b") == [(IDENT, "a"), (OP, "==="), (IDENT, "b")]
    assert kinds_and_values("x=>x") == [(IDENT, "x"), (OP, "=>"), (IDENT, "x")]
    assert kinds_and_values("a**=2") == [(IDENT, "a"), (OP, "**="), (NUMBER, 2.0)]


def test_comments_are_skipped():
    assert kinds_and_values("1 // line comment\n2") == [(NUMBER, 1.0), (NEWLINE, "\n"), (NUMBER, 2.0)]
    assert kinds_and_values("1 /* block\ncomment */ 2") == [(NUMBER, 1.0), (NUMBER, 2.0)]


def test_unterminated_block_comment_consumes_rest_of_input():
    assert kinds_and_values("1 /* never closed\n2 3") == [(NUMBER, 1.0)]


def test_crlf_is_a_single_newline():
    assert kinds_and_values("a\r\nb") == [(IDENT, "a"), (NEWLINE, "\n"), (IDENT, "b")]


def test_token_positions():
    tokens = tokenize("let a\n  = 1")
    assert [(t.line, t.col) for t in tokens] == [(1, 1), (1, 5), (1, 6), (2, 3), (2, 5), (2, 6)]
    assert tokens[-1].kind == EOF


def test_unexpected_character_reports_location():
    with pytest.raises(LexError) as excinfo:
        tokenize("let a = 1;\nlet b = #;")
    err = excinfo.value
    assert "unexpected character" in err.message
    assert (err.line, err.col) == (2, 9)


def test_token_helpers():
    tok = Token(OP, "+", 1, 1)
    assert tok.is_op("+", "-")
    assert not tok.is_keyword("let")
    assert Token(KEYWORD, "let").is_keyword("var", "let")
    assert Token(EOF, None).describe() == "end of input"
