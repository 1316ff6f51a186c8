#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

from tsb_lexer import Lexer, LexerError, TokenKind


def _tokens(src):
    return Lexer(src, filename="test.js").tokenize()


def _kinds(src):
    return [t.kind for t in _tokens(src)]


def _texts(src):
    return [t.text for t in _tokens(src) if t.kind is not TokenKind.EOF]


def test_import_statement_tokens():
    toks = _tokens('import { a as b } from "./x";')
    assert [t.kind for t in toks] == [
        TokenKind.IMPORT,
        TokenKind.LBRACE,
        TokenKind.IDENT,
        TokenKind.IDENT,
        TokenKind.IDENT,
        TokenKind.RBRACE,
        TokenKind.IDENT,
        TokenKind.STRING,
        TokenKind.SEMI,
        TokenKind.EOF,
    ]
    assert toks[7].text == '"./x"'


def test_token_positions_and_offsets():
    src = "let a = 1;\n  export const b = 2;"
    toks = _tokens(src)
    export = next(t for t in toks if t.kind is TokenKind.EXPORT)
    assert (export.line, export.column) == (2, 3)
    assert src[export.start:export.end] == "export"


def test_multi_char_operators_win_over_punctuation():
    assert _texts("a === b => c ... d ?. e **= f") == [
        "a", "===", "b", "=>", "c", "...", "d", "?.", "e", "**=", "f",
    ]
    toks = _tokens("a = b")
    assert toks[1].kind is TokenKind.EQ


def test_strings_keep_quotes_and_escapes():
    toks = _tokens(r"'it\'s' " + r'"a\"b"')
    assert [t.text for t in toks[:2]] == [r"'it\'s'", r'"a\"b"']
    assert all(t.kind is TokenKind.STRING for t in toks[:2])


def test_template_is_one_token_with_nested_substitutions():
    src = "`a ${ {x: `inner ${1}`}.x } b` + 1"
    toks = _tokens(src)
    assert toks[0].kind is TokenKind.TEMPLATE
    assert toks[0].text == "`a ${ {x: `inner ${1}`}.x } b`"
    assert toks[1].text == "+"


def test_module_keywords_inside_strings_and_comments_are_not_tokens():
    src = """
    // import a from "a";
    /* export * from "b"; */
    const s = "import c from 'c'";
    const t = `export ${"d"}`;
    """
    kinds = _kinds(src)
    assert TokenKind.IMPORT not in kinds
    assert TokenKind.EXPORT not in kinds


@pytest.mark.parametrize(
    "src, kind",
    [
        ("x = /ab+c/gi;", TokenKind.REGEX),
        ("return /[/]/.test(s);", TokenKind.REGEX),
        ("f(/=/)", TokenKind.REGEX),
    ],
)
def test_regex_literal_where_an_expression_starts(src, kind):
    assert kind in _kinds(src)


def test_slash_after_operand_is_division():
    assert _texts("a / b / c") == ["a", "/", "b", "/", "c"]
    assert _texts("f(x) / 2") == ["f", "(", "x", ")", "/", "2"]
    assert TokenKind.REGEX not in _kinds("i++ / 2")


def test_numbers():
    assert _texts("0xff 1_000n .5 1e-9 0x1e-1") == ["0xff", "1_000n", ".5", "1e-9", "0x1e", "-", "1"]
    assert all(t.kind is TokenKind.NUMBER for t in _tokens("42 3.14")[:2])


def test_hashbang_is_skipped():
    toks = _tokens("#!/usr/bin/env node\nimport 'a';")
    assert toks[0].kind is TokenKind.IMPORT
    assert toks[0].line == 2


def test_unicode_identifiers():
    assert _texts("const café = π;") == ["const", "café", "=", "π", ";"]


def test_unterminated_string_reports_position():
    with pytest.raises(LexerError) as excinfo:
        _tokens("let msg = 'unterminated\nnext")
    err = excinfo.value
    assert "[LEX-0010]" in err.message
    assert (err.line, err.column) == (1, 11)
    assert err.filename == "test.js"


def test_unterminated_template():
    with pytest.raises(LexerError) as excinfo:
        _tokens("let t = `abc ${x}")
    assert "[LEX-0020]" in excinfo.value.message


def test_unterminated_template_substitution():
    with pytest.raises(LexerError) as excinfo:
        _tokens("let t = `abc ${x")
    assert "[LEX-0020]" in excinfo.value.message


def test_unterminated_regex():
    with pytest.raises(LexerError) as excinfo:
        _tokens("let r = /abc\n")
    assert "[LEX-0030]" in excinfo.value.message


def test_unterminated_block_comment():
    with pytest.raises(LexerError) as excinfo:
        _tokens("a;\n/* comment")
    err = excinfo.value
    assert "[LEX-0040]" in err.message
    assert (err.line, err.column) == (2, 1)
    assert err.format().startswith("test.js:2:1: error: [LEX-0040]")
