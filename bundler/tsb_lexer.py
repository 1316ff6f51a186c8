#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional

from tsb_errors import BundleError


# ==========================
# Tokens and lexer
# ==========================

class TokenKind(Enum):
    # Special
    EOF = auto()

    IDENT = auto()  # identifier or non-module keyword, e.g. x, const, function
    NUMBER = auto()  # numeric literal, e.g. 42, 0xff, 1_000n, .5
    STRING = auto()  # quoted string literal, e.g. "a", 'b' (quotes kept in text)
    TEMPLATE = auto()  # whole template literal, substitutions included
    REGEX = auto()  # regular expression literal, e.g. /ab+c/gi

    # Module keywords
    IMPORT = auto()
    EXPORT = auto()

    # Punctuation
    LBRACE = auto()  # {
    RBRACE = auto()  # }
    LPAREN = auto()  # (
    RPAREN = auto()  # )
    LBRACKET = auto()  # [
    RBRACKET = auto()  # ]
    COMMA = auto()  # ,
    SEMI = auto()  # ;
    DOT = auto()  # .
    STAR = auto()  # *
    EQ = auto()  # =
    COLON = auto()  # :
    OP = auto()  # any other operator, e.g. =>, ===, ?., ...


KEYWORDS = {
    "import": TokenKind.IMPORT,
    "export": TokenKind.EXPORT,
}

# Words after which a '/' starts a regular expression rather than a division.
REGEX_PRECEDING_WORDS = {
    "return", "typeof", "instanceof", "in", "of", "new", "delete", "void",
    "throw", "case", "do", "else", "yield", "await",
}

# Longest first, so that '===' wins over '=='.
_OPERATORS = [
    ">>>=", "...", "===", "!==", "**=", "<<=", ">>=", ">>>", "&&=", "||=", "??=",
    "=>", "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "++", "--", "+=", "-=",
    "*=", "/=", "%=", "&=", "|=", "^=", "**", "<<", ">>",
]

_SINGLE_CHAR_KINDS = {
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    ",": TokenKind.COMMA,
    ";": TokenKind.SEMI,
    ".": TokenKind.DOT,
    "*": TokenKind.STAR,
    "=": TokenKind.EQ,
    ":": TokenKind.COLON,
}


@dataclass
class Token:
    kind: TokenKind
    text: str
    line: int
    column: int
    start: int  # offset of the first character in the source
    end: int  # offset one past the last character

    def __repr__(self) -> str:
        return f"{self.text!r}" if self.kind != TokenKind.EOF else "end-of-file"


class LexerError(BundleError):
    """A malformed literal or comment that makes the module unscannable."""
    pass


def _is_ident_start(c: str) -> bool:
    return c.isalpha() or c in ("_", "$") or (c > "\x7f" and c.isidentifier())


def _is_ident_part(c: str) -> bool:
    return c.isalnum() or c in ("_", "$", "\u200c", "\u200d") or (c > "\x7f" and ("a" + c).isidentifier())


class Lexer:
    """
    Tokenizer for the JavaScript / TypeScript surface the bundler cares
    about: it must find module syntax reliably, so it knows enough to skip
    over comments, strings, templates and regular expressions, and nothing
    more. Operators it does not distinguish come out as OP.
    """

    def __init__(self, source: str, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.length = len(source)
        self.index = 0
        self.line = 1
        self.column = 1
        self._prev: Optional[Token] = None

    # --- low-level char utilities ---

    def _at_end(self) -> bool:
        return self.index >= self.length

    def _peek(self) -> str:
        if self._at_end():
            return "\0"
        return self.source[self.index]

    def _peek_next(self) -> str:
        if self.index + 1 >= self.length:
            return "\0"
        return self.source[self.index + 1]

    def _advance(self) -> str:
        c = self._peek()
        if not self._at_end():
            self.index += 1
            if c == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return c

    def _error(self, message: str, line: int, column: int) -> LexerError:
        return LexerError(message, filename=self.filename, line=line, column=column)

    # --- main API ---

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        self._skip_hashbang()
        while True:
            tok = self._next_token()
            tokens.append(tok)
            if tok.kind is TokenKind.EOF:
                break
        return tokens

    def _next_token(self) -> Token:
        self._skip_ws_and_comments()
        start_line, start_col, start = self.line, self.column, self.index

        if self._at_end():
            return Token(TokenKind.EOF, "", start_line, start_col, start, start)

        c = self._advance()

        if _is_ident_start(c) or c == "\\":
            while _is_ident_part(self._peek()) or self._peek() == "\\":
                self._advance()
            text = self.source[start:self.index]
            kind = KEYWORDS.get(text, TokenKind.IDENT)
        elif c.isdigit() or (c == "." and self._peek().isdigit()):
            self._read_number(start)
            kind = TokenKind.NUMBER
        elif c in ("'", '"'):
            self._read_string(c, start_line, start_col)
            kind = TokenKind.STRING
        elif c == "`":
            self._read_template(start_line, start_col)
            kind = TokenKind.TEMPLATE
        elif c == "/" and self._regex_allowed():
            self._read_regex(start_line, start_col)
            kind = TokenKind.REGEX
        elif c in _SINGLE_CHAR_KINDS and not self._starts_operator(start):
            kind = _SINGLE_CHAR_KINDS[c]
        else:
            for op in _OPERATORS:
                if self.source.startswith(op, start):
                    for _ in range(len(op) - 1):
                        self._advance()
                    break
            kind = TokenKind.OP

        tok = Token(kind, self.source[start:self.index], start_line, start_col, start, self.index)
        self._prev = tok
        return tok

    def _starts_operator(self, start: int) -> bool:
        return any(self.source.startswith(op, start) for op in _OPERATORS)

    def _regex_allowed(self) -> bool:
        prev = self._prev
        if prev is None:
            return True
        if prev.kind in (TokenKind.NUMBER, TokenKind.STRING, TokenKind.TEMPLATE, TokenKind.REGEX,
                         TokenKind.RPAREN, TokenKind.RBRACKET):
            return False
        if prev.kind is TokenKind.IDENT:
            return prev.text in REGEX_PRECEDING_WORDS
        if prev.kind is TokenKind.OP and prev.text in ("++", "--"):
            return False
        return True

    def _read_number(self, start: int) -> None:
        is_hex = self.source[start:start + 2] in ("0x", "0X")
        while True:
            c = self._peek()
            if c.isalnum() or c in ("_", "."):
                self._advance()
            elif c in ("+", "-") and self.source[self.index - 1] in "eE" and not is_hex:
                # exponent sign, e.g. 1e-9
                self._advance()
            else:
                break

    def _read_string(self, quote: str, start_line: int, start_col: int) -> None:
        while True:
            ch = self._peek()
            if self._at_end() or ch == "\n":
                raise self._error("[LEX-0010] unterminated string literal", start_line, start_col)
            if ch == "\\":
                self._advance()
                self._advance()
                continue
            self._advance()
            if ch == quote:
                return

    def _read_template(self, start_line: int, start_col: int) -> None:
        while True:
            if self._at_end():
                raise self._error("[LEX-0020] unterminated template literal", start_line, start_col)
            ch = self._advance()
            if ch == "\\":
                self._advance()
            elif ch == "`":
                return
            elif ch == "$" and self._peek() == "{":
                self._advance()
                self._read_substitution(start_line, start_col)

    def _read_substitution(self, start_line: int, start_col: int) -> None:
        # Tokenize the embedded expression until its closing brace.
        saved_prev = self._prev
        self._prev = None
        depth = 0
        while True:
            tok = self._next_token()
            if tok.kind is TokenKind.EOF:
                raise self._error("[LEX-0020] unterminated template literal", start_line, start_col)
            if tok.kind is TokenKind.LBRACE:
                depth += 1
            elif tok.kind is TokenKind.RBRACE:
                if depth == 0:
                    break
                depth -= 1
        self._prev = saved_prev

    def _read_regex(self, start_line: int, start_col: int) -> None:
        in_class = False
        while True:
            ch = self._peek()
            if self._at_end() or ch == "\n":
                raise self._error("[LEX-0030] unterminated regular expression literal", start_line, start_col)
            self._advance()
            if ch == "\\":
                self._advance()
            elif ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                break
        # flags
        while _is_ident_part(self._peek()):
            self._advance()

    def _skip_hashbang(self) -> None:
        if self.source.startswith("#!"):
            while self._peek() not in ("\n", "\0"):
                self._advance()

    def _skip_ws_and_comments(self) -> None:
        while True:
            c = self._peek()
            if c in (" ", "\t", "\r", "\n", "\v", "\f", "\ufeff", "\u00a0", "\u2028", "\u2029"):
                self._advance()
                continue
            if c == "/" and self._peek_next() == "/":
                # line comment
                self._advance()  # '/'
                self._advance()  # second '/'
                while self._peek() not in ("\n", "\0"):
                    self._advance()
                continue
            if c == "/" and self._peek_next() == "*":
                # block comment
                start_line, start_col = self.line, self.column
                self._advance()  # '/'
                self._advance()  # '*'
                while True:
                    if self._at_end():
                        raise self._error("[LEX-0040] unterminated block comment", start_line, start_col)
                    if self._peek() == "*" and self._peek_next() == "/":
                        self._advance()  # '*'
                        self._advance()  # '/'
                        break
                    self._advance()
                continue
            break
