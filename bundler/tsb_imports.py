#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

"""
Static scan of top-level module syntax.

The scanner walks the token stream of one source file and records every
top-level import, re-export and export statement, in source order. It does
not evaluate anything and does not look inside function bodies, blocks or
parenthesised expressions: a nested or dynamic `import(...)` is not a module
edge.

The graph builder only needs the specifiers (see `scan_imports`); the ESM
transpiler also uses the bindings and source offsets of each statement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Set, Tuple

from tsb_errors import UnsupportedImportError
from tsb_lexer import Lexer, Token, TokenKind
from tsb_string_escape import EscapeDecodeError, decode_string_literal


class StatementKind(Enum):
    IMPORT = auto()  # import ... from "x" / import "x"
    REEXPORT = auto()  # export * from "x" / export { a } from "x"
    EXPORT_LIST = auto()  # export { a, b as c }
    EXPORT_DECLARATION = auto()  # export const / function / class ...
    EXPORT_DEFAULT = auto()  # export default ...


@dataclass
class Binding:
    """
    One name crossing a module boundary.

    For imports, `external` is the name in the imported module ("default",
    or "*" for a namespace) and `local` the name bound here. For exports,
    `external` is the exported name and `local` the name it reads from
    (a local binding, or a name in the re-exported module).
    """
    external: str
    local: str
    type_only: bool = False


@dataclass
class ModuleStatement:
    kind: StatementKind
    start: int  # offset of the 'import' / 'export' keyword
    end: int  # offset one past the statement (trailing ';' included)
    line: int
    column: int
    specifier: Optional[str] = None
    bindings: List[Binding] = field(default_factory=list)
    type_only: bool = False
    star: bool = False  # export * from "x"
    keyword_end: int = 0  # end of the 'export' / 'export default' prefix
    default_name: Optional[str] = None  # export default function f / class C
    lexical_keyword: Optional[Tuple[int, int]] = None  # span of 'let' / 'const' in export declarations

    @property
    def is_edge(self) -> bool:
        return self.specifier is not None


_OPENERS = {TokenKind.LBRACE, TokenKind.LPAREN, TokenKind.LBRACKET}
_CLOSERS = {TokenKind.RBRACE, TokenKind.RPAREN, TokenKind.RBRACKET}

# A token starting a new line with one of these words ends a declaration
# that has no semicolon.
_STATEMENT_WORDS = {
    "const", "let", "var", "function", "class", "if", "for", "while", "do",
    "return", "throw", "try", "switch", "async", "await",
}

# TypeScript declarations that produce no runtime value.
_TYPE_DECLARATION_WORDS = {"type", "interface"}


class ModuleSyntaxScanner:
    def __init__(self, tokens: List[Token], filename: str = "<input>") -> None:
        self.tokens = tokens
        self.filename = filename
        self.pos = 0

    # --- token utilities ---

    def _peek(self, offset: int = 0) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def _prev(self) -> Optional[Token]:
        return self.tokens[self.pos - 1] if self.pos > 0 else None

    def _advance(self) -> Token:
        tok = self._peek()
        if tok.kind is not TokenKind.EOF:
            self.pos += 1
        return tok

    def _at_word(self, word: str, offset: int = 0) -> bool:
        tok = self._peek(offset)
        return tok.kind is TokenKind.IDENT and tok.text == word

    def _unsupported(self, message: str, tok: Token) -> UnsupportedImportError:
        return UnsupportedImportError(message, filename=self.filename, line=tok.line, column=tok.column)

    # --- main API ---

    def scan(self) -> List[ModuleStatement]:
        statements: List[ModuleStatement] = []
        depth = 0
        while self._peek().kind is not TokenKind.EOF:
            tok = self._peek()
            if tok.kind in _OPENERS:
                depth += 1
            elif tok.kind in _CLOSERS:
                depth = max(0, depth - 1)
            elif depth == 0 and tok.kind is TokenKind.IMPORT and not self._after_member_access():
                stmt = self._parse_import()
                if stmt is not None:
                    statements.append(stmt)
                    continue
            elif depth == 0 and tok.kind is TokenKind.EXPORT and not self._after_member_access():
                saved = self.pos
                stmt = self._parse_export()
                if stmt is not None:
                    statements.append(stmt)
                    continue
                self.pos = saved
            self._advance()
        return statements

    def _after_member_access(self) -> bool:
        prev = self._prev()
        return prev is not None and (prev.kind is TokenKind.DOT or prev.text == "?.")

    # --- import declarations ---

    def _parse_import(self) -> Optional[ModuleStatement]:
        start_tok = self.tokens[self.pos]
        nxt = self._peek(1)

        # import(...) and import.meta are expressions, not declarations.
        if nxt.kind in (TokenKind.LPAREN, TokenKind.DOT):
            return None
        # TypeScript 'import x = require("y")' / 'import x = A.B'.
        if nxt.kind is TokenKind.IDENT and self._peek(2).kind is TokenKind.EQ:
            return None
        if nxt.kind is TokenKind.IDENT and nxt.text == "type" and self._peek(2).kind is TokenKind.IDENT \
                and self._peek(3).kind is TokenKind.EQ:
            return None

        self._advance()  # 'import'
        stmt = ModuleStatement(StatementKind.IMPORT, start_tok.start, start_tok.end,
                               start_tok.line, start_tok.column)

        if self._peek().kind is TokenKind.STRING or self._peek().kind is TokenKind.TEMPLATE:
            # side-effect import
            self._finish_with_specifier(stmt)
            return stmt

        if self._at_word("type") and (
                self._peek(1).kind in (TokenKind.LBRACE, TokenKind.STAR)
                or (self._peek(1).kind is TokenKind.IDENT and self._peek(1).text != "from")):
            self._advance()
            stmt.type_only = True

        tok = self._peek()
        if tok.kind is TokenKind.IDENT:
            self._advance()
            stmt.bindings.append(Binding("default", tok.text))
            if self._peek().kind is TokenKind.COMMA:
                self._advance()

        tok = self._peek()
        if tok.kind is TokenKind.STAR:
            self._advance()
            if not self._at_word("as"):
                raise self._unsupported("[IMP-0020] malformed import declaration: expected 'as' after '*'",
                                        self._peek())
            self._advance()
            local = self._advance()
            stmt.bindings.append(Binding("*", local.text))
        elif tok.kind is TokenKind.LBRACE:
            stmt.bindings.extend(self._parse_named_list())

        if not self._at_word("from"):
            raise self._unsupported("[IMP-0020] malformed import declaration: expected 'from'", self._peek())
        self._advance()
        self._finish_with_specifier(stmt)
        return stmt

    def _finish_with_specifier(self, stmt: ModuleStatement) -> None:
        """Consume the specifier literal, import attributes and an optional ';'."""
        tok = self._advance()
        if tok.kind is not TokenKind.STRING:
            raise self._unsupported(
                f"[IMP-0010] module specifier must be a string literal, got {tok!r}", tok)
        stmt.specifier = self._decode(tok)
        end = tok.end

        # import attributes: with { type: "json" } / assert { ... }
        if (self._at_word("with") or self._at_word("assert")) and self._peek(1).kind is TokenKind.LBRACE \
                and self._peek().line == tok.line:
            self._advance()
            end = self._skip_balanced().end

        if self._peek().kind is TokenKind.SEMI:
            end = self._advance().end
        stmt.end = end

    def _parse_named_list(self) -> List[Binding]:
        """Parse '{ a, b as c, type T, "x y" as d }'. The '{' is the current token."""
        open_tok = self._advance()
        bindings: List[Binding] = []
        while self._peek().kind is not TokenKind.RBRACE:
            if self._peek().kind is TokenKind.EOF:
                raise self._unsupported("[IMP-0020] unterminated '{' in module statement", open_tok)
            type_only = False
            if self._at_word("type") and self._peek(1).kind in (TokenKind.IDENT, TokenKind.STRING) \
                    and not self._at_word("as", 1):
                self._advance()
                type_only = True
            name = self._binding_name(self._advance())
            local = name
            if self._at_word("as"):
                self._advance()
                local = self._binding_name(self._advance())
            bindings.append(Binding(name, local, type_only))
            if self._peek().kind is TokenKind.COMMA:
                self._advance()
            elif self._peek().kind is not TokenKind.RBRACE:
                raise self._unsupported(f"[IMP-0020] unexpected {self._peek()!r} in module statement",
                                        self._peek())
        self._advance()  # '}'
        return bindings

    def _decode(self, tok: Token) -> str:
        try:
            return decode_string_literal(tok.text)
        except EscapeDecodeError as e:
            raise self._unsupported(f"[IMP-0011] invalid escape in string literal {tok.text}: {e.code}",
                                    tok) from e

    def _binding_name(self, tok: Token) -> str:
        if tok.kind is TokenKind.STRING:
            return self._decode(tok)
        if tok.kind in (TokenKind.IDENT, TokenKind.IMPORT, TokenKind.EXPORT):
            return tok.text
        raise self._unsupported(f"[IMP-0020] unexpected {tok!r} in module statement", tok)

    # --- export declarations ---

    def _parse_export(self) -> Optional[ModuleStatement]:
        start_tok = self._advance()  # 'export'
        stmt = ModuleStatement(StatementKind.EXPORT_DECLARATION, start_tok.start, start_tok.end,
                               start_tok.line, start_tok.column, keyword_end=start_tok.end)
        tok = self._peek()

        if self._at_word("type") and self._peek(1).kind in (TokenKind.LBRACE, TokenKind.STAR):
            self._advance()
            stmt.type_only = True
            tok = self._peek()

        if tok.kind is TokenKind.STAR:
            self._advance()
            stmt.kind = StatementKind.REEXPORT
            if self._at_word("as"):
                self._advance()
                name = self._binding_name(self._advance())
                stmt.bindings.append(Binding(name, "*"))
            else:
                stmt.star = True
            if not self._at_word("from"):
                raise self._unsupported("[IMP-0020] malformed export declaration: expected 'from'", self._peek())
            self._advance()
            self._finish_with_specifier(stmt)
            return stmt

        if tok.kind is TokenKind.LBRACE:
            bindings = self._parse_named_list()
            # In 'export { a as b }' the first name is local, the second exported.
            stmt.bindings = [Binding(b.local, b.external, b.type_only) for b in bindings]
            if self._at_word("from"):
                self._advance()
                stmt.kind = StatementKind.REEXPORT
                self._finish_with_specifier(stmt)
                return stmt
            stmt.kind = StatementKind.EXPORT_LIST
            stmt.end = self.tokens[self.pos - 1].end
            if self._peek().kind is TokenKind.SEMI:
                stmt.end = self._advance().end
            return stmt

        if self._at_word("default"):
            default_tok = self._advance()
            stmt.kind = StatementKind.EXPORT_DEFAULT
            stmt.keyword_end = default_tok.end
            stmt.end = default_tok.end
            stmt.default_name = self._declared_name()
            return stmt

        if tok.kind is TokenKind.EQ or self._at_word("as"):
            # TypeScript 'export = x' / 'export as namespace X': no module edge.
            return None

        names = self._declaration_names(stmt)
        if names is None:
            return None
        stmt.bindings = [Binding(name, name) for name in names]
        return stmt

    def _declared_name(self) -> Optional[str]:
        """Name of a function or class declaration at the cursor, if any."""
        offset = 0
        while self._at_word("async", offset) or self._at_word("abstract", offset):
            offset += 1
        if not (self._at_word("function", offset) or self._at_word("class", offset)):
            return None
        offset += 1
        if self._peek(offset).kind is TokenKind.STAR:
            offset += 1
        tok = self._peek(offset)
        if tok.kind is TokenKind.IDENT and tok.text not in ("extends", "implements"):
            return tok.text
        return None

    def _declaration_names(self, stmt: ModuleStatement) -> Optional[List[str]]:
        """
        Names declared by 'export <declaration>', or None for forms that are
        not recognised (left untouched for the transpiler to reject).
        """
        while self._at_word("declare") or self._at_word("abstract") or self._at_word("async"):
            self._advance()

        tok = self._peek()
        if tok.kind is not TokenKind.IDENT:
            return None

        if tok.text in ("const", "let", "var"):
            self._advance()
            if self._at_word("enum"):
                self._advance()
                return [self._advance().text]
            if tok.text != "var":
                stmt.lexical_keyword = (tok.start, tok.end)
            return self._declarator_names()

        if tok.text in ("function", "class", "enum", "namespace", "module"):
            self._advance()
            if self._peek().kind is TokenKind.STAR:
                self._advance()
            return [self._advance().text]

        if tok.text in _TYPE_DECLARATION_WORDS:
            stmt.type_only = True
            return []

        return None

    def _declarator_names(self) -> List[str]:
        names: List[str] = []
        while True:
            names.extend(self._pattern_names())
            if self._peek().kind is TokenKind.OP and self._peek().text == "!":
                self._advance()
            if self._peek().kind is TokenKind.COLON:
                # type annotation
                self._advance()
                self._skip_expression({TokenKind.EQ, TokenKind.COMMA, TokenKind.SEMI}, in_type=True)
            if self._peek().kind is TokenKind.EQ:
                self._advance()
                self._skip_expression({TokenKind.COMMA, TokenKind.SEMI})
            if self._peek().kind is TokenKind.COMMA:
                self._advance()
                continue
            return names

    def _pattern_names(self) -> List[str]:
        """Names bound by an identifier, object or array binding pattern."""
        tok = self._advance()
        if tok.kind is TokenKind.IDENT:
            return [tok.text]
        if tok.kind is TokenKind.LBRACE:
            close = TokenKind.RBRACE
        elif tok.kind is TokenKind.LBRACKET:
            close = TokenKind.RBRACKET
        else:
            raise self._unsupported(f"[IMP-0030] unsupported binding pattern at {tok!r}", tok)

        names: List[str] = []
        while self._peek().kind is not close:
            nxt = self._peek()
            if nxt.kind is TokenKind.EOF:
                raise self._unsupported("[IMP-0030] unterminated binding pattern", tok)
            if nxt.kind is TokenKind.COMMA:
                self._advance()
                continue
            if nxt.kind is TokenKind.OP and nxt.text == "...":
                self._advance()
                names.extend(self._pattern_names())
            elif close is TokenKind.RBRACE:
                key = self._advance()
                if key.kind is TokenKind.LBRACKET:
                    # computed key
                    self.pos -= 1
                    self._skip_balanced()
                if self._peek().kind is TokenKind.COLON:
                    self._advance()
                    names.extend(self._pattern_names())
                else:
                    names.append(key.text)
            else:
                names.extend(self._pattern_names())
            if self._peek().kind is TokenKind.EQ:
                self._advance()
                self._skip_expression({TokenKind.COMMA, close})
        self._advance()  # close
        return names

    # --- skipping ---

    def _skip_balanced(self) -> Token:
        """Skip a bracketed group starting at the cursor; return its closing token."""
        depth = 0
        while True:
            tok = self._advance()
            if tok.kind is TokenKind.EOF:
                raise self._unsupported("[IMP-0030] unbalanced brackets in module statement", tok)
            if tok.kind in _OPENERS:
                depth += 1
            elif tok.kind in _CLOSERS:
                depth -= 1
                if depth == 0:
                    return tok

    def _skip_expression(self, stop: Set[TokenKind], in_type: bool = False) -> None:
        """
        Skip an expression up to (not including) a token in `stop` at nesting
        depth 0, an unmatched closing bracket, or a line break followed by
        the start of a new statement. With `in_type`, angle brackets of
        generic arguments nest too.
        """
        depth = 0
        while True:
            tok = self._peek()
            if tok.kind is TokenKind.EOF:
                return
            if depth == 0:
                if tok.kind in stop or tok.kind in _CLOSERS:
                    return
                prev = self._prev()
                if prev is not None and tok.line > prev.line and self._starts_statement(tok, prev):
                    return
            if tok.kind in _OPENERS or (in_type and tok.text == "<"):
                depth += 1
            elif tok.kind in _CLOSERS or (in_type and tok.text == ">"):
                depth -= 1
            elif in_type and tok.text == ">>":
                depth -= 2
            self._advance()

    @staticmethod
    def _starts_statement(tok: Token, prev: Token) -> bool:
        if prev.kind in (TokenKind.OP, TokenKind.EQ, TokenKind.COMMA, TokenKind.DOT, TokenKind.COLON):
            return False
        if tok.kind in (TokenKind.IMPORT, TokenKind.EXPORT):
            return True
        return tok.kind is TokenKind.IDENT and tok.text in _STATEMENT_WORDS


def scan_module_syntax(source: str, filename: str = "<input>") -> List[ModuleStatement]:
    """All top-level module statements of `source`, in source order."""
    tokens = Lexer(source, filename=filename).tokenize()
    return ModuleSyntaxScanner(tokens, filename=filename).scan()


def scan_imports(source: str, filename: str = "<input>") -> List[ModuleStatement]:
    """Top-level statements that name another module (imports and re-exports)."""
    return [stmt for stmt in scan_module_syntax(source, filename) if stmt.is_edge]
