#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

"""
Transpile collaborators.

A transpiler turns one module's source text into a body that runs inside the
bundle's factory function `function (require, module, exports) { ... }`.
Each call sees a single module and nothing else, and import specifiers must
come out exactly as they went in: the factory's `require` looks them up in
the dependency table the graph builder recorded.
"""

import re
import shlex
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

from tsb_context import BuildContext
from tsb_errors import TranspileError
from tsb_imports import Binding, ModuleStatement, ModuleSyntaxScanner, StatementKind
from tsb_lexer import REGEX_PRECEDING_WORDS, Lexer, Token, TokenKind
from tsb_logger import log_debug
from tsb_string_escape import encode_string_literal


class Transpiler(Protocol):
    def transpile(self, source: str, filename: str) -> str:
        ...


_IDENT_RE = re.compile(r"^[A-Za-z_$][\w$]*$")

_ESM_MARKER = 'Object.defineProperty(exports, "__esModule", { value: true });'

_EXPORT_STAR_HELPER = (
    "function __tsb_export_star(m) { Object.keys(m).forEach(function (k) { "
    "if (k !== \"default\" && !Object.prototype.hasOwnProperty.call(exports, k)) "
    "Object.defineProperty(exports, k, { enumerable: true, get: function () { return m[k]; } }); }); }"
)


def _member(obj: str, name: str) -> str:
    if _IDENT_RE.match(name):
        return f"{obj}.{name}"
    return f"{obj}[{encode_string_literal(name)}]"


def _getter(exported: str, expr: str) -> str:
    return (f"Object.defineProperty(exports, {encode_string_literal(exported)}, "
            f"{{ enumerable: true, get: function () {{ return {expr}; }} }});")


_TYPESCRIPT_SUFFIXES = (".ts", ".tsx", ".mts", ".cts")

# Reserved in strict mode code, so a following name can only be TypeScript.
_STRICT_RESERVED_WORDS = {"implements", "interface", "private", "protected", "public"}

_BINDING_WORDS = {"const", "let", "var"}


def is_typescript_file(filename: str) -> bool:
    return filename.endswith(_TYPESCRIPT_SUFFIXES)


def find_type_syntax(tokens: List[Token], statements: List[ModuleStatement]) -> Optional[Token]:
    """
    First token of TypeScript-only syntax outside the module statements the
    transpiler removes, or None.

    Recognised: annotations on bindings and parameters, return type
    annotations, optional parameters, `as` and `satisfies` expressions,
    type-level declarations (type, interface, enum, declare, namespace,
    abstract class) and access modifiers. Generic call arguments and
    non-null assertions are not recognised.
    """
    removed = [(s.start, s.end) for s in statements
               if s.kind in (StatementKind.IMPORT, StatementKind.REEXPORT, StatementKind.EXPORT_LIST)]
    # Enclosing bracket of each group, and the number of '?' / 'case' in it
    # still waiting for their ':'.
    groups: List[List] = [[None, 0]]
    prev: Optional[Token] = None
    before_prev: Optional[Token] = None

    for i, tok in enumerate(tokens):
        if tok.kind is TokenKind.EOF:
            break
        while removed and removed[0][1] <= tok.start:
            removed.pop(0)
        if removed and removed[0][0] <= tok.start:
            continue

        nxt = tokens[i + 1]
        group = groups[-1]
        member = prev is not None and (prev.kind is TokenKind.DOT or prev.text == "?.")
        same_line = nxt.line == tok.line
        at_statement_start = prev is None or prev.line < tok.line or prev.kind in (
            TokenKind.SEMI, TokenKind.LBRACE, TokenKind.RBRACE, TokenKind.EXPORT)

        if tok.kind in (TokenKind.LBRACE, TokenKind.LPAREN, TokenKind.LBRACKET):
            groups.append([tok.kind, 0])
        elif tok.kind in (TokenKind.RBRACE, TokenKind.RPAREN, TokenKind.RBRACKET):
            if len(groups) > 1:
                groups.pop()
        elif tok.kind is TokenKind.SEMI:
            group[1] = 0
        elif tok.kind is TokenKind.OP and tok.text == "?":
            if nxt.kind in (TokenKind.COLON, TokenKind.RPAREN, TokenKind.COMMA):
                return tok  # optional parameter
            group[1] += 1
        elif tok.kind is TokenKind.COLON:
            if group[1] > 0:
                group[1] -= 1
            elif group[0] is TokenKind.LPAREN or (prev is not None and prev.kind is TokenKind.RPAREN):
                return tok
            elif prev is not None and prev.kind is TokenKind.IDENT and before_prev is not None \
                    and before_prev.text in _BINDING_WORDS:
                return tok
        elif tok.kind is TokenKind.IDENT and not member:
            word = tok.text
            if word == "case" or (word == "default" and nxt.kind is TokenKind.COLON):
                group[1] += 1
            elif word in _STRICT_RESERVED_WORDS and nxt.kind is TokenKind.IDENT and same_line \
                    and nxt.text not in ("in", "instanceof", "of"):
                return tok
            elif word in ("as", "satisfies") and prev is not None and prev.line == tok.line \
                    and prev.kind in (TokenKind.IDENT, TokenKind.RPAREN, TokenKind.RBRACKET,
                                      TokenKind.STRING, TokenKind.NUMBER) \
                    and prev.text not in _BINDING_WORDS and prev.text not in REGEX_PRECEDING_WORDS \
                    and nxt.kind in (TokenKind.IDENT, TokenKind.LBRACE, TokenKind.LBRACKET) and same_line:
                return tok
            elif at_statement_start and same_line and nxt.kind is TokenKind.IDENT:
                after = tokens[i + 2] if i + 2 < len(tokens) else nxt
                if word == "type" and (after.kind is TokenKind.EQ or after.text == "<"):
                    return tok
                if word in ("enum", "declare"):
                    return tok
                if word in ("namespace", "module") and after.kind in (TokenKind.LBRACE, TokenKind.DOT):
                    return tok
                if word == "abstract" and nxt.text == "class":
                    return tok

        before_prev, prev = prev, tok
    return None


class EsmTranspiler:
    """
    Lower ES-module syntax in JavaScript to the CommonJS convention of the
    bundle runtime.

      - imports are hoisted: their `require` calls run before the body, in
        source order;
      - exported bindings become getters on `exports`, so importers observe
        later assignments;
      - exported `let` and `const` declarations become `var`, so a getter read
        through an import cycle yields undefined instead of throwing;
      - `export default <expr>` assigns `exports.default`;
      - re-exports forward to the required module.

    Everything that is not module syntax is passed through untouched, and the
    output keeps the line numbers of the input (the prologue shares line 1).
    Default and named import bindings are copied once, when the import runs.
    TypeScript-only syntax is not removed. A TypeScript module that uses it is
    rejected with TRN-0030; bundle such modules with a CommandTranspiler.
    """

    def __init__(self, context: BuildContext | None = None):
        self.context = context or BuildContext.default()

    def transpile(self, source: str, filename: str) -> str:
        tokens = Lexer(source, filename=filename).tokenize()
        statements = ModuleSyntaxScanner(tokens, filename=filename).scan()
        if is_typescript_file(filename):
            tok = find_type_syntax(tokens, statements)
            if tok is not None:
                raise TranspileError(
                    f"[TRN-0030] TypeScript syntax {tok!r} needs an external transpiler "
                    "(set --transpile-cmd or TSB_TRANSPILE_CMD)",
                    filename=filename, line=tok.line, column=tok.column,
                )
        if source.startswith("#!"):
            source = "//" + source[2:]
        if not statements:
            return source

        exports: List[str] = []
        requires: List[str] = []
        edits: List[Tuple[int, int, str]] = []
        uses_export_star = False

        for index, stmt in enumerate(statements):
            tmp = f"__tsb_m{index}"
            if stmt.kind is StatementKind.IMPORT:
                requires.extend(self._lower_import(stmt, tmp))
                edits.append(self._removal(source, stmt))
            elif stmt.kind is StatementKind.REEXPORT:
                if not stmt.type_only:
                    req = f"require({encode_string_literal(stmt.specifier)})"
                    if stmt.star:
                        uses_export_star = True
                        requires.append(f"__tsb_export_star({req});")
                    else:
                        requires.append(f"var {tmp} = {req};")
                        exports.extend(self._reexport_getters(stmt.bindings, tmp))
                edits.append(self._removal(source, stmt))
            elif stmt.kind is StatementKind.EXPORT_LIST:
                exports.extend(_getter(b.external, b.local) for b in stmt.bindings if not b.type_only)
                edits.append(self._removal(source, stmt))
            elif stmt.kind is StatementKind.EXPORT_DECLARATION:
                exports.extend(_getter(b.external, b.local) for b in stmt.bindings)
                edits.append((stmt.start, stmt.keyword_end, ""))
                if stmt.lexical_keyword is not None:
                    # A getter read during a cycle must not hit the temporal dead zone.
                    edits.append((*stmt.lexical_keyword, "var"))
            elif stmt.kind is StatementKind.EXPORT_DEFAULT:
                if stmt.default_name is not None:
                    exports.append(_getter("default", stmt.default_name))
                    edits.append((stmt.start, stmt.keyword_end, ""))
                else:
                    edits.append((stmt.start, stmt.keyword_end, "exports.default ="))

        prologue = [_ESM_MARKER]
        if uses_export_star:
            prologue.append(_EXPORT_STAR_HELPER)
        prologue.extend(exports)
        prologue.extend(requires)

        log_debug(self.context, f"Lowered {len(statements)} module statement(s) in {filename}")
        return " ".join(prologue) + " " + self._apply(source, edits)

    @staticmethod
    def _lower_import(stmt: ModuleStatement, tmp: str) -> List[str]:
        if stmt.type_only:
            return []
        req = f"require({encode_string_literal(stmt.specifier)})"
        bindings = [b for b in stmt.bindings if not b.type_only]
        if not stmt.bindings:
            return [f"{req};"]
        if not bindings:
            # only type imports: nothing exists at run time
            return []
        if len(bindings) == 1 and bindings[0].external == "*":
            return [f"var {bindings[0].local} = {req};"]

        out = [f"var {tmp} = {req};"]
        for b in bindings:
            if b.external == "*":
                out.append(f"var {b.local} = {tmp};")
            elif b.external == "default":
                out.append(f"var {b.local} = {tmp} && {tmp}.__esModule ? {tmp}.default : {tmp};")
            else:
                out.append(f"var {b.local} = {_member(tmp, b.external)};")
        return out

    @staticmethod
    def _reexport_getters(bindings: List[Binding], tmp: str) -> List[str]:
        getters = []
        for b in bindings:
            if b.type_only:
                continue
            expr = tmp if b.local == "*" else _member(tmp, b.local)
            getters.append(_getter(b.external, expr))
        return getters

    @staticmethod
    def _removal(source: str, stmt: ModuleStatement) -> Tuple[int, int, str]:
        # Keep the line structure of the removed statement.
        return stmt.start, stmt.end, "\n" * source.count("\n", stmt.start, stmt.end)

    @staticmethod
    def _apply(source: str, edits: List[Tuple[int, int, str]]) -> str:
        out = []
        pos = 0
        for start, end, replacement in sorted(edits):
            out.append(source[pos:start])
            out.append(replacement)
            pos = end
        out.append(source[pos:])
        return "".join(out)


@dataclass
class CommandTranspiler:
    """
    Run an external transpiler: the module source goes to the command's
    stdin and its stdout is the body. A '{file}' argument is replaced by the
    module's path, e.g.:

        esbuild --loader=ts --format=cjs --sourcefile={file}
    """
    command: List[str]
    context: BuildContext = field(default_factory=BuildContext.default)

    @classmethod
    def from_string(cls, command: str, context: BuildContext | None = None) -> "CommandTranspiler":
        return cls(shlex.split(command), context or BuildContext.default())

    def transpile(self, source: str, filename: str) -> str:
        cmd = [arg.replace("{file}", filename) for arg in self.command]
        log_debug(self.context, f"Transpiling {filename}: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, input=source, capture_output=True, text=True)
        except OSError as e:
            raise TranspileError(f"[TRN-0020] cannot run transpiler '{cmd[0]}': {e}", filename=filename) from e

        if result.returncode != 0:
            details = (result.stderr or result.stdout).strip()
            raise TranspileError(
                f"[TRN-0010] transpiler exited with status {result.returncode}"
                + (f":\n{details}" if details else ""),
                filename=filename,
            )
        return result.stdout
