#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

"""
String escape helpers shared by the import scanner and the ESM transpiler.

The lexer keeps string token text exactly as written (quotes and escape
sequences included). This module decodes that text to the string value the
language would see, and encodes a value back to a double-quoted literal.
"""

import json
from dataclasses import dataclass


_HEX_CHARS = "0123456789abcdefABCDEF"
_SIMPLE_ESCAPES = {
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
}
_LINE_TERMINATORS = ("\n", "\r", "\u2028", "\u2029")


@dataclass(frozen=True)
class EscapeDecodeError(ValueError):
    code: str
    details: str = ""


def decode_string_literal(text: str) -> str:
    """
    Decode a quoted string token ("..." or '...') to its value.
    """
    if len(text) < 2 or text[0] not in "'\"" or text[-1] != text[0]:
        raise EscapeDecodeError("not_a_string_literal", text)
    return decode_string_body(text[1:-1])


def decode_string_body(text: str) -> str:
    """
    Decode the payload of a string literal (without surrounding quotes).
    """
    out = []
    i = 0

    while i < len(text):
        ch = text[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue

        i += 1
        if i >= len(text):
            raise EscapeDecodeError("dangling_backslash")

        esc = text[i]

        if esc in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[esc])
            i += 1
            continue

        # line continuation
        if esc in _LINE_TERMINATORS:
            i += 1
            if esc == "\r" and i < len(text) and text[i] == "\n":
                i += 1
            continue

        if esc == "0" and not (i + 1 < len(text) and text[i + 1].isdigit()):
            out.append("\0")
            i += 1
            continue

        if esc == "x":
            digits = text[i + 1:i + 3]
            if len(digits) != 2 or any(c not in _HEX_CHARS for c in digits):
                raise EscapeDecodeError("invalid_hex_escape", "\\x")
            out.append(chr(int(digits, 16)))
            i += 3
            continue

        if esc == "u":
            if text[i + 1:i + 2] == "{":
                close = text.find("}", i + 2)
                digits = text[i + 2:close] if close != -1 else ""
                if not digits or any(c not in _HEX_CHARS for c in digits):
                    raise EscapeDecodeError("invalid_unicode_escape", "\\u{")
                value = int(digits, 16)
                if value > 0x10FFFF:
                    raise EscapeDecodeError("unicode_out_of_range", "\\u{")
                out.append(chr(value))
                i = close + 1
                continue
            digits = text[i + 1:i + 5]
            if len(digits) != 4 or any(c not in _HEX_CHARS for c in digits):
                raise EscapeDecodeError("invalid_unicode_escape", "\\u")
            out.append(chr(int(digits, 16)))
            i += 5
            continue

        if esc.isdigit():
            # Legacy octal escapes are a syntax error in module code.
            raise EscapeDecodeError("octal_escape", f"\\{esc}")

        # Any other escaped character stands for itself.
        out.append(esc)
        i += 1

    # Fold escaped surrogate pairs into single code points.
    return "".join(out).encode("utf-16", "surrogatepass").decode("utf-16", "surrogatepass")


def encode_string_literal(value: str) -> str:
    """
    Encode a string value as a double-quoted literal that is valid both as
    JSON and as JavaScript source.
    """
    return json.dumps(value)
