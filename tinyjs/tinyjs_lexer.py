"""
The tinyjs lexer: turns source text into a list of tokens.
"""

from dataclasses import dataclass
from typing import Any, List

from tinyjs.tinyjs_datatypes import LexError

# Token kinds
NUMBER = "number"
STRING = "string"
BOOLEAN = "boolean"
IDENT = "ident"
KEYWORD = "keyword"
OP = "op"
NEWLINE = "newline"
EOF = "eof"

KEYWORDS = frozenset([
    "null", "var", "let", "const", "if", "else", "switch", "case", "default",
    "while", "do", "for", "in", "of", "break", "continue", "return",
    "function", "typeof",
])

# Longest operators first so that e.g. '>>>=' wins over '>>>', '>>' and '>'.
OPERATORS = (
    ">>>=",
    "===", "!==", "**=", "<<=", ">>=", ">>>", "||=", "&&=",
    "=>", "==", "!=", "<=", ">=", "&&", "||", "++", "--", "+=", "-=", "*=",
    "/=", "%=", "&=", "|=", "^=", "**", "<<", ">>",
    "(", ")", "{", "}", "[", "]", ",", ";", ":", "?", ".", "=", "+", "-",
    "*", "/", "%", "&", "|", "^", "~", "!", "<", ">",
)

SIMPLE_ESCAPES = {
    "n": "\n", "r": "\r", "t": "\t", "b": "\b", "f": "\f", "v": "\v",
    "0": "\0", '"': '"', "'": "'", "\\": "\\",
}

_RADIX_DIGITS = {
    "x": (16, "0123456789abcdefABCDEF"),
    "o": (8, "01234567"),
    "b": (2, "01"),
}


def _is_digit(ch: str) -> bool:
    return ch != "" and ch in "0123456789"


@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    line: int = 1
    col: int = 1

    def is_op(self, *ops: str) -> bool:
        return self.kind == OP and self.value in ops

    def is_keyword(self, *words: str) -> bool:
        return self.kind == KEYWORD and self.value in words

    def describe(self) -> str:
        if self.kind == EOF:
            return "end of input"
        if self.kind == NEWLINE:
            return "newline"
        if self.kind == STRING:
            return f"string {self.value!r}"
        return f"{self.kind} {self.value!r}" if self.kind != OP else f"'{self.value}'"


class Lexer:
    """Single-pass scanner over a source string."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.line = 1
        self.col = 1

    def _peek(self, offset: int = 0) -> str:
        i = self.pos + offset
        return self.text[i] if i < len(self.text) else ""

    def _advance(self, count: int = 1) -> str:
        chunk = self.text[self.pos:self.pos + count]
        for ch in chunk:
            if ch == "\n":
                self.line += 1
                self.col = 1
            else:
                self.col += 1
        self.pos += count
        return chunk

    def _error(self, message: str, line: int, col: int) -> LexError:
        return LexError(message, line=line, col=col)

    def tokens(self) -> List[Token]:
        out: List[Token] = []
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            line, col = self.line, self.col

            if ch == "\r" or ch == "\n":
                if ch == "\r" and self._peek(1) == "\n":
                    self.pos += 2
                else:
                    self.pos += 1
                self.line += 1
                self.col = 1
                out.append(Token(NEWLINE, "\n", line, col))
                continue

            if ch in " \t\f\v":
                self._advance()
                continue

            if text.startswith("//", self.pos):
                while self.pos < len(text) and text[self.pos] not in "\r\n":
                    self._advance()
                continue

            if text.startswith("/*", self.pos):
                end = text.find("*/", self.pos + 2)
                # An unterminated block comment runs to the end of input.
                stop = len(text) if end == -1 else end + 2
                self._advance(stop - self.pos)
                continue

            if _is_digit(ch):
                out.append(self._number(line, col))
                continue

            if ch == '"' or ch == "'":
                out.append(self._string(line, col))
                continue

            if ch.isalpha() or ch == "_" or ch == "$":
                out.append(self._word(line, col))
                continue

            for op in OPERATORS:
                if text.startswith(op, self.pos):
                    self._advance(len(op))
                    out.append(Token(OP, op, line, col))
                    break
            else:
                raise self._error(f"unexpected character {ch!r}", line, col)

        out.append(Token(EOF, None, self.line, self.col))
        return out

    def _number(self, line: int, col: int) -> Token:
        text = self.text
        if self._peek() == "0" and self._peek(1).lower() in _RADIX_DIGITS:
            base, allowed = _RADIX_DIGITS[self._peek(1).lower()]
            self._advance(2)
            start = self.pos
            while self._peek() and self._peek() in allowed:
                self._advance()
            digits = text[start:self.pos]
            if not digits:
                raise self._error("invalid number literal: missing digits after radix prefix", line, col)
            return Token(NUMBER, float(int(digits, base)), line, col)

        start = self.pos
        while _is_digit(self._peek()):
            self._advance()
        if self._peek() == "." and _is_digit(self._peek(1)):
            self._advance()
            while _is_digit(self._peek()):
                self._advance()
        if self._peek() in ("e", "E"):
            offset = 1
            if self._peek(1) in ("+", "-"):
                offset = 2
            if _is_digit(self._peek(offset)):
                self._advance(offset)
                while _is_digit(self._peek()):
                    self._advance()
        return Token(NUMBER, float(text[start:self.pos]), line, col)

    def _hex_escape(self, count: int, line: int, col: int) -> str:
        digits = self.text[self.pos:self.pos + count]
        if len(digits) != count or any(d not in "0123456789abcdefABCDEF" for d in digits):
            raise self._error(f"invalid escape sequence: expected {count} hex digits", line, col)
        self._advance(count)
        return chr(int(digits, 16))

    def _string(self, line: int, col: int) -> Token:
        quote = self._advance()
        parts = []
        while True:
            if self.pos >= len(self.text):
                raise self._error("unterminated string literal", line, col)
            ch = self._advance()
            if ch == quote:
                break
            if ch != "\\":
                parts.append(ch)
                continue
            if self.pos >= len(self.text):
                raise self._error("unterminated escape sequence", line, col)
            esc = self._advance()
            if esc in SIMPLE_ESCAPES:
                parts.append(SIMPLE_ESCAPES[esc])
            elif esc == "x":
                parts.append(self._hex_escape(2, line, col))
            elif esc == "u":
                parts.append(self._hex_escape(4, line, col))
            else:
                parts.append(esc)
        return Token(STRING, "".join(parts), line, col)

    def _word(self, line: int, col: int) -> Token:
        start = self.pos
        while self._peek() and (self._peek().isalnum() or self._peek() in "_$"):
            self._advance()
        word = self.text[start:self.pos]
        if word in ("true", "false"):
            return Token(BOOLEAN, word == "true", line, col)
        if word in KEYWORDS:
            return Token(KEYWORD, word, line, col)
        return Token(IDENT, word, line, col)


def tokenize(text: str) -> List[Token]:
    """Lexes `text` into tokens terminated by a single EOF token."""
    return Lexer(text).tokens()
