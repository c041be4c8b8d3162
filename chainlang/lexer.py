"""Chain expression lexer.

Turns a raw chain string such as ``/dev:analyze src >> /dev:fix || /qa:test``
into a flat token stream. Command tokens carry their trailing arguments, so
the parser never sees bare words.

Unknown input is skipped rather than rejected; every skipped run of
characters is recorded as a :class:`LexDiagnostic` and logged, and
``Lexer(strict=True)`` raises :class:`ParseError` instead.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from loguru import logger

from .errors import ParseError


class TokenKind(str, Enum):
    COMMAND = "command"
    SEQUENTIAL = ">>"
    PARALLEL = "||"
    PIPE = "|>"
    BACKGROUND = "&"
    QUESTION = "?"
    COLON = ":"
    LPAREN = "("
    RPAREN = ")"


# Longest operators first so ">>" never lexes as two skipped ">".
OPERATORS = (
    TokenKind.SEQUENTIAL,
    TokenKind.PARALLEL,
    TokenKind.PIPE,
    TokenKind.BACKGROUND,
    TokenKind.QUESTION,
    TokenKind.COLON,
)
GROUPS = (TokenKind.LPAREN, TokenKind.RPAREN)

IDENT = r"[A-Za-z_][A-Za-z0-9_\-]*"
COMMAND_RE = re.compile(rf"/({IDENT}):({IDENT})")
QUOTES = "\"'"

# Sequences that end a bare argument even without surrounding whitespace.
_ARG_STOPS = (">>", "||", "|>", "&", "(", ")")


@dataclass
class Token:
    kind: TokenKind
    value: str
    position: int
    args: Optional[List[str]] = None
    namespace: Optional[str] = None
    end: Optional[int] = None

    def __repr__(self) -> str:
        if self.kind is TokenKind.COMMAND:
            return f"Token(command, /{self.namespace}:{self.value} {self.args}, pos={self.position})"
        return f"Token({self.kind.value!r}, pos={self.position})"


@dataclass
class LexDiagnostic:
    """A run of input the lexer could not assign to any token."""
    position: int
    text: str
    message: str = "unrecognized input skipped"


@dataclass
class Lexer:
    text: str
    namespace: Optional[str] = None
    strict: bool = False
    pos: int = 0
    diagnostics: List[LexDiagnostic] = field(default_factory=list)

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        length = len(self.text)
        while self.pos < length:
            if self.text[self.pos].isspace():
                self.pos += 1
                continue

            command = self._match_command()
            if command is not None:
                tokens.append(command)
                self._read_args(command)
                continue

            op = self._match_operator(OPERATORS + GROUPS)
            if op is not None:
                tokens.append(Token(op, op.value, self.pos, end=self.pos + len(op.value)))
                self.pos += len(op.value)
                continue

            self._skip()
        logger.debug("Tokenized {} token(s) from {!r}", len(tokens), self.text)
        return tokens

    # ---------- matching ----------
    def _match_command(self) -> Optional[Token]:
        m = COMMAND_RE.match(self.text, self.pos)
        if m is None:
            return None
        namespace, name = m.group(1), m.group(2)
        if self.namespace is not None and namespace != self.namespace:
            return None
        token = Token(TokenKind.COMMAND, name, self.pos, args=[], namespace=namespace, end=m.end())
        self.pos = m.end()
        return token

    def _match_operator(self, kinds) -> Optional[TokenKind]:
        for kind in kinds:
            if self.text.startswith(kind.value, self.pos):
                return kind
        return None

    def _at_boundary(self) -> bool:
        # Any command ends an argument list, foreign namespaces included.
        if self._match_operator(OPERATORS + GROUPS) is not None:
            return True
        return COMMAND_RE.match(self.text, self.pos) is not None

    # ---------- arguments ----------
    def _read_args(self, command: Token) -> None:
        """Attach trailing arguments to ``command`` and extend its end offset."""
        length = len(self.text)
        while True:
            while self.pos < length and self.text[self.pos].isspace():
                self.pos += 1
            if self.pos >= length or self._at_boundary():
                return
            if self.text[self.pos] in QUOTES:
                command.args.append(self._read_quoted())
            else:
                command.args.append(self._read_bare())
            command.end = self.pos

    def _read_bare(self) -> str:
        start = self.pos
        length = len(self.text)
        while self.pos < length and not self.text[self.pos].isspace():
            if any(self.text.startswith(stop, self.pos) for stop in _ARG_STOPS):
                break
            self.pos += 1
        return self.text[start:self.pos]

    def _read_quoted(self) -> str:
        quote = self.text[self.pos]
        start = self.pos
        self.pos += 1
        chars: List[str] = []
        length = len(self.text)
        while self.pos < length:
            ch = self.text[self.pos]
            if ch == "\\" and self.pos + 1 < length:
                chars.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            if ch == quote:
                self.pos += 1
                return "".join(chars)
            chars.append(ch)
            self.pos += 1
        self._report(start, self.text[start:], "unterminated quoted argument")
        return "".join(chars)

    # ---------- diagnostics ----------
    def _skip(self) -> None:
        start = self.pos
        foreign = COMMAND_RE.match(self.text, self.pos)
        # A command outside the accepted namespace is dropped whole.
        self.pos = foreign.end() if foreign is not None else self.pos + 1
        # Fold a run of unusable characters into one diagnostic.
        while (
            self.pos < len(self.text)
            and not self.text[self.pos].isspace()
            and not self._at_boundary()
        ):
            self.pos += 1
        self._report(start, self.text[start:self.pos])

    def _report(self, position: int, text: str, message: str = "unrecognized input skipped") -> None:
        if self.strict:
            raise ParseError(f"{message}: {text!r}", position)
        self.diagnostics.append(LexDiagnostic(position, text, message))
        logger.warning("Lexer: {} {!r} at position {}", message, text, position)


def tokenize(text: str, namespace: Optional[str] = None, strict: bool = False) -> List[Token]:
    """Tokenize ``text``; lenient by default, never raises unless ``strict``."""
    return Lexer(text, namespace=namespace, strict=strict).tokenize()
