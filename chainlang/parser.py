"""Operator-precedence (Pratt) parser for chain expressions.

Binding strength, loosest to tightest::

    &   background
    >>  sequential
    ||  parallel
    |>  pipe
    ?:  conditional

``>>`` and ``||`` flatten: ``a >> b >> c`` is one sequential node with three
children. ``|>`` and ``&`` associate to the left, the false branch of ``?:``
associates to the right (``a ? b : c ? d : e`` reads as ``a ? b : (c ? d : e)``).
The true branch sits between ``?`` and ``:`` and may hold any expression.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Union

from loguru import logger

from .ast import (
    BackgroundNode,
    ChainNode,
    CommandNode,
    ConditionalNode,
    ParallelNode,
    PipeNode,
    SequentialNode,
)
from .errors import ParseError
from .lexer import Token, TokenKind, tokenize
from .validator import validate

PRECEDENCE: Dict[TokenKind, int] = {
    TokenKind.BACKGROUND: 1,
    TokenKind.SEQUENTIAL: 2,
    TokenKind.PARALLEL: 3,
    TokenKind.PIPE: 4,
    TokenKind.QUESTION: 5,
}
LOWEST = 1


class ChainParser:
    def __init__(self, tokens: List[Token], source: str = ""):
        self.tokens = tokens
        self.source = source
        self.pos = 0
        if source:
            self.end = len(source)
        elif tokens:
            last = tokens[-1]
            self.end = last.end if last.end is not None else last.position + len(last.value)
        else:
            self.end = 0

    def parse(self) -> ChainNode:
        if not self.tokens:
            raise ParseError("Empty chain: no commands found", 0)
        root = self.parse_expression(LOWEST)
        tok = self._peek()
        if tok is not None:
            if tok.kind is TokenKind.RPAREN:
                raise ParseError("Unbalanced ')' without matching '('", tok.position)
            raise ParseError(f"Unexpected token {tok.value!r}", tok.position)
        return ChainNode(root, source=self.source)

    # ---------- Pratt core ----------
    def parse_expression(self, min_precedence: int):
        left = self.parse_primary()
        while True:
            tok = self._peek()
            if tok is None or tok.kind not in PRECEDENCE:
                return left
            precedence = PRECEDENCE[tok.kind]
            if precedence < min_precedence:
                return left
            self.pos += 1
            if tok.kind is TokenKind.QUESTION:
                left = self._parse_conditional(left, tok)
            else:
                right = self.parse_expression(precedence + 1)
                left = self._combine(tok.kind, left, right)

    def parse_primary(self):
        tok = self._peek()
        if tok is None:
            raise ParseError("Unexpected end of input: expected a command or '('", self.end)
        if tok.kind is TokenKind.COMMAND:
            self.pos += 1
            return CommandNode(tok.value, tuple(tok.args or ()), tok.namespace or "chain")
        if tok.kind is TokenKind.LPAREN:
            self.pos += 1
            inner = self.parse_expression(LOWEST)
            closing = self._peek()
            if closing is None or closing.kind is not TokenKind.RPAREN:
                raise ParseError("Unbalanced '(': expected ')'", tok.position)
            self.pos += 1
            return inner
        if tok.kind is TokenKind.RPAREN:
            raise ParseError("Unbalanced ')' without matching '('", tok.position)
        raise ParseError(f"Expected a command or '(' but found {tok.value!r}", tok.position)

    def _parse_conditional(self, condition, question: Token):
        if self._peek() is None:
            raise ParseError("Expected '<true> : <false>' after '?', missing ':'", question.position)
        true_branch = self.parse_expression(LOWEST)
        colon = self._peek()
        if colon is None or colon.kind is not TokenKind.COLON:
            where = colon.position if colon is not None else self.end
            raise ParseError("Expected ':' after the true branch of '?'", where)
        self.pos += 1
        false_branch = self.parse_expression(PRECEDENCE[TokenKind.QUESTION])
        return ConditionalNode(condition, true_branch, false_branch)

    def _combine(self, kind: TokenKind, left, right):
        if kind is TokenKind.SEQUENTIAL:
            return SequentialNode(_flatten(SequentialNode, left, right))
        if kind is TokenKind.PARALLEL:
            return ParallelNode(_flatten(ParallelNode, left, right))
        if kind is TokenKind.PIPE:
            return PipeNode(left, right)
        return BackgroundNode(left, right)

    def _peek(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None


def _flatten(cls, left, right) -> tuple:
    nodes = left.nodes if isinstance(left, cls) else (left,)
    return nodes + (right.nodes if isinstance(right, cls) else (right,))


def parse(source: Union[str, List[Token]], namespace: Optional[str] = None, strict: bool = False) -> ChainNode:
    """Parse chain text (or an already lexed token list) into a validated tree."""
    if isinstance(source, str):
        text = source
        tokens = tokenize(source, namespace=namespace, strict=strict)
    else:
        text = ""
        tokens = list(source)
    chain = ChainParser(tokens, source=text).parse()
    validate(chain)
    logger.debug("Parsed chain {!r} into {} root", text, chain.root.kind)
    return chain


compile_chain = parse
