"""Rendering of chain trees.

``to_string`` emits the canonical chain text with the fewest parentheses that
keep the same shape when parsed again. ``format_tree`` and ``to_dict`` are for
humans and JSON consumers respectively.
"""
from __future__ import annotations

from typing import Any, Dict, List

from .ast import (
    BackgroundNode,
    ChainNode,
    CommandNode,
    ConditionalNode,
    ParallelNode,
    PipeNode,
    SequentialNode,
)
from .lexer import COMMAND_RE, GROUPS, OPERATORS, QUOTES, _ARG_STOPS

_BINDING = {
    "background": 1,
    "sequential": 2,
    "parallel": 3,
    "pipe": 4,
    "conditional": 5,
    "command": 6,
}


def quote_arg(arg: str) -> str:
    needs_quotes = (
        not arg
        or any(ch.isspace() or ch in QUOTES for ch in arg)
        or any(stop in arg for stop in _ARG_STOPS)
        or any(arg.startswith(op.value) for op in OPERATORS + GROUPS)
        or COMMAND_RE.match(arg) is not None
    )
    if not needs_quotes:
        return arg
    escaped = arg.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def to_string(node) -> str:
    if isinstance(node, ChainNode):
        return to_string(node.root)
    if isinstance(node, CommandNode):
        parts = [f"/{node.namespace}:{node.name}"]
        parts.extend(quote_arg(a) for a in node.args)
        return " ".join(parts)
    if isinstance(node, SequentialNode):
        return " >> ".join(_operand(n, 3) for n in node.nodes)
    if isinstance(node, ParallelNode):
        return " || ".join(_operand(n, 4) for n in node.nodes)
    if isinstance(node, PipeNode):
        return f"{_operand(node.source, 4)} |> {_operand(node.target, 5)}"
    if isinstance(node, BackgroundNode):
        return f"{_operand(node.background, 1)} & {_operand(node.foreground, 2)}"
    if isinstance(node, ConditionalNode):
        return (
            f"{_operand(node.condition, 6)} ? {to_string(node.true_branch)}"
            f" : {_operand(node.false_branch, 5)}"
        )
    raise TypeError(f"Cannot render {type(node).__name__}")


def _operand(node, min_binding: int) -> str:
    text = to_string(node)
    if _BINDING[node.kind] < min_binding:
        return f"({text})"
    return text


def format_tree(node, indent: int = 0) -> str:
    """Indented outline of a tree, one node per line."""
    lines: List[str] = []
    _format(node, indent, lines)
    return "\n".join(lines)


def _format(node, indent: int, lines: List[str]) -> None:
    prefix = "  " * indent
    if isinstance(node, ChainNode):
        lines.append(f"{prefix}Chain:")
        _format(node.root, indent + 1, lines)
    elif isinstance(node, CommandNode):
        args = " ".join(quote_arg(a) for a in node.args)
        lines.append(f"{prefix}Command: /{node.namespace}:{node.name}{' ' + args if args else ''}")
    elif isinstance(node, SequentialNode):
        lines.append(f"{prefix}Sequential (>>):")
        for child in node.nodes:
            _format(child, indent + 1, lines)
    elif isinstance(node, ParallelNode):
        lines.append(f"{prefix}Parallel (||):")
        for child in node.nodes:
            _format(child, indent + 1, lines)
    elif isinstance(node, ConditionalNode):
        lines.append(f"{prefix}Conditional (?:):")
        for label, child in (("if", node.condition), ("then", node.true_branch), ("else", node.false_branch)):
            lines.append(f"{prefix}  {label}:")
            _format(child, indent + 2, lines)
    elif isinstance(node, PipeNode):
        lines.append(f"{prefix}Pipe (|>):")
        _format(node.source, indent + 1, lines)
        _format(node.target, indent + 1, lines)
    elif isinstance(node, BackgroundNode):
        lines.append(f"{prefix}Background (&):")
        lines.append(f"{prefix}  background:")
        _format(node.background, indent + 2, lines)
        lines.append(f"{prefix}  foreground:")
        _format(node.foreground, indent + 2, lines)
    else:
        lines.append(f"{prefix}Unknown node: {type(node).__name__}")


def to_dict(node) -> Dict[str, Any]:
    if isinstance(node, ChainNode):
        return {"kind": "chain", "root": to_dict(node.root)}
    if isinstance(node, CommandNode):
        return {"kind": "command", "namespace": node.namespace, "name": node.name, "args": list(node.args)}
    if isinstance(node, (SequentialNode, ParallelNode)):
        return {"kind": node.kind, "nodes": [to_dict(n) for n in node.nodes]}
    if isinstance(node, ConditionalNode):
        return {
            "kind": "conditional",
            "condition": to_dict(node.condition),
            "true_branch": to_dict(node.true_branch),
            "false_branch": to_dict(node.false_branch),
        }
    if isinstance(node, PipeNode):
        return {"kind": "pipe", "source": to_dict(node.source), "target": to_dict(node.target)}
    if isinstance(node, BackgroundNode):
        return {"kind": "background", "background": to_dict(node.background), "foreground": to_dict(node.foreground)}
    raise TypeError(f"Cannot convert {type(node).__name__}")
