# Immutable AST for chain expressions
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Tuple, Union


@dataclass(frozen=True)
class CommandNode:
    name: str
    args: Tuple[str, ...] = ()
    namespace: str = "chain"
    kind = "command"

    def children(self) -> Tuple["Node", ...]:
        return ()


@dataclass(frozen=True)
class SequentialNode:
    nodes: Tuple["Node", ...]
    kind = "sequential"

    def children(self) -> Tuple["Node", ...]:
        return self.nodes


@dataclass(frozen=True)
class ParallelNode:
    nodes: Tuple["Node", ...]
    kind = "parallel"

    def children(self) -> Tuple["Node", ...]:
        return self.nodes


@dataclass(frozen=True)
class ConditionalNode:
    condition: "Node"
    true_branch: "Node"
    false_branch: "Node"
    kind = "conditional"

    def children(self) -> Tuple["Node", ...]:
        return (self.condition, self.true_branch, self.false_branch)


@dataclass(frozen=True)
class PipeNode:
    source: "Node"
    target: "Node"
    kind = "pipe"

    def children(self) -> Tuple["Node", ...]:
        return (self.source, self.target)


@dataclass(frozen=True)
class BackgroundNode:
    background: "Node"
    foreground: "Node"
    kind = "background"

    def children(self) -> Tuple["Node", ...]:
        return (self.background, self.foreground)


Node = Union[CommandNode, SequentialNode, ParallelNode, ConditionalNode, PipeNode, BackgroundNode]


@dataclass(frozen=True)
class ChainNode:
    """Parse result wrapper; ``source`` is the text it was compiled from."""
    root: Node
    source: str = field(default="", compare=False)
    kind = "chain"

    def children(self) -> Tuple[Node, ...]:
        return (self.root,)


def walk(node) -> Iterator:
    """Pre-order traversal over a node and all of its descendants."""
    yield node
    for child in node.children():
        yield from walk(child)


def tree_depth(node) -> int:
    """Nesting depth as the executor counts it; a lone command is depth 1."""
    if isinstance(node, ChainNode):
        return tree_depth(node.root)
    kids = node.children()
    if not kids:
        return 1
    return 1 + max(tree_depth(k) for k in kids)


def count_commands(node) -> int:
    return sum(1 for n in walk(node) if isinstance(n, CommandNode))
