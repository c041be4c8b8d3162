from __future__ import annotations

from .ast import (
    BackgroundNode,
    ChainNode,
    CommandNode,
    ConditionalNode,
    ParallelNode,
    PipeNode,
    SequentialNode,
)
from .errors import ValidationError

NODE_TYPES = (CommandNode, SequentialNode, ParallelNode, ConditionalNode, PipeNode, BackgroundNode)


class ChainValidator:
    """Walks a parsed chain and checks the arity and shape rules:
    - sequential and parallel nodes have at least two children
    - conditional nodes have condition, true and false branches
    - pipe and background nodes have both of their operands
    - a chain wraps exactly one root node
    """

    def validate(self, node) -> None:
        if isinstance(node, ChainNode):
            if not isinstance(node.root, NODE_TYPES):
                raise ValidationError("chain", "must wrap exactly one root node")
            self.validate(node.root)
            return
        if isinstance(node, CommandNode):
            self._check_command(node)
            return
        if isinstance(node, (SequentialNode, ParallelNode)):
            count = len(node.nodes) if node.nodes is not None else 0
            if count < 2:
                raise ValidationError(node.kind, f"expected at least 2 children, got {count}")
        elif isinstance(node, ConditionalNode):
            self._require(node, "condition", "true_branch", "false_branch")
        elif isinstance(node, PipeNode):
            self._require(node, "source", "target")
        elif isinstance(node, BackgroundNode):
            self._require(node, "background", "foreground")
        else:
            raise ValidationError(type(node).__name__, "unknown node type")
        for child in node.children():
            self.validate(child)

    def _check_command(self, node: CommandNode) -> None:
        if not isinstance(node.name, str) or not node.name:
            raise ValidationError("command", "missing command name")
        if not all(isinstance(a, str) for a in node.args):
            raise ValidationError("command", f"arguments of '{node.name}' must be strings")

    def _require(self, node, *fields: str) -> None:
        for name in fields:
            if not isinstance(getattr(node, name), NODE_TYPES):
                raise ValidationError(node.kind, f"missing or invalid '{name}'")


def validate(node) -> None:
    ChainValidator().validate(node)
