"""Static execution plan for a chain.

The chain is lowered into a directed acyclic graph whose vertices are command
invocations and whose edges mean "must finish before". Sequential steps and
pipes add ordering edges, a conditional links its condition to both branches
(only one of which will run), parallel and background operands stay
unconnected. Topological generations of that graph are the stages a
scheduler with unlimited concurrency would run.
"""
from __future__ import annotations

from itertools import count
from typing import Any, Dict, List, Tuple

import networkx as nx
from pydantic import BaseModel, Field

from .ast import (
    BackgroundNode,
    ChainNode,
    CommandNode,
    ConditionalNode,
    ParallelNode,
    PipeNode,
    SequentialNode,
    tree_depth,
    walk,
)
from .printer import to_string


class PlanStep(BaseModel):
    id: str
    command: str
    args: List[str] = Field(default_factory=list)
    background: bool = False
    conditional: bool = False


class ExecutionPlan(BaseModel):
    """Serializable preview of what a chain would run."""
    chain: str
    commands: List[PlanStep]
    stages: List[List[str]]
    max_width: int
    depth: int
    node_counts: Dict[str, int]


def build_graph(node: Any) -> nx.DiGraph:
    """Lower a chain into a DAG of command invocations."""
    graph = nx.DiGraph()
    if isinstance(node, ChainNode):
        node = node.root
    _GraphBuilder(graph).lower(node)
    return graph


class _GraphBuilder:
    def __init__(self, graph: nx.DiGraph):
        self.graph = graph
        self._ids = count(1)

    def lower(self, node: Any, background: bool = False, conditional: bool = False) -> Tuple[List[str], List[str]]:
        """Add ``node`` to the graph; return its (entry, exit) vertices."""
        if isinstance(node, CommandNode):
            vid = f"{next(self._ids)}:{node.name}"
            self.graph.add_node(
                vid,
                command=f"{node.namespace}:{node.name}",
                args=list(node.args),
                background=background,
                conditional=conditional,
            )
            return [vid], [vid]
        if isinstance(node, SequentialNode):
            first_in, last_out = self.lower(node.nodes[0], background, conditional)
            for child in node.nodes[1:]:
                ins, outs = self.lower(child, background, conditional)
                self._link(last_out, ins, "sequential")
                last_out = outs
            return first_in, last_out
        if isinstance(node, ParallelNode):
            entries: List[str] = []
            exits: List[str] = []
            for child in node.nodes:
                ins, outs = self.lower(child, background, conditional)
                entries.extend(ins)
                exits.extend(outs)
            return entries, exits
        if isinstance(node, PipeNode):
            src_in, src_out = self.lower(node.source, background, conditional)
            dst_in, dst_out = self.lower(node.target, background, conditional)
            self._link(src_out, dst_in, "pipe")
            return src_in, dst_out
        if isinstance(node, ConditionalNode):
            cond_in, cond_out = self.lower(node.condition, background, conditional)
            t_in, t_out = self.lower(node.true_branch, background, True)
            f_in, f_out = self.lower(node.false_branch, background, True)
            self._link(cond_out, t_in, "if-true")
            self._link(cond_out, f_in, "if-false")
            return cond_in, t_out + f_out
        if isinstance(node, BackgroundNode):
            bg_in, _ = self.lower(node.background, True, conditional)
            fg_in, fg_out = self.lower(node.foreground, background, conditional)
            return bg_in + fg_in, fg_out
        raise TypeError(f"Cannot plan {type(node).__name__}")

    def _link(self, sources: List[str], targets: List[str], kind: str) -> None:
        for s in sources:
            for t in targets:
                self.graph.add_edge(s, t, kind=kind)


def execution_plan(node: Any) -> ExecutionPlan:
    root = node.root if isinstance(node, ChainNode) else node
    graph = build_graph(root)
    stages = [sorted(gen, key=_vertex_order) for gen in nx.topological_generations(graph)]
    commands = [
        PlanStep(
            id=vid,
            command=data["command"],
            args=data["args"],
            background=data["background"],
            conditional=data["conditional"],
        )
        for vid, data in sorted(graph.nodes(data=True), key=lambda item: _vertex_order(item[0]))
    ]
    counts: Dict[str, int] = {}
    for n in walk(root):
        counts[n.kind] = counts.get(n.kind, 0) + 1
    return ExecutionPlan(
        chain=to_string(root),
        commands=commands,
        stages=stages,
        max_width=max((len(s) for s in stages), default=0),
        depth=tree_depth(root),
        node_counts=counts,
    )


def _vertex_order(vid: str) -> int:
    return int(vid.split(":", 1)[0])
