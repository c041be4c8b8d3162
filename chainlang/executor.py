"""Chain executor: the scheduler that walks a parsed chain.

Commands go to the injected handler, ``>>`` and ``||`` go to the sequential
and parallel executors, and conditional, pipe and background nodes are
handled inline. Progress from the sub-executors is republished on
``ChainExecutor.events`` as ``node-*`` events tagged with their source.
"""
from __future__ import annotations

import asyncio
import contextvars
from typing import Any, List, Optional, Union

from loguru import logger
from opentelemetry import trace

from .ast import (
    BackgroundNode,
    ChainNode,
    CommandNode,
    ConditionalNode,
    ParallelNode,
    PipeNode,
    SequentialNode,
    tree_depth,
)
from .conditions import evaluate_condition
from .config import ChainConfig
from .context import ExecutionContext
from .deadline import cancel_tasks, with_timeout
from .errors import ChainTimeoutError, DepthExceededError
from .events import ChainEvent, EventEmitter, EventType
from .handlers import CommandRequest, invoke_handler
from .parallel import ParallelExecutor
from .results import BackgroundResult, CommandResult
from .sequential import SequentialExecutor

_tracer = trace.get_tracer(__name__)

_FORWARDED = {
    EventType.STEP_START: EventType.NODE_START,
    EventType.STEP_COMPLETE: EventType.NODE_COMPLETE,
    EventType.STEP_ERROR: EventType.NODE_ERROR,
    EventType.NODE_START: EventType.NODE_START,
    EventType.NODE_COMPLETE: EventType.NODE_COMPLETE,
    EventType.NODE_ERROR: EventType.NODE_ERROR,
    EventType.PARALLEL_START: EventType.PARALLEL_START,
    EventType.PARALLEL_COMPLETE: EventType.PARALLEL_COMPLETE,
}


class ChainExecutor:
    def __init__(self, handler: Any, config: Optional[ChainConfig] = None, **overrides: Any):
        config = config or ChainConfig()
        if overrides:
            config = ChainConfig.model_validate({**config.model_dump(), **overrides})
        self.config = config
        self.handler = handler
        self.events = EventEmitter()
        # Depth is tracked per call path so concurrent branches stay independent.
        self._depth: contextvars.ContextVar[int] = contextvars.ContextVar(f"chain_depth_{id(self)}", default=0)

        self.sequential = SequentialExecutor(
            self._execute_node,
            continue_on_error=config.continue_on_error,
            step_delay=config.step_delay,
        )
        self.parallel = ParallelExecutor(
            self._execute_node,
            max_concurrent=config.max_concurrent,
            node_timeout=config.node_timeout,
        )
        self.sequential.events.subscribe(self._forward("sequential"))
        self.parallel.events.subscribe(self._forward("parallel"))

    @property
    def depth(self) -> int:
        return self._depth.get()

    # ---------- Execution entry ----------
    async def execute(self, root: Union[ChainNode, Any], context: Any = None) -> Any:
        """Run a chain under the depth ceiling and the global timeout."""
        ctx = ExecutionContext.from_value(context)
        node = root.root if isinstance(root, ChainNode) else root

        needed = self._depth.get() + tree_depth(node)
        if needed > self.config.max_depth:
            raise DepthExceededError(needed, self.config.max_depth)

        logger.info("Chain start: {} node at depth {}", node.kind, self._depth.get())
        self.events.emit(ChainEvent(EventType.CHAIN_START, root, ctx.snapshot()))
        with _tracer.start_as_current_span(f"chain:{node.kind}"):
            try:
                result = await with_timeout(self._execute_node(node, ctx), self.config.timeout, "Chain execution")
            except ChainTimeoutError as exc:
                cancelled = self.cancel_background(ctx)
                logger.error("Chain timed out after {}s; cancelled {} background task(s)", self.config.timeout, cancelled)
                self.events.emit(ChainEvent(EventType.CHAIN_ERROR, root, ctx.snapshot(), error=exc))
                raise
            except Exception as exc:
                logger.error("Chain failed: {}", exc)
                self.events.emit(ChainEvent(EventType.CHAIN_ERROR, root, ctx.snapshot(), error=exc))
                raise
        logger.info("Chain complete: {}", node.kind)
        self.events.emit(ChainEvent(EventType.CHAIN_COMPLETE, root, ctx.snapshot(), result=result))
        return result

    async def _execute_node(self, node: Any, context: ExecutionContext) -> Any:
        if isinstance(node, ChainNode):
            node = node.root
        depth = self._depth.get()
        if depth >= self.config.max_depth:
            raise DepthExceededError(depth + 1, self.config.max_depth)
        token = self._depth.set(depth + 1)
        try:
            return await self._dispatch(node, context, depth + 1)
        finally:
            self._depth.reset(token)

    async def _dispatch(self, node: Any, context: ExecutionContext, depth: int) -> Any:
        logger.debug("Dispatch {} at depth {}", getattr(node, "kind", type(node).__name__), depth)
        if isinstance(node, CommandNode):
            return await self._run_command(node, context, depth)
        if isinstance(node, SequentialNode):
            return await self.sequential.execute(node, context)
        if isinstance(node, ParallelNode):
            return await self.parallel.execute(node, context)
        if isinstance(node, ConditionalNode):
            return await self._run_conditional(node, context)
        if isinstance(node, PipeNode):
            return await self._run_pipe(node, context)
        if isinstance(node, BackgroundNode):
            return await self._run_background(node, context)
        raise TypeError(f"Unknown chain node: {type(node).__name__}")

    # ---------- Node kinds ----------
    async def _run_command(self, node: CommandNode, context: ExecutionContext, depth: int) -> CommandResult:
        request = CommandRequest(
            command=node.name,
            args=list(node.args),
            context=context.copy(is_chained=True, depth=depth),
            namespace=node.namespace,
        )
        with _tracer.start_as_current_span(f"command:{node.name}"):
            output = await invoke_handler(self.handler, request)
        return CommandResult(node.name, list(node.args), output)

    async def _run_conditional(self, node: ConditionalNode, context: ExecutionContext) -> Any:
        outcome = await self._execute_node(node.condition, context)
        taken = evaluate_condition(outcome)
        logger.debug("Condition evaluated {}, taking {} branch", taken, "true" if taken else "false")
        branch = node.true_branch if taken else node.false_branch
        return await self._execute_node(branch, context)

    async def _run_pipe(self, node: PipeNode, context: ExecutionContext) -> Any:
        produced = await self._execute_node(node.source, context)
        piped = context.copy(pipe_input=produced, previous_result=produced)
        return await self._execute_node(node.target, piped)

    async def _run_background(self, node: BackgroundNode, context: ExecutionContext) -> BackgroundResult:
        branch = context.fork()
        task = asyncio.ensure_future(self._execute_node(node.background, branch))
        task.add_done_callback(_report_background)
        context.track(task)
        foreground = await self._execute_node(node.foreground, context)
        return BackgroundResult(foreground=foreground)

    # ---------- Background tasks ----------
    async def wait_background(self, context: ExecutionContext) -> List[Any]:
        """Await every background task registered in ``context``.

        Returns each task's result or exception in registration order, including
        tasks that were registered while waiting.
        """
        outcomes: List[Any] = []
        seen = 0
        tasks = context.background_tasks
        while seen < len(tasks):
            batch = tasks[seen:]
            seen = len(tasks)
            outcomes.extend(await asyncio.gather(*batch, return_exceptions=True))
        return outcomes

    @staticmethod
    def cancel_background(context: ExecutionContext) -> int:
        return cancel_tasks(context.background_tasks)

    # ---------- Events ----------
    def _forward(self, source: str):
        def listener(event: ChainEvent) -> None:
            self.events.emit(event.retag(_FORWARDED[event.type], source))

        return listener


def _report_background(task: "asyncio.Task") -> None:
    if task.cancelled():
        logger.debug("Background task cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Background task failed: {}", exc)
