from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List

from loguru import logger

from .ast import ParallelNode
from .context import ExecutionContext
from .deadline import cancel_tasks, with_timeout
from .errors import ChainTimeoutError
from .events import ChainEvent, EventEmitter, EventType
from .results import ParallelResult, StepResult

Dispatch = Callable[[Any, ExecutionContext], Awaitable[Any]]


class ParallelExecutor:
    """Runs the children of a parallel node concurrently.

    At most ``max_concurrent`` children of one batch run at a time; each is
    bounded by ``node_timeout`` seconds. Failures are recorded per child and
    never cancel siblings. A child that times out has the background tasks it
    started cancelled too. Results come back in declaration order.

    Each child runs on its own fork of the context; the forks are merged back
    into the caller's context in declaration order once the batch settles.
    """

    def __init__(self, dispatch: Dispatch, max_concurrent: int = 5, node_timeout: float = 300.0):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.dispatch = dispatch
        self.max_concurrent = max_concurrent
        self.node_timeout = node_timeout
        self.events = EventEmitter()

    async def execute(self, node: ParallelNode, context: ExecutionContext) -> ParallelResult:
        self._emit(EventType.PARALLEL_START, node, context)
        # One bound per batch; a shared one could starve nested batches.
        semaphore = asyncio.Semaphore(self.max_concurrent)
        forks = [context.fork() for _ in node.nodes]
        logger.debug("Parallel batch of {} node(s), max_concurrent={}", len(node.nodes), self.max_concurrent)

        async def run(step: int, child: Any, branch: ExecutionContext) -> StepResult:
            async with semaphore:
                self._emit(EventType.NODE_START, child, branch, step=step)
                try:
                    result = await with_timeout(
                        self.dispatch(child, branch), self.node_timeout, f"Parallel node {step}"
                    )
                except ChainTimeoutError as exc:
                    cancelled = cancel_tasks(branch.branch_tasks())
                    logger.warning("Parallel node {} timed out; cancelled {} background task(s)", step, cancelled)
                    self._emit(EventType.NODE_ERROR, child, branch, step=step, error=exc)
                    return StepResult(step, child, False, error=str(exc), exception=exc)
                except Exception as exc:
                    logger.warning("Parallel node {} failed: {}", step, exc)
                    self._emit(EventType.NODE_ERROR, child, branch, step=step, error=exc)
                    return StepResult(step, child, False, error=str(exc), exception=exc)
                self._emit(EventType.NODE_COMPLETE, child, branch, step=step, result=result)
                return StepResult(step, child, True, result=result)

        results: List[StepResult] = list(
            await asyncio.gather(*(run(i, child, forks[i - 1]) for i, child in enumerate(node.nodes, start=1)))
        )
        context.merge(forks)
        outcome = ParallelResult.build(results, context)
        self._emit(EventType.PARALLEL_COMPLETE, node, context, result=outcome)
        return outcome

    def _emit(self, type: EventType, node: Any, context: ExecutionContext, **extra: Any) -> None:
        self.events.emit(ChainEvent(type, node, context.snapshot(), **extra))
