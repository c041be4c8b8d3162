from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, List, Optional

from loguru import logger

from .ast import CommandNode, SequentialNode
from .conditions import get_field
from .context import ExecutionContext
from .errors import ChainAbortedError
from .events import ChainEvent, EventEmitter, EventType
from .printer import to_string
from .results import CommandResult, SequentialResult, StepResult

Dispatch = Callable[[Any, ExecutionContext], Awaitable[Any]]


class SequentialExecutor:
    """Runs the children of a sequential node one after another.

    Every step settles, including its effect on the shared context, before
    the next one starts. A failing step aborts the chain with
    :class:`ChainAbortedError` unless ``continue_on_error`` is set, in which
    case the error is recorded as ``previous_error`` and the next step runs.
    """

    def __init__(self, dispatch: Dispatch, continue_on_error: bool = False, step_delay: float = 0.0):
        self.dispatch = dispatch
        self.continue_on_error = continue_on_error
        self.step_delay = step_delay
        self.events = EventEmitter()

    async def execute(self, node: SequentialNode, context: ExecutionContext) -> SequentialResult:
        continue_on_error = self._setting(context.continue_on_error, self.continue_on_error)
        step_delay = self._setting(context.step_delay, self.step_delay)
        results: List[StepResult] = []
        total = len(node.nodes)

        for step, child in enumerate(node.nodes, start=1):
            self._emit(EventType.STEP_START, child, context, step=step)
            try:
                result = await self.dispatch(child, context)
            except Exception as exc:
                results.append(StepResult(step, child, False, error=str(exc), exception=exc))
                self._emit(EventType.STEP_ERROR, child, context, step=step, error=exc)
                if not continue_on_error:
                    logger.error("Sequential chain aborted at step {}/{}: {}", step, total, exc)
                    raise ChainAbortedError(step, exc, SequentialResult.build(results, context)) from exc
                logger.warning("Step {}/{} failed, continuing: {}", step, total, exc)
                context.previous_error = str(exc)
            else:
                results.append(StepResult(step, child, True, result=result))
                context.previous_result = result
                context.previous_command = child.name if isinstance(child, CommandNode) else to_string(child)
                self._absorb(result, context)
                self._emit(EventType.STEP_COMPLETE, child, context, step=step, result=result)

            if step_delay and step < total:
                await asyncio.sleep(step_delay)

        return SequentialResult.build(results, context)

    @staticmethod
    def _setting(value: Optional[Any], default: Any) -> Any:
        return default if value is None else value

    @staticmethod
    def _absorb(result: Any, context: ExecutionContext) -> None:
        """Merge a step's ``context``/``data`` payload into the running context."""
        payload = result.output if isinstance(result, CommandResult) else result
        extra = get_field(payload, "context", None)
        if isinstance(extra, Mapping):
            context.update(extra)
        data = get_field(payload, "data", None)
        if data is not None:
            context.chain_data = data

    def _emit(self, type: EventType, node: Any, context: ExecutionContext, **extra: Any) -> None:
        self.events.emit(ChainEvent(type, node, context.snapshot(), **extra))
