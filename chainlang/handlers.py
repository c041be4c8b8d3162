"""Command handlers.

The engine never interprets a command itself; it hands a
:class:`CommandRequest` to an injected handler. A handler is either an object
with an ``execute(request)`` method or a plain callable taking the request.
Both may be synchronous or coroutine functions. Failure is signalled by
raising; whatever is returned is passed through untouched.
"""
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from loguru import logger

from .context import ExecutionContext
from .errors import CommandExecutionError


@dataclass
class CommandRequest:
    command: str
    args: List[str]
    context: ExecutionContext
    namespace: str = "chain"

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}:{self.command}"


HandlerFn = Callable[[CommandRequest], Union[Any, Awaitable[Any]]]


async def invoke_handler(handler: Any, request: CommandRequest) -> Any:
    target = getattr(handler, "execute", None)
    if target is None:
        if not callable(handler):
            raise TypeError(f"Command handler {handler!r} is neither callable nor has execute()")
        target = handler
    outcome = target(request)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return outcome


class FunctionCommandHandler:
    def __init__(self, fn: HandlerFn):
        self.fn = fn

    async def execute(self, request: CommandRequest) -> Any:
        return await invoke_handler(self.fn, request)


class RegistryCommandHandler:
    """Routes each command to the callable registered under its name.

    Names may be registered bare (``"test"``) or qualified (``"qa:test"``);
    a qualified registration takes priority.
    """

    def __init__(self, commands: Optional[Dict[str, HandlerFn]] = None):
        self.commands: Dict[str, HandlerFn] = dict(commands or {})

    def register(self, name: str, fn: HandlerFn) -> None:
        self.commands[name] = fn

    def command(self, name: str) -> Callable[[HandlerFn], HandlerFn]:
        def decorator(fn: HandlerFn) -> HandlerFn:
            self.register(name, fn)
            return fn

        return decorator

    async def execute(self, request: CommandRequest) -> Any:
        fn = self.commands.get(request.qualified_name) or self.commands.get(request.command)
        if fn is None:
            raise CommandExecutionError(request.command, "no handler registered")
        return await invoke_handler(fn, request)


@dataclass
class EchoCommandHandler:
    """Dry-run handler: echoes the command back instead of doing work.

    Commands named in ``fail`` raise :class:`CommandExecutionError`;
    ``delays`` maps command names to a simulated latency in seconds.
    """
    fail: Iterable[str] = ()
    delays: Dict[str, float] = field(default_factory=dict)
    calls: List[str] = field(default_factory=list)

    async def execute(self, request: CommandRequest) -> Dict[str, Any]:
        self.calls.append(request.command)
        delay = self.delays.get(request.command, 0.0)
        if delay:
            await asyncio.sleep(delay)
        if request.command in set(self.fail):
            raise CommandExecutionError(request.command, "simulated failure")
        logger.debug("[echo] {} {}", request.qualified_name, request.args)
        return {"output": request.command, "args": list(request.args)}
