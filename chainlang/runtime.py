from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Union

from loguru import logger

from .ast import ChainNode, count_commands
from .config import ChainConfig
from .context import ExecutionContext
from .errors import ChainError
from .events import EventEmitter
from .executor import ChainExecutor
from .handlers import EchoCommandHandler
from .lexer import LexDiagnostic, Lexer
from .parser import ChainParser
from .plan import ExecutionPlan, execution_plan
from .validator import validate


class ChainRuntime:
    """Compile chain text once, then preview or run it as often as needed.

    Without a handler (or with ``dry_run=True``) commands are answered by an
    :class:`EchoCommandHandler` and nothing real is executed.
    """

    def __init__(self, handler: Any = None, config: Optional[ChainConfig] = None, dry_run: bool = False):
        self.config = config or ChainConfig.from_env()
        self.dry_run = dry_run or handler is None
        self.handler = EchoCommandHandler() if self.dry_run else handler
        self.executor = ChainExecutor(self.handler, self.config)
        self.chain: Optional[ChainNode] = None
        self.diagnostics: List[LexDiagnostic] = []

    @property
    def events(self) -> EventEmitter:
        return self.executor.events

    def load(self, source: str) -> ChainNode:
        lexer = Lexer(source, namespace=self.config.namespace, strict=self.config.strict_lexing)
        tokens = lexer.tokenize()
        chain = ChainParser(tokens, source=source).parse()
        validate(chain)
        self.chain = chain
        self.diagnostics = list(lexer.diagnostics)
        logger.info(
            "Loaded chain {!r}: {} command(s), {} skipped input run(s)",
            source,
            count_commands(chain),
            len(self.diagnostics),
        )
        return chain

    def preview(self, source: Union[str, ChainNode, None] = None) -> ExecutionPlan:
        return execution_plan(self._resolve(source))

    async def execute(
        self,
        source: Union[str, ChainNode, None] = None,
        context: Any = None,
        wait_background: bool = False,
    ) -> Any:
        chain = self._resolve(source)
        ctx = ExecutionContext.from_value(context)
        result = await self.executor.execute(chain, ctx)
        if wait_background and ctx.background_tasks:
            await self.executor.wait_background(ctx)
        return result

    def run(self, source: Union[str, ChainNode, None] = None, context: Any = None) -> Any:
        """Synchronous entry point; background work is drained before returning."""
        return asyncio.run(self.execute(source, context, wait_background=True))

    def _resolve(self, source: Union[str, ChainNode, None]) -> ChainNode:
        if isinstance(source, str):
            return self.load(source)
        if isinstance(source, ChainNode):
            return source
        if self.chain is None:
            raise ChainError("No chain loaded")
        return self.chain
