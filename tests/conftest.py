"""
Test configuration and fixtures for the chainlang test suite.
"""
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chainlang import ChainExecutor, EchoCommandHandler, parse


class RecordingHandler:
    """Handler whose per-command behaviour is scripted by the test.

    ``outputs`` maps a command name to a return value, ``failures`` to an
    exception to raise and ``delays`` to a latency in seconds. Every call is
    recorded in ``calls`` along with the request it received.
    """

    def __init__(self, outputs=None, failures=None, delays=None):
        self.outputs: Dict[str, Any] = dict(outputs or {})
        self.failures: Dict[str, BaseException] = dict(failures or {})
        self.delays: Dict[str, float] = dict(delays or {})
        self.calls: List[str] = []
        self.requests: List[Any] = []
        self.completed: List[str] = []

    async def execute(self, request):
        self.calls.append(request.command)
        self.requests.append(request)
        delay = self.delays.get(request.command)
        if delay:
            await asyncio.sleep(delay)
        if request.command in self.failures:
            raise self.failures[request.command]
        self.completed.append(request.command)
        return self.outputs.get(request.command, {"output": request.command})


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def echo() -> EchoCommandHandler:
    return EchoCommandHandler()


@pytest.fixture
def run_chain():
    """Parse ``text`` and run it to completion on a fresh executor."""

    def _run(text: str, handler, context=None, **options):
        executor = ChainExecutor(handler, **options)
        return asyncio.run(executor.execute(parse(text), context))

    return _run
