"""Chain compiler and execution engine.

    >>> from chainlang import ChainRuntime
    >>> ChainRuntime().run("/dev:analyze >> /dev:fix || /qa:test").summary.total
    2
"""
from .ast import (
    BackgroundNode,
    ChainNode,
    CommandNode,
    ConditionalNode,
    ParallelNode,
    PipeNode,
    SequentialNode,
)
from .config import ChainConfig
from .context import ExecutionContext
from .errors import (
    ChainAbortedError,
    ChainError,
    ChainTimeoutError,
    CommandExecutionError,
    DepthExceededError,
    ParseError,
    ValidationError,
)
from .events import ChainEvent, EventEmitter, EventType
from .executor import ChainExecutor
from .handlers import (
    CommandRequest,
    EchoCommandHandler,
    FunctionCommandHandler,
    RegistryCommandHandler,
)
from .lexer import Lexer, Token, TokenKind, tokenize
from .parser import ChainParser, compile_chain, parse
from .plan import ExecutionPlan, build_graph, execution_plan
from .printer import format_tree, to_dict, to_string
from .results import (
    BackgroundResult,
    CommandResult,
    ParallelResult,
    SequentialResult,
    StepResult,
    Summary,
)
from .runtime import ChainRuntime
from .validator import validate

__version__ = "0.1.0"
