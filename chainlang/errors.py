from typing import Any, Optional


class ChainError(Exception):
    pass


class ParseError(ChainError):
    """Raised when a chain expression is syntactically malformed."""

    def __init__(self, message: str, position: Optional[int] = None):
        self.position = position
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)


class ValidationError(ChainError):
    """Raised when a parsed tree violates a node arity or shape rule."""

    def __init__(self, node_kind: str, message: str):
        self.node_kind = node_kind
        super().__init__(f"Invalid {node_kind} node: {message}")


class DepthExceededError(ChainError):
    def __init__(self, depth: int, max_depth: int):
        self.depth = depth
        self.max_depth = max_depth
        super().__init__(f"Maximum chain depth exceeded: {depth} > {max_depth}")


class ChainTimeoutError(ChainError, TimeoutError):
    def __init__(self, timeout: float, what: str = "Chain execution"):
        self.timeout = timeout
        super().__init__(f"{what} timed out after {timeout:g}s")


class ChainAbortedError(ChainError):
    """Raised when a sequential step fails and continue_on_error is off.

    ``result`` holds the partial sequential result up to and including the
    failing step.
    """

    def __init__(self, step: int, cause: BaseException, result: Any = None):
        self.step = step
        self.cause = cause
        self.result = result
        super().__init__(f"Chain aborted at step {step}: {cause}")


class CommandExecutionError(ChainError):
    def __init__(self, command: str, message: str):
        self.command = command
        super().__init__(f"Command '{command}' failed: {message}")
