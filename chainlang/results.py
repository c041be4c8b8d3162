from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from .context import ExecutionContext
from .printer import to_string


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CommandResult:
    command: str
    args: List[str]
    output: Any
    timestamp: datetime = field(default_factory=_now)
    kind = "command"
    success = True


@dataclass
class StepResult:
    step: int
    node: Any
    success: bool
    result: Any = None
    error: Optional[str] = None
    exception: Optional[BaseException] = field(default=None, repr=False, compare=False)


@dataclass
class Summary:
    total: int
    successful: int
    failed: int

    @classmethod
    def of(cls, steps: List[StepResult]) -> "Summary":
        ok = sum(1 for s in steps if s.success)
        return cls(total=len(steps), successful=ok, failed=len(steps) - ok)


@dataclass
class BatchResult:
    success: bool
    results: List[StepResult]
    context: ExecutionContext
    summary: Summary
    kind = "batch"

    @classmethod
    def build(cls, results: List[StepResult], context: ExecutionContext):
        return cls(
            success=all(r.success for r in results),
            results=results,
            context=context,
            summary=Summary.of(results),
        )


@dataclass
class SequentialResult(BatchResult):
    kind = "sequential"


@dataclass
class ParallelResult(BatchResult):
    kind = "parallel"


@dataclass
class BackgroundResult:
    foreground: Any
    background_started: bool = True
    kind = "background"

    @property
    def success(self) -> bool:
        return bool(getattr(self.foreground, "success", True))


def result_to_dict(result: Any) -> Any:
    """JSON-ready rendering of any result value."""
    if isinstance(result, CommandResult):
        return {
            "kind": "command",
            "command": result.command,
            "args": list(result.args),
            "output": result_to_dict(result.output),
            "timestamp": result.timestamp.isoformat(),
        }
    if isinstance(result, BatchResult):
        return {
            "kind": result.kind,
            "success": result.success,
            "results": [
                {
                    "step": s.step,
                    "node": to_string(s.node),
                    "success": s.success,
                    **({"result": result_to_dict(s.result)} if s.success else {"error": s.error}),
                }
                for s in result.results
            ],
            "summary": {
                "total": result.summary.total,
                "successful": result.summary.successful,
                "failed": result.summary.failed,
            },
        }
    if isinstance(result, BackgroundResult):
        return {
            "kind": "background",
            "foreground": result_to_dict(result.foreground),
            "background_started": result.background_started,
        }
    if isinstance(result, dict):
        return {str(k): result_to_dict(v) for k, v in result.items()}
    if isinstance(result, (list, tuple)):
        return [result_to_dict(v) for v in result]
    if isinstance(result, (str, int, float, bool)) or result is None:
        return result
    return repr(result)
