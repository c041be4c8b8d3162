from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

# Fields that fork/merge treat as plain values.
_VALUE_FIELDS = (
    "continue_on_error",
    "step_delay",
    "is_chained",
    "depth",
    "previous_result",
    "previous_command",
    "previous_error",
    "chain_data",
    "pipe_input",
)


@dataclass
class ExecutionContext:
    """State threaded through one execution call tree.

    Sequential steps share one context. Parallel and background branches run
    on a ``fork()``; parallel forks are folded back with ``merge()`` once all
    branches settle. Keys without a dedicated attribute live in ``variables``.
    """
    continue_on_error: Optional[bool] = None
    step_delay: Optional[float] = None
    is_chained: bool = False
    depth: int = 0
    background_tasks: List["asyncio.Task"] = field(default_factory=list)
    previous_result: Any = None
    previous_command: Optional[str] = None
    previous_error: Optional[str] = None
    chain_data: Any = None
    pipe_input: Any = None
    variables: Dict[str, Any] = field(default_factory=dict)
    _origin: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)
    # One task list per enclosing fork, innermost last.
    _scopes: Tuple[List["asyncio.Task"], ...] = field(default=(), repr=False, compare=False)

    @classmethod
    def from_value(cls, value: Any = None) -> "ExecutionContext":
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            ctx = cls()
            ctx.update(value)
            return ctx
        raise TypeError(f"Cannot build an execution context from {type(value).__name__}")

    # ---------- mapping-style access ----------
    def get(self, key: str, default: Any = None) -> Any:
        if key in _VALUE_FIELDS or key == "background_tasks":
            return getattr(self, key)
        return self.variables.get(key, default)

    def __getitem__(self, key: str) -> Any:
        if key in _VALUE_FIELDS or key == "background_tasks":
            return getattr(self, key)
        return self.variables[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key in _VALUE_FIELDS or key == "background_tasks":
            setattr(self, key, value)
        else:
            self.variables[key] = value

    def __contains__(self, key: str) -> bool:
        return key in _VALUE_FIELDS or key == "background_tasks" or key in self.variables

    def update(self, values: Mapping[str, Any]) -> None:
        for key, value in values.items():
            if key == "background_tasks":
                self.background_tasks.extend(value or [])
            else:
                self[key] = value

    def copy(self, **changes: Any) -> "ExecutionContext":
        """Shallow copy sharing ``background_tasks``; used for leaf invocations."""
        return replace(self, variables=dict(self.variables), _origin=None, **changes)

    # ---------- branch isolation ----------
    def fork(self) -> "ExecutionContext":
        """Independent snapshot for a concurrently running branch.

        Values and variables are copied; ``background_tasks`` stays shared with
        the parent so a task started in a branch can always be cancelled from
        the top-level context.
        """
        child = replace(self, variables=dict(self.variables), _origin=None, _scopes=self._scopes + ([],))
        child._origin = self._state()
        return child

    def merge(self, forks: Iterable["ExecutionContext"]) -> None:
        """Fold branch changes back in order; later forks win on conflicts."""
        for branch in forks:
            origin = branch._origin or {}
            for name in _VALUE_FIELDS:
                value = getattr(branch, name)
                if value is not origin.get(name):
                    setattr(self, name, value)
            before = origin.get("variables", {})
            for key, value in branch.variables.items():
                if key not in before or before[key] is not value:
                    self.variables[key] = value

    # ---------- background tasks ----------
    def track(self, task: "asyncio.Task") -> None:
        """Register a background task here and with every enclosing fork."""
        self.background_tasks.append(task)
        for scope in self._scopes:
            scope.append(task)

    def branch_tasks(self) -> List["asyncio.Task"]:
        """Background tasks started since this context was forked."""
        if not self._scopes:
            return list(self.background_tasks)
        return list(self._scopes[-1])

    def _state(self) -> Dict[str, Any]:
        state = {name: getattr(self, name) for name in _VALUE_FIELDS}
        state["variables"] = dict(self.variables)
        return state

    def snapshot(self) -> Dict[str, Any]:
        """Plain dict view for events and reporting."""
        data = {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}
        data["background_tasks"] = len(self.background_tasks)
        data["variables"] = dict(self.variables)
        return data
