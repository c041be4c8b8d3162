"""Executor configuration.

Durations are seconds. Every field can be supplied through the environment as
``CHAINLANG_<FIELD>``, e.g. ``CHAINLANG_MAX_CONCURRENT=8``.
"""
from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_PREFIX = "CHAINLANG_"


class ChainConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_depth: int = Field(default=10, ge=1, description="Recursion ceiling for nested execution")
    timeout: float = Field(default=600.0, gt=0, description="Budget for one top-level execute call")
    node_timeout: float = Field(default=300.0, gt=0, description="Per-node budget inside a parallel batch")
    max_concurrent: int = Field(default=5, ge=1, description="Parallel fan-out bound")
    continue_on_error: bool = False
    step_delay: float = Field(default=0.0, ge=0)
    namespace: Optional[str] = Field(default=None, description="Only accept commands in this namespace")
    strict_lexing: bool = False

    @field_validator("namespace", mode="before")
    @classmethod
    def empty_namespace_is_none(cls, v: Any) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "ChainConfig":
        """Build a config from ``CHAINLANG_*`` variables; keyword overrides win."""
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None:
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
