"""Pydantic models exchanged across the gateway layer.

Terms used in this file:
- Backend: one of the two interchangeable model providers.
- Task profile: a named unit of work bound to one backend and model.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from agent_gateway.errors import ErrorType

Backend = Literal["anthropic", "openai"]
BACKENDS: tuple[Backend, ...] = ("anthropic", "openai")


def alternate_backend(backend: Backend) -> Backend:
    return "openai" if backend == "anthropic" else "anthropic"


class TaskProfile(BaseModel):
    """Static routing entry for one named task profile."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    backend: Backend
    model_id: str = Field(min_length=1)
    temperature: float = Field(ge=0.0, le=2.0)
    max_tokens: int = Field(ge=1)
    rationale: str = ""


class Message(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class BackendRequest(BaseModel):
    """Provider-neutral request body; adapters serialize it per backend."""

    model: str
    max_tokens: int = Field(ge=1)
    temperature: float = Field(ge=0.0, le=2.0)
    system: str | None = None
    messages: list[Message] = Field(default_factory=list)


class ConnectionStatus(BaseModel):
    connected: bool = False
    # Backend reached by the most recent probe.
    backend: Backend | None = None
    last_checked_at: datetime | None = None
    error_count: int = 0


class ExecutionResult(BaseModel):
    """Uniform outcome of one gateway call; attribution is set even on failure."""

    success: bool
    payload: str | None = None
    error: str | None = None
    error_type: ErrorType | None = None
    profile_name: str
    backend: Backend
    model_id: str
    fallback_used: bool = False
    latency_ms: int = 0
    # Transport attempts across primary and fallback backends.
    attempts: int = 0


class BackendUsage(BaseModel):
    requests: int = 0
    errors: int = 0
    last_used_at: datetime | None = None

    @property
    def error_ratio(self) -> float:
        if self.requests == 0:
            return 0.0
        return self.errors / self.requests


class UsageReport(BaseModel):
    per_backend: dict[Backend, BackendUsage]
    distribution: dict[Backend, list[str]]
    total_requests: int
    recommendations: list[str] = Field(default_factory=list)


class HealthCheck(BaseModel):
    healthy: bool
    issues: list[str] = Field(default_factory=list)
