"""Models for diagnostic probes, suites and error reports."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from agent_gateway.errors import ErrorType
from agent_gateway.gateway.models import Backend

TestType = Literal["basic", "functional", "stress", "fallback"]
TestStatus = Literal["success", "warning", "error"]
OverallHealth = Literal["healthy", "degraded", "critical"]


class TestMetrics(BaseModel):
    connectivity_ok: bool
    response_quality: int = Field(ge=0, le=100)
    profile_correct: bool
    fallback_working: bool | None = None


class TestResult(BaseModel):
    agent_name: str
    # Backend and model assigned to the profile; failures are attributed here.
    backend: Backend
    model_id: str
    status: TestStatus
    response_time_ms: int
    test_type: TestType
    timestamp: datetime
    metrics: TestMetrics
    response: str | None = None
    error: str | None = None
    error_type: ErrorType | None = None
    # Backend the gateway tried last; differs from ``backend`` after fail-over.
    served_by: Backend | None = None
    served_model_id: str | None = None


class SuiteConfig(BaseModel):
    test_types: list[TestType] = Field(default_factory=lambda: ["basic", "functional"], min_length=1)
    timeout_ms: int = Field(default=30_000, ge=1)
    stress_count: int = Field(default=3, ge=1, le=50)
    include_profiles: list[str] | None = None
    exclude_profiles: list[str] = Field(default_factory=list)


class TestSuite(BaseModel):
    id: str
    timestamp: datetime
    total_agents: int
    passed: int
    warned: int
    failed: int
    avg_response_time_ms: int
    duration_ms: int
    results: list[TestResult] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    overall_health: OverallHealth


class ExecutiveSummary(BaseModel):
    total_agents: int
    failed_agents: int
    error_rate: float
    critical_errors: int
    warning_count: int
    timestamp: datetime
    test_duration_ms: int


class FailedAgentRecord(BaseModel):
    agent_name: str
    backend: Backend
    model_id: str
    error_type: ErrorType
    error_message: str
    timestamp: datetime
    response_time_ms: int
    test_type: TestType


class PerformanceRecord(BaseModel):
    agent_name: str
    backend: Backend
    average_response_time_ms: int
    success_rate: float
    last_successful_test: datetime | None = None
    consecutive_failures: int = 0


class ReportRecommendation(BaseModel):
    priority: Literal["high", "medium", "low"]
    category: Literal["connectivity", "performance", "configuration"]
    description: str
    affected_agents: list[str] = Field(default_factory=list)
    suggested_action: str


class ErrorPattern(BaseModel):
    pattern: str
    frequency: int
    affected_agents: list[str] = Field(default_factory=list)
    possible_cause: str


class ErrorReport(BaseModel):
    executive_summary: ExecutiveSummary
    failed_agents: list[FailedAgentRecord] = Field(default_factory=list)
    performance_metrics: list[PerformanceRecord] = Field(default_factory=list)
    recommendations: list[ReportRecommendation] = Field(default_factory=list)
    error_patterns: list[ErrorPattern] = Field(default_factory=list)
