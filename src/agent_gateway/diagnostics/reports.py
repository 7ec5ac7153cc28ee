"""Error report derived from a finished test suite.

The report is plain data; rendering it to files is left to callers.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from agent_gateway.diagnostics.models import (
    ErrorPattern,
    ErrorReport,
    ExecutiveSummary,
    FailedAgentRecord,
    PerformanceRecord,
    ReportRecommendation,
    TestResult,
    TestSuite,
)
from agent_gateway.errors import ErrorType

SLOW_RESPONSE_MS = 30_000
CONSECUTIVE_FAILURE_LIMIT = 3

_PATTERN_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("connection refused", "econnrefused"), "Connection refused"),
    (("timed out", "timeout"), "Request timeout"),
    (("api key", "unauthorized", "http 401", "http 403"), "Authentication error"),
    (("rate limit", "http 429"), "Rate limit exceeded"),
    (("invalid", "not valid json", "did not contain"), "Invalid response format"),
)

_POSSIBLE_CAUSES = {
    "Connection refused": "Backend or proxy is not running or not reachable",
    "Request timeout": "High network latency or an overloaded backend",
    "Authentication error": "Missing, invalid or expired API key",
    "Rate limit exceeded": "Too many requests in a short period",
    "Invalid response format": "Backend returned an unexpected payload",
}


def categorize_error(result: TestResult) -> ErrorType:
    if result.error_type is not None:
        return result.error_type
    message = (result.error or "").lower()
    if "econnrefused" in message or "connection" in message or "network" in message:
        return "connectivity"
    if "timeout" in message or "timed out" in message:
        return "timeout"
    if "invalid" in message or "malformed" in message or "parse" in message:
        return "invalid_response"
    if "api" in message or "unauthorized" in message or "rate limit" in message:
        return "api_error"
    return "unknown"


def normalize_pattern(message: str) -> str:
    lowered = message.lower()
    for needles, pattern in _PATTERN_RULES:
        if any(needle in lowered for needle in needles):
            return pattern
    return message or "Unknown error"


def build_error_report(suite: TestSuite) -> ErrorReport:
    results = suite.results
    failing = [result for result in results if result.status in ("error", "warning")]
    errors = [result for result in results if result.status == "error"]
    warnings = [result for result in results if result.status == "warning"]

    agent_names = list(dict.fromkeys(result.agent_name for result in results))
    failed_agent_names = set(result.agent_name for result in failing)
    error_rate = (len(failed_agent_names) / len(agent_names) * 100) if agent_names else 0.0

    performance = [_performance_record(name, results) for name in agent_names]
    return ErrorReport(
        executive_summary=ExecutiveSummary(
            total_agents=len(agent_names),
            failed_agents=len(failed_agent_names),
            error_rate=round(error_rate, 2),
            critical_errors=len(errors),
            warning_count=len(warnings),
            timestamp=suite.timestamp,
            test_duration_ms=suite.duration_ms,
        ),
        failed_agents=[
            FailedAgentRecord(
                agent_name=result.agent_name,
                backend=result.backend,
                model_id=result.model_id,
                error_type=categorize_error(result),
                error_message=result.error or "Unknown error",
                timestamp=result.timestamp,
                response_time_ms=result.response_time_ms,
                test_type=result.test_type,
            )
            for result in failing
        ],
        performance_metrics=performance,
        recommendations=_recommendations(failing, performance),
        error_patterns=_error_patterns(failing),
    )


def _performance_record(agent_name: str, results: Sequence[TestResult]) -> PerformanceRecord:
    own = [result for result in results if result.agent_name == agent_name]
    successes = [result for result in own if result.status == "success"]

    consecutive_failures = 0
    for result in sorted(own, key=lambda item: item.timestamp, reverse=True):
        if result.status != "error":
            break
        consecutive_failures += 1

    return PerformanceRecord(
        agent_name=agent_name,
        backend=own[0].backend,
        average_response_time_ms=round(sum(result.response_time_ms for result in own) / len(own)),
        success_rate=round(len(successes) / len(own) * 100, 2),
        last_successful_test=max((result.timestamp for result in successes), default=None),
        consecutive_failures=consecutive_failures,
    )


def _recommendations(
    failing: Sequence[TestResult],
    performance: Sequence[PerformanceRecord],
) -> list[ReportRecommendation]:
    recommendations: list[ReportRecommendation] = []

    connectivity = [result for result in failing if categorize_error(result) == "connectivity"]
    if connectivity:
        recommendations.append(
            ReportRecommendation(
                priority="high",
                category="connectivity",
                description="Connectivity errors detected",
                affected_agents=_unique_agents(connectivity),
                suggested_action="Verify backend base URLs and that the backends are reachable",
            )
        )

    repeated = [
        record.agent_name
        for record in performance
        if record.consecutive_failures >= CONSECUTIVE_FAILURE_LIMIT
    ]
    if repeated:
        recommendations.append(
            ReportRecommendation(
                priority="high",
                category="performance",
                description="Profiles with repeated consecutive failures",
                affected_agents=repeated,
                suggested_action="Review these profiles and consider assigning them to the other backend",
            )
        )

    by_backend = Counter(result.backend for result in failing)
    for backend, other in (("anthropic", "openai"), ("openai", "anthropic")):
        if by_backend[backend] > by_backend[other] * 2:
            recommendations.append(
                ReportRecommendation(
                    priority="medium",
                    category="configuration",
                    description=f"High failure rate on {backend} profiles",
                    affected_agents=_unique_agents(
                        [result for result in failing if result.backend == backend]
                    ),
                    suggested_action=f"Check the {backend} API key and consider moving profiles to {other}",
                )
            )
            break

    slow = [
        result
        for result in failing
        if categorize_error(result) == "timeout" or result.response_time_ms > SLOW_RESPONSE_MS
    ]
    if slow:
        recommendations.append(
            ReportRecommendation(
                priority="medium",
                category="performance",
                description="Timeouts or very slow responses detected",
                affected_agents=_unique_agents(slow),
                suggested_action="Raise the probe timeout or reduce token budgets for these profiles",
            )
        )
    return recommendations


def _error_patterns(failing: Sequence[TestResult]) -> list[ErrorPattern]:
    counts: Counter[str] = Counter()
    agents: dict[str, list[str]] = {}
    for result in failing:
        pattern = normalize_pattern(result.error or "")
        counts[pattern] += 1
        affected = agents.setdefault(pattern, [])
        if result.agent_name not in affected:
            affected.append(result.agent_name)

    return [
        ErrorPattern(
            pattern=pattern,
            frequency=frequency,
            affected_agents=agents[pattern],
            possible_cause=_POSSIBLE_CAUSES.get(pattern, "Unknown cause; needs manual investigation"),
        )
        for pattern, frequency in counts.most_common()
    ]


def _unique_agents(results: Sequence[TestResult]) -> list[str]:
    return list(dict.fromkeys(result.agent_name for result in results))
