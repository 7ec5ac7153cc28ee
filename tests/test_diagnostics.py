from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from agent_gateway.diagnostics import models as diag_models
from agent_gateway.diagnostics.reports import build_error_report
from agent_gateway.diagnostics.runner import DiagnosticsRunner
from agent_gateway.diagnostics.scoring import (
    BASIC_PROMPT,
    basic_quality,
    classify_health,
    functional_quality,
    functional_status,
    stress_status,
    suite_recommendations,
)
from agent_gateway.errors import ConflictError, ConnectivityError

PLANNER_REPLY = "Plan: step one defines each task, then the feature list and the folder structure. " * 2


def _prompt(payload: dict) -> str:
    return payload["messages"][-1]["content"]


def _smart_responder(url: str, payload: dict):
    if _prompt(payload) == BASIC_PROMPT:
        return "OK"
    return PLANNER_REPLY


class GatedTransport:
    def __init__(self) -> None:
        self.gate = asyncio.Event()

    async def post_json(self, url, payload, *, headers, timeout_s):
        await self.gate.wait()
        if url.endswith("/v1/messages"):
            return {"content": [{"text": "OK"}]}
        return {"choices": [{"message": {"content": "OK"}}]}


def _result(**overrides) -> diag_models.TestResult:
    values = {
        "agent_name": "planner",
        "backend": "anthropic",
        "model_id": "claude-3-5-sonnet-20241022",
        "status": "success",
        "response_time_ms": 100,
        "test_type": "basic",
        "timestamp": datetime.now(UTC),
        "metrics": diag_models.TestMetrics(
            connectivity_ok=True,
            response_quality=100,
            profile_correct=True,
        ),
    }
    values.update(overrides)
    return diag_models.TestResult(**values)


def test_health_classification_boundaries() -> None:
    assert classify_health(90, 100) == "healthy"
    assert classify_health(70, 100) == "degraded"
    assert classify_health(69, 100) == "critical"
    assert classify_health(0, 0) == "critical"


def test_basic_quality_scoring() -> None:
    assert basic_quality("") == 0
    assert basic_quality("OK") == 100
    assert basic_quality("Sí, recibido") == 100
    assert basic_quality("Sure, received.") == 80
    assert basic_quality("x" * 300) == 50


def test_functional_quality_combines_coverage_and_length() -> None:
    keywords = ("plan", "step")

    assert functional_quality("plan and step " * 10, keywords) == 100
    assert functional_quality("a plan " + "x" * 43, keywords) == 50
    assert functional_quality("", keywords) == 0


def test_status_banding() -> None:
    assert functional_status(success=False, quality=100) == "error"
    assert functional_status(success=True, quality=70) == "success"
    assert functional_status(success=True, quality=40) == "warning"
    assert functional_status(success=True, quality=39) == "error"
    assert stress_status(0.7) == "success"
    assert stress_status(0.3) == "warning"
    assert stress_status(0.29) == "error"


def test_run_suite_aggregates_results(transport_factory, gateway_factory) -> None:
    gateway = gateway_factory(transport_factory(_smart_responder))
    runner = DiagnosticsRunner(gateway)

    suite = asyncio.run(
        runner.run_suite(diag_models.SuiteConfig(include_profiles=["planner"], timeout_ms=5_000))
    )

    assert suite.total_agents == 1
    assert [result.test_type for result in suite.results] == ["basic", "functional"]
    assert (suite.passed, suite.warned, suite.failed) == (2, 0, 0)
    assert suite.overall_health == "healthy"
    assert suite.recommendations == ["All profiles are working correctly"]
    assert all(result.metrics.profile_correct for result in suite.results)
    assert runner.latest() is not None
    assert runner.latest().id == suite.id


def test_exclude_profiles_filters_suite(echo_transport, gateway_factory) -> None:
    runner = DiagnosticsRunner(gateway_factory(echo_transport))

    config = diag_models.SuiteConfig(
        test_types=["basic"],
        include_profiles=["planner", "code_generator"],
        exclude_profiles=["code_generator"],
    )

    assert runner.select_profiles(config) == ["planner"]


def test_second_run_while_in_flight_raises_conflict(gateway_factory) -> None:
    transport = GatedTransport()
    runner = DiagnosticsRunner(gateway_factory(transport))
    config = diag_models.SuiteConfig(test_types=["basic"], include_profiles=["planner"])

    async def scenario():
        first = asyncio.create_task(runner.run_suite(config))
        await asyncio.sleep(0)
        assert runner.is_running is True

        with pytest.raises(ConflictError):
            await runner.run_suite(config)
        assert runner.history() == []

        transport.gate.set()
        return await first

    suite = asyncio.run(scenario())

    assert suite.passed == 1
    assert len(suite.results) == 1
    assert runner.is_running is False
    assert len(runner.history()) == 1


def test_stress_probe_counts_concurrent_successes(echo_transport, gateway_factory) -> None:
    runner = DiagnosticsRunner(gateway_factory(echo_transport))

    result = asyncio.run(runner.run_single("planner", "stress", 5_000, stress_count=4))

    assert result.status == "success"
    assert result.metrics.response_quality == 100
    assert len(echo_transport.calls) == 4


def test_stress_probe_with_all_failures_is_error(transport_factory, gateway_factory) -> None:
    failing = transport_factory(lambda url, payload: ConnectivityError("connection refused"))
    runner = DiagnosticsRunner(gateway_factory(failing, max_retries=0))

    result = asyncio.run(runner.run_single("planner", "stress", 5_000, stress_count=3))

    assert result.status == "error"
    assert result.metrics.response_quality == 0
    assert result.metrics.connectivity_ok is False


def test_fallback_probe_reports_fail_over(transport_factory, gateway_factory) -> None:
    def respond(url: str, payload: dict):
        if url.endswith("/v1/messages"):
            return ConnectivityError("connection refused")
        return "OK"

    runner = DiagnosticsRunner(gateway_factory(transport_factory(respond), max_retries=0))

    result = asyncio.run(runner.run_single("planner", "fallback", 30_000))

    assert result.status == "success"
    assert result.metrics.fallback_working is True
    assert result.metrics.profile_correct is False
    assert result.backend == "anthropic"
    assert result.served_by == "openai"
    assert result.served_model_id == "gpt-4o"


def test_probe_timeout_produces_error_result(gateway_factory) -> None:
    runner = DiagnosticsRunner(gateway_factory(GatedTransport(), max_retries=0))

    result = asyncio.run(runner.run_single("planner", "basic", 20))

    assert result.status == "error"
    assert result.error_type == "timeout"
    assert result.metrics.connectivity_ok is False


def test_history_is_bounded_and_newest_first(echo_transport, gateway_factory) -> None:
    runner = DiagnosticsRunner(gateway_factory(echo_transport), history_limit=2)
    config = diag_models.SuiteConfig(test_types=["basic"], include_profiles=["planner"])

    async def run_three():
        return [await runner.run_suite(config) for _ in range(3)]

    suites = asyncio.run(run_three())

    history = runner.history()
    assert [suite.id for suite in history] == [suites[2].id, suites[1].id]
    assert runner.get(suites[0].id) is None

    runner.clear_history()
    assert runner.history() == []
    assert runner.latest() is None


def test_suite_recommendations_cover_failures_latency_quality_and_skew() -> None:
    results = [
        _result(status="error", backend="openai", agent_name="code_generator"),
        _result(status="error", backend="openai", agent_name="code_modifier"),
        _result(status="error", backend="openai", agent_name="code_corrector"),
        _result(response_time_ms=25_000),
        _result(
            status="warning",
            metrics=diag_models.TestMetrics(connectivity_ok=True, response_quality=30, profile_correct=True),
        ),
    ]

    recommendations = suite_recommendations(results)

    assert recommendations[0].startswith("3 probe(s) failed")
    assert any("longer than 20s" in line for line in recommendations)
    assert any("below 50 quality" in line for line in recommendations)
    assert any("Failures concentrate on openai" in line for line in recommendations)


def test_failures_are_attributed_to_the_profiles_assigned_backend(transport_factory, gateway_factory) -> None:
    failing = transport_factory(lambda url, payload: ConnectivityError("connection refused"))
    runner = DiagnosticsRunner(gateway_factory(failing, max_retries=0))
    anthropic_profiles = ["planner", "optimized_planner", "web_artist", "file_observer"]
    config = diag_models.SuiteConfig(test_types=["basic"], include_profiles=anthropic_profiles)

    suite = asyncio.run(runner.run_suite(config))

    assert suite.failed == 4
    assert {result.backend for result in suite.results} == {"anthropic"}
    assert {result.served_by for result in suite.results} == {"openai"}
    assert "Failures concentrate on anthropic; consider moving profiles to openai" in suite.recommendations
    assert not any("concentrate on openai" in line for line in suite.recommendations)

    report = build_error_report(suite)
    skew = [item for item in report.recommendations if item.category == "configuration"]
    assert [item.description for item in skew] == ["High failure rate on anthropic profiles"]
    assert sorted(skew[0].affected_agents) == sorted(anthropic_profiles)
    assert {record.backend for record in report.failed_agents} == {"anthropic"}
