"""Diagnostic test-suite runner built on the resilient gateway."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
import logging
import time
from uuid import uuid4

from agent_gateway.diagnostics.models import (
    SuiteConfig,
    TestMetrics,
    TestResult,
    TestStatus,
    TestSuite,
    TestType,
)
from agent_gateway.diagnostics.scoring import (
    BASIC_PROMPT,
    basic_quality,
    classify_health,
    functional_probe,
    functional_quality,
    functional_status,
    stress_status,
    suite_recommendations,
)
from agent_gateway.errors import ConflictError, ErrorType
from agent_gateway.gateway.gateway import ResilientGateway
from agent_gateway.gateway.models import ExecutionResult, TaskProfile

logger = logging.getLogger(__name__)

BASIC_MAX_TOKENS = 50
FALLBACK_TIMEOUT_CAP_MS = 10_000


class DiagnosticsRunner:
    """Runs probe suites against every registered task profile.

    Only one suite may run at a time per runner; the running flag is set
    before the first suspension point, so a concurrent ``run_suite`` sees it.
    """

    def __init__(
        self,
        gateway: ResilientGateway,
        *,
        history_limit: int = 10,
        default_stress_count: int = 3,
    ) -> None:
        self.gateway = gateway
        self.history_limit = max(1, history_limit)
        self.default_stress_count = max(1, default_stress_count)
        self._history: list[TestSuite] = []
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def history(self) -> list[TestSuite]:
        return [suite.model_copy(deep=True) for suite in self._history]

    def latest(self) -> TestSuite | None:
        return self._history[0].model_copy(deep=True) if self._history else None

    def get(self, suite_id: str) -> TestSuite | None:
        for suite in self._history:
            if suite.id == suite_id:
                return suite.model_copy(deep=True)
        return None

    def clear_history(self) -> None:
        self._history = []

    def select_profiles(self, config: SuiteConfig) -> list[str]:
        names = self.gateway.directory.names()
        if config.include_profiles is not None:
            included = set(config.include_profiles)
            names = [name for name in names if name in included]
        excluded = set(config.exclude_profiles)
        return [name for name in names if name not in excluded]

    async def run_suite(self, config: SuiteConfig | None = None) -> TestSuite:
        if self._running:
            raise ConflictError("A test suite is already running")
        self._running = True
        try:
            return await self._run_suite(config or SuiteConfig(stress_count=self.default_stress_count))
        finally:
            self._running = False

    async def _run_suite(self, config: SuiteConfig) -> TestSuite:
        suite_id = str(uuid4())
        profiles = self.select_profiles(config)
        started = time.perf_counter()
        logger.info(
            "test_suite event=start suite_id=%s profiles=%d test_types=%s",
            suite_id,
            len(profiles),
            ",".join(config.test_types),
        )

        results: list[TestResult] = []
        for profile_name in profiles:
            for test_type in config.test_types:
                results.append(
                    await self.run_single(
                        profile_name,
                        test_type,
                        config.timeout_ms,
                        stress_count=config.stress_count,
                    )
                )

        passed = sum(1 for result in results if result.status == "success")
        warned = sum(1 for result in results if result.status == "warning")
        failed = sum(1 for result in results if result.status == "error")
        avg_response_time = (
            round(sum(result.response_time_ms for result in results) / len(results)) if results else 0
        )
        suite = TestSuite(
            id=suite_id,
            timestamp=datetime.now(UTC),
            total_agents=len(profiles),
            passed=passed,
            warned=warned,
            failed=failed,
            avg_response_time_ms=avg_response_time,
            duration_ms=_duration_ms(started),
            results=results,
            recommendations=suite_recommendations(results),
            overall_health=classify_health(passed, len(results)),
        )
        self._history.insert(0, suite)
        del self._history[self.history_limit :]
        logger.info(
            "test_suite event=completed suite_id=%s passed=%d warned=%d failed=%d health=%s",
            suite_id,
            passed,
            warned,
            failed,
            suite.overall_health,
        )
        return suite.model_copy(deep=True)

    async def run_single(
        self,
        profile_name: str,
        test_type: TestType,
        timeout_ms: int,
        *,
        stress_count: int | None = None,
    ) -> TestResult:
        profile = self.gateway.directory.resolve(profile_name)
        if test_type == "basic":
            return await self._basic(profile_name, profile, timeout_ms)
        if test_type == "functional":
            return await self._functional(profile_name, profile, timeout_ms)
        if test_type == "stress":
            return await self._stress(
                profile_name,
                profile,
                timeout_ms,
                stress_count or self.default_stress_count,
            )
        if test_type == "fallback":
            return await self._fallback(profile_name, profile, timeout_ms)
        raise ValueError(f"Unsupported test type: {test_type}")

    async def _basic(self, profile_name: str, profile: TaskProfile, timeout_ms: int) -> TestResult:
        result, elapsed_ms = await self._timed_call(
            profile_name,
            profile,
            BASIC_PROMPT,
            timeout_ms,
            max_tokens=BASIC_MAX_TOKENS,
        )
        quality = basic_quality(result.payload or "") if result.success else 0
        return _test_result(
            profile_name,
            profile,
            result,
            test_type="basic",
            status="success" if result.success else "error",
            elapsed_ms=elapsed_ms,
            quality=quality,
        )

    async def _functional(self, profile_name: str, profile: TaskProfile, timeout_ms: int) -> TestResult:
        probe = functional_probe(profile_name)
        result, elapsed_ms = await self._timed_call(profile_name, profile, probe.prompt, timeout_ms)
        quality = functional_quality(result.payload or "", probe.keywords) if result.success else 0
        return _test_result(
            profile_name,
            profile,
            result,
            test_type="functional",
            status=functional_status(success=result.success, quality=quality),
            elapsed_ms=elapsed_ms,
            quality=quality,
        )

    async def _stress(
        self,
        profile_name: str,
        profile: TaskProfile,
        timeout_ms: int,
        count: int,
    ) -> TestResult:
        started = time.perf_counter()
        outcomes = await asyncio.gather(
            *(
                self._timed_call(
                    profile_name,
                    profile,
                    BASIC_PROMPT,
                    timeout_ms,
                    max_tokens=BASIC_MAX_TOKENS,
                )
                for _ in range(count)
            ),
            return_exceptions=True,
        )
        settled = [outcome for outcome in outcomes if not isinstance(outcome, BaseException)]
        successes = [result for result, _ in settled if result.success]
        ratio = len(successes) / count
        elapsed = [elapsed_ms for _, elapsed_ms in settled] or [_duration_ms(started)]
        representative = successes[0] if successes else (settled[-1][0] if settled else None)
        if representative is None:
            representative = _failed_result(profile_name, profile, "All stress calls raised", elapsed[0])

        logger.info(
            "stress_test event=completed profile=%s successes=%d/%d",
            profile_name,
            len(successes),
            count,
        )
        test_result = _test_result(
            profile_name,
            profile,
            representative,
            test_type="stress",
            status=stress_status(ratio),
            elapsed_ms=round(sum(elapsed) / len(elapsed)),
            quality=round(ratio * 100),
        )
        return test_result.model_copy(
            update={"metrics": test_result.metrics.model_copy(update={"connectivity_ok": bool(successes)})}
        )

    async def _fallback(self, profile_name: str, profile: TaskProfile, timeout_ms: int) -> TestResult:
        short_timeout = min(timeout_ms, FALLBACK_TIMEOUT_CAP_MS)
        result, elapsed_ms = await self._timed_call(
            profile_name,
            profile,
            BASIC_PROMPT,
            short_timeout,
            max_tokens=BASIC_MAX_TOKENS,
        )
        quality = basic_quality(result.payload or "") if result.success else 0
        test_result = _test_result(
            profile_name,
            profile,
            result,
            test_type="fallback",
            status="success" if result.success else "error",
            elapsed_ms=elapsed_ms,
            quality=quality,
        )
        return test_result.model_copy(
            update={"metrics": test_result.metrics.model_copy(update={"fallback_working": result.fallback_used})}
        )

    async def _timed_call(
        self,
        profile_name: str,
        profile: TaskProfile,
        prompt: str,
        timeout_ms: int,
        *,
        max_tokens: int | None = None,
    ) -> tuple[ExecutionResult, int]:
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                self.gateway.execute(
                    profile_name,
                    prompt,
                    max_tokens=max_tokens,
                    timeout_ms=timeout_ms,
                ),
                timeout=timeout_ms / 1000,
            )
        except TimeoutError:
            elapsed_ms = _duration_ms(started)
            logger.warning(
                "test_probe event=timeout profile=%s timeout_ms=%d",
                profile_name,
                timeout_ms,
            )
            failed = _failed_result(
                profile_name,
                profile,
                f"Probe timed out after {timeout_ms}ms",
                elapsed_ms,
                error_type="timeout",
            )
            return failed, elapsed_ms
        return result, _duration_ms(started)


def _failed_result(
    profile_name: str,
    profile: TaskProfile,
    message: str,
    elapsed_ms: int,
    *,
    error_type: ErrorType = "unknown",
) -> ExecutionResult:
    return ExecutionResult(
        success=False,
        error=message,
        error_type=error_type,
        profile_name=profile_name,
        backend=profile.backend,
        model_id=profile.model_id,
        latency_ms=elapsed_ms,
    )


def _test_result(
    profile_name: str,
    profile: TaskProfile,
    result: ExecutionResult,
    *,
    test_type: TestType,
    status: TestStatus,
    elapsed_ms: int,
    quality: int,
) -> TestResult:
    return TestResult(
        agent_name=profile_name,
        backend=profile.backend,
        model_id=profile.model_id,
        status=status,
        response_time_ms=elapsed_ms,
        test_type=test_type,
        timestamp=datetime.now(UTC),
        metrics=TestMetrics(
            connectivity_ok=result.success,
            response_quality=quality,
            profile_correct=(
                result.success
                and result.backend == profile.backend
                and result.model_id == profile.model_id
            ),
        ),
        response=result.payload,
        error=result.error,
        error_type=result.error_type,
        served_by=result.backend,
        served_model_id=result.model_id,
    )


def _duration_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
