"""Per-backend usage counters and derived recommendations."""

from __future__ import annotations

from datetime import UTC, datetime
import threading

from agent_gateway.gateway.directory import ProviderDirectory
from agent_gateway.gateway.models import (
    BACKENDS,
    Backend,
    BackendUsage,
    ConnectionStatus,
    HealthCheck,
    UsageReport,
)

LOAD_IMBALANCE_THRESHOLD = 0.7
ERROR_RATIO_THRESHOLD = 0.1


def _empty_counters() -> dict[Backend, BackendUsage]:
    return {backend: BackendUsage() for backend in BACKENDS}


class UsageMonitor:
    """Thread-safe request/error counters, one entry per backend."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters = _empty_counters()

    def record(self, backend: Backend, *, success: bool) -> None:
        with self._lock:
            current = self._counters[backend]
            self._counters[backend] = BackendUsage(
                requests=current.requests + 1,
                errors=current.errors + (0 if success else 1),
                last_used_at=datetime.now(UTC),
            )

    def snapshot(self) -> dict[Backend, BackendUsage]:
        with self._lock:
            return {backend: usage.model_copy() for backend, usage in self._counters.items()}

    def reset(self) -> None:
        fresh = _empty_counters()
        with self._lock:
            self._counters = fresh

    def get_stats(self, directory: ProviderDirectory) -> UsageReport:
        per_backend = self.snapshot()
        total = sum(usage.requests for usage in per_backend.values())
        return UsageReport(
            per_backend=per_backend,
            distribution=directory.distribution(),
            total_requests=total,
            recommendations=_recommendations(per_backend, total),
        )

    def health_check(self, status: ConnectionStatus, directory: ProviderDirectory) -> HealthCheck:
        issues: list[str] = []
        if not status.connected:
            issues.append("No backend connectivity")
        for backend, names in directory.distribution().items():
            if not names:
                issues.append(f"No task profiles assigned to {backend}")
        return HealthCheck(healthy=not issues, issues=issues)


def _recommendations(per_backend: dict[Backend, BackendUsage], total: int) -> list[str]:
    recommendations: list[str] = []
    if total > 0:
        for backend, usage in per_backend.items():
            share = usage.requests / total
            if share > LOAD_IMBALANCE_THRESHOLD:
                recommendations.append(
                    f"Load imbalance: {backend} carries {share:.0%} of requests; "
                    "consider moving profiles to the other backend"
                )
    for backend, usage in per_backend.items():
        if usage.requests >= 1 and usage.error_ratio > ERROR_RATIO_THRESHOLD:
            recommendations.append(
                f"Elevated error rate on {backend}: {usage.error_ratio:.0%} "
                f"({usage.errors}/{usage.requests})"
            )
    return recommendations
