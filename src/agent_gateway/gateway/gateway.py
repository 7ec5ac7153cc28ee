"""Resilient gateway: profile routing, connection probing and fail-over."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
import logging
import time

from agent_gateway.config.settings import Settings
from agent_gateway.errors import GatewayError, classify_error
from agent_gateway.gateway.backends import BackendEndpoint, build_endpoints
from agent_gateway.gateway.directory import FALLBACK_MODELS, ProviderDirectory
from agent_gateway.gateway.models import (
    BACKENDS,
    Backend,
    BackendRequest,
    ConnectionStatus,
    ExecutionResult,
    Message,
    TaskProfile,
    alternate_backend,
)
from agent_gateway.gateway.monitor import UsageMonitor
from agent_gateway.gateway.transport import (
    CallResult,
    RetryingExecutor,
    RetryPolicy,
    Transport,
    UrllibTransport,
)

logger = logging.getLogger(__name__)

PROBE_PROMPT = "ping"
PROBE_MAX_TOKENS = 10


class ResilientGateway:
    """Executes task-profile requests; never raises to its callers."""

    def __init__(
        self,
        *,
        executor: RetryingExecutor,
        endpoints: dict[Backend, BackendEndpoint],
        directory: ProviderDirectory | None = None,
        monitor: UsageMonitor | None = None,
        request_timeout_ms: int = 30_000,
        fallback_max_retries: int = 0,
        connection_ttl_s: float = 300.0,
        probe_connection: bool = True,
    ) -> None:
        self.executor = executor
        self.endpoints = endpoints
        self.directory = directory or ProviderDirectory()
        self.monitor = monitor or UsageMonitor()
        self.request_timeout_ms = request_timeout_ms
        self.fallback_max_retries = fallback_max_retries
        self.connection_ttl = timedelta(seconds=connection_ttl_s)
        self.probe_connection = probe_connection
        self._status = ConnectionStatus()
        self._probe: asyncio.Future[ConnectionStatus] | None = None

    def connection_status(self) -> ConnectionStatus:
        return self._status.model_copy()

    def is_connection_stale(self) -> bool:
        checked_at = self._status.last_checked_at
        if not self._status.connected or checked_at is None:
            return True
        return datetime.now(UTC) - checked_at > self.connection_ttl

    async def test_connection(self) -> ConnectionStatus:
        """Probe each backend once, in order, until one answers."""
        for backend in BACKENDS:
            endpoint = self.endpoints[backend]
            probe = BackendRequest(
                model=FALLBACK_MODELS[backend],
                max_tokens=PROBE_MAX_TOKENS,
                temperature=0.0,
                messages=[Message(role="user", content=PROBE_PROMPT)],
            )
            outcome = await self.executor.call(
                endpoint,
                probe,
                self.request_timeout_ms,
                max_retries=0,
            )
            if outcome.ok:
                self._status = ConnectionStatus(
                    connected=True,
                    backend=backend,
                    last_checked_at=datetime.now(UTC),
                    error_count=0,
                )
                logger.info("connection_probe event=connected backend=%s", backend)
                return self.connection_status()
            logger.warning(
                "connection_probe event=failed backend=%s reason=%s",
                backend,
                outcome.error,
            )

        self._status = ConnectionStatus(
            connected=False,
            backend=None,
            last_checked_at=datetime.now(UTC),
            error_count=self._status.error_count + 1,
        )
        return self.connection_status()

    async def execute(
        self,
        profile_name: str,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout_ms: int | None = None,
    ) -> ExecutionResult:
        profile = self.directory.resolve(profile_name)
        started = time.perf_counter()
        try:
            return await self._execute(
                profile,
                profile_name=profile_name,
                prompt=prompt,
                system=system,
                max_tokens=max_tokens,
                temperature=temperature,
                timeout_ms=timeout_ms or self.request_timeout_ms,
                started=started,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("gateway_call event=unexpected_error profile=%s", profile_name)
            return ExecutionResult(
                success=False,
                error=str(exc),
                error_type=classify_error(exc),
                profile_name=profile_name,
                backend=profile.backend,
                model_id=profile.model_id,
                latency_ms=_duration_ms(started),
            )

    async def _shared_probe(self) -> ConnectionStatus:
        """Join the probe already in flight, or start one."""
        if self._probe is None or self._probe.done():
            self._probe = asyncio.ensure_future(self.test_connection())
        # A caller timing out must not cancel the probe other calls are waiting on.
        return await asyncio.shield(self._probe)

    async def _execute(
        self,
        profile: TaskProfile,
        *,
        profile_name: str,
        prompt: str,
        system: str | None,
        max_tokens: int | None,
        temperature: float | None,
        timeout_ms: int,
        started: float,
    ) -> ExecutionResult:
        if self.probe_connection and self.is_connection_stale():
            status = await self._shared_probe()
            if not status.connected:
                logger.warning(
                    "gateway_call event=no_connectivity profile=%s errors=%d",
                    profile_name,
                    status.error_count,
                )

        primary_request = BackendRequest(
            model=profile.model_id,
            max_tokens=max_tokens or profile.max_tokens,
            temperature=profile.temperature if temperature is None else temperature,
            system=system,
            messages=[Message(role="user", content=prompt)],
        )
        primary = await self.executor.call(
            self.endpoints[profile.backend],
            primary_request,
            timeout_ms,
        )
        self.monitor.record(profile.backend, success=primary.ok)
        if primary.ok:
            return _result(
                primary,
                profile_name=profile_name,
                backend=profile.backend,
                model_id=profile.model_id,
                fallback_used=False,
                attempts=primary.attempts,
                started=started,
            )

        fallback_backend = alternate_backend(profile.backend)
        fallback_model = FALLBACK_MODELS[fallback_backend]
        logger.warning(
            "gateway_call event=fallback profile=%s from=%s to=%s reason=%s",
            profile_name,
            profile.backend,
            fallback_backend,
            primary.error,
        )
        fallback = await self.executor.call(
            self.endpoints[fallback_backend],
            primary_request.model_copy(update={"model": fallback_model}),
            timeout_ms,
            max_retries=self.fallback_max_retries,
        )
        self.monitor.record(fallback_backend, success=fallback.ok)
        if not fallback.ok:
            logger.error(
                "gateway_call event=failed profile=%s reason=%s",
                profile_name,
                fallback.error,
            )
        return _result(
            fallback,
            profile_name=profile_name,
            backend=fallback_backend,
            model_id=fallback_model,
            fallback_used=True,
            attempts=primary.attempts + fallback.attempts,
            started=started,
        )


def _result(
    outcome: CallResult,
    *,
    profile_name: str,
    backend: Backend,
    model_id: str,
    fallback_used: bool,
    attempts: int,
    started: float,
) -> ExecutionResult:
    error: GatewayError | None = outcome.error
    return ExecutionResult(
        success=outcome.ok,
        payload=outcome.text if outcome.ok else None,
        error=None if outcome.ok else str(error or "unknown failure"),
        error_type=None if outcome.ok else classify_error(error or Exception()),
        profile_name=profile_name,
        backend=backend,
        model_id=model_id,
        fallback_used=fallback_used,
        latency_ms=_duration_ms(started),
        attempts=attempts,
    )


def build_gateway(
    settings: Settings,
    *,
    transport: Transport | None = None,
    directory: ProviderDirectory | None = None,
    monitor: UsageMonitor | None = None,
) -> ResilientGateway:
    policy = RetryPolicy(
        max_retries=settings.max_retries,
        base_delay_s=settings.backoff_base_s,
        multiplier=settings.backoff_multiplier,
        max_delay_s=settings.backoff_max_s,
    )
    return ResilientGateway(
        executor=RetryingExecutor(transport or UrllibTransport(), policy=policy),
        endpoints=build_endpoints(settings),
        directory=directory,
        monitor=monitor,
        request_timeout_ms=int(settings.request_timeout_s * 1000),
        fallback_max_retries=settings.fallback_max_retries,
        connection_ttl_s=settings.connection_ttl_s,
        probe_connection=settings.probe_connection,
    )


def _duration_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
