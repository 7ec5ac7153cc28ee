"""Transport and retrying executor for single-backend calls."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
import json
import logging
import time
from typing import Any, Protocol
from urllib import error, request

from agent_gateway.errors import (
    ConnectivityError,
    GatewayError,
    GatewayTimeoutError,
    InvalidResponseError,
    ProviderAPIError,
    is_retryable,
)
from agent_gateway.gateway.backends import BackendEndpoint
from agent_gateway.gateway.models import BackendRequest

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class Transport(Protocol):
    """Posts a JSON body and returns the decoded JSON response."""

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str],
        timeout_s: float,
    ) -> Any: ...


class UrllibTransport:
    """Blocking urllib client run off the event loop.

    The socket timeout equals the call timeout, so a call that loses the
    race in ``RetryingExecutor`` is torn down by the socket rather than left
    running in its worker thread.
    """

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str],
        timeout_s: float,
    ) -> Any:
        return await asyncio.to_thread(self._post, url, payload, headers, timeout_s)

    @staticmethod
    def _post(url: str, payload: dict[str, Any], headers: dict[str, str], timeout_s: float) -> Any:
        req = request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers=headers,
        )
        try:
            with request.urlopen(req, timeout=timeout_s) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raw_error = exc.read().decode("utf-8", errors="replace")
            raise ProviderAPIError(
                f"HTTP {exc.code}: {raw_error[:300]}",
                status_code=exc.code,
                body=raw_error,
            ) from exc
        except error.URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise GatewayTimeoutError(f"Request timed out after {timeout_s}s") from exc
            raise ConnectivityError(f"Connection failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise GatewayTimeoutError(f"Request timed out after {timeout_s}s") from exc
        except OSError as exc:
            raise ConnectivityError(f"Connection failed: {exc}") from exc

        try:
            return json.loads(body)
        except ValueError as exc:
            raise InvalidResponseError("Response body is not valid JSON") from exc


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_s: float = 1.0
    multiplier: float = 2.0
    max_delay_s: float = 10.0

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay_s * (self.multiplier**attempt), self.max_delay_s)

    def delays(self) -> Iterator[float]:
        for attempt in range(self.max_retries):
            yield self.delay_for(attempt)


@dataclass(frozen=True)
class CallResult:
    ok: bool
    text: str = ""
    error: GatewayError | None = None
    attempts: int = 0
    latency_ms: int = 0


class RetryingExecutor:
    """Runs one logical call against one backend with bounded retries."""

    def __init__(
        self,
        transport: Transport,
        *,
        policy: RetryPolicy | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.transport = transport
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def call(
        self,
        endpoint: BackendEndpoint,
        backend_request: BackendRequest,
        timeout_ms: int,
        *,
        max_retries: int | None = None,
    ) -> CallResult:
        retries = self.policy.max_retries if max_retries is None else max(0, max_retries)
        timeout_s = max(timeout_ms, 1) / 1000
        payload = endpoint.serialize(backend_request)
        headers = endpoint.headers()
        started = time.perf_counter()
        last_error: GatewayError | None = None
        attempts = 0

        for attempt in range(retries + 1):
            attempts += 1
            try:
                response_json = await asyncio.wait_for(
                    self.transport.post_json(
                        endpoint.url,
                        payload,
                        headers=headers,
                        timeout_s=timeout_s,
                    ),
                    timeout=timeout_s,
                )
                text = endpoint.parse(response_json)
                return CallResult(
                    ok=True,
                    text=text,
                    attempts=attempts,
                    latency_ms=_duration_ms(started),
                )
            except GatewayError as exc:
                last_error = exc
            except TimeoutError:
                last_error = GatewayTimeoutError(f"Request timed out after {timeout_ms}ms")
            except Exception as exc:  # noqa: BLE001
                last_error = GatewayError(f"Unexpected transport failure: {exc}")

            if last_error.backend is None:
                last_error.backend = endpoint.backend
            logger.warning(
                "backend_call event=attempt_failed backend=%s model=%s attempt=%d/%d reason=%s",
                endpoint.backend,
                backend_request.model,
                attempt + 1,
                retries + 1,
                last_error,
            )
            if not is_retryable(last_error) or attempt >= retries:
                break
            await self._sleep(self.policy.delay_for(attempt))

        return CallResult(
            ok=False,
            error=last_error,
            attempts=attempts,
            latency_ms=_duration_ms(started),
        )


def _duration_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
