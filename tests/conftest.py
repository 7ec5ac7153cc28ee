from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi.testclient import TestClient
import pytest

from agent_gateway.api.main import create_app
from agent_gateway.config.settings import Settings
from agent_gateway.gateway.backends import BackendEndpoint
from agent_gateway.gateway.directory import ProviderDirectory
from agent_gateway.gateway.gateway import ResilientGateway
from agent_gateway.gateway.monitor import UsageMonitor
from agent_gateway.gateway.transport import RetryingExecutor, RetryPolicy

Responder = Callable[[str, dict[str, Any]], Any]


def _reply_for(url: str, text: str) -> dict[str, Any]:
    if url.endswith("/v1/messages"):
        return {"content": [{"type": "text", "text": text}]}
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


class ScriptedTransport:
    """Test double that records every post and answers via ``responder``.

    The responder receives ``(url, payload)``. A string is wrapped in the
    backend's response shape, an exception instance is raised, anything else
    is returned as the raw JSON body.
    """

    def __init__(self, responder: Responder) -> None:
        self.responder = responder
        self.calls: list[dict[str, Any]] = []

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str],
        timeout_s: float,
    ) -> Any:
        self.calls.append({"url": url, "payload": payload, "headers": headers, "timeout_s": timeout_s})
        outcome = self.responder(url, payload)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, str):
            return _reply_for(url, outcome)
        return outcome

    def calls_to(self, backend: str) -> list[dict[str, Any]]:
        suffix = "/v1/messages" if backend == "anthropic" else "/v1/chat/completions"
        return [call for call in self.calls if call["url"].endswith(suffix)]


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _endpoints() -> dict[str, BackendEndpoint]:
    return {
        "anthropic": BackendEndpoint(backend="anthropic", base_url="http://anthropic.test", api_key="a-key"),
        "openai": BackendEndpoint(backend="openai", base_url="http://openai.test", api_key="o-key"),
    }


@pytest.fixture
def transport_factory() -> Callable[[Responder], ScriptedTransport]:
    return ScriptedTransport


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def endpoints() -> dict[str, BackendEndpoint]:
    return _endpoints()


@pytest.fixture
def gateway_factory(recording_sleep: RecordingSleep) -> Callable[..., ResilientGateway]:
    def _make(
        transport: ScriptedTransport,
        *,
        max_retries: int = 3,
        monitor: UsageMonitor | None = None,
        directory: ProviderDirectory | None = None,
        probe_connection: bool = False,
        request_timeout_ms: int = 5_000,
    ) -> ResilientGateway:
        executor = RetryingExecutor(
            transport,
            policy=RetryPolicy(max_retries=max_retries, base_delay_s=1.0, multiplier=2.0, max_delay_s=10.0),
            sleep=recording_sleep,
        )
        return ResilientGateway(
            executor=executor,
            endpoints=_endpoints(),
            directory=directory,
            monitor=monitor,
            request_timeout_ms=request_timeout_ms,
            probe_connection=probe_connection,
        )

    return _make


@pytest.fixture
def echo_transport(transport_factory) -> ScriptedTransport:
    return transport_factory(lambda url, payload: "OK")


@pytest.fixture
def gateway_settings() -> Settings:
    return Settings(
        _env_file=None,
        anthropic_base_url="http://anthropic.test",
        openai_base_url="http://openai.test",
        backoff_base_s=0.0,
        backoff_max_s=0.0,
        artifact_retry_pause_s=0.0,
        file_pause_s=0.0,
        probe_connection=False,
        request_timeout_s=5.0,
    )


@pytest.fixture
def client(gateway_settings: Settings, echo_transport: ScriptedTransport) -> TestClient:
    app = create_app(settings_override=gateway_settings, transport=echo_transport)
    return TestClient(app)
