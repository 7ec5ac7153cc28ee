"""Multi-backend request gateway."""

from agent_gateway.gateway.backends import BackendEndpoint, build_endpoints
from agent_gateway.gateway.directory import (
    DEFAULT_PROFILE,
    ProviderDirectory,
    build_directory,
    load_profiles,
)
from agent_gateway.gateway.gateway import ResilientGateway, build_gateway
from agent_gateway.gateway.models import (
    Backend,
    ConnectionStatus,
    ExecutionResult,
    TaskProfile,
    UsageReport,
)
from agent_gateway.gateway.monitor import UsageMonitor
from agent_gateway.gateway.transport import (
    CallResult,
    RetryingExecutor,
    RetryPolicy,
    Transport,
    UrllibTransport,
)

__all__ = [
    "DEFAULT_PROFILE",
    "Backend",
    "BackendEndpoint",
    "CallResult",
    "ConnectionStatus",
    "ExecutionResult",
    "ProviderDirectory",
    "ResilientGateway",
    "RetryPolicy",
    "RetryingExecutor",
    "TaskProfile",
    "Transport",
    "UrllibTransport",
    "UsageMonitor",
    "UsageReport",
    "build_directory",
    "build_endpoints",
    "build_gateway",
    "load_profiles",
]
