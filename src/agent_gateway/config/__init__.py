"""Configuration for agent-gateway."""

from agent_gateway.config.settings import Settings, configure_logging, get_settings

__all__ = ["Settings", "configure_logging", "get_settings"]
