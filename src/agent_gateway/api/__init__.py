"""HTTP surface for agent-gateway."""
