"""Staged instruction-to-artifacts generation pipeline."""

from agent_gateway.pipeline.catalog import Catalog
from agent_gateway.pipeline.events import (
    ArtifactsUpdated,
    ChatMessage,
    EventBus,
    GenerationProgress,
    StateChanged,
    Subscription,
)
from agent_gateway.pipeline.generation import ArtifactGenerator, is_entry_artifact
from agent_gateway.pipeline.models import GeneratedArtifact, WorkflowState
from agent_gateway.pipeline.workflow import GenerationPipeline

__all__ = [
    "ArtifactGenerator",
    "ArtifactsUpdated",
    "Catalog",
    "ChatMessage",
    "EventBus",
    "GeneratedArtifact",
    "GenerationPipeline",
    "GenerationProgress",
    "StateChanged",
    "Subscription",
    "WorkflowState",
    "is_entry_artifact",
]
