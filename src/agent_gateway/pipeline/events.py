"""Typed publish/subscribe channel for pipeline events."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import logging
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, Field

from agent_gateway.pipeline.models import GeneratedArtifact, WorkflowState

logger = logging.getLogger(__name__)


class PipelineEvent(BaseModel):
    session_id: str = ""


class StateChanged(PipelineEvent):
    state: WorkflowState


class ChatMessage(PipelineEvent):
    role: Literal["assistant", "system"] = "assistant"
    level: Literal["info", "success", "error"] = "info"
    content: str


class ArtifactsUpdated(PipelineEvent):
    artifacts: list[GeneratedArtifact] = Field(default_factory=list)


class GenerationProgress(PipelineEvent):
    current_step: str
    current_file: str = ""
    total_files: int = 0
    completed_files: int = 0
    percentage: int = 0
    estimated_time_remaining_s: float | None = None


TEvent = TypeVar("TEvent", bound=PipelineEvent)
Handler = Callable[[Any], None]


@dataclass(eq=False)
class Subscription:
    bus: EventBus
    event_type: type[PipelineEvent]
    handler: Handler
    active: bool = field(default=True)

    def unsubscribe(self) -> None:
        if self.active:
            self.bus._remove(self)
            self.active = False


class EventBus:
    """Delivers each event synchronously to its subscribers in registration order."""

    def __init__(self, *, max_subscribers: int = 32) -> None:
        self.max_subscribers = max_subscribers
        self._subscriptions: dict[type[PipelineEvent], list[Subscription]] = {}

    def subscribe(self, event_type: type[TEvent], handler: Callable[[TEvent], None]) -> Subscription:
        current = self._subscriptions.setdefault(event_type, [])
        if len(current) >= self.max_subscribers:
            raise RuntimeError(
                f"Subscriber limit reached for {event_type.__name__} ({self.max_subscribers})"
            )
        subscription = Subscription(bus=self, event_type=event_type, handler=handler)
        current.append(subscription)
        return subscription

    def publish(self, event: PipelineEvent) -> None:
        for subscription in list(self._subscriptions.get(type(event), ())):
            try:
                subscription.handler(event)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "pipeline_event event=handler_failed type=%s",
                    type(event).__name__,
                )

    def subscriber_count(self, event_type: type[PipelineEvent]) -> int:
        return len(self._subscriptions.get(event_type, ()))

    def _remove(self, subscription: Subscription) -> None:
        current = self._subscriptions.get(subscription.event_type, [])
        if subscription in current:
            current.remove(subscription)
