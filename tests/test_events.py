from __future__ import annotations

import pytest

from agent_gateway.pipeline.events import ChatMessage, EventBus, GenerationProgress


def test_handlers_run_synchronously_in_registration_order() -> None:
    bus = EventBus()
    received: list[str] = []
    bus.subscribe(ChatMessage, lambda event: received.append(f"first:{event.content}"))
    bus.subscribe(ChatMessage, lambda event: received.append(f"second:{event.content}"))

    bus.publish(ChatMessage(content="hello"))

    assert received == ["first:hello", "second:hello"]


def test_events_are_routed_by_type() -> None:
    bus = EventBus()
    chats: list[ChatMessage] = []
    bus.subscribe(ChatMessage, chats.append)

    bus.publish(GenerationProgress(current_step="generating", total_files=3))

    assert chats == []


def test_unsubscribe_stops_delivery_and_is_idempotent() -> None:
    bus = EventBus()
    received: list[str] = []
    subscription = bus.subscribe(ChatMessage, lambda event: received.append(event.content))

    subscription.unsubscribe()
    subscription.unsubscribe()
    bus.publish(ChatMessage(content="ignored"))

    assert received == []
    assert bus.subscriber_count(ChatMessage) == 0


def test_failing_handler_does_not_block_later_handlers() -> None:
    bus = EventBus()
    received: list[str] = []

    def broken(event: ChatMessage) -> None:
        raise RuntimeError("listener bug")

    bus.subscribe(ChatMessage, broken)
    bus.subscribe(ChatMessage, lambda event: received.append(event.content))

    bus.publish(ChatMessage(content="still delivered"))

    assert received == ["still delivered"]


def test_subscriber_limit_is_enforced() -> None:
    bus = EventBus(max_subscribers=2)
    bus.subscribe(ChatMessage, lambda event: None)
    bus.subscribe(ChatMessage, lambda event: None)

    with pytest.raises(RuntimeError):
        bus.subscribe(ChatMessage, lambda event: None)
