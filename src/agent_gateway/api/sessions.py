"""In-memory registry of per-session generation pipelines."""

from __future__ import annotations

import threading

from agent_gateway.pipeline.workflow import GenerationPipeline


class InMemoryPipelineStore:
    """Maps session ids to their own pipeline instance."""

    def __init__(self, *, max_sessions: int = 100) -> None:
        self.max_sessions = max_sessions
        self._pipelines: dict[str, GenerationPipeline] = {}
        self._lock = threading.Lock()

    def add(self, pipeline: GenerationPipeline) -> None:
        with self._lock:
            if len(self._pipelines) >= self.max_sessions:
                # Drop the oldest idle session.
                for session_id, existing in self._pipelines.items():
                    if not existing.state.is_processing:
                        del self._pipelines[session_id]
                        break
            self._pipelines[pipeline.session_id] = pipeline

    def get(self, session_id: str) -> GenerationPipeline | None:
        with self._lock:
            return self._pipelines.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._pipelines.pop(session_id, None) is not None

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._pipelines)
