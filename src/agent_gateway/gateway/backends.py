"""Wire formats for the two supported backends."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from agent_gateway.config.settings import Settings
from agent_gateway.errors import InvalidResponseError
from agent_gateway.gateway.models import Backend, BackendRequest

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


@dataclass(frozen=True)
class BackendEndpoint:
    """Address and credentials for one backend plus its request/response codec."""

    backend: Backend
    base_url: str
    api_key: str = ""

    @property
    def url(self) -> str:
        base = self.base_url.rstrip("/")
        if self.backend == "anthropic":
            return f"{base}/v1/messages"
        return f"{base}/v1/chat/completions"

    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.backend == "anthropic":
            headers["anthropic-version"] = ANTHROPIC_VERSION
            if self.api_key:
                headers["x-api-key"] = self.api_key
        elif self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def serialize(self, request: BackendRequest) -> dict[str, Any]:
        messages = [message.model_dump() for message in request.messages]
        payload: dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if self.backend == "anthropic":
            if request.system:
                payload["system"] = request.system
            payload["messages"] = messages
            return payload

        if request.system:
            messages = [{"role": "system", "content": request.system}, *messages]
        payload["messages"] = messages
        return payload

    def parse(self, response_json: Any) -> str:
        if not isinstance(response_json, dict):
            raise InvalidResponseError(
                "Response body is not a JSON object",
                backend=self.backend,
            )
        if self.backend == "anthropic":
            return _parse_anthropic(response_json)
        return _parse_openai(response_json)


def _parse_anthropic(response_json: dict[str, Any]) -> str:
    if "content" not in response_json:
        raise InvalidResponseError("Response did not contain content", backend="anthropic")

    content = response_json["content"]
    if not isinstance(content, list):
        raise InvalidResponseError("Response content is not a list", backend="anthropic")

    segments = [
        item["text"]
        for item in content
        if isinstance(item, dict) and isinstance(item.get("text"), str)
    ]
    if not segments:
        logger.warning("backend_response event=empty_content backend=anthropic")
        return ""
    return "".join(segments)


def _parse_openai(response_json: dict[str, Any]) -> str:
    if "choices" not in response_json:
        raise InvalidResponseError("Response did not contain choices", backend="openai")

    choices = response_json["choices"]
    if not isinstance(choices, list):
        raise InvalidResponseError("Response choices is not a list", backend="openai")
    if not choices or not isinstance(choices[0], dict):
        logger.warning("backend_response event=empty_choices backend=openai")
        return ""

    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        text_segments: list[str] = []
        for item in content:
            if isinstance(item, dict):
                text = item.get("text")
                if isinstance(text, str):
                    text_segments.append(text)
        return "".join(text_segments)

    logger.warning("backend_response event=empty_content backend=openai")
    return ""


def build_endpoints(settings: Settings) -> dict[Backend, BackendEndpoint]:
    return {
        "anthropic": BackendEndpoint(
            backend="anthropic",
            base_url=settings.anthropic_base_url,
            api_key=settings.resolved_anthropic_api_key(),
        ),
        "openai": BackendEndpoint(
            backend="openai",
            base_url=settings.openai_base_url,
            api_key=settings.resolved_openai_api_key(),
        ),
    }
