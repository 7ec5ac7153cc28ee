"""Task profile table and lookup."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from agent_gateway.errors import ConfigurationError
from agent_gateway.gateway.models import BACKENDS, Backend, TaskProfile

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = TaskProfile(
    name="default",
    backend="anthropic",
    model_id="claude-3-5-sonnet-20241022",
    temperature=0.3,
    max_tokens=3000,
    rationale="Default profile for unregistered task names",
)

# Model used on a backend when a call fails over from the other one.
FALLBACK_MODELS: dict[Backend, str] = {
    "anthropic": "claude-3-5-sonnet-20241022",
    "openai": "gpt-4o",
}

BUILTIN_PROFILES: tuple[TaskProfile, ...] = (
    TaskProfile(
        name="planner",
        backend="anthropic",
        model_id="claude-3-5-sonnet-20241022",
        temperature=0.3,
        max_tokens=4000,
        rationale="Long-form reasoning for project planning",
    ),
    TaskProfile(
        name="optimized_planner",
        backend="anthropic",
        model_id="claude-3-5-sonnet-20241022",
        temperature=0.3,
        max_tokens=4000,
        rationale="Plan refinement with the same reasoning model",
    ),
    TaskProfile(
        name="code_generator",
        backend="openai",
        model_id="gpt-o3-mini",
        temperature=0.1,
        max_tokens=4000,
        rationale="Fast, precise code generation",
    ),
    TaskProfile(
        name="code_modifier",
        backend="openai",
        model_id="gpt-o3-mini",
        temperature=0.05,
        max_tokens=3000,
        rationale="Minimal-drift edits to existing files",
    ),
    TaskProfile(
        name="design_architect",
        backend="openai",
        model_id="gpt-4-turbo",
        temperature=0.4,
        max_tokens=3000,
        rationale="Structured UI architecture proposals",
    ),
    TaskProfile(
        name="enhanced_design_architect",
        backend="anthropic",
        model_id="claude-3-5-sonnet",
        temperature=0.4,
        max_tokens=3000,
        rationale="Design work that benefits from richer context",
    ),
    TaskProfile(
        name="web_artist",
        backend="anthropic",
        model_id="claude-3-5-sonnet",
        temperature=0.5,
        max_tokens=4000,
        rationale="Visual styling with more creative latitude",
    ),
    TaskProfile(
        name="file_observer",
        backend="anthropic",
        model_id="claude-3-haiku-20240307",
        temperature=0.2,
        max_tokens=2000,
        rationale="Cheap, quick file inspection",
    ),
    TaskProfile(
        name="instruction_analyzer",
        backend="anthropic",
        model_id="claude-3-sonnet-20240229",
        temperature=0.3,
        max_tokens=1500,
        rationale="Short structured analysis of user instructions",
    ),
    TaskProfile(
        name="code_splitter",
        backend="openai",
        model_id="gpt-o3-mini",
        temperature=0.1,
        max_tokens=2000,
        rationale="Mechanical decomposition of large files",
    ),
    TaskProfile(
        name="code_corrector",
        backend="openai",
        model_id="gpt-o3-mini",
        temperature=0.05,
        max_tokens=3000,
        rationale="Deterministic fixes for reported errors",
    ),
)


class ProviderDirectory:
    """Immutable name to profile lookup with an explicit default."""

    def __init__(
        self,
        profiles: Iterable[TaskProfile] = BUILTIN_PROFILES,
        *,
        default: TaskProfile = DEFAULT_PROFILE,
    ) -> None:
        self._profiles: dict[str, TaskProfile] = {profile.name: profile for profile in profiles}
        self.default = default

    def resolve(self, name: str) -> TaskProfile:
        profile = self._profiles.get(name)
        if profile is not None:
            return profile
        logger.warning("profile_lookup event=default_used profile=%s", name)
        return self.default

    def resolve_strict(self, name: str) -> TaskProfile:
        profile = self._profiles.get(name)
        if profile is None:
            raise ConfigurationError(f"Unknown task profile: {name}")
        return profile

    def __contains__(self, name: object) -> bool:
        return name in self._profiles

    def names(self) -> list[str]:
        return list(self._profiles)

    def profiles(self) -> list[TaskProfile]:
        return list(self._profiles.values())

    def distribution(self) -> dict[Backend, list[str]]:
        grouped: dict[Backend, list[str]] = {backend: [] for backend in BACKENDS}
        for profile in self._profiles.values():
            grouped[profile.backend].append(profile.name)
        return grouped


def load_profiles(path: str | Path) -> list[TaskProfile]:
    """Load profile overrides from a JSON object keyed by profile name."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Cannot read profile file {path}: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Profile file {path} must contain a JSON object")

    profiles: list[TaskProfile] = []
    for name, entry in raw.items():
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"Profile {name} must be a JSON object")
        data: dict[str, Any] = {"name": name, **entry}
        try:
            profiles.append(TaskProfile.model_validate(data))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid profile {name}: {exc}") from exc
    return profiles


def build_directory(profiles_file: str = "") -> ProviderDirectory:
    if not profiles_file:
        return ProviderDirectory()
    overrides = {profile.name: profile for profile in load_profiles(profiles_file)}
    merged = {profile.name: profile for profile in BUILTIN_PROFILES}
    merged.update(overrides)
    logger.info(
        "profile_table event=loaded source=%s overrides=%d",
        profiles_file,
        len(overrides),
    )
    return ProviderDirectory(merged.values())
