"""Per-artifact generation loop with retry, fallback and an optimization pass."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
import logging
import re
import time
from uuid import uuid4

from agent_gateway.gateway.gateway import ResilientGateway
from agent_gateway.gateway.transport import SleepFn
from agent_gateway.pipeline.analysis import extract_code
from agent_gateway.pipeline.events import GenerationProgress
from agent_gateway.pipeline.fallbacks import fallback_content, language_for
from agent_gateway.pipeline.models import (
    DevelopmentPlan,
    GeneratedArtifact,
    InstructionAnalysis,
    PlannedFile,
)

logger = logging.getLogger(__name__)

ENTRY_ARTIFACT = re.compile(r"(^|/)(index|main|App)\.[^/]+$")

GENERATION_SYSTEM_PROMPT = (
    "You write complete, working source files. Reply with the file content only, "
    "optionally inside one fenced code block."
)
OPTIMIZATION_SYSTEM_PROMPT = (
    "You improve existing source files without changing their behavior. Reply with "
    "the full improved file, optionally inside one fenced code block."
)

ProgressCallback = Callable[[GenerationProgress], None]
ArtifactCallback = Callable[[list[GeneratedArtifact]], None]


def is_entry_artifact(path: str) -> bool:
    return ENTRY_ARTIFACT.search(path) is not None


class ArtifactGenerator:
    """Turns planned files into artifacts; always yields one artifact per planned file."""

    def __init__(
        self,
        gateway: ResilientGateway,
        *,
        retry_limit: int = 2,
        retry_pause_s: float = 2.0,
        file_pause_s: float = 1.5,
        optimize_entries: bool = True,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.gateway = gateway
        self.retry_limit = max(0, retry_limit)
        self.retry_pause_s = retry_pause_s
        self.file_pause_s = file_pause_s
        self.optimize_entries = optimize_entries
        self._sleep = sleep

    async def generate(
        self,
        files: Sequence[PlannedFile],
        *,
        analysis: InstructionAnalysis,
        plan: DevelopmentPlan | None = None,
        on_progress: ProgressCallback | None = None,
        on_artifacts: ArtifactCallback | None = None,
    ) -> list[GeneratedArtifact]:
        artifacts: list[GeneratedArtifact] = []
        total = len(files)
        started = time.perf_counter()

        for index, planned in enumerate(files):
            _notify(
                on_progress,
                _progress("generating", planned.path, total, index, started),
            )
            content = await self._generate_file(planned, analysis=analysis, plan=plan, existing=artifacts)
            if content is None:
                logger.warning("artifact_generation event=fallback path=%s", planned.path)
                artifacts.append(
                    _artifact(
                        planned.path,
                        fallback_content(planned.path, analysis, planned.description),
                        fallback=True,
                    )
                )
            else:
                artifacts.append(_artifact(planned.path, content))
            _notify(on_artifacts, list(artifacts))
            if index < total - 1 and self.file_pause_s > 0:
                await self._sleep(self.file_pause_s)

        if self.optimize_entries:
            _notify(on_progress, _progress("optimizing", "", total, total, started))
            await self._optimize(artifacts)
            _notify(on_artifacts, list(artifacts))

        _notify(on_progress, _progress("completed", "", total, total, started))
        logger.info(
            "artifact_generation event=completed total=%d fallbacks=%d",
            total,
            sum(1 for artifact in artifacts if artifact.fallback),
        )
        return artifacts

    async def _generate_file(
        self,
        planned: PlannedFile,
        *,
        analysis: InstructionAnalysis,
        plan: DevelopmentPlan | None,
        existing: Sequence[GeneratedArtifact],
    ) -> str | None:
        prompt = _generation_prompt(planned, analysis=analysis, plan=plan, existing=existing)
        for attempt in range(self.retry_limit + 1):
            result = await self.gateway.execute(
                "code_generator",
                prompt,
                system=GENERATION_SYSTEM_PROMPT,
            )
            if result.success and result.payload:
                content = extract_code(result.payload)
                if content:
                    return content
            logger.warning(
                "artifact_generation event=attempt_failed path=%s attempt=%d/%d reason=%s",
                planned.path,
                attempt + 1,
                self.retry_limit + 1,
                result.error or "empty content",
            )
            if attempt < self.retry_limit and self.retry_pause_s > 0:
                await self._sleep(self.retry_pause_s)
        return None

    async def _optimize(self, artifacts: list[GeneratedArtifact]) -> None:
        for index, artifact in enumerate(artifacts):
            if not is_entry_artifact(artifact.path):
                continue
            result = await self.gateway.execute(
                "code_modifier",
                f"Optimize {artifact.path}:\n\n{artifact.content}",
                system=OPTIMIZATION_SYSTEM_PROMPT,
            )
            content = extract_code(result.payload or "") if result.success else ""
            if not content:
                logger.info("artifact_optimization event=kept path=%s", artifact.path)
                continue
            artifacts[index] = artifact.model_copy(
                update={
                    "content": content,
                    "optimized": True,
                    "timestamp": datetime.now(UTC),
                }
            )


def _generation_prompt(
    planned: PlannedFile,
    *,
    analysis: InstructionAnalysis,
    plan: DevelopmentPlan | None,
    existing: Sequence[GeneratedArtifact],
) -> str:
    lines = [
        f"File: {planned.path}",
        f"Purpose: {planned.description or 'see project plan'}",
        f"Project type: {analysis.project_type}",
        f"Style: {analysis.style}, color scheme: {analysis.color_scheme}",
    ]
    if plan is not None:
        lines.append(f"Project: {plan.title}")
        if plan.technologies:
            lines.append(f"Technologies: {', '.join(plan.technologies)}")
    if existing:
        lines.append(f"Already generated: {', '.join(artifact.path for artifact in existing)}")
    return "\n".join(lines)


def _artifact(path: str, content: str, *, fallback: bool = False) -> GeneratedArtifact:
    return GeneratedArtifact(
        id=str(uuid4()),
        path=path,
        content=content,
        language=language_for(path),
        timestamp=datetime.now(UTC),
        fallback=fallback,
    )


def _progress(step: str, current_file: str, total: int, completed: int, started: float) -> GenerationProgress:
    elapsed_s = time.perf_counter() - started
    remaining = None
    if completed > 0:
        remaining = round(elapsed_s / completed * (total - completed), 1)
    return GenerationProgress(
        current_step=step,
        current_file=current_file,
        total_files=total,
        completed_files=completed,
        percentage=round(completed / total * 100) if total else 100,
        estimated_time_remaining_s=remaining,
    )


def _notify(callback, payload) -> None:
    if callback is not None:
        callback(payload)
