"""Generation pipeline state machine.

The pipeline walks a fixed list of steps:

    instruction-input -> target-selection -> template-selection
        -> plan-generation -> plan-approval -> coordination

Each public operation is valid only on its own step. ``current_step_index``
moves forward one step at a time while steps succeed; a failed plan step or a
rejected approval leaves the index where it is until ``retry_plan`` or
``start`` is called.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
import logging
from typing import Any
from uuid import uuid4

from agent_gateway.errors import ConflictError, InvalidTransitionError
from agent_gateway.gateway.gateway import ResilientGateway
from agent_gateway.pipeline.analysis import analyze_instruction, parse_model_reply
from agent_gateway.pipeline.catalog import TIER_TO_PLAN_COMPLEXITY, Catalog
from agent_gateway.pipeline.events import (
    ArtifactsUpdated,
    ChatMessage,
    EventBus,
    GenerationProgress,
    StateChanged,
)
from agent_gateway.pipeline.fallbacks import project_title
from agent_gateway.pipeline.generation import ArtifactGenerator
from agent_gateway.pipeline.models import (
    ApprovalRequest,
    DevelopmentPlan,
    GeneratedArtifact,
    InstructionAnalysis,
    PlanDraft,
    StepId,
    StepStatus,
    TechnologyStack,
    TemplateOption,
    WorkflowState,
    initial_state,
)

logger = logging.getLogger(__name__)

PLAN_SYSTEM_PROMPT = (
    "You plan small web projects. Reply with a single JSON object with keys title, "
    "description, steps (list of strings), technologies (list of strings), "
    "architecture, estimated_duration and files (list of {path, description})."
)

_DURATION_BY_COMPLEXITY = {"simple": "1-2 hours", "moderate": "half a day", "complex": "1-2 days"}
_FALLBACK_STEPS = [
    "Set up the project structure",
    "Build the page layout",
    "Style the interface",
    "Add interactivity",
    "Review and polish",
]


class GenerationPipeline:
    """One instruction-to-artifacts workflow; create one instance per session."""

    def __init__(
        self,
        gateway: ResilientGateway,
        *,
        catalog: Catalog | None = None,
        generator: ArtifactGenerator | None = None,
        events: EventBus | None = None,
        session_id: str = "",
    ) -> None:
        self.gateway = gateway
        self.catalog = catalog or Catalog()
        self.generator = generator or ArtifactGenerator(gateway)
        self.events = events or EventBus()
        self.session_id = session_id or str(uuid4())
        self._state = initial_state()
        self._artifacts: list[GeneratedArtifact] = []

    @property
    def state(self) -> WorkflowState:
        return self._state.model_copy(deep=True)

    @property
    def artifacts(self) -> list[GeneratedArtifact]:
        return [artifact.model_copy() for artifact in self._artifacts]

    def reset(self) -> WorkflowState:
        if self._state.is_processing:
            raise ConflictError("Pipeline is busy")
        self._state = initial_state()
        self._artifacts = []
        self._emit_state()
        return self.state

    async def start(self, instruction: str) -> WorkflowState:
        text = instruction.strip()
        if not text:
            raise ValueError("Instruction must not be empty")

        async with self._processing("start"):
            self._state = initial_state().model_copy(update={"instruction": text, "is_processing": True})
            self._artifacts = []
            self._set_status("instruction-input", "in-progress")

            analysis = await analyze_instruction(self.gateway, text)
            self._state.analysis = analysis
            self._set_status("instruction-input", "completed", analysis.model_dump())
            self._advance()
            self._chat(
                f"Instruction analyzed: {analysis.project_type} project, "
                f"{analysis.complexity} complexity, {analysis.style} style."
            )
        return self.state

    async def select_target(self, stack_id: str) -> WorkflowState:
        self._require_step("target-selection")
        stack = self.catalog.get_stack(stack_id)
        if stack is None:
            raise KeyError(f"Unknown technology stack: {stack_id}")

        async with self._processing("select_target"):
            self._state.selected_target = stack
            self._set_status("target-selection", "completed", {"stack_id": stack.id})
            self._advance()
            self._chat(f"Technology stack selected: {stack.name}.")
        return self.state

    async def select_template(self, template_id: str | None = None) -> WorkflowState:
        self._require_step("template-selection")
        analysis = self._state.analysis or InstructionAnalysis()
        if template_id is None:
            template = self.catalog.pick_template(analysis)
        else:
            template = self.catalog.get_template(template_id)
            if template is None:
                raise KeyError(f"Unknown template: {template_id}")

        async with self._processing("select_template"):
            self._state.selected_template = template
            self._set_status("template-selection", "completed", {"template_id": template.id})
            self._advance()
            await self._generate_plan()
        return self.state

    async def approve_plan(self, approved: bool) -> WorkflowState:
        self._require_step("plan-approval")
        if not self._state.requires_approval or self._state.plan is None:
            raise InvalidTransitionError("No plan is waiting for approval")

        async with self._processing("approve_plan"):
            self._state.requires_approval = False
            self._state.approval_data = None
            if approved:
                self._set_status("plan-approval", "completed", {"approved": True})
                self._advance()
                self._chat("Plan approved. Generating files.")
                await self._coordinate()
            else:
                self._set_status("plan-approval", "failed", {"approved": False})
                self._chat("Plan rejected. Regenerate the plan to continue.", level="error")
                logger.info("pipeline event=plan_rejected session_id=%s", self.session_id)
        return self.state

    async def retry_plan(self) -> WorkflowState:
        step = self._state.current_step
        if step.id not in ("plan-generation", "plan-approval") or step.status != "failed":
            raise InvalidTransitionError("Plan can only be regenerated after a failed or rejected plan")

        async with self._processing("retry_plan"):
            for later in self._state.steps[3:]:
                later.status = "pending"
                later.data = None
            self._state.current_step_index = 3
            self._state.plan = None
            await self._generate_plan()
        return self.state

    async def _generate_plan(self) -> None:
        template = self._state.selected_template
        analysis = self._state.analysis or InstructionAnalysis()
        if template is None:
            raise InvalidTransitionError("Template must be selected before planning")

        self._set_status("plan-generation", "in-progress")
        result = await self.gateway.execute(
            "planner",
            _plan_prompt(self._state.instruction, analysis, template, self._state.selected_target),
            system=PLAN_SYSTEM_PROMPT,
        )
        if not result.success:
            logger.error(
                "pipeline event=plan_failed session_id=%s reason=%s",
                self.session_id,
                result.error,
            )
            self._set_status("plan-generation", "failed", {"error": result.error})
            self._chat(f"Plan generation failed: {result.error}", level="error")
            return

        plan = _build_plan(
            result.payload or "",
            analysis=analysis,
            template=template,
            stack=self._state.selected_target,
        )
        self._state.plan = plan
        self._set_status(
            "plan-generation",
            "completed",
            {"complexity": plan.complexity, "source": plan.source, "files": len(plan.files)},
        )
        self._advance()
        self._state.requires_approval = True
        self._state.approval_data = ApprovalRequest(
            id=str(uuid4()),
            title=plan.title,
            data=plan,
            timestamp=datetime.now(UTC),
        )
        self._chat(f"Plan ready for review: {plan.title} ({len(plan.files)} files).")
        self._emit_state()

    async def _coordinate(self) -> None:
        plan = self._state.plan
        analysis = self._state.analysis or InstructionAnalysis()
        if plan is None:
            raise InvalidTransitionError("No approved plan to execute")

        try:
            artifacts = await self.generator.generate(
                plan.files,
                analysis=analysis,
                plan=plan,
                on_progress=self._publish_progress,
                on_artifacts=self._publish_artifacts,
            )
        except Exception as exc:
            self._set_status("coordination", "failed", {"error": str(exc)})
            self._chat(f"File generation failed: {exc}", level="error")
            raise

        self._artifacts = artifacts
        fallbacks = sum(1 for artifact in artifacts if artifact.fallback)
        self._set_status(
            "coordination",
            "completed",
            {"artifacts": len(artifacts), "fallbacks": fallbacks},
        )
        self._chat(f"Generated {len(artifacts)} files ({fallbacks} from fallback templates).", level="success")
        logger.info(
            "pipeline event=completed session_id=%s artifacts=%d fallbacks=%d",
            self.session_id,
            len(artifacts),
            fallbacks,
        )

    @asynccontextmanager
    async def _processing(self, operation: str) -> AsyncIterator[None]:
        if self._state.is_processing:
            raise ConflictError(f"Pipeline is busy; cannot {operation}")
        self._state.is_processing = True
        self._emit_state()
        try:
            yield
        finally:
            self._state.is_processing = False
            self._emit_state()

    def _require_step(self, step_id: StepId) -> None:
        step = self._state.current_step
        if step.id != step_id or step.status != "in-progress":
            raise InvalidTransitionError(
                f"Expected step {step_id} in progress, current is {step.id} ({step.status})"
            )

    def _set_status(self, step_id: StepId, status: StepStatus, data: dict[str, Any] | None = None) -> None:
        for step in self._state.steps:
            if step.id == step_id:
                step.status = status
                if data is not None:
                    step.data = data
                break
        self._emit_state()

    def _advance(self) -> None:
        if self._state.current_step_index >= len(self._state.steps) - 1:
            return
        self._state.current_step_index += 1
        self._state.current_step.status = "in-progress"
        self._emit_state()

    def _emit_state(self) -> None:
        self.events.publish(StateChanged(session_id=self.session_id, state=self.state))

    def _chat(self, content: str, *, level: str = "info") -> None:
        self.events.publish(ChatMessage(session_id=self.session_id, content=content, level=level))

    def _publish_progress(self, progress: GenerationProgress) -> None:
        self.events.publish(progress.model_copy(update={"session_id": self.session_id}))

    def _publish_artifacts(self, artifacts: list[GeneratedArtifact]) -> None:
        self._artifacts = artifacts
        self.events.publish(ArtifactsUpdated(session_id=self.session_id, artifacts=artifacts))


def _plan_prompt(
    instruction: str,
    analysis: InstructionAnalysis,
    template: TemplateOption,
    stack: TechnologyStack | None,
) -> str:
    lines = [
        f"Instruction: {instruction}",
        f"Project type: {analysis.project_type}",
        f"Template: {template.name} ({template.tier})",
        "Template files: " + ", ".join(planned.path for planned in template.files),
    ]
    if stack is not None:
        lines.append(f"Stack: {stack.name} ({', '.join(stack.technologies)})")
    if analysis.functional_requirements:
        lines.append("Requirements: " + ", ".join(analysis.functional_requirements))
    return "\n".join(lines)


def _build_plan(
    reply: str,
    *,
    analysis: InstructionAnalysis,
    template: TemplateOption,
    stack: TechnologyStack | None,
) -> DevelopmentPlan:
    complexity = TIER_TO_PLAN_COMPLEXITY[template.tier]
    stack_technologies = list(stack.technologies) if stack is not None else []
    draft = parse_model_reply(reply, PlanDraft)
    if draft is not None:
        return DevelopmentPlan(
            title=draft.title,
            description=draft.description,
            steps=draft.steps or list(_FALLBACK_STEPS),
            technologies=draft.technologies or stack_technologies,
            architecture=draft.architecture or template.name,
            complexity=complexity,
            estimated_duration=draft.estimated_duration or _DURATION_BY_COMPLEXITY[complexity],
            files=draft.files or list(template.files),
            source="model",
        )

    return DevelopmentPlan(
        title=f"{project_title(analysis)} project",
        description=reply.strip() or template.description,
        steps=list(_FALLBACK_STEPS),
        technologies=stack_technologies,
        architecture=template.name,
        complexity=complexity,
        estimated_duration=_DURATION_BY_COMPLEXITY[complexity],
        files=list(template.files),
        source="fallback",
    )
