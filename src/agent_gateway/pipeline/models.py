"""Pydantic models for the generation pipeline.

Terms used in this file:
- Step: one stage of the linear workflow; its status only moves forward
  (pending -> in-progress -> completed|failed) until the pipeline is reset.
- Planned file: a path plus a description, produced by plan synthesis and
  consumed by the generation loop.
- Artifact: a generated file owned by the pipeline.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

StepStatus = Literal["pending", "in-progress", "completed", "failed"]
StepId = Literal[
    "instruction-input",
    "target-selection",
    "template-selection",
    "plan-generation",
    "plan-approval",
    "coordination",
]
Complexity = Literal["basic", "intermediate", "advanced"]
PlanComplexity = Literal["simple", "moderate", "complex"]
TemplateTier = Literal["beginner", "intermediate", "advanced"]

STEP_DEFINITIONS: tuple[tuple[StepId, str], ...] = (
    ("instruction-input", "Instruction input"),
    ("target-selection", "Technology stack selection"),
    ("template-selection", "Template selection"),
    ("plan-generation", "Plan generation"),
    ("plan-approval", "Plan approval"),
    ("coordination", "Artifact generation"),
)


class WorkflowStep(BaseModel):
    id: StepId
    name: str
    status: StepStatus = "pending"
    data: dict[str, Any] | None = None


class InstructionAnalysis(BaseModel):
    """Structured reading of the user's instruction."""

    project_type: str = "webapp"
    complexity: Complexity = "basic"
    style: str = "modern"
    color_scheme: Literal["light", "dark"] = "light"
    layout: str = "responsive"
    functional_requirements: list[str] = Field(default_factory=list)
    technologies: list[str] = Field(default_factory=list)
    estimated_files: int = Field(default=5, ge=1)


class PlannedFile(BaseModel):
    path: str = Field(min_length=1)
    description: str = ""


class TechnologyStack(BaseModel):
    id: str
    name: str
    description: str = ""
    technologies: list[str] = Field(default_factory=list)


class TemplateOption(BaseModel):
    id: str
    name: str
    project_type: str
    tier: TemplateTier
    description: str = ""
    stack_ids: list[str] = Field(default_factory=list)
    files: list[PlannedFile] = Field(default_factory=list)


class DevelopmentPlan(BaseModel):
    title: str
    description: str = ""
    steps: list[str] = Field(default_factory=list)
    technologies: list[str] = Field(default_factory=list)
    architecture: str = ""
    complexity: PlanComplexity = "simple"
    estimated_duration: str = ""
    files: list[PlannedFile] = Field(default_factory=list)
    # "model" when the planner reply parsed against the plan schema.
    source: Literal["model", "fallback"] = "model"


class PlanDraft(BaseModel):
    """Schema the planner reply is validated against."""

    title: str = Field(min_length=1)
    description: str = ""
    steps: list[str] = Field(default_factory=list)
    technologies: list[str] = Field(default_factory=list)
    architecture: str = ""
    estimated_duration: str = ""
    files: list[PlannedFile] = Field(default_factory=list)


class ApprovalRequest(BaseModel):
    id: str
    type: Literal["plan"] = "plan"
    title: str
    data: DevelopmentPlan
    timestamp: datetime


class WorkflowState(BaseModel):
    current_step_index: int = 0
    steps: list[WorkflowStep] = Field(default_factory=list)
    instruction: str = ""
    analysis: InstructionAnalysis | None = None
    selected_target: TechnologyStack | None = None
    selected_template: TemplateOption | None = None
    plan: DevelopmentPlan | None = None
    is_processing: bool = False
    requires_approval: bool = False
    approval_data: ApprovalRequest | None = None

    @property
    def current_step(self) -> WorkflowStep:
        return self.steps[self.current_step_index]


class GeneratedArtifact(BaseModel):
    id: str
    path: str
    content: str
    language: str
    is_new: bool = True
    timestamp: datetime
    # True when the content was synthesized locally after generation failed.
    fallback: bool = False
    optimized: bool = False


def initial_steps() -> list[WorkflowStep]:
    return [WorkflowStep(id=step_id, name=name) for step_id, name in STEP_DEFINITIONS]


def initial_state() -> WorkflowState:
    return WorkflowState(steps=initial_steps())
