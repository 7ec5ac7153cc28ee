"""Instruction analysis and reply parsing helpers."""

from __future__ import annotations

import json
import logging
import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from agent_gateway.gateway.gateway import ResilientGateway
from agent_gateway.pipeline.models import Complexity, InstructionAnalysis

logger = logging.getLogger(__name__)

TModel = TypeVar("TModel", bound=BaseModel)

FENCED_BLOCK = re.compile(r"```[\w.+-]*[ \t]*\n(.*?)```", re.DOTALL)

_PROJECT_TYPES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("ecommerce", ("e-commerce", "ecommerce", "tienda", "store", "shop")),
    ("blog", ("blog",)),
    ("dashboard", ("dashboard", "panel de control", "admin panel")),
    ("landing", ("landing",)),
    ("portfolio", ("portfolio", "portafolio")),
)
_ADVANCED_HINTS = ("avanzado", "advanced", "complejo", "complex", "enterprise")
_INTERMEDIATE_HINTS = (
    "autenticación",
    "authentication",
    "login",
    "base de datos",
    "database",
    "api",
)
_SIMPLE_STYLE_HINTS = ("simple", "sencill", "minimal", "básic", "basic")
_DARK_HINTS = ("oscuro", "dark")
_REQUIREMENTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("contact form", ("contacto", "contact")),
    ("user authentication", ("login", "autenticación", "authentication")),
    ("shopping cart", ("carrito", "cart")),
    ("search", ("búsqueda", "buscar", "search")),
    ("image gallery", ("galería", "gallery")),
    ("responsive design", ("responsive", "móvil", "mobile")),
)
_TECHNOLOGIES = ("react", "vue", "angular", "svelte", "typescript", "tailwind", "node")
_ESTIMATED_FILES: dict[Complexity, int] = {"basic": 5, "intermediate": 10, "advanced": 15}

ANALYSIS_SYSTEM_PROMPT = (
    "You analyze web project requests. Reply with a single JSON object with keys "
    "project_type, complexity (basic|intermediate|advanced), style, color_scheme "
    "(light|dark), layout, functional_requirements, technologies, estimated_files."
)


def extract_code(text: str) -> str:
    """Return the first fenced block's body, or the whole reply when unfenced."""
    match = FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_model_reply(text: str, model: type[TModel]) -> TModel | None:
    """Validate a reply against ``model`` once; ``None`` means use the fallback path."""
    candidate = extract_code(text)
    try:
        return model.model_validate(json.loads(candidate))
    except (ValueError, ValidationError) as exc:
        logger.info(
            "reply_parse event=fallback schema=%s reason=%s",
            model.__name__,
            type(exc).__name__,
        )
        return None


def heuristic_analysis(instruction: str) -> InstructionAnalysis:
    text = instruction.lower()

    project_type = "webapp"
    for candidate, hints in _PROJECT_TYPES:
        if any(hint in text for hint in hints):
            project_type = candidate
            break

    complexity: Complexity = "basic"
    if any(hint in text for hint in _ADVANCED_HINTS):
        complexity = "advanced"
    elif any(re.search(rf"\b{re.escape(hint)}\b", text) for hint in _INTERMEDIATE_HINTS):
        complexity = "intermediate"

    style = "simple" if any(hint in text for hint in _SIMPLE_STYLE_HINTS) else "modern"
    requirements = [name for name, hints in _REQUIREMENTS if any(hint in text for hint in hints)]
    technologies = [name for name in _TECHNOLOGIES if re.search(rf"\b{name}\b", text)]

    return InstructionAnalysis(
        project_type=project_type,
        complexity=complexity,
        style=style,
        color_scheme="dark" if any(hint in text for hint in _DARK_HINTS) else "light",
        layout="responsive",
        functional_requirements=requirements,
        technologies=technologies,
        estimated_files=_ESTIMATED_FILES[complexity],
    )


async def analyze_instruction(gateway: ResilientGateway, instruction: str) -> InstructionAnalysis:
    result = await gateway.execute(
        "instruction_analyzer",
        f"Analyze this request:\n{instruction}",
        system=ANALYSIS_SYSTEM_PROMPT,
    )
    if result.success and result.payload:
        parsed = parse_model_reply(result.payload, InstructionAnalysis)
        if parsed is not None:
            return parsed
    else:
        logger.warning("instruction_analysis event=model_failed reason=%s", result.error)
    return heuristic_analysis(instruction)
