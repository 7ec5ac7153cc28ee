"""Quality scoring, status banding and suite-level recommendations."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import re

from agent_gateway.diagnostics.models import OverallHealth, TestResult, TestStatus

AFFIRMATIVE_PATTERN = re.compile(r"\b(ok|okay|yes|sí)\b", re.IGNORECASE)
SLOW_RESPONSE_MS = 20_000
LOW_QUALITY_THRESHOLD = 50
BACKEND_SKEW_FACTOR = 2

BASIC_PROMPT = "Reply with OK if you received this message."


@dataclass(frozen=True)
class FunctionalProbe:
    prompt: str
    keywords: tuple[str, ...]


FUNCTIONAL_PROBES: dict[str, FunctionalProbe] = {
    "planner": FunctionalProbe(
        prompt="Outline a short plan to build a simple to-do web application.",
        keywords=("plan", "step", "task", "feature", "structure"),
    ),
    "optimized_planner": FunctionalProbe(
        prompt="Produce an optimized phased plan for a personal blog.",
        keywords=("phase", "step", "optimiz", "blog", "plan"),
    ),
    "code_generator": FunctionalProbe(
        prompt="Write a JavaScript function that adds two numbers.",
        keywords=("function", "return", "const", "=>", "+"),
    ),
    "code_modifier": FunctionalProbe(
        prompt="Modify `function greet() { return 'hi'; }` so it accepts a name.",
        keywords=("function", "name", "return", "greet"),
    ),
    "design_architect": FunctionalProbe(
        prompt="Describe the component layout for a product landing page.",
        keywords=("header", "hero", "footer", "section", "layout"),
    ),
    "enhanced_design_architect": FunctionalProbe(
        prompt="Propose a color palette and typography for a dashboard.",
        keywords=("color", "font", "palette", "contrast", "typography"),
    ),
    "web_artist": FunctionalProbe(
        prompt="Write CSS for a centered card with a subtle shadow.",
        keywords=("box-shadow", "border-radius", "display", "margin", "card"),
    ),
    "file_observer": FunctionalProbe(
        prompt="List what you would check when reviewing an index.html file.",
        keywords=("html", "head", "body", "meta", "script"),
    ),
    "instruction_analyzer": FunctionalProbe(
        prompt="Analyze the request: build a portfolio site with a contact form.",
        keywords=("portfolio", "contact", "form", "requirement", "page"),
    ),
    "code_splitter": FunctionalProbe(
        prompt="Explain how to split a 500-line app.js into modules.",
        keywords=("module", "import", "export", "file", "split"),
    ),
    "code_corrector": FunctionalProbe(
        prompt="Fix the bug: `const total = items.lenght;`",
        keywords=("length", "fix", "typo", "const"),
    ),
}

DEFAULT_PROBE = FunctionalProbe(
    prompt="Describe in two sentences what you can help with.",
    keywords=("help", "can", "you"),
)


def functional_probe(profile_name: str) -> FunctionalProbe:
    return FUNCTIONAL_PROBES.get(profile_name, DEFAULT_PROBE)


def basic_quality(reply: str) -> int:
    text = reply.strip()
    if not text:
        return 0
    if AFFIRMATIVE_PATTERN.search(text):
        return 100
    if 10 < len(text) < 200:
        return 80
    return 50


def functional_quality(reply: str, keywords: Sequence[str]) -> int:
    text = reply.lower()
    if not text.strip():
        return 0
    coverage = sum(1 for keyword in keywords if keyword.lower() in text) / len(keywords) if keywords else 0.0
    length_adequacy = min(len(text) / 100, 1.0)
    return min(100, round(coverage * 60 + length_adequacy * 40))


def functional_status(*, success: bool, quality: int) -> TestStatus:
    if not success:
        return "error"
    if quality >= 70:
        return "success"
    if quality >= 40:
        return "warning"
    return "error"


def stress_status(success_ratio: float) -> TestStatus:
    if success_ratio >= 0.7:
        return "success"
    if success_ratio >= 0.3:
        return "warning"
    return "error"


def classify_health(passed: int, total: int) -> OverallHealth:
    if total <= 0:
        return "critical"
    ratio = passed / total
    if ratio >= 0.9:
        return "healthy"
    if ratio >= 0.7:
        return "degraded"
    return "critical"


def suite_recommendations(results: Sequence[TestResult]) -> list[str]:
    recommendations: list[str] = []

    failures = [result for result in results if result.status == "error"]
    if failures:
        recommendations.append(
            f"{len(failures)} probe(s) failed; check backend credentials and connectivity"
        )

    slow = [result for result in results if result.response_time_ms > SLOW_RESPONSE_MS]
    if slow:
        recommendations.append(
            f"{len(slow)} probe(s) took longer than {SLOW_RESPONSE_MS // 1000}s; "
            "consider lighter models or lower token budgets"
        )

    low_quality = [
        result for result in results if result.metrics.response_quality < LOW_QUALITY_THRESHOLD
    ]
    if low_quality:
        recommendations.append(
            f"{len(low_quality)} probe(s) scored below {LOW_QUALITY_THRESHOLD} quality; "
            "review prompts and temperature for those profiles"
        )

    anthropic_failures = sum(1 for result in failures if result.backend == "anthropic")
    openai_failures = sum(1 for result in failures if result.backend == "openai")
    if anthropic_failures > openai_failures * BACKEND_SKEW_FACTOR:
        recommendations.append(
            "Failures concentrate on anthropic; consider moving profiles to openai"
        )
    elif openai_failures > anthropic_failures * BACKEND_SKEW_FACTOR:
        recommendations.append(
            "Failures concentrate on openai; consider moving profiles to anthropic"
        )

    if not recommendations:
        recommendations.append("All profiles are working correctly")
    return recommendations
