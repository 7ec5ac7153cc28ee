from __future__ import annotations

import asyncio
import json

from agent_gateway.errors import ConnectivityError
from agent_gateway.pipeline.fallbacks import fallback_content, language_for
from agent_gateway.pipeline.generation import ArtifactGenerator, is_entry_artifact
from agent_gateway.pipeline.models import InstructionAnalysis, PlannedFile

SEVEN_FILES = [
    PlannedFile(path="index.html", description="page"),
    PlannedFile(path="styles.css", description="styles"),
    PlannedFile(path="app.js", description="logic"),
    PlannedFile(path="src/main.tsx", description="entry"),
    PlannedFile(path="src/App.tsx", description="root component"),
    PlannedFile(path="package.json", description="manifest"),
    PlannedFile(path="README.md", description="docs"),
]


def _system(payload: dict) -> str:
    if "system" in payload:
        return payload["system"]
    first = payload["messages"][0]
    return first["content"] if first["role"] == "system" else ""


def test_failing_transport_still_yields_one_artifact_per_planned_file(
    transport_factory, gateway_factory, recording_sleep
) -> None:
    failing = transport_factory(lambda url, payload: ConnectivityError("connection refused"))
    gateway = gateway_factory(failing, max_retries=0)
    generator = ArtifactGenerator(gateway, retry_limit=2, retry_pause_s=2.0, file_pause_s=0.0, sleep=recording_sleep)
    analysis = InstructionAnalysis(project_type="dashboard", color_scheme="dark")

    artifacts = asyncio.run(generator.generate(SEVEN_FILES, analysis=analysis))

    assert len(artifacts) == 7
    assert [artifact.path for artifact in artifacts] == [planned.path for planned in SEVEN_FILES]
    assert all(artifact.fallback for artifact in artifacts)
    assert all(artifact.content.strip() for artifact in artifacts)
    assert not any(artifact.optimized for artifact in artifacts)
    assert artifacts[0].content == fallback_content("index.html", analysis, "page")
    assert recording_sleep.delays == [2.0] * 14
    # 7 files x 3 attempts x 2 backends, plus 3 entry files x 2 backends.
    assert len(failing.calls) == 48


def test_generated_code_is_unfenced_and_entries_optimized(transport_factory, gateway_factory) -> None:
    def respond(url: str, payload: dict):
        if _system(payload).startswith("You improve"):
            return "```html\n<h1>Better</h1>\n```"
        return "Here you go:\n```html\n<h1>Hi</h1>\n```\nEnjoy."

    gateway = gateway_factory(transport_factory(respond))
    generator = ArtifactGenerator(gateway, retry_pause_s=0.0, file_pause_s=0.0)
    files = [PlannedFile(path="index.html"), PlannedFile(path="styles.css")]

    artifacts = asyncio.run(generator.generate(files, analysis=InstructionAnalysis()))

    index, styles = artifacts
    assert index.content == "<h1>Better</h1>"
    assert index.optimized is True
    assert styles.content == "<h1>Hi</h1>"
    assert styles.optimized is False
    assert styles.language == "css"
    assert not index.fallback


def test_retry_recovers_before_falling_back(transport_factory, gateway_factory, recording_sleep) -> None:
    calls = {"count": 0}

    def respond(url: str, payload: dict):
        calls["count"] += 1
        if calls["count"] <= 2:
            return ConnectivityError("connection refused")
        return "body { margin: 0; }"

    gateway = gateway_factory(transport_factory(respond), max_retries=0)
    generator = ArtifactGenerator(gateway, retry_pause_s=2.0, file_pause_s=0.0, sleep=recording_sleep)

    artifacts = asyncio.run(generator.generate([PlannedFile(path="styles.css")], analysis=InstructionAnalysis()))

    assert len(artifacts) == 1
    assert artifacts[0].fallback is False
    assert artifacts[0].content == "body { margin: 0; }"
    assert recording_sleep.delays == [2.0]


def test_failed_optimization_keeps_original_content(transport_factory, gateway_factory) -> None:
    def respond(url: str, payload: dict):
        if _system(payload).startswith("You improve"):
            return ConnectivityError("connection refused")
        return "<p>v1</p>"

    gateway = gateway_factory(transport_factory(respond), max_retries=0)
    generator = ArtifactGenerator(gateway, retry_pause_s=0.0, file_pause_s=0.0)

    artifacts = asyncio.run(generator.generate([PlannedFile(path="index.html")], analysis=InstructionAnalysis()))

    assert artifacts[0].content == "<p>v1</p>"
    assert artifacts[0].optimized is False


def test_progress_events_track_completion(echo_transport, gateway_factory) -> None:
    generator = ArtifactGenerator(gateway_factory(echo_transport), retry_pause_s=0.0, file_pause_s=0.0)
    progress = []
    snapshots = []

    asyncio.run(
        generator.generate(
            SEVEN_FILES[:3],
            analysis=InstructionAnalysis(),
            on_progress=progress.append,
            on_artifacts=snapshots.append,
        )
    )

    assert progress[0].completed_files == 0
    assert progress[0].current_file == "index.html"
    assert progress[-1].current_step == "completed"
    assert progress[-1].percentage == 100
    assert [len(snapshot) for snapshot in snapshots] == [1, 2, 3, 3]


def test_entry_artifact_pattern() -> None:
    assert is_entry_artifact("index.html")
    assert is_entry_artifact("src/main.tsx")
    assert is_entry_artifact("src/App.jsx")
    assert not is_entry_artifact("styles.css")
    assert not is_entry_artifact("src/components/AppHeader.tsx")
    assert not is_entry_artifact("domain.js")


def test_fallback_templates_per_extension() -> None:
    dark = InstructionAnalysis(project_type="landing", color_scheme="dark")

    assert "#0f172a" in fallback_content("styles.css", dark)
    assert "<title>Landing Page</title>" in fallback_content("index.html", dark)
    assert "export default function App()" in fallback_content("src/App.tsx", dark)
    assert json.loads(fallback_content("package.json", dark))["scripts"]["build"] == "vite build"
    assert json.loads(fallback_content("data.json", dark)) == {}
    assert fallback_content("README.md", dark).startswith("// README.md")
    assert language_for("src/App.tsx") == "typescript"
    assert language_for("Makefile") == "plaintext"
