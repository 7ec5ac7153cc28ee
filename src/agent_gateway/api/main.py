"""FastAPI app entrypoint for agent-gateway."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field
import uvicorn

from agent_gateway.api.sessions import InMemoryPipelineStore
from agent_gateway.config.settings import Settings, configure_logging, get_settings
from agent_gateway.diagnostics import (
    DiagnosticsRunner,
    ErrorReport,
    SuiteConfig,
    TestSuite,
    build_error_report,
)
from agent_gateway.errors import ConflictError, InvalidTransitionError
from agent_gateway.gateway import (
    ConnectionStatus,
    ExecutionResult,
    ProviderDirectory,
    ResilientGateway,
    TaskProfile,
    Transport,
    UsageMonitor,
    UsageReport,
    build_directory,
    build_gateway,
)
from agent_gateway.gateway.models import HealthCheck
from agent_gateway.pipeline import (
    ArtifactGenerator,
    Catalog,
    GeneratedArtifact,
    GenerationPipeline,
    WorkflowState,
)
from agent_gateway.pipeline.models import TechnologyStack, TemplateOption

logger = logging.getLogger(__name__)


class ExecuteRequest(BaseModel):
    profile: str = Field(min_length=1)
    prompt: str = Field(min_length=1)
    system: str | None = None
    max_tokens: int | None = Field(default=None, ge=1)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    timeout_ms: int | None = Field(default=None, ge=1)


class CreatePipelineRequest(BaseModel):
    instruction: str = Field(min_length=1)


class SelectTargetRequest(BaseModel):
    stack_id: str = Field(min_length=1)


class SelectTemplateRequest(BaseModel):
    template_id: str | None = None


class ApprovalDecision(BaseModel):
    approved: bool


class PipelineResponse(BaseModel):
    session_id: str
    state: WorkflowState


def _ensure_runtime_state(app: FastAPI, *, settings: Settings, transport: Transport | None) -> None:
    if hasattr(app.state, "gateway"):
        return

    directory: ProviderDirectory = build_directory(settings.profiles_file)
    monitor = UsageMonitor()
    gateway = build_gateway(settings, transport=transport, directory=directory, monitor=monitor)
    app.state.settings = settings
    app.state.directory = directory
    app.state.monitor = monitor
    app.state.gateway = gateway
    app.state.catalog = Catalog()
    app.state.runner = DiagnosticsRunner(
        gateway,
        history_limit=settings.suite_history_limit,
        default_stress_count=settings.stress_count,
    )
    app.state.pipelines = InMemoryPipelineStore()


def create_app(
    *,
    settings_override: Settings | None = None,
    transport: Transport | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_runtime_state(app, settings=settings, transport=transport)
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    _ensure_runtime_state(app, settings=settings, transport=transport)

    def _gateway(request: Request) -> ResilientGateway:
        return request.app.state.gateway

    def _runner(request: Request) -> DiagnosticsRunner:
        return request.app.state.runner

    def _pipeline(request: Request, session_id: str) -> GenerationPipeline:
        pipeline = request.app.state.pipelines.get(session_id)
        if pipeline is None:
            raise HTTPException(status_code=404, detail="Pipeline not found")
        return pipeline

    def _new_pipeline(request: Request) -> GenerationPipeline:
        gateway = _gateway(request)
        generator = ArtifactGenerator(
            gateway,
            retry_limit=settings.artifact_retry_limit,
            retry_pause_s=settings.artifact_retry_pause_s,
            file_pause_s=settings.file_pause_s,
        )
        return GenerationPipeline(gateway, catalog=request.app.state.catalog, generator=generator)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/profiles", response_model=list[TaskProfile])
    def profiles(request: Request) -> list[TaskProfile]:
        return request.app.state.directory.profiles()

    @app.get("/profiles/{name}", response_model=TaskProfile)
    def profile(name: str, request: Request) -> TaskProfile:
        directory: ProviderDirectory = request.app.state.directory
        if name not in directory:
            raise HTTPException(status_code=404, detail=f"Unknown task profile: {name}")
        return directory.resolve(name)

    @app.post("/gateway/execute", response_model=ExecutionResult)
    async def execute(payload: ExecuteRequest, request: Request) -> ExecutionResult:
        return await _gateway(request).execute(
            payload.profile,
            payload.prompt,
            system=payload.system,
            max_tokens=payload.max_tokens,
            temperature=payload.temperature,
            timeout_ms=payload.timeout_ms,
        )

    @app.get("/gateway/connection", response_model=ConnectionStatus)
    def connection(request: Request) -> ConnectionStatus:
        return _gateway(request).connection_status()

    @app.post("/gateway/connection/test", response_model=ConnectionStatus)
    async def test_connection(request: Request) -> ConnectionStatus:
        return await _gateway(request).test_connection()

    @app.get("/usage", response_model=UsageReport)
    def usage(request: Request) -> UsageReport:
        return request.app.state.monitor.get_stats(request.app.state.directory)

    @app.post("/usage/reset", response_model=UsageReport)
    def reset_usage(request: Request) -> UsageReport:
        request.app.state.monitor.reset()
        return request.app.state.monitor.get_stats(request.app.state.directory)

    @app.get("/usage/health", response_model=HealthCheck)
    def usage_health(request: Request) -> HealthCheck:
        return request.app.state.monitor.health_check(
            _gateway(request).connection_status(),
            request.app.state.directory,
        )

    @app.post("/diagnostics/suites", response_model=TestSuite)
    async def run_suite(request: Request, payload: SuiteConfig | None = None) -> TestSuite:
        defaults = {"timeout_ms": settings.suite_timeout_ms, "stress_count": settings.stress_count}
        posted = payload.model_dump(exclude_unset=True) if payload is not None else {}
        config = SuiteConfig.model_validate({**defaults, **posted})
        try:
            return await _runner(request).run_suite(config)
        except ConflictError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

    @app.get("/diagnostics/suites", response_model=list[TestSuite])
    def suite_history(request: Request) -> list[TestSuite]:
        return _runner(request).history()

    @app.delete("/diagnostics/suites", status_code=204)
    def clear_suite_history(request: Request) -> None:
        _runner(request).clear_history()

    @app.get("/diagnostics/suites/latest", response_model=TestSuite)
    def latest_suite(request: Request) -> TestSuite:
        suite = _runner(request).latest()
        if suite is None:
            raise HTTPException(status_code=404, detail="No test suite has run yet")
        return suite

    @app.get("/diagnostics/suites/{suite_id}/report", response_model=ErrorReport)
    def suite_report(suite_id: str, request: Request) -> ErrorReport:
        suite = _runner(request).get(suite_id)
        if suite is None:
            raise HTTPException(status_code=404, detail="Test suite not found")
        return build_error_report(suite)

    @app.get("/diagnostics/status")
    def diagnostics_status(request: Request) -> dict[str, Any]:
        return {"running": _runner(request).is_running}

    @app.get("/catalog/stacks", response_model=list[TechnologyStack])
    def stacks(request: Request) -> list[TechnologyStack]:
        return request.app.state.catalog.stacks()

    @app.get("/catalog/templates", response_model=list[TemplateOption])
    def templates(request: Request) -> list[TemplateOption]:
        return request.app.state.catalog.templates()

    @app.post("/pipelines", response_model=PipelineResponse, status_code=201)
    async def create_pipeline(payload: CreatePipelineRequest, request: Request) -> PipelineResponse:
        pipeline = _new_pipeline(request)
        state = await _run_step(pipeline.start(payload.instruction))
        # Only sessions that started cleanly are kept.
        request.app.state.pipelines.add(pipeline)
        return PipelineResponse(session_id=pipeline.session_id, state=state)

    @app.get("/pipelines")
    def list_pipelines(request: Request) -> dict[str, list[str]]:
        return {"session_ids": request.app.state.pipelines.session_ids()}

    @app.get("/pipelines/{session_id}", response_model=PipelineResponse)
    def get_pipeline(session_id: str, request: Request) -> PipelineResponse:
        pipeline = _pipeline(request, session_id)
        return PipelineResponse(session_id=session_id, state=pipeline.state)

    @app.delete("/pipelines/{session_id}", status_code=204)
    def delete_pipeline(session_id: str, request: Request) -> None:
        if not request.app.state.pipelines.delete(session_id):
            raise HTTPException(status_code=404, detail="Pipeline not found")

    @app.post("/pipelines/{session_id}/target", response_model=PipelineResponse)
    async def select_target(
        session_id: str,
        payload: SelectTargetRequest,
        request: Request,
    ) -> PipelineResponse:
        pipeline = _pipeline(request, session_id)
        state = await _run_step(pipeline.select_target(payload.stack_id))
        return PipelineResponse(session_id=session_id, state=state)

    @app.post("/pipelines/{session_id}/template", response_model=PipelineResponse)
    async def select_template(
        session_id: str,
        payload: SelectTemplateRequest,
        request: Request,
    ) -> PipelineResponse:
        pipeline = _pipeline(request, session_id)
        state = await _run_step(pipeline.select_template(payload.template_id))
        return PipelineResponse(session_id=session_id, state=state)

    @app.post("/pipelines/{session_id}/approval", response_model=PipelineResponse)
    async def approve_plan(
        session_id: str,
        payload: ApprovalDecision,
        request: Request,
    ) -> PipelineResponse:
        pipeline = _pipeline(request, session_id)
        state = await _run_step(pipeline.approve_plan(payload.approved))
        return PipelineResponse(session_id=session_id, state=state)

    @app.post("/pipelines/{session_id}/plan/retry", response_model=PipelineResponse)
    async def retry_plan(session_id: str, request: Request) -> PipelineResponse:
        pipeline = _pipeline(request, session_id)
        state = await _run_step(pipeline.retry_plan())
        return PipelineResponse(session_id=session_id, state=state)

    @app.get("/pipelines/{session_id}/artifacts", response_model=list[GeneratedArtifact])
    def artifacts(session_id: str, request: Request) -> list[GeneratedArtifact]:
        return _pipeline(request, session_id).artifacts

    return app


async def _run_step(operation) -> WorkflowState:
    try:
        return await operation
    except (ConflictError, InvalidTransitionError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0]) if exc.args else "Not found") from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("server event=start app=%s env=%s", settings.app_name, settings.app_env)
    uvicorn.run("agent_gateway.api.main:app", host="0.0.0.0", port=8000)


# Module-level app for `uvicorn agent_gateway.api.main:app`.
app = create_app()
