from __future__ import annotations

from fastapi.testclient import TestClient

from agent_gateway.api.main import create_app
from agent_gateway.diagnostics.scoring import BASIC_PROMPT
from agent_gateway.errors import ConnectivityError


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "agent-gateway"}


def test_profiles_are_listed_and_looked_up(client: TestClient) -> None:
    listed = client.get("/profiles")
    assert listed.status_code == 200
    names = [profile["name"] for profile in listed.json()]
    assert "planner" in names
    assert len(names) == 11

    planner = client.get("/profiles/planner")
    assert planner.status_code == 200
    assert planner.json()["backend"] == "anthropic"

    assert client.get("/profiles/nope").status_code == 404


def test_execute_records_usage_until_reset(client: TestClient) -> None:
    response = client.post("/gateway/execute", json={"profile": "code_generator", "prompt": "write code"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["payload"] == "OK"
    assert payload["backend"] == "openai"

    usage = client.get("/usage").json()
    assert usage["total_requests"] == 1
    assert usage["per_backend"]["openai"]["requests"] == 1

    reset = client.post("/usage/reset")
    assert reset.status_code == 200
    assert reset.json()["total_requests"] == 0


def test_execute_validates_request_body(client: TestClient) -> None:
    response = client.post("/gateway/execute", json={"profile": "planner", "prompt": ""})

    assert response.status_code == 422


def test_connection_probe_feeds_health_check(client: TestClient) -> None:
    before = client.get("/usage/health").json()
    assert before["healthy"] is False
    assert "No backend connectivity" in before["issues"]

    probed = client.post("/gateway/connection/test")
    assert probed.status_code == 200
    assert probed.json()["connected"] is True

    assert client.get("/gateway/connection").json()["connected"] is True
    assert client.get("/usage/health").json() == {"healthy": True, "issues": []}


def test_suite_run_history_and_report(client: TestClient) -> None:
    assert client.get("/diagnostics/suites/latest").status_code == 404

    response = client.post(
        "/diagnostics/suites",
        json={"test_types": ["basic"], "include_profiles": ["planner", "code_generator"]},
    )

    assert response.status_code == 200
    suite = response.json()
    assert suite["total_agents"] == 2
    assert suite["passed"] == 2
    assert suite["overall_health"] == "healthy"

    assert client.get("/diagnostics/suites/latest").json()["id"] == suite["id"]
    assert [item["id"] for item in client.get("/diagnostics/suites").json()] == [suite["id"]]
    assert client.get("/diagnostics/status").json() == {"running": False}

    report = client.get(f"/diagnostics/suites/{suite['id']}/report")
    assert report.status_code == 200
    assert report.json()["executive_summary"]["total_agents"] == 2
    assert report.json()["failed_agents"] == []

    assert client.get("/diagnostics/suites/missing/report").status_code == 404
    assert client.delete("/diagnostics/suites").status_code == 204
    assert client.get("/diagnostics/suites").json() == []


def test_failing_backends_produce_critical_suite(gateway_settings, transport_factory) -> None:
    def respond(url: str, payload: dict):
        if payload["messages"][-1]["content"] == BASIC_PROMPT:
            return ConnectivityError("connection refused")
        return "OK"

    settings = gateway_settings.model_copy(update={"max_retries": 0})
    client = TestClient(create_app(settings_override=settings, transport=transport_factory(respond)))

    suite = client.post(
        "/diagnostics/suites",
        json={"test_types": ["basic"], "include_profiles": ["planner"]},
    ).json()

    assert suite["failed"] == 1
    assert suite["overall_health"] == "critical"
    report = client.get(f"/diagnostics/suites/{suite['id']}/report").json()
    assert report["failed_agents"][0]["error_type"] == "connectivity"


def test_catalog_endpoints(client: TestClient) -> None:
    stacks = client.get("/catalog/stacks").json()
    templates = client.get("/catalog/templates").json()

    assert "html-css-js" in [stack["id"] for stack in stacks]
    assert "landing-simple" in [template["id"] for template in templates]


def test_pipeline_flow_over_http(client: TestClient) -> None:
    created = client.post("/pipelines", json={"instruction": "crear landing page simple"})
    assert created.status_code == 201
    session_id = created.json()["session_id"]
    assert created.json()["state"]["current_step_index"] == 1

    target = client.post(f"/pipelines/{session_id}/target", json={"stack_id": "html-css-js"})
    assert target.status_code == 200

    planned = client.post(f"/pipelines/{session_id}/template", json={})
    assert planned.status_code == 200
    state = planned.json()["state"]
    assert state["current_step_index"] == 4
    assert state["requires_approval"] is True
    assert state["plan"]["complexity"] == "simple"

    approved = client.post(f"/pipelines/{session_id}/approval", json={"approved": True})
    assert approved.status_code == 200
    assert approved.json()["state"]["current_step_index"] == 5

    artifacts = client.get(f"/pipelines/{session_id}/artifacts").json()
    assert [artifact["path"] for artifact in artifacts] == ["index.html", "styles.css", "script.js"]

    assert client.get("/pipelines").json() == {"session_ids": [session_id]}
    assert client.delete(f"/pipelines/{session_id}").status_code == 204
    assert client.get(f"/pipelines/{session_id}").status_code == 404


def test_pipeline_errors_map_to_http_statuses(client: TestClient) -> None:
    assert client.get("/pipelines/unknown").status_code == 404
    assert client.post("/pipelines", json={"instruction": ""}).status_code == 422

    session_id = client.post("/pipelines", json={"instruction": "crear landing page simple"}).json()["session_id"]

    out_of_order = client.post(f"/pipelines/{session_id}/approval", json={"approved": True})
    assert out_of_order.status_code == 409

    unknown_stack = client.post(f"/pipelines/{session_id}/target", json={"stack_id": "cobol"})
    assert unknown_stack.status_code == 404

    assert client.post(f"/pipelines/{session_id}/plan/retry").status_code == 409


def test_whitespace_instruction_leaves_no_session_behind(client: TestClient) -> None:
    response = client.post("/pipelines", json={"instruction": "   "})

    assert response.status_code == 422
    assert client.get("/pipelines").json() == {"session_ids": []}


def test_posted_suite_config_keeps_settings_defaults_for_omitted_fields(
    gateway_settings, transport_factory
) -> None:
    transport = transport_factory(lambda url, payload: "OK")
    settings = gateway_settings.model_copy(update={"stress_count": 5})
    client = TestClient(create_app(settings_override=settings, transport=transport))

    defaulted = client.post("/diagnostics/suites", json={"test_types": ["stress"], "include_profiles": ["planner"]})
    assert defaulted.status_code == 200
    assert len(transport.calls) == 5

    explicit = client.post(
        "/diagnostics/suites",
        json={"test_types": ["stress"], "include_profiles": ["planner"], "stress_count": 2},
    )
    assert explicit.status_code == 200
    assert len(transport.calls) == 7
