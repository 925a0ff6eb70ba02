"""
Integration tests for the trigger and webhook endpoints
"""

import json


def test_trigger_success(client):
    response = client.post("/api/trigger", json={
        "workflowId": "flow-ok",
        "engine": "langflow",
        "triggerType": "manual",
        "payload": {"input": "hi"},
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "COMPLETED"
    assert body["result"]["session_id"] == "s-1"

    run = client.get(f"/api/runs/{body['executionId']}").json()["run"]
    assert run["status"] == "COMPLETED"
    assert run["flow_name"] == "Support Bot"
    assert run["tags"] == ["support"]
    assert run["outputs"]["Chat Output"]["data"] == {"message": {"text": "hello from langflow"}}


def test_trigger_engine_failure_records_error(client):
    response = client.post("/api/trigger", json={"workflowId": "flow-down", "engine": "langflow"})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Langflow API error: 503 Service Unavailable"

    run = client.get(f"/api/runs/{body['executionId']}").json()["run"]
    assert run["status"] == "ERROR"
    assert run["error"] == body["error"]
    assert run["flow_name"] == "flow-down"


def test_trigger_missing_workflow_id(client):
    response = client.post("/api/trigger", json={"engine": "langflow"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Missing workflowId or engine"}
    assert client.get("/api/runs").json()["runs"] == []


def test_trigger_unknown_engine(client):
    response = client.post("/api/trigger", json={"workflowId": "flow-ok", "engine": "zapier"})

    assert response.status_code == 400
    assert response.json()["error"] == "Unsupported engine"


def test_trigger_body_must_be_json(client):
    response = client.post("/api/trigger", content=b"not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["error"] == "Request body must be JSON"


def test_webhook_text_body_wrapped(client, fake_engines):
    response = client.post("/api/webhook/n8n/wf-1", content=b"plain text event")

    assert response.status_code == 200
    assert response.json()["result"] == {"received": True}

    engine_request = fake_engines.requests[-1]
    assert engine_request.url.path == "/webhook/wf-1"
    assert json.loads(engine_request.content) == {"text": "plain text event"}

    run = client.get(f"/api/runs/{response.json()['executionId']}").json()["run"]
    assert run["trigger_type"] == "webhook"
    assert run["inputs"] == {"text": "plain text event"}


def test_webhook_get_shows_usage(client):
    body = client.get("/api/webhook/n8n/wf-1").json()

    assert body["success"] is True
    assert body["usage"]["method"] == "POST"
    assert body["usage"]["engine"] == "n8n"
    assert body["usage"]["workflowId"] == "wf-1"


def test_hooks_alias_targets_langflow(client):
    response = client.post("/api/hooks/flow-ok", json={"input": "hook"})

    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"


def test_webhook_workflow_id_too_long(client):
    response = client.post(f"/api/webhook/langflow/{'w' * 300}", json={"a": 1})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert client.get("/api/runs").json()["runs"] == []
