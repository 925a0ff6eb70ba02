"""
Integration tests for the execution read endpoints
"""

from datetime import datetime, timedelta, timezone

from flowbit.schemas.execution import ExecutionCreate
from flowbit.services.recorder import ExecutionRecorder


def seed(session_factory, count=3, flow_id="flow-1"):
    db = session_factory()
    base = datetime(2026, 6, 1, tzinfo=timezone.utc)
    ids = []
    try:
        recorder = ExecutionRecorder(db)
        for i in range(count):
            ids.append(recorder.create(ExecutionCreate(
                flow_id=flow_id,
                flow_name="Flow",
                engine="n8n",
                timestamp=base + timedelta(minutes=i),
            )))
    finally:
        db.close()
    return ids


def test_list_runs_newest_first(client, session_factory):
    ids = seed(session_factory)

    body = client.get("/api/runs?limit=2").json()

    assert [run["id"] for run in body["runs"]] == [ids[2], ids[1]]
    assert "error" not in body


def test_list_runs_by_flow(client, session_factory):
    seed(session_factory, count=1, flow_id="flow-1")
    [other] = seed(session_factory, count=1, flow_id="flow-2")

    body = client.get("/api/runs", params={"flow_id": "flow-2"}).json()

    assert [run["id"] for run in body["runs"]] == [other]


def test_executions_alias_has_both_keys(client, session_factory):
    seed(session_factory, count=1)

    body = client.get("/api/executions").json()

    assert body["executions"] == body["runs"]
    assert len(body["runs"]) == 1


def test_limit_out_of_range(client):
    assert client.get("/api/runs?limit=0").status_code == 422


def test_get_run(client, session_factory):
    [execution_id] = seed(session_factory, count=1)

    run = client.get(f"/api/runs/{execution_id}").json()["run"]

    assert run["status"] == "RUNNING"
    assert run["logs"][0]["message"] == "Execution started (manual)"


def test_get_missing_run(client):
    response = client.get("/api/runs/nope")

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_delete_run(client, session_factory):
    [execution_id] = seed(session_factory, count=1)

    assert client.delete(f"/api/runs/{execution_id}").json() == {"success": True}
    assert client.get(f"/api/runs/{execution_id}").status_code == 404
    assert client.delete(f"/api/runs/{execution_id}").status_code == 404


def test_messages_from_triggered_run(client):
    client.post("/api/trigger", json={"workflowId": "flow-ok", "engine": "langflow"})

    body = client.get("/api/messages").json()

    [message] = body["messages"]
    assert message["content"] == "hello from langflow"
    assert message["folder_id"] == "support"
    assert "error" not in body


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
