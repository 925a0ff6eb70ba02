"""
API test fixtures

A fresh app per test with the database, engines and broker preset on
app.state, so the lifespan handler uses them instead of the real ones.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from flowbit.main import create_app
from flowbit.services.engines import EngineRegistry, LangflowClient, N8nClient
from flowbit.services.stream_relay import ExecutionEventBroker

LANGFLOW_URL = "http://langflow.test"
N8N_URL = "http://n8n.test"

LANGFLOW_RUN = {
    "session_id": "s-1",
    "outputs": [{
        "inputs": {"input_value": "hi"},
        "outputs": [{
            "component_display_name": "Chat Output",
            "component_id": "ChatOutput-1",
            "results": {"message": {"text": "hello from langflow"}},
        }],
    }],
}


class FakeEngines:
    """MockTransport handler standing in for Langflow and n8n."""

    def __init__(self):
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host, path = request.url.host, request.url.path

        if host == "langflow.test":
            if path == "/api/v1/flows/flow-ok":
                return httpx.Response(200, json={"id": "flow-ok", "name": "Support Bot", "tags": ["support"]})
            if path == "/api/v1/run/flow-ok":
                return httpx.Response(200, json=LANGFLOW_RUN)
            if path == "/api/v1/run/flow-down":
                return httpx.Response(503)
        if host == "n8n.test" and path.startswith("/webhook/"):
            return httpx.Response(200, json={"received": True})
        return httpx.Response(404)


@pytest.fixture
def fake_engines():
    return FakeEngines()


@pytest.fixture
def app(session_factory, fake_engines):
    app = create_app()
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_engines))
    app.state.session_factory = session_factory
    app.state.engines = EngineRegistry(
        {
            "langflow": LangflowClient(LANGFLOW_URL, None, http),
            "n8n": N8nClient(N8N_URL, "n8n-key", http),
        },
        http=http,
    )
    app.state.broker = ExecutionEventBroker(max_subscribers_per_execution=2)
    app.state.stream_poll_interval = 0.05
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
