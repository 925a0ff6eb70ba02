"""
Engine Clients

HTTP clients for the external workflow engines (Langflow, n8n).

Every call is raced against a timeout with asyncio.wait_for: the short
read timeout for flow metadata, the longer trigger timeout for runs.
A timeout, transport error or non-2xx response raises ExternalCallFailure.

Run responses are parsed into EngineResult: the engine's known envelope
when it validates, otherwise an opaque single `result` node.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from flowbit.core.exceptions import ExternalCallFailure, InvalidRequest
from flowbit.schemas.engine import (
    EngineResult,
    FlowInfo,
    LangflowFlow,
    LangflowRunResponse,
    N8nRunResponse,
    N8nWorkflow,
)
from flowbit.schemas.execution import ExecutionStatus, NodeOutput

logger = logging.getLogger(__name__)

DEFAULT_LANGFLOW_INPUT = "Manual trigger from FlowBit Dashboard"


def opaque_result(body: Any) -> EngineResult:
    """Keep an unrecognised response as-is under a single `result` node."""
    return EngineResult(
        kind="opaque",
        raw=body,
        outputs={"result": NodeOutput(status=ExecutionStatus.SUCCESS.value, data=body)},
    )


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _tag_names(tags: List[Any]) -> List[str]:
    names = []
    for tag in tags:
        if isinstance(tag, dict):
            tag = tag.get("name")
        if tag:
            names.append(str(tag))
    return names


class EngineClient:
    """
    Base class for one external engine.

    Subclasses provide the URLs, auth headers and response parsing.
    """

    name: str = "engine"
    display_name: str = "Engine"

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        http: httpx.AsyncClient,
        read_timeout: float = 5.0,
        trigger_timeout: float = 10.0,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.http = http
        self.read_timeout = read_timeout
        self.trigger_timeout = trigger_timeout

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    async def get_flow(self, flow_id: str) -> FlowInfo:
        raise NotImplementedError

    async def run(self, flow_id: str, payload: Any = None, trigger_type: str = "manual") -> EngineResult:
        raise NotImplementedError

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def _request(self, method: str, url: str, timeout: float, body: Any = None) -> Any:
        logger.info(f"{self.display_name} {method} {url}")
        try:
            response = await asyncio.wait_for(
                self.http.request(
                    method,
                    url,
                    headers=self._headers(),
                    json=body if method != "GET" else None,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.error(f"{self.display_name} request timed out after {timeout}s: {url}")
            raise ExternalCallFailure(f"Request timeout after {timeout}s")
        except httpx.HTTPError as e:
            logger.error(f"{self.display_name} request failed: {e}")
            raise ExternalCallFailure(f"{self.display_name} API error: {e}") from e

        if not response.is_success:
            logger.error(f"{self.display_name} returned {response.status_code} for {url}")
            raise ExternalCallFailure(
                f"{self.display_name} API error: {response.status_code} {response.reason_phrase}",
                engine_status=response.status_code,
            )

        return _parse_body(response)


class LangflowClient(EngineClient):
    """Langflow: `x-api-key` header, `/api/v1/flows` and `/api/v1/run`."""

    name = "langflow"
    display_name = "Langflow"

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def get_flow(self, flow_id: str) -> FlowInfo:
        body = await self._request("GET", f"{self.base_url}/api/v1/flows/{flow_id}", self.read_timeout)
        flow = LangflowFlow.model_validate(body or {})
        nodes = (flow.data or {}).get("nodes") or []
        return FlowInfo(
            id=flow.id or flow_id,
            name=flow.name or flow_id,
            tags=_tag_names(flow.tags),
            node_ids=[str(node["id"]) for node in nodes if isinstance(node, dict) and node.get("id")],
        )

    async def run(self, flow_id: str, payload: Any = None, trigger_type: str = "manual") -> EngineResult:
        body = await self._request(
            "POST",
            f"{self.base_url}/api/v1/run/{flow_id}",
            self.trigger_timeout,
            body=self.build_request(payload),
        )
        return self.parse_run(body)

    @staticmethod
    def build_request(payload: Any) -> Dict[str, Any]:
        """
        Map a trigger payload onto Langflow's run body.

        `inputPayload` is sent verbatim; otherwise input_value comes from
        `input_value`, `input`, the payload itself, or the default text.
        """
        if isinstance(payload, dict) and payload.get("inputPayload") is not None:
            return payload["inputPayload"]

        input_value: Any = None
        if isinstance(payload, dict):
            input_value = payload.get("input_value") or payload.get("input")
        if input_value is None and payload:
            input_value = payload
        if not input_value:
            input_value = DEFAULT_LANGFLOW_INPUT
        if not isinstance(input_value, str):
            input_value = json.dumps(input_value)

        return {"input_value": input_value, "input_type": "chat", "output_type": "chat"}

    @staticmethod
    def parse_run(body: Any) -> EngineResult:
        try:
            envelope = LangflowRunResponse.model_validate(body)
        except ValidationError:
            return opaque_result(body)

        outputs: Dict[str, NodeOutput] = {}
        for run in envelope.outputs:
            for component in run.outputs:
                name = component.component_display_name or component.component_id or "output"
                base, suffix = name, 2
                while name in outputs:
                    name = f"{base}-{suffix}"
                    suffix += 1
                outputs[name] = NodeOutput(status=ExecutionStatus.SUCCESS.value, data=component.results)

        if not outputs:
            return opaque_result(body)
        return EngineResult(kind="langflow", raw=body, outputs=outputs)


class N8nClient(EngineClient):
    """n8n: bearer auth, `/rest/workflows/{id}/run` or `/webhook/{id}`."""

    name = "n8n"
    display_name = "n8n"

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def get_flow(self, flow_id: str) -> FlowInfo:
        body = await self._request("GET", f"{self.base_url}/rest/workflows/{flow_id}", self.read_timeout)
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        workflow = N8nWorkflow.model_validate(body or {})
        return FlowInfo(
            id=workflow.id or flow_id,
            name=workflow.name or flow_id,
            tags=_tag_names(workflow.tags),
            node_ids=[str(node.get("id") or node.get("name")) for node in workflow.nodes],
        )

    async def run(self, flow_id: str, payload: Any = None, trigger_type: str = "manual") -> EngineResult:
        if trigger_type == "webhook":
            url = f"{self.base_url}/webhook/{flow_id}"
        else:
            url = f"{self.base_url}/rest/workflows/{flow_id}/run"

        body = await self._request("POST", url, self.trigger_timeout, body=payload or {})
        return self.parse_run(body)

    @staticmethod
    def parse_run(body: Any) -> EngineResult:
        try:
            envelope = N8nRunResponse.model_validate(body)
        except ValidationError:
            return opaque_result(body)

        outputs: Dict[str, NodeOutput] = {}
        for node_name, runs in envelope.data.result_data.run_data.items():
            last_run = runs[-1] if runs else None
            outputs_main = last_run.data.main if last_run and last_run.data else []
            items = (outputs_main[0] if outputs_main else None) or []
            data = items[-1].json_data if items else None
            error = last_run.error if last_run else None
            outputs[node_name] = NodeOutput(
                status=ExecutionStatus.ERROR.value if error else ExecutionStatus.SUCCESS.value,
                data=data if data is not None else {},
                error=error,
            )

        if not outputs:
            return opaque_result(body)
        return EngineResult(kind="n8n", raw=body, outputs=outputs)


class EngineRegistry:
    """
    Engine clients by name, sharing one httpx.AsyncClient.

    get() raises InvalidRequest for unknown or unconfigured engines.
    """

    def __init__(self, clients: Dict[str, EngineClient], http: Optional[httpx.AsyncClient] = None):
        self._clients = dict(clients)
        self._http = http

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "EngineRegistry":
        http = httpx.AsyncClient(transport=transport, timeout=settings.ENGINE_TRIGGER_TIMEOUT)
        timeouts = {
            "read_timeout": settings.ENGINE_READ_TIMEOUT,
            "trigger_timeout": settings.ENGINE_TRIGGER_TIMEOUT,
        }
        clients = {
            "langflow": LangflowClient(settings.LANGFLOW_BASE_URL, settings.LANGFLOW_API_KEY, http, **timeouts),
            "n8n": N8nClient(settings.N8N_BASE_URL, settings.N8N_API_KEY, http, **timeouts),
        }
        configured = [name for name, client in clients.items() if client.configured]
        logger.info(f"Engines configured: {configured or 'none'}")
        return cls(clients, http=http)

    def names(self) -> List[str]:
        return list(self._clients.keys())

    def get(self, name: Optional[str]) -> EngineClient:
        client = self._clients.get(name or "")
        if client is None:
            raise InvalidRequest("Unsupported engine")
        if not client.configured:
            raise InvalidRequest(f"Engine {name} is not configured")
        return client

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
