"""
Engine Response Schemas

Validated envelopes for what the external engines send back. Each engine
response is parsed into its known shape when possible and otherwise kept
as an opaque JSON blob, so callers never dig through unchecked fields.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from flowbit.schemas.execution import NodeOutput


class FlowInfo(BaseModel):
    """Flow/workflow metadata used to enrich an execution before it starts."""
    id: str
    name: str
    tags: List[str] = Field(default_factory=list)
    node_ids: List[str] = Field(default_factory=list)


# --- Langflow -----------------------------------------------------------------

class LangflowComponentOutput(BaseModel):
    model_config = ConfigDict(extra="allow")

    component_display_name: Optional[str] = None
    component_id: Optional[str] = None
    results: Any = None
    messages: Optional[List[Any]] = None


class LangflowRunOutput(BaseModel):
    model_config = ConfigDict(extra="allow")

    inputs: Any = None
    outputs: List[LangflowComponentOutput] = Field(default_factory=list)


class LangflowRunResponse(BaseModel):
    """`POST /api/v1/run/{flow_id}` response."""
    model_config = ConfigDict(extra="allow")

    session_id: Optional[str] = None
    outputs: List[LangflowRunOutput]


# --- n8n ----------------------------------------------------------------------

class N8nItem(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    json_data: Any = Field(default=None, alias="json")


class N8nNodeRunData(BaseModel):
    model_config = ConfigDict(extra="allow")

    # One item list per output; null for outputs that produced nothing
    main: List[Optional[List[N8nItem]]] = Field(default_factory=list)


class N8nNodeRun(BaseModel):
    """One run of one node inside `runData`."""
    model_config = ConfigDict(extra="allow")

    data: Optional[N8nNodeRunData] = None
    error: Any = None


class N8nResultData(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    run_data: Dict[str, List[N8nNodeRun]] = Field(alias="runData")
    error: Any = None


class N8nExecutionData(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    result_data: N8nResultData = Field(alias="resultData")


class N8nRunResponse(BaseModel):
    """Manual-run response that carries per-node run data."""
    model_config = ConfigDict(extra="allow")

    data: N8nExecutionData


# --- Normalised result ----------------------------------------------------------

class EngineResult(BaseModel):
    """
    Uniform outcome of a successful engine call.

    kind tells which envelope matched; "opaque" means the body was kept as-is
    and exposed as a single `result` node.
    """
    kind: Literal["langflow", "n8n", "opaque"]
    raw: Any = None
    outputs: Dict[str, NodeOutput] = Field(default_factory=dict)


# --- Flow metadata --------------------------------------------------------------

class LangflowFlow(BaseModel):
    """`GET /api/v1/flows/{flow_id}` response (subset)."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    tags: List[Any] = Field(default_factory=list)
    data: Optional[Dict[str, Any]] = None


class N8nWorkflow(BaseModel):
    """`GET /rest/workflows/{workflow_id}` response (subset)."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    tags: List[Any] = Field(default_factory=list)
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
