"""
Message Extraction

Derives dashboard "messages" from the per-node outputs of stored
executions. Nothing is persisted; ids are deterministic so the same
execution always yields the same message ids.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from flowbit.schemas.execution import ExecutionRead, ExecutionStatus, NodeOutput
from flowbit.schemas.message import Message, MessageList
from flowbit.services.executions import ExecutionReader

logger = logging.getLogger(__name__)

CHAT_FIELDS = ("message", "content", "text", "body")


def _message_id(execution_id: str, node_name: str, kind: str) -> str:
    return f"msg-{execution_id}-{node_name}-{kind}"


def _as_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, dict) and "text" in value:
        return _as_text(value["text"])
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def _address(value: Any) -> Optional[str]:
    """Recipient/sender as text; lists of addresses are comma-joined."""
    if isinstance(value, (list, tuple)):
        parts = [_as_text(item) for item in value]
        return ", ".join(part for part in parts if part) or None
    return _as_text(value)


def _chat_content(data: Dict[str, Any]) -> Optional[str]:
    messages = data.get("messages")
    if isinstance(messages, list) and messages and isinstance(messages[0], dict):
        content = _as_text(messages[0].get("content"))
        if content:
            return content
    for field in CHAT_FIELDS:
        content = _as_text(data.get(field))
        if content:
            return content
    return None


def _chat_role(data: Dict[str, Any]) -> str:
    messages = data.get("messages")
    if isinstance(messages, list) and messages and isinstance(messages[0], dict):
        return messages[0].get("role") or "system"
    return "system"


class MessageExtractor:
    """Turns executions into messages, newest first."""

    def __init__(self, reader: ExecutionReader):
        self.reader = reader

    def list(self, limit: int = 50) -> MessageList:
        executions = self.reader.list(limit=limit)
        messages: List[Message] = []
        for execution in executions.runs:
            messages.extend(self.extract(execution))

        messages.sort(key=lambda m: (m.timestamp, m.id), reverse=True)
        return MessageList(messages=messages, error=executions.error)

    def extract(self, execution: ExecutionRead) -> List[Message]:
        messages = []
        for node_name, output in execution.outputs.items():
            if not isinstance(output.data, dict):
                continue
            try:
                messages.extend(self._from_node(execution, node_name, output))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping node {node_name} of execution {execution.id}: {e}")
        return messages

    def _from_node(self, execution: ExecutionRead, node_name: str, output: NodeOutput) -> List[Message]:
        data = output.data
        lowered = node_name.lower()
        found = []

        def message(kind: str, **fields) -> Message:
            return Message(
                id=_message_id(execution.id, node_name, kind),
                execution_id=execution.id,
                workflow_id=execution.flow_id,
                workflow_name=execution.flow_name,
                engine=execution.engine,
                timestamp=execution.timestamp,
                folder_id=(execution.tags or ["unassigned"])[0],
                **fields,
            )

        if ("email" in lowered or "mail" in lowered) and any(data.get(k) for k in ("to", "subject", "html", "text")):
            found.append(message(
                "email",
                direction="outgoing",
                recipient=_address(data.get("to")) or "unknown-recipient",
                sender=_address(data.get("from")),
                content=_as_text(data.get("text") or data.get("html")) or "No content",
                metadata={
                    "subject": data.get("subject") or "No subject",
                    "from": data.get("from") or "system@flowbit.ai",
                    "cc": data.get("cc"),
                    "bcc": data.get("bcc"),
                    "attachments": len(data.get("attachments") or []),
                },
            ))
        elif "slack" in lowered and (data.get("text") or data.get("blocks")):
            found.append(message(
                "slack",
                direction="outgoing",
                recipient=_address(data.get("channel")) or "unknown-channel",
                content=_as_text(data.get("text") or data.get("blocks")) or "No content",
                metadata={
                    "channel": data.get("channel"),
                    "username": data.get("username"),
                    "blocks": len(data.get("blocks") or []),
                },
            ))
        else:
            content = _chat_content(data)
            if content:
                incoming = "input" in lowered or data.get("incoming") is True
                found.append(message(
                    "chat",
                    direction="incoming" if incoming else "outgoing",
                    recipient=None if incoming else _address(data.get("recipient") or data.get("to")),
                    sender=_address(data.get("sender") or data.get("from")),
                    content=content,
                    metadata={"node": node_name, "role": _chat_role(data)},
                ))

        endpoint = data.get("url") or data.get("endpoint")
        if endpoint and output.resolved_status() == ExecutionStatus.SUCCESS.value:
            found.append(message(
                "api",
                direction="outgoing",
                recipient=str(endpoint),
                content=f"API call to {endpoint} completed successfully.",
                metadata={
                    "method": data.get("method") or "GET",
                    "statusCode": data.get("status") or 200,
                },
            ))

        return found
