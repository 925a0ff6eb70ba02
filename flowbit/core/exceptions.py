"""
Custom Exceptions for FlowBit Relay

Exception Hierarchy:
- FlowbitError (base)
  - InvalidRequest       (caller input rejected, nothing recorded)
  - NotFoundError        (execution / job id does not exist)
  - InvalidTransition    (update would break the execution lifecycle)
  - ExternalCallFailure  (engine returned non-2xx or timed out)
  - StoreError           (persistence layer failure)
  - StreamLimitExceeded  (too many live subscribers for one execution)

Each class carries the HTTP status the API layer renders it with.
"""

from typing import Optional


class FlowbitError(Exception):
    """Base exception for all relay errors"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(FlowbitError):
    """Missing or malformed caller input. No execution is created."""

    status_code = 400


class NotFoundError(FlowbitError):
    """Referenced execution or job does not exist."""

    status_code = 404


class InvalidTransition(FlowbitError):
    """
    Update rejected because it would violate the execution lifecycle
    (RUNNING -> COMPLETED/ERROR exactly once).
    """

    status_code = 409


class ExternalCallFailure(FlowbitError):
    """
    The workflow engine returned an error status or the call timed out.

    The execution (if one was created) is left in ERROR state and its id
    is attached so callers can look it up.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        engine_status: Optional[int] = None,
        execution_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.engine_status = engine_status
        self.execution_id = execution_id


class StoreError(FlowbitError):
    """Persistence layer failure (write or read)."""

    status_code = 500


class StreamLimitExceeded(FlowbitError):
    """Max live stream subscribers reached for an execution."""

    status_code = 429
