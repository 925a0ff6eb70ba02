"""
Shared fixtures for service tests
"""

import pytest

from flowbit.services.recorder import ExecutionRecorder
from flowbit.services.stream_relay import ExecutionEventBroker


class RecordingBroker(ExecutionEventBroker):
    """Broker that also remembers what was published."""

    def __init__(self, max_subscribers_per_execution: int = 50):
        super().__init__(max_subscribers_per_execution)
        self.published = []

    def publish(self, execution_id, status=None):
        self.published.append((execution_id, status))
        return super().publish(execution_id, status)


@pytest.fixture
def broker():
    return RecordingBroker()


@pytest.fixture
def recorder(test_db, broker):
    return ExecutionRecorder(test_db, broker)
