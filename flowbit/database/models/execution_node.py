"""
Execution Node Model

Per-node results for an execution, keyed by (execution_id, node_name).
Repeated writes for the same node overwrite the row.
"""

from sqlalchemy import Column, String, Integer, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from flowbit.database.base import Base


class ExecutionNode(Base):
    """Output of one node/step of an execution."""
    __tablename__ = "execution_nodes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    execution_id = Column(
        String(64),
        ForeignKey('executions.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    node_id = Column(String(255), nullable=False)
    node_name = Column(String(255), nullable=False)

    # SUCCESS or ERROR
    status = Column(String(20), nullable=False)
    data = Column(JSON, nullable=True)
    error = Column(JSON, nullable=True)

    execution = relationship("Execution", back_populates="nodes")

    __table_args__ = (
        UniqueConstraint('execution_id', 'node_name', name='uq_execution_nodes_execution_node'),
    )

    def __repr__(self) -> str:
        return f"<ExecutionNode(execution_id='{self.execution_id}', node_name='{self.node_name}', status='{self.status}')>"
