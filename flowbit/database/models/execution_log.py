"""
Execution Log Model

Append-only log lines for an execution. Rows are never edited.
"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from flowbit.database.base import Base, get_current_timestamp


class ExecutionLog(Base):
    """Single log entry; insertion order (id) is the log order."""
    __tablename__ = "execution_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    execution_id = Column(
        String(64),
        ForeignKey('executions.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    # Log level: INFO, WARNING, ERROR, DEBUG
    level = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=get_current_timestamp, nullable=False)

    execution = relationship("Execution", back_populates="logs")

    def __repr__(self) -> str:
        return f"<ExecutionLog(id={self.id}, execution_id='{self.execution_id}', level='{self.level}')>"
