"""
Cron Job Model

Persisted cron schedules owned by the scheduler. Each firing goes through
the normal trigger path and records its own execution.
"""

from sqlalchemy import Column, String, Boolean, DateTime, JSON

from flowbit.database.base import Base, get_current_timestamp


class CronJob(Base):
    """Recurring trigger for one workflow on one engine."""
    __tablename__ = "cron_jobs"

    # "<engine>-<workflow_id>" when created by the trigger endpoint
    id = Column(String(255), primary_key=True)
    cron_expression = Column(String(255), nullable=False)
    workflow_id = Column(String(255), nullable=False, index=True)
    engine = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=True)

    active = Column(Boolean, nullable=False, default=True, index=True)
    last_run = Column(DateTime(timezone=True), nullable=True)
    next_run = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=get_current_timestamp, nullable=False)

    def __repr__(self) -> str:
        return f"<CronJob(id='{self.id}', cron='{self.cron_expression}', active={self.active})>"
