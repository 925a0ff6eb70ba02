"""
Unit tests for CronJobRepository
"""

from datetime import datetime, timezone

from flowbit.database.repositories.cron_jobs import CronJobRepository


def test_upsert_creates_and_replaces(test_db):
    repo = CronJobRepository(test_db)

    repo.upsert("langflow-flow-1", "0 9 * * *", "flow-1", "langflow", payload={"a": 1})
    repo.mark_run("langflow-flow-1", datetime(2026, 1, 1, tzinfo=timezone.utc), None)
    repo.set_active("langflow-flow-1", False)

    job = repo.upsert("langflow-flow-1", "*/5 * * * *", "flow-1", "langflow")

    assert job.cron_expression == "*/5 * * * *"
    assert job.active is True
    assert job.last_run is None
    assert job.payload is None
    assert len(repo.list()) == 1


def test_list_active_only(test_db):
    repo = CronJobRepository(test_db)
    repo.upsert("job-1", "0 9 * * *", "flow-1", "n8n")
    repo.upsert("job-2", "0 10 * * *", "flow-2", "n8n")
    repo.set_active("job-1", False)

    assert [job.id for job in repo.list(active_only=True)] == ["job-2"]


def test_set_active_missing_job(test_db):
    assert CronJobRepository(test_db).set_active("nope", False) is False
