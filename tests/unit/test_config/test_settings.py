"""
Unit tests for Settings
"""

import pytest
from pydantic import ValidationError

from flowbit.config import Settings


def test_cors_origins_comma_separated():
    settings = Settings(CORS_ORIGINS="http://a.test, http://b.test,")
    assert settings.get_cors_origins() == ["http://a.test", "http://b.test"]


def test_cors_origins_json_list():
    settings = Settings(CORS_ORIGINS='["http://a.test"]')
    assert settings.CORS_ORIGINS == ["http://a.test"]


def test_cors_defaults_follow_ports():
    settings = Settings(CORS_ORIGINS=[], FRONTEND_PORT=4000)
    assert "http://localhost:4000" in settings.get_cors_origins()


def test_invalid_database_url():
    with pytest.raises(ValidationError):
        Settings(DATABASE_URL="mysql://localhost/flowbit")


def test_trigger_timeout_not_below_read_timeout():
    with pytest.raises(ValidationError):
        Settings(ENGINE_READ_TIMEOUT=5.0, ENGINE_TRIGGER_TIMEOUT=2.0)


def test_engine_urls_normalised():
    settings = Settings(LANGFLOW_BASE_URL="http://langflow.local:7860/", N8N_BASE_URL="")
    assert settings.LANGFLOW_BASE_URL == "http://langflow.local:7860"
    assert settings.N8N_BASE_URL is None
