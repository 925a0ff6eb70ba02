"""
Configuration Management using Pydantic Settings


Infrastructure settings, engine credentials and relay tuning, all loaded
from environment variables (or a .env file).


Environment Variables (All Optional - Have Defaults):
    - DATABASE_URL: Database connection (defaults to SQLite)
    - LANGFLOW_BASE_URL / LANGFLOW_API_KEY: Langflow engine
    - N8N_BASE_URL / N8N_API_KEY: n8n engine

An engine is only usable when its base URL is set. Triggers against an
unconfigured engine are rejected before any execution is recorded.
"""


from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """
    Relay configuration.

    Loaded from environment variables and an optional .env file.
    """


    # Project Info
    PROJECT_NAME: str = "FlowBit Relay"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development")

    # Port Configuration
    BACKEND_PORT: int = Field(default=5000, description="Port for the relay API server")
    FRONTEND_PORT: int = Field(default=3000, description="Port of the dashboard frontend")

    # API Settings
    API_PREFIX: str = "/api"


    # CORS
    CORS_ORIGINS: List[str] = Field(default=[])

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from JSON string or list."""
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # If not valid JSON, treat as comma-separated string
                return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    def get_cors_origins(self) -> List[str]:
        """Get CORS origins with dynamic port defaults if not explicitly set."""
        if self.CORS_ORIGINS:
            return self.CORS_ORIGINS
        return [
            f"http://localhost:{self.FRONTEND_PORT}",
            f"http://localhost:{self.BACKEND_PORT}",
            f"http://127.0.0.1:{self.FRONTEND_PORT}",
            f"http://127.0.0.1:{self.BACKEND_PORT}",
        ]


    # Database - Support both SQLite and PostgreSQL
    DATABASE_URL: str = Field(default="sqlite:///./data/flowbit.db")
    DB_POOL_SIZE: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=40)

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Ensure database URL is valid."""
        if not v:
            raise ValueError("DATABASE_URL cannot be empty")
        if not (v.startswith("sqlite:///") or v.startswith("postgresql://")):
            raise ValueError("DATABASE_URL must start with 'sqlite:///' or 'postgresql://'")
        return v


    # Workflow engines
    LANGFLOW_BASE_URL: Optional[str] = Field(default=None)
    LANGFLOW_API_KEY: Optional[str] = Field(default=None)
    N8N_BASE_URL: Optional[str] = Field(default=None)
    N8N_API_KEY: Optional[str] = Field(default=None)

    @field_validator("LANGFLOW_BASE_URL", "N8N_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        return v.rstrip("/")

    # Read calls (flow metadata) are short, run calls wait on the engine's compute
    ENGINE_READ_TIMEOUT: float = Field(default=5.0, gt=0)
    ENGINE_TRIGGER_TIMEOUT: float = Field(default=10.0, gt=0)

    @field_validator("ENGINE_TRIGGER_TIMEOUT")
    @classmethod
    def validate_trigger_timeout(cls, v: float, info) -> float:
        """Trigger calls must not time out before read calls."""
        read_timeout = info.data.get("ENGINE_READ_TIMEOUT", 5.0)
        if v < read_timeout:
            raise ValueError("ENGINE_TRIGGER_TIMEOUT must be >= ENGINE_READ_TIMEOUT")
        return v


    # Live stream relay
    STREAM_POLL_INTERVAL: float = Field(default=2.0, gt=0)
    STREAM_MAX_CONNECTIONS_PER_EXECUTION: int = Field(default=50, ge=1)


    # Read API
    RUNS_DEFAULT_LIMIT: int = Field(default=50, ge=1)
    RUNS_MAX_LIMIT: int = Field(default=500, ge=1)


    # Cron scheduler
    SCHEDULER_ENABLED: bool = Field(default=True)


    # Observability
    LOG_LEVEL: str = Field(default="INFO")
    LOG_DIR: str = Field(default="logs")


    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"




# Global settings instance
settings = Settings()
