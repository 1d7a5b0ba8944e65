"""
Dashboard Configuration - how this client reaches the authorization server.
These are operator settings, not the environment variables being edited.
"""
from typing import Optional
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Master settings - environment driven"""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # Authorization server
    authorizer_url: str = "http://localhost:8080"
    graphql_path: str = "/graphql"
    # Sent as x-authorizer-admin-secret on every request
    authorizer_admin_secret: Optional[str] = None

    # Request timeouts
    request_connect_timeout_seconds: float = 5.0
    request_read_timeout_seconds: float = 30.0
    request_write_timeout_seconds: float = 30.0

    # Audit trail of submitted variable names (values are never written)
    audit_enabled: bool = True
    audit_log_path: Path = Path("env_dashboard_audit.log")

    @property
    def graphql_url(self) -> str:
        return self.authorizer_url.rstrip("/") + "/" + self.graphql_path.lstrip("/")


# Global settings instance
settings = Settings()
