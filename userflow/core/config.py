"""
Configuration Management.

Loads deployment values from the environment (and config/.env) and settings
from config/settings/*.yaml. No hardcoded values in code; all configuration
comes from these sources.

Environment (.env):
    NATS_URL, NATS_CREATE_USER_SUBJECT, NATS_USERS_STREAM, NATS_USERS_SUBJECTS,
    GRPC_USER_HOST, GRPC_USER_PORT, REST_COMPANY_HOST, REST_COMPANY_PORT,
    OTEL_EXPORTER_OTLP_ENDPOINT

Settings (YAML):
    application.yaml   - App identity, server ports, cors, timeouts
    logging.yaml       - Logging configuration
    database.yaml      - Per-service SQL store URLs
    messaging.yaml     - Publish bounds, durable consumers, dead-letter
    rpc.yaml           - User gRPC server settings
    observability.yaml - Tracing configuration

Each process only reads the environment values it needs. A missing value is
reported as a ConfigurationError, which entry points turn into an immediate
exit.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from userflow.core.config_schema import (
    ApplicationSchema,
    DatabaseSchema,
    LoggingSchema,
    MessagingSchema,
    ObservabilitySchema,
    RpcSchema,
)
from userflow.core.exceptions import ConfigurationError


def find_project_root() -> Path:
    """Find project root by looking for .project_root marker file."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".project_root").exists():
            return current
        current = current.parent
    raise RuntimeError("Project root not found. Ensure .project_root file exists.")


def validate_project_root() -> Path:
    """
    Validate that the project root can be found.

    Raises SystemExit with a clear message if .project_root is not found.
    Use this in entry scripts before any configuration loading.
    """
    try:
        return find_project_root()
    except RuntimeError as e:
        raise SystemExit(f"Error: {e}") from e


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Load a YAML configuration file from config/settings/."""
    project_root = find_project_root()
    config_path = project_root / "config" / "settings" / filename

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


class Settings(BaseSettings):
    """Deployment values loaded from the environment or config/.env."""

    nats_url: str | None = None
    nats_create_user_subject: str | None = None
    nats_users_stream: str | None = None
    nats_users_subjects: str | None = None
    grpc_user_host: str | None = None
    grpc_user_port: str | None = None
    rest_company_host: str | None = None
    rest_company_port: str | None = None
    otel_exporter_otlp_endpoint: str | None = None

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def require(self, field: str) -> str:
        """
        Return a required value or fail with the variable name.

        Raises:
            ConfigurationError: If the value is unset or empty
        """
        value = getattr(self, field)
        if not value:
            raise ConfigurationError(f"{field.upper()} not set")
        return value


def _load_validated(schema_cls: type, filename: str) -> Any:
    """Load YAML and validate against schema. Returns typed model instance."""
    raw = load_yaml_config(filename)
    try:
        return schema_cls(**raw)
    except ValidationError as e:
        raise ValueError(
            f"Invalid configuration in {filename}:\n{e}"
        ) from e


class AppConfig:
    """
    Application configuration loaded from YAML files.

    Each YAML file is validated against its Pydantic schema at load time.
    Properties return typed Pydantic model instances with attribute access.
    """

    def __init__(self) -> None:
        self._application = _load_validated(ApplicationSchema, "application.yaml")
        self._logging = _load_validated(LoggingSchema, "logging.yaml")
        self._database = _load_validated(DatabaseSchema, "database.yaml")
        self._messaging = _load_validated(MessagingSchema, "messaging.yaml")
        self._rpc = _load_validated(RpcSchema, "rpc.yaml")
        self._observability = _load_validated(ObservabilitySchema, "observability.yaml")

    @property
    def application(self) -> ApplicationSchema:
        """Application settings."""
        return self._application

    @property
    def logging(self) -> LoggingSchema:
        """Logging settings."""
        return self._logging

    @property
    def database(self) -> DatabaseSchema:
        """Database settings."""
        return self._database

    @property
    def messaging(self) -> MessagingSchema:
        """Message bus settings (publish bounds, consumers, dead-letter)."""
        return self._messaging

    @property
    def rpc(self) -> RpcSchema:
        """RPC server settings."""
        return self._rpc

    @property
    def observability(self) -> ObservabilitySchema:
        """Observability settings (tracing)."""
        return self._observability


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance. Resolves .env path from project root."""
    env_path = find_project_root() / "config" / ".env"
    return Settings(_env_file=str(env_path))


@lru_cache
def get_app_config() -> AppConfig:
    """Get cached application configuration."""
    return AppConfig()


def get_nats_url() -> str:
    """NATS server URL."""
    return get_settings().require("nats_url")


def get_create_user_subject() -> str:
    """Subject carrying user-creation work items."""
    return get_settings().require("nats_create_user_subject")


def get_users_stream() -> tuple[str, list[str]]:
    """
    JetStream stream name and the subjects it captures.

    Returns:
        Tuple of (stream_name, subjects). Subjects come from the
        comma-separated NATS_USERS_SUBJECTS value.
    """
    settings = get_settings()
    name = settings.require("nats_users_stream")
    subjects = [s.strip() for s in settings.require("nats_users_subjects").split(",") if s.strip()]
    if not subjects:
        raise ConfigurationError("NATS_USERS_SUBJECTS is empty")
    return name, subjects


def get_user_grpc_endpoint() -> str:
    """host:port of the user gRPC service."""
    settings = get_settings()
    return f"{settings.require('grpc_user_host')}:{settings.require('grpc_user_port')}"


def get_company_http_endpoint() -> str:
    """Base URL of the company REST service."""
    settings = get_settings()
    return f"http://{settings.require('rest_company_host')}:{settings.require('rest_company_port')}"
