"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML config file.
Used by AppConfig to validate configuration at load time. If a YAML file
has missing keys, wrong types, or unknown fields, a clear ValidationError
is raised at startup instead of a cryptic KeyError deep in application code.

Each top-level class corresponds to one file in config/settings/:
    ApplicationSchema    → application.yaml
    LoggingSchema        → logging.yaml
    DatabaseSchema       → database.yaml
    MessagingSchema      → messaging.yaml
    RpcSchema            → rpc.yaml
    ObservabilitySchema  → observability.yaml
"""

from pydantic import BaseModel, ConfigDict, Field


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ServerSchema(_StrictBase):
    host: str
    port: int


class CorsSchema(_StrictBase):
    origins: list[str]


class TimeoutsSchema(_StrictBase):
    sync_rpc: float
    async_rpc: float
    company_http: float


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    debug: bool
    cors: CorsSchema
    gateway: ServerSchema
    company: ServerSchema
    timeouts: TimeoutsSchema


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: str
    handlers: HandlersSchema


# =============================================================================
# database.yaml
# =============================================================================


class StoreSchema(_StrictBase):
    url: str
    echo: bool


class DatabaseSchema(_StrictBase):
    users: StoreSchema
    companies: StoreSchema


# =============================================================================
# messaging.yaml
# =============================================================================


class PublishSchema(_StrictBase):
    max_in_flight: int = Field(gt=0)
    timeout_seconds: float = Field(gt=0)


class ConsumerCircuitBreakerSchema(_StrictBase):
    fail_max: int
    timeout_duration: int


class ConsumerSchema(_StrictBase):
    durable: str
    max_pending: int = Field(gt=0)
    ack_wait_seconds: float = Field(gt=0)
    circuit_breaker: ConsumerCircuitBreakerSchema


class DlqSchema(_StrictBase):
    enabled: bool
    subject_prefix: str


class MessagingSchema(_StrictBase):
    publish: PublishSchema
    consumers: dict[str, ConsumerSchema]
    dlq: DlqSchema


# =============================================================================
# rpc.yaml
# =============================================================================


class RpcServerSchema(_StrictBase):
    listen_host: str
    listen_port: int
    max_concurrent_rpcs: int


class RpcSchema(_StrictBase):
    user_service: RpcServerSchema


# =============================================================================
# observability.yaml
# =============================================================================


class TracingSchema(_StrictBase):
    enabled: bool
    service_name: str
    exporter: str
    sample_rate: float = Field(ge=0.0, le=1.0)


class ObservabilitySchema(_StrictBase):
    tracing: TracingSchema
