"""Configuration management for buyer-leads."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from buyer_leads.exceptions import ConfigurationError

_TRUE_FLAG_VALUES = {"1", "true", "on", "yes"}
_FALSE_FLAG_VALUES = {"0", "false", "off", "no"}


def _env_flag(name: str, default: bool) -> bool:
    """Read a boolean environment variable."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_FLAG_VALUES:
        return True
    if lowered in _FALSE_FLAG_VALUES:
        return False
    raise ConfigurationError(f"{name} must be one of: true, false, 1, 0, yes, no, on, off")


@dataclass
class KafkaConfig:
    """Kafka producer configuration for the audit event stream."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    batch_size: int = 16384
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "batch.size": self.batch_size,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
        }


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "buyer_leads"
    user: str = "postgres"
    password: str = "postgres"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class AuditConfig:
    """Audit trail and concurrency settings."""

    topic: str = "leads.buyer-history"
    jsonl_path: Path | None = None
    recent_history_limit: int = 5
    # Malformed observed timestamps skip the optimistic check when True
    fail_open_timestamps: bool = True


@dataclass
class BuyerLeadsConfig:
    """Main configuration for buyer-leads."""

    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    kafka: KafkaConfig | None = None
    audit: AuditConfig = field(default_factory=AuditConfig)
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "BuyerLeadsConfig":
        """Create config from environment variables."""
        try:
            postgres = PostgresConfig(
                host=os.getenv("POSTGRES_HOST", "localhost"),
                port=int(os.getenv("POSTGRES_PORT", "5432")),
                database=os.getenv("POSTGRES_DB", "buyer_leads"),
                user=os.getenv("POSTGRES_USER", "postgres"),
                password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            )

            bootstrap = os.getenv("KAFKA_BOOTSTRAP_SERVERS")
            kafka = (
                KafkaConfig(
                    bootstrap_servers=bootstrap,
                    acks=os.getenv("KAFKA_ACKS", "all"),
                )
                if bootstrap
                else None
            )

            jsonl_path = os.getenv("AUDIT_JSONL_PATH")
            audit = AuditConfig(
                topic=os.getenv("AUDIT_TOPIC", "leads.buyer-history"),
                jsonl_path=Path(jsonl_path) if jsonl_path else None,
                recent_history_limit=int(os.getenv("AUDIT_RECENT_HISTORY", "5")),
                fail_open_timestamps=_env_flag("AUDIT_FAIL_OPEN_TIMESTAMPS", True),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        if audit.recent_history_limit < 0:
            raise ConfigurationError("AUDIT_RECENT_HISTORY must be >= 0")

        return cls(
            postgres=postgres,
            kafka=kafka,
            audit=audit,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )
