"""Configuration management with Pydantic validation.

Supports three configuration sources (in priority order):
1. YAML config file (for traditional deployments)
2. Environment variables (for Docker)
3. Default values
"""

import os
from pathlib import Path
from typing import Optional, Literal
import yaml
from pydantic import BaseModel, Field, field_validator


class StorageConfig(BaseModel):
    """Local queue storage configuration."""

    queue_path: Path = Field(
        default=Path("poolguard-queue.json"),
        description="JSON file holding pending queue items"
    )
    dead_letter_path: Optional[Path] = Field(
        default=None,
        description="JSON file for items that exhausted their attempts (optional)"
    )

    @field_validator("dead_letter_path", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None."""
        if v == "":
            return None
        return v


class SyncConfig(BaseModel):
    """Drain loop and retry policy configuration."""

    interval: int = Field(
        default=60,
        ge=5,
        le=3600,
        description="Seconds between automatic drain passes"
    )
    send_timeout: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="Per-item send timeout in seconds"
    )
    max_attempts: Optional[int] = Field(
        default=None,
        ge=1,
        description="Attempts before an item is dead-lettered (None = retry forever)"
    )

    @field_validator("max_attempts", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None."""
        if v == "":
            return None
        return v


class FacilityConfig(BaseModel):
    """Facility identification."""

    pool_id: str = Field(
        default="main",
        min_length=1,
        description="Identifier of the pool chemical tests are recorded for"
    )


class MQTTConfig(BaseModel):
    """MQTT broker configuration (the remote store transport)."""

    host: Optional[str] = Field(
        default=None,
        description="MQTT broker hostname or IP (None = offline-only mode)"
    )
    port: int = Field(
        default=1883,
        ge=1,
        le=65535,
        description="MQTT broker port"
    )
    username: Optional[str] = Field(
        default=None,
        description="MQTT username (optional)"
    )
    password: Optional[str] = Field(
        default=None,
        description="MQTT password (optional)"
    )
    client_id: str = Field(
        default="poolguard",
        description="MQTT client identifier"
    )
    topic_prefix: str = Field(
        default="poolguard",
        description="Topic prefix for records and status publishing"
    )
    retain: bool = Field(
        default=True,
        description="Retain status messages"
    )
    qos: int = Field(
        default=1,
        ge=1,
        le=2,
        description="MQTT QoS level (QoS 0 has no delivery acknowledgement)"
    )

    @field_validator("host", "username", "password", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None."""
        if v == "":
            return None
        return v

    @property
    def enabled(self) -> bool:
        """Check if MQTT is enabled (host is configured)."""
        return self.host is not None


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )
    file: Optional[Path] = Field(
        default=None,
        description="Log file path (optional)"
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )


class AppConfig(BaseModel):
    """Complete application configuration."""

    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Queue storage settings"
    )
    sync: SyncConfig = Field(
        default_factory=SyncConfig,
        description="Sync loop settings"
    )
    facility: FacilityConfig = Field(
        default_factory=FacilityConfig,
        description="Facility settings"
    )
    mqtt: MQTTConfig = Field(
        default_factory=MQTTConfig,
        description="MQTT broker settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings"
    )


# Environment variable mapping
ENV_MAPPING = {
    # Storage
    "QUEUE_PATH": ("storage", "queue_path"),
    "DEAD_LETTER_PATH": ("storage", "dead_letter_path"),

    # Sync
    "SYNC_INTERVAL": ("sync", "interval", int),
    "SYNC_SEND_TIMEOUT": ("sync", "send_timeout", float),
    "SYNC_MAX_ATTEMPTS": ("sync", "max_attempts", int),

    # Facility
    "POOL_ID": ("facility", "pool_id"),

    # MQTT
    "MQTT_HOST": ("mqtt", "host"),
    "MQTT_PORT": ("mqtt", "port", int),
    "MQTT_USERNAME": ("mqtt", "username"),
    "MQTT_PASSWORD": ("mqtt", "password"),
    "MQTT_CLIENT_ID": ("mqtt", "client_id"),
    "MQTT_TOPIC_PREFIX": ("mqtt", "topic_prefix"),
    "MQTT_RETAIN": ("mqtt", "retain", lambda x: x.lower() in ("true", "1", "yes")),
    "MQTT_QOS": ("mqtt", "qos", int),

    # Logging
    "LOG_LEVEL": ("logging", "level"),
}


def _get_env_value(env_var: str, mapping: tuple):
    """Get environment variable value with optional type conversion."""
    value = os.environ.get(env_var)
    if value is None:
        return None

    # Apply type conversion if specified
    if len(mapping) > 2:
        converter = mapping[2]
        try:
            return converter(value)
        except (ValueError, TypeError):
            return value
    return value


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables.

    Returns:
        AppConfig with values from environment (or defaults)
    """
    config_dict = {
        "storage": {},
        "sync": {},
        "facility": {},
        "mqtt": {},
        "logging": {},
    }

    for env_var, mapping in ENV_MAPPING.items():
        value = _get_env_value(env_var, mapping)
        if value is not None:
            section = mapping[0]
            key = mapping[1]
            config_dict[section][key] = value

    return AppConfig(**config_dict)


def load_config(config_path: str) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config validation fails
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path, "r") as f:
        raw_config = yaml.safe_load(f) or {}

    # Support environment variable substitution
    raw_config = _substitute_env_vars(raw_config)

    return AppConfig(**raw_config)


def get_config(config_path: Optional[str] = None) -> AppConfig:
    """Get configuration from config file or environment variables.

    Priority:
    1. Config file (if path provided and file exists)
    2. Environment variables
    3. Default values (offline-only mode if no MQTT_HOST)

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Validated AppConfig instance
    """
    if config_path:
        path = Path(config_path)
        if path.exists():
            return load_config(config_path)

    return load_config_from_env()


def _substitute_env_vars(config):
    """Recursively substitute environment variables in config values.

    Environment variables are referenced as ${VAR_NAME} or $VAR_NAME.
    """
    if isinstance(config, dict):
        return {k: _substitute_env_vars(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [_substitute_env_vars(item) for item in config]
    elif isinstance(config, str):
        if config.startswith("${") and config.endswith("}"):
            var_name = config[2:-1]
            return os.environ.get(var_name, config)
        elif config.startswith("$") and not config.startswith("${"):
            var_name = config[1:]
            return os.environ.get(var_name, config)
        return config
    else:
        return config


def create_default_config() -> str:
    """Generate default configuration as YAML string."""
    config = AppConfig()
    return yaml.dump(
        config.model_dump(mode="json", exclude_none=True),
        default_flow_style=False,
        sort_keys=False,
    )


def print_env_help() -> str:
    """Generate help text for environment variables."""
    lines = [
        "Environment Variables:",
        "",
        "  Storage:",
        "    QUEUE_PATH           Pending queue JSON file (default: poolguard-queue.json)",
        "    DEAD_LETTER_PATH     Dead-letter JSON file (optional)",
        "",
        "  Sync:",
        "    SYNC_INTERVAL        Seconds between drain passes (default: 60)",
        "    SYNC_SEND_TIMEOUT    Per-item send timeout seconds (default: 10)",
        "    SYNC_MAX_ATTEMPTS    Attempts before dead-lettering (default: unlimited)",
        "",
        "  Facility:",
        "    POOL_ID              Pool identifier for recorded tests (default: main)",
        "",
        "  MQTT (remote store; omit MQTT_HOST for offline-only mode):",
        "    MQTT_HOST             Broker hostname/IP",
        "    MQTT_PORT             Broker port (default: 1883)",
        "    MQTT_USERNAME         Username (optional)",
        "    MQTT_PASSWORD         Password (optional)",
        "    MQTT_CLIENT_ID        Client ID (default: poolguard)",
        "    MQTT_TOPIC_PREFIX     Topic prefix (default: poolguard)",
        "    MQTT_RETAIN           Retain status messages (default: true)",
        "    MQTT_QOS              QoS level 1-2 (default: 1)",
        "",
        "  Logging:",
        "    LOG_LEVEL            DEBUG, INFO, WARNING, ERROR (default: INFO)",
    ]
    return "\n".join(lines)
