"""
Configuration management.

Uses Pydantic Settings for environment variable handling and validation.
An optional config.yaml provides defaults that environment variables
override. Settings are read once at startup; changing tokens requires a
restart.
"""

import json
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .models.log_record import BackpressurePolicy, FieldType, QueryRepeatPolicy


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = os.environ.get("LOGJAM_CONFIG_FILE")

    if config_path is None:
        # Look for config.yaml in common locations
        possible_paths = [
            "config.yaml",  # Current directory
            "../../config.yaml",  # Project root from src/logjam
        ]

        for path in possible_paths:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
            return config_data
    return {}


class DecoderSettings(BaseSettings):
    """Request body decoding configuration."""

    max_body_bytes: int = Field(default=1048576, gt=0, description="Maximum request body size (1MB)")
    accepted_media_types: List[str] = Field(
        default=["application/json", "text/plain"],
        description="Base media types accepted when Content-Type is present"
    )
    multi_strict: bool = Field(
        default=True,
        description="Apply unknown-field and trailing-data checks to /multi"
    )
    max_depth: int = Field(default=128, gt=0, le=400, description="Maximum JSON nesting depth")
    record_schema: Dict[str, FieldType] = Field(
        default_factory=dict,
        description="Expected field types; empty accepts any fields"
    )

    @field_validator("record_schema", mode="before")
    def parse_record_schema(cls, v: Any) -> Any:
        """
        Parse the record schema from a JSON string passed to the constructor.

        Environment values arrive already JSON-decoded by pydantic-settings.
        """
        if isinstance(v, str):
            if not v.strip():
                return {}
            return json.loads(v)
        return v

    @field_validator("accepted_media_types")
    def normalize_media_types(cls, v: List[str]) -> List[str]:
        """Lower-case media types and reject an empty list."""
        types = [t.strip().lower() for t in v if t.strip()]
        if not types:
            raise ValueError("At least one media type must be accepted")
        return types

    class Config:
        env_prefix = "LOGJAM_DECODER_"


class DispatcherSettings(BaseSettings):
    """Dispatcher worker pool and sink configuration."""

    workers: int = Field(default=4, ge=1, description="Number of delivery workers")
    queue_size: int = Field(default=10000, ge=0, description="Queue capacity (0 = unbounded)")
    backpressure: BackpressurePolicy = Field(
        default=BackpressurePolicy.REJECT,
        description="Policy when the queue is full: reject, drop or block"
    )
    deliver_timeout_seconds: Optional[float] = Field(
        default=30.0,
        gt=0,
        description="Per-record sink timeout; a hung delivery frees its worker after this long"
    )
    drain_timeout_seconds: float = Field(default=10.0, ge=0, description="Shutdown drain timeout")
    sinks: List[str] = Field(default=["console"], description="Sink names to deliver to")

    class Config:
        env_prefix = "LOGJAM_DISPATCHER_"


class Settings(BaseSettings):
    """Main application settings."""

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=1323, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(default=False, description="Render logs as JSON")

    # Authentication
    tokens: str = Field(default="", description="Comma-separated list of valid tokens")
    token_header: str = Field(default="x-logjam-token", description="Header carrying the token")
    allow_empty_token: bool = Field(
        default=False,
        description="Treat empty token entries as valid (admits unauthenticated callers)"
    )

    # Normalization
    query_repeat_policy: QueryRepeatPolicy = Field(
        default=QueryRepeatPolicy.LAST,
        description="Which occurrence of a repeated query parameter is kept"
    )

    # Component settings
    decoder: DecoderSettings = Field(default_factory=DecoderSettings)
    dispatcher: DispatcherSettings = Field(default_factory=DispatcherSettings)

    class Config:
        env_prefix = "LOGJAM_"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""

    # Load config file data
    config_data = load_config_file()

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    settings = Settings()
    return settings


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    mappings = {
        ("server", "host"): "LOGJAM_HOST",
        ("server", "port"): "LOGJAM_PORT",
        ("server", "debug"): "LOGJAM_DEBUG",
        ("server", "log_level"): "LOGJAM_LOG_LEVEL",
        ("server", "log_json"): "LOGJAM_LOG_JSON",
        ("security", "token_header"): "LOGJAM_TOKEN_HEADER",
        ("security", "allow_empty_token"): "LOGJAM_ALLOW_EMPTY_TOKEN",
        ("ingest", "query_repeat_policy"): "LOGJAM_QUERY_REPEAT_POLICY",
        ("decoder", "max_body_bytes"): "LOGJAM_DECODER_MAX_BODY_BYTES",
        ("decoder", "multi_strict"): "LOGJAM_DECODER_MULTI_STRICT",
        ("decoder", "max_depth"): "LOGJAM_DECODER_MAX_DEPTH",
        ("dispatcher", "workers"): "LOGJAM_DISPATCHER_WORKERS",
        ("dispatcher", "queue_size"): "LOGJAM_DISPATCHER_QUEUE_SIZE",
        ("dispatcher", "backpressure"): "LOGJAM_DISPATCHER_BACKPRESSURE",
        ("dispatcher", "deliver_timeout_seconds"): "LOGJAM_DISPATCHER_DELIVER_TIMEOUT_SECONDS",
        ("dispatcher", "drain_timeout_seconds"): "LOGJAM_DISPATCHER_DRAIN_TIMEOUT_SECONDS",
    }

    for (section, key), env_var in mappings.items():
        if env_var not in os.environ:
            value = (config_data.get(section) or {}).get(key)
            if value is not None:
                os.environ[env_var] = str(value).lower() if isinstance(value, bool) else str(value)

    # Tokens may be given as a YAML list or a comma-separated string
    if "LOGJAM_TOKENS" not in os.environ:
        tokens = (config_data.get("security") or {}).get("tokens")
        if isinstance(tokens, list):
            os.environ["LOGJAM_TOKENS"] = ",".join(str(token) for token in tokens)
        elif tokens is not None:
            os.environ["LOGJAM_TOKENS"] = str(tokens)

    # Structured values travel as JSON strings
    json_mappings = {
        ("decoder", "accepted_media_types"): "LOGJAM_DECODER_ACCEPTED_MEDIA_TYPES",
        ("decoder", "record_schema"): "LOGJAM_DECODER_RECORD_SCHEMA",
        ("dispatcher", "sinks"): "LOGJAM_DISPATCHER_SINKS",
    }
    for (section, key), env_var in json_mappings.items():
        if env_var not in os.environ:
            value = (config_data.get(section) or {}).get(key)
            if value:
                os.environ[env_var] = json.dumps(value)


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
