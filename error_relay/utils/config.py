"""Configuration management using Pydantic Settings"""

import os
from typing import Annotated, Optional, List
from pathlib import Path
import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ..models.errors import ConfigurationError

DEFAULT_SENSITIVE_FIELDS = [
    "password",
    "password_confirmation",
    "secret",
    "token",
    "api_key",
    "credit_card",
    "card_number",
    "cvv",
    "ssn",
]

DEFAULT_IGNORED_EXCEPTIONS = [
    "starlette.exceptions.HTTPException",
    "fastapi.exceptions.RequestValidationError",
    "pydantic.ValidationError",
]


def _split_csv(value):
    """Accept "a,b,c" as well as a real list"""
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class CaptureConfig(BaseSettings):
    """Capture gate configuration"""
    model_config = SettingsConfigDict(env_prefix="ERROR_RELAY_CAPTURE_")

    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    ignored_exceptions: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_IGNORED_EXCEPTIONS)
    )

    @field_validator("ignored_exceptions", mode="before")
    @classmethod
    def split_ignored(cls, value):
        return _split_csv(value)


class SourceConfig(BaseSettings):
    """Source code inclusion configuration"""
    model_config = SettingsConfigDict(env_prefix="ERROR_RELAY_SOURCE_")

    include_contents: bool = True
    context_lines: int = Field(default=20, ge=0)
    project_root: Optional[str] = None


class PrivacyConfig(BaseSettings):
    """Redaction configuration"""
    model_config = SettingsConfigDict(env_prefix="ERROR_RELAY_PRIVACY_")

    sensitive_fields: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_SENSITIVE_FIELDS)
    )

    @field_validator("sensitive_fields", mode="before")
    @classmethod
    def split_fields(cls, value):
        return _split_csv(value)


class RateLimitConfig(BaseSettings):
    """Deduplication and rate limiting configuration"""
    model_config = SettingsConfigDict(env_prefix="ERROR_RELAY_RATE_LIMIT_")

    enabled: bool = True
    max_per_minute: int = Field(default=10, ge=0)
    dedup_window_seconds: int = Field(default=60, ge=1)


class DeliveryConfig(BaseSettings):
    """Delivery worker configuration"""
    model_config = SettingsConfigDict(env_prefix="ERROR_RELAY_DELIVERY_")

    timeout_seconds: float = 5.0
    queue: bool = True
    queue_size: int = 1000
    drain_timeout_seconds: float = Field(default=10.0, ge=0.0)
    max_attempts: int = Field(default=3, ge=1)
    backoff_seconds: List[float] = Field(default_factory=lambda: [5.0, 30.0, 60.0])


class ErrorLoggingConfig(BaseSettings):
    """Terminal delivery failure history"""
    model_config = SettingsConfigDict(env_prefix="ERROR_RELAY_ERROR_LOGGING_")

    keep_in_memory: int = 100


class LoggingConfig(BaseSettings):
    """Logging configuration"""
    model_config = SettingsConfigDict(env_prefix="ERROR_RELAY_LOGGING_")

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    max_size_mb: int = 100
    backup_count: int = 5


class AppConfig(BaseSettings):
    """Main reporter configuration"""

    model_config = SettingsConfigDict(
        env_prefix="ERROR_RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    enabled: bool = True
    dsn: str = Field(default="")
    project: str = Field(default="")
    environment: str = "production"
    autofix_environments: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["production", "staging"]
    )

    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    privacy: PrivacyConfig = Field(default_factory=PrivacyConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    error_logging: ErrorLoggingConfig = Field(default_factory=ErrorLoggingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("autofix_environments", mode="before")
    @classmethod
    def split_autofix(cls, value):
        return _split_csv(value)

    def validate_required(self) -> List[str]:
        """Return a list of missing or unusable settings"""
        issues = []
        if not self.enabled:
            issues.append("Reporting is disabled (ERROR_RELAY_ENABLED)")
        if not self.dsn:
            issues.append("Collector endpoint not set (ERROR_RELAY_DSN)")
        elif not self.dsn.startswith(("http://", "https://")):
            issues.append(f"Collector endpoint is not an http(s) URL: {self.dsn}")
        if not self.project:
            issues.append("Project id not set (ERROR_RELAY_PROJECT)")
        return issues

    def ensure_deliverable(self) -> None:
        """
        Check that reports can actually be sent

        Raises:
            ConfigurationError: reporting is disabled or the DSN is unusable
        """
        problems = []
        if not self.enabled:
            problems.append("reporting is disabled (ERROR_RELAY_ENABLED)")
        if not self.dsn:
            problems.append("collector endpoint not set (ERROR_RELAY_DSN)")
        elif not self.dsn.startswith(("http://", "https://")):
            problems.append("collector endpoint is not an http(s) URL (ERROR_RELAY_DSN)")
        if problems:
            raise ConfigurationError("; ".join(problems))


SECTIONS = {
    "capture": CaptureConfig,
    "source": SourceConfig,
    "privacy": PrivacyConfig,
    "rate_limit": RateLimitConfig,
    "delivery": DeliveryConfig,
    "error_logging": ErrorLoggingConfig,
    "logging": LoggingConfig,
}


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from YAML file and environment variables

    Values present in the YAML file take precedence; anything the file leaves
    out falls back to ERROR_RELAY_* environment variables, then defaults.

    Args:
        config_path: Path to YAML config file (default: config/error_relay.yaml)

    Returns:
        AppConfig instance
    """
    if config_path is None:
        config_path = os.getenv("CONFIG_PATH", "config/error_relay.yaml")

    config_file = Path(config_path)

    if not config_file.exists():
        # Return default config if file doesn't exist
        return AppConfig()

    with open(config_file, "r") as f:
        yaml_config = yaml.safe_load(f) or {}

    # Expand environment variables in YAML
    yaml_config = _expand_env_vars(yaml_config)

    config_dict = {
        key: value for key, value in yaml_config.items() if key not in SECTIONS
    }
    for name, section_cls in SECTIONS.items():
        config_dict[name] = section_cls(**(yaml_config.get(name) or {}))

    return AppConfig(**config_dict)


def _expand_env_vars(config):
    """Recursively expand environment variables in config dict"""
    if isinstance(config, dict):
        return {k: _expand_env_vars(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [_expand_env_vars(item) for item in config]
    elif isinstance(config, str):
        # Expand ${VAR_NAME:default_value} or ${VAR_NAME}
        if config.startswith("${") and config.endswith("}"):
            var_expr = config[2:-1]
            if ":" in var_expr:
                var_name, default = var_expr.split(":", 1)
                return os.getenv(var_name, default)
            else:
                return os.getenv(var_expr, config)
    return config
