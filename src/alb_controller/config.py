"""Configuration management with validation.

Every value is validated at load time so a misconfigured controller fails
before it issues a single ELBv2 call.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from .errors import ReconcileError


class ConfigurationError(ReconcileError):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_VPC_CACHE_TTL_SECONDS = 3600
MIN_VPC_CACHE_TTL_SECONDS = 60
MAX_VPC_CACHE_TTL_SECONDS = 86400

DEFAULT_REMOTE_TIMEOUT_SECONDS = 30
MIN_REMOTE_TIMEOUT_SECONDS = 1
MAX_REMOTE_TIMEOUT_SECONDS = 300

# Bounds on the desired rules file and on a single listener
MAX_RULES_FILE_SIZE_BYTES = 256 * 1024
MAX_RULES_PER_LISTENER = 100  # ELBv2 quota, default rule excluded
MIN_RULE_PRIORITY = 1
MAX_RULE_PRIORITY = 50000

# Input validation patterns
VALID_REGION_PATTERN = r"^[a-z]{2}(-gov)?-[a-z]+-\d$"
VALID_LISTENER_ARN_PATTERN = (
    r"^arn:aws[a-z-]*:elasticloadbalancing:[a-z0-9-]+:\d{12}:listener/app/[^/]+/[0-9a-f]+/[0-9a-f]+$"
)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Config:
    """Controller configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-pass.
    """

    # Required fields
    region: str

    # Target
    listener_arn: str | None = None
    rules_file: Path | None = None

    # Timing
    vpc_cache_ttl_seconds: int = DEFAULT_VPC_CACHE_TTL_SECONDS
    remote_timeout_seconds: int = DEFAULT_REMOTE_TIMEOUT_SECONDS

    # Behavior
    dry_run: bool = False

    # Logging
    log_level: str = "INFO"
    enable_json_logging: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.region:
            errors.append("AWS_REGION is required")
        elif not re.match(VALID_REGION_PATTERN, self.region):
            errors.append(f"AWS_REGION must be a valid AWS region: {self.region}")

        if self.listener_arn and not re.match(VALID_LISTENER_ARN_PATTERN, self.listener_arn):
            errors.append(
                f"ALB_LISTENER_ARN must be an application load balancer listener ARN: "
                f"{self.listener_arn}"
            )

        if self.rules_file is not None and not self.rules_file.exists():
            errors.append(f"Rules file does not exist: {self.rules_file}")

        if not (
            MIN_VPC_CACHE_TTL_SECONDS <= self.vpc_cache_ttl_seconds <= MAX_VPC_CACHE_TTL_SECONDS
        ):
            errors.append(
                f"VPC_CACHE_TTL_SECONDS must be between {MIN_VPC_CACHE_TTL_SECONDS} "
                f"and {MAX_VPC_CACHE_TTL_SECONDS} seconds"
            )

        if not (
            MIN_REMOTE_TIMEOUT_SECONDS
            <= self.remote_timeout_seconds
            <= MAX_REMOTE_TIMEOUT_SECONDS
        ):
            errors.append(
                f"REMOTE_TIMEOUT_SECONDS must be between {MIN_REMOTE_TIMEOUT_SECONDS} "
                f"and {MAX_REMOTE_TIMEOUT_SECONDS} seconds"
            )

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {list(VALID_LOG_LEVELS)}: {self.log_level}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def log_level_value(self) -> int:
        """Numeric logging level for the configured LOG_LEVEL."""
        return logging.getLevelName(self.log_level.upper())

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AWS_REGION: Region of the load balancer (falls back to AWS_DEFAULT_REGION)
            ALB_LISTENER_ARN: Listener whose rules are reconciled
            RULES_FILE: Path to the YAML file of desired rules
            VPC_CACHE_TTL_SECONDS: Expiry of cached subnet to VPC lookups (default: 3600)
            REMOTE_TIMEOUT_SECONDS: Connect/read timeout for AWS calls (default: 30)
            DRY_RUN: If "true", plan without calling mutating APIs (default: false)
            LOG_LEVEL: Root log level (default: INFO)
            ENABLE_JSON_LOGGING: Emit JSON log lines (default: true)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        rules_file = os.environ.get("RULES_FILE")

        return cls(
            region=os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION", ""),
            listener_arn=os.environ.get("ALB_LISTENER_ARN") or None,
            rules_file=Path(rules_file) if rules_file else None,
            vpc_cache_ttl_seconds=get_int("VPC_CACHE_TTL_SECONDS", DEFAULT_VPC_CACHE_TTL_SECONDS),
            remote_timeout_seconds=get_int(
                "REMOTE_TIMEOUT_SECONDS", DEFAULT_REMOTE_TIMEOUT_SECONDS
            ),
            dry_run=get_bool("DRY_RUN", False),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            enable_json_logging=get_bool("ENABLE_JSON_LOGGING", True),
        )
