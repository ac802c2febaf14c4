"""Configuration loading.

Precedence (lowest to highest): built-in defaults, YAML config file,
environment variables, command line flags.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path.home() / ".aws-janitor" / "config.yaml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s|d)")
_UNITS = {"d": 86400.0, "h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: Any) -> timedelta:
    """Parse a duration such as ``24h``, ``1h30m``, ``90s``, ``0`` or ``3600``.

    Bare numbers are seconds.

    Raises:
        ValueError: If the value is not a valid non-negative duration
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value < 0:
            raise ValueError(f"Duration cannot be negative: {value}")
        return timedelta(seconds=value)

    text = str(value).strip().lower()
    if re.fullmatch(r"\d+(\.\d+)?", text):
        return timedelta(seconds=float(text))

    if not text or _DURATION_PART.sub("", text):
        raise ValueError(f"Invalid duration: {value!r}")

    seconds = sum(float(amount) * _UNITS[unit] for amount, unit in _DURATION_PART.findall(text))
    return timedelta(seconds=seconds)


def parse_regions(value: Any) -> List[str]:
    """Parse a comma separated string or a list into region codes."""
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value or [])
    return [str(item).strip() for item in items if str(item).strip()]


@dataclass
class Config:
    """Janitor configuration.

    Attributes:
        regions: Regions to sweep, in order
        ttl: Maximum time before a resource is deleted (0 = delete on sight)
        path: Ledger location (s3://bucket/key or a local path)
        aws_profile: AWS profile name (optional)
        log_level: Default log level
        max_retries: Transport-level attempts per AWS API call
        wait_timeout: Seconds to wait for Auto Scaling group deletion
        audit_dir: Directory for YAML run logs (optional)
    """

    regions: List[str] = field(default_factory=lambda: ["us-west-2"])
    ttl: timedelta = field(default_factory=lambda: timedelta(hours=24))
    path: Optional[str] = None
    aws_profile: Optional[str] = None
    log_level: str = "INFO"
    max_retries: int = 100
    wait_timeout: int = 600
    audit_dir: Optional[str] = None

    @classmethod
    def load(cls, config_file: Optional[str] = None) -> "Config":
        """Load configuration from file and environment.

        Args:
            config_file: YAML file to read (default: $AWS_JANITOR_CONFIG or
                ~/.aws-janitor/config.yaml). A missing default file is ignored.

        Raises:
            ValueError: If a configured value is invalid
        """
        config = cls()

        explicit = config_file or os.environ.get("AWS_JANITOR_CONFIG")
        path = Path(explicit).expanduser() if explicit else DEFAULT_CONFIG_FILE
        if path.exists():
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Config file {path} must contain a mapping")
            config.apply(data)
            logger.debug(f"Loaded configuration from {path}")
        elif explicit:
            raise ValueError(f"Config file not found: {path}")

        config.apply(
            {
                "regions": os.environ.get("AWS_JANITOR_REGIONS"),
                "ttl": os.environ.get("AWS_JANITOR_TTL"),
                "path": os.environ.get("AWS_JANITOR_PATH"),
                "aws_profile": os.environ.get("AWS_PROFILE"),
                "log_level": os.environ.get("AWS_JANITOR_LOG_LEVEL"),
            }
        )
        return config

    def apply(self, values: Dict[str, Any]) -> None:
        """Override fields from a mapping, ignoring None values."""
        for key, value in values.items():
            if value is None:
                continue
            if key == "regions":
                self.regions = parse_regions(value)
            elif key == "ttl":
                self.ttl = parse_duration(value)
            elif key in ("max_retries", "wait_timeout"):
                setattr(self, key, int(value))
            elif key == "log_level":
                level = str(value).upper()
                if level not in LOG_LEVELS:
                    raise ValueError(f"Invalid log level: {value} (expected one of {', '.join(LOG_LEVELS)})")
                self.log_level = level
            elif key in ("path", "aws_profile", "audit_dir"):
                setattr(self, key, str(value))
            else:
                raise ValueError(f"Unknown configuration key: {key}")

    def validate(self) -> bool:
        """Validate the configuration.

        Raises:
            ValueError: If any setting is invalid
        """
        if not self.path:
            raise ValueError("A ledger path is required (--path or AWS_JANITOR_PATH)")
        if not self.regions:
            raise ValueError("At least one region is required")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.wait_timeout < 1:
            raise ValueError("wait_timeout must be at least 1 second")
        return True
