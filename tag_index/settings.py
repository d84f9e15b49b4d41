"""
Service configuration with fail-closed defaults.

Environment variables control behavior:
- DYNAMODB_TABLE_INDEXES: Table holding the index records (required)
- AWS_REGION: Region for the DynamoDB client (default: boto3 resolution chain)
- DYNAMODB_ENDPOINT_URL: Override endpoint, e.g. DynamoDB Local (default: none)
- LOG_LEVEL: Root log level (default: INFO)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from tag_index.errors import ConfigurationError


def _req(name: str) -> str:
    """Get required environment variable or raise."""
    v = os.getenv(name)
    if not v:
        raise ConfigurationError(f"Missing required env var: {name}")
    return v


def _opt(name: str, default: str) -> str:
    """Get optional environment variable with default."""
    return os.getenv(name, default)


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the index service."""

    DYNAMODB_TABLE_INDEXES: str

    AWS_REGION: str = ""
    DYNAMODB_ENDPOINT_URL: str = ""
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        if not self.DYNAMODB_TABLE_INDEXES:
            raise ConfigurationError("DYNAMODB_TABLE_INDEXES must not be empty")

    @staticmethod
    def load() -> Settings:
        """Load settings from environment variables."""
        return Settings(
            DYNAMODB_TABLE_INDEXES=_req("DYNAMODB_TABLE_INDEXES"),
            AWS_REGION=_opt("AWS_REGION", ""),
            DYNAMODB_ENDPOINT_URL=_opt("DYNAMODB_ENDPOINT_URL", ""),
            LOG_LEVEL=_opt("LOG_LEVEL", "INFO"),
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for an entry point."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
