"""Configuration management for CI-SNAPSHOT.

Loads API credentials and run settings from environment variables (and an
optional .env file) using Pydantic. Settings are constructed once by the CLI
and passed explicitly to the components that need them.

Usage:
    from ci_snapshot.config import Settings

    settings = Settings()  # from env / .env
    settings = Settings(pipelines_to_extract="github.com/acme/app")  # override

    print(settings.pipeline_paths)
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """CI-SNAPSHOT configuration from environment variables.

    Loads from .env file automatically. Validates on instantiation.
    Keyword arguments take precedence over the environment.

    Attributes:
        api_base_url: Base URL of the CI API
        client_id: Client id used to obtain a bearer token
        client_secret: Client secret used to obtain a bearer token
        pipelines_to_extract: Comma separated pipeline paths
        save_to_directory: Root directory of the snapshot
        log_obfuscate_regex: Extra pattern scrubbed from logs (optional)
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR)
        concurrency: Maximum concurrent fetch units per pipeline
        request_timeout: Per-attempt HTTP timeout (seconds)
        max_attempts: HTTP attempts per request including the first
        sse_idle_timeout: Seconds without an event before a stream read ends
        tail_running_logs: Capture the live log tail of running builds/releases
        tail_max_events: Maximum events captured per log tail
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars
    )

    # CI API (REQUIRED)
    api_base_url: str = Field(..., min_length=1, description="Base URL of the CI API")
    client_id: str = Field(..., min_length=1, description="Client id for token exchange")
    client_secret: str = Field(..., min_length=1, description="Client secret for token exchange")

    # Snapshot
    pipelines_to_extract: str = Field(
        default="",
        description="Comma separated list of pipelines to extract (required by extract)",
    )
    save_to_directory: str = Field(default="./mocks", description="Directory to store responses")
    log_obfuscate_regex: str | None = Field(
        default=None,
        description="Regular expression to obfuscate parts of the logs",
    )

    # System Settings
    log_level: str = Field(default="INFO", description="Logging level")

    # Fetching
    concurrency: int = Field(default=10, ge=1, le=100, description="Max concurrent fetch units")
    request_timeout: float = Field(default=10.0, gt=0, description="Per-attempt timeout (s)")
    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per request")
    sse_idle_timeout: float = Field(default=5.0, gt=0, description="Event stream idle window (s)")

    # Live log tails (optional)
    tail_running_logs: bool = Field(
        default=False,
        description="Capture the log tail stream of running builds and releases",
    )
    tail_max_events: int = Field(default=50, ge=1, description="Max events per log tail")

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Ensure the base URL is absolute."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"api_base_url must start with http:// or https://, got '{v}'")
        return v.rstrip("/")

    @field_validator("log_obfuscate_regex")
    @classmethod
    def validate_log_obfuscate_regex(cls, v: str | None) -> str | None:
        """Ensure the log pattern compiles; empty means disabled."""
        if not v:
            return None
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"log_obfuscate_regex is not a valid regular expression: {e}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid:
            raise ValueError(f"log_level must be one of {valid}, got {v}")
        return v_upper

    @property
    def pipeline_paths(self) -> list[str]:
        """Pipeline paths to extract, in order, without blanks or duplicates."""
        result: list[str] = []
        for part in self.pipelines_to_extract.split(","):
            path = part.strip().strip("/")
            if path and path not in result:
                result.append(path)
        return result
