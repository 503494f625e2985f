"""
Client configuration schema.

Defaults are Pydantic field defaults; YAML files and command line flags only override them.
Each section validates its own fields.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from zeroclient.shared.dicts import deep_merge_dicts

# ---------------------------------------------------------------------------
# Shared type aliases for common constraints
# ---------------------------------------------------------------------------

PositiveInt = Annotated[int, Field(gt=0)]
PositiveFloat = Annotated[float, Field(gt=0)]
NonNegInt = Annotated[int, Field(ge=0)]
Probability = Annotated[float, Field(ge=0.0, le=1.0)]


# ---------------------------------------------------------------------------
# Base model: all config classes inherit this
# ---------------------------------------------------------------------------


class StrictFrozenModel(BaseModel):
    """Base for all config models: immutable, extra keys forbidden."""

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------


class ServerConfig(StrictFrozenModel):
    """Aggregation server endpoints."""

    url: str = Field(default="http://zero.sjeng.org")
    hash_path: str = Field(default="best-network-hash")
    network_path: str = Field(default="best-network")
    submit_path: str = Field(default="submit")
    timeout_seconds: PositiveFloat = Field(default=60.0)

    def endpoint(self, path: str) -> str:
        """Join the server URL and an endpoint path."""
        return f"{self.url.rstrip('/')}/{path.lstrip('/')}"


class ClientConfig(StrictFrozenModel):
    """Client protocol identity."""

    version: PositiveInt = Field(default=16)


class RetryConfig(StrictFrozenModel):
    """Backoff policy for model refreshes."""

    min_delay_seconds: PositiveInt = Field(default=30)
    max_delay_seconds: PositiveInt = Field(default=60 * 60)
    multiplier: Annotated[float, Field(ge=1.0)] = Field(default=1.5)
    max_retries: PositiveInt = Field(default=4 * 24)

    @model_validator(mode="after")
    def delays_are_ordered(self) -> "RetryConfig":
        if self.max_delay_seconds < self.min_delay_seconds:
            raise ValueError(
                f"max_delay_seconds ({self.max_delay_seconds}) must be >= "
                f"min_delay_seconds ({self.min_delay_seconds})"
            )
        return self


class EngineConfig(StrictFrozenModel):
    """Self-play engine invocation and worker pool sizing."""

    command: list[str] = Field(default_factory=lambda: ["./leelaz"])
    options: list[str] = Field(default_factory=lambda: ["-g", "-q", "-d", "-n", "-m", "30"])
    min_version: str = Field(default="0.12")
    gpus: list[str] = Field(default_factory=list)
    num_gpus: PositiveInt = Field(default=1)
    games_per_gpu: PositiveInt = Field(default=1)
    no_resign_probability: Probability = Field(default=0.2)
    resign_percent: NonNegInt = Field(default=5)
    move_timeout_seconds: PositiveFloat | None = Field(default=None)
    board_size: PositiveInt = Field(default=19)

    @model_validator(mode="after")
    def command_is_not_empty(self) -> "EngineConfig":
        if not self.command:
            raise ValueError("engine command must not be empty")
        return self

    @property
    def gpu_count(self) -> int:
        """Number of GPUs driven; an explicit GPU list wins over num_gpus."""
        return len(self.gpus) if self.gpus else self.num_gpus

    @property
    def num_slots(self) -> int:
        """Total number of concurrent self-play workers."""
        return self.gpu_count * self.games_per_gpu


class StorageConfig(StrictFrozenModel):
    """Local directories for models and game artifacts."""

    networks_dir: str = Field(default="networks")
    games_dir: str = Field(default="games")
    keep_dir: str | None = Field(default=None)
    debug_dir: str | None = Field(default=None)


class SystemConfig(StrictFrozenModel):
    """System-level configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


class Config(StrictFrozenModel):
    """
    Complete client configuration.

    All defaults are defined here in Python. YAML files provide only overrides.
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize config to a plain dict (for JSON, logging, etc.)."""
        return self.model_dump()

    @classmethod
    def default(cls) -> "Config":
        """Return a Config populated with all defaults."""
        return cls()

    def merge(self, overrides: dict[str, Any]) -> "Config":
        """Return a new Config with the provided overrides merged in."""
        merged = deep_merge_dicts(self.model_dump(), overrides)
        return Config.model_validate(merged)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "Config":
        """Create Config from a dict merged over defaults."""
        merged = deep_merge_dicts(cls().model_dump(), config_dict)
        return cls.model_validate(merged)
