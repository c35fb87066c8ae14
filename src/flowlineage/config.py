"""⚙️ Lineage Configuration - Pydantic models for polling, layout and timeline.

Configuration comes from two places:
- Environment settings (LINEAGE_* variables) for endpoints and logging
- An optional YAML file for polling backoff and layout tuning

Example YAML:
    polling:
      initial_delay: 1.0
      max_delay: 4.0

    layout:
      node_spacing: 100
      level_spacing: 120
      wide_fan_threshold: 4

    timeline:
      tick_count: 75
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings


class PollingConfig(BaseModel):
    """Backoff settings for polling a long-running lineage query."""

    initial_delay: float = Field(
        default=1.0,
        gt=0,
        description="Seconds to wait before the first status poll",
    )
    max_delay: float = Field(
        default=4.0,
        gt=0,
        description="Upper bound for the wait between two polls",
    )
    backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the delay after each unfinished poll",
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "PollingConfig":
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be greater than or equal to initial_delay")
        return self


class LayoutConfig(BaseModel):
    """Spacing and fan-in/fan-out heuristics for the level layout.

    All values are layout units, not device pixels.
    """

    node_spacing: float = Field(
        default=100.0, gt=0, description="Minimum horizontal gap between nodes"
    )
    level_spacing: float = Field(
        default=120.0, gt=0, description="Wide vertical gap used around dense merges"
    )
    narrow_level_spacing: float = Field(
        default=40.0, gt=0, description="Default vertical gap between levels"
    )
    initial_level_spacing: float = Field(
        default=25.0, ge=0, description="Vertical offset of the root level"
    )
    origin_x: float = Field(default=0.0, description="Horizontal center of the roots")
    origin_y: float = Field(default=0.0, description="Top of the layout")

    # Gap heuristics
    wide_fan_threshold: int = Field(
        default=4,
        ge=1,
        description="A node with at least this many edges widens the gap",
    )
    multi_edge_min: int = Field(
        default=2,
        ge=1,
        description="Edge count at which a node counts as a multi-edge node",
    )
    multi_edge_node_limit: int = Field(
        default=2,
        ge=0,
        description="Widen when more than this many multi-edge nodes share a level",
    )


class TimelineConfig(BaseModel):
    """Event timeline slider settings."""

    tick_count: int = Field(default=75, ge=1, description="Number of slider steps")


class LineageConfig(BaseModel):
    """Complete lineage viewer configuration."""

    polling: PollingConfig = Field(default_factory=PollingConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    timeline: TimelineConfig = Field(default_factory=TimelineConfig)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "LineageConfig":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data.get("lineage", data))

    @classmethod
    def from_dict(cls, data: dict) -> "LineageConfig":
        """Create from a dictionary."""
        return cls(**data)


class Settings(BaseSettings):
    """Environment-based settings."""

    # Backend endpoints
    api_base_url: str = Field(default="http://localhost:8080/nifi-api")
    lineage_path: str = Field(default="controller/provenance/lineage")
    events_path: str = Field(default="controller/provenance/events")
    request_timeout: float = Field(default=30.0, gt=0)

    # Logging
    log_level: str = Field(default="INFO")

    # Optional YAML tuning file
    config_file: str | None = Field(default=None)

    class Config:
        env_prefix = "LINEAGE_"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings from environment."""
    return Settings()


def load_config(path: Path | str | None = None) -> LineageConfig:
    """Load the lineage configuration.

    Args:
        path: YAML file to read (default: LINEAGE_CONFIG_FILE, if set)

    Returns:
        LineageConfig from the file, or defaults when no file is configured
    """
    if path is None:
        path = get_settings().config_file

    if path is None:
        return LineageConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Lineage config not found: {path}")

    return LineageConfig.from_yaml(path)
