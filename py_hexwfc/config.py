"""Configuration management."""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.adjacency import AdjacencyRules, load_rules
from .core.generation import GenerationOptions
from .core.hex_grid import GridConfig

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "plain")


class Settings(BaseSettings):
    """Application settings pulled from HEXWFC_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HEXWFC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Grid
    grid_width: int = Field(default=10, ge=0, description="Axial q bound of the grid")
    grid_height: int = Field(default=10, ge=0, description="Axial r bound of the grid")
    hex_size: float = Field(default=1.0, gt=0, description="Hex radius for world projection")

    # Generation
    seed: Optional[str] = Field(default=None, description="Random seed (random when unset)")
    step_delay: float = Field(default=0.05, ge=0, description="Seconds to wait per collapse")
    fine_grained: bool = Field(default=False, description="Suspend after each propagation step")
    adjacency: Optional[Dict[str, List[str]]] = Field(
        default=None, description="Terrain name -> allowed neighbour names (JSON)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (plain or json)")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
        return value

    def grid_config(self) -> GridConfig:
        return GridConfig(width=self.grid_width, height=self.grid_height, hex_size=self.hex_size)

    def generation_options(self) -> GenerationOptions:
        return GenerationOptions(
            seed=self.seed, step_delay=self.step_delay, fine_grained=self.fine_grained
        )

    def adjacency_rules(self) -> AdjacencyRules:
        """Rules from the ``adjacency`` setting, or the reference table."""
        return load_rules(self.adjacency)


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""
    return Settings()
