from pathlib import Path
import os
from typing import Optional

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.options import HydrologyOptions

ENV_PREFIX = "FMG_HYDROLOGY_"

# Load .env for local runs, without overriding variables already set in the environment
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    for key, value in file_env.items():
        if key.startswith(ENV_PREFIX) and key not in os.environ and value is not None:
            os.environ[key] = value


class Settings(BaseSettings):
    """Hydrology settings pulled from ``FMG_HYDROLOGY_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (plain or json)")

    # Generation Configuration
    seed: str = Field(default="hydrology", description="Seed for the naming random stream")
    sea_level: float = Field(default=1, description="Elevations below this are ocean")
    river_threshold: Optional[int] = Field(default=None, description="Fixed river accumulation threshold")
    min_river_length: int = Field(default=3, description="Shortest river kept, in cells")
    min_lake_cells: int = Field(default=3, description="Smallest lake kept, in cells")
    auto_adjust_threshold: bool = Field(default=False, description="Lower the threshold when rivers are scarce")
    named_rivers: int = Field(default=20, description="How many rivers receive a name")

    def hydrology_options(self, **overrides) -> HydrologyOptions:
        """HydrologyOptions from these settings; keyword arguments win."""
        values = dict(
            seed=self.seed,
            sea_level=self.sea_level,
            river_threshold=self.river_threshold,
            min_river_length=self.min_river_length,
            min_lake_cells=self.min_lake_cells,
            auto_adjust_threshold=self.auto_adjust_threshold,
            named_rivers=self.named_rivers,
        )
        values.update(overrides)
        return HydrologyOptions(**values)


# Instantiate singleton settings object
settings = Settings()
