"""Hydrology options."""

from dataclasses import dataclass
from typing import Optional

from .exceptions import ConfigurationError


@dataclass
class HydrologyOptions:
    """Tuning for every stage of the hydrology pass.

    Defaults follow Fantasy Map Generator: 3-cell
    minimum rivers and lakes, log10 width scale of 5 capped at 20, rivers
    below 30 mm mean precipitation are seasonal.
    """

    sea_level: float = 1  # Elevations below this are ocean
    seed: str = "hydrology"  # Used when no PRNG is injected

    # Pit filling
    lake_depth_tolerance: float = 0.0  # Raise above original needed to mark a lake candidate

    # Rivers
    river_threshold: Optional[int] = None  # Fixed accumulation threshold, overrides the policy below
    min_river_threshold: int = 20  # Floor of the proportional threshold
    river_threshold_fraction: float = 0.005  # Share of land cells
    min_river_length: int = 3  # Shorter traces are discarded
    auto_adjust_threshold: bool = False  # Lower the threshold until target_rivers exist
    target_rivers: int = 10
    min_threshold: int = 8
    max_threshold_adjustments: int = 5

    # Lakes
    min_lake_cells: int = 3
    evaporation_rate: float = 1.0  # Per cell at 0°C with no precipitation
    evaporation_precipitation_scale: float = 50.0
    brackish_inflow_ratio: float = 2.0  # Open lakes with inflow below ratio * evaporation

    # Attributes
    width_scale: float = 5.0
    max_river_width: int = 20
    seasonal_precipitation: float = 30.0
    seasonal_width_reduction: float = 0.5
    major_river_width: int = 5  # Named with a prefix ("Great Alder") from this width
    named_rivers: int = 20
    delta_min_accumulation: int = 500
    delta_search_radius: int = 5
    delta_channel_step: int = 1000  # One extra channel per this much accumulation
    max_delta_channels: int = 4

    # Climate fallbacks when the graph carries no climate data
    default_temperature: float = 15.0
    default_precipitation: float = 50.0

    def validate(self) -> None:
        """Raise ConfigurationError for options no stage can work with."""
        if self.min_river_length < 0:
            raise ConfigurationError(f"min_river_length must be >= 0, got {self.min_river_length}")
        if self.river_threshold is not None and self.river_threshold < 1:
            raise ConfigurationError(f"river_threshold must be >= 1, got {self.river_threshold}")
        if self.min_river_threshold < 1:
            raise ConfigurationError(f"min_river_threshold must be >= 1, got {self.min_river_threshold}")
        if not 0.0 <= self.river_threshold_fraction <= 1.0:
            raise ConfigurationError(
                f"river_threshold_fraction must be within [0, 1], got {self.river_threshold_fraction}"
            )
        if self.min_threshold < 1 or self.target_rivers < 0 or self.max_threshold_adjustments < 0:
            raise ConfigurationError("Threshold auto-adjustment settings must be positive")
        if self.lake_depth_tolerance < 0:
            raise ConfigurationError(f"lake_depth_tolerance must be >= 0, got {self.lake_depth_tolerance}")
        if self.min_lake_cells < 1:
            raise ConfigurationError(f"min_lake_cells must be >= 1, got {self.min_lake_cells}")
        if self.evaporation_rate <= 0 or self.evaporation_precipitation_scale <= 0:
            raise ConfigurationError("Evaporation rate and precipitation scale must be positive")
        if self.width_scale <= 0:
            raise ConfigurationError(f"width_scale must be positive, got {self.width_scale}")
        if self.max_river_width < 1:
            raise ConfigurationError(f"max_river_width must be >= 1, got {self.max_river_width}")
        if not 0.0 <= self.seasonal_width_reduction < 1.0:
            raise ConfigurationError(
                f"seasonal_width_reduction must be within [0, 1), got {self.seasonal_width_reduction}"
            )
        if self.named_rivers < 0:
            raise ConfigurationError(f"named_rivers must be >= 0, got {self.named_rivers}")
        if self.delta_min_accumulation < 1 or self.delta_search_radius < 1 or self.delta_channel_step < 1:
            raise ConfigurationError("Delta settings must be positive")
        if self.max_delta_channels < 2:
            raise ConfigurationError(f"max_delta_channels must be >= 2, got {self.max_delta_channels}")
