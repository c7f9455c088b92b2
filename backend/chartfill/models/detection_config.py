from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from chartfill.config import settings
from chartfill.errors import InvalidConfigError
from chartfill.maps.lane_maps import get_lane_map
from chartfill.models.chart import Difficulty
from chartfill.models.fill import LaneMap


class Thresholds(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    density_z: float = 1.2
    dist: float = 2.0  # groove (Mahalanobis) distance
    tom_jump: float = 1.5
    min_beats: float = Field(0.75, gt=0)
    max_beats: float = 4.0
    merge_gap_beats: float = Field(0.25, ge=0)
    burst_ms: float = Field(120.0, gt=0)

    @model_validator(mode="after")
    def _check_beat_range(self) -> "Thresholds":
        if self.min_beats > self.max_beats:
            raise ValueError(f"min_beats ({self.min_beats}) must not exceed max_beats ({self.max_beats})")
        return self


class DetectionConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    difficulty: Difficulty = Difficulty.expert
    quant_div: int = Field(4, gt=0)  # grid divisions per bar (4 = quarter notes)
    window_beats: float = Field(1.0, gt=0)
    stride_beats: float = Field(0.25, gt=0)
    lookback_bars: float = Field(8.0, gt=0)
    window_edge_policy: Literal["drop", "clip", "pad"] = "drop"
    ngram_size: int = Field(2, ge=1)
    burst_min_hits: int = Field(3, ge=1)
    min_history_windows: int = Field(2, ge=2)
    covariance_epsilon: float = Field(0.05, gt=0)
    lane_map: LaneMap = Field(default_factory=lambda: get_lane_map(settings.default_lane_map))
    thresholds: Thresholds = Thresholds()

    @field_validator("lane_map", mode="before")
    @classmethod
    def _resolve_lane_map(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return get_lane_map(value)
            except KeyError as e:
                raise ValueError(str(e.args[0])) from e
        return value

    @property
    def lookback_windows(self) -> int:
        return max(1, int(self.lookback_bars * 4 / self.stride_beats))


def validate_config(config: DetectionConfig | dict | None = None) -> DetectionConfig:
    """Build a validated DetectionConfig, raising InvalidConfigError on bad input."""
    if config is None:
        return DetectionConfig()
    try:
        if isinstance(config, DetectionConfig):
            # Re-run validation in case fields were assigned after construction
            return DetectionConfig.model_validate(config.model_dump())
        return DetectionConfig.model_validate(config)
    except ValidationError as e:
        messages = [f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors()]
        raise InvalidConfigError(messages) from e
