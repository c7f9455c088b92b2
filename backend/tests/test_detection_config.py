import pytest

from chartfill.config import settings
from chartfill.errors import InvalidConfigError
from chartfill.maps.lane_maps import PRO_DRUMS, ROCK_BAND_4
from chartfill.models.chart import Difficulty
from chartfill.models.detection_config import DetectionConfig, validate_config


def test_defaults() -> None:
    config = validate_config()
    assert config.difficulty == Difficulty.expert
    assert config.window_beats == 1.0
    assert config.stride_beats == 0.25
    assert config.thresholds.min_beats == 0.75
    # 8 bars of 4 beats at a quarter-beat stride
    assert config.lookback_windows == 128


def test_camel_case_keys_and_lane_map_names() -> None:
    config = validate_config({
        "difficulty": "hard",
        "quantDiv": 16,
        "laneMap": "pro_drums",
        "thresholds": {"densityZ": 2.5, "mergeGapBeats": 0.5},
    })
    assert config.difficulty == Difficulty.hard
    assert config.quant_div == 16
    assert config.lane_map is PRO_DRUMS
    assert config.thresholds.density_z == 2.5
    assert config.thresholds.merge_gap_beats == 0.5


@pytest.mark.parametrize(
    "raw, field",
    [
        ({"windowBeats": 0}, "window_beats"),
        ({"strideBeats": -1}, "stride_beats"),
        ({"quantDiv": 0}, "quant_div"),
        ({"laneMap": "guitar_hero"}, "lane_map"),
        ({"difficulty": "impossible"}, "difficulty"),
        ({"thresholds": {"minBeats": 5, "maxBeats": 4}}, "thresholds"),
    ],
)
def test_invalid_values_are_rejected(raw: dict, field: str) -> None:
    with pytest.raises(InvalidConfigError) as exc_info:
        validate_config(raw)
    assert any(field.split("_")[0] in message.lower() for message in exc_info.value.messages)


def test_mutated_config_is_revalidated() -> None:
    config = DetectionConfig()
    config.window_beats = -2
    with pytest.raises(InvalidConfigError):
        validate_config(config)


def test_lookback_never_below_one_window() -> None:
    assert DetectionConfig(lookback_bars=0.01, stride_beats=4).lookback_windows == 1


def test_default_lane_map_comes_from_settings(monkeypatch) -> None:
    monkeypatch.setattr(settings, "default_lane_map", "rock_band_4")
    assert validate_config().lane_map is ROCK_BAND_4
    assert validate_config({"laneMap": "pro_drums"}).lane_map is PRO_DRUMS
