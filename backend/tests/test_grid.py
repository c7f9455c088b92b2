"""Unit tests for grid arithmetic and window generation."""

import pytest

from chartfill.models.chart import TimeSignature
from chartfill.services.grid import (
    create_quantized_grid,
    get_measure_at_tick,
    get_window_boundaries,
    is_downbeat,
    is_strong_beat,
    next_downbeat,
    quantize_tick,
    snap_to_beat,
)


def test_quantize_tick_snaps_to_nearest_unit() -> None:
    # quant_div 16 at resolution 192 is a 48-tick grid
    assert quantize_tick(50, 192, 16) == 48
    assert quantize_tick(23, 192, 16) == 0
    assert quantize_tick(24, 192, 16) == 48


@pytest.mark.parametrize("resolution", [1, 96, 192, 480, 1000])
@pytest.mark.parametrize("quant_div", [1, 3, 4, 7, 12, 16, 24, 32])
def test_quantize_tick_is_idempotent(resolution: int, quant_div: int) -> None:
    for tick in range(0, resolution * 8, max(1, resolution // 13)):
        once = quantize_tick(tick, resolution, quant_div)
        assert quantize_tick(once, resolution, quant_div) == once


def test_quantize_rejects_non_positive() -> None:
    with pytest.raises(ValueError):
        quantize_tick(10, 192, 0)


def test_quantized_grid() -> None:
    assert create_quantized_grid(0, 192 * 4, 192, 8) == [0, 96, 192, 288, 384, 480, 576, 672]


def test_window_boundaries_drop_short_tail() -> None:
    windows = get_window_boundaries(0, 400, 1, 0.5, 192)
    assert windows == [(0, 192), (96, 288), (192, 384)]


def test_window_boundaries_clip_and_pad() -> None:
    clipped = get_window_boundaries(0, 400, 1, 0.5, 192, edge_policy="clip")
    assert clipped[-2:] == [(288, 400), (384, 400)]
    padded = get_window_boundaries(0, 400, 1, 0.5, 192, edge_policy="pad")
    assert padded[-1] == (384, 576)


def test_window_boundaries_unknown_policy() -> None:
    with pytest.raises(ValueError):
        get_window_boundaries(0, 400, 1, 0.5, 192, edge_policy="wrap")


def test_beat_helpers_assume_four_four() -> None:
    assert is_downbeat(768, 192)
    assert not is_downbeat(192, 192)
    assert is_strong_beat(384, 192)
    assert not is_strong_beat(576, 192)
    assert not is_strong_beat(390, 192)
    assert next_downbeat(770, 192) == 1536
    assert next_downbeat(768, 192) == 768
    assert snap_to_beat(300, 192) == 192


def test_measure_lookup_without_signatures() -> None:
    assert get_measure_at_tick(800, [], 192) == (2, 768, 1536)


def test_measure_lookup_across_signature_change() -> None:
    signatures = [TimeSignature(tick=0, numerator=4), TimeSignature(tick=1536, numerator=3)]
    # Two 4/4 bars, then 3/4 bars of 576 ticks
    assert get_measure_at_tick(1536, signatures, 192) == (3, 1536, 2112)
    assert get_measure_at_tick(2200, signatures, 192) == (4, 2112, 2688)
