"""Tick / beat / measure arithmetic and analysis window generation.

Strong beat and downbeat tests assume 4/4. Measure lookup honors the chart's
time signatures.
"""

import math

from chartfill.models.chart import TimeSignature

BEATS_PER_BAR = 4


def quantization_unit(resolution: int, quant_div: int) -> float:
    """Grid step in ticks: a bar (four beats) split into `quant_div` parts."""
    if resolution <= 0 or quant_div <= 0:
        raise ValueError(f"resolution and quant_div must be positive, got {resolution}, {quant_div}")
    return resolution * BEATS_PER_BAR / quant_div


def quantize_tick(tick: float, resolution: int, quant_div: int) -> float:
    """Snap a tick to the nearest grid line (ties round up)."""
    unit = quantization_unit(resolution, quant_div)
    return math.floor(tick / unit + 0.5) * unit


def create_quantized_grid(start: int, end: int, resolution: int, quant_div: int) -> list[float]:
    """All grid lines in [start, end)."""
    unit = quantization_unit(resolution, quant_div)
    first = math.ceil(start / unit)
    grid = []
    k = first
    while k * unit < end:
        grid.append(k * unit)
        k += 1
    return grid


def ticks_to_beats(ticks: float, resolution: int) -> float:
    return ticks / resolution


def beats_to_ticks(beats: float, resolution: int) -> int:
    return round(beats * resolution)


def snap_to_beat(tick: float, resolution: int) -> int:
    """Floor a tick to the start of its beat."""
    return int(tick // resolution) * resolution


def get_beat_in_measure(tick: float, resolution: int) -> int:
    return int(tick // resolution) % BEATS_PER_BAR


def is_strong_beat(tick: float, resolution: int) -> bool:
    """True on beats 1 and 3 of a 4/4 bar."""
    return tick % resolution == 0 and get_beat_in_measure(tick, resolution) in (0, 2)


def is_downbeat(tick: float, resolution: int) -> bool:
    return tick % (resolution * BEATS_PER_BAR) == 0


def next_downbeat(tick: float, resolution: int) -> int:
    """First 4/4 downbeat at or after `tick`."""
    bar = resolution * BEATS_PER_BAR
    return math.ceil(tick / bar) * bar


def get_window_boundaries(
    start: int,
    end: int,
    window_beats: float,
    stride_beats: float,
    resolution: int,
    edge_policy: str = "drop",
) -> list[tuple[int, int]]:
    """Overlapping [start, end) tick windows stepped by `stride_beats`.

    The edge policy decides what happens to windows that run past `end`:
    "drop" discards them, "clip" truncates them to `end`, "pad" keeps their
    full length.
    """
    if edge_policy not in ("drop", "clip", "pad"):
        raise ValueError(f"Unknown window edge policy '{edge_policy}'")

    window_ticks = max(1, beats_to_ticks(window_beats, resolution))
    stride_ticks = max(1, beats_to_ticks(stride_beats, resolution))

    boundaries: list[tuple[int, int]] = []
    window_start = start
    while window_start < end:
        window_end = window_start + window_ticks
        if window_end > end:
            if edge_policy == "drop":
                break
            if edge_policy == "clip":
                window_end = end
        boundaries.append((window_start, window_end))
        window_start += stride_ticks
    return boundaries


def _measure_ticks(signature: TimeSignature, resolution: int) -> int:
    return max(1, round(resolution * BEATS_PER_BAR * signature.numerator / signature.denominator))


def get_measure_at_tick(
    tick: int, time_signatures: list[TimeSignature], resolution: int
) -> tuple[int, int, int]:
    """Return (1-based measure number, measure start tick, measure end tick).

    Without time signatures the chart is treated as 4/4 from tick 0.
    """
    signatures = sorted(time_signatures, key=lambda ts: ts.tick)
    if not signatures or signatures[0].tick > 0:
        signatures.insert(0, TimeSignature(tick=0))

    measure_number = 1
    for i, signature in enumerate(signatures):
        segment_start = signature.tick
        segment_end = signatures[i + 1].tick if i + 1 < len(signatures) else None
        length = _measure_ticks(signature, resolution)
        if segment_end is None or tick < segment_end:
            index = max(0, (tick - segment_start) // length)
            measure_start = segment_start + index * length
            return measure_number + index, measure_start, measure_start + length
        measure_number += math.ceil((segment_end - segment_start) / length)

    # Unreachable: the last segment is open-ended
    raise AssertionError("time signature walk fell through")
