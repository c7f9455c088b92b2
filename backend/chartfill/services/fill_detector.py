"""Statistical drum fill detection.

Slides a beat-sized window across a drums track, measures each window, then
scores it against a causal baseline built from the windows before it:
density z-score, tom/hat/kick shifts, timing spread, voice n-gram novelty
and the Mahalanobis distance of its groove descriptor from recent history.
Windows that exceed a threshold become candidates; nearby candidates are
merged into FillSegments.
"""

import bisect
import logging
from collections import Counter, deque

import numpy as np

from chartfill.errors import DrumTrackNotFoundError
from chartfill.models.chart import Difficulty, Instrument, ParsedChart, TrackData
from chartfill.models.detection_config import DetectionConfig, Thresholds, validate_config
from chartfill.models.fill import AnalysisWindow, DrumVoice, ExtractionSummary, FeatureVector, FillSegment
from chartfill.services import stats
from chartfill.services.grid import get_window_boundaries, quantization_unit, quantize_tick
from chartfill.services.groove_model import groove_distance
from chartfill.services.segment_merger import merge_candidate_windows
from chartfill.services.timeline import Timeline
from chartfill.services.voice_mapper import voice_for_note
from chartfill.services.window_features import (
    TOM_RATIO_FLOOR,
    measure_window,
    ngram_novelty,
    voice_ngrams,
    voice_sequence,
)

logger = logging.getLogger(__name__)

# Per-window series that get a rolling baseline
BASELINE_SERIES = ("note_density", "tom_ratio", "hat_ratio", "kick_ratio", "ioi_std_ms")


def select_drum_track(chart: ParsedChart, difficulty: Difficulty) -> TrackData:
    track = chart.get_track(Instrument.drums, Difficulty(difficulty))
    if track is None:
        raise DrumTrackNotFoundError(str(difficulty))
    return track


def is_candidate(features: FeatureVector, thresholds: Thresholds) -> bool:
    return (
        features.density_z > thresholds.density_z
        or features.groove_dist > thresholds.dist
        or features.tom_ratio_jump > thresholds.tom_jump
    )


def _apply_baseline(
    features: FeatureVector,
    index: int,
    means: dict[str, list[float]],
    stds: dict[str, list[float]],
) -> None:
    """Fill in the scores relative to the lookback windows ending at index - 1."""
    b = index - 1
    features.density_z = stats.z_score(features.note_density, means["note_density"][b], stds["note_density"][b])
    features.tom_ratio_jump = features.tom_ratio / max(means["tom_ratio"][b], TOM_RATIO_FLOOR)
    features.hat_dropout = means["hat_ratio"][b] if features.hat_ratio == 0 else 0.0
    features.kick_drop = means["kick_ratio"][b] if features.kick_ratio == 0 else 0.0
    features.ioi_std_z = stats.z_score(features.ioi_std_ms, means["ioi_std_ms"][b], stds["ioi_std_ms"][b])


def analyze_windows(chart: ParsedChart, config: DetectionConfig | dict | None = None) -> list[AnalysisWindow]:
    """Measure and score every analysis window of the configured drums track, left to right.

    Raises:
        InvalidConfigError: the config fails validation
        DrumTrackNotFoundError: the chart has no drums at the configured difficulty
    """
    config = validate_config(config)
    track = select_drum_track(chart, config.difficulty)
    notes = track.notes
    if not notes:
        return []

    resolution = chart.resolution
    thresholds = config.thresholds
    timeline = Timeline(chart.tempos, resolution)
    voices = [voice_for_note(note, config.lane_map) for note in notes]
    ticks = [note.tick for note in notes]
    cymbal_ticks = {
        quantize_tick(note.tick, resolution, config.quant_div)
        for note, voice in zip(notes, voices)
        if voice == DrumVoice.cymbal
    }

    unit = quantization_unit(resolution, config.quant_div)
    start = int(notes[0].tick // unit * unit)
    end = notes[-1].tick + 1
    boundaries = get_window_boundaries(
        start, end, config.window_beats, config.stride_beats, resolution, config.window_edge_policy
    )

    windows: list[AnalysisWindow] = []
    grams: list[Counter] = []
    for window_start, window_end in boundaries:
        lo = bisect.bisect_left(ticks, window_start)
        hi = bisect.bisect_left(ticks, window_end)
        window_notes, window_voices = notes[lo:hi], voices[lo:hi]
        windows.append(AnalysisWindow(
            start_tick=window_start,
            end_tick=window_end,
            start_ms=timeline.ms_at(window_start),
            end_ms=timeline.ms_at(window_end),
            notes=window_notes,
            features=measure_window(
                window_notes,
                window_voices,
                window_start,
                window_end,
                resolution,
                thresholds.burst_ms,
                config.burst_min_hits,
                cymbal_ticks,
                config.quant_div,
            ),
        ))
        grams.append(voice_ngrams(voice_sequence(window_notes, window_voices), config.ngram_size))

    lookback = config.lookback_windows
    means = {name: stats.rolling_mean([getattr(w.features, name) for w in windows], lookback) for name in BASELINE_SERIES}
    stds = {name: stats.rolling_std_dev([getattr(w.features, name) for w in windows], lookback) for name in BASELINE_SERIES}
    descriptors = np.array([w.features.groove_descriptor() for w in windows])

    baseline_grams: Counter = Counter()
    history: deque[Counter] = deque()
    for i, window in enumerate(windows):
        features = window.features
        if i > 0:
            _apply_baseline(features, i, means, stds)
            features.ngram_novelty = ngram_novelty(grams[i], baseline_grams)
            features.groove_dist = groove_distance(
                descriptors[max(0, i - lookback) : i],
                descriptors[i],
                config.covariance_epsilon,
                config.min_history_windows,
            )
        # Silence is a break, not a fill
        window.is_candidate = bool(window.notes) and is_candidate(features, thresholds)

        baseline_grams.update(grams[i])
        history.append(grams[i])
        if len(history) > lookback:
            baseline_grams -= history.popleft()

    logger.debug(
        f"Analyzed {len(windows)} windows ({sum(w.is_candidate for w in windows)} candidates), "
        f"lookback={lookback}"
    )
    return windows


def detect_fills(
    chart: ParsedChart,
    config: DetectionConfig | dict | None = None,
    song_id: str | None = None,
) -> list[FillSegment]:
    """Detect drum fills in a parsed chart.

    Args:
        chart: Parsed chart containing a drums track
        config: DetectionConfig, a dict of overrides, or None for defaults
        song_id: Tag for the returned segments (defaults to the chart name)

    Returns:
        One FillSegment per merged run of candidate windows, in time order

    Raises:
        InvalidConfigError: the config fails validation
        DrumTrackNotFoundError: the chart has no drums at the configured difficulty
    """
    _, fills = run_detection(chart, config, song_id)
    return fills


def run_detection(
    chart: ParsedChart,
    config: DetectionConfig | dict | None = None,
    song_id: str | None = None,
) -> tuple[list[AnalysisWindow], list[FillSegment]]:
    """detect_fills that also hands back the analysis windows."""
    config = validate_config(config)
    windows = analyze_windows(chart, config)
    song_id = song_id or chart.name or "unknown"
    timeline = Timeline(chart.tempos, chart.resolution)
    fills = merge_candidate_windows(windows, config, chart.resolution, timeline, chart.time_signatures, song_id)
    logger.info(f"Detected {len(fills)} fills in '{song_id}' ({config.difficulty} drums)")
    return windows, fills


def create_extraction_summary(
    chart: ParsedChart,
    fills: list[FillSegment],
    windows: list[AnalysisWindow] | None = None,
    song_id: str | None = None,
) -> ExtractionSummary:
    bpms = [t.bpm for t in chart.tempos] or [0.0]
    timeline = Timeline(chart.tempos, chart.resolution)
    last_tick = max(
        (g[0].tick + max(n.length for n in g) for t in chart.track_data for g in t.note_event_groups),
        default=0,
    )
    windows = windows or []
    return ExtractionSummary(
        song_id=song_id or chart.name or "unknown",
        name=chart.name,
        artist=chart.artist,
        total_fills=len(fills),
        window_count=len(windows),
        candidate_windows=sum(w.is_candidate for w in windows),
        avg_fill_beats=stats.mean([f.duration_beats for f in fills]),
        avg_density_z=stats.mean([f.density_z for f in fills]),
        avg_groove_dist=stats.mean([f.groove_dist for f in fills]),
        min_bpm=min(bpms),
        max_bpm=max(bpms),
        duration_ms=timeline.ms_at(last_tick),
    )


def validate_fill_segments(fills: list[FillSegment], config: DetectionConfig | None = None) -> tuple[list[str], list[str]]:
    """Sanity-check detector output.

    Returns:
        (errors, warnings): errors for inverted or overlapping segments,
        warnings for segments outside the configured beat range
    """
    thresholds = (config or DetectionConfig()).thresholds
    errors: list[str] = []
    warnings: list[str] = []
    for i, fill in enumerate(fills):
        if fill.end_tick <= fill.start_tick or fill.end_ms < fill.start_ms:
            errors.append(f"Fill {i}: end precedes start ({fill.start_tick} -> {fill.end_tick})")
        if i > 0 and fill.start_tick < fills[i - 1].end_tick:
            errors.append(f"Fill {i}: overlaps previous fill ending at tick {fills[i - 1].end_tick}")
        if not thresholds.min_beats <= fill.duration_beats <= thresholds.max_beats:
            warnings.append(
                f"Fill {i}: {fill.duration_beats:.2f} beats outside "
                f"[{thresholds.min_beats}, {thresholds.max_beats}]"
            )
    return errors, warnings
