import logging

from chartfill.models.chart import TimeSignature
from chartfill.models.detection_config import DetectionConfig
from chartfill.models.fill import AnalysisWindow, FillSegment
from chartfill.services.grid import get_measure_at_tick
from chartfill.services.timeline import Timeline

logger = logging.getLogger(__name__)

MAX_SCORES = ("density_z", "tom_ratio_jump", "hat_dropout", "kick_drop", "ioi_std_z", "ngram_novelty", "groove_dist")
ANY_FLAGS = ("same_pad_burst", "crash_resolve")


def group_candidate_windows(windows: list[AnalysisWindow], merge_gap_ticks: float) -> list[list[AnalysisWindow]]:
    """Split candidate windows into runs; a run continues while the gap to its end is within `merge_gap_ticks`."""
    runs: list[list[AnalysisWindow]] = []
    run_end = 0
    for window in windows:
        if not window.is_candidate:
            continue
        if runs and window.start_tick - run_end <= merge_gap_ticks:
            runs[-1].append(window)
            run_end = max(run_end, window.end_tick)
        else:
            runs.append([window])
            run_end = window.end_tick
    return runs


def build_fill_segment(
    run: list[AnalysisWindow],
    song_id: str,
    resolution: int,
    timeline: Timeline,
    time_signatures: list[TimeSignature],
) -> FillSegment:
    start_tick = min(w.start_tick for w in run)
    end_tick = max(w.end_tick for w in run)
    measure_number, measure_start, measure_end = get_measure_at_tick(start_tick, time_signatures, resolution)

    scores = {name: max(getattr(w.features, name) for w in run) for name in MAX_SCORES}
    flags = {name: any(getattr(w.features, name) for w in run) for name in ANY_FLAGS}

    return FillSegment(
        song_id=song_id,
        start_tick=start_tick,
        end_tick=end_tick,
        start_ms=timeline.ms_at(start_tick),
        end_ms=timeline.ms_at(end_tick),
        duration_beats=(end_tick - start_tick) / resolution,
        window_count=len(run),
        measure_number=measure_number,
        measure_start_tick=measure_start,
        measure_end_tick=measure_end,
        measure_start_ms=timeline.ms_at(measure_start),
        measure_end_ms=timeline.ms_at(measure_end),
        **scores,
        **flags,
    )


def merge_candidate_windows(
    windows: list[AnalysisWindow],
    config: DetectionConfig,
    resolution: int,
    timeline: Timeline,
    time_signatures: list[TimeSignature] | None = None,
    song_id: str = "unknown",
) -> list[FillSegment]:
    """Merge candidate runs into fill segments and drop runs outside [min_beats, max_beats]."""
    thresholds = config.thresholds
    runs = group_candidate_windows(windows, thresholds.merge_gap_beats * resolution)

    segments = []
    for run in runs:
        duration_beats = (max(w.end_tick for w in run) - run[0].start_tick) / resolution
        if duration_beats < thresholds.min_beats or duration_beats > thresholds.max_beats:
            logger.debug(
                f"Discarding candidate run at tick {run[0].start_tick}: {duration_beats:.2f} beats "
                f"outside [{thresholds.min_beats}, {thresholds.max_beats}]"
            )
            continue
        segments.append(build_fill_segment(run, song_id, resolution, timeline, time_signatures or []))
    return segments
