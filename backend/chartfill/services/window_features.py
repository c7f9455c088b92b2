"""Per-window measurements used by the fill detector.

These functions only look at the notes of one window. Baseline-relative
scores (z-scores, jumps, novelty, groove distance) are filled in by the
detector, which walks the windows in order.
"""

from collections import Counter

import numpy as np

from chartfill.models.chart import NoteEvent
from chartfill.models.fill import DrumVoice, FeatureVector
from chartfill.services import stats
from chartfill.services.grid import next_downbeat, quantize_tick
from chartfill.services.voice_mapper import voice_ratios

# Floor for the baseline tom ratio so grooves without toms still produce a finite jump
TOM_RATIO_FLOOR = 0.1

# Chord members are ordered by voice so n-grams don't depend on source order
VOICE_ORDER = {voice: i for i, voice in enumerate(DrumVoice)}


def inter_onset_intervals(values: list[float]) -> np.ndarray:
    """Gaps between distinct onsets. Chords count as a single onset."""
    onsets = np.unique(np.asarray(values, dtype=float))
    return np.diff(onsets)


def has_same_pad_burst(notes: list[NoteEvent], burst_ms: float, min_hits: int) -> bool:
    """True if some lane has `min_hits` consecutive hits, each within `burst_ms` of the previous."""
    by_lane: dict[int, list[float]] = {}
    for note in notes:
        by_lane.setdefault(note.type, []).append(note.ms_time)

    for times in by_lane.values():
        if len(times) < min_hits:
            continue
        run = 1
        times.sort()
        for prev, cur in zip(times, times[1:]):
            run = run + 1 if cur - prev <= burst_ms else 1
            if run >= min_hits:
                return True
    return min_hits <= 1 and bool(notes)


def has_crash_resolve(window_end: int, cymbal_ticks: set[float], resolution: int, quant_div: int) -> bool:
    """True when a cymbal lands on the next downbeat and that downbeat is within a beat of the window end."""
    downbeat = next_downbeat(window_end, resolution)
    if downbeat - window_end > resolution:
        return False
    return quantize_tick(downbeat, resolution, quant_div) in cymbal_ticks


def voice_sequence(notes: list[NoteEvent], voices: list[DrumVoice]) -> list[DrumVoice]:
    ordered = sorted(zip(notes, voices), key=lambda pair: (pair[0].tick, VOICE_ORDER[pair[1]]))
    return [voice for _, voice in ordered]


def voice_ngrams(sequence: list[DrumVoice], n: int) -> Counter:
    if len(sequence) < n:
        return Counter()
    return Counter(tuple(sequence[i : i + n]) for i in range(len(sequence) - n + 1))


def ngram_novelty(window_grams: Counter, baseline_grams: Counter) -> float:
    """Total-variation distance (half L1) between two n-gram histograms, in [0, 1].

    Either histogram being empty gives 0, since there is nothing to compare.
    """
    window_total = sum(window_grams.values())
    baseline_total = sum(baseline_grams.values())
    if window_total == 0 or baseline_total == 0:
        return 0.0
    keys = set(window_grams) | set(baseline_grams)
    l1 = sum(abs(window_grams[k] / window_total - baseline_grams[k] / baseline_total) for k in keys)
    return l1 / 2


def measure_window(
    notes: list[NoteEvent],
    voices: list[DrumVoice],
    start_tick: int,
    end_tick: int,
    resolution: int,
    burst_ms: float,
    burst_min_hits: int,
    cymbal_ticks: set[float],
    quant_div: int,
) -> FeatureVector:
    """Baseline-independent features of one window."""
    window_beats = (end_tick - start_tick) / resolution
    ratios = voice_ratios(Counter(voices))
    ioi_ms = inter_onset_intervals([n.ms_time for n in notes])
    ioi_ticks = inter_onset_intervals([n.tick for n in notes])

    return FeatureVector(
        note_density=len(notes) / window_beats if window_beats > 0 else 0.0,
        kick_ratio=ratios[DrumVoice.kick],
        snare_ratio=ratios[DrumVoice.snare],
        hat_ratio=ratios[DrumVoice.hat],
        tom_ratio=ratios[DrumVoice.tom],
        cymbal_ratio=ratios[DrumVoice.cymbal],
        ioi_std_ms=stats.standard_deviation(ioi_ms),
        ioi_std_beats=stats.standard_deviation(ioi_ticks / resolution),
        same_pad_burst=has_same_pad_burst(notes, burst_ms, burst_min_hits),
        crash_resolve=has_crash_resolve(end_tick, cymbal_ticks, resolution, quant_div),
    )
