"""Tick -> millisecond integration over a chart's tempo map."""

import bisect
import logging
from itertools import groupby

from chartfill.models.chart import (
    ChartIssueType,
    NoteEvent,
    ParsedChart,
    ParseIssue,
    RawChart,
    SectionEvent,
    TempoEvent,
    TimeSignature,
    TrackData,
)

logger = logging.getLogger(__name__)

DEFAULT_BPM = 120.0


def build_tempo_map(tempos: list[tuple[int, float]], resolution: int) -> list[TempoEvent]:
    """Sort tempo changes and stamp each with its millisecond position.

    The first tempo governs from tick 0. Several changes on one tick keep
    the last one. No tempos at all gives a single DEFAULT_BPM entry.
    """
    by_tick: dict[int, float] = {}
    for tick, bpm in sorted(tempos, key=lambda t: t[0]):
        if bpm > 0:
            by_tick[tick] = bpm

    if not by_tick:
        return [TempoEvent(tick=0, bpm=DEFAULT_BPM, ms_time=0.0)]

    ordered = sorted(by_tick.items())
    if ordered[0][0] > 0:
        ordered.insert(0, (0, ordered[0][1]))

    tempo_map: list[TempoEvent] = []
    ms_time = 0.0
    prev_tick, prev_bpm = ordered[0]
    for tick, bpm in ordered:
        ms_time += (tick - prev_tick) / resolution * 60000 / prev_bpm
        tempo_map.append(TempoEvent(tick=tick, bpm=bpm, ms_time=ms_time))
        prev_tick, prev_bpm = tick, bpm
    return tempo_map


class Timeline:
    """Converts chart ticks to milliseconds, piecewise per tempo segment."""

    def __init__(self, tempos: list[TempoEvent], resolution: int):
        if resolution <= 0:
            raise ValueError(f"resolution must be positive, got {resolution}")
        self.resolution = resolution
        self.tempos = tempos or [TempoEvent(tick=0, bpm=DEFAULT_BPM, ms_time=0.0)]
        self._ticks = [t.tick for t in self.tempos]

    def tempo_at(self, tick: float) -> TempoEvent:
        index = max(0, bisect.bisect_right(self._ticks, tick) - 1)
        return self.tempos[index]

    def ms_at(self, tick: float) -> float:
        tempo = self.tempo_at(tick)
        return tempo.ms_time + (tick - tempo.tick) / self.resolution * 60000 / tempo.bpm

    def ms_range(self, start_tick: float, end_tick: float) -> tuple[float, float]:
        return self.ms_at(start_tick), self.ms_at(end_tick)

    def ms_length(self, tick: float, length: float) -> float:
        """Duration of a span, stretched or squeezed by tempo changes inside it."""
        return self.ms_at(tick + length) - self.ms_at(tick)


def _group_notes(raw_notes, timeline: Timeline) -> list[list[NoteEvent]]:
    groups = []
    ordered = sorted(raw_notes, key=lambda n: (n[0], n[2]))
    for tick, notes in groupby(ordered, key=lambda n: n[0]):
        ms_time = timeline.ms_at(tick)
        groups.append([
            NoteEvent(
                tick=tick,
                ms_time=ms_time,
                length=length,
                ms_length=timeline.ms_length(tick, length),
                type=note_type,
                flags=flags,
            )
            for _, length, note_type, flags in notes
        ])
    return groups


def assemble_chart(raw: RawChart) -> ParsedChart:
    """Turn grammar-level parse output into a timed, immutable ParsedChart."""
    issues = list(raw.issues)
    if not any(bpm > 0 for _, bpm in raw.tempos):
        issues.append(ParseIssue(
            issue_type=ChartIssueType.no_sync_track_section,
            description=f"Chart has no tempo events; assuming {DEFAULT_BPM:g} BPM",
        ))

    tempo_map = build_tempo_map(raw.tempos, raw.resolution)
    timeline = Timeline(tempo_map, raw.resolution)

    time_signatures = [
        TimeSignature(tick=tick, numerator=num, denominator=den, ms_time=timeline.ms_at(tick))
        for tick, num, den in sorted(raw.time_signatures)
    ]

    track_data = []
    for (instrument, difficulty), raw_notes in raw.tracks.items():
        if not raw_notes:
            continue
        track_data.append(TrackData(
            instrument=instrument,
            difficulty=difficulty,
            note_event_groups=_group_notes(raw_notes, timeline),
        ))

    if not track_data:
        issues.append(ParseIssue(issue_type=ChartIssueType.no_notes, description="Chart has no notes"))

    sections = [
        SectionEvent(tick=tick, ms_time=timeline.ms_at(tick), name=name)
        for tick, name in sorted(raw.sections, key=lambda s: s[0])
    ]

    logger.debug(
        f"Assembled chart: {len(track_data)} tracks, {len(tempo_map)} tempos, {len(issues)} issues"
    )
    return ParsedChart(
        resolution=raw.resolution,
        tempos=tempo_map,
        time_signatures=time_signatures,
        track_data=track_data,
        sections=sections,
        metadata=raw.metadata,
        issues=issues,
    )
