"""Tests for the .chart text grammar."""

import pytest

from chartfill.errors import ChartParseError
from chartfill.models.chart import ChartIssueType, Difficulty, Instrument, NoteFlag
from chartfill.services.notes_parser import parse_notes

CHART = """\ufeff[Song]
{
  Name = "Through the Fire"
  Artist = "Some Band"
  Year = ", 2004"
  Offset = 0.5
  Resolution = 192
}
[SyncTrack]
{
  0 = TS 4
  0 = B 120000
  768 = TS 6 3
  768 = B 60000
  768 = A 500000
}
[Events]
{
  0 = E "section Intro"
  768 = E "section Verse 1"
  800 = E "lyric hello"
}
[ExpertDrums]
{
  0 = N 0 0
  0 = N 2 0
  0 = N 66 0
  96 = N 32 0
  192 = N 1 0
  192 = N 34 0
  384 = N 3 0
  384 = S 2 192
  900 = N 4 96
}
[HardSingle]
{
  0 = N 0 0
  0 = N 5 0
  192 = N 7 96
}
"""


def _parse(text: str):
    return parse_notes(text.encode("utf-8"), ".chart")


def test_song_metadata() -> None:
    chart = _parse(CHART)
    assert chart.resolution == 192
    assert chart.name == "Through the Fire"
    assert chart.artist == "Some Band"
    assert chart.metadata.year == "2004"
    assert chart.metadata.delay == 500.0


def test_sync_track_and_sections() -> None:
    chart = _parse(CHART)
    assert [(t.tick, t.bpm) for t in chart.tempos] == [(0, 120.0), (768, 60.0)]
    assert chart.tempos[1].ms_time == 2000.0
    assert [(ts.numerator, ts.denominator) for ts in chart.time_signatures] == [(4, 4), (6, 8)]
    assert [s.name for s in chart.sections] == ["Intro", "Verse 1"]


def test_drum_notes_and_modifiers() -> None:
    chart = _parse(CHART)
    drums = chart.get_track(Instrument.drums, Difficulty.expert)
    groups = drums.note_event_groups
    assert [g[0].tick for g in groups] == [0, 96, 192, 384, 900]

    kick, yellow = groups[0]
    assert (kick.type, yellow.type) == (0, 2)
    assert yellow.flags & NoteFlag.cymbal
    assert not kick.flags & NoteFlag.cymbal

    double_kick = groups[1][0]
    assert double_kick.type == 0 and double_kick.flags & NoteFlag.double_kick
    assert groups[2][0].flags & NoteFlag.accent


def test_note_ms_spans_tempo_change() -> None:
    drums = _parse(CHART).get_track(Instrument.drums, Difficulty.expert)
    last = drums.note_event_groups[-1][0]
    # 768 ticks at 120 BPM, then 132 ticks at 60 BPM
    assert last.ms_time == pytest.approx(2000.0 + 132 / 192 * 1000)
    assert last.ms_length == pytest.approx(500.0)


def test_fretted_track_flags() -> None:
    guitar = _parse(CHART).get_track(Instrument.guitar, Difficulty.hard)
    first, open_note = guitar.notes
    assert first.flags & NoteFlag.forced
    assert open_note.type == 7 and open_note.length == 96


def test_unrecognized_lines_are_issues_not_errors() -> None:
    text = CHART.replace("  192 = N 1 0\n", "  192 = N 1 0\n  this is not a note\n  200 = X 1 0\n")
    chart = _parse(text)
    unrecognized = [i for i in chart.issues if i.issue_type == ChartIssueType.unrecognized_line]
    assert len(unrecognized) == 2
    assert len(chart.get_track(Instrument.drums, Difficulty.expert).note_event_groups) == 5


def test_bad_section_header_is_skipped() -> None:
    text = CHART + "[Broken\n{\n  0 = N 1 0\n}\n"
    chart = _parse(text)
    assert any(i.issue_type == ChartIssueType.bad_section_header for i in chart.issues)
    assert chart.get_track(Instrument.drums, Difficulty.expert) is not None


def test_missing_sync_track_defaults_to_120() -> None:
    chart = _parse('[Song]\n{\n  Resolution = 480\n}\n[ExpertDrums]\n{\n  480 = N 1 0\n}\n')
    assert chart.tempos[0].bpm == 120.0
    assert chart.get_track(Instrument.drums, Difficulty.expert).notes[0].ms_time == 500.0
    assert any(i.issue_type == ChartIssueType.no_sync_track_section for i in chart.issues)


def test_zero_tempo_counts_as_missing_sync_track() -> None:
    chart = _parse('[Song]\n{\n  Resolution = 480\n}\n[SyncTrack]\n{\n  0 = B 0\n}\n[ExpertDrums]\n{\n  480 = N 1 0\n}\n')
    assert chart.tempos[0].bpm == 120.0
    assert any(i.issue_type == ChartIssueType.no_sync_track_section for i in chart.issues)


def test_oversized_time_signature_denominator_is_unrecognized() -> None:
    chart = _parse(CHART.replace("  768 = TS 6 3\n", "  768 = TS 4 999999999\n"))
    assert [ts.denominator for ts in chart.time_signatures] == [4]
    assert any(
        i.issue_type == ChartIssueType.unrecognized_line and "999999999" in i.description
        for i in chart.issues
    )


def test_missing_resolution_is_recorded() -> None:
    chart = _parse("[Song]\n{\n}\n[ExpertDrums]\n{\n  192 = N 1 0\n}\n")
    assert chart.resolution == 192
    assert any(i.issue_type == ChartIssueType.no_resolution for i in chart.issues)


@pytest.mark.parametrize(
    "data",
    [
        b"MThd\x00\x00\x00\x06\x00\x01\x00\x02\x01\xe0",
        b"",
        b"[Song]\n{\n  Resolution = 192\n",
        b"[Song]\n}\n",
    ],
)
def test_structural_failures_raise(data: bytes) -> None:
    with pytest.raises(ChartParseError):
        parse_notes(data, ".chart")


def test_unknown_extension_raises() -> None:
    with pytest.raises(ChartParseError):
        parse_notes(b"", ".txt")
