"""Tests for notes.mid parsing."""

import io

import mido
import pytest

from chartfill.errors import ChartParseError
from chartfill.models.chart import ChartIssueType, Difficulty, Instrument, NoteFlag
from chartfill.services.notes_parser import parse_notes
from eval.patterns import (
    BAR,
    EXPERT_DRUMS,
    HAT,
    ROCK_BEAT,
    TICKS_PER_BEAT,
    build_drum_midi,
    midi_bytes,
)


def _drum_file(events: list[tuple[int, mido.Message]]) -> bytes:
    """Conductor plus a PART DRUMS track holding raw note messages."""
    mid = mido.MidiFile(type=1, ticks_per_beat=TICKS_PER_BEAT)
    conductor = mido.MidiTrack()
    conductor.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(120), time=0))
    mid.tracks.append(conductor)

    drums = mido.MidiTrack()
    drums.append(mido.MetaMessage("track_name", name="PART DRUMS", time=0))
    current = 0
    for tick, msg in sorted(events, key=lambda e: (e[0], e[1].type == "note_on")):
        drums.append(msg.copy(time=tick - current))
        current = tick
    mid.tracks.append(drums)
    return midi_bytes(mid)


def _hit(tick: int, note: int, length: int = 10) -> list[tuple[int, mido.Message]]:
    return [
        (tick, mido.Message("note_on", note=note, velocity=100)),
        (tick + length, mido.Message("note_off", note=note, velocity=0)),
    ]


def test_generated_groove_round_trips_through_parser() -> None:
    mid = build_drum_midi([ROCK_BEAT, ROCK_BEAT], bpm=120, title="Groove", sections=[(0, "Verse"), (1, "Chorus")])
    chart = parse_notes(midi_bytes(mid), ".mid")

    assert chart.resolution == TICKS_PER_BEAT
    assert chart.name == "Groove"
    assert [t.bpm for t in chart.tempos] == [pytest.approx(120.0)]
    assert [(s.tick, s.name) for s in chart.sections] == [(0, "Verse"), (BAR, "Chorus")]

    drums = chart.get_track(Instrument.drums, Difficulty.expert)
    assert len(drums.notes) == 2 * len(ROCK_BEAT)
    hats = [n for n in drums.notes if n.type == HAT]
    assert hats[1].ms_time == pytest.approx(250.0)
    # Plain (non-pro) tracks never flag cymbals
    assert all(not n.flags & NoteFlag.cymbal for n in drums.notes)


def test_tom_markers_enable_cymbal_flags() -> None:
    yellow = EXPERT_DRUMS + 2
    events = _hit(0, 110, length=TICKS_PER_BEAT) + _hit(0, yellow) + _hit(TICKS_PER_BEAT * 2, yellow)
    chart = parse_notes(_drum_file(events), ".mid")

    tom, cymbal = chart.get_track(Instrument.drums, Difficulty.expert).notes
    assert tom.type == cymbal.type == 2
    assert not tom.flags & NoteFlag.cymbal
    assert cymbal.flags & NoteFlag.cymbal


def test_double_kick_and_lower_difficulties() -> None:
    events = _hit(0, EXPERT_DRUMS - 1) + _hit(0, 84 + 1) + _hit(TICKS_PER_BEAT, 60)
    chart = parse_notes(_drum_file(events), ".mid")

    kick = chart.get_track(Instrument.drums, Difficulty.expert).notes[0]
    assert kick.type == 0 and kick.flags & NoteFlag.double_kick
    assert chart.get_track(Instrument.drums, Difficulty.hard).notes[0].type == 1
    assert chart.get_track(Instrument.drums, Difficulty.easy).notes[0].tick == TICKS_PER_BEAT


def test_unterminated_note_is_an_issue() -> None:
    events = [(0, mido.Message("note_on", note=EXPERT_DRUMS + 1, velocity=100))]
    chart = parse_notes(_drum_file(events), ".mid")

    assert any(i.issue_type == ChartIssueType.unterminated_note for i in chart.issues)
    note = chart.get_track(Instrument.drums, Difficulty.expert).notes[0]
    assert note.length == 0


def test_instrument_named_first_track_is_not_the_title() -> None:
    mid = mido.MidiFile(type=1, ticks_per_beat=TICKS_PER_BEAT)
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("track_name", name="PART DRUMS", time=0))
    track.append(mido.Message("note_on", note=EXPERT_DRUMS, velocity=100, time=0))
    track.append(mido.Message("note_off", note=EXPERT_DRUMS, velocity=0, time=10))
    mid.tracks.append(track)

    chart = parse_notes(midi_bytes(mid), ".mid")
    assert chart.name is None
    assert chart.get_track(Instrument.drums, Difficulty.expert) is not None


def test_garbage_bytes_raise() -> None:
    with pytest.raises(ChartParseError):
        parse_notes(b"[Song]\n{\n}\n", ".mid")


def test_type_two_is_rejected() -> None:
    mid = mido.MidiFile(type=2, ticks_per_beat=TICKS_PER_BEAT)
    mid.tracks.append(mido.MidiTrack())
    buffer = io.BytesIO()
    mid.save(file=buffer)
    with pytest.raises(ChartParseError):
        parse_notes(buffer.getvalue(), ".mid")
