"""Parser for notes.mid charts (Rock Band / Clone Hero MIDI convention)."""

import io
import logging
import re

import mido

from chartfill.errors import ChartParseError
from chartfill.models.chart import (
    ChartIssueType,
    ChartMetadata,
    Difficulty,
    Instrument,
    NoteFlag,
    ParseIssue,
    RawChart,
    RawNote,
)

logger = logging.getLogger(__name__)

TRACK_INSTRUMENTS = {
    "PART GUITAR": Instrument.guitar,
    "T1 GEMS": Instrument.guitar,
    "PART GUITAR COOP": Instrument.guitarcoop,
    "PART RHYTHM": Instrument.rhythm,
    "PART BASS": Instrument.bass,
    "PART DRUMS": Instrument.drums,
    "PART KEYS": Instrument.keys,
    "PART GUITAR GHL": Instrument.guitarghl,
    "PART GUITAR COOP GHL": Instrument.guitarcoopghl,
    "PART RHYTHM GHL": Instrument.rhythmghl,
    "PART BASS GHL": Instrument.bassghl,
}

SIX_FRET_INSTRUMENTS = {
    Instrument.guitarghl,
    Instrument.guitarcoopghl,
    Instrument.rhythmghl,
    Instrument.bassghl,
}

# Lowest note number of each difficulty's note range
DRUM_DIFF_STARTS = {
    Difficulty.easy: 60,
    Difficulty.medium: 72,
    Difficulty.hard: 84,
    Difficulty.expert: 96,
}
FIVE_FRET_DIFF_STARTS = {
    Difficulty.easy: 59,
    Difficulty.medium: 71,
    Difficulty.hard: 83,
    Difficulty.expert: 95,
}
SIX_FRET_DIFF_STARTS = {
    Difficulty.easy: 58,
    Difficulty.medium: 70,
    Difficulty.hard: 82,
    Difficulty.expert: 94,
}

# Offset from the difficulty start -> lane
DRUM_OFFSETS = {offset: offset for offset in range(6)}
FIVE_FRET_OFFSETS = {1: 0, 2: 1, 3: 2, 4: 3, 5: 4}
SIX_FRET_OFFSETS = {0: 7, 1: 0, 2: 1, 3: 2, 4: 3, 5: 4, 6: 8}  # 0 = open
FRET_FORCE_OFFSETS = {6, 7}  # five-fret HOPO/strum force markers
SIX_FRET_FORCE_OFFSETS = {7, 8}

# Pro drums tom markers: note -> lane they turn back into a tom
TOM_MARKERS = {110: 2, 111: 3, 112: 4}

SECTION_TEXT_RE = re.compile(r"^\[?(?:section|prc)[ _](.+?)\]?$")

_READ_ERRORS = (OSError, EOFError, ValueError, KeyError, IndexError, TypeError)


def _absolute_messages(track: mido.MidiTrack):
    """Yield (absolute tick, message) pairs for one track."""
    tick = 0
    for msg in track:
        tick += msg.time
        yield tick, msg


def _track_name(track: mido.MidiTrack) -> str | None:
    for msg in track:
        if msg.is_meta and msg.type == "track_name":
            return msg.name.strip()
    return None


def _note_spans(track: mido.MidiTrack, issues: list[ParseIssue], name: str) -> list[tuple[int, int, int]]:
    """Pair note-on/note-off into (note, start tick, length)."""
    open_notes: dict[int, int] = {}
    spans: list[tuple[int, int, int]] = []
    for tick, msg in _absolute_messages(track):
        if msg.type == "note_on" and msg.velocity > 0:
            if msg.note in open_notes:
                # Retrigger without release: close the earlier note here
                start = open_notes.pop(msg.note)
                spans.append((msg.note, start, tick - start))
            open_notes[msg.note] = tick
        elif msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0):
            start = open_notes.pop(msg.note, None)
            if start is not None:
                spans.append((msg.note, start, tick - start))

    for note, start in open_notes.items():
        issues.append(ParseIssue(
            issue_type=ChartIssueType.unterminated_note,
            description=f"[{name}]: note {note} at tick {start} is never released",
        ))
        spans.append((note, start, 0))

    spans.sort(key=lambda s: (s[1], s[0]))
    return spans


def _classify(note: int, starts: dict[Difficulty, int], offsets: dict[int, int]) -> tuple[Difficulty, int] | None:
    for difficulty, start in starts.items():
        offset = note - start
        if offset in offsets:
            return difficulty, offsets[offset]
    return None


def _drum_notes(spans: list[tuple[int, int, int]]) -> dict[Difficulty, list[RawNote]]:
    tom_ranges: dict[int, list[tuple[int, int]]] = {lane: [] for lane in TOM_MARKERS.values()}
    for note, start, length in spans:
        if note in TOM_MARKERS:
            tom_ranges[TOM_MARKERS[note]].append((start, start + length))
    pro_drums = any(tom_ranges.values())

    def is_tom(lane: int, tick: int) -> bool:
        return any(start <= tick < max(end, start + 1) for start, end in tom_ranges.get(lane, []))

    by_difficulty: dict[Difficulty, dict[tuple[int, int], list[int]]] = {}
    for note, start, length in spans:
        for difficulty, diff_start in DRUM_DIFF_STARTS.items():
            offset = note - diff_start
            if offset == -1:
                lane, flags = 0, NoteFlag.double_kick
            elif offset in DRUM_OFFSETS:
                lane, flags = DRUM_OFFSETS[offset], NoteFlag.none
                if pro_drums and lane in tom_ranges and not is_tom(lane, start):
                    flags |= NoteFlag.cymbal
            else:
                continue
            notes = by_difficulty.setdefault(difficulty, {})
            entry = notes.setdefault((start, lane), [length, NoteFlag.none])
            entry[1] |= flags
            break

    return {
        difficulty: [(tick, length, lane, int(flags)) for (tick, lane), (length, flags) in sorted(notes.items())]
        for difficulty, notes in by_difficulty.items()
    }


def _fret_notes(spans: list[tuple[int, int, int]], six_fret: bool) -> dict[Difficulty, list[RawNote]]:
    starts = SIX_FRET_DIFF_STARTS if six_fret else FIVE_FRET_DIFF_STARTS
    offsets = SIX_FRET_OFFSETS if six_fret else FIVE_FRET_OFFSETS
    force_offsets = SIX_FRET_FORCE_OFFSETS if six_fret else FRET_FORCE_OFFSETS

    by_difficulty: dict[Difficulty, list[RawNote]] = {}
    forced: set[tuple[Difficulty, int]] = set()
    for note, start, length in spans:
        for difficulty, diff_start in starts.items():
            if note - diff_start in force_offsets:
                forced.add((difficulty, start))
                break
        else:
            match = _classify(note, starts, offsets)
            if match is not None:
                difficulty, lane = match
                by_difficulty.setdefault(difficulty, []).append((start, length, lane, NoteFlag.none))

    return {
        difficulty: [
            (tick, length, lane, int(NoteFlag.forced) if (difficulty, tick) in forced else flags)
            for tick, length, lane, flags in notes
        ]
        for difficulty, notes in by_difficulty.items()
    }


def parse_midi(data: bytes) -> RawChart:
    """Parse notes.mid bytes into grammar-independent RawChart output.

    Raises:
        ChartParseError: the bytes are not a readable MIDI file
    """
    try:
        midi = mido.MidiFile(file=io.BytesIO(data), clip=True)
    except _READ_ERRORS as e:
        raise ChartParseError(f"Unreadable MIDI file: {e}") from e

    if midi.type == 2:
        raise ChartParseError("Asynchronous (type 2) MIDI files are not supported")
    if midi.ticks_per_beat <= 0:
        raise ChartParseError(f"Invalid MIDI division: {midi.ticks_per_beat}")

    raw = RawChart(resolution=midi.ticks_per_beat, metadata=ChartMetadata())
    for index, track in enumerate(midi.tracks):
        name = _track_name(track)
        # The conductor track's name is the song title
        if index == 0 and name and name != "EVENTS" and name not in TRACK_INSTRUMENTS:
            raw.metadata.name = name

        for tick, msg in _absolute_messages(track):
            if not msg.is_meta:
                continue
            if msg.type == "set_tempo":
                raw.tempos.append((tick, mido.tempo2bpm(msg.tempo)))
            elif msg.type == "time_signature":
                raw.time_signatures.append((tick, msg.numerator, msg.denominator))
            elif name == "EVENTS" and msg.type in ("text", "marker"):
                match = SECTION_TEXT_RE.match(msg.text.strip())
                if match:
                    raw.sections.append((tick, match.group(1).replace("_", " ").strip()))

        instrument = TRACK_INSTRUMENTS.get(name or "")
        if instrument is None:
            continue

        spans = _note_spans(track, raw.issues, name)
        if instrument == Instrument.drums:
            notes = _drum_notes(spans)
        else:
            notes = _fret_notes(spans, instrument in SIX_FRET_INSTRUMENTS)
        for difficulty, track_notes in notes.items():
            raw.tracks.setdefault((instrument, difficulty), []).extend(track_notes)

    logger.info(
        f"Parsed .mid: resolution={raw.resolution}, {len(raw.tracks)} tracks, "
        f"{len(raw.tempos)} tempos, {len(raw.issues)} issues"
    )
    return raw
