"""Synthetic drum chart generator.

Writes song folders (notes.mid + song.ini) in the Rock Band / Clone Hero
MIDI convention using mido: a steady groove, the groove with a tom fill
leading into a crash, and the groove with a snare burst. All patterns are
defined inline and are 4/4.
"""

import io
from pathlib import Path

import mido

# Ticks per beat (quarter note)
TICKS_PER_BEAT = 480

# Tick durations
QUARTER = TICKS_PER_BEAT          # 480 ticks
EIGHTH = TICKS_PER_BEAT // 2      # 240 ticks
SIXTEENTH = TICKS_PER_BEAT // 4   # 120 ticks
THIRTY_SECOND = TICKS_PER_BEAT // 8
BAR = TICKS_PER_BEAT * 4          # 1920 ticks

# Expert drums note range starts here; note = EXPERT_DRUMS + lane
EXPERT_DRUMS = 96

# Lanes (Clone Hero convention)
KICK = 0
SNARE = 1
HAT = 2
TOM = 3
CRASH = 4
FLOOR_TOM = 5

NOTE_LENGTH = 10  # ticks between note_on and note_off

ROCK_BEAT: list[tuple[int, int]] = (
    [(EIGHTH * i, HAT) for i in range(8)]
    + [(0, KICK), (QUARTER * 2, KICK), (QUARTER, SNARE), (QUARTER * 3, SNARE)]
)

# Beats 3-4 become 16th-note toms
TOM_FILL_BAR: list[tuple[int, int]] = (
    [(EIGHTH * i, HAT) for i in range(4)]
    + [(0, KICK), (QUARTER, SNARE)]
    + [(QUARTER * 2 + SIXTEENTH * i, TOM if i < 4 else FLOOR_TOM) for i in range(8)]
)

# Beats 3-4 become 32nd-note snares
SNARE_BURST_BAR: list[tuple[int, int]] = (
    [(EIGHTH * i, HAT) for i in range(4)]
    + [(0, KICK), (QUARTER, SNARE)]
    + [(QUARTER * 2 + THIRTY_SECOND * i, SNARE) for i in range(16)]
)


def _delta_track(name: str, events: list[tuple[int, mido.Message | mido.MetaMessage]]) -> mido.MidiTrack:
    """Build a track from (absolute tick, message) pairs."""
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("track_name", name=name, time=0))
    current_tick = 0
    for abs_tick, msg in sorted(events, key=lambda e: e[0]):
        track.append(msg.copy(time=abs_tick - current_tick))
        current_tick = abs_tick
    track.append(mido.MetaMessage("end_of_track", time=1))
    return track


def build_drum_midi(
    bars: list[list[tuple[int, int]]],
    bpm: float = 120.0,
    title: str = "Synthetic Groove",
    sections: list[tuple[int, str]] | None = None,
) -> mido.MidiFile:
    """Build a type-1 chart MIDI with conductor, EVENTS and PART DRUMS tracks.

    Args:
        bars: One list of (tick_in_bar, lane) tuples per bar
        bpm: Tempo in beats per minute
        title: Conductor track name (the song title)
        sections: Optional (bar index, section name) markers

    Returns:
        mido.MidiFile ready to save
    """
    mid = mido.MidiFile(type=1, ticks_per_beat=TICKS_PER_BEAT)

    conductor = [
        (0, mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(bpm))),
        (0, mido.MetaMessage("time_signature", numerator=4, denominator=4)),
    ]
    mid.tracks.append(_delta_track(title, conductor))

    markers = [
        (bar * BAR, mido.MetaMessage("text", text=f"[section {name}]"))
        for bar, name in (sections or [])
    ]
    mid.tracks.append(_delta_track("EVENTS", markers))

    # note_off sorts before note_on at equal ticks
    notes: list[tuple[int, mido.Message]] = []
    for bar_index, bar in enumerate(bars):
        for tick_in_bar, lane in bar:
            abs_tick = bar_index * BAR + tick_in_bar
            note = EXPERT_DRUMS + lane
            notes.append((abs_tick, mido.Message("note_on", note=note, velocity=100)))
            notes.append((abs_tick + NOTE_LENGTH, mido.Message("note_off", note=note, velocity=0)))
    notes.sort(key=lambda e: (e[0], e[1].type == "note_on"))
    mid.tracks.append(_delta_track("PART DRUMS", notes))
    return mid


def midi_bytes(mid: mido.MidiFile) -> bytes:
    buffer = io.BytesIO()
    mid.save(file=buffer)
    return buffer.getvalue()


def song_ini(title: str, artist: str = "Chartfill", charter: str = "patterns.py") -> str:
    return (
        "[song]\n"
        f"name = {title}\n"
        f"artist = {artist}\n"
        "album = Synthetic\n"
        "genre = Test\n"
        "year = 2024\n"
        f"charter = {charter}\n"
        "diff_drums = 4\n"
        "delay = 0\n"
    )


def fixture_bars(kind: str, bars: int = 16) -> list[list[tuple[int, int]]]:
    """Groove bars with the variation for `kind` on the eighth bar."""
    special = {"tom_fill": TOM_FILL_BAR, "snare_burst": SNARE_BURST_BAR}.get(kind)
    pattern = [list(ROCK_BEAT) for _ in range(bars)]
    if special is not None:
        pattern[7] = list(special)
        # Crash on the downbeat that resolves the fill
        pattern[8] = [e for e in pattern[8] if e != (0, HAT)] + [(0, CRASH)]
    return pattern


def generate_fixtures(output_dir: Path, bpm: float = 120.0) -> list[Path]:
    """Write steady_groove/, tom_fill/ and snare_burst/ song folders.

    Returns:
        List of created folder paths
    """
    created = []
    for kind in ("steady_groove", "tom_fill", "snare_burst"):
        title = kind.replace("_", " ").title()
        folder = output_dir / kind
        folder.mkdir(parents=True, exist_ok=True)
        mid = build_drum_midi(fixture_bars(kind), bpm=bpm, title=title, sections=[(0, "Verse"), (8, "Chorus")])
        (folder / "notes.mid").write_bytes(midi_bytes(mid))
        (folder / "song.ini").write_text(song_ini(title))
        created.append(folder)
    return created
