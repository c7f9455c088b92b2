from enum import IntFlag, StrEnum

from pydantic import BaseModel, ConfigDict


class Instrument(StrEnum):
    guitar = "guitar"
    guitarcoop = "guitarcoop"
    rhythm = "rhythm"
    bass = "bass"
    drums = "drums"
    keys = "keys"
    guitarghl = "guitarghl"
    guitarcoopghl = "guitarcoopghl"
    rhythmghl = "rhythmghl"
    bassghl = "bassghl"


class Difficulty(StrEnum):
    expert = "expert"
    hard = "hard"
    medium = "medium"
    easy = "easy"


class NoteFlag(IntFlag):
    none = 0
    cymbal = 1
    double_kick = 2
    accent = 4
    ghost = 8
    forced = 16
    tap = 32
    flam = 64


class ChartIssueType(StrEnum):
    no_resolution = "noResolution"
    no_sync_track_section = "noSyncTrackSection"
    bad_section_header = "badSectionHeader"
    unrecognized_line = "unrecognizedLine"
    unterminated_note = "unterminatedNote"
    no_notes = "noNotes"


class ParseIssue(BaseModel):
    issue_type: ChartIssueType
    description: str


class NoteEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    tick: int
    ms_time: float
    length: int  # ticks
    ms_length: float
    type: int  # lane id
    flags: int = NoteFlag.none


class TempoEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    tick: int
    bpm: float
    ms_time: float = 0.0


class TimeSignature(BaseModel):
    model_config = ConfigDict(frozen=True)

    tick: int
    numerator: int = 4
    denominator: int = 4
    ms_time: float = 0.0


class SectionEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    tick: int
    ms_time: float
    name: str


class ChartMetadata(BaseModel):
    name: str | None = None
    artist: str | None = None
    album: str | None = None
    genre: str | None = None
    year: str | None = None
    charter: str | None = None
    delay: float = 0.0  # ms
    preview_start_time: float | None = None  # ms


class TrackData(BaseModel):
    model_config = ConfigDict(frozen=True)

    instrument: Instrument
    difficulty: Difficulty
    note_event_groups: list[list[NoteEvent]]  # one group per tick, ascending

    @property
    def notes(self) -> list[NoteEvent]:
        return [note for group in self.note_event_groups for note in group]


class ParsedChart(BaseModel):
    model_config = ConfigDict(frozen=True)

    resolution: int
    tempos: list[TempoEvent]
    time_signatures: list[TimeSignature] = []
    track_data: list[TrackData] = []
    sections: list[SectionEvent] = []
    metadata: ChartMetadata = ChartMetadata()
    issues: list[ParseIssue] = []

    @property
    def name(self) -> str | None:
        return self.metadata.name

    @property
    def artist(self) -> str | None:
        return self.metadata.artist

    def get_track(self, instrument: Instrument, difficulty: Difficulty) -> TrackData | None:
        for track in self.track_data:
            if track.instrument == instrument and track.difficulty == difficulty:
                return track
        return None


# (tick, length, type, flags) as read from the source, before timing is applied
RawNote = tuple[int, int, int, int]


class RawChart(BaseModel):
    """Grammar-independent parse output, before tick -> ms integration."""

    resolution: int
    tempos: list[tuple[int, float]] = []  # (tick, bpm)
    time_signatures: list[tuple[int, int, int]] = []  # (tick, numerator, denominator)
    tracks: dict[tuple[Instrument, Difficulty], list[RawNote]] = {}
    sections: list[tuple[int, str]] = []
    metadata: ChartMetadata = ChartMetadata()
    issues: list[ParseIssue] = []
