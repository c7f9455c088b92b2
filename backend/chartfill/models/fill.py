from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from chartfill.models.chart import NoteEvent


class DrumVoice(StrEnum):
    kick = "kick"
    snare = "snare"
    hat = "hat"
    tom = "tom"
    cymbal = "cymbal"
    unknown = "unknown"


class LaneMap(BaseModel):
    """A game's drum lane convention: lane id -> voice."""

    model_config = ConfigDict(frozen=True)

    name: str
    voices: dict[int, DrumVoice]
    # Used instead of `voices` when the note carries the cymbal flag
    cymbal_voices: dict[int, DrumVoice] = {}


class FeatureVector(BaseModel):
    note_density: float = 0.0  # notes per beat
    density_z: float = 0.0
    kick_ratio: float = 0.0
    snare_ratio: float = 0.0
    hat_ratio: float = 0.0
    tom_ratio: float = 0.0
    cymbal_ratio: float = 0.0
    tom_ratio_jump: float = 0.0
    hat_dropout: float = 0.0
    kick_drop: float = 0.0
    ioi_std_ms: float = 0.0
    ioi_std_beats: float = 0.0
    ioi_std_z: float = 0.0
    ngram_novelty: float = 0.0  # 0-1
    same_pad_burst: bool = False
    crash_resolve: bool = False
    groove_dist: float = 0.0

    def groove_descriptor(self) -> list[float]:
        """Tempo-independent description of the groove inside one window."""
        return [
            self.note_density,
            self.kick_ratio,
            self.snare_ratio,
            self.hat_ratio,
            self.tom_ratio,
            self.cymbal_ratio,
            self.ioi_std_beats,
        ]


class AnalysisWindow(BaseModel):
    start_tick: int
    end_tick: int
    start_ms: float
    end_ms: float
    notes: list[NoteEvent] = []
    features: FeatureVector = FeatureVector()
    is_candidate: bool = False


class FillSegment(BaseModel):
    song_id: str
    start_tick: int
    end_tick: int
    start_ms: float
    end_ms: float
    duration_beats: float
    window_count: int
    measure_number: int = 0  # 1-based
    measure_start_tick: int = 0
    measure_end_tick: int = 0
    measure_start_ms: float = 0.0
    measure_end_ms: float = 0.0
    # Aggregated (max) over the merged windows
    density_z: float = 0.0
    tom_ratio_jump: float = 0.0
    hat_dropout: float = 0.0
    kick_drop: float = 0.0
    ioi_std_z: float = 0.0
    ngram_novelty: float = 0.0
    groove_dist: float = 0.0
    same_pad_burst: bool = False
    crash_resolve: bool = False


class ExtractionSummary(BaseModel):
    song_id: str
    name: str | None = None
    artist: str | None = None
    total_fills: int
    window_count: int
    candidate_windows: int
    avg_fill_beats: float = 0.0
    avg_density_z: float = 0.0
    avg_groove_dist: float = 0.0
    min_bpm: float
    max_bpm: float
    duration_ms: float
