from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from chartfill.models.chart import ChartMetadata, ParsedChart


class ChartFile(BaseModel):
    """One file of a song folder."""

    name: str
    data: bytes


class FolderIssueType(StrEnum):
    no_chart = "noChart"
    invalid_chart = "invalidChart"
    multiple_chart = "multipleChart"
    bad_chart = "badChart"
    no_metadata = "noMetadata"
    invalid_ini = "invalidIni"
    invalid_metadata = "invalidMetadata"
    multiple_ini_files = "multipleIniFiles"
    no_audio = "noAudio"
    invalid_audio = "invalidAudio"
    multiple_audio = "multipleAudio"


class MetadataIssueType(StrEnum):
    nonzero_offset = "nonzeroOffset"
    nonzero_delay = "nonzeroDelay"
    missing_name = "missingName"
    missing_artist = "missingArtist"
    missing_album = "missingAlbum"
    missing_genre = "missingGenre"
    missing_year = "missingYear"
    missing_charter = "missingCharter"
    missing_diff_drums = "missingDiffDrums"
    missing_song_length = "missingSongLength"


class FolderIssue(BaseModel):
    folder_issue: FolderIssueType
    description: str


class ChartScanResult(BaseModel):
    chart_md5: str | None = None
    notes_data: ParsedChart | None = None
    metadata: ChartMetadata | None = None
    folder_issues: list[FolderIssue] = []
    metadata_issues: list[MetadataIssueType] = []


class AudioFingerprintResult(BaseModel):
    audio_hash: list[int] = []
    audio_length: int | None = None  # seconds
    errors: list[str] = []


class NoSection(BaseModel):
    """Key for `key = value` lines that precede every `[section]` header."""

    model_config = ConfigDict(frozen=True)

    def __repr__(self) -> str:
        return "NoSection()"


class NamedSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str


SectionKey = NoSection | NamedSection
IniObject = dict[SectionKey, dict[str, str]]


class IniParseResult(BaseModel):
    ini_object: IniObject = {}
    errors: list[str] = []


class SongMetadata(BaseModel):
    name: str = "Unknown Name"
    artist: str = "Unknown Artist"
    album: str = "Unknown Album"
    genre: str = "Unknown Genre"
    year: str = "Unknown Year"
    charter: str = "Unknown Charter"
    song_length: int | None = None  # ms
    diff_drums: int | None = None
    pro_drums: bool | None = None
    five_lane_drums: bool | None = None
    delay: int = 0  # ms
    preview_start_time: int | None = None  # ms
    icon: str | None = None
    loading_phrase: str | None = None


class IniScanResult(BaseModel):
    metadata: SongMetadata | None = None
    folder_issues: list[FolderIssue] = []
    metadata_issues: list[MetadataIssueType] = []
