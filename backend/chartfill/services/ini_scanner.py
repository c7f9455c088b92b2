import logging

from chartfill.models.scan import (
    ChartFile,
    FolderIssue,
    FolderIssueType,
    IniScanResult,
    MetadataIssueType,
    SongMetadata,
)
from chartfill.services.ini_parser import get_section, parse_config

logger = logging.getLogger(__name__)

INI_NAME = "song.ini"

# SongMetadata field -> ini keys, first match wins
TEXT_KEYS = {
    "name": ("name", "title"),
    "artist": ("artist",),
    "album": ("album",),
    "genre": ("genre",),
    "year": ("year",),
    "charter": ("charter", "frets"),
    "icon": ("icon",),
    "loading_phrase": ("loading_phrase",),
}
INT_KEYS = {
    "song_length": "song_length",
    "diff_drums": "diff_drums",
    "delay": "delay",
    "preview_start_time": "preview_start_time",
}
BOOL_KEYS = {
    "pro_drums": "pro_drums",
    "five_lane_drums": "five_lane_drums",
}

MISSING_TEXT_ISSUES = {
    "name": MetadataIssueType.missing_name,
    "artist": MetadataIssueType.missing_artist,
    "album": MetadataIssueType.missing_album,
    "genre": MetadataIssueType.missing_genre,
    "year": MetadataIssueType.missing_year,
    "charter": MetadataIssueType.missing_charter,
}


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return None


def _to_bool(value: str | None) -> bool | None:
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    return None


def _find_ini_file(files: list[ChartFile]) -> tuple[ChartFile | None, list[FolderIssue]]:
    issues: list[FolderIssue] = []
    ini_files = [f for f in files if f.name.lower().endswith(".ini")]
    chosen: ChartFile | None = None
    for file in ini_files:
        if file.name.lower() != INI_NAME:
            issues.append(FolderIssue(
                folder_issue=FolderIssueType.invalid_ini,
                description=f'"{file.name}" is not named "{INI_NAME}".',
            ))
            continue
        chosen = file

    if sum(f.name.lower() == INI_NAME for f in ini_files) > 1:
        issues.append(FolderIssue(
            folder_issue=FolderIssueType.multiple_ini_files,
            description="This chart has multiple .ini files.",
        ))
    if chosen is None:
        issues.append(FolderIssue(
            folder_issue=FolderIssueType.no_metadata,
            description=f'This chart doesn\'t have "{INI_NAME}".',
        ))
    return chosen, issues


def extract_song_metadata(values: dict[str, str]) -> tuple[SongMetadata, list[MetadataIssueType]]:
    """Build SongMetadata from a [song] section, noting which fields were absent."""
    fields: dict = {}
    issues: list[MetadataIssueType] = []

    for field, keys in TEXT_KEYS.items():
        value = next((values[k] for k in keys if values.get(k)), None)
        if value is not None:
            fields[field] = value
        elif field in MISSING_TEXT_ISSUES:
            issues.append(MISSING_TEXT_ISSUES[field])

    for field, key in INT_KEYS.items():
        value = _to_int(values.get(key))
        if value is not None:
            fields[field] = value
    for field, key in BOOL_KEYS.items():
        value = _to_bool(values.get(key))
        if value is not None:
            fields[field] = value

    metadata = SongMetadata(**fields)
    if metadata.diff_drums is None or metadata.diff_drums < 0:
        issues.append(MetadataIssueType.missing_diff_drums)
    if metadata.song_length is None:
        issues.append(MetadataIssueType.missing_song_length)
    if metadata.delay != 0:
        issues.append(MetadataIssueType.nonzero_delay)
    return metadata, issues


def scan_ini(files: list[ChartFile]) -> IniScanResult:
    """Read song.ini metadata from a song folder."""
    ini_file, folder_issues = _find_ini_file(files)
    if ini_file is None:
        return IniScanResult(folder_issues=folder_issues)

    parsed = parse_config(ini_file)
    song = get_section(parsed.ini_object, "song")
    if song is None:
        folder_issues.append(FolderIssue(
            folder_issue=FolderIssueType.invalid_metadata,
            description=f'"{ini_file.name}" doesn\'t have a "[song]" section.',
        ))
        return IniScanResult(folder_issues=folder_issues)

    metadata, metadata_issues = extract_song_metadata(song)
    logger.debug(f"Read {ini_file.name}: '{metadata.name}' by {metadata.artist}")
    return IniScanResult(metadata=metadata, folder_issues=folder_issues, metadata_issues=metadata_issues)
