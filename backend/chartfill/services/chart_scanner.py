import hashlib
import logging
from pathlib import PurePath

from chartfill.errors import ChartParseError
from chartfill.models.scan import (
    ChartFile,
    ChartScanResult,
    FolderIssue,
    FolderIssueType,
    MetadataIssueType,
)
from chartfill.services.notes_parser import CHART_EXTENSIONS, parse_notes_file

logger = logging.getLogger(__name__)

# Preferred first when a folder has both
CHART_NAMES = ("notes.mid", "notes.chart")


def _has_chart_extension(name: str) -> bool:
    return PurePath(name).suffix.lower() in CHART_EXTENSIONS


def find_chart_file(files: list[ChartFile]) -> tuple[ChartFile | None, list[FolderIssue]]:
    """Pick the folder's notes file.

    A correctly named file wins. Otherwise the first misnamed chart file is
    used as a fallback. The issues list says what was wrong with the folder.
    """
    issues: list[FolderIssue] = []
    chart_files = sorted((f for f in files if _has_chart_extension(f.name)), key=lambda f: f.name)

    preferred: ChartFile | None = None
    fallback: ChartFile | None = None
    for file in chart_files:
        if file.name in CHART_NAMES:
            if preferred is None or CHART_NAMES.index(file.name) < CHART_NAMES.index(preferred.name):
                preferred = file
        else:
            issues.append(FolderIssue(
                folder_issue=FolderIssueType.invalid_chart,
                description=f'"{file.name}" is not named "notes{PurePath(file.name).suffix.lower()}".',
            ))
            fallback = fallback or file

    if len(chart_files) > 1:
        issues.append(FolderIssue(
            folder_issue=FolderIssueType.multiple_chart,
            description="This chart has more than one .chart/.mid file.",
        ))
    if not chart_files:
        issues.append(FolderIssue(
            folder_issue=FolderIssueType.no_chart,
            description="This chart doesn't have notes.chart or notes.mid.",
        ))
    return preferred or fallback, issues


def scan_chart(files: list[ChartFile]) -> ChartScanResult:
    """Select, hash and parse a song folder's notes file.

    Folder problems and parse failures come back as issues on the result;
    this never raises for bad input data.
    """
    chart_file, folder_issues = find_chart_file(files)
    if chart_file is None:
        return ChartScanResult(folder_issues=folder_issues)

    chart_md5 = hashlib.md5(chart_file.data).hexdigest()
    try:
        notes_data = parse_notes_file(chart_file.name, chart_file.data)
    except (ChartParseError, ValueError) as e:
        logger.warning(f"Failed to parse {chart_file.name}: {e}")
        folder_issues.append(FolderIssue(
            folder_issue=FolderIssueType.bad_chart,
            description=f'"{chart_file.name}" could not be parsed: {e}',
        ))
        return ChartScanResult(chart_md5=chart_md5, folder_issues=folder_issues)

    metadata_issues = []
    if notes_data.metadata.delay != 0:
        metadata_issues.append(MetadataIssueType.nonzero_offset)

    logger.info(f"Scanned {chart_file.name} ({chart_md5}): {len(notes_data.track_data)} tracks")
    return ChartScanResult(
        chart_md5=chart_md5,
        notes_data=notes_data,
        metadata=notes_data.metadata,
        folder_issues=folder_issues,
        metadata_issues=metadata_issues,
    )
