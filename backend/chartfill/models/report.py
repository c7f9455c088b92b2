from pydantic import BaseModel

from chartfill.models.chart import ChartMetadata, ParseIssue
from chartfill.models.fill import ExtractionSummary, FillSegment
from chartfill.models.scan import AudioFingerprintResult, FolderIssue, MetadataIssueType, SongMetadata


class ChartReport(BaseModel):
    chart_md5: str | None = None
    metadata: ChartMetadata | None = None
    song_metadata: SongMetadata | None = None
    folder_issues: list[FolderIssue] = []
    metadata_issues: list[MetadataIssueType] = []
    parse_issues: list[ParseIssue] = []
    fills: list[FillSegment] = []
    summary: ExtractionSummary | None = None
    audio: AudioFingerprintResult | None = None
