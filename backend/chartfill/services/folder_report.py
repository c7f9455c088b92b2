import logging

from chartfill.models.detection_config import DetectionConfig
from chartfill.models.report import ChartReport
from chartfill.models.scan import ChartFile
from chartfill.services.audio_fingerprint import get_audio_fingerprint
from chartfill.services.chart_scanner import scan_chart
from chartfill.services.fill_detector import create_extraction_summary, run_detection
from chartfill.services.ini_scanner import scan_ini
from chartfill.services.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


def build_chart_report(
    files: list[ChartFile],
    config: DetectionConfig | dict | None = None,
    song_id: str | None = None,
    pool: WorkerPool | None = None,
) -> ChartReport:
    """Scan a song folder, detect drum fills and optionally fingerprint its audio.

    Raises:
        InvalidConfigError: the detection config fails validation
        DrumTrackNotFoundError: the chart parsed but has no drums at the configured difficulty
    """
    scan = scan_chart(files)
    ini = scan_ini(files)
    report = ChartReport(
        chart_md5=scan.chart_md5,
        metadata=scan.metadata,
        song_metadata=ini.metadata,
        folder_issues=scan.folder_issues + ini.folder_issues,
        metadata_issues=scan.metadata_issues + ini.metadata_issues,
    )

    if scan.notes_data is not None:
        chart = scan.notes_data
        song_id = song_id or chart.name or (ini.metadata.name if ini.metadata else None)
        windows, fills = run_detection(chart, config, song_id)
        report.parse_issues = chart.issues
        report.fills = fills
        report.summary = create_extraction_summary(chart, fills, windows, song_id)

    if pool is not None:
        report.audio = get_audio_fingerprint(files, pool)

    logger.info(
        f"Report for {song_id or 'folder'}: {len(report.fills)} fills, "
        f"{len(report.folder_issues)} folder issues"
    )
    return report
