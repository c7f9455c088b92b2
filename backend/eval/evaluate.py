"""CLI entry point for scanning chart libraries for drum fills.

Subcommands:
  generate-fixtures  Write synthetic song folders (notes.mid + song.ini)
  scan               Scan every song folder under a directory and report fills

Usage (from backend/ directory):
  uv run python -m eval.evaluate generate-fixtures --output-dir ./eval/songs --bpm 120
  uv run python -m eval.evaluate scan \\
      --songs-dir ./eval/songs --difficulty expert --output-json ./eval/fills.json
"""

import argparse
import logging
import sys
from pathlib import Path

CHART_SUFFIXES = {".chart", ".mid"}


def _find_song_folders(songs_dir: Path) -> list[Path]:
    """Every directory under songs_dir that directly contains a .chart or .mid file."""
    folders = {p.parent for p in songs_dir.rglob("*") if p.is_file() and p.suffix.lower() in CHART_SUFFIXES}
    return sorted(folders)


def _cmd_generate_fixtures(args: argparse.Namespace) -> None:
    from eval.patterns import generate_fixtures

    output_dir = Path(args.output_dir)
    print(f"Generating song folders → {output_dir}")
    created = generate_fixtures(output_dir, bpm=args.bpm)
    print(f"Done. Created {len(created)} song folders.")


def _cmd_scan(args: argparse.Namespace) -> None:
    from chartfill.config import settings
    from chartfill.errors import ChartfillError
    from chartfill.models.scan import ChartFile
    from chartfill.services.folder_report import build_chart_report
    from chartfill.services.worker_pool import WorkerPool
    from eval.report import print_aggregate_table, print_song_table, write_json_report

    songs_dir = Path(args.songs_dir)
    output_json = Path(args.output_json) if args.output_json else None
    config = {"difficulty": args.difficulty, "lane_map": args.lane_map or settings.default_lane_map}

    song_folders = _find_song_folders(songs_dir)
    if not song_folders:
        print(f"Error: no .chart or .mid files found under {songs_dir}", file=sys.stderr)
        sys.exit(1)

    print(f"Scanning {len(song_folders)} song folders in {songs_dir}")

    pool = WorkerPool(settings.fingerprint_max_workers).start() if args.fingerprint else None
    all_results: list[dict] = []
    try:
        for folder in song_folders:
            files = [ChartFile(name=p.name, data=p.read_bytes()) for p in sorted(folder.iterdir()) if p.is_file()]
            song_name = str(folder.relative_to(songs_dir))
            try:
                report = build_chart_report(files, config, song_id=song_name, pool=pool)
            except ChartfillError as e:
                print(f"  Warning: {song_name} failed: {e}")
                all_results.append({"song": song_name, "error": str(e), "fill_count": 0, "fills": []})
                continue

            print_song_table(song_name, report)
            all_results.append({
                "song": song_name,
                "chart_md5": report.chart_md5,
                "fill_count": len(report.fills),
                "fills": [f.model_dump(mode="json") for f in report.fills],
                "folder_issues": [i.model_dump(mode="json") for i in report.folder_issues],
                "audio": report.audio.model_dump(mode="json") if report.audio else None,
            })
    finally:
        if pool is not None:
            pool.stop()

    print_aggregate_table(all_results)

    if output_json:
        write_json_report(output_json, all_results)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Chartfill drum fill scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- generate-fixtures ---
    p_fixtures = subparsers.add_parser(
        "generate-fixtures",
        help="Write synthetic drum song folders",
    )
    p_fixtures.add_argument("--output-dir", required=True, help="Directory to write song folders to")
    p_fixtures.add_argument("--bpm", type=float, default=120.0, help="Tempo (default: 120)")

    # --- scan ---
    p_scan = subparsers.add_parser(
        "scan",
        help="Detect drum fills in every song folder under a directory",
    )
    p_scan.add_argument("--songs-dir", required=True, help="Directory containing song folders")
    p_scan.add_argument("--difficulty", default="expert", help="Drums difficulty (default: expert)")
    p_scan.add_argument("--lane-map", default=None, help="Lane map name (default: CHARTFILL_DEFAULT_LANE_MAP, clone_hero)")
    p_scan.add_argument("--fingerprint", action="store_true", help="Also fingerprint each folder's audio")
    p_scan.add_argument("--output-json", default=None, help="Write results to this JSON file")

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.command == "generate-fixtures":
        _cmd_generate_fixtures(args)
    elif args.command == "scan":
        _cmd_scan(args)


if __name__ == "__main__":
    main()
