"""Terminal table formatting and JSON report writer for fill scans."""

import json
import statistics
from pathlib import Path

from chartfill.models.report import ChartReport


def _fmt(val: float, decimals: int = 2) -> str:
    return f"{val:.{decimals}f}"


def _ms_to_clock(ms: float) -> str:
    seconds = ms / 1000
    return f"{int(seconds // 60)}:{seconds % 60:05.2f}"


def print_song_table(song_name: str, report: ChartReport) -> None:
    """Print one song's fills to terminal."""
    headers = ["#", "Measure", "Start", "Beats", "dens z", "groove", "tom", "flags"]
    widths = [4, 9, 10, 7, 8, 8, 7, 14]

    sep = "+" + "+".join("-" * w for w in widths) + "+"
    header_row = "|" + "|".join(h.center(w) for h, w in zip(headers, widths)) + "|"

    print(f"\n{'=' * 72}")
    print(f"  Song: {song_name}")
    if report.summary is not None:
        s = report.summary
        print(
            f"  Windows: {s.window_count} ({s.candidate_windows} candidates)   "
            f"BPM: {_fmt(s.min_bpm, 0)}-{_fmt(s.max_bpm, 0)}   Length: {_ms_to_clock(s.duration_ms)}"
        )
    for issue in report.folder_issues:
        print(f"  ! {issue.folder_issue}: {issue.description}")
    print(sep)
    print(header_row)
    print(sep)

    for i, fill in enumerate(report.fills, start=1):
        flags = ",".join(
            name for name, on in (("burst", fill.same_pad_burst), ("crash", fill.crash_resolve)) if on
        )
        row = (
            f"|{str(i).center(widths[0])}"
            f"|{str(fill.measure_number).center(widths[1])}"
            f"|{_ms_to_clock(fill.start_ms).center(widths[2])}"
            f"|{_fmt(fill.duration_beats).center(widths[3])}"
            f"|{_fmt(fill.density_z).center(widths[4])}"
            f"|{_fmt(fill.groove_dist).center(widths[5])}"
            f"|{_fmt(fill.tom_ratio_jump).center(widths[6])}"
            f"|{flags.center(widths[7])}"
            f"|"
        )
        print(row)
    print(sep)


def print_aggregate_table(all_results: list[dict]) -> None:
    """Print aggregate fill statistics across all scanned songs."""
    if not all_results:
        return

    fill_counts = [r["fill_count"] for r in all_results]
    beats = [f["duration_beats"] for r in all_results for f in r["fills"]]
    failed = [r for r in all_results if r.get("error")]

    print(f"\n{'=' * 72}")
    print("  AGGREGATE (across all songs)")
    print(f"  Songs scanned: {len(all_results)}   Failed: {len(failed)}")
    print(
        f"  Fills per song: {statistics.mean(fill_counts):.2f} ± "
        f"{statistics.stdev(fill_counts) if len(fill_counts) > 1 else 0:.2f}"
    )
    if beats:
        print(f"  Fill length: {statistics.mean(beats):.2f} beats (median {statistics.median(beats):.2f})")
    print()


def write_json_report(output_path: Path, all_results: list[dict]) -> None:
    """Write results to JSON file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(all_results, f, indent=2)
    print(f"Results written to {output_path}")
