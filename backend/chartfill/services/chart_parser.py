"""Parser for the line-oriented .chart text grammar.

A file is a series of `[Section]` headers, each followed by a `{ ... }` body.
`[Song]` holds `Key = value` metadata, `[SyncTrack]` holds tempo and time
signature events, `[Events]` holds section markers and every other section
is a note track named `{Difficulty}{Instrument}` (e.g. `ExpertDrums`).
"""

import logging
import re

from chartfill.errors import ChartParseError
from chartfill.models.chart import (
    ChartIssueType,
    ChartMetadata,
    Difficulty,
    Instrument,
    NoteFlag,
    ParseIssue,
    RawChart,
    RawNote,
)

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = 192
MAX_TS_DENOMINATOR_EXP = 6  # 2**6 = 64th notes

SECTION_HEADER_RE = re.compile(r"^\[([^\[\]]+)\]$")
KEY_VALUE_RE = re.compile(r"^([^=]+?)\s*=\s*(.*)$")
SYNC_LINE_RE = re.compile(r"^(\d+)\s*=\s*(B|TS|A)\s+(\d+)(?:\s+(\d+))?$")
EVENT_LINE_RE = re.compile(r"^(\d+)\s*=\s*E\s+(.*)$")
TRACK_LINE_RE = re.compile(r"^(\d+)\s*=\s*([A-Z]+)\s+(\S+)(?:\s+(\d+))?$")

TRACK_DIFFICULTIES = {
    "Expert": Difficulty.expert,
    "Hard": Difficulty.hard,
    "Medium": Difficulty.medium,
    "Easy": Difficulty.easy,
}

TRACK_INSTRUMENTS = {
    "Single": Instrument.guitar,
    "DoubleGuitar": Instrument.guitarcoop,
    "DoubleRhythm": Instrument.rhythm,
    "DoubleBass": Instrument.bass,
    "Drums": Instrument.drums,
    "Keyboard": Instrument.keys,
    "GHLGuitar": Instrument.guitarghl,
    "GHLCoop": Instrument.guitarcoopghl,
    "GHLRhythm": Instrument.rhythmghl,
    "GHLBass": Instrument.bassghl,
}

# Drum modifier notes: N value -> (lane, flag)
DRUM_MODIFIERS: dict[int, tuple[int, NoteFlag]] = {
    **{33 + lane: (lane, NoteFlag.accent) for lane in range(1, 6)},  # 34-38
    **{39 + lane: (lane, NoteFlag.ghost) for lane in range(1, 6)},  # 40-44
    66: (2, NoteFlag.cymbal),
    67: (3, NoteFlag.cymbal),
    68: (4, NoteFlag.cymbal),
}
DRUM_DOUBLE_KICK = 32
DRUM_FLAM = 109

FRET_LANES = {0, 1, 2, 3, 4, 7, 8}  # 7 = open, 8 = third black fret (GHL)
FRET_TICK_FLAGS = {5: NoteFlag.forced, 6: NoteFlag.tap}


def _decode(data: bytes) -> str:
    if data.startswith((b"\xff\xfe", b"\xfe\xff")):
        return data.decode("utf-16", errors="replace")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning("Chart is not valid UTF-8; decoding with replacement characters")
        return data.decode("utf-8", errors="replace")


def _split_sections(text: str) -> tuple[dict[str, list[str]], list[ParseIssue]]:
    """Group body lines by section name, enforcing balanced braces."""
    sections: dict[str, list[str]] = {}
    issues: list[ParseIssue] = []
    current: str | None = None
    header_seen = False
    in_body = False

    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("//"):
            continue

        if in_body:
            if line == "}":
                in_body = False
                current = None
                header_seen = False
            elif line == "{":
                raise ChartParseError(f"Nested '{{' on line {line_no}")
            elif current is not None:
                sections[current].append(line)
            continue

        if line == "{":
            if not header_seen:
                raise ChartParseError(f"'{{' without a section header on line {line_no}")
            in_body = True
        elif line == "}":
            raise ChartParseError(f"Unbalanced '}}' on line {line_no}")
        elif line.startswith("["):
            header_seen = True
            match = SECTION_HEADER_RE.match(line)
            if match:
                current = match.group(1).strip()
                sections.setdefault(current, [])
            else:
                current = None
                issues.append(ParseIssue(
                    issue_type=ChartIssueType.bad_section_header,
                    description=f"Line {line_no}: malformed section header {line!r}",
                ))
        else:
            issues.append(ParseIssue(
                issue_type=ChartIssueType.unrecognized_line,
                description=f"Line {line_no}: text outside of any section {line!r}",
            ))

    if in_body:
        raise ChartParseError("Chart ended inside a section body")
    if not sections:
        raise ChartParseError("No [Section] headers found")
    return sections, issues


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]
    return value.strip()


def _parse_song(lines: list[str], issues: list[ParseIssue]) -> tuple[int, ChartMetadata]:
    values: dict[str, str] = {}
    for line in lines:
        match = KEY_VALUE_RE.match(line)
        if match is None:
            issues.append(ParseIssue(
                issue_type=ChartIssueType.unrecognized_line,
                description=f"[Song]: {line!r}",
            ))
            continue
        values[match.group(1).strip()] = _unquote(match.group(2))

    resolution = DEFAULT_RESOLUTION
    raw_resolution = values.get("Resolution")
    if raw_resolution is None or not raw_resolution.isdigit() or int(raw_resolution) <= 0:
        issues.append(ParseIssue(
            issue_type=ChartIssueType.no_resolution,
            description=f"Missing or invalid Resolution; assuming {DEFAULT_RESOLUTION}",
        ))
    else:
        resolution = int(raw_resolution)

    def seconds_to_ms(key: str) -> float | None:
        try:
            return float(values[key]) * 1000
        except (KeyError, ValueError):
            return None

    year = values.get("Year")
    if year is not None:
        # Older charts write the year as ", 2004"
        year = year.removeprefix(",").strip() or None

    metadata = ChartMetadata(
        name=values.get("Name") or None,
        artist=values.get("Artist") or None,
        album=values.get("Album") or None,
        genre=values.get("Genre") or None,
        year=year,
        charter=values.get("Charter") or None,
        delay=seconds_to_ms("Offset") or 0.0,
        preview_start_time=seconds_to_ms("PreviewStart"),
    )
    return resolution, metadata


def _parse_sync_track(lines: list[str], raw: RawChart) -> None:
    for line in lines:
        match = SYNC_LINE_RE.match(line)
        if match is None:
            raw.issues.append(ParseIssue(
                issue_type=ChartIssueType.unrecognized_line,
                description=f"[SyncTrack]: {line!r}",
            ))
            continue
        tick, kind, value, extra = int(match.group(1)), match.group(2), int(match.group(3)), match.group(4)
        if kind == "B":
            raw.tempos.append((tick, value / 1000))
        elif kind == "TS":
            if extra is not None and int(extra) > MAX_TS_DENOMINATOR_EXP:
                raw.issues.append(ParseIssue(
                    issue_type=ChartIssueType.unrecognized_line,
                    description=f"[SyncTrack]: {line!r}",
                ))
                continue
            denominator = 2 ** int(extra) if extra is not None else 4
            raw.time_signatures.append((tick, value, denominator))


def _parse_events(lines: list[str], raw: RawChart) -> None:
    for line in lines:
        match = EVENT_LINE_RE.match(line)
        if match is None:
            raw.issues.append(ParseIssue(
                issue_type=ChartIssueType.unrecognized_line,
                description=f"[Events]: {line!r}",
            ))
            continue
        text = _unquote(match.group(2))
        for prefix in ("section ", "section_", "prc_"):
            if text.startswith(prefix):
                raw.sections.append((int(match.group(1)), text[len(prefix):].strip()))
                break


def _parse_track(name: str, lines: list[str], is_drums: bool, issues: list[ParseIssue]) -> list[RawNote]:
    notes: dict[tuple[int, int], list[int]] = {}  # (tick, lane) -> [length, flags]
    lane_modifiers: list[tuple[int, int, NoteFlag]] = []
    tick_modifiers: list[tuple[int, NoteFlag]] = []

    def add_note(tick: int, lane: int, length: int, flags: int = NoteFlag.none) -> None:
        entry = notes.setdefault((tick, lane), [0, NoteFlag.none])
        entry[0] = max(entry[0], length)
        entry[1] |= flags

    for line in lines:
        match = TRACK_LINE_RE.match(line)
        if match is None:
            issues.append(ParseIssue(
                issue_type=ChartIssueType.unrecognized_line,
                description=f"[{name}]: {line!r}",
            ))
            continue

        tick, code, value = int(match.group(1)), match.group(2), match.group(3)
        if code in ("S", "E"):
            continue  # star power, solos and local events
        if code != "N" or not value.isdigit():
            issues.append(ParseIssue(
                issue_type=ChartIssueType.unrecognized_line,
                description=f"[{name}]: {line!r}",
            ))
            continue

        n = int(value)
        length = int(match.group(4) or 0)
        if is_drums:
            if 0 <= n <= 5:
                add_note(tick, n, length)
            elif n == DRUM_DOUBLE_KICK:
                add_note(tick, 0, length, NoteFlag.double_kick)
            elif n in DRUM_MODIFIERS:
                lane, flag = DRUM_MODIFIERS[n]
                lane_modifiers.append((tick, lane, flag))
            elif n == DRUM_FLAM:
                tick_modifiers.append((tick, NoteFlag.flam))
            else:
                issues.append(ParseIssue(
                    issue_type=ChartIssueType.unrecognized_line,
                    description=f"[{name}]: unknown drum note {n} at tick {tick}",
                ))
        elif n in FRET_LANES:
            add_note(tick, n, length)
        elif n in FRET_TICK_FLAGS:
            tick_modifiers.append((tick, FRET_TICK_FLAGS[n]))
        else:
            issues.append(ParseIssue(
                issue_type=ChartIssueType.unrecognized_line,
                description=f"[{name}]: unknown note {n} at tick {tick}",
            ))

    for tick, lane, flag in lane_modifiers:
        if (tick, lane) in notes:
            notes[(tick, lane)][1] |= flag
    for tick, flag in tick_modifiers:
        for (note_tick, _lane), entry in notes.items():
            if note_tick == tick:
                entry[1] |= flag

    return [(tick, length, lane, int(flags)) for (tick, lane), (length, flags) in sorted(notes.items())]


def _track_key(section_name: str) -> tuple[Instrument, Difficulty] | None:
    for prefix, difficulty in TRACK_DIFFICULTIES.items():
        if section_name.startswith(prefix):
            instrument = TRACK_INSTRUMENTS.get(section_name[len(prefix):])
            if instrument is not None:
                return instrument, difficulty
    return None


def parse_chart_text(data: bytes) -> RawChart:
    """Parse .chart bytes into grammar-independent RawChart output.

    Raises:
        ChartParseError: the bytes do not form a sectioned chart at all
    """
    sections, issues = _split_sections(_decode(data))

    resolution, metadata = _parse_song(sections.get("Song", []), issues)
    raw = RawChart(resolution=resolution, metadata=metadata, issues=issues)
    _parse_sync_track(sections.get("SyncTrack", []), raw)
    _parse_events(sections.get("Events", []), raw)

    for section_name, lines in sections.items():
        if section_name in ("Song", "SyncTrack", "Events"):
            continue
        key = _track_key(section_name)
        if key is None:
            logger.debug(f"Skipping unknown chart section [{section_name}]")
            continue
        raw.tracks[key] = _parse_track(section_name, lines, key[0] == Instrument.drums, raw.issues)

    logger.info(
        f"Parsed .chart: resolution={raw.resolution}, {len(raw.tracks)} tracks, "
        f"{len(raw.tempos)} tempos, {len(raw.issues)} issues"
    )
    return raw
