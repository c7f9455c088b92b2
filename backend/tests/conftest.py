"""Shared builders for synthetic charts."""

import pytest

from chartfill.models.chart import ParsedChart
from chartfill.services.notes_parser import parse_notes

RESOLUTION = 192


def _chart_text(
    drum_notes: list[tuple[int, int]],
    resolution: int = RESOLUTION,
    bpm: float = 120.0,
    name: str = "Test Song",
    offset: float = 0,
    difficulty: str = "Expert",
) -> str:
    notes = "\n".join(f"  {tick} = N {lane} 0" for tick, lane in sorted(drum_notes))
    return (
        "[Song]\n{\n"
        f'  Name = "{name}"\n'
        '  Artist = "Test Artist"\n'
        f"  Offset = {offset}\n"
        f"  Resolution = {resolution}\n"
        "}\n"
        "[SyncTrack]\n{\n"
        "  0 = TS 4\n"
        f"  0 = B {int(bpm * 1000)}\n"
        "}\n"
        "[Events]\n{\n"
        '  0 = E "section Intro"\n'
        "}\n"
        f"[{difficulty}Drums]\n{{\n"
        f"{notes}\n"
        "}\n"
    )


def _steady_hats(beats: int, resolution: int = RESOLUTION) -> list[tuple[int, int]]:
    """Closed 8th-note hats (lane 2) for `beats` beats."""
    return [(i * resolution // 2, 2) for i in range(beats * 2)]


@pytest.fixture
def make_chart_text():
    return _chart_text


@pytest.fixture
def make_drum_chart():
    def factory(drum_notes: list[tuple[int, int]], **kwargs) -> ParsedChart:
        return parse_notes(_chart_text(drum_notes, **kwargs).encode(), ".chart")

    return factory


@pytest.fixture
def steady_hats():
    return _steady_hats
