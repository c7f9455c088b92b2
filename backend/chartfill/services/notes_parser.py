from pathlib import PurePath

from chartfill.errors import ChartParseError
from chartfill.models.chart import ParsedChart
from chartfill.services.chart_parser import parse_chart_text
from chartfill.services.midi_parser import parse_midi
from chartfill.services.timeline import assemble_chart

CHART_EXTENSIONS = {".chart", ".mid"}


def parse_notes(data: bytes, extension: str) -> ParsedChart:
    """Parse chart bytes in the grammar named by `extension` (".chart" or ".mid").

    Raises:
        ChartParseError: unknown extension, or bytes unreadable in that grammar
    """
    extension = extension.lower()
    if not extension.startswith("."):
        extension = f".{extension}"

    if extension == ".chart":
        raw = parse_chart_text(data)
    elif extension == ".mid":
        raw = parse_midi(data)
    else:
        raise ChartParseError(f"Unsupported chart extension '{extension}'")
    return assemble_chart(raw)


def parse_notes_file(name: str, data: bytes) -> ParsedChart:
    return parse_notes(data, PurePath(name).suffix)
