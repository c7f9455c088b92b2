"""Parser for the ini-style key/value format used by song.ini.

    ; comment
    title = lines before any header go under NoSection
    [song]
    name = Example
    Artist = keys are case-insensitive and stored lowercased
"""

import logging
import re

from chartfill.models.scan import ChartFile, IniObject, IniParseResult, NamedSection, NoSection, SectionKey

logger = logging.getLogger(__name__)

SECTION_RE = re.compile(r"^\[([^\[\]]*)\]$")
COMMENT_PREFIXES = (";", "#")


def parse_ini_text(text: str) -> IniParseResult:
    ini_object: IniObject = {}
    errors: list[str] = []
    section: SectionKey = NoSection()

    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue

        if line.startswith("["):
            match = SECTION_RE.match(line)
            if match and match.group(1).strip():
                section = NamedSection(name=match.group(1).strip())
                ini_object.setdefault(section, {})
            else:
                errors.append(f'Unsupported type of line on line {line_no}: "{line}"')
            continue

        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            errors.append(f'Unsupported type of line on line {line_no}: "{line}"')
            continue
        ini_object.setdefault(section, {})[key.lower()] = value.strip()

    return IniParseResult(ini_object=ini_object, errors=errors)


def parse_config(file: ChartFile) -> IniParseResult:
    """Parse a key/value config file. Malformed lines are reported in `errors`, never raised."""
    text = file.data.decode("utf-8-sig", errors="replace")
    result = parse_ini_text(text)
    if result.errors:
        logger.debug(f"{file.name}: {len(result.errors)} unparseable lines")
    return result


def get_section(ini_object: IniObject, name: str) -> dict[str, str] | None:
    """Find a named section regardless of the header's case."""
    wanted = name.lower()
    for key, values in ini_object.items():
        if isinstance(key, NamedSection) and key.name.lower() == wanted:
            return values
    return None
