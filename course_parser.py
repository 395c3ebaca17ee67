"""
Parser for course results copied out of the university portal.

The portal renders results as a table; copying it yields tab-separated text,
usually with a header row. Columns are located by header name, so their order
does not matter. Without a header the portal's default column order is
assumed:

    Course Code | Course Credit | Level-Term | Sessional | Result | Course Type

Rows that do not carry a known grade or a numeric credit are skipped rather
than reported, so stray lines (totals, page furniture) copied along with the
table do not break parsing.
"""

import logging
import math
import re
from typing import Dict, List, Optional

from schemas import Course, Grade, is_valid_grade

logger = logging.getLogger(__name__)

CODE = 'course code'
CREDIT = 'course credit'
LEVEL_TERM = 'level-term'
SESSIONAL = 'sessional'
RESULT = 'result'
COURSE_TYPE = 'course type'

HEADER_COLUMNS = (CODE, CREDIT, LEVEL_TERM, SESSIONAL, RESULT, COURSE_TYPE)
REQUIRED_COLUMNS = (CODE, CREDIT, RESULT)

# Positional layout used when no header row is present
FALLBACK_LAYOUT = {CODE: 0, CREDIT: 1, LEVEL_TERM: 2, SESSIONAL: 3, RESULT: 4, COURSE_TYPE: 5}
FALLBACK_MIN_COLUMNS = 5

MISSING = 'N/A'

_LEADING_NUMBER = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')


class ParseError(ValueError):
    """Raised when the pasted text has a header row missing required columns."""


def parse_number(value: Optional[str]) -> Optional[float]:
    """Read the leading number of ``value``; ``None`` when there is none.

    Trailing text is ignored ("3.0 hrs" reads as 3.0) and only finite values
    are returned.
    """
    if value is None:
        return None
    match = _LEADING_NUMBER.match(value.strip())
    if not match:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def find_header(lines: List[str]) -> Optional[str]:
    for line in lines:
        lowered = line.lower()
        if CODE in lowered and CREDIT in lowered:
            return line
    return None


def map_columns(header_line: str) -> Dict[str, int]:
    """Locate each known column in the header row.

    An exact (trimmed, case-insensitive) cell match wins; otherwise the first
    cell containing the column name is used. Unknown columns are left out.
    """
    headers = [h.strip().lower() for h in header_line.split('\t')]
    positions: Dict[str, int] = {}
    for name in HEADER_COLUMNS:
        if name in headers:
            positions[name] = headers.index(name)
            continue
        for index, header in enumerate(headers):
            if name in header:
                positions[name] = index
                break
    return positions


def _cell(columns: List[str], index: Optional[int]) -> Optional[str]:
    if index is None or index >= len(columns):
        return None
    return columns[index].strip()


def _build_course(columns: List[str], positions: Dict[str, int], fill_empty: bool) -> Optional[Course]:
    raw_grade = _cell(columns, positions.get(RESULT))
    grade = raw_grade.upper() if raw_grade else None
    credit = parse_number(_cell(columns, positions.get(CREDIT)))
    if not is_valid_grade(grade) or credit is None:
        return None

    def text(name: str) -> str:
        if name not in positions:
            return MISSING
        value = _cell(columns, positions[name])
        if not value:
            return MISSING if fill_empty else ''
        return value

    sessional = _cell(columns, positions.get(SESSIONAL))
    return Course(
        code=_cell(columns, positions[CODE]) or MISSING,
        credit=credit,
        level_term=text(LEVEL_TERM),
        sessional=(sessional or '').lower() == 'yes',
        grade=Grade(grade),
        original_grade=Grade(grade),
        course_type=text(COURSE_TYPE),
    )


def parse_course_data(raw_text: str) -> List[Course]:
    """Turn pasted portal text into course records, in input order.

    Raises ParseError when a header row is found but lacks Course Code,
    Course Credit or Result. Returns an empty list when no row is usable.
    """
    lines = raw_text.strip().split('\n')
    header_line = find_header(lines)
    if header_line is None:
        return _parse_without_header(lines)

    positions = map_columns(header_line)
    missing = [name for name in REQUIRED_COLUMNS if name not in positions]
    if missing:
        raise ParseError(
            "Required columns 'Course Code', 'Course Credit', or 'Result' not found "
            f"(missing: {', '.join(missing)})."
        )
    min_columns = max(positions[name] for name in REQUIRED_COLUMNS) + 1

    courses: List[Course] = []
    skipped = 0
    for line in lines:
        if line == header_line:
            continue
        columns = line.split('\t')
        course = _build_course(columns, positions, fill_empty=False) if len(columns) >= min_columns else None
        if course is None:
            skipped += 1
            continue
        courses.append(course)

    logger.debug("Parsed %d courses with header, skipped %d rows", len(courses), skipped)
    return courses


def _parse_without_header(lines: List[str]) -> List[Course]:
    courses: List[Course] = []
    skipped = 0
    for line in lines:
        columns = line.split('\t')
        course = _build_course(columns, FALLBACK_LAYOUT, fill_empty=True) if len(columns) >= FALLBACK_MIN_COLUMNS else None
        if course is None:
            skipped += 1
            continue
        courses.append(course)

    logger.debug("Parsed %d courses without header, skipped %d rows", len(courses), skipped)
    return courses
