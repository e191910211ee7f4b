"""
CSV Importer Module - Student360 School Notes System

Parses uploaded student lists into validated Student records.

Expected columns (header row required, case-sensitive synonyms):
    studentId | StudentID | id | ID
    name | Name
    grade | Grade          (optional)
    section | Section      (optional)
"""

import csv
import io
import logging
from typing import Dict, List

from student360.modules.records import DEFAULT_GRADE, DEFAULT_SECTION, Student
from student360.modules.student_ids import normalize_student_id

MAX_IMPORT_ROWS = 200

COLUMN_SYNONYMS = {
    'studentId': ('studentId', 'StudentID', 'id', 'ID'),
    'name': ('name', 'Name'),
    'grade': ('grade', 'Grade'),
    'section': ('section', 'Section'),
}

logger = logging.getLogger(__name__)


def parse_csv(text: str) -> List[Dict[str, str]]:
    """
    Parse CSV text into one dict per data row keyed by the header cells.

    Line endings are normalized and blank lines are skipped. Cells missing at
    the end of a short row read as ''.
    """
    normalized = str(text or '').replace('\r\n', '\n').replace('\r', '\n')
    lines = [line for line in normalized.split('\n') if line]
    if not lines:
        return []

    reader = csv.reader(io.StringIO('\n'.join(lines)))
    try:
        headers = [header.strip() for header in next(reader)]
    except StopIteration:
        return []

    rows = []
    for cells in reader:
        row = {}
        for index, header in enumerate(headers):
            row[header] = cells[index].strip() if index < len(cells) else ''
        rows.append(row)
    return rows


def _pick(row: Dict[str, str], field: str) -> str:
    for column in COLUMN_SYNONYMS[field]:
        value = row.get(column)
        if value:
            return value.strip()
    return ''


def rows_to_students(rows: List[Dict[str, str]], school_id: str = '',
                     limit: int = MAX_IMPORT_ROWS) -> List[Student]:
    """
    Map parsed rows to Student records.

    Rows without a valid student ID or a name are dropped; the result is
    capped at limit records.
    """
    students = []
    dropped = 0

    for row in rows:
        student_id = normalize_student_id(_pick(row, 'studentId'))
        name = _pick(row, 'name')
        if not student_id or not name:
            dropped += 1
            continue

        students.append(Student(
            student_id=student_id,
            name=name,
            grade=_pick(row, 'grade') or DEFAULT_GRADE,
            section=_pick(row, 'section') or DEFAULT_SECTION,
            school_id=school_id,
        ))

    if dropped:
        logger.info(f"Dropped {dropped} CSV rows without a valid studentId and name")

    if len(students) > limit:
        logger.info(f"CSV import capped at {limit} of {len(students)} valid rows")
        students = students[:limit]

    return students
