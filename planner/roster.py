"""
Shift roster import.

Reads an .xlsx shift plan in which each shift category has its own column and
each cell lists one or more people as "Lastname, Firstname (dept) (code)" on
separate lines. Produces normalized ShiftAssignment records plus a list of
error strings; a bad sheet never stops the other sheets from being read.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from openpyxl import load_workbook

from .models import SHIFT_CATEGORIES, InvalidAssignment, ShiftAssignment, normalize_name
from .outcomes import ParseFailed, Parsed

logger = logging.getLogger(__name__)


# Header fragments that identify each shift category (case-insensitive)
COLUMN_SYNONYMS = {
    "Bereitschaften (BD)": ["bereitschaften", "bd", "bereitschaft"],
    "Rufdienste (RD)": ["rufdienste", "rd", "rufdienst", "ruf"],
    "Frühdienste (Früh)": ["frühdienste", "früh", "fruh", "frühdienst", "early"],
    "Zwischendienste/Mitteldienste (Mittel)": ["zwischendienste", "mitteldienste", "mittel", "zwischen", "middle"],
    "Spätdienste (Spät)": ["spätdienste", "spät", "spaet", "spätdienst", "late", "späte"],
}

_DATE_IN_FILENAME = re.compile(r"(\d{4}-\d{2}-\d{2})")
_ABBREVIATION = re.compile(r"\(([^()]*)\)\s*$")


@dataclass
class RosterSummary:
    sheets_processed: List[str] = field(default_factory=list)
    total_assignments: int = 0
    assigned_personnel: int = 0
    shift_date: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "sheets_processed": self.sheets_processed,
            "total_assignments": self.total_assignments,
            "assigned_personnel": self.assigned_personnel,
            "shift_date": self.shift_date,
        }


@dataclass
class RosterParseResult:
    assignments: List[ShiftAssignment] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    summary: RosterSummary = field(default_factory=RosterSummary)

    def to_dict(self) -> dict:
        return {
            "assignments": [a.to_dict() for a in self.assignments],
            "errors": self.errors,
            "summary": self.summary.to_dict(),
        }


def abbreviation(category: str) -> str:
    """Short code of a category: "Frühdienste (Früh)" -> "Früh"."""
    match = _ABBREVIATION.search(category or "")
    return match.group(1) if match else category


def find_shift_columns(headers: List[str]) -> Dict[str, int]:
    """Map each shift category to the first header column that names it."""
    columns = {}
    lowered = [str(h).strip().lower() if h is not None else "" for h in headers]
    for category in SHIFT_CATEGORIES:
        synonyms = COLUMN_SYNONYMS[category]
        for index, header in enumerate(lowered):
            if header and any(s in header for s in synonyms):
                columns[category] = index
                break
    return columns


def parse_names_from_cell(content) -> List[ShiftAssignment]:
    """Parse every person listed in one roster cell.

    "Müller, Anna (OP) (Früh)" becomes first name Anna, last name Müller.
    Lines without a comma need at least two words (first word is the first
    name). Anything else is skipped.
    """
    if content is None:
        return []
    text = str(content)

    assignments = []
    for line in re.split(r"\r?\n", text):
        line = line.strip()
        if not line:
            continue

        name_part = line.split("(", 1)[0].strip()
        if not name_part:
            continue

        parts = [p.strip() for p in name_part.split(",")]
        if len(parts) >= 2:
            last_name, first_name = parts[0], parts[1]
        else:
            words = parts[0].split()
            if len(words) < 2:
                continue
            first_name, last_name = words[0], " ".join(words[1:])

        assignments.append(ShiftAssignment(
            name=f"{first_name} {last_name}",
            last_name=last_name,
            first_name=first_name,
            original_text=line,
        ))
    return assignments


def _process_sheet(sheet_name: str, rows: List[tuple]) -> Tuple[List[ShiftAssignment], List[str]]:
    if len(rows) < 2:
        return [], [f'Sheet "{sheet_name}": No data found']

    headers = ["" if h is None else str(h) for h in rows[0]]
    columns = find_shift_columns(headers)
    if not columns:
        expected = ", ".join(SHIFT_CATEGORIES)
        return [], [f'Sheet "{sheet_name}": No shift columns found. Expected columns like: {expected}']

    assignments = []
    for category, column in columns.items():
        for row in rows[1:]:
            if column >= len(row):
                continue
            cell = row[column]
            if cell is None or not str(cell).strip():
                continue
            for assignment in parse_names_from_cell(cell):
                assignment.shift_type = category
                assignment.availability = category
                assignments.append(assignment)
    return assignments, []


def read_workbook(source):
    """Load all sheets as row tuples. Returns Parsed({name: rows}) or ParseFailed."""
    try:
        workbook = load_workbook(source, read_only=True, data_only=True)
    except Exception as e:
        return ParseFailed(f"Failed to parse Excel file: {e}")

    try:
        sheets = {
            name: [tuple(row) for row in workbook[name].iter_rows(values_only=True)]
            for name in workbook.sheetnames
        }
    except Exception as e:
        return ParseFailed(f"Failed to read Excel file: {e}")
    finally:
        workbook.close()
    return Parsed(sheets)


def parse_roster(source, filename: Optional[str] = None) -> RosterParseResult:
    """Parse a roster workbook (path or binary file object)."""
    result = RosterParseResult()
    name_for_date = filename or (source if isinstance(source, str) else "")
    date_match = _DATE_IN_FILENAME.search(str(name_for_date))
    if date_match:
        result.summary.shift_date = date_match.group(1)

    outcome = read_workbook(source)
    if not outcome.ok:
        logger.warning("[IMPORT] %s", outcome.reason)
        result.errors.append(outcome.reason)
        return result

    for sheet_name, rows in outcome.value.items():
        try:
            assignments, errors = _process_sheet(sheet_name, rows)
        except Exception as e:
            assignments, errors = [], [f'Sheet "{sheet_name}": {e}']
        result.assignments.extend(assignments)
        result.errors.extend(errors)
        result.summary.total_assignments += len(assignments)
        result.summary.sheets_processed.append(sheet_name)

    result.summary.assigned_personnel = len({a.name.lower() for a in result.assignments})
    logger.info("[IMPORT] Parsed %d assignments from %d sheet(s), %d error(s)",
                result.summary.total_assignments, len(result.summary.sheets_processed),
                len(result.errors))
    return result


def validate_assignments(assignments: List[ShiftAssignment]) -> Tuple[List[ShiftAssignment], List[InvalidAssignment]]:
    """Split assignments into valid ones and rejected ones with reasons."""
    valid = []
    invalid = []
    seen = set()

    for assignment in assignments:
        if not assignment.name or len(assignment.name) < 2:
            invalid.append(InvalidAssignment(assignment, "Name too short or missing"))
            continue

        if not assignment.shift_type:
            invalid.append(InvalidAssignment(assignment, "Shift type missing"))
            continue

        combination = (normalize_name(assignment.name), assignment.shift_type)
        if combination in seen:
            invalid.append(InvalidAssignment(
                assignment,
                f"Duplicate assignment for {assignment.name} in {assignment.shift_type}"
            ))
            continue
        seen.add(combination)
        valid.append(assignment)

    return valid, invalid


def shift_statistics(assignments: List[ShiftAssignment]) -> dict:
    """Distinct assigned names and per-shift-type counts."""
    by_shift_type: Dict[str, int] = {}
    names = []
    for assignment in assignments:
        by_shift_type[assignment.shift_type] = by_shift_type.get(assignment.shift_type, 0) + 1
        if assignment.name not in names:
            names.append(assignment.name)
    return {
        "total_assigned": len(names),
        "by_shift_type": by_shift_type,
        "assigned_names": names,
    }
