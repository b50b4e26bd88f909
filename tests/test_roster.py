"""Tests for roster parsing, validation and import into the store."""

import io

from openpyxl import Workbook

from planner.models import ShiftAssignment, UNAVAILABLE
from planner.roster import (
    abbreviation, find_shift_columns, parse_names_from_cell, parse_roster,
    shift_statistics, validate_assignments
)


def _workbook_bytes(sheets):
    """Build an .xlsx in memory from {sheet name: rows}."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for name, rows in sheets.items():
        sheet = workbook.create_sheet(name)
        for row in rows:
            sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    buffer.seek(0)
    return buffer


def test_find_shift_columns_matches_synonyms():
    headers = ["Datum", "BD", "Frühdienste", "Mitteldienst", "LATE shift", "Notiz"]

    columns = find_shift_columns(headers)

    assert columns == {
        "Bereitschaften (BD)": 1,
        "Frühdienste (Früh)": 2,
        "Zwischendienste/Mitteldienste (Mittel)": 3,
        "Spätdienste (Spät)": 4,
    }


def test_parse_names_from_multi_line_cell():
    cell = "Müller, Anna (OP) (Früh)\n\nFindeisen, Sarah (OP KLD) (VB)\r\nJan de Vries\nEinzelname"

    parsed = parse_names_from_cell(cell)

    assert [p.name for p in parsed] == ["Anna Müller", "Sarah Findeisen", "Jan de Vries"]
    assert parsed[0].last_name == "Müller"
    assert parsed[0].first_name == "Anna"
    assert parsed[0].original_text == "Müller, Anna (OP) (Früh)"
    assert parsed[2].last_name == "de Vries"


def test_parse_roster_reads_all_sheets():
    source = _workbook_bytes({
        "Montag": [
            ["Datum", "Frühdienste", "Spätdienste (Spät)"],
            ["2024-05-17", "Müller, Anna (OP) (Früh)\nKoch, Ben (AN) (F)", "Weber, Sarah (OP) (S)"],
        ],
        "Leer": [["Nur Kopf"]],
    })

    result = parse_roster(source, filename="dienstplan-2024-05-17.xlsx")

    assert [a.name for a in result.assignments] == ["Anna Müller", "Ben Koch", "Sarah Weber"]
    assert result.assignments[0].shift_type == "Frühdienste (Früh)"
    assert result.assignments[0].availability == "Frühdienste (Früh)"
    assert result.summary.sheets_processed == ["Montag", "Leer"]
    assert result.summary.total_assignments == 3
    assert result.summary.assigned_personnel == 3
    assert result.summary.shift_date == "2024-05-17"
    assert result.errors == ['Sheet "Leer": No data found']


def test_parse_roster_reports_missing_shift_columns():
    source = _workbook_bytes({"Plan": [["Name", "Kommentar"], ["Anna", "x"]]})

    result = parse_roster(source)

    assert result.assignments == []
    assert result.errors[0].startswith('Sheet "Plan": No shift columns found')


def test_parse_roster_unreadable_file_degrades_to_errors():
    result = parse_roster(io.BytesIO(b"this is not a workbook"), filename="plan.xlsx")

    assert result.assignments == []
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Failed to parse Excel file")
    assert result.summary.shift_date is None


def test_validate_assignments_collects_reasons():
    assignments = [
        ShiftAssignment(name="Anna Müller", shift_type="Frühdienste (Früh)"),
        ShiftAssignment(name="anna müller ", shift_type="Frühdienste (Früh)"),
        ShiftAssignment(name="Anna Müller", shift_type="Rufdienste (RD)"),
        ShiftAssignment(name="A", shift_type="Frühdienste (Früh)"),
        ShiftAssignment(name="Ben Koch", shift_type=""),
    ]

    valid, invalid = validate_assignments(assignments)

    assert [(a.name, a.shift_type) for a in valid] == [
        ("Anna Müller", "Frühdienste (Früh)"),
        ("Anna Müller", "Rufdienste (RD)"),
    ]
    reasons = [i.reason for i in invalid]
    assert reasons[0].startswith("Duplicate assignment for anna müller")
    assert reasons[1] == "Name too short or missing"
    assert reasons[2] == "Shift type missing"


def test_shift_statistics():
    stats = shift_statistics([
        ShiftAssignment(name="Anna Müller", shift_type="Frühdienste (Früh)"),
        ShiftAssignment(name="Anna Müller", shift_type="Rufdienste (RD)"),
        ShiftAssignment(name="Ben Koch", shift_type="Frühdienste (Früh)"),
    ])

    assert stats["total_assigned"] == 2
    assert stats["by_shift_type"] == {"Frühdienste (Früh)": 2, "Rufdienste (RD)": 1}


def test_abbreviation():
    assert abbreviation("Frühdienste (Früh)") == "Früh"
    assert abbreviation("Zwischendienste/Mitteldienste (Mittel)") == "Mittel"
    assert abbreviation("Sonstiges") == "Sonstiges"


def test_import_roster_updates_directory_and_tags(store, storage):
    anna = store.directory.add({"name": "Anna Müller"})
    ben = store.directory.add({"name": "Ben Koch", "availability_state": "Rufdienste (RD)"})
    source = _workbook_bytes({
        "Plan": [
            ["Frühdienste", "Rufdienste"],
            ["Müller, Anna (OP) (Früh)", "Müller, Anna (OP) (RD)\nMüller, Anna (OP) (RD)"],
        ],
    })

    report = store.import_roster(parse_roster(source))

    imported = store.directory.get(anna.id)
    assert "Frühdienste (Früh)" in imported.availability_state
    assert abbreviation(imported.availability_tags[0]) == "Früh"
    assert imported.is_available is True

    skipped = store.directory.get(ben.id)
    assert skipped.availability_state == UNAVAILABLE
    assert skipped.is_available is False

    assert report.valid_count == 2
    assert len(report.invalid) == 1
    assert report.available_count == 1
    assert report.unavailable_count == 1
    assert storage.load_availability_tags() == {
        anna.id: ["Frühdienste (Früh)", "Rufdienste (RD)"],
        ben.id: [],
    }
    assert [p.id for p in store.sidebar()] == [anna.id]
