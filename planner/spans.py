"""Span computation for persons occupying consecutive rooms in a row.

All functions here are pure: they read an assignment map and return derived
views. Suppressing covered cells is a rendering decision only; the map is
never modified.
"""

from typing import Dict, List

from .models import AssignmentMap, CellKey, RenderedCell, SpanGroup, TableKey


def _row_person_indices(assignments: AssignmentMap, table_key: TableKey,
                        role_index: int, room_count: int) -> Dict[int, List[int]]:
    """Map person id -> room indices (ascending) where they appear in the row."""
    found: Dict[int, List[int]] = {}
    for room_index in range(room_count):
        key = CellKey(table_key, role_index, room_index).serialize()
        for person in assignments.get(key, []):
            found.setdefault(person.id, []).append(room_index)
    return found


def group_consecutive(indices: List[int]) -> List[List[int]]:
    """Split ascending indices into maximal runs of consecutive integers."""
    groups: List[List[int]] = []
    for index in indices:
        if groups and index == groups[-1][-1] + 1:
            groups[-1].append(index)
        else:
            groups.append([index])
    return groups


def get_consecutive_assignments(assignments: AssignmentMap, table_key: TableKey,
                                role_index: int, person_id: int,
                                room_count: int) -> List[List[int]]:
    """Runs of adjacent rooms in which ``person_id`` appears in one role row.

    Example: a person in rooms 2, 3, 4 and 7 yields ``[[2, 3, 4], [7]]``.
    """
    indices = []
    for room_index in range(room_count):
        key = CellKey(table_key, role_index, room_index).serialize()
        if any(p.id == person_id for p in assignments.get(key, [])):
            indices.append(room_index)
    return group_consecutive(indices)


def compute_spans(assignments: AssignmentMap, table_key: TableKey,
                  role_index: int, room_count: int) -> List[SpanGroup]:
    """Span groups of every person in a row, ordered by anchor then person."""
    spans = []
    person_indices = _row_person_indices(assignments, table_key, role_index, room_count)
    for person_id, indices in person_indices.items():
        for run in group_consecutive(indices):
            spans.append(SpanGroup(role_index=role_index, person_id=person_id,
                                   indices=tuple(run)))
    spans.sort(key=lambda s: (s.anchor, s.person_id))
    return spans


def layout_row(assignments: AssignmentMap, table_key: TableKey,
               role_index: int, room_count: int) -> List[RenderedCell]:
    """Cells to draw for one row, with merged blocks for multi-room spans.

    The width of an anchor cell is the widest span anchored there. Cells
    covered by that width are skipped.
    """
    widest_at: Dict[int, int] = {}
    for span in compute_spans(assignments, table_key, role_index, room_count):
        widest_at[span.anchor] = max(widest_at.get(span.anchor, 1), span.width)

    cells = []
    room_index = 0
    while room_index < room_count:
        width = min(widest_at.get(room_index, 1), room_count - room_index)
        key = CellKey(table_key, role_index, room_index).serialize()
        cells.append(RenderedCell(
            role_index=role_index,
            room_index=room_index,
            width=width,
            persons=list(assignments.get(key, [])),
        ))
        room_index += width
    return cells
