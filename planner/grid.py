"""
Assignment grid engine.

Keeps the per-date mapping from grid cell to the ordered people placed there.
A person may sit in several cells at once; a cell never holds the same person
twice. Every mutation is saved for the active date before returning.
"""

import copy
import logging
from typing import Callable, Dict, Iterable, List, Optional, Set, Union

from .models import (
    AssignmentMap, CellKey, Person, RenderedCell, TableConfiguration, TableKey,
    UNAVAILABLE
)
from .spans import get_consecutive_assignments, layout_row
from .tables import get_configuration

logger = logging.getLogger(__name__)

ALL_GROUPS = "all"


def is_eligible(person: Person, search: str = "", group: str = ALL_GROUPS) -> bool:
    """Whether a person is offered for placement in the sidebar.

    Already-placed people stay eligible so they can be placed again.
    """
    term = (search or "").lower()
    if term and term not in person.name.lower() and term not in person.group.value.lower():
        return False
    if group and group != ALL_GROUPS and person.group.value != group:
        return False
    if not person.availability_state or person.availability_state == UNAVAILABLE:
        return False
    return person.is_available is not False


def eligible_personnel(personnel: Iterable[Person], search: str = "",
                       group: str = ALL_GROUPS) -> List[Person]:
    return [p for p in personnel if is_eligible(p, search, group)]


class AssignmentGrid:
    """Cell-to-people state for the active date and active table."""

    def __init__(self, storage, active_date: str,
                 table_key: Union[TableKey, str] = TableKey.MAIN,
                 known_ids: Optional[Callable[[], Set[int]]] = None):
        self.storage = storage
        self.table: TableConfiguration = get_configuration(table_key)
        self.active_date = active_date
        # Ids still in the directory; stored entries for anyone else are dropped on load
        self._known_ids = known_ids
        # Every date loaded this session, so deletions can purge all of them
        self._loaded: Dict[str, AssignmentMap] = {}
        self._layout_cache: Optional[List[List[RenderedCell]]] = None
        self._assignments = self._load(active_date)

    # ==================== STATE ACCESS ====================

    @property
    def assignments(self) -> AssignmentMap:
        """Copy of the active map; mutate through drop/remove/reset only."""
        return {key: list(people) for key, people in self._assignments.items()}

    def cell_entries(self, cell: CellKey) -> List[Person]:
        return list(self._assignments.get(cell.serialize(), []))

    def assigned_person_ids(self) -> set:
        return {p.id for people in self._assignments.values() for p in people}

    def cell(self, role_index: int, room_index: int) -> CellKey:
        """Cell key in the active table."""
        return CellKey(self.table.key, role_index, room_index)

    # ==================== MUTATIONS ====================

    def drop(self, cell: CellKey, person: Optional[Person]) -> bool:
        """Place a copy of ``person`` at the end of the cell's list.

        Returns False when nothing changed: no person, or already in the cell.
        No other cell is touched.
        """
        if person is None:
            return False

        key = cell.serialize()
        entries = self._assignments.setdefault(key, [])
        if any(p.id == person.id for p in entries):
            return False

        entries.append(copy.deepcopy(person))
        self._changed()
        return True

    def remove(self, cell: CellKey, person_id: int) -> bool:
        """Take a person out of one cell; empty cells are dropped from the map."""
        key = cell.serialize()
        entries = self._assignments.get(key)
        if entries is None:
            return False

        remaining = [p for p in entries if p.id != person_id]
        if len(remaining) == len(entries):
            return False

        if remaining:
            self._assignments[key] = remaining
        else:
            del self._assignments[key]
        self._changed()
        return True

    def reset(self):
        """Empty the whole map for the active date."""
        self._assignments.clear()
        self._changed()

    def select_date(self, new_date: str):
        """Make another date's map active, loading it if needed."""
        if new_date == self.active_date:
            return
        self.active_date = new_date
        self._assignments = self._load(new_date)
        self._layout_cache = None
        logger.info("[GRID] Active date is now %s (%d cells)", new_date, len(self._assignments))

    def select_table(self, table_key: Union[TableKey, str]):
        """Switch the active table; cached layouts belong to the old shape."""
        self.table = get_configuration(table_key)
        self._layout_cache = None

    def purge_person(self, person_id: int) -> int:
        """Remove a person from every cell of every stored or loaded date.

        Returns the number of cells that changed.
        """
        changed_cells = 0
        dates = set(self._loaded) | set(self.storage.stored_dates())
        for for_date in sorted(dates):
            assignments = self._loaded.get(for_date)
            if assignments is None:
                assignments = self.storage.load_assignments(for_date)
            date_changed = _prune(assignments, lambda p: p.id != person_id)
            if date_changed:
                self._save(for_date, assignments)
                changed_cells += date_changed
        if changed_cells:
            self._layout_cache = None
        return changed_cells

    # ==================== DERIVED VIEWS ====================

    def consecutive_assignments(self, role_index: int, person_id: int) -> List[List[int]]:
        return get_consecutive_assignments(
            self._assignments, self.table.key, role_index, person_id, self.table.room_count
        )

    def layout(self) -> List[List[RenderedCell]]:
        """Rendered cells for each row of the active table."""
        if self._layout_cache is None:
            self._layout_cache = [
                layout_row(self._assignments, self.table.key, role_index, self.table.room_count)
                for role_index in range(self.table.role_count)
            ]
        return self._layout_cache

    def flush(self) -> bool:
        return self._save(self.active_date, self._assignments)

    # ==================== INTERNALS ====================

    def _load(self, for_date: str) -> AssignmentMap:
        if for_date not in self._loaded:
            assignments = self.storage.load_assignments(for_date)
            if self._known_ids is not None:
                known = self._known_ids()
                dropped = _prune(assignments, lambda p: p.id in known)
                if dropped:
                    logger.warning("[GRID] Dropped unknown people from %d cell(s) on %s", dropped, for_date)
                    self._save(for_date, assignments)
            self._loaded[for_date] = assignments
        return self._loaded[for_date]

    def _changed(self):
        self._layout_cache = None
        self._save(self.active_date, self._assignments)

    def _save(self, for_date: str, assignments: AssignmentMap) -> bool:
        saved = self.storage.save_assignments(
            for_date, assignments, mirror_current=for_date == self.active_date
        )
        if not saved:
            logger.error("[GRID] Assignments for %s could not be saved", for_date)
        return saved


def _prune(assignments: AssignmentMap, keep: Callable[[Person], bool]) -> int:
    """Filter every cell in place, dropping cells left empty. Returns cells changed."""
    changed = 0
    for key in list(assignments):
        remaining = [p for p in assignments[key] if keep(p)]
        if len(remaining) == len(assignments[key]):
            continue
        changed += 1
        if remaining:
            assignments[key] = remaining
        else:
            del assignments[key]
    return changed
