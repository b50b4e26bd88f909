"""
Planner store.

The single object that owns the personnel directory, the assignment grid and
the availability tags for one running application. Built at startup and
handed to the HTTP layer; flushed at shutdown.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Union

from .directory import PersonnelDirectory
from .grid import ALL_GROUPS, AssignmentGrid, eligible_personnel
from .models import AvailabilityTagSet, InvalidAssignment, Person, TableKey
from .roster import RosterParseResult, validate_assignments
from .sample_data import get_sample_personnel

logger = logging.getLogger(__name__)


@dataclass
class ImportReport:
    """What a roster import changed."""
    valid_count: int = 0
    invalid: List[InvalidAssignment] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    available_count: int = 0
    unavailable_count: int = 0

    def to_dict(self) -> dict:
        return {
            "valid_count": self.valid_count,
            "invalid": [i.to_dict() for i in self.invalid],
            "errors": self.errors,
            "available_count": self.available_count,
            "unavailable_count": self.unavailable_count,
        }


class PlannerStore:
    """Directory, grid and availability tags sharing one storage adapter."""

    def __init__(self, storage, active_date: str,
                 table_key: Union[TableKey, str] = TableKey.MAIN):
        self.storage = storage
        self.directory = PersonnelDirectory(storage)
        self.grid = AssignmentGrid(storage, active_date, table_key, known_ids=self._known_ids)
        self.availability_tags: AvailabilityTagSet = storage.load_availability_tags()

        # Deleting a person must not leave the id in any cell
        self.directory.on_delete(self._person_deleted)

    def _known_ids(self):
        return {p.id for p in self.directory.list_all()}

    def _person_deleted(self, person_id: int):
        purged = self.grid.purge_person(person_id)
        if person_id in self.availability_tags:
            del self.availability_tags[person_id]
            self.storage.save_availability_tags(self.availability_tags)
        if purged:
            logger.info("[STORE] Removed person %s from %d cell(s)", person_id, purged)

    def sidebar(self, search: str = "", group: str = ALL_GROUPS) -> List[Person]:
        """People that can currently be dragged onto the grid."""
        return eligible_personnel(self.directory.list_all(), search, group)

    def import_roster(self, result: RosterParseResult) -> ImportReport:
        """Validate parsed roster entries and replace everyone's availability."""
        valid, invalid = validate_assignments(result.assignments)
        self.availability_tags = self.directory.apply_availability_update(valid)
        self.storage.save_availability_tags(self.availability_tags)

        available = sum(1 for tags in self.availability_tags.values() if tags)
        report = ImportReport(
            valid_count=len(valid),
            invalid=invalid,
            errors=list(result.errors),
            available_count=available,
            unavailable_count=len(self.availability_tags) - available,
        )
        for entry in invalid:
            logger.warning("[IMPORT] Rejected %r: %s", entry.assignment.original_text, entry.reason)
        return report

    def seed_sample_personnel(self) -> int:
        """Add the demo staff when the directory is empty. Returns how many were added."""
        if self.directory.list_all():
            return 0
        people = get_sample_personnel()
        for fields in people:
            self.directory.add(fields)
        return len(people)

    def clear_all(self):
        """Forget all personnel, tags and every stored plan."""
        self.directory.clear_all()
        self.availability_tags = {}
        self.storage.save_availability_tags({})
        self.storage.clear_assignments()
        self.grid = AssignmentGrid(self.storage, self.grid.active_date, self.grid.table.key,
                                   known_ids=self._known_ids)

    def flush(self) -> bool:
        """Write everything held in memory; used on shutdown."""
        saved_people = self.storage.save_personnel(self.directory.list_all())
        saved_tags = self.storage.save_availability_tags(self.availability_tags)
        saved_plan = self.grid.flush()
        return saved_people and saved_tags and saved_plan
