"""
Personnel directory for the planner.

Owns the authoritative list of Person records for the session. Every mutation
is written through the storage adapter immediately. Availability is replaced
wholesale by each roster import.
"""

import csv
import io
import logging
import time
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional

from .models import (
    AvailabilityTagSet, Person, PersonnelGroup, ShiftAssignment, SyncState,
    UNAVAILABLE, normalize_name
)

logger = logging.getLogger(__name__)


# Fields a caller may change through update(); anything else is ignored
UPDATABLE_FIELDS = (
    "name", "group", "department", "comment", "availability_state", "initials",
    "is_active", "shift_assignment", "availability_tags", "shift_tags",
    "is_available",
)

EXPORT_HEADERS = ["Name", "Group", "Department", "Availability",
                  "ShiftAssignment", "Initials", "Comment"]


def generate_initials(name: str) -> str:
    """Derive up to three initials from a display name.

    "Anna Müller" -> "AM", "Cher" -> "CH", "" -> "XX".
    """
    parts = (name or "").split()
    if not parts:
        return "XX"
    if len(parts) == 1:
        return parts[0][:2].upper()
    return (parts[0][0] + parts[-1][0]).upper()


def _coerce_group(value) -> PersonnelGroup:
    if isinstance(value, PersonnelGroup):
        return value
    return PersonnelGroup(value)


class IdGenerator:
    """Monotonic id source that never repeats within a process."""

    def __init__(self, floor: int = 0, clock: Callable[[], float] = time.time):
        self._last = max(floor, int(clock() * 1000))

    def observe(self, existing_id: int):
        """Make sure future ids stay above an id seen elsewhere."""
        self._last = max(self._last, existing_id)

    def next_id(self) -> int:
        self._last += 1
        return self._last


class PersonnelDirectory:
    """The set of staff records, persisted through a storage adapter."""

    def __init__(self, storage, id_generator: Optional[IdGenerator] = None):
        self.storage = storage
        self._people: Dict[int, Person] = {}
        self._pending_deletions: List[str] = list(storage.load_pending_deletions())
        self._delete_listeners: List[Callable[[int], None]] = []

        for person in storage.load_personnel():
            self._people[person.id] = person

        self._ids = id_generator or IdGenerator()
        for person_id in self._people:
            self._ids.observe(person_id)

    # ==================== LISTENERS ====================

    def on_delete(self, listener: Callable[[int], None]):
        """Register a callback invoked with the id of every deleted person."""
        self._delete_listeners.append(listener)

    # ==================== QUERIES ====================

    def get(self, person_id: int) -> Optional[Person]:
        return self._people.get(person_id)

    def list_all(self) -> List[Person]:
        """All people in insertion order."""
        return list(self._people.values())

    def find_by_name(self, name: str) -> Optional[Person]:
        """Find a person by case-insensitive, trimmed name."""
        wanted = normalize_name(name)
        for person in self._people.values():
            if person.normalized_name == wanted:
                return person
        return None

    @property
    def pending_deletions(self) -> List[str]:
        return list(self._pending_deletions)

    def has_unsynced_changes(self) -> bool:
        """True when any record or deletion still has to reach the remote directory."""
        if self._pending_deletions:
            return True
        return any(p.sync_state != SyncState.SYNCED for p in self._people.values())

    # ==================== MUTATIONS ====================

    def add(self, fields: dict, sync_state: SyncState = SyncState.PENDING_ADD) -> Person:
        """Create a person from a field dict (no id) and persist."""
        name = (fields.get("name") or "").strip()
        availability_state = fields.get("availability_state") or UNAVAILABLE
        is_active = fields.get("is_active")
        if is_active is None:
            is_active = availability_state != UNAVAILABLE

        person = Person(
            id=self._ids.next_id(),
            name=name,
            group=_coerce_group(fields.get("group", PersonnelGroup.OP_NURSING)),
            department=fields.get("department") or "",
            comment=fields.get("comment") or "",
            availability_state=availability_state,
            initials=fields.get("initials") or generate_initials(name),
            is_active=bool(is_active),
            shift_assignment=fields.get("shift_assignment"),
            availability_tags=list(fields.get("availability_tags") or []),
            shift_tags=list(fields.get("shift_tags") or []),
            is_available=fields.get("is_available"),
            remote_id=fields.get("remote_id"),
            sync_state=sync_state,
        )
        self._people[person.id] = person
        self._persist()
        logger.info("[DIRECTORY] Added %s (id=%s)", person.name, person.id)
        return person

    def update(self, person_id: int, fields: dict) -> bool:
        """Merge known fields into an existing person. False if the id is unknown."""
        person = self._people.get(person_id)
        if person is None:
            return False

        unknown = sorted(set(fields) - set(UPDATABLE_FIELDS))
        if unknown:
            logger.warning("[DIRECTORY] Ignoring unknown fields for %s: %s", person_id, unknown)

        changes = {}
        for name in UPDATABLE_FIELDS:
            if name not in fields:
                continue
            value = fields[name]
            if name == "group":
                value = _coerce_group(value)
            elif name == "name":
                value = (value or "").strip()
            elif name in ("availability_tags", "shift_tags"):
                value = list(value or [])
            changes[name] = value

        if "name" in changes and not fields.get("initials"):
            changes["initials"] = generate_initials(changes["name"])

        if person.sync_state == SyncState.SYNCED:
            changes["sync_state"] = SyncState.PENDING_MODIFY

        self._people[person_id] = replace(person, **changes)
        self._persist()
        return True

    def delete(self, person_id: int) -> bool:
        """Remove a person and notify listeners so no cell keeps the id."""
        person = self._people.pop(person_id, None)
        if person is None:
            return False

        if person.remote_id:
            self._pending_deletions.append(person.remote_id)
            self.storage.save_pending_deletions(self._pending_deletions)
        self._persist()

        for listener in self._delete_listeners:
            listener(person_id)
        logger.info("[DIRECTORY] Deleted %s (id=%s)", person.name, person_id)
        return True

    def clear_all(self):
        """Remove every person without queueing remote deletions."""
        for person_id in list(self._people):
            del self._people[person_id]
            for listener in self._delete_listeners:
                listener(person_id)
        self._pending_deletions = []
        self.storage.save_pending_deletions([])
        self._persist()

    def mark_synced(self, person_id: int, remote_id: Optional[str] = None):
        """Record that a person now matches the remote directory."""
        person = self._people.get(person_id)
        if person is None:
            return
        self._people[person_id] = replace(
            person,
            remote_id=remote_id or person.remote_id,
            sync_state=SyncState.SYNCED,
        )
        self._persist()

    def link_remote(self, person_id: int, remote_id: str):
        """Attach an existing remote item to a local person found by name."""
        person = self._people.get(person_id)
        if person is None:
            return
        sync_state = person.sync_state
        if sync_state == SyncState.PENDING_ADD:
            sync_state = SyncState.PENDING_MODIFY
        self._people[person_id] = replace(person, remote_id=remote_id, sync_state=sync_state)
        self._persist()

    def forget_pending_deletion(self, remote_id: str):
        if remote_id in self._pending_deletions:
            self._pending_deletions.remove(remote_id)
            self.storage.save_pending_deletions(self._pending_deletions)

    def apply_availability_update(self, assignments: Iterable[ShiftAssignment]) -> AvailabilityTagSet:
        """Replace every person's availability with the given roster snapshot.

        People matched by name receive the joined categories and shift types;
        everyone else becomes unavailable with cleared tags.
        """
        by_name: Dict[str, List[ShiftAssignment]] = {}
        for assignment in assignments:
            by_name.setdefault(normalize_name(assignment.name), []).append(assignment)

        tags: AvailabilityTagSet = {}
        for person_id, person in list(self._people.items()):
            matched = by_name.get(person.normalized_name)
            if matched:
                availability = [a.availability for a in matched]
                shift_types = [a.shift_type for a in matched]
                tags[person_id] = availability
                self._people[person_id] = replace(
                    person,
                    availability_state=", ".join(availability),
                    shift_assignment=", ".join(shift_types),
                    availability_tags=availability,
                    shift_tags=shift_types,
                    is_available=True,
                )
            else:
                tags[person_id] = []
                self._people[person_id] = replace(
                    person,
                    availability_state=UNAVAILABLE,
                    shift_assignment=None,
                    availability_tags=[],
                    shift_tags=[],
                    is_available=False,
                )

        self._persist()
        matched_count = sum(1 for t in tags.values() if t)
        logger.info("[DIRECTORY] Availability updated: %d of %d people available",
                    matched_count, len(tags))
        return tags

    # ==================== EXPORT ====================

    def export_csv(self) -> str:
        """Personnel as CSV with every value quoted."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(EXPORT_HEADERS)
        for person in self._people.values():
            writer.writerow([
                person.name,
                person.group.value,
                person.department,
                person.availability_state,
                person.shift_assignment or "",
                person.initials,
                person.comment,
            ])
        return buffer.getvalue()

    def _persist(self):
        if not self.storage.save_personnel(self.list_all()):
            logger.error("[DIRECTORY] Personnel could not be saved")
