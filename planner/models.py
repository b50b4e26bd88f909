"""Data models for the operating-room assignment planner."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from enum import Enum


UNAVAILABLE = "nicht verfügbar"

# Availability categories in roster column order
SHIFT_CATEGORIES = [
    "Bereitschaften (BD)",
    "Rufdienste (RD)",
    "Frühdienste (Früh)",
    "Zwischendienste/Mitteldienste (Mittel)",
    "Spätdienste (Spät)",
]


class PersonnelGroup(Enum):
    """Staff group a person belongs to."""
    OP_NURSING = "OP-Pflege"
    ANESTHESIA_NURSING = "Anästhesie Pflege"
    OP_INTERN = "OP-Praktikant"
    ANESTHESIA_INTERN = "Anästhesie Praktikant"
    MFA = "MFA"
    ATA_TRAINEE = "ATA Schüler"
    OTA_TRAINEE = "OTA Schüler"


class SyncState(Enum):
    """Whether a person still has to be pushed to the remote directory."""
    SYNCED = "synced"
    PENDING_ADD = "pending_add"
    PENDING_MODIFY = "pending_modify"


class TableKey(Enum):
    """The plannable grid views."""
    MAIN = "main"
    EMERGENCY = "emergency"
    WEEKEND = "weekend"


@dataclass
class Person:
    """A staff member that can be placed into grid cells."""
    id: int
    name: str
    group: PersonnelGroup = PersonnelGroup.OP_NURSING
    department: str = ""
    comment: str = ""
    availability_state: str = UNAVAILABLE
    initials: str = "XX"
    is_active: bool = False
    shift_assignment: Optional[str] = None
    availability_tags: List[str] = field(default_factory=list)
    shift_tags: List[str] = field(default_factory=list)
    is_available: Optional[bool] = None

    # Remote directory bookkeeping
    remote_id: Optional[str] = None
    sync_state: SyncState = SyncState.PENDING_ADD

    @property
    def normalized_name(self) -> str:
        return normalize_name(self.name)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "group": self.group.value,
            "department": self.department,
            "comment": self.comment,
            "availability_state": self.availability_state,
            "initials": self.initials,
            "is_active": self.is_active,
            "shift_assignment": self.shift_assignment,
            "availability_tags": list(self.availability_tags),
            "shift_tags": list(self.shift_tags),
            "is_available": self.is_available,
            "remote_id": self.remote_id,
            "sync_state": self.sync_state.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Person":
        """Build a person from stored data, reading only the known fields."""
        try:
            group = PersonnelGroup(data.get("group", PersonnelGroup.OP_NURSING.value))
        except ValueError:
            group = PersonnelGroup.OP_NURSING

        try:
            sync_state = SyncState(data.get("sync_state", SyncState.PENDING_ADD.value))
        except ValueError:
            sync_state = SyncState.PENDING_ADD

        return cls(
            id=int(data["id"]),
            name=str(data.get("name", "")),
            group=group,
            department=data.get("department") or "",
            comment=data.get("comment") or "",
            availability_state=data.get("availability_state") or UNAVAILABLE,
            initials=data.get("initials") or "XX",
            is_active=bool(data.get("is_active", False)),
            shift_assignment=data.get("shift_assignment"),
            availability_tags=list(data.get("availability_tags") or []),
            shift_tags=list(data.get("shift_tags") or []),
            is_available=data.get("is_available"),
            remote_id=data.get("remote_id"),
            sync_state=sync_state,
        )


@dataclass(frozen=True)
class TableConfiguration:
    """A named grid shape: role rows by room columns.

    Rows and columns are addressed by index. Blank role labels are spacer
    rows and are still distinct rows.
    """
    key: TableKey
    display_name: str
    roles: Tuple[str, ...]
    rooms: Tuple[str, ...]

    @property
    def role_count(self) -> int:
        return len(self.roles)

    @property
    def room_count(self) -> int:
        return len(self.rooms)

    def to_dict(self) -> dict:
        return {
            "key": self.key.value,
            "display_name": self.display_name,
            "roles": list(self.roles),
            "rooms": list(self.rooms),
        }


@dataclass(frozen=True)
class CellKey:
    """Addresses one grid cell within one table configuration."""
    table_key: TableKey
    role_index: int
    room_index: int

    def serialize(self) -> str:
        return f"{self.table_key.value}-{self.role_index}-{self.room_index}"

    @classmethod
    def parse(cls, value: str) -> "CellKey":
        """Parse a serialized key such as ``main-3-12``."""
        parts = value.split("-")
        if len(parts) != 3:
            raise ValueError(f"Invalid cell key: {value!r}")
        return cls(TableKey(parts[0]), int(parts[1]), int(parts[2]))

    def __str__(self) -> str:
        return self.serialize()


@dataclass
class ShiftAssignment:
    """One roster entry: a person listed under a shift column."""
    name: str
    last_name: str = ""
    first_name: str = ""
    shift_type: str = ""
    availability: str = ""
    original_text: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "last_name": self.last_name,
            "first_name": self.first_name,
            "shift_type": self.shift_type,
            "availability": self.availability,
            "original_text": self.original_text,
        }


@dataclass
class InvalidAssignment:
    """A roster entry rejected by validation, with the reason."""
    assignment: ShiftAssignment
    reason: str

    def to_dict(self) -> dict:
        return {"assignment": self.assignment.to_dict(), "reason": self.reason}


@dataclass(frozen=True)
class SpanGroup:
    """A maximal run of consecutive rooms in one row held by one person."""
    role_index: int
    person_id: int
    indices: Tuple[int, ...]

    @property
    def anchor(self) -> int:
        return self.indices[0]

    @property
    def width(self) -> int:
        return len(self.indices)


@dataclass
class RenderedCell:
    """A cell as it should be drawn: anchored at a room, possibly merged."""
    role_index: int
    room_index: int
    width: int
    persons: List[Person] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "role_index": self.role_index,
            "room_index": self.room_index,
            "width": self.width,
            "persons": [p.to_dict() for p in self.persons],
        }


# Type aliases
AssignmentMap = Dict[str, List[Person]]
AvailabilityTagSet = Dict[int, List[str]]


def normalize_name(name: str) -> str:
    """Join key used to match people across data sources."""
    return (name or "").strip().lower()
