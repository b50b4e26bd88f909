"""Demo personnel used to seed an empty directory."""

from typing import List

from .models import PersonnelGroup


SAMPLE_PERSONNEL = [
    {"name": "Sarah Weber", "group": PersonnelGroup.ANESTHESIA_NURSING, "department": "Anästhesie"},
    {"name": "Michael Koch", "group": PersonnelGroup.ANESTHESIA_NURSING, "department": "Anästhesie"},
    {"name": "Lisa Müller", "group": PersonnelGroup.ANESTHESIA_NURSING, "department": "Anästhesie"},
    {"name": "Thomas Schmidt", "group": PersonnelGroup.OP_NURSING, "department": "OP"},
    {"name": "Anna Becker", "group": PersonnelGroup.OTA_TRAINEE, "department": "OP"},
    {"name": "Max Hoffmann", "group": PersonnelGroup.ATA_TRAINEE, "department": "Anästhesie"},
    {"name": "Julia Wagner", "group": PersonnelGroup.OP_INTERN, "department": "OP"},
    {"name": "Daniel Richter", "group": PersonnelGroup.ANESTHESIA_INTERN, "department": "Anästhesie"},
]


def get_sample_personnel() -> List[dict]:
    """Fresh field dicts for the demo staff (safe to mutate)."""
    return [dict(p) for p in SAMPLE_PERSONNEL]
