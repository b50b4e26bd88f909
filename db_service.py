"""
Database service for persisting planner state.

Handles conversion between planner dataclass models and the JSON payloads
stored in StoredSnapshot rows. Stored data that cannot be decoded is reported
as LoadFailed and then treated as absent: the planner starts from empty state
instead of failing.
"""

import json
import logging
from typing import List, Optional

from models import db, StoredSnapshot
from planner.models import AssignmentMap, AvailabilityTagSet, Person
from planner.outcomes import LoadFailed, Loaded, value_or

logger = logging.getLogger(__name__)

CURRENT_ASSIGNMENTS_KEY = 'assignments:current'
PERSONNEL_KEY = 'personnel'
AVAILABILITY_TAGS_KEY = 'availability-tags'
PENDING_DELETIONS_KEY = 'pending-deletions'


def assignments_key(for_date: str) -> str:
    """Storage key of the plan for a YYYY-MM-DD date."""
    return f'assignments:{for_date}'


# =============================================================================
# RAW SNAPSHOT ACCESS
# =============================================================================

def _get_snapshot(key: str) -> Optional[StoredSnapshot]:
    return StoredSnapshot.query.filter_by(key=key).first()


def _read_json(key: str, default):
    """Decode the payload for a key. Missing rows load as ``default``."""
    snapshot = _get_snapshot(key)
    if snapshot is None:
        return Loaded(default)
    try:
        return Loaded(json.loads(snapshot.payload_json))
    except (TypeError, ValueError) as e:
        return LoadFailed(f'{key}: {e}')


def _write_json(keys: List[str], payload) -> bool:
    """Store the same payload under each key in one commit."""
    try:
        payload_json = json.dumps(payload)
        for key in keys:
            snapshot = _get_snapshot(key)
            if snapshot is None:
                snapshot = StoredSnapshot(key=key)
                db.session.add(snapshot)
            snapshot.payload_json = payload_json
        db.session.commit()
        return True
    except Exception as e:
        db.session.rollback()
        logger.error('[DB] Could not save %s: %s', ', '.join(keys), e)
        return False


def _degrade(outcome, default, what: str):
    """Return the loaded value, or ``default`` after logging a failed load."""
    if not outcome.ok:
        logger.warning('[DB] Ignoring unreadable %s, starting empty (%s)', what, outcome.reason)
    return value_or(outcome, default)


# =============================================================================
# ASSIGNMENT OPERATIONS
# =============================================================================

def _decode_assignments(raw) -> AssignmentMap:
    if not isinstance(raw, dict):
        raise ValueError('assignment snapshot is not an object')
    assignments = {}
    for cell_key, people in raw.items():
        if not isinstance(people, list):
            raise ValueError(f'cell {cell_key} is not a list')
        decoded = [Person.from_dict(p) for p in people]
        if decoded:
            assignments[str(cell_key)] = decoded
    return assignments


class SnapshotStorage:
    """Storage adapter used by the planner store.

    Must be used inside a Flask application context.
    """

    # ==================== ASSIGNMENTS ====================

    def read_assignments(self, for_date: str):
        """Loaded(map) or LoadFailed(reason) for a date."""
        outcome = _read_json(assignments_key(for_date), {})
        if not outcome.ok:
            return outcome
        try:
            return Loaded(_decode_assignments(outcome.value))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            return LoadFailed(f'{assignments_key(for_date)}: {e}')

    def load_assignments(self, for_date: str) -> AssignmentMap:
        return _degrade(self.read_assignments(for_date), {}, f'assignments for {for_date}')

    def save_assignments(self, for_date: str, assignments: AssignmentMap,
                         mirror_current: bool = True) -> bool:
        """Save a date's plan, mirrored as the current plan when it is the active one."""
        payload = {
            cell_key: [p.to_dict() for p in people]
            for cell_key, people in assignments.items()
            if people
        }
        keys = [assignments_key(for_date)]
        if mirror_current:
            keys.append(CURRENT_ASSIGNMENTS_KEY)
        return _write_json(keys, payload)

    def stored_dates(self) -> List[str]:
        return get_stored_dates()

    def clear_assignments(self) -> bool:
        """Delete the stored plans of every date."""
        try:
            StoredSnapshot.query.filter(StoredSnapshot.key.like('assignments:%')).delete(
                synchronize_session=False
            )
            db.session.commit()
            return True
        except Exception as e:
            db.session.rollback()
            logger.error('[DB] Could not clear assignments: %s', e)
            return False

    # ==================== PERSONNEL ====================

    def read_personnel(self):
        outcome = _read_json(PERSONNEL_KEY, [])
        if not outcome.ok:
            return outcome
        try:
            if not isinstance(outcome.value, list):
                raise ValueError('personnel snapshot is not a list')
            return Loaded([Person.from_dict(p) for p in outcome.value])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            return LoadFailed(f'{PERSONNEL_KEY}: {e}')

    def load_personnel(self) -> List[Person]:
        people = _degrade(self.read_personnel(), [], 'personnel')
        logger.info('[DB] Loaded %d personnel record(s)', len(people))
        return people

    def save_personnel(self, people: List[Person]) -> bool:
        return _write_json([PERSONNEL_KEY], [p.to_dict() for p in people])

    # ==================== AVAILABILITY TAGS ====================

    def read_availability_tags(self):
        outcome = _read_json(AVAILABILITY_TAGS_KEY, {})
        if not outcome.ok:
            return outcome
        try:
            if not isinstance(outcome.value, dict):
                raise ValueError('availability tags are not an object')
            return Loaded({int(k): [str(t) for t in v] for k, v in outcome.value.items()})
        except (TypeError, ValueError) as e:
            return LoadFailed(f'{AVAILABILITY_TAGS_KEY}: {e}')

    def load_availability_tags(self) -> AvailabilityTagSet:
        return _degrade(self.read_availability_tags(), {}, 'availability tags')

    def save_availability_tags(self, tags: AvailabilityTagSet) -> bool:
        return _write_json([AVAILABILITY_TAGS_KEY], {str(k): list(v) for k, v in tags.items()})

    # ==================== PENDING REMOTE DELETIONS ====================

    def load_pending_deletions(self) -> List[str]:
        outcome = _read_json(PENDING_DELETIONS_KEY, [])
        if outcome.ok and not isinstance(outcome.value, list):
            outcome = LoadFailed(f'{PENDING_DELETIONS_KEY}: not a list')
        return [str(r) for r in _degrade(outcome, [], 'pending deletions')]

    def save_pending_deletions(self, remote_ids: List[str]) -> bool:
        return _write_json([PENDING_DELETIONS_KEY], list(remote_ids))


def get_stored_dates() -> List[str]:
    """Dates that have a stored plan, oldest first."""
    keys = [s.key for s in StoredSnapshot.query.filter(StoredSnapshot.key.like('assignments:%')).all()]
    return sorted(k.split(':', 1)[1] for k in keys if k != CURRENT_ASSIGNMENTS_KEY)
