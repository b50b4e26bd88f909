"""Operating-room assignment planner: personnel, grid engine and roster import."""

from .models import (
    Person,
    PersonnelGroup,
    SyncState,
    TableKey,
    TableConfiguration,
    CellKey,
    ShiftAssignment,
    InvalidAssignment,
    SpanGroup,
    RenderedCell,
    SHIFT_CATEGORIES,
    UNAVAILABLE
)
from .tables import get_configuration, list_configurations
from .directory import PersonnelDirectory, generate_initials
from .grid import AssignmentGrid, eligible_personnel
from .spans import compute_spans, get_consecutive_assignments, layout_row
from .roster import parse_roster, validate_assignments
from .store import PlannerStore, ImportReport

__all__ = [
    # Models
    'Person',
    'PersonnelGroup',
    'SyncState',
    'TableKey',
    'TableConfiguration',
    'CellKey',
    'ShiftAssignment',
    'InvalidAssignment',
    'SpanGroup',
    'RenderedCell',
    'SHIFT_CATEGORIES',
    'UNAVAILABLE',

    # Tables
    'get_configuration',
    'list_configurations',

    # Directory and grid
    'PersonnelDirectory',
    'generate_initials',
    'AssignmentGrid',
    'eligible_personnel',
    'compute_spans',
    'get_consecutive_assignments',
    'layout_row',

    # Import
    'parse_roster',
    'validate_assignments',

    # Store
    'PlannerStore',
    'ImportReport'
]
