"""
OR Planner - Flask Application

JSON API for the operating-room assignment planner:
- Table configurations and the per-date assignment grid
- Drop / remove / reset of people in grid cells
- Personnel CRUD, CSV export and roster (.xlsx) import
- Sync with a remote personnel directory
"""

import logging
from datetime import date, datetime
from functools import wraps

from flask import Flask, Blueprint, Response, current_app, jsonify, request

from config import get_config
from db_service import SnapshotStorage, get_stored_dates
from directory_sync import DirectorySync, RemoteDirectoryClient
from models import init_db
from planner import (
    PlannerStore, PersonnelGroup, TableKey, list_configurations, parse_roster
)
from planner.roster import abbreviation

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')


def get_store() -> PlannerStore:
    """The planner store of the running application."""
    return current_app.extensions['planner_store']


def get_sync() -> DirectorySync:
    return current_app.extensions['directory_sync']


def api_error_handler(f):
    """Turn unexpected errors into a JSON 500 instead of an HTML page."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except Exception as e:
            logger.error("An error occurred in endpoint '%s': %s", f.__name__, e, exc_info=True)
            return jsonify({'success': False, 'message': 'An unexpected server error occurred.'}), 500
    return decorated_function


def _bad_request(message, status=400):
    return jsonify({'success': False, 'message': message}), status


def _parse_date(value):
    """Return the YYYY-MM-DD string or None if it is not a valid date."""
    try:
        return datetime.strptime(value or '', '%Y-%m-%d').date().isoformat()
    except ValueError:
        return None


def _cell_from_payload(data):
    """Build a cell key in the active table from role_index/room_index."""
    grid = get_store().grid
    role_index = int(data['role_index'])
    room_index = int(data['room_index'])
    if not (0 <= role_index < grid.table.role_count and 0 <= room_index < grid.table.room_count):
        raise ValueError('Cell is outside the active table')
    return grid.cell(role_index, room_index)


def _plan_payload():
    store = get_store()
    grid = store.grid
    search = request.args.get('search', '')
    group = request.args.get('group', 'all')
    return {
        'date': grid.active_date,
        'table': grid.table.to_dict(),
        'rows': [[cell.to_dict() for cell in row] for row in grid.layout()],
        'sidebar': [p.to_dict() for p in store.sidebar(search, group)],
        'availability_tags': {
            str(k): [abbreviation(t) for t in v] for k, v in store.availability_tags.items()
        },
    }


# ==================== TABLE API ====================

@api_bp.route('/tables', methods=['GET'])
@api_error_handler
def list_tables():
    """List all table configurations and the active one."""
    return jsonify({
        'tables': [t.to_dict() for t in list_configurations()],
        'active': get_store().grid.table.key.value
    })


@api_bp.route('/tables/<table_key>', methods=['POST'])
@api_error_handler
def switch_table(table_key):
    """Switch the active table configuration."""
    try:
        get_store().grid.select_table(table_key)
    except ValueError:
        return _bad_request(f'Unknown table: {table_key}', 404)
    return jsonify({'success': True, 'table': get_store().grid.table.to_dict()})


# ==================== PLAN API ====================

@api_bp.route('/plan', methods=['GET'])
@api_error_handler
def get_plan():
    """The active date's grid layout plus the draggable sidebar."""
    return jsonify(_plan_payload())


@api_bp.route('/plan/dates', methods=['GET'])
@api_error_handler
def list_plan_dates():
    """Dates that have a stored plan."""
    return jsonify({'dates': get_stored_dates()})


@api_bp.route('/plan/date', methods=['POST'])
@api_error_handler
def select_date():
    """Make another date the active plan."""
    data = request.get_json(silent=True) or {}
    new_date = _parse_date(data.get('date'))
    if new_date is None:
        return _bad_request('Date must be in YYYY-MM-DD format.')
    get_store().grid.select_date(new_date)
    return jsonify({'success': True, **_plan_payload()})


@api_bp.route('/plan/drop', methods=['POST'])
@api_error_handler
def drop_person():
    """Place a person into a cell of the active table."""
    data = request.get_json(silent=True) or {}
    store = get_store()
    try:
        cell = _cell_from_payload(data)
        person_id = int(data['person_id'])
    except (KeyError, TypeError, ValueError) as e:
        return _bad_request(f'Invalid drop: {e}')

    person = store.directory.get(person_id)
    if person is None:
        return _bad_request(f'Person {person_id} not found', 404)

    added = store.grid.drop(cell, person)
    return jsonify({
        'success': True,
        'added': added,
        'cell': cell.serialize(),
        'persons': [p.to_dict() for p in store.grid.cell_entries(cell)]
    })


@api_bp.route('/plan/remove', methods=['POST'])
@api_error_handler
def remove_person():
    """Take a person out of one cell."""
    data = request.get_json(silent=True) or {}
    store = get_store()
    try:
        cell = _cell_from_payload(data)
        person_id = int(data['person_id'])
    except (KeyError, TypeError, ValueError) as e:
        return _bad_request(f'Invalid remove: {e}')

    removed = store.grid.remove(cell, person_id)
    return jsonify({
        'success': True,
        'removed': removed,
        'cell': cell.serialize(),
        'persons': [p.to_dict() for p in store.grid.cell_entries(cell)]
    })


@api_bp.route('/plan/reset', methods=['POST'])
@api_error_handler
def reset_plan():
    """Clear every cell for the active date."""
    store = get_store()
    store.grid.reset()
    return jsonify({'success': True, 'date': store.grid.active_date})


@api_bp.route('/plan/spans', methods=['GET'])
@api_error_handler
def get_spans():
    """Runs of consecutive rooms held by one person in one row."""
    try:
        role_index = int(request.args['role_index'])
        person_id = int(request.args['person_id'])
    except (KeyError, ValueError):
        return _bad_request('role_index and person_id are required integers.')
    return jsonify({
        'role_index': role_index,
        'person_id': person_id,
        'groups': get_store().grid.consecutive_assignments(role_index, person_id)
    })


# ==================== PERSONNEL API ====================

@api_bp.route('/personnel', methods=['GET'])
@api_error_handler
def get_personnel():
    """Get all personnel in insertion order."""
    store = get_store()
    return jsonify({
        'personnel': [p.to_dict() for p in store.directory.list_all()],
        'groups': [g.value for g in PersonnelGroup],
        'has_unsynced_changes': store.directory.has_unsynced_changes()
    })


@api_bp.route('/personnel', methods=['POST'])
@api_error_handler
def add_personnel():
    """Add a new person."""
    data = request.get_json(silent=True) or {}
    if not (data.get('name') or '').strip():
        return _bad_request('Name is required.')
    try:
        person = get_store().directory.add(data)
    except ValueError as e:
        return _bad_request(str(e))
    return jsonify({'success': True, 'person': person.to_dict()})


@api_bp.route('/personnel/<int:person_id>', methods=['PUT'])
@api_error_handler
def update_personnel(person_id):
    """Update fields of an existing person."""
    data = request.get_json(silent=True) or {}
    directory = get_store().directory
    try:
        updated = directory.update(person_id, data)
    except ValueError as e:
        return _bad_request(str(e))
    if not updated:
        return _bad_request(f'Person {person_id} not found', 404)
    return jsonify({'success': True, 'person': directory.get(person_id).to_dict()})


@api_bp.route('/personnel/<int:person_id>', methods=['DELETE'])
@api_error_handler
def delete_personnel(person_id):
    """Delete a person and remove them from every plan cell."""
    if not get_store().directory.delete(person_id):
        return _bad_request(f'Person {person_id} not found', 404)
    return jsonify({'success': True, 'message': 'Person deleted'})


@api_bp.route('/personnel', methods=['DELETE'])
@api_error_handler
def clear_personnel():
    """Delete all personnel, availability tags and stored plans."""
    get_store().clear_all()
    return jsonify({'success': True, 'message': 'All planner data cleared'})


@api_bp.route('/personnel/export', methods=['GET'])
@api_error_handler
def export_personnel():
    """Download personnel as CSV."""
    csv_text = get_store().directory.export_csv()
    filename = f'personal-export-{date.today().isoformat()}.csv'
    return Response(
        csv_text,
        mimetype='text/csv; charset=utf-8',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )


@api_bp.route('/personnel/import', methods=['POST'])
@api_error_handler
def import_roster():
    """Import a shift roster workbook and replace everyone's availability."""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return _bad_request('No roster file uploaded.')

    result = parse_roster(upload.stream, filename=upload.filename)
    if not result.assignments:
        return jsonify({
            'success': False,
            'message': 'No shift assignments found in the file.',
            'errors': result.errors,
            'summary': result.summary.to_dict()
        }), 400

    report = get_store().import_roster(result)
    return jsonify({
        'success': True,
        'summary': result.summary.to_dict(),
        'report': report.to_dict()
    })


@api_bp.route('/availability-tags', methods=['GET'])
@api_error_handler
def get_availability_tags():
    """Availability categories per person id from the last import."""
    tags = get_store().availability_tags
    return jsonify({'tags': {str(k): v for k, v in tags.items()}})


# ==================== SYNC API ====================

@api_bp.route('/sync/status', methods=['GET'])
@api_error_handler
def sync_status():
    return jsonify({
        'configured': get_sync().client.is_configured(),
        'has_unsynced_changes': get_store().directory.has_unsynced_changes()
    })


@api_bp.route('/sync', methods=['POST'])
@api_error_handler
def run_sync():
    """Push local personnel changes and pull the remote directory."""
    sync = get_sync()
    if not sync.client.is_configured():
        return _bad_request('Remote directory not configured. Set DIRECTORY_SITE_ID, DIRECTORY_LIST_ID and DIRECTORY_ACCESS_TOKEN.')
    report = sync.sync(get_store().directory)
    return jsonify({'success': report.success, 'report': report.to_dict()})


# ==================== APPLICATION ====================

def create_app(config_object=None):
    """Build the Flask app, its database and the planner store."""
    app = Flask(__name__)
    app.config.from_object(config_object or get_config())

    logging.basicConfig(level=app.config.get('LOG_LEVEL', 'INFO'),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    init_db(app)

    with app.app_context():
        store = PlannerStore(SnapshotStorage(), date.today().isoformat(),
                             TableKey(app.config['PLANNER_DEFAULT_TABLE']))
        if app.config.get('SEED_SAMPLE_PERSONNEL'):
            seeded = store.seed_sample_personnel()
            if seeded:
                logger.info('[APP] Seeded %d sample personnel', seeded)

    app.extensions['planner_store'] = store
    app.extensions['directory_sync'] = DirectorySync(RemoteDirectoryClient(
        base_url=app.config['DIRECTORY_BASE_URL'],
        site_id=app.config['DIRECTORY_SITE_ID'],
        list_id=app.config['DIRECTORY_LIST_ID'],
        access_token=app.config['DIRECTORY_ACCESS_TOKEN'],
        timeout=app.config['DIRECTORY_TIMEOUT'],
    ))

    app.register_blueprint(api_bp)

    @app.route('/')
    def index():
        """Short overview of the running planner."""
        store = app.extensions['planner_store']
        return jsonify({
            'name': 'OR Planner',
            'date': store.grid.active_date,
            'table': store.grid.table.key.value,
            'personnel': len(store.directory.list_all())
        })

    return app


def flush_store(app):
    """Write all in-memory planner state; called on shutdown."""
    with app.app_context():
        return app.extensions['planner_store'].flush()


app = create_app()


if __name__ == '__main__':
    app.run(debug=app.config.get('DEBUG', False))
