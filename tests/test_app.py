"""API tests using the Flask test client."""

import io

import pytest
from openpyxl import Workbook


def _add(client, name, **fields):
    response = client.post('/api/personnel', json={'name': name, **fields})
    assert response.status_code == 200
    return response.get_json()['person']


def _roster_upload(rows, filename='dienstplan.xlsx'):
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    buffer.seek(0)
    return {'file': (buffer, filename)}


def test_index_reports_overview(client):
    data = client.get('/').get_json()
    assert data['name'] == 'OR Planner'
    assert data['table'] == 'main'


def test_tables_list_and_switch(client):
    data = client.get('/api/tables').get_json()
    assert [t['key'] for t in data['tables']] == ['main', 'emergency', 'weekend']
    assert data['active'] == 'main'

    response = client.post('/api/tables/weekend')
    assert response.status_code == 200
    assert response.get_json()['table']['rooms'] == ['A1', 'B1', 'D1', 'Kreißsaal']

    assert client.post('/api/tables/nowhere').status_code == 404


def test_personnel_crud(client):
    person = _add(client, 'Anna Müller', group='MFA', availability_state='Frühdienste (Früh)')
    assert person['initials'] == 'AM'
    assert person['is_active'] is True

    response = client.put(f"/api/personnel/{person['id']}", json={'name': 'Anna Schulz'})
    assert response.get_json()['person']['initials'] == 'AS'

    assert client.put('/api/personnel/999', json={'name': 'x'}).status_code == 404
    assert client.post('/api/personnel', json={'name': ' '}).status_code == 400
    assert client.post('/api/personnel', json={'name': 'Ben', 'group': 'Chef'}).status_code == 400

    listing = client.get('/api/personnel').get_json()
    assert [p['name'] for p in listing['personnel']] == ['Anna Schulz']
    assert listing['has_unsynced_changes'] is True

    assert client.delete(f"/api/personnel/{person['id']}").status_code == 200
    assert client.delete(f"/api/personnel/{person['id']}").status_code == 404


def test_drop_remove_and_plan(client):
    client.post('/api/plan/date', json={'date': '2024-05-17'})
    anna = _add(client, 'Anna Müller', availability_state='Frühdienste (Früh)')

    for room in (2, 3, 4):
        response = client.post('/api/plan/drop', json={'role_index': 0, 'room_index': room, 'person_id': anna['id']})
        assert response.get_json()['added'] is True
    again = client.post('/api/plan/drop', json={'role_index': 0, 'room_index': 2, 'person_id': anna['id']})
    assert again.get_json()['added'] is False

    plan = client.get('/api/plan').get_json()
    first_row = plan['rows'][0]
    anchor = next(c for c in first_row if c['room_index'] == 2)
    assert anchor['width'] == 3
    assert all(c['room_index'] not in (3, 4) for c in first_row)
    assert [p['id'] for p in plan['sidebar']] == [anna['id']]

    spans = client.get(f"/api/plan/spans?role_index=0&person_id={anna['id']}").get_json()
    assert spans['groups'] == [[2, 3, 4]]

    response = client.post('/api/plan/remove', json={'role_index': 0, 'room_index': 3, 'person_id': anna['id']})
    assert response.get_json()['removed'] is True
    assert response.get_json()['persons'] == []

    spans = client.get(f"/api/plan/spans?role_index=0&person_id={anna['id']}").get_json()
    assert spans['groups'] == [[2], [4]]


def test_drop_validation(client):
    anna = _add(client, 'Anna Müller')
    assert client.post('/api/plan/drop', json={'role_index': 0, 'room_index': 0, 'person_id': 999}).status_code == 404
    assert client.post('/api/plan/drop', json={'role_index': 0, 'room_index': 99, 'person_id': anna['id']}).status_code == 400
    assert client.post('/api/plan/drop', json={'room_index': 0}).status_code == 400


def test_date_switch_and_reset(client):
    anna = _add(client, 'Anna Müller', availability_state='Frühdienste (Früh)')
    client.post('/api/plan/date', json={'date': '2024-05-17'})
    client.post('/api/plan/drop', json={'role_index': 1, 'room_index': 1, 'person_id': anna['id']})

    other = client.post('/api/plan/date', json={'date': '2024-05-18'}).get_json()
    assert all(not c['persons'] for row in other['rows'] for c in row)

    back = client.post('/api/plan/date', json={'date': '2024-05-17'}).get_json()
    assert back['rows'][1][1]['persons'][0]['id'] == anna['id']
    assert client.get('/api/plan/dates').get_json()['dates'] == ['2024-05-17']

    client.post('/api/plan/reset')
    plan = client.get('/api/plan').get_json()
    assert all(not c['persons'] for row in plan['rows'] for c in row)

    assert client.post('/api/plan/date', json={'date': '17.05.2024'}).status_code == 400


def test_delete_person_clears_cells(client, store):
    anna = _add(client, 'Anna Müller', availability_state='Frühdienste (Früh)')
    client.post('/api/plan/drop', json={'role_index': 0, 'room_index': 0, 'person_id': anna['id']})

    client.delete(f"/api/personnel/{anna['id']}")

    assert store.grid.assignments == {}


def test_export_csv(client):
    _add(client, 'Anna Müller', department='OP')

    response = client.get('/api/personnel/export')

    assert response.status_code == 200
    assert response.mimetype == 'text/csv'
    assert 'attachment; filename=personal-export-' in response.headers['Content-Disposition']
    assert '"Anna Müller","OP-Pflege","OP"' in response.get_data(as_text=True)


def test_import_roster_upload(client):
    anna = _add(client, 'Anna Müller')
    ben = _add(client, 'Ben Koch', availability_state='Spätdienste (Spät)')

    response = client.post(
        '/api/personnel/import',
        data=_roster_upload([['Frühdienste'], ['Müller, Anna (OP) (Früh)']]),
        content_type='multipart/form-data'
    )

    assert response.status_code == 200
    data = response.get_json()
    assert data['report']['available_count'] == 1
    assert data['summary']['assigned_personnel'] == 1

    people = {p['id']: p for p in client.get('/api/personnel').get_json()['personnel']}
    assert people[anna['id']]['availability_state'] == 'Frühdienste (Früh)'
    assert people[ben['id']]['availability_state'] == 'nicht verfügbar'
    assert people[ben['id']]['is_available'] is False

    tags = client.get('/api/plan').get_json()['availability_tags']
    assert tags[str(anna['id'])] == ['Früh']


def test_import_without_assignments_is_rejected(client):
    response = client.post(
        '/api/personnel/import',
        data=_roster_upload([['Name'], ['Anna']]),
        content_type='multipart/form-data'
    )
    assert response.status_code == 400
    assert response.get_json()['errors']

    assert client.post('/api/personnel/import', data={}, content_type='multipart/form-data').status_code == 400


def test_clear_all(client):
    _add(client, 'Anna Müller')
    assert client.delete('/api/personnel').status_code == 200
    assert client.get('/api/personnel').get_json()['personnel'] == []


def test_sync_requires_configuration(client):
    status = client.get('/api/sync/status').get_json()
    assert status['configured'] is False

    assert client.post('/api/sync').status_code == 400


@pytest.mark.parametrize("url", ['/api/personnel', '/api/personnel/export', '/api/sync/status'])
def test_unexpected_errors_return_json(client, store, monkeypatch, url):
    def broken():
        raise RuntimeError("boom")

    monkeypatch.setattr(store.directory, 'list_all', broken)
    monkeypatch.setattr(store.directory, 'export_csv', broken)
    monkeypatch.setattr(store.directory, 'has_unsynced_changes', broken)

    response = client.get(url)

    assert response.status_code == 500
    assert response.get_json() == {'success': False, 'message': 'An unexpected server error occurred.'}
