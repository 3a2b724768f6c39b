from datetime import datetime

import pytest

from hostelhub.tasks import mark_overdue_outpasses

REQUEST = {
    'reason': 'Sister wedding',
    'type': 'family_event',
    'outDate': '2099-05-01',
    'outTime': '09:00',
    'inDate': '2099-05-03',
    'inTime': '18:30',
    'destination': {'address': '12 MG Road', 'city': 'Pune', 'state': 'Maharashtra'},
    'contactDuringLeave': {'primaryNumber': '9876543210'},
    'emergencyContact': {'name': 'Meera', 'relationship': 'Mother', 'phoneNumber': '9123456780'},
    'transportMode': 'train',
    'rulesAcknowledged': True,
}


def submit(client, headers, **fields):
    return client.post('/api/outpass/request', json=dict(REQUEST, **fields), headers=headers)


@pytest.fixture
def outpass_doc(client, student):
    _, headers = student
    return submit(client, headers).get_json()['data']


@pytest.fixture
def checked_out(client, outpass_doc, warden):
    _, staff_headers = warden
    url = f"/api/outpass/request/{outpass_doc['_id']}"
    client.put(f'{url}/review', json={'status': 'approved'}, headers=staff_headers)
    client.post(f'{url}/check-out', json={'location': 'Main gate'}, headers=staff_headers)
    return outpass_doc


def test_submit_outpass(client, student):
    user, headers = student
    response = submit(client, headers)

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['status'] == 'pending'
    assert data['requestedBy'] == str(user['_id'])
    assert data['outDate'] == '2099-05-01T00:00:00'
    assert data['duration'] == {'days': 2, 'hours': 9}
    assert data['totalDurationHours'] == 58
    assert data['statusDescription'] == 'Waiting for review'
    assert data['isOverdue'] is False


@pytest.mark.parametrize('fields, field', [
    ({'inDate': '2099-05-01', 'inTime': '08:00'}, 'inDate'),
    ({'outDate': '2001-05-01', 'inDate': '2001-05-03'}, 'outDate'),
    ({'rulesAcknowledged': False}, 'rulesAcknowledged'),
    ({'outTime': '25:00'}, 'outTime'),
    ({'type': 'vacation'}, 'type'),
])
def test_submit_rejects_bad_requests(client, student, fields, field):
    _, headers = student
    response = submit(client, headers, **fields)
    assert response.status_code == 400
    assert field in {detail['field'] for detail in response.get_json()['details']}


def test_only_students_submit(client, warden):
    _, headers = warden
    assert submit(client, headers).status_code == 403


def test_review_flow(client, outpass_doc, student, warden):
    _, headers = student
    warden_user, staff_headers = warden
    url = f"/api/outpass/request/{outpass_doc['_id']}"

    assert client.put(f'{url}/review', json={'status': 'approved'}, headers=headers).status_code == 403

    response = client.put(f'{url}/start-review', headers=staff_headers)
    assert response.get_json()['data']['status'] == 'under_review'

    response = client.put(f'{url}/review', json={'status': 'approved', 'reviewNotes': 'Enjoy'},
                          headers=staff_headers)
    data = response.get_json()['data']
    assert data['status'] == 'approved'
    assert data['reviewedBy'] == str(warden_user['_id'])
    assert data['reviewNotes'] == 'Enjoy'

    response = client.put(f'{url}/review', json={'status': 'rejected'}, headers=staff_headers)
    assert response.get_json()['code'] == 'PRECONDITION_FAILED'

    response = client.post(f'{url}/cancel', json={}, headers=headers)
    assert response.get_json()['code'] == 'PRECONDITION_FAILED'


def test_gate_flow(client, checked_out, warden):
    warden_user, staff_headers = warden
    url = f"/api/outpass/request/{checked_out['_id']}"

    data = client.get(url, headers=staff_headers).get_json()['data']
    assert data['status'] == 'checked_out'
    assert data['actualOutTime'] is not None
    assert data['checkedOutBy'] == str(warden_user['_id'])
    assert data['statusHistory'][-1]['location'] == 'Main gate'

    response = client.post(f'{url}/check-in', json={}, headers=staff_headers)
    data = response.get_json()['data']
    assert data['status'] == 'returned'
    assert data['actualInTime'] is not None
    assert [h['status'] for h in data['statusHistory']] == ['pending', 'approved', 'checked_out', 'returned']

    response = client.post(f'{url}/check-in', json={}, headers=staff_headers)
    assert response.get_json()['code'] == 'PRECONDITION_FAILED'


def test_check_out_requires_approval(client, outpass_doc, warden):
    _, staff_headers = warden
    response = client.post(f"/api/outpass/request/{outpass_doc['_id']}/check-out", json={},
                           headers=staff_headers)
    assert response.status_code == 400
    assert response.get_json()['code'] == 'PRECONDITION_FAILED'


def test_student_cancels_pending_request(client, outpass_doc, student, other_student):
    _, headers = student
    _, other_headers = other_student
    url = f"/api/outpass/request/{outpass_doc['_id']}"

    assert client.get(url, headers=other_headers).status_code == 403
    assert client.post(f'{url}/cancel', json={}, headers=other_headers).status_code == 403

    response = client.post(f'{url}/cancel', json={'reason': 'Plans changed'}, headers=headers)
    data = response.get_json()['data']
    assert data['status'] == 'cancelled'
    assert data['statusHistory'][-1]['notes'] == 'Plans changed'


def test_overdue_reconciliation(client, repos, checked_out, warden):
    _, staff_headers = warden
    url = f"/api/outpass/request/{checked_out['_id']}"

    response = client.post('/api/outpass/reconcile-overdue', headers=staff_headers)
    assert response.get_json()['count'] == 0

    changed = mark_overdue_outpasses(repos.outpasses, now=datetime(2099, 5, 4, 9, 0))
    assert [str(r['_id']) for r in changed] == [checked_out['_id']]

    data = client.get(url, headers=staff_headers).get_json()['data']
    assert data['status'] == 'overdue'
    assert data['statusHistory'][-1]['notes'] == 'Automatic status update - Return time exceeded'

    assert mark_overdue_outpasses(repos.outpasses, now=datetime(2099, 5, 4, 9, 0)) == []

    response = client.post(f'{url}/check-in', json={}, headers=staff_headers)
    assert response.get_json()['data']['status'] == 'returned'


def test_overdue_skips_requests_checked_in_meanwhile(repos, checked_out):
    stale = repos.outpasses.get(checked_out['_id'])
    stored = repos.outpasses.get(checked_out['_id'])
    stored['status'] = 'returned'
    repos.outpasses.save(stored)

    stale['status'] = 'overdue'
    assert not repos.outpasses.save_if(stale, {'status': 'checked_out'})
    assert repos.outpasses.get(checked_out['_id'])['status'] == 'returned'


def test_listing_and_stats(client, student, other_student, warden, checked_out):
    _, headers = student
    _, other_headers = other_student
    _, staff_headers = warden

    submit(client, other_headers, type='medical', reason='Dentist', isEmergency=True)

    own = client.get('/api/outpass/requests', headers=headers).get_json()
    assert own['count'] == 1
    assert own['data'][0]['requestedBy'] == own['data'][0]['statusHistory'][0]['changedBy']

    everything = client.get('/api/outpass/requests?sortBy=createdAt&sortOrder=asc',
                            headers=staff_headers).get_json()['data']
    assert [r['requestedBy']['name'] for r in everything] == ['Asha', 'Ravi']

    medical = client.get('/api/outpass/requests?type=medical', headers=staff_headers).get_json()['data']
    assert [r['reason'] for r in medical] == ['Dentist']

    response = client.get('/api/outpass/stats?period=week', headers=staff_headers)
    data = response.get_json()['data']
    assert data['period'] == 'week'
    assert data['overview']['total'] == 2
    assert data['overview']['pending'] == 1
    assert data['overview']['checkedOut'] == 1
    assert data['overview']['emergencyCount'] == 1
    assert sorted(t['_id'] for t in data['typeBreakdown']) == ['family_event', 'medical']
    assert [r['requestedBy']['identifier'] for r in data['currentlyOut']['checkedOut']] == ['2023CSE042']
    assert data['currentlyOut']['overdue'] == []

    assert client.get('/api/outpass/stats', headers=headers).status_code == 403
