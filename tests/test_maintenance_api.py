import pytest


def submit(client, headers, **fields):
    body = dict({
        'title': 'Fan not working',
        'description': 'Ceiling fan makes noise and stops',
        'category': 'electrical',
        'location': {'building': 'A', 'floor': 2, 'roomNumber': 'A-204'},
    }, **fields)
    return client.post('/api/maintenance', json=body, headers=headers)


@pytest.fixture
def request_doc(client, student):
    _, headers = student
    return submit(client, headers).get_json()['data']


def test_submit_request(client, student):
    user, headers = student
    response = submit(client, headers, priority='high', contactNumber='9876543210')

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['status'] == 'pending'
    assert data['requestedBy'] == str(user['_id'])
    assert data['priorityScore'] == 3
    assert data['responseTime'] is None
    assert [h['status'] for h in data['statusHistory']] == ['pending']


def test_submit_validates(client, student, warden):
    _, headers = student
    response = submit(client, headers, category='aliens', location={'building': 'A'})
    assert response.status_code == 400
    fields = {detail['field'] for detail in response.get_json()['details']}
    assert 'category' in fields
    assert 'location.floor' in fields

    _, staff_headers = warden
    assert submit(client, staff_headers).status_code == 403


def test_listing_is_scoped_and_sorted_by_priority(client, student, other_student, warden):
    _, headers = student
    _, other_headers = other_student
    _, staff_headers = warden

    submit(client, headers, title='Dripping tap', category='plumbing', priority='low')
    submit(client, headers, title='Sparking socket', priority='urgent')
    submit(client, other_headers, title='Broken chair', category='furniture',
           location={'building': 'C', 'floor': 1, 'roomNumber': 'C-101'})

    own = client.get('/api/maintenance', headers=headers).get_json()
    assert own['count'] == 2

    everything = client.get('/api/maintenance', headers=staff_headers).get_json()['data']
    assert [r['title'] for r in everything] == ['Sparking socket', 'Broken chair', 'Dripping tap']

    block_c = client.get('/api/maintenance?building=C', headers=staff_headers).get_json()['data']
    assert [r['title'] for r in block_c] == ['Broken chair']

    plumbing = client.get('/api/maintenance?category=plumbing', headers=staff_headers).get_json()['data']
    assert [r['title'] for r in plumbing] == ['Dripping tap']


def test_requests_are_private_to_requester_and_staff(client, request_doc, other_student, warden):
    _, other_headers = other_student
    _, staff_headers = warden
    url = f"/api/maintenance/{request_doc['_id']}"

    assert client.get(url, headers=other_headers).status_code == 403
    assert client.get(url, headers=staff_headers).status_code == 200


def test_assign_acknowledges_pending_request(client, request_doc, warden, student):
    warden_user, staff_headers = warden
    student_user, _ = student
    url = f"/api/maintenance/{request_doc['_id']}/assign"

    response = client.put(url, json={'assignedTo': str(student_user['_id'])}, headers=staff_headers)
    assert response.status_code == 400

    response = client.put(url, json={'assignedTo': str(warden_user['_id'])}, headers=staff_headers)
    data = response.get_json()['data']
    assert data['status'] == 'acknowledged'
    assert data['assignedTo'] == str(warden_user['_id'])
    assert data['responseTime'] is not None


def test_complete_and_rate(client, request_doc, student, warden):
    _, headers = student
    _, staff_headers = warden
    url = f"/api/maintenance/{request_doc['_id']}"

    response = client.post(f'{url}/rate', json={'rating': 5}, headers=headers)
    assert response.get_json()['code'] == 'PRECONDITION_FAILED'

    response = client.put(f'{url}/status', json={
        'status': 'completed',
        'notes': 'Replaced capacitor',
        'resolutionNotes': 'Fan capacitor replaced',
        'actualCost': 150,
    }, headers=staff_headers)
    data = response.get_json()['data']
    assert data['status'] == 'completed'
    assert data['actualCompletionDate'] is not None
    assert data['resolutionNotes'] == 'Fan capacitor replaced'
    assert data['actualCost'] == 150
    assert len(data['statusHistory']) == 2

    response = client.put(f'{url}/status', json={'status': 'in_progress'}, headers=staff_headers)
    assert response.get_json()['code'] == 'PRECONDITION_FAILED'

    response = client.post(f'{url}/rate', json={'rating': 4, 'feedback': 'Quick fix'}, headers=headers)
    assert response.get_json()['data']['studentRating'] == 4

    response = client.post(f'{url}/rate', json={'rating': 9}, headers=headers)
    assert response.status_code == 400


def test_cancel_only_while_pending(client, request_doc, student, other_student, warden):
    _, headers = student
    _, other_headers = other_student
    _, staff_headers = warden
    url = f"/api/maintenance/{request_doc['_id']}"

    assert client.post(f'{url}/cancel', json={}, headers=other_headers).status_code == 403

    client.put(f'{url}/status', json={'status': 'in_progress'}, headers=staff_headers)
    response = client.post(f'{url}/cancel', json={'reason': 'Fixed it myself'}, headers=headers)
    assert response.get_json()['code'] == 'PRECONDITION_FAILED'


@pytest.mark.parametrize('status', ['cancelled', 'pending'])
def test_staff_cannot_cancel_or_reopen(client, request_doc, warden, status):
    _, staff_headers = warden
    url = f"/api/maintenance/{request_doc['_id']}"

    client.put(f'{url}/status', json={'status': 'in_progress'}, headers=staff_headers)
    response = client.put(f'{url}/status', json={'status': status}, headers=staff_headers)
    assert response.status_code == 400
    assert response.get_json()['code'] == 'PRECONDITION_FAILED'

    data = client.get(url, headers=staff_headers).get_json()['data']
    assert data['status'] == 'in_progress'
    assert [h['status'] for h in data['statusHistory']] == ['pending', 'in_progress']


def test_cancel_pending_request(client, request_doc, student):
    _, headers = student
    response = client.post(f"/api/maintenance/{request_doc['_id']}/cancel",
                           json={'reason': 'Fixed it myself'}, headers=headers)
    data = response.get_json()['data']
    assert data['status'] == 'cancelled'
    assert data['statusHistory'][-1]['notes'] == 'Fixed it myself'


def test_stats(client, student, warden):
    _, headers = student
    _, staff_headers = warden

    first = submit(client, headers, priority='urgent').get_json()['data']
    submit(client, headers)
    submit(client, headers, priority='urgent')

    url = f"/api/maintenance/{first['_id']}"
    client.put(f'{url}/status', json={'status': 'completed'}, headers=staff_headers)
    client.post(f'{url}/rate', json={'rating': 4}, headers=headers)

    stats = client.get('/api/maintenance/stats', headers=staff_headers).get_json()['data']
    assert stats == {
        'total': 3,
        'pending': 2,
        'inProgress': 0,
        'completed': 1,
        'avgRating': 4,
        'urgentCount': 2,
    }

    assert client.get('/api/maintenance/stats', headers=headers).status_code == 403
