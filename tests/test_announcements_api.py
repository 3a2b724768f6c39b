from datetime import datetime, timedelta

import pytest

from hostelhub.errors import PreconditionFailed


def create(client, headers, **fields):
    body = dict({
        'title': 'Water supply cut',
        'content': 'No water on floors 1-3 between 10am and 2pm.',
        'category': 'maintenance',
        'targetAudience': 'all',
    }, **fields)
    return client.post('/api/announcements', json=body, headers=headers)


@pytest.fixture
def event(client, warden):
    _, headers = warden
    return create(client, headers, title='Cultural night', category='event',
                  content='Music and food on the hostel lawn.',
                  eventDetails={
                      'startDate': '2099-06-01T18:00:00Z',
                      'endDate': '2099-06-01T22:00:00Z',
                      'venue': 'Lawn',
                      'registrationRequired': True,
                      'maxParticipants': 1,
                  }).get_json()['data']


def test_create_announcement_publishes(client, warden, events):
    warden_user, headers = warden
    response = create(client, headers, targetAudience='students', tags=['water'])

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['createdBy'] == str(warden_user['_id'])
    assert data['views'] == 0
    assert data['isRead'] is False
    assert data['isExpired'] is False

    name, payload, room = events[-1]
    assert name == 'announcement'
    assert payload['title'] == 'Water supply cut'
    assert room == 'students'


def test_students_cannot_post(client, student, canteen_owner):
    _, headers = student
    assert create(client, headers).status_code == 403
    _, staff_headers = canteen_owner
    assert create(client, staff_headers).status_code == 403


def test_create_validates_event_dates(client, warden):
    _, headers = warden
    response = create(client, headers, category='event', eventDetails={
        'startDate': '2099-06-02T10:00:00Z',
        'endDate': '2099-06-01T10:00:00Z',
    })
    assert response.status_code == 400
    assert response.get_json()['code'] == 'VALIDATION_ERROR'


def test_emergency_is_urgent_and_short_lived(client, warden):
    _, headers = warden
    data = create(client, headers, title='Fire drill', category='emergency', priority='low').get_json()['data']
    assert data['priority'] == 'urgent'

    expires = datetime.fromisoformat(data['expiresAt'])
    assert timedelta(hours=23) < expires - datetime.utcnow() <= timedelta(hours=24)


def test_audience_filtering(client, student, warden):
    _, headers = student
    _, staff_headers = warden

    create(client, staff_headers, title='For everyone')
    create(client, staff_headers, title='For students', targetAudience='students')
    wardens_only = create(client, staff_headers, title='Warden meeting', targetAudience='wardens').get_json()['data']
    create(client, staff_headers, title='Room inspection', targetAudience='staff', specificRooms=['A-204'])
    create(client, staff_headers, title='Other room', targetAudience='staff', specificRooms=['B-101'])

    titles = {a['title'] for a in client.get('/api/announcements', headers=headers).get_json()['data']}
    assert titles == {'For everyone', 'For students', 'Room inspection'}

    response = client.get(f"/api/announcements/{wardens_only['_id']}", headers=headers)
    assert response.status_code == 403

    titles = {a['title'] for a in client.get('/api/announcements', headers=staff_headers).get_json()['data']}
    assert titles == {'For everyone', 'Warden meeting', 'Room inspection', 'Other room'}


def test_reading_counts_each_user_once(client, repos, student, other_student, warden):
    _, headers = student
    _, other_headers = other_student
    _, staff_headers = warden
    doc = create(client, staff_headers).get_json()['data']
    url = f"/api/announcements/{doc['_id']}"

    data = client.get(url, headers=headers).get_json()['data']
    assert data['isRead'] is True
    assert data['views'] == 1

    client.get(url, headers=headers)
    response = client.post(f'{url}/read', headers=headers)
    assert response.get_json()['message'] == 'Already marked as read'

    response = client.post(f'{url}/read', headers=other_headers)
    assert response.get_json()['message'] == 'Marked as read'

    stored = repos.announcements.get(doc['_id'])
    assert stored['views'] == 2
    assert len(stored['readBy']) == 2


def test_pinned_first_and_only_admin_pins(client, warden, admin, student):
    _, staff_headers = warden
    _, admin_headers = admin
    _, headers = student

    create(client, admin_headers, title='Pinned rules', isPinned=True)
    not_pinned = create(client, staff_headers, title='Warden tries to pin', isPinned=True).get_json()['data']
    assert not_pinned['isPinned'] is False

    titles = [a['title'] for a in client.get('/api/announcements', headers=headers).get_json()['data']]
    assert titles == ['Pinned rules', 'Warden tries to pin']

    url = f"/api/announcements/{not_pinned['_id']}/pin"
    assert client.post(url, headers=staff_headers).status_code == 403
    assert client.post(url, headers=admin_headers).get_json()['data'] == {'isPinned': True}
    assert client.post(url, headers=admin_headers).get_json()['data'] == {'isPinned': False}


def test_update_and_soft_delete(client, warden, admin, student):
    _, staff_headers = warden
    _, admin_headers = admin
    _, headers = student
    doc = create(client, staff_headers).get_json()['data']
    url = f"/api/announcements/{doc['_id']}"

    response = client.put(url, json={'title': '  Water supply restored  ', 'category': 'emergency'},
                          headers=staff_headers)
    data = response.get_json()['data']
    assert data['title'] == 'Water supply restored'
    assert data['priority'] == 'urgent'

    response = client.put(url, json={'priority': 'low'}, headers=admin_headers)
    assert response.status_code == 200

    assert client.delete(url, headers=headers).status_code == 403
    assert client.delete(url, headers=staff_headers).status_code == 200
    assert client.get(url, headers=headers).status_code == 404
    assert client.get('/api/announcements', headers=headers).get_json()['data'] == []


def test_event_registration(client, event, student, other_student, warden):
    _, headers = student
    _, other_headers = other_student
    _, staff_headers = warden
    url = f"/api/announcements/{event['_id']}/register"

    assert event['expiresAt'] == '2099-06-01T22:00:00'

    response = client.post(url, headers=headers)
    assert response.get_json()['data'] == {'registrationCount': 1}

    response = client.post(url, headers=headers)
    assert response.get_json()['message'] == 'User already registered for this event'

    response = client.post(url, headers=other_headers)
    assert response.get_json()['message'] == 'Event is full'

    response = client.delete(url, headers=headers)
    assert response.get_json()['data'] == {'registrationCount': 0}

    response = client.delete(url, headers=headers)
    assert response.get_json()['code'] == 'PRECONDITION_FAILED'

    response = client.put(f"/api/announcements/{event['_id']}", json={
        'eventDetails': {'startDate': '2099-06-01T18:00:00Z', 'maxParticipants': 50}
    }, headers=staff_headers)
    details = response.get_json()['data']['eventDetails']
    assert details['maxParticipants'] == 50
    assert details['venue'] == 'Lawn'


def test_registration_keeps_concurrent_read_receipts(repos, event, student, other_student):
    user, _ = student
    reader, _ = other_student
    stale = repos.announcements.get(event['_id'])

    assert repos.announcements.record_read(repos.announcements.get(event['_id']), reader['_id'])
    repos.announcements.register_participant(stale, user['_id'])

    stored = repos.announcements.get(event['_id'])
    assert [r['user'] for r in stored['readBy']] == [reader['_id']]
    assert stored['views'] == 1
    assert [p['user'] for p in stored['eventDetails']['registeredParticipants']] == [user['_id']]

    repos.announcements.unregister_participant(stored, user['_id'])
    stored = repos.announcements.get(event['_id'])
    assert stored['eventDetails']['registeredParticipants'] == []
    assert len(stored['readBy']) == 1


def test_registration_cap_holds_for_stale_copies(repos, event, student, other_student):
    user, _ = student
    latecomer, _ = other_student
    stale = repos.announcements.get(event['_id'])

    repos.announcements.register_participant(repos.announcements.get(event['_id']), user['_id'])

    with pytest.raises(PreconditionFailed, match='Event is full'):
        repos.announcements.register_participant(stale, latecomer['_id'])

    stored = repos.announcements.get(event['_id'])
    assert [p['user'] for p in stored['eventDetails']['registeredParticipants']] == [user['_id']]


def test_registration_needs_an_event(client, student, warden):
    _, headers = student
    _, staff_headers = warden
    doc = create(client, staff_headers).get_json()['data']

    response = client.post(f"/api/announcements/{doc['_id']}/register", headers=headers)
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Only event announcements allow registration'


def test_upcoming_events_and_category_filter(client, event, student, warden):
    _, headers = student
    _, staff_headers = warden
    create(client, staff_headers, title='Menu change', category='dining')

    upcoming = client.get('/api/announcements?upcomingEvents=true', headers=headers).get_json()['data']
    assert [a['title'] for a in upcoming] == ['Cultural night']

    dining = client.get('/api/announcements?category=dining', headers=headers).get_json()['data']
    assert [a['title'] for a in dining] == ['Menu change']


def test_search(client, student, warden):
    _, headers = student
    _, staff_headers = warden
    create(client, staff_headers, title='WiFi outage', content='Routers on block B are being replaced.')
    create(client, staff_headers, title='Gym timings', content='Gym now opens at 6am every day.')

    found = client.get('/api/announcements/search?q=wifi', headers=headers).get_json()['data']
    assert [a['title'] for a in found] == ['WiFi outage']

    found = client.get('/api/announcements/search?q=6am', headers=headers).get_json()['data']
    assert [a['title'] for a in found] == ['Gym timings']

    assert client.get('/api/announcements/search?q=a', headers=headers).status_code == 400


def test_stats(client, event, student, warden):
    _, headers = student
    _, staff_headers = warden
    doc = create(client, staff_headers, priority='high').get_json()['data']
    client.get(f"/api/announcements/{doc['_id']}", headers=headers)

    stats = client.get('/api/announcements/stats', headers=staff_headers).get_json()['data']
    assert stats['totalAnnouncements'] == 2
    assert stats['totalViews'] == 1
    assert stats['activeEvents'] == 1
    assert stats['categoryCounts'] == {'event': 1, 'maintenance': 1}
    assert stats['priorityCounts'] == {'medium': 1, 'high': 1}

    assert client.get('/api/announcements/stats', headers=headers).status_code == 403
