"""
Hostel announcements with read receipts and optional event registration.
"""

from datetime import timedelta

from ..errors import PreconditionFailed
from ..utils import same_id, utcnow

CATEGORIES = ('notice', 'event', 'emergency', 'maintenance', 'dining', 'general')
PRIORITIES = ('low', 'medium', 'high', 'urgent')
AUDIENCES = ('all', 'students', 'staff', 'wardens')

# Which targetAudience values each user role reads
ROLE_AUDIENCES = {
    'student': ('all', 'students'),
    'warden': ('all', 'wardens', 'staff'),
    'canteen_owner': ('all', 'staff'),
    'admin': AUDIENCES,
}


def default_expiry(category, event_details, now):
    if category == 'emergency':
        return now + timedelta(hours=24)
    if category == 'event':
        return (event_details or {}).get('endDate')
    if category == 'notice':
        return now + timedelta(days=30)
    return now + timedelta(days=7)


def new_announcement(data, created_by, now=None):
    now = now or utcnow()
    category = data.get('category') or 'general'
    event_details = data.get('eventDetails')
    if event_details is not None:
        event_details = dict(event_details)
        event_details.setdefault('registrationRequired', False)
        event_details.setdefault('registeredParticipants', [])

    announcement = {
        'title': data['title'].strip(),
        'content': data['content'].strip(),
        'category': category,
        'priority': data.get('priority') or 'medium',
        'targetAudience': data.get('targetAudience') or 'all',
        'specificRooms': data.get('specificRooms') or [],
        'specificFloors': data.get('specificFloors') or [],
        'createdBy': created_by,
        'attachments': data.get('attachments') or [],
        'eventDetails': event_details,
        'isActive': True,
        'expiresAt': data.get('expiresAt') or default_expiry(category, event_details, now),
        'readBy': [],
        'views': 0,
        'isPinned': data.get('isPinned', False),
        'tags': data.get('tags') or [],
    }

    if category == 'emergency':
        announcement['priority'] = 'urgent'
    return announcement


def mark_as_read(announcement, user_id, now=None):
    """Record a read receipt; returns True only for a first read by this user"""
    if any(same_id(read['user'], user_id) for read in announcement['readBy']):
        return False
    announcement['readBy'].append({'user': user_id, 'readAt': now or utcnow()})
    announcement['views'] += 1
    return True


def _participants(announcement):
    return (announcement.get('eventDetails') or {}).get('registeredParticipants') or []


def register_for_event(announcement, user_id, now=None):
    if announcement['category'] != 'event':
        raise PreconditionFailed('Only event announcements allow registration')

    details = announcement.get('eventDetails') or {}
    if not details.get('registrationRequired'):
        raise PreconditionFailed('This event does not require registration')

    participants = details.setdefault('registeredParticipants', [])
    if any(same_id(p['user'], user_id) for p in participants):
        raise PreconditionFailed('User already registered for this event')

    if details.get('maxParticipants') and len(participants) >= details['maxParticipants']:
        raise PreconditionFailed('Event is full')

    participants.append({'user': user_id, 'registeredAt': now or utcnow()})
    return announcement


def unregister_from_event(announcement, user_id):
    if announcement['category'] != 'event':
        raise PreconditionFailed('Only event announcements allow registration')

    participants = _participants(announcement)
    for index, participant in enumerate(participants):
        if same_id(participant['user'], user_id):
            del participants[index]
            return announcement

    raise PreconditionFailed('User not registered for this event')


def audiences_for(role):
    return ROLE_AUDIENCES.get(role, ('all',))


def visible_to(announcement, user):
    """Audience check used for single-announcement access"""
    if announcement['targetAudience'] in audiences_for(user['role']):
        return True
    profile = user.get('profile') or {}
    if user['role'] == 'student' and profile:
        return (profile.get('roomNumber') in announcement.get('specificRooms', [])
                or profile.get('floor') in announcement.get('specificFloors', []))
    return False


def audience_query(user):
    """Mongo filter selecting the announcements a user may see"""
    clauses = [{'targetAudience': {'$in': list(audiences_for(user['role']))}}]
    profile = user.get('profile') or {}
    if user['role'] == 'student' and profile:
        if profile.get('roomNumber'):
            clauses.append({'specificRooms': profile['roomNumber']})
        if profile.get('floor') is not None:
            clauses.append({'specificFloors': profile['floor']})
    return {'$or': clauses}


def is_expired(announcement, now=None):
    expires = announcement.get('expiresAt')
    return bool(expires) and expires < (now or utcnow())


def present_announcement(announcement, now=None):
    data = dict(announcement)
    data['isExpired'] = is_expired(announcement, now)
    data['readCount'] = len(announcement.get('readBy', []))
    data['registrationCount'] = len(_participants(announcement))
    return data
