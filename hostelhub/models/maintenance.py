"""
Maintenance requests raised by students and worked by hostel staff.

    pending -> acknowledged -> in_progress -> waiting_parts -> completed
    pending -> cancelled            (requester)
    any open status -> rejected     (staff)
"""

import math

from ..errors import PreconditionFailed
from ..utils import utcnow

PENDING = 'pending'
ACKNOWLEDGED = 'acknowledged'
IN_PROGRESS = 'in_progress'
WAITING_PARTS = 'waiting_parts'
COMPLETED = 'completed'
CANCELLED = 'cancelled'
REJECTED = 'rejected'

STATUSES = (PENDING, ACKNOWLEDGED, IN_PROGRESS, WAITING_PARTS, COMPLETED, CANCELLED, REJECTED)
TERMINAL = (COMPLETED, CANCELLED, REJECTED)
# Statuses staff may set; pending is the start state and only the requester cancels
STAFF_STATUSES = (ACKNOWLEDGED, IN_PROGRESS, WAITING_PARTS, COMPLETED, REJECTED)

CATEGORIES = (
    'electrical', 'plumbing', 'furniture', 'internet', 'ac_heating',
    'lighting', 'door_window', 'cleaning', 'security', 'other',
)
PRIORITIES = ('low', 'medium', 'high', 'urgent')
PRIORITY_SCORES = {'urgent': 4, 'high': 3, 'medium': 2, 'low': 1}
TIME_SLOTS = ('morning', 'afternoon', 'evening', 'anytime')


def new_request(data, requested_by, now=None):
    now = now or utcnow()
    return {
        'title': data['title'].strip(),
        'description': data['description'].strip(),
        'category': data['category'],
        'priority': data.get('priority') or 'medium',
        'location': data['location'],
        'photos': data.get('photos') or [],
        'status': PENDING,
        'assignedTo': None,
        'assignedAt': None,
        'expectedCompletionDate': None,
        'actualCompletionDate': None,
        'resolutionNotes': '',
        'studentRating': None,
        'studentFeedback': '',
        'requestedBy': requested_by,
        'isEmergency': data.get('isEmergency', False),
        'estimatedCost': 0,
        'actualCost': 0,
        'contactNumber': data.get('contactNumber') or '',
        'preferredTimeSlot': data.get('preferredTimeSlot') or 'anytime',
        'statusHistory': [{
            'status': PENDING,
            'changedBy': requested_by,
            'changedAt': now,
            'notes': 'Request submitted',
        }],
    }


def update_status(request, new_status, changed_by, notes='', now=None):
    if request['status'] in TERMINAL:
        raise PreconditionFailed(f"Request is already {request['status']}")

    now = now or utcnow()
    request['statusHistory'].append({
        'status': new_status,
        'changedBy': changed_by,
        'changedAt': now,
        'notes': notes or '',
    })
    request['status'] = new_status

    if new_status == COMPLETED:
        request['actualCompletionDate'] = now
    return request


def assign(request, assignee, changed_by, now=None):
    """Assign a staff member; a pending request becomes acknowledged"""
    if request['status'] in TERMINAL:
        raise PreconditionFailed(f"Request is already {request['status']}")

    now = now or utcnow()
    request['assignedTo'] = assignee
    request['assignedAt'] = now
    if request['status'] == PENDING:
        update_status(request, ACKNOWLEDGED, changed_by, 'Assigned to staff', now=now)
    return request


def update_status_by_staff(request, new_status, changed_by, notes='', now=None):
    if new_status not in STAFF_STATUSES:
        raise PreconditionFailed(f'Staff cannot move a request to {new_status}')
    return update_status(request, new_status, changed_by, notes, now=now)


def add_rating(request, rating, feedback=''):
    if request['status'] != COMPLETED:
        raise PreconditionFailed('Can only rate completed requests')

    request['studentRating'] = rating
    request['studentFeedback'] = feedback or ''
    return request


def cancel_by_requester(request, changed_by, reason='', now=None):
    if request['status'] != PENDING:
        raise PreconditionFailed('Only pending requests can be cancelled')

    return update_status(request, CANCELLED, changed_by, reason or 'Cancelled by student', now=now)


def age_in_days(request, now=None):
    created = request.get('createdAt')
    if not created:
        return 0
    now = now or utcnow()
    return math.ceil((now - created).total_seconds() / 86400)


def priority_score(request):
    return PRIORITY_SCORES.get(request.get('priority'), 1)


def response_time(request):
    """Seconds from submission until the request was first acknowledged"""
    for entry in request.get('statusHistory', []):
        if entry['status'] == ACKNOWLEDGED and request.get('createdAt'):
            return (entry['changedAt'] - request['createdAt']).total_seconds()
    return None


def present_request(request, now=None):
    data = dict(request)
    data['ageInDays'] = age_in_days(request, now)
    data['priorityScore'] = priority_score(request)
    data['responseTime'] = response_time(request)
    return data
