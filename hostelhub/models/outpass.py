"""
Outpass (leave) requests.

    pending -> under_review -> approved | rejected
    approved -> checked_out -> returned
    checked_out -> overdue -> returned
    pending -> cancelled

Scheduled out/in instants are hostel wall-clock times: the date part of
``outDate``/``inDate`` combined with the ``HH:MM`` strings in
``outTime``/``inTime``.
"""

import math
from datetime import datetime

from ..errors import PreconditionFailed, ValidationFailed
from ..utils import utcnow

PENDING = 'pending'
UNDER_REVIEW = 'under_review'
APPROVED = 'approved'
REJECTED = 'rejected'
CANCELLED = 'cancelled'
CHECKED_OUT = 'checked_out'
OVERDUE = 'overdue'
RETURNED = 'returned'

STATUSES = (PENDING, UNDER_REVIEW, APPROVED, REJECTED, CANCELLED, CHECKED_OUT, OVERDUE, RETURNED)
TERMINAL = (REJECTED, CANCELLED, RETURNED)
REVIEWABLE = (PENDING, UNDER_REVIEW)
RETURNABLE = (CHECKED_OUT, OVERDUE)

TYPES = ('home_visit', 'medical', 'academic', 'personal', 'family_event', 'emergency', 'other')
TRANSPORT_MODES = ('bus', 'train', 'flight', 'private_vehicle', 'taxi', 'other')
DOCUMENT_TYPES = ('medical_certificate', 'invitation_letter', 'travel_ticket', 'parent_letter', 'other')

STATUS_DESCRIPTIONS = {
    PENDING: 'Waiting for review',
    UNDER_REVIEW: 'Under review by warden',
    APPROVED: 'Approved - Ready for checkout',
    REJECTED: 'Rejected by warden',
    CANCELLED: 'Cancelled by student',
    CHECKED_OUT: 'Student has left hostel',
    OVERDUE: 'Return time exceeded',
    RETURNED: 'Successfully returned',
}

OVERDUE_NOTE = 'Automatic status update - Return time exceeded'


def local_now():
    return datetime.now()


def parse_time(value):
    try:
        parts = [int(p) for p in value.strip().split(':')]
    except (AttributeError, ValueError):
        raise ValidationFailed(f'Invalid time {value!r}, expected HH:MM')
    if len(parts) not in (2, 3) or not 0 <= parts[0] < 24 or not 0 <= parts[1] < 60:
        raise ValidationFailed(f'Invalid time {value!r}, expected HH:MM')
    return parts[0], parts[1]


def combine(day, hhmm):
    hour, minute = parse_time(hhmm)
    return datetime(day.year, day.month, day.day, hour, minute)


def scheduled_out(request):
    return combine(request['outDate'], request['outTime'])


def scheduled_in(request):
    return combine(request['inDate'], request['inTime'])


def compute_duration(request):
    """Split the scheduled absence into whole days and remaining whole hours"""
    seconds = (scheduled_in(request) - scheduled_out(request)).total_seconds()
    return {
        'days': math.floor(seconds / 86400),
        'hours': math.floor(math.fmod(seconds, 86400) / 3600),
    }


def refresh_duration(request):
    if all(request.get(f) for f in ('outDate', 'outTime', 'inDate', 'inTime')):
        request['duration'] = compute_duration(request)
    return request


def new_request(data, requested_by, now=None):
    now = now or utcnow()
    request = {
        'reason': data['reason'].strip(),
        'type': data['type'],
        'outDate': data['outDate'],
        'outTime': data['outTime'],
        'inDate': data['inDate'],
        'inTime': data['inTime'],
        'duration': {'days': 0, 'hours': 0},
        'destination': data['destination'],
        'contactDuringLeave': data['contactDuringLeave'],
        'emergencyContact': data['emergencyContact'],
        'transportMode': data['transportMode'],
        'vehicleDetails': data.get('vehicleDetails') or '',
        'parentApproval': data.get('parentApproval') or {'required': False, 'obtained': False},
        'status': PENDING,
        'reviewedBy': None,
        'reviewedAt': None,
        'reviewNotes': '',
        'actualOutTime': None,
        'actualInTime': None,
        'checkedOutBy': None,
        'checkedInBy': None,
        'requestedBy': requested_by,
        'isEmergency': data.get('isEmergency', False),
        'supportingDocuments': data.get('supportingDocuments') or [],
        'rulesAcknowledged': data.get('rulesAcknowledged', False),
        'specialInstructions': data.get('specialInstructions') or '',
        'statusHistory': [{
            'status': PENDING,
            'changedBy': requested_by,
            'changedAt': now,
            'notes': 'Outpass request submitted',
            'location': '',
        }],
    }
    return refresh_duration(request)


def update_status(request, new_status, changed_by, notes='', location='', now=None):
    if request['status'] in TERMINAL:
        raise PreconditionFailed(f"Outpass is already {request['status']}")

    now = now or utcnow()
    request['statusHistory'].append({
        'status': new_status,
        'changedBy': changed_by,
        'changedAt': now,
        'notes': notes or '',
        'location': location or '',
    })
    request['status'] = new_status

    if new_status in (APPROVED, REJECTED):
        request['reviewedBy'] = changed_by
        request['reviewedAt'] = now
        if notes:
            request['reviewNotes'] = notes

    if new_status == CHECKED_OUT:
        request['actualOutTime'] = now
        request['checkedOutBy'] = changed_by
    elif new_status == RETURNED:
        request['actualInTime'] = now
        request['checkedInBy'] = changed_by

    return request


def start_review(request, changed_by, now=None):
    if request['status'] != PENDING:
        raise PreconditionFailed('Only pending requests can be taken under review')
    return update_status(request, UNDER_REVIEW, changed_by, 'Review started', now=now)


def review(request, decision, changed_by, notes='', now=None):
    if decision not in (APPROVED, REJECTED):
        raise ValidationFailed('Status must be approved or rejected')
    if request['status'] not in REVIEWABLE:
        raise PreconditionFailed('Can only review pending or under review requests')
    return update_status(request, decision, changed_by, notes, now=now)


def check_out(request, changed_by, location='', now=None):
    if request['status'] != APPROVED:
        raise PreconditionFailed('Only approved outpasses can be checked out')
    return update_status(request, CHECKED_OUT, changed_by, 'Checked out', location, now=now)


def check_in(request, changed_by, location='', now=None):
    if request['status'] not in RETURNABLE:
        raise PreconditionFailed('Only checked out or overdue outpasses can be checked in')
    return update_status(request, RETURNED, changed_by, 'Returned to hostel', location, now=now)


def cancel(request, changed_by, reason='', now=None):
    if request['status'] != PENDING:
        raise PreconditionFailed('Only pending requests can be cancelled')
    return update_status(request, CANCELLED, changed_by, reason or 'Cancelled by student', now=now)


def is_overdue(request, now=None):
    if request['status'] != CHECKED_OUT:
        return False
    return (now or local_now()) > scheduled_in(request)


def check_overdue_status(request, now=None):
    """Move a checked out request to overdue when its return time has passed.

    Returns True when the request changed.
    """
    if is_overdue(request, now):
        update_status(request, OVERDUE, None, OVERDUE_NOTE)
        return True
    return False


def total_duration_hours(request):
    return math.ceil((scheduled_in(request) - scheduled_out(request)).total_seconds() / 3600)


def present_request(request, now=None):
    data = dict(request)
    data['isOverdue'] = is_overdue(request, now)
    data['statusDescription'] = STATUS_DESCRIPTIONS.get(request['status'], request['status'])
    data['totalDurationHours'] = total_duration_hours(request)
    return data
