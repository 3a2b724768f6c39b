"""
Outpass routes: submission, warden review, gate check-out/check-in
"""

import logging
from datetime import datetime, timedelta

from flask import Blueprint, g

from .. import policy
from ..errors import Forbidden, ValidationFailed
from ..models import outpass
from ..schemas import Cancel, Gate, OutpassQuery, OutpassRequest, OutpassStatsQuery, Review, parse_args, parse_body
from ..tasks import mark_overdue_outpasses
from ..utils import as_datetime, json_response, same_id, utcnow

logger = logging.getLogger(__name__)


def period_start(period, now):
    if period == 'week':
        return now - timedelta(days=7)
    if period == 'year':
        return datetime(now.year, 1, 1)
    return datetime(now.year, now.month, 1)


def create_blueprint(repos, auth, publisher):
    bp = Blueprint('outpass', __name__)

    def is_staff():
        return policy.can(g.user['role'], policy.OUTPASS_REVIEW)

    def load_request(request_id):
        request_doc = repos.outpasses.get(request_id)
        if not same_id(request_doc['requestedBy'], g.user['_id']) and not is_staff():
            raise Forbidden('Not authorized to access this outpass')
        return request_doc

    def with_requesters(requests):
        """Attach name and identifier of each requester"""
        users = {
            str(u['_id']): {'_id': u['_id'], 'name': u.get('name'), 'identifier': u.get('identifier')}
            for u in repos.users.find({'_id': {'$in': [r['requestedBy'] for r in requests]}})
        }
        return [
            dict(outpass.present_request(r), requestedBy=users.get(str(r['requestedBy']), r['requestedBy']))
            for r in requests
        ]

    def transition_response(request_doc, message):
        repos.outpasses.save(request_doc)
        logger.info('🎫 Outpass %s -> %s by %s', request_doc['_id'], request_doc['status'], g.user['_id'])
        return json_response({
            'success': True,
            'message': message,
            'data': outpass.present_request(request_doc)
        })

    @bp.route('/request', methods=['POST'])
    @auth.permission_required(policy.OUTPASS_SUBMIT)
    def submit_request():
        """Submit an outpass request (Students)"""
        data = parse_body(OutpassRequest).model_dump()
        data['outDate'] = as_datetime(data['outDate'])
        data['inDate'] = as_datetime(data['inDate'])

        if not data['rulesAcknowledged']:
            raise ValidationFailed(
                'Outpass rules must be acknowledged',
                details=[{'field': 'rulesAcknowledged', 'message': 'Must be true'}]
            )

        out_at = outpass.scheduled_out(data)
        in_at = outpass.scheduled_in(data)
        if out_at >= in_at:
            raise ValidationFailed(
                'In date/time must be after out date/time',
                details=[{'field': 'inDate', 'message': 'Must be after out date/time'}]
            )
        if out_at < outpass.local_now():
            raise ValidationFailed(
                'Out date/time cannot be in the past',
                details=[{'field': 'outDate', 'message': 'Cannot be in the past'}]
            )

        request_doc = repos.outpasses.insert(outpass.new_request(data, g.user['_id']))
        logger.info('🎫 Outpass %s submitted by %s', request_doc['_id'], g.user['_id'])

        return json_response({
            'success': True,
            'message': 'Outpass request submitted successfully',
            'data': outpass.present_request(request_doc)
        }, 201)

    @bp.route('/requests', methods=['GET'])
    @auth.protect
    def get_requests():
        """Get outpass requests: own for students, all for staff"""
        args = parse_args(OutpassQuery)

        query = {}
        if not is_staff():
            query['requestedBy'] = g.user['_id']
        if args.status:
            query['status'] = args.status
        if args.type:
            query['type'] = args.type

        direction = 1 if args.sortOrder == 'asc' else -1
        requests, page = repos.outpasses.paginate(query, args.page, args.limit, sort=[(args.sortBy, direction)])

        return json_response({
            'success': True,
            'count': len(requests),
            'pagination': page,
            'data': with_requesters(requests) if is_staff() else [outpass.present_request(r) for r in requests]
        })

    @bp.route('/request/<request_id>', methods=['GET'])
    @auth.protect
    def get_request(request_id):
        """Get single outpass request"""
        return json_response({
            'success': True,
            'data': outpass.present_request(load_request(request_id))
        })

    @bp.route('/request/<request_id>/start-review', methods=['PUT'])
    @auth.permission_required(policy.OUTPASS_REVIEW)
    def start_review(request_id):
        """Take a pending request under review (Warden)"""
        request_doc = repos.outpasses.get(request_id)
        outpass.start_review(request_doc, g.user['_id'])
        return transition_response(request_doc, 'Outpass is under review')

    @bp.route('/request/<request_id>/review', methods=['PUT'])
    @auth.permission_required(policy.OUTPASS_REVIEW)
    def review_request(request_id):
        """Approve or reject a request (Warden)"""
        data = parse_body(Review)
        request_doc = repos.outpasses.get(request_id)
        outpass.review(request_doc, data.status, g.user['_id'], data.reviewNotes)
        return transition_response(request_doc, f'Outpass request {data.status} successfully')

    @bp.route('/request/<request_id>/check-out', methods=['POST'])
    @auth.permission_required(policy.OUTPASS_GATE)
    def check_out(request_id):
        """Record the student leaving the hostel"""
        data = parse_body(Gate)
        request_doc = repos.outpasses.get(request_id)
        outpass.check_out(request_doc, g.user['_id'], data.location)
        return transition_response(request_doc, 'Student checked out')

    @bp.route('/request/<request_id>/check-in', methods=['POST'])
    @auth.permission_required(policy.OUTPASS_GATE)
    def check_in(request_id):
        """Record the student returning to the hostel"""
        data = parse_body(Gate)
        request_doc = repos.outpasses.get(request_id)
        outpass.check_in(request_doc, g.user['_id'], data.location)
        return transition_response(request_doc, 'Student checked in')

    @bp.route('/request/<request_id>/cancel', methods=['POST'])
    @auth.protect
    def cancel_request(request_id):
        """Cancel a pending request (Requester)"""
        data = parse_body(Cancel)
        request_doc = repos.outpasses.get(request_id)
        if not same_id(request_doc['requestedBy'], g.user['_id']):
            raise Forbidden('Only the requester can cancel this outpass')

        outpass.cancel(request_doc, g.user['_id'], data.reason)
        return transition_response(request_doc, 'Outpass request cancelled')

    @bp.route('/reconcile-overdue', methods=['POST'])
    @auth.permission_required(policy.OUTPASS_GATE)
    def reconcile_overdue():
        """Mark checked out requests past their return time as overdue"""
        changed = mark_overdue_outpasses(repos.outpasses)
        return json_response({
            'success': True,
            'message': f'{len(changed)} outpass(es) marked overdue',
            'count': len(changed),
            'data': [outpass.present_request(r) for r in changed]
        })

    @bp.route('/stats', methods=['GET'])
    @auth.permission_required(policy.OUTPASS_REVIEW)
    def get_stats():
        """Outpass statistics (Warden)"""
        args = parse_args(OutpassStatsQuery)
        now = utcnow()
        start = period_start(args.period, now)

        match = {'createdAt': {'$gte': start}}
        if args.type:
            match['type'] = args.type

        return json_response({
            'success': True,
            'message': 'Outpass statistics retrieved successfully',
            'data': {
                'overview': repos.outpasses.stats(match),
                'typeBreakdown': repos.outpasses.type_breakdown(match),
                'currentlyOut': {
                    'checkedOut': with_requesters(repos.outpasses.checked_out()),
                    'overdue': with_requesters(repos.outpasses.overdue())
                },
                'period': args.period,
                'dateRange': {'start': start, 'end': now}
            }
        })

    return bp
