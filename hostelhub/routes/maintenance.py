"""
Maintenance request routes
"""

import logging

from flask import Blueprint, g

from .. import policy
from ..errors import Forbidden, ValidationFailed
from ..models import maintenance
from ..schemas import (
    Assign, Cancel, MaintenanceQuery, MaintenanceRating, MaintenanceRequest,
    MaintenanceStatus, parse_args, parse_body,
)
from ..utils import json_response, same_id

logger = logging.getLogger(__name__)


def create_blueprint(repos, auth, publisher):
    bp = Blueprint('maintenance', __name__)

    def is_manager():
        return policy.can(g.user['role'], policy.MAINTENANCE_MANAGE)

    def load_request(request_id):
        request_doc = repos.maintenance.get(request_id)
        if not same_id(request_doc['requestedBy'], g.user['_id']) and not is_manager():
            raise Forbidden('Not authorized to access this request')
        return request_doc

    def load_own_request(request_id):
        request_doc = repos.maintenance.get(request_id)
        if not same_id(request_doc['requestedBy'], g.user['_id']):
            raise Forbidden('Only the requester can do this')
        return request_doc

    @bp.route('', methods=['POST'])
    @auth.permission_required(policy.MAINTENANCE_SUBMIT)
    def submit_request():
        """Submit a maintenance request (Students)"""
        data = parse_body(MaintenanceRequest)
        request_doc = repos.maintenance.insert(
            maintenance.new_request(data.model_dump(), g.user['_id'])
        )
        logger.info('🔧 Maintenance request %s submitted by %s', request_doc['_id'], g.user['_id'])

        return json_response({
            'success': True,
            'message': 'Maintenance request submitted successfully',
            'data': maintenance.present_request(request_doc)
        }, 201)

    @bp.route('', methods=['GET'])
    @auth.protect
    def get_requests():
        """Get maintenance requests: own for students, all for staff"""
        args = parse_args(MaintenanceQuery)

        query = {}
        if not is_manager():
            query['requestedBy'] = g.user['_id']
        if args.status:
            query['status'] = args.status
        if args.category:
            query['category'] = args.category
        if args.priority:
            query['priority'] = args.priority
        if args.building:
            query['location.building'] = args.building

        requests, page = repos.maintenance.paginate(
            query, args.page, args.limit, sort=[('priorityLevel', -1), ('createdAt', 1)]
        )

        return json_response({
            'success': True,
            'count': len(requests),
            'pagination': page,
            'data': [maintenance.present_request(r) for r in requests]
        })

    @bp.route('/stats', methods=['GET'])
    @auth.permission_required(policy.MAINTENANCE_MANAGE)
    def get_stats():
        """Maintenance statistics (Hostel staff)"""
        return json_response({
            'success': True,
            'data': repos.maintenance.stats()
        })

    @bp.route('/<request_id>', methods=['GET'])
    @auth.protect
    def get_request(request_id):
        """Get single maintenance request"""
        return json_response({
            'success': True,
            'data': maintenance.present_request(load_request(request_id))
        })

    @bp.route('/<request_id>/status', methods=['PUT'])
    @auth.permission_required(policy.MAINTENANCE_MANAGE)
    def update_status(request_id):
        """Update request status (Hostel staff)"""
        data = parse_body(MaintenanceStatus)
        request_doc = repos.maintenance.get(request_id)

        maintenance.update_status_by_staff(request_doc, data.status, g.user['_id'], data.notes)
        if data.resolutionNotes is not None:
            request_doc['resolutionNotes'] = data.resolutionNotes
        if data.expectedCompletionDate is not None:
            request_doc['expectedCompletionDate'] = data.expectedCompletionDate
        if data.actualCost is not None:
            request_doc['actualCost'] = data.actualCost
        repos.maintenance.save(request_doc)

        logger.info('🔧 Maintenance request %s -> %s', request_doc['_id'], request_doc['status'])

        return json_response({
            'success': True,
            'message': 'Request status updated',
            'data': maintenance.present_request(request_doc)
        })

    @bp.route('/<request_id>/assign', methods=['PUT'])
    @auth.permission_required(policy.MAINTENANCE_MANAGE)
    def assign_request(request_id):
        """Assign a staff member (Hostel staff)"""
        data = parse_body(Assign)
        request_doc = repos.maintenance.get(request_id)

        assignee = repos.users.get(data.assignedTo)
        if assignee['role'] == policy.STUDENT:
            raise ValidationFailed(
                'Requests can only be assigned to staff',
                details=[{'field': 'assignedTo', 'message': 'User is not a staff member'}]
            )

        maintenance.assign(request_doc, assignee['_id'], g.user['_id'])
        repos.maintenance.save(request_doc)

        logger.info('🔧 Maintenance request %s assigned to %s', request_doc['_id'], assignee['_id'])

        return json_response({
            'success': True,
            'message': 'Request assigned successfully',
            'data': maintenance.present_request(request_doc)
        })

    @bp.route('/<request_id>/rate', methods=['POST'])
    @auth.protect
    def rate_request(request_id):
        """Rate a completed request (Requester)"""
        data = parse_body(MaintenanceRating)
        request_doc = load_own_request(request_id)

        maintenance.add_rating(request_doc, data.rating, data.feedback)
        repos.maintenance.save(request_doc)

        return json_response({
            'success': True,
            'message': 'Rating submitted successfully',
            'data': maintenance.present_request(request_doc)
        })

    @bp.route('/<request_id>/cancel', methods=['POST'])
    @auth.protect
    def cancel_request(request_id):
        """Cancel a pending request (Requester)"""
        data = parse_body(Cancel)
        request_doc = load_own_request(request_id)

        maintenance.cancel_by_requester(request_doc, g.user['_id'], data.reason)
        repos.maintenance.save(request_doc)

        return json_response({
            'success': True,
            'message': 'Request cancelled successfully',
            'data': maintenance.present_request(request_doc)
        })

    return bp
