"""
Announcement routes
"""

import logging

from flask import Blueprint, g

from .. import policy
from ..errors import Forbidden, NotFound
from ..events import ANNOUNCEMENT
from ..models import announcement
from ..schemas import (
    Announcement, AnnouncementQuery, AnnouncementSearch, AnnouncementStatsQuery,
    AnnouncementUpdate, parse_args, parse_body,
)
from ..utils import json_response, same_id

logger = logging.getLogger(__name__)

AUDIENCE_ROOMS = {
    'all': 'everyone',
    'students': 'students',
    'staff': 'staff',
    'wardens': 'wardens',
}


def create_blueprint(repos, auth, publisher):
    bp = Blueprint('announcements', __name__)

    def present(doc):
        data = announcement.present_announcement(doc)
        data['isRead'] = any(same_id(r['user'], g.user['_id']) for r in doc.get('readBy', []))
        return data

    def load_visible(announcement_id):
        doc = repos.announcements.get(announcement_id)
        if not doc.get('isActive'):
            raise NotFound('Announcement not found')
        if not announcement.visible_to(doc, g.user):
            raise Forbidden('This announcement is not addressed to you')
        return doc

    def load_editable(announcement_id):
        doc = repos.announcements.get(announcement_id)
        if not same_id(doc['createdBy'], g.user['_id']) and g.user['role'] != policy.ADMIN:
            raise Forbidden('Only the author or an admin can change this announcement')
        return doc

    def page_response(query, args):
        docs, page = repos.announcements.paginate(
            query, args.page, args.limit, sort=repos.announcements.sort_order
        )
        return json_response({
            'success': True,
            'count': len(docs),
            'pagination': page,
            'data': [present(doc) for doc in docs]
        })

    @bp.route('', methods=['GET'])
    @auth.protect
    def get_announcements():
        """Get announcements addressed to the current user"""
        args = parse_args(AnnouncementQuery)
        query = repos.announcements.for_user_query(
            g.user,
            category=args.category,
            priority=args.priority,
            unread_only=args.unreadOnly,
            upcoming_events=args.upcomingEvents
        )
        return page_response(query, args)

    @bp.route('/search', methods=['GET'])
    @auth.protect
    def search_announcements():
        """Search title, content and tags"""
        args = parse_args(AnnouncementSearch)
        query = repos.announcements.search_query(g.user, args.q, args.category, args.priority)
        return page_response(query, args)

    @bp.route('/stats', methods=['GET'])
    @auth.permission_required(policy.ANNOUNCEMENT_STATS)
    def get_stats():
        """Announcement statistics (Staff)"""
        args = parse_args(AnnouncementStatsQuery)
        return json_response({
            'success': True,
            'data': repos.announcements.stats(args.dateFrom, args.dateTo)
        })

    @bp.route('/<announcement_id>', methods=['GET'])
    @auth.protect
    def get_announcement(announcement_id):
        """Get single announcement and mark it as read"""
        doc = load_visible(announcement_id)
        repos.announcements.record_read(doc, g.user['_id'])
        return json_response({
            'success': True,
            'data': present(doc)
        })

    @bp.route('', methods=['POST'])
    @auth.permission_required(policy.ANNOUNCEMENT_CREATE)
    def create_announcement():
        """Create announcement (Staff)"""
        data = parse_body(Announcement).model_dump()
        if not policy.can(g.user['role'], policy.ANNOUNCEMENT_PIN):
            data['isPinned'] = False

        doc = repos.announcements.insert(announcement.new_announcement(data, g.user['_id']))
        logger.info('📢 Announcement %s created (%s, %s)', doc['_id'], doc['category'], doc['priority'])

        publisher.publish(ANNOUNCEMENT, {
            'announcementId': doc['_id'],
            'title': doc['title'],
            'category': doc['category'],
            'priority': doc['priority']
        }, room=AUDIENCE_ROOMS[doc['targetAudience']])

        return json_response({
            'success': True,
            'message': 'Announcement created successfully',
            'data': present(doc)
        }, 201)

    @bp.route('/<announcement_id>', methods=['PUT'])
    @auth.permission_required(policy.ANNOUNCEMENT_CREATE)
    def update_announcement(announcement_id):
        """Update announcement (Author or admin)"""
        doc = load_editable(announcement_id)
        changes = parse_body(AnnouncementUpdate).model_dump(exclude_unset=True)

        if changes.get('eventDetails'):
            details = dict(doc.get('eventDetails') or {}, **changes['eventDetails'])
            details.setdefault('registrationRequired', False)
            details.setdefault('registeredParticipants', [])
            changes['eventDetails'] = details
        for key in ('title', 'content'):
            if key in changes:
                changes[key] = changes[key].strip()

        doc.update(changes)
        if doc['category'] == 'emergency':
            doc['priority'] = 'urgent'
        repos.announcements.save(doc)

        return json_response({
            'success': True,
            'message': 'Announcement updated successfully',
            'data': present(doc)
        })

    @bp.route('/<announcement_id>', methods=['DELETE'])
    @auth.protect
    def delete_announcement(announcement_id):
        """Soft delete announcement (Author or admin)"""
        doc = load_editable(announcement_id)
        doc['isActive'] = False
        repos.announcements.save(doc)
        logger.info('🗑️ Announcement %s deactivated', doc['_id'])

        return json_response({
            'success': True,
            'message': 'Announcement deleted successfully'
        })

    @bp.route('/<announcement_id>/read', methods=['POST'])
    @auth.protect
    def mark_read(announcement_id):
        """Mark announcement as read"""
        doc = load_visible(announcement_id)
        first_read = repos.announcements.record_read(doc, g.user['_id'])
        return json_response({
            'success': True,
            'message': 'Marked as read' if first_read else 'Already marked as read'
        })

    @bp.route('/<announcement_id>/register', methods=['POST'])
    @auth.protect
    def register_for_event(announcement_id):
        """Register for an event"""
        doc = load_visible(announcement_id)
        doc = repos.announcements.register_participant(doc, g.user['_id'])

        return json_response({
            'success': True,
            'message': 'Successfully registered for event',
            'data': {'registrationCount': len(doc['eventDetails']['registeredParticipants'])}
        })

    @bp.route('/<announcement_id>/register', methods=['DELETE'])
    @auth.protect
    def unregister_from_event(announcement_id):
        """Cancel event registration"""
        doc = load_visible(announcement_id)
        doc = repos.announcements.unregister_participant(doc, g.user['_id'])

        return json_response({
            'success': True,
            'message': 'Successfully unregistered from event',
            'data': {'registrationCount': len(doc['eventDetails']['registeredParticipants'])}
        })

    @bp.route('/<announcement_id>/pin', methods=['POST'])
    @auth.permission_required(policy.ANNOUNCEMENT_PIN)
    def toggle_pin(announcement_id):
        """Pin or unpin announcement (Admin)"""
        doc = repos.announcements.get(announcement_id)
        doc['isPinned'] = not doc.get('isPinned', False)
        repos.announcements.save(doc)

        return json_response({
            'success': True,
            'message': 'Announcement pinned' if doc['isPinned'] else 'Announcement unpinned',
            'data': {'isPinned': doc['isPinned']}
        })

    return bp
