"""
Auth routes: register, login, current user
"""

import logging

from flask import Blueprint, g

from .. import policy
from ..auth import hash_password, hostel_info, public_user, role_for_identifier, verify_password
from ..errors import Conflict, Unauthorized, ValidationFailed
from ..schemas import ChangePassword, Login, Register, UpdateProfile, parse_body
from ..utils import json_response, utcnow

logger = logging.getLogger(__name__)


def new_user(data, role):
    """User document for a validated ``Register``-shaped payload"""
    profile = data.profile.model_dump() if data.profile else {}
    if role_for_identifier(data.identifier) == policy.STUDENT:
        info = hostel_info(data.identifier)
        profile = dict(info, **{k: v for k, v in profile.items() if v is not None})

    return {
        'identifier': data.identifier,
        'name': data.name.strip(),
        'email': data.email.lower().strip(),
        'password': hash_password(data.password),
        'phone': data.phone,
        'role': role,
        'profile': profile,
        'isActive': True,
        'lastLogin': None,
    }


def create_user(users, data, role):
    if users.find_one({'$or': [{'identifier': data.identifier}, {'email': data.email.lower()}]}):
        logger.warning('❌ User already exists: %s', data.identifier)
        raise Conflict('User already exists')
    return users.insert(new_user(data, role))


def create_blueprint(repos, auth, publisher):
    bp = Blueprint('auth', __name__)

    @bp.route('/register', methods=['POST'])
    def register():
        """Register a new user (Students only)"""
        data = parse_body(Register)

        role = role_for_identifier(data.identifier)
        if role != policy.STUDENT:
            raise ValidationFailed(
                'Only students can register. Contact an administrator for other roles.',
                details=[{'field': 'identifier', 'message': 'Not a valid roll number'}]
            )

        user = create_user(repos.users, data, role)
        logger.info('✅ User registered successfully: %s Role: %s', user['_id'], role)

        return json_response({
            'success': True,
            'message': 'Registration successful',
            'data': {
                'user': public_user(user),
                'token': auth.generate_token(user['_id'])
            }
        }, 201)

    @bp.route('/login', methods=['POST'])
    def login():
        """Login user"""
        data = parse_body(Login)

        user = repos.users.find_by_identifier(data.identifier)
        if not user or not user.get('isActive', True) or not verify_password(user, data.password):
            raise Unauthorized('Invalid credentials')

        user['lastLogin'] = utcnow()
        repos.users.save(user)

        return json_response({
            'success': True,
            'message': 'Login successful',
            'data': {
                'user': public_user(user),
                'token': auth.generate_token(user['_id'])
            }
        })

    @bp.route('/me', methods=['GET'])
    @auth.protect
    def get_me():
        """Get current user"""
        return json_response({
            'success': True,
            'data': public_user(g.user)
        })

    @bp.route('/profile', methods=['PUT'])
    @auth.protect
    def update_profile():
        """Update name, phone and room details"""
        data = parse_body(UpdateProfile)
        user = g.user

        if data.name:
            user['name'] = data.name.strip()
        if data.phone:
            user['phone'] = data.phone
        if data.profile:
            changes = data.profile.model_dump(exclude_none=True)
            user['profile'] = dict(user.get('profile') or {}, **changes)

        repos.users.save(user)
        logger.info('✏️ Profile updated: %s', user['_id'])

        return json_response({
            'success': True,
            'message': 'Profile updated successfully',
            'data': public_user(user)
        })

    @bp.route('/password', methods=['PUT'])
    @auth.protect
    def change_password():
        """Change password"""
        data = parse_body(ChangePassword)

        if not verify_password(g.user, data.currentPassword):
            raise ValidationFailed(
                'Current password is incorrect',
                details=[{'field': 'currentPassword', 'message': 'Does not match'}]
            )

        g.user['password'] = hash_password(data.newPassword)
        repos.users.save(g.user)
        logger.info('🔑 Password changed: %s', g.user['_id'])

        return json_response({
            'success': True,
            'message': 'Password updated successfully'
        })

    return bp
