"""
JWT authentication and role-based authorization
"""

import logging
import re
from datetime import datetime, timedelta
from functools import wraps

import jwt
from flask import g, request
from werkzeug.security import check_password_hash, generate_password_hash

from . import policy
from .errors import Forbidden, Unauthorized, ValidationFailed

logger = logging.getLogger(__name__)

ROLL_NUMBER = re.compile(r'^\d{4}[A-Z]{3}\d{3}$')

# Identifier prefix -> role for staff accounts
STAFF_PREFIXES = (
    ('EMP', policy.WARDEN),
    ('CANT', policy.CANTEEN_OWNER),
    ('ADM', policy.ADMIN),
)


def role_for_identifier(identifier):
    """Derive the account role from a roll number or employee id"""
    identifier = identifier.upper()
    if ROLL_NUMBER.match(identifier):
        return policy.STUDENT
    for prefix, role in STAFF_PREFIXES:
        if identifier.startswith(prefix):
            return role
    return None


def hostel_info(roll_number):
    """Admission year, branch and hostel block encoded in a roll number"""
    roll = int(roll_number[7:])
    if roll <= 50:
        block = 'A'
    elif roll <= 100:
        block = 'B'
    elif roll <= 150:
        block = 'C'
    else:
        block = 'D'
    return {
        'year': int(roll_number[:4]),
        'branch': roll_number[4:7],
        'hostelBlock': block,
    }


def hash_password(password):
    return generate_password_hash(password)


def verify_password(user, password):
    return bool(user) and check_password_hash(user['password'], password)


def public_user(user):
    """User document without the password hash"""
    return {k: v for k, v in user.items() if k != 'password'}


class Authenticator:
    """Issues tokens and guards routes for one app"""

    def __init__(self, users, secret_key, expire_hours=24):
        self.users = users
        self.secret_key = secret_key
        self.expire_hours = expire_hours

    def generate_token(self, user_id):
        """Generate JWT token"""
        payload = {
            'id': str(user_id),
            'exp': datetime.utcnow() + timedelta(hours=self.expire_hours)
        }
        return jwt.encode(payload, self.secret_key, algorithm='HS256')

    def current_user(self):
        token = None
        auth_header = request.headers.get('Authorization')

        if auth_header and auth_header.startswith('Bearer '):
            token = auth_header.split(' ')[1]

        if not token:
            raise Unauthorized()

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=['HS256'])
        except jwt.ExpiredSignatureError:
            raise Unauthorized('Token has expired')
        except jwt.InvalidTokenError:
            raise Unauthorized()

        try:
            user = self.users.find_by_id(payload.get('id'))
        except ValidationFailed:
            raise Unauthorized()

        if not user or not user.get('isActive', True):
            raise Unauthorized('User not found')
        return user

    def protect(self, f):
        """JWT authentication middleware"""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            g.user = self.current_user()
            logger.debug('🔐 Auth - User: id=%s, role=%s', g.user['_id'], g.user['role'])
            return f(*args, **kwargs)
        return decorated_function

    def permission_required(self, action):
        """Authenticate, then check the role policy for ``action``"""
        def decorator(f):
            @wraps(f)
            def decorated_function(*args, **kwargs):
                g.user = self.current_user()
                if not policy.can(g.user['role'], action):
                    logger.warning('⛔ %s denied %s', g.user['role'], action)
                    raise Forbidden(f"User role {g.user['role']} is not authorized to access this route")
                return f(*args, **kwargs)
            return decorated_function
        return decorator
