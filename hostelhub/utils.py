"""
Shared helpers: JSON responses, ObjectId handling, time and pagination
"""

import math
from datetime import datetime, date

from bson import ObjectId
from bson.errors import InvalidId
from flask import jsonify

from .errors import ValidationFailed


def utcnow():
    return datetime.utcnow()


def json_response(data, status=200):
    """Helper to create JSON response with proper ObjectId handling"""
    return jsonify(convert_objectid(data)), status


def convert_objectid(obj):
    """Recursively convert ObjectId to string in dicts/lists"""
    if isinstance(obj, ObjectId):
        return str(obj)
    elif isinstance(obj, dict):
        return {k: convert_objectid(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_objectid(item) for item in obj]
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj


def to_object_id(value, field='id'):
    """Parse an ObjectId, raising ValidationFailed for malformed input"""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise ValidationFailed(
            f'Invalid {field}',
            details=[{'field': field, 'message': f'{value!r} is not a valid id'}]
        )


def same_id(a, b):
    return a is not None and b is not None and str(a) == str(b)


def pagination(page, limit, total):
    return {
        'current': page,
        'pages': math.ceil(total / limit) if limit else 0,
        'total': total,
        'limit': limit
    }


def as_datetime(value):
    """Store dates as midnight datetimes (BSON has no date-only type)"""
    if value is None or isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)
