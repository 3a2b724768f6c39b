"""
Dining routes: mess menus and meal ratings
"""

import logging
from datetime import datetime

from flask import Blueprint, g

from .. import policy
from ..errors import Conflict, ValidationFailed
from ..models import dining
from ..schemas import MealRating, MessMenu, QueueUpdate, parse_body
from ..utils import as_datetime, json_response

logger = logging.getLogger(__name__)


def parse_day(value):
    try:
        return datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        raise ValidationFailed(
            'Invalid date, expected YYYY-MM-DD',
            details=[{'field': 'date', 'message': f'{value!r} is not a valid date'}]
        )


def create_blueprint(repos, auth, publisher):
    bp = Blueprint('dining', __name__)

    @bp.route('/menu/<day>', methods=['GET'])
    @auth.protect
    def get_day_menu(day):
        """Get breakfast, lunch and dinner for a date with rating stats"""
        menus = repos.mess_menus.for_day(parse_day(day))

        meals = {}
        for meal_type in dining.MEAL_TYPES:
            menu = menus.get(meal_type)
            if menu is None:
                meals[meal_type] = None
                continue
            user_rating = repos.meal_ratings.find_for(g.user['_id'], menu['_id'])
            meals[meal_type] = dict(
                menu,
                ratingStats=repos.meal_ratings.menu_stats(menu['_id']),
                userRating=user_rating
            )

        return json_response({
            'success': True,
            'data': {
                'date': day,
                'meals': meals
            }
        })

    @bp.route('/menu', methods=['POST'])
    @auth.permission_required(policy.DINING_MANAGE)
    def create_menu():
        """Create mess menu for a date and meal (Staff)"""
        data = parse_body(MessMenu).model_dump()
        data['date'] = as_datetime(data['date'])

        if repos.mess_menus.find_one({'date': data['date'], 'mealType': data['mealType']}):
            raise Conflict(f"{data['mealType'].capitalize()} menu already exists for this date")

        menu = repos.mess_menus.insert(dining.new_mess_menu(data, g.user['_id']))
        logger.info('🍛 Mess menu %s %s created', menu['date'].date(), menu['mealType'])

        return json_response({
            'success': True,
            'message': 'Menu created successfully',
            'data': menu
        }, 201)

    @bp.route('/menu/<menu_id>/queue', methods=['PUT'])
    @auth.permission_required(policy.DINING_MANAGE)
    def update_queue(menu_id):
        """Update queue status (Staff)"""
        data = parse_body(QueueUpdate)
        menu = repos.mess_menus.get(menu_id)

        menu['queueStatus'] = data.queueStatus
        if data.estimatedWaitTime is not None:
            menu['estimatedWaitTime'] = data.estimatedWaitTime
        repos.mess_menus.save(menu)

        return json_response({
            'success': True,
            'message': 'Queue status updated',
            'data': {
                'queueStatus': menu['queueStatus'],
                'estimatedWaitTime': menu['estimatedWaitTime']
            }
        })

    @bp.route('/menu/<menu_id>/rate', methods=['POST'])
    @auth.permission_required(policy.DINING_RATE)
    def rate_meal(menu_id):
        """Rate a meal; a second rating by the same user replaces the first"""
        data = parse_body(MealRating)
        menu = repos.mess_menus.get(menu_id)

        rating, created = repos.meal_ratings.submit(g.user['_id'], menu['_id'], data.model_dump())

        return json_response({
            'success': True,
            'message': 'Rating submitted successfully' if created else 'Rating updated successfully',
            'data': rating
        }, 201 if created else 200)

    @bp.route('/menu/<menu_id>/stats', methods=['GET'])
    @auth.protect
    def get_menu_stats(menu_id):
        """Rating statistics for one menu"""
        menu = repos.mess_menus.get(menu_id)
        return json_response({
            'success': True,
            'data': repos.meal_ratings.menu_stats(menu['_id'])
        })

    return bp
