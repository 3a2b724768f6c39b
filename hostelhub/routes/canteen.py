"""
Canteen catalog routes: menu categories and menu items
"""

import logging

from flask import Blueprint, g

from .. import policy
from ..errors import Conflict, NotFound
from ..models import menu
from ..schemas import Category, Limit, MenuItem, MenuItemUpdate, MenuQuery, Rating, parse_args, parse_body
from ..utils import json_response, to_object_id

logger = logging.getLogger(__name__)


def create_blueprint(repos, auth, publisher):
    bp = Blueprint('canteen', __name__)

    # ==================== CATEGORIES ====================

    @bp.route('/categories', methods=['GET'])
    def get_categories():
        """Get all active menu categories"""
        categories = repos.categories.list_active()
        return json_response({
            'success': True,
            'count': len(categories),
            'data': categories
        })

    @bp.route('/categories', methods=['POST'])
    @auth.permission_required(policy.MENU_MANAGE)
    def create_category():
        """Create menu category (Canteen staff)"""
        data = parse_body(Category)

        if repos.categories.find_one({'name': data.name.strip()}):
            raise Conflict('Category already exists')

        category = repos.categories.insert(menu.new_category(data.model_dump()))
        logger.info('🗂️ Category created: %s', category['name'])

        return json_response({
            'success': True,
            'message': 'Category created successfully',
            'data': category
        }, 201)

    # ==================== MENU ITEMS ====================

    @bp.route('/menu', methods=['GET'])
    def get_menu():
        """Get available menu items with filters and pagination"""
        args = parse_args(MenuQuery)

        query = repos.menu_items.available_query(
            category=to_object_id(args.category, 'category') if args.category else None,
            search=args.search,
            tags=args.tags,
            min_price=args.minPrice,
            max_price=args.maxPrice,
            include_out_of_stock=args.includeOutOfStock
        )
        items, page = repos.menu_items.paginate(
            query, args.page, args.limit, sort=menu.SORT_OPTIONS[args.sortBy]
        )

        return json_response({
            'success': True,
            'count': len(items),
            'pagination': page,
            'data': [menu.present_menu_item(item) for item in items]
        })

    @bp.route('/menu/popular', methods=['GET'])
    def get_popular():
        """Get most ordered items"""
        args = parse_args(Limit)
        items = repos.menu_items.popular(args.limit)
        return json_response({
            'success': True,
            'count': len(items),
            'data': [menu.present_menu_item(item) for item in items]
        })

    @bp.route('/menu/recommendations', methods=['GET'])
    @auth.protect
    def get_recommendations():
        """Get a random pick of well rated items"""
        args = parse_args(Limit)
        items = repos.menu_items.recommendations(min(args.limit, 5))
        return json_response({
            'success': True,
            'count': len(items),
            'data': [menu.present_menu_item(item) for item in items]
        })

    @bp.route('/menu/<item_id>', methods=['GET'])
    def get_menu_item(item_id):
        """Get single menu item"""
        item = repos.menu_items.get(item_id)
        if not item.get('isActive', True):
            raise NotFound('Menu item not found')

        category = repos.categories.find_by_id(item['category'])
        data = menu.present_menu_item(item)
        data['category'] = category or item['category']

        return json_response({
            'success': True,
            'data': data
        })

    @bp.route('/menu', methods=['POST'])
    @auth.permission_required(policy.MENU_MANAGE)
    def create_menu_item():
        """Create menu item (Canteen staff)"""
        data = parse_body(MenuItem).model_dump()
        data['category'] = repos.categories.get(data['category'])['_id']

        item = repos.menu_items.insert(menu.new_menu_item(data, g.user['_id']))
        logger.info('🍽️ Menu item created: %s', item['name'])

        return json_response({
            'success': True,
            'message': 'Menu item created successfully',
            'data': menu.present_menu_item(item)
        }, 201)

    @bp.route('/menu/<item_id>', methods=['PUT'])
    @auth.permission_required(policy.MENU_MANAGE)
    def update_menu_item(item_id):
        """Update menu item (Canteen staff)"""
        item = repos.menu_items.get(item_id)
        changes = parse_body(MenuItemUpdate).model_dump(exclude_unset=True)

        if changes.get('category'):
            changes['category'] = repos.categories.get(changes['category'])['_id']
        if 'name' in changes:
            changes['name'] = changes['name'].strip()

        item.update(changes)
        repos.menu_items.save(item)

        return json_response({
            'success': True,
            'message': 'Menu item updated successfully',
            'data': menu.present_menu_item(item)
        })

    @bp.route('/menu/<item_id>', methods=['DELETE'])
    @auth.permission_required(policy.MENU_MANAGE)
    def delete_menu_item(item_id):
        """Soft delete menu item (Canteen staff)"""
        item = repos.menu_items.get(item_id)
        item['isActive'] = False
        repos.menu_items.save(item)
        logger.info('🗑️ Menu item deactivated: %s', item['name'])

        return json_response({
            'success': True,
            'message': 'Menu item deleted successfully'
        })

    @bp.route('/menu/<item_id>/rate', methods=['POST'])
    @auth.permission_required(policy.MENU_RATE)
    def rate_menu_item(item_id):
        """Rate a menu item"""
        data = parse_body(Rating)
        item = repos.menu_items.get(item_id)

        menu.apply_rating(item, data.rating)
        repos.menu_items.save(item)

        return json_response({
            'success': True,
            'message': 'Rating submitted successfully',
            'data': {'rating': item['rating']}
        })

    return bp
