"""
Cart routes
"""

import logging

from flask import Blueprint, g

from .. import policy
from ..errors import NotFound, Unavailable
from ..models import cart as cart_model
from ..models import menu
from ..schemas import AddToCart, UpdateCart, parse_body
from ..utils import json_response, to_object_id

logger = logging.getLogger(__name__)


def orderable_item(menu_items, item_id, quantity):
    """Menu item that can be put in a cart in ``quantity``"""
    item = menu_items.find_by_id(item_id)
    if not item:
        raise NotFound('Menu item not found')
    if not menu.is_orderable(item):
        raise Unavailable(f"{item['name']} is currently unavailable")
    if not menu.has_stock(item, quantity):
        raise Unavailable(f"Only {item['stock']} {item['name']} left in stock")
    return item


def create_blueprint(repos, auth, publisher):
    bp = Blueprint('cart', __name__)

    def cart_response(cart, message=None):
        menu_items = repos.menu_items.by_ids([line['menuItem'] for line in cart['items']])
        body = {
            'success': True,
            'data': cart_model.present_cart(cart, menu_items)
        }
        if message:
            body['message'] = message
        return json_response(body)

    @bp.route('', methods=['GET'])
    @auth.permission_required(policy.CART_USE)
    def get_cart():
        """Get current user's cart"""
        cart = repos.carts.get_or_create(g.user['_id'])
        return cart_response(cart)

    @bp.route('/add', methods=['POST'])
    @auth.permission_required(policy.CART_USE)
    def add_to_cart():
        """Add item to cart"""
        data = parse_body(AddToCart)
        item_id = to_object_id(data.menuItemId, 'menuItemId')
        cart = repos.carts.get_or_create(g.user['_id'])

        line = cart_model.find_line(cart, item_id)
        wanted = data.quantity + (line['quantity'] if line else 0)
        item = orderable_item(repos.menu_items, item_id, wanted)

        cart_model.add_item(cart, item['_id'], data.quantity, item['price'], data.specialInstructions)
        repos.carts.save(cart)
        logger.info('🛒 %s x%d added to cart of %s', item['name'], data.quantity, g.user['_id'])

        return cart_response(cart, 'Item added to cart')

    @bp.route('/update', methods=['PUT'])
    @auth.permission_required(policy.CART_USE)
    def update_cart():
        """Update item quantity; zero removes the line"""
        data = parse_body(UpdateCart)
        item_id = to_object_id(data.menuItemId, 'menuItemId')
        cart = repos.carts.get_or_create(g.user['_id'])

        if data.quantity > 0 and cart_model.find_line(cart, item_id) is not None:
            orderable_item(repos.menu_items, item_id, data.quantity)

        cart_model.update_item_quantity(cart, item_id, data.quantity)
        repos.carts.save(cart)

        return cart_response(cart, 'Cart updated')

    @bp.route('/remove/<menu_item_id>', methods=['DELETE'])
    @auth.permission_required(policy.CART_USE)
    def remove_from_cart(menu_item_id):
        """Remove item from cart"""
        cart = repos.carts.get_or_create(g.user['_id'])
        cart_model.remove_item(cart, to_object_id(menu_item_id, 'menuItemId'))
        repos.carts.save(cart)

        return cart_response(cart, 'Item removed from cart')

    @bp.route('/clear', methods=['DELETE'])
    @auth.permission_required(policy.CART_USE)
    def clear_cart():
        """Clear cart"""
        cart = repos.carts.get_or_create(g.user['_id'])
        cart_model.clear(cart)
        repos.carts.save(cart)

        return cart_response(cart, 'Cart cleared')

    return bp
