"""
Order routes: placement from the cart, tracking, status updates
"""

import logging

from flask import Blueprint, current_app, g

from .. import policy
from ..errors import Forbidden, Unavailable, ValidationFailed
from ..events import ORDER_RECEIVED, ORDER_UPDATE
from ..models import cart as cart_model
from ..models import menu
from ..models import order as order_model
from ..schemas import CancelOrder, OrderQuery, OrderRating, OrderStatsQuery, OrderStatus, PlaceOrder, parse_args, parse_body
from ..utils import json_response, same_id

logger = logging.getLogger(__name__)


def reserve_lines(menu_items, lines):
    """Take stock for every cart line or for none of them.

    Returns the reserved ``(menuItem, quantity)`` pairs so a later failure
    can hand them back with ``release_lines``.
    """
    reserved = []
    for line in lines:
        if not menu_items.reserve(line['menuItem'], line['quantity']):
            release_lines(menu_items, reserved)
            item = menu_items.find_by_id(line['menuItem']) or {}
            raise Unavailable(f"Insufficient stock for {item.get('name', 'item')}")
        reserved.append((line['menuItem'], line['quantity']))
    return reserved


def release_lines(menu_items, reserved):
    for item_id, quantity in reserved:
        menu_items.release(item_id, quantity)
    if reserved:
        logger.warning('↩️ Released stock for %d reserved lines', len(reserved))


def create_blueprint(repos, auth, publisher):
    bp = Blueprint('orders', __name__)

    def load_order(order_id):
        """Order visible to the current user"""
        order = repos.orders.get(order_id)
        if not same_id(order['user'], g.user['_id']) and not policy.can(g.user['role'], policy.ORDER_MANAGE):
            raise Forbidden('Not authorized to access this order')
        return order

    def notify(order):
        publisher.publish(ORDER_UPDATE, {
            'orderId': order['_id'],
            'orderNumber': order['orderNumber'],
            'status': order['status']
        }, room=f"user_{order['user']}")

    @bp.route('', methods=['POST'])
    @auth.permission_required(policy.ORDER_PLACE)
    def create_order():
        """Place an order from the current cart"""
        data = parse_body(PlaceOrder)
        config = current_app.config

        cart = repos.carts.for_user(g.user['_id'])
        if not cart or not cart['items']:
            raise ValidationFailed('Cart is empty')

        menu_items = repos.menu_items.by_ids([line['menuItem'] for line in cart['items']])
        for line in cart['items']:
            item = menu_items.get(str(line['menuItem']))
            if not menu.is_orderable(item):
                name = item['name'] if item else 'An item in your cart'
                raise Unavailable(f'{name} is no longer available')
            if not menu.has_stock(item, line['quantity']):
                raise Unavailable(f"Insufficient stock for {item['name']}")

        reserved = reserve_lines(repos.menu_items, cart['items'])
        try:
            order = order_model.build_order(
                repos.orders.next_order_number(),
                g.user['_id'],
                cart,
                menu_items,
                data.paymentMethod,
                data.deliveryAddress.model_dump(),
                delivery_instructions=data.deliveryInstructions,
                free_threshold=config['FREE_DELIVERY_THRESHOLD'],
                fee=config['DELIVERY_FEE'],
                estimated_minutes=config['ESTIMATED_DELIVERY_MINUTES']
            )
            repos.orders.insert(order)
        except Exception:
            release_lines(repos.menu_items, reserved)
            raise

        cart_model.clear(cart)
        repos.carts.save(cart)

        logger.info('✅ Order placed: %s (%s) total=%s', order['orderNumber'], order['_id'], order['finalAmount'])
        publisher.publish(ORDER_RECEIVED, {
            'orderId': order['_id'],
            'orderNumber': order['orderNumber'],
            'items': order['items'],
            'finalAmount': order['finalAmount']
        }, room='canteen_staff')

        return json_response({
            'success': True,
            'message': 'Order placed successfully',
            'data': order_model.present_order(order)
        }, 201)

    @bp.route('', methods=['GET'])
    @auth.protect
    def get_orders():
        """Get orders: own orders, or all orders for canteen staff"""
        args = parse_args(OrderQuery)

        query = {}
        if not policy.can(g.user['role'], policy.ORDER_MANAGE):
            query['user'] = g.user['_id']
        if args.status:
            query['status'] = args.status

        orders, page = repos.orders.paginate(query, args.page, args.limit, sort=[('createdAt', -1)])

        return json_response({
            'success': True,
            'count': len(orders),
            'pagination': page,
            'data': [order_model.present_order(o) for o in orders]
        })

    @bp.route('/stats', methods=['GET'])
    @auth.permission_required(policy.ORDER_STATS)
    def get_stats():
        """Order statistics (Canteen staff)"""
        args = parse_args(OrderStatsQuery)
        stats = repos.orders.stats(args.dateFrom, args.dateTo, args.status)
        return json_response({
            'success': True,
            'data': stats
        })

    @bp.route('/<order_id>', methods=['GET'])
    @auth.protect
    def get_order(order_id):
        """Get single order"""
        order = load_order(order_id)
        return json_response({
            'success': True,
            'data': order_model.present_order(order)
        })

    @bp.route('/<order_id>/status', methods=['PUT'])
    @auth.permission_required(policy.ORDER_MANAGE)
    def update_order_status(order_id):
        """Move an order through its lifecycle (Canteen staff)"""
        data = parse_body(OrderStatus)
        order = repos.orders.get(order_id)

        if data.status == order_model.CANCELLED:
            order_model.cancel_order(order, data.notes or 'Cancelled by canteen', g.user['_id'])
        else:
            order_model.update_status(order, data.status, g.user['_id'], data.notes)
        repos.orders.save(order)

        logger.info('📦 Order %s -> %s by %s', order['orderNumber'], order['status'], g.user['_id'])
        notify(order)

        return json_response({
            'success': True,
            'message': 'Order status updated',
            'data': order_model.present_order(order)
        })

    @bp.route('/<order_id>/cancel', methods=['POST'])
    @auth.protect
    def cancel_order(order_id):
        """Cancel an order that has not started preparation"""
        data = parse_body(CancelOrder)
        order = load_order(order_id)

        order_model.cancel_order(order, data.reason, g.user['_id'])
        repos.orders.save(order)

        logger.info('🚫 Order %s cancelled by %s', order['orderNumber'], g.user['_id'])
        notify(order)

        return json_response({
            'success': True,
            'message': 'Order cancelled successfully',
            'data': order_model.present_order(order)
        })

    @bp.route('/<order_id>/rate', methods=['POST'])
    @auth.protect
    def rate_order(order_id):
        """Rate a delivered order"""
        data = parse_body(OrderRating)
        order = repos.orders.get(order_id)
        if not same_id(order['user'], g.user['_id']):
            raise Forbidden('Only the customer can rate this order')

        order_model.add_rating(order, data.model_dump(exclude_none=True))
        repos.orders.save(order)

        return json_response({
            'success': True,
            'message': 'Rating submitted successfully',
            'data': order['rating']
        })

    return bp
