"""
Canteen orders and their status lifecycle.

    pending -> confirmed -> preparing -> ready -> out_for_delivery -> delivered
    pending | confirmed -> cancelled

``finalAmount`` is fixed when the order is built from the cart and is
never recomputed afterwards.
"""

from datetime import timedelta

from ..errors import PreconditionFailed, ValidationFailed
from ..utils import utcnow

PENDING = 'pending'
CONFIRMED = 'confirmed'
PREPARING = 'preparing'
READY = 'ready'
OUT_FOR_DELIVERY = 'out_for_delivery'
DELIVERED = 'delivered'
CANCELLED = 'cancelled'

STATUSES = (PENDING, CONFIRMED, PREPARING, READY, OUT_FOR_DELIVERY, DELIVERED, CANCELLED)
CANCELLABLE = (PENDING, CONFIRMED)
TERMINAL = (DELIVERED, CANCELLED)

PAYMENT_METHODS = ('cash', 'card', 'upi', 'wallet')

TRACKING_STAGES = (
    (PENDING, 'Order Placed'),
    (CONFIRMED, 'Order Confirmed'),
    (PREPARING, 'Preparing'),
    (READY, 'Ready for Delivery'),
    (OUT_FOR_DELIVERY, 'Out for Delivery'),
    (DELIVERED, 'Delivered'),
)

# Status -> timestamp field stamped when the order enters that status
_STATUS_TIMESTAMPS = {
    PREPARING: 'preparationStartTime',
    READY: 'preparationEndTime',
    DELIVERED: 'actualDeliveryTime',
}


def format_order_number(day, sequence):
    return f"ORD{day.strftime('%Y%m%d')}{sequence:03d}"


def delivery_fee_for(total_amount, free_threshold, fee):
    return 0 if total_amount >= free_threshold else fee


def build_order(order_number, user_id, cart, menu_items, payment_method, delivery_address,
                delivery_instructions='', discount=None, free_threshold=100, fee=20,
                estimated_minutes=30, now=None):
    """Snapshot a cart into a new order document.

    ``menu_items`` maps menu item id strings to their documents so each
    line keeps the item's name at order time.
    """
    if not cart['items']:
        raise ValidationFailed('Cart is empty')

    now = now or utcnow()
    items = []
    for line in cart['items']:
        menu_item = menu_items[str(line['menuItem'])]
        items.append({
            'menuItem': line['menuItem'],
            'name': menu_item['name'],
            'price': line['price'],
            'quantity': line['quantity'],
            'specialInstructions': line.get('specialInstructions', ''),
            'subtotal': line['price'] * line['quantity'],
        })

    total_amount = sum(item['subtotal'] for item in items)
    delivery_fee = delivery_fee_for(total_amount, free_threshold, fee)
    discount = discount or {'amount': 0, 'reason': ''}

    return {
        'orderNumber': order_number,
        'user': user_id,
        'items': items,
        'totalAmount': total_amount,
        'deliveryFee': delivery_fee,
        'discount': discount,
        'finalAmount': total_amount + delivery_fee - discount['amount'],
        'status': PENDING,
        'paymentStatus': 'pending',
        'paymentMethod': payment_method,
        'deliveryAddress': delivery_address,
        'deliveryInstructions': delivery_instructions or '',
        'estimatedDeliveryTime': now + timedelta(minutes=estimated_minutes),
        'actualDeliveryTime': None,
        'preparationStartTime': None,
        'preparationEndTime': None,
        'assignedDeliveryPerson': None,
        'statusHistory': [{'status': PENDING, 'timestamp': now, 'updatedBy': None, 'notes': ''}],
        'rating': None,
        'cancellationReason': None,
    }


def update_status(order, new_status, updated_by, notes='', now=None):
    if order['status'] in TERMINAL:
        raise PreconditionFailed(f"Order is already {order['status']}")

    stages = [key for key, _ in TRACKING_STAGES]
    if new_status in stages and stages.index(new_status) <= stages.index(order['status']):
        raise PreconditionFailed(f"Order is already {order['status']}")

    now = now or utcnow()
    order['status'] = new_status

    field = _STATUS_TIMESTAMPS.get(new_status)
    if field:
        order[field] = now

    order['statusHistory'].append({
        'status': new_status,
        'timestamp': now,
        'updatedBy': updated_by,
        'notes': notes or '',
    })
    return order


def is_cancellable(order):
    return order['status'] in CANCELLABLE


def cancel_order(order, reason, updated_by, now=None):
    if not is_cancellable(order):
        raise PreconditionFailed('Order cannot be cancelled at this stage')

    now = now or utcnow()
    order['status'] = CANCELLED
    order['cancellationReason'] = reason
    order['statusHistory'].append({
        'status': CANCELLED,
        'timestamp': now,
        'updatedBy': updated_by,
        'notes': f'Cancelled: {reason}',
    })
    return order


def add_rating(order, rating, now=None):
    if order['status'] != DELIVERED:
        raise PreconditionFailed('Can only rate delivered orders')

    order['rating'] = dict(rating, ratedAt=now or utcnow())
    return order


def tracking_info(order):
    keys = [key for key, _ in TRACKING_STAGES]
    current = keys.index(order['status']) if order['status'] in keys else -1
    return [
        {'key': key, 'label': label, 'completed': index == 0 or index <= current}
        for index, (key, label) in enumerate(TRACKING_STAGES)
    ]


def duration_minutes(order):
    if order.get('actualDeliveryTime') and order.get('createdAt'):
        return round((order['actualDeliveryTime'] - order['createdAt']).total_seconds() / 60)
    return None


def present_order(order):
    data = dict(order)
    data['isCancellable'] = is_cancellable(order)
    data['trackingInfo'] = tracking_info(order)
    data['duration'] = duration_minutes(order)
    return data
