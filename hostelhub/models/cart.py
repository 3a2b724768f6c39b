"""
Per-user cart.

``totalAmount`` and ``itemCount`` are always recomputed from the item
list; the cart repository calls ``recalculate_total`` before every write.
"""

from ..errors import NotFound
from ..utils import same_id, utcnow


def new_cart(user_id):
    return {
        'user': user_id,
        'items': [],
        'totalAmount': 0,
        'itemCount': 0,
        'lastUpdated': utcnow(),
    }


def _line_index(cart, menu_item_id):
    for index, line in enumerate(cart['items']):
        if same_id(line['menuItem'], menu_item_id):
            return index
    return -1


def find_line(cart, menu_item_id):
    index = _line_index(cart, menu_item_id)
    return cart['items'][index] if index > -1 else None


def recalculate_total(cart):
    cart['totalAmount'] = sum(line['price'] * line['quantity'] for line in cart['items'])
    cart['itemCount'] = sum(line['quantity'] for line in cart['items'])
    return cart


def _touch(cart):
    recalculate_total(cart)
    cart['lastUpdated'] = utcnow()
    return cart


def add_item(cart, menu_item_id, quantity, price, special_instructions=''):
    line = find_line(cart, menu_item_id)
    if line is not None:
        line['quantity'] += quantity
        line['specialInstructions'] = special_instructions or line.get('specialInstructions', '')
        line['addedAt'] = utcnow()
    else:
        cart['items'].append({
            'menuItem': menu_item_id,
            'quantity': quantity,
            'price': price,
            'specialInstructions': special_instructions or '',
            'addedAt': utcnow(),
        })
    return _touch(cart)


def update_item_quantity(cart, menu_item_id, quantity):
    index = _line_index(cart, menu_item_id)
    if index == -1:
        raise NotFound('Item not found in cart')

    if quantity <= 0:
        del cart['items'][index]
    else:
        cart['items'][index]['quantity'] = quantity
        cart['items'][index]['addedAt'] = utcnow()
    return _touch(cart)


def remove_item(cart, menu_item_id):
    index = _line_index(cart, menu_item_id)
    if index == -1:
        raise NotFound('Item not found in cart')

    del cart['items'][index]
    return _touch(cart)


def clear(cart):
    cart['items'] = []
    return _touch(cart)


def summary(cart):
    return {
        'itemCount': cart['itemCount'],
        'totalAmount': cart['totalAmount'],
        'uniqueItems': len(cart['items']),
    }


def present_cart(cart, menu_items=None):
    """Attach the summary and, when given, the referenced menu item documents"""
    data = dict(cart)
    data['summary'] = summary(cart)
    if menu_items is not None:
        data['items'] = [
            dict(line, menuItem=menu_items.get(str(line['menuItem']), line['menuItem']))
            for line in cart['items']
        ]
    return data
