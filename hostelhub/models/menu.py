"""
Canteen menu catalog: categories and menu items.

Derived fields (discount percentage, stock status, today's availability)
are computed on read by ``present_menu_item`` and never stored.
"""

from datetime import datetime

UNLIMITED_STOCK = -1
LOW_STOCK_LEVEL = 5

ALLERGENS = ('nuts', 'dairy', 'gluten', 'soy', 'eggs', 'shellfish', 'fish', 'sesame')
TAGS = ('vegetarian', 'vegan', 'spicy', 'healthy', 'popular', 'new', 'combo')
WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
SORT_OPTIONS = {
    'name': [('name', 1)],
    'price_low': [('price', 1)],
    'price_high': [('price', -1)],
    'rating': [('rating.average', -1)],
    'popular': [('orderCount', -1)],
    'newest': [('createdAt', -1)],
}


def new_category(data):
    return {
        'name': data['name'].strip(),
        'description': data.get('description') or '',
        'icon': data.get('icon') or '🍽️',
        'displayOrder': data.get('displayOrder', 0),
        'isActive': True,
    }


def default_schedule(schedule=None):
    """Fill in missing weekdays as available all day"""
    schedule = dict(schedule or {})
    for day in WEEKDAYS:
        if not schedule.get(day):
            schedule[day] = {'start': '00:00', 'end': '23:59', 'available': True}
    return schedule


def new_menu_item(data, created_by):
    item = {
        'name': data['name'].strip(),
        'description': data.get('description') or '',
        'category': data['category'],
        'price': data['price'],
        'originalPrice': data.get('originalPrice') or data['price'],
        'image': data.get('image'),
        'ingredients': data.get('ingredients') or [],
        'allergens': data.get('allergens') or [],
        'nutritionInfo': data.get('nutritionInfo') or {},
        'tags': data.get('tags') or [],
        'preparationTime': data.get('preparationTime') or 15,
        'isAvailable': data.get('isAvailable', True),
        'availabilitySchedule': default_schedule(data.get('availabilitySchedule')),
        'stock': data.get('stock', UNLIMITED_STOCK),
        'rating': {'average': 0, 'count': 0},
        'orderCount': 0,
        'isActive': True,
        'createdBy': created_by,
    }
    return item


def discount_percentage(item):
    original = item.get('originalPrice')
    price = item.get('price', 0)
    if original and original > price:
        return round((original - price) / original * 100)
    return 0


def stock_status(item):
    stock = item.get('stock', UNLIMITED_STOCK)
    if stock == UNLIMITED_STOCK:
        return 'unlimited'
    if stock == 0:
        return 'out_of_stock'
    if stock <= LOW_STOCK_LEVEL:
        return 'low_stock'
    return 'in_stock'


def _minutes(hhmm):
    hour, minute = hhmm.split(':')
    return int(hour) * 60 + int(minute)


def is_available_today(item, now=None):
    if not item.get('isAvailable', True) or not item.get('isActive', True):
        return False

    now = now or datetime.now()
    schedule = (item.get('availabilitySchedule') or {}).get(WEEKDAYS[now.weekday()])
    if not schedule or not schedule.get('available'):
        return False

    if schedule.get('start') and schedule.get('end'):
        current = now.hour * 60 + now.minute
        return _minutes(schedule['start']) <= current <= _minutes(schedule['end'])

    return True


def is_orderable(item):
    return bool(item) and item.get('isActive', True) and item.get('isAvailable', True)


def has_stock(item, quantity):
    stock = item.get('stock', UNLIMITED_STOCK)
    return stock == UNLIMITED_STOCK or stock >= quantity


def apply_rating(item, value):
    """Fold one more rating into the running average"""
    rating = item.setdefault('rating', {'average': 0, 'count': 0})
    total = rating['average'] * rating['count'] + value
    rating['count'] += 1
    rating['average'] = total / rating['count']
    return item


def present_menu_item(item, now=None):
    data = dict(item)
    data['discountPercentage'] = discount_percentage(item)
    data['stockStatus'] = stock_status(item)
    data['isAvailableToday'] = is_available_today(item, now)
    return data
