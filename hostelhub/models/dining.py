"""
Mess menus and meal ratings.
"""

MEAL_TYPES = ('breakfast', 'lunch', 'dinner')
ITEM_CATEGORIES = ('main', 'side', 'beverage', 'dessert', 'bread')
QUEUE_STATUSES = ('light', 'medium', 'heavy')
IMPROVEMENTS = ('taste', 'quality', 'quantity', 'variety', 'temperature', 'hygiene', 'service_speed')

SUB_SCORES = ('taste', 'quality', 'quantity')


def new_mess_menu(data, created_by):
    menu = {
        'date': data['date'],
        'mealType': data['mealType'],
        'items': data.get('items') or [],
        'timings': data['timings'],
        'specialNotes': data.get('specialNotes') or '',
        'nutritionalInfo': data.get('nutritionalInfo') or {},
        'queueStatus': data.get('queueStatus') or 'medium',
        'estimatedWaitTime': data.get('estimatedWaitTime') or 0,
        'isAvailable': data.get('isAvailable', True),
        'createdBy': created_by,
    }
    return refresh_calories(menu)


def refresh_calories(menu):
    if menu.get('items'):
        menu.setdefault('nutritionalInfo', {})
        menu['nutritionalInfo']['totalCalories'] = sum(
            item.get('calories') or 0 for item in menu['items']
        )
    return menu


def overall_rating(rating):
    """Overall score is the rounded mean of the sub-scores when all three are given"""
    scores = [rating.get(key) for key in SUB_SCORES]
    if all(scores):
        return round(sum(scores) / 3)
    return rating.get('rating')


def apply_overall_rating(rating):
    rating['rating'] = overall_rating(rating)
    return rating


def empty_stats():
    return {
        'averageRating': 0,
        'totalRatings': 0,
        'averageTaste': 0,
        'averageQuality': 0,
        'averageQuantity': 0,
        'ratingDistribution': {str(score): 0 for score in range(1, 6)},
    }


def _average(values):
    values = [v for v in values if v is not None]
    return sum(values) / len(values) if values else 0


def summarize_ratings(ratings, tastes, qualities, quantities):
    """Fold raw per-menu values into the stats document"""
    if not ratings:
        return empty_stats()

    distribution = {str(score): 0 for score in range(1, 6)}
    for value in ratings:
        distribution[str(int(value))] += 1

    return {
        'averageRating': round(_average(ratings), 1),
        'totalRatings': len(ratings),
        'averageTaste': _average(tastes),
        'averageQuality': _average(qualities),
        'averageQuantity': _average(quantities),
        'ratingDistribution': distribution,
    }
