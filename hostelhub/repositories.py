"""
Collection repositories.

One repository per MongoDB collection, constructed explicitly by the app
factory and handed to the blueprints. Repositories own indexes, the
``prepare`` hook that recomputes derived stored fields before every write,
pagination and the statistics aggregations.
"""

import logging
import random
import re
from datetime import datetime

import pymongo
from pymongo import ReturnDocument

from .errors import NotFound, PreconditionFailed
from .models import announcement as announcement_model
from .models import cart as cart_model
from .models import dining as dining_model
from .models import maintenance as maintenance_model
from .models import menu as menu_model
from .models import order as order_model
from .models import outpass as outpass_model
from .utils import pagination, to_object_id, utcnow

logger = logging.getLogger(__name__)


class Repository:
    collection_name = None
    not_found_message = 'Resource not found'

    def __init__(self, db):
        self.db = db
        self.collection = db[self.collection_name]

    def ensure_indexes(self):
        pass

    def prepare(self, doc):
        """Recompute derived stored fields before a write"""
        return doc

    def find_by_id(self, doc_id):
        return self.collection.find_one({'_id': to_object_id(doc_id)})

    def get(self, doc_id):
        doc = self.find_by_id(doc_id)
        if not doc:
            raise NotFound(self.not_found_message)
        return doc

    def find_one(self, query):
        return self.collection.find_one(query)

    def find(self, query, sort=None, skip=0, limit=0):
        cursor = self.collection.find(query)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def count(self, query):
        return self.collection.count_documents(query)

    def paginate(self, query, page, limit, sort=None):
        total = self.count(query)
        docs = self.find(query, sort=sort, skip=(page - 1) * limit, limit=limit)
        return docs, pagination(page, limit, total)

    def insert(self, doc):
        now = utcnow()
        doc.setdefault('createdAt', now)
        doc['updatedAt'] = now
        self.prepare(doc)
        result = self.collection.insert_one(doc)
        doc['_id'] = result.inserted_id
        return doc

    def save(self, doc):
        self.prepare(doc)
        doc['updatedAt'] = utcnow()
        self.collection.replace_one({'_id': doc['_id']}, doc)
        return doc

    def save_if(self, doc, condition):
        """Save only while the stored document still matches ``condition``"""
        self.prepare(doc)
        doc['updatedAt'] = utcnow()
        result = self.collection.replace_one(dict(condition, _id=doc['_id']), doc)
        return result.matched_count == 1


# ==================== USERS ====================

class UserRepository(Repository):
    collection_name = 'users'
    not_found_message = 'User not found'

    def ensure_indexes(self):
        self.collection.create_index('identifier', unique=True)
        self.collection.create_index('email', unique=True)

    def find_by_identifier(self, identifier):
        return self.collection.find_one({'identifier': identifier.upper()})


# ==================== CANTEEN MENU ====================

class MenuCategoryRepository(Repository):
    collection_name = 'menucategories'
    not_found_message = 'Category not found'

    def ensure_indexes(self):
        self.collection.create_index('name', unique=True)

    def list_active(self):
        return self.find({'isActive': True}, sort=[('displayOrder', 1), ('name', 1)])


class MenuItemRepository(Repository):
    collection_name = 'menuitems'
    not_found_message = 'Menu item not found'

    def ensure_indexes(self):
        self.collection.create_index([('category', 1), ('isActive', 1)])
        self.collection.create_index([('isAvailable', 1), ('isActive', 1)])
        self.collection.create_index('tags')
        self.collection.create_index('price')
        self.collection.create_index([('rating.average', -1)])
        self.collection.create_index([('orderCount', -1)])

    def prepare(self, doc):
        doc['availabilitySchedule'] = menu_model.default_schedule(doc.get('availabilitySchedule'))
        if not doc.get('originalPrice'):
            doc['originalPrice'] = doc['price']
        return doc

    def available_query(self, category=None, search=None, tags=None, min_price=None,
                        max_price=None, include_out_of_stock=False):
        clauses = [{'isActive': True}, {'isAvailable': True}]
        if category:
            clauses.append({'category': category})
        if tags:
            clauses.append({'tags': {'$in': tags}})
        if min_price is not None or max_price is not None:
            price = {}
            if min_price is not None:
                price['$gte'] = min_price
            if max_price is not None:
                price['$lte'] = max_price
            clauses.append({'price': price})
        if search:
            pattern = re.compile(re.escape(search), re.IGNORECASE)
            clauses.append({'$or': [
                {'name': pattern},
                {'description': pattern},
                {'ingredients': pattern},
            ]})
        if not include_out_of_stock:
            clauses.append({'$or': [
                {'stock': {'$gt': 0}},
                {'stock': menu_model.UNLIMITED_STOCK},
            ]})
        return {'$and': clauses}

    def popular(self, limit=10):
        return self.find(
            {'isActive': True, 'isAvailable': True, 'orderCount': {'$gt': 0}},
            sort=[('orderCount', -1)],
            limit=limit
        )

    def recommendations(self, limit=5):
        candidates = self.find({
            'isActive': True,
            'isAvailable': True,
            'rating.average': {'$gte': 4.0},
        })
        return random.sample(candidates, min(limit, len(candidates)))

    def by_ids(self, ids):
        """Map id strings to documents"""
        docs = self.find({'_id': {'$in': [to_object_id(i) for i in ids]}})
        return {str(doc['_id']): doc for doc in docs}

    def reserve(self, item_id, quantity):
        """Atomically take stock for an order line and count the sale.

        Unlimited items only get their orderCount bumped; finite items are
        decremented only when enough stock remains. Returns False when the
        stock could not be taken.
        """
        result = self.collection.update_one(
            {'_id': item_id, 'stock': menu_model.UNLIMITED_STOCK},
            {'$inc': {'orderCount': quantity}}
        )
        if result.modified_count:
            return True

        result = self.collection.update_one(
            {'_id': item_id, 'stock': {'$gte': quantity}},
            {'$inc': {'stock': -quantity, 'orderCount': quantity}}
        )
        return result.modified_count == 1

    def release(self, item_id, quantity):
        """Undo a reservation made by ``reserve``"""
        item = self.collection.find_one({'_id': item_id}, {'stock': 1})
        if item is None:
            return
        update = {'orderCount': -quantity}
        if item.get('stock', menu_model.UNLIMITED_STOCK) != menu_model.UNLIMITED_STOCK:
            update['stock'] = quantity
        self.collection.update_one({'_id': item_id}, {'$inc': update})


# ==================== CART & ORDERS ====================

class CartRepository(Repository):
    collection_name = 'carts'
    not_found_message = 'Cart not found'

    def ensure_indexes(self):
        self.collection.create_index('user', unique=True)
        self.collection.create_index('lastUpdated')

    def prepare(self, doc):
        return cart_model.recalculate_total(doc)

    def for_user(self, user_id):
        return self.collection.find_one({'user': user_id})

    def get_or_create(self, user_id):
        cart = self.for_user(user_id)
        if cart is None:
            cart = self.insert(cart_model.new_cart(user_id))
        return cart


class OrderRepository(Repository):
    collection_name = 'orders'
    not_found_message = 'Order not found'

    def __init__(self, db):
        super().__init__(db)
        self.counters = db['counters']

    def ensure_indexes(self):
        self.collection.create_index('orderNumber', unique=True)
        self.collection.create_index([('user', 1), ('createdAt', -1)])
        self.collection.create_index([('status', 1), ('createdAt', -1)])
        self.collection.create_index([('assignedDeliveryPerson', 1), ('status', 1)])

    def next_order_number(self, now=None):
        """Take the next number from the per-day counter document"""
        day = now or utcnow()
        counter = self.counters.find_one_and_update(
            {'_id': f"orders:{day.strftime('%Y%m%d')}"},
            {'$inc': {'seq': 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return order_model.format_order_number(day, counter['seq'])

    def stats(self, date_from=None, date_to=None, status=None):
        match = {}
        if date_from or date_to:
            match['createdAt'] = {}
            if date_from:
                match['createdAt']['$gte'] = date_from
            if date_to:
                match['createdAt']['$lte'] = date_to
        if status:
            match['status'] = status

        groups = list(self.collection.aggregate([
            {'$match': match},
            {'$group': {
                '_id': '$status',
                'count': {'$sum': 1},
                'revenue': {'$sum': '$finalAmount'},
            }},
        ]))

        total_orders = sum(g['count'] for g in groups)
        total_revenue = sum(g['revenue'] for g in groups)
        return {
            'totalOrders': total_orders,
            'totalRevenue': total_revenue,
            'averageOrderValue': total_revenue / total_orders if total_orders else 0,
            'statusCounts': {g['_id']: g['count'] for g in groups},
        }


# ==================== MAINTENANCE ====================

class MaintenanceRepository(Repository):
    collection_name = 'maintenancerequests'
    not_found_message = 'Maintenance request not found'

    def ensure_indexes(self):
        self.collection.create_index('requestedBy')
        self.collection.create_index('status')
        self.collection.create_index('category')
        self.collection.create_index('assignedTo')
        self.collection.create_index([('createdAt', -1)])
        self.collection.create_index([('location.building', 1), ('location.floor', 1)])
        self.collection.create_index([('status', 1), ('priorityLevel', -1), ('createdAt', 1)])

    def prepare(self, doc):
        # numeric priority for sorting, urgent 4 down to low 1
        doc['priorityLevel'] = maintenance_model.priority_score(doc)
        return doc

    def stats(self, match=None):
        groups = list(self.collection.aggregate([
            {'$match': match or {}},
            {'$group': {
                '_id': '$status',
                'count': {'$sum': 1},
                'priorities': {'$push': '$priority'},
                'ratings': {'$push': '$studentRating'},
            }},
        ]))

        counts = {g['_id']: g['count'] for g in groups}
        ratings = [r for g in groups for r in g['ratings'] if r is not None]
        return {
            'total': sum(counts.values()),
            'pending': counts.get('pending', 0),
            'inProgress': counts.get('in_progress', 0),
            'completed': counts.get('completed', 0),
            'avgRating': sum(ratings) / len(ratings) if ratings else 0,
            'urgentCount': sum(g['priorities'].count('urgent') for g in groups),
        }


# ==================== OUTPASS ====================

class OutpassRepository(Repository):
    collection_name = 'outpassrequests'
    not_found_message = 'Outpass request not found'

    def ensure_indexes(self):
        for field in ('requestedBy', 'status', 'type', 'outDate', 'inDate', 'reviewedBy'):
            self.collection.create_index(field)
        self.collection.create_index([('createdAt', -1)])
        self.collection.create_index([('status', 1), ('outDate', 1)])
        self.collection.create_index([('requestedBy', 1), ('status', 1)])

    def prepare(self, doc):
        return outpass_model.refresh_duration(doc)

    def checked_out(self):
        return self.find({'status': outpass_model.CHECKED_OUT})

    def overdue(self):
        return self.find({'status': outpass_model.OVERDUE})

    def stats(self, match=None):
        groups = list(self.collection.aggregate([
            {'$match': match or {}},
            {'$group': {
                '_id': '$status',
                'count': {'$sum': 1},
                'emergency': {'$push': '$isEmergency'},
            }},
        ]))

        counts = {g['_id']: g['count'] for g in groups}
        return {
            'total': sum(counts.values()),
            'pending': counts.get(outpass_model.PENDING, 0),
            'approved': counts.get(outpass_model.APPROVED, 0),
            'checkedOut': counts.get(outpass_model.CHECKED_OUT, 0),
            'overdue': counts.get(outpass_model.OVERDUE, 0),
            'returned': counts.get(outpass_model.RETURNED, 0),
            'emergencyCount': sum(sum(1 for e in g['emergency'] if e) for g in groups),
        }

    def type_breakdown(self, match=None):
        groups = self.collection.aggregate([
            {'$match': match or {}},
            {'$group': {
                '_id': '$type',
                'count': {'$sum': 1},
                'statuses': {'$push': '$status'},
            }},
        ])
        return [
            {
                '_id': g['_id'],
                'count': g['count'],
                'approved': g['statuses'].count(outpass_model.APPROVED),
                'rejected': g['statuses'].count(outpass_model.REJECTED),
            }
            for g in groups
        ]


# ==================== ANNOUNCEMENTS ====================

class AnnouncementRepository(Repository):
    collection_name = 'announcements'
    not_found_message = 'Announcement not found'

    def ensure_indexes(self):
        self.collection.create_index([('category', 1), ('createdAt', -1)])
        self.collection.create_index([('priority', 1), ('createdAt', -1)])
        self.collection.create_index([('targetAudience', 1), ('isActive', 1)])
        self.collection.create_index([('isPinned', -1), ('createdAt', -1)])
        self.collection.create_index('expiresAt', expireAfterSeconds=0)

    sort_order = [('isPinned', pymongo.DESCENDING), ('createdAt', pymongo.DESCENDING)]

    def for_user_query(self, user, category=None, priority=None, unread_only=False,
                       upcoming_events=False, now=None):
        clauses = [{'isActive': True}, announcement_model.audience_query(user)]
        if category:
            clauses.append({'category': category})
        if priority:
            clauses.append({'priority': priority})
        if unread_only:
            clauses.append({'readBy.user': {'$ne': user['_id']}})
        if upcoming_events:
            clauses.append({'category': 'event'})
            clauses.append({'eventDetails.startDate': {'$gte': now or utcnow()}})
        return {'$and': clauses}

    def record_read(self, announcement, user_id, now=None):
        """Add a read receipt once per user; returns True for a first read"""
        if not announcement_model.mark_as_read(announcement, user_id, now):
            return False
        self.collection.update_one(
            {'_id': announcement['_id'], 'readBy.user': {'$ne': user_id}},
            {'$push': {'readBy': announcement['readBy'][-1]}, '$inc': {'views': 1}}
        )
        return True

    def register_participant(self, announcement, user_id, now=None):
        """Push one registration while the user is absent and the event has room"""
        announcement_model.register_for_event(announcement, user_id, now)
        details = announcement['eventDetails']
        condition = {'_id': announcement['_id'], 'eventDetails.registeredParticipants.user': {'$ne': user_id}}
        if details.get('maxParticipants'):
            last_seat = f"eventDetails.registeredParticipants.{details['maxParticipants'] - 1}"
            condition[last_seat] = {'$exists': False}

        updated = self.collection.find_one_and_update(
            condition,
            {'$push': {'eventDetails.registeredParticipants': details['registeredParticipants'][-1]},
             '$set': {'updatedAt': utcnow()}},
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            # Lost a race; the fresh copy explains why
            announcement_model.register_for_event(self.get(announcement['_id']), user_id, now)
            raise PreconditionFailed('Event is full')
        return updated

    def unregister_participant(self, announcement, user_id):
        announcement_model.unregister_from_event(announcement, user_id)
        updated = self.collection.find_one_and_update(
            {'_id': announcement['_id'], 'eventDetails.registeredParticipants.user': user_id},
            {'$pull': {'eventDetails.registeredParticipants': {'user': user_id}},
             '$set': {'updatedAt': utcnow()}},
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise PreconditionFailed('User not registered for this event')
        return updated

    def search_query(self, user, text, category=None, priority=None):
        pattern = re.compile(re.escape(text), re.IGNORECASE)
        clauses = [
            {'isActive': True},
            announcement_model.audience_query(user),
            {'$or': [{'title': pattern}, {'content': pattern}, {'tags': pattern}]},
        ]
        if category:
            clauses.append({'category': category})
        if priority:
            clauses.append({'priority': priority})
        return {'$and': clauses}

    def stats(self, date_from=None, date_to=None, now=None):
        match = {'isActive': True}
        if date_from or date_to:
            match['createdAt'] = {}
            if date_from:
                match['createdAt']['$gte'] = date_from
            if date_to:
                match['createdAt']['$lte'] = date_to

        by_category = list(self.collection.aggregate([
            {'$match': match},
            {'$group': {'_id': '$category', 'count': {'$sum': 1}, 'views': {'$sum': '$views'}}},
        ]))
        by_priority = list(self.collection.aggregate([
            {'$match': match},
            {'$group': {'_id': '$priority', 'count': {'$sum': 1}}},
        ]))
        active_events = self.count(dict(match, **{
            'category': 'event',
            'eventDetails.startDate': {'$gte': now or utcnow()},
        }))

        return {
            'totalAnnouncements': sum(g['count'] for g in by_category),
            'totalViews': sum(g['views'] for g in by_category),
            'activeEvents': active_events,
            'categoryCounts': {g['_id']: g['count'] for g in by_category},
            'priorityCounts': {g['_id']: g['count'] for g in by_priority},
        }


# ==================== DINING ====================

class MessMenuRepository(Repository):
    collection_name = 'messmenus'
    not_found_message = 'Menu not found'

    def ensure_indexes(self):
        self.collection.create_index([('date', 1), ('mealType', 1)], unique=True)

    def prepare(self, doc):
        return dining_model.refresh_calories(doc)

    def for_day(self, day):
        start = datetime(day.year, day.month, day.day)
        return {menu['mealType']: menu for menu in self.find({'date': start})}


class MealRatingRepository(Repository):
    collection_name = 'mealratings'
    not_found_message = 'Rating not found'

    def ensure_indexes(self):
        self.collection.create_index([('user', 1), ('menuId', 1)], unique=True)
        self.collection.create_index([('menuId', 1), ('createdAt', -1)])

    def prepare(self, doc):
        return dining_model.apply_overall_rating(doc)

    def find_for(self, user_id, menu_id):
        return self.collection.find_one({'user': user_id, 'menuId': menu_id})

    def submit(self, user_id, menu_id, data):
        """Create the user's rating for a menu, or update it in place"""
        existing = self.find_for(user_id, menu_id)
        fields = {
            'rating': data.get('rating'),
            'taste': data.get('taste'),
            'quality': data.get('quality'),
            'quantity': data.get('quantity'),
            'feedback': data.get('feedback') or '',
            'improvements': data.get('improvements') or [],
            'wouldRecommend': data.get('wouldRecommend', False),
            'anonymous': data.get('anonymous', False),
        }
        if existing:
            existing.update(fields)
            return self.save(existing), False
        return self.insert(dict(fields, user=user_id, menuId=menu_id)), True

    def menu_stats(self, menu_id):
        groups = list(self.collection.aggregate([
            {'$match': {'menuId': menu_id}},
            {'$group': {
                '_id': '$menuId',
                'ratings': {'$push': '$rating'},
                'tastes': {'$push': '$taste'},
                'qualities': {'$push': '$quality'},
                'quantities': {'$push': '$quantity'},
            }},
        ]))
        if not groups:
            return dining_model.empty_stats()
        group = groups[0]
        return dining_model.summarize_ratings(
            group['ratings'], group['tastes'], group['qualities'], group['quantities']
        )


class Repositories:
    """All repositories for one database, built once per app"""

    def __init__(self, db):
        self.users = UserRepository(db)
        self.categories = MenuCategoryRepository(db)
        self.menu_items = MenuItemRepository(db)
        self.carts = CartRepository(db)
        self.orders = OrderRepository(db)
        self.maintenance = MaintenanceRepository(db)
        self.outpasses = OutpassRepository(db)
        self.announcements = AnnouncementRepository(db)
        self.mess_menus = MessMenuRepository(db)
        self.meal_ratings = MealRatingRepository(db)

    def all(self):
        return [value for value in vars(self).values() if isinstance(value, Repository)]

    def ensure_indexes(self):
        for repository in self.all():
            repository.ensure_indexes()
        logger.info('📇 Indexes ensured for %d collections', len(self.all()))
