import mongomock
import pytest

from hostelhub import create_app
from hostelhub.auth import hash_password
from hostelhub.events import ANNOUNCEMENT, ORDER_RECEIVED, ORDER_UPDATE, EventPublisher
from hostelhub.models.menu import new_menu_item


@pytest.fixture
def db():
    return mongomock.MongoClient().db


@pytest.fixture
def events():
    return []


@pytest.fixture
def app(db, events):
    publisher = EventPublisher()
    for name in (ORDER_RECEIVED, ORDER_UPDATE, ANNOUNCEMENT):
        publisher.subscribe(name, lambda payload, room, name=name: events.append((name, payload, room)))

    app = create_app({'SECRET_KEY': 'test-secret', 'TESTING': True, 'LOG_LEVEL': 'WARNING'},
                     db=db, publisher=publisher)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def repos(app):
    return app.extensions['hostelhub']['repos']


@pytest.fixture
def make_user(app, repos):
    auth = app.extensions['hostelhub']['auth']

    def _make(identifier, role, name='Test User', **profile):
        user = repos.users.insert({
            'identifier': identifier,
            'name': name,
            'email': f'{identifier.lower()}@hostel.test',
            'password': hash_password('secret123'),
            'phone': '9876543210',
            'role': role,
            'profile': profile,
            'isActive': True,
        })
        headers = {'Authorization': f"Bearer {auth.generate_token(user['_id'])}"}
        return user, headers

    return _make


@pytest.fixture
def student(make_user):
    return make_user('2023CSE042', 'student', name='Asha', hostelBlock='A', floor=2, roomNumber='A-204')


@pytest.fixture
def other_student(make_user):
    return make_user('2023ECE120', 'student', name='Ravi', hostelBlock='C', floor=1, roomNumber='C-101')


@pytest.fixture
def warden(make_user):
    return make_user('EMP001', 'warden', name='Warden')


@pytest.fixture
def canteen_owner(make_user):
    return make_user('CANT001', 'canteen_owner', name='Canteen')


@pytest.fixture
def admin(make_user):
    return make_user('ADM001', 'admin', name='Admin')


@pytest.fixture
def category(repos):
    return repos.categories.insert({
        'name': 'Snacks',
        'description': '',
        'icon': '🍟',
        'displayOrder': 1,
        'isActive': True,
    })


@pytest.fixture
def make_item(repos, category, canteen_owner):
    def _make(name, price, **fields):
        data = dict({'name': name, 'price': price, 'category': category['_id']}, **fields)
        return repos.menu_items.insert(new_menu_item(data, canteen_owner[0]['_id']))

    return _make
