import pytest

from hostelhub import policy
from hostelhub.auth import hostel_info, role_for_identifier


@pytest.mark.parametrize('role, action, allowed', [
    ('student', policy.OUTPASS_SUBMIT, True),
    ('student', policy.OUTPASS_REVIEW, False),
    ('student', policy.ORDER_MANAGE, False),
    ('warden', policy.OUTPASS_REVIEW, True),
    ('warden', policy.MENU_MANAGE, False),
    ('warden', policy.ANNOUNCEMENT_PIN, False),
    ('canteen_owner', policy.ORDER_MANAGE, True),
    ('canteen_owner', policy.MAINTENANCE_MANAGE, False),
    ('admin', policy.ANNOUNCEMENT_PIN, True),
    ('admin', policy.OUTPASS_SUBMIT, False),
    ('nobody', policy.CART_USE, False),
])
def test_policy_table(role, action, allowed):
    assert policy.can(role, action) is allowed


def test_every_role_can_shop():
    for role in policy.ROLES:
        assert policy.can(role, policy.CART_USE)
        assert policy.can(role, policy.ORDER_PLACE)


@pytest.mark.parametrize('identifier, role', [
    ('2023CSE042', 'student'),
    ('2023cse042', 'student'),
    ('EMP001', 'warden'),
    ('CANT007', 'canteen_owner'),
    ('ADM1', 'admin'),
    ('GUEST', None),
])
def test_role_from_identifier(identifier, role):
    assert role_for_identifier(identifier) == role


def test_hostel_info_from_roll_number():
    assert hostel_info('2023CSE042') == {'year': 2023, 'branch': 'CSE', 'hostelBlock': 'A'}
    assert hostel_info('2022ECE151') == {'year': 2022, 'branch': 'ECE', 'hostelBlock': 'D'}
