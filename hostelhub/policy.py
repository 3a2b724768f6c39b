"""
Role -> permitted action table.

Handlers declare the action they perform with ``permission_required``;
the check runs once per request before the handler is dispatched.
"""

STUDENT = 'student'
WARDEN = 'warden'
CANTEEN_OWNER = 'canteen_owner'
ADMIN = 'admin'

ROLES = (STUDENT, WARDEN, CANTEEN_OWNER, ADMIN)

# Actions grouped by area
CART_USE = 'cart:use'
ORDER_PLACE = 'orders:place'
ORDER_MANAGE = 'orders:manage'
ORDER_STATS = 'orders:stats'
MENU_MANAGE = 'menu:manage'
MENU_RATE = 'menu:rate'

MAINTENANCE_SUBMIT = 'maintenance:submit'
MAINTENANCE_MANAGE = 'maintenance:manage'

OUTPASS_SUBMIT = 'outpass:submit'
OUTPASS_REVIEW = 'outpass:review'
OUTPASS_GATE = 'outpass:gate'

ANNOUNCEMENT_CREATE = 'announcements:create'
ANNOUNCEMENT_PIN = 'announcements:pin'
ANNOUNCEMENT_STATS = 'announcements:stats'

DINING_MANAGE = 'dining:manage'
DINING_RATE = 'dining:rate'

_EVERYONE = {CART_USE, ORDER_PLACE, MENU_RATE}

PERMISSIONS = {
    STUDENT: _EVERYONE | {
        MAINTENANCE_SUBMIT,
        OUTPASS_SUBMIT,
        DINING_RATE,
    },
    WARDEN: _EVERYONE | {
        MAINTENANCE_MANAGE,
        OUTPASS_REVIEW,
        OUTPASS_GATE,
        ANNOUNCEMENT_CREATE,
        ANNOUNCEMENT_STATS,
        DINING_MANAGE,
    },
    CANTEEN_OWNER: _EVERYONE | {
        ORDER_MANAGE,
        ORDER_STATS,
        MENU_MANAGE,
    },
    ADMIN: _EVERYONE | {
        ORDER_MANAGE,
        ORDER_STATS,
        MENU_MANAGE,
        MAINTENANCE_MANAGE,
        OUTPASS_REVIEW,
        OUTPASS_GATE,
        ANNOUNCEMENT_CREATE,
        ANNOUNCEMENT_PIN,
        ANNOUNCEMENT_STATS,
        DINING_MANAGE,
    },
}


def can(role, action):
    return action in PERMISSIONS.get(role, ())
