"""
API blueprints. Each module exposes ``create_blueprint`` which receives
the repositories and collaborators it needs.
"""

from . import announcements, auth, canteen, cart, dining, maintenance, orders, outpass

BLUEPRINTS = (
    ('/api/auth', auth),
    ('/api/canteen', canteen),
    ('/api/cart', cart),
    ('/api/orders', orders),
    ('/api/dining', dining),
    ('/api/maintenance', maintenance),
    ('/api/outpass', outpass),
    ('/api/announcements', announcements),
)


def register_blueprints(app, repos, auth_, publisher):
    for prefix, module in BLUEPRINTS:
        app.register_blueprint(module.create_blueprint(repos, auth_, publisher), url_prefix=prefix)
