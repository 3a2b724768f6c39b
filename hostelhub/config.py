"""
Hostel Hub - configuration loaded from the environment
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _bool(value):
    return str(value).lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Settings read from environment variables (or a .env file)"""

    def __init__(self, overrides=None):
        self.MONGO_URI = os.getenv('MONGO_URI', 'mongodb://localhost:27017/hostel-hub')
        self.SECRET_KEY = os.getenv('JWT_SECRET', 'your-secret-key')
        self.JWT_EXPIRE_HOURS = int(os.getenv('JWT_EXPIRE_HOURS', 24))
        self.PORT = int(os.getenv('PORT', 5000))
        self.DEBUG = _bool(os.getenv('DEBUG', 'False'))
        self.CLIENT_URL = os.getenv('CLIENT_URL', '*')
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

        # Canteen pricing
        self.FREE_DELIVERY_THRESHOLD = float(os.getenv('FREE_DELIVERY_THRESHOLD', 100))
        self.DELIVERY_FEE = float(os.getenv('DELIVERY_FEE', 20))
        self.ESTIMATED_DELIVERY_MINUTES = int(os.getenv('ESTIMATED_DELIVERY_MINUTES', 30))

        # Outpass reconciliation
        self.OVERDUE_CHECK_INTERVAL = int(os.getenv('OVERDUE_CHECK_INTERVAL', 300))

        for key, value in (overrides or {}).items():
            setattr(self, key, value)

    def as_dict(self):
        return {k: v for k, v in vars(self).items() if k.isupper()}
