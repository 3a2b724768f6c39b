"""
Best-effort real-time fan-out.

Routes publish already-persisted payloads after a successful write;
subscribers (a socket bridge, push notifications) are plain callables
registered per event name. A failing subscriber is logged and skipped.
"""

import logging
from collections import defaultdict

from .utils import convert_objectid

logger = logging.getLogger(__name__)

ORDER_RECEIVED = 'order_received'
ORDER_UPDATE = 'order_update'
ANNOUNCEMENT = 'announcement'


class EventPublisher:

    def __init__(self):
        self._subscribers = defaultdict(list)

    def subscribe(self, event, callback):
        self._subscribers[event].append(callback)

    def publish(self, event, payload, room=None):
        payload = convert_objectid(payload)
        for callback in self._subscribers[event]:
            try:
                callback(payload, room)
            except Exception:
                logger.exception('📡 Subscriber for %s failed', event)
        logger.debug('📡 Published %s to %s', event, room or 'everyone')
