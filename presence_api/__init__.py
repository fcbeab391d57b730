"""
Presence API

HTTP surface of the bot manager, guarded by a shared API key.
"""

from .api_key_middleware import APIKeyMiddleware
from .app import PresenceUpdateRequest, create_app

__all__ = [
    'APIKeyMiddleware',
    'PresenceUpdateRequest',
    'create_app',
]
