"""
Local storage infrastructure - durable key/value persistence on the client.
"""

from .local_storage import LocalStorage, get_local_storage, get_session_storage, new_session_id

__all__ = [
    'LocalStorage',
    'get_local_storage',
    'get_session_storage',
    'new_session_id'
]
