"""
Authentication service - identity, session persistence and credential storage.
"""

from .models import User, SessionState, PasswordStrength, evaluate_password_strength
from .session_store import SessionStore, SessionError
from .auth_manager import AuthManager, AuthenticationError

__all__ = [
    'User',
    'SessionState',
    'PasswordStrength',
    'evaluate_password_strength',
    'SessionStore',
    'SessionError',
    'AuthManager',
    'AuthenticationError'
]
