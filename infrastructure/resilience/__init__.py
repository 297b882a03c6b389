"""
Resilience infrastructure - circuit breaking for the AI backend and tracking of
fire-and-forget background writes.
"""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerState,
    CircuitBreakerError,
    TRANSIENT_ERRORS,
    get_ai_circuit_breaker
)
from .background_tasks import BackgroundTasks

__all__ = [
    'CircuitBreaker',
    'CircuitBreakerState',
    'CircuitBreakerError',
    'TRANSIENT_ERRORS',
    'get_ai_circuit_breaker',
    'BackgroundTasks'
]
