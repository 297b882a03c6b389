"""
Circuit breaker for the AI completion backend.

A dead AI backend should fail fast into the fallback reply instead of making
every @mention wait for a connection error.
"""

from typing import Any, Awaitable, Callable, Optional
from datetime import datetime
from enum import Enum
import threading
import openai

from utils.logging_config import get_logger

logger = get_logger(__name__)

# Errors that count towards opening the circuit (transient backend failures)
TRANSIENT_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.InternalServerError,
)


class CircuitBreakerState(Enum):
    """Circuit breaker states"""
    CLOSED = "closed"      # Normal operation, requests pass through
    OPEN = "open"          # Circuit is open, requests are blocked
    HALF_OPEN = "half_open"  # Testing if service has recovered


class CircuitBreakerError(Exception):
    """Raised instead of calling the backend while the circuit is open"""


class CircuitBreaker:
    """
    Circuit breaker implementation for external API calls

    States:
    - CLOSED: Normal operation, all requests pass through
    - OPEN: Circuit is open, requests fail fast without hitting the API
    - HALF_OPEN: Testing recovery, one request allowed through
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        expected_exception: tuple = TRANSIENT_ERRORS,
        name: str = "CircuitBreaker"
    ):
        """
        Initialize circuit breaker

        Args:
            failure_threshold: Number of consecutive failures before opening circuit
            recovery_timeout: Seconds to wait before attempting recovery
            expected_exception: Exceptions that count as failures
            name: Name for logging and identification
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.name = name

        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = CircuitBreakerState.CLOSED

        self._lock = threading.Lock()

        logger.info(f"CircuitBreaker '{name}' initialized with threshold={failure_threshold}, timeout={recovery_timeout}s")

    def _should_attempt_reset(self) -> bool:
        """Check if enough time has passed to attempt recovery"""
        if self.last_failure_time is None:
            return False

        time_since_failure = datetime.now() - self.last_failure_time
        return time_since_failure.total_seconds() >= self.recovery_timeout

    def _record_success(self):
        with self._lock:
            self.failure_count = 0
            self.success_count += 1

            if self.state == CircuitBreakerState.HALF_OPEN:
                self.state = CircuitBreakerState.CLOSED
                logger.info(f"CircuitBreaker '{self.name}' recovered - state: CLOSED")

    def _record_failure(self, exception: Exception):
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = datetime.now()

            if self.state == CircuitBreakerState.HALF_OPEN:
                self.state = CircuitBreakerState.OPEN
                logger.warning(f"CircuitBreaker '{self.name}' recovery failed - state: OPEN")

            elif self.state == CircuitBreakerState.CLOSED and self.failure_count >= self.failure_threshold:
                self.state = CircuitBreakerState.OPEN
                logger.warning(f"CircuitBreaker '{self.name}' opened after {self.failure_count} failures "
                               f"(last: {exception.__class__.__name__})")

    def _abort_trial(self, exception: BaseException):
        """A half-open trial call ended in an error the breaker does not track; reopen"""
        with self._lock:
            if self.state == CircuitBreakerState.HALF_OPEN:
                self.state = CircuitBreakerState.OPEN
                self.last_failure_time = datetime.now()
                logger.warning(f"CircuitBreaker '{self.name}' trial call aborted by "
                               f"{exception.__class__.__name__} - state: OPEN")

    def can_execute(self) -> bool:
        """Check if a request can be executed"""
        with self._lock:
            if self.state == CircuitBreakerState.CLOSED:
                return True

            if self.state == CircuitBreakerState.OPEN:
                if self._should_attempt_reset():
                    self.state = CircuitBreakerState.HALF_OPEN
                    logger.info(f"CircuitBreaker '{self.name}' attempting recovery - state: HALF_OPEN")
                    return True
                return False

            # HALF_OPEN: the trial request is already in flight
            return False

    def _remaining_timeout(self) -> float:
        if not self.last_failure_time:
            return float(self.recovery_timeout)
        elapsed = (datetime.now() - self.last_failure_time).total_seconds()
        return max(0.0, self.recovery_timeout - elapsed)

    def _reject(self):
        raise CircuitBreakerError(
            f"Circuit breaker '{self.name}' is OPEN. "
            f"Service appears to be down. Retry in {self._remaining_timeout():.0f}s."
        )

    def execute(self, func: Callable) -> Any:
        """
        Execute a function with circuit breaker protection

        Raises:
            CircuitBreakerError: If circuit is open
            Original exception: If function fails
        """
        if not self.can_execute():
            self._reject()

        try:
            result = func()
        except self.expected_exception as e:
            self._record_failure(e)
            raise
        except BaseException as e:
            self._abort_trial(e)
            raise
        self._record_success()
        return result

    async def execute_async(self, func: Callable[[], Awaitable[Any]]) -> Any:
        """
        Await a coroutine factory with circuit breaker protection

        Raises:
            CircuitBreakerError: If circuit is open
            Original exception: If the awaited call fails
        """
        if not self.can_execute():
            self._reject()

        try:
            result = await func()
        except self.expected_exception as e:
            self._record_failure(e)
            raise
        except BaseException as e:
            self._abort_trial(e)
            raise
        self._record_success()
        return result

    def get_state(self) -> dict:
        """Get current circuit breaker state for monitoring"""
        with self._lock:
            remaining_timeout = 0.0
            if self.state == CircuitBreakerState.OPEN:
                remaining_timeout = self._remaining_timeout()

            return {
                "name": self.name,
                "state": self.state.value,
                "failure_count": self.failure_count,
                "success_count": self.success_count,
                "failure_threshold": self.failure_threshold,
                "remaining_timeout": remaining_timeout,
                "last_failure_time": self.last_failure_time.isoformat() if self.last_failure_time else None
            }

    def reset(self):
        """Manually reset the circuit breaker to CLOSED state"""
        with self._lock:
            self.state = CircuitBreakerState.CLOSED
            self.failure_count = 0
            self.last_failure_time = None
            logger.info(f"CircuitBreaker '{self.name}' manually reset - state: CLOSED")


# Global AI circuit breaker instance
_ai_circuit_breaker: Optional[CircuitBreaker] = None


def get_ai_circuit_breaker() -> CircuitBreaker:
    """Get the shared circuit breaker guarding the AI backend"""
    global _ai_circuit_breaker
    if _ai_circuit_breaker is None:
        _ai_circuit_breaker = CircuitBreaker(
            name="AI_Responder",
            failure_threshold=5,
            recovery_timeout=60,
            expected_exception=TRANSIENT_ERRORS
        )
    return _ai_circuit_breaker
