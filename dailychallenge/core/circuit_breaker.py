"""
Circuit breaker for the raw order record source.

When the card query API keeps failing, the breaker opens and calls fail
immediately, so a scheduled run falls back or fails fast instead of
waiting on timeouts.

Uses pybreaker library for circuit breaker implementation.

Circuit Breaker States:
- CLOSED: Requests pass through normally
- OPEN: Requests fail immediately with CircuitBreakerError (after fail_max failures)
- HALF_OPEN: One request allowed to test if service has recovered
"""
import logging
from functools import wraps
from typing import Any, Callable

from pybreaker import CircuitBreaker, CircuitBreakerError

logger = logging.getLogger(__name__)

# Default circuit breaker configuration
DEFAULT_FAIL_MAX = 5  # Number of failures before opening circuit
DEFAULT_RESET_TIMEOUT = 60  # Seconds before attempting to close circuit


# ============================================================================
# CIRCUIT BREAKERS
# ============================================================================

record_source_breaker = CircuitBreaker(
    fail_max=DEFAULT_FAIL_MAX,
    reset_timeout=DEFAULT_RESET_TIMEOUT,
    name="record_source",
)


# ============================================================================
# CIRCUIT BREAKER STATE MONITORING
# ============================================================================

def get_breaker_state(breaker: CircuitBreaker) -> str:
    """
    Get the current state of a circuit breaker.

    Returns:
        State string: 'closed', 'open', or 'half-open'
    """
    return breaker.current_state


# ============================================================================
# DECORATORS
# ============================================================================

def _replay(outcome: Any) -> Any:
    if isinstance(outcome, BaseException):
        raise outcome
    return outcome


def with_circuit_breaker(breaker: CircuitBreaker):
    """
    Decorator to guard a coroutine function with a circuit breaker.

    pybreaker's call_async() requires tornado, so the coroutine is awaited
    first and its outcome (result or exception) is replayed through the
    synchronous call(), which counts failures and successes. While the
    breaker is open and the reset timeout is pending, call() raises
    CircuitBreakerError in place of the outcome.

    Unlike a fallback decorator, errors propagate: callers decide how to
    recover.

    Example:
        @with_circuit_breaker(record_source_breaker)
        async def query_card(card_id):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                outcome = await func(*args, **kwargs)
            except Exception as e:
                outcome = e
            try:
                return breaker.call(_replay, outcome)
            except CircuitBreakerError:
                logger.warning(f"Circuit breaker '{breaker.name}' is OPEN for {func.__name__}")
                raise

        return async_wrapper

    return decorator
