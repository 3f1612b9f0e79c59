import os
import time
import random
import logging
from datetime import datetime, timedelta
from functools import wraps
from typing import Callable, Optional, Tuple


class RetryConfig:
    def __init__(self, max_retries: Optional[int] = None, base_delay: Optional[float] = None,
                 max_delay: Optional[float] = None, jitter_max: Optional[float] = None,
                 exponential_base: Optional[float] = None):
        self.max_retries = max_retries if max_retries is not None else int(os.environ.get("AI_MAX_RETRIES", "3"))
        self.base_delay = base_delay if base_delay is not None else float(os.environ.get("AI_BASE_DELAY", "1.0"))
        self.max_delay = max_delay if max_delay is not None else float(os.environ.get("AI_MAX_DELAY", "30.0"))
        self.jitter_max = jitter_max if jitter_max is not None else float(os.environ.get("AI_JITTER_MAX", "0.5"))
        self.exponential_base = (exponential_base if exponential_base is not None
                                 else float(os.environ.get("AI_EXPONENTIAL_BASE", "2.0")))

    def delay_for(self, attempt: int) -> Tuple[float, float]:
        capped_delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        jitter = random.uniform(0, self.jitter_max) if self.jitter_max > 0 else 0.0
        return capped_delay, jitter


class ServiceCallError(Exception):
    def __init__(self, message: str, error_type: str = "unknown", is_retryable: bool = True):
        super().__init__(message)
        self.error_type = error_type
        self.is_retryable = is_retryable


class AIServiceError(ServiceCallError):
    pass


class AutomationError(ServiceCallError):
    pass


def classify_error(error: Exception) -> Tuple[str, bool]:
    if isinstance(error, ServiceCallError):
        return error.error_type, error.is_retryable

    error_str = str(error).lower()
    if "quota" in error_str or "rate limit" in error_str:
        return "rate_limit", True
    if "api key" in error_str or "authentication" in error_str:
        return "authentication", False
    if "timeout" in error_str or "timed out" in error_str:
        return "timeout", True
    if "connection" in error_str or "network" in error_str:
        return "network", True
    if "model" in error_str and "not found" in error_str:
        return "model_not_found", False
    return "unknown", True


class CircuitBreakerState:
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60, success_threshold: int = 2):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time = None
        self.state = CircuitBreakerState.CLOSED
        self.logger = logging.getLogger(__name__ + '.CircuitBreaker')

    def call(self, func: Callable, *args, **kwargs):
        if self.state == CircuitBreakerState.OPEN:
            if self._should_attempt_reset():
                self.state = CircuitBreakerState.HALF_OPEN
                self.logger.info("Circuit breaker transitioning to HALF_OPEN state")
            else:
                raise ServiceCallError("Circuit breaker is OPEN - failing fast",
                                       error_type="circuit_open", is_retryable=False)

        try:
            result = func(*args, **kwargs)
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def reset(self):
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time = None
        self.state = CircuitBreakerState.CLOSED

    def _should_attempt_reset(self) -> bool:
        if not self.last_failure_time:
            return False
        return datetime.now() - self.last_failure_time >= timedelta(seconds=self.recovery_timeout)

    def _on_success(self):
        self.failure_count = 0
        if self.state == CircuitBreakerState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                self.state = CircuitBreakerState.CLOSED
                self.success_count = 0
                self.logger.info("Circuit breaker transitioning to CLOSED state")

    def _on_failure(self):
        self.failure_count += 1
        self.last_failure_time = datetime.now()

        if self.state == CircuitBreakerState.HALF_OPEN:
            self.state = CircuitBreakerState.OPEN
            self.success_count = 0
            self.logger.warning("Circuit breaker transitioning back to OPEN state")
        elif self.failure_count >= self.failure_threshold:
            self.state = CircuitBreakerState.OPEN
            self.logger.error(f"Circuit breaker tripped! Transitioning to OPEN state after {self.failure_count} failures")


def intelligent_retry(config: Optional[RetryConfig] = None, circuit_breaker: Optional[CircuitBreaker] = None,
                      error_class: type = ServiceCallError, sleep: Callable[[float], None] = time.sleep):
    """Retry a call with exponential backoff and jitter.

    Non-retryable failures and exhausted retries surface as ``error_class``
    carrying the classified ``error_type``.
    """
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None
            error_type = "unknown"
            retry_logger = logging.getLogger(f"{__name__}.retry.{getattr(func, '__name__', type(func).__name__)}")

            for attempt in range(config.max_retries + 1):
                try:
                    if circuit_breaker:
                        return circuit_breaker.call(func, *args, **kwargs)
                    return func(*args, **kwargs)

                except Exception as e:
                    last_exception = e
                    error_type, is_retryable = classify_error(e)

                    if attempt == 0:
                        retry_logger.warning(f"Initial attempt failed: {error_type} - {str(e)}")
                    else:
                        retry_logger.warning(f"Retry attempt {attempt}/{config.max_retries} failed: {error_type} - {str(e)}")

                    if not is_retryable or attempt >= config.max_retries:
                        retry_logger.error(f"Giving up after {attempt + 1} attempts. Last error: {str(e)}")
                        break

                    capped_delay, jitter = config.delay_for(attempt)
                    total_delay = capped_delay + jitter
                    retry_logger.info(f"Retrying in {total_delay:.2f}s (base: {capped_delay:.2f}s + jitter: {jitter:.2f}s)")
                    sleep(total_delay)

            if isinstance(last_exception, error_class):
                raise last_exception
            raise error_class(
                f"Service call failed after {attempt + 1} attempts: {str(last_exception)}",
                error_type=error_type,
                is_retryable=False
            ) from last_exception

        return wrapper
    return decorator
