import pytest

from moodpulse.resilience import (
    AIServiceError,
    CircuitBreaker,
    CircuitBreakerState,
    RetryConfig,
    ServiceCallError,
    classify_error,
    intelligent_retry,
)

NO_DELAY = RetryConfig(max_retries=3, base_delay=0, max_delay=0, jitter_max=0)


class Flaky:
    def __init__(self, failures, error=None):
        self.failures = failures
        self.error = error or ServiceCallError("temporary", error_type="network", is_retryable=True)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


def test_retry_recovers_from_transient_failures():
    sleeps = []
    func = Flaky(failures=2)
    wrapped = intelligent_retry(config=NO_DELAY, sleep=sleeps.append)(func)

    assert wrapped() == "ok"
    assert func.calls == 3
    assert len(sleeps) == 2


def test_retry_stops_on_non_retryable_error():
    func = Flaky(failures=5, error=ServiceCallError("bad key", error_type="authentication", is_retryable=False))
    wrapped = intelligent_retry(config=NO_DELAY, sleep=lambda _: None)(func)

    with pytest.raises(ServiceCallError) as excinfo:
        wrapped()
    assert excinfo.value.error_type == "authentication"
    assert func.calls == 1


def test_retry_wraps_plain_exceptions_after_exhausting_attempts():
    func = Flaky(failures=10, error=RuntimeError("rate limit exceeded"))
    wrapped = intelligent_retry(config=NO_DELAY, error_class=AIServiceError, sleep=lambda _: None)(func)

    with pytest.raises(AIServiceError) as excinfo:
        wrapped()
    assert excinfo.value.error_type == "rate_limit"
    assert not excinfo.value.is_retryable
    assert func.calls == NO_DELAY.max_retries + 1


def test_backoff_is_capped():
    config = RetryConfig(max_retries=5, base_delay=1, max_delay=3, jitter_max=0, exponential_base=2)
    assert config.delay_for(0) == (1, 0.0)
    assert config.delay_for(1) == (2, 0.0)
    assert config.delay_for(4) == (3, 0.0)


@pytest.mark.parametrize("message, expected", [
    ("Quota exceeded", ("rate_limit", True)),
    ("Invalid API key", ("authentication", False)),
    ("Request timed out", ("timeout", True)),
    ("Connection reset", ("network", True)),
    ("model foo not found", ("model_not_found", False)),
    ("something odd", ("unknown", True)),
])
def test_classify_error(message, expected):
    assert classify_error(RuntimeError(message)) == expected


def test_circuit_breaker_opens_and_fails_fast():
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)
    func = Flaky(failures=10)

    for _ in range(2):
        with pytest.raises(ServiceCallError):
            breaker.call(func)
    assert breaker.state == CircuitBreakerState.OPEN

    with pytest.raises(ServiceCallError) as excinfo:
        breaker.call(func)
    assert excinfo.value.error_type == "circuit_open"
    assert func.calls == 2


def test_circuit_breaker_closes_after_successful_probe():
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0, success_threshold=1)
    func = Flaky(failures=1)

    with pytest.raises(ServiceCallError):
        breaker.call(func)
    assert breaker.state == CircuitBreakerState.OPEN

    assert breaker.call(func) == "ok"
    assert breaker.state == CircuitBreakerState.CLOSED
