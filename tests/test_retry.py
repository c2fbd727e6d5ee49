"""Backoff retrier: attempt bound, delays, terminal short-circuit."""

import pytest

from pageleads.services.graph.errors import GraphError, HttpError
from pageleads.utils.retry import (
    JITTER_RATIO,
    RetryPolicy,
    compute_delay,
    default_should_retry,
    retry_with_backoff,
    retryable,
)


class Counter:
    def __init__(self, fail_times, error_factory, result="ok"):
        self.calls = 0
        self.fail_times = fail_times
        self.error_factory = error_factory
        self.result = result

    def __call__(self):
        self.calls += 1
        if self.calls <= self.fail_times:
            raise self.error_factory(self.calls)
        return self.result


def transient_error(n):
    return HttpError(500, f"failure {n}")


# =============================================================================
# Attempt bound
# =============================================================================


class TestAttemptBound:
    @pytest.mark.parametrize("max_attempts", [1, 2, 3, 5])
    def test_permanent_failure_invoked_exactly_max_attempts(self, max_attempts):
        op = Counter(fail_times=100, error_factory=transient_error)
        policy = RetryPolicy(max_attempts=max_attempts)

        with pytest.raises(HttpError):
            retry_with_backoff(op, policy, sleep=lambda s: None)

        assert op.calls == max_attempts

    def test_success_after_failures_returns_result(self):
        op = Counter(fail_times=2, error_factory=transient_error, result={"id": "1"})

        result = retry_with_backoff(op, RetryPolicy(max_attempts=3), sleep=lambda s: None)

        assert result == {"id": "1"}
        assert op.calls == 3

    def test_final_error_is_the_last_raised_object(self):
        raised = []

        def op():
            err = HttpError(503)
            raised.append(err)
            raise err

        with pytest.raises(HttpError) as exc_info:
            retry_with_backoff(op, RetryPolicy(max_attempts=3), sleep=lambda s: None)

        assert exc_info.value is raised[-1]
        assert len(raised) == 3

    def test_invalid_policy_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(initial_delay=5, max_delay=1)


# =============================================================================
# Delays
# =============================================================================


class TestDelays:
    def test_first_attempt_has_no_delay(self):
        sleeps = []
        op = Counter(fail_times=0, error_factory=transient_error)

        retry_with_backoff(op, RetryPolicy(), sleep=sleeps.append)

        assert sleeps == []
        assert compute_delay(1, RetryPolicy()) == 0.0

    def test_sleeps_only_between_attempts(self):
        sleeps = []
        op = Counter(fail_times=100, error_factory=transient_error)

        with pytest.raises(HttpError):
            retry_with_backoff(op, RetryPolicy(max_attempts=4), sleep=sleeps.append, rng=lambda: 0.0)

        assert sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.parametrize("rng_value", [0.0, 0.5, 0.999])
    def test_delay_within_jitter_window(self, rng_value):
        policy = RetryPolicy(max_attempts=6, initial_delay=1.0, max_delay=10.0, backoff_factor=2.0)

        for attempt in range(2, 7):
            base = min(1.0 * 2.0 ** (attempt - 2), 10.0)
            delay = compute_delay(attempt, policy, rng=lambda: rng_value)
            assert base <= delay <= base * (1 + JITTER_RATIO)

    def test_delay_capped_at_max_delay_plus_jitter(self):
        policy = RetryPolicy(max_attempts=10, initial_delay=1.0, max_delay=3.0)

        delay = compute_delay(9, policy, rng=lambda: 0.999)

        assert delay <= 3.0 * 1.25

    def test_policy_from_config(self):
        policy = RetryPolicy.from_config({
            "GRAPH_RETRY_MAX_ATTEMPTS": "5",
            "GRAPH_RETRY_INITIAL_DELAY": "0.5",
            "GRAPH_RETRY_MAX_DELAY": "4",
            "GRAPH_RETRY_BACKOFF_FACTOR": "3",
        })

        assert policy.max_attempts == 5
        assert policy.initial_delay == 0.5
        assert policy.max_delay == 4.0
        assert policy.backoff_factor == 3.0


# =============================================================================
# Retry predicate
# =============================================================================


class TestShouldRetry:
    def test_terminal_error_stops_after_first_attempt(self):
        op = Counter(
            fail_times=100,
            error_factory=lambda n: GraphError("bad token", code=190),
        )

        with pytest.raises(GraphError) as exc_info:
            retry_with_backoff(op, RetryPolicy(max_attempts=5), sleep=lambda s: None)

        assert op.calls == 1
        assert exc_info.value.code == 190

    def test_predicate_false_midway_propagates_that_attempts_error(self):
        errors = [HttpError(500, "first"), GraphError("policy", code=200)]

        def op():
            raise errors.pop(0)

        with pytest.raises(GraphError) as exc_info:
            retry_with_backoff(op, RetryPolicy(max_attempts=5), sleep=lambda s: None)

        assert exc_info.value.code == 200
        assert errors == []

    def test_custom_predicate(self):
        op = Counter(fail_times=100, error_factory=lambda n: KeyError(n))
        policy = RetryPolicy(max_attempts=4, should_retry=lambda e: False)

        with pytest.raises(KeyError):
            retry_with_backoff(op, policy, sleep=lambda s: None)

        assert op.calls == 1

    def test_unclassified_errors_are_retried(self):
        assert default_should_retry(RuntimeError("boom")) is True
        assert default_should_retry(HttpError(404)) is False
        assert default_should_retry(HttpError(502)) is True

    def test_on_retry_hook_receives_next_attempt_number(self):
        seen = []
        op = Counter(fail_times=2, error_factory=transient_error)
        policy = RetryPolicy(max_attempts=3, on_retry=lambda e, attempt: seen.append(attempt))

        retry_with_backoff(op, policy, sleep=lambda s: None)

        assert seen == [2, 3]

    def test_failing_on_retry_hook_does_not_break_retries(self):
        def hook(error, attempt):
            raise RuntimeError("hook failed")

        op = Counter(fail_times=1, error_factory=transient_error)

        result = retry_with_backoff(op, RetryPolicy(on_retry=hook), sleep=lambda s: None)

        assert result == "ok"


class TestRetryableDecorator:
    def test_wraps_function(self):
        calls = []

        @retryable(RetryPolicy(max_attempts=2), sleep=lambda s: None)
        def flaky(value):
            calls.append(value)
            if len(calls) == 1:
                raise HttpError(500)
            return value * 2

        assert flaky(21) == 42
        assert calls == [21, 21]
