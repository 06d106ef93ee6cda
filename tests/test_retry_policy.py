import pytest

from captioner.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    PermanentServiceError,
    TransientServiceError,
)
from captioner.retry_policy import RetryPolicy


class Flaky:
    def __init__(self, failures, result="ok"):
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


def _policy(max_attempts=4, sleeps=None, **kwargs):
    sink = sleeps if sleeps is not None else []
    return RetryPolicy(max_attempts=max_attempts, sleep=sink.append, **kwargs)


def test_transient_failures_are_retried_until_success():
    func = Flaky([TransientServiceError("429", status_code=429), TransientServiceError("503", status_code=503)])

    assert _policy().call(func, description="test") == "ok"
    assert func.calls == 3


def test_exhaustion_reraises_last_transient_error():
    func = Flaky([TransientServiceError(f"fail {i}") for i in range(10)])

    with pytest.raises(TransientServiceError, match="fail 2"):
        _policy(max_attempts=3).call(func)
    assert func.calls == 3


def test_non_retryable_errors_propagate_immediately():
    func = Flaky([PermanentServiceError("401", status_code=401)])

    with pytest.raises(PermanentServiceError):
        _policy().call(func)
    assert func.calls == 1


def test_backoff_grows_exponentially_and_is_capped():
    sleeps = []
    func = Flaky([TransientServiceError("x") for _ in range(5)])
    policy = _policy(max_attempts=6, sleeps=sleeps, initial_delay=1.0, max_delay=4.0, jitter=0)

    policy.call(func)

    assert sleeps == [1.0, 2.0, 4.0, 4.0, 4.0]


def test_jitter_adds_bounded_random_delay():
    sleeps = []
    func = Flaky([TransientServiceError("x") for _ in range(3)])
    _policy(sleeps=sleeps, initial_delay=1.0, max_delay=30.0, jitter=0.5).call(func)

    for base, actual in zip([1.0, 2.0, 4.0], sleeps):
        assert base <= actual <= base + 0.5


def test_with_retry_on_extends_retryable_classes():
    base = _policy(max_attempts=2)
    extended = base.with_retry_on(MalformedResponseError)

    func = Flaky([MalformedResponseError("bad json")])
    assert extended.call(func) == "ok"

    with pytest.raises(MalformedResponseError):
        base.call(Flaky([MalformedResponseError("bad json")]))
    assert MalformedResponseError not in base.retry_on


def test_from_config_reads_retry_keys():
    policy = RetryPolicy.from_config({
        "max_attempts": 7, "retry_initial_delay": 0.5, "retry_max_delay": 8, "retry_jitter": 0,
    })

    assert (policy.max_attempts, policy.initial_delay, policy.max_delay, policy.jitter) == (7, 0.5, 8.0, 0.0)


@pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"initial_delay": -1}, {"jitter": -0.1}])
def test_invalid_settings_are_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        RetryPolicy(**kwargs)
