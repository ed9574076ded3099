"""Tests for the per-request deadline token in lambdas/shared/deadline.py."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from conftest import POD_IP, tg_arn
from shared.deadline import Deadline
from shared.elb import TargetHealthOracle
from shared.errors import DrainTimeoutError


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestDeadlineClock:
    def test_remaining_counts_down(self):
        clock = FakeClock()
        deadline = Deadline.after(5, clock=clock)
        assert deadline.remaining() == 5
        clock.now += 2
        assert deadline.remaining() == 3
        assert not deadline.expired()

    def test_expired_after_elapsing(self):
        clock = FakeClock()
        deadline = Deadline.after(5, clock=clock)
        clock.now += 6
        assert deadline.expired()
        assert deadline.remaining() == 0.0

    def test_check_raises_once_expired(self):
        clock = FakeClock()
        deadline = Deadline.after(1, clock=clock)
        deadline.check()
        clock.now += 1
        with pytest.raises(DrainTimeoutError, match='waiting for ip'):
            deadline.check('waiting for ip')

    def test_zero_deadline_is_already_expired(self):
        assert Deadline.after(0, clock=FakeClock()).expired()


class TestDeadlineSleep:
    def test_short_pause_returns(self):
        deadline = Deadline.after(1)
        started = time.monotonic()
        deadline.sleep(0.05)
        assert time.monotonic() - started >= 0.05

    def test_pause_never_overruns_deadline(self):
        deadline = Deadline.after(0.05)
        started = time.monotonic()
        with pytest.raises(DrainTimeoutError):
            deadline.sleep(5)
        assert time.monotonic() - started < 1

    def test_pause_on_expired_deadline_raises_immediately(self):
        with pytest.raises(DrainTimeoutError):
            Deadline.after(0).sleep(5)


class TestDeadlineCall:
    def test_returns_result(self):
        assert Deadline.after(1).call(lambda a, b=0: a + b, 40, b=2) == 42

    def test_propagates_call_errors(self):
        def boom():
            raise ValueError('boom')

        with pytest.raises(ValueError, match='boom'):
            Deadline.after(1).call(boom)

    def test_stops_waiting_at_deadline(self):
        started = time.monotonic()
        with pytest.raises(DrainTimeoutError, match='sleep'):
            Deadline.after(0.05).call(time.sleep, 2)
        assert time.monotonic() - started < 1

    def test_expired_deadline_skips_call(self):
        fn = MagicMock()
        with pytest.raises(DrainTimeoutError):
            Deadline.after(0).call(fn)
        fn.assert_not_called()

    def test_close_does_not_wait_for_abandoned_call(self):
        release = threading.Event()
        deadline = Deadline.after(0.05)
        with pytest.raises(DrainTimeoutError):
            deadline.call(release.wait, 3)
        started = time.monotonic()
        deadline.close()
        assert time.monotonic() - started < 1
        release.set()

    def test_context_manager_closes(self):
        with Deadline.after(1) as deadline:
            assert deadline.call(lambda: 'ok') == 'ok'
        assert deadline._executor is None


# ---------------------------------------------------------------------------
# Isolation between requests
# ---------------------------------------------------------------------------

class TestRequestIsolation:
    def test_stuck_calls_from_other_requests_do_not_starve_a_healthy_one(self):
        """32 requests time out on a hung client; a new request with a fast client still succeeds."""
        release = threading.Event()
        hung_client = MagicMock()
        hung_client.describe_target_health.side_effect = lambda **kwargs: release.wait(3)
        fast_client = MagicMock()
        fast_client.describe_target_health.return_value = {'TargetHealthDescriptions': [
            {'Target': {'Id': POD_IP, 'Port': 80}, 'TargetHealth': {'State': 'draining'}},
        ]}

        def stuck_request():
            with Deadline.after(0.1) as deadline:
                with pytest.raises(DrainTimeoutError):
                    TargetHealthOracle(hung_client).member_health(tg_arn('hung'), deadline)

        try:
            with ThreadPoolExecutor(max_workers=32) as requests:
                for future in [requests.submit(stuck_request) for _ in range(32)]:
                    future.result(timeout=5)
            assert hung_client.describe_target_health.call_count == 32

            started = time.monotonic()
            with Deadline.after(1.0) as deadline:
                records = TargetHealthOracle(fast_client).member_health(tg_arn('fast'), deadline)
            assert time.monotonic() - started < 1.0
            assert [r.member_id for r in records] == [POD_IP]
        finally:
            release.set()
