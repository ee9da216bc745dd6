import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from ratepace.core.config import LimiterConfig
from ratepace.core.errors import (
    CanceledError,
    InvalidHeaderError,
    MissingAttrsError,
    MissingHeadersError,
    RetryError,
)
from ratepace.core.models import Attrs, Mode, State
from ratepace.services.headers import HeaderLimiter

T = datetime(2024, 4, 12, 0, 0, 0, tzinfo=timezone.utc)
RESET = int((T + timedelta(minutes=1)).timestamp())


def _limiter(**kwargs) -> HeaderLimiter:
    options = {"start": T, "window": timedelta(minutes=1), "events": 10, "mode": Mode.BURST}
    options.update(kwargs)
    return HeaderLimiter(LimiterConfig(**options))


def _quota_headers(limit="100", remaining="99", reset=str(RESET)) -> Attrs:
    return Attrs(
        {
            "X-RateLimit-Limit": limit,
            "X-RateLimit-Remaining": remaining,
            "X-RateLimit-Reset": reset,
        }
    )


def test_initial_state_has_full_quota():
    limiter = _limiter()

    assert limiter.state(T) == State(10, 10, T + timedelta(minutes=1))


def test_update_overwrites_state():
    limiter = _limiter()

    limiter.update(T, _quota_headers())

    assert limiter.state(T) == State(100, 99, T + timedelta(minutes=1))


def test_update_accepts_draft_header_names_case_insensitively():
    limiter = _limiter()

    limiter.update(
        T,
        Attrs([("RateLimit-Limit", "50"), ("RATELIMIT-REMAINING", "7"), ("ratelimit-reset", str(RESET))]),
    )

    assert limiter.state(T) == State(50, 7, T + timedelta(minutes=1))


def test_first_alias_wins():
    limiter = _limiter()
    attrs = Attrs(
        {
            "X-RateLimit-Limit": "100",
            "ratelimit-limit": "5",
            "X-RateLimit-Remaining": "1",
            "X-RateLimit-Reset": str(RESET),
        }
    )

    limiter.update(T, attrs)

    assert limiter.state(T).limit == 100


def test_reset_in_milliseconds():
    limiter = _limiter(duration_unit="milliseconds")
    reset_ms = RESET * 1000 + 250

    limiter.update(T, _quota_headers(reset=str(reset_ms)))

    assert limiter.state(T).reset == T + timedelta(minutes=1, milliseconds=250)


@pytest.mark.parametrize(
    "missing",
    ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
)
def test_missing_quota_header(missing):
    limiter = _limiter()
    values = {
        "X-RateLimit-Limit": "100",
        "X-RateLimit-Remaining": "99",
        "X-RateLimit-Reset": str(RESET),
    }
    del values[missing]

    with pytest.raises(MissingHeadersError):
        limiter.update(T, Attrs(values))

    assert limiter.state(T) == State(10, 10, T + timedelta(minutes=1))


def test_malformed_remaining_leaves_state_untouched():
    limiter = _limiter()
    limiter.update(T, _quota_headers(limit="100", remaining="40"))
    before = limiter.state(T)

    with pytest.raises(InvalidHeaderError) as exc_info:
        limiter.update(T, Attrs({"ratelimit-limit": "100", "ratelimit-remaining": "lots", "ratelimit-reset": "1"}))

    assert exc_info.value.name == "ratelimit-remaining"
    assert exc_info.value.value == "lots"
    assert "ratelimit-remaining" in str(exc_info.value)
    assert limiter.state(T) == before


@pytest.mark.parametrize("remaining", ["1_000", "٣", " 5", "5 ", "0x10"])
def test_non_ascii_decimal_values_are_rejected(remaining):
    limiter = _limiter()
    limiter.update(T, _quota_headers(limit="100", remaining="40"))
    before = limiter.state(T)

    with pytest.raises(InvalidHeaderError) as exc_info:
        limiter.update(T, _quota_headers(limit="100", remaining=remaining))

    assert exc_info.value.value == remaining
    assert limiter.state(T) == before


def test_signed_values_are_accepted():
    limiter = _limiter()

    limiter.update(T, _quota_headers(limit="+100", remaining="-1"))

    assert limiter.state(T) == State(100, 0, T + timedelta(minutes=1))


@pytest.mark.parametrize(
    "unit,reset",
    [
        ("seconds", "99999999999999"),
        ("seconds", "-99999999999999"),
        ("seconds", "9" * 40),
        ("milliseconds", "-99999999999999"),
        ("milliseconds", "9" * 20),
    ],
)
def test_out_of_range_reset_leaves_state_untouched(unit, reset):
    limiter = _limiter(duration_unit=unit)
    before = limiter.state(T)

    with pytest.raises(InvalidHeaderError) as exc_info:
        limiter.update(T, _quota_headers(reset=reset))

    assert exc_info.value.name == "X-RateLimit-Reset"
    assert exc_info.value.value == reset
    assert limiter.state(T) == before


def test_out_of_range_retry_after_arms_no_backoff():
    limiter = _limiter()

    with pytest.raises(InvalidHeaderError) as exc_info:
        limiter.update(T, Attrs({"Retry-After": "99999999999999"}))

    assert exc_info.value.name == "Retry-After"
    assert limiter.quota.pending_backoff is None
    assert limiter.next(T, Attrs()) == T


def test_update_requires_attrs():
    limiter = _limiter()

    with pytest.raises(MissingAttrsError):
        limiter.update(T, None)


def test_retry_after_arms_backoff_and_short_circuits():
    limiter = _limiter()

    with pytest.raises(RetryError) as exc_info:
        limiter.update(T, Attrs({"Retry-After": "30", "X-RateLimit-Limit": "bogus"}))

    assert exc_info.value.retry_after == T + timedelta(seconds=30)
    assert limiter.state(T) == State(10, 10, T + timedelta(minutes=1))

    later = T + timedelta(seconds=1)
    assert limiter.next(later, Attrs()) == T + timedelta(seconds=30)
    assert limiter.quota.delay(later) == timedelta(seconds=29)
    assert limiter.state(later).remaining == 10


def test_retry_after_in_milliseconds():
    limiter = _limiter(duration_unit="milliseconds")

    with pytest.raises(RetryError) as exc_info:
        limiter.update(T, Attrs({"X-Retry-After": "1500"}))

    assert exc_info.value.retry_after == T + timedelta(milliseconds=1500)


def test_malformed_retry_after():
    limiter = _limiter()

    with pytest.raises(InvalidHeaderError):
        limiter.update(T, Attrs({"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}))

    assert limiter.quota.pending_backoff is None


def test_next_requires_attrs():
    limiter = _limiter()

    with pytest.raises(MissingAttrsError):
        limiter.next(T)

    assert limiter.state(T).remaining == 10


def test_next_consumes_quota_in_burst_mode():
    limiter = _limiter(events=2)

    assert limiter.next(T, Attrs()) == T
    assert limiter.next(T, Attrs()) == T
    assert limiter.next(T, Attrs()) == T + timedelta(minutes=1)
    assert limiter.state(T).remaining == 0


def test_next_meters_in_meter_mode():
    limiter = _limiter(mode=Mode.METER, events=6)

    assert limiter.next(T, Attrs()) == T + timedelta(seconds=10)
    assert limiter.state(T).remaining == 5


def test_config_target_and_max_delay_reach_quota():
    limiter = _limiter(mode=Mode.METER, events=6, target=0.5, max_delay=timedelta(seconds=15))

    assert limiter.next(T, Attrs()) == T + timedelta(seconds=15)


def test_wait_returns_now_when_no_delay():
    limiter = _limiter()
    cancel = asyncio.Event()
    cancel.set()

    assert asyncio.run(limiter.wait(T, Attrs(), cancel=cancel)) == T


def test_wait_with_canceled_event_does_not_sleep():
    limiter = _limiter(events=1)
    limiter.next(T, Attrs())
    cancel = asyncio.Event()
    cancel.set()

    async def scenario():
        return await asyncio.wait_for(limiter.wait(T, Attrs(), cancel=cancel), timeout=1.0)

    with pytest.raises(CanceledError) as exc_info:
        asyncio.run(scenario())

    assert exc_info.value.next_at == T + timedelta(minutes=1)


def test_wait_sleeps_until_permitted():
    limiter = _limiter(mode=Mode.METER, window=timedelta(milliseconds=40), events=4)

    result = asyncio.run(limiter.wait(T, Attrs()))

    assert result == T + timedelta(milliseconds=10)
