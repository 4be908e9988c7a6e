import logging

import pytest

from pubsub_wrapper.result import (
    Failure,
    Success,
    failable,
    failure,
    first_failure,
    is_failure,
    is_success,
    payload,
    success,
)


def test_success_and_failure_inspection():
    ok = success({"id": 1})
    bad = failure("nope")

    assert is_success(ok) and not is_failure(ok)
    assert is_failure(bad) and not is_success(bad)
    assert payload(ok) == {"id": 1}
    assert payload(bad) == "nope"


def test_failure_stringifies_exceptions():
    assert failure(ValueError("bad value")) == Failure(reason="bad value")


def test_success_without_payload():
    assert payload(success()) is None


def test_results_are_immutable():
    result = success(1)
    with pytest.raises(Exception):
        result.payload = 2


def test_first_failure_in_order():
    results = [success(1), failure("first"), success(2), failure("second")]
    assert first_failure(results) == Failure(reason="first")
    assert first_failure([success(1), success(2)]) is None
    assert first_failure([]) is None


def test_failable_wraps_return_value():
    @failable
    def add(a, b):
        return a + b

    assert add(1, 2) == Success(payload=3)


def test_failable_passes_results_through():
    @failable
    def already_failed():
        return failure("explicit")

    assert already_failed() == Failure(reason="explicit")


def test_failable_converts_exceptions_and_logs(caplog):
    @failable
    def explode():
        raise RuntimeError("kaboom")

    with caplog.at_level(logging.WARNING):
        result = explode()

    assert result == Failure(reason="kaboom")
    assert any("explode failed: kaboom" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_failable_async():
    @failable
    async def fetch(value):
        if value is None:
            raise LookupError("missing value")
        return value

    assert await fetch("x") == Success(payload="x")
    assert await fetch(None) == Failure(reason="missing value")
