"""
Success/failure results returned by every Pub/Sub operation.

Callers branch on the result kind instead of catching exceptions:

    result = await client.publish("orders", b"hello")
    if is_failure(result):
        ...
    message_id = payload(result)
"""

import functools
import inspect
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict

from pubsub_wrapper.logging import log_warning


class Success(BaseModel):
    """Successful outcome carrying a payload of any type."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    payload: Any = None


class Failure(BaseModel):
    """Failed outcome carrying the stringified error."""

    model_config = ConfigDict(frozen=True)

    reason: str


Result = Union[Success, Failure]


def success(payload: Any = None) -> Success:
    return Success(payload=payload)


def failure(reason: Any) -> Failure:
    return Failure(reason=str(reason))


def is_success(result: Result) -> bool:
    return isinstance(result, Success)


def is_failure(result: Result) -> bool:
    return isinstance(result, Failure)


def payload(result: Result) -> Any:
    """Payload of a Success, or the reason of a Failure."""
    if isinstance(result, Failure):
        return result.reason
    return result.payload


def first_failure(results: Iterable[Result]) -> Optional[Failure]:
    """Return the first Failure in iteration order, or None."""
    for result in results:
        if isinstance(result, Failure):
            return result
    return None


def _to_result(value: Any) -> Result:
    if isinstance(value, (Success, Failure)):
        return value
    return success(value)


def failable(func: Callable) -> Callable:
    """
    Convert a function's outcome into a Result.

    Raised exceptions become Failure(str(exc)) and are logged; returned Results
    pass through; any other return value is wrapped in Success. Works for both
    plain and ``async def`` functions.
    """
    operation = func.__qualname__

    def _failed(e: Exception) -> Failure:
        log_warning(
            f"{operation} failed: {e}",
            logger_name=func.__module__,
            operation=operation,
            error_type=type(e).__name__,
        )
        return failure(e)

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Result:
            try:
                value = await func(*args, **kwargs)
            except Exception as e:
                return _failed(e)
            return _to_result(value)

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Result:
        try:
            value = func(*args, **kwargs)
        except Exception as e:
            return _failed(e)
        return _to_result(value)

    return wrapper
