"""Small helpers shared by the resilience primitives."""

import inspect
from typing import Any, Awaitable, Callable, TypeVar, Union

T = TypeVar("T")

Operation = Callable[[], Union[T, Awaitable[T]]]


async def invoke_operation(operation: Operation) -> Any:
    """Call a zero-argument operation, awaiting its result if it is awaitable.

    Lets callers pass coroutine functions, lambdas returning coroutines, or
    plain synchronous callables interchangeably.
    """
    result = operation()
    if inspect.isawaitable(result):
        result = await result
    return result
