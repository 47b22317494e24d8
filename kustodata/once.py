"""Run a function once, retrying on failure until it succeeds."""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class Once(Generic[T]):
    """Runs a function until it first succeeds, then keeps returning its result."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False
        self._result: T | None = None
        self._error: BaseException | None = None

    def do(self, func: Callable[[], T]) -> T:
        """Return the cached result, or call func; a raised error is stored and re-raised."""
        if self._done:
            return self._result  # type: ignore[return-value]
        with self._lock:
            if not self._done:
                try:
                    result = func()
                except Exception as exc:
                    self._result = None
                    self._error = exc
                    raise
                self._result = result
                self._error = None
                self._done = True
            return self._result  # type: ignore[return-value]

    @property
    def done(self) -> bool:
        """Whether a call has succeeded."""
        return self._done

    def result(self) -> tuple[bool, T | None, BaseException | None]:
        """Return (done, last result, last error)."""
        return self._done, self._result, self._error


class OnceWithInit(Once[T]):
    """A Once bound to the function it runs."""

    def __init__(self, func: Callable[[], T]) -> None:
        super().__init__()
        self._func = func

    def do_with_init(self) -> T:
        """Run the bound function once."""
        return self.do(self._func)