"""Process-wide, load-once values shared by concurrent first callers.

``SingleFlight`` wraps a zero-argument loader. The first caller starts the
load and publishes a ``concurrent.futures.Future``; callers that arrive
while it is in flight wait on that same future instead of starting a
second load. Once the load succeeds the value is cached for the life of
the process. A failed load is reported to every waiter and then
forgotten, so the next call retries.

The internal lock is held only while the future is created or looked up,
never while the loader runs.
"""

import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Memoize the result of ``loader`` with at most one load in flight."""

    def __init__(self, loader: Callable[[], T], name: str | None = None) -> None:
        self._loader = loader
        self._name = name or getattr(loader, "__name__", "loader")
        self._guard = threading.Lock()
        self._future: Future[T] | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_loaded(self) -> bool:
        """Whether a load has completed successfully."""
        future = self._future
        return future is not None and future.done() and future.exception() is None

    def get(self) -> T:
        """Return the loaded value, running the loader on first use.

        Raises:
            Exception: Whatever the loader raised, re-raised in every caller
                that waited on the failed load.
        """
        with self._guard:
            future = self._future
            owner = future is None
            if future is None:
                future = Future()
                self._future = future

        if owner:
            self._run(future)
        return future.result()

    def _run(self, future: "Future[T]") -> None:
        try:
            value = self._loader()
        except BaseException as exc:
            with self._guard:
                if self._future is future:
                    self._future = None
            future.set_exception(exc)
            if not isinstance(exc, Exception):
                raise
        else:
            future.set_result(value)

    def reset(self) -> None:
        """Forget any cached value so the next call loads again."""
        with self._guard:
            self._future = None
