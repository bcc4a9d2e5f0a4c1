from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, Executor, Future, wait
from typing import Callable, List


class TaskGroup:
    """Spawn independent tasks on an executor, join them, raise the first failure.

    On failure, tasks that have not started yet are cancelled. Work that already
    finished (pages on disk) is left as is.
    """

    def __init__(self, executor: Executor) -> None:
        self._executor = executor
        self._futures: List[Future] = []

    def go(self, fn: Callable[..., object], *args, **kwargs) -> None:
        self._futures.append(self._executor.submit(fn, *args, **kwargs))

    def wait(self) -> int:
        """Block until every task is done; returns how many ran."""
        futures, self._futures = self._futures, []
        order = {f: i for i, f in enumerate(futures)}
        pending = set(futures)
        while pending:
            done, pending = wait(pending, return_when=FIRST_EXCEPTION)
            failed = sorted((f for f in done if not f.cancelled() and f.exception() is not None),
                            key=order.__getitem__)
            if failed:
                self.cancel(pending)
                raise failed[0].exception()
        return len(futures)

    def cancel(self, futures=None) -> None:
        for f in (self._futures if futures is None else futures):
            f.cancel()

    def __enter__(self) -> "TaskGroup":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.cancel()
            return
        self.wait()
