from __future__ import annotations

from typing import Callable, List

import pytest


class FakeHandle:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualLoop:
    """Minimal stand-in for ``call_later`` that fires timers on demand."""

    def __init__(self) -> None:
        self.handles: List[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    def pending(self) -> List[FakeHandle]:
        return [handle for handle in self.handles if not handle.cancelled and handle.callback is not None]

    def tick(self) -> bool:
        pending = self.pending()
        if not pending:
            return False
        handle = pending[0]
        callback = handle.callback
        handle.callback = None
        callback()
        return True

    def run_all(self, limit: int = 1_000) -> None:
        for _ in range(limit):
            if not self.tick():
                return
        raise AssertionError("replay did not finish")


@pytest.fixture()
def loop() -> ManualLoop:
    return ManualLoop()
