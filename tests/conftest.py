"""Shared doubles for the engine tests."""

from concurrent.futures import Executor, Future

import pytest


class ScriptedRng:
    """Stands in for numpy's Generator: returns pre-set (x, y, z) draws in order."""

    def __init__(self, draws):
        self.draws = list(draws)
        self.calls = 0

    def integers(self, low, high, size=None):
        self.calls += 1
        return self.draws.pop(0)


class ManualExecutor(Executor):
    """Collects submitted calls; tests decide when (and whether) they finish."""

    def __init__(self):
        self.calls = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.calls.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        for future, fn, args, kwargs in self.calls:
            if future.done():
                continue
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)


@pytest.fixture
def manual_executor():
    return ManualExecutor()
