from __future__ import annotations

import pytest

from creative_worker.config import Settings
from creative_worker.dto import ObjectLocator
from creative_worker.errors import RetrievalError
from creative_worker.retrieval import ContentRetriever, retrieval_policy
from tests.helpers import FakeObjectStore

LOCATOR = ObjectLocator(bucket="creatives", name="banner.jpg")


class EventuallyVisibleStore(FakeObjectStore):
    """Returns nothing, then an empty body, then the object."""

    def __init__(self, responses):
        super().__init__()
        self.responses = list(responses)

    def get(self, locator):
        self.get_calls.append(locator)
        return self.responses.pop(0)


class BrokenStore(FakeObjectStore):
    def get(self, locator):
        self.get_calls.append(locator)
        raise PermissionError("forbidden")


def make_retriever(store, sleeps):
    return ContentRetriever(store, retrieval_policy(Settings(), sleep=sleeps.append))


def test_fetch_returns_bytes_on_first_attempt():
    store = FakeObjectStore({LOCATOR: b"data"})
    sleeps: list[float] = []
    assert make_retriever(store, sleeps).fetch(LOCATOR) == b"data"
    assert sleeps == []


def test_fetch_waits_for_object_to_become_visible():
    store = EventuallyVisibleStore([None, b"", b"payload"])
    sleeps: list[float] = []

    assert make_retriever(store, sleeps).fetch(LOCATOR) == b"payload"
    assert len(store.get_calls) == 3
    assert sleeps == [6.0, 6.0]


def test_fetch_gives_up_after_five_attempts():
    store = FakeObjectStore()
    sleeps: list[float] = []

    with pytest.raises(RetrievalError) as excinfo:
        make_retriever(store, sleeps).fetch(LOCATOR)

    assert excinfo.value.attempts == 5
    assert excinfo.value.locator == LOCATOR
    assert len(store.get_calls) == 5
    assert sleeps == [6.0] * 4


def test_other_failures_are_not_retried():
    store = BrokenStore()
    sleeps: list[float] = []

    with pytest.raises(PermissionError):
        make_retriever(store, sleeps).fetch(LOCATOR)
    assert len(store.get_calls) == 1
