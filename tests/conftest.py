import pytest

from tests.helpers import FakeMetadataStore, FakeObjectStore, FakeProber


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def metadata_store() -> FakeMetadataStore:
    return FakeMetadataStore()


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber()
