import pytest

from tests.fakes import FakeStore


@pytest.fixture
def fake_store():
    return FakeStore()
