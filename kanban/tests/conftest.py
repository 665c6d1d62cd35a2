"""Shared fixtures for engine tests."""

import pytest

from fakes import FakeAdapter


@pytest.fixture
def fake_adapter():
    return FakeAdapter()
