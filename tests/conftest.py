"""Shared fixtures: an in-memory registry and a stand-in DB session."""

from unittest.mock import AsyncMock

import pytest

from helpers.fakes import FakeRegistry


@pytest.fixture
def registry():
    """Fresh in-memory studies, participants, forms, and responses."""
    return FakeRegistry()


@pytest.fixture
def db():
    """Session placeholder; the fake repositories never touch it."""
    return AsyncMock()
