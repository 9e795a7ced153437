"""Pytest configuration for civic_match tests."""

import os

import pytest

from civic_match.config import get_settings


@pytest.fixture(autouse=True)
def reset_env():
    """Reset environment variables and cached settings between tests."""
    original = os.environ.copy()
    get_settings.cache_clear()
    yield
    os.environ.clear()
    os.environ.update(original)
    get_settings.cache_clear()
