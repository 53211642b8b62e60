"""Pytest configuration and shared fixtures."""

from hypothesis import settings

# Create a profile named "no_deadline" with deadline disabled.
# Sender recovery is pure Python and too slow for the default deadline.
settings.register_profile("no_deadline", deadline=None)
settings.load_profile("no_deadline")


import pytest


@pytest.fixture
def anyio_backend():
    # The client is built on asyncio (grpc.aio); run anyio-marked tests on asyncio only.
    return "asyncio"
