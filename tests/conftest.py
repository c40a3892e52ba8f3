import os
import warnings

import pytest

warnings.filterwarnings("ignore", category=DeprecationWarning, module="engineio.*")

# Set test environment variables
os.environ.update(
    {
        "LOG_LEVEL": "DEBUG",
        "JOIN_TIMEOUT_SECONDS": "15",
        "ICE_RESTART_GRACE_SECONDS": "10",
    }
)

from tests.fixtures.fakes import (  # noqa: E402
    FakeHub,
    FakeMediaCapture,
    FakeTransport,
    FakeTransportFactory,
)


@pytest.fixture
def hub() -> FakeHub:
    """Channel hub with three live connections."""
    return FakeHub(connected=["s1", "v1", "v2"])


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def media_capture() -> FakeMediaCapture:
    return FakeMediaCapture()
