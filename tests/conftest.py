import os

import pytest

# Set test-friendly defaults for constants that affect test performance
os.environ.setdefault("ACCOUNT_RESOLVE_STEP_SECONDS", "0")
os.environ.setdefault("TEST_EVENT_DELAY_SECONDS", "0")
os.environ.setdefault("SUBSCRIBER_SEND_TIMEOUT_SECONDS", "1")


@pytest.fixture
def transport_factory():
    from tests.fakes import FakeTransportFactory

    return FakeTransportFactory()
