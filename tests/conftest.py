"""
Pytest configuration and fixtures for MCP health testing.

Remote servers are replaced by scripted fake transports so no test touches
the network.
"""

import pytest

from mcp_health.core.client import ProtocolClient
from mcp_health.storage.memory import InMemoryResultStore
from mcp_health.utils.debug import set_debug_enabled, set_verbose_enabled
from tests.fakes import FakeClock, FakeTransportFactory, make_server


@pytest.fixture(autouse=True)
def quiet_logging():
    """Debug and verbose output stay off unless a test turns them on."""
    set_debug_enabled(False)
    set_verbose_enabled(False)
    yield
    set_debug_enabled(False)
    set_verbose_enabled(False)


@pytest.fixture
def fake_factory():
    """Factory with no scripted servers; tests add scripts as needed."""
    return FakeTransportFactory()


@pytest.fixture
def fake_client(fake_factory):
    return ProtocolClient(transport_factory=fake_factory)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def store():
    """Store with two remote servers and one local-only server."""
    return InMemoryResultStore(
        [
            make_server("alpha", "https://alpha.example.com/mcp"),
            make_server("beta", "https://beta.example.com/sse", transport_type="sse"),
            make_server("local", None),
        ]
    )
