"""Test configuration and fixtures for the linkshield test suite."""

import pytest
import pytest_asyncio
import structlog

from linkshield.scanner.cache import ResultCache
from linkshield.scanner.engine import ScanEngine
from linkshield.storage.memory import MemoryKeyValueStore
from mock_network import make_settings, mock_client, network_handler


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test to run with asyncio")
    # Keep log lines out of captured CLI output
    structlog.configure(
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def store():
    """Fresh in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture
def cache(store):
    return ResultCache(store)


@pytest.fixture
def settings():
    return make_settings()


@pytest_asyncio.fixture
async def engine(settings, store):
    """Scan engine on a fake network where every site answers 200."""
    client = mock_client(network_handler())
    scan_engine = ScanEngine(settings, store=store, client=client, reputation_checks=[])
    await scan_engine.setup()

    yield scan_engine

    await scan_engine.cleanup()
    await client.aclose()
