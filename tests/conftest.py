"""🧪 Pytest configuration and shared fixtures."""

import pytest
from lineage_factories import BASE_URL, event, flowfile, link

from flowlineage.config import LineageConfig, PollingConfig, get_settings


@pytest.fixture
def fast_polling():
    """Polling config with millisecond delays."""
    return PollingConfig(initial_delay=0.01, max_delay=0.04)


@pytest.fixture
def fast_config(fast_polling):
    return LineageConfig(polling=fast_polling)


@pytest.fixture
def spawn_lineage():
    """Flowfile p spawns c1 and c2 at event 2; c1 and c2 are then dropped."""
    nodes = [
        flowfile("p", millis=100),
        event("1", "p", "CREATE", millis=100, parents=["p"], children=["p"]),
        event("2", "p", "SPAWN", millis=200, parents=["p"], children=["c1", "c2"]),
        flowfile("c1", millis=200),
        flowfile("c2", millis=200),
        event("3", "c1", "DROP", millis=300, parents=["c1"]),
        event("4", "c2", "DROP", millis=300, parents=["c2"]),
    ]
    links = [
        link("p", "1", "p", 100),
        link("1", "2", "p", 200),
        link("2", "c1", "c1", 200),
        link("2", "c2", "c2", 200),
        link("c1", "3", "c1", 300),
        link("c2", "4", "c2", 300),
    ]
    return nodes, links


@pytest.fixture
def join_lineage():
    """Flowfiles a and b are joined into j at event 12, which is then sent."""
    nodes = [
        event("10", "a", "CREATE", millis=100),
        event("11", "b", "CREATE", millis=110),
        event("12", "j", "JOIN", millis=200, parents=["a", "b"], children=["j"]),
        flowfile("j", millis=200, parents=["a", "b"]),
        event("13", "j", "SEND", millis=300, parents=["j"]),
    ]
    links = [
        link("10", "12", "a", 200),
        link("11", "12", "b", 200),
        link("12", "j", "j", 200),
        link("j", "13", "j", 300),
    ]
    return nodes, links


# Environment setup for tests
@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Point settings at the fake backend."""
    monkeypatch.setenv("LINEAGE_API_BASE_URL", BASE_URL)
    monkeypatch.delenv("LINEAGE_CONFIG_FILE", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
