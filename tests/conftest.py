import pytest

from parley import config
from parley.config import load_settings
from parley.engine import Engine


@pytest.fixture
def settings(monkeypatch, tmp_path):
    """Isolated storage root per test.

    Environment overrides are cleared so a developer's PARLEY_* variables
    never leak into the run.
    """
    for var in ("PARLEY_HOME", "PARLEY_EXTERNAL_API_KEY", "PARLEY_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    config.clear_cache()
    root = tmp_path / ".parley"
    root.mkdir()
    yield load_settings(root)
    config.clear_cache()


@pytest.fixture
def engine(settings):
    eng = Engine(settings)
    yield eng
    eng.close()


@pytest.fixture
def keyed_engine(settings):
    """Engine with the external broadcast path enabled."""
    eng = Engine(load_settings(settings.storage_root, external_api_key="s3cret"))
    yield eng
    eng.close()


@pytest.fixture
def register(engine):
    """Register agents by name; returns their ids in order."""

    async def _register(*names):
        ids = []
        for name in names:
            result = await engine.register_agent(name, f"{name} agent")
            ids.append(result["id"])
        return ids

    return _register
