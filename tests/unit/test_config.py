import pytest

from parley import config
from parley.config import load_settings
from parley.errors import ValidationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("PARLEY_HOME", "PARLEY_EXTERNAL_API_KEY", "PARLEY_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    config.clear_cache()
    yield
    config.clear_cache()


def test_defaults(tmp_path):
    settings = load_settings(tmp_path)
    assert settings.storage_root == tmp_path
    assert settings.external_api_key is None
    assert settings.silence_threshold_seconds == 300
    assert settings.queue_pressure_threshold == 50
    assert settings.max_pending_notifications == 1000
    assert settings.logging_level == "INFO"
    assert settings.agents_file == tmp_path / "agents.json"
    assert settings.messages_db == tmp_path / "messages.db"


def test_home_env_sets_root(tmp_path, monkeypatch):
    monkeypatch.setenv("PARLEY_HOME", str(tmp_path / "home"))
    assert load_settings().storage_root == tmp_path / "home"


def test_precedence_file_env_override(tmp_path, monkeypatch):
    (tmp_path / "config.yaml").write_text(
        "queue_pressure_threshold: 5\nlogging_level: debug\nexternal_api_key: from-file\n"
    )
    monkeypatch.setenv("PARLEY_EXTERNAL_API_KEY", "from-env")

    settings = load_settings(tmp_path, queue_pressure_threshold=7)

    assert settings.logging_level == "DEBUG"
    assert settings.external_api_key == "from-env"
    assert settings.queue_pressure_threshold == 7


def test_unknown_yaml_key_ignored(tmp_path, caplog):
    (tmp_path / "config.yaml").write_text("colour: blue\n")
    load_settings(tmp_path)
    assert "colour" in caplog.text


def test_invalid_values_rejected(tmp_path):
    with pytest.raises(ValidationError):
        load_settings(tmp_path, silence_threshold_seconds=0)
    with pytest.raises(ValidationError):
        load_settings(tmp_path, bogus=1)
