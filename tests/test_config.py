import pytest

from canopy.global_config import EngineConfig, get_config, get_config_dir, get_data_file, save_config
from canopy.infrastructure.http import DEFAULT_API_URL


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("CANOPY_HOME", str(tmp_path / "canopy"))
    return tmp_path / "canopy"


def test_defaults(home):
    config = get_config()

    assert get_config_dir() == home
    assert config.position_step == 1000
    assert config.api_url == DEFAULT_API_URL
    assert get_data_file(config) == home / "tasks.json"


def test_saved_config_is_loaded(home, tmp_path):
    save_config(EngineConfig(page_size=10, fetch_retries=2, data_file=str(tmp_path / "work.json")))

    config = get_config()
    assert config.page_size == 10
    assert config.fetch_retries == 2
    assert get_data_file() == tmp_path / "work.json"


def test_invalid_config_falls_back_to_defaults(home):
    (get_config_dir() / "config.json").write_text('{"position_step": -5}', encoding="utf-8")
    assert get_config() == EngineConfig()
