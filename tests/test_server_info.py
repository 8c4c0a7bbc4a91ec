import pytest

from holdem.config import Config
from holdem.server_info import get_server_info
from holdem.version import get_version_info

HOLDEM_VARS = ["HOLDEM_HOST", "HOLDEM_PORT", "HOLDEM_DB_PATH", "HOLDEM_SMALL_BLIND", "HOLDEM_BIG_BLIND",
               "HOLDEM_STARTING_CHIPS", "HOLDEM_NUM_PLAYERS", "HOLDEM_BOT_DELAY", "HOLDEM_BOT_SIMULATIONS",
               "SERVER_ENV", "SERVER_NAME"]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in HOLDEM_VARS:
        # set first so values loaded from .env files are removed again afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_config_defaults(clean_env):
    config = Config.from_env(str(clean_env / "missing.env"))
    assert config == Config()
    assert (config.small_blind, config.big_blind, config.starting_chips) == (10, 20, 1000)


def test_config_reads_env_file_and_environment_wins(clean_env, monkeypatch):
    env_path = clean_env / ".env"
    env_path.write_text("HOLDEM_PORT=9000\nHOLDEM_BIG_BLIND=50\nHOLDEM_BOT_DELAY=0.5\nSERVER_ENV=Staging\n")
    monkeypatch.setenv("SERVER_ENV", "Public Stable")

    config = Config.from_env(str(env_path))

    assert config.port == 9000
    assert config.big_blind == 50
    assert config.bot_delay == 0.5
    assert config.server_env == "Public Stable"


def test_config_rejects_non_numeric_values(clean_env, monkeypatch):
    monkeypatch.setenv("HOLDEM_PORT", "eighty")
    with pytest.raises(ValueError):
        Config.from_env(str(clean_env / "missing.env"))


def test_get_server_info_uses_config():
    config = Config(host="poker.example", port=8443, server_env="Public Stable", server_name="Prod Hold'em")

    info = get_server_info(config)

    assert info["server_env"] == "Public Stable"
    assert info["server_host"] == "poker.example"
    assert info["server_port"] == 8443
    assert info["server_name"] == "Prod Hold'em"
    assert info["api_url"] == "http://poker.example:8443/api"
    assert info["default_blinds"] == "$10/$20"
    for key, value in get_version_info().items():
        assert info[key] == value
