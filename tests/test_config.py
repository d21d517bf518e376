import json

from voicestudio import config
from voicestudio.models import Config, Provider


def test_load_default_config_when_missing(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.json"
    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path)

    cfg = config.load_config()
    assert isinstance(cfg, Config)
    assert cfg.default_provider == "openai"
    assert cfg.max_chunk_seconds == 100.0


def test_save_and_load_config(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.json"
    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path)

    cfg = Config(default_provider="deepgram", deepgram_api_key="dg-key")
    config.save_config(cfg)

    loaded = config.load_config()
    assert loaded.default_provider == "deepgram"
    assert loaded.deepgram_api_key == "dg-key"
    assert "openai_api_key" not in json.loads(cfg_path.read_text())


def test_update_config_validates_keys(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.json"
    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path)

    config.update_config(default_provider="gemini")
    loaded = config.load_config()
    assert loaded.default_provider == "gemini"

    try:
        config.update_config(unknown="value")
    except config.ConfigError:
        pass
    else:
        raise AssertionError("Expected ConfigError for invalid key")


def test_update_config_rejects_unknown_provider(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config.json")

    try:
        config.update_config(default_provider="whisper-local")
    except config.ConfigError:
        pass
    else:
        raise AssertionError("Expected ConfigError for unknown provider")


def test_corrupt_config_raises(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text("{not json")
    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path)

    try:
        config.load_config()
    except config.ConfigError:
        pass
    else:
        raise AssertionError("Expected ConfigError for corrupt file")


def test_api_key_prefers_config_then_environment(monkeypatch):
    monkeypatch.setenv("DEEPGRAM_API_KEY", "from-env")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    assert config.api_key_for(Provider.DEEPGRAM, Config()) == "from-env"
    assert config.api_key_for(Provider.DEEPGRAM, Config(deepgram_api_key="stored")) == "stored"
    assert config.api_key_for(Provider.GEMINI, Config()) is None


def test_recordings_root_defaults_under_app_dir(tmp_path):
    assert config.recordings_root(Config()) == config.APP_DIR / "recordings"
    assert config.recordings_root(Config(recordings_dir=str(tmp_path))) == tmp_path


def test_update_config_rejects_non_positive_chunk_length(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config.json")

    try:
        config.update_config(max_chunk_seconds=0)
    except config.ConfigError:
        pass
    else:
        raise AssertionError("Expected ConfigError for a non-positive chunk length")
    assert not (tmp_path / "config.json").exists()
