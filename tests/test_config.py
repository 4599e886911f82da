import logging
from pathlib import Path

from budgetsync.config import DEFAULT_SHARE_BASE_URL, HANDLER_NAME, configure_logging, load_settings
from budgetsync.sharing import DEFAULT_TOKEN_BYTES

ENV_VARS = (
    "BUDGETSYNC_DATA_DIR",
    "BUDGETSYNC_CACHE_FILE",
    "BUDGETSYNC_SHARE_BASE_URL",
    "BUDGETSYNC_SHARE_TOKEN_BYTES",
    "BUDGETSYNC_LOG_LEVEL",
)


def clear_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    clear_env(monkeypatch)
    settings = load_settings(dotenv=False)
    assert settings.share_base_url == DEFAULT_SHARE_BASE_URL
    assert settings.share_token_bytes == DEFAULT_TOKEN_BYTES
    assert settings.log_level == "INFO"
    assert settings.cache_file == settings.data_dir / "local_cache.json"


def test_env_overrides(monkeypatch, tmp_path):
    clear_env(monkeypatch)
    monkeypatch.setenv("BUDGETSYNC_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("BUDGETSYNC_SHARE_BASE_URL", "https://budget.example/s")
    monkeypatch.setenv("BUDGETSYNC_SHARE_TOKEN_BYTES", "32")
    monkeypatch.setenv("BUDGETSYNC_LOG_LEVEL", "debug")

    settings = load_settings(dotenv=False)
    assert settings.data_dir == Path(tmp_path)
    assert settings.cache_file == Path(tmp_path) / "local_cache.json"
    assert settings.share_base_url == "https://budget.example/s"
    assert settings.share_token_bytes == 32
    assert settings.log_level == "DEBUG"


def test_bad_token_bytes_fall_back(monkeypatch, caplog):
    clear_env(monkeypatch)
    monkeypatch.setenv("BUDGETSYNC_SHARE_TOKEN_BYTES", "many")
    with caplog.at_level(logging.WARNING, logger="budgetsync.config"):
        assert load_settings(dotenv=False).share_token_bytes == DEFAULT_TOKEN_BYTES
    assert "not an integer" in caplog.text

    monkeypatch.setenv("BUDGETSYNC_SHARE_TOKEN_BYTES", "4")
    assert load_settings(dotenv=False).share_token_bytes == DEFAULT_TOKEN_BYTES


def test_configure_logging_is_idempotent():
    root = logging.getLogger()
    before = len(root.handlers)
    configure_logging("WARNING")
    configure_logging("DEBUG")
    assert len(root.handlers) <= before + 1
    assert root.level == logging.DEBUG
    ours = [h for h in root.handlers if h.get_name() == HANDLER_NAME]
    assert len(ours) == 1
