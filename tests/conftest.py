import os

import pytest

from moltboot.lib import config, paths

ENV_VARS = (
    "CLAWDBOT_GATEWAY_TOKEN",
    "CLAWDBOT_DEV_MODE",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_DM_POLICY",
    "DISCORD_BOT_TOKEN",
    "DISCORD_DM_POLICY",
    "SLACK_BOT_TOKEN",
    "SLACK_APP_TOKEN",
    "MOONSHOT_API_KEY",
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_BASE_URL",
    "AI_GATEWAY_BASE_URL",
    "MOLTBOOT_CONFIG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Strip every boot-relevant variable so tests start from an empty environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config.clear_cache()
    yield
    config.clear_cache()


@pytest.fixture
def layout(tmp_path):
    """Container layout rooted in tmp_path."""
    return paths.rooted(tmp_path)


@pytest.fixture
def boot_cfg():
    return config.load_config()


def set_mtime(path, seconds):
    os.utime(path, (seconds, seconds))


def write_marker(path, seconds):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("2026-01-01T00:00:00Z")
    set_mtime(path, seconds)
    return path
