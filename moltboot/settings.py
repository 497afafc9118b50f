"""Requested settings: the environment read once at boot."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

OPENAI_ROUTE_SUFFIX = "/openai"


def _get(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    return value if value else None


@dataclass(frozen=True)
class Settings:
    gateway_token: str | None = None
    dev_mode: bool = False
    telegram_bot_token: str | None = None
    telegram_dm_policy: str = "pairing"
    discord_bot_token: str | None = None
    discord_dm_policy: str = "pairing"
    slack_bot_token: str | None = None
    slack_app_token: str | None = None
    moonshot_api_key: str | None = None
    anthropic_api_key: str | None = None
    anthropic_base_url: str | None = None
    ai_gateway_base_url: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            gateway_token=_get(env, "CLAWDBOT_GATEWAY_TOKEN"),
            dev_mode=env.get("CLAWDBOT_DEV_MODE") == "true",
            telegram_bot_token=_get(env, "TELEGRAM_BOT_TOKEN"),
            telegram_dm_policy=_get(env, "TELEGRAM_DM_POLICY") or "pairing",
            discord_bot_token=_get(env, "DISCORD_BOT_TOKEN"),
            discord_dm_policy=_get(env, "DISCORD_DM_POLICY") or "pairing",
            slack_bot_token=_get(env, "SLACK_BOT_TOKEN"),
            slack_app_token=_get(env, "SLACK_APP_TOKEN"),
            moonshot_api_key=_get(env, "MOONSHOT_API_KEY"),
            anthropic_api_key=_get(env, "ANTHROPIC_API_KEY"),
            anthropic_base_url=_get(env, "ANTHROPIC_BASE_URL"),
            ai_gateway_base_url=_get(env, "AI_GATEWAY_BASE_URL"),
        )

    @property
    def gateway_base_url(self) -> str:
        """AI Gateway URL, else the Anthropic override, without trailing slashes."""
        return (self.ai_gateway_base_url or self.anthropic_base_url or "").rstrip("/")

    @property
    def routes_openai(self) -> bool:
        return self.gateway_base_url.endswith(OPENAI_ROUTE_SUFFIX)
