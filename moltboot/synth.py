"""Gateway configuration synthesis.

The document is loaded (or initialised), then passed through pure stages, each
returning a new document::

    load_or_default -> apply_cleanup -> apply_gateway -> apply_channels
        -> apply_providers -> select_primary_model -> persist

Sections and fields this module does not recognise are carried through untouched.
"""

import copy
import json
import logging
from pathlib import Path

from moltboot.lib import config
from moltboot.lib.errors import ConfigError, log_error
from moltboot.lib.paths import Layout
from moltboot.models import ModelDescriptor, ProviderDefinition, StageResult, StageStatus
from moltboot.settings import Settings

logger = logging.getLogger(__name__)

OPENAI = "openai"
ANTHROPIC = "anthropic"
ANTHROPIC_DEFAULT_BASE_URL = "https://api.anthropic.com"
MOONSHOT_BASE_URL = "https://api.moonshot.ai/v1"

KIMI = ModelDescriptor("kimi-k2.5-preview", "Kimi K2.5", 262144, "Kimi K2.5")
CLAUDE_OPUS = ModelDescriptor("claude-opus-4-5-20251101", "Claude Opus 4.5", 200000, "Opus 4.5")
CLAUDE_SONNET = ModelDescriptor(
    "claude-sonnet-4-5-20250929", "Claude Sonnet 4.5", 200000, "Sonnet 4.5"
)
GPT_52 = ModelDescriptor("gpt-5.2", "GPT-5.2", 200000, "GPT-5.2")
GPT_5 = ModelDescriptor("gpt-5", "GPT-5", 200000, "GPT-5")

# TODO: confirm whether this should resolve to a configured provider; it can name a
# slot that was never populated when no credentials or gateway URL are supplied.
FALLBACK_PRIMARY = "anthropic/claude-opus-4-5"

SECRET_FIELDS = {"apiKey", "token", "botToken", "appToken"}


def _section(parent: dict, key: str) -> dict:
    """Return parent[key] as a mapping, replacing a missing or non-mapping value."""
    value = parent.get(key)
    if not isinstance(value, dict):
        value = {}
        parent[key] = value
    return value


def default_document(layout: Layout, port: int) -> dict:
    return {
        "agents": {"defaults": {"workspace": str(layout.workspace_dir)}},
        "gateway": {"port": port, "mode": "local"},
    }


def _read_document(path: Path) -> dict:
    try:
        doc = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError, RecursionError) as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    if not isinstance(doc, dict):
        raise ConfigError(f"{path} does not hold a JSON object")
    return doc


def load_or_default(layout: Layout, port: int) -> tuple[dict, str]:
    """Existing document, else the template, else minimal defaults. Returns (doc, source)."""
    for source, path in (("existing", layout.config_file), ("template", layout.template_file)):
        if not path.exists():
            continue
        try:
            doc = _read_document(path)
        except ConfigError as e:
            log_error("configure", e)
            continue
        logger.info(f"Using {source} config from {path}")
        return doc, source

    logger.info("No existing config found, using minimal defaults")
    return default_document(layout, port), "default"


def apply_cleanup(doc: dict) -> dict:
    """Drop provider slots whose model list has entries without a display name."""
    doc = copy.deepcopy(doc)
    models = doc.get("models")
    providers = models.get("providers") if isinstance(models, dict) else None
    if not isinstance(providers, dict):
        return doc

    for key in list(providers):
        entries = providers[key].get("models") if isinstance(providers[key], dict) else None
        if isinstance(entries, list) and any(
            not (isinstance(m, dict) and m.get("name")) for m in entries
        ):
            logger.info(f"Removing broken {key} provider config (missing model names)")
            del providers[key]
    return doc


def apply_gateway(
    doc: dict, settings: Settings, port: int, trusted_proxies: list[str]
) -> dict:
    doc = copy.deepcopy(doc)
    gateway = _section(doc, "gateway")
    gateway["port"] = port
    gateway["mode"] = "local"
    gateway["trustedProxies"] = list(trusted_proxies)

    if settings.gateway_token:
        _section(gateway, "auth")["token"] = settings.gateway_token

    if settings.dev_mode:
        _section(gateway, "controlUi")["allowInsecureAuth"] = True
    return doc


def apply_channels(doc: dict, settings: Settings) -> dict:
    doc = copy.deepcopy(doc)
    channels = _section(doc, "channels")

    if settings.telegram_bot_token:
        telegram = _section(channels, "telegram")
        telegram["botToken"] = settings.telegram_bot_token
        telegram["enabled"] = True
        _section(telegram, "dm")
        telegram["dmPolicy"] = settings.telegram_dm_policy

    if settings.discord_bot_token:
        discord = _section(channels, "discord")
        discord["token"] = settings.discord_bot_token
        discord.pop("botToken", None)
        discord["enabled"] = True
        dm = _section(discord, "dm")
        dm["policy"] = settings.discord_dm_policy
        dm.pop("allowFrom", None)

    if settings.slack_bot_token and settings.slack_app_token:
        slack = _section(channels, "slack")
        slack["botToken"] = settings.slack_bot_token
        slack["appToken"] = settings.slack_app_token
        slack["enabled"] = True
    return doc


def moonshot_provider(api_key: str) -> ProviderDefinition:
    return ProviderDefinition(OPENAI, MOONSHOT_BASE_URL, "openai-completions", (KIMI,), api_key)


def anthropic_provider(base_url: str, api_key: str | None) -> ProviderDefinition:
    return ProviderDefinition(
        ANTHROPIC, base_url, "anthropic-messages", (CLAUDE_OPUS, CLAUDE_SONNET), api_key
    )


def gateway_openai_provider(base_url: str) -> ProviderDefinition:
    return ProviderDefinition(OPENAI, base_url, "openai-responses", (GPT_52, GPT_5))


def _install(doc: dict, provider: ProviderDefinition) -> None:
    _section(_section(doc, "models"), "providers")[provider.key] = provider.to_doc()
    aliases = _section(_section(_section(doc, "agents"), "defaults"), "models")
    for model in provider.models:
        aliases[provider.model_ref(model)] = {"alias": model.alias}


def apply_providers(doc: dict, settings: Settings) -> dict:
    """Configure provider slots in priority order without clobbering earlier ones."""
    doc = copy.deepcopy(doc)
    providers = _section(_section(doc, "models"), "providers")
    _section(_section(_section(doc, "agents"), "defaults"), "models")

    if settings.moonshot_api_key:
        logger.info("Configuring Kimi K2.5 (Moonshot) provider")
        _install(doc, moonshot_provider(settings.moonshot_api_key))

    if settings.anthropic_api_key:
        logger.info("Configuring Anthropic/Claude provider")
        base_url = settings.anthropic_base_url or ANTHROPIC_DEFAULT_BASE_URL
        _install(doc, anthropic_provider(base_url, settings.anthropic_api_key))

    base_url = settings.gateway_base_url
    if base_url and settings.routes_openai and not providers.get(OPENAI):
        logger.info(f"Configuring OpenAI provider via AI Gateway: {base_url}")
        _install(doc, gateway_openai_provider(base_url))
    elif base_url and not settings.routes_openai and not providers.get(ANTHROPIC):
        logger.info(f"Configuring Anthropic provider via AI Gateway: {base_url}")
        _install(doc, anthropic_provider(base_url, settings.anthropic_api_key))
    return doc


def primary_model(settings: Settings) -> str:
    if settings.moonshot_api_key:
        return f"{OPENAI}/{KIMI.id}"
    if settings.anthropic_api_key:
        return f"{ANTHROPIC}/{CLAUDE_OPUS.id}"
    if settings.gateway_base_url and settings.routes_openai:
        return f"{OPENAI}/{GPT_52.id}"
    if settings.gateway_base_url:
        return f"{ANTHROPIC}/{CLAUDE_OPUS.id}"
    return FALLBACK_PRIMARY


def select_primary_model(doc: dict, settings: Settings) -> dict:
    doc = copy.deepcopy(doc)
    model = _section(_section(_section(doc, "agents"), "defaults"), "model")
    model["primary"] = primary_model(settings)
    return doc


def render(doc: dict) -> str:
    return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"


def redact(doc):
    """Copy of doc with credential fields masked, for logging."""
    if isinstance(doc, dict):
        return {k: "***" if k in SECRET_FIELDS and v else redact(v) for k, v in doc.items()}
    if isinstance(doc, list):
        return [redact(v) for v in doc]
    return doc


def persist(doc: dict, path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render(doc), encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot write {path}: {e}") from e


def build_document(
    doc: dict, settings: Settings, port: int, trusted_proxies: list[str]
) -> dict:
    doc = apply_cleanup(doc)
    doc = apply_gateway(doc, settings, port, trusted_proxies)
    doc = apply_channels(doc, settings)
    doc = apply_providers(doc, settings)
    return select_primary_model(doc, settings)


def synthesize(
    layout: Layout, settings: Settings, cfg: dict | None = None, dry_run: bool = False
) -> tuple[dict, StageResult]:
    """Load, transform and write the gateway config. Never raises."""
    gateway_cfg = (cfg if cfg is not None else config.load_config()).get("gateway", {})
    port = int(gateway_cfg.get("port", 18789))
    trusted_proxies = gateway_cfg.get("trusted_proxies", ["10.1.0.0"])

    logger.info(f"Updating config at: {layout.config_file}")
    doc, source = load_or_default(layout, port)
    try:
        doc = build_document(doc, settings, port, trusted_proxies)
    except (AttributeError, TypeError, RecursionError) as e:
        log_error("configure", e, "unexpected document shape, using defaults")
        source = "default"
        doc = build_document(default_document(layout, port), settings, port, trusted_proxies)

    if dry_run:
        return doc, StageResult("configure", StageStatus.SKIPPED, "dry run")

    try:
        persist(doc, layout.config_file)
    except ConfigError as e:
        log_error("configure", e)
        return doc, StageResult("configure", StageStatus.FAILED, str(e))

    logger.info("Configuration updated successfully")
    logger.info(f"Config: {json.dumps(redact(doc), indent=2)}")
    return doc, StageResult("configure", StageStatus.OK, source)
