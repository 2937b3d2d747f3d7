"""
Configuration Management for Helpdesk Triage

Loads configuration from ~/.triage/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field, fields

logger = logging.getLogger("triage.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".triage"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"
USAGE_PATH = CONFIG_DIR / "usage.json"


@dataclass
class HelpScoutConfig:
    """HelpScout Mailbox API configuration"""
    app_id: str = ""
    app_secret: str = ""
    base_url: str = "https://api.helpscout.net/v2"
    token_url: str = "https://api.helpscout.net/v2/oauth2/token"
    timeout: float = 30.0
    thread_max_pages: int = 10  # safety limit when listing one conversation's threads


@dataclass
class DocsConfig:
    """HelpScout Docs API configuration"""
    api_key: str = ""
    base_url: str = "https://docsapi.helpscout.net/v1"
    cache_ttl_seconds: int = 3600
    max_articles: int = 5
    timeout: float = 30.0


@dataclass
class LLMConfig:
    """LLM provider configuration for AI scoring"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    max_tokens: int = 2000
    timeout: float = 60.0
    input_cost_per_million: float = 3.0
    output_cost_per_million: float = 15.0


@dataclass
class NotifierConfig:
    """Microsoft Teams notification configuration"""
    teams_webhook_url: str = ""
    timeout: float = 10.0


@dataclass
class ScannerConfig:
    """Scan and triage behaviour"""
    scorer: str = "lexical"  # "lexical" or "ai"
    escalation_threshold: int = 20
    page_size: int = 50
    max_pages: int = 10
    max_items: int = 500
    drafts_enabled: bool = True
    server_port: int = 8090


@dataclass
class ScoringWeights:
    """Lexical scorer weights. Hand-tuned defaults."""
    profanity_base: int = 20
    profanity_per_term: int = 10
    negative_word: int = 5
    context_phrase: int = 15
    caps_high: int = 25
    caps_high_ratio: float = 0.5
    caps_medium: int = 15
    caps_medium_ratio: float = 0.3
    urgency_keyword: int = 10
    insult: int = 15
    refund_phrase: int = 20
    exclamation: int = 10
    exclamation_min_count: int = 3  # bonus applies above this count
    high_confidence_score: int = 70
    medium_confidence_score: int = 40


@dataclass
class TriageConfig:
    """Main triage configuration"""
    helpscout: HelpScoutConfig = field(default_factory=HelpScoutConfig)
    docs: DocsConfig = field(default_factory=DocsConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    notifier: NotifierConfig = field(default_factory=NotifierConfig)
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    scoring: ScoringWeights = field(default_factory=ScoringWeights)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_section(cls, data: dict, name: str):
    """Build a section dataclass from ``data[name]``, ignoring unknown keys"""
    section = data.get(name) or {}
    known = {f.name for f in fields(cls)}
    unknown = set(section) - known
    if unknown:
        logger.warning("Ignoring unknown keys in '%s' config: %s", name, sorted(unknown))
    return cls(**{k: v for k, v in section.items() if k in known})


def _parse_helpscout_config(data: dict) -> HelpScoutConfig:
    """Parse helpscout section from config dict"""
    return _parse_section(HelpScoutConfig, data, "helpscout")


def _parse_docs_config(data: dict) -> DocsConfig:
    """Parse docs section from config dict"""
    return _parse_section(DocsConfig, data, "docs")


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse LLM section from config dict.

    Older configs stored the Anthropic key under ``claude_api_key``; it is
    still accepted when ``anthropic_api_key`` is absent.
    """
    llm_data = dict(data.get("llm") or {})
    legacy_key = llm_data.pop("claude_api_key", "")
    if legacy_key and not llm_data.get("anthropic_api_key"):
        llm_data["anthropic_api_key"] = legacy_key
    return _parse_section(LLMConfig, {"llm": llm_data}, "llm")


def _parse_notifier_config(data: dict) -> NotifierConfig:
    """Parse notifier section from config dict"""
    return _parse_section(NotifierConfig, data, "notifier")


def _parse_scanner_config(data: dict) -> ScannerConfig:
    """Parse scanner section from config dict"""
    return _parse_section(ScannerConfig, data, "scanner")


def _parse_scoring_weights(data: dict) -> ScoringWeights:
    """Parse scoring section from config dict"""
    return _parse_section(ScoringWeights, data, "scoring")


def load_config() -> TriageConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.triage/config.json)
    3. Default values
    """
    config = TriageConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.helpscout = _parse_helpscout_config(data)
            config.docs = _parse_docs_config(data)
            config.llm = _parse_llm_config(data)
            config.notifier = _parse_notifier_config(data)
            config.scanner = _parse_scanner_config(data)
            config.scoring = _parse_scoring_weights(data)
        except (json.JSONDecodeError, IOError, TypeError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # Secrets and endpoints (tracked so save_config never persists them)
    _env_secret_map = {
        "HELPSCOUT_APP_ID": (config.helpscout, "app_id"),
        "HELPSCOUT_APP_SECRET": (config.helpscout, "app_secret"),
        "HELPSCOUT_DOCS_API_KEY": (config.docs, "api_key"),
        "CLAUDE_API_KEY": (config.llm, "anthropic_api_key"),
        "ANTHROPIC_API_KEY": (config.llm, "anthropic_api_key"),
        "OPENAI_API_KEY": (config.llm, "openai_api_key"),
        "GOOGLE_API_KEY": (config.llm, "google_api_key"),
        "GEMINI_API_KEY": (config.llm, "google_api_key"),
        "TEAMS_WEBHOOK_URL": (config.notifier, "teams_webhook_url"),
    }
    for env_var, (section, attr) in _env_secret_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(section, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("TRIAGE_LLM_PROVIDER"):
        config.llm.provider = os.getenv("TRIAGE_LLM_PROVIDER")
    if os.getenv("TRIAGE_SCORER"):
        config.scanner.scorer = os.getenv("TRIAGE_SCORER")
    if os.getenv("TRIAGE_PORT"):
        config.scanner.server_port = int(os.getenv("TRIAGE_PORT"))
    if os.getenv("TRIAGE_ESCALATION_THRESHOLD"):
        config.scanner.escalation_threshold = int(os.getenv("TRIAGE_ESCALATION_THRESHOLD"))

    return config


def save_config(config: TriageConfig) -> None:
    """Save configuration to file.

    Secret fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    def _section(obj) -> dict:
        out = {}
        for f in fields(obj):
            value = getattr(obj, f.name)
            out[f.name] = "" if f.name in env_sourced else value
        return out

    data = {
        "helpscout": _section(config.helpscout),
        "docs": _section(config.docs),
        "llm": _section(config.llm),
        "notifier": _section(config.notifier),
        "scanner": _section(config.scanner),
        "scoring": _section(config.scoring),
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
