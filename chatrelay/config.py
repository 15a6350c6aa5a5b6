"""
Config loader for chatrelay.
Reads config.yaml once at startup into a frozen Config object.
The app factory, the completion client and the CLI all take that object;
nothing reads the environment inside a request handler.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

load_dotenv()

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

_config: "Config | None" = None

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant that answers naturally."


def _resolve_env_vars(value: str) -> str:
    """Replace ${ENV_VAR} and ${ENV_VAR:-default} patterns with environment values."""
    def replacer(match):
        var_name, default = match.group(1), match.group(2)
        return os.environ.get(var_name) or (default or "")
    return re.sub(r"\$\{(\w+)(?::-([^}]*))?\}", replacer, value)


def _walk_and_resolve(obj):
    """Recursively resolve env vars in all string values."""
    if isinstance(obj, dict):
        return {k: _walk_and_resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_walk_and_resolve(v) for v in obj]
    elif isinstance(obj, str):
        return _resolve_env_vars(obj)
    return obj


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass(frozen=True)
class BackendConfig:
    url: str = "https://api.groq.com/openai/v1"
    api_key: str = ""
    model: str = "llama-3.3-70b-versatile"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    temperature: float | None = 0.7
    timeout: int = 120


@dataclass(frozen=True)
class StorageConfig:
    enabled: bool = True
    sqlite_path: str = "./data/chatrelay.db"


@dataclass(frozen=True)
class WiretapConfig:
    enabled: bool = False
    path: str = "./data/wire.jsonl"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file: str = ""


@dataclass(frozen=True)
class Config:
    """Process-wide settings, built once and passed by reference."""
    server: ServerConfig = field(default_factory=ServerConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    wiretap: WiretapConfig = field(default_factory=WiretapConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, raw: dict) -> "Config":
        """
        Build a Config from an already env-resolved mapping.
        Missing sections and keys fall back to defaults. Empty strings
        coming from unset ${VARS} count as missing for typed fields.
        """
        raw = raw or {}
        server = raw.get("server") or {}
        backend = raw.get("backend") or {}
        storage = raw.get("storage") or {}
        wiretap = raw.get("wiretap") or {}
        log_cfg = raw.get("logging") or {}

        temperature = backend.get("temperature", BackendConfig.temperature)
        if temperature == "":
            temperature = BackendConfig.temperature

        return cls(
            server=ServerConfig(
                host=server.get("host") or ServerConfig.host,
                port=int(server.get("port") or ServerConfig.port),
            ),
            backend=BackendConfig(
                url=(backend.get("url") or BackendConfig.url).rstrip("/"),
                api_key=backend.get("api_key") or "",
                model=backend.get("model") or BackendConfig.model,
                system_prompt=backend.get("system_prompt") or DEFAULT_SYSTEM_PROMPT,
                temperature=None if temperature is None else float(temperature),
                timeout=int(backend.get("timeout") or BackendConfig.timeout),
            ),
            storage=StorageConfig(
                enabled=_as_bool(storage.get("enabled", True)),
                sqlite_path=storage.get("sqlite_path") or StorageConfig.sqlite_path,
            ),
            wiretap=WiretapConfig(
                enabled=_as_bool(wiretap.get("enabled", False)),
                path=wiretap.get("path") or WiretapConfig.path,
            ),
            logging=LoggingConfig(
                level=str(log_cfg.get("level") or "INFO").upper(),
                file=log_cfg.get("file") or "",
            ),
        )


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def load_config(path: Path | None = None) -> Config:
    """Load and cache config from YAML file."""
    global _config
    if _config is not None:
        return _config

    env_path = os.environ.get("CHATRELAY_CONFIG")
    config_path = path or (Path(env_path) if env_path else _CONFIG_PATH)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    _config = Config.from_dict(_walk_and_resolve(raw))
    return _config


def get_config() -> Config:
    """Return cached config, loading if necessary."""
    if _config is None:
        return load_config()
    return _config
