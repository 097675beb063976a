"""Configuration loader: TOML file plus environment overrides."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from lux_aeternum.adapters.govee import DEFAULT_BASE_URL as GOVEE_BASE_URL
from lux_aeternum.divina import DEFAULT_BASE_URL as DIVINA_BASE_URL
from lux_aeternum.effects.dispatcher import DEFAULT_BASE_URL as GAMEDIN_BASE_URL
from lux_aeternum.effects.dispatcher import EffectDispatcher
from lux_aeternum.exceptions import ConfigError
from lux_aeternum.manager import LightManager
from lux_aeternum.models import CommandType, Effect, LightCommand

CONFIG_PATH = Path.home() / ".config" / "lux-aeternum" / "config.toml"


@dataclass
class GoveeConfig:
    api_key: str = ""
    base_url: str = GOVEE_BASE_URL
    timeout: float = 5.0


@dataclass
class HueConfig:
    bridge_ip: str = ""
    username: str = ""
    use_https: bool = False
    port: int | None = None
    timeout: float = 5.0


@dataclass
class GameDinConfig:
    api_key: str = ""
    base_url: str = GAMEDIN_BASE_URL
    enable_default_effects: bool = True


@dataclass
class DivinaConfig:
    auth_token: str = ""
    base_url: str = DIVINA_BASE_URL
    realtime: bool = True
    reconnect_attempts: int = 5


@dataclass
class SyncConfig:
    interval: float = 30.0  # seconds


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "text"


@dataclass
class AppConfig:
    govee: GoveeConfig = field(default_factory=GoveeConfig)
    hue: HueConfig = field(default_factory=HueConfig)
    gamedin: GameDinConfig = field(default_factory=GameDinConfig)
    divina: DivinaConfig = field(default_factory=DivinaConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    effects: list[Effect] = field(default_factory=list)


ENV_OVERRIDES = {
    "GOVEE_API_KEY": ("govee", "api_key"),
    "HUE_BRIDGE_IP": ("hue", "bridge_ip"),
    "HUE_USERNAME": ("hue", "username"),
    "GAMEDIN_API_KEY": ("gamedin", "api_key"),
    "DIVINA_L3_AUTH_TOKEN": ("divina", "auth_token"),
    "LOG_LEVEL": ("logging", "level"),
}


def config_path() -> Path:
    override = os.environ.get("LUX_CONFIG")
    return Path(override).expanduser() if override else CONFIG_PATH


def load_config(path: str | Path | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    """Load config from TOML, then apply environment overrides.

    A missing file is not an error; defaults plus the environment are used.

    Raises:
        ConfigError: If the file cannot be parsed or an effect is malformed
    """
    path = Path(path) if path else config_path()
    data: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid config file {path}: {exc}") from exc

    config = _parse_config(data)
    _apply_env(config, os.environ if env is None else env)
    return config


def _parse_config(data: dict) -> AppConfig:
    try:
        return AppConfig(
            govee=GoveeConfig(**data.get("govee", {})),
            hue=HueConfig(**data.get("hue", {})),
            gamedin=GameDinConfig(**data.get("gamedin", {})),
            divina=DivinaConfig(**data.get("divina", {})),
            sync=SyncConfig(**data.get("sync", {})),
            logging=LoggingConfig(**data.get("logging", {})),
            effects=[_parse_effect(i, e) for i, e in enumerate(data.get("effects", []))],
        )
    except TypeError as exc:
        # Unknown keys in a table.
        raise ConfigError(f"Invalid config: {exc}") from exc


def _parse_effect(index: int, data: dict) -> Effect:
    try:
        event_type = data["event_type"]
        command_type = CommandType(data["type"])
    except KeyError as exc:
        raise ConfigError(f"Effect #{index} is missing {exc.args[0]!r}") from exc
    except ValueError as exc:
        raise ConfigError(f"Effect #{index}: unknown command type {data['type']!r}") from exc

    return Effect(
        event_type=event_type,
        command=LightCommand(command_type, params=dict(data.get("params", {}))),
        priority=int(data.get("priority", 0)),
        duration=int(data.get("duration", 0)),
        restore_previous_state=bool(data.get("restore_previous_state", False)),
    )


def _apply_env(config: AppConfig, env: Mapping[str, str]) -> None:
    for name, (section, attr) in ENV_OVERRIDES.items():
        value = env.get(name)
        if value:
            setattr(getattr(config, section), attr, value)


def build_manager(config: AppConfig) -> LightManager:
    """Create a manager with an adapter for every configured vendor."""
    manager = LightManager()
    if config.govee.api_key:
        manager.add_govee_adapter(
            config.govee.api_key,
            base_url=config.govee.base_url,
            timeout=config.govee.timeout,
        )
    if config.hue.bridge_ip:
        manager.add_hue_adapter(
            config.hue.bridge_ip,
            username=config.hue.username or None,
            use_https=config.hue.use_https,
            port=config.hue.port,
            timeout=config.hue.timeout,
        )
    return manager


def build_dispatcher(config: AppConfig, manager: LightManager) -> EffectDispatcher:
    """Create a dispatcher with the default effects (unless disabled) and the configured ones."""
    dispatcher = EffectDispatcher(
        manager,
        api_key=config.gamedin.api_key or None,
        base_url=config.gamedin.base_url,
        enable_default_effects=config.gamedin.enable_default_effects,
    )
    for effect in config.effects:
        dispatcher.add_effect(effect)
    return dispatcher
