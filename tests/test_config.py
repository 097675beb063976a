from __future__ import annotations

from pathlib import Path

import pytest

from lux_aeternum.adapters import GoveeAdapter, PhilipsHueAdapter
from lux_aeternum.config import build_dispatcher, build_manager, load_config
from lux_aeternum.exceptions import ConfigError
from lux_aeternum.manager import LightManager
from lux_aeternum.models import CommandType

CONFIG = """
[logging]
level = "DEBUG"
format = "json"

[govee]
api_key = "file-key"

[hue]
bridge_ip = "192.168.1.20"
username = "hue-user"
port = 8080

[gamedin]
enable_default_effects = false

[sync]
interval = 10

[[effects]]
event_type = "match:start"
type = "setColor"
params = { color = "#1E90FF" }
priority = 3
duration = 4000
restore_previous_state = true

[[effects]]
event_type = "player:leave"
type = "turnOff"
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(text)
    return path


def test_load_config_from_file(tmp_path: Path) -> None:
    config = load_config(_write(tmp_path, CONFIG), env={})

    assert config.logging.level == "DEBUG"
    assert config.logging.format == "json"
    assert config.govee.api_key == "file-key"
    assert config.hue.port == 8080
    assert config.gamedin.enable_default_effects is False
    assert config.sync.interval == 10
    first, second = config.effects
    assert first.event_type == "match:start"
    assert first.command.type == CommandType.SET_COLOR
    assert first.command.params == {"color": "#1E90FF"}
    assert (first.priority, first.duration, first.restore_previous_state) == (3, 4000, True)
    assert second.command.type == CommandType.TURN_OFF
    assert second.duration == 0


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.toml", env={})

    assert config.govee.api_key == ""
    assert config.sync.interval == 30.0
    assert config.gamedin.enable_default_effects is True
    assert config.effects == []


def test_environment_overrides(tmp_path: Path) -> None:
    config = load_config(
        _write(tmp_path, CONFIG),
        env={
            "GOVEE_API_KEY": "env-key",
            "HUE_BRIDGE_IP": "10.0.0.9",
            "DIVINA_L3_AUTH_TOKEN": "divina",
            "LOG_LEVEL": "WARNING",
        },
    )

    assert config.govee.api_key == "env-key"
    assert config.hue.bridge_ip == "10.0.0.9"
    assert config.hue.username == "hue-user"
    assert config.divina.auth_token == "divina"
    assert config.logging.level == "WARNING"


def test_config_path_from_environment(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("LUX_CONFIG", str(_write(tmp_path, CONFIG)))
    monkeypatch.delenv("GOVEE_API_KEY", raising=False)

    assert load_config().govee.api_key == "file-key"


@pytest.mark.parametrize(
    "text",
    [
        "[govee\n",
        "[govee]\nunknown = 1\n",
        '[[effects]]\ntype = "setColor"\n',
        '[[effects]]\nevent_type = "x"\ntype = "explode"\n',
    ],
)
def test_invalid_config(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, text), env={})


def test_build_manager_wires_configured_vendors(tmp_path: Path) -> None:
    config = load_config(_write(tmp_path, CONFIG), env={})

    manager = build_manager(config)

    adapters = list(manager.adapters.values())
    assert [type(a) for a in adapters] == [GoveeAdapter, PhilipsHueAdapter]
    assert "philips-hue:192.168.1.20" in manager.adapters
    assert adapters[1].base_url == "http://192.168.1.20:8080"


def test_build_manager_without_vendors(tmp_path: Path) -> None:
    manager = build_manager(load_config(tmp_path / "absent.toml", env={}))
    assert manager.adapters == {}


def test_build_dispatcher_registers_config_effects(tmp_path: Path) -> None:
    config = load_config(_write(tmp_path, CONFIG), env={})

    dispatcher = build_dispatcher(config, LightManager())

    assert dispatcher.registry.event_types == ["match:start", "player:leave"]
    assert len(dispatcher.registry) == 2
