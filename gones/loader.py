"""Loading the configuration from TOML files and command-line flags."""

from __future__ import annotations

import argparse
import copy
import logging
import os
from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Any

from gones.config import (
    Config,
    get_dir,
    get_palette_dir,
    new_default,
    parse_bytes,
    parse_duration,
    parse_toml,
)
from gones.consts import AUDIO_BUFFER_BYTES, HEIGHT, WIDTH

_log = logging.getLogger(__name__)

# Command-line flag name -> dotted config key.
FLAG_TABLE = {
    "debug": "debug.enabled",
    "trace": "debug.trace",
    "scale": "ui.scale",
    "fullscreen": "ui.fullscreen",
    "audio": "audio.enabled",
    "resume": "state.resume",
    "palette": "ui.palette",
    "pause-unfocused": "ui.pause_unfocused",
}

MIN_TURBO_DUTY_CYCLE = 2
MIN_AUTOSAVE_INTERVAL = 10.0


def add_flags(parser: argparse.ArgumentParser) -> None:
    """Add the emulator's configuration flags to a parser.

    Every flag defaults to ``None`` so that only flags given on the command
    line override the configuration.
    """
    parser.add_argument(
        "-c", "--config", default=None,
        help="Config file (default is $HOME/.config/gones/config.toml)",
    )
    parser.add_argument(
        "--debug", action="store_true", default=None,
        help="Start with step debugging enabled",
    )
    parser.add_argument(
        "--trace", action="store_true", default=None, help="Enable trace logging"
    )
    parser.add_argument(
        "--scale", type=float, default=None, help="Default UI scale (default 3)"
    )
    parser.add_argument(
        "-f", "--fullscreen", action="store_true", default=None,
        help="Start in fullscreen",
    )
    parser.add_argument(
        "-a", "--audio", action=argparse.BooleanOptionalAction, default=None,
        help="Enabled audio output (default true)",
    )
    parser.add_argument(
        "--resume", action=argparse.BooleanOptionalAction, default=None,
        help="Automatically resume where you left off (default true)",
    )
    parser.add_argument(
        "--palette", default=None, help="Optional palette (.pal) file to use"
    )
    parser.add_argument(
        "--pause-unfocused", dest="pause_unfocused",
        action=argparse.BooleanOptionalAction, default=None,
        help="Pauses when the window loses focus. Optional, but audio will be "
        "glitchy when the game is running in the background. (default true)",
    )


def flag_overrides(namespace: argparse.Namespace) -> dict[str, Any]:
    """Map the flags that were given onto dotted config keys."""
    overrides: dict[str, Any] = {}
    for flag, key in FLAG_TABLE.items():
        value = getattr(namespace, flag.replace("-", "_"), None)
        if value is not None:
            overrides[key] = value
    return overrides


def _merge(dst: dict[str, Any], src: Mapping[str, Any]) -> None:
    for key, value in src.items():
        if isinstance(value, Mapping) and isinstance(dst.get(key), dict):
            _merge(dst[key], value)
        elif isinstance(value, Mapping):
            dst[key] = copy.deepcopy(dict(value))
        else:
            dst[key] = value


def _get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    node: Any = data
    for part in key.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return default
        node = node[part]
    return node


def _set(data: dict[str, Any], key: str, value: Any) -> None:
    *parents, last = key.split(".")
    node = data
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    if isinstance(value, Mapping) and isinstance(node.get(last), dict):
        _merge(node[last], value)
    else:
        node[last] = value


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_seconds(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, str):
        parsed = parse_duration(value)
        if isinstance(parsed, timedelta):
            return parsed.total_seconds()
        return float(parsed)
    return _as_float(value)


def fix_config(data: dict[str, Any]) -> dict[str, Any]:
    """Migrate old keys and clamp out-of-range values in a config mapping."""
    inp = data.get("input")
    if isinstance(inp, dict) and "keys" in inp:
        keys = inp.pop("keys")
        if isinstance(keys, Mapping):
            _merge(inp, keys)

    if _as_int(_get(data, "input.turbo_duty_cycle", 0)) < MIN_TURBO_DUTY_CYCLE:
        _log.warning("Turbo duty cycle must be 2 or greater. Setting value to 2.")
        _set(data, "input.turbo_duty_cycle", MIN_TURBO_DUTY_CYCLE)

    if _as_seconds(_get(data, "state.autosave_interval")) < MIN_AUTOSAVE_INTERVAL:
        # The interval is reported but left unchanged, so zero still disables autosave.
        _log.warning("Autosave interval must be 10s or greater. Setting value to 10s.")

    volume = _as_float(_get(data, "audio.volume", 0))
    if volume < 0:
        _log.warning("Minimum volume is 0. Setting to 0.")
        _set(data, "audio.volume", 0)
    elif volume > 1:
        _log.warning("Maximum volume is 1. Setting to 1.")
        _set(data, "audio.volume", 1)

    overscan = new_default().ui.overscan
    for side, limit in (
        ("top", HEIGHT // 2),
        ("right", WIDTH // 2),
        ("bottom", HEIGHT // 2),
        ("left", WIDTH // 2),
    ):
        value = _as_int(_get(data, f"ui.trim.{side}", 0))
        if value < 0 or value >= limit:
            _log.warning("Invalid %s trim. Setting to default.", side)
            _set(data, f"ui.trim.{side}", getattr(overscan, side))

    raw = _get(data, "audio.buffer_size")
    if raw is not None and raw != "":
        size = int(raw) if isinstance(raw, int) else parse_bytes(str(raw))
        if size < AUDIO_BUFFER_BYTES:
            _log.warning(
                "The minimum allowed buffer size is %d bytes. Setting to default.",
                AUDIO_BUFFER_BYTES,
            )
            _set(data, "audio.buffer_size", new_default().to_dict()["audio"]["buffer_size"])

    return data


def _apply(conf: Config, data: Mapping[str, Any]) -> None:
    updated = Config.from_dict(copy.deepcopy(dict(data)))
    for key, value in vars(updated).items():
        setattr(conf, key, value)


def _load_main_config(conf: Config, data: dict[str, Any], path: Path) -> None:
    try:
        contents = path.read_bytes()
        exists = True
    except FileNotFoundError:
        contents = b""
        exists = False

    _merge(data, parse_toml(contents.decode("utf-8")))
    fix_config(data)
    _apply(conf, data)

    new_contents = conf.to_toml()
    if isinstance(new_contents, str):
        new_contents = new_contents.encode("utf-8")
    if contents != new_contents:
        if exists:
            _log.info("Updating main config file=%s", path)
        else:
            _log.info("Creating main config file=%s", path)
            path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(new_contents)

    _log.info("Loaded main config file=%s", path)


def _load_game_overrides(conf: Config, data: dict[str, Any], path: Path, name: str) -> None:
    try:
        contents = path.read_bytes()
    except FileNotFoundError:
        _log.info("Creating game config file=%s", path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("# Overrides for " + name, encoding="utf-8")
        return

    _merge(data, parse_toml(contents.decode("utf-8")))
    _apply(conf, data)
    fix_config(data)
    _log.info("Loaded game config file=%s", path)


def load(
    conf: Config,
    name: str,
    rom_hash: str,
    config_file: str | os.PathLike[str] | None = None,
    flags: Mapping[str, Any] | None = None,
) -> Config:
    """Update ``conf`` from the main config, per-game overrides and flags.

    With no ``config_file`` the main config and the game's override file are
    looked up in the config directory; the main config is written back when
    it differs from the loaded result. ``flags`` maps dotted keys to values.
    """
    data = copy.deepcopy(conf.to_dict())

    game_file: Path | None = None
    if config_file is None or os.fspath(config_file) == "":
        cfg_dir = Path(get_dir())
        main_file = cfg_dir / "config.toml"
        game_file = cfg_dir / "games" / f"{rom_hash}.toml"
    else:
        main_file = Path(config_file)

    _load_main_config(conf, data, main_file)

    if game_file is not None:
        _load_game_overrides(conf, data, game_file, name)

    for key, value in (flags or {}).items():
        _set(data, key, value)
    _apply(conf, data)

    Path(get_palette_dir()).mkdir(parents=True, exist_ok=True)
    return conf