"""Emulator configuration: data model, defaults, text formats and directories."""

from __future__ import annotations

import enum
import os
import re
import sys
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from fractions import Fraction
from pathlib import Path
from typing import Any

import tomli_w

from gones.consts import HEIGHT, WIDTH

CONFIG_DIR_NAME = "gones"

KIB = 1024


class Button(enum.IntEnum):
    """A controller button, numbered in the order the hardware shifts them out."""

    A = 0
    B = 1
    SELECT = 2
    START = 3
    UP = 4
    DOWN = 5
    LEFT = 6
    RIGHT = 7

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, text: str) -> Button:
        """Return the button with the given lower-case name."""
        for button in cls:
            if text == str(button):
                return button
        raise ValueError(f"invalid button: {text}")


# Keyboard keys are stored by name; an empty name means the key is unbound.
_KEY_NAMES = (
    [chr(c) for c in range(ord("A"), ord("Z") + 1)]
    + [f"Digit{i}" for i in range(10)]
    + [f"F{i}" for i in range(1, 25)]
    + [f"Numpad{i}" for i in range(10)]
    + [
        "NumpadAdd", "NumpadDecimal", "NumpadDivide", "NumpadEnter", "NumpadEqual",
        "NumpadMultiply", "NumpadSubtract", "AltLeft", "AltRight", "ArrowDown",
        "ArrowLeft", "ArrowRight", "ArrowUp", "Backquote", "Backslash", "Backspace",
        "BracketLeft", "BracketRight", "CapsLock", "Comma", "ContextMenu",
        "ControlLeft", "ControlRight", "Delete", "End", "Enter", "Equal", "Escape",
        "Home", "Insert", "IntlBackslash", "MetaLeft", "MetaRight", "Minus",
        "NumLock", "PageDown", "PageUp", "Pause", "Period", "PrintScreen", "Quote",
        "ScrollLock", "Semicolon", "ShiftLeft", "ShiftRight", "Slash", "Space", "Tab",
        "Alt", "Control", "Shift", "Meta",
    ]
)

_KEY_ALIASES = {
    **{str(i): f"Digit{i}" for i in range(10)},
    **{f"KP{i}": f"Numpad{i}" for i in range(10)},
    "KPAdd": "NumpadAdd",
    "KPDecimal": "NumpadDecimal",
    "KPDivide": "NumpadDivide",
    "KPEnter": "NumpadEnter",
    "KPEqual": "NumpadEqual",
    "KPMultiply": "NumpadMultiply",
    "KPSubtract": "NumpadSubtract",
    "Up": "ArrowUp",
    "Down": "ArrowDown",
    "Left": "ArrowLeft",
    "Right": "ArrowRight",
    "Apostrophe": "Quote",
    "GraveAccent": "Backquote",
    "LeftBracket": "BracketLeft",
    "RightBracket": "BracketRight",
    "Menu": "ContextMenu",
}

_KEY_LOOKUP = {
    **{alias.lower(): name for alias, name in _KEY_ALIASES.items()},
    **{name.lower(): name for name in _KEY_NAMES},
}


def _parse_key(text: str) -> str:
    if text == "":
        return ""
    try:
        return _KEY_LOOKUP[text.lower()]
    except KeyError:
        raise ValueError(f"invalid key: {text}") from None


# ---------------------------------------------------------------------------
# Byte sizes

_BYTE_UNITS = ["B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB"]

_BYTE_MULTIPLIERS = {
    "": 1,
    "b": 1,
    "k": KIB, "kib": KIB, "kb": 1000,
    "m": KIB**2, "mib": KIB**2, "mb": 1000**2,
    "g": KIB**3, "gib": KIB**3, "gb": 1000**3,
    "t": KIB**4, "tib": KIB**4, "tb": 1000**4,
    "p": KIB**5, "pib": KIB**5, "pb": 1000**5,
    "e": KIB**6, "eib": KIB**6, "eb": 1000**6,
}

_BYTES_PATTERN = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))\s*([A-Za-z]*)\s*$")


def format_bytes(value: int) -> str:
    """Format a byte count with a binary unit, dropping a whole-number fraction."""
    number = float(value)
    exponent = 0
    while abs(number) >= KIB and exponent < len(_BYTE_UNITS) - 1:
        number /= KIB
        exponent += 1
    return f"{number:.2f}{_BYTE_UNITS[exponent]}".replace(".00", "", 1)


def parse_bytes(text: str) -> int:
    """Parse a byte count such as ``40KiB`` or ``512``."""
    match = _BYTES_PATTERN.match(text)
    if not match:
        raise ValueError(f"invalid byte size: {text!r}")
    number, unit = match.groups()
    try:
        multiplier = _BYTE_MULTIPLIERS[unit.lower()]
    except KeyError:
        raise ValueError(f"invalid byte unit in {text!r}") from None
    return int(Fraction(number) * multiplier)


# ---------------------------------------------------------------------------
# Durations

_NS = 1
_US = 1_000 * _NS
_MS = 1_000 * _US
_SECOND = 1_000 * _MS
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE

_DURATION_UNITS = {
    "ns": _NS,
    "us": _US,
    "µs": _US,
    "μs": _US,
    "ms": _MS,
    "s": _SECOND,
    "m": _MINUTE,
    "h": _HOUR,
}

_DURATION_COMPONENT = re.compile(r"(\d*)(?:\.(\d*))?(ns|us|µs|μs|ms|s|m|h)")


def _format_fraction(value: int, precision: int) -> str:
    whole, frac = divmod(value, 10**precision)
    digits = str(frac).rjust(precision, "0").rstrip("0")
    return f"{whole}.{digits}" if digits else str(whole)


def format_duration(seconds: float) -> str:
    """Format a duration in seconds the way ``1m0s`` or ``500ms`` is written."""
    ns = round(seconds * _SECOND)
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    u = abs(ns)
    if u < _US:
        return f"{sign}{u}ns"
    if u < _MS:
        return f"{sign}{_format_fraction(u, 3)}µs"
    if u < _SECOND:
        return f"{sign}{_format_fraction(u, 6)}ms"
    secs = _format_fraction(u % _MINUTE, 9) + "s"
    minutes = u // _MINUTE
    if minutes == 0:
        return sign + secs
    hours, minutes = divmod(minutes, 60)
    prefix = f"{hours}h" if hours else ""
    return f"{sign}{prefix}{minutes}m{secs}"


def parse_duration(text: str) -> float:
    """Parse a duration such as ``1h30m`` or ``500ms`` into seconds."""
    rest = text
    sign = 1
    if rest[:1] in ("+", "-"):
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return 0.0
    if not rest:
        raise ValueError(f'invalid duration "{text}"')
    total = Fraction(0)
    pos = 0
    while pos < len(rest):
        match = _DURATION_COMPONENT.match(rest, pos)
        if not match or not (match.group(1) or match.group(2)):
            raise ValueError(f'invalid duration "{text}"')
        whole, frac, unit = match.groups()
        frac = frac or ""
        scale = _DURATION_UNITS[unit]
        total += int(whole or 0) * scale
        if frac:
            total += Fraction(int(frac), 10 ** len(frac)) * scale
        pos = match.end()
    return sign * int(total) / _SECOND


# ---------------------------------------------------------------------------
# Data model

def _key(default: str) -> Any:
    return field(default=default, metadata={"kind": "key"})


def _duration(default: float) -> Any:
    return field(default=default, metadata={"kind": "duration"})


def _named(default: Any, toml_name: str) -> Any:
    return field(default=default, metadata={"toml": toml_name})


@dataclass
class Overscan:
    """Rows and columns trimmed from each edge of the picture."""

    top: int = 8
    right: int = 0
    bottom: int = 8
    left: int = 0

    def rect(self) -> tuple[int, int, int, int]:
        """Visible area as ``(x0, y0, x1, y1)`` with the corners ordered."""
        x0, x1 = sorted((self.left, WIDTH - self.right))
        y0, y1 = sorted((self.top, HEIGHT - self.bottom))
        return x0, y0, x1, y1


@dataclass
class UI:
    fullscreen: bool = False
    scale: float = 3.0
    pause_unfocused: bool = True
    palette: str = ""
    remove_sprite_limit: bool = True
    overscan: Overscan = field(default_factory=Overscan)


@dataclass
class State:
    resume: bool = True
    autosave_interval: float = _duration(60.0)
    undo_state_count: int = 5


@dataclass
class Keymap:
    """Keyboard bindings for one player."""

    a: str = _key("")
    b: str = _key("")
    start: str = _key("")
    select: str = _key("")
    up: str = _key("")
    down: str = _key("")
    left: str = _key("")
    right: str = _key("")
    a_turbo: str = _key("")
    b_turbo: str = _key("")

    def get_map(self) -> dict[Button, str]:
        """Key bound to each regular button."""
        return {
            Button.A: self.a,
            Button.B: self.b,
            Button.START: self.start,
            Button.SELECT: self.select,
            Button.UP: self.up,
            Button.DOWN: self.down,
            Button.LEFT: self.left,
            Button.RIGHT: self.right,
        }

    def get_turbo_map(self) -> dict[Button, str]:
        """Key bound to each turbo button."""
        return {Button.A: self.a_turbo, Button.B: self.b_turbo}


def _player1() -> Keymap:
    return Keymap(
        a="M", b="N", start="Enter", select="ShiftRight",
        up="W", down="S", left="A", right="D",
        a_turbo="K", b_turbo="J",
    )


def _player2() -> Keymap:
    return Keymap(
        a="Numpad3", b="Numpad2", start="NumpadEnter", select="NumpadAdd",
        up="Home", down="End", left="Delete", right="PageDown",
        a_turbo="Numpad6", b_turbo="Numpad5",
    )


@dataclass
class Input:
    reset: str = _key("R")
    reset_hold: float = _duration(0.5)
    state1_save: str = _key("F1")
    state1_load: str = _key("F5")
    state_undo_modifier: str = _key("ShiftLeft")
    fast_forward: str = _key("F")
    fast_forward_rate: int = 3
    fullscreen: str = _key("F11")
    screenshot: str = _key("Backslash")
    turbo_duty_cycle: int = 4
    player1: Keymap = field(default_factory=_player1)
    player2: Keymap = field(default_factory=_player2)

    def reset_hold_frames(self) -> int:
        """Number of frames the reset key must be held, at least one."""
        return int(self.reset_hold * 60) or 1


@dataclass
class AudioChannels:
    triangle: bool = True
    square1: bool = _named(True, "square_1")
    square2: bool = _named(True, "square_2")
    noise: bool = True
    pcm: bool = True


@dataclass
class Audio:
    enabled: bool = True
    volume: float = 1.0
    channels: AudioChannels = field(default_factory=AudioChannels)
    buffer_size: int = field(default=40 * KIB, metadata={"kind": "bytes"})


@dataclass
class Debug:
    enabled: bool = False
    trace: bool = False


def _parse_bool(raw: Any) -> bool:
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in ("1", "t", "true"):
            return True
        if lowered in ("0", "f", "false"):
            return False
        raise ValueError(f"invalid boolean: {raw!r}")
    return bool(raw)


def _convert(kind: str | None, current: Any, raw: Any) -> Any:
    if kind == "key":
        return _parse_key(str(raw))
    if kind == "duration":
        return parse_duration(raw) if isinstance(raw, str) else float(raw)
    if kind == "bytes":
        return parse_bytes(raw) if isinstance(raw, str) else int(raw)
    if isinstance(current, bool):
        return _parse_bool(raw)
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return str(raw)


def _load_into(obj: Any, data: Any) -> None:
    if not isinstance(data, Mapping):
        raise ValueError(f"expected a table for {type(obj).__name__}, got {data!r}")
    for f in fields(obj):
        name = f.metadata.get("toml", f.name)
        if name not in data:
            continue
        current = getattr(obj, f.name)
        if is_dataclass(current):
            _load_into(current, data[name])
        else:
            setattr(obj, f.name, _convert(f.metadata.get("kind"), current, data[name]))


def _to_dict(obj: Any) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        kind = f.metadata.get("kind")
        if is_dataclass(value):
            value = _to_dict(value)
        elif kind == "duration":
            value = format_duration(value)
        elif kind == "bytes":
            value = format_bytes(value)
        result[f.metadata.get("toml", f.name)] = value
    return result


@dataclass
class Config:
    """Complete emulator configuration; a bare instance holds the defaults."""

    ui: UI = field(default_factory=UI)
    state: State = field(default_factory=State)
    input: Input = field(default_factory=Input)
    audio: Audio = field(default_factory=Audio)
    debug: Debug = field(default_factory=Debug)

    def to_dict(self) -> dict[str, Any]:
        """Nested mapping keyed by the names used in the config file."""
        data = _to_dict(self)
        if not (self.debug.enabled or self.debug.trace):
            del data["debug"]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Config:
        """Build a config from a mapping, keeping defaults for missing keys."""
        conf = cls()
        _load_into(conf, data)
        return conf

    def to_toml(self) -> str:
        """Serialise the config as a TOML document."""
        return tomli_w.dumps(self.to_dict())


def new_default() -> Config:
    """Return the default configuration."""
    return Config()


def parse_toml(text: str | bytes) -> dict[str, Any]:
    """Parse a TOML document into a plain mapping."""
    if isinstance(text, bytes):
        text = text.decode("utf-8")
    return tomllib.loads(text)


# ---------------------------------------------------------------------------
# Directories

def _user_config_dir() -> Path:
    if sys.platform.startswith("win"):
        app_data = os.environ.get("APPDATA", "")
        if not app_data:
            raise OSError("%AppData% is not defined")
        return Path(app_data)
    if sys.platform == "darwin":
        home = os.environ.get("HOME", "")
        if not home:
            raise OSError("$HOME is not defined")
        return Path(home) / "Library" / "Application Support"
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if not xdg:
        home = os.environ.get("HOME", "")
        if not home:
            raise OSError("neither $XDG_CONFIG_HOME nor $HOME are defined")
        return Path(home) / ".config"
    if not os.path.isabs(xdg):
        raise OSError("path in $XDG_CONFIG_HOME is relative")
    return Path(xdg)


def get_dir() -> Path:
    """Directory holding the configuration and saved data."""
    if sys.platform == "darwin":
        xdg = os.environ.get("XDG_CONFIG_HOME", "")
        if xdg:
            return Path(xdg) / CONFIG_DIR_NAME
    return _user_config_dir() / CONFIG_DIR_NAME


def get_states_dir() -> Path:
    return get_dir() / "states"


def get_sram_dir() -> Path:
    return get_dir() / "sav"


def get_palette_dir() -> Path:
    return get_dir() / "palettes"


def get_screenshot_dir() -> Path:
    return get_dir() / "screenshots"